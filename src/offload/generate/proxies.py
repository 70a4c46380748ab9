"""Call-proxy generator.

One module per container module, one ``async def`` per export, with the
export's parameters.  Each proxy forwards its actual arguments to
``offload.runtime.dispatch`` together with the export's routing key::

    _KEY_render = _routing_key(lambda ctx: f"doc-{ctx.args[0]}")

    async def render(url: str, scale: float = 1.0) -> bytes:
        return await _dispatch(_containers, _NAMESPACE, 'render', _KEY_render, (), {'url': url, 'scale': scale}, ('url', 'scale'))

Defaults that are not literals cannot be evaluated outside the container
module; they become ``_MISSING`` and are left out of the forwarded call so
the backend applies its own default.

Regular parameters travel by keyword, and their names ride along so the
routing key still sees a positional call as positional (``ctx.args``).
"""

import ast

from offload.discovery.types import ExportDescriptor, ModuleDescriptor
from offload.generate.emit import parse_snippet
from offload.generate.layout import Layout


def _portable_default(node: ast.expr) -> ast.expr:
    try:
        ast.literal_eval(node)
    except (TypeError, ValueError, SyntaxError, MemoryError, RecursionError):
        return ast.Name(id="_MISSING", ctx=ast.Load())
    return node


def _proxy_function(namespace_var: str, export: ExportDescriptor) -> ast.AsyncFunctionDef:
    returns = f" -> {export.returns}" if export.returns else ""
    match parse_snippet(f"async def {export.name}({export.parameters}){returns}:\n    pass"):
        case [ast.AsyncFunctionDef() as stub]:
            pass
        case _:
            msg = f"Cannot build a proxy for {export.name}({export.parameters})"
            raise ValueError(msg)
    args = stub.args

    args.defaults = [_portable_default(d) for d in args.defaults]
    args.kw_defaults = [d if d is None else _portable_default(d) for d in args.kw_defaults]

    positional = [a.arg for a in args.posonlyargs]
    keyword = [a.arg for a in args.kwonlyargs]
    context_names: list[str] = []
    if args.vararg is not None:
        positional += [a.arg for a in args.args]
        positional.append(f"*{args.vararg.arg}")
    else:
        context_names = [a.arg for a in args.args]
        keyword = context_names + keyword

    args_expr = f"({', '.join(positional)},)" if positional else "()"
    items = [f"{name!r}: {name}" for name in keyword]
    if args.kwarg is not None:
        items.append(f"**{args.kwarg.arg}")
    kwargs_expr = "{" + ", ".join(items) + "}"
    extra = f", {tuple(context_names)!r}" if context_names else ""

    stub.body = parse_snippet(
        f"return await _dispatch(_containers, {namespace_var}, {export.name!r}, "
        f"_KEY_{export.name}, {args_expr}, {kwargs_expr}{extra})"
    )
    return stub


def proxy_declarations(module: ModuleDescriptor, layout: Layout) -> ast.Module:
    """Declarations for the proxy of one container module."""
    body: list[ast.stmt] = parse_snippet(
        "\n".join(
            [
                "from __future__ import annotations",
                "from offload.runtime import MISSING as _MISSING",
                "from offload.runtime import dispatch as _dispatch",
                "from offload.runtime import routing_key as _routing_key",
                f"from {layout.package}.client import containers as _containers",
                f"__all__ = {[e.name for e in module.exports]!r}",
                f"_NAMESPACE = {module.namespace!r}",
            ]
        )
    )
    for export in module.exports:
        key_expr = export.routing_key_expression or "None"
        body.extend(parse_snippet(f"_KEY_{export.name} = _routing_key({key_expr})"))
        body.append(_proxy_function("_NAMESPACE", export))
    return ast.Module(body=body, type_ignores=[])
