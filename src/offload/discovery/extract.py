"""Static extraction of entry functions from container module source.

Nothing is imported or executed: container modules usually depend on
packages that only exist inside the backend image, so the module is read
with :mod:`ast` alone.

Recognised forms::

    @container_fn
    def plain(x: int) -> int: ...

    @container_fn(key=container_key(lambda ctx: f"user-{ctx.args[0]}"))
    async def sharded(user_id: str) -> dict: ...

    def _render(url: str, scale: float = 1.0) -> bytes: ...
    render = container_fn(_render, container_key("renderer"))
"""

import ast

from offload.discovery.types import ExportDescriptor

MARKER = "container_fn"
KEY_MARKER = "container_key"

_ANY_SIGNATURE = "*args, **kwargs"


def _is_named(node: ast.expr, name: str) -> bool:
    if isinstance(node, ast.Name):
        return node.id == name
    if isinstance(node, ast.Attribute):
        return node.attr == name
    return False


def _is_marker_call(node: ast.expr | None) -> bool:
    return isinstance(node, ast.Call) and _is_named(node.func, MARKER)


def _key_expression(node: ast.expr | None) -> str | None:
    """Source text of a key argument, unwrapping ``container_key(...)``."""
    if node is None:
        return None
    if isinstance(node, ast.Constant) and node.value is None:
        return None
    if isinstance(node, ast.Call) and _is_named(node.func, KEY_MARKER) and node.args:
        node = node.args[0]
    return ast.unparse(node)


def _is_key_literal(node: ast.expr) -> bool:
    """A positional decorator argument only counts as a key when unambiguous."""
    if isinstance(node, ast.Constant):
        return isinstance(node.value, str)
    return isinstance(node, ast.Call) and _is_named(node.func, KEY_MARKER)


def _keyword(call: ast.Call, name: str) -> ast.expr | None:
    for kw in call.keywords:
        if kw.arg == name:
            return kw.value
    return None


def _signature(args: ast.arguments) -> str:
    # Unparse a throwaway def so annotations survive.
    stub = ast.FunctionDef(
        name="_",
        args=args,
        body=[ast.Pass()],
        decorator_list=[],
        returns=None,
        type_params=[],
    )
    text = ast.unparse(ast.fix_missing_locations(ast.Module(body=[stub], type_ignores=[])))
    return text[text.index("(") + 1 : text.rindex("):\n")]


def _declared_all(tree: ast.Module) -> frozenset[str] | None:
    for node in tree.body:
        if not isinstance(node, ast.Assign):
            continue
        if any(isinstance(t, ast.Name) and t.id == "__all__" for t in node.targets):
            try:
                return frozenset(ast.literal_eval(node.value))
            except (TypeError, ValueError):
                return None
    return None


def _from_decorated(node: ast.FunctionDef | ast.AsyncFunctionDef) -> ExportDescriptor | None:
    for decorator in node.decorator_list:
        match decorator:
            case _ if _is_named(decorator, MARKER):
                key = None
            case ast.Call() if _is_marker_call(decorator):
                key = _keyword(decorator, "key")
                if key is None and decorator.args and _is_key_literal(decorator.args[0]):
                    key = decorator.args[0]
            case _:
                continue
        return ExportDescriptor(
            name=node.name,
            routing_key_expression=_key_expression(key),
            parameters=_signature(node.args),
            returns=ast.unparse(node.returns) if node.returns else None,
        )
    return None


def _from_call(
    name: str,
    call: ast.Call,
    functions: dict[str, ast.FunctionDef | ast.AsyncFunctionDef],
) -> ExportDescriptor:
    target = call.args[0] if call.args else _keyword(call, "fn")
    key = _keyword(call, "key")
    if key is None and len(call.args) > 1:
        key = call.args[1]

    parameters, returns = _ANY_SIGNATURE, None
    if isinstance(target, ast.Lambda):
        parameters = _signature(target.args)
    elif isinstance(target, ast.Name) and target.id in functions:
        func = functions[target.id]
        parameters = _signature(func.args)
        returns = ast.unparse(func.returns) if func.returns else None

    return ExportDescriptor(
        name=name,
        routing_key_expression=_key_expression(key),
        parameters=parameters,
        returns=returns,
    )


def extract_exports(source: str, filename: str = "<container>") -> tuple[ExportDescriptor, ...]:
    """Find the qualifying entry functions declared in *source*.

    Only top-level public names qualify (no leading underscore, and listed
    in ``__all__`` when the module declares one).

    Raises:
        SyntaxError: If *source* does not parse.
    """
    tree = ast.parse(source, filename=filename)
    public = _declared_all(tree)
    functions = {
        node.name: node
        for node in tree.body
        if isinstance(node, (ast.FunctionDef, ast.AsyncFunctionDef))
    }

    found: list[ExportDescriptor] = []
    for node in tree.body:
        export: ExportDescriptor | None = None
        match node:
            case ast.FunctionDef() | ast.AsyncFunctionDef():
                export = _from_decorated(node)
            case ast.Assign(targets=[ast.Name(id=name)], value=ast.Call() as call) if _is_marker_call(call):
                export = _from_call(name, call, functions)
            case ast.AnnAssign(target=ast.Name(id=name), value=ast.Call() as call) if _is_marker_call(call):
                export = _from_call(name, call, functions)

        if export is None:
            continue
        if public is not None:
            if export.name not in public:
                continue
        elif export.name.startswith("_"):
            continue
        found.append(export)

    return tuple(found)
