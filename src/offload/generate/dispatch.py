"""Dispatch surface generator.

Emits the container server entry: every container module imported as
``m_{namespace}`` and one class, ``Api``, with a flattened method per
module × export.  The RPC surface is a single addressable object, so the
per-module structure is folded into the method names::

    class Api:
        def pdf_urender__page_count(self, *args, **kwargs):
            return m_pdf_urender.page_count(*args, **kwargs)
"""

import ast

from offload._internal.paths import dispatch_method_name
from offload.config import OffloadConfig
from offload.discovery.types import ModuleDescriptor
from offload.generate.emit import parse_snippet


def entry_declarations(modules: list[ModuleDescriptor], config: OffloadConfig) -> ast.Module:
    lines = [
        "import os",
        "from offload.rpc.server import BatchRpcApp, serve",
    ]
    lines += [f"import {m.module_name} as m_{m.namespace}" for m in modules]

    lines.append("class Api:")
    methods = [
        (
            f"    def {dispatch_method_name(m.namespace, e.name)}(self, *args, **kwargs):\n"
            f"        return m_{m.namespace}.{e.name}(*args, **kwargs)"
        )
        for m in modules
        for e in m.exports
    ]
    lines += methods or ["    pass"]

    lines += [
        "app = BatchRpcApp(Api())",
        "if __name__ == '__main__':",
        f"    serve(app, host='0.0.0.0', port=int(os.environ.get('PORT', {str(config.container_port)!r})))",
    ]
    return ast.Module(body=parse_snippet("\n".join(lines)), type_ignores=[])
