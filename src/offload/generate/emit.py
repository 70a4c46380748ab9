"""Source emission for generated modules.

Generators build ``ast.Module`` declarations; this module turns them into
text.  Comments do not exist in the AST, so the header is passed
separately.  Output is deterministic for identical input.
"""

import ast
from collections.abc import Sequence

GENERATED_HEADER = "AUTO-GENERATED. DO NOT EDIT."


def emit(module: ast.Module, header: Sequence[str] = (GENERATED_HEADER,)) -> str:
    """Render *module* as source text with ``# ...`` header lines."""
    body = ast.unparse(ast.fix_missing_locations(module))
    lines = [f"# {line}" for line in header]
    if body:
        lines.append(body)
    return "\n".join(lines) + "\n"


def parse_snippet(source: str) -> list[ast.stmt]:
    """Statements of a source snippet, for splicing into a declaration."""
    return ast.parse(source).body
