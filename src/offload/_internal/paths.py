"""Path and naming helpers shared by discovery, generators and packaging.

Namespaces
    A namespace is an identifier derived from a module's relative path
    (suffix stripped).  The escaping is injective: letters and digits are
    kept, and every ``_`` in the output starts a fixed-length escape::

        /  -> _s        _  -> _u        -  -> _d        .  -> _p
        other ASCII     -> _x + 2 hex digits
        non-ASCII       -> _y + 6 hex digits
        leading digit   -> _n + digit

    So ``pdf/render_container`` becomes ``pdf_srender_ucontainer``.  A
    namespace never contains ``__`` and never ends with ``_``, which keeps
    flattened dispatch names (``{namespace}__{export}``) unambiguous.
"""

import re
from pathlib import Path, PurePosixPath

_FIXED_ESCAPES = {"/": "_s", "_": "_u", "-": "_d", ".": "_p"}


def sanitize_namespace(rel_no_ext: str) -> str:
    """Derive the namespace identifier for a relative, suffix-less path."""
    out: list[str] = []
    for i, ch in enumerate(rel_no_ext.replace("\\", "/")):
        if ch.isascii() and ch.isalpha():
            out.append(ch)
        elif ch.isascii() and ch.isdigit():
            out.append(f"_n{ch}" if i == 0 else ch)
        elif ch in _FIXED_ESCAPES:
            out.append(_FIXED_ESCAPES[ch])
        elif ch.isascii():
            out.append(f"_x{ord(ch):02x}")
        else:
            out.append(f"_y{ord(ch):06x}")
    return "".join(out)


def dispatch_method_name(namespace: str, export_name: str) -> str:
    """Flattened method name on the dispatch surface."""
    return f"{namespace}__{export_name}"


def relative_posix(path: Path, root: Path) -> str:
    """POSIX-style path of *path* relative to *root*."""
    return path.relative_to(root).as_posix()


def module_name_for(path: Path, root: Path, source_roots: tuple[str, ...]) -> str:
    """Dotted import name of *path*, relative to the first source root containing it."""
    for source_root in source_roots:
        base = (root / source_root).resolve()
        try:
            rel = path.relative_to(base)
        except ValueError:
            continue
        parts = list(rel.with_suffix("").parts)
        if parts and parts[-1] == "__init__":
            parts.pop()
        if parts:
            return ".".join(parts)
    msg = f"{path} is not inside any source root ({', '.join(source_roots)})"
    raise ValueError(msg)


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Translate a ``Path.glob``-style pattern to an anchored regex.

    ``**/`` matches zero or more directories, ``*`` and ``?`` never cross
    a ``/``.
    """
    i, out = 0, []
    while i < len(pattern):
        if pattern.startswith("**/", i):
            out.append("(?:.*/)?")
            i += 3
        elif pattern.startswith("**", i):
            out.append(".*")
            i += 2
        elif pattern[i] == "*":
            out.append("[^/]*")
            i += 1
        elif pattern[i] == "?":
            out.append("[^/]")
            i += 1
        else:
            out.append(re.escape(pattern[i]))
            i += 1
    return re.compile("".join(out) + r"\Z")


def is_ignored(rel: PurePosixPath, excluded: tuple[str, ...] = ()) -> bool:
    """Whether a relative path lives somewhere discovery must never look."""
    for part in rel.parts[:-1]:
        if part.startswith(".") or part in {"__pycache__", "site-packages", "venv", "node_modules"}:
            return True
    rel_str = rel.as_posix()
    return any(rel_str == ex or rel_str.startswith(ex.rstrip("/") + "/") for ex in excluded)
