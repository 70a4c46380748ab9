"""Offload CLI — regenerate, build release artifacts, or run the dev loop.

Entry point registered as ``offload`` in ``pyproject.toml``::

    [project.scripts]
    offload = "offload.cli:main"
"""

import argparse
import logging
import sys


def main(argv: list[str] | None = None) -> None:
    """CLI entry point for the ``offload`` command."""
    parser = argparse.ArgumentParser(
        prog="offload",
        description="Offload — run selected Python functions in containers, called like local ones.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command")

    # -- offload generate -------------------------------------------------
    generate_parser = subparsers.add_parser(
        "generate", help="Regenerate proxies and the dev container artifact"
    )
    generate_parser.add_argument("--root", default=".", help="Project root (default: cwd)")

    # -- offload build ----------------------------------------------------
    build_parser = subparsers.add_parser("build", help="Build release container artifacts")
    build_parser.add_argument("--root", default=".", help="Project root (default: cwd)")

    # -- offload dev ------------------------------------------------------
    dev_parser = subparsers.add_parser(
        "dev", help="Watch container modules and restart a dev server on changes"
    )
    dev_parser.add_argument("--root", default=".", help="Project root (default: cwd)")
    dev_parser.add_argument(
        "--no-restart",
        action="store_true",
        help="Regenerate on changes but never restart the dev server",
    )
    dev_parser.add_argument(
        "host_command",
        nargs=argparse.REMAINDER,
        help="Dev server command, after -- (e.g. -- uvicorn app:app --reload)",
    )

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="[offload] %(levelname)s %(message)s",
    )

    if args.command == "generate":
        from offload.cli._generate import run_generate

        run_generate(args)
    elif args.command == "build":
        from offload.cli._build import run_build

        run_build(args)
    elif args.command == "dev":
        from offload.cli._dev import run_dev

        run_dev(args)
