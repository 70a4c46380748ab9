"""``offload build`` — release artifacts.

Runs one release cycle: regenerates everything and packages the container
server into both the artifacts directory and ``<out_dir>/<artifacts_dir>``.
Exits with code 1 if the cycle fails.
"""

import argparse
import asyncio
import sys

from offload.cli._project import load_orchestrator
from offload.orchestrator.regen import BuildKind


def run_build(args: argparse.Namespace) -> None:
    orchestrator = load_orchestrator(args.root)

    async def release() -> bool:
        try:
            return await orchestrator.enqueue(BuildKind.RELEASE, force=True)
        finally:
            await orchestrator.close()

    if not asyncio.run(release()):
        print("Error: release build failed (see log above)", file=sys.stderr)
        raise SystemExit(1)
    print(f"Container artifacts written to {orchestrator.layout.release_dir}")
