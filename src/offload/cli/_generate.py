"""``offload generate`` — one dev regeneration cycle."""

import argparse
import asyncio

from offload.cli._project import load_orchestrator
from offload.orchestrator.regen import BuildKind


def run_generate(args: argparse.Namespace) -> None:
    orchestrator = load_orchestrator(args.root)

    async def once() -> bool:
        try:
            return await orchestrator.enqueue(BuildKind.DEV, force=True)
        finally:
            await orchestrator.close()

    if not asyncio.run(once()):
        raise SystemExit(1)
