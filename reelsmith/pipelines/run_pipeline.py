"""Command-line entrypoint - render blocks, assemble items, plan scripts, seed voices."""

import argparse
import asyncio
import json
import sys
from typing import Any, Optional

from reelsmith.core.config import settings
from reelsmith.core.exceptions import ReelsmithError
from reelsmith.core.logging_config import get_logger, setup_logging
from reelsmith.pipelines.factory import get_services
from reelsmith.utils.error_handler import get_degradation_counts


async def _render_block(services: dict, args: argparse.Namespace) -> Any:
    report = await services["block_renderer"].render(args.block_id, voice_id=args.voice_id)
    return report.model_dump(mode="json")


async def _assemble(services: dict, args: argparse.Namespace) -> Any:
    result = await services["final_assembler"].assemble(args.item_id)
    return result.model_dump(mode="json")


async def _plan(services: dict, args: argparse.Namespace) -> Any:
    blocks = await services["script_planner"].plan_item(args.item_id, force=args.force)
    return [b.model_dump(mode="json") for b in blocks]


async def _seed_voices(services: dict, args: argparse.Namespace) -> Any:
    voices = await services["voice_library"].seed()
    return [v.model_dump(mode="json") for v in voices]


async def _check_engine(services: dict, args: argparse.Namespace) -> Any:
    return {"ffmpeg_available": await services["media_processor"].check_availability()}


COMMANDS = {
    "render-block": _render_block,
    "assemble": _assemble,
    "plan": _plan,
    "seed-voices": _seed_voices,
    "check-engine": _check_engine,
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Reelsmith - block rendering and final assembly",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default=None,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Override LOG_LEVEL for this run",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    render = subparsers.add_parser("render-block", help="Generate, re-voice, caption and store one block")
    render.add_argument("block_id", help="Block identifier")
    render.add_argument("--voice-id", default=None, help="ElevenLabs voice id used to re-voice the clip")

    assemble = subparsers.add_parser("assemble", help="Stitch every block of an item into the final video")
    assemble.add_argument("item_id", help="Content item identifier")

    plan = subparsers.add_parser("plan", help="Generate the block plan of an item")
    plan.add_argument("item_id", help="Content item identifier")
    plan.add_argument("--force", action="store_true", help="Replace existing blocks")

    subparsers.add_parser("seed-voices", help="Add the prebuilt catalog voices")
    subparsers.add_parser("check-engine", help="Verify that ffmpeg is installed")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main entrypoint for the CLI."""
    args = build_parser().parse_args(argv)
    setup_logging(
        log_level=args.log_level or settings.log_level,
        log_file=settings.log_file,
        serialize=settings.log_json,
    )
    logger = get_logger(__name__, command=args.command)

    services = get_services(settings, logger)
    try:
        result = asyncio.run(COMMANDS[args.command](services, args))
    except ReelsmithError as e:
        logger.error(f"{args.command} failed: {type(e).__name__}: {e}")
        return 1

    print(json.dumps(result, indent=2, ensure_ascii=False))
    degradations = get_degradation_counts()
    if degradations:
        logger.warning(f"Degraded stages this run: {degradations}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
