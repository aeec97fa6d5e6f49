"""
Process a local video from the command line.

    python process.py talk.mp4 --clips 3 --prompt "focus on the funny parts"
    python process.py talk.mp4 --handoff   # send to PROCESSING_BACKEND_URL instead
"""

import argparse
import asyncio
import json
import logging
import mimetypes
import os
import sys
from dataclasses import asdict

import httpx
from dotenv import load_dotenv

from models.job import ProjectMetadata
from services.backend_handoff import hand_off
from services.context import build_context
from services.errors import ClipcasterError
from services.media_probe import probe
from services.pipeline import ClipPipeline
from services.settings import Settings

load_dotenv(os.path.join(os.path.dirname(__file__), ".env"))
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Find short-form clips in a long video.")
    parser.add_argument("path", help="Video or audio file to process")
    parser.add_argument("--name", default="", help="Project name")
    parser.add_argument("--description", default="")
    parser.add_argument("--prompt", default="", help="Free-text directives for clip selection")
    parser.add_argument("--clips", type=int, default=3, help="Number of clips to return")
    parser.add_argument("--platform", action="append", default=[], dest="platforms")
    parser.add_argument("--no-upload", action="store_true", help="Skip the source upload")
    parser.add_argument("--handoff", action="store_true", help="Send the file to the processing backend")
    return parser.parse_args(argv)


def _progress(confirmed: int, total: int) -> None:
    logger.info("[upload] %d/%d bytes (%.0f%%)", confirmed, total, 100 * confirmed / total if total else 100)


async def _run(args: argparse.Namespace) -> dict:
    with open(args.path, "rb") as fh:
        data = fh.read()
    mime_type = mimetypes.guess_type(args.path)[0] or "video/mp4"
    media = probe(data, mime_type, filename=os.path.basename(args.path))
    project = ProjectMetadata(
        project_name=args.name or os.path.splitext(media.filename)[0],
        description=args.description,
        ai_prompt=args.prompt,
        target_platforms=args.platforms,
        num_clips=args.clips,
    )
    settings = Settings.from_env()

    async with httpx.AsyncClient() as http:
        if args.handoff:
            if not settings.processing_backend_url:
                raise SystemExit("PROCESSING_BACKEND_URL is not set")
            receipt = await hand_off(http, settings.processing_backend_url, media, project)
            return asdict(receipt)

        pipeline = ClipPipeline(build_context(settings, http))
        result = await pipeline.run(media, project, upload=not args.no_upload, on_progress=_progress)
    return {
        "status": result.status.value,
        "caveats": result.caveats,
        "remote_id": result.remote_id,
        "remote_url": result.remote_url,
        "clips": [asdict(clip) for clip in result.clips],
    }


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        output = asyncio.run(_run(args))
    except ClipcasterError as exc:
        logger.error("Processing failed: %s", exc.message)
        return 1
    print(json.dumps(output, indent=2))
    return 0


if __name__ == "__main__":
    sys.exit(main())
