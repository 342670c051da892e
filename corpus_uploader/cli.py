#!/usr/bin/env python3
"""
Corpus uploader command line.
Uploads a video to the corpus in chunks and prints the created record.
"""

import argparse
import asyncio
import json
import logging
import signal
import sys
from typing import List, Optional

from .auth import AuthClient
from .config import settings
from .coordinator import CancellationToken, upload_file_in_chunks
from .errors import AuthError, UploadCancelledError, UploadError
from .models import RecordMetadata

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Contribute videos to the community corpus.")
    parser.add_argument("--api-url", default=settings.api_url, help="API base URL including version prefix")
    subparsers = parser.add_subparsers(dest="command", required=True)

    upload = subparsers.add_parser("upload", help="Upload a video file in chunks")
    upload.add_argument("file", help="Path to the video file")
    upload.add_argument("--title", required=True)
    upload.add_argument("--description")
    upload.add_argument("--category-id", required=True)
    upload.add_argument("--user-id", required=True)
    upload.add_argument("--media-type", default="video")
    upload.add_argument("--latitude", type=float)
    upload.add_argument("--longitude", type=float)
    upload.add_argument("--release-rights", required=True)
    upload.add_argument("--language", required=True)
    upload.add_argument("--use-uid-filename", action="store_true", default=None)
    upload.add_argument("--chunk-size", type=int, default=settings.chunk_size, help="Chunk size in bytes")
    upload.add_argument("--token", default=settings.access_token, help="Bearer token (default: $CORPUS_ACCESS_TOKEN)")

    login = subparsers.add_parser("login", help="Log in and print an access token")
    login.add_argument("--phone", required=True)
    login.add_argument("--password", required=True)

    return parser


def _print_progress(progress: float):
    print(f"\rUploading... {progress:5.1f}%", end="", file=sys.stderr, flush=True)
    if progress >= 100:
        print(file=sys.stderr)


async def _run_upload(args) -> int:
    if args.chunk_size <= 0:
        print("Error: --chunk-size must be > 0", file=sys.stderr)
        return 2

    metadata = RecordMetadata(
        title=args.title,
        description=args.description,
        category_id=args.category_id,
        user_id=args.user_id,
        media_type=args.media_type,
        latitude=args.latitude,
        longitude=args.longitude,
        release_rights=args.release_rights,
        language=args.language,
        use_uid_filename=args.use_uid_filename,
    )
    token = CancellationToken()
    loop = asyncio.get_running_loop()
    try:
        loop.add_signal_handler(signal.SIGTERM, token.cancel, "terminated")
    except (NotImplementedError, RuntimeError):
        # Signal handlers are unavailable on some platforms/loops
        pass

    try:
        record = await upload_file_in_chunks(
            args.file,
            metadata,
            chunk_size=args.chunk_size,
            on_progress=_print_progress,
            access_token=args.token,
            base_url=args.api_url,
            cancel_token=token,
        )
    except UploadCancelledError as e:
        print(f"\nUpload cancelled: {e}", file=sys.stderr)
        return 130
    except (UploadError, OSError) as e:
        print(f"\nUpload failed: {e}", file=sys.stderr)
        return 1

    print(json.dumps(record.model_dump(mode="json"), indent=2))
    return 0


def _run_login(args) -> int:
    try:
        data = AuthClient(args.api_url).login(args.phone, args.password)
    except AuthError as e:
        print(f"Login failed: {e}", file=sys.stderr)
        return 1
    print(data["access_token"])
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the corpus uploader."""
    logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
    args = build_parser().parse_args(argv)

    if args.command == "login":
        return _run_login(args)
    try:
        return asyncio.run(_run_upload(args))
    except KeyboardInterrupt:
        print("\nUpload interrupted", file=sys.stderr)
        return 130


if __name__ == "__main__":
    sys.exit(main())
