"""
CLI to fetch a file, chunk it and ingest the chunks into a collection.

Example:
    python -m scripts.chunk_file --collection <id> --type pdf --url https://example.com/manual.pdf
    python -m scripts.chunk_file --collection <id> --type markdown --url file:///tmp/notes.md --chunk-size 800
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List

from docstore.config import get_settings, setup_logging
from docstore.errors import DocStoreError
from docstore.indexing.fetcher import SourceFetcher
from docstore.indexing.parser import SUPPORTED_TYPES
from docstore.models.schemas import ChunkFileRequest, ChunkOptions
from docstore.services import build_services


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Chunk a file into a collection.")
    parser.add_argument("--collection", "-c", required=True, help="Collection id")
    parser.add_argument("--type", "-t", required=True, choices=SUPPORTED_TYPES, help="Source type")
    parser.add_argument("--url", "-u", required=True, help="http(s):// or file:// URL of the source")
    parser.add_argument("--chunk-size", type=int, default=None, help="Characters per chunk")
    parser.add_argument("--chunk-overlap", type=int, default=None, help="Characters shared by neighbouring chunks")
    parser.add_argument("--metadata", default="{}", help="JSON object attached to every chunk")
    parser.add_argument("--timeout", type=float, default=None, help="Stop ingesting after this many seconds")
    return parser.parse_args(argv)


def main(argv: List[str] | None = None) -> None:
    settings = get_settings()
    setup_logging(settings.log_level)
    logger = logging.getLogger(__name__)
    args = parse_args(argv)

    try:
        metadata = json.loads(args.metadata)
    except json.JSONDecodeError as exc:
        print(f"--metadata is not valid JSON: {exc}", file=sys.stderr)
        sys.exit(2)

    request = ChunkFileRequest(
        type=args.type,
        url=args.url,
        options=ChunkOptions(chunk_size=args.chunk_size, chunk_overlap=args.chunk_overlap, metadata=metadata),
        timeout_sec=args.timeout,
    )
    # Local files are readable from the command line only
    fetcher = SourceFetcher(
        timeout=settings.fetch_timeout_sec, max_bytes=settings.max_source_bytes, allow_file_urls=True
    )
    services = build_services(settings, fetcher=fetcher)

    try:
        result = services.chunking.chunk_file_to_collection(args.collection, request)
    except DocStoreError as exc:
        logger.error("Chunking failed: %s", exc.message)
        sys.exit(1)

    print(result.message)
    for failure in result.failed:
        print(f"  failed chunk #{failure.index} ({failure.code}): {failure.message}")


if __name__ == "__main__":
    main()
