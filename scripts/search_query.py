"""
CLI to search a collection by text query.

Example:
    python -m scripts.search_query --collection <id> --query "How do I rotate keys?" --top-k 5
    python -m scripts.search_query -c <id> -q "pricing" --filter '{"source_type": "pdf"}'
"""

from __future__ import annotations

import argparse
import json
from typing import List

from docstore.config import get_settings
from docstore.services import build_services


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Search a collection by text query.")
    parser.add_argument("--collection", "-c", required=True, help="Collection id")
    parser.add_argument("--query", "-q", required=True, help="Query text")
    parser.add_argument("--top-k", type=int, default=None, help="How many results to return")
    parser.add_argument("--filter", default=None, help="JSON object of metadata equality conditions")
    parser.add_argument("--snippet", type=int, default=300, help="Snippet length")
    return parser.parse_args(argv)


def main(argv: List[str] | None = None) -> None:
    args = parse_args(argv)
    services = build_services(get_settings())

    where = json.loads(args.filter) if args.filter else None
    results = services.search.search(args.collection, args.query, top_k=args.top_k, filter=where)

    if not results:
        print("No results")
        return

    for idx, result in enumerate(results, start=1):
        doc = result.document
        snippet = doc.content[: args.snippet].replace("\n", " ")
        print(f"\n#{idx} score={result.score:.4f} id={doc.id}")
        print("metadata:", json.dumps(doc.metadata, ensure_ascii=False))
        print("text:", snippet + ("..." if len(doc.content) > args.snippet else ""))


if __name__ == "__main__":
    main()
