"""
Utility script to inspect collections and their documents without embeddings.

Usage:
    python -m scripts.inspect_collection
    python -m scripts.inspect_collection --collection <id> --limit 5 --offset 0
"""

from __future__ import annotations

import argparse
import json
from typing import List

from docstore.config import get_settings
from docstore.services import build_services

PROVENANCE_ORDER = ["source_url", "source_type", "chunk_index", "chunk_count", "position"]


def parse_args(argv: List[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect stored collections and documents.")
    parser.add_argument("--collection", "-c", default=None, help="Collection id; omit to list collections")
    parser.add_argument("--limit", type=int, default=5, help="Number of documents to show")
    parser.add_argument("--offset", type=int, default=0, help="Offset for pagination")
    return parser.parse_args(argv)


def main(argv: List[str] | None = None) -> None:
    args = parse_args(argv)
    services = build_services(get_settings())

    if args.collection is None:
        collections = services.registry.list()
        print(f"Collections: {len(collections)}")
        for collection in collections:
            total = services.vector_store.count(collection.id)
            print(
                f"  {collection.id}  {collection.name!r}  dim={collection.vector_dimension} "
                f"metric={collection.metric} documents={total}"
            )
        return

    collection = services.registry.get(args.collection)
    total = services.vector_store.count(collection.id)
    docs = services.documents.list_documents(collection.id, limit=args.limit, offset=args.offset)

    print(f"Total documents in collection {collection.name!r}: {total}")
    print(f"Showing {len(docs)} documents (offset={args.offset}, limit={args.limit})")
    for idx, doc in enumerate(docs, start=1):
        print(f"\n#{idx}: {doc.id}")
        # Provenance fields first, the rest as stored
        ordered_meta = {k: doc.metadata[k] for k in PROVENANCE_ORDER if k in doc.metadata} | {
            k: v for k, v in doc.metadata.items() if k not in PROVENANCE_ORDER
        }
        print("Metadata:", json.dumps(ordered_meta, ensure_ascii=False))
        snippet = doc.content[:400].replace("\n", " ")
        print("Text:", snippet + ("..." if len(doc.content) > 400 else ""))


if __name__ == "__main__":
    main()
