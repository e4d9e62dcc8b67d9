"""Command-line interface: catalog import, ad-hoc searches and index maintenance."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import List, Optional

__all__ = ["main", "parse_args"]

from product_finder.core.config import settings
from product_finder.core.database import engine
from product_finder.core.exceptions import ProductFinderError
from product_finder.core.logging import setup_logging
from product_finder.schemas.query import AudioQuery, ImageQuery, SearchQuery, TextQuery
from product_finder.services.catalog_parser import iter_catalog_file
from product_finder.services.embedding_gateway import EmbeddingGateway
from product_finder.services.ingestion_service import ProductIngestionService
from product_finder.services.normalizer import ModalityNormalizer
from product_finder.services.recommendation_service import (
    RecommendationOutcome,
    RecommendationService,
)
from product_finder.services.speech_service import SpeechToTextService
from product_finder.services.vector_index import VectorIndexClient

logger = logging.getLogger(__name__)


def print_outcome(outcome: RecommendationOutcome, simple: bool = False) -> int:
    body = outcome.body
    if not outcome.success:
        print(f"Error ({outcome.status_code}): {body.message}", file=sys.stderr)
        return 1

    if not simple:
        print(f"Query: {body.query}")
        print()
    print(body.response)

    if not simple and body.products:
        print()
        print("Matches:")
        for i, match in enumerate(body.products, start=1):
            print(f"  {i}. [{match.product_id}] {match.title} ({match.type}, distance {match.distance:.4f})")
    return 0


async def import_products(path: Path) -> int:
    gateway = await EmbeddingGateway.create()
    index = VectorIndexClient()
    if not await index.ensure_collection(gateway.dimension):
        print("Error: could not initialize the vector collection", file=sys.stderr)
        return 1

    service = ProductIngestionService(gateway, index)
    report = await service.ingest_many(iter_catalog_file(path))

    print(f"Imported: {report.imported}")
    print(f"Failed:   {report.failed}")
    print(f"Chunks:   {report.chunks}")
    return 0 if report.imported or not report.failed else 1


async def run_search(query: SearchQuery, simple: bool = False) -> int:
    gateway = await EmbeddingGateway.create()
    index = VectorIndexClient()
    normalizer = ModalityNormalizer(gateway, SpeechToTextService())
    service = RecommendationService(normalizer, index)

    outcome = await service.recommend(query)
    return print_outcome(outcome, simple=simple)


async def drop_collection() -> int:
    if not await VectorIndexClient().drop_collection():
        print("Error: could not drop the vector collection", file=sys.stderr)
        return 1
    print(f"Collection '{settings.VECTOR_COLLECTION}' dropped")
    return 0


def _read_file(path: Path) -> Optional[bytes]:
    if not path.is_file():
        print(f"Error: file not found: {path}", file=sys.stderr)
        return None
    return path.read_bytes()


async def dispatch(args: argparse.Namespace) -> int:
    try:
        if args.command == "import-products":
            return await import_products(Path(args.file))

        if args.command == "search":
            return await run_search(TextQuery(text=args.query), simple=args.simple)

        if args.command == "process-image":
            path = Path(args.path)
            data = _read_file(path)
            if data is None:
                return 1
            return await run_search(ImageQuery(content=data, filename=path.name), simple=args.simple)

        if args.command == "process-audio":
            path = Path(args.path)
            data = _read_file(path)
            if data is None:
                return 1
            return await run_search(AudioQuery(content=data, filename=path.name), simple=args.simple)

        if args.command == "drop-collection":
            return await drop_collection()

        raise ValueError(f"Unknown command: {args.command}")
    except ProductFinderError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1
    finally:
        await engine.dispose()


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="product-finder",
        description="Multi-modal product search and catalog indexing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Index a catalog (XML or JSON)
  product-finder import-products data/products.xml

  # Ask for a recommendation
  product-finder search "waterproof hiking boots under 100"

  # Search by photo or voice note
  product-finder process-image photo.jpg
  product-finder process-audio question.m4a --simple
        """,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    import_parser = subparsers.add_parser("import-products", help="Parse and index a product catalog")
    import_parser.add_argument("file", help="Path to an XML or JSON catalog file")

    search_parser = subparsers.add_parser("search", help="Run a text search")
    search_parser.add_argument("query", help="Free-text query")

    image_parser = subparsers.add_parser("process-image", help="Search with an image file")
    image_parser.add_argument("path", help="Path to a JPEG, PNG, GIF or WEBP image")

    audio_parser = subparsers.add_parser("process-audio", help="Search with a spoken query")
    audio_parser.add_argument("path", help="Path to an audio file")

    for sub in (search_parser, image_parser, audio_parser):
        sub.add_argument(
            "--simple",
            action="store_true",
            help="Print only the recommendation text",
        )

    subparsers.add_parser("drop-collection", help="Drop the vector collection")

    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(settings.LOG_LEVEL)
    return asyncio.run(dispatch(args))


if __name__ == "__main__":
    sys.exit(main())
