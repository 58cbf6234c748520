"""Build or refresh the vector cache for a price list."""
import sys
import argparse
from pathlib import Path
from loguru import logger

# Add parent directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from repair_pricing.catalog import loader
from repair_pricing.config import config
from repair_pricing.errors import CatalogParseError
from repair_pricing.llm.embeddings import build_provider
from repair_pricing.rag.index import EmbeddingIndex
from repair_pricing.rag.vector_cache import VectorCache

logger.remove()
logger.add(sys.stderr, level=config.log_level)


def build_index(catalog_path: Path, cache_path: Path, clear_existing: bool = False) -> int:
    """
    Embed every catalog item that lacks a current cached vector.

    Args:
        catalog_path: Delimited price list
        cache_path: Vector cache file to read and rewrite
        clear_existing: Whether to delete the cache before building

    Returns:
        Number of vectors generated
    """
    logger.info(f"Building vector index for: {catalog_path}")
    items = loader.load_file(catalog_path)

    cache = VectorCache(cache_path)
    if clear_existing:
        logger.warning("Clearing existing vector cache...")
        cache.clear()

    index = EmbeddingIndex(build_provider(config.embedding), cache, config.embedding)
    reused = index.load()
    generated = index.ensure_index(items)

    missing = sum(1 for item in items if item.id not in index)
    if missing:
        logger.warning(f"{missing} items have no vector and are reachable by keyword search only")
    logger.success(f"✓ Index ready: {len(index)} vectors ({reused} read from cache, {generated} generated)")
    return generated


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Build the vector cache for a repair price list"
    )
    parser.add_argument(
        "--catalog",
        type=Path,
        default=config.catalog.csv_path,
        help="Price list CSV file"
    )
    parser.add_argument(
        "--cache",
        type=Path,
        default=config.catalog.cache_path,
        help="Vector cache file"
    )
    parser.add_argument(
        "--clear",
        action="store_true",
        help="Delete the existing cache before building"
    )

    args = parser.parse_args()

    if not args.catalog.exists():
        logger.error(f"Price list not found: {args.catalog}")
        sys.exit(1)

    try:
        build_index(args.catalog, args.cache, args.clear)
    except CatalogParseError as e:
        logger.error(f"Invalid price list: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
