"""Main entry point for the directory service."""
import argparse
import json
import sys
from loguru import logger
from database import engine, Base
from config import settings

# Configure logger
logger.remove()
logger.add(
    sys.stdout,
    format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    level=settings.log_level,
)


def init_database():
    """Initialize database tables."""
    logger.info("Initializing database...")
    import models  # noqa: F401  registers the tables on Base
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized successfully")


def serve(host: str, port: int):
    import uvicorn
    from api.app_factory import create_app

    init_database()
    uvicorn.run(create_app(), host=host, port=port)


def ingest(kind: str, batch: int, concurrency: int, strategy: str) -> int:
    from jobs import runner

    init_database()
    runner.recover()
    job = runner.submit(kind, strategy, batch, concurrency)
    results = job.get("results") or {}
    logger.info(
        f"Job {job['id']} {job['state']}: {results.get('successful', 0)}/{results.get('processed', 0)} successful, "
        f"{results.get('totalLogos', 0)} logos, {results.get('totalPhotos', 0)} photos"
    )
    for error in results.get("errors", []):
        logger.warning(error)
    return 0 if job["state"] == "completed" else 1


def sync_businesses(queries, import_path=None) -> int:
    from api.businesses import default_places_client
    from database import SessionLocal
    from repository import BusinessRepository
    from sync import BusinessSync

    init_database()
    db = SessionLocal()
    try:
        repository = BusinessRepository(db)
        if import_path:
            summary = BusinessSync(repository).import_file(import_path)
            logger.info(f"Import summary: {summary}")
            return 0
        summary = BusinessSync(repository, default_places_client()).sync_from_places(queries)
        for error in summary["errors"]:
            logger.warning(error)
        return 0 if not summary["errors"] else 1
    finally:
        db.close()


def show_directory(search: str, sort: str, limit: int) -> int:
    from client.directory import DirectoryClient

    resolution = DirectoryClient().list_businesses(search=search, sort=sort)
    if resolution.message:
        logger.warning(resolution.message)
    for business in resolution.data[:limit]:
        print(json.dumps({
            "id": business.id,
            "name": business.name,
            "category": business.category,
            "rating": business.rating,
            "reviewCount": business.review_count,
        }))
    logger.info(f"{len(resolution.data)} businesses from {resolution.source_used or 'no source'}")
    return 0 if resolution.ok else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Dubai visa services directory")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("init-db", help="Create database tables")

    serve_cmd = commands.add_parser("serve", help="Run the HTTP API")
    serve_cmd.add_argument("--host", default="0.0.0.0")
    serve_cmd.add_argument("--port", type=int, default=8000)

    ingest_cmd = commands.add_parser("ingest", help="Ingest images for one batch")
    ingest_cmd.add_argument("--batch", type=int, default=1)
    ingest_cmd.add_argument("--concurrency", type=int, default=settings.default_concurrency)
    ingest_cmd.add_argument("--strategy", default="google")

    all_cmd = commands.add_parser("ingest-all", help="Ingest images for every batch")
    all_cmd.add_argument("--concurrency", type=int, default=settings.default_concurrency)
    all_cmd.add_argument("--strategy", default="google")

    sync_cmd = commands.add_parser("sync", help="Load businesses from Google Places searches")
    sync_cmd.add_argument("--query", action="append", dest="queries", help="Search query (repeatable)")

    import_cmd = commands.add_parser("import", help="Load businesses from a JSON export")
    import_cmd.add_argument("path")

    directory_cmd = commands.add_parser("directory", help="List directory businesses")
    directory_cmd.add_argument("--search", default=None)
    directory_cmd.add_argument("--sort", default="relevance", choices=["relevance", "rating", "reviews", "name"])
    directory_cmd.add_argument("--limit", type=int, default=20)

    return parser


def main(argv=None) -> int:
    """Main function to run the selected command."""
    args = build_parser().parse_args(argv)

    try:
        if args.command == "init-db":
            init_database()
            return 0
        if args.command == "serve":
            serve(args.host, args.port)
            return 0
        if args.command == "ingest":
            return ingest("batch", args.batch, args.concurrency, args.strategy)
        if args.command == "ingest-all":
            return ingest("all", 1, args.concurrency, args.strategy)
        if args.command == "sync":
            return sync_businesses(args.queries)
        if args.command == "import":
            return sync_businesses(None, import_path=args.path)
        return show_directory(args.search, args.sort, args.limit)
    except Exception as e:
        logger.error(f"Error in main execution: {e}")
        raise


if __name__ == "__main__":
    sys.exit(main())
