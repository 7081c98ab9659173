"""Main entry point for the merge gate service."""

import argparse
import asyncio
import logging
import sys

from .api import build_services, create_app
from .config import Config, load_config
from .llm import create_chat_model
from .services import ReviewAnalysisService, get_db_service, init_db_service


def setup_logging(verbose: bool = False) -> None:
    """Configure logging for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[
            logging.StreamHandler(sys.stdout),
        ],
    )

    # Reduce noise from libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy").setLevel(logging.WARNING)


async def run_server(args, logger, config: Config) -> None:
    """Run the HTTP API with uvicorn."""
    import uvicorn

    analysis_service = None
    if config.llm:
        analysis_service = ReviewAnalysisService(create_chat_model(config.llm))
    else:
        logger.warning("No llm section configured; review generation is disabled")

    app = create_app(build_services(config, get_db_service(), analysis_service))

    host = args.host or config.server.host
    port = args.port or config.server.port
    logger.info("Starting API server on %s:%d...", host, port)

    uvicorn_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_level="info" if args.verbose else "warning",
    )
    server = uvicorn.Server(uvicorn_config)
    await server.serve()


async def async_main(args, logger) -> int:
    """Async main function."""
    try:
        logger.info("Loading configuration from %s", args.config)
        config = load_config(args.config)

        logger.info("Initializing database")
        await init_db_service(config.database.path, url=config.database.url)
        logger.info("Database initialized successfully")

        if args.init_db:
            return 0

        await run_server(args, logger, config)
        return 0

    except FileNotFoundError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 0
    except Exception as e:
        logger.exception("Fatal error: %s", e)
        return 1
    finally:
        # Clean up database connection
        try:
            db = get_db_service()
            await db.close()
            logger.info("Database connection closed")
        except RuntimeError:
            # Database wasn't initialized (error during startup)
            pass


def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="AI pull request review ingestion and merge gating service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              # Serve with default config.yaml
  %(prog)s -c myconfig.yaml             # Serve with custom config
  %(prog)s -v                           # Serve with verbose logging
  %(prog)s --init-db                    # Create tables and exit
  %(prog)s --host 0.0.0.0 --port 9000   # Override the configured bind address
        """,
    )

    parser.add_argument(
        "-c",
        "--config",
        default="config.yaml",
        help="Path to configuration file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose/debug logging",
    )
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create database tables and exit",
    )
    parser.add_argument("--host", default=None, help="Bind address (default: from config)")
    parser.add_argument("--port", type=int, default=None, help="Bind port (default: from config)")

    args = parser.parse_args()

    setup_logging(args.verbose)
    logger = logging.getLogger(__name__)

    return asyncio.run(async_main(args, logger))


if __name__ == "__main__":
    sys.exit(main())
