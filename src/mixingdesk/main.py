"""
Mixing Desk Agent Service - Main Entry Point.

Loads configuration, configures logging, and serves the FastAPI app with
uvicorn until interrupted.

Architecture:
    - config.py: Configuration management
    - conversation/: Prompt augmentation, agentic loop, tools, providers
    - storage/: Content store collaborators
    - server.py: HTTP endpoints
    - main.py: Orchestration and entry point
"""

import argparse
import asyncio
import logging

import uvicorn

from mixingdesk.config import Settings, get_settings
from mixingdesk.server import create_app

logger = logging.getLogger(__name__)


def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


async def main(settings: Settings) -> None:
    """Serve the agent API until uvicorn receives a shutdown signal.

    Args:
        settings: Loaded configuration (after CLI overrides).
    """
    problems = settings.configuration_errors()
    if problems:
        # Requests will fail with a configuration error until this is fixed.
        logger.warning("Starting with incomplete configuration: %s", "; ".join(problems))

    app = create_app(settings)
    config = uvicorn.Config(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
    server = uvicorn.Server(config)
    logger.info(
        "Starting Mixing Desk agent API on %s:%d (provider=%s)",
        settings.host,
        settings.port,
        settings.llm_provider,
    )
    await server.serve()
    logger.info("Server shutdown complete")


def cli_main() -> None:
    """Entry point for the mixingdesk-server console script."""
    settings = get_settings()

    parser = argparse.ArgumentParser(description="Mixing Desk agent API server")
    parser.add_argument(
        "--host",
        default=settings.host,
        help=f"Bind address (default: {settings.host})",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=settings.port,
        help=f"Port (default: {settings.port})",
    )
    parser.add_argument(
        "--provider",
        choices=["anthropic", "openai"],
        default=settings.llm_provider,
        help=f"LLM provider (default: {settings.llm_provider})",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable DEBUG logging (per-call latency, tool dispatch)",
    )
    args = parser.parse_args()

    settings.host = args.host
    settings.port = args.port
    settings.llm_provider = args.provider
    if args.debug:
        settings.log_level = "DEBUG"

    configure_logging(settings.log_level)
    asyncio.run(main(settings))


if __name__ == "__main__":
    cli_main()
