"""CLI entry point for the wrapproxy server."""

import argparse
import logging
from pathlib import Path
from typing import Optional, Sequence

import uvicorn
from dotenv import load_dotenv

from .config import load_settings
from .core.exceptions import ConfigurationError
from .core.variants import VARIANTS
from .logging import setup_logging
from .main import create_app

logger = logging.getLogger("wrapproxy")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="wrapproxy",
        description="Chat-completion translation proxy (OpenAI -> DeepSeek, Claude -> POE)",
    )
    parser.add_argument(
        "--variant",
        choices=sorted(VARIANTS),
        default=None,
        help="Schema pair to bridge (default: deepseek, or WRAPPROXY_VARIANT)",
    )
    parser.add_argument(
        "-model",
        "--model",
        dest="model_profile",
        default=None,
        help="Model profile: chat or coder for the deepseek variant (default: chat)",
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to a YAML configuration file",
    )
    parser.add_argument(
        "--env-file",
        type=str,
        default=".env",
        help="Path to environment file (default: .env)",
    )
    parser.add_argument(
        "--host",
        type=str,
        default=None,
        help="Host to bind to (overrides config)",
    )
    parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port to bind to (overrides PORT and config)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=None,
        help="Enable debug logging, including truncated request bodies",
    )
    return parser


def load_env_file(env_file: str) -> bool:
    """Load ``env_file`` into the process environment if it exists."""
    env_path = Path(env_file)
    if not env_path.exists():
        logger.warning(f"Env file {env_path} not found; using the process environment only")
        return False
    load_dotenv(env_path)
    logger.info(f"Loaded environment variables from {env_path}")
    return True


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Main entry point for the wrapproxy CLI."""
    args = build_parser().parse_args(argv)

    setup_logging(debug=bool(args.debug))
    load_env_file(args.env_file)

    try:
        settings = load_settings(
            config_path=args.config,
            env_path=args.env_file,
            variant=args.variant,
            model_profile=args.model_profile,
            host=args.host,
            port=args.port,
            debug=args.debug,
        )
    except ConfigurationError as exc:
        logger.error(f"Invalid configuration: {exc.message}")
        return 2

    if settings.debug and not args.debug:
        setup_logging(debug=True)

    logger.info(
        "Starting %s proxy on %s:%s -> %s",
        settings.variant.name,
        settings.host,
        settings.port,
        settings.endpoint,
    )
    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level="debug" if settings.debug else "info",
    )
    return 0
