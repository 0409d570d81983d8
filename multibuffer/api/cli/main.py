"""Main entry point for multibuffer CLI."""

import argparse
import asyncio
import sys
from pathlib import Path
from typing import Any

from loguru import logger
from pydantic import ValidationError

from multibuffer.core.config import Config, LoggingConfig

from .parsers import create_main_parser, setup_subparsers


def setup_logging(verbose: bool = False, config: Any = None) -> None:
    """Configure loguru sinks.

    Args:
        verbose: Show DEBUG output on the console
        config: Config, LoggingConfig or None
    """
    logger.remove()

    logging_config = config if isinstance(config, LoggingConfig) else getattr(config, "logging", None)
    file_enabled = logging_config is not None and logging_config.is_enabled()

    if verbose:
        console_level = "DEBUG"
    elif file_enabled:
        console_level = "WARNING"
    elif logging_config is not None:
        console_level = logging_config.console_level
    else:
        console_level = "WARNING"

    logger.add(
        sys.stderr,
        level=console_level,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}",
    )

    if file_enabled:
        file_config = logging_config.file
        logger.add(
            file_config.path,
            level=file_config.level,
            rotation=file_config.rotation,
            retention=file_config.retention,
            format=file_config.format,
        )


async def async_main(args: argparse.Namespace, config: Config) -> None:
    """Dispatch to the selected command."""
    if args.command == "search":
        from .commands.search import search_command

        await search_command(args, config)
    elif args.command == "replace":
        from .commands.replace import replace_command

        await replace_command(args, config)
    elif args.command == "edit":
        from .commands.edit import edit_command

        await edit_command(args, config)
    else:
        logger.error(f"Unknown command: {args.command}")
        sys.exit(1)


def main(argv: list[str] | None = None) -> None:
    """Parse arguments, load configuration and run the command."""
    parser = create_main_parser()
    setup_subparsers(parser)
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    root = Path(args.path).resolve()
    try:
        config = Config.load(workspace_root=root, config_file=args.config, args=args)
    except (FileNotFoundError, ValueError, ValidationError) as e:
        setup_logging(verbose=args.verbose)
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    setup_logging(verbose=args.verbose, config=config)
    args.path = root

    try:
        asyncio.run(async_main(args, config))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        sys.exit(130)


if __name__ == "__main__":
    main()
