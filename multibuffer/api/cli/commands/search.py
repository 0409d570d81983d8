"""Search command module - prints the aggregate document for a query."""

import argparse
import sys

from loguru import logger

from multibuffer.core.cancellation import CancellationToken
from multibuffer.core.config import Config
from multibuffer.core.exceptions import InputError, OperationCancelledError

from ..utils.rich_output import RichOutputFormatter
from ..utils.services import create_service, install_cancel_handler, search_options_from_args


async def search_command(args: argparse.Namespace, config: Config) -> None:
    """Execute the search command.

    Args:
        args: Parsed command-line arguments
        config: Pre-validated configuration instance
    """
    formatter = RichOutputFormatter(verbose=args.verbose)

    try:
        service = create_service(config, args.path)
    except ValueError as e:
        formatter.error(str(e))
        sys.exit(1)

    options = search_options_from_args(args, config)
    token = CancellationToken()
    restore = install_cancel_handler(token)
    try:
        opened = await service.open_search(options, token)
    except InputError as e:
        formatter.error(str(e))
        sys.exit(1)
    except OperationCancelledError:
        formatter.warning("Search cancelled")
        sys.exit(130)
    finally:
        restore()

    try:
        result = opened.result
        if result.is_empty:
            formatter.info(f"No matches for {options.query!r}")
        else:
            formatter.aggregate(opened.document.content, opened.document.mapping)

        for issue in result.issues:
            formatter.warning(
                f"Skipped {service.search_service.workspace.display_path(issue.path)}: "
                f"{issue.message}"
            )
        formatter.search_summary(
            {
                "matches": result.match_count,
                "excerpts": result.excerpt_count,
                "files": result.file_count,
                "skipped": len(result.issues),
                "truncated": result.truncated,
            }
        )
        logger.debug(f"Search document {opened.uri} closed")
    finally:
        await service.close_all()
