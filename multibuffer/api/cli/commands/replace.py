"""Replace command module - preview a replacement and write it back."""

import argparse
import sys

from multibuffer.core.cancellation import CancellationToken
from multibuffer.core.config import Config
from multibuffer.core.exceptions import InputError, OperationCancelledError

from ..utils.rich_output import RichOutputFormatter
from ..utils.services import (
    change_rows,
    create_service,
    install_cancel_handler,
    replace_options_from_args,
)
from .apply import confirm_and_apply


async def replace_command(args: argparse.Namespace, config: Config) -> None:
    """Execute the replace command.

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

    options = replace_options_from_args(args, config)
    token = CancellationToken()
    restore = install_cancel_handler(token)
    try:
        opened = await service.open_replace(options, token)
    except InputError as e:
        formatter.error(str(e))
        sys.exit(1)
    except OperationCancelledError:
        formatter.warning("Replace cancelled")
        sys.exit(130)
    finally:
        restore()

    try:
        if opened.result.is_empty:
            formatter.info(f"No matches for {options.query!r}")
            return

        formatter.aggregate(opened.document.content, opened.document.mapping)
        change_set = service.compute_changes(opened.uri)

        if args.dry_run:
            formatter.change_table(
                change_rows(change_set, service.search_service.workspace.display_path)
            )
            formatter.info(
                f"Dry run: {change_set.change_count} change(s) in "
                f"{change_set.file_count} file(s) not applied"
            )
            return

        await confirm_and_apply(args, service, opened.uri, change_set, formatter)
    finally:
        await service.close_all()
