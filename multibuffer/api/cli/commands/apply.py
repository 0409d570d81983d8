"""Shared confirm-and-apply step for the replace and edit commands."""

import argparse
import sys

from loguru import logger

from multibuffer.core.cancellation import CancellationToken
from multibuffer.services.change_tracker import ChangeSet
from multibuffer.services.multibuffer_service import MultiBufferService

from ..utils.rich_output import RichOutputFormatter
from ..utils.services import change_rows, install_cancel_handler


async def confirm_and_apply(
    args: argparse.Namespace,
    service: MultiBufferService,
    uri: str,
    change_set: ChangeSet,
    formatter: RichOutputFormatter,
) -> None:
    """Show pending edits, ask for confirmation and commit them.

    Exits with status 1 when any file failed or the commit was cancelled.
    """
    if change_set.is_empty:
        formatter.info("No changes to apply")
        return

    display_path = service.search_service.workspace.display_path
    formatter.change_table(change_rows(change_set, display_path))

    question = (
        f"Apply {change_set.change_count} change(s) to {change_set.file_count} file(s)?"
    )
    if not getattr(args, "yes", False) and not formatter.confirm(question):
        formatter.info("No files were changed")
        return

    token = CancellationToken()
    restore = install_cancel_handler(token)
    try:
        report = await service.apply_changes(uri, change_set, token)
    finally:
        restore()

    for path, reason in report.failed.items():
        formatter.error(f"{display_path(path)}: {reason}")
    if report.cancelled:
        formatter.warning(
            f"Apply cancelled: {len(report.succeeded)} file(s) already saved, "
            f"{len(report.skipped)} file(s) not changed"
        )
    if report.is_success:
        formatter.success(
            f"Applied {report.change_count} change(s) to {len(report.succeeded)} file(s)"
        )
        return

    logger.debug(
        f"Partial apply: succeeded={report.succeeded}, failed={list(report.failed)}, "
        f"skipped={report.skipped}"
    )
    formatter.warning(
        f"Partially applied: {len(report.succeeded)} file(s) saved, "
        f"{len(report.failed)} failed, {len(report.skipped)} skipped"
    )
    sys.exit(1)
