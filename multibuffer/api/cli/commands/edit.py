"""Edit command module - edit every match in an external editor."""

import argparse
import asyncio
import os
import shlex
import subprocess
import sys
import tempfile
from pathlib import Path

from loguru import logger

from multibuffer.core.cancellation import CancellationToken
from multibuffer.core.config import Config
from multibuffer.core.exceptions import InputError, OperationCancelledError, StructuralEditError

from ..utils.rich_output import RichOutputFormatter
from ..utils.services import create_service, install_cancel_handler, search_options_from_args
from .apply import confirm_and_apply


def resolve_editor(args: argparse.Namespace) -> list[str]:
    """Editor command from --editor, $VISUAL, $EDITOR, falling back to vi."""
    editor = getattr(args, "editor", None) or os.environ.get("VISUAL") or os.environ.get("EDITOR")
    return shlex.split(editor) if editor else ["vi"]


def run_editor(command: list[str], content: str) -> str:
    """Write content to a temp file, open it in the editor and return the result.

    Raises:
        subprocess.CalledProcessError: If the editor exits with non-zero status
    """
    fd, temp_name = tempfile.mkstemp(prefix="multibuffer-", suffix=".txt")
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(content)
        subprocess.run([*command, str(temp_path)], check=True)
        return temp_path.read_text(encoding="utf-8")
    finally:
        temp_path.unlink(missing_ok=True)


async def edit_command(args: argparse.Namespace, config: Config) -> None:
    """Execute the edit command.

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
        if opened.result.is_empty:
            formatter.info(f"No matches for {options.query!r}")
            return

        editor = resolve_editor(args)
        logger.debug(f"Opening {opened.uri} with {editor}")
        try:
            edited = await asyncio.to_thread(run_editor, editor, opened.document.content)
        except (OSError, subprocess.CalledProcessError) as e:
            formatter.error(f"Editor failed: {e}")
            sys.exit(1)

        # Editors commonly append a final newline
        if edited.endswith("\n") and not opened.document.content.endswith("\n"):
            edited = edited[:-1]

        try:
            change_set = service.compute_changes(opened.uri, edited)
        except StructuralEditError as e:
            formatter.error(f"{e}. No files were changed.")
            sys.exit(1)

        await confirm_and_apply(args, service, opened.uri, change_set, formatter)
    finally:
        await service.close_all()
