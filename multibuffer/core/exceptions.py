"""Exception classes for multibuffer.

Errors local to one file (unreadable file, excerpt construction failure,
commit failure) are caught per file by the services and reported; input
errors abort the whole operation before any scanning starts.
"""

from pathlib import Path


class MultiBufferError(Exception):
    """Base exception for multibuffer operations."""

    pass


class InputError(MultiBufferError):
    """Raised when search input is rejected before scanning."""

    pass


class EmptyQueryError(InputError):
    """Raised when the search query is empty."""

    def __init__(self) -> None:
        super().__init__("Search query cannot be empty")


class InvalidPatternError(InputError):
    """Raised when a regular expression query does not compile."""

    def __init__(self, pattern: str, reason: str, position: int | None = None):
        self.pattern = pattern
        self.reason = reason
        self.position = position
        where = f" at position {position}" if position is not None else ""
        super().__init__(f"Invalid regular expression {pattern!r}{where}: {reason}")


class ExcerptConstructionError(MultiBufferError):
    """Raised when an excerpt would violate its construction invariants."""

    pass


class WorkspaceReadError(MultiBufferError):
    """Raised when a workspace file cannot be read as text."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Cannot read {path}: {reason}")


class ApplyError(MultiBufferError):
    """Raised when edits cannot be committed to a single file."""

    def __init__(self, path: Path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Failed to apply changes to {path}: {reason}")


class PartialApplyError(MultiBufferError):
    """Raised when some files were committed and others were not."""

    def __init__(self, succeeded: list[Path], failed: dict[Path, str]):
        self.succeeded = succeeded
        self.failed = failed
        failed_list = ", ".join(str(p) for p in failed)
        super().__init__(
            f"Applied changes to {len(succeeded)} file(s); "
            f"{len(failed)} file(s) failed: {failed_list}"
        )


class MappingConsistencyError(MultiBufferError):
    """Raised when an aggregate mapping fails validation (formatter bug)."""

    def __init__(self, errors: list[str]):
        self.errors = errors
        detail = "; ".join(errors[:5])
        more = f" (+{len(errors) - 5} more)" if len(errors) > 5 else ""
        super().__init__(f"Aggregate mapping is inconsistent: {detail}{more}")


class ChangeTrackerStateError(MultiBufferError):
    """Raised when a change tracker operation is called in the wrong state."""

    pass


class StructuralEditError(MultiBufferError):
    """Raised when lines were added to or removed from an aggregate document."""

    pass


class FormatVersionError(MultiBufferError):
    """Raised when a document was rendered with a different layout version."""

    pass


class OperationCancelledError(MultiBufferError):
    """Raised when a search or replace is cancelled before publishing."""

    pass


class DocumentNotFoundError(MultiBufferError):
    """Raised when an aggregate document is not in the registry."""

    pass
