"""Path utility functions for multibuffer."""

from pathlib import Path


def display_path(input_path: str | Path, base_dir: Path | None = None) -> str:
    """Return the path shown in aggregate file headers.

    Paths under base_dir are shown relative to it with forward slashes;
    anything else (or any path when base_dir is None) is shown as given.

    Resolves regular files to handle platform quirks (/var -> /private/var on
    macOS), but keeps symlink logical paths so links pointing outside the
    workspace still display under it.
    """
    path_obj = Path(input_path)

    if not path_obj.is_absolute() or base_dir is None:
        return path_obj.as_posix()

    resolved_base_dir = base_dir.resolve()
    path_to_use = path_obj if path_obj.is_symlink() else path_obj.resolve()

    for candidate, base in ((path_to_use, resolved_base_dir), (path_obj, base_dir)):
        try:
            return candidate.relative_to(base).as_posix()
        except ValueError:
            continue
    return path_obj.as_posix()
