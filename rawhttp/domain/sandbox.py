"""Filesystem sandbox utilities for safe path resolution."""

from pathlib import Path

from rawhttp.domain.errors import PathTraversalRejected


def resolve_sandbox_path(directory: str, user_path: str) -> Path:
    """Resolve a user-supplied path inside the configured root.

    Raises ``PathTraversalRejected`` when the canonical path escapes the
    root, including through symlinks.
    """
    if "\x00" in user_path:
        raise PathTraversalRejected(f"NUL byte in path {user_path!r}")

    directory_root = Path(directory).resolve()
    relative_part = user_path.lstrip("/")
    if not relative_part:
        raise PathTraversalRejected("empty path")

    if ".." in Path(relative_part).parts:
        raise PathTraversalRejected(f"parent segment in path {user_path!r}")

    target = (directory_root / relative_part).resolve()
    if directory_root not in target.parents:
        raise PathTraversalRejected(f"{target} escapes {directory_root}")

    return target
