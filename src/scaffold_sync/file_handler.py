"""File handler module: path containment, encoding-aware reads, atomic writes.

Provides the file I/O helpers shared by the deployer, the manifest and the
backup manager.  Reads decode with charset-normalizer so user-edited files
in legacy encodings still merge; writes are UTF-8.
"""

import os
import tempfile
from pathlib import Path, PurePosixPath

from charset_normalizer import from_bytes

from scaffold_sync.errors import PathTraversalError

# =============================================================================
# Path Validation
# =============================================================================


def validate_relative_path(project_root: Path, rel_path: str) -> Path:
    """Resolve a project-relative POSIX path and ensure it stays inside the root.

    Args:
        project_root: The project root directory.
        rel_path: Relative path using ``/`` separators.

    Returns:
        The absolute destination path.

    Raises:
        PathTraversalError: If the path is absolute, contains ``..`` or
            otherwise escapes *project_root*.
    """
    normalized = rel_path.replace("\\", "/")
    pure = PurePosixPath(normalized)
    if pure.is_absolute() or normalized.startswith("/"):
        raise PathTraversalError(
            "absolute path not allowed", operation="validate", path=rel_path
        )
    if ".." in pure.parts:
        raise PathTraversalError(
            "parent reference not allowed", operation="validate", path=rel_path
        )

    root = project_root.resolve()
    target = (root / Path(*pure.parts)).resolve()
    if target != root and not target.is_relative_to(root):
        raise PathTraversalError(
            f"escapes project root {root}", operation="validate", path=rel_path
        )
    return target


# =============================================================================
# File Read/Write
# =============================================================================


def decode_bytes(raw: bytes) -> str:
    """Decode raw bytes with automatic encoding detection.

    Defaults to UTF-8 for empty input or when detection fails.
    """
    if not raw:
        return ""
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        pass
    result = from_bytes(raw).best()
    if result is None:
        return raw.decode("utf-8", errors="replace")
    return str(result)


def read_file_with_encoding(path: Path) -> str:
    """Read a text file, detecting its encoding."""
    return decode_bytes(path.read_bytes())


def write_file(path: Path, content: str | bytes, mode: int | None = None) -> int:
    """Write content to a file, creating parent directories as needed.

    Args:
        path: Path to the output file.
        content: Text (encoded as UTF-8) or raw bytes.
        mode: Optional permission bits applied after writing.

    Returns:
        Number of bytes written.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    encoded = content.encode("utf-8") if isinstance(content, str) else content
    path.write_bytes(encoded)
    if mode is not None:
        os.chmod(path, mode)
    return len(encoded)


def atomic_write_text(path: Path, content: str) -> None:
    """Write text atomically: temp file in the same directory, then ``os.replace``.

    Readers never observe a partially written file.  The data is flushed
    to disk before the rename.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=str(path.parent), suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            fh.write(content)
            fh.flush()
            os.fsync(fh.fileno())
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
