"""Local file I/O for push, pull and export.

Markdown discovery, path checks for command arguments, and reading text
whose encoding is not known in advance.
"""

import fnmatch
from pathlib import Path

from charset_normalizer import from_bytes

MARKDOWN_SUFFIX = ".md"

# =============================================================================
# Paths
# =============================================================================


def validate_directory(path_str: str | Path) -> Path:
    """Resolve *path_str*, which must be an existing directory.

    Raises:
        ValueError: The path is missing or is not a directory.
    """
    resolved = Path(path_str).expanduser().resolve()
    if not resolved.exists():
        raise ValueError(f"Directory not found: {path_str}")
    if not resolved.is_dir():
        raise ValueError(f"Path is not a directory: {path_str}")
    return resolved


def validate_output_path(
    path_str: str | Path, base_dir: str | Path | None = None
) -> Path:
    """Resolve a file to be written.

    The file itself may be new but its directory must exist.  With
    *base_dir*, the resolved path must also stay inside that directory,
    so ``..`` segments cannot escape it.

    Raises:
        ValueError: The parent is missing or the path escapes *base_dir*.
    """
    target = Path(path_str).expanduser().resolve()
    if not target.parent.is_dir():
        raise ValueError(f"Output parent directory not found: {target.parent}")
    if base_dir is None:
        return target
    root = Path(base_dir).resolve()
    if not target.is_relative_to(root):
        raise ValueError(
            f"Output path is outside base directory: {target} not under {root}"
        )
    return target


def _excluded(relative: str, patterns: list[str]) -> bool:
    return any(fnmatch.fnmatch(relative, pattern) for pattern in patterns)


def discover_markdown_files(
    root: Path, exclude: list[str] | None = None
) -> list[Path]:
    """Markdown files below *root* in sorted order.

    The ``.md`` suffix is matched case-insensitively.  *exclude* holds
    glob patterns tested against each file's POSIX path relative to
    *root*.
    """
    patterns = list(exclude or ())
    return [
        path
        for path in sorted(root.rglob("*"))
        if path.suffix.lower() == MARKDOWN_SUFFIX
        and path.is_file()
        and not _excluded(path.relative_to(root).as_posix(), patterns)
    ]


# =============================================================================
# Contents
# =============================================================================


def read_file_with_encoding(path: Path) -> tuple[str, str]:
    """Return ``(text, encoding)`` for *path*.

    UTF-8 is tried first.  Anything else is handed to charset-normalizer;
    if it cannot decide, the bytes are decoded as UTF-8 with replacement
    characters.
    """
    raw = path.read_bytes()
    if not raw:
        return "", "utf-8"
    try:
        return raw.decode("utf-8"), "utf-8"
    except UnicodeDecodeError:
        pass

    guess = from_bytes(raw).best()
    if guess is None:
        return raw.decode("utf-8", errors="replace"), "utf-8"
    return str(guess), guess.encoding


def write_file(
    path: Path, content: str | bytes, encoding: str = "utf-8"
) -> int:
    """Write *content* to *path*, creating missing directories.

    Text is encoded with *encoding*; bytes are written unchanged.

    Returns:
        The number of bytes written.
    """
    data = content if isinstance(content, bytes) else content.encode(encoding)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(data)
    return len(data)
