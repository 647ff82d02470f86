"""Split oversized backup artifacts into bounded-size parts.

A file ``toc.dat`` above the threshold becomes ``toc.dat.part001``,
``toc.dat.part002``, ... each at most ``max_part_bytes`` long.  Concatenating
the parts in numeric order reproduces the original byte-for-byte; see
``pg_backup_tool.restore.assembler`` for the reverse step.
"""

import logging
from pathlib import Path

from pg_backup_tool.backup.models import METADATA_FILENAME

logger = logging.getLogger(__name__)

PART_MARKER = ".part"
COPY_BUFFER_SIZE = 1024 * 1024


def part_path(original: Path, number: int) -> Path:
    """``<original>.partNNN`` with a 3-digit zero-padded sequence."""
    return original.with_name(f"{original.name}{PART_MARKER}{number:03d}")


class FileSplitter:
    """Split files into consecutive parts of at most ``max_part_bytes``.

    Args:
        max_part_bytes: Upper bound on each part's size; must be positive.
    """

    def __init__(self, max_part_bytes: int) -> None:
        if max_part_bytes <= 0:
            raise ValueError("max_part_bytes must be positive")
        self.max_part_bytes = max_part_bytes

    def split_file(self, path: Path) -> list[Path]:
        """Split ``path`` into parts, then delete the original.

        Each part is fully written and closed before the next one starts.
        The original is removed only after the last part is complete; if the
        removal itself fails it is logged and the split still stands, since
        the parts alone are enough for reassembly.

        If writing any part fails, the parts written so far are removed and
        the error is re-raised with the original left untouched.

        Returns:
            Part paths in sequence order (empty for an empty file, which is
            left in place).
        """
        parts: list[Path] = []

        try:
            with open(path, "rb") as src:
                while True:
                    chunk = src.read(min(COPY_BUFFER_SIZE, self.max_part_bytes))
                    if not chunk:
                        break

                    target = part_path(path, len(parts) + 1)
                    with open(target, "wb") as dst:
                        parts.append(target)
                        written = 0
                        while True:
                            dst.write(chunk)
                            written += len(chunk)
                            remaining = self.max_part_bytes - written
                            if remaining <= 0:
                                break
                            chunk = src.read(min(COPY_BUFFER_SIZE, remaining))
                            if not chunk:
                                break
        except OSError:
            for written_part in parts:
                written_part.unlink(missing_ok=True)
            raise

        if not parts:
            return parts

        try:
            path.unlink()
        except OSError as e:
            logger.warning(f"Failed to remove original file {path}: {e}")

        logger.debug(f"Split {path} into {len(parts)} parts")
        return parts


def is_split_candidate(path: Path) -> bool:
    """Whether ``path`` may be split (not metadata, not already a part)."""
    return path.name != METADATA_FILENAME and PART_MARKER not in path.name


def split_large_files(directory: Path, max_part_bytes: int) -> list[str]:
    """Split every regular file under ``directory`` larger than the threshold.

    A failure on one file is logged and the walk continues.

    Args:
        directory: Backup directory to scan recursively.
        max_part_bytes: Split threshold and part size; ``<= 0`` disables.

    Returns:
        Paths (relative to ``directory``) of the files that were split.
    """
    if max_part_bytes <= 0:
        return []

    splitter = FileSplitter(max_part_bytes)
    candidates = [
        p for p in sorted(directory.rglob("*"))
        if p.is_file() and is_split_candidate(p)
    ]

    split: list[str] = []
    for path in candidates:
        size = path.stat().st_size
        if size <= max_part_bytes:
            continue

        logger.info(f"Splitting large file: {path} ({size / (1 << 20):.2f} MB)")
        try:
            splitter.split_file(path)
        except OSError as e:
            logger.warning(f"Failed to split {path}: {e}")
            continue
        split.append(str(path.relative_to(directory)))

    return split
