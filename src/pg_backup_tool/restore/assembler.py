"""Reassemble files split by ``pg_backup_tool.backup.splitter``.

This module is **sync** -- it only touches local files.
"""

import logging
import os
from pathlib import Path

from pg_backup_tool.backup.splitter import PART_MARKER
from pg_backup_tool.errors import AssemblyError

logger = logging.getLogger(__name__)

COPY_BUFFER_SIZE = 1024 * 1024


def extract_part_number(part: Path) -> int:
    """Numeric suffix after the last ``.part`` marker.

    Only an optional sign followed by ASCII digits counts as numeric.  Any
    other suffix yields 0, so such a part sorts first.
    """
    name = part.name
    idx = name.rfind(PART_MARKER)
    if idx == -1:
        return 0

    suffix = name[idx + len(PART_MARKER):]
    digits = suffix[1:] if suffix[:1] in ("+", "-") else suffix
    if not (digits.isascii() and digits.isdigit()):
        return 0
    return int(suffix)


def _raise_walk_error(error: OSError) -> None:
    raise error


def find_split_groups(root: Path) -> dict[Path, list[Path]]:
    """Map each inferred original path to the part files found for it.

    Raises:
        OSError: If any directory under ``root`` cannot be listed.
    """
    groups: dict[Path, list[Path]] = {}
    for dirpath, _dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        for filename in filenames:
            idx = filename.rfind(PART_MARKER)
            if idx == -1:
                continue
            directory = Path(dirpath)
            original = directory / filename[:idx]
            groups.setdefault(original, []).append(directory / filename)
    return groups


class FileAssembler:
    """Concatenate ``<name>.partNNN`` files back into ``<name>``."""

    def assemble_files(self, root: Path) -> int:
        """Assemble every split file found under ``root``.

        A tree without part files is valid (already-whole backup) and is
        left untouched.

        Returns:
            Number of original files reassembled.

        Raises:
            AssemblyError: If the tree cannot be scanned completely or any
                group fails to assemble.
        """
        logger.info(f"Assembling split files in {root}")

        try:
            groups = find_split_groups(root)
        except OSError as e:
            raise AssemblyError(f"Failed to scan {root} for split files: {e}") from e
        if not groups:
            logger.debug("No split files found")
            return 0

        for original in sorted(groups):
            self.assemble_one(original, groups[original])
        return len(groups)

    def assemble_one(self, original: Path, parts: list[Path]) -> None:
        """Write ``parts`` in numeric order into ``original``.

        The destination is created or truncated first.  Parts are removed
        only after the whole concatenation succeeded; on a mid-stream
        failure the partial destination is deleted and every part is kept
        for a retry.

        Raises:
            AssemblyError: If reading a part or writing the destination fails.
        """
        ordered = sorted(parts, key=extract_part_number)
        logger.info(f"Assembling {original} from {len(ordered)} parts")

        try:
            with open(original, "wb") as out:
                for part in ordered:
                    with open(part, "rb") as src:
                        while chunk := src.read(COPY_BUFFER_SIZE):
                            out.write(chunk)
        except OSError as e:
            original.unlink(missing_ok=True)
            raise AssemblyError(f"Failed to assemble {original}: {e}") from e

        for part in ordered:
            try:
                part.unlink()
            except OSError as e:
                logger.warning(f"Failed to remove part {part}: {e}")

        logger.debug(f"Successfully assembled and cleaned up {original}")
