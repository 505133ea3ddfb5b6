# ==================================================
# handle_index/ingest.py
# ==================================================
"""Feed archives of post streams, or ``id,screen_name`` lines, into a Mapping."""
from __future__ import annotations

import os
import tarfile
import zipfile
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterable

from loguru import logger

from .compression import is_compressed_name, open_decompressed
from .const import MAX_ID
from .errors import ImportFormatError, UnsupportedArchiveError
from .extract import UserInfo, extract_user_info
from .mapping import Mapping


@dataclass
class IngestStats:
    files: int = 0
    pairs: int = 0
    errors: int = 0


def read_user_info(fileobj: BinaryIO, name: str,
                   skip_errors: bool = False,
                   stats: IngestStats | None = None) -> list[UserInfo]:
    """Every triple in one compressed member; the first bad record raises unless skipped."""
    result: list[UserInfo] = []
    with open_decompressed(name, fileobj) as reader:
        for batch in extract_user_info(reader):
            if batch.ok:
                result.extend(batch.users)
            elif skip_errors:
                logger.warning("Skipping record in {}: {}", name, batch.error)
                if stats is not None:
                    stats.errors += 1
            else:
                raise batch.error
    return result


def _insert_all(mapping: Mapping, users: Iterable[UserInfo], stats: IngestStats):
    for user_id, screen_name, _ in users:
        mapping.insert_pair(user_id, screen_name)
        stats.pairs += 1


def ingest_archive(mapping: Mapping, path: str | os.PathLike,
                   skip_errors: bool = False) -> IngestStats:
    path = Path(path)
    stats = IngestStats()

    if path.name.endswith("tar"):
        with tarfile.open(path, "r:") as archive:
            logger.info("Opening archive {}", path)
            for member in archive:
                logger.debug("{}", member.name)
                if not (member.isfile() and is_compressed_name(member.name)):
                    continue
                logger.info("FILE: {}", member.name)
                fileobj = archive.extractfile(member)
                users = read_user_info(fileobj, member.name, skip_errors, stats)
                _insert_all(mapping, users, stats)
                stats.files += 1
    elif path.name.endswith("zip"):
        with zipfile.ZipFile(path) as archive:
            logger.info("Opening archive {}", path)
            for info in archive.infolist():
                if info.is_dir() or not is_compressed_name(info.filename):
                    continue
                logger.info("FILE: {}", info.filename)
                with archive.open(info) as fileobj:
                    users = read_user_info(fileobj, info.filename, skip_errors, stats)
                _insert_all(mapping, users, stats)
                stats.files += 1
    else:
        raise UnsupportedArchiveError(f"Expected a .tar or .zip archive: {path}")

    logger.info("Inserted {} pairs from {} files ({} bad records)",
                stats.pairs, stats.files, stats.errors)
    return stats


def parse_import_line(line_no: int, line: str) -> tuple[int, str]:
    fields = line.rstrip("\r\n").split(",")
    if len(fields) < 2 or not fields[0].isascii() or not fields[0].isdigit():
        raise ImportFormatError(line_no, line)
    user_id = int(fields[0])
    if user_id > MAX_ID:
        raise ImportFormatError(line_no, line)
    return user_id, fields[1]


def import_lines(mapping: Mapping, lines: Iterable[str]) -> int:
    count = 0
    for line_no, line in enumerate(lines, 1):
        user_id, screen_name = parse_import_line(line_no, line)
        mapping.insert_pair(user_id, screen_name)
        count += 1
    return count
