# ==================================================
# handle_index/extract.py
# ==================================================
"""Pull (id, screen name, display name) triples out of a stream of JSON posts."""
from __future__ import annotations

import json
import re
from typing import Any, BinaryIO, Iterable, Iterator, NamedTuple, Optional

from .const import MAX_ID
from .errors import RecordDecodeError

_ID_STR = re.compile(r"\+?[0-9]+")
_JSON_WS = " \t\n\r"


class UserInfo(NamedTuple):
    id: int
    screen_name: str
    name: str


class Batch(NamedTuple):
    """Users found in one record, or the error that record produced."""
    users: list[UserInfo]
    error: Optional[RecordDecodeError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> list[UserInfo]:
        if self.error is not None:
            raise self.error
        return self.users


def extract_user(obj: Any) -> Optional[UserInfo]:
    if not isinstance(obj, dict):
        return None
    id_str = obj.get("id_str")
    screen_name = obj.get("screen_name")
    name = obj.get("name")
    if not (isinstance(id_str, str) and isinstance(screen_name, str) and isinstance(name, str)):
        return None
    if not _ID_STR.fullmatch(id_str):
        return None
    user_id = int(id_str)
    if user_id > MAX_ID:
        return None
    return UserInfo(user_id, screen_name, name)


def add_status_users(users: list[UserInfo], obj: Any, is_retweeted: bool = False):
    """Collect the author, and for a retweeted status one level down, its mentions."""
    if not isinstance(obj, dict):
        return

    info = extract_user(obj.get("user"))
    if info is not None:
        users.append(info)

    if is_retweeted:
        entities = obj.get("entities")
        mentions = entities.get("user_mentions") if isinstance(entities, dict) else None
        if isinstance(mentions, list):
            for mention in mentions:
                info = extract_user(mention)
                if info is not None:
                    users.append(info)
    elif "retweeted_status" in obj:
        add_status_users(users, obj["retweeted_status"], True)


# ── stream decoding ──────────────────────────────────────────
def _is_incomplete(buffer: str, error: json.JSONDecodeError) -> bool:
    # a value cut at a line break fails at the buffer's trailing whitespace
    return error.pos >= len(buffer.rstrip())


def iter_records(reader: Iterable[bytes]) -> Iterator[Any]:
    """
    Decode whitespace-separated JSON values from a line-iterable byte stream.

    Yields each decoded value, or a RecordDecodeError in its place when the
    text is malformed; decoding then resumes at the next line.
    """
    decoder = json.JSONDecoder()
    buffer = ""
    start_line = 1

    for line_no, raw in enumerate(reader, 1):
        try:
            text = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            yield RecordDecodeError(f"Invalid utf-8: {exc.reason}", line_no)
            buffer = ""
            continue
        if not buffer:
            start_line = line_no
        line_start = len(buffer)
        buffer += text

        pos = 0
        while True:
            while pos < len(buffer) and buffer[pos] in _JSON_WS:
                pos += 1
            if pos == len(buffer):
                buffer = ""
                break
            try:
                value, pos = decoder.raw_decode(buffer, pos)
            except json.JSONDecodeError as exc:
                if _is_incomplete(buffer, exc):
                    buffer = buffer[pos:]
                elif pos < line_start:
                    # a record left open on an earlier line ends there; retry this line alone
                    yield RecordDecodeError(exc.msg, start_line)
                    buffer = buffer[line_start:]
                    line_start = pos = 0
                    start_line = line_no
                    continue
                else:
                    yield RecordDecodeError(exc.msg, start_line)
                    buffer = ""
                break
            yield value
            start_line = line_no

    if buffer.strip():
        yield RecordDecodeError("Truncated record at end of stream", start_line)


def extract_user_info(reader: BinaryIO | Iterable[bytes]) -> Iterator[Batch]:
    """Lazily yield one Batch per record in ``reader``."""
    for record in iter_records(reader):
        if isinstance(record, RecordDecodeError):
            yield Batch([], record)
            continue
        users: list[UserInfo] = []
        add_status_users(users, record)
        yield Batch(users)
