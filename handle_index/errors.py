# ==================================================
# handle_index/errors.py
# ==================================================
from __future__ import annotations


class HandleIndexError(Exception):
    """Base class for everything raised by handle_index."""


class StoreLockedError(HandleIndexError):
    """Another process holds the store directory."""


class CorruptStoreError(HandleIndexError):
    """The store contains bytes that break the on-disk format."""


class CorruptKeyError(CorruptStoreError):
    def __init__(self, key: bytes):
        prefix = key[0] if key else None
        super().__init__(f"Invalid key prefix: {prefix}")
        self.key = key


class CorruptValueError(CorruptStoreError):
    pass


class HandleTooLongError(HandleIndexError, ValueError):
    def __init__(self, screen_name: str, size: int):
        super().__init__(
            f"Screen name is {size} bytes, the limit is 255: {screen_name[:32]!r}")
        self.screen_name = screen_name
        self.size = size


class RecordDecodeError(HandleIndexError):
    """A structured record in an input stream could not be decoded."""

    def __init__(self, message: str, line: int | None = None):
        where = f" (line {line})" if line is not None else ""
        super().__init__(f"{message}{where}")
        self.line = line


class ImportFormatError(HandleIndexError, ValueError):
    def __init__(self, line_no: int, line: str):
        super().__init__(f"Expected 'id,screen_name' on line {line_no}: {line!r}")
        self.line_no = line_no
        self.line = line


class UnsupportedArchiveError(HandleIndexError):
    pass


class IdOutOfRangeError(HandleIndexError, ValueError):
    def __init__(self, user_id: int):
        super().__init__(f"User id out of u64 range: {user_id}")
        self.user_id = user_id
