# ==================================================
# handle_index/codec.py
# ==================================================
"""
Key and value encodings shared by every store holding a handle index.

Keys live in two namespaces told apart by their first byte:

    0x00 ‖ id (u64, big-endian)        -> HandleList
    0x01 ‖ lowercase screen name       -> IdList

A HandleList is a run of ``len(1 byte) ‖ utf-8`` strings, an IdList a run of
8-byte big-endian integers. Both are append-only, de-duplicated and keep
first-seen order. ``merge`` is the store's merge operator over them.
"""
from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

from .const import ID_PREFIX, ID_SIZE, MAX_ID, MAX_SCREEN_NAME_BYTES, SCREEN_NAME_PREFIX
from .errors import CorruptKeyError, CorruptValueError, HandleTooLongError, IdOutOfRangeError

_ID = struct.Struct(">Q")


# ── keys ─────────────────────────────────────────────────────
def _id_bytes(user_id: int) -> bytes:
    if not 0 <= user_id <= MAX_ID:
        raise IdOutOfRangeError(user_id)
    return _ID.pack(user_id)


def id_to_key(user_id: int) -> bytes:
    return bytes([ID_PREFIX]) + _id_bytes(user_id)


def screen_name_to_key(screen_name: str) -> bytes:
    return bytes([SCREEN_NAME_PREFIX]) + screen_name.lower().encode("utf-8")


# ── merge operands ───────────────────────────────────────────
def encode_screen_name(screen_name: str) -> bytes:
    """Length-prefixed operand for an id key; rejects names over 255 bytes."""
    raw = screen_name.encode("utf-8")
    if len(raw) > MAX_SCREEN_NAME_BYTES:
        raise HandleTooLongError(screen_name, len(raw))
    return bytes([len(raw)]) + raw


def encode_id(user_id: int) -> bytes:
    return _id_bytes(user_id)


# ── value payloads ───────────────────────────────────────────
@dataclass
class HandleList:
    """Screen names stored under an id key, as raw utf-8 entries."""
    entries: list[bytes] = field(default_factory=list)

    def __post_init__(self):
        self._seen = set(self.entries)

    @classmethod
    def decode(cls, data: bytes) -> "HandleList":
        entries = []
        i = 0
        while i < len(data):
            size = data[i]
            end = i + 1 + size
            if end > len(data):
                raise CorruptValueError(
                    f"Screen name entry at byte {i} needs {size} bytes, "
                    f"{len(data) - i - 1} left")
            entries.append(bytes(data[i + 1:end]))
            i = end
        return cls(entries)

    def encode(self) -> bytes:
        return b"".join(bytes([len(e)]) + e for e in self.entries)

    def extend(self, other: "HandleList"):
        for entry in other.entries:
            if entry not in self._seen:
                self._seen.add(entry)
                self.entries.append(entry)

    @property
    def screen_names(self) -> list[str]:
        try:
            return [e.decode("utf-8") for e in self.entries]
        except UnicodeDecodeError as exc:
            raise CorruptValueError(f"Screen name is not valid utf-8: {exc}") from exc


@dataclass
class IdList:
    """User ids stored under a screen name key."""
    ids: list[int] = field(default_factory=list)

    def __post_init__(self):
        self._seen = set(self.ids)

    @classmethod
    def decode(cls, data: bytes) -> "IdList":
        if len(data) % ID_SIZE:
            raise CorruptValueError(
                f"Id list of {len(data)} bytes is not a multiple of {ID_SIZE}")
        return cls([n for (n,) in _ID.iter_unpack(data)])

    def encode(self) -> bytes:
        return b"".join(_ID.pack(n) for n in self.ids)

    def extend(self, other: "IdList"):
        for n in other.ids:
            if n not in self._seen:
                self._seen.add(n)
                self.ids.append(n)


Value = Union[HandleList, IdList]


def value_type_for_key(key: bytes) -> type:
    if key and key[0] == ID_PREFIX:
        return HandleList
    if key and key[0] == SCREEN_NAME_PREFIX:
        return IdList
    raise CorruptKeyError(key)


def decode_value(key: bytes, data: Optional[bytes]) -> Value:
    return value_type_for_key(key).decode(data or b"")


# ── merge operator ───────────────────────────────────────────
def merge(key: bytes, existing: Optional[bytes], operands: Sequence[bytes]) -> bytes:
    """
    Fold ``operands`` into ``existing`` with append-if-absent semantics.

    The result starts with ``existing`` unchanged, so applying it again to its
    own output, or to operands regrouped by partial merges, gives the same set.
    """
    merged = decode_value(key, existing)
    value_type = type(merged)
    for operand in operands:
        merged.extend(value_type.decode(operand))
    return merged.encode()
