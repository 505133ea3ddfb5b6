# ==================================================
# handle_index/mapping.py
# ==================================================
from __future__ import annotations

import os
from typing import NamedTuple

from loguru import logger

from . import codec
from .config import IndexConfig
from .const import ID_PREFIX, SCREEN_NAME_PREFIX
from .errors import CorruptKeyError
from .store import MergeStore


class KeyCounts(NamedTuple):
    id_keys: int
    screen_name_keys: int


class Mapping:
    """Bidirectional user id <-> screen name index on top of a MergeStore."""

    def __init__(self, path: str | os.PathLike,
                 segments: int = 256,
                 bloom_fp: float = 0.01,
                 expected_keys: int = 1_000_000,
                 sync_writes: bool = False,
                 create_if_missing: bool = True):
        self.sync_writes = sync_writes
        self.store = MergeStore(path, codec.merge,
                                create_if_missing=create_if_missing,
                                segments=segments,
                                bloom_fp=bloom_fp,
                                expected_keys=expected_keys)

    @classmethod
    def from_config(cls, config: IndexConfig) -> "Mapping":
        return cls(config.path,
                   segments=config.segments,
                   bloom_fp=config.bloom_fp,
                   expected_keys=config.expected_keys,
                   sync_writes=config.sync_writes)

    # ------------------------------------------------------------------
    def get_estimated_key_count(self) -> int:
        return self.store.estimate_num_keys()

    def get_key_counts(self) -> KeyCounts:
        id_keys = 0
        screen_name_keys = 0

        for key in self.store.keys():
            if key and key[0] == ID_PREFIX:
                id_keys += 1
            elif key and key[0] == SCREEN_NAME_PREFIX:
                screen_name_keys += 1
            else:
                raise CorruptKeyError(key)

        return KeyCounts(id_keys, screen_name_keys)

    # ------------------------------------------------------------------
    def lookup_by_id(self, user_id: int) -> list[str]:
        value = self.store.get(codec.id_to_key(user_id))
        if value is None:
            return []
        return codec.HandleList.decode(value).screen_names

    def lookup_by_screen_name(self, screen_name: str) -> list[int]:
        value = self.store.get(codec.screen_name_to_key(screen_name))
        if value is None:
            return []
        return codec.IdList.decode(value).ids

    def insert_pair(self, user_id: int, screen_name: str):
        # encode both operands before writing so a rejected pair leaves no trace
        id_key = codec.id_to_key(user_id)
        name_operand = codec.encode_screen_name(screen_name)
        name_key = codec.screen_name_to_key(screen_name)
        id_operand = codec.encode_id(user_id)

        self.store.merge(id_key, name_operand)
        self.store.merge(name_key, id_operand)
        if self.sync_writes:
            self.store.flush()

    # ------------------------------------------------------------------
    def compact(self) -> int:
        logger.info("Compacting {}", self.store.path)
        return self.store.compact()

    def flush(self):
        self.store.flush()

    def close(self):
        self.store.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
