# ==================================================
# handle_index/store.py
# ==================================================
from __future__ import annotations

import mmap, os, struct, threading
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence

import xxhash
from loguru import logger

from .const import *
from .bloom import Bloom
from .errors import CorruptStoreError, StoreLockedError

# merge_operator(key, existing_value_or_None, operands_oldest_first) -> new value
MergeOperator = Callable[[bytes, Optional[bytes], Sequence[bytes]], bytes]

# ── cross-platform advisory-lock helpers ───────────
try:
    import fcntl                                      # Unix / WSL / macOS
    def _lock(f):
        try:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        except BlockingIOError as exc:
            raise StoreLockedError(f"Store is locked by another process: {f.name}") from exc
    def _unlock(f):
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
except ImportError:                                   # native Windows
    # Single-writer desktop; we can safely NO-OP.
    def _lock(f):   ...
    def _unlock(f): ...

# ───────────────────────────────────────────────────


def _hash(key: bytes) -> int:                   # fast & stable
    return xxhash.xxh64_intdigest(key)


class _DataFile:
    """One mmap'ed store file: header, bucket table, Bloom region, entries."""

    def __init__(self, path: Path):
        self.path = path
        self.file = open(path, "r+b")
        try:
            if os.fstat(self.file.fileno()).st_size < HEADER_SIZE:
                raise CorruptStoreError(f"Truncated store file: {path}")
            self.mm = mmap.mmap(self.file.fileno(), 0)
        except BaseException:
            self.file.close()
            raise
        magic, _ver, bloom_k, seg_cnt, bloom_bytes = struct.unpack_from(
            HEADER_FMT, self.mm, 0)
        self.segments = seg_cnt
        self.bloom_off = HEADER_SIZE + BUCKET_SIZE * seg_cnt
        if (magic != MAGIC or seg_cnt == 0 or bloom_k == 0 or bloom_bytes == 0
                or len(self.mm) < self.bloom_off + bloom_bytes):
            self.close()
            raise CorruptStoreError(f"Invalid store file: {path}")
        self.bloom = Bloom.from_bytes(
            bloom_k, self.mm[self.bloom_off:self.bloom_off + bloom_bytes])

    @classmethod
    def create(cls, path: Path, segments: int, bloom: Bloom) -> "_DataFile":
        with open(path, "wb") as f:
            header = struct.pack(HEADER_FMT, MAGIC, VERSION_MINOR,
                                 bloom.k, segments, len(bloom.bits))
            f.write(header.ljust(HEADER_SIZE, b"\0"))
            f.write(b"\0" * (BUCKET_SIZE * segments))
            f.write(bloom.bits)                               # empty bloom
        return cls(path)

    # ------------------------------------------------------------------
    def _bucket_offset(self, h: int) -> int:
        return HEADER_SIZE + (h % self.segments) * BUCKET_SIZE

    def _walk(self, entry_of: int):
        """Yield (hash, kind, key_offset, key_size, value_size), newest first."""
        size = len(self.mm)
        while entry_of:
            if entry_of + ENTRY_HDR_SIZE > size:
                raise CorruptStoreError(f"Entry offset {entry_of} past end of {self.path}")
            nxt, e_hash, kind, key_sz, val_sz = struct.unpack_from(
                ENTRY_HDR_FMT, self.mm, entry_of)
            key_off = entry_of + ENTRY_HDR_SIZE
            if key_off + key_sz + val_sz > size:
                raise CorruptStoreError(f"Entry at {entry_of} overruns {self.path}")
            yield e_hash, kind, key_off, key_sz, val_sz
            entry_of = nxt

    # ------------------------------------------------------------------
    def append(self, kind: int, key: bytes, value: bytes):
        h_int = _hash(key)
        bucket_ptr_off = self._bucket_offset(h_int)
        bucket_head = struct.unpack_from(BUCKET_FMT, self.mm, bucket_ptr_off)[0]

        eof = self.mm.size()
        entry = (
            struct.pack(ENTRY_HDR_FMT, bucket_head, h_int, kind, len(key), len(value))
            + key + value
        )
        self.mm.resize(eof + len(entry))
        self.mm[eof: eof + len(entry)] = entry

        # the entry becomes visible only once the bucket head points at it
        struct.pack_into(BUCKET_FMT, self.mm, bucket_ptr_off, eof)

        for byte_i in self.bloom.add(key):
            self.mm[self.bloom_off + byte_i] = self.bloom.bits[byte_i]

    def lookup(self, key: bytes, merge_operator: MergeOperator) -> Optional[bytes]:
        if key not in self.bloom:
            return None
        h_int = _hash(key)
        head = struct.unpack_from(BUCKET_FMT, self.mm, self._bucket_offset(h_int))[0]

        found = False
        base = None
        operands = []
        for e_hash, kind, key_off, key_sz, val_sz in self._walk(head):
            if e_hash != h_int or self.mm[key_off:key_off + key_sz] != key:
                continue
            found = True
            val_off = key_off + key_sz
            value = bytes(self.mm[val_off:val_off + val_sz])
            if kind == ENTRY_PUT:
                base = value
                break
            operands.append(value)

        if not found:
            return None
        if not operands:
            return base
        operands.reverse()
        return merge_operator(key, base, operands)

    def keys(self) -> set[bytes]:
        seen = set()
        for seg in range(self.segments):
            head = struct.unpack_from(BUCKET_FMT, self.mm, HEADER_SIZE + seg * BUCKET_SIZE)[0]
            for _, _, key_off, key_sz, _ in self._walk(head):
                seen.add(bytes(self.mm[key_off:key_off + key_sz]))
        return seen

    def merged_items(self, merge_operator: MergeOperator) -> Iterator[tuple[bytes, bytes]]:
        """Every key with its merged value, walking each bucket chain once."""
        for seg in range(self.segments):
            head = struct.unpack_from(BUCKET_FMT, self.mm, HEADER_SIZE + seg * BUCKET_SIZE)[0]
            # key -> [base, operands newest first, reached a PUT]
            pending: dict[bytes, list] = {}
            for _, kind, key_off, key_sz, val_sz in self._walk(head):
                key = bytes(self.mm[key_off:key_off + key_sz])
                state = pending.setdefault(key, [None, [], False])
                if state[2]:
                    continue
                val_off = key_off + key_sz
                value = bytes(self.mm[val_off:val_off + val_sz])
                if kind == ENTRY_PUT:
                    state[0] = value
                    state[2] = True
                else:
                    state[1].append(value)
            for key, (base, operands, _) in pending.items():
                if operands:
                    operands.reverse()
                    yield key, merge_operator(key, base, operands)
                else:
                    yield key, base

    def flush(self):
        self.mm.flush()

    def close(self):
        self.mm.close()
        self.file.close()


class MergeStore:
    """
    Persistent key/value store whose values are built by a merge operator.

    Writes only ever append: ``put`` records a complete value, ``merge``
    records an operand that ``get`` folds into the latest complete value with
    ``merge_operator``. ``compact`` rewrites the file with one merged value
    per key. All operations on one store are serialized by a single lock.
    """

    def __init__(self, path: str | os.PathLike,
                 merge_operator: MergeOperator,
                 create_if_missing: bool = True,
                 segments: int = 256,
                 bloom_fp: float = 0.01,
                 expected_keys: int = 1_000_000):
        self.path = Path(path)
        self.merge_operator = merge_operator
        self.bloom_fp = bloom_fp
        self.expected_keys = expected_keys
        self._mutex = threading.RLock()
        self._data: Optional[_DataFile] = None

        if not self.path.exists():
            if not create_if_missing:
                raise FileNotFoundError(f"No store at {self.path}")
            self.path.mkdir(parents=True)

        self._lock_file = open(self.path / LOCK_FILE, "a+b")
        try:
            _lock(self._lock_file)
        except BaseException:
            self._lock_file.close()
            raise

        data_path = self.path / DATA_FILE
        try:
            if data_path.exists():
                self._data = _DataFile(data_path)
                logger.debug("Opened store {} ({} bytes)", self.path, len(self._data.mm))
            else:
                self._data = _DataFile.create(
                    data_path, segments, Bloom(expected_keys, bloom_fp))
                logger.debug("Created store {}", self.path)
        except BaseException:
            _unlock(self._lock_file)
            self._lock_file.close()
            raise
        self.segments = self._data.segments

    # ------------------------------------------------------------------
    def _require_open(self) -> _DataFile:
        if self._data is None:
            raise ValueError("I/O operation on closed store")
        return self._data

    @staticmethod
    def _check_key(key: bytes):
        if len(key) > 0xFFFF:
            raise ValueError("Key longer than 65535 bytes")

    # ------------------------------------------------------------------
    def put(self, key: bytes, value: bytes):
        """Overwrite ``key`` with a complete value."""
        self._check_key(key)
        with self._mutex:
            self._require_open().append(ENTRY_PUT, key, value)

    def merge(self, key: bytes, operand: bytes):
        """Record a merge operand for ``key``; existing data is not read."""
        self._check_key(key)
        with self._mutex:
            self._require_open().append(ENTRY_MERGE, key, operand)

    def get(self, key: bytes) -> Optional[bytes]:
        with self._mutex:
            return self._require_open().lookup(key, self.merge_operator)

    # ------------------------------------------------------------------
    def keys(self) -> list[bytes]:
        """All distinct keys in byte order."""
        with self._mutex:
            return sorted(self._require_open().keys())

    def items(self) -> Iterator[tuple[bytes, bytes]]:
        for key in self.keys():
            yield key, self.get(key)

    def estimate_num_keys(self) -> int:
        with self._mutex:
            return self._require_open().bloom.estimate_count()

    # ------------------------------------------------------------------
    def compact(self) -> int:
        """Rewrite the store with one complete value per key; return the key count."""
        with self._mutex:
            old = self._require_open()
            tmp_path = self.path / (DATA_FILE + ".compact")
            bloom = Bloom(max(self.expected_keys, old.bloom.estimate_count()), self.bloom_fp)
            new = _DataFile.create(tmp_path, old.segments, bloom)
            count = 0
            try:
                for key, value in old.merged_items(self.merge_operator):
                    new.append(ENTRY_PUT, key, value)
                    count += 1
                new.flush()
            except BaseException:
                new.close()
                tmp_path.unlink()
                raise
            before = len(old.mm)
            old.close()
            os.replace(tmp_path, self.path / DATA_FILE)
            new.path = self.path / DATA_FILE
            self._data = new
            logger.debug("Compacted {}: {} keys, {} -> {} bytes",
                         self.path, count, before, len(new.mm))
            return count

    # ------------------------------------------------------------------
    def flush(self):
        with self._mutex:
            self._require_open().flush()

    def close(self):
        with self._mutex:
            if self._data is None:
                return
            self._data.flush()
            self._data.close()
            self._data = None
            _unlock(self._lock_file)
            self._lock_file.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
