# ==================================================
# handle_index/bloom.py
# ==================================================
from math import log, ceil
from hashlib import blake2b
import struct

import numpy as np


class Bloom:
    """Fixed-size Bloom filter; the bit array never grows once created."""

    def __init__(self, n_items: int, fp_rate: float = 0.01,
                 bits: bytearray | None = None, k: int | None = None):
        n_items = max(1, n_items)  # ← prevent ÷0
        m = ceil(-(n_items * log(fp_rate)) / (log(2) ** 2))

        self.bits = bits if bits is not None else bytearray((m + 7) // 8)
        self.m = len(self.bits) * 8
        self.k = k if k is not None else max(1, ceil((m / n_items) * log(2)))
    # -- hashing helpers ---------------------------------------------------
    def _hashes(self, key: bytes):
        h = blake2b(key, digest_size=16).digest()
        h1, h2 = struct.unpack("<QQ", h)
        for i in range(self.k):
            yield (h1 + i * h2) % self.m
    # ----------------------------------------------------------------------
    def add(self, key: bytes) -> list[int]:
        """Set the key's bits; return the byte indexes that changed."""
        touched = []
        for bit in self._hashes(key):
            byte_i = bit // 8
            bit_mask = 1 << (bit & 7)
            if not self.bits[byte_i] & bit_mask:
                self.bits[byte_i] |= bit_mask
                touched.append(byte_i)
        return touched

    def __contains__(self, key: bytes):
        return all(self.bits[bit // 8] & (1 << (bit & 7)) for bit in self._hashes(key))

    def bit_count(self) -> int:
        return int(np.count_nonzero(np.unpackbits(np.frombuffer(self.bits, dtype=np.uint8))))

    def estimate_count(self) -> int:
        """Swamidass–Baldi estimate of the number of distinct keys added."""
        x = self.bit_count()
        if x == 0:
            return 0
        if x >= self.m:
            return self.m  # saturated, the estimate diverges
        return round(-(self.m / self.k) * log(1 - x / self.m))

    @classmethod
    def from_bytes(cls, k: int, data: bytes):
        return cls(1, bits=bytearray(data), k=k)
