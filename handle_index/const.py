# ==================================================
# handle_index/const.py
# ==================================================
import struct

# ── store file layout ─────────────────────────────
MAGIC = b"HIS1"           # 4-byte magic + version major «1»
HEADER_FMT = "<4sHHLQ"    # magic, version_minor (H), bloom_k (H), segment_count (L), bloom_bytes (Q)
HEADER_SIZE = 24          # bytes (4+2+2+4+8+padding)
BUCKET_FMT = "<Q"         # 8-byte offset of newest entry in segment (0 = empty)
BUCKET_SIZE = 8
ENTRY_HDR_FMT = "<QQBHL"  # next_offset, key_hash, kind, key_size, value_size
ENTRY_HDR_SIZE = struct.calcsize(ENTRY_HDR_FMT)   # 23 bytes, unpadded
VERSION_MINOR = 0

ENTRY_PUT = 0             # complete value, stops a chain walk
ENTRY_MERGE = 1           # merge operand

DATA_FILE = "store.shs"
LOCK_FILE = "LOCK"

# ── key namespaces ────────────────────────────────
ID_PREFIX = 0x00
SCREEN_NAME_PREFIX = 0x01
ID_SIZE = 8
MAX_SCREEN_NAME_BYTES = 0xFF   # one length byte
MAX_ID = (1 << 64) - 1
