# ==================================================
# handle_index/compression.py
# ==================================================
import bz2, io
from typing import BinaryIO

import zstandard as zstd

COMPRESSED_SUFFIXES = (".bz2", ".zst")

# -------- zstd wrappers ---------------------------------------------------

dctx = zstd.ZstdDecompressor()

def is_compressed_name(name: str) -> bool:
    return name.endswith(COMPRESSED_SUFFIXES)

def open_decompressed(name: str, fileobj: BinaryIO) -> BinaryIO:
    """Wrap ``fileobj`` in a line-iterable reader picked by ``name``'s suffix."""
    if name.endswith(".bz2"):
        return bz2.BZ2File(fileobj)                 # reads concatenated streams
    if name.endswith(".zst"):
        return io.BufferedReader(dctx.stream_reader(fileobj, read_across_frames=True))
    raise ValueError(f"Unsupported compression: {name}")
