from __future__ import annotations

from typing import Optional

from .codec import Decoder
from .errors import BufferOverflow


PAGE_SIZE = 0x100
MAX_FIXED = PAGE_SIZE * PAGE_SIZE


def pages_to_count(pages: int, remainder: int) -> int:
    # Both halves count down through zero, so 0 stands for 256.
    if not 0 <= pages <= 0xFF or not 0 <= remainder <= 0xFF:
        raise ValueError(f"Page/remainder out of byte range: {pages}/{remainder}")
    return ((pages or PAGE_SIZE) - 1) * PAGE_SIZE + (remainder or PAGE_SIZE)


def _check_capacity(dest: bytearray, offset: int, count: int) -> None:
    if offset < 0 or offset + count > len(dest):
        raise BufferOverflow(
            f"Block of 0x{count:04X} bytes at +0x{offset:04X} exceeds destination capacity 0x{len(dest):04X}"
        )


def _commit(dest: bytearray, offset: int, block: bytearray) -> None:
    dest[offset : offset + len(block)] = block


def fill_fixed(
    dec: Decoder,
    dest: bytearray,
    count: Optional[int] = None,
    pages: Optional[int] = None,
    remainder: Optional[int] = None,
    offset: int = 0,
) -> int:
    """Pull exactly ``count`` bytes (or a pages/remainder pair) into ``dest``.

    The block decodes into scratch space first; ``dest`` only changes once the
    whole block decoded. Returns the number of bytes written.
    """
    if count is None:
        if pages is None or remainder is None:
            raise ValueError("fill_fixed needs either count or pages and remainder")
        count = pages_to_count(pages, remainder)
    if not 0 <= count <= MAX_FIXED:
        raise ValueError(f"Fixed block count out of range: {count}")
    _check_capacity(dest, offset, count)
    block = bytearray(count)
    for i in range(count):
        block[i] = dec.next_byte()
    _commit(dest, offset, block)
    return count


def fill_shaped(dec: Decoder, dest: bytearray, width: int, height: int, offset: int = 0) -> int:
    if not 0 <= width <= 0xFF or not 0 <= height <= 0xFF:
        raise ValueError(f"Shaped block dimensions out of byte range: {width}x{height}")
    count = width * height
    _check_capacity(dest, offset, count)
    block = bytearray(count)
    i = 0
    for _row in range(height):
        for _col in range(width):
            block[i] = dec.next_byte()
            i += 1
    _commit(dest, offset, block)
    return count
