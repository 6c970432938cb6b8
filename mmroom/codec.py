"""
Hybrid run-length + 4-symbol dictionary codec used by room layers.

Stream layout:
- 4 dictionary bytes
- operations, each one control byte (+ one literal byte for ad-hoc runs):
    00LLLLLL  direct: L+1 literal bytes follow
    01LLLLLL  ad-hoc run: next byte repeated L+1 times
    1IILLLLL  dictionary run: dictionary[I] repeated L times (L=0 means 32)

There is no end marker. Callers bound the output by the layer size.

The dictionary run count is taken as is, with 0 standing for 32. The 6502
decoder on the original hardware emits one byte more for dictionary runs
(L+1, so L=0 gives a single byte); streams here do not follow that.
"""

from __future__ import annotations

import dataclasses
from collections import Counter
from typing import Iterator, List, Optional, Tuple, Union

from .errors import UnexpectedEndOfStream


DICT_SIZE = 4
DIRECT_MAX = 64
ADHOC_MAX = 64
DICT_RUN_MAX = 32

DIRECT_MODE = 0x00
RUN_MODE = 0xFF


@dataclasses.dataclass(frozen=True)
class Direct:
    length: int


@dataclasses.dataclass(frozen=True)
class AdHocRun:
    length: int
    literal: int


@dataclasses.dataclass(frozen=True)
class DictionaryRun:
    length: int
    index: int


Op = Union[Direct, AdHocRun, DictionaryRun]


def read_op(data: bytes, pos: int) -> Tuple[Op, int]:
    """Decode the operation starting at ``pos``; returns it and the position after it."""
    if pos >= len(data):
        raise UnexpectedEndOfStream(f"Control byte expected at 0x{pos:04X}, stream is 0x{len(data):04X} bytes")
    ctrl = data[pos]
    pos += 1
    if ctrl < 0x40:
        return Direct(length=(ctrl & 0x3F) + 1), pos
    if ctrl < 0x80:
        if pos >= len(data):
            raise UnexpectedEndOfStream(f"Run literal expected at 0x{pos:04X}")
        return AdHocRun(length=(ctrl & 0x3F) + 1, literal=data[pos]), pos + 1
    count = ctrl & 0x1F
    return DictionaryRun(length=count if count else DICT_RUN_MAX, index=(ctrl >> 5) & 0x03), pos


def encode_op(op: Op) -> bytes:
    if isinstance(op, Direct):
        if not 1 <= op.length <= DIRECT_MAX:
            raise ValueError(f"Direct length out of range: {op.length}")
        return bytes([op.length - 1])
    if isinstance(op, AdHocRun):
        if not 1 <= op.length <= ADHOC_MAX:
            raise ValueError(f"Ad-hoc run length out of range: {op.length}")
        return bytes([0x40 | (op.length - 1), op.literal & 0xFF])
    if isinstance(op, DictionaryRun):
        if not 1 <= op.length <= DICT_RUN_MAX:
            raise ValueError(f"Dictionary run length out of range: {op.length}")
        if not 0 <= op.index < DICT_SIZE:
            raise ValueError(f"Dictionary index out of range: {op.index}")
        return bytes([0x80 | (op.index << 5) | (op.length & 0x1F)])
    raise TypeError(f"Unknown operation: {op!r}")


class Decoder:
    """Pull decoder producing one byte per call.

    Construction consumes the 4 dictionary bytes at ``pos``. ``reinit`` does
    the same for a new stream over the same data so one instance can be
    reused layer after layer.
    """

    def __init__(self, data: bytes, pos: int = 0):
        self.data = data
        self.pos = pos
        self.dictionary = bytes(DICT_SIZE)
        self._mode = DIRECT_MODE
        self._remaining = 0
        self._run_value = 0
        self.reinit(pos)

    def reinit(self, pos: int) -> None:
        if pos < 0 or pos + DICT_SIZE > len(self.data):
            raise UnexpectedEndOfStream(f"Dictionary at 0x{pos:04X} runs past end of data (0x{len(self.data):04X})")
        self.dictionary = bytes(self.data[pos : pos + DICT_SIZE])
        self.pos = pos + DICT_SIZE
        self._mode = DIRECT_MODE
        self._remaining = 0
        self._run_value = 0

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def in_run(self) -> bool:
        return self._mode == RUN_MODE

    def _read_src_byte(self) -> int:
        if self.pos >= len(self.data):
            raise UnexpectedEndOfStream(f"Literal expected at 0x{self.pos:04X}, stream is 0x{len(self.data):04X} bytes")
        b = self.data[self.pos]
        self.pos += 1
        return b

    def next_byte(self) -> int:
        if self._remaining > 0:
            self._remaining -= 1
        else:
            op, self.pos = read_op(self.data, self.pos)
            # The byte emitted below is the first of the operation.
            self._remaining = op.length - 1
            if isinstance(op, Direct):
                self._mode = DIRECT_MODE
            elif isinstance(op, AdHocRun):
                self._mode = RUN_MODE
                self._run_value = op.literal
            else:
                self._mode = RUN_MODE
                self._run_value = self.dictionary[op.index]
        if self._mode == RUN_MODE:
            return self._run_value
        return self._read_src_byte()

    def skip8(self, n: int) -> None:
        if not 0 <= n <= 0xFF:
            raise ValueError(f"8-bit skip count out of range: {n}")
        self._skip(n)

    def skip16(self, n: int) -> None:
        if not 0 <= n <= 0xFFFF:
            raise ValueError(f"16-bit skip count out of range: {n}")
        self._skip(n)

    def _skip(self, n: int) -> None:
        for _ in range(n):
            self.next_byte()

    def __iter__(self) -> Iterator[int]:
        return self

    def __next__(self) -> int:
        # A clean stop is only possible between operations.
        if self._remaining == 0 and self.pos >= len(self.data):
            raise StopIteration
        return self.next_byte()


def decompress(data: bytes, pos: int = 0, size: Optional[int] = None) -> bytes:
    dec = Decoder(data, pos)
    if size is None:
        return bytes(dec)
    out = bytearray(size)
    for i in range(size):
        out[i] = dec.next_byte()
    return bytes(out)


def choose_dictionary(raw: bytes) -> bytes:
    common = [b for b, _ in Counter(raw).most_common(DICT_SIZE)]
    common += [0] * (DICT_SIZE - len(common))
    return bytes(common)


def _run_length(raw: bytes, i: int, cap: int) -> int:
    n = 1
    while i + n < len(raw) and n < cap and raw[i + n] == raw[i]:
        n += 1
    return n


def iter_ops(raw: bytes, dictionary: bytes) -> Iterator[Op]:
    """Greedy operation split of ``raw`` for the given dictionary."""
    pending = 0
    i = 0
    n = len(raw)
    while i < n:
        value = raw[i]
        if value in dictionary:
            run = _run_length(raw, i, DICT_RUN_MAX)
            take = run >= 2
        else:
            run = _run_length(raw, i, ADHOC_MAX)
            take = run >= 3
        if take:
            if pending:
                yield Direct(length=pending)
                pending = 0
            if value in dictionary:
                yield DictionaryRun(length=run, index=dictionary.index(value))
            else:
                yield AdHocRun(length=run, literal=value)
            i += run
            continue
        pending += 1
        i += 1
        if pending == DIRECT_MAX:
            yield Direct(length=pending)
            pending = 0
    if pending:
        yield Direct(length=pending)


def compress(raw: bytes, dictionary: Optional[bytes] = None) -> bytes:
    if dictionary is None:
        dictionary = choose_dictionary(raw)
    if len(dictionary) != DICT_SIZE:
        raise ValueError(f"Dictionary must be {DICT_SIZE} bytes, got {len(dictionary)}")
    out = bytearray(dictionary)
    i = 0
    for op in iter_ops(raw, dictionary):
        out += encode_op(op)
        if isinstance(op, Direct):
            out += raw[i : i + op.length]
        i += op.length
    return bytes(out)


def encode_ops(dictionary: bytes, ops: List[Tuple[Op, bytes]]) -> bytes:
    """Serialise an explicit operation list; each direct op carries its literal bytes."""
    if len(dictionary) != DICT_SIZE:
        raise ValueError(f"Dictionary must be {DICT_SIZE} bytes, got {len(dictionary)}")
    out = bytearray(dictionary)
    for op, literals in ops:
        out += encode_op(op)
        if isinstance(op, Direct):
            if len(literals) != op.length:
                raise ValueError(f"Direct op of length {op.length} given {len(literals)} literal bytes")
            out += literals
    return bytes(out)
