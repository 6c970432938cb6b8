from .codec import Decoder, compress, decompress
from .errors import BufferOverflow, DecodeError, InvalidOffset, TruncatedResource, UnexpectedEndOfStream
from .render import load_and_render

__all__ = [
    "BufferOverflow",
    "DecodeError",
    "Decoder",
    "InvalidOffset",
    "TruncatedResource",
    "UnexpectedEndOfStream",
    "compress",
    "decompress",
    "load_and_render",
]
