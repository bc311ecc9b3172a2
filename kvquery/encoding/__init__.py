"""
kvquery.encoding
================

Byte encodings used by the typed layer:

- parts.py: namespaced, length-prefixed composite keys (prefix-friendly)
- codec.py: per-type codecs (bytes, str, canonical CBOR, self-serializing types)
"""

from __future__ import annotations

from .codec import (
    BytesCodec,
    CBORCodec,
    Codec,
    Serializable,
    SerializableCodec,
    StrCodec,
    codec_for,
    decode_with,
    register_codec,
)
from .parts import be_u32, be_u64, be_u256, pack, unpack

__all__ = [
    "Codec",
    "Serializable",
    "BytesCodec",
    "StrCodec",
    "CBORCodec",
    "SerializableCodec",
    "codec_for",
    "register_codec",
    "decode_with",
    "pack",
    "unpack",
    "be_u32",
    "be_u64",
    "be_u256",
]
