"""
Plutus Data Nodes - Wire codec for on-chain structured data.

This file contains the five node shapes of the ledger's structured data
(integer, byte string, list, map, constructor) and their CBOR encoding.

CRITICAL: The encoding must match the ledger serializer byte-for-byte.
Datum hashes, NFT fingerprints and validator decisions are all computed over
these exact bytes.

Wire rules:
- Constr 0-6      -> tag 121 + i
- Constr 7-127    -> tag 1280 + (i - 7)
- Constr 128+     -> tag 102 wrapping [i, fields]
- Lists           -> [] definite, otherwise indefinite (0x9f ... 0xff)
- Maps            -> definite, in stored order
- Bytes > 64      -> indefinite string of 64 byte chunks
- Ints > 64 bits  -> tag 2 / tag 3 bignum
"""
import struct
from dataclasses import dataclass
from io import BytesIO
from typing import Any, Mapping, Optional, Tuple, Union

import cbor2
from cbor2 import CBORDecodeEOF, CBORDecodeError, CBOREncodeError, CBORTag


# =============================================================================
# ERRORS
# =============================================================================

class FormatError(ValueError):
    """Data does not have the shape expected by the decoder."""


class UnknownVariant(FormatError):
    """Constructor index outside the known set of a sum type."""


class EncodingError(ValueError):
    """Value cannot be represented in the wire format."""


# =============================================================================
# NODES
# =============================================================================

@dataclass(frozen=True)
class DataInt:
    value: int


@dataclass(frozen=True)
class DataBytes:
    value: bytes

    def hex(self) -> str:
        return self.value.hex()


@dataclass(frozen=True)
class DataList:
    items: Tuple["DataNode", ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "items", tuple(self.items))


@dataclass(frozen=True)
class DataMap:
    """Ordered key/value pairs. Keys are not checked for uniqueness."""
    entries: Tuple[Tuple["DataNode", "DataNode"], ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "entries", tuple((k, v) for k, v in self.entries))

    @classmethod
    def from_dict(cls, mapping: Mapping["DataNode", "DataNode"]) -> "DataMap":
        return cls(tuple(mapping.items()))


@dataclass(frozen=True)
class Constr:
    """Tagged constructor: alternative index plus ordered fields."""
    index: int
    fields: Tuple["DataNode", ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "fields", tuple(self.fields))


DataNode = Union[DataInt, DataBytes, DataList, DataMap, Constr]

NODE_TYPES = (DataInt, DataBytes, DataList, DataMap, Constr)


# =============================================================================
# ENCODING
# =============================================================================

MAX_CONSTR_INDEX = 2 ** 64 - 1
BYTES_CHUNK_SIZE = 64

_MAJOR_MAP = 5
_INDEFINITE_BYTES = b"\x5f"
_INDEFINITE_ARRAY = b"\x9f"
_EMPTY_ARRAY = b"\x80"
_BREAK = b"\xff"


def constr_tag(index: int) -> int:
    """CBOR tag for a constructor index, 102 meaning the general form."""
    if index < 0 or index > MAX_CONSTR_INDEX:
        raise EncodingError(f"Constructor index out of range: {index}")
    if index <= 6:
        return 121 + index
    if index <= 127:
        return 1280 + (index - 7)
    return 102


def _header(major: int, length: int) -> bytes:
    """Definite length header for a CBOR major type."""
    initial = major << 5
    if length < 24:
        return struct.pack(">B", initial | length)
    if length < 0x100:
        return struct.pack(">BB", initial | 24, length)
    if length < 0x10000:
        return struct.pack(">BH", initial | 25, length)
    if length < 0x100000000:
        return struct.pack(">BI", initial | 26, length)
    return struct.pack(">BQ", initial | 27, length)


def _encode_bytes(encoder: cbor2.CBOREncoder, value: bytes) -> None:
    if len(value) <= BYTES_CHUNK_SIZE:
        encoder.encode(value)
        return
    encoder.write(_INDEFINITE_BYTES)
    for start in range(0, len(value), BYTES_CHUNK_SIZE):
        encoder.encode(value[start:start + BYTES_CHUNK_SIZE])
    encoder.write(_BREAK)


def _encode_int(encoder: cbor2.CBOREncoder, value: int) -> None:
    if -(2 ** 64) <= value < 2 ** 64:
        encoder.encode(value)
        return
    if value >= 0:
        tag, magnitude = 2, value
    else:
        tag, magnitude = 3, -1 - value
    payload = magnitude.to_bytes((magnitude.bit_length() + 7) // 8, "big")
    encoder.encode(CBORTag(tag, DataBytes(payload)))


def _encode_child(encoder: cbor2.CBOREncoder, item: Any) -> None:
    # cbor2 would encode plain ints/bytes/lists natively, bypassing the rules
    if not isinstance(item, NODE_TYPES):
        raise EncodingError(f"Not a data node: {type(item).__name__}")
    encoder.encode(item)


def _encode_items(encoder: cbor2.CBOREncoder, items: Tuple[DataNode, ...]) -> None:
    if not items:
        encoder.write(_EMPTY_ARRAY)
        return
    encoder.write(_INDEFINITE_ARRAY)
    for item in items:
        _encode_child(encoder, item)
    encoder.write(_BREAK)


def _encode_node(encoder: cbor2.CBOREncoder, value: Any) -> None:
    """cbor2 default hook applying the ledger rules to each node."""
    if isinstance(value, DataInt):
        _encode_int(encoder, value.value)
    elif isinstance(value, DataBytes):
        _encode_bytes(encoder, value.value)
    elif isinstance(value, DataList):
        _encode_items(encoder, value.items)
    elif isinstance(value, DataMap):
        encoder.write(_header(_MAJOR_MAP, len(value.entries)))
        for key, item in value.entries:
            _encode_child(encoder, key)
            _encode_child(encoder, item)
    elif isinstance(value, Constr):
        tag = constr_tag(value.index)
        if tag == 102:
            encoder.encode(CBORTag(102, [value.index, DataList(value.fields)]))
        else:
            encoder.encode(CBORTag(tag, DataList(value.fields)))
    else:
        raise EncodingError(f"Not a data node: {type(value).__name__}")


def encode(node: DataNode) -> bytes:
    """Encode a data node to its ledger CBOR bytes."""
    if not isinstance(node, NODE_TYPES):
        raise EncodingError(f"Not a data node: {type(node).__name__}")
    try:
        return cbor2.dumps(node, default=_encode_node)
    except CBOREncodeError as exc:
        raise EncodingError(str(exc)) from exc


def encode_hex(node: DataNode) -> str:
    return encode(node).hex()


# =============================================================================
# DECODING
# =============================================================================

# Deeper input is rejected rather than exhausting the interpreter stack
MAX_DEPTH = 128

_MAJOR_ARRAY = 4
_MAJOR_TAG = 6
_BIGNUM_TAGS = (2, 3)
_INDEFINITE = 31


def _constr_index(tag: int) -> int:
    if 121 <= tag <= 127:
        return tag - 121
    if 1280 <= tag <= 1400:
        return tag - 1280 + 7
    raise FormatError(f"Unsupported CBOR tag: {tag}")


class _DataReader:
    """
    Walks arrays, maps and tags itself and hands leaves to cbor2.

    cbor2 collects maps into a dict, which would drop repeated keys and the
    entry order the ledger hashes over.
    """

    def __init__(self, data: bytes):
        self.decoder = cbor2.CBORDecoder(BytesIO(data))
        self.depth = 0

    def _initial(self) -> int:
        return self.decoder.read(1)[0]

    def at_end(self) -> bool:
        try:
            self.decoder.read(1)
        except CBORDecodeEOF:
            return True
        return False

    def _length(self, subtype: int) -> Optional[int]:
        if subtype == _INDEFINITE:
            return None
        return self.decoder.decode_uint(subtype)

    def _items(self, length: Optional[int]) -> Tuple[DataNode, ...]:
        if length is not None:
            return tuple(self.node() for _ in range(length))
        items = []
        initial = self._initial()
        while initial != _BREAK[0]:
            items.append(self.node(initial))
            initial = self._initial()
        return tuple(items)

    def _entries(self, length: Optional[int]) -> Tuple[Tuple[DataNode, DataNode], ...]:
        if length is not None:
            return tuple((self.node(), self.node()) for _ in range(length))
        entries = []
        initial = self._initial()
        while initial != _BREAK[0]:
            entries.append((self.node(initial), self.node()))
            initial = self._initial()
        return tuple(entries)

    def _fields(self) -> Tuple[DataNode, ...]:
        fields = self.node()
        if not isinstance(fields, DataList):
            raise FormatError("Constructor fields must be a list")
        return fields.items

    def _bignum(self, tag: int) -> DataInt:
        magnitude = self.node()
        if not isinstance(magnitude, DataBytes):
            raise FormatError("Bignum payload must be a byte string")
        value = int.from_bytes(magnitude.value, "big")
        return DataInt(value if tag == 2 else -1 - value)

    def _constr(self, tag: int) -> Constr:
        if tag != 102:
            index = _constr_index(tag)
            return Constr(index, self._fields())
        initial = self._initial()
        if initial >> 5 != _MAJOR_ARRAY or self._length(initial & 31) != 2:
            raise FormatError("Malformed general constructor")
        index = self.node()
        if not isinstance(index, DataInt) or index.value < 0:
            raise FormatError(f"Invalid constructor index: {index!r}")
        return Constr(index.value, self._fields())

    def node(self, initial: Optional[int] = None) -> DataNode:
        if self.depth >= MAX_DEPTH:
            raise FormatError(f"Data nested deeper than {MAX_DEPTH} levels")
        if initial is None:
            initial = self._initial()
        major, subtype = initial >> 5, initial & 31
        self.depth += 1
        try:
            if major == 0:
                return DataInt(self.decoder.decode_uint(subtype))
            if major == 1:
                return DataInt(self.decoder.decode_negint(subtype))
            if major == 2:
                return DataBytes(self.decoder.decode_bytestring(subtype))
            if major == _MAJOR_ARRAY:
                return DataList(self._items(self._length(subtype)))
            if major == _MAJOR_MAP:
                return DataMap(self._entries(self._length(subtype)))
            if major == _MAJOR_TAG:
                tag = self.decoder.decode_uint(subtype)
                if tag in _BIGNUM_TAGS:
                    return self._bignum(tag)
                return self._constr(tag)
            raise FormatError(f"Unsupported CBOR item: 0x{initial:02x}")
        finally:
            self.depth -= 1


def decode(data: bytes) -> DataNode:
    """Decode ledger CBOR bytes into a data node."""
    if not data:
        raise FormatError("Empty input")
    reader = _DataReader(bytes(data))
    try:
        node = reader.node()
        complete = reader.at_end()
    except CBORDecodeError as exc:
        raise FormatError(f"Invalid CBOR: {exc}") from exc
    if not complete:
        raise FormatError("Trailing bytes after data")
    return node


def decode_hex(text: str) -> DataNode:
    try:
        data = bytes.fromhex(text)
    except ValueError as exc:
        raise FormatError(f"Invalid hex: {exc}") from exc
    return decode(data)
