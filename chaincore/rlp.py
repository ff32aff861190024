"""
chaincore RLP
Recursive Length Prefix encoding used by Ethereum transactions.
"""

from typing import List, Tuple, Union

from .exceptions import SerializationFailed

RLPItem = Union[bytes, int, str, List['RLPItem']]


def int_to_big_endian(value: int) -> bytes:
    """Minimal big-endian encoding; zero encodes as the empty string."""
    if value < 0:
        raise SerializationFailed("RLP cannot encode negative integers")
    if value == 0:
        return b''
    return value.to_bytes((value.bit_length() + 7) // 8, 'big')


def big_endian_to_int(data: bytes) -> int:
    if not isinstance(data, (bytes, bytearray)):
        raise SerializationFailed("Expected an RLP string, got a list")
    if data[:1] == b'\x00':
        raise SerializationFailed("RLP integer has leading zero bytes")
    return int.from_bytes(data, 'big') if data else 0


def _encode_length(length: int, offset: int) -> bytes:
    if length < 56:
        return bytes([offset + length])
    length_bytes = int_to_big_endian(length)
    return bytes([offset + 55 + len(length_bytes)]) + length_bytes


def encode(item: RLPItem) -> bytes:
    """
    RLP-encode bytes, non-negative ints, hex strings or nested lists.

    A single byte below 0x80 is its own encoding; strings get 0x80+len or
    0xb7+len(len); lists get 0xc0+len or 0xf7+len(len).
    """
    if isinstance(item, (list, tuple)):
        payload = b''.join(encode(element) for element in item)
        return _encode_length(len(payload), 0xc0) + payload

    if isinstance(item, bool):
        raise SerializationFailed("RLP cannot encode booleans")
    if isinstance(item, int):
        item = int_to_big_endian(item)
    elif isinstance(item, str):
        item = bytes.fromhex(item[2:] if item.startswith('0x') else item)
    elif isinstance(item, (bytes, bytearray)):
        item = bytes(item)
    else:
        raise SerializationFailed(f"Cannot RLP-encode {type(item).__name__}")

    if len(item) == 1 and item[0] < 0x80:
        return item
    return _encode_length(len(item), 0x80) + item


def _decode_item(data: bytes, offset: int) -> Tuple[RLPItem, int]:
    if offset >= len(data):
        raise SerializationFailed("Truncated RLP input")

    prefix = data[offset]
    if prefix < 0x80:
        return data[offset:offset + 1], offset + 1

    if prefix < 0xc0:
        is_list = False
        short_base, long_base = 0x80, 0xb7
    else:
        is_list = True
        short_base, long_base = 0xc0, 0xf7

    if prefix <= long_base:
        length = prefix - short_base
        start = offset + 1
    else:
        size = prefix - long_base
        start = offset + 1 + size
        if start > len(data):
            raise SerializationFailed("Truncated RLP length")
        length = big_endian_to_int(data[offset + 1:start])
        if length < 56:
            raise SerializationFailed("Non-canonical RLP long length")

    end = start + length
    if end > len(data):
        raise SerializationFailed("RLP payload exceeds input")

    if not is_list:
        value = data[start:end]
        if length == 1 and value[0] < 0x80:
            raise SerializationFailed("Non-canonical RLP single byte")
        return value, end

    items = []
    position = start
    while position < end:
        element, position = _decode_item(data, position)
        items.append(element)
    if position != end:
        raise SerializationFailed("RLP list length mismatch")
    return items, end


def decode(data: bytes) -> RLPItem:
    """Decode a single RLP item; trailing bytes are an error."""
    item, end = _decode_item(bytes(data), 0)
    if end != len(data):
        raise SerializationFailed("Trailing bytes after RLP item")
    return item
