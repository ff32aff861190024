"""
chaincore Encoders
Base58 / Base58Check, Bech32 / Bech32m, Bitcoin varint and Solana shortvec.
"""

import hashlib
import struct
from typing import List, Optional, Tuple

from .exceptions import (
    ChecksumMismatch,
    EncodingError,
    InvalidCharacter,
    InvalidChecksum,
    InvalidLength,
    InvalidPrefix,
)


# ============================================================================
# BASE58 / BASE58CHECK
# ============================================================================

BASE58_ALPHABET = '123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz'
_BASE58_INDEX = {char: index for index, char in enumerate(BASE58_ALPHABET)}


def base58_encode(data: bytes) -> str:
    """Encode bytes to Base58 (no checksum)."""
    num = int.from_bytes(data, 'big')

    result = ''
    while num > 0:
        num, remainder = divmod(num, 58)
        result = BASE58_ALPHABET[remainder] + result

    # Leading zero bytes map to leading '1's
    for byte in data:
        if byte == 0:
            result = '1' + result
        else:
            break

    return result


def base58_decode(string: str) -> bytes:
    """
    Decode Base58 string to bytes.

    Raises:
        InvalidCharacter: If the string contains a non-alphabet character
    """
    num = 0
    for char in string:
        try:
            num = num * 58 + _BASE58_INDEX[char]
        except KeyError:
            raise InvalidCharacter(f"Invalid Base58 character: {char!r}")

    result = []
    while num > 0:
        result.append(num & 0xff)
        num >>= 8

    for char in string:
        if char == '1':
            result.append(0)
        else:
            break

    return bytes(reversed(result))


def _checksum(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()[:4]


def b58encode_check(data: bytes) -> str:
    """Base58 with a 4-byte double-SHA256 checksum appended."""
    return base58_encode(data + _checksum(data))


def b58decode_check(string: str) -> bytes:
    """
    Decode a Base58Check string and strip its checksum.

    Raises:
        InvalidLength: If there is no room for a checksum
        ChecksumMismatch: If the checksum is wrong
    """
    data = base58_decode(string)

    if len(data) < 5:
        raise InvalidLength("Base58Check string too short")

    payload, checksum = data[:-4], data[-4:]
    if _checksum(payload) != checksum:
        raise ChecksumMismatch("Invalid Base58Check checksum")

    return payload


def base58check_encode(version: int, payload: bytes) -> str:
    """
    Encode data with Base58Check (version byte + payload + checksum).

    Args:
        version: Version byte
        payload: Data to encode

    Returns:
        Base58Check encoded string
    """
    return b58encode_check(bytes([version]) + payload)


def base58check_decode(string: str) -> Tuple[int, bytes]:
    """
    Decode Base58Check string.

    Returns:
        Tuple of (version, payload)
    """
    data = b58decode_check(string)
    return data[0], data[1:]


# ============================================================================
# BECH32 / BECH32M (BIP173, BIP350)
# ============================================================================

BECH32_CHARSET = "qpzry9x8gf2tvdw0s3jn54khce6mua7l"
BECH32_CONST = 1
BECH32M_CONST = 0x2bc830a3
BECH32_MAX_LENGTH = 90

_BECH32_GENERATOR = [0x3b6a57b2, 0x26508e6d, 0x1ea119fa, 0x3d4233dd, 0x2a1462b3]


def bech32_polymod(values: List[int]) -> int:
    chk = 1
    for value in values:
        top = chk >> 25
        chk = (chk & 0x1ffffff) << 5 ^ value
        for i in range(5):
            if (top >> i) & 1:
                chk ^= _BECH32_GENERATOR[i]
    return chk


def bech32_hrp_expand(hrp: str) -> List[int]:
    return [ord(x) >> 5 for x in hrp] + [0] + [ord(x) & 31 for x in hrp]


def bech32_create_checksum(hrp: str, data: List[int], const: int = BECH32_CONST) -> List[int]:
    values = bech32_hrp_expand(hrp) + data
    polymod = bech32_polymod(values + [0] * 6) ^ const
    return [(polymod >> 5 * (5 - i)) & 31 for i in range(6)]


def convertbits(data, frombits: int, tobits: int, pad: bool = True) -> Optional[List[int]]:
    """General power-of-2 base conversion; None on invalid padding."""
    acc = 0
    bits = 0
    ret = []
    maxv = (1 << tobits) - 1
    max_acc = (1 << (frombits + tobits - 1)) - 1
    for value in data:
        if value < 0 or (value >> frombits):
            return None
        acc = ((acc << frombits) | value) & max_acc
        bits += frombits
        while bits >= tobits:
            bits -= tobits
            ret.append((acc >> bits) & maxv)
    if pad:
        if bits:
            ret.append((acc << (tobits - bits)) & maxv)
    elif bits >= frombits or ((acc << (tobits - bits)) & maxv):
        return None
    return ret


def bech32_encode_raw(hrp: str, data: List[int], const: int = BECH32_CONST) -> str:
    combined = data + bech32_create_checksum(hrp, data, const)
    return hrp + '1' + ''.join(BECH32_CHARSET[d] for d in combined)


def bech32_decode_raw(bech: str) -> Tuple[str, List[int], int]:
    """
    Split a bech32/bech32m string into (hrp, 5-bit data, checksum constant).

    Raises:
        InvalidCharacter: Mixed case or characters outside the charset
        InvalidLength: Missing separator, short checksum or over-long string
        InvalidChecksum: Neither bech32 nor bech32m checksum verifies
    """
    if any(ord(x) < 33 or ord(x) > 126 for x in bech):
        raise InvalidCharacter("Bech32 string contains non-printable characters")
    if bech.lower() != bech and bech.upper() != bech:
        raise InvalidCharacter("Mixed case not allowed in bech32")

    bech = bech.lower()
    pos = bech.rfind('1')
    if pos < 1 or pos + 7 > len(bech) or len(bech) > BECH32_MAX_LENGTH:
        raise InvalidLength("Invalid bech32 separator position or length")
    if not all(x in BECH32_CHARSET for x in bech[pos + 1:]):
        raise InvalidCharacter("Invalid bech32 data character")

    hrp = bech[:pos]
    data = [BECH32_CHARSET.find(x) for x in bech[pos + 1:]]
    const = bech32_polymod(bech32_hrp_expand(hrp) + data)
    if const not in (BECH32_CONST, BECH32M_CONST):
        raise InvalidChecksum("Invalid bech32 checksum")

    return hrp, data[:-6], const


def _check_witness_program(witver: int, program: bytes) -> None:
    if witver < 0 or witver > 16:
        raise EncodingError(f"Invalid witness version: {witver}")
    if len(program) < 2 or len(program) > 40:
        raise InvalidLength(f"Witness program must be 2-40 bytes, got {len(program)}")
    if witver == 0 and len(program) not in (20, 32):
        raise InvalidLength(f"Version 0 witness program must be 20 or 32 bytes, got {len(program)}")


def bech32_encode(hrp: str, witver: int, witprog: bytes) -> str:
    """
    Encode a SegWit address.

    Version 0 programs use the bech32 checksum, later versions bech32m.
    """
    _check_witness_program(witver, witprog)
    const = BECH32_CONST if witver == 0 else BECH32M_CONST
    return bech32_encode_raw(hrp, [witver] + convertbits(witprog, 8, 5), const)


def bech32_decode(hrp: str, address: str) -> Tuple[int, bytes]:
    """
    Decode a SegWit address.

    Args:
        hrp: Expected human-readable part ('bc', 'tb', ...)
        address: Address string

    Returns:
        Tuple of (witness version, witness program)
    """
    hrpgot, data, const = bech32_decode_raw(address)
    if hrpgot != hrp:
        raise InvalidPrefix(f"Expected HRP {hrp!r}, got {hrpgot!r}")
    if not data:
        raise InvalidLength("Empty witness data")

    witver = data[0]
    decoded = convertbits(data[1:], 5, 8, False)
    if decoded is None:
        raise InvalidLength("Invalid witness program padding")

    program = bytes(decoded)
    _check_witness_program(witver, program)

    expected = BECH32_CONST if witver == 0 else BECH32M_CONST
    if const != expected:
        raise InvalidChecksum("Checksum variant does not match witness version")

    return witver, program


# ============================================================================
# VARINTS
# ============================================================================

def encode_varint(n: int) -> bytes:
    """Encode integer as Bitcoin varint (CompactSize)."""
    if n < 0:
        raise EncodingError("Varint cannot be negative")
    if n < 0xfd:
        return bytes([n])
    elif n <= 0xffff:
        return b'\xfd' + struct.pack('<H', n)
    elif n <= 0xffffffff:
        return b'\xfe' + struct.pack('<I', n)
    else:
        return b'\xff' + struct.pack('<Q', n)


def decode_varint(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """
    Decode a Bitcoin varint.

    Returns:
        Tuple of (value, offset after the varint)
    """
    if offset >= len(data):
        raise InvalidLength("Truncated varint")
    prefix = data[offset]
    if prefix < 0xfd:
        return prefix, offset + 1

    size, fmt = {0xfd: (2, '<H'), 0xfe: (4, '<I'), 0xff: (8, '<Q')}[prefix]
    end = offset + 1 + size
    if end > len(data):
        raise InvalidLength("Truncated varint")
    return struct.unpack(fmt, data[offset + 1:end])[0], end


def encode_shortvec(n: int) -> bytes:
    """Encode a length as Solana compact-u16 (7 bits per byte, LSB first)."""
    if n < 0 or n > 0xffff:
        raise EncodingError(f"Shortvec length out of range: {n}")
    out = bytearray()
    while True:
        byte = n & 0x7f
        n >>= 7
        if n:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_shortvec(data: bytes, offset: int = 0) -> Tuple[int, int]:
    """
    Decode a Solana compact-u16.

    Returns:
        Tuple of (value, offset after the encoding)
    """
    value = 0
    for i in range(3):
        if offset + i >= len(data):
            raise InvalidLength("Truncated shortvec")
        byte = data[offset + i]
        value |= (byte & 0x7f) << (7 * i)
        if not byte & 0x80:
            return value, offset + i + 1
    raise EncodingError("Shortvec longer than 3 bytes")
