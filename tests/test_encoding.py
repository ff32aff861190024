"""
Tests for chaincore encodings (Base58Check, Bech32, varints, RLP).
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from chaincore import rlp
from chaincore.encoding import (
    BECH32M_CONST,
    base58_encode,
    base58_decode,
    base58check_encode,
    base58check_decode,
    b58decode_check,
    bech32_encode,
    bech32_decode,
    bech32_encode_raw,
    convertbits,
    encode_varint,
    decode_varint,
    encode_shortvec,
    decode_shortvec,
)
from chaincore.exceptions import (
    ChecksumMismatch,
    EncodingError,
    InvalidCharacter,
    InvalidChecksum,
    InvalidLength,
    InvalidPrefix,
    SerializationFailed,
)

G_HASH160 = bytes.fromhex('751e76e8199196d454941c45d1b3a323f1433bd6')


class TestBase58:
    """Test Base58 and Base58Check."""

    def test_encode(self):
        """Test plain Base58 encoding."""
        assert base58_encode(b"hello world") == 'StV1DL6CwTryKyV'
        assert base58_decode('StV1DL6CwTryKyV') == b"hello world"

    def test_leading_zeros(self):
        """Leading zero bytes map to leading '1' characters."""
        assert base58_encode(b'\x00\x00\x01') == '112'
        assert base58_decode('112') == b'\x00\x00\x01'

    def test_invalid_character(self):
        """Test that 0, O, I and l are rejected."""
        for char in '0OIl':
            with pytest.raises(InvalidCharacter):
                base58_decode('abc' + char)

    def test_base58check(self):
        """Test the P2PKH address of G."""
        address = base58check_encode(0x00, G_HASH160)
        assert address == '1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMH'
        assert base58check_decode(address) == (0x00, G_HASH160)

    def test_checksum_mismatch(self):
        """Test that a corrupted character fails the checksum."""
        with pytest.raises(ChecksumMismatch):
            base58check_decode('1BgGZ9tcN4rm9KBzDn7KprQz87SZ26SAMJ')

    def test_too_short(self):
        """Test that strings without room for a checksum fail."""
        with pytest.raises(InvalidLength):
            b58decode_check('1111')


class TestBech32:
    """Test SegWit address encoding."""

    def test_p2wpkh(self):
        """Test the BIP173 P2WPKH vector."""
        address = bech32_encode('bc', 0, G_HASH160)
        assert address == 'bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t4'
        assert bech32_decode('bc', address) == (0, G_HASH160)

    def test_uppercase(self):
        """Test that all-uppercase strings decode."""
        assert bech32_decode('bc', 'BC1QW508D6QEJXTDG4Y5R3ZARVARY0C5XW7KV8F3T4') == (0, G_HASH160)

    def test_mixed_case(self):
        """Test that mixed case is rejected."""
        with pytest.raises(InvalidCharacter):
            bech32_decode('bc', 'bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3T4')

    def test_taproot(self):
        """Test a bech32m witness v1 address."""
        address = 'bc1p0xlxvlhemja6c4dqv22uapctqupfhlxm9h8z3k2e72q4k9hcz7vqzk5jj0'
        witver, program = bech32_decode('bc', address)

        assert witver == 1
        assert program.hex() == '79be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798'
        assert bech32_encode('bc', 1, program) == address

    def test_wrong_hrp(self):
        """Test that a testnet HRP is refused on mainnet."""
        address = bech32_encode('tb', 0, G_HASH160)
        with pytest.raises(InvalidPrefix):
            bech32_decode('bc', address)

    def test_bad_checksum(self):
        """Test a corrupted checksum."""
        with pytest.raises(InvalidChecksum):
            bech32_decode('bc', 'bc1qw508d6qejxtdg4y5r3zarvary0c5xw7kv8f3t5')

    def test_v0_with_bech32m_checksum(self):
        """Version 0 programs must use the original bech32 constant."""
        address = bech32_encode_raw('bc', [0] + convertbits(G_HASH160, 8, 5), BECH32M_CONST)
        with pytest.raises(InvalidChecksum):
            bech32_decode('bc', address)

    def test_bad_program_length(self):
        """Test that v0 programs must be 20 or 32 bytes."""
        with pytest.raises(InvalidLength):
            bech32_encode('bc', 0, b'\x01' * 21)


class TestVarint:
    """Test Bitcoin CompactSize and Solana shortvec."""

    def test_varint_boundaries(self):
        """Test CompactSize at each width boundary."""
        cases = {
            0: '00',
            0xfc: 'fc',
            0xfd: 'fdfd00',
            0xffff: 'fdffff',
            0x10000: 'fe00000100',
            0x100000000: 'ff0000000001000000',
        }
        for value, expected in cases.items():
            assert encode_varint(value).hex() == expected
            assert decode_varint(bytes.fromhex(expected)) == (value, len(expected) // 2)

    def test_varint_offset(self):
        """Test decoding from an offset."""
        assert decode_varint(b'\xaa\xfd\x00\x01', 1) == (0x100, 4)

    def test_varint_truncated(self):
        """Test truncated input."""
        with pytest.raises(InvalidLength):
            decode_varint(b'\xfe\x00')

    def test_shortvec(self):
        """Test compact-u16 encodings."""
        cases = {0: '00', 0x7f: '7f', 0x80: '8001', 0x3fff: 'ff7f', 0x4000: '808001', 0xffff: 'ffff03'}
        for value, expected in cases.items():
            assert encode_shortvec(value).hex() == expected
            assert decode_shortvec(bytes.fromhex(expected)) == (value, len(expected) // 2)

    def test_shortvec_range(self):
        """Test that lengths above u16 are refused."""
        with pytest.raises(EncodingError):
            encode_shortvec(0x10000)


class TestRLP:
    """Test RLP encoding."""

    def test_strings(self):
        """Test string encodings."""
        assert rlp.encode(b'dog').hex() == '83646f67'
        assert rlp.encode(b'').hex() == '80'
        assert rlp.encode(b'\x0f').hex() == '0f'
        assert rlp.encode(b'\x80').hex() == '8180'

    def test_integers(self):
        """Test integer encodings."""
        assert rlp.encode(0).hex() == '80'
        assert rlp.encode(15).hex() == '0f'
        assert rlp.encode(1024).hex() == '820400'

    def test_lists(self):
        """Test list encodings."""
        assert rlp.encode([]).hex() == 'c0'
        assert rlp.encode([b'cat', b'dog']).hex() == 'c88363617483646f67'
        assert rlp.encode([[], [[]], [[], [[]]]]).hex() == 'c7c0c1c0c3c0c1c0'

    def test_long_string(self):
        """Strings of 56+ bytes use a length-of-length prefix."""
        data = b'a' * 56
        encoded = rlp.encode(data)
        assert encoded[:2].hex() == 'b838'
        assert rlp.decode(encoded) == data

    def test_decode(self):
        """Test decoding nested lists."""
        assert rlp.decode(bytes.fromhex('c88363617483646f67')) == [b'cat', b'dog']

    def test_decode_rejects_non_canonical(self):
        """Test that non-canonical encodings are refused."""
        with pytest.raises(SerializationFailed):
            rlp.decode(bytes.fromhex('8105'))
        with pytest.raises(SerializationFailed):
            rlp.decode(bytes.fromhex('b80161'))

    def test_decode_rejects_trailing_bytes(self):
        """Test trailing bytes."""
        with pytest.raises(SerializationFailed):
            rlp.decode(bytes.fromhex('8000'))

    def test_boolean_refused(self):
        """Test that booleans are not silently encoded as ints."""
        with pytest.raises(SerializationFailed):
            rlp.encode(True)

    def test_leading_zero_integer(self):
        """Test that integers with leading zeros are refused."""
        with pytest.raises(SerializationFailed):
            rlp.big_endian_to_int(b'\x00\x01')


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
