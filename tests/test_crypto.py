"""
Tests for chaincore crypto primitives.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from chaincore.crypto import (
    HALF_ORDER,
    CURVE_ORDER,
    sha256,
    sha256d,
    ripemd160,
    hash160,
    keccak256,
    generate_keypair,
    is_valid_private_key,
    private_key_to_public_key,
    compress_public_key,
    decompress_public_key,
    sign,
    sign_recoverable,
    verify,
    recover_public_key,
    signature_to_der,
    der_to_signature,
    ed25519_public_key,
    ed25519_sign,
    ed25519_verify,
    private_key_to_wif,
    wif_to_private_key,
    generate_mnemonic,
    validate_mnemonic,
    mnemonic_to_seed,
)
from chaincore.exceptions import InvalidKey, InvalidPrefix, InvalidSeed, RecoveryFailed

KEY_ONE = (1).to_bytes(32, 'big')
G_COMPRESSED = bytes.fromhex('0279be667ef9dcbbac55a06295ce870b07029bfcdb2dce28d959f2815b16f81798')

TREZOR_MNEMONIC = 'abandon ' * 11 + 'about'


class TestHashing:
    """Test hashing functions."""

    def test_sha256(self):
        """Test SHA-256 against the FIPS vector."""
        assert sha256(b"abc").hex() == 'ba7816bf8f01cfea414140de5dae2223b00361a396177a9cb410ff61f20015ad'

    def test_sha256d(self):
        """Test double SHA-256 hashing."""
        data = b"chaincore"
        assert sha256d(data) == sha256(sha256(data))
        assert sha256d(data) != sha256(data)

    def test_ripemd160(self):
        """Test RIPEMD-160 of the empty string."""
        assert ripemd160(b"").hex() == '9c1185a5c5e9fc54612808977ee8f548b2258d31'

    def test_hash160(self):
        """Test HASH160 of the generator point."""
        assert hash160(G_COMPRESSED).hex() == '751e76e8199196d454941c45d1b3a323f1433bd6'

    def test_keccak256(self):
        """Keccak-256 is the pre-standard padding, not SHA3-256."""
        assert keccak256(b"").hex() == 'c5d2460186f7233c927e7db2dcc703c0e500b653ca82273b7bfad8045d85a470'


class TestKeys:
    """Test secp256k1 key handling."""

    def test_public_key_of_one_is_generator(self):
        """Test that private key 1 yields G."""
        assert private_key_to_public_key(KEY_ONE) == G_COMPRESSED

    def test_uncompressed_round_trip(self):
        """Test compress/decompress round trip."""
        _, public_key = generate_keypair()
        full = decompress_public_key(public_key)

        assert len(full) == 65
        assert full[0] == 4
        assert compress_public_key(full) == public_key

    def test_private_key_range(self):
        """Test private key range checks."""
        assert is_valid_private_key(KEY_ONE)
        assert not is_valid_private_key(bytes(32))
        assert not is_valid_private_key(CURVE_ORDER.to_bytes(32, 'big'))
        assert not is_valid_private_key(b'\x01' * 31)

    def test_zero_key_rejected(self):
        """Test that the zero key cannot be used."""
        with pytest.raises(InvalidKey):
            private_key_to_public_key(bytes(32))

    def test_invalid_public_key(self):
        """Test that an off-curve point is rejected."""
        with pytest.raises(InvalidKey):
            compress_public_key(b'\x02' + b'\xff' * 32)


class TestSigning:
    """Test ECDSA signing."""

    def test_sign_and_verify(self):
        """Test signing and verification."""
        private_key, public_key = generate_keypair()
        digest = sha256(b"message")
        signature = sign(digest, private_key)

        assert len(signature) == 64
        assert verify(signature, digest, public_key)
        assert not verify(signature, sha256(b"other"), public_key)

    def test_deterministic(self):
        """Test that RFC 6979 signing is deterministic."""
        digest = sha256(b"deterministic")
        assert sign(digest, KEY_ONE) == sign(digest, KEY_ONE)

    def test_low_s(self):
        """Test that S is always in the lower half of the order."""
        private_key, _ = generate_keypair()
        for i in range(10):
            signature = sign(sha256(bytes([i])), private_key)
            assert int.from_bytes(signature[32:], 'big') <= HALF_ORDER

    def test_wrong_digest_length(self):
        """Test that only 32-byte digests are signed."""
        with pytest.raises(ValueError):
            sign(b"short", KEY_ONE)

    def test_recover_public_key(self):
        """Test public key recovery from a recoverable signature."""
        private_key, public_key = generate_keypair()
        digest = sha256(b"recover me")
        signature, recovery_id = sign_recoverable(digest, private_key)

        assert recovery_id in (0, 1, 2, 3)
        assert recover_public_key(signature, recovery_id, digest) == public_key
        uncompressed = recover_public_key(signature, recovery_id, digest, compressed=False)
        assert uncompressed == decompress_public_key(public_key)

    def test_recover_rejects_bad_input(self):
        """Test recovery input checks."""
        digest = sha256(b"x")
        with pytest.raises(RecoveryFailed):
            recover_public_key(bytes(64), 0, digest)
        with pytest.raises(RecoveryFailed):
            recover_public_key(b'\x01' * 64, 4, digest)

    def test_der_round_trip(self):
        """Test compact <-> DER conversion."""
        signature = sign(sha256(b"der"), KEY_ONE)
        der = signature_to_der(signature)

        assert der[0] == 0x30
        assert der_to_signature(der) == signature

    def test_malformed_der(self):
        """Test that malformed DER is rejected."""
        with pytest.raises(InvalidKey):
            der_to_signature(b'\x30\x01\x00')


class TestEd25519:
    """Test Ed25519 against RFC 8032 test 1."""

    SECRET = bytes.fromhex('9d61b19deffd5a60ba844af492ec2cc44449c5697b326919703bac031cae7f60')
    PUBLIC = bytes.fromhex('d75a980182b10ab7d54bfed3c964073a0ee172f3daa62325af021a68f707511a')
    SIGNATURE = bytes.fromhex(
        'e5564300c360ac729086e2cc806e828a84877f1eb8e5d974d873e065224901555fb8821590a33bacc61e39701cf9b46bd25bf5f0595bbe24655141438e7a100b'
    )

    def test_public_key(self):
        """Test public key derivation."""
        assert ed25519_public_key(self.SECRET) == self.PUBLIC

    def test_sign(self):
        """Test signing the empty message."""
        assert ed25519_sign(b"", self.SECRET) == self.SIGNATURE

    def test_verify(self):
        """Test verification."""
        assert ed25519_verify(self.SIGNATURE, b"", self.PUBLIC)
        assert not ed25519_verify(self.SIGNATURE, b"x", self.PUBLIC)
        assert not ed25519_verify(self.SIGNATURE[:63], b"", self.PUBLIC)

    def test_seed_length(self):
        """Test seed length check."""
        with pytest.raises(InvalidKey):
            ed25519_public_key(b'\x01' * 31)


class TestWIF:
    """Test Wallet Import Format."""

    def test_compressed(self):
        """Test WIF encoding with compression flag."""
        wif = private_key_to_wif(KEY_ONE)
        assert wif == 'KwDiBf89QgGbjEhKnhXJuH7LrciVrZi3qYjgd9M7rFU73sVHnoWn'
        assert wif_to_private_key(wif) == (KEY_ONE, True)

    def test_uncompressed(self):
        """Test WIF encoding without compression flag."""
        wif = private_key_to_wif(KEY_ONE, compressed=False)
        assert wif == '5HpHagT65TZzG1PH3CSu63k8DbpvD8s5ip4nEB3kEsreAnchuDf'
        assert wif_to_private_key(wif) == (KEY_ONE, False)

    def test_network_check(self):
        """Test that a mainnet WIF is refused as testnet."""
        wif = private_key_to_wif(KEY_ONE)
        with pytest.raises(InvalidPrefix):
            wif_to_private_key(wif, network='testnet')

    def test_testnet_round_trip(self):
        """Test testnet WIF."""
        wif = private_key_to_wif(KEY_ONE, network='testnet')
        assert wif.startswith('c')
        assert wif_to_private_key(wif, network='testnet') == (KEY_ONE, True)


class TestMnemonic:
    """Test BIP39 mnemonics."""

    def test_generate(self):
        """Test mnemonic generation."""
        mnemonic = generate_mnemonic(128)
        assert len(mnemonic.split()) == 12
        assert validate_mnemonic(mnemonic)

        assert len(generate_mnemonic().split()) == 24

    def test_invalid_strength(self):
        """Test invalid entropy size."""
        with pytest.raises(ValueError):
            generate_mnemonic(100)

    def test_seed_vector(self):
        """Test the reference seed with passphrase TREZOR."""
        seed = mnemonic_to_seed(TREZOR_MNEMONIC, "TREZOR")
        assert seed.hex() == (
            'c55257c360c07c72029aebc1b53c05ed0362ada38ead3e3e9efa3708e5349553'
            '1f09a6987599d18264c1e1c92f2cf141630c7a3c4ab7c81b2f001698e7463b04'
        )

    def test_bad_checksum(self):
        """Test that a mnemonic with a bad checksum is refused."""
        bad = 'abandon ' * 12
        assert not validate_mnemonic(bad.strip())
        with pytest.raises(InvalidSeed):
            mnemonic_to_seed(bad.strip())


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
