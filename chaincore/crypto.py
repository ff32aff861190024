"""
chaincore Cryptographic Primitives
Hashes, ECDSA secp256k1 (sign / verify / recover), Ed25519, WIF and BIP39.
"""

import hashlib
import hmac
import secrets
from typing import Optional, Tuple

from Crypto.Hash import keccak
from ecdsa import SECP256k1, SigningKey, VerifyingKey, BadSignatureError, MalformedPointError
from ecdsa import ellipticcurve
from ecdsa.der import UnexpectedDER
from ecdsa.numbertheory import inverse_mod
from ecdsa.util import sigencode_der, sigdecode_der, sigdecode_string
from mnemonic import Mnemonic
from nacl.exceptions import BadSignatureError as Ed25519BadSignature
from nacl.signing import SigningKey as Ed25519SigningKey, VerifyKey as Ed25519VerifyKey

import config
from .encoding import base58check_encode, base58check_decode
from .exceptions import InvalidKey, InvalidPrefix, InvalidSeed, RecoveryFailed

# Curve parameters for secp256k1
CURVE_ORDER = SECP256k1.order
CURVE_P = SECP256k1.curve.p()
HALF_ORDER = CURVE_ORDER // 2


# ============================================================================
# HASHING FUNCTIONS
# ============================================================================

def sha256(data: bytes) -> bytes:
    """Single SHA-256 hash."""
    return hashlib.sha256(data).digest()


def sha256d(data: bytes) -> bytes:
    """
    Double SHA-256 hash (Bitcoin-style).
    Used for txids, BIP143 intermediate hashes and Base58Check checksums.
    """
    return sha256(sha256(data))


def sha512(data: bytes) -> bytes:
    """SHA-512 hash."""
    return hashlib.sha512(data).digest()


def ripemd160(data: bytes) -> bytes:
    """RIPEMD-160 hash, via pycryptodome where OpenSSL no longer ships it."""
    try:
        h = hashlib.new('ripemd160')
        h.update(data)
        return h.digest()
    except ValueError:
        # OpenSSL 3.0 moved ripemd160 to the legacy provider
        from Crypto.Hash import RIPEMD160
        return RIPEMD160.new(data).digest()


def hash160(data: bytes) -> bytes:
    """
    HASH160 = RIPEMD160(SHA256(data))
    Used for Bitcoin addresses and BIP32 fingerprints.
    """
    return ripemd160(sha256(data))


def keccak256(data: bytes) -> bytes:
    """Keccak-256 (the pre-standard SHA-3 padding Ethereum uses)."""
    return keccak.new(digest_bits=256, data=data).digest()


def hmac_sha512(key: bytes, data: bytes) -> bytes:
    """HMAC-SHA512."""
    return hmac.new(key, data, hashlib.sha512).digest()


# ============================================================================
# ECDSA SECP256K1
# ============================================================================

def _check_private_key(private_key: bytes) -> int:
    if len(private_key) != 32:
        raise InvalidKey(f"Private key must be 32 bytes, got {len(private_key)}")
    secexp = int.from_bytes(private_key, 'big')
    if not 0 < secexp < CURVE_ORDER:
        raise InvalidKey("Private key out of range")
    return secexp


def _signing_key(private_key: bytes) -> SigningKey:
    _check_private_key(private_key)
    return SigningKey.from_string(bytes(private_key), curve=SECP256k1)


def _verifying_key(public_key: bytes) -> VerifyingKey:
    try:
        return VerifyingKey.from_string(bytes(public_key), curve=SECP256k1)
    except (MalformedPointError, ValueError) as e:
        raise InvalidKey(f"Invalid public key: {e}")


def _encode_point(x: int, y: int, compressed: bool) -> bytes:
    if compressed:
        prefix = b'\x02' if y % 2 == 0 else b'\x03'
        return prefix + x.to_bytes(32, 'big')
    return b'\x04' + x.to_bytes(32, 'big') + y.to_bytes(32, 'big')


def is_valid_private_key(private_key: bytes) -> bool:
    try:
        _check_private_key(private_key)
        return True
    except InvalidKey:
        return False


def generate_private_key() -> bytes:
    """Generate a random private key uniformly in [1, n-1]."""
    while True:
        candidate = secrets.token_bytes(32)
        if is_valid_private_key(candidate):
            return candidate


def private_key_to_public_key(private_key: bytes, compressed: bool = True) -> bytes:
    """
    Derive public key from private key.

    Args:
        private_key: 32-byte private key
        compressed: If True, return 33-byte compressed public key

    Returns:
        Public key bytes (33 or 65 bytes SEC1)
    """
    vk = _signing_key(private_key).get_verifying_key()
    return vk.to_string('compressed' if compressed else 'uncompressed')


def generate_keypair(compressed: bool = True) -> Tuple[bytes, bytes]:
    """
    Generate a new ECDSA keypair.

    Returns:
        Tuple of (private_key, public_key)
    """
    private_key = generate_private_key()
    public_key = private_key_to_public_key(private_key, compressed)
    return private_key, public_key


def compress_public_key(public_key: bytes) -> bytes:
    return _verifying_key(public_key).to_string('compressed')


def decompress_public_key(public_key: bytes) -> bytes:
    """Return the 65-byte uncompressed form of a SEC1 public key."""
    return _verifying_key(public_key).to_string('uncompressed')


def point_add_generator(public_key: bytes, tweak: int) -> bytes:
    """
    Compute tweak*G + P for a SEC1 public key P (BIP32 public derivation).

    Raises:
        InvalidKey: If the result is the point at infinity
    """
    parent = _verifying_key(public_key).pubkey.point
    child = SECP256k1.generator * tweak + parent
    if child == ellipticcurve.INFINITY:
        raise InvalidKey("Tweaked public key is the point at infinity")
    child = child.to_affine()
    return _encode_point(child.x(), child.y(), True)


def _raw_sign(message_hash: bytes, private_key: bytes) -> Tuple[int, int]:
    if len(message_hash) != 32:
        raise ValueError("Message hash must be 32 bytes")
    sk = _signing_key(private_key)
    r, s = sk.sign_digest_deterministic(
        message_hash,
        hashfunc=hashlib.sha256,
        sigencode=lambda r, s, order: (r, s),
    )
    # Low-S normalisation
    if s > HALF_ORDER:
        s = CURVE_ORDER - s
    return r, s


def sign(message_hash: bytes, private_key: bytes) -> bytes:
    """
    Sign a 32-byte digest with RFC 6979 deterministic nonces.

    Returns:
        64-byte compact signature r || s with low S
    """
    r, s = _raw_sign(message_hash, private_key)
    return r.to_bytes(32, 'big') + s.to_bytes(32, 'big')


def sign_recoverable(message_hash: bytes, private_key: bytes) -> Tuple[bytes, int]:
    """
    Sign a digest and find the recovery id that yields the signer's key.

    Returns:
        Tuple of (64-byte signature, recovery id 0-3)
    """
    signature = sign(message_hash, private_key)
    public_key = private_key_to_public_key(private_key)

    for recovery_id in range(4):
        try:
            candidate = recover_public_key(signature, recovery_id, message_hash)
        except RecoveryFailed:
            continue
        if candidate == public_key:
            return signature, recovery_id

    raise RecoveryFailed("No recovery id reproduces the signing key")


def verify(signature: bytes, message_hash: bytes, public_key: bytes) -> bool:
    """
    Verify a 64-byte compact signature against a 32-byte digest.

    Args:
        signature: r || s
        message_hash: Signed digest
        public_key: Public key (compressed or uncompressed)

    Returns:
        True if signature is valid
    """
    if len(signature) != 64:
        return False
    try:
        vk = _verifying_key(public_key)
        return vk.verify_digest(bytes(signature), bytes(message_hash), sigdecode=sigdecode_string)
    except (BadSignatureError, InvalidKey):
        return False


def recover_public_key(signature: bytes, recovery_id: int, message_hash: bytes,
                       compressed: bool = True) -> bytes:
    """
    Recover the signer's public key (SEC1 4.1.6).

    Args:
        signature: 64-byte r || s
        recovery_id: 0-3; bit 0 is R.y parity, bit 1 selects x = r + n
        message_hash: 32-byte digest that was signed
        compressed: Output format

    Raises:
        RecoveryFailed: On out-of-range input or a point off the curve
    """
    if len(signature) != 64 or len(message_hash) != 32:
        raise RecoveryFailed("Signature must be 64 bytes and hash 32 bytes")
    if recovery_id not in (0, 1, 2, 3):
        raise RecoveryFailed(f"Invalid recovery id: {recovery_id}")

    r = int.from_bytes(signature[:32], 'big')
    s = int.from_bytes(signature[32:], 'big')
    if not (0 < r < CURVE_ORDER and 0 < s < CURVE_ORDER):
        raise RecoveryFailed("Signature values out of range")

    x = r + (recovery_id >> 1) * CURVE_ORDER
    if x >= CURVE_P:
        raise RecoveryFailed("R.x exceeds field size")

    alpha = (pow(x, 3, CURVE_P) + 7) % CURVE_P
    beta = pow(alpha, (CURVE_P + 1) // 4, CURVE_P)
    if beta * beta % CURVE_P != alpha:
        raise RecoveryFailed("R is not on the curve")
    y = beta if beta % 2 == recovery_id & 1 else CURVE_P - beta

    curve = SECP256k1.curve
    generator = SECP256k1.generator
    point_r = ellipticcurve.PointJacobi(curve, x, y, 1, CURVE_ORDER)

    e = int.from_bytes(message_hash, 'big')
    r_inv = inverse_mod(r, CURVE_ORDER)
    q = (point_r * s + generator * ((-e) % CURVE_ORDER)) * r_inv

    if q == ellipticcurve.INFINITY:
        raise RecoveryFailed("Recovered point at infinity")

    q = q.to_affine()
    return _encode_point(q.x(), q.y(), compressed)


def signature_to_der(signature: bytes) -> bytes:
    """Convert a 64-byte compact signature to DER."""
    r = int.from_bytes(signature[:32], 'big')
    s = int.from_bytes(signature[32:], 'big')
    return sigencode_der(r, s, CURVE_ORDER)


def der_to_signature(der: bytes) -> bytes:
    """Convert a DER signature to 64-byte compact r || s."""
    try:
        r, s = sigdecode_der(der, CURVE_ORDER)
    except UnexpectedDER as e:
        raise InvalidKey(f"Malformed DER signature: {e}")
    return r.to_bytes(32, 'big') + s.to_bytes(32, 'big')


# ============================================================================
# ED25519
# ============================================================================

def ed25519_public_key(seed: bytes) -> bytes:
    """32-byte Ed25519 public key for a 32-byte private seed."""
    if len(seed) != 32:
        raise InvalidKey("Ed25519 seed must be 32 bytes")
    return Ed25519SigningKey(bytes(seed)).verify_key.encode()


def ed25519_sign(message: bytes, seed: bytes) -> bytes:
    """64-byte Ed25519 signature of ``message``."""
    if len(seed) != 32:
        raise InvalidKey("Ed25519 seed must be 32 bytes")
    return Ed25519SigningKey(bytes(seed)).sign(bytes(message)).signature


def ed25519_verify(signature: bytes, message: bytes, public_key: bytes) -> bool:
    if len(signature) != 64 or len(public_key) != 32:
        return False
    try:
        Ed25519VerifyKey(bytes(public_key)).verify(bytes(message), bytes(signature))
        return True
    except Ed25519BadSignature:
        return False


# ============================================================================
# WALLET IMPORT FORMAT
# ============================================================================

def private_key_to_wif(private_key: bytes, network: str = 'mainnet', compressed: bool = True) -> str:
    """
    Encode private key to Wallet Import Format (WIF).

    Args:
        private_key: 32-byte private key
        network: 'mainnet' or 'testnet'
        compressed: If True, indicate compressed public key

    Returns:
        WIF encoded private key
    """
    _check_private_key(private_key)
    version = config.get_bitcoin_network(network)['secret_prefix']
    payload = bytes(private_key)
    if compressed:
        payload = payload + b'\x01'
    return base58check_encode(version, payload)


def wif_to_private_key(wif: str, network: Optional[str] = None) -> Tuple[bytes, bool]:
    """
    Decode WIF to private key.

    Args:
        wif: WIF encoded private key
        network: If given, the version byte must belong to this network

    Returns:
        Tuple of (private_key, compressed)
    """
    version, payload = base58check_decode(wif)

    if network is not None and version != config.get_bitcoin_network(network)['secret_prefix']:
        raise InvalidPrefix(f"WIF version 0x{version:02x} is not {network}")

    if len(payload) == 33 and payload[-1] == 1:
        private_key, compressed = payload[:-1], True
    elif len(payload) == 32:
        private_key, compressed = payload, False
    else:
        raise InvalidKey("Invalid WIF format")

    _check_private_key(private_key)
    return private_key, compressed


# ============================================================================
# BIP39 MNEMONIC SUPPORT
# ============================================================================

_MNEMONIC = Mnemonic("english")


def generate_mnemonic(strength: int = 256) -> str:
    """
    Generate BIP39 mnemonic phrase.

    Args:
        strength: Entropy bits (128, 160, 192, 224, or 256)

    Returns:
        Mnemonic phrase (space-separated words)
    """
    if strength not in [128, 160, 192, 224, 256]:
        raise ValueError("Invalid strength, must be 128, 160, 192, 224, or 256")
    return _MNEMONIC.generate(strength=strength)


def validate_mnemonic(mnemonic: str) -> bool:
    """Check word list membership and the BIP39 checksum."""
    return _MNEMONIC.check(mnemonic)


def mnemonic_to_seed(mnemonic: str, passphrase: str = "") -> bytes:
    """
    Convert BIP39 mnemonic to seed.

    Args:
        mnemonic: Mnemonic phrase
        passphrase: Optional passphrase

    Returns:
        512-bit seed

    Raises:
        InvalidSeed: If the mnemonic fails its checksum
    """
    if not validate_mnemonic(mnemonic):
        raise InvalidSeed("Invalid BIP39 mnemonic")
    return Mnemonic.to_seed(mnemonic, passphrase)
