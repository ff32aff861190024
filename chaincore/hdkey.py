"""
chaincore Hierarchical Key Derivation
BIP32 (secp256k1) and SLIP-0010 (ed25519) extended keys, BIP44 paths.
"""

import logging
import re
import struct
from dataclasses import dataclass, field, replace
from typing import List, Optional

import config
from .crypto import (
    CURVE_ORDER,
    ed25519_public_key,
    hash160,
    hmac_sha512,
    point_add_generator,
    private_key_to_public_key,
    compress_public_key,
)
from .encoding import b58decode_check, b58encode_check
from .exceptions import (
    DerivationFailed,
    EncodingError,
    InvalidExtendedKey,
    InvalidKey,
    InvalidPath,
    InvalidSeed,
)
from .secure import secure_zero

logger = logging.getLogger(__name__)

CURVE_SECP256K1 = 'secp256k1'
CURVE_ED25519 = 'ed25519'

EXTENDED_KEY_LENGTH = 78
MAX_DEPTH = 255  # depth is a single byte in serialized keys

# ASCII digits only; str.isdigit() also accepts superscripts and other scripts
_PATH_LEVEL = re.compile(r"([0-9]+)(['hH]?)", re.ASCII)

_VERSION_LOOKUP = {version: key for key, version in config.BIP32_VERSIONS.items()}


# ============================================================================
# EXTENDED KEY
# ============================================================================

@dataclass(frozen=True)
class ExtendedKey:
    """
    BIP32 / SLIP-0010 extended key.

    ``private_key`` and ``chain_code`` are bytearrays so ``wipe()`` can
    overwrite them; ``private_key`` is None for public-only keys. For
    ed25519 keys ``public_key`` is ``0x00 || pub32``.
    """
    public_key: bytes
    chain_code: bytearray = field(repr=False)
    private_key: Optional[bytearray] = field(default=None, repr=False)
    depth: int = 0
    parent_fingerprint: bytes = b'\x00\x00\x00\x00'
    child_index: int = 0
    curve: str = CURVE_SECP256K1

    @property
    def is_private(self) -> bool:
        return self.private_key is not None

    @property
    def is_hardened(self) -> bool:
        return self.child_index >= config.HARDENED_OFFSET

    @property
    def identifier(self) -> bytes:
        return hash160(self.public_key)

    @property
    def fingerprint(self) -> bytes:
        """First 4 bytes of HASH160 of the public key."""
        return self.identifier[:4]

    @property
    def raw_public_key(self) -> bytes:
        """Public key without the ed25519 0x00 marker byte."""
        if self.curve == CURVE_ED25519:
            return self.public_key[1:]
        return self.public_key

    def neuter(self) -> 'ExtendedKey':
        """Public-only copy of this key."""
        if self.curve != CURVE_SECP256K1:
            raise DerivationFailed("ed25519 keys have no public derivation")
        return replace(self, private_key=None, chain_code=bytearray(self.chain_code))

    def wipe(self) -> None:
        """Overwrite private key and chain code with zeros."""
        secure_zero(self.private_key)
        secure_zero(self.chain_code)

    def __enter__(self) -> 'ExtendedKey':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.wipe()

    def derive_child(self, index: int, hardened: bool = False) -> 'ExtendedKey':
        return derive_child(self, index, hardened)

    def derive_path(self, path: str) -> 'ExtendedKey':
        return derive_from_path(self, path)

    def serialize(self, is_private: Optional[bool] = None, network: str = 'mainnet') -> str:
        if is_private is None:
            is_private = self.is_private
        return serialize_extended_key(self, is_private, network)


# ============================================================================
# MASTER KEYS
# ============================================================================

def _check_seed(seed: bytes) -> None:
    if not config.MIN_SEED_LENGTH <= len(seed) <= config.MAX_SEED_LENGTH:
        raise InvalidSeed(
            f"Seed must be {config.MIN_SEED_LENGTH}-{config.MAX_SEED_LENGTH} bytes, got {len(seed)}"
        )


def master_key_from_seed(seed: bytes) -> ExtendedKey:
    """
    Create BIP32 master key from seed.

    Args:
        seed: 16-64 byte seed (typically the 64-byte BIP39 seed)

    Returns:
        Master ExtendedKey

    Raises:
        InvalidSeed: Bad seed length, or the derived key is zero or >= n
    """
    _check_seed(seed)

    I = hmac_sha512(config.BIP32_SEED_KEY, bytes(seed))
    key_int = int.from_bytes(I[:32], 'big')
    if key_int == 0 or key_int >= CURVE_ORDER:
        raise InvalidSeed("Seed produces an invalid master key")

    private_key = bytearray(I[:32])
    logger.debug("Derived secp256k1 master key")
    return ExtendedKey(
        public_key=private_key_to_public_key(bytes(private_key)),
        chain_code=bytearray(I[32:]),
        private_key=private_key,
    )


def ed25519_master_key_from_seed(seed: bytes) -> ExtendedKey:
    """SLIP-0010 ed25519 master key (HMAC key ``b"ed25519 seed"``)."""
    _check_seed(seed)

    I = hmac_sha512(config.SLIP10_ED25519_SEED_KEY, bytes(seed))
    private_key = bytearray(I[:32])
    logger.debug("Derived ed25519 master key")
    return ExtendedKey(
        public_key=b'\x00' + ed25519_public_key(bytes(private_key)),
        chain_code=bytearray(I[32:]),
        private_key=private_key,
        curve=CURVE_ED25519,
    )


# ============================================================================
# CHILD DERIVATION
# ============================================================================

def _normalize_index(index: int, hardened: bool) -> int:
    if index < 0 or index > 0xffffffff:
        raise InvalidPath(f"Child index out of range: {index}")
    if hardened:
        index |= config.HARDENED_OFFSET
    return index


def derive_child(parent: ExtendedKey, index: int, hardened: bool = False) -> ExtendedKey:
    """
    Derive child key (BIP32 CKDpriv / CKDpub, SLIP-0010 for ed25519).

    Args:
        parent: Parent extended key
        index: Child index; values >= 2^31 are hardened regardless of ``hardened``
        hardened: Add the hardened offset to ``index``

    Returns:
        Child ExtendedKey

    Raises:
        DerivationFailed: IL >= n, zero child key, hardened from public parent,
            or depth past 255
        InvalidPath: Non-hardened ed25519 child
    """
    index = _normalize_index(index, hardened)
    is_hardened = index >= config.HARDENED_OFFSET
    if parent.depth >= MAX_DEPTH:
        raise DerivationFailed(f"Cannot derive below depth {MAX_DEPTH}")

    if parent.curve == CURVE_ED25519:
        return _derive_ed25519_child(parent, index, is_hardened)

    if is_hardened:
        if not parent.is_private:
            raise DerivationFailed("Cannot derive hardened child from public key")
        data = b'\x00' + bytes(parent.private_key) + struct.pack('>I', index)
    else:
        data = parent.public_key + struct.pack('>I', index)

    I = hmac_sha512(bytes(parent.chain_code), data)
    il = int.from_bytes(I[:32], 'big')
    if il >= CURVE_ORDER:
        raise DerivationFailed(f"Invalid child key at index {index}")

    if parent.is_private:
        child_int = (il + int.from_bytes(parent.private_key, 'big')) % CURVE_ORDER
        if child_int == 0:
            raise DerivationFailed(f"Child key is zero at index {index}")
        private_key = bytearray(child_int.to_bytes(32, 'big'))
        public_key = private_key_to_public_key(bytes(private_key))
    else:
        private_key = None
        try:
            public_key = point_add_generator(parent.public_key, il)
        except InvalidKey:
            raise DerivationFailed(f"Child key is the point at infinity at index {index}")

    return ExtendedKey(
        public_key=public_key,
        chain_code=bytearray(I[32:]),
        private_key=private_key,
        depth=parent.depth + 1,
        parent_fingerprint=parent.fingerprint,
        child_index=index,
        curve=CURVE_SECP256K1,
    )


def _derive_ed25519_child(parent: ExtendedKey, index: int, is_hardened: bool) -> ExtendedKey:
    if not is_hardened:
        raise InvalidPath("ed25519 derivation supports hardened indices only")
    if not parent.is_private:
        raise DerivationFailed("ed25519 derivation requires a private parent")

    data = b'\x00' + bytes(parent.private_key) + struct.pack('>I', index)
    I = hmac_sha512(bytes(parent.chain_code), data)
    private_key = bytearray(I[:32])

    return ExtendedKey(
        public_key=b'\x00' + ed25519_public_key(bytes(private_key)),
        chain_code=bytearray(I[32:]),
        private_key=private_key,
        depth=parent.depth + 1,
        parent_fingerprint=parent.fingerprint,
        child_index=index,
        curve=CURVE_ED25519,
    )


def parse_path(path: str) -> List[int]:
    """
    Parse a derivation path into child indices.

    Args:
        path: e.g. "m/44'/60'/0'/0/0"; ' or h marks hardened

    Returns:
        List of indices with the hardened offset applied

    Raises:
        InvalidPath: If the path is malformed
    """
    if not path or path.split('/')[0] != 'm':
        raise InvalidPath(f"Path must start with 'm': {path!r}")

    indices = []
    for level in path.split('/')[1:]:
        match = _PATH_LEVEL.fullmatch(level)
        if not match:
            raise InvalidPath(f"Invalid path component {level!r} in {path!r}")
        index = int(match.group(1))
        if index >= config.HARDENED_OFFSET:
            raise InvalidPath(f"Path index too large: {level!r}")
        indices.append(index | config.HARDENED_OFFSET if match.group(2) else index)

    return indices


def derive_from_path(root: ExtendedKey, path: str) -> ExtendedKey:
    """
    Derive key from a BIP32 path.

    Intermediate keys are wiped as soon as their child exists, and on
    failure; ``root`` is left untouched.
    """
    indices = parse_path(path)
    logger.debug(f"Deriving {root.curve} path {path}")

    key = root
    try:
        for index in indices:
            child = derive_child(key, index)
            if key is not root:
                key.wipe()
            key = child
    except Exception:
        if key is not root:
            key.wipe()
        raise

    return key


def derive_bip44_key(root: ExtendedKey, coin_type: int, account: int = 0,
                     change: int = 0, address_index: int = 0) -> ExtendedKey:
    """
    Derive m/44'/coin_type'/account'/change/address_index.

    ed25519 roots use the all-hardened Solana layout
    m/44'/coin_type'/account'/change'.
    """
    if root.curve == CURVE_ED25519:
        path = f"m/44'/{coin_type}'/{account}'/{change}'"
    else:
        path = f"m/44'/{coin_type}'/{account}'/{change}/{address_index}"
    return derive_from_path(root, path)


# ============================================================================
# SERIALIZATION (xprv / xpub / tprv / tpub)
# ============================================================================

def serialize_extended_key(key: ExtendedKey, is_private: bool = True, network: str = 'mainnet') -> str:
    """
    Serialize to Base58Check encoded string.

    Args:
        key: Extended key (secp256k1 only)
        is_private: Emit xprv/tprv instead of xpub/tpub
        network: 'mainnet' or 'testnet'

    Returns:
        111-character extended key string
    """
    if key.curve != CURVE_SECP256K1:
        raise InvalidExtendedKey("Only secp256k1 keys have a BIP32 serialization")
    if is_private and not key.is_private:
        raise InvalidExtendedKey("Cannot serialize a public-only key as private")
    try:
        version = config.BIP32_VERSIONS[(network, is_private)]
    except KeyError:
        raise InvalidExtendedKey(f"Unknown network: {network}")

    data = version.to_bytes(4, 'big')
    data += bytes([key.depth])
    data += key.parent_fingerprint
    data += key.child_index.to_bytes(4, 'big')
    data += bytes(key.chain_code)

    if is_private:
        data += b'\x00' + bytes(key.private_key)
    else:
        data += key.public_key

    return b58encode_check(data)


def deserialize_extended_key(string: str) -> ExtendedKey:
    """
    Parse an xprv / xpub / tprv / tpub string.

    Raises:
        InvalidExtendedKey: Bad checksum, version, length, depth-0 fields or key bytes
    """
    try:
        data = b58decode_check(string)
    except EncodingError as e:
        raise InvalidExtendedKey(f"Invalid extended key encoding: {e}")

    if len(data) != EXTENDED_KEY_LENGTH:
        raise InvalidExtendedKey(f"Extended key must be {EXTENDED_KEY_LENGTH} bytes, got {len(data)}")

    version = int.from_bytes(data[:4], 'big')
    if version not in _VERSION_LOOKUP:
        raise InvalidExtendedKey(f"Unknown extended key version: 0x{version:08x}")
    _network, is_private = _VERSION_LOOKUP[version]

    depth = data[4]
    parent_fingerprint = data[5:9]
    child_index = int.from_bytes(data[9:13], 'big')
    chain_code = bytearray(data[13:45])
    key_data = data[45:78]

    if depth == 0 and (parent_fingerprint != b'\x00\x00\x00\x00' or child_index != 0):
        raise InvalidExtendedKey("Master key with non-zero parent fingerprint or index")

    try:
        if is_private:
            if key_data[0] != 0:
                raise InvalidExtendedKey("Private key data must start with 0x00")
            private_key = bytearray(key_data[1:])
            public_key = private_key_to_public_key(bytes(private_key))
        else:
            if key_data[0] not in (2, 3):
                raise InvalidExtendedKey("Public key must be compressed")
            private_key = None
            public_key = compress_public_key(key_data)
    except InvalidKey as e:
        raise InvalidExtendedKey(f"Invalid key bytes: {e}")

    return ExtendedKey(
        public_key=public_key,
        chain_code=chain_code,
        private_key=private_key,
        depth=depth,
        parent_fingerprint=parent_fingerprint,
        child_index=child_index,
    )
