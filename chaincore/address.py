"""
chaincore Addresses
Public key -> address string per chain, and the strict inverse decode.
"""

import logging
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

import config
from .chains import AddressKind, Chain
from .crypto import decompress_public_key, hash160, keccak256
from .encoding import (
    base58_decode,
    base58_encode,
    base58check_decode,
    base58check_encode,
    bech32_decode,
    bech32_encode,
)
from .exceptions import (
    ChecksumMismatch,
    EncodingError,
    InvalidAddress,
    InvalidCharacter,
    InvalidChecksum,
    InvalidKey,
    InvalidPrefix,
)

logger = logging.getLogger(__name__)

# Exactly 20 bytes of hex; bytes.fromhex() alone would also skip whitespace
ETHEREUM_ADDRESS_BODY = re.compile(r'[0-9a-fA-F]{40}')

# Script opcodes
OP_0 = 0x00
OP_1 = 0x51
OP_DUP = 0x76
OP_HASH160 = 0xa9
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_CHECKSIG = 0xac


@dataclass(frozen=True)
class Address:
    """A decoded address; ``payload`` is the hash or key bytes it encodes."""
    address: str
    chain: Chain
    kind: AddressKind
    payload: bytes
    network: str = 'mainnet'

    def __str__(self) -> str:
        return self.address

    def to_dict(self) -> Dict[str, Any]:
        return {
            'address': self.address,
            'chain': self.chain.value,
            'kind': self.kind.value,
            'payload': self.payload.hex(),
            'network': self.network,
        }


# ============================================================================
# ETHEREUM
# ============================================================================

def to_checksum_address(address: Union[str, bytes]) -> str:
    """
    EIP-55 mixed-case checksum encoding.

    Args:
        address: 20 raw bytes or a hex string with or without 0x

    Returns:
        0x-prefixed checksummed address
    """
    if isinstance(address, (bytes, bytearray)):
        hex_addr = bytes(address).hex()
    else:
        hex_addr = address[2:] if address.lower().startswith('0x') else address
        hex_addr = hex_addr.lower()

    digest = keccak256(hex_addr.encode('ascii')).hex()
    return '0x' + ''.join(
        char.upper() if int(digest[i], 16) >= 8 else char
        for i, char in enumerate(hex_addr)
    )


def public_key_to_ethereum_address(public_key: bytes) -> str:
    """Last 20 bytes of keccak256 over the 64-byte uncompressed key."""
    if len(public_key) != 65:
        public_key = decompress_public_key(public_key)
    return to_checksum_address(keccak256(public_key[1:])[-20:])


def _decode_ethereum(address: str, network: str) -> Address:
    if not address.startswith('0x') and not address.startswith('0X'):
        raise InvalidAddress(InvalidAddress.REASON_CHARACTERS, address, "missing 0x prefix")

    body = address[2:]
    if len(body) != 40:
        raise InvalidAddress(InvalidAddress.REASON_LENGTH, address, f"expected 40 hex digits, got {len(body)}")

    if not ETHEREUM_ADDRESS_BODY.fullmatch(body):
        raise InvalidAddress(InvalidAddress.REASON_CHARACTERS, address, "non-hex characters")
    payload = bytes.fromhex(body)

    # All-lower or all-upper carries no checksum
    if body != body.lower() and body != body.upper():
        if to_checksum_address(payload) != '0x' + body:
            raise InvalidAddress(InvalidAddress.REASON_CHECKSUM, address, "EIP-55 checksum mismatch")

    return Address(
        address=to_checksum_address(payload),
        chain=Chain.ETHEREUM,
        kind=AddressKind.ACCOUNT,
        payload=payload,
        network=network,
    )


# ============================================================================
# BITCOIN
# ============================================================================

def _is_bech32_address(address: str) -> bool:
    lowered = address.lower()
    return any(lowered.startswith(params['hrp'] + '1') for params in config.BITCOIN_NETWORKS.values())


def _decode_bitcoin(address: str, network: str) -> Address:
    params = config.get_bitcoin_network(network)

    if _is_bech32_address(address):
        try:
            witver, program = bech32_decode(params['hrp'], address)
        except InvalidPrefix as e:
            raise InvalidAddress(InvalidAddress.REASON_NETWORK, address, str(e))
        except InvalidChecksum as e:
            raise InvalidAddress(InvalidAddress.REASON_CHECKSUM, address, str(e))
        except InvalidCharacter as e:
            raise InvalidAddress(InvalidAddress.REASON_CHARACTERS, address, str(e))
        except EncodingError as e:
            raise InvalidAddress(InvalidAddress.REASON_LENGTH, address, str(e))

        if witver == 0:
            kind = AddressKind.P2WPKH if len(program) == 20 else AddressKind.P2WSH
        elif witver == 1 and len(program) == 32:
            kind = AddressKind.P2TR
        else:
            raise InvalidAddress(InvalidAddress.REASON_LENGTH, address,
                                 f"unsupported witness version {witver}")

        return Address(address.lower(), Chain.BITCOIN, kind, program, network)

    try:
        version, payload = base58check_decode(address)
    except InvalidCharacter as e:
        raise InvalidAddress(InvalidAddress.REASON_CHARACTERS, address, str(e))
    except ChecksumMismatch as e:
        raise InvalidAddress(InvalidAddress.REASON_CHECKSUM, address, str(e))
    except EncodingError as e:
        raise InvalidAddress(InvalidAddress.REASON_LENGTH, address, str(e))

    if len(payload) != 20:
        raise InvalidAddress(InvalidAddress.REASON_LENGTH, address, f"expected 20-byte hash, got {len(payload)}")

    if version == params['pubkey_prefix']:
        kind = AddressKind.P2PKH
    elif version == params['script_prefix']:
        kind = AddressKind.P2SH_P2WPKH
    else:
        raise InvalidAddress(InvalidAddress.REASON_NETWORK, address,
                             f"version 0x{version:02x} is not a {network} address")

    return Address(address, Chain.BITCOIN, kind, payload, network)


def p2pkh_script(pubkey_hash: bytes) -> bytes:
    """OP_DUP OP_HASH160 <20> OP_EQUALVERIFY OP_CHECKSIG"""
    return bytes([OP_DUP, OP_HASH160, 0x14]) + pubkey_hash + bytes([OP_EQUALVERIFY, OP_CHECKSIG])


def p2sh_script(script_hash: bytes) -> bytes:
    """OP_HASH160 <20> OP_EQUAL"""
    return bytes([OP_HASH160, 0x14]) + script_hash + bytes([OP_EQUAL])


def witness_script(witver: int, program: bytes) -> bytes:
    """OP_n <program>"""
    opcode = OP_0 if witver == 0 else OP_1 + witver - 1
    return bytes([opcode, len(program)]) + program


def p2wpkh_script(pubkey_hash: bytes) -> bytes:
    return witness_script(0, pubkey_hash)


def script_pubkey_for_address(address: Union[str, Address], network: str = 'mainnet') -> bytes:
    """
    Locking script paying to a Bitcoin address.

    Args:
        address: Address string or decoded Address
        network: Network the string must belong to

    Returns:
        scriptPubKey bytes
    """
    if not isinstance(address, Address):
        address = _decode_bitcoin(address, network)

    if address.kind is AddressKind.P2PKH:
        return p2pkh_script(address.payload)
    if address.kind is AddressKind.P2SH_P2WPKH:
        return p2sh_script(address.payload)
    if address.kind in (AddressKind.P2WPKH, AddressKind.P2WSH):
        return witness_script(0, address.payload)
    if address.kind is AddressKind.P2TR:
        return witness_script(1, address.payload)
    raise InvalidAddress(InvalidAddress.REASON_NETWORK, address.address, "not a Bitcoin address")


def _derive_bitcoin(public_key: bytes, kind: AddressKind, network: str) -> Address:
    params = config.get_bitcoin_network(network)

    if kind is AddressKind.P2PKH:
        pubkey_hash = hash160(public_key)
        address = base58check_encode(params['pubkey_prefix'], pubkey_hash)
        return Address(address, Chain.BITCOIN, kind, pubkey_hash, network)

    if len(public_key) != 33:
        raise InvalidKey("SegWit addresses require a compressed public key")
    pubkey_hash = hash160(public_key)

    if kind is AddressKind.P2WPKH:
        address = bech32_encode(params['hrp'], 0, pubkey_hash)
        return Address(address, Chain.BITCOIN, kind, pubkey_hash, network)

    if kind is AddressKind.P2SH_P2WPKH:
        script_hash = hash160(p2wpkh_script(pubkey_hash))
        address = base58check_encode(params['script_prefix'], script_hash)
        return Address(address, Chain.BITCOIN, kind, script_hash, network)

    raise ValueError(f"Cannot derive {kind.value} address from a public key")


# ============================================================================
# SOLANA
# ============================================================================

def _solana_key(public_key: bytes) -> bytes:
    # ed25519 extended keys carry a 0x00 marker byte
    if len(public_key) == 33 and public_key[0] == 0:
        public_key = public_key[1:]
    if len(public_key) != 32:
        raise InvalidKey(f"Solana public key must be 32 bytes, got {len(public_key)}")
    return bytes(public_key)


def _decode_solana(address: str, network: str) -> Address:
    try:
        payload = base58_decode(address)
    except InvalidCharacter as e:
        raise InvalidAddress(InvalidAddress.REASON_CHARACTERS, address, str(e))

    if len(payload) != 32:
        raise InvalidAddress(InvalidAddress.REASON_LENGTH, address, f"expected 32 bytes, got {len(payload)}")
    # Leading zeros must round-trip exactly
    if base58_encode(payload) != address:
        raise InvalidAddress(InvalidAddress.REASON_CHARACTERS, address, "non-canonical base58")

    return Address(address, Chain.SOLANA, AddressKind.ED25519, payload, network)


# ============================================================================
# PUBLIC API
# ============================================================================

def derive_address(chain: Union[Chain, str], public_key: bytes,
                   kind: Optional[Union[AddressKind, str]] = None,
                   network: str = 'mainnet') -> Address:
    """
    Map a public key to its address on ``chain``.

    Args:
        chain: Target chain
        public_key: SEC1 key (secp256k1 chains) or 32-byte ed25519 key
        kind: Address kind; defaults to the chain's native kind
        network: 'mainnet' or 'testnet' (Bitcoin prefixes / HRP)

    Returns:
        Address
    """
    chain = Chain.parse(chain)
    kind = chain.default_kind if kind is None else AddressKind.parse(kind)

    if chain is Chain.ETHEREUM:
        if kind is not AddressKind.ACCOUNT:
            raise ValueError(f"Ethereum has no {kind.value} addresses")
        address = public_key_to_ethereum_address(public_key)
        result = Address(address, chain, kind, bytes.fromhex(address[2:]), network)
    elif chain is Chain.BITCOIN:
        result = _derive_bitcoin(public_key, kind, network)
    else:
        if kind is not AddressKind.ED25519:
            raise ValueError(f"Solana has no {kind.value} addresses")
        key = _solana_key(public_key)
        result = Address(base58_encode(key), chain, kind, key, network)

    logger.debug(f"Derived {chain.value} {kind.value} address {result.address}")
    return result


def decode_address(chain: Union[Chain, str], address: str, network: str = 'mainnet') -> Address:
    """
    Strict inverse of derive_address.

    Raises:
        InvalidAddress: With ``reason`` set to the failure kind
    """
    chain = Chain.parse(chain)
    if not isinstance(address, str) or not address:
        raise InvalidAddress(InvalidAddress.REASON_LENGTH, str(address or ''), "empty address")

    if chain is Chain.ETHEREUM:
        return _decode_ethereum(address, network)
    if chain is Chain.BITCOIN:
        return _decode_bitcoin(address, network)
    return _decode_solana(address, network)


def validate_address(chain: Union[Chain, str], address: str, network: str = 'mainnet') -> bool:
    try:
        decode_address(chain, address, network)
        return True
    except InvalidAddress:
        return False
