"""
chaincore Wallet Interface
Seed -> address, transaction build / sign / serialize / validate.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Union

from . import transaction as _transaction
from .address import Address, derive_address as _address_for_key
from .chains import AddressKind, Chain
from .crypto import generate_mnemonic, mnemonic_to_seed
from .hdkey import (
    ExtendedKey,
    derive_from_path,
    ed25519_master_key_from_seed,
    master_key_from_seed,
)
from .secure import SecretBytes, scoped_secret, secure_zero
from .transaction import Transaction
from .validator import BalanceOracle, TransactionValidator, ValidationResult

logger = logging.getLogger(__name__)

SeedLike = Union[bytes, bytearray, SecretBytes, str]


def default_path(chain: Union[Chain, str], account: int = 0, index: int = 0,
                 network: str = 'mainnet') -> str:
    """
    BIP44 path for a chain.

    Solana uses the all-hardened m/44'/501'/account'/0'.
    """
    chain = Chain.parse(chain)
    coin_type = chain.coin_type(network)
    if chain is Chain.SOLANA:
        return f"m/44'/{coin_type}'/{account}'/0'"
    return f"m/44'/{coin_type}'/{account}'/0/{index}"


def _seed_bytes(seed: SeedLike) -> bytearray:
    """Seed buffer; a string is treated as a BIP39 mnemonic."""
    if isinstance(seed, str):
        return bytearray(mnemonic_to_seed(seed))
    return bytearray(bytes(seed))


@contextmanager
def _derived_key(seed: SeedLike, path: str, chain: Chain) -> Iterator[ExtendedKey]:
    seed_buffer = _seed_bytes(seed)
    master = None
    key = None
    try:
        if chain is Chain.SOLANA:
            master = ed25519_master_key_from_seed(bytes(seed_buffer))
        else:
            master = master_key_from_seed(bytes(seed_buffer))
        key = derive_from_path(master, path)
        yield key
    finally:
        secure_zero(seed_buffer)
        if master is not None:
            master.wipe()
        if key is not None:
            key.wipe()


# ============================================================================
# PUBLIC API
# ============================================================================

def derive_address(seed: SeedLike, path: Optional[str], chain: Union[Chain, str],
                   kind: Optional[Union[AddressKind, str]] = None,
                   network: str = 'mainnet') -> Address:
    """
    Derive the address at ``path`` for ``chain``.

    Args:
        seed: Seed bytes, or a BIP39 mnemonic
        path: Derivation path; None selects the chain's BIP44 default
        chain: Target chain
        kind: Address kind (Bitcoin: p2wpkh, p2sh-p2wpkh, p2pkh)
        network: 'mainnet' or 'testnet'

    Returns:
        Address
    """
    chain = Chain.parse(chain)
    path = path or default_path(chain, network=network)
    logger.debug(f"Deriving {chain.value} address at {path}")
    with _derived_key(seed, path, chain) as key:
        return _address_for_key(chain, key.public_key, kind, network)


@contextmanager
def signing_key(seed: SeedLike, path: Optional[str], chain: Union[Chain, str],
                network: str = 'mainnet') -> Iterator[SecretBytes]:
    """
    Private key at ``path``, wiped when the block exits.

    Example:
        with signing_key(seed, "m/44'/60'/0'/0/0", 'ethereum') as key:
            sign(tx, key)
    """
    chain = Chain.parse(chain)
    path = path or default_path(chain, network=network)
    with _derived_key(seed, path, chain) as key:
        with scoped_secret(key.private_key) as secret:
            yield secret


def build_transaction(chain: Union[Chain, str], params: Dict[str, Any]) -> Transaction:
    return _transaction.build_transaction(chain, params)


def sign(tx: Transaction, private_key: Union[bytes, bytearray, SecretBytes]) -> Transaction:
    """Sign ``tx`` in place and return it."""
    return _transaction.sign_transaction(tx, bytes(private_key))


def serialize(tx: Transaction) -> bytes:
    return _transaction.serialize(tx)


def transaction_hash(tx: Transaction) -> str:
    return _transaction.transaction_hash(tx)


def validate(tx: Transaction, balance_oracle: Optional[BalanceOracle] = None,
             network: str = 'mainnet') -> ValidationResult:
    return TransactionValidator(balance_oracle, network).validate(tx)


# ============================================================================
# WALLET
# ============================================================================

class Wallet:
    """
    Multi-chain HD wallet over a single seed.

    The seed lives in a SecretBytes and is wiped by ``close()`` or on
    context-manager exit.
    """

    def __init__(self, seed: Union[bytes, bytearray], network: str = 'mainnet'):
        self._seed = SecretBytes(seed)
        self.network = network

    @classmethod
    def create(cls, strength: int = 256, passphrase: str = "", network: str = 'mainnet'):
        """
        Create a wallet from a fresh mnemonic.

        Returns:
            Tuple of (mnemonic, wallet)
        """
        mnemonic = generate_mnemonic(strength)
        return mnemonic, cls.from_mnemonic(mnemonic, passphrase, network)

    @classmethod
    def from_mnemonic(cls, mnemonic: str, passphrase: str = "", network: str = 'mainnet') -> 'Wallet':
        return cls(mnemonic_to_seed(mnemonic, passphrase), network)

    def address(self, chain: Union[Chain, str], account: int = 0, index: int = 0,
                kind: Optional[Union[AddressKind, str]] = None) -> Address:
        path = default_path(chain, account, index, self.network)
        return derive_address(self._seed, path, chain, kind, self.network)

    def signing_key(self, chain: Union[Chain, str], account: int = 0, index: int = 0):
        path = default_path(chain, account, index, self.network)
        return signing_key(self._seed, path, chain, self.network)

    def sign(self, tx: Transaction, account: int = 0, index: int = 0) -> Transaction:
        with self.signing_key(tx.chain, account, index) as key:
            return sign(tx, key)

    def close(self) -> None:
        self._seed.wipe()

    def __enter__(self) -> 'Wallet':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()
