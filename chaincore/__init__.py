"""
chaincore Module
Multi-chain key derivation, transaction construction, signing and validation.
"""

import logging

import config

from .chains import AddressKind, Chain
from .address import Address, decode_address, validate_address
from .hdkey import (
    ExtendedKey,
    derive_from_path,
    deserialize_extended_key,
    master_key_from_seed,
    parse_path,
    serialize_extended_key,
)
from .bitcoin import BitcoinTransaction, TxInput, TxOutput
from .ethereum import EthereumTransaction
from .solana import SolanaTransaction
from .secure import SecretBytes
from .tss import TSSShard, reconstruct_secret, split_secret
from .validator import TransactionValidator, ValidationResult
from .wallet import (
    Wallet,
    build_transaction,
    derive_address,
    serialize,
    sign,
    signing_key,
    transaction_hash,
    validate,
)
from .exceptions import ChainCoreError, InvalidAddress, ValidationRejected


def configure_logging(level: str = None) -> None:
    """Root logging setup for scripts embedding chaincore."""
    logging.basicConfig(
        level=getattr(logging, (level or config.LOG_LEVEL).upper(), logging.INFO),
        format=config.LOG_FORMAT,
    )


__all__ = [
    'Chain',
    'AddressKind',
    'Address',
    'ExtendedKey',
    'BitcoinTransaction',
    'TxInput',
    'TxOutput',
    'EthereumTransaction',
    'SolanaTransaction',
    'SecretBytes',
    'TSSShard',
    'TransactionValidator',
    'ValidationResult',
    'Wallet',
    'ChainCoreError',
    'InvalidAddress',
    'ValidationRejected',
    'build_transaction',
    'configure_logging',
    'decode_address',
    'derive_address',
    'derive_from_path',
    'deserialize_extended_key',
    'master_key_from_seed',
    'parse_path',
    'reconstruct_secret',
    'serialize',
    'serialize_extended_key',
    'sign',
    'signing_key',
    'split_secret',
    'transaction_hash',
    'validate',
    'validate_address',
]
