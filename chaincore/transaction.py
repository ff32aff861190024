"""
chaincore Transaction Dispatch
Build, sign, serialize and hash any supported transaction by chain tag.
"""

import logging
from typing import Any, Dict, Union

from . import bitcoin, ethereum, solana
from .bitcoin import BitcoinTransaction
from .chains import Chain
from .ethereum import EthereumTransaction
from .exceptions import SerializationFailed
from .solana import SolanaTransaction

logger = logging.getLogger(__name__)

Transaction = Union[EthereumTransaction, BitcoinTransaction, SolanaTransaction]

TRANSACTION_TYPES = {
    Chain.ETHEREUM: EthereumTransaction,
    Chain.BITCOIN: BitcoinTransaction,
    Chain.SOLANA: SolanaTransaction,
}


def chain_of(tx: Transaction) -> Chain:
    """Chain tag of a transaction; anything else is not serializable."""
    for chain, tx_type in TRANSACTION_TYPES.items():
        if isinstance(tx, tx_type):
            return chain
    raise SerializationFailed(f"Unsupported transaction type: {type(tx).__name__}")


def build_transaction(chain: Union[Chain, str], params: Dict[str, Any]) -> Transaction:
    """
    Build an unsigned transaction.

    Args:
        chain: Target chain
        params: Chain-specific intent (from, to, amount, ...); a ``token``
            contract (Ethereum) or ``mint`` (Solana) builds a token transfer

    Returns:
        Unsigned transaction for that chain
    """
    try:
        chain = Chain.parse(chain)
    except ValueError as e:
        raise SerializationFailed(str(e))

    try:
        if chain is Chain.ETHEREUM:
            if params.get('token'):
                return ethereum.build_erc20_transfer(params)
            return EthereumTransaction.from_dict(params)
        if chain is Chain.BITCOIN:
            return bitcoin.build_transaction(params)
        if params.get('mint'):
            return solana.build_spl_transfer(params)
        return solana.build_transfer(params)
    except KeyError as e:
        raise SerializationFailed(f"Missing transaction parameter: {e}")


def sign_transaction(tx: Transaction, private_key: bytes) -> Transaction:
    """Sign in place (secp256k1 key, or ed25519 seed for Solana) and return ``tx``."""
    chain_of(tx)
    return tx.sign(bytes(private_key))


def serialize(tx: Transaction) -> bytes:
    chain_of(tx)
    return tx.serialize()


def transaction_hash(tx: Transaction) -> str:
    """Ethereum keccak hash, Bitcoin txid, or Solana sha256 of the wire bytes."""
    chain_of(tx)
    return tx.hash


def signing_hash(tx: Transaction) -> bytes:
    """
    What the signer commits to.

    Bitcoin returns the digest of input 0; Solana returns the message bytes.
    """
    chain_of(tx)
    return tx.signing_hash()
