"""
chaincore Transaction Validator
Field-level validation of every transaction before it leaves the device.
"""

import asyncio
import inspect
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Union

import config
from .address import decode_address
from .bitcoin import BitcoinTransaction, is_valid_txid
from .chains import Chain
from .encoding import base58_decode
from .ethereum import EthereumTransaction
from .exceptions import (
    BalanceLookupFailed,
    EncodingError,
    InvalidAddress,
    SerializationFailed,
    ValidationRejected,
)
from .solana import SolanaTransaction
from .transaction import Transaction, chain_of

logger = logging.getLogger(__name__)

# Rule names reported in ValidationResult.rule
INVALID_AMOUNT = 'invalidAmount'
INVALID_FEE = 'invalidFee'
INVALID_ADDRESS = 'invalidAddress'
INVALID_CHECKSUM = 'invalidChecksum'
INVALID_NONCE = 'invalidNonce'
INVALID_GAS_LIMIT = 'invalidGasLimit'
INVALID_GAS_PRICE = 'invalidGasPrice'
INVALID_CHAIN_ID = 'invalidChainId'
CONTRACT_DATA_TOO_LARGE = 'contractDataTooLarge'
NO_INPUTS = 'noInputs'
NO_OUTPUTS = 'noOutputs'
INVALID_TX_HASH = 'invalidTxHash'
DUST_OUTPUT = 'dustOutput'
INVALID_SCRIPT = 'invalidScript'
INSUFFICIENT_INPUTS = 'insufficientInputs'
EXCESSIVE_FEE = 'excessiveFee'
INSUFFICIENT_FEE = 'insufficientFee'
TRANSACTION_TOO_LARGE = 'transactionTooLarge'
INVALID_SEQUENCE = 'invalidSequence'
SERIALIZATION_FAILED = 'serializationFailed'
NO_INSTRUCTIONS = 'noInstructions'
AMOUNT_TOO_SMALL = 'amountTooSmall'
INVALID_BLOCKHASH = 'invalidBlockhash'
INSUFFICIENT_BALANCE = 'insufficientBalance'

# get_balance(address, chain) -> int, or an object exposing that method
BalanceOracle = Union[Callable[[str, str], Any], Any]


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of validate(): accepted, or the first violated rule."""
    accepted: bool
    rule: Optional[str] = None
    value: Any = None
    message: str = ''

    @classmethod
    def accept(cls) -> 'ValidationResult':
        return cls(accepted=True)

    @classmethod
    def reject(cls, error: ValidationRejected) -> 'ValidationResult':
        return cls(accepted=False, rule=error.rule, value=error.value, message=error.message)

    def __bool__(self) -> bool:
        return self.accepted

    def raise_for_rejection(self) -> None:
        if not self.accepted:
            raise ValidationRejected(self.rule, self.value, self.message)


def _require(condition: bool, rule: str, value: Any, message: str) -> None:
    if not condition:
        raise ValidationRejected(rule, value, message)


class TransactionValidator:
    """
    Chain-aware transaction validator.

    Universal amount/fee rules run first, then the chain's rule set; the
    balance check runs last so malformed transactions never reach the oracle.
    A ``balance_oracle`` of None skips the balance check entirely.
    """

    def __init__(self, balance_oracle: Optional[BalanceOracle] = None, network: str = 'mainnet'):
        self.balance_oracle = balance_oracle
        self.network = network

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    def validate(self, tx: Transaction) -> ValidationResult:
        """
        Validate a transaction.

        Returns:
            ValidationResult naming the first violated rule, if any

        Raises:
            BalanceLookupFailed: If the balance oracle fails
        """
        try:
            requirement = self._check_rules(tx)
            if requirement is not None:
                address, chain, cost = requirement
                self._check_balance(address, chain, cost, self._lookup_balance(address, chain))
        except ValidationRejected as e:
            return self._rejected(tx, e)
        return ValidationResult.accept()

    async def avalidate(self, tx: Transaction) -> ValidationResult:
        """validate() for awaitable oracles; blocking oracles run in a worker thread."""
        try:
            requirement = self._check_rules(tx)
            if requirement is not None:
                address, chain, cost = requirement
                balance = await self._alookup_balance(address, chain)
                self._check_balance(address, chain, cost, balance)
        except ValidationRejected as e:
            return self._rejected(tx, e)
        return ValidationResult.accept()

    def _rejected(self, tx: Transaction, error: ValidationRejected) -> ValidationResult:
        logger.warning(f"Rejected {chain_of(tx).value} transaction: [{error.rule}] {error.message}")
        return ValidationResult.reject(error)

    def _check_rules(self, tx: Transaction) -> Optional[Tuple[str, Chain, int]]:
        """Run every static rule; return the (address, chain, cost) balance requirement."""
        chain = chain_of(tx)
        self._validate_universal(tx, chain)

        if isinstance(tx, EthereumTransaction):
            return self._validate_ethereum(tx)
        if isinstance(tx, BitcoinTransaction):
            return self._validate_bitcoin(tx)
        if isinstance(tx, SolanaTransaction):
            return self._validate_solana(tx)
        raise SerializationFailed(f"No rule set for {chain.value}")

    # ------------------------------------------------------------------
    # Universal rules
    # ------------------------------------------------------------------

    def _validate_universal(self, tx: Transaction, chain: Chain) -> None:
        unit = chain.unit
        amount = tx.amount
        fee = tx.fee

        _require(amount > 0, INVALID_AMOUNT, amount, "Amount must be greater than zero")
        _require(amount < config.MAX_AMOUNT_COINS * unit, INVALID_AMOUNT, amount, "Amount exceeds maximum")
        _require(fee >= 0, INVALID_FEE, fee, "Fee cannot be negative")
        _require(fee < config.MAX_FEE_COINS * unit, INVALID_FEE, fee, "Fee exceeds maximum")

    def _validate_address(self, chain: Chain, address: str, network: str) -> None:
        try:
            decode_address(chain, address, network)
        except InvalidAddress as e:
            rule = INVALID_CHECKSUM if e.reason == InvalidAddress.REASON_CHECKSUM else INVALID_ADDRESS
            raise ValidationRejected(rule, address, str(e))

    @staticmethod
    def _serialized_size(tx: Transaction) -> int:
        try:
            return len(tx.serialize())
        except SerializationFailed as e:
            raise ValidationRejected(SERIALIZATION_FAILED, None, f"Cannot serialize: {e}")

    # ------------------------------------------------------------------
    # Ethereum
    # ------------------------------------------------------------------

    def _validate_ethereum(self, tx: EthereumTransaction) -> Tuple[str, Chain, int]:
        self._validate_address(Chain.ETHEREUM, tx.from_address, self.network)
        self._validate_address(Chain.ETHEREUM, tx.to, self.network)
        if tx.is_token_transfer:
            self._validate_address(Chain.ETHEREUM, tx.token_recipient, self.network)

        _require(tx.nonce >= 0, INVALID_NONCE, tx.nonce, "Nonce cannot be negative")
        _require(tx.nonce < config.NONCE_OVERFLOW_GUARD, INVALID_NONCE, tx.nonce, "Nonce too large")

        _require(tx.gas_limit >= config.MIN_GAS_LIMIT, INVALID_GAS_LIMIT, tx.gas_limit, "Gas limit too low")
        _require(tx.gas_limit <= config.MAX_GAS_LIMIT, INVALID_GAS_LIMIT, tx.gas_limit, "Gas limit too high")

        for name, fee_per_gas in (('maxFeePerGas', tx.max_fee_per_gas),
                                  ('maxPriorityFeePerGas', tx.max_priority_fee_per_gas)):
            _require(fee_per_gas > 0, INVALID_GAS_PRICE, fee_per_gas, f"{name} must be positive")
            _require(fee_per_gas <= config.MAX_FEE_PER_GAS, INVALID_GAS_PRICE, fee_per_gas, f"{name} too high")

        _require(tx.max_priority_fee_per_gas <= tx.max_fee_per_gas, INVALID_GAS_PRICE,
                 tx.max_priority_fee_per_gas, "Priority fee cannot exceed max fee")

        _require(tx.chain_id > 0, INVALID_CHAIN_ID, tx.chain_id, "Chain ID must be positive")

        _require(len(tx.data) <= config.MAX_CALLDATA_SIZE, CONTRACT_DATA_TOO_LARGE, len(tx.data),
                 "Contract data exceeds maximum size")

        self._serialized_size(tx)

        # Token units are not ether; the sender still pays value plus gas
        return tx.from_address, Chain.ETHEREUM, tx.value + tx.fee

    # ------------------------------------------------------------------
    # Bitcoin
    # ------------------------------------------------------------------

    def _validate_bitcoin(self, tx: BitcoinTransaction) -> None:
        for address in (tx.from_address, tx.to_address):
            if address:
                self._validate_address(Chain.BITCOIN, address, tx.network)

        _require(bool(tx.inputs), NO_INPUTS, 0, "Transaction must have at least one input")
        for inp in tx.inputs:
            _require(is_valid_txid(inp.txid), INVALID_TX_HASH, inp.txid, "Invalid previous transaction hash")
            _require(0 <= inp.vout <= config.MAX_UINT32, INVALID_TX_HASH, inp.vout, "Output index out of range")
            _require(0 <= inp.sequence <= config.MAX_UINT32, INVALID_SEQUENCE, inp.sequence,
                     "Sequence out of range")
            _require(inp.value >= config.DUST_THRESHOLD, DUST_OUTPUT, inp.value, "Input below dust threshold")

        _require(bool(tx.outputs), NO_OUTPUTS, 0, "Transaction must have at least one output")
        for out in tx.outputs:
            _require(out.value >= config.DUST_THRESHOLD, DUST_OUTPUT, out.value, "Output below dust threshold")
            _require(bool(out.script_pubkey), INVALID_SCRIPT, out.script_pubkey.hex(), "Empty output script")

        total_in = tx.input_value
        total_out = tx.output_value
        _require(total_in >= total_out, INSUFFICIENT_INPUTS, total_out, "Outputs exceed inputs")

        fee = total_in - total_out
        _require(fee * 100 <= total_in * config.MAX_FEE_PERCENT, EXCESSIVE_FEE, fee,
                 f"Fee exceeds {config.MAX_FEE_PERCENT}% of inputs")
        _require(fee >= config.DUST_THRESHOLD, INSUFFICIENT_FEE, fee, "Fee below dust threshold")

        size = self._serialized_size(tx)
        _require(size <= config.MAX_TX_SIZE, TRANSACTION_TOO_LARGE, size, "Transaction too large")

        return None

    # ------------------------------------------------------------------
    # Solana
    # ------------------------------------------------------------------

    def _validate_solana(self, tx: SolanaTransaction) -> Tuple[str, Chain, int]:
        self._validate_address(Chain.SOLANA, tx.from_address, self.network)
        self._validate_address(Chain.SOLANA, tx.to_address, self.network)

        try:
            blockhash_ok = len(base58_decode(tx.recent_blockhash)) == 32
        except EncodingError:
            blockhash_ok = False
        _require(blockhash_ok, INVALID_BLOCKHASH, tx.recent_blockhash, "Invalid recent blockhash")

        _require(bool(tx.message.instructions), NO_INSTRUCTIONS, 0, "Transaction has no instructions")
        _require(tx.amount >= config.MIN_SOLANA_AMOUNT, AMOUNT_TOO_SMALL, tx.amount,
                 "Amount below minimum of 1 lamport")

        size = self._serialized_size(tx)
        _require(size <= config.SOLANA_MAX_TX_SIZE, TRANSACTION_TOO_LARGE, size, "Transaction exceeds packet size")

        cost = tx.fee if tx.is_token_transfer else tx.amount + tx.fee
        return tx.from_address, Chain.SOLANA, cost

    # ------------------------------------------------------------------
    # Balance
    # ------------------------------------------------------------------

    def _oracle_callable(self) -> Callable:
        oracle = self.balance_oracle
        return getattr(oracle, 'get_balance', oracle)

    def _lookup_balance(self, address: str, chain: Chain) -> Optional[int]:
        if self.balance_oracle is None:
            return None
        try:
            balance = self._oracle_callable()(address, chain.value)
            if inspect.isawaitable(balance):
                raise TypeError("Asynchronous balance oracle used with validate(); use avalidate()")
            return int(balance)
        except BalanceLookupFailed:
            raise
        except Exception as e:
            logger.warning(f"Balance lookup failed for {address} on {chain.value}: {e}")
            raise BalanceLookupFailed(address, chain.value, e) from e

    async def _alookup_balance(self, address: str, chain: Chain) -> Optional[int]:
        if self.balance_oracle is None:
            return None
        lookup = self._oracle_callable()
        try:
            if inspect.iscoroutinefunction(lookup):
                balance = await lookup(address, chain.value)
            else:
                balance = await asyncio.to_thread(lookup, address, chain.value)
                if inspect.isawaitable(balance):
                    balance = await balance
            return int(balance)
        except BalanceLookupFailed:
            raise
        except Exception as e:
            logger.warning(f"Balance lookup failed for {address} on {chain.value}: {e}")
            raise BalanceLookupFailed(address, chain.value, e) from e

    @staticmethod
    def _check_balance(address: str, chain: Chain, cost: int, balance: Optional[int]) -> None:
        if balance is None:
            logger.debug(f"No balance oracle; skipping balance check for {address}")
            return
        _require(balance >= cost, INSUFFICIENT_BALANCE, cost,
                 f"Required {cost}, available {balance} on {chain.value}")


def validate(tx: Transaction, balance_oracle: Optional[BalanceOracle] = None,
             network: str = 'mainnet') -> ValidationResult:
    """Validate with a one-off TransactionValidator."""
    return TransactionValidator(balance_oracle, network).validate(tx)
