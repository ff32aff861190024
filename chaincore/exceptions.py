"""
chaincore Exceptions
Error kinds raised by derivation, encoding, serialization and validation.
"""

from typing import Any, Optional


class ChainCoreError(Exception):
    """Base class for all chaincore errors."""
    pass


# ============================================================================
# ENCODING
# ============================================================================

class EncodingError(ChainCoreError, ValueError):
    """Malformed base58 / bech32 / varint input."""
    pass


class InvalidCharacter(EncodingError):
    pass


class ChecksumMismatch(EncodingError):
    """Base58Check checksum does not match its payload."""
    pass


class InvalidChecksum(EncodingError):
    """Bech32 / bech32m checksum is invalid."""
    pass


class InvalidLength(EncodingError):
    pass


class InvalidPrefix(EncodingError):
    """Version byte or human-readable part belongs to another network."""
    pass


# ============================================================================
# KEYS
# ============================================================================

class InvalidSeed(ChainCoreError):
    pass


class InvalidPath(ChainCoreError):
    pass


class DerivationFailed(ChainCoreError):
    pass


class InvalidKey(ChainCoreError):
    pass


class RecoveryFailed(ChainCoreError):
    pass


class InvalidExtendedKey(ChainCoreError):
    pass


class InvalidAddress(ChainCoreError):
    """
    Address failed to decode for its chain.

    ``reason`` is one of the ``REASON_*`` constants.
    """

    REASON_LENGTH = 'bad length'
    REASON_CHARACTERS = 'bad characters'
    REASON_CHECKSUM = 'bad checksum'
    REASON_NETWORK = 'wrong network prefix'

    def __init__(self, reason: str, address: str = '', detail: str = ''):
        self.reason = reason
        self.address = address
        message = f"Invalid address ({reason})"
        if detail:
            message += f": {detail}"
        super().__init__(message)


# ============================================================================
# TRANSACTIONS
# ============================================================================

class SerializationFailed(ChainCoreError):
    pass


class InsufficientFunds(ChainCoreError):
    """Selected inputs cannot cover amount plus fee."""

    def __init__(self, required: int, available: int):
        self.required = required
        self.available = available
        super().__init__(f"Insufficient funds: need {required}, have {available}")


class ValidationRejected(ChainCoreError):
    """A transaction violated a validation rule."""

    def __init__(self, rule: str, value: Any = None, message: str = ''):
        self.rule = rule
        self.value = value
        self.message = message or rule
        super().__init__(f"[{rule}] {self.message} (value={value!r})")


class BalanceLookupFailed(ChainCoreError):
    """The balance oracle could not answer; never treated as zero balance."""

    def __init__(self, address: str, chain: str, cause: Optional[BaseException] = None):
        self.address = address
        self.chain = chain
        self.cause = cause
        super().__init__(f"Balance lookup failed for {address} on {chain}: {cause}")


class ShardError(ChainCoreError):
    """Threshold share generation or reconstruction failed."""
    pass
