"""
chaincore Ethereum Transactions
EIP-1559 (type 0x02) transaction model, signing and encoding.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, ClassVar, Dict, Optional, Union

import config
from . import abi, rlp
from .address import ETHEREUM_ADDRESS_BODY, public_key_to_ethereum_address, to_checksum_address
from .chains import Chain
from .crypto import keccak256, recover_public_key, sign_recoverable
from .exceptions import RecoveryFailed, SerializationFailed

logger = logging.getLogger(__name__)


def _address_bytes(address: str) -> bytes:
    if not address:
        return b''
    body = address[2:] if address.lower().startswith('0x') else address
    if not ETHEREUM_ADDRESS_BODY.fullmatch(body):
        raise SerializationFailed(f"Address must be 40 hex digits: {address!r}")
    return bytes.fromhex(body)


@dataclass
class EthereumTransaction:
    """EIP-1559 fee-market transaction."""

    chain: ClassVar[Chain] = Chain.ETHEREUM

    from_address: str
    to: str
    value: int
    nonce: int = 0
    max_fee_per_gas: int = 0
    max_priority_fee_per_gas: int = 0
    gas_limit: int = config.MIN_GAS_LIMIT
    data: bytes = b''
    chain_id: int = config.ETHEREUM_MAINNET_CHAIN_ID

    # ERC-20 intent, not serialized; ``to`` is then the token contract
    token_recipient: str = ''
    token_amount: int = 0

    # Signature (y_parity, r, s)
    v: Optional[int] = None
    r: Optional[int] = None
    s: Optional[int] = None

    @property
    def is_token_transfer(self) -> bool:
        return bool(self.token_recipient)

    @property
    def amount(self) -> int:
        """Token units for ERC-20 transfers, otherwise wei."""
        return self.token_amount if self.is_token_transfer else self.value

    @property
    def fee(self) -> int:
        """Maximum fee in wei."""
        return self.max_fee_per_gas * self.gas_limit

    @property
    def fee_display(self) -> Decimal:
        """Maximum fee in ether."""
        return Decimal(self.fee) / Decimal(config.WEI_PER_ETHER)

    @property
    def is_signed(self) -> bool:
        return self.v is not None and self.r is not None and self.s is not None

    def _fields(self) -> list:
        return [
            self.chain_id,
            self.nonce,
            self.max_priority_fee_per_gas,
            self.max_fee_per_gas,
            self.gas_limit,
            _address_bytes(self.to),
            self.value,
            bytes(self.data),
            [],  # access list
        ]

    def serialize_unsigned(self) -> bytes:
        """0x02 || rlp([chainId, nonce, maxPriority, maxFee, gas, to, value, data, accessList])"""
        return bytes([config.EIP1559_TX_TYPE]) + rlp.encode(self._fields())

    def signing_hash(self) -> bytes:
        return keccak256(self.serialize_unsigned())

    def serialize(self) -> bytes:
        """Signed envelope when signed, otherwise the unsigned payload."""
        if not self.is_signed:
            return self.serialize_unsigned()
        return bytes([config.EIP1559_TX_TYPE]) + rlp.encode(self._fields() + [self.v, self.r, self.s])

    @property
    def hash(self) -> str:
        return '0x' + keccak256(self.serialize()).hex()

    def sign(self, private_key: bytes) -> 'EthereumTransaction':
        """
        Sign in place with a recoverable signature.

        Args:
            private_key: 32-byte secp256k1 private key

        Returns:
            self
        """
        signature, recovery_id = sign_recoverable(self.signing_hash(), private_key)
        if recovery_id > 1:
            raise SerializationFailed("Signature R.x overflowed the curve order")

        self.v = recovery_id
        self.r = int.from_bytes(signature[:32], 'big')
        self.s = int.from_bytes(signature[32:], 'big')

        logger.info(f"Signed Ethereum transaction {self.hash} nonce={self.nonce}")
        return self

    def recover_public_key(self) -> bytes:
        """Sender's compressed public key, recovered from the signature."""
        if not self.is_signed:
            raise RecoveryFailed("Transaction is not signed")
        if self.r >= 2 ** 256 or self.s >= 2 ** 256:
            raise RecoveryFailed("Signature values out of range")
        signature = self.r.to_bytes(32, 'big') + self.s.to_bytes(32, 'big')
        return recover_public_key(signature, self.v, self.signing_hash())

    def recover_sender(self) -> str:
        """Checksummed address of the signer."""
        return public_key_to_ethereum_address(self.recover_public_key())

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result = {
            'chain': self.chain.value,
            'from': self.from_address,
            'to': self.to,
            'value': self.value,
            'nonce': self.nonce,
            'maxFeePerGas': self.max_fee_per_gas,
            'maxPriorityFeePerGas': self.max_priority_fee_per_gas,
            'gasLimit': self.gas_limit,
            'data': '0x' + bytes(self.data).hex(),
            'chainId': self.chain_id,
        }
        if self.is_token_transfer:
            result.update({'tokenRecipient': self.token_recipient, 'tokenAmount': self.token_amount})
        if self.is_signed:
            result.update({'v': self.v, 'r': hex(self.r), 's': hex(self.s), 'hash': self.hash})
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EthereumTransaction':
        """Create from dictionary (camelCase or snake_case keys)."""
        def pick(*keys, default=None):
            for key in keys:
                if key in data:
                    return data[key]
            return default

        payload = pick('data', default=b'')
        if isinstance(payload, str):
            payload = bytes.fromhex(payload[2:] if payload.startswith('0x') else payload)

        return cls(
            from_address=pick('from', 'from_address', default=''),
            to=pick('to', default=''),
            value=int(pick('value', 'amount', default=0)),
            nonce=int(pick('nonce', default=0)),
            max_fee_per_gas=int(pick('maxFeePerGas', 'max_fee_per_gas', default=0)),
            max_priority_fee_per_gas=int(pick('maxPriorityFeePerGas', 'max_priority_fee_per_gas', default=0)),
            gas_limit=int(pick('gasLimit', 'gas_limit', default=config.MIN_GAS_LIMIT)),
            data=bytes(payload),
            chain_id=int(pick('chainId', 'chain_id', default=config.ETHEREUM_MAINNET_CHAIN_ID)),
            token_recipient=pick('tokenRecipient', 'token_recipient', default=''),
            token_amount=int(pick('tokenAmount', 'token_amount', default=0)),
        )

    @classmethod
    def from_raw(cls, raw: Union[bytes, str]) -> 'EthereumTransaction':
        """
        Parse a serialized type-2 transaction (signed or unsigned).

        The sender is recovered when a signature is present.
        """
        if isinstance(raw, str):
            raw = bytes.fromhex(raw[2:] if raw.startswith('0x') else raw)
        if not raw or raw[0] != config.EIP1559_TX_TYPE:
            raise SerializationFailed("Not an EIP-1559 transaction")

        fields = rlp.decode(raw[1:])
        if not isinstance(fields, list) or len(fields) not in (9, 12):
            raise SerializationFailed("EIP-1559 payload must have 9 or 12 fields")

        chain_id, nonce, priority, max_fee, gas_limit, to, value, data, access_list = fields[:9]
        if not isinstance(access_list, list) or access_list:
            raise SerializationFailed("Access lists are not supported")
        if not isinstance(to, bytes) or len(to) not in (0, 20):
            raise SerializationFailed("Invalid recipient field")

        tx = cls(
            from_address='',
            to=to_checksum_address(to) if to else '',
            value=rlp.big_endian_to_int(value),
            nonce=rlp.big_endian_to_int(nonce),
            max_fee_per_gas=rlp.big_endian_to_int(max_fee),
            max_priority_fee_per_gas=rlp.big_endian_to_int(priority),
            gas_limit=rlp.big_endian_to_int(gas_limit),
            data=bytes(data),
            chain_id=rlp.big_endian_to_int(chain_id),
        )

        if len(fields) == 12:
            tx.v, tx.r, tx.s = (rlp.big_endian_to_int(f) for f in fields[9:])
            tx.from_address = tx.recover_sender()

        return tx


def build_erc20_transfer(params: Dict[str, Any]) -> EthereumTransaction:
    """
    Build an unsigned ERC-20 ``transfer(address,uint256)`` call.

    Args:
        params: from, token (contract address), to (token recipient),
            amount (token units), plus the usual nonce, fee, gasLimit
            and chainId keys

    Returns:
        Unsigned EthereumTransaction sending zero ether to the contract
    """
    recipient = params['to']
    amount = int(params['amount'])
    contract = params['token']

    fields = {key: value for key, value in params.items() if key not in ('to', 'amount', 'value', 'data')}
    fields.setdefault('gasLimit', fields.pop('gas_limit', config.ERC20_GAS_LIMIT))
    fields.update({
        'to': contract,
        'value': 0,
        'data': abi.erc20_transfer(recipient, amount),
        'tokenRecipient': recipient,
        'tokenAmount': amount,
    })

    tx = EthereumTransaction.from_dict(fields)
    logger.debug(f"Built ERC-20 transfer of {amount} units of {contract} to {recipient}")
    return tx
