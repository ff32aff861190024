"""
chaincore Solana Transactions
Legacy message layout, system-program transfers and ed25519 signing.
"""

import logging
import struct
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional

import config
from .chains import Chain
from .crypto import ed25519_public_key, ed25519_sign, ed25519_verify, sha256
from .encoding import base58_decode, base58_encode, decode_shortvec, encode_shortvec
from .exceptions import EncodingError, InvalidKey, SerializationFailed

logger = logging.getLogger(__name__)

SIGNATURE_LENGTH = 64
PUBKEY_LENGTH = 32
BLOCKHASH_LENGTH = 32


def decode_key(value: str, what: str = 'key') -> bytes:
    """Base58 string -> 32 bytes."""
    try:
        raw = base58_decode(value)
    except EncodingError as e:
        raise SerializationFailed(f"Invalid {what}: {e}")
    if len(raw) != PUBKEY_LENGTH:
        raise SerializationFailed(f"{what} must decode to 32 bytes, got {len(raw)}")
    return raw


@dataclass
class MessageHeader:
    num_required_signatures: int = 1
    num_readonly_signed_accounts: int = 0
    num_readonly_unsigned_accounts: int = 1

    def serialize(self) -> bytes:
        return bytes([
            self.num_required_signatures,
            self.num_readonly_signed_accounts,
            self.num_readonly_unsigned_accounts,
        ])


@dataclass
class SolanaInstruction:
    """Compiled instruction: indices into the message's account keys."""
    program_id_index: int
    accounts: List[int] = field(default_factory=list)
    data: bytes = b''

    def serialize(self) -> bytes:
        data = bytes([self.program_id_index])
        data += encode_shortvec(len(self.accounts)) + bytes(self.accounts)
        data += encode_shortvec(len(self.data)) + self.data
        return data


@dataclass
class SolanaMessage:
    header: MessageHeader
    account_keys: List[bytes]
    recent_blockhash: bytes
    instructions: List[SolanaInstruction] = field(default_factory=list)

    def serialize(self) -> bytes:
        """
        header || shortvec(n) keys || blockhash || shortvec(n) instructions
        """
        if len(self.recent_blockhash) != BLOCKHASH_LENGTH:
            raise SerializationFailed("Recent blockhash must be 32 bytes")
        for key in self.account_keys:
            if len(key) != PUBKEY_LENGTH:
                raise SerializationFailed("Account keys must be 32 bytes")
        for instruction in self.instructions:
            indices = [instruction.program_id_index] + instruction.accounts
            if any(not 0 <= index < len(self.account_keys) for index in indices):
                raise SerializationFailed("Instruction references a missing account")

        data = self.header.serialize()
        data += encode_shortvec(len(self.account_keys))
        data += b''.join(self.account_keys)
        data += self.recent_blockhash
        data += encode_shortvec(len(self.instructions))
        data += b''.join(instruction.serialize() for instruction in self.instructions)
        return data

    @classmethod
    def deserialize(cls, data: bytes) -> 'SolanaMessage':
        try:
            header = MessageHeader(data[0], data[1], data[2])
            offset = 3
            n_keys, offset = decode_shortvec(data, offset)
            keys = []
            for _ in range(n_keys):
                keys.append(data[offset:offset + PUBKEY_LENGTH])
                offset += PUBKEY_LENGTH
            blockhash = data[offset:offset + BLOCKHASH_LENGTH]
            offset += BLOCKHASH_LENGTH

            n_instructions, offset = decode_shortvec(data, offset)
            instructions = []
            for _ in range(n_instructions):
                program_index = data[offset]
                n_accounts, offset = decode_shortvec(data, offset + 1)
                accounts = list(data[offset:offset + n_accounts])
                offset += n_accounts
                n_data, offset = decode_shortvec(data, offset)
                instructions.append(SolanaInstruction(program_index, accounts, data[offset:offset + n_data]))
                offset += n_data
        except (IndexError, EncodingError) as e:
            raise SerializationFailed(f"Truncated Solana message: {e}")

        if offset != len(data):
            raise SerializationFailed("Trailing bytes after Solana message")

        message = cls(header, keys, blockhash, instructions)
        # Re-serializing validates key and blockhash lengths
        message.serialize()
        return message


@dataclass
class SolanaTransaction:
    """Signatures plus the message they cover."""

    chain: ClassVar[Chain] = Chain.SOLANA

    message: SolanaMessage
    signatures: List[bytes] = field(default_factory=list)

    # Intent (not serialized)
    from_address: str = ''
    to_address: str = ''
    amount: int = 0
    fee: int = config.SOLANA_DEFAULT_FEE
    token_mint: str = ''

    @property
    def is_token_transfer(self) -> bool:
        return bool(self.token_mint)

    @property
    def is_signed(self) -> bool:
        required = self.message.header.num_required_signatures
        return len(self.signatures) == required and all(
            sig != bytes(SIGNATURE_LENGTH) for sig in self.signatures
        )

    @property
    def recent_blockhash(self) -> str:
        return base58_encode(self.message.recent_blockhash)

    def signing_hash(self) -> bytes:
        """ed25519 signs the serialized message itself, not a digest of it."""
        return self.message.serialize()

    def serialize(self) -> bytes:
        """
        shortvec(n_sig) || signatures || message

        Missing signatures are emitted as zero placeholders.
        """
        required = self.message.header.num_required_signatures
        signatures = list(self.signatures) + [bytes(SIGNATURE_LENGTH)] * (required - len(self.signatures))
        return encode_shortvec(len(signatures)) + b''.join(signatures) + self.message.serialize()

    @property
    def size(self) -> int:
        return len(self.serialize())

    @property
    def hash(self) -> str:
        return sha256(self.serialize()).hex()

    @property
    def transaction_id(self) -> Optional[str]:
        """Base58 of the fee payer's signature, as explorers show it."""
        if not self.is_signed:
            return None
        return base58_encode(self.signatures[0])

    def sign(self, seed: bytes) -> 'SolanaTransaction':
        """
        Sign as the fee payer (account key 0).

        Args:
            seed: 32-byte ed25519 private seed

        Returns:
            self
        """
        public_key = ed25519_public_key(seed)
        if not self.message.account_keys or self.message.account_keys[0] != public_key:
            raise InvalidKey("Key is not the fee payer of this message")

        signature = ed25519_sign(self.message.serialize(), seed)
        self.signatures = [signature] + self.signatures[1:]

        logger.info(f"Signed Solana transaction {self.transaction_id}")
        return self

    def verify(self) -> bool:
        if not self.is_signed:
            return False
        message = self.message.serialize()
        return all(
            ed25519_verify(signature, message, key)
            for signature, key in zip(self.signatures, self.message.account_keys)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'chain': self.chain.value,
            'from': self.from_address,
            'to': self.to_address,
            'amount': self.amount,
            'fee': self.fee,
            'recentBlockhash': self.recent_blockhash,
            'tokenMint': self.token_mint,
            'accountKeys': [base58_encode(key) for key in self.message.account_keys],
            'signatures': [base58_encode(sig) for sig in self.signatures],
            'size': self.size,
        }

    @classmethod
    def from_raw(cls, raw: bytes) -> 'SolanaTransaction':
        """Parse wire bytes; intent fields are left empty."""
        n_signatures, offset = decode_shortvec(raw, 0)
        signatures = []
        for _ in range(n_signatures):
            signatures.append(bytes(raw[offset:offset + SIGNATURE_LENGTH]))
            offset += SIGNATURE_LENGTH
        if offset > len(raw):
            raise SerializationFailed("Truncated Solana signatures")
        message = SolanaMessage.deserialize(bytes(raw[offset:]))
        # Zero placeholders stay in place; signature i belongs to account key i
        return cls(message=message, signatures=signatures)


def transfer_instruction_data(lamports: int) -> bytes:
    """System program Transfer: u32 LE instruction tag || u64 LE lamports."""
    if lamports < 0 or lamports >= 2 ** 64:
        raise SerializationFailed(f"Lamports out of range: {lamports}")
    return struct.pack('<IQ', config.SOLANA_TRANSFER_INSTRUCTION, lamports)


def build_transfer(params: Dict[str, Any]) -> SolanaTransaction:
    """
    Build an unsigned system-program transfer.

    Args:
        params: from, to, amount (lamports), recent_blockhash, optional fee

    Returns:
        Unsigned SolanaTransaction
    """
    from_address = params['from']
    to_address = params['to']
    amount = int(params['amount'])
    blockhash = params.get('recent_blockhash', params.get('recentBlockhash'))
    if not blockhash:
        raise SerializationFailed("recent_blockhash is required")

    from_key = decode_key(from_address, 'from address')
    to_key = decode_key(to_address, 'to address')
    if from_key == to_key:
        raise SerializationFailed("Sender and recipient must differ")
    program_key = decode_key(config.SOLANA_SYSTEM_PROGRAM_ID, 'system program id')

    message = SolanaMessage(
        header=MessageHeader(1, 0, 1),
        account_keys=[from_key, to_key, program_key],
        recent_blockhash=decode_key(blockhash, 'recent blockhash'),
        instructions=[SolanaInstruction(2, [0, 1], transfer_instruction_data(amount))],
    )

    tx = SolanaTransaction(
        message=message,
        from_address=from_address,
        to_address=to_address,
        amount=amount,
        fee=int(params.get('fee', config.SOLANA_DEFAULT_FEE)),
    )
    logger.debug(f"Built Solana transfer of {amount} lamports to {to_address}")
    return tx


def transfer_checked_instruction_data(amount: int, decimals: int) -> bytes:
    """SPL Token TransferChecked: u8 tag 12 || u64 LE amount || u8 decimals."""
    if amount < 0 or amount >= 2 ** 64:
        raise SerializationFailed(f"Token amount out of range: {amount}")
    if not 0 <= decimals <= 255:
        raise SerializationFailed(f"Token decimals out of range: {decimals}")
    return struct.pack('<BQB', config.SPL_TRANSFER_CHECKED_INSTRUCTION, amount, decimals)


def build_spl_transfer(params: Dict[str, Any]) -> SolanaTransaction:
    """
    Build an unsigned SPL token TransferChecked between token accounts.

    The owner pays the fee and signs. Token accounts are passed in
    explicitly; looking them up or creating them needs the network.

    Args:
        params: from (owner), source (owner's token account), to
            (recipient token account), mint, amount (token units),
            decimals, recent_blockhash, optional fee

    Returns:
        Unsigned SolanaTransaction
    """
    owner_address = params['from']
    destination_address = params['to']
    amount = int(params['amount'])
    decimals = int(params['decimals'])
    blockhash = params.get('recent_blockhash', params.get('recentBlockhash'))
    if not blockhash:
        raise SerializationFailed("recent_blockhash is required")

    owner = decode_key(owner_address, 'owner address')
    source = decode_key(params['source'], 'source token account')
    destination = decode_key(destination_address, 'destination token account')
    mint = decode_key(params['mint'], 'mint')
    program = decode_key(config.SPL_TOKEN_PROGRAM_ID, 'token program id')
    keys = [owner, source, destination, mint, program]
    if len(set(keys)) != len(keys):
        raise SerializationFailed("Owner, token accounts and mint must all differ")

    # writable signer, writable accounts, then read-only mint and program
    message = SolanaMessage(
        header=MessageHeader(1, 0, 2),
        account_keys=keys,
        recent_blockhash=decode_key(blockhash, 'recent blockhash'),
        instructions=[SolanaInstruction(4, [1, 3, 2, 0], transfer_checked_instruction_data(amount, decimals))],
    )

    tx = SolanaTransaction(
        message=message,
        from_address=owner_address,
        to_address=destination_address,
        amount=amount,
        fee=int(params.get('fee', config.SOLANA_DEFAULT_FEE)),
        token_mint=params['mint'],
    )
    logger.debug(f"Built SPL transfer of {amount} units of {params['mint']} to {destination_address}")
    return tx
