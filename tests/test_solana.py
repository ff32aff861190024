"""
Tests for chaincore Solana transactions.
"""

import pytest
import sys
import os

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from chaincore.crypto import ed25519_public_key, ed25519_sign, ed25519_verify
from chaincore.encoding import base58_encode
from chaincore.exceptions import InvalidKey, SerializationFailed
from chaincore.solana import (
    MessageHeader,
    SolanaInstruction,
    SolanaTransaction,
    SolanaMessage,
    build_spl_transfer,
    build_transfer,
    transfer_checked_instruction_data,
    transfer_instruction_data,
)
import config

SENDER_SEED = b'\x01' * 32
SENDER = base58_encode(ed25519_public_key(SENDER_SEED))
RECIPIENT = base58_encode(ed25519_public_key(b'\x02' * 32))
BLOCKHASH = base58_encode(b'\x07' * 32)


def build(**overrides) -> SolanaTransaction:
    params = {
        'from': SENDER,
        'to': RECIPIENT,
        'amount': 1_000_000,
        'recent_blockhash': BLOCKHASH,
    }
    params.update(overrides)
    return build_transfer(params)


class TestInstruction:
    """Test system program instruction data."""

    def test_transfer_data(self):
        """u32 LE tag 2 followed by u64 LE lamports."""
        assert transfer_instruction_data(1).hex() == '02000000' + '0100000000000000'
        assert len(transfer_instruction_data(10 ** 9)) == 12

    def test_lamports_range(self):
        """Test values outside u64."""
        with pytest.raises(SerializationFailed):
            transfer_instruction_data(2 ** 64)


class TestMessage:
    """Test message layout."""

    def test_layout(self):
        """Header, keys, blockhash and one transfer instruction."""
        message = build().message.serialize()

        assert message[:3] == bytes([1, 0, 1])
        assert message[3] == 3
        assert message[4:36] == ed25519_public_key(SENDER_SEED)
        assert message[100:132] == b'\x07' * 32
        assert message[132] == 1
        # program index 2, accounts [0, 1], 12 bytes of data
        assert message[133:138] == bytes([2, 2, 0, 1, 12])
        assert len(message) == 150

    def test_system_program_is_last(self):
        """The system program is the read-only unsigned account."""
        assert build().message.account_keys[2] == bytes(32)

    def test_round_trip(self):
        """Test message deserialization."""
        message = build().message
        assert SolanaMessage.deserialize(message.serialize()) == message

    def test_bad_index(self):
        """Instructions may only reference existing accounts."""
        tx = build()
        tx.message.instructions[0].accounts = [0, 5]
        with pytest.raises(SerializationFailed):
            tx.serialize()

    def test_trailing_bytes(self):
        """Test that trailing bytes are refused."""
        with pytest.raises(SerializationFailed):
            SolanaMessage.deserialize(build().message.serialize() + b'\x00')


class TestBuilder:
    """Test transfer building."""

    def test_fields(self):
        """Test intent fields."""
        tx = build()

        assert tx.amount == 1_000_000
        assert tx.fee == config.SOLANA_DEFAULT_FEE
        assert tx.recent_blockhash == BLOCKHASH
        assert not tx.is_signed

    def test_unsigned_serialization(self):
        """Unsigned transactions carry a zero placeholder signature."""
        raw = build().serialize()

        assert raw[0] == 1
        assert raw[1:65] == bytes(64)
        assert len(raw) == 215

    def test_same_sender_and_recipient(self):
        """Test a self-transfer."""
        with pytest.raises(SerializationFailed):
            build(to=SENDER)

    def test_missing_blockhash(self):
        """Test a missing blockhash."""
        with pytest.raises(SerializationFailed):
            build(recent_blockhash='')

    def test_bad_key(self):
        """Test an address that is not 32 bytes."""
        with pytest.raises(SerializationFailed):
            build(to=base58_encode(b'\x01' * 31))


class TestSigning:
    """Test ed25519 signing."""

    def test_sign(self):
        """The fee payer signs the raw message bytes."""
        tx = build().sign(SENDER_SEED)

        assert tx.is_signed
        assert ed25519_verify(tx.signatures[0], tx.signing_hash(), ed25519_public_key(SENDER_SEED))
        assert tx.verify()
        assert tx.transaction_id == base58_encode(tx.signatures[0])

    def test_wrong_signer(self):
        """Only the fee payer's key may sign."""
        with pytest.raises(InvalidKey):
            build().sign(b'\x02' * 32)

    def test_hash_changes_on_signing(self):
        """The hash covers the wire bytes including signatures."""
        tx = build()
        before = tx.hash
        assert tx.sign(SENDER_SEED).hash != before

    def test_raw_round_trip(self):
        """Test parsing a signed transaction."""
        tx = build().sign(SENDER_SEED)
        parsed = SolanaTransaction.from_raw(tx.serialize())

        assert parsed.signatures == tx.signatures
        assert parsed.message == tx.message
        assert parsed.verify()

    def test_partial_signatures_keep_positions(self):
        """A missing first signature does not shift the second onto key 0."""
        cosigner_seed = b'\x03' * 32
        cosigner = ed25519_public_key(cosigner_seed)
        message = SolanaMessage(
            header=MessageHeader(2, 0, 1),
            account_keys=[ed25519_public_key(SENDER_SEED), cosigner, bytes(32)],
            recent_blockhash=b'\x07' * 32,
            instructions=[SolanaInstruction(2, [0, 1], transfer_instruction_data(1))],
        )
        cosignature = ed25519_sign(message.serialize(), cosigner_seed)
        partial = SolanaTransaction(message=message, signatures=[bytes(64), cosignature])

        parsed = SolanaTransaction.from_raw(partial.serialize())
        assert parsed.signatures == [bytes(64), cosignature]
        assert not parsed.is_signed

        parsed.sign(SENDER_SEED)
        assert parsed.signatures[1] == cosignature
        assert parsed.verify()

    def test_tampered_message(self):
        """Changing the message invalidates the signature."""
        tx = build().sign(SENDER_SEED)
        tx.message.instructions[0].data = transfer_instruction_data(2_000_000)
        assert not tx.verify()

    def test_to_dict(self):
        """Test dictionary form."""
        data = build().sign(SENDER_SEED).to_dict()
        assert data['chain'] == 'solana'
        assert data['accountKeys'][0] == SENDER
        assert data['size'] == 215


class TestTokenTransfer:
    """Test SPL token TransferChecked."""

    MINT = 'EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v'
    SOURCE = base58_encode(b'\x03' * 32)
    DESTINATION = base58_encode(b'\x04' * 32)

    def build_token(self, **overrides) -> SolanaTransaction:
        params = {
            'from': SENDER,
            'source': self.SOURCE,
            'to': self.DESTINATION,
            'mint': self.MINT,
            'amount': 1_500_000,
            'decimals': 6,
            'recent_blockhash': BLOCKHASH,
        }
        params.update(overrides)
        return build_spl_transfer(params)

    def test_instruction_data(self):
        """u8 tag 12, u64 LE amount, u8 decimals."""
        data = transfer_checked_instruction_data(1_500_000, 6)
        assert data.hex() == '0c' + '60e3160000000000' + '06'

    def test_instruction_data_range(self):
        """Test amounts and decimals outside their widths."""
        with pytest.raises(SerializationFailed):
            transfer_checked_instruction_data(2 ** 64, 6)
        with pytest.raises(SerializationFailed):
            transfer_checked_instruction_data(1, 256)

    def test_accounts(self):
        """Source, mint, destination, then the owner as signer."""
        message = self.build_token().message
        keys = [base58_encode(key) for key in message.account_keys]

        assert message.header == MessageHeader(1, 0, 2)
        assert keys == [SENDER, self.SOURCE, self.DESTINATION, self.MINT, config.SPL_TOKEN_PROGRAM_ID]

        instruction = message.instructions[0]
        assert keys[instruction.program_id_index] == config.SPL_TOKEN_PROGRAM_ID
        assert [keys[i] for i in instruction.accounts] == [self.SOURCE, self.MINT, self.DESTINATION, SENDER]

    def test_intent(self):
        """The mint marks the transaction as a token transfer."""
        tx = self.build_token()
        assert tx.is_token_transfer
        assert tx.amount == 1_500_000
        assert tx.to_address == self.DESTINATION
        assert tx.to_dict()['tokenMint'] == self.MINT
        assert not build().is_token_transfer

    def test_sign(self):
        """The owner signs as fee payer."""
        tx = self.build_token().sign(SENDER_SEED)
        assert tx.verify()

        parsed = SolanaTransaction.from_raw(tx.serialize())
        assert parsed.verify()
        assert parsed.message.instructions[0].data == transfer_checked_instruction_data(1_500_000, 6)

    def test_repeated_account(self):
        """Owner, token accounts and mint must all differ."""
        with pytest.raises(SerializationFailed):
            self.build_token(to=self.SOURCE)
        with pytest.raises(SerializationFailed):
            self.build_token(source=SENDER)

    def test_missing_blockhash(self):
        """Test a token transfer without a blockhash."""
        with pytest.raises(SerializationFailed):
            self.build_token(recent_blockhash='')


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
