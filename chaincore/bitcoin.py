"""
chaincore Bitcoin Transactions
UTXO transaction model, SegWit serialization, BIP143 signing and coin selection.
"""

import logging
import struct
from dataclasses import dataclass, field
from typing import Any, ClassVar, Dict, List, Optional, Tuple

import config
from .address import (
    p2pkh_script,
    p2wpkh_script,
    script_pubkey_for_address,
)
from .chains import Chain
from .crypto import (
    der_to_signature,
    hash160,
    private_key_to_public_key,
    sha256d,
    sign,
    signature_to_der,
    verify,
)
from .encoding import encode_varint
from .exceptions import InsufficientFunds, InvalidKey, SerializationFailed

logger = logging.getLogger(__name__)

INPUT_P2PKH = 'p2pkh'
INPUT_P2WPKH = 'p2wpkh'
INPUT_P2SH_P2WPKH = 'p2sh-p2wpkh'

STRATEGY_LARGEST_FIRST = 'largest_first'
STRATEGY_SMALLEST_FIRST = 'smallest_first'

WITNESS_SCALE_FACTOR = 4


# ============================================================================
# SCRIPT HELPERS
# ============================================================================

def _pack(fmt: str, value: int) -> bytes:
    try:
        return struct.pack(fmt, value)
    except struct.error as e:
        raise SerializationFailed(f"Value {value!r} does not fit {fmt}: {e}")


def push_data(data: bytes) -> bytes:
    """Minimal script push of ``data``."""
    length = len(data)
    if length < 0x4c:
        return bytes([length]) + data
    elif length <= 0xff:
        return b'\x4c' + bytes([length]) + data
    elif length <= 0xffff:
        return b'\x4d' + _pack('<H', length) + data
    return b'\x4e' + _pack('<I', length) + data


def serialize_script(script: bytes) -> bytes:
    """Script with varint length prefix."""
    return encode_varint(len(script)) + script


def classify_script(script_pubkey: bytes) -> Optional[str]:
    """Spend type for the scripts this module can sign, else None."""
    if len(script_pubkey) == 25 and script_pubkey[:3] == b'\x76\xa9\x14' and script_pubkey[23:] == b'\x88\xac':
        return INPUT_P2PKH
    if len(script_pubkey) == 22 and script_pubkey[:2] == b'\x00\x14':
        return INPUT_P2WPKH
    if len(script_pubkey) == 23 and script_pubkey[:2] == b'\xa9\x14' and script_pubkey[22] == 0x87:
        return INPUT_P2SH_P2WPKH
    return None


def is_valid_txid(txid: str) -> bool:
    if not isinstance(txid, str) or len(txid) != 64:
        return False
    try:
        bytes.fromhex(txid)
        return True
    except ValueError:
        return False


# ============================================================================
# INPUTS / OUTPUTS
# ============================================================================

@dataclass
class TxInput:
    """Transaction Input - references a previous output."""

    txid: str               # Previous transaction hash (display order)
    vout: int               # Output index in previous transaction
    value: int = 0          # Value of the spent output, covered by BIP143
    script_pubkey: bytes = b''  # Locking script of the spent output
    script_sig: bytes = b''
    sequence: int = config.DEFAULT_SEQUENCE
    witness: List[bytes] = field(default_factory=list)
    address: str = ''

    @property
    def kind(self) -> Optional[str]:
        return classify_script(self.script_pubkey)

    @property
    def is_segwit(self) -> bool:
        return self.kind in (INPUT_P2WPKH, INPUT_P2SH_P2WPKH)

    def outpoint(self) -> bytes:
        if not is_valid_txid(self.txid):
            raise SerializationFailed(f"Invalid previous txid: {self.txid!r}")
        return bytes.fromhex(self.txid)[::-1] + _pack('<I', self.vout)

    def serialize(self) -> bytes:
        """Serialize input (non-witness part)."""
        data = self.outpoint()
        data += serialize_script(self.script_sig)
        data += _pack('<I', self.sequence)
        return data

    def serialize_witness(self) -> bytes:
        data = encode_varint(len(self.witness))
        for item in self.witness:
            data += serialize_script(item)
        return data

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'txid': self.txid,
            'vout': self.vout,
            'value': self.value,
            'scriptPubKey': self.script_pubkey.hex(),
            'scriptSig': self.script_sig.hex(),
            'sequence': self.sequence,
            'witness': [item.hex() for item in self.witness],
            'address': self.address,
        }


@dataclass
class TxOutput:
    """Transaction Output - defines how coins can be spent."""

    value: int              # Amount in satoshis
    script_pubkey: bytes    # Locking script
    address: str = ''

    def serialize(self) -> bytes:
        """Serialize output for hashing."""
        return _pack('<Q', self.value) + serialize_script(self.script_pubkey)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'value': self.value,
            'scriptPubKey': self.script_pubkey.hex(),
            'address': self.address,
        }


# ============================================================================
# TRANSACTION
# ============================================================================

@dataclass
class BitcoinTransaction:
    """Bitcoin transaction with optional SegWit witness data."""

    chain: ClassVar[Chain] = Chain.BITCOIN

    inputs: List[TxInput] = field(default_factory=list)
    outputs: List[TxOutput] = field(default_factory=list)
    version: int = config.BITCOIN_TX_VERSION
    locktime: int = 0
    segwit: bool = False

    # Intent (not serialized)
    from_address: str = ''
    to_address: str = ''
    explicit_amount: Optional[int] = None
    network: str = 'mainnet'

    @property
    def input_value(self) -> int:
        return sum(inp.value for inp in self.inputs)

    @property
    def output_value(self) -> int:
        return sum(out.value for out in self.outputs)

    @property
    def amount(self) -> int:
        """Amount sent to the recipient; total outputs when not recorded."""
        if self.explicit_amount is not None:
            return self.explicit_amount
        return self.output_value

    @property
    def fee(self) -> int:
        return max(self.input_value - self.output_value, 0)

    @property
    def is_signed(self) -> bool:
        return bool(self.inputs) and all(inp.script_sig or inp.witness for inp in self.inputs)

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize_legacy(self) -> bytes:
        """Serialization without marker, flag or witnesses (txid preimage)."""
        data = _pack('<I', self.version)
        data += encode_varint(len(self.inputs))
        for inp in self.inputs:
            data += inp.serialize()
        data += encode_varint(len(self.outputs))
        for out in self.outputs:
            data += out.serialize()
        data += _pack('<I', self.locktime)
        return data

    def serialize(self) -> bytes:
        """
        Full wire serialization.

        version || [0x00 0x01] || inputs || outputs || [witnesses] || locktime
        """
        if not self.segwit:
            return self.serialize_legacy()

        data = _pack('<I', self.version)
        data += b'\x00\x01'
        data += encode_varint(len(self.inputs))
        for inp in self.inputs:
            data += inp.serialize()
        data += encode_varint(len(self.outputs))
        for out in self.outputs:
            data += out.serialize()
        for inp in self.inputs:
            data += inp.serialize_witness()
        data += _pack('<I', self.locktime)
        return data

    @property
    def txid(self) -> str:
        return sha256d(self.serialize_legacy())[::-1].hex()

    @property
    def wtxid(self) -> str:
        return sha256d(self.serialize())[::-1].hex()

    @property
    def hash(self) -> str:
        return self.txid

    @property
    def size(self) -> int:
        return len(self.serialize())

    @property
    def weight(self) -> int:
        base = len(self.serialize_legacy())
        return base * (WITNESS_SCALE_FACTOR - 1) + self.size

    @property
    def vsize(self) -> int:
        return (self.weight + WITNESS_SCALE_FACTOR - 1) // WITNESS_SCALE_FACTOR

    # ------------------------------------------------------------------
    # Signature hashes
    # ------------------------------------------------------------------

    def _script_code(self, inp: TxInput) -> bytes:
        kind = inp.kind
        if kind == INPUT_P2PKH:
            return inp.script_pubkey
        if kind == INPUT_P2WPKH:
            return p2pkh_script(inp.script_pubkey[2:])
        raise SerializationFailed(f"Cannot derive scriptCode for input {inp.txid}:{inp.vout}")

    def bip143_sighash(self, index: int, script_code: bytes, value: int,
                       sighash_type: int = config.SIGHASH_ALL) -> bytes:
        """
        BIP143 signature hash for a SegWit v0 input (SIGHASH_ALL).

        Args:
            index: Input being signed
            script_code: P2PKH-form script of the key hash
            value: Amount of the spent output
        """
        hash_prevouts = sha256d(b''.join(inp.outpoint() for inp in self.inputs))
        hash_sequence = sha256d(b''.join(_pack('<I', inp.sequence) for inp in self.inputs))
        hash_outputs = sha256d(b''.join(out.serialize() for out in self.outputs))

        inp = self.inputs[index]
        preimage = _pack('<I', self.version)
        preimage += hash_prevouts
        preimage += hash_sequence
        preimage += inp.outpoint()
        preimage += serialize_script(script_code)
        preimage += _pack('<Q', value)
        preimage += _pack('<I', inp.sequence)
        preimage += hash_outputs
        preimage += _pack('<I', self.locktime)
        preimage += _pack('<I', sighash_type)
        return sha256d(preimage)

    def legacy_sighash(self, index: int, script_code: bytes,
                       sighash_type: int = config.SIGHASH_ALL) -> bytes:
        """Pre-SegWit SIGHASH_ALL: scriptCode in the signed input, empty scripts elsewhere."""
        data = _pack('<I', self.version)
        data += encode_varint(len(self.inputs))
        for i, inp in enumerate(self.inputs):
            data += inp.outpoint()
            data += serialize_script(script_code if i == index else b'')
            data += _pack('<I', inp.sequence)
        data += encode_varint(len(self.outputs))
        for out in self.outputs:
            data += out.serialize()
        data += _pack('<I', self.locktime)
        data += _pack('<I', sighash_type)
        return sha256d(data)

    def signing_hash(self, index: int = 0, public_key: Optional[bytes] = None) -> bytes:
        """
        Digest signed for input ``index``.

        P2SH-P2WPKH inputs need ``public_key`` to rebuild their scriptCode.
        """
        if index >= len(self.inputs):
            raise SerializationFailed(f"No input at index {index}")
        inp = self.inputs[index]
        kind = inp.kind

        if kind == INPUT_P2PKH:
            return self.legacy_sighash(index, inp.script_pubkey)
        if kind == INPUT_P2WPKH:
            return self.bip143_sighash(index, self._script_code(inp), inp.value)
        if kind == INPUT_P2SH_P2WPKH:
            if public_key is None:
                raise SerializationFailed("P2SH-P2WPKH sighash requires the public key")
            return self.bip143_sighash(index, p2pkh_script(hash160(public_key)), inp.value)
        raise SerializationFailed(f"Unsupported input script: {inp.script_pubkey.hex()}")

    # ------------------------------------------------------------------
    # Signing
    # ------------------------------------------------------------------

    def _controls(self, inp: TxInput, public_key: bytes) -> bool:
        key_hash = hash160(public_key)
        kind = inp.kind
        if kind == INPUT_P2PKH:
            return inp.script_pubkey[3:23] == key_hash
        if kind == INPUT_P2WPKH:
            return inp.script_pubkey[2:] == key_hash
        if kind == INPUT_P2SH_P2WPKH:
            return inp.script_pubkey[2:22] == hash160(p2wpkh_script(key_hash))
        return False

    def sign_input(self, index: int, private_key: bytes,
                   sighash_type: int = config.SIGHASH_ALL) -> None:
        """
        Sign one input, filling scriptSig and/or witness.

        Args:
            index: Index of input to sign
            private_key: Key controlling the spent output
            sighash_type: Signature hash type (default SIGHASH_ALL)
        """
        public_key = private_key_to_public_key(private_key)
        inp = self.inputs[index]
        if not self._controls(inp, public_key):
            raise InvalidKey(f"Key does not control input {inp.txid}:{inp.vout}")

        digest = self.signing_hash(index, public_key)
        signature = signature_to_der(sign(digest, private_key)) + bytes([sighash_type])

        kind = inp.kind
        if kind == INPUT_P2PKH:
            inp.script_sig = push_data(signature) + push_data(public_key)
            inp.witness = []
        elif kind == INPUT_P2WPKH:
            inp.script_sig = b''
            inp.witness = [signature, public_key]
        else:
            inp.script_sig = push_data(p2wpkh_script(hash160(public_key)))
            inp.witness = [signature, public_key]

        if inp.witness:
            self.segwit = True

    def sign(self, private_key: bytes) -> 'BitcoinTransaction':
        """
        Sign every input the key controls.

        Returns:
            self
        """
        public_key = private_key_to_public_key(private_key)
        signed = 0
        for index, inp in enumerate(self.inputs):
            if self._controls(inp, public_key):
                self.sign_input(index, private_key)
                signed += 1

        if not signed:
            raise InvalidKey("Key does not control any input")

        logger.info(f"Signed Bitcoin transaction {self.txid} ({signed}/{len(self.inputs)} inputs)")
        return self

    def verify_input(self, index: int) -> bool:
        """Check the signature carried by an input."""
        inp = self.inputs[index]
        if inp.kind == INPUT_P2PKH:
            items = _parse_pushes(inp.script_sig)
        else:
            items = inp.witness
        if len(items) != 2:
            return False

        signature, public_key = items
        if not signature or not self._controls(inp, public_key):
            return False
        try:
            digest = self.signing_hash(index, public_key)
            return verify(der_to_signature(signature[:-1]), digest, public_key)
        except (InvalidKey, SerializationFailed):
            return False

    def verify(self) -> bool:
        """Verify all input signatures."""
        return bool(self.inputs) and all(self.verify_input(i) for i in range(len(self.inputs)))

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            'chain': self.chain.value,
            'txid': self.txid,
            'version': self.version,
            'inputs': [inp.to_dict() for inp in self.inputs],
            'outputs': [out.to_dict() for out in self.outputs],
            'locktime': self.locktime,
            'segwit': self.segwit,
            'from': self.from_address,
            'to': self.to_address,
            'amount': self.amount,
            'fee': self.fee,
            'size': self.size,
            'vsize': self.vsize,
        }


def _parse_pushes(script: bytes) -> List[bytes]:
    items = []
    position = 0
    while position < len(script):
        length = script[position]
        if length == 0 or length >= 0x4c:
            return []
        items.append(script[position + 1:position + 1 + length])
        position += 1 + length
    return items


# ============================================================================
# BUILDER
# ============================================================================

def estimate_size(n_inputs: int, n_outputs: int, input_kind: str = INPUT_P2WPKH) -> int:
    """Estimated virtual size in bytes."""
    return config.TX_BASE_SIZE + n_inputs * config.TX_INPUT_SIZE[input_kind] + n_outputs * config.TX_OUTPUT_SIZE


def select_utxos(utxos: List[TxInput], target: int, fee_rate: int,
                 strategy: str = STRATEGY_LARGEST_FIRST,
                 input_kind: str = INPUT_P2WPKH,
                 fixed_fee: Optional[int] = None) -> Tuple[List[TxInput], int]:
    """
    Greedy coin selection.

    Args:
        utxos: Candidate inputs
        target: Amount to pay (excluding fee)
        fee_rate: sat/vbyte used when ``fixed_fee`` is None
        strategy: 'largest_first' or 'smallest_first'
        input_kind: Spend type used for size estimation
        fixed_fee: Fee to use instead of estimating one

    Returns:
        Tuple of (selected inputs, fee)

    Raises:
        InsufficientFunds: If all candidates cannot cover target + fee
    """
    if strategy == STRATEGY_LARGEST_FIRST:
        ordered = sorted(utxos, key=lambda u: u.value, reverse=True)
    elif strategy == STRATEGY_SMALLEST_FIRST:
        ordered = sorted(utxos, key=lambda u: u.value)
    else:
        raise ValueError(f"Unknown coin selection strategy: {strategy}")

    selected = []
    total = 0
    fee = fixed_fee or 0
    for utxo in ordered:
        selected.append(utxo)
        total += utxo.value
        if fixed_fee is None:
            # Recipient plus change
            fee = estimate_size(len(selected), 2, input_kind) * fee_rate
        if total >= target + fee:
            logger.debug(f"Selected {len(selected)} UTXOs totalling {total} sat (fee {fee})")
            return selected, fee

    if fixed_fee is None:
        fee = estimate_size(max(len(ordered), 1), 2, input_kind) * fee_rate
    raise InsufficientFunds(target + fee, total)


def _utxo_from_params(data: Dict[str, Any], default_script: bytes, default_address: str) -> TxInput:
    script = data.get('script_pubkey', data.get('scriptPubKey'))
    if isinstance(script, str):
        script = bytes.fromhex(script)
    return TxInput(
        txid=data['txid'],
        vout=int(data['vout']),
        value=int(data['value']),
        script_pubkey=script if script else default_script,
        sequence=int(data.get('sequence', config.DEFAULT_SEQUENCE)),
        address=data.get('address', default_address),
    )


def build_transaction(params: Dict[str, Any]) -> BitcoinTransaction:
    """
    Build an unsigned transaction from a payment intent.

    Args:
        params: from, to, amount (sat), utxos, and optionally fee_rate,
            fee, change_address, strategy, network, locktime

    Returns:
        Unsigned BitcoinTransaction; change is added only above the dust threshold
    """
    network = params.get('network', 'mainnet')
    from_address = params['from']
    to_address = params['to']
    amount = int(params['amount'])
    if amount <= 0:
        raise SerializationFailed("Amount must be positive")

    from_script = script_pubkey_for_address(from_address, network)
    to_script = script_pubkey_for_address(to_address, network)
    change_address = params.get('change_address') or from_address
    change_script = script_pubkey_for_address(change_address, network)

    utxos = [_utxo_from_params(u, from_script, from_address) for u in params.get('utxos', [])]
    input_kind = classify_script(from_script) or INPUT_P2WPKH

    fixed_fee = params.get('fee')
    selected, fee = select_utxos(
        utxos,
        amount,
        int(params.get('fee_rate', config.DEFAULT_FEE_RATE)),
        strategy=params.get('strategy', STRATEGY_LARGEST_FIRST),
        input_kind=input_kind,
        fixed_fee=int(fixed_fee) if fixed_fee is not None else None,
    )

    outputs = [TxOutput(value=amount, script_pubkey=to_script, address=to_address)]
    change = sum(u.value for u in selected) - amount - fee
    if change > config.DUST_THRESHOLD:
        outputs.append(TxOutput(value=change, script_pubkey=change_script, address=change_address))
    else:
        logger.debug(f"Change of {change} sat absorbed into fee")

    tx = BitcoinTransaction(
        inputs=selected,
        outputs=outputs,
        locktime=int(params.get('locktime', 0)),
        segwit=any(inp.is_segwit for inp in selected),
        from_address=from_address,
        to_address=to_address,
        explicit_amount=amount,
        network=network,
    )
    logger.debug(f"Built Bitcoin transaction {tx.txid}: {len(selected)} in, {len(outputs)} out, fee {tx.fee}")
    return tx
