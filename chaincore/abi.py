"""
chaincore ABI
Solidity call data for the ERC-20 token interface.
"""

from typing import Any, List, Sequence, Tuple

from .address import ETHEREUM_ADDRESS_BODY, to_checksum_address
from .crypto import keccak256
from .exceptions import SerializationFailed

WORD_SIZE = 32
MAX_UINT256 = 2 ** 256 - 1

ERC20_TRANSFER = 'transfer(address,uint256)'
ERC20_APPROVE = 'approve(address,uint256)'
ERC20_TRANSFER_FROM = 'transferFrom(address,address,uint256)'
ERC20_BALANCE_OF = 'balanceOf(address)'


def function_selector(signature: str) -> bytes:
    """First four bytes of keccak256 of the canonical signature."""
    return keccak256(signature.encode('ascii'))[:4]


def encode_uint256(value: int) -> bytes:
    if not 0 <= value <= MAX_UINT256:
        raise SerializationFailed(f"uint256 out of range: {value}")
    return value.to_bytes(WORD_SIZE, 'big')


def encode_address(address: str) -> bytes:
    """20-byte address, left-padded to one word."""
    body = address[2:] if address[:2].lower() == '0x' else address
    if not ETHEREUM_ADDRESS_BODY.fullmatch(body):
        raise SerializationFailed(f"Invalid address argument: {address!r}")
    return bytes(12) + bytes.fromhex(body)


def encode_bool(value: bool) -> bytes:
    return encode_uint256(1 if value else 0)


_ENCODERS = {
    'address': encode_address,
    'uint256': encode_uint256,
    'bool': encode_bool,
}


def _argument_types(signature: str) -> List[str]:
    if '(' not in signature or not signature.endswith(')'):
        raise SerializationFailed(f"Malformed function signature: {signature!r}")
    inner = signature[signature.index('(') + 1:-1]
    return inner.split(',') if inner else []


def encode_function_call(signature: str, args: Sequence[Any]) -> bytes:
    """
    Selector followed by one 32-byte word per static argument.

    Args:
        signature: Canonical signature, e.g. "transfer(address,uint256)"
        args: Argument values in order

    Returns:
        Call data bytes

    Raises:
        SerializationFailed: Unsupported type, arity mismatch or bad value
    """
    types = _argument_types(signature)
    if len(types) != len(args):
        raise SerializationFailed(f"{signature} takes {len(types)} arguments, got {len(args)}")

    data = function_selector(signature)
    for arg_type, value in zip(types, args):
        encoder = _ENCODERS.get(arg_type)
        if encoder is None:
            raise SerializationFailed(f"Unsupported ABI type: {arg_type}")
        data += encoder(value)
    return data


def decode_function_call(signature: str, data: bytes) -> Tuple[Any, ...]:
    """Inverse of encode_function_call for the same static signature."""
    types = _argument_types(signature)
    if data[:4] != function_selector(signature):
        raise SerializationFailed(f"Call data is not {signature}")
    words = data[4:]
    if len(words) != WORD_SIZE * len(types):
        raise SerializationFailed(f"Expected {len(types)} words, got {len(words)} bytes")

    values = []
    for i, arg_type in enumerate(types):
        word = words[i * WORD_SIZE:(i + 1) * WORD_SIZE]
        if arg_type == 'address':
            if word[:12] != bytes(12):
                raise SerializationFailed("Address word has non-zero padding")
            values.append(to_checksum_address(word[12:]))
        elif arg_type == 'uint256':
            values.append(int.from_bytes(word, 'big'))
        elif arg_type == 'bool':
            values.append(int.from_bytes(word, 'big') != 0)
        else:
            raise SerializationFailed(f"Unsupported ABI type: {arg_type}")
    return tuple(values)


# ============================================================================
# ERC-20
# ============================================================================

def erc20_transfer(to: str, amount: int) -> bytes:
    return encode_function_call(ERC20_TRANSFER, [to, amount])


def erc20_approve(spender: str, amount: int) -> bytes:
    return encode_function_call(ERC20_APPROVE, [spender, amount])


def erc20_transfer_from(owner: str, to: str, amount: int) -> bytes:
    return encode_function_call(ERC20_TRANSFER_FROM, [owner, to, amount])


def erc20_balance_of(account: str) -> bytes:
    return encode_function_call(ERC20_BALANCE_OF, [account])
