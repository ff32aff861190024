"""
chaincore Chains
Supported chain families and address kinds.
"""

from enum import Enum
from typing import Union

import config


class Chain(Enum):
    """Supported chains; the value is the tag used in params and by the oracle."""
    ETHEREUM = 'ethereum'
    BITCOIN = 'bitcoin'
    SOLANA = 'solana'

    @classmethod
    def parse(cls, value: Union['Chain', str]) -> 'Chain':
        """Accept a Chain or its (case-insensitive) name."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unsupported chain: {value!r}")

    @property
    def decimals(self) -> int:
        return config.CHAIN_DECIMALS[self.value]

    @property
    def unit(self) -> int:
        """Smallest units per whole coin."""
        return config.smallest_unit(self.value)

    def coin_type(self, network: str = 'mainnet') -> int:
        """SLIP-44 coin type; Bitcoin testnet uses coin type 1."""
        if self is Chain.BITCOIN and network != 'mainnet':
            return config.BIP44_TESTNET_COIN_TYPE
        return config.BIP44_COIN_TYPES[self.value]

    @property
    def curve(self) -> str:
        return 'ed25519' if self is Chain.SOLANA else 'secp256k1'

    @property
    def default_kind(self) -> 'AddressKind':
        return {
            Chain.ETHEREUM: AddressKind.ACCOUNT,
            Chain.BITCOIN: AddressKind.P2WPKH,
            Chain.SOLANA: AddressKind.ED25519,
        }[self]


class AddressKind(Enum):
    P2PKH = 'p2pkh'
    P2SH_P2WPKH = 'p2sh-p2wpkh'
    P2WPKH = 'p2wpkh'
    P2WSH = 'p2wsh'
    P2TR = 'p2tr'
    ACCOUNT = 'account'
    ED25519 = 'ed25519'

    @classmethod
    def parse(cls, value: Union['AddressKind', str]) -> 'AddressKind':
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            raise ValueError(f"Unknown address kind: {value!r}")
