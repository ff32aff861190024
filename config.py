"""
chaincore Configuration
Chain parameters, encoding tables and validation limits.
"""

from typing import Dict, Any
import os

# ============================================================================
# CHAINS AND NETWORKS
# ============================================================================

WEI_PER_ETHER = 10 ** 18
GWEI = 10 ** 9

CHAIN_DECIMALS = {
    'ethereum': 18,
    'bitcoin': 8,
    'solana': 9,
}

# ============================================================================
# BIP32 / BIP44
# ============================================================================

MAINNET_BIP32_PUBLIC = 0x0488B21E  # xpub
MAINNET_BIP32_PRIVATE = 0x0488ADE4  # xprv

TESTNET_BIP32_PUBLIC = 0x043587CF  # tpub
TESTNET_BIP32_PRIVATE = 0x04358394  # tprv

BIP32_VERSIONS = {
    ('mainnet', True): MAINNET_BIP32_PRIVATE,
    ('mainnet', False): MAINNET_BIP32_PUBLIC,
    ('testnet', True): TESTNET_BIP32_PRIVATE,
    ('testnet', False): TESTNET_BIP32_PUBLIC,
}

BIP32_SEED_KEY = b"Bitcoin seed"
SLIP10_ED25519_SEED_KEY = b"ed25519 seed"

# Seed length bounds in bytes (128 - 512 bits)
MIN_SEED_LENGTH = 16
MAX_SEED_LENGTH = 64

HARDENED_OFFSET = 0x80000000

# SLIP-44 registered coin types
BIP44_COIN_TYPES = {
    'bitcoin': 0,
    'ethereum': 60,
    'solana': 501,
}
BIP44_TESTNET_COIN_TYPE = 1

# ============================================================================
# BITCOIN ADDRESS PREFIXES
# ============================================================================

MAINNET_PUBKEY_ADDRESS_PREFIX = 0x00  # '1' prefix
MAINNET_SCRIPT_ADDRESS_PREFIX = 0x05  # '3' prefix
MAINNET_SECRET_KEY_PREFIX = 0x80  # '5', 'K' or 'L' prefix
MAINNET_BECH32_HRP = "bc"

TESTNET_PUBKEY_ADDRESS_PREFIX = 0x6F  # 'm' or 'n' prefix
TESTNET_SCRIPT_ADDRESS_PREFIX = 0xC4  # '2' prefix
TESTNET_SECRET_KEY_PREFIX = 0xEF  # '9' or 'c' prefix
TESTNET_BECH32_HRP = "tb"

BITCOIN_NETWORKS: Dict[str, Dict[str, Any]] = {
    'mainnet': {
        'pubkey_prefix': MAINNET_PUBKEY_ADDRESS_PREFIX,
        'script_prefix': MAINNET_SCRIPT_ADDRESS_PREFIX,
        'secret_prefix': MAINNET_SECRET_KEY_PREFIX,
        'hrp': MAINNET_BECH32_HRP,
    },
    'testnet': {
        'pubkey_prefix': TESTNET_PUBKEY_ADDRESS_PREFIX,
        'script_prefix': TESTNET_SCRIPT_ADDRESS_PREFIX,
        'secret_prefix': TESTNET_SECRET_KEY_PREFIX,
        'hrp': TESTNET_BECH32_HRP,
    },
}

# ============================================================================
# TRANSACTION PARAMETERS
# ============================================================================

# Bitcoin
BITCOIN_TX_VERSION = 2
DEFAULT_SEQUENCE = 0xfffffffd  # Opt-in RBF
DUST_THRESHOLD = 546  # satoshis
SIGHASH_ALL = 0x01
MAX_UINT32 = 0xffffffff  # vout, sequence, version and locktime fields

# Size estimates used by fee estimation (bytes / vbytes)
TX_BASE_SIZE = 10
TX_INPUT_SIZE = {
    'p2pkh': 148,
    'p2wpkh': 68,
    'p2sh-p2wpkh': 91,
}
TX_OUTPUT_SIZE = 31

DEFAULT_FEE_RATE = 10  # sat/vbyte

# Ethereum
EIP1559_TX_TYPE = 0x02
ETHEREUM_MAINNET_CHAIN_ID = 1
MIN_GAS_LIMIT = 21_000
ERC20_GAS_LIMIT = 100_000
MAX_GAS_LIMIT = 30_000_000
MAX_FEE_PER_GAS = 10_000 * GWEI
MAX_CALLDATA_SIZE = 131_072  # 128 KB
NONCE_OVERFLOW_GUARD = 2 ** 64 - 1 - 1000

# Solana
SOLANA_SYSTEM_PROGRAM_ID = "11111111111111111111111111111111"
SOLANA_TRANSFER_INSTRUCTION = 2
SPL_TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
SPL_TRANSFER_CHECKED_INSTRUCTION = 12
SOLANA_DEFAULT_FEE = 5000  # lamports per signature
SOLANA_MAX_TX_SIZE = 1232  # IPv6 MTU minus headers

# ============================================================================
# VALIDATION LIMITS
# ============================================================================

# Sanity ceilings, expressed in whole coins of each chain
MAX_AMOUNT_COINS = 1_000_000_000
MAX_FEE_COINS = 100

MAX_TX_SIZE = 100_000  # 100 KB
MAX_FEE_PERCENT = 10  # of total input value
MIN_SOLANA_AMOUNT = 1  # lamport

# ============================================================================
# THRESHOLD SHARES
# ============================================================================

# Mersenne prime 2^521 - 1, large enough for any 64-byte secret
SHAMIR_PRIME = 2 ** 521 - 1
SHAMIR_MAX_SHARES = 255

# ============================================================================
# BALANCE ORACLE ENDPOINTS
# ============================================================================

ETHEREUM_RPC_URL = os.environ.get('CHAINCORE_ETHEREUM_RPC_URL', 'http://127.0.0.1:8545')
SOLANA_RPC_URL = os.environ.get('CHAINCORE_SOLANA_RPC_URL', 'https://api.mainnet-beta.solana.com')
BITCOIN_ESPLORA_URL = os.environ.get('CHAINCORE_BITCOIN_ESPLORA_URL', 'https://blockstream.info/api')

RPC_TIMEOUT = int(os.environ.get('CHAINCORE_RPC_TIMEOUT', '30'))

# ============================================================================
# LOGGING
# ============================================================================

LOG_LEVEL = os.environ.get('CHAINCORE_LOG_LEVEL', "INFO")
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def smallest_unit(chain: str) -> int:
    """Number of smallest units in one whole coin of ``chain``."""
    return 10 ** CHAIN_DECIMALS[chain]


def get_bitcoin_network(network: str) -> Dict[str, Any]:
    """
    Get Bitcoin address parameters for a network.

    Args:
        network: 'mainnet' or 'testnet'

    Returns:
        Dictionary with pubkey/script/secret prefixes and bech32 HRP
    """
    try:
        return BITCOIN_NETWORKS[network]
    except KeyError:
        raise ValueError(f"Unknown network: {network}")
