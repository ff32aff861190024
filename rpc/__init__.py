"""
chaincore RPC Module
JSON-RPC clients and the network balance oracle.
"""

from .client import EsploraClient, RPCBalanceOracle, RPCClient, RPCClientError, RPCResponseError

__all__ = [
    'RPCClient',
    'EsploraClient',
    'RPCBalanceOracle',
    'RPCClientError',
    'RPCResponseError',
]
