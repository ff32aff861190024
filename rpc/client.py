"""
chaincore RPC Client
HTTP JSON-RPC client and the balance oracle built on it.
"""

import logging
from typing import Any, Dict, List, Optional

import requests

import config
from chaincore.chains import Chain

logger = logging.getLogger(__name__)


class RPCClientError(Exception):
    """RPC client error."""
    pass


class RPCResponseError(Exception):
    """RPC response error."""

    def __init__(self, code: int, message: str):
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class RPCClient:
    """
    JSON-RPC 2.0 client over HTTP.

    Works against any node speaking JSON-RPC (Ethereum, Solana).
    """

    def __init__(self, url: str, timeout: float = config.RPC_TIMEOUT,
                 session: Optional[requests.Session] = None):
        """
        Initialize RPC client.

        Args:
            url: Endpoint URL
            timeout: Request timeout in seconds
            session: Optional requests session to reuse
        """
        self.url = url
        self.timeout = timeout
        self.session = session or requests.Session()

        # Request ID counter
        self._id = 0

    def call(self, method: str, *args) -> Any:
        """
        Call an RPC method.

        Args:
            method: Method name
            *args: Method arguments

        Returns:
            Method result
        """
        return self._request(method, list(args))

    def _post(self, payload: Any) -> Any:
        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
        except requests.Timeout:
            raise RPCClientError("Request timed out")
        except requests.ConnectionError:
            raise RPCClientError(f"Cannot connect to RPC server at {self.url}")
        except requests.RequestException as e:
            raise RPCClientError(f"Connection error: {e}")

        if response.status_code == 401:
            raise RPCClientError("Authentication failed")
        if response.status_code != 200:
            raise RPCClientError(f"HTTP error: {response.status_code}")

        try:
            return response.json()
        except ValueError as e:
            raise RPCClientError(f"Invalid JSON response: {e}")

    def _request(self, method: str, params: List = None) -> Any:
        self._id += 1
        request = {
            'jsonrpc': '2.0',
            'method': method,
            'params': params or [],
            'id': self._id,
        }
        logger.debug(f"RPC {method} -> {self.url}")

        result = self._post(request)
        if not isinstance(result, dict):
            raise RPCClientError("Malformed JSON-RPC response")

        if result.get('error') is not None:
            error = result['error']
            raise RPCResponseError(
                error.get('code', -1),
                error.get('message', 'Unknown error')
            )

        return result.get('result')

    def batch(self, calls: List[Dict]) -> List[Any]:
        """
        Execute batch RPC request.

        Args:
            calls: List of {'method': ..., 'params': [...]}

        Returns:
            List of results in call order; failed calls yield their error object
        """
        batch = []
        for i, call in enumerate(calls):
            batch.append({
                'jsonrpc': '2.0',
                'method': call['method'],
                'params': call.get('params', []),
                'id': i + 1,
            })

        results = self._post(batch)
        if not isinstance(results, list):
            raise RPCClientError("Malformed JSON-RPC batch response")

        results.sort(key=lambda x: x.get('id', 0))
        return [
            r.get('result') if r.get('error') is None else r.get('error')
            for r in results
        ]


class EsploraClient:
    """Minimal Esplora REST client (Bitcoin address stats)."""

    def __init__(self, base_url: str = config.BITCOIN_ESPLORA_URL, timeout: float = config.RPC_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = session or requests.Session()

    def get(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        try:
            response = self.session.get(url, timeout=self.timeout)
        except requests.RequestException as e:
            raise RPCClientError(f"Connection error: {e}")
        if response.status_code != 200:
            raise RPCClientError(f"HTTP error: {response.status_code}")
        try:
            return response.json()
        except ValueError as e:
            raise RPCClientError(f"Invalid JSON response: {e}")

    def get_address_balance(self, address: str) -> int:
        """Confirmed balance in satoshis."""
        stats = self.get(f"/address/{address}")['chain_stats']
        return int(stats['funded_txo_sum']) - int(stats['spent_txo_sum'])


class RPCBalanceOracle:
    """
    Balance oracle backed by public node endpoints.

    Pass an instance as ``balance_oracle`` to TransactionValidator.
    """

    def __init__(self, ethereum: Optional[RPCClient] = None, solana: Optional[RPCClient] = None,
                 bitcoin: Optional[EsploraClient] = None):
        self.ethereum = ethereum or RPCClient(config.ETHEREUM_RPC_URL)
        self.solana = solana or RPCClient(config.SOLANA_RPC_URL)
        self.bitcoin = bitcoin or EsploraClient()

    def get_balance(self, address: str, chain: str) -> int:
        """
        Current balance of ``address`` in the chain's smallest unit.

        Raises:
            RPCClientError / RPCResponseError: On transport or node failure
        """
        chain = Chain.parse(chain)
        if chain is Chain.ETHEREUM:
            result = self.ethereum.call('eth_getBalance', address, 'latest')
            return int(result, 16)
        if chain is Chain.SOLANA:
            result = self.solana.call('getBalance', address)
            return int(result['value'])
        return self.bitcoin.get_address_balance(address)
