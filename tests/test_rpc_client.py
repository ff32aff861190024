"""
Tests for the chaincore RPC client and balance oracle.
"""

import pytest
import sys
import os
from unittest.mock import MagicMock

import requests

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from chaincore.exceptions import BalanceLookupFailed
from chaincore.validator import INSUFFICIENT_BALANCE, TransactionValidator
from chaincore.ethereum import EthereumTransaction
from rpc.client import (
    EsploraClient,
    RPCBalanceOracle,
    RPCClient,
    RPCClientError,
    RPCResponseError,
)


def response(payload, status_code=200):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = payload
    return resp


def session_returning(payload, status_code=200):
    session = MagicMock()
    session.post.return_value = response(payload, status_code)
    session.get.return_value = response(payload, status_code)
    return session


class TestRPCClient:
    """Test JSON-RPC calls."""

    def test_call(self):
        """Test request shape and result extraction."""
        session = session_returning({'jsonrpc': '2.0', 'id': 1, 'result': '0x10'})
        client = RPCClient('http://node', session=session)

        assert client.call('eth_getBalance', '0xabc', 'latest') == '0x10'
        _, kwargs = session.post.call_args
        assert kwargs['json'] == {
            'jsonrpc': '2.0',
            'method': 'eth_getBalance',
            'params': ['0xabc', 'latest'],
            'id': 1,
        }

    def test_request_ids_increase(self):
        """Each request gets a fresh id."""
        session = session_returning({'result': None})
        client = RPCClient('http://node', session=session)
        client.call('a')
        client.call('b')
        assert session.post.call_args[1]['json']['id'] == 2

    def test_error_response(self):
        """JSON-RPC errors raise RPCResponseError."""
        session = session_returning({'error': {'code': -32601, 'message': 'Method not found'}})
        with pytest.raises(RPCResponseError) as exc_info:
            RPCClient('http://node', session=session).call('nope')
        assert exc_info.value.code == -32601

    def test_http_error(self):
        """Non-200 responses raise RPCClientError."""
        session = session_returning({}, status_code=503)
        with pytest.raises(RPCClientError):
            RPCClient('http://node', session=session).call('x')

    def test_connection_error(self):
        """Transport failures raise RPCClientError."""
        session = MagicMock()
        session.post.side_effect = requests.ConnectionError("refused")
        with pytest.raises(RPCClientError):
            RPCClient('http://node', session=session).call('x')

    def test_invalid_json(self):
        """Undecodable bodies raise RPCClientError."""
        session = MagicMock()
        resp = response(None)
        resp.json.side_effect = ValueError("not json")
        session.post.return_value = resp
        with pytest.raises(RPCClientError):
            RPCClient('http://node', session=session).call('x')

    def test_batch(self):
        """Batch results come back in call order."""
        session = session_returning([
            {'id': 2, 'result': 'second'},
            {'id': 1, 'result': 'first'},
        ])
        client = RPCClient('http://node', session=session)
        results = client.batch([{'method': 'a'}, {'method': 'b', 'params': [1]}])
        assert results == ['first', 'second']


class TestBalanceOracle:
    """Test per-chain balance lookups."""

    def test_ethereum(self):
        """eth_getBalance returns hex wei."""
        ethereum = RPCClient('http://eth', session=session_returning({'result': '0xde0b6b3a7640000'}))
        oracle = RPCBalanceOracle(ethereum=ethereum, solana=MagicMock(), bitcoin=MagicMock())
        assert oracle.get_balance('0xabc', 'ethereum') == 10 ** 18

    def test_solana(self):
        """getBalance returns a context/value object."""
        solana = RPCClient('http://sol', session=session_returning({'result': {'context': {}, 'value': 2500}}))
        oracle = RPCBalanceOracle(ethereum=MagicMock(), solana=solana, bitcoin=MagicMock())
        assert oracle.get_balance('SoLaddr', 'solana') == 2500

    def test_bitcoin(self):
        """Esplora balance is funded minus spent."""
        session = session_returning({'chain_stats': {'funded_txo_sum': 150000, 'spent_txo_sum': 50000}})
        bitcoin = EsploraClient('https://esplora/api/', session=session)
        oracle = RPCBalanceOracle(ethereum=MagicMock(), solana=MagicMock(), bitcoin=bitcoin)

        assert oracle.get_balance('bc1qxyz', 'bitcoin') == 100000
        assert session.get.call_args[0][0] == 'https://esplora/api/address/bc1qxyz'

    def test_validator_integration(self):
        """The oracle plugs into the validator; failures are not zero balance."""
        tx = EthereumTransaction.from_dict({
            'from': '0x5aAeb6053F3E94C9b9A09f33669435E7Ef1BeAed',
            'to': '0xfB6916095ca1df60bB79Ce92cE3Ea74c37c5d359',
            'value': 10 ** 18,
            'maxFeePerGas': 2 * 10 ** 9,
            'maxPriorityFeePerGas': 10 ** 9,
        })

        poor = RPCClient('http://eth', session=session_returning({'result': '0x1'}))
        oracle = RPCBalanceOracle(ethereum=poor, solana=MagicMock(), bitcoin=MagicMock())
        assert TransactionValidator(oracle).validate(tx).rule == INSUFFICIENT_BALANCE

        broken = RPCClient('http://eth', session=session_returning({}, status_code=500))
        oracle = RPCBalanceOracle(ethereum=broken, solana=MagicMock(), bitcoin=MagicMock())
        with pytest.raises(BalanceLookupFailed):
            TransactionValidator(oracle).validate(tx)


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
