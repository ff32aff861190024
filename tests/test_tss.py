"""
Tests for chaincore threshold shares.
"""

import pytest
import sys
import os
from itertools import combinations

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from chaincore.exceptions import ShardError
from chaincore.tss import TSSShard, Y_LENGTH, split_secret, reconstruct_secret

SECRET = bytes.fromhex('e8f32e723decf4051aefac8e2c93c9c5b214313817cdb01a1494b917c8436b35')


class TestSplit:
    """Test share generation."""

    def test_shard_layout(self):
        """Each share is the length byte plus a 66-byte value."""
        shards = split_secret(SECRET, 2, 3)

        assert [s.id for s in shards] == [1, 2, 3]
        for shard in shards:
            assert shard.threshold == 2
            assert shard.total == 3
            assert len(shard.share) == 1 + Y_LENGTH
            assert shard.secret_length == 32

    def test_shares_are_randomized(self):
        """Two splits of the same secret differ."""
        assert split_secret(SECRET, 2, 3)[0].share != split_secret(SECRET, 2, 3)[0].share

    def test_parameter_bounds(self):
        """Test threshold, total and secret length bounds."""
        with pytest.raises(ShardError):
            split_secret(SECRET, 2, 1)
        with pytest.raises(ShardError):
            split_secret(SECRET, 4, 3)
        with pytest.raises(ShardError):
            split_secret(SECRET, 0, 3)
        with pytest.raises(ShardError):
            split_secret(SECRET, 2, 256)
        with pytest.raises(ShardError):
            split_secret(b'', 2, 3)
        with pytest.raises(ShardError):
            split_secret(b'\x01' * 65, 2, 3)


class TestReconstruct:
    """Test secret recovery."""

    def test_every_threshold_subset(self):
        """Any k of n shards recover the secret."""
        shards = split_secret(SECRET, 3, 5)
        for subset in combinations(shards, 3):
            assert reconstruct_secret(list(subset)) == SECRET

    def test_extra_shards(self):
        """More than k shards also work."""
        assert reconstruct_secret(split_secret(SECRET, 2, 4)) == SECRET

    def test_leading_zeros(self):
        """Secrets with leading zero bytes keep their length."""
        secret = b'\x00\x00' + b'\x42' * 30
        assert reconstruct_secret(split_secret(secret, 2, 2)[::-1]) == secret

    def test_threshold_one(self):
        """With k = 1 each shard holds the secret alone."""
        shards = split_secret(SECRET, 1, 3)
        assert all(reconstruct_secret([s]) == SECRET for s in shards)

    def test_too_few(self):
        """Fewer than k shards are refused."""
        shards = split_secret(SECRET, 3, 5)
        with pytest.raises(ShardError):
            reconstruct_secret(shards[:2])

    def test_duplicates(self):
        """Duplicate shard ids are refused."""
        shards = split_secret(SECRET, 2, 3)
        with pytest.raises(ShardError):
            reconstruct_secret([shards[0], shards[0]])

    def test_mixed_splits(self):
        """Shards from different splits are refused."""
        a = split_secret(SECRET, 2, 3)
        b = split_secret(SECRET, 3, 3)
        with pytest.raises(ShardError):
            reconstruct_secret([a[0], b[1], b[2]])

    def test_empty(self):
        """Test an empty shard list."""
        with pytest.raises(ShardError):
            reconstruct_secret([])

    def test_malformed(self):
        """Test truncated share bytes."""
        shard = split_secret(SECRET, 2, 2)[0]
        broken = TSSShard(shard.id, shard.threshold, shard.total, shard.share[:-1])
        with pytest.raises(ShardError):
            reconstruct_secret([broken, split_secret(SECRET, 2, 2)[1]])


class TestSerialization:
    """Test shard dictionaries."""

    def test_dict_round_trip(self):
        """Test to_dict / from_dict."""
        shard = split_secret(SECRET, 2, 3)[1]
        assert TSSShard.from_dict(shard.to_dict()) == shard


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
