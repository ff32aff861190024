"""
chaincore Threshold Shares
Shamir secret sharing of key material over the Mersenne prime 2^521 - 1.
"""

import logging
import secrets
from dataclasses import dataclass
from typing import Any, Dict, List, Sequence

import config
from .exceptions import ShardError

logger = logging.getLogger(__name__)

PRIME = config.SHAMIR_PRIME
Y_LENGTH = (PRIME.bit_length() + 7) // 8  # 66 bytes
MAX_SECRET_LENGTH = 64


@dataclass(frozen=True)
class TSSShard:
    """
    One share of a k-of-n split.

    ``share`` is the secret length (1 byte) followed by the 66-byte
    polynomial value at x = ``id``.
    """
    id: int
    threshold: int
    total: int
    share: bytes

    @property
    def secret_length(self) -> int:
        return self.share[0]

    @property
    def y(self) -> int:
        return int.from_bytes(self.share[1:], 'big')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'threshold': self.threshold,
            'total': self.total,
            'share': self.share.hex(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TSSShard':
        return cls(
            id=int(data['id']),
            threshold=int(data['threshold']),
            total=int(data['total']),
            share=bytes.fromhex(data['share']),
        )


def _eval_polynomial(coefficients: List[int], x: int) -> int:
    # Horner's rule, highest degree first
    result = 0
    for coefficient in reversed(coefficients):
        result = (result * x + coefficient) % PRIME
    return result


def split_secret(secret: bytes, threshold: int, total: int) -> List[TSSShard]:
    """
    Split ``secret`` into ``total`` shards, any ``threshold`` of which recover it.

    Args:
        secret: 1-64 bytes of key material
        threshold: Shards needed to reconstruct (1..total)
        total: Shards produced (2..255)

    Returns:
        List of TSSShard with ids 1..total
    """
    if not 2 <= total <= config.SHAMIR_MAX_SHARES:
        raise ShardError(f"Total shards must be 2-{config.SHAMIR_MAX_SHARES}, got {total}")
    if not 1 <= threshold <= total:
        raise ShardError(f"Threshold must be 1-{total}, got {threshold}")
    if not 1 <= len(secret) <= MAX_SECRET_LENGTH:
        raise ShardError(f"Secret must be 1-{MAX_SECRET_LENGTH} bytes, got {len(secret)}")

    coefficients = [int.from_bytes(bytes(secret), 'big')]
    coefficients += [secrets.randbelow(PRIME) for _ in range(threshold - 1)]

    shards = []
    for x in range(1, total + 1):
        y = _eval_polynomial(coefficients, x)
        share = bytes([len(secret)]) + y.to_bytes(Y_LENGTH, 'big')
        shards.append(TSSShard(id=x, threshold=threshold, total=total, share=share))

    # Drop polynomial coefficients
    for i in range(len(coefficients)):
        coefficients[i] = 0

    logger.debug(f"Split secret into {total} shards (threshold {threshold})")
    return shards


def reconstruct_secret(shards: Sequence[TSSShard]) -> bytes:
    """
    Recover the secret by Lagrange interpolation at x = 0.

    Raises:
        ShardError: Too few shards, duplicate ids or mismatched parameters
    """
    if not shards:
        raise ShardError("No shards provided")

    first = shards[0]
    for shard in shards:
        if (shard.threshold, shard.total, shard.secret_length) != (first.threshold, first.total, first.secret_length):
            raise ShardError("Shards come from different splits")
        if not 1 <= shard.id <= shard.total:
            raise ShardError(f"Shard id {shard.id} out of range")
        if len(shard.share) != 1 + Y_LENGTH:
            raise ShardError(f"Shard {shard.id} has malformed share bytes")

    ids = [shard.id for shard in shards]
    if len(set(ids)) != len(ids):
        raise ShardError("Duplicate shard ids")
    if len(shards) < first.threshold:
        raise ShardError(f"Need {first.threshold} shards, got {len(shards)}")

    points = [(shard.id, shard.y) for shard in shards[:first.threshold]]

    secret = 0
    for i, (x_i, y_i) in enumerate(points):
        numerator = 1
        denominator = 1
        for j, (x_j, _) in enumerate(points):
            if i == j:
                continue
            numerator = numerator * x_j % PRIME
            denominator = denominator * (x_j - x_i) % PRIME
        secret = (secret + y_i * numerator * pow(denominator, PRIME - 2, PRIME)) % PRIME

    length = first.secret_length
    if secret >= 1 << (8 * length):
        raise ShardError("Shards do not reconstruct a consistent secret")
    return secret.to_bytes(length, 'big')
