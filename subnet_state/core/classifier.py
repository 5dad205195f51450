from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    VALIDATOR = "validator"
    MINER = "miner"


def classify(stake: float, min_stake: int) -> Role:
    """Stake strictly above the threshold makes a validator; anything else is a miner."""
    if stake > min_stake:
        return Role.VALIDATOR
    return Role.MINER
