"""Subnet state subscriber: validator/miner view of one Bittensor subnet."""

__version__ = "0.1.0"
