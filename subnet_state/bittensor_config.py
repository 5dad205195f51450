from __future__ import annotations

import argparse
from typing import Optional, Sequence

import bittensor as bt

from subnet_state.utils.config import add_args as _add_base_args
from subnet_state.utils.config import add_subscriber_args as _add_subscriber_args


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(conflict_handler="resolve")
    # Base args (logging/subtensor + netuid).
    _add_base_args(None, parser)
    _add_subscriber_args(None, parser)
    return parser


def config(args: Optional[Sequence[str]] = None) -> bt.config:
    """
    Build a bittensor config for the subscriber entrypoint.

    Chain/logging flags come from bittensor itself; `--netuid` and
    `--subscriber.*` layer on top of the env configuration loaded by
    `subnet_state.config.load_subscriber_env`.
    """
    parser = build_parser()

    # bittensor exposes `bt.config(parser)` in newer versions, and `bt.Config(parser=...)` in older.
    try:
        return bt.config(parser, args=list(args) if args is not None else None)
    except Exception:
        return bt.Config(parser=parser, args=list(args) if args is not None else None)
