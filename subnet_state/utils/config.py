"""Bittensor-style argparse helpers for the subscriber entrypoint."""

from __future__ import annotations

import argparse
import os

import bittensor as bt


def add_args(cls, parser: argparse.ArgumentParser) -> None:
    if parser is None:
        parser = argparse.ArgumentParser()
    bt.logging.add_args(parser)
    bt.Subtensor.add_args(parser)

    parser.add_argument(
        "--netuid",
        type=int,
        default=None,
        help="Subnet netuid to track (overrides SUBNET_UID).",
    )


def add_subscriber_args(cls, parser: argparse.ArgumentParser) -> None:
    # Name helps place logs under ~/.bittensor/.../<subscriber.name>.
    parser.add_argument(
        "--subscriber.name",
        type=str,
        default="subnet_state",
        help="Name used for the local log path segment.",
    )
    parser.add_argument(
        "--subscriber.once",
        action="store_true",
        default=False,
        help="Build and print a single snapshot, then exit.",
    )


def check_config(cls, config: "bt.Config", *, netuid: int) -> str:
    r"""Resolves and creates the subscriber's log directory."""
    full_path = os.path.expanduser(
        "{}/netuid{}/{}".format(
            config.logging.logging_dir,
            netuid,
            config.subscriber.name,
        )
    )
    os.makedirs(full_path, exist_ok=True)
    return full_path
