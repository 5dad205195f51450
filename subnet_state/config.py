from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from subnet_state.constants import BLOCK_TIME_SECONDS, REFRESH_INTERVAL_BLOCKS
from subnet_state.utils.env import _env_float, _env_int, _env_opt_int, _env_str


@dataclass(frozen=True)
class StatusApiConfig:
    host: str
    port: int


@dataclass(frozen=True)
class SubscriberEnvConfig:
    subnet_id: int
    validator_min_stake: int
    network: str
    block_time_s: int
    refresh_blocks: int
    call_timeout_s: float
    max_concurrency: int
    api: Optional[StatusApiConfig]

    @property
    def refresh_interval_s(self) -> float:
        return float(self.refresh_blocks * self.block_time_s)


def _die(msg: str) -> None:
    raise SystemExit(f"[subnet-state] {msg}")


def _required_int(name: str) -> int:
    try:
        value = _env_opt_int(name)
    except ValueError:
        _die(f"{name} must be an integer. Got: {_env_str(name)!r}")
    if value is None:
        _die(f"Missing required env var: {name}")
    return value


def load_validator_min_stake() -> int:
    """Resolve the strictly positive validator stake threshold."""
    min_stake = _required_int("VALIDATOR_MIN_STAKE")
    if min_stake <= 0:
        _die(f"VALIDATOR_MIN_STAKE must be a positive integer. Got: {min_stake}")
    return min_stake


def load_subscriber_env(
    *,
    netuid: Optional[int] = None,
) -> SubscriberEnvConfig:
    """
    Load subscriber configuration from env/.env with strict validation.

    The subnet id and the validator stake threshold have no defaults: a process
    started without them exits instead of guessing. `netuid` takes precedence
    over SUBNET_UID when given (the `--netuid` CLI flag).
    """
    subnet_id = int(netuid) if netuid is not None else _required_int("SUBNET_UID")
    if subnet_id < 0:
        _die(f"SUBNET_UID must be >= 0. Got: {subnet_id}")

    min_stake = load_validator_min_stake()

    network = (_env_str("SUBTENSOR_NETWORK", "finney") or "finney").strip()

    try:
        block_time_s = _env_int("BLOCK_TIME_SECONDS", BLOCK_TIME_SECONDS)
        refresh_blocks = _env_int("SUBNET_STATE_REFRESH_BLOCKS", REFRESH_INTERVAL_BLOCKS)
        call_timeout_s = _env_float("SUBNET_STATE_CALL_TIMEOUT_S", 30.0)
        max_concurrency = _env_int("SUBNET_STATE_MAX_CONCURRENCY", 16)
        api_port = _env_int("SUBNET_STATE_API_PORT", 0)
    except ValueError as exc:
        _die(f"Invalid numeric subscriber setting: {exc}")

    if block_time_s <= 0:
        _die(f"BLOCK_TIME_SECONDS must be positive. Got: {block_time_s}")
    if refresh_blocks <= 0:
        _die(f"SUBNET_STATE_REFRESH_BLOCKS must be positive. Got: {refresh_blocks}")
    call_timeout_s = max(1.0, min(300.0, call_timeout_s))
    max_concurrency = max(1, min(256, max_concurrency))

    api_cfg: Optional[StatusApiConfig] = None
    if api_port:
        if not 0 < api_port < 65536:
            _die(f"SUBNET_STATE_API_PORT out of range. Got: {api_port}")
        api_cfg = StatusApiConfig(
            host=_env_str("SUBNET_STATE_API_HOST", "0.0.0.0") or "0.0.0.0",
            port=int(api_port),
        )

    return SubscriberEnvConfig(
        subnet_id=subnet_id,
        validator_min_stake=min_stake,
        network=network,
        block_time_s=int(block_time_s),
        refresh_blocks=int(refresh_blocks),
        call_timeout_s=float(call_timeout_s),
        max_concurrency=int(max_concurrency),
        api=api_cfg,
    )
