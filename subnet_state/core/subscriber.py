"""Background service keeping the validator/miner view of one subnet fresh."""

from __future__ import annotations

import asyncio
import contextlib
import json
import time
import traceback
from enum import Enum
from typing import Optional, Tuple

import bittensor as bt

from subnet_state.chain.gateway import BlockchainGateway
from subnet_state.chain.schemas import GlobalState, SubnetState
from subnet_state.config import SubscriberEnvConfig
from subnet_state.constants import BLOCK_TIME_SECONDS, REFRESH_INTERVAL_BLOCKS
from subnet_state.core.snapshot import RefreshReport, SnapshotBuilder
from subnet_state.core.store import StateStore


class SubscriberPhase(str, Enum):
    UNINITIALISED = "uninitialised"
    INITIALISING = "initialising"
    READY = "ready"
    STOPPED = "stopped"


class SubnetStateSubscriber:
    """
    Process-scoped owner of the subnet state.

    Construct one per process and hand it to whatever needs hotkey role
    lookups. `start()` installs the first snapshot before returning, then a
    background task rebuilds it every `refresh_interval_s` until `stop()`.
    Lookups never raise and may be up to one refresh interval stale; a cycle
    that failed against the chain installs a thin snapshot, which `health()`
    reports as degraded.
    """

    def __init__(
        self,
        gateway: BlockchainGateway,
        *,
        subnet_id: int,
        min_stake: int,
        refresh_interval_s: float = float(REFRESH_INTERVAL_BLOCKS * BLOCK_TIME_SECONDS),
        call_timeout_s: float = 30.0,
        max_concurrency: int = 16,
    ) -> None:
        self.gateway = gateway
        self.subnet_id = int(subnet_id)
        self.refresh_interval_s = float(refresh_interval_s)
        self.builder = SnapshotBuilder(
            gateway,
            self.subnet_id,
            min_stake,
            call_timeout_s=call_timeout_s,
            max_concurrency=max_concurrency,
        )
        self.store = StateStore(self.subnet_id)
        self.phase = SubscriberPhase.UNINITIALISED
        self.refresh_count = 0
        self._initialised = False
        self._last_report: Optional[RefreshReport] = None
        self._last_success_at: Optional[float] = None
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_config(cls, cfg: SubscriberEnvConfig, gateway: BlockchainGateway) -> "SubnetStateSubscriber":
        return cls(
            gateway,
            subnet_id=cfg.subnet_id,
            min_stake=cfg.validator_min_stake,
            refresh_interval_s=cfg.refresh_interval_s,
            call_timeout_s=cfg.call_timeout_s,
            max_concurrency=cfg.max_concurrency,
        )

    async def __aenter__(self) -> "SubnetStateSubscriber":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.stop()

    # Lifecycle

    async def start(self) -> None:
        if self.phase is not SubscriberPhase.UNINITIALISED:
            raise RuntimeError(f"Subscriber already started (phase={self.phase.value})")
        self.phase = SubscriberPhase.INITIALISING
        bt.logging.info(
            f"Initialising subnet state for netuid={self.subnet_id} "
            f"(refresh every {self.refresh_interval_s:.0f}s)"
        )
        await self.refresh_once()
        self._initialised = True
        self.phase = SubscriberPhase.READY

        subnet_state, _ = self.store.snapshot()
        bt.logging.debug("Subnet State:")
        bt.logging.debug(json.dumps(subnet_state.model_dump(mode="json"), indent=2))

        self._task = asyncio.create_task(self._run(), name=f"subnet-state-refresher-{self.subnet_id}")

    async def stop(self) -> None:
        self._stop.set()
        if self._task is not None:
            # Cancel an in-flight build instead of waiting out its chain timeouts.
            self._task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await self._task
            self._task = None
        if self.phase is not SubscriberPhase.STOPPED:
            bt.logging.info(f"Subnet state subscriber for netuid={self.subnet_id} stopped")
        self.phase = SubscriberPhase.STOPPED

    async def refresh_once(self) -> RefreshReport:
        """
        Build one snapshot and install it; the build itself runs without the store lock.

        Lifecycle phases belong to `start()`: calling this on a subscriber that was
        never started installs a snapshot but leaves it uninitialised.
        """
        result = await self.builder.build()
        self.store.install(result.subnet_state, result.global_state)
        self.refresh_count += 1
        self._last_report = result.report
        if not result.report.degraded:
            self._last_success_at = result.report.finished_at
        else:
            bt.logging.warning(
                f"Degraded refresh #{self.refresh_count} for netuid={self.subnet_id}: "
                f"listing_failed={result.report.listing_failed} "
                f"failed_queries={result.report.failed_queries}/{result.report.hotkeys_queried}"
            )
        return result.report

    async def _run(self) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.refresh_interval_s)
                break
            except asyncio.TimeoutError:
                pass
            try:
                await self.refresh_once()
            except Exception:
                bt.logging.error(f"Unexpected error refreshing subnet state:\n{traceback.format_exc()}")

    # Accessors

    @property
    def subnet_state(self) -> SubnetState:
        return self.store.snapshot()[0]

    @property
    def global_state(self) -> GlobalState:
        return self.store.snapshot()[1]

    def is_initialised(self) -> bool:
        return self._initialised

    def find_miner_hotkey_index(self, hotkey: str) -> Tuple[int, bool]:
        return self.store.find_miner_uid(hotkey)

    def find_validator_hotkey_index(self, hotkey: str) -> Tuple[int, bool]:
        return self.store.find_validator_uid(hotkey)

    def get_hotkey_stake(self, hotkey: str) -> Tuple[float, bool]:
        return self.store.hotkey_stake(hotkey)

    def health(self) -> dict:
        now = time.time()
        installed_at = self.store.installed_at
        subnet_state = self.subnet_state
        return {
            "subnet_id": self.subnet_id,
            "phase": self.phase.value,
            "initialised": self._initialised,
            "refresh_count": self.refresh_count,
            "refresh_interval_s": self.refresh_interval_s,
            "validators": len(subnet_state.active_validator_hotkeys),
            "miners": len(subnet_state.active_miner_hotkeys),
            "state_age_s": None if installed_at is None else round(now - installed_at, 3),
            "last_successful_refresh_at": self._last_success_at,
            "last_refresh": None if self._last_report is None else self._last_report.to_dict(),
        }
