"""Builds one subnet state snapshot per refresh cycle."""

from __future__ import annotations

import asyncio
import time
import traceback
from dataclasses import asdict, dataclass, field
from typing import Dict, List, Optional, Tuple

import bittensor as bt

from subnet_state.chain.gateway import BlockchainGateway, ChainQueryError
from subnet_state.chain.schemas import AxonInfo, GlobalState, SubnetState
from subnet_state.core.classifier import Role, classify


@dataclass(frozen=True)
class HotkeyQueryResult:
    """Outcome of one per-hotkey query unit. `error` set means stake/registration are unknown."""

    hotkey: str
    stake: Optional[float] = None
    registered: Optional[bool] = None
    error: Optional[str] = None

    @property
    def known(self) -> bool:
        return self.error is None and self.stake is not None and self.registered is not None


@dataclass(frozen=True)
class RefreshReport:
    subnet_id: int
    started_at: float
    finished_at: float
    axons_listed: int = 0
    hotkeys_queried: int = 0
    failed_queries: int = 0
    unregistered_hotkeys: Tuple[str, ...] = field(default_factory=tuple)
    listing_failed: bool = False

    @property
    def degraded(self) -> bool:
        return self.listing_failed or self.failed_queries > 0

    @property
    def duration_s(self) -> float:
        return max(0.0, self.finished_at - self.started_at)

    def to_dict(self) -> dict:
        out = asdict(self)
        out["unregistered_hotkeys"] = list(self.unregistered_hotkeys)
        out["degraded"] = self.degraded
        out["duration_s"] = round(self.duration_s, 3)
        return out


@dataclass(frozen=True)
class BuildResult:
    subnet_state: SubnetState
    global_state: GlobalState
    report: RefreshReport


class SnapshotBuilder:
    """
    Fans out one query unit per hotkey, joins them, then merges the results
    into a fresh SubnetState/GlobalState pair.

    Query units only return values; every change to the maps happens in the
    single merge step after the join, so unit completion order never matters.
    Chain failures are logged and never raised: a failed listing produces an
    empty state and a failed unit leaves its hotkey unclassified.
    """

    def __init__(
        self,
        gateway: BlockchainGateway,
        subnet_id: int,
        min_stake: int,
        *,
        call_timeout_s: float = 30.0,
        max_concurrency: int = 16,
    ) -> None:
        self.gateway = gateway
        self.subnet_id = int(subnet_id)
        self.min_stake = int(min_stake)
        self.call_timeout_s = float(call_timeout_s)
        self.max_concurrency = max(1, int(max_concurrency))

    async def build(self) -> BuildResult:
        started = time.time()

        axons = await self._list_axons()
        if axons is None:
            return self._empty(started, listing_failed=True)
        if not axons:
            bt.logging.warning(f"No axons listed for netuid={self.subnet_id}")
            return self._empty(started)

        hotkeys = self._unique_hotkeys(axons)
        sem = asyncio.Semaphore(self.max_concurrency)
        results: List[HotkeyQueryResult] = await asyncio.gather(
            *(self._query_hotkey(hk, sem) for hk in hotkeys)
        )
        by_hotkey: Dict[str, HotkeyQueryResult] = {r.hotkey: r for r in results}

        # Ghost entries: listed locally but no longer registered on-chain.
        unregistered = sorted(r.hotkey for r in results if r.known and r.registered is False)
        for hk in unregistered:
            bt.logging.warning(f"Hotkey {hk} is not registered on netuid={self.subnet_id}")
        listed = SubnetState.from_maps(
            self.subnet_id, validators={}, miners={}, axons=axons
        ).without_hotkeys(unregistered)

        validators: Dict[int, str] = {}
        miners: Dict[int, str] = {}
        stakes: Dict[str, float] = {}
        for axon in listed.active_axon_infos:
            r = by_hotkey.get(axon.hotkey)
            if r is None or not r.known:
                continue
            stakes[axon.hotkey] = float(r.stake)
            if classify(r.stake, self.min_stake) is Role.VALIDATOR:
                validators[axon.uid] = axon.hotkey
            else:
                miners[axon.uid] = axon.hotkey

        state = SubnetState.from_maps(
            self.subnet_id,
            validators=validators,
            miners=miners,
            axons=listed.active_axon_infos,
        )
        failed = sum(1 for r in results if not r.known)
        report = RefreshReport(
            subnet_id=self.subnet_id,
            started_at=started,
            finished_at=time.time(),
            axons_listed=len(axons),
            hotkeys_queried=len(hotkeys),
            failed_queries=failed,
            unregistered_hotkeys=tuple(unregistered),
        )
        bt.logging.info(
            f"Built subnet state netuid={self.subnet_id}: {len(validators)} validators, "
            f"{len(miners)} miners, {len(unregistered)} unregistered, {failed}/{len(hotkeys)} queries failed "
            f"in {report.duration_s:.2f}s"
        )
        return BuildResult(state, GlobalState(hotkey_stakes=stakes), report)

    async def _list_axons(self) -> Optional[List[AxonInfo]]:
        try:
            return list(
                await asyncio.wait_for(
                    self.gateway.list_axons(self.subnet_id), timeout=self.call_timeout_s
                )
            )
        except asyncio.TimeoutError:
            bt.logging.error(
                f"Timed out listing axons for netuid={self.subnet_id} after {self.call_timeout_s}s"
            )
        except ChainQueryError as exc:
            bt.logging.error(f"Error getting all axons: {exc}")
        except Exception:
            bt.logging.error(f"Unexpected error listing axons:\n{traceback.format_exc()}")
        return None

    @staticmethod
    def _unique_hotkeys(axons: List[AxonInfo]) -> List[str]:
        out: List[str] = []
        seen = set()
        for axon in axons:
            if not axon.hotkey:
                bt.logging.trace(f"AxonInfo empty hotkey, uid={axon.uid}")
                continue
            if axon.hotkey in seen:
                continue
            seen.add(axon.hotkey)
            out.append(axon.hotkey)
        return out

    async def _query_hotkey(self, hotkey: str, sem: asyncio.Semaphore) -> HotkeyQueryResult:
        async with sem:
            try:
                stake = await asyncio.wait_for(
                    self.gateway.total_stake(hotkey), timeout=self.call_timeout_s
                )
                registered = await asyncio.wait_for(
                    self.gateway.is_registered(self.subnet_id, hotkey), timeout=self.call_timeout_s
                )
            except asyncio.TimeoutError:
                bt.logging.error(f"Timed out querying hotkey {hotkey} after {self.call_timeout_s}s")
                return HotkeyQueryResult(hotkey=hotkey, error="timeout")
            except ChainQueryError as exc:
                bt.logging.error(f"Error querying hotkey {hotkey}: {exc}")
                return HotkeyQueryResult(hotkey=hotkey, error=str(exc))
            except Exception as exc:
                bt.logging.error(f"Unexpected error querying hotkey {hotkey}:\n{traceback.format_exc()}")
                return HotkeyQueryResult(hotkey=hotkey, error=repr(exc))
        return HotkeyQueryResult(hotkey=hotkey, stake=float(stake), registered=bool(registered))

    def _empty(self, started: float, *, listing_failed: bool = False) -> BuildResult:
        report = RefreshReport(
            subnet_id=self.subnet_id,
            started_at=started,
            finished_at=time.time(),
            listing_failed=listing_failed,
        )
        return BuildResult(SubnetState.empty(self.subnet_id), GlobalState(), report)
