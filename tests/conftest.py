import asyncio
import sys
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest

# Ensure repo root is on sys.path so `import subnet_state` works under all pytest import modes.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from subnet_state.chain.gateway import ChainQueryError  # noqa: E402
from subnet_state.chain.schemas import AxonInfo  # noqa: E402


class FakeGateway:
    """In-memory BlockchainGateway; every hotkey is registered unless told otherwise."""

    def __init__(
        self,
        axons: Iterable[AxonInfo] = (),
        stakes: Optional[Dict[str, float]] = None,
        registered: Optional[Dict[str, bool]] = None,
        *,
        list_error: Optional[Exception] = None,
        stake_errors: Iterable[str] = (),
        registration_errors: Iterable[str] = (),
        delays: Optional[Dict[str, float]] = None,
    ) -> None:
        self.axons: List[AxonInfo] = list(axons)
        self.stakes = dict(stakes or {})
        self.registered = dict(registered or {})
        self.list_error = list_error
        self.stake_errors = set(stake_errors)
        self.registration_errors = set(registration_errors)
        self.delays = dict(delays or {})
        self.list_calls = 0
        self.stake_calls: List[str] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def list_axons(self, subnet_id: int) -> List[AxonInfo]:
        self.list_calls += 1
        if self.list_error is not None:
            raise self.list_error
        return list(self.axons)

    async def total_stake(self, hotkey: str) -> float:
        self.stake_calls.append(hotkey)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(hotkey, 0))
        finally:
            self.in_flight -= 1
        if hotkey in self.stake_errors:
            raise ChainQueryError(f"stake unavailable for {hotkey}")
        return float(self.stakes.get(hotkey, 0.0))

    async def is_registered(self, subnet_id: int, hotkey: str) -> bool:
        if hotkey in self.registration_errors:
            raise ChainQueryError(f"registration unavailable for {hotkey}")
        return self.registered.get(hotkey, True)


@pytest.fixture
def fake_gateway():
    return FakeGateway


@pytest.fixture
def axon():
    def _make(uid: int, hotkey: str) -> AxonInfo:
        return AxonInfo(uid=uid, hotkey=hotkey, ip="127.0.0.1", port=8091 + uid)

    return _make
