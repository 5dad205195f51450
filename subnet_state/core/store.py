from __future__ import annotations

import threading
import time
from typing import Optional, Tuple

from subnet_state.chain.schemas import GlobalState, SubnetState
from subnet_state.constants import NOT_FOUND_UID


class StateStore:
    """
    Holds the installed (SubnetState, GlobalState) pair.

    Both states are immutable, so a swap under the lock is all it takes for
    readers to see either the old pair or the new one in full. Readers may run
    on other threads (e.g. FastAPI's threadpool), hence a threading lock.

    One plain lock serves readers and the writer alike, so concurrent readers
    also queue behind each other. Every critical section is a pointer swap or
    a single map scan, which keeps that contention negligible.
    """

    def __init__(self, subnet_id: int) -> None:
        self._lock = threading.Lock()
        self._subnet_state = SubnetState.empty(subnet_id)
        self._global_state = GlobalState()
        self._installed_at: Optional[float] = None

    def install(self, subnet_state: SubnetState, global_state: GlobalState) -> None:
        with self._lock:
            self._subnet_state = subnet_state
            self._global_state = global_state
            self._installed_at = time.time()

    def snapshot(self) -> Tuple[SubnetState, GlobalState]:
        with self._lock:
            return self._subnet_state, self._global_state

    @property
    def installed_at(self) -> Optional[float]:
        with self._lock:
            return self._installed_at

    def find_miner_uid(self, hotkey: str) -> Tuple[int, bool]:
        with self._lock:
            uid = self._subnet_state.find_miner_uid(hotkey)
        return (uid, True) if uid is not None else (NOT_FOUND_UID, False)

    def find_validator_uid(self, hotkey: str) -> Tuple[int, bool]:
        with self._lock:
            uid = self._subnet_state.find_validator_uid(hotkey)
        return (uid, True) if uid is not None else (NOT_FOUND_UID, False)

    def hotkey_stake(self, hotkey: str) -> Tuple[float, bool]:
        with self._lock:
            return self._global_state.stake_of(hotkey)
