from __future__ import annotations

from typing import Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


class AxonInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Subnet-local participant id.
    uid: int
    # SS58 hotkey; empty when the neuron has not published one.
    hotkey: str = ""
    coldkey: str = ""
    ip: str = "0.0.0.0"
    port: int = 0
    ip_type: int = 4
    protocol: int = 4
    version: int = 0


class SubnetState(BaseModel):
    """
    One refresh cycle's view of a subnet.

    Instances are never mutated after construction; a refresh produces a new
    instance that replaces the previous one wholesale.
    """

    model_config = ConfigDict(frozen=True)

    subnet_id: int
    active_validator_hotkeys: Dict[int, str] = Field(default_factory=dict)
    active_miner_hotkeys: Dict[int, str] = Field(default_factory=dict)
    active_axon_infos: List[AxonInfo] = Field(default_factory=list)

    @classmethod
    def empty(cls, subnet_id: int) -> "SubnetState":
        return cls(subnet_id=subnet_id)

    @classmethod
    def from_maps(
        cls,
        subnet_id: int,
        *,
        validators: Dict[int, str],
        miners: Dict[int, str],
        axons: Iterable[AxonInfo],
    ) -> "SubnetState":
        """Build a state whose role maps iterate in ascending uid order."""
        return cls(
            subnet_id=subnet_id,
            active_validator_hotkeys=_sorted_by_uid(validators),
            active_miner_hotkeys=_sorted_by_uid(miners),
            active_axon_infos=list(axons),
        )

    def without_hotkeys(self, hotkeys: Iterable[str]) -> "SubnetState":
        """Return a copy with `hotkeys` dropped from both role maps and the axon list."""
        drop = set(hotkeys)
        if not drop:
            return self
        return SubnetState.from_maps(
            self.subnet_id,
            validators={u: hk for u, hk in self.active_validator_hotkeys.items() if hk not in drop},
            miners={u: hk for u, hk in self.active_miner_hotkeys.items() if hk not in drop},
            axons=[a for a in self.active_axon_infos if a.hotkey not in drop],
        )

    def find_validator_uid(self, hotkey: str) -> Optional[int]:
        return _find_uid(self.active_validator_hotkeys, hotkey)

    def find_miner_uid(self, hotkey: str) -> Optional[int]:
        return _find_uid(self.active_miner_hotkeys, hotkey)


class GlobalState(BaseModel):
    model_config = ConfigDict(frozen=True)

    # Stake (TAO) per hotkey, as fetched during the last refresh cycle.
    hotkey_stakes: Dict[str, float] = Field(default_factory=dict)

    def stake_of(self, hotkey: str) -> Tuple[float, bool]:
        if hotkey in self.hotkey_stakes:
            return self.hotkey_stakes[hotkey], True
        return 0.0, False


def _sorted_by_uid(mapping: Dict[int, str]) -> Dict[int, str]:
    return {uid: mapping[uid] for uid in sorted(mapping)}


def _find_uid(mapping: Dict[int, str], hotkey: str) -> Optional[int]:
    if not hotkey:
        return None
    for uid, hk in mapping.items():
        if hk == hotkey:
            return uid
    return None
