"""Chain access used by the subnet state subscriber."""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Protocol

import bittensor as bt
from bittensor.utils.balance import Balance

from subnet_state.chain.schemas import AxonInfo


class ChainQueryError(RuntimeError):
    """Raised when a subtensor query fails for any reason."""


class BlockchainGateway(Protocol):
    """Read-only chain queries the snapshot builder depends on."""

    async def list_axons(self, subnet_id: int) -> List[AxonInfo]:
        """Return every neuron's axon record on ``subnet_id``."""

    async def total_stake(self, hotkey: str) -> float:
        """Return the stake bonded to ``hotkey`` in TAO."""

    async def is_registered(self, subnet_id: int, hotkey: str) -> bool:
        """Return whether ``hotkey`` currently holds a slot on ``subnet_id``."""


def _to_tao(value: Any) -> float:
    # Stake queries return Balance objects denominated in rao.
    if isinstance(value, Balance):
        return float(value.tao)
    return float(value)


class SubtensorGateway:
    """
    BlockchainGateway backed by ``bittensor.AsyncSubtensor``.

    The async client multiplexes concurrent queries over one websocket, so the
    snapshot builder's fan-out does not need a connection per hotkey. Stake is
    read on the subnet this gateway was created for.
    """

    def __init__(
        self,
        *,
        netuid: int,
        network: str = "finney",
        subtensor: Optional[Any] = None,
    ) -> None:
        self.netuid = int(netuid)
        self.network = network
        self._subtensor = subtensor
        self._init_lock = asyncio.Lock()
        self._initialised = subtensor is not None

    async def _client(self) -> Any:
        async with self._init_lock:
            if self._subtensor is None:
                self._subtensor = bt.AsyncSubtensor(network=self.network)
            if not self._initialised:
                await self._subtensor.initialize()
                self._initialised = True
                bt.logging.info(f"Connected to subtensor network={self.network}")
        return self._subtensor

    async def close(self) -> None:
        if self._subtensor is not None and self._initialised:
            await self._subtensor.close()
            self._initialised = False

    async def list_axons(self, subnet_id: int) -> List[AxonInfo]:
        try:
            st = await self._client()
            metagraph = await st.metagraph(netuid=int(subnet_id), lite=True)
        except Exception as exc:
            raise ChainQueryError(f"metagraph query failed for netuid={subnet_id}: {exc}") from exc

        uids = [int(u) for u in metagraph.uids]
        hotkeys = list(metagraph.hotkeys)
        coldkeys = list(getattr(metagraph, "coldkeys", []) or [])
        axons = list(metagraph.axons)

        out: List[AxonInfo] = []
        for i, uid in enumerate(uids):
            axon = axons[i] if i < len(axons) else None
            out.append(
                AxonInfo(
                    uid=uid,
                    hotkey=(hotkeys[i] if i < len(hotkeys) else "") or "",
                    coldkey=(coldkeys[i] if i < len(coldkeys) else "") or "",
                    ip=str(getattr(axon, "ip", "0.0.0.0")),
                    port=int(getattr(axon, "port", 0)),
                    ip_type=int(getattr(axon, "ip_type", 4)),
                    protocol=int(getattr(axon, "protocol", 4)),
                    version=int(getattr(axon, "version", 0)),
                )
            )
        return out

    async def total_stake(self, hotkey: str) -> float:
        try:
            st = await self._client()
            stake = await st.get_stake_for_hotkey(hotkey_ss58=hotkey, netuid=self.netuid)
            return _to_tao(stake)
        except Exception as exc:
            raise ChainQueryError(f"stake query failed for {hotkey}: {exc}") from exc

    async def is_registered(self, subnet_id: int, hotkey: str) -> bool:
        try:
            st = await self._client()
            return bool(await st.is_hotkey_registered(hotkey_ss58=hotkey, netuid=int(subnet_id)))
        except Exception as exc:
            raise ChainQueryError(f"registration query failed for {hotkey}: {exc}") from exc
