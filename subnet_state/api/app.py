from __future__ import annotations

from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from subnet_state import __version__
from subnet_state.chain.schemas import GlobalState, SubnetState
from subnet_state.core.classifier import Role
from subnet_state.core.subscriber import SubnetStateSubscriber


class StateResponse(BaseModel):
    subnet_state: SubnetState
    global_state: GlobalState


class HotkeyRoleResponse(BaseModel):
    hotkey: str
    role: Role
    uid: int
    stake: Optional[float] = None


def create_app(subscriber: SubnetStateSubscriber) -> FastAPI:
    """Read-only view of the subscriber for operators and sidecar services."""
    app = FastAPI(title="Subnet State Subscriber", version=__version__)

    @app.get("/healthz")
    def healthz():
        body = subscriber.health()
        if not subscriber.is_initialised():
            return JSONResponse(status_code=503, content=body)
        return body

    @app.get("/state", response_model=StateResponse)
    def state():
        return StateResponse(
            subnet_state=subscriber.subnet_state,
            global_state=subscriber.global_state,
        )

    @app.get("/hotkeys/{hotkey}", response_model=HotkeyRoleResponse)
    def hotkey_role(hotkey: str):
        # One snapshot for every lookup so a concurrent swap can't mix cycles.
        subnet_state, global_state = subscriber.store.snapshot()
        stake, has_stake = global_state.stake_of(hotkey)
        uid = subnet_state.find_validator_uid(hotkey)
        role = Role.VALIDATOR
        if uid is None:
            uid = subnet_state.find_miner_uid(hotkey)
            role = Role.MINER
        if uid is None:
            raise HTTPException(status_code=404, detail="Hotkey is not an active validator or miner")
        return HotkeyRoleResponse(
            hotkey=hotkey,
            role=role,
            uid=uid,
            stake=stake if has_stake else None,
        )

    return app
