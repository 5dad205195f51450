"""
Runs the subnet state subscriber for the configured netuid, optionally serving
the read-only status API next to it.
"""

import asyncio
import json
from typing import Optional, Sequence

import bittensor as bt
import uvicorn

from subnet_state.api.app import create_app
from subnet_state.bittensor_config import config as build_config
from subnet_state.chain.gateway import BlockchainGateway, SubtensorGateway
from subnet_state.config import SubscriberEnvConfig, load_subscriber_env
from subnet_state.core.subscriber import SubnetStateSubscriber
from subnet_state.utils.config import check_config

HEARTBEAT_S = 5 * 60


async def run(
    env: SubscriberEnvConfig,
    *,
    once: bool = False,
    gateway: Optional[BlockchainGateway] = None,
) -> int:
    owned_gateway = gateway is None
    if gateway is None:
        gateway = SubtensorGateway(netuid=env.subnet_id, network=env.network)
    subscriber = SubnetStateSubscriber.from_config(env, gateway)

    try:
        if once:
            report = await subscriber.refresh_once()
            print(
                json.dumps(
                    {
                        "subnet_state": subscriber.subnet_state.model_dump(mode="json"),
                        "global_state": subscriber.global_state.model_dump(mode="json"),
                        "report": report.to_dict(),
                    },
                    indent=2,
                )
            )
            return 1 if report.degraded else 0

        async with subscriber:
            if env.api is not None:
                bt.logging.info(f"Serving status API on {env.api.host}:{env.api.port}")
                server = uvicorn.Server(
                    uvicorn.Config(
                        create_app(subscriber),
                        host=env.api.host,
                        port=env.api.port,
                        log_level="warning",
                    )
                )
                await server.serve()
            else:
                while True:
                    health = subscriber.health()
                    bt.logging.info(
                        f"netuid={health['subnet_id']} | validators={health['validators']} "
                        f"| miners={health['miners']} | refreshes={health['refresh_count']}"
                    )
                    await asyncio.sleep(HEARTBEAT_S)
    finally:
        if owned_gateway:
            await gateway.close()
    return 0


async def main(argv: Optional[Sequence[str]] = None) -> int:
    cfg = build_config(argv)
    env = load_subscriber_env(netuid=cfg.netuid)
    bt.logging(config=cfg, logging_dir=check_config(None, cfg, netuid=env.subnet_id))
    return await run(env, once=bool(cfg.subscriber.once))


if __name__ == "__main__":
    try:
        raise SystemExit(asyncio.run(main()))
    except KeyboardInterrupt:
        bt.logging.info("Subnet state subscriber interrupted")
