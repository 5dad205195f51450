from subnet_state.chain.gateway import BlockchainGateway, ChainQueryError, SubtensorGateway
from subnet_state.chain.schemas import AxonInfo, GlobalState, SubnetState

__all__ = [
    "AxonInfo",
    "BlockchainGateway",
    "ChainQueryError",
    "GlobalState",
    "SubnetState",
    "SubtensorGateway",
]
