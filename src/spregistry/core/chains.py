from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Optional

from .constants import MULTICALL3_ADDRESS


@dataclass(frozen=True)
class ChainContracts:
    multicall3: Optional[str]
    sp_registry: Optional[str] = None
    warm_storage: Optional[str] = None


@dataclass(frozen=True)
class Chain:
    id: int
    name: str
    network: str
    rpc_url: Optional[str]
    contracts: ChainContracts


NETWORK_MAINNET = "mainnet"
NETWORK_CALIBRATION = "calibration"
NETWORK_DEVNET = "devnet"

CHAIN_ID_MAINNET = 314
CHAIN_ID_CALIBRATION = 314159
CHAIN_ID_DEVNET = 31415926

RPC_URLS: Dict[str, str] = {
    NETWORK_MAINNET: "https://api.node.glif.io/rpc/v1",
    NETWORK_CALIBRATION: "https://api.calibration.node.glif.io/rpc/v1",
}


MAINNET = Chain(
    id=CHAIN_ID_MAINNET,
    name="Filecoin Mainnet",
    network=NETWORK_MAINNET,
    rpc_url=RPC_URLS[NETWORK_MAINNET],
    contracts=ChainContracts(multicall3=MULTICALL3_ADDRESS),
)

CALIBRATION = Chain(
    id=CHAIN_ID_CALIBRATION,
    name="Filecoin Calibration",
    network=NETWORK_CALIBRATION,
    rpc_url=RPC_URLS[NETWORK_CALIBRATION],
    contracts=ChainContracts(multicall3=MULTICALL3_ADDRESS),
)


def devnet(
    rpc_url: Optional[str] = None,
    multicall3: Optional[str] = None,
    sp_registry: Optional[str] = None,
    warm_storage: Optional[str] = None,
    chain_id: int = CHAIN_ID_DEVNET,
) -> Chain:
    """Local development network. Nothing is deployed at a well-known address, so
    every contract (Multicall3 included) must be supplied by the caller."""
    return Chain(
        id=chain_id,
        name="Filecoin Devnet",
        network=NETWORK_DEVNET,
        rpc_url=rpc_url,
        contracts=ChainContracts(multicall3=multicall3, sp_registry=sp_registry, warm_storage=warm_storage),
    )


def with_contracts(chain: Chain, **overrides: Optional[str]) -> Chain:
    updates = {key: value for key, value in overrides.items() if value is not None}
    if not updates:
        return chain
    return replace(chain, contracts=replace(chain.contracts, **updates))


def as_chain(chain: Chain | str | int) -> Chain:
    if isinstance(chain, Chain):
        return chain
    if chain in (NETWORK_MAINNET, CHAIN_ID_MAINNET):
        return MAINNET
    if chain in (NETWORK_CALIBRATION, CHAIN_ID_CALIBRATION):
        return CALIBRATION
    if chain in (NETWORK_DEVNET, CHAIN_ID_DEVNET):
        return devnet()
    raise ValueError(f"Unsupported chain: {chain}")
