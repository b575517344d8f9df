from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from .chains import CALIBRATION, Chain, as_chain, with_contracts
from .constants import DEFAULT_PAGE_SIZE
from .errors import ConfigurationError


@dataclass
class RegistryConfig:
    """Connection settings for a registry client.

    Addresses left as ``None`` fall back to the chain defaults; the registry
    address can additionally be discovered from the warm storage contract.
    """

    rpc_url: Optional[str] = None
    chain: Chain | str | int = CALIBRATION
    registry_address: Optional[str] = None
    multicall3_address: Optional[str] = None
    warm_storage_address: Optional[str] = None
    private_key: Optional[str] = None
    page_size: int = DEFAULT_PAGE_SIZE

    def __post_init__(self) -> None:
        if self.page_size <= 0:
            raise ConfigurationError(
                component="RegistryConfig",
                operation="init",
                message=f"page_size must be positive, got {self.page_size}",
            )

    def resolve_chain(self) -> Chain:
        return with_contracts(
            as_chain(self.chain),
            multicall3=self.multicall3_address,
            sp_registry=self.registry_address,
            warm_storage=self.warm_storage_address,
        )

    def resolve_rpc_url(self) -> str:
        rpc_url = self.rpc_url or as_chain(self.chain).rpc_url
        if not rpc_url:
            raise ConfigurationError(
                component="RegistryConfig",
                operation="resolve_rpc_url",
                message="rpc_url is required for this network",
            )
        return rpc_url

    @classmethod
    def from_env(cls, prefix: str = "SPREGISTRY_", environ: Optional[Mapping[str, str]] = None) -> "RegistryConfig":
        env = os.environ if environ is None else environ

        def get(name: str) -> Optional[str]:
            value = env.get(prefix + name)
            return value or None

        page_size = get("PAGE_SIZE")
        network = get("NETWORK") or get("CHAIN_ID")
        chain: Chain | str | int = CALIBRATION
        if network is not None:
            chain = int(network) if network.isdigit() else network
        return cls(
            rpc_url=get("RPC_URL"),
            chain=chain,
            registry_address=get("REGISTRY_ADDRESS"),
            multicall3_address=get("MULTICALL3_ADDRESS"),
            warm_storage_address=get("WARM_STORAGE_ADDRESS"),
            private_key=get("PRIVATE_KEY"),
            page_size=int(page_size) if page_size else DEFAULT_PAGE_SIZE,
        )
