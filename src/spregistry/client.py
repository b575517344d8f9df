from __future__ import annotations

import logging
from typing import Optional

from eth_account import Account
from web3 import AsyncHTTPProvider, AsyncWeb3, HTTPProvider, Web3

from spregistry.core.chains import Chain
from spregistry.core.config import RegistryConfig
from spregistry.core.constants import DEFAULT_PAGE_SIZE, is_zero_address
from spregistry.core.errors import ConfigurationError, RegistryCallError
from spregistry.sp_registry import (
    AsyncMulticall,
    AsyncRegistryGateway,
    AsyncSPRegistryService,
    SyncMulticall,
    SyncRegistryGateway,
    SyncSPRegistryService,
)
from spregistry.sp_registry.gateway import async_discover_registry_address, discover_registry_address

logger = logging.getLogger(__name__)


def _missing_registry(chain: Chain, cause: Optional[BaseException] = None) -> ConfigurationError:
    return ConfigurationError(
        component="RegistryClient",
        operation="create",
        message=f"no ServiceProviderRegistry address for {chain.network}; "
        "pass registry_address or warm_storage_address",
        cause=cause,
    )


def _account_address(private_key: Optional[str]) -> Optional[str]:
    if private_key is None:
        return None
    return Account.from_key(private_key).address


class RegistryClient:
    def __init__(
        self,
        web3: Web3,
        chain: Chain,
        registry_address: str,
        account_address: Optional[str] = None,
        private_key: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._web3 = web3
        self._chain = chain
        self._account = account_address
        self._gateway = SyncRegistryGateway(web3, registry_address, private_key)
        multicall = None
        if chain.contracts.multicall3:
            multicall = SyncMulticall(web3, chain.contracts.multicall3)
        else:
            logger.warning("No Multicall3 on %s; provider batches will be read one id at a time", chain.network)
        self._providers = SyncSPRegistryService(self._gateway, multicall, page_size=page_size)

    @classmethod
    def create(
        cls,
        chain: Chain | str | int,
        rpc_url: Optional[str] = None,
        private_key: Optional[str] = None,
        registry_address: Optional[str] = None,
        multicall3_address: Optional[str] = None,
        warm_storage_address: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> "RegistryClient":
        return cls.from_config(
            RegistryConfig(
                rpc_url=rpc_url,
                chain=chain,
                registry_address=registry_address,
                multicall3_address=multicall3_address,
                warm_storage_address=warm_storage_address,
                private_key=private_key,
                page_size=page_size,
            )
        )

    @classmethod
    def from_config(cls, config: RegistryConfig, web3: Optional[Web3] = None) -> "RegistryClient":
        chain = config.resolve_chain()
        if web3 is None:
            web3 = Web3(HTTPProvider(config.resolve_rpc_url()))
        registry_address = chain.contracts.sp_registry
        if registry_address is None:
            if chain.contracts.warm_storage is None:
                raise _missing_registry(chain)
            try:
                registry_address = discover_registry_address(web3, chain.contracts.warm_storage)
            except RegistryCallError as exc:
                raise _missing_registry(chain, exc) from exc
            if is_zero_address(registry_address):
                raise _missing_registry(chain)
            logger.info("Discovered ServiceProviderRegistry at %s", registry_address)
        return cls(
            web3,
            chain,
            registry_address,
            account_address=_account_address(config.private_key),
            private_key=config.private_key,
            page_size=config.page_size,
        )

    @property
    def web3(self) -> Web3:
        return self._web3

    @property
    def chain(self) -> Chain:
        return self._chain

    @property
    def account(self) -> Optional[str]:
        return self._account

    @property
    def registry_address(self) -> str:
        return self._gateway.address

    @property
    def providers(self) -> SyncSPRegistryService:
        return self._providers


class AsyncRegistryClient:
    """
    Async client for the ServiceProviderRegistry.

    Example:
        client = await AsyncRegistryClient.create("calibration", rpc_url, registry_address=registry)
        providers = await client.providers.get_all_active_providers()
    """

    def __init__(
        self,
        web3: AsyncWeb3,
        chain: Chain,
        registry_address: str,
        account_address: Optional[str] = None,
        private_key: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._web3 = web3
        self._chain = chain
        self._account = account_address
        self._gateway = AsyncRegistryGateway(web3, registry_address, private_key)
        multicall = None
        if chain.contracts.multicall3:
            multicall = AsyncMulticall(web3, chain.contracts.multicall3)
        else:
            logger.warning("No Multicall3 on %s; provider batches will be read one id at a time", chain.network)
        self._providers = AsyncSPRegistryService(self._gateway, multicall, page_size=page_size)

    @classmethod
    async def create(
        cls,
        chain: Chain | str | int,
        rpc_url: Optional[str] = None,
        private_key: Optional[str] = None,
        registry_address: Optional[str] = None,
        multicall3_address: Optional[str] = None,
        warm_storage_address: Optional[str] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> "AsyncRegistryClient":
        """
        Create an async registry client.

        Args:
            chain: Chain configuration (CALIBRATION, MAINNET, devnet(), name or chain ID)
            rpc_url: RPC URL; defaults to the network's public endpoint
            private_key: Private key for signing transactions
            registry_address: ServiceProviderRegistry address override
            multicall3_address: Multicall3 address override
            warm_storage_address: Warm storage contract used to discover the registry
            page_size: Provider ids requested per page when listing

        Returns:
            Configured AsyncRegistryClient instance
        """
        return await cls.from_config(
            RegistryConfig(
                rpc_url=rpc_url,
                chain=chain,
                registry_address=registry_address,
                multicall3_address=multicall3_address,
                warm_storage_address=warm_storage_address,
                private_key=private_key,
                page_size=page_size,
            )
        )

    @classmethod
    async def from_config(cls, config: RegistryConfig, web3: Optional[AsyncWeb3] = None) -> "AsyncRegistryClient":
        chain = config.resolve_chain()
        if web3 is None:
            web3 = AsyncWeb3(AsyncHTTPProvider(config.resolve_rpc_url()))
        registry_address = chain.contracts.sp_registry
        if registry_address is None:
            if chain.contracts.warm_storage is None:
                raise _missing_registry(chain)
            try:
                registry_address = await async_discover_registry_address(web3, chain.contracts.warm_storage)
            except RegistryCallError as exc:
                raise _missing_registry(chain, exc) from exc
            if is_zero_address(registry_address):
                raise _missing_registry(chain)
            logger.info("Discovered ServiceProviderRegistry at %s", registry_address)
        return cls(
            web3,
            chain,
            registry_address,
            account_address=_account_address(config.private_key),
            private_key=config.private_key,
            page_size=config.page_size,
        )

    @property
    def web3(self) -> AsyncWeb3:
        return self._web3

    @property
    def chain(self) -> Chain:
        return self._chain

    @property
    def account(self) -> Optional[str]:
        return self._account

    @property
    def registry_address(self) -> str:
        return self._gateway.address

    @property
    def providers(self) -> AsyncSPRegistryService:
        return self._providers
