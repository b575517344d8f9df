"""
Provider registry services.

Resolves providers from the ServiceProviderRegistry, transparently handling
pagination, Multicall3 batching and the per-id fallback, and drives the
registration workflow on top of the gateway.
"""
from __future__ import annotations

import asyncio
import concurrent.futures
import logging
from typing import Awaitable, Callable, List, Mapping, Optional, Sequence, Tuple

from spregistry.core.constants import DEFAULT_PAGE_SIZE
from spregistry.core.errors import AggregationUnavailableError, RegistryCallError
from .fetchers import (
    AsyncIndividualProviderFetcher,
    AsyncMulticallProviderFetcher,
    AsyncProviderFetcher,
    IndividualProviderFetcher,
    MulticallProviderFetcher,
    ProviderFetcher,
    build_provider,
    decode_service_product,
)
from .gateway import AsyncRegistryGateway, SyncRegistryGateway
from .multicall import AsyncMulticall, SyncMulticall
from .pdp_capabilities import encode_pdp_capabilities, encode_pdp_offering
from .registration import ProductAction, RegistrationAction, RegistrationResult, plan_registration
from .types import PDPOffering, PDPServiceInfo, ProductType, ProviderInfo, ProviderRegistrationInfo

logger = logging.getLogger(__name__)

PageFetcher = Callable[[int, int], Tuple[List[int], bool]]
AsyncPageFetcher = Callable[[int, int], Awaitable[Tuple[List[int], bool]]]


def _registration_payload(info: ProviderRegistrationInfo) -> Tuple[bytes, List[str], List[str]]:
    if info.pdp_offering is None:
        return b"", [], []
    keys, values = encode_pdp_capabilities(info.pdp_offering, info.capabilities)
    return encode_pdp_offering(info.pdp_offering), keys, values


def _product_payload(
    pdp_offering: PDPOffering, capabilities: Optional[Mapping[str, Optional[str]]]
) -> Tuple[bytes, List[str], List[str]]:
    keys, values = encode_pdp_capabilities(pdp_offering, capabilities)
    return encode_pdp_offering(pdp_offering), keys, values


class SyncSPRegistryService:
    """
    Synchronous registry client.

    Listing overlaps the per-page detail fetches on a thread pool while the
    pagination cursor itself advances sequentially.

    Example:
        service = SyncSPRegistryService(gateway, multicall)
        providers = service.get_all_active_providers()
    """

    def __init__(
        self,
        gateway: SyncRegistryGateway,
        multicall: Optional[SyncMulticall] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_workers: int = 8,
    ) -> None:
        self._gateway = gateway
        self._page_size = page_size
        self._max_workers = max_workers
        self._aggregated: ProviderFetcher = MulticallProviderFetcher(gateway, multicall)
        self._individual: ProviderFetcher = IndividualProviderFetcher(gateway)

    @property
    def gateway(self) -> SyncRegistryGateway:
        return self._gateway

    # ========== Provider Queries ==========

    def get_provider(self, provider_id: int) -> Optional[ProviderInfo]:
        info = self._gateway.get_provider(provider_id)
        if info is None:
            return None
        return build_provider(provider_id, info, self._get_product(provider_id))

    def get_provider_by_address(self, address: str) -> Optional[ProviderInfo]:
        info = self._gateway.get_provider_by_address(address)
        if info is None:
            return None
        return build_provider(info.provider_id, info, self._get_product(info.provider_id))

    def _get_product(self, provider_id: int):
        try:
            return self._gateway.get_provider_with_product(provider_id, ProductType.PDP)
        except RegistryCallError as exc:
            logger.debug("No product data for provider %d: %s", provider_id, exc)
            return None

    def get_pdp_service(self, provider_id: int) -> Optional[PDPServiceInfo]:
        raw = self._gateway.get_provider_with_product(provider_id, ProductType.PDP)
        if raw is None:
            return None
        product = decode_service_product(raw)
        if product is None or product.offering is None:
            return None
        return PDPServiceInfo(offering=product.offering, capabilities=product.capabilities, is_active=product.is_active)

    def get_provider_id_by_address(self, address: str) -> int:
        return self._gateway.get_provider_id_by_address(address)

    def is_registered_provider(self, address: str) -> bool:
        return self._gateway.is_registered_provider(address)

    def is_provider_active(self, provider_id: int) -> bool:
        return self._gateway.is_provider_active(provider_id)

    def provider_has_product(self, provider_id: int, product_type: ProductType = ProductType.PDP) -> bool:
        return self._gateway.provider_has_product(provider_id, product_type)

    def get_provider_count(self) -> int:
        return self._gateway.get_provider_count()

    def active_provider_count(self) -> int:
        return self._gateway.active_provider_count()

    def get_registration_fee(self) -> int:
        return self._gateway.get_registration_fee()

    # ========== Batch Operations ==========

    def get_providers(self, provider_ids: Sequence[int]) -> List[ProviderInfo]:
        if not provider_ids:
            return []
        try:
            return self._aggregated.fetch(provider_ids)
        except AggregationUnavailableError as exc:
            logger.warning("Multicall unavailable (%s); fetching %d providers individually", exc, len(provider_ids))
            return self._individual.fetch(provider_ids)

    def get_all_active_providers(self) -> List[ProviderInfo]:
        return self._list_all(self._gateway.get_all_active_providers)

    def get_active_providers_by_product_type(self, product_type: ProductType = ProductType.PDP) -> List[ProviderInfo]:
        def fetch_page(offset: int, limit: int) -> Tuple[List[int], bool]:
            return self._gateway.get_providers_by_product_type(product_type, offset, limit)

        providers = self._list_all(fetch_page)
        # The product-type index also holds deactivated providers.
        return [provider for provider in providers if provider.is_active]

    def _list_all(self, fetch_page: PageFetcher) -> List[ProviderInfo]:
        futures: List[concurrent.futures.Future] = []
        with concurrent.futures.ThreadPoolExecutor(max_workers=self._max_workers) as executor:
            offset = 0
            has_more = True
            while has_more:
                provider_ids, has_more = fetch_page(offset, self._page_size)
                logger.debug("Fetched page offset=%d count=%d has_more=%s", offset, len(provider_ids), has_more)
                if provider_ids:
                    futures.append(executor.submit(self.get_providers, provider_ids))
                offset += self._page_size
            batches = [future.result() for future in futures]
        return [provider for batch in batches for provider in batch]

    # ========== Provider Management ==========

    def register_provider(self, account: str, info: ProviderRegistrationInfo) -> str:
        """Submit ``registerProvider`` paying the fee read just before sending.

        The provider id is assigned when the transaction is mined; read it back
        with :meth:`get_provider_id_by_address` once it is confirmed.
        """
        product_data, keys, values = _registration_payload(info)
        fee = self._gateway.get_registration_fee()
        return self._gateway.register_provider(
            account,
            info.payee,
            info.name,
            info.description,
            ProductType.PDP,
            product_data,
            keys,
            values,
            fee,
        )

    def update_provider_info(self, account: str, name: str, description: str) -> str:
        return self._gateway.update_provider_info(account, name, description)

    def remove_provider(self, account: str) -> Optional[str]:
        return self._gateway.remove_provider(account)

    def add_pdp_product(
        self, account: str, pdp_offering: PDPOffering, capabilities: Optional[Mapping[str, Optional[str]]] = None
    ) -> str:
        product_data, keys, values = _product_payload(pdp_offering, capabilities)
        return self._gateway.add_product(account, ProductType.PDP, product_data, keys, values)

    def update_pdp_product(
        self, account: str, pdp_offering: PDPOffering, capabilities: Optional[Mapping[str, Optional[str]]] = None
    ) -> str:
        product_data, keys, values = _product_payload(pdp_offering, capabilities)
        return self._gateway.update_product(account, ProductType.PDP, product_data, keys, values)

    def remove_product(self, account: str, product_type: ProductType = ProductType.PDP) -> str:
        return self._gateway.remove_product(account, product_type)

    def ensure_registered(self, account: str, info: ProviderRegistrationInfo) -> RegistrationResult:
        """Register ``account``, or bring its existing record in line with ``info``."""
        provider_id = self._gateway.get_provider_id_by_address(account)
        current = self.get_provider(provider_id) if provider_id else None
        if current is None:
            logger.info("Registering new provider %s", account)
            tx_hash = self.register_provider(account, info)
            return RegistrationResult(RegistrationAction.REGISTERED, None, [tx_hash])

        plan = plan_registration(current, info)
        if plan.product_action is ProductAction.ADD and self._gateway.provider_has_product(provider_id, ProductType.PDP):
            plan.product_action = ProductAction.UPDATE
        if not plan.needs_write:
            logger.info("Provider %d already up to date", provider_id)
            return RegistrationResult(RegistrationAction.UNCHANGED, provider_id)

        transactions: List[str] = []
        if plan.update_info:
            transactions.append(self.update_provider_info(account, info.name, info.description))
        if plan.product_action is ProductAction.ADD:
            transactions.append(self.add_pdp_product(account, info.pdp_offering, info.capabilities))
        elif plan.product_action is ProductAction.UPDATE:
            transactions.append(self.update_pdp_product(account, info.pdp_offering, info.capabilities))
        logger.info("Updated provider %d with %d transaction(s)", provider_id, len(transactions))
        return RegistrationResult(RegistrationAction.UPDATED, provider_id, transactions)


class AsyncSPRegistryService:
    """
    Async registry client.

    Each page of ids is handed to its own task as soon as it is known, so the
    detail batches of all pages overlap; results are joined in page order.

    Example:
        service = AsyncSPRegistryService(gateway, multicall)
        providers = await service.get_all_active_providers()
    """

    def __init__(
        self,
        gateway: AsyncRegistryGateway,
        multicall: Optional[AsyncMulticall] = None,
        page_size: int = DEFAULT_PAGE_SIZE,
    ) -> None:
        self._gateway = gateway
        self._page_size = page_size
        self._aggregated: AsyncProviderFetcher = AsyncMulticallProviderFetcher(gateway, multicall)
        self._individual: AsyncProviderFetcher = AsyncIndividualProviderFetcher(gateway)

    @property
    def gateway(self) -> AsyncRegistryGateway:
        return self._gateway

    # ========== Provider Queries ==========

    async def get_provider(self, provider_id: int) -> Optional[ProviderInfo]:
        info = await self._gateway.get_provider(provider_id)
        if info is None:
            return None
        return build_provider(provider_id, info, await self._get_product(provider_id))

    async def get_provider_by_address(self, address: str) -> Optional[ProviderInfo]:
        info = await self._gateway.get_provider_by_address(address)
        if info is None:
            return None
        return build_provider(info.provider_id, info, await self._get_product(info.provider_id))

    async def _get_product(self, provider_id: int):
        try:
            return await self._gateway.get_provider_with_product(provider_id, ProductType.PDP)
        except RegistryCallError as exc:
            logger.debug("No product data for provider %d: %s", provider_id, exc)
            return None

    async def get_pdp_service(self, provider_id: int) -> Optional[PDPServiceInfo]:
        raw = await self._gateway.get_provider_with_product(provider_id, ProductType.PDP)
        if raw is None:
            return None
        product = decode_service_product(raw)
        if product is None or product.offering is None:
            return None
        return PDPServiceInfo(offering=product.offering, capabilities=product.capabilities, is_active=product.is_active)

    async def get_provider_id_by_address(self, address: str) -> int:
        return await self._gateway.get_provider_id_by_address(address)

    async def is_registered_provider(self, address: str) -> bool:
        return await self._gateway.is_registered_provider(address)

    async def is_provider_active(self, provider_id: int) -> bool:
        return await self._gateway.is_provider_active(provider_id)

    async def provider_has_product(self, provider_id: int, product_type: ProductType = ProductType.PDP) -> bool:
        return await self._gateway.provider_has_product(provider_id, product_type)

    async def get_provider_count(self) -> int:
        return await self._gateway.get_provider_count()

    async def active_provider_count(self) -> int:
        return await self._gateway.active_provider_count()

    async def get_registration_fee(self) -> int:
        return await self._gateway.get_registration_fee()

    # ========== Batch Operations ==========

    async def get_providers(self, provider_ids: Sequence[int]) -> List[ProviderInfo]:
        if not provider_ids:
            return []
        try:
            return await self._aggregated.fetch(provider_ids)
        except AggregationUnavailableError as exc:
            logger.warning("Multicall unavailable (%s); fetching %d providers individually", exc, len(provider_ids))
            return await self._individual.fetch(provider_ids)

    async def get_all_active_providers(self) -> List[ProviderInfo]:
        return await self._list_all(self._gateway.get_all_active_providers)

    async def get_active_providers_by_product_type(
        self, product_type: ProductType = ProductType.PDP
    ) -> List[ProviderInfo]:
        async def fetch_page(offset: int, limit: int) -> Tuple[List[int], bool]:
            return await self._gateway.get_providers_by_product_type(product_type, offset, limit)

        providers = await self._list_all(fetch_page)
        # The product-type index also holds deactivated providers.
        return [provider for provider in providers if provider.is_active]

    async def _list_all(self, fetch_page: AsyncPageFetcher) -> List[ProviderInfo]:
        tasks: List[asyncio.Task] = []
        offset = 0
        has_more = True
        try:
            while has_more:
                provider_ids, has_more = await fetch_page(offset, self._page_size)
                logger.debug("Fetched page offset=%d count=%d has_more=%s", offset, len(provider_ids), has_more)
                if provider_ids:
                    tasks.append(asyncio.create_task(self.get_providers(provider_ids)))
                offset += self._page_size
        except BaseException:
            for task in tasks:
                task.cancel()
            raise
        batches = await asyncio.gather(*tasks)
        return [provider for batch in batches for provider in batch]

    # ========== Provider Management ==========

    async def register_provider(self, account: str, info: ProviderRegistrationInfo) -> str:
        product_data, keys, values = _registration_payload(info)
        fee = await self._gateway.get_registration_fee()
        return await self._gateway.register_provider(
            account,
            info.payee,
            info.name,
            info.description,
            ProductType.PDP,
            product_data,
            keys,
            values,
            fee,
        )

    async def update_provider_info(self, account: str, name: str, description: str) -> str:
        return await self._gateway.update_provider_info(account, name, description)

    async def remove_provider(self, account: str) -> Optional[str]:
        return await self._gateway.remove_provider(account)

    async def add_pdp_product(
        self, account: str, pdp_offering: PDPOffering, capabilities: Optional[Mapping[str, Optional[str]]] = None
    ) -> str:
        product_data, keys, values = _product_payload(pdp_offering, capabilities)
        return await self._gateway.add_product(account, ProductType.PDP, product_data, keys, values)

    async def update_pdp_product(
        self, account: str, pdp_offering: PDPOffering, capabilities: Optional[Mapping[str, Optional[str]]] = None
    ) -> str:
        product_data, keys, values = _product_payload(pdp_offering, capabilities)
        return await self._gateway.update_product(account, ProductType.PDP, product_data, keys, values)

    async def remove_product(self, account: str, product_type: ProductType = ProductType.PDP) -> str:
        return await self._gateway.remove_product(account, product_type)

    async def ensure_registered(self, account: str, info: ProviderRegistrationInfo) -> RegistrationResult:
        provider_id = await self._gateway.get_provider_id_by_address(account)
        current = await self.get_provider(provider_id) if provider_id else None
        if current is None:
            logger.info("Registering new provider %s", account)
            tx_hash = await self.register_provider(account, info)
            return RegistrationResult(RegistrationAction.REGISTERED, None, [tx_hash])

        plan = plan_registration(current, info)
        if plan.product_action is ProductAction.ADD and await self._gateway.provider_has_product(
            provider_id, ProductType.PDP
        ):
            plan.product_action = ProductAction.UPDATE
        if not plan.needs_write:
            logger.info("Provider %d already up to date", provider_id)
            return RegistrationResult(RegistrationAction.UNCHANGED, provider_id)

        transactions: List[str] = []
        if plan.update_info:
            transactions.append(await self.update_provider_info(account, info.name, info.description))
        if plan.product_action is ProductAction.ADD:
            transactions.append(await self.add_pdp_product(account, info.pdp_offering, info.capabilities))
        elif plan.product_action is ProductAction.UPDATE:
            transactions.append(await self.update_pdp_product(account, info.pdp_offering, info.capabilities))
        logger.info("Updated provider %d with %d transaction(s)", provider_id, len(transactions))
        return RegistrationResult(RegistrationAction.UPDATED, provider_id, transactions)
