"""
Strategies for fetching full provider records for a list of ids.

Both strategies read the same two things per id (``getProvider`` and
``getProviderWithProduct``) and hand them to ``build_provider``, so the
aggregated and the per-id paths apply identical filtering and decoding:

- a failed or empty provider read drops the id;
- a failed or undecodable product read keeps the provider without products.
"""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, List, Optional, Protocol, Sequence

from spregistry.core.constants import is_zero_address
from spregistry.core.errors import AggregationUnavailableError, DecodingError, RegistryCallError
from .capabilities import CapabilitySchema
from .gateway import (
    AsyncRegistryGateway,
    SyncRegistryGateway,
    convert_provider_info,
    convert_provider_with_product,
    decode_registry_result,
    encode_registry_call,
)
from .multicall import AsyncMulticall, Call, CallResult, SyncMulticall
from .pdp_capabilities import PDP_SCHEMA
from .types import ProductType, ProviderInfo, ProviderWithProduct, ServiceProduct

logger = logging.getLogger(__name__)

PRODUCT_SCHEMAS: Dict[ProductType, CapabilitySchema] = {
    ProductType.PDP: PDP_SCHEMA,
}


def decode_service_product(raw: ProviderWithProduct) -> Optional[ServiceProduct]:
    if is_zero_address(raw.provider_info.service_provider):
        return None
    keys = raw.product.capability_keys
    if not keys:
        return None
    product_type = ProductType(raw.product.product_type)
    offering, capabilities = PRODUCT_SCHEMAS[product_type].decode(keys, raw.product_capability_values)
    return ServiceProduct(
        product_type=product_type,
        is_active=raw.product.is_active,
        capabilities=capabilities,
        offering=offering,
    )


def build_provider(
    provider_id: int, info: Optional[ProviderInfo], product: Optional[ProviderWithProduct]
) -> Optional[ProviderInfo]:
    if info is None or is_zero_address(info.service_provider):
        return None
    products = {}
    if product is not None:
        try:
            service = decode_service_product(product)
        except (DecodingError, ValueError) as exc:
            logger.warning("Dropping undecodable product for provider %d: %s", provider_id, exc)
            service = None
        if service is not None:
            products[service.product_type] = service
    return replace(info, provider_id=provider_id, products=products)


def build_provider_calls(registry_address: str, provider_ids: Sequence[int], product_type: int) -> List[Call]:
    calls: List[Call] = []
    for provider_id in provider_ids:
        calls.append(Call(registry_address, encode_registry_call("getProvider", provider_id)))
        calls.append(
            Call(registry_address, encode_registry_call("getProviderWithProduct", provider_id, int(product_type)))
        )
    return calls


def unpack_provider_results(provider_ids: Sequence[int], results: Sequence[CallResult]) -> List[ProviderInfo]:
    providers: List[ProviderInfo] = []
    for index, provider_id in enumerate(provider_ids):
        provider_result = results[2 * index]
        product_result = results[2 * index + 1]
        if not provider_result.success:
            continue
        try:
            info = convert_provider_info(decode_registry_result("getProvider", provider_result.return_data))
        except Exception as exc:
            logger.warning("Failed to decode provider data for id %d: %s", provider_id, exc)
            continue

        product = None
        if product_result.success:
            try:
                product = convert_provider_with_product(
                    decode_registry_result("getProviderWithProduct", product_result.return_data)
                )
            except Exception as exc:
                logger.warning("Failed to decode product data for id %d: %s", provider_id, exc)

        provider = build_provider(provider_id, info, product)
        if provider is not None:
            providers.append(provider)
    return providers


class ProviderFetcher(Protocol):
    def fetch(self, provider_ids: Sequence[int]) -> List[ProviderInfo]:
        ...


class AsyncProviderFetcher(Protocol):
    async def fetch(self, provider_ids: Sequence[int]) -> List[ProviderInfo]:
        ...


class MulticallProviderFetcher:
    """One ``aggregate3`` round trip for the whole id list."""

    def __init__(
        self,
        gateway: SyncRegistryGateway,
        multicall: Optional[SyncMulticall],
        product_type: ProductType = ProductType.PDP,
    ) -> None:
        self._gateway = gateway
        self._multicall = multicall
        self._product_type = product_type

    def fetch(self, provider_ids: Sequence[int]) -> List[ProviderInfo]:
        if self._multicall is None:
            raise AggregationUnavailableError(
                component="Multicall3",
                operation="aggregate3",
                message="no Multicall3 address configured for this network",
            )
        calls = build_provider_calls(self._gateway.address, provider_ids, self._product_type)
        results = self._multicall.aggregate(calls)
        return unpack_provider_results(provider_ids, results)


class IndividualProviderFetcher:
    """Two point reads per id, issued one after another."""

    def __init__(self, gateway: SyncRegistryGateway, product_type: ProductType = ProductType.PDP) -> None:
        self._gateway = gateway
        self._product_type = product_type

    def fetch(self, provider_ids: Sequence[int]) -> List[ProviderInfo]:
        providers: List[ProviderInfo] = []
        for provider_id in provider_ids:
            try:
                info = self._gateway.get_provider(provider_id)
            except RegistryCallError as exc:
                logger.debug("getProvider(%d) failed: %s", provider_id, exc)
                continue
            if info is None:
                continue
            try:
                product = self._gateway.get_provider_with_product(provider_id, self._product_type)
            except RegistryCallError as exc:
                logger.debug("getProviderWithProduct(%d) failed: %s", provider_id, exc)
                product = None
            provider = build_provider(provider_id, info, product)
            if provider is not None:
                providers.append(provider)
        return providers


class AsyncMulticallProviderFetcher:
    def __init__(
        self,
        gateway: AsyncRegistryGateway,
        multicall: Optional[AsyncMulticall],
        product_type: ProductType = ProductType.PDP,
    ) -> None:
        self._gateway = gateway
        self._multicall = multicall
        self._product_type = product_type

    async def fetch(self, provider_ids: Sequence[int]) -> List[ProviderInfo]:
        if self._multicall is None:
            raise AggregationUnavailableError(
                component="Multicall3",
                operation="aggregate3",
                message="no Multicall3 address configured for this network",
            )
        calls = build_provider_calls(self._gateway.address, provider_ids, self._product_type)
        results = await self._multicall.aggregate(calls)
        return unpack_provider_results(provider_ids, results)


class AsyncIndividualProviderFetcher:
    def __init__(self, gateway: AsyncRegistryGateway, product_type: ProductType = ProductType.PDP) -> None:
        self._gateway = gateway
        self._product_type = product_type

    async def fetch(self, provider_ids: Sequence[int]) -> List[ProviderInfo]:
        providers: List[ProviderInfo] = []
        for provider_id in provider_ids:
            try:
                info = await self._gateway.get_provider(provider_id)
            except RegistryCallError as exc:
                logger.debug("getProvider(%d) failed: %s", provider_id, exc)
                continue
            if info is None:
                continue
            try:
                product = await self._gateway.get_provider_with_product(provider_id, self._product_type)
            except RegistryCallError as exc:
                logger.debug("getProviderWithProduct(%d) failed: %s", provider_id, exc)
                product = None
            provider = build_provider(provider_id, info, product)
            if provider is not None:
                providers.append(provider)
        return providers
