"""Tests for provider registration and product management."""
import logging
from dataclasses import replace

import pytest

from fakes import REGISTRATION_FEE, TEST_ACCOUNT, TX_HASH
from spregistry.core.errors import EncodingError
from spregistry.sp_registry import ProviderInfo, ProviderRegistrationInfo, RegistrationAction, plan_registration
from spregistry.sp_registry.pdp_capabilities import encode_pdp_capabilities, encode_pdp_offering
from spregistry.sp_registry.registration import ProductAction
from spregistry.sp_registry.types import ProductType, ServiceProduct


@pytest.fixture
def info(offering):
    return ProviderRegistrationInfo(
        payee=TEST_ACCOUNT,
        name="alpha",
        description="fast storage",
        pdp_offering=offering,
        capabilities={"region": "eu"},
    )


def _current(info, product_active=True, **overrides):
    keys, values = encode_pdp_capabilities(info.pdp_offering, info.capabilities)
    product = ServiceProduct(
        product_type=ProductType.PDP,
        is_active=product_active,
        capabilities=dict(zip(keys, values)),
        offering=info.pdp_offering,
    )
    provider = ProviderInfo(
        provider_id=3,
        service_provider=TEST_ACCOUNT,
        payee=TEST_ACCOUNT,
        name=info.name,
        description=info.description,
        is_active=True,
        products={ProductType.PDP: product},
    )
    return replace(provider, **overrides)


class TestPlanRegistration:
    """plan_registration compares the on-chain record with the desired one."""

    def test_up_to_date(self, info):
        plan = plan_registration(_current(info), info)
        assert plan.provider_id == 3
        assert not plan.needs_write

    def test_info_changed(self, info):
        plan = plan_registration(_current(info, description="old"), info)
        assert plan.update_info
        assert plan.product_action is None

    def test_missing_product(self, info):
        plan = plan_registration(_current(info, products={}), info)
        assert plan.product_action is ProductAction.ADD
        assert not plan.update_info

    def test_capabilities_changed(self, info):
        changed = replace(info, capabilities={"region": "us"})
        assert plan_registration(_current(info), changed).product_action is ProductAction.UPDATE

    def test_inactive_product_is_refreshed(self, info):
        assert plan_registration(_current(info, product_active=False), info).product_action is ProductAction.UPDATE

    def test_no_offering_leaves_product_alone(self, info):
        plan = plan_registration(_current(info, products={}), replace(info, pdp_offering=None))
        assert plan.product_action is None

    def test_invalid_offering_raises(self, info):
        info.pdp_offering.service_url = ""
        with pytest.raises(EncodingError):
            plan_registration(_current(info, products={}), info)


class TestSyncRegistration:
    """SyncSPRegistryService write paths."""

    def test_register_provider(self, registry, sync_service, info):
        assert sync_service.register_provider(TEST_ACCOUNT, info) == TX_HASH

        write = registry.writes[0]
        assert write["name"] == "registerProvider"
        assert write["value"] == REGISTRATION_FEE
        payee, name, description, product_type, product_data, keys, values = write["args"]
        assert (name, description, product_type) == ("alpha", "fast storage", ProductType.PDP)
        assert product_data == encode_pdp_offering(info.pdp_offering)
        assert dict(zip(keys, values))["region"] == "eu"

        provider_id = sync_service.get_provider_id_by_address(TEST_ACCOUNT)
        provider = sync_service.get_provider(provider_id)
        assert provider.pdp.offering == info.pdp_offering

    def test_register_without_offering(self, registry, sync_service, info):
        sync_service.register_provider(TEST_ACCOUNT, replace(info, pdp_offering=None, capabilities=None))
        assert registry.writes[0]["args"][4:] == [b"", [], []]

    def test_register_requires_private_key(self, registry, make_sync_service, info):
        with pytest.raises(ValueError):
            make_sync_service(private_key=None).register_provider(TEST_ACCOUNT, info)
        assert registry.writes == []

    def test_invalid_offering_sends_nothing(self, registry, sync_service, info):
        info.pdp_offering.max_piece_size_in_bytes = -5
        with pytest.raises(EncodingError):
            sync_service.register_provider(TEST_ACCOUNT, info)
        assert registry.writes == []

    def test_ensure_registered_flow(self, registry, sync_service, info, caplog):
        with caplog.at_level(logging.INFO, logger="spregistry.sp_registry.service"):
            first = sync_service.ensure_registered(TEST_ACCOUNT, info)
        assert first.action is RegistrationAction.REGISTERED
        assert first.transactions == [TX_HASH]
        assert "Registering new provider" in caplog.text

        second = sync_service.ensure_registered(TEST_ACCOUNT, info)
        assert second.action is RegistrationAction.UNCHANGED
        assert second.provider_id == 1
        assert second.transactions == []
        assert len(registry.writes) == 1

        third = sync_service.ensure_registered(TEST_ACCOUNT, replace(info, description="now faster"))
        assert third.action is RegistrationAction.UPDATED
        assert [write["name"] for write in registry.writes[1:]] == ["updateProviderInfo"]
        assert registry.providers[1]["description"] == "now faster"

    def test_ensure_registered_adds_product(self, registry, sync_service, info):
        registry.add_provider(TEST_ACCOUNT, name=info.name, description=info.description)
        result = sync_service.ensure_registered(TEST_ACCOUNT, info)
        assert result.action is RegistrationAction.UPDATED
        assert [write["name"] for write in registry.writes] == ["addProduct"]
        assert sync_service.get_pdp_service(1).capabilities["region"] == "eu"

    def test_ensure_registered_updates_product(self, registry, sync_service, info):
        registry.add_pdp_provider(info.pdp_offering, service_provider=TEST_ACCOUNT, name=info.name,
                                  description=info.description, capabilities={"region": "us"})
        result = sync_service.ensure_registered(TEST_ACCOUNT, info)
        assert result.action is RegistrationAction.UPDATED
        assert [write["name"] for write in registry.writes] == ["updateProduct"]

    def test_undecodable_product_is_replaced(self, registry, sync_service, info):
        registry.add_provider(TEST_ACCOUNT, name=info.name, description=info.description,
                              keys=["minPieceSizeInBytes"], values=["lots"])
        sync_service.ensure_registered(TEST_ACCOUNT, info)
        assert [write["name"] for write in registry.writes] == ["updateProduct"]

    def test_product_management(self, registry, sync_service, offering):
        registry.add_provider(TEST_ACCOUNT)
        sync_service.add_pdp_product(TEST_ACCOUNT, offering)
        assert sync_service.get_pdp_service(1).offering == offering

        offering.storage_price_per_tib_per_day = 5
        sync_service.update_pdp_product(TEST_ACCOUNT, offering, {"tier": "gold"})
        service = sync_service.get_pdp_service(1)
        assert service.offering.storage_price_per_tib_per_day == 5
        assert service.capabilities["tier"] == "gold"

        sync_service.remove_product(TEST_ACCOUNT)
        assert sync_service.get_pdp_service(1) is None

    def test_remove_provider(self, registry, sync_service):
        assert sync_service.remove_provider(TEST_ACCOUNT) is None
        registry.add_provider(TEST_ACCOUNT)
        assert sync_service.remove_provider(TEST_ACCOUNT) == TX_HASH
        assert sync_service.remove_provider(TEST_ACCOUNT) is None
        assert sync_service.get_all_active_providers() == []

    def test_update_provider_info(self, registry, sync_service):
        registry.add_provider(TEST_ACCOUNT, name="old")
        sync_service.update_provider_info(TEST_ACCOUNT, "new", "desc")
        assert sync_service.get_provider(1).name == "new"


class TestAsyncRegistration:
    """AsyncSPRegistryService write paths."""

    @pytest.mark.asyncio
    async def test_ensure_registered_flow(self, registry, async_service, info):
        first = await async_service.ensure_registered(TEST_ACCOUNT, info)
        assert first.action is RegistrationAction.REGISTERED

        second = await async_service.ensure_registered(TEST_ACCOUNT, info)
        assert second.action is RegistrationAction.UNCHANGED

        third = await async_service.ensure_registered(TEST_ACCOUNT, replace(info, capabilities={"region": "us"}))
        assert third.action is RegistrationAction.UPDATED
        assert [write["name"] for write in registry.writes] == ["registerProvider", "updateProduct"]

    @pytest.mark.asyncio
    async def test_product_management(self, registry, async_service, offering):
        registry.add_provider(TEST_ACCOUNT)
        await async_service.add_pdp_product(TEST_ACCOUNT, offering)
        assert (await async_service.get_pdp_service(1)).offering == offering
        await async_service.remove_product(TEST_ACCOUNT)
        assert await async_service.get_pdp_service(1) is None

    @pytest.mark.asyncio
    async def test_remove_provider(self, registry, async_service):
        registry.add_provider(TEST_ACCOUNT)
        assert await async_service.remove_provider(TEST_ACCOUNT) == TX_HASH
        assert await async_service.remove_provider(TEST_ACCOUNT) is None
        assert await async_service.get_registration_fee() == REGISTRATION_FEE
