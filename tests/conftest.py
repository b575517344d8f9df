"""Shared fixtures: services wired to the in-memory registry fakes."""
import pytest

from fakes import (
    REGISTRY_ADDRESS,
    TEST_PRIVATE_KEY,
    FakeMulticallHandler,
    FakeRegistry,
    make_web3,
)
from spregistry.core.constants import MULTICALL3_ADDRESS
from spregistry.sp_registry import (
    AsyncMulticall,
    AsyncRegistryGateway,
    AsyncSPRegistryService,
    PDPOffering,
    SyncMulticall,
    SyncRegistryGateway,
    SyncSPRegistryService,
)


@pytest.fixture
def registry():
    return FakeRegistry()


@pytest.fixture
def offering():
    return PDPOffering(
        service_url="https://sp.example.com",
        min_piece_size_in_bytes=127,
        max_piece_size_in_bytes=34091302912,
        storage_price_per_tib_per_day=1000,
        min_proving_period_in_epochs=2880,
        location="us-east",
    )


@pytest.fixture
def make_sync_service(registry):
    def factory(with_multicall=True, failing_multicall=False, page_size=50, private_key=TEST_PRIVATE_KEY):
        handler = FakeMulticallHandler(registry, fail=failing_multicall) if with_multicall else None
        web3 = make_web3(registry, handler)
        gateway = SyncRegistryGateway(web3, REGISTRY_ADDRESS, private_key)
        multicall = SyncMulticall(web3, MULTICALL3_ADDRESS) if with_multicall else None
        service = SyncSPRegistryService(gateway, multicall, page_size=page_size)
        service.multicall_handler = handler
        return service

    return factory


@pytest.fixture
def make_async_service(registry):
    def factory(with_multicall=True, failing_multicall=False, page_size=50, private_key=TEST_PRIVATE_KEY):
        handler = FakeMulticallHandler(registry, fail=failing_multicall) if with_multicall else None
        web3 = make_web3(registry, handler, asynchronous=True)
        gateway = AsyncRegistryGateway(web3, REGISTRY_ADDRESS, private_key)
        multicall = AsyncMulticall(web3, MULTICALL3_ADDRESS) if with_multicall else None
        service = AsyncSPRegistryService(gateway, multicall, page_size=page_size)
        service.multicall_handler = handler
        return service

    return factory


@pytest.fixture
def sync_service(make_sync_service):
    return make_sync_service()


@pytest.fixture
def async_service(make_async_service):
    return make_async_service()
