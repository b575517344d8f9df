"""Tests for RegistryClient / AsyncRegistryClient construction."""
import logging

import pytest
from web3 import AsyncHTTPProvider, HTTPProvider

from fakes import (
    REGISTRY_ADDRESS,
    TEST_ACCOUNT,
    TEST_PRIVATE_KEY,
    WARM_STORAGE_ADDRESS,
    FakeMulticallHandler,
    make_web3,
)
from spregistry import AsyncRegistryClient, RegistryClient
from spregistry.core import MAINNET, ZERO_ADDRESS, ConfigurationError, RegistryConfig, devnet


class TestRegistryClient:
    """Tests for RegistryClient."""

    def test_create_offline(self):
        client = RegistryClient.create(
            rpc_url="http://localhost:1234/rpc/v1",
            chain="mainnet",
            private_key=TEST_PRIVATE_KEY,
            registry_address=REGISTRY_ADDRESS.lower(),
        )
        assert client.chain.id == MAINNET.id
        assert client.account == TEST_ACCOUNT
        assert client.registry_address == REGISTRY_ADDRESS
        assert isinstance(client.web3.provider, HTTPProvider)
        assert client.web3.provider.endpoint_uri == "http://localhost:1234/rpc/v1"

    def test_create_requires_chain(self):
        with pytest.raises(TypeError):
            RegistryClient.create(rpc_url="http://localhost:1234/rpc/v1", registry_address=REGISTRY_ADDRESS)

    def test_read_only_client(self, registry):
        web3 = make_web3(registry, FakeMulticallHandler(registry))
        client = RegistryClient.from_config(RegistryConfig(registry_address=REGISTRY_ADDRESS), web3=web3)
        registry.add_provider(name="alpha")
        assert client.account is None
        assert [p.name for p in client.providers.get_all_active_providers()] == ["alpha"]

    def test_registry_discovered_from_warm_storage(self, registry):
        web3 = make_web3(registry, FakeMulticallHandler(registry))
        client = RegistryClient.from_config(RegistryConfig(warm_storage_address=WARM_STORAGE_ADDRESS), web3=web3)
        assert client.registry_address == REGISTRY_ADDRESS

    def test_registry_address_required(self, registry):
        with pytest.raises(ConfigurationError):
            RegistryClient.from_config(RegistryConfig(), web3=make_web3(registry))

    def test_discovery_of_zero_address_fails(self, registry):
        web3 = make_web3(registry, warm_storage_registry=ZERO_ADDRESS)
        with pytest.raises(ConfigurationError):
            RegistryClient.from_config(RegistryConfig(warm_storage_address=WARM_STORAGE_ADDRESS), web3=web3)

    def test_chain_registry_default(self, registry):
        chain = devnet(rpc_url="http://localhost:1234/rpc/v1", sp_registry=REGISTRY_ADDRESS)
        client = RegistryClient.from_config(RegistryConfig(chain=chain), web3=make_web3(registry))
        assert client.registry_address == REGISTRY_ADDRESS

    def test_devnet_without_multicall_falls_back(self, registry, caplog):
        chain = devnet(rpc_url="http://localhost:1234/rpc/v1")
        registry.add_provider(name="alpha")
        registry.add_provider(name="beta")
        with caplog.at_level(logging.WARNING, logger="spregistry"):
            client = RegistryClient.from_config(
                RegistryConfig(chain=chain, registry_address=REGISTRY_ADDRESS, page_size=1),
                web3=make_web3(registry),
            )
            providers = client.providers.get_all_active_providers()
        assert [p.name for p in providers] == ["alpha", "beta"]
        assert "No Multicall3 on devnet" in caplog.text


class TestAsyncRegistryClient:
    """Tests for AsyncRegistryClient."""

    @pytest.mark.asyncio
    async def test_create_offline(self):
        client = await AsyncRegistryClient.create(
            "calibration",
            rpc_url="http://localhost:1234/rpc/v1",
            private_key=TEST_PRIVATE_KEY,
            registry_address=REGISTRY_ADDRESS,
        )
        assert client.account == TEST_ACCOUNT
        assert client.registry_address == REGISTRY_ADDRESS
        assert isinstance(client.web3.provider, AsyncHTTPProvider)
        assert client.web3.provider.endpoint_uri == "http://localhost:1234/rpc/v1"

    @pytest.mark.asyncio
    async def test_registry_discovered_from_warm_storage(self, registry):
        web3 = make_web3(registry, FakeMulticallHandler(registry), asynchronous=True)
        client = await AsyncRegistryClient.from_config(
            RegistryConfig(warm_storage_address=WARM_STORAGE_ADDRESS), web3=web3
        )
        registry.add_provider(name="alpha")
        assert client.registry_address == REGISTRY_ADDRESS
        assert [p.name for p in await client.providers.get_all_active_providers()] == ["alpha"]

    @pytest.mark.asyncio
    async def test_registry_address_required(self, registry):
        with pytest.raises(ConfigurationError):
            await AsyncRegistryClient.from_config(RegistryConfig(), web3=make_web3(registry, asynchronous=True))
