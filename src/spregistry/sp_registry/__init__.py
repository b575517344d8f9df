from .gateway import AsyncRegistryGateway, SyncRegistryGateway
from .multicall import AsyncMulticall, Call, CallResult, SyncMulticall
from .registration import RegistrationAction, RegistrationResult, plan_registration
from .service import AsyncSPRegistryService, SyncSPRegistryService
from .types import (
    PDPOffering,
    PDPServiceInfo,
    ProductType,
    ProviderInfo,
    ProviderRegistrationInfo,
    ProviderWithProduct,
    ServiceProduct,
)

__all__ = [
    "AsyncSPRegistryService",
    "SyncSPRegistryService",
    "AsyncRegistryGateway",
    "SyncRegistryGateway",
    "AsyncMulticall",
    "SyncMulticall",
    "Call",
    "CallResult",
    "RegistrationAction",
    "RegistrationResult",
    "plan_registration",
    "ProductType",
    "ProviderInfo",
    "ProviderWithProduct",
    "ProviderRegistrationInfo",
    "PDPOffering",
    "PDPServiceInfo",
    "ServiceProduct",
]
