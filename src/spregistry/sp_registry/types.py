from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Dict, List, Optional

from eth_utils import is_address, to_checksum_address

from spregistry.core.constants import ZERO_ADDRESS


class ProductType(IntEnum):
    PDP = 0


@dataclass
class PDPOffering:
    service_url: str
    min_piece_size_in_bytes: int
    max_piece_size_in_bytes: int
    storage_price_per_tib_per_day: int
    min_proving_period_in_epochs: int
    location: str = ""
    payment_token_address: str = ZERO_ADDRESS
    ipni_piece: bool = False
    ipni_ipfs: bool = False
    ipni_peer_id: Optional[str] = None

    def __post_init__(self) -> None:
        # Match the checksum form the capability codec writes on chain.
        if isinstance(self.payment_token_address, str) and is_address(self.payment_token_address):
            self.payment_token_address = to_checksum_address(self.payment_token_address)


@dataclass
class ServiceProduct:
    product_type: ProductType
    is_active: bool
    capabilities: Dict[str, str] = field(default_factory=dict)
    offering: Optional[PDPOffering] = None


@dataclass
class ProviderInfo:
    provider_id: int
    service_provider: str
    payee: str
    name: str
    description: str
    is_active: bool
    products: Dict[ProductType, ServiceProduct] = field(default_factory=dict)

    @property
    def pdp(self) -> Optional[ServiceProduct]:
        return self.products.get(ProductType.PDP)


@dataclass
class RawProduct:
    product_type: int
    product_data: bytes
    capability_keys: List[str]
    is_active: bool


@dataclass
class ProviderWithProduct:
    """Undecoded result of ``getProviderWithProduct``."""

    provider_id: int
    provider_info: ProviderInfo
    product: RawProduct
    product_capability_values: List[str]


@dataclass
class PDPServiceInfo:
    offering: PDPOffering
    capabilities: Dict[str, str]
    is_active: bool


@dataclass
class ProviderRegistrationInfo:
    payee: str
    name: str
    description: str
    pdp_offering: Optional[PDPOffering] = None
    capabilities: Optional[Dict[str, Optional[str]]] = None
