"""
Idempotent provider registration.

``plan_registration`` compares the on-chain record of an already registered
address with the desired registration and lists the writes needed to converge.
An empty plan means the record is up to date and nothing is sent.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

from .pdp_capabilities import encode_pdp_capabilities
from .types import ProductType, ProviderInfo, ProviderRegistrationInfo


class RegistrationAction(str, Enum):
    REGISTERED = "registered"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


class ProductAction(str, Enum):
    ADD = "add"
    UPDATE = "update"


@dataclass
class RegistrationPlan:
    provider_id: int
    update_info: bool = False
    product_action: Optional[ProductAction] = None

    @property
    def needs_write(self) -> bool:
        return self.update_info or self.product_action is not None


@dataclass
class RegistrationResult:
    action: RegistrationAction
    # None until the registration transaction is mined; read it back with
    # get_provider_id_by_address once confirmed.
    provider_id: Optional[int]
    transactions: List[str] = field(default_factory=list)


def plan_registration(
    current: ProviderInfo,
    info: ProviderRegistrationInfo,
    product_type: ProductType = ProductType.PDP,
) -> RegistrationPlan:
    plan = RegistrationPlan(provider_id=current.provider_id)
    plan.update_info = current.name != info.name or current.description != info.description

    if info.pdp_offering is not None:
        keys, values = encode_pdp_capabilities(info.pdp_offering, info.capabilities)
        desired = dict(zip(keys, values))
        existing = current.products.get(product_type)
        if existing is None:
            plan.product_action = ProductAction.ADD
        elif existing.capabilities != desired or not existing.is_active:
            plan.product_action = ProductAction.UPDATE
    return plan
