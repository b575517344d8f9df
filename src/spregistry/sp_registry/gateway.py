"""
Thin typed wrappers around the ServiceProviderRegistry contract.

The gateways shape arguments and unwrap results; they hold no state besides a
lazily created contract binding. Any revert or transport failure surfaces as
``RegistryCallError``. Point reads turn "not found" into ``None`` / ``0``.
"""
from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from eth_abi import decode as abi_decode
from eth_abi import encode as abi_encode
from eth_account import Account
from eth_utils import to_checksum_address
from eth_utils.abi import function_abi_to_4byte_selector, get_abi_input_types, get_abi_output_types
from web3 import AsyncWeb3, Web3
from web3.exceptions import ContractLogicError

from spregistry.contracts import SERVICE_PROVIDER_REGISTRY_ABI, WARM_STORAGE_ABI
from spregistry.core.constants import is_zero_address
from spregistry.core.errors import InsufficientFeeError, RegistryCallError
from .types import ProductType, ProviderInfo, ProviderWithProduct, RawProduct

_FUNCTIONS: Dict[str, Dict[str, Any]] = {
    item["name"]: item for item in SERVICE_PROVIDER_REGISTRY_ABI if item.get("type") == "function"
}


def encode_registry_call(name: str, *args: Any) -> bytes:
    abi = _FUNCTIONS[name]
    return function_abi_to_4byte_selector(abi) + abi_encode(get_abi_input_types(abi), list(args))


def decode_registry_result(name: str, data: bytes) -> Any:
    outputs = abi_decode(get_abi_output_types(_FUNCTIONS[name]), data)
    if len(outputs) == 1:
        return outputs[0]
    return outputs


def convert_provider_info(data: Sequence[Any]) -> ProviderInfo:
    inner = data[1]
    return ProviderInfo(
        provider_id=int(data[0]),
        service_provider=to_checksum_address(inner[0]),
        payee=to_checksum_address(inner[1]),
        name=inner[2],
        description=inner[3],
        is_active=bool(inner[4]),
    )


def convert_provider_with_product(data: Sequence[Any]) -> ProviderWithProduct:
    provider_info = convert_provider_info((data[0], data[1]))
    product_tuple = data[2]
    product = RawProduct(
        product_type=int(product_tuple[0]),
        product_data=bytes(product_tuple[1]),
        capability_keys=list(product_tuple[2]),
        is_active=bool(product_tuple[3]),
    )
    return ProviderWithProduct(
        provider_id=provider_info.provider_id,
        provider_info=provider_info,
        product=product,
        product_capability_values=list(data[3]),
    )


def _call_error(operation: str, exc: BaseException) -> RegistryCallError:
    if isinstance(exc, ContractLogicError):
        reason = getattr(exc, "message", None) or str(exc)
        return RegistryCallError(
            component="RegistryGateway",
            operation=operation,
            message=f"execution reverted: {reason}",
            cause=exc,
            reason=reason,
        )
    return RegistryCallError(
        component="RegistryGateway",
        operation=operation,
        message="call failed",
        cause=exc,
    )


def _check_fee(fee: int, required: int) -> None:
    if fee != required:
        raise InsufficientFeeError(
            component="RegistryGateway",
            operation="registerProvider",
            message=f"registration fee must be exactly {required}, got {fee}",
            required=required,
            provided=fee,
        )


class SyncRegistryGateway:
    def __init__(self, web3: Web3, address: str, private_key: Optional[str] = None) -> None:
        self._web3 = web3
        self._address = to_checksum_address(address)
        self._private_key = private_key
        self._contract = None
        self._lock = threading.Lock()

    @property
    def address(self) -> str:
        return self._address

    def _get_contract(self):
        if self._contract is None:
            with self._lock:
                if self._contract is None:
                    self._contract = self._web3.eth.contract(address=self._address, abi=SERVICE_PROVIDER_REGISTRY_ABI)
        return self._contract

    def _call(self, operation: str, function) -> Any:
        try:
            return function.call()
        except Exception as exc:
            raise _call_error(operation, exc) from exc

    def _transact(self, operation: str, account: str, function, value: int = 0) -> str:
        if not self._private_key:
            raise ValueError(f"private_key required for {operation}")
        try:
            tx_params: Dict[str, Any] = {
                "from": account,
                "nonce": self._web3.eth.get_transaction_count(account),
            }
            if value:
                tx_params["value"] = value
            txn = function.build_transaction(tx_params)
            signed = Account.sign_transaction(txn, private_key=self._private_key)
            tx_hash = self._web3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as exc:
            raise _call_error(operation, exc) from exc
        return Web3.to_hex(tx_hash)

    # Point reads

    def get_provider(self, provider_id: int) -> Optional[ProviderInfo]:
        try:
            data = self._call("getProvider", self._get_contract().functions.getProvider(provider_id))
        except RegistryCallError as exc:
            if exc.is_not_found:
                return None
            raise
        info = convert_provider_info(data)
        if is_zero_address(info.service_provider):
            return None
        return info

    def get_provider_by_address(self, address: str) -> Optional[ProviderInfo]:
        data = self._call("getProviderByAddress", self._get_contract().functions.getProviderByAddress(address))
        info = convert_provider_info(data)
        if info.provider_id == 0 or is_zero_address(info.service_provider):
            return None
        return info

    def get_provider_id_by_address(self, address: str) -> int:
        return int(self._call("getProviderIdByAddress", self._get_contract().functions.getProviderIdByAddress(address)))

    def get_provider_with_product(self, provider_id: int, product_type: int) -> Optional[ProviderWithProduct]:
        function = self._get_contract().functions.getProviderWithProduct(provider_id, int(product_type))
        try:
            data = self._call("getProviderWithProduct", function)
        except RegistryCallError as exc:
            if exc.is_not_found:
                return None
            raise
        result = convert_provider_with_product(data)
        if is_zero_address(result.provider_info.service_provider):
            return None
        return result

    # Scalar reads

    def is_registered_provider(self, address: str) -> bool:
        return bool(self._call("isRegisteredProvider", self._get_contract().functions.isRegisteredProvider(address)))

    def is_provider_active(self, provider_id: int) -> bool:
        return bool(self._call("isProviderActive", self._get_contract().functions.isProviderActive(provider_id)))

    def provider_has_product(self, provider_id: int, product_type: int) -> bool:
        function = self._get_contract().functions.providerHasProduct(provider_id, int(product_type))
        return bool(self._call("providerHasProduct", function))

    def get_provider_count(self) -> int:
        return int(self._call("getProviderCount", self._get_contract().functions.getProviderCount()))

    def active_provider_count(self) -> int:
        return int(self._call("activeProviderCount", self._get_contract().functions.activeProviderCount()))

    def get_registration_fee(self) -> int:
        return int(self._call("REGISTRATION_FEE", self._get_contract().functions.REGISTRATION_FEE()))

    # Paginated reads

    def get_all_active_providers(self, offset: int, limit: int) -> Tuple[List[int], bool]:
        result = self._call("getAllActiveProviders", self._get_contract().functions.getAllActiveProviders(offset, limit))
        return [int(provider_id) for provider_id in result[0]], bool(result[1])

    def get_providers_by_product_type(self, product_type: int, offset: int, limit: int) -> Tuple[List[int], bool]:
        function = self._get_contract().functions.getProvidersByProductType(int(product_type), offset, limit)
        result = self._call("getProvidersByProductType", function)
        return [int(provider_id) for provider_id in result[0]], bool(result[1])

    # Writes

    def register_provider(
        self,
        account: str,
        payee: str,
        name: str,
        description: str,
        product_type: int,
        product_data: bytes,
        capability_keys: List[str],
        capability_values: List[str],
        fee: int,
    ) -> str:
        if not self._private_key:
            raise ValueError("private_key required for registerProvider")
        _check_fee(fee, self.get_registration_fee())
        function = self._get_contract().functions.registerProvider(
            payee,
            name,
            description,
            int(product_type),
            product_data,
            capability_keys,
            capability_values,
        )
        return self._transact("registerProvider", account, function, value=fee)

    def update_provider_info(self, account: str, name: str, description: str) -> str:
        function = self._get_contract().functions.updateProviderInfo(name, description)
        return self._transact("updateProviderInfo", account, function)

    def remove_provider(self, account: str) -> Optional[str]:
        """Deactivate the caller's record. Returns ``None`` when there is nothing to remove."""
        if not self._private_key:
            raise ValueError("private_key required for removeProvider")
        provider_id = self.get_provider_id_by_address(account)
        if provider_id == 0 or not self.is_provider_active(provider_id):
            return None
        return self._transact("removeProvider", account, self._get_contract().functions.removeProvider())

    def add_product(
        self,
        account: str,
        product_type: int,
        product_data: bytes,
        capability_keys: List[str],
        capability_values: List[str],
    ) -> str:
        function = self._get_contract().functions.addProduct(
            int(product_type), product_data, capability_keys, capability_values
        )
        return self._transact("addProduct", account, function)

    def update_product(
        self,
        account: str,
        product_type: int,
        product_data: bytes,
        capability_keys: List[str],
        capability_values: List[str],
    ) -> str:
        function = self._get_contract().functions.updateProduct(
            int(product_type), product_data, capability_keys, capability_values
        )
        return self._transact("updateProduct", account, function)

    def remove_product(self, account: str, product_type: int = ProductType.PDP) -> str:
        function = self._get_contract().functions.removeProduct(int(product_type))
        return self._transact("removeProduct", account, function)


class AsyncRegistryGateway:
    def __init__(self, web3: AsyncWeb3, address: str, private_key: Optional[str] = None) -> None:
        self._web3 = web3
        self._address = to_checksum_address(address)
        self._private_key = private_key
        self._contract = None

    @property
    def address(self) -> str:
        return self._address

    def _get_contract(self):
        if self._contract is None:
            self._contract = self._web3.eth.contract(address=self._address, abi=SERVICE_PROVIDER_REGISTRY_ABI)
        return self._contract

    async def _call(self, operation: str, function) -> Any:
        try:
            return await function.call()
        except Exception as exc:
            raise _call_error(operation, exc) from exc

    async def _transact(self, operation: str, account: str, function, value: int = 0) -> str:
        if not self._private_key:
            raise ValueError(f"private_key required for {operation}")
        try:
            tx_params: Dict[str, Any] = {
                "from": account,
                "nonce": await self._web3.eth.get_transaction_count(account),
            }
            if value:
                tx_params["value"] = value
            txn = await function.build_transaction(tx_params)
            signed = Account.sign_transaction(txn, private_key=self._private_key)
            tx_hash = await self._web3.eth.send_raw_transaction(signed.raw_transaction)
        except Exception as exc:
            raise _call_error(operation, exc) from exc
        return Web3.to_hex(tx_hash)

    async def get_provider(self, provider_id: int) -> Optional[ProviderInfo]:
        try:
            data = await self._call("getProvider", self._get_contract().functions.getProvider(provider_id))
        except RegistryCallError as exc:
            if exc.is_not_found:
                return None
            raise
        info = convert_provider_info(data)
        if is_zero_address(info.service_provider):
            return None
        return info

    async def get_provider_by_address(self, address: str) -> Optional[ProviderInfo]:
        data = await self._call("getProviderByAddress", self._get_contract().functions.getProviderByAddress(address))
        info = convert_provider_info(data)
        if info.provider_id == 0 or is_zero_address(info.service_provider):
            return None
        return info

    async def get_provider_id_by_address(self, address: str) -> int:
        function = self._get_contract().functions.getProviderIdByAddress(address)
        return int(await self._call("getProviderIdByAddress", function))

    async def get_provider_with_product(self, provider_id: int, product_type: int) -> Optional[ProviderWithProduct]:
        function = self._get_contract().functions.getProviderWithProduct(provider_id, int(product_type))
        try:
            data = await self._call("getProviderWithProduct", function)
        except RegistryCallError as exc:
            if exc.is_not_found:
                return None
            raise
        result = convert_provider_with_product(data)
        if is_zero_address(result.provider_info.service_provider):
            return None
        return result

    async def is_registered_provider(self, address: str) -> bool:
        function = self._get_contract().functions.isRegisteredProvider(address)
        return bool(await self._call("isRegisteredProvider", function))

    async def is_provider_active(self, provider_id: int) -> bool:
        function = self._get_contract().functions.isProviderActive(provider_id)
        return bool(await self._call("isProviderActive", function))

    async def provider_has_product(self, provider_id: int, product_type: int) -> bool:
        function = self._get_contract().functions.providerHasProduct(provider_id, int(product_type))
        return bool(await self._call("providerHasProduct", function))

    async def get_provider_count(self) -> int:
        return int(await self._call("getProviderCount", self._get_contract().functions.getProviderCount()))

    async def active_provider_count(self) -> int:
        return int(await self._call("activeProviderCount", self._get_contract().functions.activeProviderCount()))

    async def get_registration_fee(self) -> int:
        return int(await self._call("REGISTRATION_FEE", self._get_contract().functions.REGISTRATION_FEE()))

    async def get_all_active_providers(self, offset: int, limit: int) -> Tuple[List[int], bool]:
        function = self._get_contract().functions.getAllActiveProviders(offset, limit)
        result = await self._call("getAllActiveProviders", function)
        return [int(provider_id) for provider_id in result[0]], bool(result[1])

    async def get_providers_by_product_type(self, product_type: int, offset: int, limit: int) -> Tuple[List[int], bool]:
        function = self._get_contract().functions.getProvidersByProductType(int(product_type), offset, limit)
        result = await self._call("getProvidersByProductType", function)
        return [int(provider_id) for provider_id in result[0]], bool(result[1])

    async def register_provider(
        self,
        account: str,
        payee: str,
        name: str,
        description: str,
        product_type: int,
        product_data: bytes,
        capability_keys: List[str],
        capability_values: List[str],
        fee: int,
    ) -> str:
        if not self._private_key:
            raise ValueError("private_key required for registerProvider")
        _check_fee(fee, await self.get_registration_fee())
        function = self._get_contract().functions.registerProvider(
            payee,
            name,
            description,
            int(product_type),
            product_data,
            capability_keys,
            capability_values,
        )
        return await self._transact("registerProvider", account, function, value=fee)

    async def update_provider_info(self, account: str, name: str, description: str) -> str:
        function = self._get_contract().functions.updateProviderInfo(name, description)
        return await self._transact("updateProviderInfo", account, function)

    async def remove_provider(self, account: str) -> Optional[str]:
        if not self._private_key:
            raise ValueError("private_key required for removeProvider")
        provider_id = await self.get_provider_id_by_address(account)
        if provider_id == 0 or not await self.is_provider_active(provider_id):
            return None
        return await self._transact("removeProvider", account, self._get_contract().functions.removeProvider())

    async def add_product(
        self,
        account: str,
        product_type: int,
        product_data: bytes,
        capability_keys: List[str],
        capability_values: List[str],
    ) -> str:
        function = self._get_contract().functions.addProduct(
            int(product_type), product_data, capability_keys, capability_values
        )
        return await self._transact("addProduct", account, function)

    async def update_product(
        self,
        account: str,
        product_type: int,
        product_data: bytes,
        capability_keys: List[str],
        capability_values: List[str],
    ) -> str:
        function = self._get_contract().functions.updateProduct(
            int(product_type), product_data, capability_keys, capability_values
        )
        return await self._transact("updateProduct", account, function)

    async def remove_product(self, account: str, product_type: int = ProductType.PDP) -> str:
        function = self._get_contract().functions.removeProduct(int(product_type))
        return await self._transact("removeProduct", account, function)


def discover_registry_address(web3: Web3, warm_storage_address: str) -> str:
    contract = web3.eth.contract(address=to_checksum_address(warm_storage_address), abi=WARM_STORAGE_ABI)
    try:
        address = contract.functions.serviceProviderRegistry().call()
    except Exception as exc:
        raise _call_error("serviceProviderRegistry", exc) from exc
    return to_checksum_address(address)


async def async_discover_registry_address(web3: AsyncWeb3, warm_storage_address: str) -> str:
    contract = web3.eth.contract(address=to_checksum_address(warm_storage_address), abi=WARM_STORAGE_ABI)
    try:
        address = await contract.functions.serviceProviderRegistry().call()
    except Exception as exc:
        raise _call_error("serviceProviderRegistry", exc) from exc
    return to_checksum_address(address)
