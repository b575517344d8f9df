"""
Multicall3 ``aggregate3`` wrappers.

Every call is submitted with ``allowFailure=True`` so a revert inside the batch
comes back as a failed ``CallResult`` instead of aborting its siblings. An
exception out of ``aggregate`` therefore always means the aggregator itself is
unusable: no address configured, or the round trip failed.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence

from eth_utils import to_checksum_address
from web3 import AsyncWeb3, Web3

from spregistry.contracts import MULTICALL3_ABI
from spregistry.core.errors import AggregationUnavailableError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Call:
    target: str
    call_data: bytes


@dataclass(frozen=True)
class CallResult:
    success: bool
    return_data: bytes


def _unavailable(message: str, cause: Optional[BaseException] = None) -> AggregationUnavailableError:
    return AggregationUnavailableError(component="Multicall3", operation="aggregate3", message=message, cause=cause)


def _encode_calls(calls: Sequence[Call]) -> List[tuple]:
    return [(to_checksum_address(call.target), True, call.call_data) for call in calls]


def _decode_results(calls: Sequence[Call], raw: Sequence[Any]) -> List[CallResult]:
    if len(raw) != len(calls):
        raise _unavailable(f"aggregate3 returned {len(raw)} results for {len(calls)} calls")
    return [CallResult(success=bool(success), return_data=bytes(data)) for success, data in raw]


class SyncMulticall:
    def __init__(self, web3: Web3, address: Optional[str]) -> None:
        self._web3 = web3
        self._address = to_checksum_address(address) if address else None
        self._contract = None
        self._lock = threading.Lock()

    @property
    def address(self) -> Optional[str]:
        return self._address

    def _get_contract(self):
        if self._address is None:
            raise _unavailable("no Multicall3 address configured for this network")
        if self._contract is None:
            with self._lock:
                if self._contract is None:
                    self._contract = self._web3.eth.contract(address=self._address, abi=MULTICALL3_ABI)
        return self._contract

    def aggregate(self, calls: Sequence[Call]) -> List[CallResult]:
        if not calls:
            return []
        contract = self._get_contract()
        logger.debug("aggregate3 with %d calls", len(calls))
        try:
            raw = contract.functions.aggregate3(_encode_calls(calls)).call()
        except Exception as exc:
            raise _unavailable("aggregate3 call failed", exc) from exc
        return _decode_results(calls, raw)


class AsyncMulticall:
    def __init__(self, web3: AsyncWeb3, address: Optional[str]) -> None:
        self._web3 = web3
        self._address = to_checksum_address(address) if address else None
        self._contract = None

    @property
    def address(self) -> Optional[str]:
        return self._address

    def _get_contract(self):
        if self._address is None:
            raise _unavailable("no Multicall3 address configured for this network")
        if self._contract is None:
            self._contract = self._web3.eth.contract(address=self._address, abi=MULTICALL3_ABI)
        return self._contract

    async def aggregate(self, calls: Sequence[Call]) -> List[CallResult]:
        if not calls:
            return []
        contract = self._get_contract()
        logger.debug("aggregate3 with %d calls", len(calls))
        try:
            raw = await contract.functions.aggregate3(_encode_calls(calls)).call()
        except Exception as exc:
            raise _unavailable("aggregate3 call failed", exc) from exc
        return _decode_results(calls, raw)
