"""
Field-codec registry for product capabilities.

On chain a product's capabilities are a flat list of string key/value pairs.
A ``CapabilitySchema`` maps a typed offering onto those pairs: each recognised
attribute is described by a ``CapabilityField`` carrying a stable key, an
encoder, a decoder and the value used when the key is absent. Keys the schema
does not know are carried through untouched in the capability map.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, List, Mapping, Optional, Sequence, Tuple, Type, TypeVar

from eth_utils import is_address, to_checksum_address, to_text
from multiformats import multibase

from spregistry.core.constants import UINT256_MAX
from spregistry.core.errors import DecodingError, EncodingError

T = TypeVar("T")


def capabilities_list_to_object(keys: Sequence[str], values: Sequence[str | bytes]) -> Dict[str, str]:
    if len(keys) != len(values):
        raise DecodingError(
            component="CapabilitySchema",
            operation="decode",
            message=f"{len(keys)} capability keys but {len(values)} values",
        )
    capabilities: Dict[str, str] = {}
    for key, value in zip(keys, values):
        if isinstance(value, (bytes, bytearray)):
            try:
                value = to_text(primitive=bytes(value))
            except UnicodeDecodeError as exc:
                raise DecodingError(
                    component="CapabilitySchema",
                    operation="decode",
                    message="capability value is not valid UTF-8",
                    cause=exc,
                    key=key,
                ) from exc
        capabilities[key] = value or ""
    return capabilities


def encode_uint(value: Any) -> str:
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"expected an integer, got {type(value).__name__}")
    if value < 0 or value > UINT256_MAX:
        raise ValueError(f"{value} does not fit in uint256")
    return str(value)


def decode_uint(value: str) -> int:
    text = value.strip()
    if text[:2] in ("0x", "0X"):
        number = int(text[2:], 16)
    elif text.isdecimal():
        number = int(text)
    else:
        raise ValueError(f"{value!r} is not an unsigned integer")
    if number > UINT256_MAX:
        raise ValueError(f"{value!r} does not fit in uint256")
    return number


def encode_bool(value: Any) -> str:
    if not isinstance(value, bool):
        raise TypeError(f"expected a bool, got {type(value).__name__}")
    return "true" if value else "false"


def decode_bool(value: str) -> bool:
    text = value.strip().lower()
    if text in ("true", "1", "0x01"):
        return True
    if text in ("false", "0", "0x00"):
        return False
    raise ValueError(f"{value!r} is not a boolean")


def encode_text(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    return value


def decode_text(value: str) -> str:
    return value


def encode_address(value: Any) -> str:
    if not isinstance(value, str) or not is_address(value):
        raise ValueError(f"{value!r} is not an address")
    return to_checksum_address(value)


def decode_address(value: str) -> str:
    # Left-padded 32-byte words are accepted; the address is the low 20 bytes.
    if value.startswith("0x") and len(value) == 66:
        value = "0x" + value[-40:]
    if not is_address(value):
        raise ValueError(f"{value!r} is not an address")
    return to_checksum_address(value)


def _check_multibase(value: str) -> None:
    try:
        multibase.decode(value)
    except Exception as exc:
        raise ValueError(f"{value!r} is not a multibase peer id") from exc


def encode_peer_id(value: Any) -> str:
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {type(value).__name__}")
    _check_multibase(value)
    return value


def decode_peer_id(value: str) -> str:
    _check_multibase(value)
    return value


@dataclass(frozen=True)
class CapabilityField:
    key: str
    attr: str
    encoder: Callable[[Any], str]
    decoder: Callable[[str], Any]
    default: Any = None
    required: bool = False
    aliases: Tuple[str, ...] = ()


class CapabilitySchema(Generic[T]):
    def __init__(self, name: str, factory: Type[T], fields: Sequence[CapabilityField]) -> None:
        self._name = name
        self._factory = factory
        self._fields = tuple(fields)
        self._known_keys = frozenset(
            key for capability in self._fields for key in (capability.key, *capability.aliases)
        )

    @property
    def name(self) -> str:
        return self._name

    @property
    def fields(self) -> Tuple[CapabilityField, ...]:
        return self._fields

    def encode(
        self, offering: T, extra: Optional[Mapping[str, Optional[str]]] = None
    ) -> Tuple[List[str], List[str]]:
        keys: List[str] = []
        values: List[str] = []

        for capability in self._fields:
            value = getattr(offering, capability.attr, None)
            if value is None or value == "":
                if capability.required:
                    raise EncodingError(
                        component=self._name,
                        operation="encode",
                        message=f"required capability {capability.key!r} is missing",
                        key=capability.key,
                    )
                keys.append(capability.key)
                values.append("")
                continue
            try:
                encoded = capability.encoder(value)
            except (TypeError, ValueError) as exc:
                raise EncodingError(
                    component=self._name,
                    operation="encode",
                    message=f"cannot encode capability {capability.key!r}: {exc}",
                    cause=exc,
                    key=capability.key,
                ) from exc
            keys.append(capability.key)
            values.append(encoded)

        for key, value in (extra or {}).items():
            if not key:
                raise EncodingError(
                    component=self._name,
                    operation="encode",
                    message="capability keys must be non-empty",
                )
            if key in self._known_keys:
                raise EncodingError(
                    component=self._name,
                    operation="encode",
                    message=f"extra capability {key!r} collides with a schema key",
                    key=key,
                )
            keys.append(key)
            values.append("" if value is None else str(value))

        return keys, values

    def decode(self, keys: Sequence[str], values: Sequence[str | bytes]) -> Tuple[T, Dict[str, str]]:
        capabilities = capabilities_list_to_object(keys, values)
        return self.decode_map(capabilities), capabilities

    def decode_map(self, capabilities: Mapping[str, str]) -> T:
        kwargs: Dict[str, Any] = {}
        for capability in self._fields:
            raw = capabilities.get(capability.key)
            for alias in capability.aliases:
                if raw:
                    break
                raw = capabilities.get(alias)
            if not raw:
                kwargs[capability.attr] = capability.default
                continue
            try:
                kwargs[capability.attr] = capability.decoder(raw)
            except (TypeError, ValueError) as exc:
                raise DecodingError(
                    component=self._name,
                    operation="decode",
                    message=f"malformed value for capability {capability.key!r}: {raw!r}",
                    cause=exc,
                    key=capability.key,
                ) from exc
        return self._factory(**kwargs)
