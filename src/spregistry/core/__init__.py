"""Core primitives: networks, configuration and errors."""

from .chains import (
    CALIBRATION,
    MAINNET,
    Chain,
    ChainContracts,
    as_chain,
    devnet,
    with_contracts,
)
from .config import RegistryConfig
from .constants import DEFAULT_PAGE_SIZE, MULTICALL3_ADDRESS, UINT256_MAX, ZERO_ADDRESS, is_zero_address
from .errors import (
    AggregationUnavailableError,
    ConfigurationError,
    DecodingError,
    EncodingError,
    InsufficientFeeError,
    RegistryCallError,
    RegistryError,
)

__all__ = [
    "Chain",
    "ChainContracts",
    "MAINNET",
    "CALIBRATION",
    "as_chain",
    "devnet",
    "with_contracts",
    "RegistryConfig",
    "DEFAULT_PAGE_SIZE",
    "MULTICALL3_ADDRESS",
    "UINT256_MAX",
    "ZERO_ADDRESS",
    "is_zero_address",
    "RegistryError",
    "ConfigurationError",
    "EncodingError",
    "DecodingError",
    "InsufficientFeeError",
    "RegistryCallError",
    "AggregationUnavailableError",
]
