from __future__ import annotations

import json
from pathlib import Path
from typing import Any


_BASE = Path(__file__).parent


def _load(name: str) -> Any:
    return json.loads((_BASE / name).read_text())


MULTICALL3_ABI = _load("multicall3Abi.json")
SERVICE_PROVIDER_REGISTRY_ABI = _load("serviceProviderRegistryAbi.json")
WARM_STORAGE_ABI = _load("warmStorageAbi.json")

__all__ = [
    "MULTICALL3_ABI",
    "SERVICE_PROVIDER_REGISTRY_ABI",
    "WARM_STORAGE_ABI",
]
