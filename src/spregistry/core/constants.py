from __future__ import annotations

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

UINT256_MAX = 2**256 - 1

# Conservative page size that keeps a 2-calls-per-id multicall well under node gas limits.
DEFAULT_PAGE_SIZE = 50

# Canonical Multicall3 deployment, same address on every network that has one.
MULTICALL3_ADDRESS = "0xcA11bde05977b3631167028862bE2a173976CA11"


def is_zero_address(address: str | None) -> bool:
    if not address:
        return True
    try:
        return int(address, 16) == 0
    except ValueError:
        return False
