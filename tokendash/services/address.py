"""Wallet address validation."""

from __future__ import annotations

import re

_EVM_ADDRESS_RE = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_valid_evm_address(address: str | None) -> bool:
    if not address:
        return False
    return bool(_EVM_ADDRESS_RE.match(address.strip()))
