"""Canonical address and ID factories for the sale.

All modules import from here instead of defining local helpers.

Address Rule
------------
Addresses are lowercase ``0x``-prefixed hex strings of 40 digits.  The
all-zero address is the *null address* and never identifies a participant,
owner, registrar or beneficiary.
"""

from __future__ import annotations

import hashlib
import secrets
import uuid

NULL_ADDRESS = "0x" + "0" * 40


def new_id() -> str:
    """Generate a new UUID v4 string.  Use for event and trace IDs."""
    return str(uuid.uuid4())


def new_address() -> str:
    """Mint a random address.  Used by tests and simulations."""
    return "0x" + secrets.token_hex(20)


def address_from_label(label: str) -> str:
    """Derive a deterministic address from a human-readable label.

    Simulation configs name participants (``"alice"``, ``"registrar"``)
    and this maps each name to a stable address across runs.
    """
    return "0x" + hashlib.sha256(label.encode()).hexdigest()[:40]


def is_null_address(address: str | None) -> bool:
    """Return ``True`` for ``None``, the empty string or the null address."""
    if not address:
        return True
    return address.lower() == NULL_ADDRESS
