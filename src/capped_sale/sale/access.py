"""Role checks for privileged sale actions."""

from __future__ import annotations

import logging

from capped_sale.core.enums import Role
from capped_sale.core.errors import AuthorizationError
from capped_sale.core.ids import is_null_address

from .state import SaleState

logger = logging.getLogger(__name__)


def holds_role(state: SaleState, caller: str, role: Role) -> bool:
    """Return ``True`` if *caller* holds *role* on the sale."""
    if is_null_address(caller):
        return False
    if role is Role.OWNER:
        return caller == state.owner
    if role is Role.REGISTRAR:
        return caller == state.registrar
    return False


def require_role(
    state: SaleState,
    caller: str,
    *roles: Role,
    action: str = "",
) -> Role:
    """Return the first of *roles* that *caller* holds.

    Raises:
        AuthorizationError: If the caller holds none of them.
    """
    for role in roles:
        if holds_role(state, caller, role):
            return role
    wanted = " or ".join(r.value for r in roles)
    logger.warning("Unauthorized %s attempt by %s (needs %s)", action or "action", caller, wanted)
    raise AuthorizationError(f"{action or 'Action'} requires {wanted}; caller {caller}")
