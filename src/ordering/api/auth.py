"""Principal resolution for ordering routes.

The identity module authenticates callers upstream and forwards the result
as ``X-Principal-Id`` / ``X-Principal-Role`` headers. Routes depend on
``current_principal`` (any caller) or ``staff_principal`` (staff and admins).
"""

from dataclasses import dataclass
from enum import Enum

from fastapi import Depends, Header

from ordering.errors import ForbiddenError, UnauthorizedError
from ordering.utils.logging import add_context


class Role(Enum):
    CUSTOMER = "customer"
    STAFF = "staff"
    ADMIN = "admin"


_STAFF_ROLES = {Role.STAFF, Role.ADMIN}


@dataclass(frozen=True)
class Principal:
    id: str
    role: Role

    @property
    def is_staff(self) -> bool:
        return self.role in _STAFF_ROLES


def current_principal(
    x_principal_id: str | None = Header(default=None),
    x_principal_role: str = Header(default=Role.CUSTOMER.value),
) -> Principal:
    if not x_principal_id:
        raise UnauthorizedError("Authentication required")
    try:
        role = Role(x_principal_role.lower())
    except ValueError:
        raise UnauthorizedError(f"Unknown role: {x_principal_role}") from None

    add_context(principal_id=x_principal_id, principal_role=role.value)
    return Principal(id=x_principal_id, role=role)


def staff_principal(principal: Principal = Depends(current_principal)) -> Principal:
    if not principal.is_staff:
        raise ForbiddenError("Staff access required")
    return principal
