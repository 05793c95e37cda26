from dataclasses import dataclass

from stockledger.errors import PermissionDeniedError


@dataclass(frozen=True)
class SessionContext:
    """Who is calling the core. Passed explicitly into every mutating operation."""

    actor_id: str  # operator identity written as responsible/approver/rejecter
    role: str = "operator"
    tenant_id: str = ""  # secretaria the caller belongs to
    user_id: str = ""

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def require_role(self, *roles: str) -> None:
        if self.role not in roles:
            raise PermissionDeniedError(f"Role '{self.role}' cannot perform this action")
