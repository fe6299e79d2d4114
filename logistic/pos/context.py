"""
Request context passed explicitly into every POS core operation.
"""

from dataclasses import dataclass, field
from typing import Any, Optional, Tuple

PRIVILEGED_ROLES = ('admin', 'branch_admin')
ELEVATED_ROLES = ('admin', 'branch_admin', 'supervisor')


@dataclass(frozen=True)
class RequestContext:
    """Resolved identity of the caller."""
    user_id: Any
    roles: Tuple[str, ...] = ()
    branch_id: Optional[Any] = None
    ip_address: Optional[str] = field(default=None, compare=False)

    @classmethod
    def from_user(cls, user, ip_address: Optional[str] = None) -> 'RequestContext':
        return cls(
            user_id=user.pk,
            roles=tuple(user.roles),
            branch_id=getattr(user, 'branch_id', None),
            ip_address=ip_address,
        )

    @classmethod
    def from_request(cls, request) -> 'RequestContext':
        return cls.from_user(request.user, request.META.get('REMOTE_ADDR'))

    def has_any_role(self, roles) -> bool:
        return any(role in self.roles for role in roles)

    @property
    def is_elevated(self) -> bool:
        return self.has_any_role(ELEVATED_ROLES)
