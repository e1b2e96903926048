from dataclasses import dataclass, field
from datetime import datetime

from django.utils import timezone


@dataclass(frozen=True)
class RequestContext:
    """The acting user and request time, passed explicitly to every service call."""

    user: object
    role: str
    now: datetime = field(default_factory=timezone.now)

    @classmethod
    def from_request(cls, request):
        user = request.user
        return cls(user=user, role=getattr(user, "role", ""))

    @property
    def is_staff_role(self):
        from users.models import User
        return self.role in User.STAFF_ROLES or getattr(self.user, "is_superuser", False)
