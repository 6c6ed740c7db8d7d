"""Actor abstraction for callers of the booking engine."""

from __future__ import annotations

from dataclasses import dataclass

from .core.enums import ActorRole

SYSTEM_ACTOR_ID = "system"


@dataclass(frozen=True)
class Actor:
    """The already-authenticated entity performing an operation."""

    id: str
    role: ActorRole = ActorRole.USER

    @property
    def is_admin(self) -> bool:
        return self.role == ActorRole.ADMIN

    @property
    def is_privileged(self) -> bool:
        """Admins and internal jobs bypass customer-facing policy checks."""
        return self.role in (ActorRole.ADMIN, ActorRole.SYSTEM)

    @classmethod
    def system(cls) -> "Actor":
        return cls(id=SYSTEM_ACTOR_ID, role=ActorRole.SYSTEM)
