from __future__ import annotations

from dataclasses import dataclass

STAFF_ROLES = frozenset({"admin", "staff"})


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated JWT.

    Carried through the request via FastAPI's dependency system.  The
    progress engine only ever sees `user_id` and the staff flag derived
    from `roles`; it never re-derives authorization on its own.
    """

    user_id: str
    roles: frozenset[str]

    def has_any_role(self, roles: set[str] | frozenset[str]) -> bool:
        return bool(self.roles & roles)

    def is_staff(self) -> bool:
        return self.has_any_role(STAFF_ROLES)
