from __future__ import annotations

from dataclasses import dataclass

from ..core.enums import Role


@dataclass(frozen=True)
class User:
    """A staff account allowed to sign in. Students are not users."""

    user_id: int
    full_name: str
    username: str
    password_hash: str
    role: Role
    is_active: bool = True
