"""Lookup of the principal behind a refresh token. The user store itself is external."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True)
class Principal:
    user_id: str
    role: str
    is_active: bool = True


class UserDirectory(Protocol):
    async def get_principal(self, user_id: str) -> Principal | None:
        """Return the current principal, or None if the user no longer exists."""
