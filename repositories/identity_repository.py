"""
Identity resolver backed by Supabase Auth.

Identities are looked up by email through the auth admin API and are never
created here. Requires a service-role key.
"""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from domain.identity import IdentityAccount

# Page size for auth.admin.list_users
_USERS_PER_PAGE: int = 1000


class SupabaseIdentityResolver:
    def __init__(self, client, *, per_page: int = _USERS_PER_PAGE) -> None:
        self._client = client
        self._per_page = per_page

    async def find_identity_by_email(self, email: str) -> Optional[IdentityAccount]:
        """
        Find the auth account registered for an email (case-insensitive).

        Walks the user list page by page until a match is found or a short
        page signals the end.

        Returns:
            IdentityAccount or None if no account uses the email
        """

        needle = email.strip().lower()
        if not needle:
            return None

        page = 1
        while True:
            users = await self._client.auth.admin.list_users(page=page, per_page=self._per_page)
            for user in users:
                user_email = (getattr(user, "email", None) or "").lower()
                if user_email == needle:
                    return IdentityAccount(identity_id=UUID(str(user.id)), email=user.email)
            if len(users) < self._per_page:
                return None
            page += 1


__all__ = ["SupabaseIdentityResolver"]
