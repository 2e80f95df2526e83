"""
Admin notification sink backed by the `admin_notifications` table.
"""

from __future__ import annotations

_ADMIN_NOTIFICATIONS_TABLE: str = "admin_notifications"


class SupabaseNotificationSink:
    def __init__(self, client) -> None:
        self._client = client

    async def notify(self, title: str, message: str, *, severity: str = "info") -> None:
        """
        Insert an admin notification.

        Raises:
            RuntimeError: If Supabase returns an error response.
        """

        response = await (
            self._client.table(_ADMIN_NOTIFICATIONS_TABLE)
            .insert(
                {
                    "title": title,
                    "message": message,
                    "type": "reconciliation",
                    "priority": severity,
                }
            )
            .execute()
        )
        error = getattr(response, "error", None)
        if error:
            raise RuntimeError(f"Failed to insert admin notification: {error}")


__all__ = ["SupabaseNotificationSink"]
