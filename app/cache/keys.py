from uuid import UUID


class CacheKeys:
    """
    Centralized cache key builders.
    """

    # ─────────────────────────────────────────────
    # Presence
    # ─────────────────────────────────────────────

    ONLINE_USERS = "presence:online"

    @staticmethod
    def last_seen(user_id: UUID | str) -> str:
        return f"presence:last_seen:{user_id}"
