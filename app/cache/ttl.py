class CacheTTL:
    """
    TTL values (in seconds) for different cache types.
    """

    # Last-seen stamps are only shown in listings
    LAST_SEEN = 60 * 60 * 24 * 30     # 30 days
