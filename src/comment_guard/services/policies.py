"""Stateless policy predicates shared by the lifecycle and settings services."""

from __future__ import annotations

import ipaddress
from datetime import datetime, timedelta

from comment_guard.db.time import as_utc, utcnow
from comment_guard.schemas.settings import CommentsConfig

RATE_LIMIT_WINDOW = timedelta(hours=1)


def ip_is_blocked(config: CommentsConfig, ip_address: str | None) -> bool:
    """Return True if ``ip_address`` matches a blocked entry.

    Entries match exactly, as a CIDR network (``10.0.0.0/8``), or as a prefix
    when they end in ``.`` or ``:`` (``192.168.``).
    """
    if not ip_address or not config.blocked_ips:
        return False
    try:
        address = ipaddress.ip_address(ip_address)
    except ValueError:
        address = None

    for entry in config.blocked_ips:
        if ip_address == entry:
            return True
        if "/" in entry:
            if address is None:
                continue
            try:
                network = ipaddress.ip_network(entry, strict=False)
            except ValueError:
                continue
            if address.version == network.version and address in network:
                return True
        elif entry.endswith((".", ":")) and ip_address.startswith(entry):
            return True
    return False


def email_is_blocked(config: CommentsConfig, email: str | None) -> bool:
    """Return True if ``email`` equals a blocked entry or sits on a blocked domain."""
    if not email or not config.blocked_emails:
        return False
    candidate = email.strip().lower()
    return any(
        candidate == blocked or candidate.endswith(f"@{blocked}")
        for blocked in config.blocked_emails
    )


def comments_closed(
    config: CommentsConfig,
    published_at: datetime | None,
    now: datetime | None = None,
) -> bool:
    """Return True when the content item is older than the auto-close window."""
    if config.close_comments_after_days <= 0 or published_at is None:
        return False
    cutoff = (now or utcnow()) - timedelta(days=config.close_comments_after_days)
    return as_utc(published_at) < cutoff


def closed_reason(config: CommentsConfig) -> str:
    return f"Comments are closed on posts older than {config.close_comments_after_days} days"


def hourly_limit_reason(config: CommentsConfig) -> str:
    return f"Rate limit: max {config.max_comments_per_hour} comments per hour"


def post_quota_reason(config: CommentsConfig) -> str:
    return f"Max {config.max_comments_per_post_per_user} comments per post reached"
