"""Heuristic spam scoring for comments.

Each signal adds a fixed weight to the score; the total is capped at 100 and
compared against the configured threshold. Scoring is deterministic for a
given configuration snapshot and has no side effects.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from comment_guard.schemas.comment import RequestMeta
from comment_guard.schemas.settings import DEFAULT_CONFIG, CommentsConfig
from comment_guard.services.policies import email_is_blocked
from comment_guard.services.sanitize import sanitize_text

if TYPE_CHECKING:
    from comment_guard.services.admin_settings import CommentSettingsService

MAX_SCORE = 100

WEIGHT_EXCESSIVE_LINKS = 30
WEIGHT_CAPS = 15
WEIGHT_PER_KEYWORD = 10
WEIGHT_REPEATED_CHARS = 20
WEIGHT_SUSPICIOUS_NAME = 25
WEIGHT_DISPOSABLE_EMAIL = 20
WEIGHT_TOO_SHORT = 10
WEIGHT_MISSING_USER_AGENT = 15
WEIGHT_ENCODED_PAYLOAD = 40
WEIGHT_BLOCKED_DOMAIN = 40
WEIGHT_BLOCKED_EMAIL = 50

MIN_CONTENT_LENGTH = 3
MIN_USER_AGENT_LENGTH = 10

SPAM_KEYWORDS: tuple[str, ...] = (
    "viagra", "casino", "lottery", "click here", "buy now",
    "limited offer", "act now", "free money", "winner", "congratulations",
    "earn money", "work from home", "make money fast", "online pharmacy",
    "cheap meds", "weight loss", "enlargement", "nigerian prince",
    "wire transfer", "western union", "bitcoin doubler",
    "crypto giveaway", "investment opportunity", "100% free",
    "no obligation", "risk free", "guaranteed income",
    "click below", "subscribe now", "unsubscribe",
)

DISPOSABLE_DOMAINS = frozenset({
    "tempmail.com", "throwaway.email", "guerrillamail.com", "mailinator.com",
    "trashmail.com", "yopmail.com", "sharklasers.com", "guerrillamailblock.com",
    "grr.la", "dispostable.com", "tempr.email", "tempail.com",
    "fakeinbox.com", "maildrop.cc", "10minutemail.com", "mohmal.com",
    "temp-mail.org", "getnada.com", "emailondeck.com", "mintemail.com",
})

_LINK_RE = re.compile(r"https?://", re.IGNORECASE)
_URL_RE = re.compile(r"https?://[^\s\"'>]+", re.IGNORECASE)
_UPPER_RE = re.compile(r"[A-Z]")
_REPEATED_RE = re.compile(r"(.)\1{9,}")
_ENCODED_RE = re.compile(r"(?:data:|base64,|eval\(|javascript:)", re.IGNORECASE)


@dataclass(frozen=True)
class SpamCheckResult:
    """Aggregate outcome of all spam signals."""

    is_spam: bool
    score: int
    reasons: list[str] = field(default_factory=list)
    signals: list[str] = field(default_factory=list)


class SpamService:
    """Scores comment content and masks profanity.

    Receives configuration snapshots from the settings service; it never reads
    settings on its own.
    """

    def __init__(
        self,
        settings_service: CommentSettingsService | None = None,
        *,
        config: CommentsConfig = DEFAULT_CONFIG,
    ) -> None:
        self._config = config
        if settings_service is not None:
            settings_service.register_consumer(self)

    @property
    def config(self) -> CommentsConfig:
        return self._config

    def update_config(self, config: CommentsConfig) -> None:
        """Receive a new configuration snapshot."""
        self._config = config

    def _keywords(self) -> list[str]:
        merged = (*SPAM_KEYWORDS, *self._config.custom_spam_keywords)
        return list(dict.fromkeys(keyword.lower() for keyword in merged if keyword))

    def score(
        self,
        content: str,
        author_name: str | None = None,
        author_email: str | None = None,
        meta: RequestMeta | None = None,
    ) -> SpamCheckResult:
        """Run every signal against the comment and return the aggregate result."""
        cfg = self._config
        signals: list[str] = []
        score = 0

        plain = sanitize_text(content)
        keywords = self._keywords()

        link_count = len(_LINK_RE.findall(content))
        if link_count >= cfg.max_links_before_spam:
            score += WEIGHT_EXCESSIVE_LINKS
            signals.append(f"excessive_links:{link_count}")

        if len(plain) >= cfg.caps_check_min_length:
            ratio = len(_UPPER_RE.findall(plain)) / len(plain)
            if ratio >= cfg.caps_spam_ratio:
                score += WEIGHT_CAPS
                signals.append(f"caps_ratio:{ratio * 100:.0f}%")

        lower = plain.lower()
        matched = [keyword for keyword in keywords if keyword in lower]
        if matched:
            score += WEIGHT_PER_KEYWORD * len(matched)
            signals.append(f"spam_keywords:{','.join(matched)}")

        if _REPEATED_RE.search(plain):
            score += WEIGHT_REPEATED_CHARS
            signals.append("repeated_chars")

        if author_name:
            lower_name = author_name.lower()
            name_hits = [keyword for keyword in keywords if keyword in lower_name]
            if name_hits:
                score += WEIGHT_SUSPICIOUS_NAME
                signals.append(f"suspicious_author_name:{','.join(name_hits)}")

        if author_email and "@" in author_email:
            domain = author_email.rsplit("@", 1)[1].lower()
            if domain in DISPOSABLE_DOMAINS:
                score += WEIGHT_DISPOSABLE_EMAIL
                signals.append(f"disposable_email:{domain}")

        if 0 < len(plain) < MIN_CONTENT_LENGTH:
            score += WEIGHT_TOO_SHORT
            signals.append("too_short")

        if meta is not None:
            if not meta.user_agent or len(meta.user_agent) < MIN_USER_AGENT_LENGTH:
                score += WEIGHT_MISSING_USER_AGENT
                signals.append("missing_user_agent")

        if _ENCODED_RE.search(content):
            score += WEIGHT_ENCODED_PAYLOAD
            signals.append("encoded_payload")

        if cfg.blocked_domains:
            for url in _URL_RE.findall(content):
                try:
                    hostname = (urlsplit(url).hostname or "").lower()
                except ValueError:
                    continue
                if hostname and _domain_matches(hostname, cfg.blocked_domains):
                    score += WEIGHT_BLOCKED_DOMAIN
                    signals.append(f"blocked_domain:{hostname}")

        if author_email and email_is_blocked(cfg, author_email):
            score += WEIGHT_BLOCKED_EMAIL
            signals.append(f"blocked_email:{author_email.lower()}")

        return SpamCheckResult(
            is_spam=score >= cfg.spam_score_threshold,
            score=min(score, MAX_SCORE),
            reasons=list(signals),
            signals=signals,
        )

    def filter_profanity(self, text: str) -> str:
        """Mask configured profanity with asterisks of the same length."""
        cfg = self._config
        if not cfg.enable_profanity_filter or not cfg.profanity_words:
            return text
        result = text
        for word in cfg.profanity_words:
            if not word:
                continue
            pattern = re.compile(rf"\b{re.escape(word)}\b", re.IGNORECASE)
            result = pattern.sub("*" * len(word), result)
        return result


def _domain_matches(hostname: str, blocked: tuple[str, ...]) -> bool:
    return any(hostname == domain or hostname.endswith(f".{domain}") for domain in blocked)
