# tests/v1/test_settings.py
"""Tests for the settings administration endpoints."""

from datetime import timedelta

from fastapi import status

from comment_guard.db.time import utcnow
from comment_guard.models import Post


def test_settings_require_moderator(client, user_headers) -> None:
    assert client.get("/api/v1/settings").status_code == status.HTTP_401_UNAUTHORIZED
    assert client.get("/api/v1/settings", headers=user_headers).status_code == status.HTTP_403_FORBIDDEN


def test_get_settings_returns_defaults(client, moderator_headers) -> None:
    response = client.get("/api/v1/settings", headers=moderator_headers)

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["spam_score_threshold"] == 50
    assert body["comments_enabled"] is True
    assert body["blocked_ips"] == []


def test_patch_settings_updates_services(client, moderator_headers, api_services) -> None:
    response = client.patch(
        "/api/v1/settings",
        json={"max_reply_depth": 2, "require_moderation": True},
        headers=moderator_headers,
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["max_reply_depth"] == 2
    assert response.json()["updated_by"] == "mod-1"
    assert api_services.comments.config.max_reply_depth == 2
    assert api_services.moderation.config.require_moderation is True


def test_patch_settings_rejects_out_of_range(client, moderator_headers) -> None:
    response = client.patch(
        "/api/v1/settings", json={"spam_score_threshold": 500}, headers=moderator_headers
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_patch_settings_rejects_unknown_fields(client, moderator_headers) -> None:
    response = client.patch("/api/v1/settings", json={"mystery": 1}, headers=moderator_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_blocked_list_endpoints(client, moderator_headers) -> None:
    added = client.post(
        "/api/v1/settings/blocked/blocked_emails",
        json={"entries": ["Spammer@Example.com", "spam.example"]},
        headers=moderator_headers,
    )
    assert added.json()["blocked_emails"] == ["spammer@example.com", "spam.example"]

    removed = client.post(
        "/api/v1/settings/blocked/blocked_emails/remove",
        json={"entries": ["spam.example"]},
        headers=moderator_headers,
    )
    assert removed.json()["blocked_emails"] == ["spammer@example.com"]

    unknown = client.post(
        "/api/v1/settings/blocked/blocked_names", json={"entries": ["x"]}, headers=moderator_headers
    )
    assert unknown.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_keyword_and_profanity_endpoints(client, moderator_headers) -> None:
    keywords = client.post(
        "/api/v1/settings/keywords", json={"entries": ["Airdrop"]}, headers=moderator_headers
    )
    assert keywords.json()["custom_spam_keywords"] == ["airdrop"]

    keywords = client.post(
        "/api/v1/settings/keywords/remove", json={"entries": ["airdrop"]}, headers=moderator_headers
    )
    assert keywords.json()["custom_spam_keywords"] == []

    profanity = client.post(
        "/api/v1/settings/profanity", json={"entries": ["darn"]}, headers=moderator_headers
    )
    assert profanity.json()["profanity_words"] == ["darn"]

    profanity = client.post(
        "/api/v1/settings/profanity/remove", json={"entries": ["darn"]}, headers=moderator_headers
    )
    assert profanity.json()["profanity_words"] == []


def test_overview(client, moderator_headers, make_comment) -> None:
    make_comment()

    response = client.get("/api/v1/settings/overview", headers=moderator_headers)

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["stats"]["total"] == 1
    assert body["settings"]["spam_score_threshold"] == 50
    assert body["blocked_ip_count"] == 0


def test_check_commenting(client, moderator_headers, db_session) -> None:
    db_session.add(Post(id="old-post", published_at=utcnow() - timedelta(days=60)))
    db_session.commit()
    client.patch(
        "/api/v1/settings", json={"close_comments_after_days": 30}, headers=moderator_headers
    )

    closed = client.get("/api/v1/settings/check/commenting", params={"post_id": "old-post"})
    unknown = client.get("/api/v1/settings/check/commenting", params={"post_id": "new-post"})

    assert closed.json()["allowed"] is False
    assert closed.json()["reason"] == "Comments are closed on posts older than 30 days"
    assert unknown.json() == {"allowed": True, "reason": None, "retry_after_seconds": None}


def test_check_rate_limit(client, user_headers, moderator_headers, make_comment) -> None:
    client.patch("/api/v1/settings", json={"max_comments_per_hour": 1}, headers=moderator_headers)
    make_comment(user_id="alice")

    limited = client.get("/api/v1/settings/check/rate-limit", headers=user_headers)
    guest = client.get("/api/v1/settings/check/rate-limit")

    assert limited.json()["allowed"] is False
    assert limited.json()["retry_after_seconds"] == 3600
    assert guest.json()["allowed"] is True
