# tests/v1/test_comments.py
"""Tests for the public comment endpoints."""

from datetime import timedelta

from fastapi import status

from comment_guard.models import CommentStatus


def _submit(client, headers=None, **fields):
    payload = {"post_id": "post-1", "content": "<p>Great article, thanks for sharing.</p>"}
    payload.update(fields)
    return client.post("/api/v1/comments", json=payload, headers=headers or {})


def test_create_comment_as_user(client, user_headers) -> None:
    response = _submit(client, user_headers)

    assert response.status_code == status.HTTP_201_CREATED
    body = response.json()
    assert body["user_id"] == "alice"
    assert body["status"] == CommentStatus.PENDING.value
    assert "author_email" not in body
    assert "ip_address" not in body


def test_create_comment_ignores_spoofed_user_id(client, user_headers) -> None:
    response = _submit(client, user_headers, user_id="mallory")

    assert response.json()["user_id"] == "alice"


def test_create_guest_comment(client) -> None:
    response = _submit(client, author_name="Guest", author_email="guest@example.com")

    assert response.status_code == status.HTTP_201_CREATED
    assert response.json()["user_id"] is None
    assert response.json()["author_name"] == "Guest"


def test_create_comment_with_invalid_token(client) -> None:
    response = _submit(client, {"Authorization": "Bearer nonsense"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_create_comment_validation_error(client, user_headers) -> None:
    response = client.post("/api/v1/comments", json={"post_id": "post-1"}, headers=user_headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_policy_rejection_maps_to_400(client, user_headers, api_services, db_session) -> None:
    api_services.settings.update_settings({"comments_enabled": False}, db_session)

    response = _submit(client, user_headers)

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Comments are currently disabled"


def test_blocked_forwarded_ip(client, user_headers, api_services, db_session) -> None:
    api_services.settings.add_to_blocked_list("blocked_ips", ["203.0.113.0/24"], db_session)

    response = _submit(client, {**user_headers, "X-Forwarded-For": "203.0.113.50"})

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert response.json()["detail"] == "Your IP address has been blocked"


def test_rate_limit_maps_to_429(client, user_headers, api_services, db_session, make_comment) -> None:
    api_services.settings.update_settings({"max_comments_per_hour": 1}, db_session)
    make_comment(user_id="alice")

    response = _submit(client, user_headers)

    assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
    assert response.headers["Retry-After"] == "3600"


def test_missing_parent_maps_to_404(client, user_headers) -> None:
    response = _submit(client, user_headers, parent_id="missing")
    assert response.status_code == status.HTTP_404_NOT_FOUND


def test_list_post_comments(client, make_comment) -> None:
    root = make_comment()
    make_comment(parent_id=root.id)
    make_comment(status=CommentStatus.PENDING)

    response = client.get("/api/v1/comments/post/post-1")

    assert response.status_code == status.HTTP_200_OK
    threads = response.json()
    assert len(threads) == 1
    assert len(threads[0]["replies"]) == 1


def test_include_all_requires_moderator(client, user_headers, moderator_headers, make_comment) -> None:
    make_comment()
    make_comment(status=CommentStatus.PENDING)

    forbidden = client.get(
        "/api/v1/comments/post/post-1", params={"include_all": True}, headers=user_headers
    )
    allowed = client.get(
        "/api/v1/comments/post/post-1", params={"include_all": True}, headers=moderator_headers
    )

    assert forbidden.status_code == status.HTTP_403_FORBIDDEN
    assert len(allowed.json()) == 2


def test_count_post_comments(client, make_comment) -> None:
    make_comment()
    make_comment()
    make_comment(status=CommentStatus.SPAM)

    response = client.get("/api/v1/comments/post/post-1/count")

    assert response.json() == {"post_id": "post-1", "count": 2}


def test_user_can_see_own_hidden_comments(client, user_headers, other_user_headers, make_comment) -> None:
    make_comment(user_id="alice")
    make_comment(user_id="alice", status=CommentStatus.PENDING)

    own = client.get("/api/v1/comments/user/alice", params={"include_all": True}, headers=user_headers)
    other = client.get(
        "/api/v1/comments/user/alice", params={"include_all": True}, headers=other_user_headers
    )
    public = client.get("/api/v1/comments/user/alice")

    assert own.json()["total"] == 2
    assert other.status_code == status.HTTP_403_FORBIDDEN
    assert public.json()["total"] == 1


def test_search_comments(client, make_comment) -> None:
    make_comment(content="<p>The caching layer is clever</p>")
    make_comment(content="<p>Unrelated</p>")

    response = client.get("/api/v1/comments/search", params={"q": "caching"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["total"] == 1


def test_get_hidden_comment_visibility(client, user_headers, other_user_headers, moderator_headers, make_comment) -> None:
    hidden = make_comment(user_id="alice", status=CommentStatus.PENDING)
    url = f"/api/v1/comments/{hidden.id}"

    assert client.get(url).status_code == status.HTTP_404_NOT_FOUND
    assert client.get(url, headers=other_user_headers).status_code == status.HTTP_404_NOT_FOUND
    assert client.get(url, headers=user_headers).status_code == status.HTTP_200_OK
    assert client.get(url, headers=moderator_headers).status_code == status.HTTP_200_OK
    assert client.get("/api/v1/comments/missing").status_code == status.HTTP_404_NOT_FOUND


def test_edit_comment(client, user_headers, other_user_headers, make_comment) -> None:
    comment = make_comment(user_id="alice")
    url = f"/api/v1/comments/{comment.id}"

    forbidden = client.patch(url, json={"content": "hijack"}, headers=other_user_headers)
    edited = client.patch(url, json={"content": "<p>Updated text</p>"}, headers=user_headers)

    assert forbidden.status_code == status.HTTP_403_FORBIDDEN
    assert edited.status_code == status.HTTP_200_OK
    assert edited.json()["is_edited"] is True
    assert edited.json()["content"] == "<p>Updated text</p>"


def test_edit_requires_authentication(client, make_comment) -> None:
    comment = make_comment(user_id="alice")
    response = client.patch(f"/api/v1/comments/{comment.id}", json={"content": "anonymous"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_moderator_edit_ignores_window(client, moderator_headers, make_comment) -> None:
    comment = make_comment(user_id="alice", age=timedelta(days=3))

    response = client.patch(
        f"/api/v1/comments/{comment.id}", json={"content": "moderated"}, headers=moderator_headers
    )

    assert response.status_code == status.HTTP_200_OK


def test_expired_edit_window(client, user_headers, make_comment) -> None:
    comment = make_comment(user_id="alice", age=timedelta(days=3))

    response = client.patch(
        f"/api/v1/comments/{comment.id}", json={"content": "too late"}, headers=user_headers
    )

    assert response.status_code == status.HTTP_400_BAD_REQUEST
    assert "Edit window" in response.json()["detail"]


def test_delete_comment(client, user_headers, other_user_headers, make_comment) -> None:
    comment = make_comment(user_id="alice")
    url = f"/api/v1/comments/{comment.id}"

    assert client.delete(url, headers=other_user_headers).status_code == status.HTTP_403_FORBIDDEN

    response = client.delete(url, headers=user_headers)
    assert response.status_code == status.HTTP_200_OK
    assert response.json()["status"] == CommentStatus.DELETED.value

    again = client.delete(url, headers=user_headers)
    assert again.status_code == status.HTTP_400_BAD_REQUEST


def test_vote_endpoint(client, user_headers, make_comment) -> None:
    comment = make_comment()
    url = f"/api/v1/comments/{comment.id}/vote"

    first = client.post(url, json={"type": "UP"}, headers=user_headers)
    duplicate = client.post(url, json={"type": "UP"}, headers=user_headers)
    flipped = client.post(url, json={"type": "DOWN"}, headers=user_headers)

    assert first.json()["upvotes"] == 1
    assert duplicate.status_code == status.HTTP_409_CONFLICT
    assert (flipped.json()["upvotes"], flipped.json()["downvotes"]) == (0, 1)


def test_vote_requires_authentication(client, make_comment) -> None:
    comment = make_comment()
    response = client.post(f"/api/v1/comments/{comment.id}/vote", json={"type": "UP"})
    assert response.status_code == status.HTTP_401_UNAUTHORIZED


def test_vote_invalid_type(client, user_headers, make_comment) -> None:
    comment = make_comment()
    response = client.post(
        f"/api/v1/comments/{comment.id}/vote", json={"type": "SIDEWAYS"}, headers=user_headers
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
