import smtplib
from datetime import timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from library_admin.models.base import utcnow
from library_admin.models.invitations import AdminInvitation
from library_admin.models.roles import UserRole
from library_admin.models.types import AppRole
from library_admin.models.users import User
from library_admin.services.email_services import email_service
from library_admin.services.roles import RoleStore

CORS_ALLOWED_HEADERS = "authorization, x-client-info, apikey, content-type"


def invitations(session):
    return session.exec(select(AdminInvitation)).all()


def find_user(session, email):
    return session.exec(select(User).where(User.email == email)).first()


def assert_cors(response):
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-headers"] == CORS_ALLOWED_HEADERS


def test_preflight_returns_empty_success(client):
    response = client.options("/api/invite-admin")
    assert response.status_code == 200
    assert response.content == b""
    assert_cors(response)


def test_invite_without_credentials_is_unauthorized(client, session):
    response = client.post("/api/invite-admin", json={"email": "new@example.com"})
    assert response.status_code == 401
    assert response.json() == {"error": "Unauthorized"}
    assert_cors(response)
    assert invitations(session) == []


def test_invite_with_garbage_token_is_unauthorized(client):
    response = client.post(
        "/api/invite-admin",
        json={"email": "new@example.com"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert response.status_code == 401


def test_non_admin_cannot_invite(client, session, member_headers, outbox):
    response = client.post(
        "/api/invite-admin", json={"email": "new@example.com"}, headers=member_headers
    )
    assert response.status_code == 403
    assert response.json() == {"error": "Only admins can invite users"}
    assert invitations(session) == []
    assert find_user(session, "new@example.com") is None
    assert session.exec(select(UserRole)).all() == []
    assert outbox == []


def test_non_admin_with_bad_body_still_gets_forbidden(client, member_headers):
    response = client.post(
        "/api/invite-admin", content=b"{not json", headers=member_headers
    )
    assert response.status_code == 403


def test_invalid_email_is_rejected(client, session, admin_headers, outbox):
    response = client.post(
        "/api/invite-admin", json={"email": "not-an-email"}, headers=admin_headers
    )
    assert response.status_code == 400
    assert "error" in response.json()
    assert invitations(session) == []
    assert find_user(session, "not-an-email") is None
    assert outbox == []


def test_missing_email_is_rejected(client, admin_headers):
    response = client.post("/api/invite-admin", json={}, headers=admin_headers)
    assert response.status_code == 400
    assert response.json() == {"error": "Email is required"}


def test_malformed_json_is_rejected(client, admin_headers):
    response = client.post(
        "/api/invite-admin", content=b"{not json", headers=admin_headers
    )
    assert response.status_code == 400


def test_invite_admin_end_to_end(client, session, admin, admin_headers, outbox):
    response = client.post(
        "/api/invite-admin",
        json={"email": "New@Example.com"},
        headers={**admin_headers, "Origin": "https://catalog.example.org"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["message"] == "Invitation sent successfully"
    assert body["warnings"] == []
    assert_cors(response)

    user = find_user(session, "new@example.com")
    assert user is not None
    assert str(user.id) == body["user_id"]
    assert user.password_hash is None
    assert user.invite_token

    assert RoleStore(session).has_role(user.id, AppRole.ADMIN)

    rows = invitations(session)
    assert len(rows) == 1
    assert rows[0].email == "new@example.com"
    assert rows[0].invited_by == admin.id
    assert rows[0].accepted_at is not None
    assert rows[0].expires_at > rows[0].created_at

    # Set-password link from the identity provider, then the welcome email
    assert [mail["to"] for mail in outbox] == ["new@example.com", "new@example.com"]
    assert f"https://catalog.example.org/login?invite_token={user.invite_token}" in outbox[0]["html"]
    assert outbox[1]["subject"] == "You've been invited as a Library Admin!"
    assert "https://catalog.example.org/login" in outbox[1]["html"]


def test_login_link_falls_back_to_site_url(client, admin_headers, outbox):
    response = client.post(
        "/api/invite-admin", json={"email": "new@example.com"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert "http://library.test/login" in outbox[1]["html"]


def test_duplicate_active_invitation_is_conflict(client, session, admin, admin_headers):
    now = utcnow()
    session.add(AdminInvitation(
        email="new@example.com",
        invited_by=admin.id,
        created_at=now,
        expires_at=now + timedelta(hours=24),
    ))
    session.commit()

    response = client.post(
        "/api/invite-admin", json={"email": "new@example.com"}, headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json() == {"error": "An active invitation already exists for this email"}
    assert len(invitations(session)) == 1
    assert find_user(session, "new@example.com") is None


def test_expired_invitation_does_not_block_reinvite(client, session, admin, admin_headers):
    past = utcnow() - timedelta(days=5)
    session.add(AdminInvitation(
        email="new@example.com",
        invited_by=admin.id,
        created_at=past,
        expires_at=past + timedelta(hours=24),
    ))
    session.commit()

    response = client.post(
        "/api/invite-admin", json={"email": "new@example.com"}, headers=admin_headers
    )
    assert response.status_code == 200
    rows = invitations(session)
    assert len(rows) == 1
    assert rows[0].accepted_at is not None


def test_existing_account_is_conflict(client, session, member, admin_headers):
    response = client.post(
        "/api/invite-admin", json={"email": member.email}, headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json() == {"error": "A user with this email already exists"}
    assert invitations(session) == []


def test_second_invite_for_same_email_is_rejected(client, session, admin_headers):
    first = client.post(
        "/api/invite-admin", json={"email": "new@example.com"}, headers=admin_headers
    )
    second = client.post(
        "/api/invite-admin", json={"email": "new@example.com"}, headers=admin_headers
    )
    assert first.status_code == 200
    assert second.status_code == 400
    assert len(invitations(session)) == 1


def test_provisioning_failure_rolls_back_invitation(client, session, admin_headers, monkeypatch):
    def refuse(to_email, link):
        raise smtplib.SMTPException("Mailbox unavailable")

    monkeypatch.setattr(email_service, "send_set_password_email", refuse)

    response = client.post(
        "/api/invite-admin", json={"email": "new@example.com"}, headers=admin_headers
    )
    assert response.status_code == 500
    assert response.json() == {"error": "Mailbox unavailable"}
    assert invitations(session) == []
    assert find_user(session, "new@example.com") is None


def test_role_grant_failure_is_a_warning(client, session, admin_headers, monkeypatch):
    def broken_grant(self, user_id, role):
        raise SQLAlchemyError("insert failed")

    monkeypatch.setattr(RoleStore, "grant_role", broken_grant)

    response = client.post(
        "/api/invite-admin", json={"email": "new@example.com"}, headers=admin_headers
    )
    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["warnings"] == ["Failed to assign admin role"]

    user = find_user(session, "new@example.com")
    assert user is not None
    assert not RoleStore(session).has_role(user.id, AppRole.ADMIN)
    assert invitations(session)[0].accepted_at is not None


def test_notification_failure_is_a_warning(client, session, admin_headers, monkeypatch):
    def refuse(to_email, login_url):
        raise smtplib.SMTPException("Relay denied")

    monkeypatch.setattr(email_service, "send_admin_invitation_email", refuse)

    response = client.post(
        "/api/invite-admin", json={"email": "new@example.com"}, headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["warnings"] == ["Invitation email could not be sent"]
    user = find_user(session, "new@example.com")
    assert RoleStore(session).has_role(user.id, AppRole.ADMIN)


def test_list_invitations(client, admin_headers):
    client.post("/api/invite-admin", json={"email": "new@example.com"}, headers=admin_headers)

    response = client.get("/api/invitations", headers=admin_headers)
    assert response.status_code == 200
    [invitation] = response.json()
    assert invitation["email"] == "new@example.com"
    assert invitation["status"] == "accepted"


def test_list_invitations_requires_admin(client, member_headers):
    response = client.get("/api/invitations", headers=member_headers)
    assert response.status_code == 403
    assert response.json() == {"error": "Only admins can view invitations"}
