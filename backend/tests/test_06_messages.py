"""
Tests 601-620: Direct messaging between roles.
"""
import uuid

from hopebridge.middleware.auth import token_for_user
from hopebridge.rbac import UserRole

from conftest import add_user, auth_headers


async def send(client, headers, to_user_id, subject="Site visit", content="See you Monday", **extra):
    body = {"to_user_id": str(to_user_id), "subject": subject, "content": content, **extra}
    return await client.post("/api/messages", headers=headers, json=body)


class TestMessaging:

    # ==================================================================
    # Tests 601-620
    # ==================================================================

    async def test_601_send_message(self, client, users, headers):
        r = await send(client, headers[UserRole.USER], users[UserRole.FIELD_OFFICER].id, priority="high")
        assert r.status_code == 201
        msg = r.json()
        assert msg["from_user_role"] == "USER"
        assert msg["to_user_role"] == "FIELD_OFFICER"
        assert msg["priority"] == "high"
        assert msg["is_read"] is False

    async def test_602_recipient_role_comes_from_user_record(self, client, users, headers):
        r = await client.post(
            "/api/messages",
            headers=headers[UserRole.USER],
            json={
                "to_user_id": str(users[UserRole.FINANCE].id),
                "to_user_role": "SUPER_ADMIN",
                "subject": "Invoice",
                "content": "Attached",
            },
        )
        assert r.status_code == 201
        assert r.json()["to_user_role"] == "FINANCE"

    async def test_603_unknown_recipient_returns_404(self, client, headers):
        r = await send(client, headers[UserRole.USER], uuid.uuid4())
        assert r.status_code == 404

    async def test_604_inactive_recipient_returns_404(self, client, session_factory, headers):
        inactive = await add_user(session_factory, "FINANCE", is_active=False)
        r = await send(client, headers[UserRole.USER], inactive.id)
        assert r.status_code == 404

    async def test_605_recipient_role_without_receive_flag_returns_403(self, client, session_factory, headers):
        legacy = await add_user(session_factory, "VOLUNTEER")
        r = await send(client, headers[UserRole.HR], legacy.id)
        assert r.status_code == 403
        assert "cannot send messages to role 'VOLUNTEER'" in r.json()["detail"]

    async def test_606_sender_role_without_send_flag_returns_403(self, client, session_factory, users):
        legacy = await add_user(session_factory, "VOLUNTEER")
        r = await send(client, auth_headers(token_for_user(legacy)), users[UserRole.USER].id)
        assert r.status_code == 403

    async def test_607_missing_fields_return_422(self, client, users, headers):
        r = await client.post(
            "/api/messages",
            headers=headers[UserRole.USER],
            json={"to_user_id": str(users[UserRole.HR].id), "subject": ""},
        )
        assert r.status_code == 422

    async def test_608_filters(self, client, users, headers):
        await send(client, headers[UserRole.USER], users[UserRole.HR].id, subject="one")
        await send(client, headers[UserRole.HR], users[UserRole.USER].id, subject="two")

        async def subjects(role, message_filter):
            r = await client.get("/api/messages", params={"filter": message_filter}, headers=headers[role])
            return sorted(m["subject"] for m in r.json()["messages"])

        assert await subjects(UserRole.USER, "all") == ["one", "two"]
        assert await subjects(UserRole.USER, "sent") == ["one"]
        assert await subjects(UserRole.USER, "received") == ["two"]
        assert await subjects(UserRole.USER, "unread") == ["two"]
        assert await subjects(UserRole.FINANCE, "all") == []

    async def test_609_pagination(self, client, users, headers):
        for i in range(3):
            await send(client, headers[UserRole.USER], users[UserRole.HR].id, subject=f"m{i}")
        r = await client.get("/api/messages", params={"limit": 2}, headers=headers[UserRole.HR])
        data = r.json()
        assert len(data["messages"]) == 2
        assert data["pagination"] == {"page": 1, "limit": 2, "total": 3, "pages": 2}

    async def test_610_mark_read_by_recipient_only(self, client, users, headers):
        msg = (await send(client, headers[UserRole.USER], users[UserRole.HR].id)).json()

        r = await client.patch(f"/api/messages/{msg['id']}/read", headers=headers[UserRole.USER])
        assert r.status_code == 404

        r = await client.patch(f"/api/messages/{msg['id']}/read", headers=headers[UserRole.HR])
        assert r.status_code == 200
        assert r.json()["is_read"] is True

        count = await client.get("/api/messages/unread-count", headers=headers[UserRole.HR])
        assert count.json()["unread_count"] == 0

    async def test_611_unread_count(self, client, users, headers):
        for _ in range(2):
            await send(client, headers[UserRole.USER], users[UserRole.HR].id)
        r = await client.get("/api/messages/unread-count", headers=headers[UserRole.HR])
        assert r.json()["unread_count"] == 2

    async def test_612_delete_by_participant_only(self, client, users, headers):
        msg = (await send(client, headers[UserRole.USER], users[UserRole.HR].id)).json()

        r = await client.delete(f"/api/messages/{msg['id']}", headers=headers[UserRole.FINANCE])
        assert r.status_code == 404

        r = await client.delete(f"/api/messages/{msg['id']}", headers=headers[UserRole.HR])
        assert r.status_code == 200

        r = await client.delete(f"/api/messages/{msg['id']}", headers=headers[UserRole.USER])
        assert r.status_code == 404

    async def test_613_conversations(self, client, users, headers):
        await send(client, headers[UserRole.HR], users[UserRole.USER].id, subject="first")
        await send(client, headers[UserRole.HR], users[UserRole.USER].id, subject="second")
        await send(client, headers[UserRole.USER], users[UserRole.FINANCE].id, subject="invoice")

        r = await client.get("/api/messages", params={"conversations": "true"}, headers=headers[UserRole.USER])
        convs = {c["user_role"]: c for c in r.json()["conversations"]}
        assert set(convs) == {"HR", "FINANCE"}
        assert convs["HR"]["unread_count"] == 2
        assert convs["HR"]["last_message"]["subject"] == "second"
        assert convs["FINANCE"]["unread_count"] == 0

    async def test_614_recipients_flag_can_receive(self, client, session_factory, users, headers):
        await add_user(session_factory, "VOLUNTEER", name="Legacy Volunteer")
        r = await client.get("/api/messages/recipients", headers=headers[UserRole.USER])
        assert r.status_code == 200
        recipients = {x["user_id"]: x for x in r.json()["recipients"]}
        assert str(users[UserRole.USER].id) not in recipients
        assert recipients[str(users[UserRole.HR].id)]["can_receive"] is True
        legacy = next(x for x in recipients.values() if x["user_role"] == "VOLUNTEER")
        assert legacy["can_receive"] is False
