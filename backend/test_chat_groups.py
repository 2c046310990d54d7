import pytest

from backend.school_module.models import ChatGroup, GroupMember, Message


@pytest.fixture
def members(make_teacher, make_student):
    return {
        "teacher": make_teacher(name="Sara", username="sara"),
        "adam": make_student(name="Adam", username="adam")["id"],
        "basma": make_student(name="Basma", username="basma")["id"],
    }


@pytest.fixture
def group_id(client, members):
    response = client.post(
        "/api/chat-groups",
        json={
            "name": "Class 1A",
            "allow_private": True,
            "members": [
                {"user_id": members["basma"]},
                {"user_id": members["adam"]},
                {"user_id": members["teacher"], "is_admin": True},
            ],
        },
    )
    assert response.status_code == 200, response.text
    return response.json()["id"]


def test_groups_list_with_member_count(client, group_id):
    client.post("/api/chat-groups", json={"name": "Empty"})
    groups = client.get("/api/chat-groups").json()
    assert [group["name"] for group in groups] == ["Empty", "Class 1A"]
    assert groups[1]["member_count"] == 3
    assert groups[1]["allow_private_chat"] is True
    assert groups[0]["member_count"] == 0


def test_members_are_listed_admins_first(client, group_id):
    names = [member["name"] for member in client.get(f"/api/chat-groups/{group_id}/members").json()]
    assert names == ["Sara", "Adam", "Basma"]

    details = client.get(f"/api/chat-groups/{group_id}/details").json()
    assert details["name"] == "Class 1A"
    assert {member["type"] for member in details["members"]} == {"teacher", "student"}
    assert client.get("/api/chat-groups/999/details").status_code == 404


def test_update_replaces_members(client, db, group_id, members):
    response = client.put(
        f"/api/chat-groups/{group_id}",
        json={
            "name": "Class 1A (renamed)",
            "only_admins_can_send": True,
            "members": [{"user_id": members["adam"], "is_admin": True}, {"user_id": members["adam"]}],
        },
    )
    assert response.status_code == 200

    rows = db.query(GroupMember).filter(GroupMember.group_id == group_id).all()
    assert [(row.user_id, row.is_admin) for row in rows] == [(members["adam"], False)]
    group = db.get(ChatGroup, group_id)
    assert group.name == "Class 1A (renamed)"
    assert group.only_admins_can_send is True

    assert client.put("/api/chat-groups/999", json={"name": "x"}).status_code == 404


def test_settings_require_group_admin(client, db, group_id, members):
    denied = client.post(
        f"/api/chat-groups/{group_id}/settings",
        json={"user_id": members["adam"], "only_admins_can_send": True},
    )
    assert denied.status_code == 403

    allowed = client.post(
        f"/api/chat-groups/{group_id}/settings",
        json={"user_id": members["teacher"], "only_admins_can_send": True},
    )
    assert allowed.status_code == 200
    assert db.get(ChatGroup, group_id).only_admins_can_send is True


def test_delete_with_wrong_password_keeps_everything(client, db, group_id, members):
    client.post("/api/message/send", json={"sender_id": members["adam"], "group_id": group_id, "message_text": "hi"})

    response = client.post("/api/chat-groups/delete", json={"id": group_id, "password": "nope"})
    assert response.status_code == 403
    assert db.get(ChatGroup, group_id) is not None
    assert db.query(GroupMember).count() == 3
    assert db.query(Message).count() == 1


def test_delete_with_admin_password_cascades(client, db, group_id, members):
    client.post("/api/message/send", json={"sender_id": members["adam"], "group_id": group_id, "message_text": "hi"})

    response = client.post("/api/chat-groups/delete", json={"id": group_id, "password": "admin123"})
    assert response.status_code == 200
    assert db.get(ChatGroup, group_id) is None
    assert db.query(GroupMember).count() == 0
    assert db.query(Message).count() == 0

    assert client.post("/api/chat-groups/delete", json={"id": group_id, "password": "admin123"}).status_code == 404


def test_delete_can_name_the_acting_admin(client, admin_id, group_id):
    response = client.post("/api/chat-groups/delete", json={"id": group_id, "password": "admin123", "admin_id": admin_id})
    assert response.status_code == 200


def test_user_chat_groups_report_activity(client, group_id, members):
    quiet = client.post(
        "/api/chat-groups",
        json={"name": "Quiet", "members": [{"user_id": members["adam"], "is_admin": True}]},
    ).json()["id"]
    client.post("/api/message/send", json={"sender_id": members["teacher"], "group_id": group_id, "message_text": "a"})
    client.post("/api/message/send", json={"sender_id": members["adam"], "group_id": group_id, "message_text": "b"})

    groups = client.get(f"/api/user/{members['adam']}/chat-groups").json()
    assert [group["id"] for group in groups] == [group_id, quiet]
    assert groups[0]["unread_count"] == 1
    assert groups[0]["my_role_admin"] is False
    assert groups[1]["my_role_admin"] is True
    assert groups[1]["last_msg_time"] is None


def test_group_messages_carry_sender_details(client, group_id, members):
    client.post("/api/message/send", json={"sender_id": members["teacher"], "group_id": group_id, "message_text": "first"})
    client.post("/api/message/send", json={"sender_id": members["basma"], "group_id": group_id, "message_text": "second"})

    rows = client.get(f"/api/chat-groups/{group_id}/messages").json()
    assert [(row["message_text"], row["sender_name"], row["sender_avatar"]) for row in rows] == [
        ("first", "Sara", "S"),
        ("second", "Basma", "B"),
    ]


def test_members_expose_their_user_id_as_id(client, group_id, members):
    rows = client.get(f"/api/chat-groups/{group_id}/members").json()
    assert [row["id"] for row in rows] == [members["teacher"], members["adam"], members["basma"]]
    assert all(row["id"] == row["user_id"] for row in rows)
