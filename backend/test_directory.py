from datetime import datetime

import pytest
from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError

from backend.school_module.models import GroupMember, Message, StudentTeacherLink, User
from backend.school_module.services.directory import delete_group, next_sequential_registration_number


def test_teacher_defaults_to_fixed_password_without_phone(client, make_teacher):
    make_teacher(name="No Phone", username="nophone")
    make_teacher(name="With Phone", username="withphone", phone="0661")

    assert client.post("/api/login", json={"username": "nophone", "password": "123456"}).status_code == 200
    assert client.post("/api/login", json={"username": "withphone", "password": "0661"}).status_code == 200


def test_duplicate_username_is_rejected(client, make_teacher):
    make_teacher(name="Sara", username="sara")
    response = client.post("/api/teachers", json={"name": "Sara 2", "username": "sara"})
    assert response.status_code == 400


def test_teachers_are_listed_by_name(client, make_teacher):
    make_teacher(name="Zaid", username="zaid")
    make_teacher(name="Amal", username="amal")
    names = [row["name"] for row in client.get("/api/teachers/all").json()]
    assert names == ["Amal", "Zaid"]


def test_students_list_carries_level_and_group_names(client, make_student, make_level, make_group):
    level_id = make_level("Grade 2")
    group_id = make_group("B", level_id)
    make_student(name="Huda", username="huda", level_id=level_id, group_id=group_id)
    make_student(name="Ali", username="ali")

    rows = {row["username"]: row for row in client.get("/api/students/all").json()}
    assert rows["huda"]["level_name"] == "Grade 2"
    assert rows["huda"]["group_name"] == "B"
    assert rows["ali"]["level_name"] is None


def test_student_with_explicit_password(client, make_student):
    make_student(name="Mona", username="mona", password="secret-1")
    assert client.post("/api/login", json={"username": "mona", "password": "secret-1"}).status_code == 200


def test_sequential_registration_numbers(client, db):
    year = datetime.now().year
    first = client.post(
        "/api/students",
        json={"name": "First", "username": "first", "sequential_registration": True},
    ).json()
    second = client.post(
        "/api/students",
        json={"name": "Second", "username": "second", "sequential_registration": True},
    ).json()

    assert first["registration_number"] == f"{year}001"
    assert second["registration_number"] == f"{year}002"
    assert next_sequential_registration_number(db, year=2030) == "2030003"


def test_update_user_teacher_phone_becomes_password(client, make_teacher):
    teacher_id = make_teacher(name="Sara", username="sara", phone="111")
    response = client.put(f"/api/users/{teacher_id}", json={"name": "Sara K", "username": "sara", "phone": "222"})
    assert response.status_code == 200

    assert client.post("/api/login", json={"username": "sara", "password": "222"}).status_code == 200
    assert client.post("/api/login", json={"username": "sara", "password": "111"}).status_code == 400
    teacher = next(row for row in client.get("/api/teachers/all").json() if row["id"] == teacher_id)
    assert teacher["name"] == "Sara K"
    assert teacher["phone"] == "222"


def test_update_unknown_user(client):
    response = client.put("/api/users/999", json={"name": "X", "username": "x"})
    assert response.status_code == 404


def test_level_group_subject_crud(client, make_level, make_group, make_subject):
    level_id = make_level("Grade 3")
    assert client.post("/api/levels", json={"name": "Grade 3"}).status_code == 400
    assert client.put(f"/api/levels/{level_id}", json={"name": "Grade Three"}).status_code == 200
    assert client.get("/api/levels").json() == [{"id": level_id, "name": "Grade Three"}]
    assert client.put("/api/levels/999", json={"name": "Nope"}).status_code == 404

    group_id = make_group("C", level_id)
    assert client.post("/api/groups", json={"name": "D", "level_id": 999}).status_code == 404
    groups = client.get("/api/groups").json()
    assert groups == [{"id": group_id, "name": "C", "level_id": level_id, "level_name": "Grade Three"}]
    assert client.delete(f"/api/groups/{group_id}").status_code == 200
    assert client.delete(f"/api/groups/{group_id}").status_code == 404

    subject_id = make_subject("Chemistry", "Lab work")
    assert client.put(f"/api/subjects/{subject_id}", json={"name": "Chem"}).status_code == 200
    assert client.get("/api/subjects").json()[0]["name"] == "Chem"
    assert client.delete(f"/api/subjects/{subject_id}").status_code == 200
    assert client.get("/api/subjects").json() == []


def test_missing_name_is_a_bad_request(client):
    assert client.post("/api/levels", json={}).status_code == 400
    assert client.post("/api/subjects", json={"name": ""}).status_code == 400


def test_delete_user_removes_relations_but_keeps_messages(client, db, admin_id, make_teacher, make_student):
    teacher_id = make_teacher()
    student_id = make_student()["id"]
    client.post("/api/student-teacher-links/bulk", json={"teacher_id": teacher_id, "student_ids": [student_id]})
    client.post(
        "/api/chat-groups",
        json={"name": "Class", "members": [{"user_id": student_id}, {"user_id": teacher_id, "is_admin": True}]},
    )
    client.post("/api/message/send", json={"sender_id": student_id, "receiver_id": teacher_id, "message_text": "hi"})

    assert client.delete(f"/api/users/{student_id}").status_code == 200
    assert client.delete(f"/api/users/{student_id}").status_code == 404

    assert db.get(User, student_id) is None
    assert db.query(StudentTeacherLink).count() == 0
    assert db.query(GroupMember).filter(GroupMember.user_id == student_id).count() == 0
    assert db.query(Message).filter(Message.sender_id == student_id).count() == 1


def test_bulk_delete(client, db, make_teacher, make_student, make_level):
    teacher_id = make_teacher()
    students = [make_student(name=f"S{i}", username=f"s{i}")["id"] for i in range(3)]
    level_id = make_level()

    # a teacher id under the student type is ignored
    response = client.post("/api/bulk-delete", json={"ids": students[:2] + [teacher_id], "type": "student"})
    assert response.status_code == 200
    assert response.json()["count"] == 2
    assert db.get(User, teacher_id) is not None
    assert db.get(User, students[2]) is not None

    assert client.post("/api/bulk-delete", json={"ids": [level_id], "type": "level"}).json()["count"] == 1
    assert client.post("/api/bulk-delete", json={"ids": [1], "type": "users; DROP TABLE users"}).status_code == 400
    assert client.post("/api/bulk-delete", json={"ids": [], "type": "student"}).status_code == 400


def test_group_and_subject_names_may_repeat(client, make_level):
    level_id = make_level("Grade 4")
    assert client.post("/api/subjects", json={"name": "Math"}).status_code == 200
    assert client.post("/api/subjects", json={"name": "Math"}).status_code == 200
    assert client.post("/api/groups", json={"name": "A", "level_id": level_id}).status_code == 200
    assert client.post("/api/groups", json={"name": "A", "level_id": level_id}).status_code == 200
    assert [subject["name"] for subject in client.get("/api/subjects").json()] == ["Math", "Math"]


def test_deleting_a_referenced_row_reports_it(db, monkeypatch, make_level, make_group):
    group_id = make_group("B", make_level("Grade 2"))

    def refuse_commit():
        raise IntegrityError("DELETE FROM groups", {}, Exception("FOREIGN KEY constraint failed"))

    monkeypatch.setattr(db, "commit", refuse_commit)
    with pytest.raises(HTTPException) as caught:
        delete_group(db, group_id)
    assert caught.value.status_code == 400
    assert caught.value.detail == "Still referenced"
