import pytest


@pytest.fixture
def school(make_teacher, make_student, make_level, make_group, make_subject):
    grade_1 = make_level("Grade 1")
    grade_2 = make_level("Grade 2")
    group_1a = make_group("1A", grade_1)
    group_2a = make_group("2A", grade_2)
    return {
        "teacher": make_teacher(name="Sara", username="sara"),
        "levels": (grade_1, grade_2),
        "groups": (group_1a, group_2a),
        "subjects": (make_subject("Math"), make_subject("Science"), make_subject("Art")),
        "in_1a": make_student(name="Adam", username="adam", level_id=grade_1, group_id=group_1a)["id"],
        "in_2a": make_student(name="Basma", username="basma", level_id=grade_2, group_id=group_2a)["id"],
        "loose": make_student(name="Celine", username="celine")["id"],
    }


def test_bulk_replace_leaves_exactly_the_new_set(client, school):
    teacher = school["teacher"]
    math, science, art = school["subjects"]

    client.post("/api/teacher-subjects/bulk", json={"teacher_id": teacher, "subject_ids": [math, science]})
    response = client.post("/api/teacher-subjects/bulk", json={"teacher_id": teacher, "subject_ids": [art, art]})
    assert response.json() == {"success": True, "count": 1}

    rows = client.get("/api/teacher-subjects").json()
    assert [(row["teacher_name"], row["subject_name"]) for row in rows] == [("Sara", "Art")]


def test_bulk_replace_for_unknown_teacher(client, school):
    response = client.post("/api/teacher-groups/bulk", json={"teacher_id": 999, "group_ids": list(school["groups"])})
    assert response.status_code == 404
    assert client.get("/api/teacher-groups").json() == []


def test_teacher_groups_listing_and_single_removal(client, school):
    teacher = school["teacher"]
    group_1a, group_2a = school["groups"]
    client.post("/api/teacher-groups/bulk", json={"teacher_id": teacher, "group_ids": [group_1a, group_2a]})

    rows = client.get("/api/teacher-groups").json()
    assert {(row["group_name"], row["level_name"]) for row in rows} == {("1A", "Grade 1"), ("2A", "Grade 2")}

    assert client.delete(f"/api/teacher-groups/{teacher}/{group_1a}").status_code == 200
    assert [row["group_id"] for row in client.get("/api/teacher-groups").json()] == [group_2a]


def test_teaching_students_listing(client, school):
    teacher = school["teacher"]
    client.post("/api/teacher-teaching-students/bulk", json={"teacher_id": teacher, "student_ids": [school["in_2a"]]})

    rows = client.get("/api/teacher-teaching-students").json()
    assert len(rows) == 1
    assert rows[0]["student_name"] == "Basma"
    assert rows[0]["group_name"] == "2A"


def test_links_are_additive_and_removable(client, school):
    teacher = school["teacher"]
    first = client.post(
        "/api/student-teacher-links/bulk", json={"teacher_id": teacher, "student_ids": [school["in_1a"]]}
    )
    assert first.json()["count"] == 1
    second = client.post(
        "/api/student-teacher-links/bulk",
        json={"teacher_id": teacher, "student_ids": [school["in_1a"], school["loose"]]},
    )
    assert second.json()["count"] == 1

    links = client.get("/api/student-teacher-links").json()
    assert {row["student_name"] for row in links} == {"Adam", "Celine"}
    assert all(row["teacher_name"] == "Sara" for row in links)

    response = client.request(
        "DELETE", "/api/student-teacher-links", json={"student_id": school["in_1a"], "teacher_id": teacher}
    )
    assert response.status_code == 200
    assert [row["student_name"] for row in client.get("/api/student-teacher-links").json()] == ["Celine"]


def test_teaching_scope_merges_group_and_individual_students(client, school):
    teacher = school["teacher"]
    group_1a, _ = school["groups"]
    client.post("/api/teacher-groups/bulk", json={"teacher_id": teacher, "group_ids": [group_1a]})
    client.post(
        "/api/teacher-teaching-students/bulk",
        json={"teacher_id": teacher, "student_ids": [school["in_1a"], school["loose"]]},
    )

    scope = client.get(f"/api/teachers/{teacher}/scope").json()
    assert [group["id"] for group in scope["groups"]] == [group_1a]
    assert scope["levels"] == [{"id": school["levels"][0], "name": "Grade 1"}]
    # group students first, each student once
    assert [student["id"] for student in scope["students"]] == [school["in_1a"], school["loose"]]
    assert scope["students"][0]["group_name"] == "1A"


def test_scope_of_teacher_without_assignments(client, school):
    assert client.get(f"/api/teachers/{school['teacher']}/scope").json() == {
        "levels": [],
        "groups": [],
        "students": [],
    }
