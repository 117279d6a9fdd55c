"""
End-to-end tests for the /api/students endpoints: random rounds, voting,
listing, creation, statistics, update and soft delete.

Run with: pytest tests/test_students_api.py -v
"""
from __future__ import annotations

from typing import List

import pytest
from fastapi.testclient import TestClient

from facesmash.database import db_session
from facesmash.main import app
from facesmash.models import Student


client = TestClient(app)

MISSING_ID = "0123456789abcdef01234567"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _add_students(
    n: int,
    *,
    gender: str = "male",
    prefix: str = "T",
    upvotes: int = 0,
    active: bool = True,
) -> List[str]:
    """Insert students straight into the store and return their ids."""
    with db_session() as session:
        rows = [
            Student(
                roll_number=f"{prefix}{i:04d}",
                image_url=f"https://img.example.com/{prefix}{i}.jpg",
                gender=gender,
                upvotes=upvotes,
                is_active=active,
            )
            for i in range(n)
        ]
        session.add_all(rows)
        session.flush()
        return [r.id for r in rows]


def _create(roll: str = "CS1", gender: str = "Male", **extra) -> dict:
    payload = {"rollNumber": roll, "imageUrl": "https://x.com/a.jpg", "gender": gender, **extra}
    resp = client.post("/api/students", json=payload)
    assert resp.status_code == 201, resp.text
    return resp.json()["student"]


def _fetch(student_id: str) -> dict:
    resp = client.get(f"/api/students/{student_id}")
    assert resp.status_code == 200, resp.text
    return resp.json()["student"]


# ═══════════════════════════════════════════════════════════
# CREATE
# ═══════════════════════════════════════════════════════════

class TestCreateStudent:
    def test_create_normalises_and_starts_at_zero(self):
        student = _create(roll="  CS1 ", gender=" Male ")
        assert student["rollNumber"] == "CS1"
        assert student["gender"] == "male"
        assert student["upvotes"] == 0
        assert student["isActive"] is True
        assert student["instagramId"] is None
        assert len(student["id"]) == 24

    def test_create_response_envelope(self):
        resp = client.post("/api/students", json={
            "rollNumber": "CS2",
            "imageUrl": "https://x.com/b.png",
            "gender": "female",
            "instagramId": "jane.doe",
        })
        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Student added successfully"
        assert body["student"]["instagramUrl"] == "https://instagram.com/jane.doe"

    def test_duplicate_roll_number_conflicts(self):
        _create(roll="CS1")
        resp = client.post("/api/students", json={
            "rollNumber": "CS1", "imageUrl": "https://x.com/other.jpg", "gender": "female",
        })
        assert resp.status_code == 409
        body = resp.json()
        assert body["error"] == "Student already exists"
        assert "CS1" in body["message"]

    def test_roll_number_uniqueness_is_case_sensitive(self):
        _create(roll="cs1")
        _create(roll="CS1")

    def test_invalid_payload_reports_every_error(self):
        resp = client.post("/api/students", json={
            "rollNumber": "  ",
            "imageUrl": "https://x.com/a.txt",
            "gender": "robot",
            "instagramId": "no spaces allowed",
        })
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "Validation failed"
        assert len(body["details"]) == 4

    def test_missing_body(self):
        resp = client.post("/api/students")
        assert resp.status_code == 400
        assert len(resp.json()["details"]) == 3

    def test_malformed_json_body(self):
        resp = client.post(
            "/api/students",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )
        assert resp.status_code == 400
        assert resp.json()["error"] == "Validation failed"


# ═══════════════════════════════════════════════════════════
# VOTE
# ═══════════════════════════════════════════════════════════

class TestVote:
    def test_vote_increments_by_one(self):
        student = _create()
        before = _fetch(student["id"])

        resp = client.post("/api/students/vote", json={"studentId": student["id"]})
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["message"] == "Vote recorded successfully"
        assert body["student"] == {"id": student["id"], "rollNumber": "CS1", "upvotes": 1}

        after = _fetch(student["id"])
        assert after["upvotes"] == before["upvotes"] + 1
        for key in ("rollNumber", "imageUrl", "gender", "instagramId", "isActive", "createdAt"):
            assert after[key] == before[key]

    def test_votes_accumulate(self):
        student = _create()
        for _ in range(3):
            client.post("/api/students/vote", json={"studentId": student["id"]})
        assert _fetch(student["id"])["upvotes"] == 3

    def test_missing_student_id(self):
        resp = client.post("/api/students/vote", json={})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Missing student ID"

    def test_invalid_student_id(self):
        resp = client.post("/api/students/vote", json={"studentId": "abc"})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid student ID format"

    def test_unknown_student(self):
        resp = client.post("/api/students/vote", json={"studentId": MISSING_ID})
        assert resp.status_code == 404
        assert resp.json()["error"] == "Student not found"

    def test_inactive_student_is_not_counted(self):
        student = _create()
        client.delete(f"/api/students/{student['id']}")

        resp = client.post("/api/students/vote", json={"studentId": student["id"]})
        assert resp.status_code == 400
        assert resp.json() == {
            "error": "Student is inactive",
            "message": "Cannot vote for inactive students",
        }
        assert _fetch(student["id"])["upvotes"] == 0


# ═══════════════════════════════════════════════════════════
# RANDOM PAIR
# ═══════════════════════════════════════════════════════════

class TestRandomPair:
    def test_returns_two_active_students(self):
        _add_students(5)
        resp = client.get("/api/students/random")
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["filter"] == "all"
        assert len(body["students"]) == 2
        assert len({s["id"] for s in body["students"]}) == 2

    def test_insufficient_candidates(self):
        _add_students(1)
        resp = client.get("/api/students/random")
        assert resp.status_code == 404
        body = resp.json()
        assert body["error"] == "Not enough students found"
        assert body["message"] == "Only 1 student(s) available"

    def test_gender_filter(self):
        _add_students(3, gender="male", prefix="M")
        _add_students(1, gender="female", prefix="F")

        resp = client.get("/api/students/random", params={"gender": "Male"})
        assert resp.status_code == 200
        assert resp.json()["filter"] == "male"
        assert all(s["gender"] == "male" for s in resp.json()["students"])

        resp = client.get("/api/students/random", params={"gender": "female"})
        assert resp.status_code == 404
        assert resp.json()["message"] == "Only 1 student(s) available for gender: female"

    def test_inactive_students_never_sampled(self):
        _add_students(1, prefix="A")
        _add_students(5, prefix="I", active=False)
        resp = client.get("/api/students/random")
        assert resp.status_code == 404

    def test_count_is_clamped(self):
        _add_students(15)
        assert len(client.get("/api/students/random", params={"count": 5}).json()["students"]) == 5
        assert len(client.get("/api/students/random", params={"count": 50}).json()["students"]) == 10
        assert len(client.get("/api/students/random", params={"count": "abc"}).json()["students"]) == 2

    def test_count_of_one_is_never_a_pair(self):
        _add_students(5)
        resp = client.get("/api/students/random", params={"count": 1})
        assert resp.status_code == 404


# ═══════════════════════════════════════════════════════════
# LISTING
# ═══════════════════════════════════════════════════════════

class TestListStudents:
    def test_pagination_with_max_limit(self):
        _add_students(250)
        resp = client.get("/api/students", params={"limit": 100})
        assert resp.status_code == 200
        body = resp.json()
        assert len(body["students"]) == 100
        assert body["pagination"] == {"current": 1, "total": 3, "count": 100, "totalStudents": 250}

        last = client.get("/api/students", params={"limit": 100, "page": 3}).json()
        assert last["pagination"]["count"] == 50

    def test_pages_do_not_overlap(self):
        _add_students(30)
        first = client.get("/api/students", params={"limit": 20, "page": 1}).json()["students"]
        second = client.get("/api/students", params={"limit": 20, "page": 2}).json()["students"]
        ids = {s["id"] for s in first} | {s["id"] for s in second}
        assert len(ids) == 30

    def test_defaults_and_filters_echo(self):
        _add_students(3)
        body = client.get("/api/students").json()
        assert body["filters"] == {"gender": "all", "search": "", "sortBy": "upvotes", "sortOrder": "desc"}
        assert body["pagination"]["current"] == 1

    def test_normalises_query_case(self):
        _add_students(2, gender="female")
        body = client.get("/api/students", params={"gender": "FEMALE", "sortOrder": "ASC"}).json()
        assert body["filters"]["gender"] == "female"
        assert body["filters"]["sortOrder"] == "asc"
        assert len(body["students"]) == 2

    def test_excludes_inactive(self):
        _add_students(2, prefix="A")
        _add_students(3, prefix="I", active=False)
        body = client.get("/api/students").json()
        assert body["pagination"]["totalStudents"] == 2

    def test_search_is_case_insensitive_substring(self):
        _add_students(3, prefix="CS21")
        _add_students(2, prefix="EE21")
        body = client.get("/api/students", params={"search": "cs2"}).json()
        assert body["pagination"]["totalStudents"] == 3
        assert all(s["rollNumber"].startswith("CS21") for s in body["students"])

    def test_search_treats_wildcards_literally(self):
        _add_students(3)
        body = client.get("/api/students", params={"search": "%"}).json()
        assert body["pagination"]["totalStudents"] == 0

    def test_sort_by_roll_number(self):
        for roll in ("B1", "C1", "A1"):
            _create(roll=roll)
        asc = client.get("/api/students", params={"sortBy": "rollNumber", "sortOrder": "asc"}).json()
        assert [s["rollNumber"] for s in asc["students"]] == ["A1", "B1", "C1"]
        desc = client.get("/api/students", params={"sortBy": "rollNumber", "sortOrder": "desc"}).json()
        assert [s["rollNumber"] for s in desc["students"]] == ["C1", "B1", "A1"]

    def test_sort_by_upvotes_default(self):
        low = _create(roll="LOW")
        high = _create(roll="HIGH")
        for _ in range(2):
            client.post("/api/students/vote", json={"studentId": high["id"]})
        client.post("/api/students/vote", json={"studentId": low["id"]})
        body = client.get("/api/students").json()
        assert [s["rollNumber"] for s in body["students"]] == ["HIGH", "LOW"]

    def test_invalid_query(self):
        resp = client.get("/api/students", params={"page": "0", "sortBy": "password"})
        assert resp.status_code == 400
        body = resp.json()
        assert body["error"] == "Query validation failed"
        assert len(body["details"]) == 2


# ═══════════════════════════════════════════════════════════
# STATS
# ═══════════════════════════════════════════════════════════

class TestStats:
    def test_empty(self):
        stats = client.get("/api/students/stats").json()["stats"]
        assert stats == {
            "totalStudents": 0,
            "genderDistribution": {"male": 0, "female": 0, "other": 0},
            "totalVotes": 0,
            "topVoted": [],
        }

    def test_counts_and_top_voted(self):
        _add_students(2, gender="male", prefix="M", upvotes=3)
        _add_students(1, gender="female", prefix="F", upvotes=10)
        _add_students(1, gender="other", prefix="O", upvotes=1)
        _add_students(4, gender="female", prefix="X", upvotes=100, active=False)

        resp = client.get("/api/students/stats")
        assert resp.status_code == 200
        stats = resp.json()["stats"]
        assert stats["totalStudents"] == 4
        assert stats["genderDistribution"] == {"male": 2, "female": 1, "other": 1}
        assert stats["totalVotes"] == 17
        assert [s["upvotes"] for s in stats["topVoted"]] == [10, 3, 3, 1]
        assert stats["topVoted"][0]["rollNumber"] == "F0000"
        assert set(stats["topVoted"][0]) == {"id", "rollNumber", "upvotes", "gender", "instagramId"}

    def test_top_voted_capped_at_ten(self):
        _add_students(12, upvotes=1)
        stats = client.get("/api/students/stats").json()["stats"]
        assert len(stats["topVoted"]) == 10
        assert stats["totalStudents"] == 12


# ═══════════════════════════════════════════════════════════
# GET / UPDATE / SOFT DELETE BY ID
# ═══════════════════════════════════════════════════════════

class TestStudentById:
    def test_get_invalid_id(self):
        resp = client.get("/api/students/not-an-id")
        assert resp.status_code == 400
        assert resp.json()["error"] == "Invalid ID format"

    def test_get_unknown(self):
        assert client.get(f"/api/students/{MISSING_ID}").status_code == 404

    def test_update_patch(self):
        student = _create()
        resp = client.put(f"/api/students/{student['id']}", json={
            "gender": "FEMALE",
            "instagramId": "new_handle",
            "_id": MISSING_ID,
            "createdAt": "1999-01-01T00:00:00",
        })
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Student updated successfully"
        updated = body["student"]
        assert updated["id"] == student["id"]
        assert updated["gender"] == "female"
        assert updated["instagramId"] == "new_handle"
        assert updated["createdAt"] == student["createdAt"]

    def test_update_invalid_fields(self):
        student = _create()
        resp = client.put(f"/api/students/{student['id']}", json={"imageUrl": "nope", "gender": "x"})
        assert resp.status_code == 400
        assert len(resp.json()["details"]) == 2
        assert _fetch(student["id"])["gender"] == "male"

    def test_update_cannot_lower_upvotes(self):
        student = _create()
        client.post("/api/students/vote", json={"studentId": student["id"]})
        resp = client.put(f"/api/students/{student['id']}", json={"upvotes": 0})
        assert resp.status_code == 400
        assert resp.json()["error"] == "Validation failed"
        assert _fetch(student["id"])["upvotes"] == 1

    def test_upper_case_id_addresses_same_student(self):
        student = _create()
        upper = student["id"].upper()
        assert client.get(f"/api/students/{upper}").json()["student"]["id"] == student["id"]
        resp = client.post("/api/students/vote", json={"studentId": upper})
        assert resp.status_code == 200
        assert resp.json()["student"]["upvotes"] == 1

    def test_overlong_roll_number_rejected(self):
        resp = client.post("/api/students", json={
            "rollNumber": "R" * 200, "imageUrl": "https://x.com/a.jpg", "gender": "male",
        })
        assert resp.status_code == 400
        assert resp.json()["details"] == ["Roll number must be at most 64 characters"]

    def test_update_unknown(self):
        resp = client.put(f"/api/students/{MISSING_ID}", json={"gender": "male"})
        assert resp.status_code == 404

    def test_update_invalid_id(self):
        resp = client.put("/api/students/xyz", json={"gender": "male"})
        assert resp.status_code == 400

    def test_update_to_duplicate_roll_number(self):
        _create(roll="CS1")
        other = _create(roll="CS2")
        resp = client.put(f"/api/students/{other['id']}", json={"rollNumber": "CS1"})
        assert resp.status_code == 409

    def test_soft_delete(self):
        student = _create()
        resp = client.delete(f"/api/students/{student['id']}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Student deactivated successfully"
        assert body["student"] == {"id": student["id"], "rollNumber": "CS1", "isActive": False}

        listing = client.get("/api/students").json()
        assert listing["pagination"]["totalStudents"] == 0
        assert client.get("/api/students/stats").json()["stats"]["totalStudents"] == 0

    def test_soft_deleted_remains_addressable(self):
        student = _create()
        client.delete(f"/api/students/{student['id']}")

        assert _fetch(student["id"])["isActive"] is False

        resp = client.put(f"/api/students/{student['id']}", json={"isActive": True})
        assert resp.status_code == 200
        assert client.get("/api/students").json()["pagination"]["totalStudents"] == 1

    def test_delete_unknown(self):
        resp = client.delete(f"/api/students/{MISSING_ID}")
        assert resp.status_code == 404
        assert resp.json()["error"] == "Student not found"


# ═══════════════════════════════════════════════════════════
# EXAMPLE SCENARIO
# ═══════════════════════════════════════════════════════════

def test_create_then_duplicate_scenario():
    payload = {"rollNumber": "CS1", "imageUrl": "https://x.com/a.jpg", "gender": "Male"}
    first = client.post("/api/students", json=payload)
    assert first.status_code == 201
    assert first.json()["student"]["gender"] == "male"

    second = client.post("/api/students", json=payload)
    assert second.status_code == 409


@pytest.mark.parametrize("path", ["/", "/health"])
def test_meta_endpoints(path):
    assert client.get(path).status_code == 200
