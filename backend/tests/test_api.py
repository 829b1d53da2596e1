from datetime import timedelta

from conftest import auth_headers, make_token


async def test_health(client):
    response = await client.get("/api/v1/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_requires_token(client, seed):
    response = await client.post(f"/api/v1/courses/{seed.course.id}/rollcalls", json={"duration_minutes": 5})
    assert response.status_code == 401


async def test_rejects_expired_token(client, seed):
    token = make_token(seed.teacher.id, "TEACHER", expires_delta=timedelta(minutes=-1))
    response = await client.get(
        f"/api/v1/courses/{seed.course.id}/rollcalls",
        headers={"Authorization": f"Bearer {token}"},
    )
    assert response.status_code == 401


async def test_rollcall_flow(client, seed):
    teacher, student = seed.teacher, seed.students[0]
    course_id = seed.course.id

    response = await client.post(
        f"/api/v1/courses/{course_id}/rollcalls",
        json={"kind": "IMMEDIATE", "duration_minutes": 5},
        headers=auth_headers(teacher),
    )
    assert response.status_code == 201
    rollcall = response.json()
    assert rollcall["is_open"] is True
    assert rollcall["end_time"] is None
    assert 0 < rollcall["remaining_seconds"] <= 300

    response = await client.get(f"/api/v1/courses/{course_id}/rollcalls/active", headers=auth_headers(student))
    assert response.status_code == 200
    assert response.json()["id"] == rollcall["id"]

    response = await client.post(
        f"/api/v1/rollcalls/{rollcall['id']}/check-in",
        json={"lat": 25.0, "lng": 121.5},
        headers=auth_headers(student),
    )
    assert response.status_code == 200
    body = response.json()
    assert body["result"] == "ACCEPTED"
    assert body["status"] == "PRESENT"
    assert body["record"]["gps_lat"] == 25.0

    response = await client.post(
        f"/api/v1/rollcalls/{rollcall['id']}/check-in", json={}, headers=auth_headers(student)
    )
    assert response.status_code == 200
    assert response.json()["result"] == "ALREADY_CHECKED_IN"

    response = await client.get(f"/api/v1/rollcalls/{rollcall['id']}/records", headers=auth_headers(teacher))
    assert response.status_code == 200
    assert [r["student_id"] for r in response.json()["records"]] == [student.id]

    response = await client.post(
        f"/api/v1/courses/{course_id}/rollcalls",
        json={"kind": "IMMEDIATE", "duration_minutes": 5},
        headers=auth_headers(teacher),
    )
    second = response.json()

    response = await client.get(f"/api/v1/courses/{course_id}/rollcalls", headers=auth_headers(teacher))
    history = response.json()
    assert history["total"] == 2
    assert [rc["id"] for rc in history["rollcalls"]] == [second["id"], rollcall["id"]]
    assert history["rollcalls"][1]["is_open"] is False


async def test_start_validation(client, seed):
    headers = auth_headers(seed.teacher)
    response = await client.post(
        f"/api/v1/courses/{seed.course.id}/rollcalls", json={"duration_minutes": 0}, headers=headers
    )
    assert response.status_code == 422

    response = await client.post(
        f"/api/v1/courses/{seed.course.id}/rollcalls", json={"duration_minutes": 2.7}, headers=headers
    )
    assert response.status_code == 422

    response = await client.post(
        f"/api/v1/courses/{seed.course.id}/rollcalls",
        json={"kind": "GPS", "duration_minutes": 5, "target_lat": 25.0},
        headers=headers,
    )
    assert response.status_code == 400


async def test_only_course_teacher_may_start(client, seed):
    response = await client.post(
        f"/api/v1/courses/{seed.course.id}/rollcalls",
        json={"duration_minutes": 5},
        headers=auth_headers(seed.other_teacher),
    )
    assert response.status_code == 403

    response = await client.post(
        f"/api/v1/courses/{seed.course.id}/rollcalls",
        json={"duration_minutes": 5},
        headers=auth_headers(seed.students[0]),
    )
    assert response.status_code == 403

    response = await client.post(
        "/api/v1/courses/999/rollcalls", json={"duration_minutes": 5}, headers=auth_headers(seed.teacher)
    )
    assert response.status_code == 404


async def test_stop_then_check_in_is_closed(client, seed):
    response = await client.post(
        f"/api/v1/courses/{seed.course.id}/rollcalls",
        json={"duration_minutes": 5},
        headers=auth_headers(seed.teacher),
    )
    rollcall_id = response.json()["id"]

    response = await client.post(f"/api/v1/rollcalls/{rollcall_id}/stop", headers=auth_headers(seed.teacher))
    assert response.status_code == 200
    assert response.json()["stopped"] is True
    assert response.json()["end_time"] is not None

    response = await client.post(f"/api/v1/rollcalls/{rollcall_id}/stop", headers=auth_headers(seed.teacher))
    assert response.json()["stopped"] is False

    response = await client.post(
        f"/api/v1/rollcalls/{rollcall_id}/check-in", json={}, headers=auth_headers(seed.students[0])
    )
    assert response.status_code == 200
    assert response.json() == {"result": "ROLLCALL_CLOSED", "status": None, "record": None}

    response = await client.get(
        f"/api/v1/courses/{seed.course.id}/rollcalls/active", headers=auth_headers(seed.students[0])
    )
    assert response.json() is None


async def test_outsider_cannot_check_in(client, seed):
    response = await client.post(
        f"/api/v1/courses/{seed.course.id}/rollcalls",
        json={"duration_minutes": 5},
        headers=auth_headers(seed.teacher),
    )
    rollcall_id = response.json()["id"]

    response = await client.post(
        f"/api/v1/rollcalls/{rollcall_id}/check-in", json={}, headers=auth_headers(seed.outsider)
    )
    assert response.status_code == 403

    response = await client.post(
        f"/api/v1/rollcalls/{rollcall_id}/check-in", json={}, headers=auth_headers(seed.teacher)
    )
    assert response.status_code == 403


async def test_teacher_override_and_stats(client, seed):
    student = seed.students[1]
    response = await client.post(
        f"/api/v1/courses/{seed.course.id}/rollcalls",
        json={"duration_minutes": 5},
        headers=auth_headers(seed.teacher),
    )
    rollcall_id = response.json()["id"]

    response = await client.put(
        f"/api/v1/rollcalls/{rollcall_id}/records/{student.id}",
        json={"status": "ABSENT"},
        headers=auth_headers(seed.teacher),
    )
    assert response.status_code == 200
    assert response.json()["status"] == "ABSENT"

    response = await client.put(
        f"/api/v1/rollcalls/{rollcall_id}/records/{student.id}",
        json={"status": "LEAVE"},
        headers=auth_headers(seed.teacher),
    )
    assert response.json()["status"] == "LEAVE"

    response = await client.get(f"/api/v1/students/{student.id}/attendance-stats", headers=auth_headers(student))
    assert response.status_code == 200
    stats = response.json()
    assert stats["total_rollcalls"] == 1
    assert stats["attended_count"] == 1
    assert stats["status_counts"]["LEAVE"] == 1

    response = await client.get(
        f"/api/v1/students/{student.id}/attendance-stats", headers=auth_headers(seed.students[0])
    )
    assert response.status_code == 403

    response = await client.get(
        f"/api/v1/students/{student.id}/attendance-stats",
        params={"course_id": seed.course.id},
        headers=auth_headers(seed.teacher),
    )
    assert response.status_code == 200


async def test_buzzer_flow(client, seed):
    first, second = seed.students[0], seed.students[1]

    response = await client.post(f"/api/v1/courses/{seed.course.id}/buzzers", headers=auth_headers(seed.teacher))
    assert response.status_code == 201
    round_id = response.json()["id"]
    assert response.json()["winner_student_id"] is None

    response = await client.post(f"/api/v1/buzzers/{round_id}/buzz", headers=auth_headers(first))
    assert response.status_code == 200
    assert response.json()["result"] == "WON"
    assert response.json()["round"]["winner_student_id"] == first.id
    assert response.json()["round"]["is_open"] is False

    response = await client.post(f"/api/v1/buzzers/{round_id}/buzz", headers=auth_headers(second))
    assert response.json()["result"] == "TOO_LATE"
    assert response.json()["round"]["winner_student_id"] == first.id

    response = await client.get(
        f"/api/v1/courses/{seed.course.id}/buzzers/latest", headers=auth_headers(second)
    )
    assert response.json()["winner_student_id"] == first.id


async def test_buzzer_stop_and_outsider(client, seed):
    response = await client.post(f"/api/v1/courses/{seed.course.id}/buzzers", headers=auth_headers(seed.teacher))
    round_id = response.json()["id"]

    response = await client.post(f"/api/v1/buzzers/{round_id}/buzz", headers=auth_headers(seed.outsider))
    assert response.status_code == 403

    response = await client.post(f"/api/v1/buzzers/{round_id}/stop", headers=auth_headers(seed.teacher))
    assert response.json()["stopped"] is True

    response = await client.post(f"/api/v1/buzzers/{round_id}/buzz", headers=auth_headers(seed.students[0]))
    assert response.json()["result"] == "TOO_LATE"
    assert response.json()["round"]["winner_student_id"] is None

    response = await client.post("/api/v1/buzzers/777/buzz", headers=auth_headers(seed.students[0]))
    assert response.status_code == 404


async def test_random_student(client, seed):
    response = await client.get(
        f"/api/v1/courses/{seed.course.id}/random-student", headers=auth_headers(seed.teacher)
    )
    assert response.status_code == 200
    assert response.json()["student"]["id"] in {s.id for s in seed.students}

    response = await client.get(
        f"/api/v1/courses/{seed.course.id}/random-student", headers=auth_headers(seed.students[0])
    )
    assert response.status_code == 403
