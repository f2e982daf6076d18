from datetime import timedelta

from httpx import AsyncClient

from edupro.core.clock import local_today


async def _set_push_token(client: AsyncClient, account, token: str) -> None:
    response = await client.put("/api/v1/auth/me/push-token", json={"token": token}, headers=account.headers)
    assert response.status_code == 204


async def _create_homework(client: AsyncClient, institute, due_date, grade: str = "10"):
    return await client.post(
        "/api/v1/homework",
        json={
            "grade": grade,
            "subject": "Maths",
            "title": "Fractions worksheet",
            "description": "Exercises 1-10",
            "due_date": due_date.isoformat(),
        },
        headers=institute.admin.headers,
    )


async def test_due_date_yesterday_rejected_today_accepted(client: AsyncClient, institute) -> None:
    today = local_today()
    yesterday = await _create_homework(client, institute, today - timedelta(days=1))
    assert yesterday.status_code == 422

    due_today = await _create_homework(client, institute, today)
    assert due_today.status_code == 201
    assert due_today.json()["due_date"] == today.isoformat()


async def test_create_notifies_parents_of_the_grade(client: AsyncClient, institute, active_user, sender) -> None:
    await active_user("9876543210", grade="10")
    await active_user("9123456780", name="Meera", grade="9")
    grade_ten_parent = await active_user(
        "9000000001", role="PARENT", name="Lakshmi", linked_student_phone="+91 98765 43210", device_id="p-1"
    )
    grade_nine_parent = await active_user(
        "9000000002", role="PARENT", name="Gopal", linked_student_phone="9123456780", device_id="p-2"
    )
    await _set_push_token(client, grade_ten_parent, "ExponentPushToken[lakshmi]")
    await _set_push_token(client, grade_nine_parent, "ExponentPushToken[gopal]")
    sender.sent.clear()

    response = await _create_homework(client, institute, local_today() + timedelta(days=2))
    assert response.status_code == 201

    assert len(sender.sent) == 1
    assert sender.sent[0]["tokens"] == ["ExponentPushToken[lakshmi]"]
    assert sender.sent[0]["title"] == "New homework: Maths"


async def test_failed_notification_does_not_fail_homework(client: AsyncClient, institute, active_user, sender) -> None:
    await active_user("9876543210")
    parent = await active_user("9000000001", role="PARENT", linked_student_phone="9876543210", device_id="p-1")
    await _set_push_token(client, parent, "ExponentPushToken[lakshmi]")

    async def broken_send(tokens, title, body, route_hint=None):
        raise RuntimeError("push service down")

    sender.send = broken_send
    response = await _create_homework(client, institute, local_today())
    assert response.status_code == 201


async def test_student_submission_lifecycle(client: AsyncClient, institute, active_user) -> None:
    ravi = await active_user("9876543210", grade="10")
    meera = await active_user("9123456780", name="Meera", grade="9")
    homework = (await _create_homework(client, institute, local_today())).json()

    listing = await client.get("/api/v1/homework", headers=ravi.headers)
    assert [h["id"] for h in listing.json()] == [homework["id"]]
    other_grade = await client.get("/api/v1/homework", headers=meera.headers)
    assert other_grade.json() == []

    wrong_grade = await client.post(
        f"/api/v1/homework/{homework['id']}/submission", json={}, headers=meera.headers
    )
    assert wrong_grade.status_code == 404

    first = await client.post(
        f"/api/v1/homework/{homework['id']}/submission",
        json={"file_url": "https://files.test/v1.pdf"},
        headers=ravi.headers,
    )
    assert first.status_code == 200
    assert first.json()["status"] == "SUBMITTED"

    resubmit = await client.post(
        f"/api/v1/homework/{homework['id']}/submission",
        json={"file_url": "https://files.test/v2.pdf"},
        headers=ravi.headers,
    )
    assert resubmit.status_code == 200
    assert resubmit.json()["id"] == first.json()["id"]
    assert resubmit.json()["file_url"] == "https://files.test/v2.pdf"

    verified = await client.post(
        f"/api/v1/homework/{homework['id']}/submissions/{ravi.id}/verify",
        json={"status": "CHECKED", "teacher_comment": "Well done"},
        headers=institute.admin.headers,
    )
    assert verified.status_code == 200
    assert verified.json()["status"] == "CHECKED"
    assert verified.json()["submitted_at"] is not None

    locked = await client.post(
        f"/api/v1/homework/{homework['id']}/submission",
        json={"file_url": "https://files.test/v3.pdf"},
        headers=ravi.headers,
    )
    assert locked.status_code == 409

    submissions = await client.get(
        f"/api/v1/homework/{homework['id']}/submissions", headers=institute.admin.headers
    )
    assert len(submissions.json()) == 1


async def test_verify_without_submission_creates_one(client: AsyncClient, institute, active_user, sender) -> None:
    ravi = await active_user("9876543210")
    parent = await active_user("9000000001", role="PARENT", linked_student_phone="9876543210", device_id="p-1")
    await _set_push_token(client, parent, "ExponentPushToken[lakshmi]")
    homework = (await _create_homework(client, institute, local_today())).json()
    sender.sent.clear()

    response = await client.post(
        f"/api/v1/homework/{homework['id']}/submissions/{ravi.id}/verify",
        json={"status": "INCOMPLETE", "teacher_comment": "Not handed in"},
        headers=institute.admin.headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "INCOMPLETE"
    assert data["submitted_at"] is None
    assert data["checked_at"] is not None

    assert sender.sent[-1]["tokens"] == ["ExponentPushToken[lakshmi]"]
    assert sender.sent[-1]["title"] == "Homework marked incomplete"


async def test_verify_rejects_submitted_status(client: AsyncClient, institute, active_user) -> None:
    ravi = await active_user("9876543210")
    homework = (await _create_homework(client, institute, local_today())).json()
    response = await client.post(
        f"/api/v1/homework/{homework['id']}/submissions/{ravi.id}/verify",
        json={"status": "SUBMITTED"},
        headers=institute.admin.headers,
    )
    assert response.status_code == 422


async def test_admin_filters(client: AsyncClient, institute) -> None:
    today = local_today()
    await _create_homework(client, institute, today, grade="10")
    await _create_homework(client, institute, today + timedelta(days=1), grade="9")

    grade_nine = await client.get("/api/v1/homework", params={"grade": "9"}, headers=institute.admin.headers)
    assert [h["grade"] for h in grade_nine.json()] == ["9"]
    due_today = await client.get(
        "/api/v1/homework", params={"due_date": today.isoformat()}, headers=institute.admin.headers
    )
    assert [h["grade"] for h in due_today.json()] == ["10"]


async def test_verify_rejects_student_of_another_grade(client: AsyncClient, institute, active_user) -> None:
    meera = await active_user("9123456780", name="Meera", grade="9")
    homework = (await _create_homework(client, institute, local_today(), grade="10")).json()
    response = await client.post(
        f"/api/v1/homework/{homework['id']}/submissions/{meera.id}/verify",
        json={"status": "CHECKED"},
        headers=institute.admin.headers,
    )
    assert response.status_code == 404

    submissions = await client.get(
        f"/api/v1/homework/{homework['id']}/submissions", headers=institute.admin.headers
    )
    assert submissions.json() == []
