"""
API tests: authentication, role checks, error envelopes and the upload to
review round trip.
"""

import uuid

from sqlalchemy import select

from app.db.models import (
    ArchiveEntry,
    DeliverableStatus,
    Submission,
    SubmissionStatus,
    TaskDeliverable,
)

API = "/api/v1"


def _upload(client, headers, **form):
    data = {
        "documentType": "syllabus",
        "subjectCode": "IT101",
        "courseSections": "BSIT-1A",
        "semester": "1st Semester",
        "schoolYear": "2025-2026",
    }
    data.update(form)
    return client.post(
        f"{API}/faculty/submissions/",
        headers=headers,
        files={"file": ("syllabus.pdf", b"%PDF-1.4 test", "application/pdf")},
        data=data,
    )


class TestAuthentication:
    def test_health_needs_no_token(self, client):
        response = client.get(f"{API}/shared/health/")

        assert response.status_code == 200
        assert response.json()["data"]["status"] == "healthy"
        assert response.json()["data"]["database"] == "ok"

    def test_missing_token(self, client):
        response = client.get(f"{API}/admin/submissions/")

        assert response.status_code == 401
        assert response.json()["success"] is False

    def test_invalid_token(self, client):
        response = client.get(
            f"{API}/admin/submissions/",
            headers={"Authorization": "Bearer not-a-jwt"},
        )

        assert response.status_code == 401

    def test_faculty_cannot_use_admin_routes(self, client, faculty_headers):
        response = client.get(f"{API}/admin/submissions/", headers=faculty_headers)

        assert response.status_code == 403

    def test_admin_cannot_use_faculty_routes(self, client, admin_headers):
        response = client.get(f"{API}/faculty/faculty-loads/", headers=admin_headers)

        assert response.status_code == 403


class TestStatusRoute:
    def test_unknown_file(self, client, admin_headers):
        response = client.post(
            f"{API}/admin/submissions/status",
            headers=admin_headers,
            json={"fileId": str(uuid.uuid4()), "newStatus": "completed"},
        )

        assert response.status_code == 404
        body = response.json()
        assert body["message"] == "File not found"
        assert body["meta"]["error_code"] == "SUBMISSION_NOT_FOUND"

    def test_invalid_status(self, client, admin_headers, make_submission):
        submission = make_submission()

        response = client.post(
            f"{API}/admin/submissions/status",
            headers=admin_headers,
            json={"fileId": str(submission.file_id), "newStatus": "approved"},
        )

        assert response.status_code == 400
        assert response.json()["meta"]["error_code"] == "INVALID_SUBMISSION_STATUS"

    def test_completion(
        self, client, admin_headers, db_session, make_faculty_load, make_submission
    ):
        make_faculty_load()
        submission = make_submission()

        response = client.post(
            f"{API}/admin/submissions/status",
            headers=admin_headers,
            json={"fileId": str(submission.file_id), "newStatus": "completed"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["data"]["changed"] is True
        assert body["data"]["submission"]["status"] == "completed"
        assert body["data"]["previousStatus"] == "pending"

        db_session.expire_all()
        assert len(db_session.execute(select(ArchiveEntry)).scalars().all()) == 1

    def test_no_op_message(self, client, admin_headers, make_submission):
        submission = make_submission(status=SubmissionStatus.REJECTED)

        response = client.post(
            f"{API}/admin/submissions/status",
            headers=admin_headers,
            json={"fileId": str(submission.file_id), "newStatus": "rejected"},
        )

        assert response.status_code == 200
        assert response.json()["message"] == "File status is already rejected"
        assert response.json()["data"]["changed"] is False


class TestUploadFlow:
    def test_upload_then_review(
        self,
        client,
        faculty_headers,
        admin_headers,
        other_admin_headers,
        db_session,
        fake_minio,
        make_faculty_load,
    ):
        make_faculty_load()

        response = _upload(client, faculty_headers)

        assert response.status_code == 201
        file_id = response.json()["data"]["fileId"]
        assert response.json()["data"]["status"] == "pending"
        assert len(fake_minio.objects) == 1

        db_session.expire_all()
        deliverable = db_session.execute(select(TaskDeliverable)).scalar_one()
        assert deliverable.syllabus == DeliverableStatus.SUBMITTED

        # One broadcast, visible to both admins
        for headers, admin_id in ((admin_headers, "A7"), (other_admin_headers, "A9")):
            inbox = client.get(f"{API}/admin/notifications/{admin_id}", headers=headers)
            assert inbox.status_code == 200
            assert len(inbox.json()["data"]) == 1

        notification_id = client.get(
            f"{API}/admin/notifications/A7", headers=admin_headers
        ).json()["data"][0]["notificationId"]
        marked = client.put(
            f"{API}/admin/notifications/A7/{notification_id}/read",
            headers=admin_headers,
        )
        assert marked.status_code == 200
        unread_a7 = client.get(
            f"{API}/admin/notifications/A7/unread-count", headers=admin_headers
        )
        unread_a9 = client.get(
            f"{API}/admin/notifications/A9/unread-count", headers=other_admin_headers
        )
        assert unread_a7.json()["data"]["unreadCount"] == 0
        assert unread_a9.json()["data"]["unreadCount"] == 1

        review = client.post(
            f"{API}/admin/submissions/status",
            headers=admin_headers,
            json={"fileId": file_id, "newStatus": "completed"},
        )
        assert review.status_code == 200

        faculty_inbox = client.get(
            f"{API}/faculty/notifications/", headers=faculty_headers
        )
        assert faculty_inbox.status_code == 200
        assert faculty_inbox.json()["data"][0]["newStatus"] == "completed"

        download = client.get(
            f"{API}/admin/submissions/{file_id}/download", headers=admin_headers
        )
        assert download.status_code == 200
        assert download.json()["data"]["file_name"] == "syllabus.pdf"

    def test_upload_for_unassigned_section(
        self, client, faculty_headers, db_session, fake_minio, make_faculty_load
    ):
        make_faculty_load(course_section="BSIT-1A")

        response = _upload(client, faculty_headers, courseSections="BSIT-1A, BSIT-9Z")

        assert response.status_code == 404
        assert response.json()["message"] == "Subject not found in your faculty loads"
        assert fake_minio.objects == {}
        assert db_session.execute(select(Submission)).scalars().all() == []


class TestAdminNotificationPaths:
    def test_other_admins_inbox_is_forbidden(self, client, admin_headers):
        response = client.get(f"{API}/admin/notifications/A9", headers=admin_headers)

        assert response.status_code == 403
        assert response.json()["meta"]["error_code"] == "NOTIFICATION_ACCESS_DENIED"

    def test_broadcast_path_lists_callers_view(
        self, client, admin_headers, make_submission
    ):
        response = client.get(f"{API}/admin/notifications/all", headers=admin_headers)

        assert response.status_code == 200
        assert response.json()["data"] == []

    def test_marking_as_the_broadcast_recipient_is_rejected(
        self, client, admin_headers
    ):
        response = client.put(
            f"{API}/admin/notifications/all/{uuid.uuid4()}/read",
            headers=admin_headers,
        )

        assert response.status_code == 400
        assert response.json()["meta"]["error_code"] == "INVALID_READER"


class TestFacultyLoadRoutes:
    def test_create_and_duplicate(self, client, faculty_headers):
        body = {
            "subjectCode": "IT101",
            "subjectTitle": "Introduction to Computing",
            "courseSection": "BSIT-1A",
            "semester": "1st Semester",
            "schoolYear": "2025-2026",
        }

        created = client.post(
            f"{API}/faculty/faculty-loads/", headers=faculty_headers, json=body
        )
        duplicate = client.post(
            f"{API}/faculty/faculty-loads/", headers=faculty_headers, json=body
        )

        assert created.status_code == 201
        assert created.json()["data"]["taskDeliverable"]["overallStatus"] == "pending"
        assert duplicate.status_code == 409


class TestMirrorStatisticsRoutes:
    def test_history_statistics(self, client, admin_headers, make_submission):
        make_submission(status=SubmissionStatus.COMPLETED)
        client.post(f"{API}/admin/reconciliation/run", headers=admin_headers)

        history = client.get(f"{API}/admin/history/statistics", headers=admin_headers)
        archive = client.get(f"{API}/admin/archive/statistics", headers=admin_headers)

        assert history.status_code == 200
        assert history.json()["data"]["total"] == 1
        assert history.json()["data"]["byCourse"] == [{"name": "BSIT-1A", "count": 1}]
        assert archive.json()["data"]["total"] == 1
