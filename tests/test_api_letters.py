import uuid

from sqlalchemy import select

from app.models.audit import AuditAction, AuditLogEntry
from app.models.letter import Confidentiality, Letter, LetterDirection

PDF_BYTES = b"%PDF-1.4\n1 0 obj\n<<>>\nendobj\n%%EOF\n"


def _letter_payload(**overrides):
    payload = {
        "direction": "INCOMING",
        "status": "RECEIVED",
        "confidentiality": "PUBLIC",
        "date_received": "2026-03-02",
        "sender_name": "Ghana Health Service",
        "subject": "Supply of laboratory reagents",
    }
    payload.update(overrides)
    return payload


class TestLetterAuth:
    def test_requires_token(self, client):
        resp = client.get("/letters")
        assert resp.status_code == 401
        assert resp.json()["code"] == "unauthenticated"

    def test_unknown_token(self, client):
        resp = client.get("/letters", headers={"Authorization": "Bearer nope"})
        assert resp.status_code == 401

    def test_profile_missing(self, client, identity):
        token = identity.add_user(uuid.uuid4(), "orphan@example.edu")
        resp = client.get("/letters", headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 400
        assert resp.json()["code"] == "profile_missing"

    def test_cookie_token(self, client, identity, staff):
        token = identity.add_user(staff.id, staff.email)
        client.cookies.set("access_token", token)
        resp = client.get("/letters/stats")
        assert resp.status_code == 200


class TestLetterEndpoints:
    def test_create_allocates_ref(self, client, secretary_headers):
        resp = client.post("/letters", json=_letter_payload(), headers=secretary_headers)
        assert resp.status_code == 201
        data = resp.json()
        assert data["ok"] is True
        assert data["ref_no"] == "UHAS/PROC/IN/2026/0001"

    def test_create_on_api_v1_prefix(self, client, secretary_headers):
        resp = client.post(
            "/api/v1/letters",
            json=_letter_payload(direction="OUTGOING", date_received="2025-11-20"),
            headers=secretary_headers,
        )
        assert resp.status_code == 201
        assert resp.json()["ref_no"] == "UHAS/PROC/OUT/2025/0001"

    def test_create_staff_forbidden(self, client, staff_headers):
        resp = client.post("/letters", json=_letter_payload(), headers=staff_headers)
        assert resp.status_code == 403
        body = resp.json()
        assert body["code"] == "forbidden"
        assert set(body) == {"code", "message", "details"}

    def test_create_missing_subject(self, client, secretary_headers):
        resp = client.post(
            "/letters", json=_letter_payload(subject="  "), headers=secretary_headers
        )
        assert resp.status_code == 400
        assert resp.json()["message"] == "subject is required"

    def test_create_duplicate_ref(self, client, secretary_headers, make_letter):
        letter = make_letter()
        resp = client.post(
            "/letters",
            json=_letter_payload(ref_no=letter.ref_no),
            headers=secretary_headers,
        )
        assert resp.status_code == 409

    def test_malformed_body(self, client, secretary_headers):
        resp = client.post(
            "/letters",
            json=_letter_payload(date_received="not-a-date"),
            headers=secretary_headers,
        )
        assert resp.status_code == 422
        body = resp.json()
        assert body["code"] == "validation_error"
        assert isinstance(body["details"], list)

    def test_create_confidential_with_recipients(
        self, client, db_session, secretary_headers, staff
    ):
        resp = client.post(
            "/letters",
            json=_letter_payload(
                confidentiality="CONFIDENTIAL",
                recipient_user_ids=[str(staff.id)],
            ),
            headers=secretary_headers,
        )
        assert resp.status_code == 201
        letter_id = resp.json()["id"]
        listed = client.get(
            "/letters/recipients/list",
            params={"letter_id": letter_id},
            headers=secretary_headers,
        )
        assert [r["id"] for r in listed.json()["recipients"]] == [str(staff.id)]

    def test_list_filters_by_visibility(
        self, client, make_letter, staff, staff_headers
    ):
        public = make_letter(confidentiality=Confidentiality.PUBLIC)
        make_letter(
            confidentiality=Confidentiality.INTERNAL, recipient_department="Estates"
        )
        mine = make_letter(
            confidentiality=Confidentiality.INTERNAL, recipient_department="Finance"
        )
        make_letter(confidentiality=Confidentiality.CONFIDENTIAL)
        granted = make_letter(
            confidentiality=Confidentiality.CONFIDENTIAL, recipients=[staff]
        )
        resp = client.get("/letters", headers=staff_headers)
        assert resp.status_code == 200
        data = resp.json()
        ids = {item["id"] for item in data["items"]}
        assert ids == {str(public.id), str(mine.id), str(granted.id)}
        assert data["count"] == 3

    def test_list_status_filter(self, client, make_letter, admin_headers):
        make_letter()
        resp = client.get(
            "/letters", params={"status": "ARCHIVED"}, headers=admin_headers
        )
        assert resp.status_code == 200
        assert resp.json()["items"] == []

    def test_list_invalid_filter(self, client, admin_headers):
        resp = client.get(
            "/letters", params={"direction": "SIDEWAYS"}, headers=admin_headers
        )
        assert resp.status_code == 400

    def test_stats(self, client, make_letter, admin_headers):
        make_letter()
        make_letter(direction=LetterDirection.OUTGOING, ref_no="UHAS/PROC/OUT/2026/0001")
        resp = client.get("/letters/stats", headers=admin_headers)
        assert resp.json() == {
            "total": 2,
            "incoming": 1,
            "outgoing": 1,
            "archived": 0,
        }

    def test_next_ref(self, client, make_letter, secretary_headers):
        make_letter(ref_no="UHAS/PROC/IN/2026/0007")
        resp = client.post(
            "/letters/next-ref",
            json={"direction": "INCOMING", "year": 2026},
            headers=secretary_headers,
        )
        assert resp.status_code == 200
        assert resp.json() == {"ref_no": "UHAS/PROC/IN/2026/0008"}

    def test_detail_records_view(
        self, client, db_session, make_letter, staff_headers, staff
    ):
        letter = make_letter()
        resp = client.get(f"/letters/{letter.id}", headers=staff_headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["letter"]["ref_no"] == letter.ref_no
        assert data["can_edit"] is False
        assert data["recipients"] == []
        db_session.expire_all()
        viewed = db_session.scalars(
            select(AuditLogEntry).where(AuditLogEntry.action == AuditAction.VIEWED)
        ).all()
        assert [v.user_id for v in viewed] == [staff.id]

    def test_detail_hidden_is_not_found(self, client, make_letter, staff_headers):
        letter = make_letter(confidentiality=Confidentiality.CONFIDENTIAL)
        resp = client.get(f"/letters/{letter.id}", headers=staff_headers)
        assert resp.status_code == 404

    def test_detail_bad_id(self, client, admin_headers):
        resp = client.get("/letters/not-a-uuid", headers=admin_headers)
        assert resp.status_code == 400

    def test_update(self, client, db_session, make_letter, secretary_headers):
        letter = make_letter()
        resp = client.post(
            f"/letters/{letter.id}",
            json={"status": "ASSIGNED", "summary": "Sent to stores"},
            headers=secretary_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "ASSIGNED"
        db_session.expire_all()
        assert db_session.get(Letter, letter.id).summary == "Sent to stores"

    def test_update_staff_forbidden(self, client, make_letter, staff_headers):
        letter = make_letter()
        resp = client.post(
            f"/letters/{letter.id}", json={"summary": "x"}, headers=staff_headers
        )
        assert resp.status_code == 403


class TestLetterScanEndpoints:
    def test_upload_intake_file(self, client, blobs, secretary, secretary_headers):
        resp = client.post(
            "/letters/upload",
            data={"ref_no": "UHAS/PROC/IN/2026/0003"},
            files={"file": ("scan.pdf", PDF_BYTES, "application/pdf")},
            headers=secretary_headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["file_path"] == (
            f"intake/{secretary.id}/UHAS-PROC-IN-2026-0003.pdf"
        )
        assert data["mime_type"] == "application/pdf"
        assert data["file_path"] in blobs.objects

    def test_intake_then_create(self, client, blobs, secretary_headers):
        stored = client.post(
            "/letters/upload",
            data={"ref_no": "UHAS/PROC/IN/2026/0001"},
            files={"file": ("scan.pdf", PDF_BYTES, "application/pdf")},
            headers=secretary_headers,
        ).json()
        resp = client.post(
            "/letters",
            json=_letter_payload(
                ref_no="UHAS/PROC/IN/2026/0001",
                file_bucket=stored["file_bucket"],
                file_path=stored["file_path"],
                file_name="scan.pdf",
                mime_type="application/pdf",
            ),
            headers=secretary_headers,
        )
        assert resp.status_code == 201
        assert "letters/2026/UHAS-PROC-IN-2026-0001.pdf" in blobs.objects
        assert stored["file_path"] not in blobs.objects

    def test_intake_for_registered_ref(
        self, client, blobs, make_letter, secretary_headers
    ):
        letter = make_letter()
        resp = client.post(
            "/letters/upload",
            data={"ref_no": letter.ref_no},
            files={"file": ("scan.pdf", PDF_BYTES, "application/pdf")},
            headers=secretary_headers,
        )
        assert resp.status_code == 409
        assert blobs.objects == {}

    def test_replace_then_download(
        self, client, blobs, make_letter, secretary_headers, staff_headers
    ):
        letter = make_letter()
        resp = client.post(
            f"/letters/{letter.id}/replace-scan",
            files={"file": ("scan.pdf", PDF_BYTES, "application/pdf")},
            headers=secretary_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["file_path"].endswith("UHAS-PROC-IN-2026-0001.pdf")

        download = client.get(f"/letters/{letter.id}/download", headers=staff_headers)
        assert download.status_code == 200
        assert download.content == PDF_BYTES
        assert download.headers["content-type"] == "application/pdf"
        assert download.headers["cache-control"] == "no-store"
        assert (
            download.headers["content-disposition"]
            == 'attachment; filename="UHAS-PROC-IN-2026-0001.pdf"'
        )

    def test_replace_rejects_text(self, client, make_letter, secretary_headers):
        letter = make_letter()
        resp = client.post(
            f"/letters/{letter.id}/replace-scan",
            files={"file": ("notes.txt", b"hello", "text/plain")},
            headers=secretary_headers,
        )
        assert resp.status_code == 400

    def test_download_without_scan(self, client, make_letter, admin_headers):
        letter = make_letter()
        resp = client.get(f"/letters/{letter.id}/download", headers=admin_headers)
        assert resp.status_code == 404

    def test_signed_url(self, client, blobs, make_letter, staff_headers):
        path = "letters/2026/UHAS-PROC-IN-2026-0001.pdf"
        blobs.upload(path, PDF_BYTES, "application/pdf")
        letter = make_letter(file_path=path, mime_type="application/pdf")
        resp = client.post(
            "/letters/signed-url",
            json={"letter_id": str(letter.id)},
            headers=staff_headers,
        )
        assert resp.status_code == 200
        assert resp.json() == {
            "url": f"https://blobs.test/letters/{path}?expires=600",
            "expires_in": 600,
        }

    def test_storage_outage(self, client, blobs, make_letter, secretary_headers):
        letter = make_letter()
        blobs.fail = True
        resp = client.post(
            f"/letters/{letter.id}/replace-scan",
            files={"file": ("scan.pdf", PDF_BYTES, "application/pdf")},
            headers=secretary_headers,
        )
        assert resp.status_code == 500
        assert resp.json()["code"] == "upstream_error"


class TestRecipientEndpoints:
    def test_add_list_remove(
        self, client, make_letter, staff, other_staff, secretary_headers
    ):
        letter = make_letter(confidentiality=Confidentiality.CONFIDENTIAL)
        resp = client.post(
            "/letters/recipients/add",
            json={
                "letter_id": str(letter.id),
                "user_ids": [str(staff.id), str(other_staff.id)],
            },
            headers=secretary_headers,
        )
        assert resp.status_code == 200
        assert resp.json() == {"ok": True}

        listed = client.get(
            "/letters/recipients/list",
            params={"letter_id": str(letter.id)},
            headers=secretary_headers,
        )
        assert {r["id"] for r in listed.json()["recipients"]} == {
            str(staff.id),
            str(other_staff.id),
        }

        resp = client.post(
            "/letters/recipients/remove",
            json={"letter_id": str(letter.id), "user_id": str(staff.id)},
            headers=secretary_headers,
        )
        assert resp.status_code == 200
        listed = client.get(
            "/letters/recipients/list",
            params={"letter_id": str(letter.id)},
            headers=secretary_headers,
        )
        assert [r["id"] for r in listed.json()["recipients"]] == [str(other_staff.id)]

        resp = client.post(
            "/letters/recipients/remove",
            json={"letter_id": str(letter.id), "user_id": str(other_staff.id)},
            headers=secretary_headers,
        )
        assert resp.status_code == 409

    def test_clear_keeps_confidential_grant(
        self, client, make_letter, staff, secretary_headers
    ):
        letter = make_letter(
            confidentiality=Confidentiality.CONFIDENTIAL, recipients=[staff]
        )
        resp = client.post(
            "/letters/recipients/clear",
            json={"letter_id": str(letter.id)},
            headers=secretary_headers,
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "conflict"

    def test_clear_without_grants(self, client, make_letter, secretary_headers):
        letter = make_letter()
        resp = client.post(
            "/letters/recipients/clear",
            json={"letter_id": str(letter.id)},
            headers=secretary_headers,
        )
        assert resp.status_code == 200

    def test_add_requires_user_ids(self, client, make_letter, secretary_headers):
        letter = make_letter(confidentiality=Confidentiality.CONFIDENTIAL)
        resp = client.post(
            "/letters/recipients/add",
            json={"letter_id": str(letter.id), "user_ids": []},
            headers=secretary_headers,
        )
        assert resp.status_code == 422

    def test_staff_cannot_grant(self, client, make_letter, staff, staff_headers):
        letter = make_letter(confidentiality=Confidentiality.CONFIDENTIAL)
        resp = client.post(
            "/letters/recipients/add",
            json={"letter_id": str(letter.id), "user_ids": [str(staff.id)]},
            headers=staff_headers,
        )
        assert resp.status_code == 403
