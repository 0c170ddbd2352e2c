import uuid

import pytest
from fastapi import HTTPException

from app.models.profile import Profile, ProfileRole
from app.services.profile import Profiles


class TestProfilesSearch:
    def test_search_by_name(self, db_session, secretary_ctx, staff, other_staff):
        results = Profiles.search(db_session, "stel", secretary_ctx)
        assert [p.id for p in results] == [staff.id]

    def test_search_by_department(self, db_session, admin_ctx, staff, other_staff):
        results = Profiles.search(db_session, "ESTATES", admin_ctx)
        assert [p.id for p in results] == [other_staff.id]

    def test_short_query_rejected(self, db_session, admin_ctx):
        with pytest.raises(HTTPException) as exc:
            Profiles.search(db_session, " a ", admin_ctx)
        assert exc.value.status_code == 400

    def test_staff_forbidden(self, db_session, staff_ctx):
        with pytest.raises(HTTPException) as exc:
            Profiles.search(db_session, "stella", staff_ctx)
        assert exc.value.status_code == 403

    def test_wildcards_are_literal(self, db_session, admin_ctx, staff):
        assert Profiles.search(db_session, "%%", admin_ctx) == []

    def test_result_limit(self, db_session, admin_ctx):
        for i in range(25):
            db_session.add(
                Profile(
                    id=uuid.uuid4(),
                    full_name=f"Clerk {i:02d}",
                    role=ProfileRole.STAFF,
                    department="Stores",
                )
            )
        db_session.commit()
        assert len(Profiles.search(db_session, "clerk", admin_ctx)) == 20


class TestProfilesList:
    def test_admin_lists_all(self, db_session, admin_ctx, staff, secretary):
        ids = {p.id for p in Profiles.list(db_session, admin_ctx)}
        assert {staff.id, secretary.id, admin_ctx.user_id} <= ids

    def test_secretary_forbidden(self, db_session, secretary_ctx):
        with pytest.raises(HTTPException) as exc:
            Profiles.list(db_session, secretary_ctx)
        assert exc.value.status_code == 403
