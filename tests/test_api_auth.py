class TestAuthEndpoints:
    def test_login_sets_cookie(self, client, identity, staff):
        identity.add_user(staff.id, staff.email, password="hunter2hunter2")
        resp = client.post(
            "/auth/login",
            json={"email": staff.email, "password": "hunter2hunter2"},
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["access_token"] == f"token-{staff.id}"
        assert data["token_type"] == "bearer"
        assert resp.cookies.get("access_token") == f"token-{staff.id}"

    def test_login_bad_credentials(self, client, identity, staff):
        identity.add_user(staff.id, staff.email, password="hunter2hunter2")
        resp = client.post(
            "/auth/login", json={"email": staff.email, "password": "nope"}
        )
        assert resp.status_code == 401

    def test_me(self, client, staff, staff_headers):
        resp = client.get("/auth/me", headers=staff_headers)
        assert resp.status_code == 200
        assert resp.json() == {
            "user_id": str(staff.id),
            "email": "stella.staff@example.edu",
            "full_name": "Stella Staff",
            "role": "STAFF",
            "department": "Finance",
        }

    def test_me_on_api_v1(self, client, staff_headers):
        resp = client.get("/api/v1/auth/me", headers=staff_headers)
        assert resp.status_code == 200

    def test_logout(self, client, identity, staff_headers):
        resp = client.post("/auth/logout", headers=staff_headers)
        assert resp.status_code == 200
        token = staff_headers["Authorization"].split(" ", 1)[1]
        assert identity.signed_out == [token]

    def test_change_password(self, client, identity, staff, staff_headers):
        resp = client.post(
            "/auth/password",
            json={"current_password": "secret-pass", "new_password": "a-better-one"},
            headers=staff_headers,
        )
        assert resp.status_code == 200
        assert identity.users[staff.id]["password"] == "a-better-one"

    def test_change_password_wrong_current(self, client, staff_headers):
        resp = client.post(
            "/auth/password",
            json={"current_password": "guess", "new_password": "a-better-one"},
            headers=staff_headers,
        )
        assert resp.status_code == 400


class TestUserSearchEndpoint:
    def test_search(self, client, secretary_headers, staff):
        resp = client.get(
            "/users/search", params={"q": "stella"}, headers=secretary_headers
        )
        assert resp.status_code == 200
        assert resp.json() == {
            "users": [
                {
                    "id": str(staff.id),
                    "full_name": "Stella Staff",
                    "department": "Finance",
                    "role": "STAFF",
                }
            ]
        }

    def test_short_query(self, client, secretary_headers):
        resp = client.get("/users/search", params={"q": "s"}, headers=secretary_headers)
        assert resp.status_code == 400

    def test_staff_forbidden(self, client, staff_headers):
        resp = client.get(
            "/users/search", params={"q": "stella"}, headers=staff_headers
        )
        assert resp.status_code == 403


class TestPlatformEndpoints:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_metrics(self, client):
        client.get("/health")
        resp = client.get("/metrics")
        assert resp.status_code == 200
        assert "http_requests_total" in resp.text
