from app import models

PASSWORD = "correct-horse-battery"


def _login(client, email, password=PASSWORD):
    return client.post("/api/auth/token", data={"username": email, "password": password})


def test_health_endpoints(client):
    assert client.get("/health").json()["status"] == "ok"
    assert client.get("/api/health").status_code == 200


def test_login_returns_bearer_token(client, buyer):
    response = _login(client, buyer.email)
    assert response.status_code == 200
    body = response.json()
    assert body["token_type"] == "bearer"

    me = client.get("/api/auth/me", headers={"Authorization": f"Bearer {body['access_token']}"})
    assert me.status_code == 200
    assert me.json()["email"] == buyer.email
    assert me.json()["role"] == "client"


def test_login_is_case_insensitive_on_email(client, buyer):
    assert _login(client, buyer.email.upper()).status_code == 200


def test_login_rejects_bad_password(client, buyer, db_session):
    response = _login(client, buyer.email, "wrong-password")
    assert response.status_code == 401
    assert response.json()["detail"] == "Incorrect email or password"
    db_session.expire_all()
    assert db_session.query(models.AuditLog).filter_by(action="auth.login_failed").count() == 1


def test_pending_account_cannot_log_in(client, make_user):
    pending = make_user("Pia Pending", status=models.ApprovalStatus.pending)
    response = _login(client, pending.email)
    assert response.status_code == 403
    assert response.json()["detail"] == "Account not approved"


def test_token_of_pending_account_is_refused(client, make_user, auth_headers):
    pending = make_user("Pia Pending", status=models.ApprovalStatus.pending)
    assert client.get("/api/auth/me", headers=auth_headers(pending)).status_code == 401


def test_register_creates_pending_client(client):
    response = client.post(
        "/api/auth/register",
        json={"email": "New.Collector@Example.com", "name": "New Collector", "password": "long-enough-1"},
    )
    assert response.status_code == 201
    body = response.json()
    assert body["email"] == "new.collector@example.com"
    assert body["status"] == "pending"
    assert body["role"] == "client"
    assert _login(client, "new.collector@example.com", "long-enough-1").status_code == 403


def test_register_rejects_duplicate_email(client, buyer):
    response = client.post(
        "/api/auth/register",
        json={"email": buyer.email, "name": "Copy", "password": "long-enough-1"},
    )
    assert response.status_code == 409
    assert response.json()["kind"] == "conflict"


def test_missing_or_garbage_token_is_unauthorized(client):
    assert client.get("/api/auth/me").status_code == 401
    assert client.get("/api/auth/me", headers={"Authorization": "Bearer not-a-jwt"}).status_code == 401


def test_admin_routes_require_admin(client, buyer, admin, auth_headers):
    assert client.get("/api/admin/users", headers=auth_headers(buyer)).status_code == 403
    response = client.get("/api/admin/users", headers=auth_headers(admin))
    assert response.status_code == 200
    assert {u["email"] for u in response.json()} >= {buyer.email, admin.email}


def test_user_scoped_reads_are_self_or_admin(client, buyer, make_user, admin, auth_headers):
    other = make_user("Otto Other")
    assert client.get(f"/api/payments/{buyer.id}", headers=auth_headers(buyer)).status_code == 200
    assert client.get(f"/api/payments/{other.id}", headers=auth_headers(buyer)).status_code == 403
    assert client.get(f"/api/payments/{other.id}", headers=auth_headers(admin)).status_code == 200


def test_admin_reviews_registration(client, admin, auth_headers, db_session):
    created = client.post(
        "/api/auth/register",
        json={"email": "queued@example.com", "name": "Queued", "password": "long-enough-1"},
    ).json()

    response = client.post(
        f"/api/admin/users/{created['id']}/review",
        json={"approve": True},
        headers=auth_headers(admin),
    )

    assert response.status_code == 200
    assert response.json()["status"] == "approved"
    assert _login(client, "queued@example.com", "long-enough-1").status_code == 200


def test_investor_endpoints_are_role_gated(client, buyer, make_user, auth_headers):
    investor = make_user("Ines Investor", role=models.RoleName.investor)
    other_investor = make_user("Igor Investor", role=models.RoleName.investor)

    assert client.get("/api/investor/analytics", headers=auth_headers(buyer)).status_code == 403

    analytics = client.get("/api/investor/analytics", headers=auth_headers(investor))
    assert analytics.status_code == 200
    assert analytics.json()["masterpieces"] == 0

    logged = client.post(
        "/api/investor/log-view", json={"resource": "analytics"}, headers=auth_headers(investor)
    )
    assert logged.status_code == 201
    client.post(
        "/api/investor/log-view", json={"resource": "portfolio"}, headers=auth_headers(other_investor)
    )

    mine = client.get("/api/investor/view-logs", headers=auth_headers(investor)).json()
    assert [entry["resource"] for entry in mine] == ["analytics"]
