from types import SimpleNamespace

from app import models
from app.api.routes.realtime import allowed_topics

STEPS = ("deposit_paid", "production_finished", "final_payment_paid", "delivered", "completed")


def _request_and_sign(client, piece, buyer, auth_headers):
    created = client.post(
        "/api/purchase/request", json={"masterpiece_id": piece.id}, headers=auth_headers(buyer)
    )
    assert created.status_code == 201
    contract = created.json()
    signed = client.post(
        "/api/contracts/sign",
        json={"contract_id": contract["id"], "method": "click"},
        headers=auth_headers(buyer),
    )
    assert signed.status_code == 200
    return signed.json()


def test_purchase_flow_over_http(
    client, db_session, admin, buyer, make_masterpiece, auth_headers, minter
):
    piece = make_masterpiece()

    contract = _request_and_sign(client, piece, buyer, auth_headers)
    assert contract["contract_type"] == "deposit"
    assert contract["doc_ref"].startswith("DEP_001-")
    assert contract["status"] == "signed"

    approved = client.post(
        "/api/admin/purchase/approve",
        json={"masterpiece_id": piece.id, "approve": True},
        headers=auth_headers(admin),
    )
    assert approved.status_code == 200
    assert approved.json()["approved"] is True
    assert approved.json()["workflow"]["status"] == "RESERVED"

    for step in STEPS:
        response = client.post(
            "/api/admin/workflow/advance",
            json={"masterpiece_id": piece.id, "step": step},
            headers=auth_headers(admin),
        )
        assert response.status_code == 200, response.json()

    workflow = client.get(f"/api/workflow/{piece.id}", headers=auth_headers(buyer))
    assert workflow.status_code == 200
    assert workflow.json()["status"] == "COMPLETED"
    assert workflow.json()["completed_at"] is not None
    assert minter.scheduled == [piece.id]

    payments = client.get(f"/api/payments/{buyer.id}", headers=auth_headers(buyer)).json()
    assert sorted((p["payment_type"], p["amount"]) for p in payments) == [
        ("deposit", 10000.0),
        ("full", 90000.0),
    ]

    owned = client.get(f"/api/masterpieces/{piece.id}").json()
    assert owned["status"] == "sold"

    db_session.expire_all()
    assert db_session.get(models.Masterpiece, piece.id).current_owner_id == buyer.id


def test_workflow_is_private_to_buyer(client, make_user, buyer, make_masterpiece, auth_headers, drive_purchase):
    piece = make_masterpiece()
    drive_purchase(piece, buyer)
    stranger = make_user("Sam Stranger")

    assert client.get(f"/api/workflow/{piece.id}", headers=auth_headers(stranger)).status_code == 403
    assert client.get(f"/api/workflow/{piece.id}", headers=auth_headers(buyer)).status_code == 200


def test_contract_pdf_download(client, make_user, buyer, make_masterpiece, auth_headers):
    piece = make_masterpiece()
    contract = _request_and_sign(client, piece, buyer, auth_headers)

    response = client.get(f"/api/contracts/{contract['id']}/pdf", headers=auth_headers(buyer))
    assert response.status_code == 200
    assert response.headers["content-type"] == "application/pdf"
    assert response.content.startswith(b"%PDF-1.4")
    assert contract["doc_ref"] in response.headers["content-disposition"]

    stranger = make_user("Sam Stranger")
    forbidden = client.get(f"/api/contracts/{contract['id']}/pdf", headers=auth_headers(stranger))
    assert forbidden.status_code == 403


def test_domain_errors_have_a_stable_shape(
    client, admin, buyer, make_masterpiece, auth_headers, drive_purchase
):
    piece = make_masterpiece()
    drive_purchase(piece, buyer)

    response = client.post(
        "/api/admin/workflow/advance",
        json={"masterpiece_id": piece.id, "step": "teleport"},
        headers={**auth_headers(admin), "X-Request-ID": "req-123"},
    )
    assert response.status_code == 400
    assert response.json() == {
        "detail": response.json()["detail"],
        "code": "invalid_step",
        "kind": "validation",
        "request_id": "req-123",
    }
    assert response.headers["x-request-id"] == "req-123"

    again = client.post(
        "/api/admin/purchase/approve",
        json={"masterpiece_id": piece.id, "approve": True},
        headers=auth_headers(admin),
    )
    assert again.status_code == 409
    assert again.json()["code"] == "already_approved"
    assert again.json()["kind"] == "conflict"


def test_unavailable_piece_cannot_be_requested_twice(
    client, buyer, make_user, make_masterpiece, auth_headers
):
    piece = make_masterpiece()
    rival = make_user("Rita Rival")
    _request_and_sign(client, piece, buyer, auth_headers)

    response = client.post(
        "/api/purchase/request", json={"masterpiece_id": piece.id}, headers=auth_headers(rival)
    )
    assert response.status_code == 400
    assert response.json()["code"] == "masterpiece_unavailable"


def test_admin_creates_masterpiece_over_http(client, admin, buyer, auth_headers):
    payload = {
        "serial_id": "AV-0500",
        "title": "Orbit Ring",
        "rarity_category": "Rare",
        "materials": "rose gold",
        "gemstones": "ruby",
        "valuation": 25000.0,
    }
    assert client.post("/api/admin/masterpieces", json=payload, headers=auth_headers(buyer)).status_code == 403

    created = client.post("/api/admin/masterpieces", json=payload, headers=auth_headers(admin))
    assert created.status_code == 201
    body = created.json()
    assert body["status"] == "available"
    assert body["deposit_pct"] == 10.0

    provenance = client.get(f"/api/provenance/{body['id']}").json()
    assert [p["event_type"] for p in provenance] == ["creation"]

    duplicate = client.post("/api/admin/masterpieces", json=payload, headers=auth_headers(admin))
    assert duplicate.status_code == 409
    assert duplicate.json()["code"] == "duplicate_serial"


def test_vip_auctions_over_http(client, admin, buyer, vip, make_masterpiece, auth_headers):
    piece = make_masterpiece()
    created = client.post(
        "/api/admin/auctions",
        json={"masterpiece_id": piece.id, "start_price": 500.0, "vip_only": True},
        headers=auth_headers(admin),
    )
    assert created.status_code == 201
    auction_id = created.json()["id"]

    assert client.get("/api/auctions").json() == []
    assert client.get("/api/auctions", headers=auth_headers(buyer)).json() == []
    assert [a["id"] for a in client.get("/api/auctions", headers=auth_headers(vip)).json()] == [auction_id]
    assert client.get(f"/api/auctions/{auction_id}", headers=auth_headers(buyer)).status_code == 404

    low = client.post(
        "/api/auctions/bid", json={"auction_id": auction_id, "amount": 400.0}, headers=auth_headers(vip)
    )
    assert low.status_code == 400
    assert low.json()["code"] == "bid_too_low"

    bid = client.post(
        "/api/auctions/bid", json={"auction_id": auction_id, "amount": 750.0}, headers=auth_headers(vip)
    )
    assert bid.status_code == 201
    assert client.get(f"/api/auctions/{auction_id}", headers=auth_headers(vip)).json()["current_bid"] == 750.0


def test_private_events_filtered_by_vip(client, admin, buyer, vip, auth_headers):
    for title, vip_only in (("Salon Preview", False), ("Vault Night", True)):
        response = client.post(
            "/api/admin/events",
            json={"title": title, "vip_only": vip_only},
            headers=auth_headers(admin),
        )
        assert response.status_code == 201

    assert [e["title"] for e in client.get("/api/events").json()] == ["Salon Preview"]
    assert [e["title"] for e in client.get("/api/events", headers=auth_headers(buyer)).json()] == [
        "Salon Preview"
    ]
    assert {e["title"] for e in client.get("/api/events", headers=auth_headers(vip)).json()} == {
        "Salon Preview",
        "Vault Night",
    }

    vip_event = next(
        e for e in client.get("/api/events", headers=auth_headers(vip)).json() if e["vip_only"]
    )
    hidden = client.post(
        "/api/events/rsvp", json={"event_id": vip_event["id"]}, headers=auth_headers(buyer)
    )
    assert hidden.status_code == 404

    first = client.post(
        "/api/events/rsvp", json={"event_id": vip_event["id"], "guests": 1}, headers=auth_headers(vip)
    )
    second = client.post(
        "/api/events/rsvp",
        json={"event_id": vip_event["id"], "status": "declined"},
        headers=auth_headers(vip),
    )
    assert first.json()["id"] == second.json()["id"]
    assert second.json()["status"] == "declined"


def test_websocket_topics_respect_token_owner():
    client_user = SimpleNamespace(id=4, role=models.RoleName.client)
    admin_user = SimpleNamespace(id=1, role=models.RoleName.admin)

    assert allowed_topics(None, None) == ["all"]
    assert allowed_topics("user:4,masterpiece:2", None) == ["masterpiece:2"]
    assert allowed_topics("user:4,user:5", client_user) == ["user:4"]
    assert allowed_topics("user:5", admin_user) == ["user:5"]
    assert allowed_topics("user:5", client_user) == ["all"]


def test_vip_events_stay_hidden_until_vip_role(client, admin, make_user, auth_headers):
    applicant = make_user("Wanda Hopeful", is_vip=True)
    client.post(
        "/api/admin/events",
        json={"title": "Vault Night", "vip_only": True},
        headers=auth_headers(admin),
    )

    assert client.get("/api/events", headers=auth_headers(applicant)).json() == []


def test_workflow_and_escrow_are_null_before_a_purchase(client, buyer, make_masterpiece, auth_headers):
    piece = make_masterpiece()

    workflow = client.get(f"/api/workflow/{piece.id}", headers=auth_headers(buyer))
    escrow = client.get(f"/api/escrow/{piece.id}", headers=auth_headers(buyer))

    assert workflow.status_code == 200
    assert workflow.json() is None
    assert escrow.status_code == 200
    assert escrow.json() is None
