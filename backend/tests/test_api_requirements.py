import pytest
from fastapi.testclient import TestClient

from backend.app.api.deps import get_db
from backend.app.main import app

HEADERS = {"X-User-Id": "u-42"}


@pytest.fixture
def client(session_factory, parties):
    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    try:
        with TestClient(app) as c:
            yield c
    finally:
        app.dependency_overrides.clear()


def _create(client, *lines, **fields):
    payload = {
        "lines": [
            {"product_id": pid, "sku": f"SKU-{pid}", "requested_quantity": qty}
            for pid, qty in (lines or [("A", 10)])
        ],
        **fields,
    }
    r = client.post("/v1/requirements", json=payload, headers=HEADERS)
    assert r.status_code == 201, r.text
    return r.json()


def _assign(client, req_id, party="VIA-001", **qty):
    return client.post(
        f"/v1/requirements/{req_id}/assignments",
        json={
            "party_id": party,
            "lines": [{"product_id": pid, "quantity": q} for pid, q in qty.items()],
        },
        headers=HEADERS,
    )


def test_health(client):
    r = client.get("/v1/health")
    assert r.status_code == 200
    assert r.json() == {"ok": True}


def test_create_and_get(client):
    body = _create(client, ("A", 5), ("B", 2), priority="urgente")

    assert body["number"].startswith("REQ-")
    assert body["state"] == "pendiente"
    assert body["priority"] == "urgente"
    assert body["created_by"] == "u-42"
    assert body["lines"][0]["pending"] == 5

    r = client.get(f"/v1/requirements/{body['id']}")
    assert r.status_code == 200
    assert r.json()["number"] == body["number"]


def test_unknown_requirement_is_404(client):
    r = client.get("/v1/requirements/nope")
    assert r.status_code == 404
    assert "not found" in r.json()["detail"]


def test_duplicate_product_is_422(client):
    r = client.post(
        "/v1/requirements",
        json={
            "lines": [
                {"product_id": "A", "sku": "A", "requested_quantity": 1},
                {"product_id": "A", "sku": "A", "requested_quantity": 2},
            ]
        },
    )
    assert r.status_code == 422
    assert r.json()["details"] == {"product_id": "A"}


def test_assign_over_pending_is_409(client):
    req = _create(client, ("A", 5))

    r = _assign(client, req["id"], A=6)

    assert r.status_code == 409
    body = r.json()
    assert (body["product_id"], body["pending"], body["requested"]) == ("A", 5, 6)


def test_assignment_flow_to_completion(client):
    req = _create(client, ("A", 4))
    r = _assign(client, req["id"], A=4)
    assert r.status_code == 201
    asg = r.json()
    assert asg["state"] == "pendiente"
    assert asg["estimated_arrival_date"] is not None

    base = f"/v1/requirements/{req['id']}/assignments/{asg['id']}"
    r = client.post(
        f"{base}/purchase-order",
        json={"purchase_order_id": "oc-1", "purchase_order_number": "OC-1"},
        headers=HEADERS,
    )
    assert r.status_code == 200
    assert r.json()["assignments"][0]["state"] == "comprado"

    r = client.post(
        f"{base}/transfer",
        json={"transfer_id": "t-1", "transfer_number": "TRF-1"},
        headers=HEADERS,
    )
    assert r.json()["assignments"][0]["state"] == "en_transito"

    r = client.post(
        f"{base}/receipt",
        json={"lines": [{"product_id": "A", "received_quantity": 4}]},
        headers=HEADERS,
    )
    body = r.json()
    assert r.status_code == 200
    assert body["state"] == "completado"
    assert body["summary"]["percent_complete"] == 100

    r = client.post(f"{base}/cancel", json={"reason": "late"}, headers=HEADERS)
    assert r.status_code == 409
    assert r.json()["detail"] == "cannot cancel a received assignment"


def test_patch_assignment_and_cancel(client):
    req = _create(client, ("A", 10))
    asg = _assign(client, req["id"], A=10).json()
    base = f"/v1/requirements/{req['id']}/assignments/{asg['id']}"

    r = client.patch(
        base,
        json={"received_lines": [{"product_id": "A", "received_quantity": 3}]},
        headers=HEADERS,
    )
    assert r.status_code == 200
    assert r.json()["lines"][0]["received"] == 3

    r = client.post(f"{base}/cancel", json={"reason": "sick"}, headers=HEADERS)
    line = r.json()["lines"][0]
    assert (line["received"], line["pending"]) == (3, 7)


def test_approve_twice_is_409(client):
    req = _create(client)

    assert client.post(f"/v1/requirements/{req['id']}/approve").status_code == 200
    assert client.post(f"/v1/requirements/{req['id']}/approve").status_code == 409


def test_summaries_stats_and_party_view(client):
    req = _create(client, ("A", 3))
    _create(client, ("B", 1))
    _assign(client, req["id"], A=1)

    summaries = client.get("/v1/requirements/summaries").json()
    assert len(summaries) == 2

    filtered = client.get("/v1/requirements", params={"party_id": "VIA-001"}).json()
    assert [r["id"] for r in filtered] == [req["id"]]

    stats = client.get("/v1/requirements/stats").json()
    assert stats["total"] == 2
    assert stats["partially_assigned"] == 1

    party = client.get("/v1/parties/VIA-001/requirements").json()
    assert [p["number"] for p in party] == [req["number"]]
    assert party[0]["responsible_parties"] == ["Viajero Miami"]


def test_patch_cancel_and_empty_receipt_are_422(client):
    req = _create(client, ("A", 4))
    asg = _assign(client, req["id"], A=4).json()
    base = f"/v1/requirements/{req['id']}/assignments/{asg['id']}"

    r = client.patch(base, json={"state": "cancelado"}, headers=HEADERS)
    assert r.status_code == 422
    assert r.json()["details"] == {"assignment_id": asg["id"]}

    r = client.post(f"{base}/receipt", json={"lines": []}, headers=HEADERS)
    assert r.status_code == 422

    r = client.post(f"{base}/cancel", json={"reason": "reassign"}, headers=HEADERS)
    assert r.status_code == 200
    assert r.json()["lines"][0]["pending"] == 4
