from stockledger.models.user import User


def _create_item(client, name="Luva", quantity=0, **extra):
    resp = client.post("/api/v1/items", json={"name": name, "quantity": quantity, "unit": "cx", **extra})
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_item_crud_and_audit_trail(client):
    item = _create_item(client, "Luva Nitrilica", code="EPI-001")

    resp = client.patch(f"/api/v1/items/{item['id']}", json={"category": "EPI"})
    assert resp.status_code == 200
    assert resp.json()["category"] == "EPI"

    history = client.get(f"/api/v1/items/{item['id']}/movements").json()
    assert [m["type"] for m in history] == ["audit"]
    assert history[0]["item_name"] == "Luva Nitrilica"

    assert client.delete(f"/api/v1/items/{item['id']}").status_code == 204
    assert client.get(f"/api/v1/items/{item['id']}").status_code == 404

    orphaned = client.get(f"/api/v1/items/{item['id']}/movements").json()
    assert len(orphaned) == 1
    assert orphaned[0]["item_name"] is None


def test_search_and_next_code(client):
    _create_item(client, "Luva", code="EPI-001")
    _create_item(client, "Mascara", code="EPI-002")

    found = client.get("/api/v1/items", params={"search_term": "lu"}).json()
    assert [i["name"] for i in found] == ["Luva"]
    assert client.get("/api/v1/items/next-code", params={"prefix": "EPI"}).json() == {"code": "EPI-003"}


def test_ledger_roundtrip_and_insufficient_stock(client):
    item = _create_item(client)

    resp = client.post(
        "/api/v1/ledger/entries",
        json={"items": [{"item_id": item["id"], "quantity": 5}], "supplier": "Distribuidora Norte"},
    )
    assert resp.status_code == 201
    assert resp.json()[0]["type"] == "entry"

    exit_body = {
        "items": [{"item_id": item["id"], "quantity": 9}],
        "requester": {"name": "Ana", "code": "4471"},
        "department": "UTI",
    }
    resp = client.post("/api/v1/ledger/exits", json=exit_body)
    assert resp.status_code == 409
    assert resp.json()["error"] == "insufficient_stock"

    exit_body["items"][0]["quantity"] = 5
    assert client.post("/api/v1/ledger/exits", json=exit_body).status_code == 201
    assert client.get(f"/api/v1/items/{item['id']}").json()["quantity"] == 0

    resp = client.post(
        "/api/v1/ledger/returns", json={"items": [{"item_id": item["id"], "quantity": 2}], "department": "UTI"}
    )
    assert resp.status_code == 201
    assert client.get(f"/api/v1/items/{item['id']}").json()["quantity"] == 2


def test_unknown_item_in_batch_is_404(client):
    resp = client.post(
        "/api/v1/ledger/entries", json={"items": [{"item_id": "ghost", "quantity": 1}], "supplier": "X"}
    )
    assert resp.status_code == 404
    assert resp.json()["error"] == "not_found"


def test_movement_filters_accept_all_and_reject_unknown(client):
    item = _create_item(client)
    client.post("/api/v1/ledger/entries", json={"items": [{"item_id": item["id"], "quantity": 3}], "supplier": "X"})

    resp = client.get("/api/v1/movements", params={"movement_type": "all", "department": "all"})
    assert resp.status_code == 200
    assert len(resp.json()) == 1

    resp = client.get("/api/v1/movements", params={"movement_type": "teleport"})
    assert resp.status_code == 422


def test_movement_pages(client):
    item = _create_item(client)
    for _ in range(3):
        client.post("/api/v1/ledger/entries", json={"items": [{"item_id": item["id"], "quantity": 1}], "supplier": "X"})

    first = client.get("/api/v1/movements/page", params={"page_size": 2}).json()
    assert len(first["items"]) == 2
    second = client.get("/api/v1/movements/page", params={"page_size": 2, "cursor": first["next_cursor"]}).json()
    assert len(second["items"]) == 1
    assert second["next_cursor"] is None

    assert client.get("/api/v1/movements/page", params={"cursor": "garbage!"}).status_code == 422


def test_request_workflow_over_http(client, db):
    item = _create_item(client, quantity=10)
    req = client.post(
        "/api/v1/requests",
        json={"requester": {"name": "Ana"}, "department": "UTI", "items": [{"item_id": item["id"], "quantity": 4}]},
    ).json()
    assert req["status"] == "pending"

    pending = client.get("/api/v1/requests/pending").json()
    assert [r["id"] for r in pending] == [req["id"]]

    assert client.post(f"/api/v1/requests/{req['id']}/approve").json()["awaiting_fulfillment"] is True
    assert client.post(f"/api/v1/requests/{req['id']}/approve").status_code == 409

    draft = client.get(f"/api/v1/requests/{req['id']}/exit-draft").json()
    assert client.post("/api/v1/ledger/exits", json=draft).status_code == 201

    done = client.get(f"/api/v1/requests/{req['id']}").json()
    assert done["awaiting_fulfillment"] is False
    assert done["fulfilled_by"] == "clerk@example.org"
    assert client.get(f"/api/v1/items/{item['id']}").json()["quantity"] == 6

    history = client.get("/api/v1/requests/history").json()
    assert [r["id"] for r in history["items"]] == [req["id"]]


def test_reject_without_reason_is_422(client):
    item = _create_item(client)
    req = client.post(
        "/api/v1/requests",
        json={"requester": {"name": "Ana"}, "department": "UTI", "items": [{"item_id": item["id"], "quantity": 1}]},
    ).json()
    resp = client.post(f"/api/v1/requests/{req['id']}/reject", json={"reason": ""})
    assert resp.status_code == 422
    assert resp.json()["error"] == "validation_error"


def test_requesters_cannot_move_stock(client, db):
    item = _create_item(client)
    requester = User(username="ana@example.org", password_hash="x", role="requester", tenant_id="sec-health")
    db.add(requester)
    db.commit()
    client.current["user"] = requester

    resp = client.post("/api/v1/ledger/entries", json={"items": [{"item_id": item["id"], "quantity": 1}], "supplier": "X"})
    assert resp.status_code == 403


def test_upload_empty_payload_returns_placeholder(client):
    resp = client.post("/api/v1/uploads/images", json={"base64": "", "file_name": "x.png"})
    assert resp.status_code == 201
    assert resp.json()["url"].startswith("https://placehold.co/")


def test_missing_and_foreign_resources_are_typed_404s(client, db):
    assert client.get("/api/v1/items/ghost").json()["error"] == "not_found"
    assert client.get("/api/v1/requests/ghost").json()["error"] == "not_found"

    item = _create_item(client)
    req = client.post(
        "/api/v1/requests",
        json={"requester": {"name": "Ana"}, "department": "UTI", "items": [{"item_id": item["id"], "quantity": 1}]},
    ).json()

    outsider = User(username="op@example.org", password_hash="x", role="operator", tenant_id="sec-education")
    db.add(outsider)
    db.commit()
    client.current["user"] = outsider

    for resp in (
        client.get(f"/api/v1/requests/{req['id']}"),
        client.post(f"/api/v1/requests/{req['id']}/approve"),
        client.get(f"/api/v1/requests/{req['id']}/exit-draft"),
    ):
        assert resp.status_code == 404
        assert resp.json()["error"] == "not_found"
