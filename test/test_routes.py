from _helper import ADMIN, CUSTOMER, OTHER_CUSTOMER, headers, new_order_body


def _place(api, actor=CUSTOMER, **overrides) -> dict:
    resp = api.post("/orders", json=new_order_body(**overrides), headers=headers(actor))
    assert resp.status_code == 201, resp.text
    return resp.json()


def test_health(api):
    assert api.get("/health").json() == {"status": "ok"}


def test_place_order(api):
    order = _place(api)
    assert order["status"] == "awaiting_approval"
    assert order["adminApproval"]["status"] == "pending"
    assert order["category"] == "ongoing"
    assert order["customerId"] == CUSTOMER.id
    assert order["totalAmount"] == 100.0
    assert len(order["timeline"]) == 1


def test_approve_advance_and_cancel_scenario(api):
    order = _place(api)
    oid = order["id"]

    resp = api.post(f"/admin/orders/{oid}/approve", json={"remarks": ""}, headers=headers(ADMIN))
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "confirmed"
    assert body["adminApproval"]["status"] == "approved"
    assert body["adminApproval"]["decidedBy"]["id"] == ADMIN.id

    resp = api.patch(f"/admin/orders/{oid}/status", json={"status": "shipped"}, headers=headers(ADMIN))
    assert resp.status_code == 409
    assert resp.json()["error"] == "InvalidTransition"
    assert resp.json()["category"] == "state_conflict"

    resp = api.patch(f"/admin/orders/{oid}/status", json={"status": "processing"}, headers=headers(ADMIN))
    assert resp.status_code == 200
    assert resp.json()["status"] == "processing"
    assert [e["status"] for e in resp.json()["timeline"]] == ["awaiting_approval", "confirmed", "processing"]

    resp = api.post(f"/orders/{oid}/cancel", json={"reason": "changed mind"}, headers=headers(CUSTOMER))
    assert resp.status_code == 409
    assert resp.json()["error"] == "NotCancellable"


def test_reject_scenario(api):
    oid = _place(api)["id"]

    resp = api.post(f"/admin/orders/{oid}/reject", json={"remarks": ""}, headers=headers(ADMIN))
    assert resp.status_code == 422
    assert resp.json() == {
        "error": "ReasonRequired",
        "category": "validation",
        "detail": "A non-empty rejection reason is required",
    }

    resp = api.post(f"/admin/orders/{oid}/reject", json={"remarks": "out of stock"}, headers=headers(ADMIN))
    assert resp.status_code == 200
    assert resp.json()["status"] == "rejected"
    assert resp.json()["adminApproval"]["remarks"] == "out of stock"
    assert resp.json()["category"] == "cancelled"

    resp = api.post(f"/admin/orders/{oid}/approve", headers=headers(ADMIN))
    assert resp.status_code == 409
    assert resp.json()["error"] == "NotPending"


def test_approve_without_body(api):
    oid = _place(api)["id"]
    resp = api.post(f"/admin/orders/{oid}/approve", headers=headers(ADMIN))
    assert resp.status_code == 200
    assert resp.json()["adminApproval"]["remarks"] is None


def test_reject_and_cancel_without_body_need_a_reason(api):
    oid = _place(api)["id"]
    resp = api.post(f"/admin/orders/{oid}/reject", headers=headers(ADMIN))
    assert resp.status_code == 422
    assert resp.json()["error"] == "ReasonRequired"

    resp = api.post(f"/orders/{oid}/cancel", headers=headers(CUSTOMER))
    assert resp.status_code == 422
    assert resp.json()["error"] == "ReasonRequired"

    assert api.get(f"/orders/{oid}", headers=headers(CUSTOMER)).json()["status"] == "awaiting_approval"


def test_customer_cancels_with_reason(api):
    oid = _place(api)["id"]
    resp = api.post(f"/orders/{oid}/cancel", json={"reason": "  "}, headers=headers(CUSTOMER))
    assert resp.status_code == 422
    assert resp.json()["error"] == "ReasonRequired"

    resp = api.post(f"/orders/{oid}/cancel", json={"reason": "found it cheaper"}, headers=headers(CUSTOMER))
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"
    assert resp.json()["adminApproval"]["status"] == "withdrawn"
    assert resp.json()["timeline"][-1]["note"] == "found it cheaper"


def test_authorization_errors(api):
    oid = _place(api)["id"]
    resp = api.post(f"/admin/orders/{oid}/approve", headers=headers(CUSTOMER))
    assert resp.status_code == 403
    assert resp.json()["error"] == "Forbidden"

    resp = api.post(f"/orders/{oid}/cancel", json={"reason": "mine now"}, headers=headers(OTHER_CUSTOMER))
    assert resp.status_code == 403

    assert api.get(f"/orders/{oid}", headers=headers(OTHER_CUSTOMER)).status_code == 403
    assert api.get("/admin/orders", headers=headers(CUSTOMER)).status_code == 403
    assert api.get("/admin/dashboard/stats", headers=headers(CUSTOMER)).status_code == 403


def test_bad_requests(api):
    oid = _place(api)["id"]
    api.post(f"/admin/orders/{oid}/approve", headers=headers(ADMIN))

    resp = api.patch(f"/admin/orders/{oid}/status", json={"status": "teleported"}, headers=headers(ADMIN))
    assert resp.status_code == 422
    assert resp.json()["error"] == "InvalidStatus"

    resp = api.get("/orders")
    assert resp.status_code == 422
    assert resp.json()["error"] == "InvalidRequest"

    resp = api.get("/orders/nope", headers=headers(ADMIN))
    assert resp.status_code == 404
    assert resp.json()["error"] == "OrderNotFound"


def test_listing_and_filters(api):
    a = _place(api, orderNumber="ORD-A")
    b = _place(api, actor=OTHER_CUSTOMER, orderNumber="ORD-B", customerName="Bob Smith", customerEmail="bob@example.com")
    api.post(f"/admin/orders/{b['id']}/reject", json={"remarks": "fraud"}, headers=headers(ADMIN))

    mine = api.get("/orders", headers=headers(CUSTOMER)).json()
    assert mine["total"] == 1
    assert mine["orders"][0]["id"] == a["id"]

    everything = api.get("/admin/orders", headers=headers(ADMIN)).json()
    assert everything["total"] == 2

    cancelled = api.get("/admin/orders", params={"category": "cancelled"}, headers=headers(ADMIN)).json()
    assert [o["id"] for o in cancelled["orders"]] == [b["id"]]

    found = api.get("/admin/orders", params={"search": "BOB@"}, headers=headers(ADMIN)).json()
    assert [o["id"] for o in found["orders"]] == [b["id"]]

    pending = api.get("/orders", params={"status": "awaiting_approval"}, headers=headers(CUSTOMER)).json()
    assert pending["total"] == 1


def test_timeline_endpoint(api):
    oid = _place(api)["id"]
    api.post(f"/admin/orders/{oid}/approve", json={"remarks": "looks good"}, headers=headers(ADMIN))
    for view in ("full", "display"):
        resp = api.get(f"/orders/{oid}/timeline", params={"view": view}, headers=headers(CUSTOMER))
        assert resp.status_code == 200
        assert [e["status"] for e in resp.json()] == ["confirmed", "awaiting_approval"]
        assert resp.json()[0]["note"] == "looks good"


def test_dashboard_stats(api):
    first = _place(api, orderNumber="ORD-1", totalAmount=100)
    _place(api, orderNumber="ORD-2", totalAmount=40)
    oid = first["id"]
    api.post(f"/admin/orders/{oid}/approve", headers=headers(ADMIN))
    for status in ("processing", "shipped", "delivered"):
        assert api.patch(f"/admin/orders/{oid}/status", json={"status": status}, headers=headers(ADMIN)).status_code == 200

    resp = api.patch(f"/admin/orders/{oid}/status", json={"status": "delivered"}, headers=headers(ADMIN))
    assert resp.status_code == 409
    assert resp.json()["error"] == "AlreadyTerminal"

    stats = api.get("/admin/dashboard/stats", headers=headers(ADMIN)).json()
    assert stats == {
        "totalOrders": 2,
        "pendingApprovals": 1,
        "ordersByStatus": {"delivered": 1, "awaiting_approval": 1},
        "ordersByCategory": {"completed": 1, "ongoing": 1},
        "revenue": {"totalRevenue": 100.0, "averageOrderValue": 100.0, "deliveredOrders": 1},
    }


def test_metrics_endpoint(api):
    oid = _place(api)["id"]
    api.post(f"/admin/orders/{oid}/approve", headers=headers(ADMIN))
    resp = api.get("/metrics")
    assert resp.status_code == 200
    assert "order_transitions_total" in resp.text
