"""
Stock alert API tests against the FastAPI app with an in-memory database.
"""
import pytest
from sqlalchemy import select

from app.models import StockAlert

from conftest import auth_headers, make_product


async def _subscribe(client, product_id, email="a@x.com", headers=None, **extra):
    body = {"productId": product_id, "email": email, **extra}
    return await client.post("/api/stock-alerts", json=body, headers=headers or {})


class TestSubscribeEndpoint:
    @pytest.mark.asyncio
    async def test_full_lifecycle(self, client, db, product, user, admin):
        """subscribe → 201, again → 200 same id, restock + notify, check → false."""
        headers = auth_headers(user)

        first = await _subscribe(client, product.id, "a@x.com", headers)
        assert first.status_code == 201
        alert_id = first.json()["alert"]["id"]

        second = await _subscribe(client, product.id, "a@x.com", headers)
        assert second.status_code == 200
        assert second.json()["alert"]["id"] == alert_id

        product.stock = 3
        await db.commit()
        notify = await client.post(f"/api/stock-alerts/admin/notify/{product.id}", headers=auth_headers(admin))
        assert notify.status_code == 200
        assert notify.json()["notifiedCount"] == 1

        check = await client.get(f"/api/stock-alerts/check/{product.id}", headers=headers)
        assert check.status_code == 200
        assert check.json()["isSubscribed"] is False
        assert check.json()["alert"] is None

    @pytest.mark.asyncio
    async def test_response_uses_camel_case(self, client, product):
        resp = await _subscribe(client, product.id, notifyVia=["email", "sms"], phone="555-0100")

        assert resp.status_code == 201
        body = resp.json()
        assert body["success"] is True
        alert = body["alert"]
        assert alert["productId"] == product.id
        assert alert["notifyVia"] == ["email", "sms"]
        assert alert["isNotified"] is False
        assert alert["product"]["name"] == "Nexus Headphones"

    @pytest.mark.asyncio
    async def test_accepts_snake_case_body(self, client, product):
        resp = await client.post(
            "/api/stock-alerts",
            json={"product_id": product.id, "email": "snake@x.com", "notify_via": ["push"]},
        )

        assert resp.status_code == 201
        assert resp.json()["alert"]["notifyVia"] == ["push"]

    @pytest.mark.asyncio
    async def test_missing_product_is_404_and_writes_nothing(self, client, session_factory):
        resp = await _subscribe(client, 9999)

        assert resp.status_code == 404
        assert resp.json() == {"success": False, "message": "Product not found", "code": "PRODUCT_NOT_FOUND"}
        async with session_factory() as session:
            assert (await session.execute(select(StockAlert))).scalars().all() == []

    @pytest.mark.asyncio
    async def test_invalid_email_is_422(self, client, product):
        resp = await _subscribe(client, product.id, "not-an-email")
        assert resp.status_code == 422
        body = resp.json()
        assert body["success"] is False
        assert body["code"] == "VALIDATION_ERROR"
        assert body["message"].startswith("email:")
        assert "detail" not in body

    @pytest.mark.asyncio
    async def test_empty_channel_list_is_422(self, client, product):
        resp = await _subscribe(client, product.id, notifyVia=[])
        assert resp.status_code == 422
        assert resp.json()["errors"][0]["field"] == "notifyVia"

    @pytest.mark.asyncio
    async def test_anonymous_without_email_is_400(self, client, product):
        resp = await client.post("/api/stock-alerts", json={"productId": product.id})

        assert resp.status_code == 400
        assert resp.json()["code"] == "INVALID_SUBSCRIPTION"

    @pytest.mark.asyncio
    async def test_signed_in_without_email_uses_account(self, client, product, user):
        resp = await client.post("/api/stock-alerts", json={"productId": product.id}, headers=auth_headers(user))

        assert resp.status_code == 201
        assert resp.json()["alert"]["email"] == "ana@example.com"
        assert resp.json()["alert"]["userId"] == user.id

    @pytest.mark.asyncio
    async def test_put_rearms_notified_alert(self, client, db, product, admin):
        await _subscribe(client, product.id)
        product.stock = 3
        await db.commit()
        await client.post(f"/api/stock-alerts/admin/notify/{product.id}", headers=auth_headers(admin))

        resp = await client.put("/api/stock-alerts", json={"productId": product.id, "email": "a@x.com"})

        assert resp.status_code == 200
        assert resp.json()["alert"]["isNotified"] is False
        assert resp.json()["alert"]["notifiedAt"] is None


class TestOwnedAlerts:
    @pytest.mark.asyncio
    async def test_my_alerts_requires_auth(self, client):
        resp = await client.get("/api/stock-alerts/my-alerts")

        assert resp.status_code == 401
        assert resp.json()["success"] is False
        assert resp.json()["code"] == "HTTP_401"

    @pytest.mark.asyncio
    async def test_invalid_token_is_401(self, client):
        resp = await client.get("/api/stock-alerts/my-alerts", headers={"Authorization": "Bearer nope"})

        assert resp.status_code == 401
        assert resp.json()["message"] == "Invalid or expired token"

    @pytest.mark.asyncio
    async def test_my_alerts_lists_only_own(self, client, product, user, other_user):
        await _subscribe(client, product.id, "ana@example.com", auth_headers(user))
        await _subscribe(client, product.id, "ben@example.com", auth_headers(other_user))

        resp = await client.get("/api/stock-alerts/my-alerts", headers=auth_headers(user))

        assert resp.status_code == 200
        body = resp.json()
        assert body["count"] == 1
        assert body["alerts"][0]["email"] == "ana@example.com"
        assert body["alerts"][0]["product"]["stock"] == 0

    @pytest.mark.asyncio
    async def test_delete_by_owner(self, client, product, user):
        created = await _subscribe(client, product.id, "ana@example.com", auth_headers(user))
        alert_id = created.json()["alert"]["id"]

        resp = await client.delete(f"/api/stock-alerts/{alert_id}", headers=auth_headers(user))

        assert resp.status_code == 200
        check = await client.get(f"/api/stock-alerts/check/{product.id}", headers=auth_headers(user))
        assert check.json()["isSubscribed"] is False

    @pytest.mark.asyncio
    async def test_delete_by_other_user_is_403(self, client, session_factory, product, user, other_user):
        created = await _subscribe(client, product.id, "ana@example.com", auth_headers(user))
        alert_id = created.json()["alert"]["id"]

        resp = await client.delete(f"/api/stock-alerts/{alert_id}", headers=auth_headers(other_user))

        assert resp.status_code == 403
        assert resp.json()["code"] == "STOCK_ALERT_FORBIDDEN"
        async with session_factory() as session:
            alert = await session.get(StockAlert, alert_id)
            assert alert is not None
            assert alert.user_id == user.id

    @pytest.mark.asyncio
    async def test_delete_missing_is_404(self, client, user):
        resp = await client.delete("/api/stock-alerts/12345", headers=auth_headers(user))
        assert resp.status_code == 404


class TestAdminEndpoints:
    @pytest.mark.asyncio
    async def test_admin_routes_reject_shoppers(self, client, product, user):
        resp = await client.get("/api/stock-alerts/admin/all", headers=auth_headers(user))
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_notify_out_of_stock_product_is_400(self, client, product, admin):
        await _subscribe(client, product.id)

        resp = await client.post(f"/api/stock-alerts/admin/notify/{product.id}", headers=auth_headers(admin))

        assert resp.status_code == 400
        assert resp.json()["code"] == "PRODUCT_OUT_OF_STOCK"

    @pytest.mark.asyncio
    async def test_all_and_popular(self, client, db, product, user, admin):
        other = await make_product(db, "NX-900", name="Nexus Watch")
        await _subscribe(client, product.id, "a@x.com", auth_headers(user))
        await _subscribe(client, product.id, "b@x.com")
        await _subscribe(client, other.id, "a@x.com")

        all_resp = await client.get("/api/stock-alerts/admin/all?limit=2", headers=auth_headers(admin))
        assert all_resp.status_code == 200
        assert all_resp.json()["total"] == 3
        assert all_resp.json()["pages"] == 2
        assert all_resp.json()["count"] == 2
        for_product = await client.get(
            f"/api/stock-alerts/admin/all?product_id={product.id}", headers=auth_headers(admin)
        )
        owners = {a["email"]: a["user"] for a in for_product.json()["alerts"]}
        assert owners["a@x.com"] == {"id": user.id, "name": "Ana", "email": "ana@example.com"}
        assert owners["b@x.com"] is None

        popular = await client.get("/api/stock-alerts/admin/popular", headers=auth_headers(admin))
        products = popular.json()["products"]
        assert products[0]["productId"] == product.id
        assert products[0]["alertCount"] == 2
        assert products[1]["product"]["name"] == "Nexus Watch"

    @pytest.mark.asyncio
    async def test_cleanup(self, client, admin):
        resp = await client.delete("/api/stock-alerts/admin/cleanup?days_old=30", headers=auth_headers(admin))

        assert resp.status_code == 200
        assert resp.json()["deletedCount"] == 0
