"""
Product API tests: catalog reads, admin updates with restock notification,
featured curation.
"""
import pytest
from unittest.mock import patch

from app.models import StockAlert

from conftest import auth_headers, make_product


class TestPublicEndpoints:
    @pytest.mark.asyncio
    async def test_root(self, client):
        resp = await client.get("/")

        assert resp.status_code == 200
        assert resp.json()["message"] == "NexusMart API"
        assert resp.json()["status"] == "operational"

    @pytest.mark.asyncio
    async def test_health_reports_cleanup_heartbeat(self, client):
        resp = await client.get("/health")

        assert resp.status_code == 200
        body = resp.json()
        assert body["database"] == "connected"
        assert set(body["alert_cleanup"]) == {"last_run", "last_success", "records_processed", "errors"}

    @pytest.mark.asyncio
    async def test_list_and_filter(self, client, db):
        await make_product(db, "A", name="Alpha Cable", stock=5, status="active", price=5)
        await make_product(db, "B", name="Beta Dock", stock=0, price=50)

        resp = await client.get("/api/products?in_stock=true")
        assert resp.status_code == 200
        assert [p["sku"] for p in resp.json()["products"]] == ["A"]

        resp = await client.get("/api/products?sort=price_desc")
        assert [p["sku"] for p in resp.json()["products"]] == ["B", "A"]
        assert resp.json()["total"] == 2

        resp = await client.get("/api/products?search=dock")
        assert [p["sku"] for p in resp.json()["products"]] == ["B"]

    @pytest.mark.asyncio
    async def test_get_missing_product(self, client):
        resp = await client.get("/api/products/999")

        assert resp.status_code == 404
        assert resp.json()["code"] == "PRODUCT_NOT_FOUND"

    @pytest.mark.asyncio
    async def test_trending(self, client, db):
        await make_product(db, "LOW", stock=5, status="active", trending_score=1.0)
        await make_product(db, "HIGH", stock=5, status="active", trending_score=8.0)

        resp = await client.get("/api/products/trending?limit=1")

        assert resp.status_code == 200
        assert resp.json()["count"] == 1
        assert resp.json()["products"][0]["sku"] == "HIGH"


class TestAdminEndpoints:
    @pytest.mark.asyncio
    async def test_create_requires_admin(self, client, user):
        resp = await client.post(
            "/api/products",
            json={"sku": "NEW", "name": "New", "category": "gadgets", "price": 10},
            headers=auth_headers(user),
        )
        assert resp.status_code == 403

    @pytest.mark.asyncio
    async def test_create_sets_status_from_stock(self, client, admin):
        resp = await client.post(
            "/api/products",
            json={"sku": "NEW", "name": "New", "category": "gadgets", "price": 10},
            headers=auth_headers(admin),
        )

        assert resp.status_code == 201
        assert resp.json()["status"] == "out_of_stock"

    @pytest.mark.asyncio
    async def test_duplicate_sku_is_400(self, client, db, admin):
        await make_product(db, "DUP")

        resp = await client.post(
            "/api/products",
            json={"sku": "DUP", "name": "Dup", "category": "gadgets", "price": 10},
            headers=auth_headers(admin),
        )
        assert resp.status_code == 400

    @pytest.mark.asyncio
    async def test_restock_via_patch_notifies_and_audits(self, client, session_factory, product, admin):
        await client.post("/api/stock-alerts", json={"productId": product.id, "email": "a@x.com"})

        with patch("app.api.routes.products.log_admin_action") as audit:
            resp = await client.patch(
                f"/api/products/{product.id}", json={"stock": 8}, headers=auth_headers(admin)
            )

        assert resp.status_code == 200
        assert resp.json()["status"] == "active"
        assert resp.json()["stock"] == 8
        assert audit.call_args.kwargs["details"]["alerts_notified"] == 1

        async with session_factory() as session:
            alert = (await session.execute(
                StockAlert.__table__.select().where(StockAlert.product_id == product.id)
            )).one()
            assert alert.is_notified

    @pytest.mark.asyncio
    async def test_delete(self, client, product, admin):
        resp = await client.delete(f"/api/products/{product.id}", headers=auth_headers(admin))
        assert resp.status_code == 204

        resp = await client.get(f"/api/products/{product.id}")
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_curate_featured_is_idempotent(self, client, db, admin):
        await make_product(db, "P1", stock=5, status="active", trending_score=3.0)
        await make_product(db, "P2", stock=5, status="active", trending_score=2.0)
        await make_product(db, "P3", stock=5, status="active", trending_score=1.0, featured=True)

        first = await client.post("/api/products/admin/curate-featured?limit=2", headers=auth_headers(admin))
        second = await client.post("/api/products/admin/curate-featured?limit=2", headers=auth_headers(admin))

        assert first.json() == {"success": True, "featured_count": 2, "flags_set": 2, "flags_cleared": 1}
        assert second.json() == {"success": True, "featured_count": 2, "flags_set": 0, "flags_cleared": 0}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("field_name", ["stock", "name", "category", "price"])
    async def test_patch_null_required_field_is_422(self, client, product, admin, field_name):
        resp = await client.patch(
            f"/api/products/{product.id}", json={field_name: None}, headers=auth_headers(admin)
        )

        assert resp.status_code == 422
        assert resp.json()["code"] == "VALIDATION_ERROR"
        assert resp.json()["errors"][0]["field"] == field_name

        resp = await client.get(f"/api/products/{product.id}")
        assert resp.json()["name"] == "Nexus Headphones"
        assert resp.json()["stock"] == 0

    @pytest.mark.asyncio
    async def test_patch_null_optional_field_clears_it(self, client, db, admin):
        item = await make_product(db, "DESC", description="Old copy")

        resp = await client.patch(
            f"/api/products/{item.id}", json={"description": None}, headers=auth_headers(admin)
        )

        assert resp.status_code == 200
        assert resp.json()["description"] is None
