"""
Error envelope and sanitization tests.
"""
import json

import pytest
from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from httpx import ASGITransport, AsyncClient

from app.core.error_handler import (
    ErrorSanitizationMiddleware,
    domain_error_handler,
    http_exception_handler,
    validation_exception_handler,
    is_sensitive_error,
    sanitize_error_message,
)
from app.core.exceptions import (
    NexusMartError,
    ProductNotFoundError,
    StockAlertForbiddenError,
    ProductOutOfStockError,
    NotificationError,
)


def _app() -> FastAPI:
    app = FastAPI()
    app.add_exception_handler(NexusMartError, domain_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_middleware(ErrorSanitizationMiddleware)

    @app.get("/missing")
    async def missing():
        raise ProductNotFoundError(7)

    @app.get("/teapot")
    async def teapot():
        raise HTTPException(status_code=418, detail="I'm a teapot")

    @app.get("/alerts")
    async def alerts(page: int):
        return {"page": page}

    @app.get("/boom")
    async def boom():
        raise RuntimeError("sqlalchemy.exc.OperationalError: connection to postgresql failed")

    return app


class TestExceptionHierarchy:
    def test_status_codes(self):
        assert ProductNotFoundError(1).status_code == 404
        assert StockAlertForbiddenError(1).status_code == 403
        assert ProductOutOfStockError(1).status_code == 400
        assert NotificationError("down").status_code == 502

    def test_details_and_dict(self):
        err = ProductOutOfStockError(5, stock=0)

        assert err.code == "PRODUCT_OUT_OF_STOCK"
        assert err.details == {"product_id": 5, "stock": 0}
        assert err.to_dict()["error_type"] == "ProductOutOfStockError"


class TestSanitization:
    def test_sensitive_messages_are_hidden(self):
        assert is_sensitive_error("asyncpg.exceptions.ConnectionDoesNotExistError")
        assert sanitize_error_message("bad SECRET value") == "An internal error occurred. Please try again later."

    def test_long_messages_are_truncated(self):
        assert sanitize_error_message("x" * 500).endswith("...")

    def test_plain_messages_pass_through(self):
        assert sanitize_error_message("Product not found") == "Product not found"


class TestEnvelope:
    @pytest.mark.asyncio
    async def test_domain_error(self):
        async with AsyncClient(transport=ASGITransport(app=_app()), base_url="http://test") as c:
            resp = await c.get("/missing")

        assert resp.status_code == 404
        assert resp.json() == {"success": False, "message": "Product not found", "code": "PRODUCT_NOT_FOUND"}

    @pytest.mark.asyncio
    async def test_http_exception(self):
        async with AsyncClient(transport=ASGITransport(app=_app()), base_url="http://test") as c:
            resp = await c.get("/teapot")

        assert resp.status_code == 418
        assert resp.json()["code"] == "HTTP_418"
        assert resp.json()["message"] == "I'm a teapot"

    @pytest.mark.asyncio
    async def test_unhandled_error_is_generic_500(self):
        async with AsyncClient(transport=ASGITransport(app=_app()), base_url="http://test") as c:
            resp = await c.get("/boom")

        assert resp.status_code == 500
        body = resp.json()
        assert body["success"] is False
        assert body["code"] == "INTERNAL_ERROR"
        assert "postgresql" not in json.dumps(body)
        assert "error_id" in body

    @pytest.mark.asyncio
    async def test_validation_error_uses_envelope(self):
        async with AsyncClient(transport=ASGITransport(app=_app()), base_url="http://test") as c:
            resp = await c.get("/alerts?page=first")

        assert resp.status_code == 422
        body = resp.json()
        assert body["success"] is False
        assert body["code"] == "VALIDATION_ERROR"
        assert body["message"].startswith("query.page:")
        assert body["errors"][0]["field"] == "query.page"
        assert "detail" not in body
