"""
E2E: Operators, profit preview and earnings stats.

Tests:
- Operator CRUD and per-driver name uniqueness
- Operator commission feeding the profit engine
- Profit preview for unsaved jobs
- Month-to-date and per-operator earnings
"""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from httpx import AsyncClient

from ryde.core.config import settings
from ryde.services.parsing import local_today
from tests.e2e.conftest import (
    OTHER_DRIVER_ID,
    create_job_via_api,
    create_operator_via_api,
    driver_params,
)


pytestmark = pytest.mark.asyncio


class TestOperatorCrud:

    async def test_create_and_list(self, client: AsyncClient):
        resp = await create_operator_via_api(client)
        assert resp.status_code == 201
        assert resp.json()["name"] == "City Cars"
        assert Decimal(resp.json()["commission_rate"]) == Decimal("15")

        await create_operator_via_api(client, name="Airport Runs", payment_cycle=None)

        listed = await client.get("/api/v1/operators", params=driver_params())
        assert [op["name"] for op in listed.json()] == ["Airport Runs", "City Cars"]

    async def test_operators_are_per_driver(self, client: AsyncClient):
        await create_operator_via_api(client)
        other = await create_operator_via_api(client, user_id=OTHER_DRIVER_ID)
        assert other.status_code == 201

        listed = await client.get("/api/v1/operators", params=driver_params(OTHER_DRIVER_ID))
        assert len(listed.json()) == 1

    async def test_duplicate_name_is_conflict(self, client: AsyncClient):
        await create_operator_via_api(client)
        resp = await create_operator_via_api(client)
        assert resp.status_code == 409

    async def test_update(self, client: AsyncClient):
        operator_id = (await create_operator_via_api(client)).json()["id"]

        resp = await client.patch(
            f"/api/v1/operators/{operator_id}",
            params=driver_params(),
            json={"payment_cycle": "Monthly", "commission_rate": "12.5"},
        )
        assert resp.status_code == 200
        assert resp.json()["payment_cycle"] == "Monthly"
        assert Decimal(resp.json()["commission_rate"]) == Decimal("12.5")

    async def test_delete(self, client: AsyncClient):
        operator_id = (await create_operator_via_api(client)).json()["id"]

        resp = await client.delete(f"/api/v1/operators/{operator_id}", params=driver_params())
        assert resp.status_code == 204

        missing = await client.delete(f"/api/v1/operators/{operator_id}", params=driver_params())
        assert missing.status_code == 404

    async def test_unknown_operator_is_404(self, client: AsyncClient):
        resp = await client.patch(
            f"/api/v1/operators/{uuid.uuid4()}",
            params=driver_params(),
            json={"name": "Renamed"},
        )
        assert resp.status_code == 404


class TestOperatorCommission:

    async def test_operator_rate_used_when_job_has_no_fee(self, client: AsyncClient):
        await create_operator_via_api(client, commission_rate="15")
        job = (await create_job_via_api(client, operator="City Cars", operator_fee=None)).json()["job"]

        breakdown = await client.get(f"/api/v1/jobs/{job['id']}/profit", params=driver_params())
        assert Decimal(breakdown.json()["commission_rate"]) == Decimal("15")
        assert Decimal(breakdown.json()["operator_fee_amount"]) == Decimal("9")

    async def test_job_fee_wins(self, client: AsyncClient):
        await create_operator_via_api(client, commission_rate="15")
        job = (await create_job_via_api(client, operator="City Cars")).json()["job"]

        breakdown = await client.get(f"/api/v1/jobs/{job['id']}/profit", params=driver_params())
        assert Decimal(breakdown.json()["commission_rate"]) == Decimal("10")


class TestProfitPreview:

    async def test_preview(self, client: AsyncClient):
        resp = await client.post(
            "/api/v1/profit/preview",
            params=driver_params(),
            json={"fare": "60", "distance": "6.9 mi", "duration": "24 mins", "operator_fee": "10"},
        )
        assert resp.status_code == 200

        body = resp.json()
        assert Decimal(body["total_profit"]).quantize(Decimal("0.01")) == Decimal("51.92")
        assert body["used_minimum_distance"] is False
        assert body["advisories"] == []

    async def test_preview_from_price_string(self, client: AsyncClient):
        resp = await client.post(
            "/api/v1/profit/preview",
            params=driver_params(),
            json={"price": "£60.00", "distance": "0 mi"},
        )
        body = resp.json()
        assert Decimal(body["fare"]) == Decimal("60.00")
        assert body["used_minimum_distance"] is True
        assert Decimal(body["effective_distance"]) == Decimal("0.1")

    async def test_preview_expense_policy(self, client: AsyncClient):
        payload = {
            "fare": "60",
            "distance": "6.9 mi",
            "expenses": [
                {"amount": "5"},
                {"amount": "3", "refund_status": "Refunded by Operator"},
            ],
        }
        everything = await client.post("/api/v1/profit/preview", params=driver_params(), json=payload)
        unrefunded = await client.post(
            "/api/v1/profit/preview",
            params=driver_params(),
            json={**payload, "expense_policy": "exclude_refunded"},
        )
        assert Decimal(everything.json()["total_expenses"]) == Decimal("8")
        assert Decimal(unrefunded.json()["total_expenses"]) == Decimal("5")

    async def test_preview_without_fare_is_422(self, client: AsyncClient):
        resp = await client.post(
            "/api/v1/profit/preview",
            params=driver_params(),
            json={"distance": "6.9 mi"},
        )
        assert resp.status_code == 422

    async def test_invalid_cost_override_is_422(self, client: AsyncClient):
        resp = await client.post(
            "/api/v1/profit/preview",
            params=driver_params(fuel_efficiency="0"),
            json={"fare": "60"},
        )
        assert resp.status_code == 422


class TestStats:

    async def _complete(self, client: AsyncClient, job_id: str) -> None:
        await client.patch(
            f"/api/v1/jobs/{job_id}/status",
            params=driver_params(),
            json={"new_status": "completed"},
        )

    async def test_summary_counts_completed_jobs_this_month(self, client: AsyncClient):
        today = local_today(settings.timezone).isoformat()
        done = (await create_job_via_api(client, booking_date=today)).json()["job"]
        await create_job_via_api(client, booking_date=today, booking_time="18:00")
        await self._complete(client, done["id"])

        resp = await client.get("/api/v1/stats/summary", params=driver_params())
        assert resp.status_code == 200

        body = resp.json()
        assert body["jobs"] == 1
        assert Decimal(body["revenue"]) == Decimal("60")
        assert Decimal(body["profit"]) == Decimal("51.92")
        assert Decimal(body["hourly_rate"]) == Decimal("150")
        assert body["period_start"] == local_today(settings.timezone).replace(day=1).isoformat()

    async def test_operator_totals(self, client: AsyncClient):
        await create_operator_via_api(client)
        first = (await create_job_via_api(client, operator="City Cars")).json()["job"]
        second = (await create_job_via_api(client, operator="City Cars", fare="40", booking_time="13:00")).json()["job"]
        for job in (first, second):
            await self._complete(client, job["id"])
        await client.post(
            f"/api/v1/jobs/{first['id']}/payment-status",
            params=driver_params(),
            json={"status": "paid"},
        )

        resp = await client.get("/api/v1/stats/operators", params=driver_params())
        rows = resp.json()
        assert len(rows) == 1
        assert rows[0]["operator"] == "City Cars"
        assert rows[0]["jobs"] == 2
        assert Decimal(rows[0]["revenue"]) == Decimal("100")
        assert Decimal(rows[0]["outstanding"]) == Decimal("40")
