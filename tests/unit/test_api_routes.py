import unittest
from datetime import datetime, timedelta, timezone

from fastapi.testclient import TestClient

from shelf_audit.api import AuditService, create_app
from shelf_audit.config import constants
from shelf_audit.config.settings import Settings
from shelf_audit.db.store import MemoryStore, StoreError
from shelf_audit.etl.models import (
    DetectionRecord,
    StoreRow,
    Task,
    TaskPriority,
    TaskStatus,
    UserRow,
    scope_field,
)

_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_settings(**overrides) -> Settings:
    values = dict(
        clickhouse_url="http://clickhouse:8123",
        database="shelf_audit",
        api_host="127.0.0.1",
        api_port=8000,
        top_products=constants.DEFAULT_TOP_PRODUCTS,
        top_brands=constants.DEFAULT_TOP_BRANDS,
        top_facing=constants.DEFAULT_TOP_FACING,
        top_priciest=constants.DEFAULT_TOP_PRICIEST,
        recent_detections=constants.DEFAULT_RECENT_DETECTIONS,
        recent_activity_days=constants.DEFAULT_RECENT_ACTIVITY_DAYS,
        currency_markers=tuple(constants.DEFAULT_CURRENCY_MARKERS),
    )
    values.update(overrides)
    return Settings(**values)


def make_store() -> MemoryStore:
    return MemoryStore(
        tasks=[
            Task(
                id=1,
                status=TaskStatus.PENDING,
                assigned_to=scope_field(7),
                area=scope_field("North"),
                title="Check endcap",
                estimated_hours=2.0,
                actual_hours=1.0,
                created_at=_NOW - timedelta(days=1),
            ),
            Task(
                id=2,
                status=TaskStatus.COMPLETED,
                assigned_to=scope_field(7),
                chain=scope_field("X"),
                store_id=scope_field(11),
                estimated_hours=2.0,
                actual_hours=2.0,
                created_at=_NOW - timedelta(days=3),
                updated_at=_NOW - timedelta(days=2),
            ),
            Task(
                id=3,
                status=TaskStatus.IN_PROGRESS,
                priority=TaskPriority.URGENT,
                assigned_to=scope_field(7),
                chain=scope_field("Y"),
            ),
        ],
        detections=[
            DetectionRecord(
                id=1, photo_id=1, name="Cola", brand="Acme", facing=3,
                price_raw="1,25 €", confidence=0.9, recognized=True,
                created_at=_NOW - timedelta(hours=2), store_id=10, chain="X",
            ),
            DetectionRecord(
                id=2, photo_id=1, name="Cola", brand="Acme", facing=1,
                price_raw="1,50", confidence=0.7, recognized=True,
                created_at=_NOW - timedelta(hours=1), store_id=10, chain="X",
            ),
            DetectionRecord(
                id=3, photo_id=2, name="Chips", brand="Crunch", facing=2,
                price_raw="bad", confidence=0.8, recognized=True,
                created_at=_NOW, store_id=11, chain="Y",
            ),
            DetectionRecord(
                id=4, photo_id=2, name="Ghost", recognized=False, store_id=11, chain="Y",
            ),
        ],
        stores=[StoreRow(id=10, chain="X"), StoreRow(id=11, chain="Y")],
        users=[UserRow(id=7, role="field_agent", team_code="T1")],
        clock=lambda: _NOW,
    )


class _BrokenStore(MemoryStore):
    def open_visit_tasks(self, agent_id):
        raise StoreError("connection refused")

    def recognized_detections(self, scope):
        raise StoreError("connection refused")

    def market_counts(self):
        raise StoreError("connection refused")

    def store_visit_stats(self):
        raise StoreError("connection refused")


class ApiRoutesTest(unittest.TestCase):
    def setUp(self):
        service = AuditService(make_store(), make_settings())
        self.client = TestClient(create_app(service))

    def test_health_and_meta(self):
        health = self.client.get("/healthz")
        self.assertEqual(health.status_code, 200)
        self.assertEqual(health.json().get("status"), "ok")

        services = self.client.get("/v1/meta/services")
        self.assertEqual(services.status_code, 200)
        self.assertEqual(services.json()["services"], ["audit_api"])

    def test_visit_tasks_for_chain(self):
        response = self.client.get(
            "/v1/visits/v-1/tasks", params={"user_id": 7, "chain": "X"}
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertTrue(data["success"])
        self.assertEqual(data["visit_id"], "v-1")
        self.assertEqual([task["id"] for task in data["tasks"]], [1])
        self.assertIsNone(data["tasks"][0]["chain"])
        self.assertEqual(data["context"]["chain"], "X")

    def test_visit_tasks_without_dimensions_orders_by_priority(self):
        response = self.client.get("/v1/visits/v-2/tasks", params={"user_id": 7})
        self.assertEqual(response.status_code, 200)
        self.assertEqual([task["id"] for task in response.json()["tasks"]], [3, 1])

    def test_visit_tasks_requires_agent(self):
        response = self.client.get("/v1/visits/v-3/tasks", params={"chain": "X"})
        self.assertEqual(response.status_code, 400)

    def test_global_product_analytics(self):
        response = self.client.get("/v1/analytics/products")
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["stats"]["total_detections"], 3)
        self.assertEqual(data["stats"]["priced_count"], 2)
        self.assertEqual(data["stats"]["price"]["avg"], 1.38)
        self.assertEqual(data["top_products"][0]["name"], "Cola")
        self.assertEqual(data["top_products"][0]["detections"], 2)
        self.assertEqual([brand["brand"] for brand in data["top_brands"]], ["Acme", "Crunch"])
        self.assertEqual(data["priciest"][0]["price"], 1.5)
        self.assertEqual(data["recent"][0]["name"], "Chips")
        self.assertIsNone(data["recent"][0]["price"])

    def test_scoped_product_analytics(self):
        response = self.client.get(
            "/v1/analytics/products/by-store", params={"store_id": 11}
        )
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["scope"]["store_id"], 11)
        self.assertEqual(data["stats"]["total_detections"], 1)
        self.assertEqual(data["stats"]["price"]["count"], 0)

    def test_scoped_analytics_requires_a_filter(self):
        response = self.client.get("/v1/analytics/products/by-store")
        self.assertEqual(response.status_code, 400)

    def test_kpis(self):
        response = self.client.get("/v1/analytics/kpis")
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data["tasks"]["total"], 3)
        self.assertEqual(data["tasks"]["urgent"], 1)
        self.assertEqual(data["completion_rate"], 33.3)
        self.assertEqual(data["hour_efficiency"], 75.0)
        self.assertEqual(data["market_coverage"], 50.0)
        self.assertEqual(data["team"]["agents"], 1)
        self.assertEqual(data["recent"]["activity"], 2)

    def test_store_analytics_ranks_busiest_first(self):
        response = self.client.get("/v1/analytics/stores")
        self.assertEqual(response.status_code, 200)
        stores = response.json()["stores"]
        self.assertEqual([row["store_id"] for row in stores], [11, 10])
        self.assertEqual(stores[0]["total_visits"], 1)
        self.assertEqual(stores[0]["completed"], 1)
        self.assertEqual(stores[0]["avg_actual_hours"], 2.0)
        idle = stores[1]
        self.assertEqual(idle["total_visits"], 0)
        self.assertIsNone(idle["avg_actual_hours"])
        self.assertIsNone(idle["last_visit_at"])


class ApiStoreFailureTest(unittest.TestCase):
    def setUp(self):
        service = AuditService(_BrokenStore(), make_settings())
        self.client = TestClient(create_app(service))

    def test_store_failures_are_internal_errors(self):
        for path, params in (
            ("/v1/visits/v-1/tasks", {"user_id": 7}),
            ("/v1/analytics/products", {}),
            ("/v1/analytics/products/by-store", {"chain": "X"}),
            ("/v1/analytics/stores", {}),
        ):
            with self.subTest(path=path):
                response = self.client.get(path, params=params)
                self.assertEqual(response.status_code, 500)
                self.assertEqual(response.json()["detail"], "internal server error")

    def test_kpis_fail_as_a_whole(self):
        response = self.client.get("/v1/analytics/kpis")
        self.assertEqual(response.status_code, 500)
        self.assertNotIn("tasks", response.json())


if __name__ == "__main__":
    unittest.main()
