import io
import unittest
from datetime import datetime, timedelta, timezone
from unittest import mock

from shelf_audit.db.clickhouse import ClickHouseClient, ClickHouseClientError
from shelf_audit.analytics.stores import build_store_visit_stats, rank_store_visits
from shelf_audit.db.store import ClickHouseStore, MemoryStore, StoreError
from shelf_audit.etl.models import (
    WILDCARD,
    AggregationScope,
    DetectionRecord,
    StoreRow,
    StoreVisitStats,
    Task,
    TaskCategory,
    TaskPriority,
    TaskStatus,
    UserRow,
    scope_field,
)

_NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


class _FakeClient:
    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.queries = []

    def query_rows(self, query):
        self.queries.append(query)
        if self.error is not None:
            raise self.error
        return list(self.rows)


def _task(task_id, **kwargs):
    base = dict(id=task_id, status=TaskStatus.PENDING)
    base.update(kwargs)
    return Task(**base)


class MemoryStoreTests(unittest.TestCase):
    def setUp(self):
        self.store = MemoryStore(
            tasks=[
                _task(
                    1,
                    assigned_to=scope_field(7),
                    chain=scope_field("X"),
                    priority=TaskPriority.URGENT,
                    due_date=_NOW - timedelta(days=1),
                    estimated_hours=2.0,
                    actual_hours=3.0,
                    created_at=_NOW - timedelta(days=2),
                ),
                _task(
                    2,
                    status=TaskStatus.COMPLETED,
                    assigned_to=scope_field(7),
                    chain=scope_field("Y"),
                    due_date=_NOW - timedelta(days=1),
                    estimated_hours=2.0,
                    actual_hours=1.0,
                    created_at=_NOW - timedelta(days=40),
                ),
                _task(3, category=TaskCategory.REPORT, assigned_to=scope_field(7)),
                _task(4, assigned_to=WILDCARD, status=TaskStatus.IN_PROGRESS),
                _task(5, assigned_to=scope_field(8)),
            ],
            detections=[
                DetectionRecord(id=1, photo_id=1, name="Cola", recognized=True, store_id=10),
                DetectionRecord(id=2, photo_id=1, name="Ghost", recognized=False, store_id=10),
                DetectionRecord(id=3, photo_id=2, name="Chips", recognized=True, store_id=11),
            ],
            stores=[
                StoreRow(id=10, chain="X", area="North", snacks=4.0),
                StoreRow(id=11, chain="X", area="South", snacks=2.0),
                StoreRow(id=12, chain="Z", area="South"),
            ],
            users=[
                UserRow(id=7, role="field_agent", team_code="T1"),
                UserRow(id=8, role="field_agent", team_code="T1"),
                UserRow(id=9, role="manager", team_code="T2"),
                UserRow(id=10, role="field_agent", is_active=False),
            ],
            clock=lambda: _NOW,
        )

    def test_open_visit_tasks_for_agent(self):
        tasks = self.store.open_visit_tasks(7)
        self.assertEqual([task.id for task in tasks], [1, 4])

    def test_recognized_detections_in_scope(self):
        everything = self.store.recognized_detections(AggregationScope())
        self.assertEqual([record.id for record in everything], [1, 3])
        one_store = self.store.recognized_detections(AggregationScope(store_id=11))
        self.assertEqual([record.id for record in one_store], [3])

    def test_task_counts(self):
        counts = self.store.task_counts()
        self.assertEqual(counts.total, 5)
        self.assertEqual(counts.completed, 1)
        self.assertEqual(counts.pending, 3)
        self.assertEqual(counts.in_progress, 1)
        self.assertEqual(counts.visits, 4)
        self.assertEqual(counts.reports, 1)
        self.assertEqual(counts.urgent, 1)
        self.assertEqual(counts.overdue, 1)

    def test_performance_counts(self):
        counts = self.store.performance_counts()
        self.assertEqual(counts.avg_actual_hours, 2.0)
        self.assertEqual(counts.avg_estimated_hours, 2.0)
        self.assertEqual(counts.total_hours, 4.0)
        self.assertEqual(counts.active_agents, 1)
        self.assertEqual(counts.chains_visited, 2)
        self.assertEqual(counts.areas_covered, 0)

    def test_team_and_market_counts(self):
        team = self.store.team_counts()
        self.assertEqual(team.total_users, 3)
        self.assertEqual(team.agents, 2)
        self.assertEqual(team.managers, 1)
        self.assertEqual(team.teams, 2)
        market = self.store.market_counts()
        self.assertEqual(market.total_stores, 3)
        self.assertEqual(market.chains_available, 2)
        self.assertEqual(market.areas_available, 2)
        self.assertEqual(market.avg_snacks, 3.0)
        self.assertEqual(market.avg_cereals, 0.0)

    def test_recent_counts_window(self):
        recent = self.store.recent_counts(days=30)
        self.assertEqual(recent.activity, 1)
        self.assertEqual(recent.completed, 0)
        wider = self.store.recent_counts(days=60)
        self.assertEqual(wider.activity, 2)
        self.assertEqual(wider.completed, 1)

    def test_naive_dates_are_read_as_utc(self):
        store = MemoryStore(
            tasks=[
                _task(1, due_date=datetime(2025, 5, 31, 12, 0)),
                _task(2, due_date=datetime(2025, 6, 2, 12, 0)),
                _task(3, created_at=datetime(2025, 5, 30, 12, 0)),
            ],
            clock=lambda: _NOW,
        )
        self.assertEqual(store.task_counts().overdue, 1)
        self.assertEqual(store.recent_counts(days=7).activity, 1)

    def test_store_visit_stats_cover_every_store(self):
        stats = {row.store_id: row for row in self.store.store_visit_stats()}
        self.assertEqual(set(stats), {10, 11, 12})
        self.assertEqual(stats[12].total_visits, 0)
        self.assertIsNone(stats[12].avg_actual_hours)


class StoreVisitRankingTests(unittest.TestCase):
    def setUp(self):
        visit = dict(category=TaskCategory.VISIT, assigned_to=scope_field(7))
        self.stores = [
            StoreRow(id=1, chain="X", snacks=1.0),
            StoreRow(id=2, chain="X", snacks=9.0),
            StoreRow(id=3, chain="Y", snacks=5.0),
            StoreRow(id=4, chain="Y"),
        ]
        self.tasks = [
            _task(10, store_id=scope_field(1), status=TaskStatus.COMPLETED,
                  actual_hours=2.0, updated_at=_NOW - timedelta(days=3), **visit),
            _task(11, store_id=scope_field(1), actual_hours=4.0,
                  updated_at=_NOW - timedelta(days=1), **visit),
            _task(12, store_id=scope_field(2), status=TaskStatus.IN_PROGRESS, **visit),
            _task(13, store_id=scope_field(3), **visit),
            _task(14, store_id=scope_field(3), category=TaskCategory.REPORT),
            _task(15, store_id=WILDCARD, **visit),
        ]

    def test_counts_per_store(self):
        stats = {row.store_id: row for row in build_store_visit_stats(self.stores, self.tasks)}
        busiest = stats[1]
        self.assertEqual(busiest.total_visits, 2)
        self.assertEqual(busiest.completed, 1)
        self.assertEqual(busiest.pending, 1)
        self.assertEqual(busiest.avg_actual_hours, 3.0)
        self.assertEqual(busiest.last_visit_at, _NOW - timedelta(days=1))
        self.assertEqual(stats[2].in_progress, 1)
        self.assertEqual(stats[3].total_visits, 1)

    def test_store_without_tasks_is_zeroed(self):
        stats = {row.store_id: row for row in build_store_visit_stats(self.stores, self.tasks)}
        idle = stats[4]
        self.assertEqual(
            (idle.total_visits, idle.completed, idle.pending, idle.in_progress), (0, 0, 0, 0)
        )
        self.assertIsNone(idle.avg_actual_hours)
        self.assertIsNone(idle.last_visit_at)

    def test_ranked_by_visits_then_snacks(self):
        ranked = rank_store_visits(build_store_visit_stats(self.stores, self.tasks))
        self.assertEqual([row.store_id for row in ranked], [1, 2, 3, 4])
        tied = rank_store_visits(
            [
                StoreVisitStats(store_id=5, snacks=None),
                StoreVisitStats(store_id=6, snacks=2.0),
                StoreVisitStats(store_id=7, snacks=8.0),
            ]
        )
        self.assertEqual([row.store_id for row in tied], [7, 6, 5])


class ClickHouseStoreTests(unittest.TestCase):
    def test_store_visit_stats_query(self):
        client = _FakeClient(rows=[{"store_id": "3", "total_visits": "2", "snacks": 1.5}])
        rows = ClickHouseStore(client, database="audits").store_visit_stats()
        self.assertEqual(rows[0].store_id, 3)
        self.assertEqual(rows[0].total_visits, 2)
        query = client.queries[0]
        self.assertIn("FROM audits.stores AS st", query)
        self.assertIn("LEFT JOIN audits.tasks AS t", query)
        self.assertIn("t.category = 'visit'", query)
        self.assertIn("ORDER BY total_visits DESC, snacks DESC", query)

    def test_open_visit_tasks_query_and_decode(self):
        client = _FakeClient(
            rows=[
                {"id": "1", "status": "pending", "assigned_to": None, "chain": "X"},
                {"id": "2", "status": "bogus"},
            ]
        )
        store = ClickHouseStore(client, database="audits")
        tasks = store.open_visit_tasks(7)
        self.assertEqual([task.id for task in tasks], [1])
        self.assertEqual(tasks[0].assigned_to, WILDCARD)
        query = client.queries[0]
        self.assertIn("FROM audits.tasks", query)
        self.assertIn("assigned_to = 7 OR assigned_to IS NULL", query)
        self.assertIn("category = 'visit'", query)
        self.assertIn("FORMAT JSONEachRow", query)

    def test_detection_scope_filters_and_quoting(self):
        client = _FakeClient(rows=[])
        store = ClickHouseStore(client, database="audits")
        store.recognized_detections(AggregationScope(store_id=10, chain="O'Hara"))
        query = client.queries[0]
        self.assertIn("pd.recognized = 1", query)
        self.assertIn("uu.store_id = 10", query)
        self.assertIn("st.chain = 'O\\'Hara'", query)
        self.assertIn("join_use_nulls = 1", query)

    def test_counters_decode_quoted_integers(self):
        client = _FakeClient(rows=[{"total": "12", "completed": "3", "overdue": "1"}])
        counts = ClickHouseStore(client).task_counts()
        self.assertEqual(counts.total, 12)
        self.assertEqual(counts.completed, 3)
        self.assertEqual(counts.overdue, 1)

    def test_empty_counter_result_is_zero(self):
        counts = ClickHouseStore(_FakeClient(rows=[])).market_counts()
        self.assertEqual(counts.total_stores, 0)

    def test_recent_counts_window_in_query(self):
        client = _FakeClient(rows=[{"activity": "4"}])
        counts = ClickHouseStore(client).recent_counts(days=7)
        self.assertEqual(counts.activity, 4)
        self.assertIn("INTERVAL 7 DAY", client.queries[0])

    def test_client_errors_become_store_errors(self):
        client = _FakeClient(error=ClickHouseClientError("boom"))
        store = ClickHouseStore(client)
        with self.assertRaises(StoreError):
            store.team_counts()
        with self.assertRaises(StoreError):
            store.open_visit_tasks(1)


class _Response(io.BytesIO):
    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class ClickHouseClientTests(unittest.TestCase):
    def test_query_rows_decodes_json_each_row(self):
        body = b'{"id": "1", "name": "Cola"}\n\n{"id": "2", "name": "Chips"}\n'
        client = ClickHouseClient(
            endpoint="http://ch:8123/", database="audits", user="reader", password="pw"
        )
        with mock.patch("urllib.request.urlopen", return_value=_Response(body)) as urlopen:
            rows = client.query_rows("SELECT 1 FORMAT JSONEachRow")
        self.assertEqual([row["name"] for row in rows], ["Cola", "Chips"])
        request = urlopen.call_args.args[0]
        self.assertTrue(request.full_url.startswith("http://ch:8123/?"))
        self.assertIn("database=audits", request.full_url)
        self.assertEqual(request.data, b"SELECT 1 FORMAT JSONEachRow")

    def test_undecodable_row_raises(self):
        client = ClickHouseClient(endpoint="http://ch:8123")
        with mock.patch("urllib.request.urlopen", return_value=_Response(b"not json\n")):
            with self.assertRaises(ClickHouseClientError):
                client.query_rows("SELECT 1")

    def test_password_is_redacted_in_logged_url(self):
        client = ClickHouseClient(endpoint="http://ch:8123", password="s3cret")
        self.assertNotIn("s3cret", client._redact(client._url()))


if __name__ == "__main__":
    unittest.main()
