"""Shared fixtures for the reminder engine tests.

The store code runs for real against ``FakeSupabase``, an in-memory stand-in for
the supabase/postgrest query builder. It records every executed query in
``calls`` and lets tests inject backend failures per table/operation.
"""

import copy
import os
from typing import Any, Callable, Dict, List, Optional

import pytest

# Sin credenciales reales: los clientes de supabase se crean de forma perezosa
os.environ.setdefault("SUPABASE_URL", "http://supabase.test")
os.environ.setdefault("SUPABASE_KEY", "test-anon-key")
os.environ.setdefault("SUPABASE_JWT_SECRET", "test-jwt-secret-with-enough-length-1234")
os.environ.setdefault("SYNC_SETTLE_DELAY_MS", "0")

from postgrest.exceptions import APIError  # noqa: E402

from fleetadmin.core.store import RecordStore  # noqa: E402


def api_error(code: str, message: str = "backend error") -> APIError:
    return APIError({"message": message, "code": code, "hint": None, "details": None})


def _same(a: Any, b: Any) -> bool:
    return a == b or (a is not None and str(a) == str(b))


def _sort_key(value: Any):
    if value is None:
        return (2, 0, "")
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return (0, value, "")
    return (1, 0, str(value))


class FakeResponse:
    def __init__(self, data):
        self.data = data


class FakeQuery:
    def __init__(self, db: "FakeSupabase", table: str):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload: Optional[Dict[str, Any]] = None
        self.filters: List[Callable[[Dict[str, Any]], bool]] = []
        self.trace: Dict[str, Any] = {"eq": [], "in": [], "or": [], "order": None, "range": None, "limit": None}

    # -------------------------
    # Builder
    # -------------------------
    def select(self, *columns, **kwargs):
        return self

    def insert(self, row):
        self.op, self.payload = "insert", dict(row)
        return self

    def update(self, row):
        self.op, self.payload = "update", dict(row)
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.trace["eq"].append((column, value))
        if column in self.db.hidden_columns:
            self.filters.append(lambda r: False)
        else:
            self.filters.append(lambda r: _same(r.get(column), value))
        return self

    def in_(self, column, values):
        values = list(values)
        self.trace["in"].append((column, values))
        self.filters.append(lambda r: any(_same(r.get(column), v) for v in values))
        return self

    def or_(self, condition):
        self.trace["or"].append(condition)
        if self.db.or_unsupported:
            self.db.pending_error = api_error("PGRST100", "or filter not supported")
        clauses = []
        for part in condition.split(","):
            column, _, value = part.split(".", 2)
            if column not in self.db.hidden_columns:
                clauses.append((column, value))
        self.filters.append(lambda r: any(_same(r.get(c), v) for c, v in clauses))
        return self

    def order(self, column, desc=False):
        self.trace["order"] = (column, desc)
        return self

    def range(self, start, end):
        self.trace["range"] = (start, end)
        return self

    def limit(self, n):
        self.trace["limit"] = n
        return self

    # -------------------------
    # Ejecución
    # -------------------------
    def _matching(self) -> List[Dict[str, Any]]:
        return [r for r in self.db.tables.setdefault(self.table, []) if all(f(r) for f in self.filters)]

    def execute(self):
        self.db.calls.append({"table": self.table, "op": self.op, **self.trace})
        if self.db.pending_error is not None:
            error, self.db.pending_error = self.db.pending_error, None
            raise error
        error = self.db.failures.get((self.table, self.op))
        if error is not None:
            raise error

        if self.op == "insert":
            row = dict(self.payload)
            self.db.last_id += 1
            row.setdefault("id", self.db.last_id)
            row.setdefault("document_id", f"doc-{row['id']}")
            self.db.tables.setdefault(self.table, []).append(row)
            return FakeResponse([copy.deepcopy(row)])

        if self.op == "update":
            rows = self._matching()
            for row in rows:
                row.update(copy.deepcopy(self.payload))
            return FakeResponse([copy.deepcopy(r) for r in rows])

        if self.op == "delete":
            rows = self._matching()
            self.db.tables[self.table] = [r for r in self.db.tables[self.table] if r not in rows]
            return FakeResponse([copy.deepcopy(r) for r in rows])

        rows = self._matching()
        if self.trace["order"]:
            column, desc = self.trace["order"]
            rows.sort(key=lambda r: _sort_key(r.get(column)), reverse=desc)
        if self.trace["range"]:
            start, end = self.trace["range"]
            rows = rows[start:end + 1]
        if self.trace["limit"] is not None:
            rows = rows[: self.trace["limit"]]
        return FakeResponse([copy.deepcopy(r) for r in rows])


class FakeRpc:
    def __init__(self, db: "FakeSupabase", name: str, params: Dict[str, Any]):
        self.db = db
        self.name = name
        self.params = params

    def execute(self):
        self.db.calls.append({"table": None, "op": "rpc", "name": self.name, "params": self.params})
        handler = self.db.rpcs.get(self.name)
        if handler is None:
            raise api_error("PGRST202", f"Could not find the function public.{self.name}")
        return FakeResponse(handler(self.db, **self.params))


class FakeSupabase:
    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[Dict[str, Any]] = []
        self.failures: Dict[Any, Exception] = {}
        self.rpcs: Dict[str, Callable[..., Any]] = {}
        self.hidden_columns: set = set()
        self.or_unsupported = False
        self.pending_error: Optional[Exception] = None
        self.last_id = 1000

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def rpc(self, name: str, params: Dict[str, Any]) -> FakeRpc:
        return FakeRpc(self, name, params)

    # -------------------------
    # Helpers para tests
    # -------------------------
    def seed(self, table: str, *rows: Dict[str, Any]) -> None:
        self.tables.setdefault(table, []).extend(copy.deepcopy(list(rows)))

    def row(self, table: str, **match) -> Optional[Dict[str, Any]]:
        for r in self.tables.get(table, []):
            if all(_same(r.get(k), v) for k, v in match.items()):
                return r
        return None

    def calls_for(self, table: Optional[str] = None, op: Optional[str] = None) -> List[Dict[str, Any]]:
        return [c for c in self.calls if (table is None or c["table"] == table) and (op is None or c["op"] == op)]


def reminder_row(id: int, document_id: Optional[str] = None, **overrides) -> Dict[str, Any]:
    row = {
        "id": id,
        "document_id": document_id or f"rem-{id}",
        "title": f"Reminder {id}",
        "description": None,
        "type": "reminder",
        "module": "fleet",
        "reminder_type": "unique",
        "scheduled_date": "2025-03-01T09:00:00",
        "recurrence_pattern": None,
        "recurrence_end_date": None,
        "next_trigger": "2025-03-01T09:00:00",
        "is_active": True,
        "is_completed": False,
        "assigned_user_ids": [1],
        "tags": {"module": "fleet", "vehicleId": 10},
        "fleet_vehicle_id": 10,
        "author_document_id": "user-doc-1",
        "recipient_id": None,
        "created_at": f"2025-01-01T00:00:{id % 60:02d}",
    }
    row.update(overrides)
    return row


@pytest.fixture
def sb() -> FakeSupabase:
    db = FakeSupabase()
    db.seed(
        "fleets",
        {
            "id": 10,
            "document_id": "veh-doc-10",
            "name": "Camión 10",
            "next_maintenance_date": None,
            "responsable_ids": [1],
            "assigned_driver_ids": [2],
        },
        {
            "id": 20,
            "document_id": "veh-doc-20",
            "name": "Van 20",
            "next_maintenance_date": None,
            "responsable_ids": [],
            "assigned_driver_ids": [],
        },
    )
    db.seed(
        "user_profiles",
        {"id": 1, "document_id": "user-doc-1", "display_name": "Ana", "email": "ana@example.com"},
        {"id": 2, "document_id": "user-doc-2", "display_name": "Beto", "email": "beto@example.com"},
        {"id": 3, "document_id": "user-doc-3", "display_name": "Carla", "email": "carla@example.com"},
    )
    return db


@pytest.fixture
def store(sb: FakeSupabase) -> RecordStore:
    return RecordStore(sb)
