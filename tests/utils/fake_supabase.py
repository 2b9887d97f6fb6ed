"""In-memory stand-in for the parts of supabase-py the services use."""

import copy
import uuid
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Dict, List, Optional

_EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakeResult:
    def __init__(self, data: List[dict]):
        self.data = data


class FakeQuery:
    """Chainable query over one table; filters apply at execute()."""

    def __init__(self, db: "FakeSupabase", table: str):
        self._db = db
        self._table = table
        self._op = "select"
        self._columns = "*"
        self._payload: Any = None
        self._on_conflict: Optional[str] = None
        self._filters: List = []
        self._orders: List = []
        self._limit: Optional[int] = None
        self._negate_next = False

    # operations
    def select(self, columns: str = "*", **kwargs):
        if self._op == "select":
            self._columns = columns
        return self

    def insert(self, payload, **kwargs):
        self._op, self._payload = "insert", payload
        return self

    def update(self, payload, **kwargs):
        self._op, self._payload = "update", payload
        return self

    def upsert(self, payload, on_conflict: Optional[str] = None, **kwargs):
        self._op, self._payload, self._on_conflict = "upsert", payload, on_conflict
        return self

    def delete(self, **kwargs):
        self._op = "delete"
        return self

    # filters
    @property
    def not_(self):
        self._negate_next = True
        return self

    def _add(self, predicate):
        negate, self._negate_next = self._negate_next, False
        self._filters.append((lambda row: not predicate(row)) if negate else predicate)
        return self

    def eq(self, column, value):
        return self._add(lambda row: row.get(column) == value)

    def neq(self, column, value):
        return self._add(lambda row: row.get(column) != value)

    def lt(self, column, value):
        return self._add(lambda row: row.get(column) is not None and row.get(column) < value)

    def lte(self, column, value):
        return self._add(lambda row: row.get(column) is not None and row.get(column) <= value)

    def gt(self, column, value):
        return self._add(lambda row: row.get(column) is not None and row.get(column) > value)

    def gte(self, column, value):
        return self._add(lambda row: row.get(column) is not None and row.get(column) >= value)

    def is_(self, column, value):
        if value in ("null", None):
            return self._add(lambda row: row.get(column) is None)
        return self._add(lambda row: row.get(column) is value)

    def order(self, column, desc: bool = False, **kwargs):
        self._orders.append((column, desc))
        return self

    def limit(self, count: int, **kwargs):
        self._limit = count
        return self

    def single(self):
        self._limit = 1
        return self

    # execution
    def _matches(self, row: dict) -> bool:
        return all(predicate(row) for predicate in self._filters)

    def _project(self, row: dict) -> dict:
        if self._columns.strip() == "*":
            return copy.deepcopy(row)
        names = [c.strip() for c in self._columns.split(",")]
        return {name: copy.deepcopy(row.get(name)) for name in names}

    def _sorted(self, rows: List[dict]) -> List[dict]:
        # Postgres default: NULLS LAST ascending, NULLS FIRST descending
        for column, desc in reversed(self._orders):
            rows = sorted(
                rows,
                key=lambda r: (r.get(column) is None, r.get(column) if r.get(column) is not None else 0),
                reverse=desc,
            )
        return rows

    def execute(self) -> FakeResult:
        self._db.calls.append((self._table, self._op))
        failure = self._db.failures.pop((self._table, self._op), None)
        if failure is not None:
            raise failure

        rows = self._db.tables.setdefault(self._table, [])

        if self._op == "select":
            found = self._sorted([r for r in rows if self._matches(r)])
            if self._limit is not None:
                found = found[: self._limit]
            return FakeResult([self._project(r) for r in found])

        if self._op == "insert":
            payloads = self._payload if isinstance(self._payload, list) else [self._payload]
            inserted = [self._db.store(self._table, p) for p in payloads]
            return FakeResult(copy.deepcopy(inserted))

        if self._op == "update":
            updated = []
            for row in rows:
                if self._matches(row):
                    row.update(copy.deepcopy(self._payload))
                    updated.append(copy.deepcopy(row))
            return FakeResult(updated)

        if self._op == "upsert":
            key = self._on_conflict or "id"
            existing = next((r for r in rows if r.get(key) == self._payload.get(key)), None)
            if existing is not None:
                existing.update(copy.deepcopy(self._payload))
                return FakeResult([copy.deepcopy(existing)])
            return FakeResult([copy.deepcopy(self._db.store(self._table, self._payload))])

        if self._op == "delete":
            removed = [r for r in rows if self._matches(r)]
            self._db.tables[self._table] = [r for r in rows if not self._matches(r)]
            for row in removed:
                self._db.cascade(self._table, row)
            return FakeResult(copy.deepcopy(removed))

        raise AssertionError(f"unsupported operation {self._op}")


class FakeBucket:
    def __init__(self, storage: "FakeStorage", name: str):
        self._storage = storage
        self._name = name

    def upload(self, path: str, file: bytes, file_options: Optional[dict] = None):
        self._storage.calls.append(("upload", path))
        if self._storage.fail_upload:
            raise Exception("storage upload failed")
        self._storage.objects[(self._name, path)] = file
        return SimpleNamespace(path=path, full_path=f"{self._name}/{path}")

    def remove(self, paths: List[str]):
        self._storage.calls.append(("remove", list(paths)))
        if self._storage.fail_remove:
            raise Exception("storage remove failed")
        for path in paths:
            self._storage.objects.pop((self._name, path), None)
        return [{"name": p} for p in paths]

    def create_signed_url(self, path: str, expires_in: int, options: Optional[dict] = None):
        return {"signedURL": f"https://test.supabase.co/storage/v1/object/sign/{self._name}/{path}?expires={expires_in}"}


class FakeStorage:
    def __init__(self):
        self.buckets: List[str] = []
        self.objects: Dict[tuple, bytes] = {}
        self.calls: List = []
        self.fail_upload = False
        self.fail_remove = False

    def list_buckets(self):
        return [SimpleNamespace(id=name, name=name) for name in self.buckets]

    def create_bucket(self, id: str, name: Optional[str] = None, options: Optional[dict] = None):
        self.buckets.append(id)
        return {"name": id}

    def from_(self, name: str) -> FakeBucket:
        return FakeBucket(self, name)


class FakeAuth:
    def __init__(self):
        self.sessions: Dict[str, str] = {}

    def get_user(self, jwt: Optional[str] = None):
        if jwt not in self.sessions:
            raise Exception("invalid JWT")
        return SimpleNamespace(user=SimpleNamespace(id=self.sessions[jwt]))


class FakeSupabase:
    """
    Test double for ``supabase.Client``.

    ``failures[(table, op)] = exc`` makes the next matching execute() raise.
    """

    # child table -> (parent table, foreign key)
    CASCADES = {
        "subtasks": ("tasks", "task_id"),
        "task_attachments": ("tasks", "task_id"),
    }

    def __init__(self):
        self.tables: Dict[str, List[dict]] = {}
        self.failures: Dict[tuple, Exception] = {}
        self.calls: List[tuple] = []
        self.storage = FakeStorage()
        self.auth = FakeAuth()
        self._tick = 0

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self, name)

    def store(self, table: str, payload: dict) -> dict:
        self._tick += 1
        row = copy.deepcopy(payload)
        row.setdefault("id", str(uuid.uuid4()))
        row.setdefault("created_at", (_EPOCH + timedelta(seconds=self._tick)).strftime("%Y-%m-%dT%H:%M:%SZ"))
        self.tables.setdefault(table, []).append(row)
        return row

    def cascade(self, table: str, parent: dict) -> None:
        for child, (parent_table, key) in self.CASCADES.items():
            if parent_table == table and child in self.tables:
                self.tables[child] = [r for r in self.tables[child] if r.get(key) != parent.get("id")]

    def rows(self, table: str) -> List[dict]:
        return self.tables.get(table, [])

    def seed(self, table: str, *rows: dict) -> List[dict]:
        return [self.store(table, row) for row in rows]
