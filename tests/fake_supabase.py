# =============================================================================
# tests/fake_supabase.py - In-Memory Supabase Stand-In
# =============================================================================
# A small in-memory implementation of the parts of the supabase-py query
# builder the messaging service uses:
#
#   table(name).select(cols, count=...).eq().neq().or_().order().limit()
#       .single().execute()
#   table(name).insert(row).execute()
#   table(name).update(values).eq()...execute()
#
# Embedded resources in select strings ("sender:profiles(id, username)")
# are resolved through a relation map. Unique constraints raise an error
# carrying Postgres code 23505; .single() with no match raises PGRST116.
#
# Also provides a fake Realtime client/channel for subscription tests.
# =============================================================================

from __future__ import annotations

import itertools
import uuid
from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable

BASE_TIME = datetime(2024, 1, 15, 10, 0, 0, tzinfo=timezone.utc)


class FakeAPIError(Exception):
    """Mimics postgrest.exceptions.APIError: message plus a `code`."""

    def __init__(self, message: str, code: str):
        super().__init__(f"{message} (code: {code})")
        self.code = code


@dataclass
class FakeResponse:
    data: Any
    count: int | None = None


def _norm(value: Any) -> Any:
    if value is None or isinstance(value, bool):
        return value
    return str(value)


def _split_top_level(columns: str) -> list[str]:
    """Split a select string on commas that aren't inside parentheses."""
    parts, depth, current = [], 0, ""
    for char in columns:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
        if char == "," and depth == 0:
            parts.append(current.strip())
            current = ""
        else:
            current += char
    if current.strip():
        parts.append(current.strip())
    return parts


class FakeDatabase:
    """
    In-memory tables with PostgREST-like query semantics.

    Behaves like a supabase Client for `.table(...)`.
    """

    def __init__(self):
        self.tables: dict[str, list[dict[str, Any]]] = defaultdict(list)
        self.unique: dict[str, list[tuple[str, ...]]] = {
            "conversations": [("listing_id", "buyer_id", "seller_id")],
        }
        # (table, alias) -> (target table, foreign key column)
        self.relations: dict[tuple[str, str], tuple[str, str]] = {
            ("messages", "sender"): ("profiles", "sender_id"),
            ("conversations", "listing"): ("listings", "listing_id"),
            ("conversations", "buyer"): ("profiles", "buyer_id"),
            ("conversations", "seller"): ("profiles", "seller_id"),
        }
        self.failures: dict[tuple[str, str], Exception] = {}
        self.queries: list[tuple[str, str]] = []
        self._ticks = itertools.count(1)

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def now(self) -> str:
        """Strictly increasing ISO timestamps, one second apart."""
        return (BASE_TIME + timedelta(seconds=next(self._ticks))).isoformat()

    def seed(self, table: str, **row: Any) -> dict[str, Any]:
        row.setdefault("id", str(uuid.uuid4()))
        if table in ("conversations", "messages", "listings"):
            row.setdefault("created_at", self.now())
        if table == "conversations":
            row.setdefault("updated_at", row["created_at"])
        if table == "messages":
            row.setdefault("is_read", False)
        self.tables[table].append(row)
        return row

    def fail(self, table: str, operation: str, error: Exception | None = None) -> None:
        """Make every `operation` ("select", "insert", "update") on `table` raise."""
        self.failures[(table, operation)] = error or FakeAPIError("connection reset", "08006")

    def rows(self, table: str, **match: Any) -> list[dict[str, Any]]:
        return [
            row for row in self.tables[table]
            if all(_norm(row.get(k)) == _norm(v) for k, v in match.items())
        ]

    # -------------------------------------------------------------------------
    # Client surface
    # -------------------------------------------------------------------------

    def table(self, name: str) -> "FakeQuery":
        return FakeQuery(self, name)

    def _project(self, table: str, row: dict[str, Any], columns: str) -> dict[str, Any]:
        result: dict[str, Any] = {}
        for part in _split_top_level(columns):
            if part == "*":
                result.update(row)
                continue
            if "(" in part:
                head, inner = part.split("(", 1)
                inner = inner.rsplit(")", 1)[0]
                alias = head.split(":", 1)[0].strip() if ":" in head else head.split("!", 1)[0].strip()
                target, fk = self.relations[(table, alias)]
                related = next(
                    (r for r in self.tables[target] if _norm(r.get("id")) == _norm(row.get(fk))),
                    None,
                )
                result[alias] = self._project(target, related, inner) if related else None
                continue
            result[part] = row.get(part)
        return result


class FakeQuery:
    """One chained PostgREST request."""

    def __init__(self, db: FakeDatabase, table: str):
        self.db = db
        self.table_name = table
        self.operation = "select"
        self.columns = "*"
        self.count_mode: str | None = None
        self.payload: Any = None
        self.filters: list[Callable[[dict[str, Any]], bool]] = []
        self.orders: list[tuple[str, bool]] = []
        self.limit_n: int | None = None
        self.single_mode = False

    def select(self, columns: str = "*", count: str | None = None) -> "FakeQuery":
        self.operation = "select"
        self.columns = columns
        self.count_mode = count
        return self

    def insert(self, payload: Any) -> "FakeQuery":
        self.operation = "insert"
        self.payload = payload
        return self

    def update(self, payload: dict[str, Any]) -> "FakeQuery":
        self.operation = "update"
        self.payload = payload
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda row: _norm(row.get(column)) == _norm(value))
        return self

    def neq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda row: _norm(row.get(column)) != _norm(value))
        return self

    def or_(self, expression: str) -> "FakeQuery":
        clauses = []
        for clause in expression.split(","):
            column, op, value = clause.split(".", 2)
            assert op == "eq", f"fake only supports eq in or_: {clause}"
            clauses.append((column, value))
        self.filters.append(
            lambda row: any(_norm(row.get(c)) == v for c, v in clauses)
        )
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.orders.append((column, desc))
        return self

    def limit(self, n: int) -> "FakeQuery":
        self.limit_n = n
        return self

    def single(self) -> "FakeQuery":
        self.single_mode = True
        return self

    def _matches(self) -> list[dict[str, Any]]:
        return [row for row in self.db.tables[self.table_name] if all(f(row) for f in self.filters)]

    def execute(self) -> FakeResponse:
        self.db.queries.append((self.table_name, self.operation))
        failure = self.db.failures.get((self.table_name, self.operation))
        if failure is not None:
            raise failure

        if self.operation == "insert":
            return self._execute_insert()
        if self.operation == "update":
            return self._execute_update()
        return self._execute_select()

    def _execute_insert(self) -> FakeResponse:
        payloads = self.payload if isinstance(self.payload, list) else [self.payload]
        inserted = []
        for payload in payloads:
            row = dict(payload)
            row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("created_at", self.db.now())
            if self.table_name == "conversations":
                row.setdefault("updated_at", row["created_at"])
            if self.table_name == "messages":
                row.setdefault("is_read", False)
            for columns in self.db.unique.get(self.table_name, []):
                key = tuple(_norm(row.get(c)) for c in columns)
                if any(tuple(_norm(r.get(c)) for c in columns) == key for r in self.db.tables[self.table_name]):
                    raise FakeAPIError(
                        f'duplicate key value violates unique constraint on {columns}',
                        "23505",
                    )
            self.db.tables[self.table_name].append(row)
            inserted.append(dict(row))
        return FakeResponse(data=inserted)

    def _execute_update(self) -> FakeResponse:
        updated = []
        for row in self._matches():
            row.update(self.payload)
            updated.append(dict(row))
        return FakeResponse(data=updated)

    def _execute_select(self) -> FakeResponse:
        rows = self._matches()
        for column, desc in reversed(self.orders):
            rows.sort(key=lambda r: (r.get(column) is None, r.get(column) or ""), reverse=desc)
        total = len(rows)
        if self.limit_n is not None:
            rows = rows[: self.limit_n]

        data = [self.db._project(self.table_name, row, self.columns) for row in rows]

        if self.single_mode:
            if len(data) != 1:
                raise FakeAPIError(
                    "JSON object requested, multiple (or no) rows returned",
                    "PGRST116",
                )
            return FakeResponse(data=data[0])

        return FakeResponse(data=data, count=total if self.count_mode == "exact" else None)


# =============================================================================
# Realtime
# =============================================================================

class FakeChannel:
    """Records postgres_changes bindings; emit() plays the server's role."""

    def __init__(self, topic: str):
        self.topic = topic
        self.bindings: list[dict[str, Any]] = []
        self.subscribed = False

    def on_postgres_changes(
        self,
        event: str,
        callback: Callable[[Any], None],
        table: str = "*",
        schema: str = "public",
        filter: str | None = None,
    ) -> "FakeChannel":
        self.bindings.append({
            "event": event,
            "callback": callback,
            "table": table,
            "schema": schema,
            "filter": filter,
        })
        return self

    async def subscribe(self, callback: Callable | None = None) -> "FakeChannel":
        self.subscribed = True
        return self

    def emit(self, record: dict[str, Any]) -> None:
        if not self.subscribed:
            return
        for binding in self.bindings:
            binding["callback"]({
                "data": {"type": "INSERT", "table": binding["table"], "record": record},
                "ids": [1],
            })


class FakeRealtimeClient:
    """Stands in for supabase AsyncClient's channel API."""

    def __init__(self):
        self.channels: list[FakeChannel] = []
        self.removed: list[FakeChannel] = []

    def channel(self, topic: str) -> FakeChannel:
        channel = FakeChannel(topic)
        self.channels.append(channel)
        return channel

    async def remove_channel(self, channel: FakeChannel) -> None:
        channel.subscribed = False
        self.removed.append(channel)
