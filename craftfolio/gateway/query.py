from typing import Any, Dict, List, Optional, Sequence, Union

from fastapi.concurrency import run_in_threadpool

from craftfolio.crud.table_crud import Filter, Order
from craftfolio.gateway.backend import Backend, QueryResult
from craftfolio.gateway.errors import GatewayError, NO_ROWS

Row = Dict[str, Any]


def parse_columns(columns: str) -> Optional[List[str]]:
    names = [c.strip() for c in columns.split(",") if c.strip()]
    if not names or names == ["*"]:
        return None
    if "*" in names:
        raise GatewayError("'*' cannot be combined with named columns", "42703")
    return names


class TableQuery:
    """
    Fluent request against one table.

    Build with select/insert/update/upsert/delete plus filters, then
    `await .execute()`. Nothing reaches the backend before execute().
    """

    def __init__(self, backend: Backend, table: str):
        self._backend = backend
        self.table = table
        self._action = "select"
        self._columns: Optional[List[str]] = None
        self._count: Optional[str] = None
        self._head = False
        self._payload: Any = None
        self._on_conflict: Optional[str] = None
        self._filters: List[Filter] = []
        self._order: List[Order] = []
        self._limit: Optional[int] = None
        self._single: Optional[str] = None

    # ----------------- Actions -----------------

    def select(self, columns: str = "*", count: Optional[str] = None, head: bool = False) -> "TableQuery":
        if count not in (None, "exact"):
            raise ValueError(f"Unsupported count mode: {count}")
        self._action = "select"
        self._columns = parse_columns(columns)
        self._count = count
        self._head = head
        return self

    def insert(self, rows: Union[Row, Sequence[Row]]) -> "TableQuery":
        self._action = "insert"
        self._payload = [dict(rows)] if isinstance(rows, dict) else [dict(r) for r in rows]
        return self

    def update(self, patch: Row) -> "TableQuery":
        self._action = "update"
        self._payload = dict(patch)
        return self

    def upsert(self, row: Row, on_conflict: str = "id") -> "TableQuery":
        self._action = "upsert"
        self._payload = dict(row)
        self._on_conflict = on_conflict
        return self

    def delete(self) -> "TableQuery":
        self._action = "delete"
        return self

    # ----------------- Modifiers -----------------

    def eq(self, column: str, value: Any) -> "TableQuery":
        self._filters.append(Filter(column, "eq", value))
        return self

    def neq(self, column: str, value: Any) -> "TableQuery":
        self._filters.append(Filter(column, "neq", value))
        return self

    def in_(self, column: str, values: Sequence[Any]) -> "TableQuery":
        self._filters.append(Filter(column, "in", list(values)))
        return self

    def order(self, column: str, desc: bool = False) -> "TableQuery":
        self._order.append(Order(column, desc))
        return self

    def limit(self, count: int) -> "TableQuery":
        self._limit = count
        return self

    def single(self) -> "TableQuery":
        """Exactly one row; no rows raises GatewayError with code PGRST116."""
        self._single = "single"
        return self

    def maybe_single(self) -> "TableQuery":
        """At most one row; no rows yields data=None."""
        self._single = "maybe"
        return self

    # ----------------- Execution -----------------

    async def execute(self) -> QueryResult:
        """Run the request on a worker thread; the store is synchronous."""
        if self._action in ("update", "delete") and not self._filters:
            raise GatewayError(f"{self._action.upper()} requires a filter", "21000")
        return await run_in_threadpool(self._run)

    def _run(self) -> QueryResult:
        if self._action == "select":
            return self._run_select()

        if self._action == "insert":
            rows = self._backend.insert(self.table, self._payload)
        elif self._action == "update":
            rows = self._backend.update(self.table, self._payload, self._filters)
        elif self._action == "upsert":
            rows = [self._backend.upsert(self.table, self._payload, self._on_conflict)]
        else:
            rows = self._backend.delete(self.table, self._filters)
        return self._shape(rows)

    def _run_select(self) -> QueryResult:
        count = self._backend.count(self.table, self._filters) if self._count == "exact" else None
        if self._head:
            return QueryResult(data=None, count=count)

        rows = self._backend.select(self.table, self._columns, self._filters, self._order, self._limit)
        result = self._shape(rows)
        result.count = count
        return result

    def _shape(self, rows: List[Row]) -> QueryResult:
        if self._single is None:
            return QueryResult(data=rows)
        if len(rows) > 1:
            raise GatewayError("JSON object requested, multiple rows returned", NO_ROWS)
        if not rows:
            if self._single == "single":
                raise GatewayError("JSON object requested, no rows returned", NO_ROWS)
            return QueryResult(data=None)
        return QueryResult(data=rows[0])
