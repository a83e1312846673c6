import enum
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Sequence, Tuple, Type

from sqlalchemy import func, inspect, select
from sqlalchemy.orm import Session

from craftfolio.database import Base
from craftfolio.models import Application, ContactMessage, Job, Portfolio, Profile

TABLES: Dict[str, Type[Base]] = {
    "profiles": Profile,
    "portfolios": Portfolio,
    "jobs": Job,
    "applications": Application,
    "contact_messages": ContactMessage,
}


class Filter(NamedTuple):
    column: str
    op: str  # "eq" | "neq" | "in"
    value: Any


class Order(NamedTuple):
    column: str
    desc: bool = False


def get_model(table: str) -> Type[Base]:
    model = TABLES.get(table)
    if model is None:
        raise LookupError(f'relation "{table}" does not exist')
    return model


def column_names(model: Type[Base]) -> List[str]:
    return [attr.key for attr in inspect(model).column_attrs]


def _column(model: Type[Base], name: str):
    if name not in column_names(model):
        raise LookupError(f'column {model.__tablename__}.{name} does not exist')
    return getattr(model, name)


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, enum.Enum) else value


def row_to_dict(obj: Base, columns: Optional[Sequence[str]] = None) -> Dict[str, Any]:
    names = columns or column_names(type(obj))
    return {name: _plain(getattr(obj, name)) for name in names}


def _apply_filters(model: Type[Base], stmt, filters: Iterable[Filter]):
    for f in filters:
        column = _column(model, f.column)
        if f.op == "eq":
            stmt = stmt.where(column.is_(None) if f.value is None else column == f.value)
        elif f.op == "neq":
            stmt = stmt.where(column.is_not(None) if f.value is None else column != f.value)
        elif f.op == "in":
            stmt = stmt.where(column.in_(list(f.value)))
        else:
            raise ValueError(f"Unsupported filter operator: {f.op}")
    return stmt


def _check_payload(model: Type[Base], payload: Dict[str, Any]) -> None:
    known = set(column_names(model))
    for key in payload:
        if key not in known:
            raise LookupError(f'column {model.__tablename__}.{key} does not exist')


def _matching(db: Session, model: Type[Base], filters: Iterable[Filter]) -> List[Base]:
    stmt = _apply_filters(model, select(model), filters)
    return list(db.scalars(stmt).all())


def select_rows(
    db: Session,
    model: Type[Base],
    columns: Optional[Sequence[str]] = None,
    filters: Iterable[Filter] = (),
    order: Iterable[Order] = (),
    limit: Optional[int] = None
) -> List[Dict[str, Any]]:
    """Fetch matching rows as dicts restricted to `columns` (all columns when None)"""
    if columns:
        for name in columns:
            _column(model, name)

    stmt = _apply_filters(model, select(model), filters)
    for o in order:
        column = _column(model, o.column)
        stmt = stmt.order_by(column.desc() if o.desc else column.asc())
    if limit is not None:
        stmt = stmt.limit(limit)

    return [row_to_dict(obj, columns) for obj in db.scalars(stmt).all()]


def count_rows(db: Session, model: Type[Base], filters: Iterable[Filter] = ()) -> int:
    stmt = _apply_filters(model, select(func.count()).select_from(model), filters)
    return db.scalar(stmt) or 0


def insert_rows(db: Session, model: Type[Base], rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    objects = []
    for row in rows:
        _check_payload(model, row)
        obj = model(**row)
        db.add(obj)
        objects.append(obj)

    db.commit()
    for obj in objects:
        db.refresh(obj)
    return [row_to_dict(obj) for obj in objects]


def update_rows(
    db: Session,
    model: Type[Base],
    patch: Dict[str, Any],
    filters: Iterable[Filter]
) -> List[Tuple[Dict[str, Any], Dict[str, Any]]]:
    """Apply `patch` to every matching row; returns (old, new) pairs"""
    _check_payload(model, patch)
    objects = _matching(db, model, filters)
    old_rows = [row_to_dict(obj) for obj in objects]

    for obj in objects:
        for key, value in patch.items():
            setattr(obj, key, value)

    db.commit()
    for obj in objects:
        db.refresh(obj)
    return list(zip(old_rows, [row_to_dict(obj) for obj in objects]))


def upsert_row(
    db: Session,
    model: Type[Base],
    row: Dict[str, Any],
    on_conflict: str
) -> Tuple[Optional[Dict[str, Any]], Dict[str, Any]]:
    """Insert `row`, or update the row sharing its `on_conflict` value; returns (old, new)"""
    _check_payload(model, row)
    if on_conflict not in row:
        raise ValueError(f"Upsert payload is missing conflict column {on_conflict}")

    existing = _matching(db, model, [Filter(on_conflict, "eq", row[on_conflict])])
    if existing:
        obj = existing[0]
        old_row = row_to_dict(obj)
        for key, value in row.items():
            if key != "id":
                setattr(obj, key, value)
    else:
        obj = model(**row)
        db.add(obj)
        old_row = None

    db.commit()
    db.refresh(obj)
    return old_row, row_to_dict(obj)


def delete_rows(db: Session, model: Type[Base], filters: Iterable[Filter]) -> List[Dict[str, Any]]:
    """Delete matching rows; store-side cascades remove dependents"""
    objects = _matching(db, model, filters)
    old_rows = [row_to_dict(obj) for obj in objects]

    for obj in objects:
        db.delete(obj)

    db.commit()
    return old_rows
