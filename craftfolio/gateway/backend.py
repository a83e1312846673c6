"""
Local gateway backend.

Owns the relational store and the realtime hub shared by every client.
Row operations delegate to crud.table_crud and publish one change event
per affected row once the transaction has committed.
"""

import logging
import threading
from contextlib import contextmanager, nullcontext
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Sequence, Union

from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from craftfolio.crud import auth_crud, table_crud
from craftfolio.crud.table_crud import Filter, Order
from craftfolio.database import Base
from craftfolio.gateway.errors import GatewayError, SERVER_ERROR, UNAUTHORIZED, UNIQUE_VIOLATION
from craftfolio.gateway.realtime import ChangeEvent, ChangeType, RealtimeHub
from craftfolio.schema.auth_schema import GatewayUser

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


@dataclass
class QueryResult:
    data: Union[List[Row], Row, None] = None
    count: Optional[int] = None


def _integrity_code(error: IntegrityError) -> str:
    pgcode = getattr(error.orig, "pgcode", None)
    if pgcode:
        return pgcode
    text = str(error.orig).upper()
    if "UNIQUE" in text:
        return UNIQUE_VIOLATION
    if "FOREIGN KEY" in text:
        return "23503"
    return "23000"


class Backend:
    def __init__(self, session_factory: sessionmaker, profile_trigger: bool = True):
        self.session_factory = session_factory
        self.profile_trigger = profile_trigger
        self.hub = RealtimeHub()

        # SQLite connections are shared by the worker threads queries run on
        bind = session_factory.kw.get("bind")
        sqlite = bind is not None and bind.dialect.name == "sqlite"
        self._lock = threading.RLock() if sqlite else nullcontext()

    @classmethod
    def from_engine(cls, engine: Engine, **kwargs) -> "Backend":
        factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        return cls(factory, **kwargs)

    def create_all(self) -> None:
        Base.metadata.create_all(bind=self.session_factory.kw["bind"])

    @contextmanager
    def _store(self) -> Iterator[Session]:
        with self._lock:
            db = self.session_factory()
            try:
                yield db
            except IntegrityError as e:
                db.rollback()
                raise GatewayError(str(e.orig), _integrity_code(e))
            except LookupError as e:
                db.rollback()
                raise GatewayError(str(e.args[0]) if e.args else str(e), "42703")
            except ValueError as e:
                db.rollback()
                raise GatewayError(str(e), "400")
            except SQLAlchemyError as e:
                db.rollback()
                logger.error("Store error: %s", e)
                raise GatewayError(str(e), SERVER_ERROR)
            finally:
                db.close()

    def _publish(self, table: str, event_type: ChangeType, new: Optional[Row] = None, old: Optional[Row] = None) -> None:
        self.hub.publish(ChangeEvent(table=table, event_type=event_type, new=new or {}, old=old or {}))

    # ----------------- Rows -----------------

    def select(
        self,
        table: str,
        columns: Optional[Sequence[str]] = None,
        filters: Sequence[Filter] = (),
        order: Sequence[Order] = (),
        limit: Optional[int] = None
    ) -> List[Row]:
        with self._store() as db:
            model = table_crud.get_model(table)
            return table_crud.select_rows(db, model, columns, filters, order, limit)

    def count(self, table: str, filters: Sequence[Filter] = ()) -> int:
        with self._store() as db:
            return table_crud.count_rows(db, table_crud.get_model(table), filters)

    def insert(self, table: str, rows: Sequence[Row]) -> List[Row]:
        with self._store() as db:
            created = table_crud.insert_rows(db, table_crud.get_model(table), rows)
        for row in created:
            self._publish(table, ChangeType.INSERT, new=row)
        return created

    def update(self, table: str, patch: Row, filters: Sequence[Filter]) -> List[Row]:
        with self._store() as db:
            pairs = table_crud.update_rows(db, table_crud.get_model(table), patch, filters)
        for old, new in pairs:
            self._publish(table, ChangeType.UPDATE, new=new, old=old)
        return [new for _, new in pairs]

    def upsert(self, table: str, row: Row, on_conflict: str) -> Row:
        with self._store() as db:
            old, new = table_crud.upsert_row(db, table_crud.get_model(table), row, on_conflict)
        if old is None:
            self._publish(table, ChangeType.INSERT, new=new)
        else:
            self._publish(table, ChangeType.UPDATE, new=new, old=old)
        return new

    def delete(self, table: str, filters: Sequence[Filter]) -> List[Row]:
        with self._store() as db:
            removed = table_crud.delete_rows(db, table_crud.get_model(table), filters)
        for row in removed:
            self._publish(table, ChangeType.DELETE, old=row)
        return removed

    # ----------------- Auth -----------------

    def sign_up(self, email: str, password: str, metadata: Optional[dict] = None) -> GatewayUser:
        with self._store() as db:
            try:
                user = auth_crud.create_user(
                    db,
                    email=email,
                    password=password,
                    metadata=metadata,
                    with_profile=self.profile_trigger
                )
            except ValueError as e:
                raise GatewayError(str(e), "422")
            return GatewayUser.model_validate(user)

    def authenticate(self, email: str, password: str) -> GatewayUser:
        with self._store() as db:
            user = auth_crud.authenticate_user(db, email, password)
            if not user:
                raise GatewayError("Invalid login credentials", "400")
            return GatewayUser.model_validate(user)

    def get_user(self, user_id: str) -> Optional[GatewayUser]:
        with self._store() as db:
            user = auth_crud.get_user_by_id(db, user_id)
            return GatewayUser.model_validate(user) if user else None

    def oauth_user(
        self,
        email: str,
        provider: str,
        provider_id: Optional[str] = None,
        metadata: Optional[dict] = None
    ) -> GatewayUser:
        if not email:
            raise GatewayError(f"Email not found in {provider} account", UNAUTHORIZED)
        with self._store() as db:
            user = auth_crud.get_or_create_oauth_user(
                db,
                email=email,
                provider=provider,
                provider_id=provider_id,
                metadata=metadata,
                with_profile=self.profile_trigger
            )
            return GatewayUser.model_validate(user)

