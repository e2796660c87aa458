"""
core/store.py -- SQLAlchemy Core persistence layer for configured lists.

Pattern: Repository + Data Mapper. Database owns the engine and one Table per
list in the AppConfig; ListStore is the repository for a single list and
hands records out as plain dicts (column name -> value). Resolver code never
touches SQL directly.

Security:
  All queries use bound parameters. Column names come from the list config,
  never from request input -- find() and update_item() reject unknown keys
  before any SQL is built.

Access control:
  update_item() and create_item() check each field's access function unless
  the context has skip_access_control set (Context.sudo()). Update failures
  come back as a list of StoreError values rather than exceptions so callers
  can log the detail and answer with a generic message.

Layer rule: no imports from api/ or auth/.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import Column, Integer, MetaData, Table, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from core.models import AppConfig, ListConfig

if TYPE_CHECKING:
    from core.context import Context

logger = logging.getLogger("listauth.store")


class AccessDeniedError(PermissionError):
    """Raised by create_item() when a field's access function refuses the write."""


@dataclass(frozen=True)
class StoreError:
    code: str  # "unknown_field" | "access_denied" | "not_found" | "database_error"
    message: str


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class ListStore:
    """Repository for the records of one list.

    Usage:
        db = Database(app_config, "sqlite:///:memory:")
        users = db.lists["User"]
        users.find({"email": "a@x.com"})   # -> [{"id": 1, "email": ..., ...}]
    """

    def __init__(self, key: str, config: ListConfig, table: Table, engine: Engine) -> None:
        self.key = key
        self.config = config
        self.table = table
        self.engine = engine

    @property
    def label(self) -> str:
        return self.config.singular_label(self.key)

    @property
    def plural_label(self) -> str:
        return self.config.plural_label(self.key)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def find(self, where: dict[str, Any]) -> list[dict[str, Any]]:
        """Return every record whose fields equal all values in where.

        An id that is not an integer cannot match any row; it returns [] rather
        than raising so session payloads with stale ids degrade to "no item".
        """
        stmt = select(self.table)
        for name, value in where.items():
            if name not in self.table.c:
                raise ValueError(f"List {self.key!r} has no field named {name!r}")
            if name == "id":
                try:
                    value = int(value)
                except (TypeError, ValueError):
                    return []
            stmt = stmt.where(self.table.c[name] == value)
        with self.engine.connect() as conn:
            rows = conn.execute(stmt.order_by(self.table.c.id)).fetchall()
        return [_row_to_item(r) for r in rows]

    def count(self) -> int:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(self.table)).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_item(self, context: Context, data: dict[str, Any]) -> dict[str, Any]:
        """Insert a record and return it as stored.

        Raises ValueError for unknown fields, AccessDeniedError when a field's
        access function refuses the write, and sqlalchemy.exc.IntegrityError on
        unique/required violations (callers decide how to surface those).
        """
        self._check_fields(context, data, operation="create")
        with self.engine.connect() as conn:
            result = conn.execute(self.table.insert().values(**data))
            conn.commit()
            item_id = result.inserted_primary_key[0]
        return self.find({"id": item_id})[0]

    def update_item(self, context: Context, item_id: Any, data: dict[str, Any]) -> list[StoreError]:
        """Apply data to one record. Returns [] on success, otherwise the errors.

        Nothing is written when any error is found; the update is a single
        statement so the fields change together or not at all.
        """
        errors: list[StoreError] = []
        for name in data:
            field = self.config.fields.get(name)
            if field is None:
                errors.append(StoreError("unknown_field", f"{self.key} has no field {name!r}"))
            elif not context.skip_access_control and not field.access(
                context=context, operation="update", item_id=item_id
            ):
                errors.append(StoreError("access_denied", f"Access denied to {self.key}.{name}"))
        if errors:
            return errors

        try:
            with self.engine.connect() as conn:
                result = conn.execute(self.table.update().where(self.table.c.id == int(item_id)).values(**data))
                conn.commit()
        except (SQLAlchemyError, TypeError, ValueError) as exc:
            return [StoreError("database_error", f"{type(exc).__name__}: {exc}")]
        if result.rowcount == 0:
            return [StoreError("not_found", f"{self.key} {item_id!r} does not exist")]
        return []

    def _check_fields(self, context: Context, data: dict[str, Any], operation: str) -> None:
        for name in data:
            field = self.config.fields.get(name)
            if field is None:
                raise ValueError(f"List {self.key!r} has no field named {name!r}")
            if not context.skip_access_control and not field.access(context=context, operation=operation):
                raise AccessDeniedError(f"Access denied to {self.key}.{name}")


class Database:
    """Owns the engine and builds one table per list at startup.

    Table names are the list keys lower-cased (User -> user). create_all is
    idempotent, so restarting against an existing SQLite file is safe; new
    fields added to a list are not migrated onto existing tables.
    """

    def __init__(self, app_config: AppConfig, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)

        metadata = MetaData()
        self.lists: dict[str, ListStore] = {}
        for key, list_config in app_config.lists.items():
            columns = [Column("id", Integer, primary_key=True, autoincrement=True)]
            for name, field in list_config.fields.items():
                columns.append(
                    Column(
                        name,
                        field.column_type(),
                        nullable=not field.is_required,
                        unique=getattr(field, "is_unique", False),
                    )
                )
            table = Table(key.lower(), metadata, *columns)
            self.lists[key] = ListStore(key, list_config, table, self.engine)
        metadata.create_all(self.engine)
        logger.info("Database ready (%d lists)", len(self.lists))

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper
# ---------------------------------------------------------------------------


def _row_to_item(row) -> dict[str, Any]:
    return dict(row._mapping)
