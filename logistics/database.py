# logistics/database.py
import itertools
import logging
import re
from contextlib import contextmanager
from typing import Any, Iterator, Mapping, Sequence

from sqlalchemy import event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlalchemy.sql.elements import TextClause
from sqlmodel import Session, SQLModel, create_engine

from logistics.core.config import Settings

# Import models so SQLModel metadata is populated before create_all()
from logistics.models import customer as _customer_models  # noqa: F401
from logistics.models import order as _order_models  # noqa: F401

logger = logging.getLogger(__name__)

ORDER_NUMBER_PREFIX = "CMD"


def format_order_number(value: int) -> str:
    return f"{ORDER_NUMBER_PREFIX}{value:06d}"


class DatabaseUnavailableError(RuntimeError):
    """Neither the primary engine nor the embedded fallback could be opened."""


# ---------------------------------------------------------
# Backend capabilities
#
# Each backend describes what its engine can do; the Database and the
# repositories only talk to this interface and never test engine names.
# ---------------------------------------------------------


class Backend:
    name = "generic"
    supports_sequences = False
    probe_sql = "SELECT 1"

    def __init__(self, url: str):
        self.url = url

    def engine_options(self) -> dict[str, Any]:
        return {}

    def on_connect(self, dbapi_connection, connection_record) -> None:
        """Hook run on every new DBAPI connection."""

    def schema_extras(self) -> list[str]:
        """Engine-specific DDL run after tables and indexes exist."""
        return []

    def next_order_number(self, session: Session) -> str:
        raise NotImplementedError

    @staticmethod
    def is_already_exists(message: str) -> bool:
        lowered = message.lower()
        return "already exists" in lowered or "duplicate" in lowered


class PostgresBackend(Backend):
    """
    Primary engine.

    - pool_size=1, max_overflow=0 : exactly one live connection
    - pool_pre_ping=True          : validate the connection before use
    - order numbers come from a server-side sequence (atomic)
    """

    name = "postgresql"
    supports_sequences = True

    def __init__(self, url: str, sslmode: str | None = None):
        # Append sslmode if requested and not already present
        if sslmode and "sslmode=" not in url:
            separator = "&" if "?" in url else "?"
            url = f"{url}{separator}sslmode={sslmode}"
        super().__init__(url)

    def engine_options(self) -> dict[str, Any]:
        return {"pool_pre_ping": True, "pool_size": 1, "max_overflow": 0}

    def schema_extras(self) -> list[str]:
        return [
            "CREATE SEQUENCE IF NOT EXISTS order_number_seq START WITH 1000 INCREMENT BY 1",
            f"""
            CREATE OR REPLACE FUNCTION fill_order_number() RETURNS trigger AS $$
            BEGIN
                IF NEW.order_number IS NULL THEN
                    NEW.order_number := '{ORDER_NUMBER_PREFIX}'
                        || LPAD(nextval('order_number_seq')::text, 6, '0');
                END IF;
                RETURN NEW;
            END;
            $$ LANGUAGE plpgsql
            """,
            "DROP TRIGGER IF EXISTS trg_order_number ON orders",
            """
            CREATE TRIGGER trg_order_number
            BEFORE INSERT ON orders
            FOR EACH ROW EXECUTE FUNCTION fill_order_number()
            """,
        ]

    def next_order_number(self, session: Session) -> str:
        conn = session.connection()
        value = conn.execute(text("SELECT nextval('order_number_seq')")).scalar_one()
        return format_order_number(int(value))


class SqliteBackend(Backend):
    """
    Embedded fallback engine.

    - StaticPool + check_same_thread=False : one shared connection
    - foreign keys are enabled per connection (ON DELETE CASCADE)
    - no sequences: order numbers are synthesized from the row count
    """

    name = "sqlite"

    def engine_options(self) -> dict[str, Any]:
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }

    def on_connect(self, dbapi_connection, connection_record) -> None:
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    def next_order_number(self, session: Session) -> str:
        # Count-then-format: not safe under concurrent writers.
        conn = session.connection()
        count = conn.execute(text("SELECT COUNT(*) FROM orders")).scalar_one()
        candidate = int(count or 0) + 1
        taken = text("SELECT 1 FROM orders WHERE order_number = :number")
        while conn.execute(
            taken, {"number": format_order_number(candidate)}
        ).first() is not None:
            candidate += 1
        return format_order_number(candidate)


def backend_for_url(url: str, sslmode: str | None = None) -> Backend:
    backend_name = make_url(url).get_backend_name()
    if backend_name == "postgresql":
        return PostgresBackend(url, sslmode=sslmode)
    if backend_name == "sqlite":
        return SqliteBackend(url)
    raise ValueError(f"Unsupported database backend: {backend_name}")


# ---------------------------------------------------------
# Database handle
# ---------------------------------------------------------

# Quoted literals are matched first so a `?` inside them is left alone
_PLACEHOLDER_RE = re.compile(r"""'(?:[^']|'')*'|"(?:[^"]|"")*"|\?""")


class Database:
    """
    Storage handle shared by every repository and service.

    Created once at startup, connected with connect(), closed at shutdown.
    Holds a single live connection; all statements serialize through it.
    Failures are recorded in `last_error` and reported as False / empty
    results instead of propagating, except for connect().
    """

    def __init__(
        self,
        primary_url: str | None = None,
        fallback_url: str = "sqlite:///logistics.db",
        echo: bool = False,
        sslmode: str | None = None,
    ):
        self.primary_url = primary_url
        self.fallback_url = fallback_url
        self.echo = echo
        self.sslmode = sslmode

        self.backend: Backend | None = None
        self.engine: Engine | None = None
        self.last_error: str = ""
        self._tx_session: Session | None = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        return cls(
            primary_url=settings.DATABASE_URL,
            fallback_url=settings.fallback_url,
            echo=settings.DB_ECHO,
            sslmode=settings.DATABASE_SSLMODE,
        )

    # ----- Connection lifecycle -----

    def connect(self) -> Backend:
        """
        Open the primary engine, falling back to the embedded engine.

        Raises:
            DatabaseUnavailableError: if both engines fail.
        """
        if self.engine is not None and self.backend is not None:
            return self.backend

        if self.primary_url:
            try:
                return self._open(backend_for_url(self.primary_url, self.sslmode))
            except (SQLAlchemyError, ImportError, ValueError) as e:
                self.last_error = str(e)
                logger.warning(
                    "Primary database unavailable (%s), falling back to %s",
                    e,
                    self.fallback_url,
                )
        else:
            logger.info("No primary database configured, using %s", self.fallback_url)

        try:
            return self._open(backend_for_url(self.fallback_url))
        except (SQLAlchemyError, ImportError, ValueError) as e:
            self.last_error = str(e)
            logger.error("Fallback database also failed: %s", e)
            raise DatabaseUnavailableError(
                f"No database engine available: {e}"
            ) from e

    def _open(self, backend: Backend) -> Backend:
        engine = create_engine(backend.url, echo=self.echo, **backend.engine_options())
        event.listen(engine, "connect", backend.on_connect)
        try:
            with engine.connect() as conn:
                conn.execute(text(backend.probe_sql))
        except Exception:
            engine.dispose()
            raise

        self.backend = backend
        self.engine = engine
        logger.info("Database connection established (%s)", backend.name)
        return backend

    @property
    def is_connected(self) -> bool:
        return self.engine is not None

    @property
    def supports_sequences(self) -> bool:
        return self._require_backend().supports_sequences

    def close(self) -> None:
        if self._tx_session is not None:
            self.rollback()
        if self.engine is not None:
            self.engine.dispose()
            logger.info("Database connection closed (%s)", self.backend.name)
        self.engine = None
        self.backend = None

    def _require_engine(self) -> Engine:
        if self.engine is None:
            raise DatabaseUnavailableError("Database is not connected")
        return self.engine

    def _require_backend(self) -> Backend:
        if self.backend is None:
            raise DatabaseUnavailableError("Database is not connected")
        return self.backend

    # ----- Sessions & transactions -----

    @contextmanager
    def unit(self) -> Iterator[Session]:
        """
        Session scope for one repository operation.

        Outside a transaction: commits on success, rolls back on error.
        Inside begin_transaction()/transaction(): joins it and only flushes.
        """
        if self._tx_session is not None:
            yield self._tx_session
            self._tx_session.flush()
            return

        with Session(self._require_engine(), expire_on_commit=False) as session:
            try:
                yield session
                session.commit()
            except Exception:
                session.rollback()
                raise

    def begin_transaction(self) -> bool:
        if self._tx_session is not None:
            self.last_error = "A transaction is already in progress"
            logger.warning(self.last_error)
            return False
        try:
            session = Session(self._require_engine(), expire_on_commit=False)
            session.begin()
        except SQLAlchemyError as e:
            self.last_error = str(e)
            logger.warning("Failed to begin transaction: %s", e)
            return False
        self._tx_session = session
        return True

    def commit(self) -> bool:
        session = self._tx_session
        if session is None:
            self.last_error = "No transaction in progress"
            logger.warning(self.last_error)
            return False
        try:
            session.commit()
        except SQLAlchemyError as e:
            self.last_error = str(e)
            logger.warning("Failed to commit transaction: %s", e)
            session.rollback()
            return False
        finally:
            session.close()
            self._tx_session = None
        return True

    def rollback(self) -> bool:
        session = self._tx_session
        if session is None:
            self.last_error = "No transaction in progress"
            logger.warning(self.last_error)
            return False
        try:
            session.rollback()
        except SQLAlchemyError as e:
            self.last_error = str(e)
            logger.warning("Failed to roll back transaction: %s", e)
            return False
        finally:
            session.close()
            self._tx_session = None
        return True

    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """All-or-nothing scope for multi-statement writes."""
        if not self.begin_transaction():
            raise DatabaseUnavailableError(self.last_error)
        session = self._tx_session
        try:
            yield session
        except Exception:
            self.rollback()
            raise
        if not self.commit():
            raise DatabaseUnavailableError(self.last_error)

    # ----- Raw statements -----

    @staticmethod
    def prepare(sql: str) -> TextClause:
        """
        Build a statement from SQL with positional `?` placeholders.

        Placeholders become bound parameters :p0, :p1, ... so values are
        never interpolated into the SQL text. A `?` inside a quoted
        literal or identifier is kept as is.
        """
        counter = itertools.count()

        def replace(match: re.Match) -> str:
            token = match.group(0)
            return f":p{next(counter)}" if token == "?" else token

        return text(_PLACEHOLDER_RE.sub(replace, sql))

    @staticmethod
    def _bind(params: Sequence[Any] | Mapping[str, Any] | None) -> dict[str, Any]:
        if params is None:
            return {}
        if isinstance(params, Mapping):
            return dict(params)
        return {f"p{i}": value for i, value in enumerate(params)}

    def _statement(self, statement: TextClause | str) -> TextClause:
        return self.prepare(statement) if isinstance(statement, str) else statement

    def execute(
        self,
        statement: TextClause | str,
        params: Sequence[Any] | Mapping[str, Any] | None = None,
    ) -> bool:
        stmt = self._statement(statement)
        try:
            with self.unit() as session:
                session.connection().execute(stmt, self._bind(params))
        except SQLAlchemyError as e:
            self.last_error = str(e)
            logger.warning("Statement failed: %s\nSQL: %s", e, stmt.text)
            return False
        return True

    def fetch_all(
        self,
        statement: TextClause | str,
        params: Sequence[Any] | Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        stmt = self._statement(statement)
        try:
            with self.unit() as session:
                result = session.connection().execute(stmt, self._bind(params))
                return [dict(row) for row in result.mappings()]
        except SQLAlchemyError as e:
            self.last_error = str(e)
            logger.warning("Query failed: %s\nSQL: %s", e, stmt.text)
            return []

    def fetch_one(
        self,
        statement: TextClause | str,
        params: Sequence[Any] | Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        rows = self.fetch_all(statement, params)
        return rows[0] if rows else None

    def fetch_scalar(
        self,
        statement: TextClause | str,
        params: Sequence[Any] | Mapping[str, Any] | None = None,
    ) -> Any:
        row = self.fetch_one(statement, params)
        if not row:
            return None
        return next(iter(row.values()))

    # ----- Schema -----

    def ensure_schema(self) -> bool:
        """
        Create tables, indexes and engine extras if they do not exist.

        Safe to call on every startup.
        """
        engine = self._require_engine()
        backend = self._require_backend()

        try:
            SQLModel.metadata.create_all(engine)
        except SQLAlchemyError as e:
            if not backend.is_already_exists(str(e)):
                self.last_error = str(e)
                logger.error("Schema creation failed: %s", e)
                return False
            logger.debug("Schema objects already present: %s", e)

        for ddl in backend.schema_extras():
            try:
                with engine.begin() as conn:
                    conn.execute(text(ddl))
            except SQLAlchemyError as e:
                if backend.is_already_exists(str(e)):
                    logger.debug("Schema extra already present: %s", e)
                    continue
                self.last_error = str(e)
                logger.error("Schema extra failed: %s", e)
                return False

        logger.info("Schema verified (%s)", backend.name)
        return True

    def next_order_number(self, session: Session) -> str:
        return self._require_backend().next_order_number(session)
