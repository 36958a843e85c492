import enum
import logging
from typing import Any, Callable, Optional

from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from .errors import StoreUnavailableError
from .models import Base, PassportRecord
from .normalizer import utc_now_iso

logger = logging.getLogger("tastetracker.store")
logger.setLevel(logging.INFO)


class StoreState(enum.Enum):
    NOT_READY = "not_ready"
    CONNECTED = "connected"


class DocumentStore:
    """One passport document per customer, keyed by customer id."""

    def __init__(self, database_url: str, clock: Callable[[], str] = utc_now_iso):
        self.database_url = database_url
        self._clock = clock
        self._engine: Optional[Engine] = None
        self._sessionmaker: Optional[sessionmaker] = None
        self.state = StoreState.NOT_READY

    @property
    def is_connected(self) -> bool:
        return self.state is StoreState.CONNECTED

    def connect(self) -> None:
        connect_args = {}
        if self.database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False

        engine = create_engine(self.database_url, echo=False, connect_args=connect_args)
        try:
            Base.metadata.create_all(engine)
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
        except Exception:
            engine.dispose()
            raise

        self._engine = engine
        self._sessionmaker = sessionmaker(bind=engine, autoflush=False, autocommit=False, class_=Session)
        self.state = StoreState.CONNECTED
        logger.info("Passport store connected: dialect=%s", engine.dialect.name)

    def close(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._sessionmaker = None
        self.state = StoreState.NOT_READY

    def _session(self) -> Session:
        if not self.is_connected or self._sessionmaker is None:
            raise StoreUnavailableError("Passport store is not connected")
        return self._sessionmaker()

    def find_passport(self, customer_id: str) -> Optional[dict[str, Any]]:
        with self._session() as session:
            row = session.get(PassportRecord, str(customer_id))
            if row is None:
                return None
            return dict(row.passport or {})

    def upsert_passport(self, customer_id: str, passport: dict[str, Any], migrated: bool = False) -> None:
        now = self._clock()
        try:
            self._write(customer_id, passport, now, migrated)
        except IntegrityError:
            # Another request inserted the same customer first; replace its document.
            logger.info("Concurrent insert for customer %s, replacing", customer_id)
            self._write(customer_id, passport, now, migrated)

    def _write(self, customer_id: str, passport: dict[str, Any], now: str, migrated: bool) -> None:
        with self._session() as session:
            row = session.get(PassportRecord, str(customer_id))
            if row is None:
                row = PassportRecord(customer_id=str(customer_id))
                session.add(row)

            # In-place edits to a JSON column are not tracked; always assign a new dict.
            row.passport = dict(passport)
            row.last_updated_at = now
            if migrated:
                row.migrated_at = now

            session.commit()
