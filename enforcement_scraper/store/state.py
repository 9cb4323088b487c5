"""SQLite store for enforcement records, offenders, sessions and processing logs."""
import logging
import sqlite3
import uuid
from decimal import Decimal
from pathlib import Path
from typing import Optional

import aiosqlite
import orjson

from enforcement_scraper.config import STATE_DB
from enforcement_scraper.jobs.session import ScrapeSession, SessionStatus
from enforcement_scraper.parse.models import (
    Agency,
    DataType,
    Offender,
    OffenderAttrs,
    PersistedRecord,
    ProcessedRecord,
    ProcessingLogEntry,
    utcnow,
)
from enforcement_scraper.store.gateway import DuplicateRecordError, PersistError

logger = logging.getLogger(__name__)

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS records (
        id TEXT PRIMARY KEY,
        data_type TEXT NOT NULL,
        agency TEXT NOT NULL,
        external_id TEXT NOT NULL,
        offender_id TEXT,
        fields TEXT NOT NULL,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL,
        UNIQUE (data_type, external_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS offenders (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        normalized_name TEXT NOT NULL,
        postcode TEXT,
        local_authority TEXT,
        business_type TEXT,
        agencies TEXT NOT NULL DEFAULT '[]',
        total_cases INTEGER NOT NULL DEFAULT 0,
        total_notices INTEGER NOT NULL DEFAULT 0,
        total_fines TEXT NOT NULL DEFAULT '0',
        first_seen_date TEXT,
        last_seen_date TEXT
    )
    """,
    "CREATE UNIQUE INDEX IF NOT EXISTS idx_offenders_identity ON offenders(normalized_name, COALESCE(postcode, ''))",
    """
    CREATE TABLE IF NOT EXISTS scrape_sessions (
        id TEXT PRIMARY KEY,
        agency TEXT NOT NULL,
        status TEXT NOT NULL,
        data TEXT NOT NULL,
        created_at TIMESTAMP NOT NULL,
        updated_at TIMESTAMP NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_sessions_status ON scrape_sessions(status)",
    """
    CREATE TABLE IF NOT EXISTS processing_logs (
        id TEXT PRIMARY KEY,
        session_id TEXT NOT NULL,
        batch_or_page INTEGER NOT NULL,
        data TEXT NOT NULL,
        created_at TIMESTAMP NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_logs_session ON processing_logs(session_id)",
]


def _dumps(value) -> str:
    return orjson.dumps(value).decode()


def _is_external_id_conflict(error: sqlite3.IntegrityError) -> bool:
    return "UNIQUE constraint failed: records.data_type, records.external_id" in str(error)


def _record_row(record: ProcessedRecord) -> tuple:
    now = utcnow().isoformat()
    fields = record.model_dump(mode="json", exclude={"external_id", "agency_code", "data_type", "offender_id"})
    return (
        str(uuid.uuid4()),
        record.data_type.value,
        (record.agency_code or Agency.HSE).value,
        record.external_id,
        record.offender_id,
        _dumps(fields),
        now,
        now,
    )


def _to_persisted(row) -> PersistedRecord:
    return PersistedRecord(
        id=row["id"],
        data_type=row["data_type"],
        agency=row["agency"],
        external_id=row["external_id"],
        offender_id=row["offender_id"],
        fields=orjson.loads(row["fields"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _to_offender(row) -> Offender:
    return Offender(
        id=row["id"],
        name=row["name"],
        normalized_name=row["normalized_name"],
        postcode=row["postcode"],
        local_authority=row["local_authority"],
        business_type=row["business_type"],
        agencies=orjson.loads(row["agencies"]),
        total_cases=row["total_cases"],
        total_notices=row["total_notices"],
        total_fines=Decimal(row["total_fines"]),
        first_seen_date=row["first_seen_date"],
        last_seen_date=row["last_seen_date"],
    )


class EnforcementStore:
    """SQLite backing store. Opens one connection per operation."""

    def __init__(self, db_path: Path = STATE_DB):
        self.db_path = db_path

    def _connect(self):
        return aiosqlite.connect(self.db_path)

    async def initialize(self) -> None:
        async with self._connect() as db:
            for statement in SCHEMA:
                await db.execute(statement)
            await db.commit()
        logger.info(f"State database initialized at {self.db_path}")

    # Records

    async def exists_batch(self, data_type: DataType, external_ids: list[str]) -> set[str]:
        if not external_ids:
            return set()
        placeholders = ",".join("?" for _ in external_ids)
        async with self._connect() as db:
            cursor = await db.execute(
                f"SELECT external_id FROM records WHERE data_type = ? AND external_id IN ({placeholders})",
                (DataType(data_type).value, *external_ids),
            )
            return {row[0] for row in await cursor.fetchall()}

    async def create_record(self, record: ProcessedRecord) -> PersistedRecord:
        return (await self.create_records([record]))[0]

    async def create_records(self, records: list[ProcessedRecord]) -> list[PersistedRecord]:
        """Insert all records in one transaction; any conflict rolls the whole batch back."""
        rows = [_record_row(r) for r in records]
        try:
            async with self._connect() as db:
                await db.executemany(
                    """
                    INSERT INTO records (id, data_type, agency, external_id, offender_id, fields, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    rows,
                )
                await db.commit()
        except sqlite3.IntegrityError as e:
            external_id = records[0].external_id if len(records) == 1 else None
            if not _is_external_id_conflict(e):
                raise PersistError(external_id, str(e)) from e
            raise DuplicateRecordError(external_id, str(e)) from e
        except sqlite3.Error as e:
            raise PersistError(None, str(e)) from e

        return [
            PersistedRecord(
                id=row[0],
                data_type=row[1],
                agency=row[2],
                external_id=row[3],
                offender_id=row[4],
                fields=orjson.loads(row[5]),
                created_at=row[6],
                updated_at=row[7],
            )
            for row in rows
        ]

    async def get_record(self, data_type: DataType, external_id: str) -> Optional[PersistedRecord]:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute(
                "SELECT * FROM records WHERE data_type = ? AND external_id = ?",
                (DataType(data_type).value, external_id),
            )
            row = await cursor.fetchone()
            return _to_persisted(row) if row else None

    async def count_records(self, data_type: Optional[DataType] = None) -> int:
        async with self._connect() as db:
            if data_type is None:
                cursor = await db.execute("SELECT COUNT(*) FROM records")
            else:
                cursor = await db.execute(
                    "SELECT COUNT(*) FROM records WHERE data_type = ?", (DataType(data_type).value,)
                )
            row = await cursor.fetchone()
            return row[0]

    async def update_record_from_scraping(self, record: ProcessedRecord) -> PersistedRecord:
        """Refresh the mutable fields of an existing record."""
        existing = await self.get_record(record.data_type, record.external_id)
        if existing is None:
            raise PersistError(record.external_id, "record to update not found")

        fields = dict(existing.fields)
        fields.update({k: v for k, v in record.mutable_fields().items() if v is not None})
        now = utcnow()
        try:
            async with self._connect() as db:
                await db.execute(
                    "UPDATE records SET fields = ?, updated_at = ? WHERE id = ?",
                    (_dumps(fields), now.isoformat(), existing.id),
                )
                await db.commit()
        except sqlite3.Error as e:
            raise PersistError(record.external_id, str(e)) from e
        return existing.model_copy(update={"fields": fields, "updated_at": now})

    # Offenders

    async def _find_offender(self, db, normalized_name: str, postcode: Optional[str]):
        if postcode:
            cursor = await db.execute(
                "SELECT * FROM offenders WHERE normalized_name = ? AND postcode = ? LIMIT 1",
                (normalized_name, postcode),
            )
            row = await cursor.fetchone()
            if row:
                return row
        cursor = await db.execute(
            "SELECT * FROM offenders WHERE normalized_name = ? ORDER BY rowid LIMIT 1",
            (normalized_name,),
        )
        return await cursor.fetchone()

    async def find_or_create_offender(self, attrs: OffenderAttrs, agency: Agency) -> Offender:
        """Match by normalized name and postcode, then by name alone, else create."""
        normalized = attrs.normalized_name or attrs.name.upper()
        agency_code = Agency(agency).value if agency else None
        try:
            async with self._connect() as db:
                db.row_factory = aiosqlite.Row
                row = await self._find_offender(db, normalized, attrs.postcode)
                if row is None:
                    # Concurrent inserts of one offender collapse onto idx_offenders_identity
                    cursor = await db.execute(
                        """
                        INSERT OR IGNORE INTO offenders (id, name, normalized_name, postcode, local_authority, business_type, agencies)
                        VALUES (?, ?, ?, ?, ?, ?, ?)
                        """,
                        (
                            str(uuid.uuid4()),
                            attrs.name,
                            normalized,
                            attrs.postcode,
                            attrs.local_authority,
                            attrs.business_type,
                            _dumps([agency_code] if agency_code else []),
                        ),
                    )
                    await db.commit()
                    if cursor.rowcount:
                        logger.debug(f"Created offender {attrs.name} ({attrs.postcode or 'no postcode'})")
                    cursor = await db.execute(
                        "SELECT id FROM offenders WHERE normalized_name = ? AND COALESCE(postcode, '') = ?",
                        (normalized, attrs.postcode or ""),
                    )
                    offender_id = (await cursor.fetchone())["id"]
                else:
                    agencies = orjson.loads(row["agencies"])
                    if agency_code and agency_code not in agencies:
                        agencies.append(agency_code)
                        await db.execute(
                            "UPDATE offenders SET agencies = ? WHERE id = ?", (_dumps(agencies), row["id"])
                        )
                        await db.commit()
                    offender_id = row["id"]

                cursor = await db.execute("SELECT * FROM offenders WHERE id = ?", (offender_id,))
                return _to_offender(await cursor.fetchone())
        except sqlite3.Error as e:
            raise PersistError(None, f"offender {attrs.name}: {e}") from e

    async def record_offender_sighting(self, offender_id: str, record: ProcessedRecord) -> None:
        """Bump the offender's counters for a newly created record."""
        try:
            await self._bump_offender(offender_id, record)
        except sqlite3.Error as e:
            raise PersistError(record.external_id, f"offender counters: {e}") from e

    async def _bump_offender(self, offender_id: str, record: ProcessedRecord) -> None:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM offenders WHERE id = ?", (offender_id,))
            row = await cursor.fetchone()
            if row is None:
                logger.warning(f"Offender {offender_id} vanished before counters update")
                return
            offender = _to_offender(row)
            seen = record.action_date
            first = min(filter(None, [offender.first_seen_date, seen]), default=None)
            last = max(filter(None, [offender.last_seen_date, seen]), default=None)
            is_notice = record.data_type == DataType.NOTICE
            await db.execute(
                """
                UPDATE offenders
                SET total_cases = ?, total_notices = ?, total_fines = ?, first_seen_date = ?, last_seen_date = ?
                WHERE id = ?
                """,
                (
                    offender.total_cases + (0 if is_notice else 1),
                    offender.total_notices + (1 if is_notice else 0),
                    str(offender.total_fines + (record.fine or Decimal("0"))),
                    first.isoformat() if first else None,
                    last.isoformat() if last else None,
                    offender_id,
                ),
            )
            await db.commit()

    async def get_offender(self, offender_id: str) -> Optional[Offender]:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            cursor = await db.execute("SELECT * FROM offenders WHERE id = ?", (offender_id,))
            row = await cursor.fetchone()
            return _to_offender(row) if row else None

    # Sessions

    async def save_session(self, session: ScrapeSession) -> None:
        async with self._connect() as db:
            await db.execute(
                """
                INSERT INTO scrape_sessions (id, agency, status, data, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET status = excluded.status, data = excluded.data,
                    updated_at = excluded.updated_at
                """,
                (
                    session.id,
                    session.agency.value,
                    session.status.value,
                    session.model_dump_json(),
                    session.created_at.isoformat(),
                    session.updated_at.isoformat(),
                ),
            )
            await db.commit()

    async def get_session(self, session_id: str) -> Optional[ScrapeSession]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT data FROM scrape_sessions WHERE id = ?", (session_id,))
            row = await cursor.fetchone()
            return ScrapeSession.model_validate_json(row[0]) if row else None

    async def list_sessions(self, status: Optional[SessionStatus] = None, limit: int = 50) -> list[ScrapeSession]:
        async with self._connect() as db:
            if status is None:
                cursor = await db.execute(
                    "SELECT data FROM scrape_sessions ORDER BY created_at DESC LIMIT ?", (limit,)
                )
            else:
                cursor = await db.execute(
                    "SELECT data FROM scrape_sessions WHERE status = ? ORDER BY created_at DESC LIMIT ?",
                    (SessionStatus(status).value, limit),
                )
            return [ScrapeSession.model_validate_json(row[0]) for row in await cursor.fetchall()]

    async def delete_sessions(
        self, session_ids: Optional[list[str]] = None, status: Optional[SessionStatus] = None
    ) -> int:
        """Delete sessions (and their logs) by id or by status. Returns sessions deleted."""
        async with self._connect() as db:
            if session_ids:
                ids = list(session_ids)
            elif status is not None:
                cursor = await db.execute(
                    "SELECT id FROM scrape_sessions WHERE status = ?", (SessionStatus(status).value,)
                )
                ids = [row[0] for row in await cursor.fetchall()]
            else:
                return 0
            if not ids:
                return 0
            placeholders = ",".join("?" for _ in ids)
            await db.execute(f"DELETE FROM processing_logs WHERE session_id IN ({placeholders})", ids)
            cursor = await db.execute(f"DELETE FROM scrape_sessions WHERE id IN ({placeholders})", ids)
            await db.commit()
            return cursor.rowcount

    # Processing logs

    async def append_processing_log(self, entry: ProcessingLogEntry) -> ProcessingLogEntry:
        if entry.id is None:
            entry = entry.model_copy(update={"id": str(uuid.uuid4())})
        async with self._connect() as db:
            await db.execute(
                """
                INSERT INTO processing_logs (id, session_id, batch_or_page, data, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (
                    entry.id,
                    entry.session_id,
                    entry.batch_or_page,
                    entry.model_dump_json(),
                    entry.created_at.isoformat(),
                ),
            )
            await db.commit()
        return entry

    async def logs_for_session(self, session_id: str) -> list[ProcessingLogEntry]:
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT data FROM processing_logs WHERE session_id = ? ORDER BY batch_or_page, created_at",
                (session_id,),
            )
            return [ProcessingLogEntry.model_validate_json(row[0]) for row in await cursor.fetchall()]
