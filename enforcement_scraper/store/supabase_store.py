"""Supabase (PostgREST) backing store with the same interface as the SQLite store."""
import asyncio
import logging
import uuid
from decimal import Decimal
from functools import partial
from typing import Any, Callable, Optional

from supabase import Client, create_client
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from enforcement_scraper.config import config
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

UNIQUE_VIOLATION = "23505"


def _is_conflict(exc: BaseException) -> bool:
    return getattr(exc, "code", None) == UNIQUE_VIOLATION


def _is_transient(exc: BaseException) -> bool:
    return not _is_conflict(exc)


class SupabaseStore:
    """Writes records, offenders, sessions and processing logs to Supabase.

    supabase-py is synchronous; every call runs in the default executor and
    is retried with backoff except for uniqueness conflicts.
    """

    def __init__(self, client: Optional[Client] = None):
        if client is None:
            if not config.SUPABASE_URL or not config.SUPABASE_SERVICE_ROLE:
                raise ValueError("Supabase configuration missing")
            client = create_client(config.SUPABASE_URL, config.SUPABASE_SERVICE_ROLE)
        self.client = client
        self.records_table = "enforcement_records"
        self.offenders_table = "offenders"
        self.sessions_table = "scrape_sessions"
        self.logs_table = "processing_logs"

    async def _run(self, func: Callable[..., Any], *args) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        retry=retry_if_exception(_is_transient),
        reraise=True,
    )
    def _execute(self, query) -> list[dict]:
        return query.execute().data or []

    async def _query(self, query, external_id: Optional[str] = None) -> list[dict]:
        try:
            return await self._run(self._execute, query)
        except Exception as e:
            if _is_conflict(e):
                raise DuplicateRecordError(external_id, str(e)) from e
            logger.error(f"Supabase error on {external_id or 'query'}: {e}", exc_info=True)
            raise PersistError(external_id, str(e)) from e

    async def initialize(self) -> None:
        logger.info(f"Using Supabase store at {config.SUPABASE_URL}")

    # Records

    def _record_row(self, record: ProcessedRecord) -> dict:
        now = utcnow().isoformat()
        return {
            "id": str(uuid.uuid4()),
            "data_type": record.data_type.value,
            "agency": record.agency_code.value if record.agency_code else None,
            "external_id": record.external_id,
            "offender_id": record.offender_id,
            "fields": record.model_dump(
                mode="json", exclude={"external_id", "agency_code", "data_type", "offender_id"}
            ),
            "created_at": now,
            "updated_at": now,
        }

    async def exists_batch(self, data_type: DataType, external_ids: list[str]) -> set[str]:
        if not external_ids:
            return set()
        rows = await self._query(
            self.client.table(self.records_table)
            .select("external_id")
            .eq("data_type", DataType(data_type).value)
            .in_("external_id", external_ids)
        )
        return {row["external_id"] for row in rows}

    async def create_record(self, record: ProcessedRecord) -> PersistedRecord:
        rows = await self._query(
            self.client.table(self.records_table).insert(self._record_row(record)), record.external_id
        )
        return PersistedRecord(**rows[0])

    async def create_records(self, records: list[ProcessedRecord]) -> list[PersistedRecord]:
        rows = await self._query(
            self.client.table(self.records_table).insert([self._record_row(r) for r in records])
        )
        return [PersistedRecord(**row) for row in rows]

    async def get_record(self, data_type: DataType, external_id: str) -> Optional[PersistedRecord]:
        rows = await self._query(
            self.client.table(self.records_table)
            .select("*")
            .eq("data_type", DataType(data_type).value)
            .eq("external_id", external_id)
            .limit(1),
            external_id,
        )
        return PersistedRecord(**rows[0]) if rows else None

    async def update_record_from_scraping(self, record: ProcessedRecord) -> PersistedRecord:
        existing = await self.get_record(record.data_type, record.external_id)
        if existing is None:
            raise PersistError(record.external_id, "record to update not found")
        fields = dict(existing.fields)
        fields.update({k: v for k, v in record.mutable_fields().items() if v is not None})
        rows = await self._query(
            self.client.table(self.records_table)
            .update({"fields": fields, "updated_at": utcnow().isoformat()})
            .eq("id", existing.id),
            record.external_id,
        )
        return PersistedRecord(**rows[0]) if rows else existing.model_copy(update={"fields": fields})

    # Offenders

    async def find_or_create_offender(self, attrs: OffenderAttrs, agency: Agency) -> Offender:
        normalized = attrs.normalized_name or attrs.name.upper()
        agency_code = Agency(agency).value if agency else None
        table = self.client.table(self.offenders_table)

        rows = []
        if attrs.postcode:
            rows = await self._query(
                table.select("*").eq("normalized_name", normalized).eq("postcode", attrs.postcode).limit(1)
            )
        if not rows:
            rows = await self._query(table.select("*").eq("normalized_name", normalized).limit(1))

        if rows:
            offender = Offender(**rows[0])
            if agency_code and agency_code not in offender.agencies:
                agencies = offender.agencies + [agency_code]
                await self._query(table.update({"agencies": agencies}).eq("id", offender.id))
                offender = offender.model_copy(update={"agencies": agencies})
            return offender

        row = {
            "id": str(uuid.uuid4()),
            "name": attrs.name,
            "normalized_name": normalized,
            "postcode": attrs.postcode,
            "local_authority": attrs.local_authority,
            "business_type": attrs.business_type,
            "agencies": [agency_code] if agency_code else [],
        }
        try:
            rows = await self._query(table.insert(row))
        except DuplicateRecordError:
            # Created concurrently by another session
            rows = await self._query(table.select("*").eq("normalized_name", normalized).limit(1))
        return Offender(**rows[0])

    async def record_offender_sighting(self, offender_id: str, record: ProcessedRecord) -> None:
        table = self.client.table(self.offenders_table)
        rows = await self._query(table.select("*").eq("id", offender_id).limit(1))
        if not rows:
            logger.warning(f"Offender {offender_id} vanished before counters update")
            return
        offender = Offender(**rows[0])
        seen = record.action_date
        first = min(filter(None, [offender.first_seen_date, seen]), default=None)
        last = max(filter(None, [offender.last_seen_date, seen]), default=None)
        is_notice = record.data_type == DataType.NOTICE
        await self._query(
            table.update(
                {
                    "total_cases": offender.total_cases + (0 if is_notice else 1),
                    "total_notices": offender.total_notices + (1 if is_notice else 0),
                    "total_fines": str(offender.total_fines + (record.fine or Decimal("0"))),
                    "first_seen_date": first.isoformat() if first else None,
                    "last_seen_date": last.isoformat() if last else None,
                }
            ).eq("id", offender_id)
        )

    # Sessions

    async def save_session(self, session: ScrapeSession) -> None:
        row = {
            "id": session.id,
            "agency": session.agency.value,
            "status": session.status.value,
            "data": session.model_dump(mode="json"),
            "created_at": session.created_at.isoformat(),
            "updated_at": session.updated_at.isoformat(),
        }
        await self._query(self.client.table(self.sessions_table).upsert(row, on_conflict="id"))

    async def get_session(self, session_id: str) -> Optional[ScrapeSession]:
        rows = await self._query(
            self.client.table(self.sessions_table).select("data").eq("id", session_id).limit(1)
        )
        return ScrapeSession.model_validate(rows[0]["data"]) if rows else None

    async def list_sessions(self, status: Optional[SessionStatus] = None, limit: int = 50) -> list[ScrapeSession]:
        query = self.client.table(self.sessions_table).select("data")
        if status is not None:
            query = query.eq("status", SessionStatus(status).value)
        rows = await self._query(query.order("created_at", desc=True).limit(limit))
        return [ScrapeSession.model_validate(row["data"]) for row in rows]

    async def delete_sessions(
        self, session_ids: Optional[list[str]] = None, status: Optional[SessionStatus] = None
    ) -> int:
        if session_ids:
            ids = list(session_ids)
        elif status is not None:
            rows = await self._query(
                self.client.table(self.sessions_table).select("id").eq("status", SessionStatus(status).value)
            )
            ids = [row["id"] for row in rows]
        else:
            return 0
        if not ids:
            return 0
        await self._query(self.client.table(self.logs_table).delete().in_("session_id", ids))
        rows = await self._query(self.client.table(self.sessions_table).delete().in_("id", ids))
        return len(rows)

    # Processing logs

    async def append_processing_log(self, entry: ProcessingLogEntry) -> ProcessingLogEntry:
        if entry.id is None:
            entry = entry.model_copy(update={"id": str(uuid.uuid4())})
        row = {
            "id": entry.id,
            "session_id": entry.session_id,
            "batch_or_page": entry.batch_or_page,
            "data": entry.model_dump(mode="json"),
            "created_at": entry.created_at.isoformat(),
        }
        await self._query(self.client.table(self.logs_table).insert(row))
        return entry

    async def logs_for_session(self, session_id: str) -> list[ProcessingLogEntry]:
        rows = await self._query(
            self.client.table(self.logs_table)
            .select("data")
            .eq("session_id", session_id)
            .order("batch_or_page")
        )
        return [ProcessingLogEntry.model_validate(row["data"]) for row in rows]
