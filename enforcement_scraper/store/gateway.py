"""Duplicate detection and idempotent persistence on top of a backing store."""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

from enforcement_scraper.parse.models import (
    Agency,
    DataType,
    Offender,
    OffenderAttrs,
    PersistedRecord,
    ProcessedRecord,
)

logger = logging.getLogger(__name__)


class PersistError(Exception):
    def __init__(self, external_id: Optional[str], reason: str):
        self.external_id = external_id
        self.reason = reason
        super().__init__(f"{external_id}: {reason}")


class DuplicateRecordError(PersistError):
    """Uniqueness conflict on (data_type, external_id)."""


class PersistOutcome(str, Enum):
    CREATED = "created"
    EXISTING = "existing"


@dataclass
class PersistResult:
    created: list[str] = field(default_factory=list)
    existing: list[str] = field(default_factory=list)
    failed: list[tuple[Optional[str], str]] = field(default_factory=list)


class RecordStore(Protocol):
    async def exists_batch(self, data_type: DataType, external_ids: list[str]) -> set[str]: ...

    async def create_record(self, record: ProcessedRecord) -> PersistedRecord: ...

    async def create_records(self, records: list[ProcessedRecord]) -> list[PersistedRecord]: ...

    async def update_record_from_scraping(self, record: ProcessedRecord) -> PersistedRecord: ...

    async def find_or_create_offender(self, attrs: OffenderAttrs, agency: Agency) -> Offender: ...

    async def record_offender_sighting(self, offender_id: str, record: ProcessedRecord) -> None: ...


class DuplicateDetector:
    def __init__(self, store: RecordStore):
        self.store = store

    async def check_existing(self, data_type: DataType, external_ids: list[str]) -> set[str]:
        """Subset of ids already stored, in one query."""
        ids = [i for i in dict.fromkeys(external_ids) if i]
        if not ids:
            return set()
        return await self.store.exists_batch(data_type, ids)


class PersistenceGateway:
    """Create-or-update for processed records.

    A re-scrape of a stored record refreshes its mutable fields and reports
    EXISTING; it never creates a second row.
    """

    def __init__(self, store: RecordStore, detector: Optional[DuplicateDetector] = None):
        self.store = store
        self.detector = detector or DuplicateDetector(store)

    async def _with_offender(self, record: ProcessedRecord) -> ProcessedRecord:
        offender = await self.store.find_or_create_offender(record.offender, record.agency_code)
        return record.model_copy(update={"offender_id": offender.id})

    async def _count_sighting(self, record: ProcessedRecord) -> None:
        try:
            await self.store.record_offender_sighting(record.offender_id, record)
        except PersistError as e:
            logger.warning(f"Offender counters not updated for {record.external_id}: {e.reason}")

    async def create_or_update(self, record: ProcessedRecord) -> PersistOutcome:
        record = await self._with_offender(record)
        try:
            await self.store.create_record(record)
        except DuplicateRecordError:
            logger.debug(f"{record.external_id} already stored, updating")
            await self.store.update_record_from_scraping(record)
            return PersistOutcome.EXISTING

        await self._count_sighting(record)
        return PersistOutcome.CREATED

    async def persist_batch(self, records: list[ProcessedRecord]) -> PersistResult:
        result = PersistResult()
        by_type: dict[DataType, list[ProcessedRecord]] = {}
        for record in records:
            by_type.setdefault(record.data_type, []).append(record)

        for data_type, group in by_type.items():
            known = await self.detector.check_existing(data_type, [r.external_id for r in group])
            fresh = []
            for record in group:
                if record.external_id in known:
                    try:
                        await self.store.update_record_from_scraping(record)
                        result.existing.append(record.external_id)
                    except PersistError as e:
                        result.failed.append((record.external_id, e.reason))
                else:
                    fresh.append(record)
            if fresh:
                await self._persist_fresh(fresh, result)
        return result

    async def _persist_fresh(self, records: list[ProcessedRecord], result: PersistResult) -> None:
        try:
            resolved = [await self._with_offender(r) for r in records]
            await self.store.create_records(resolved)
        except PersistError as e:
            logger.warning(f"Bulk insert of {len(records)} records failed ({e.reason}), falling back to one by one")
        else:
            for record in resolved:
                await self._count_sighting(record)
                result.created.append(record.external_id)
            return

        for record in records:
            try:
                outcome = await self.create_or_update(record)
            except PersistError as e:
                logger.error(f"Failed to persist {record.external_id}: {e.reason}")
                result.failed.append((record.external_id, e.reason))
                continue
            if outcome == PersistOutcome.CREATED:
                result.created.append(record.external_id)
            else:
                result.existing.append(record.external_id)
