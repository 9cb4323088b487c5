"""HSE convictions and notices processors."""
from enforcement_scraper.fetch.endpoints import get_hse_notice_breaches_url
from enforcement_scraper.parse.html_parser import join_breaches
from enforcement_scraper.parse.models import (
    Agency,
    DataType,
    ProcessedRecord,
    ScrapedDetailRecord,
    ScrapedSummaryRecord,
)
from enforcement_scraper.process.base import RecordProcessor
from enforcement_scraper.process.offenders import build_offender_attrs


class HseCaseProcessor(RecordProcessor):
    async def collect_sub_records(
        self, summary: ScrapedSummaryRecord, detail: ScrapedDetailRecord
    ) -> ScrapedDetailRecord:
        if detail.breach_link:
            breaches = await self.fetch_optional(detail.breach_link, self.parser.parse_breaches)
            if breaches is not None:
                detail = detail.merge(breaches)
        if detail.related_link:
            related = await self.fetch_optional(detail.related_link, self.parser.parse_related_cases)
            if related:
                detail = detail.model_copy(update={"related_cases": related})
        return detail

    def build(self, summary: ScrapedSummaryRecord, detail: ScrapedDetailRecord) -> ProcessedRecord:
        offender = build_offender_attrs(
            summary.offender_name,
            local_authority=detail.local_authority or summary.local_authority,
            main_activity=detail.main_activity or summary.main_activity,
            industry=detail.industry,
        )
        return ProcessedRecord(
            external_id=summary.external_id,
            agency_code=Agency.HSE,
            data_type=DataType.CASE,
            offender=offender,
            action_type=summary.action_type or "Court Case",
            result=detail.result,
            fine=detail.fine,
            costs=detail.costs,
            action_date=summary.action_date,
            hearing_date=detail.hearing_date,
            breaches=join_breaches(detail.breaches),
            offence_count=detail.offence_count,
            regulator_function=detail.regulator_function,
            regulator_url=summary.detail_url,
            related_cases=detail.related_cases,
            source_metadata=self.source_metadata(summary, "hse_convictions"),
        )


class HseNoticeProcessor(RecordProcessor):
    async def collect_sub_records(
        self, summary: ScrapedSummaryRecord, detail: ScrapedDetailRecord
    ) -> ScrapedDetailRecord:
        url = get_hse_notice_breaches_url(summary.external_id)
        breaches = await self.fetch_optional(url, self.parser.parse_breaches)
        if breaches is not None:
            detail = detail.merge(breaches)
        return detail

    def build(self, summary: ScrapedSummaryRecord, detail: ScrapedDetailRecord) -> ProcessedRecord:
        offender = build_offender_attrs(
            summary.offender_name,
            local_authority=summary.local_authority,
            country=summary.country,
            main_activity=detail.main_activity,
            industry=detail.industry,
            sic_code=summary.sic_code,
        )
        return ProcessedRecord(
            external_id=summary.external_id,
            agency_code=Agency.HSE,
            data_type=DataType.NOTICE,
            offender=offender,
            action_type=summary.action_type,
            result=detail.result,
            action_date=summary.action_date,
            compliance_date=detail.compliance_date,
            revised_compliance_date=detail.revised_compliance_date,
            notice_body=detail.notice_body,
            breaches=join_breaches(detail.breaches),
            offence_count=detail.offence_count,
            regulator_function=detail.regulator_function,
            regulator_url=summary.detail_url,
            source_metadata=self.source_metadata(summary, "hse_notices"),
        )
