"""Tests for CLI argument handling, store selection and progress metrics."""
from datetime import date

import pytest

from enforcement_scraper.config import config
from enforcement_scraper.jobs.metrics import Metrics
from enforcement_scraper.main import build_run_config, main, parse_args
from enforcement_scraper.parse.models import Agency, DataType
from enforcement_scraper.store.backends import create_store
from enforcement_scraper.store.state import EnforcementStore


def test_defaults_come_from_configuration():
    run_config = build_run_config(parse_args([]))
    assert run_config.agency == Agency.HSE
    assert run_config.data_type == DataType.CASE
    assert run_config.max_pages == config.MAX_PAGES
    assert run_config.stop_on_existing is True
    assert run_config.fetch_details is True
    assert run_config.dev_mode is False


def test_flags_override_configuration():
    args = parse_args(
        [
            "--agency", "ea",
            "--date-from", "2024-01-01",
            "--date-to", "2024-01-31",
            "--action-type", "caution",
            "--action-type", "court_case",
            "--pages", "3",
            "--no-stop-on-existing",
            "--no-details",
            "--dev",
        ]
    )
    run_config = build_run_config(args)

    assert run_config.agency == Agency.EA
    assert run_config.date_from == date(2024, 1, 1)
    assert run_config.action_types == ["caution", "court_case"]
    assert run_config.max_pages == 3
    assert run_config.stop_on_existing is False
    assert run_config.fetch_details is False
    assert run_config.dev_mode is True


def test_invalid_source_exits_with_error():
    """HSE notices need a supported country; EA has no notices."""
    with pytest.raises(SystemExit) as exc_info:
        main(["--agency", "ea", "--data-type", "notice"])
    assert exc_info.value.code == 1


def test_create_store_backends():
    assert isinstance(create_store("sqlite"), EnforcementStore)
    with pytest.raises(ValueError):
        create_store("mongodb")


def test_metrics_estimate_time_left_from_average_page():
    """Failed pages count as done; the rest are assumed to take the average time."""
    now = [0.0]
    metrics = Metrics(total_pages=5, clock=lambda: now[0])
    metrics.increment("pages")
    metrics.increment("page_errors")
    metrics.increment("created", 3)
    now[0] = 20.0

    assert metrics.seconds_per_page() == 10.0
    assert metrics.seconds_left() == 30.0
    summary = metrics.get_summary()
    assert summary["pages"] == 1
    assert summary["created"] == 3
    assert summary["elapsed_seconds"] == 20.0


@pytest.mark.parametrize("seconds, text", [(0, "0s"), (59.9, "59s"), (125, "2m05s"), (3725, "1h02m")])
def test_format_duration(seconds, text):
    assert Metrics.format_duration(seconds) == text
