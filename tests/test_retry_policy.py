from __future__ import annotations

import pytest

from campus_events.scraper import retry_policy
from campus_events.scraper.error_codes import ErrorCode, RenderTimeout


@pytest.fixture
def event_recorder(monkeypatch: pytest.MonkeyPatch) -> list[tuple[str, dict]]:
    events: list[tuple[str, dict]] = []

    def _record(event_phase: str, **fields: object) -> None:
        events.append((event_phase, fields))

    monkeypatch.setattr(retry_policy, "_scraper_event", _record)
    return events


@pytest.mark.parametrize(
    "attempt, expected, kind",
    [
        (1, True, "retryable"),
        (2, True, "retryable"),
        (3, False, "capped"),
        (5, False, "capped"),
    ],
)
def test_render_timeout_retry_limits(
    attempt: int, expected: bool, kind: str, event_recorder: list[tuple[str, dict]]
) -> None:
    result = retry_policy.decide_retry(
        attempt, 3, RenderTimeout("slow"), error_code=ErrorCode.RENDER_TIMEOUT, page_index=2
    )
    assert result is expected
    assert len(event_recorder) == 1
    phase, fields = event_recorder[0]
    assert phase == "state"
    assert fields["phase"] == "retry_decision"
    assert fields["error_code"] == ErrorCode.RENDER_TIMEOUT
    assert fields["attempt"] == attempt
    assert fields["max_attempts"] == 3
    assert fields["page_index"] == 2
    assert fields["will_retry"] is expected
    assert fields["kind"] == kind


@pytest.mark.parametrize(
    "error_code",
    [ErrorCode.EXTRACTION, ErrorCode.NAVIGATION_TIMEOUT, ErrorCode.NAVIGATION],
)
def test_page_faults_share_one_cap(error_code: str, event_recorder: list[tuple[str, dict]]) -> None:
    assert error_code in retry_policy.RETRYABLE_ERROR_CODES
    assert retry_policy.decide_retry(1, 2, error_code=error_code) is True
    assert retry_policy.decide_retry(2, 2, error_code=error_code) is False
    assert [fields["kind"] for _, fields in event_recorder] == ["retryable", "capped"]


@pytest.mark.parametrize(
    "error_code, expected_kind",
    [
        ("", "missing_error_code"),
        (None, "missing_error_code"),
        ("unexpected_code", "unknown"),
    ],
)
def test_missing_or_unknown_error_codes_still_retry(
    error_code: str | None, expected_kind: str, event_recorder: list[tuple[str, dict]]
) -> None:
    assert retry_policy.decide_retry(1, 3, error_code=error_code) is True
    assert len(event_recorder) == 1
    _, fields = event_recorder[0]
    assert fields["will_retry"] is True
    assert fields["kind"] == expected_kind


@pytest.mark.parametrize(
    "attempt, base, expected",
    [
        (1, 1.0, 1.0),
        (2, 1.0, 2.0),
        (3, 1.0, 4.0),
        (10, 1.0, 30.0),
        (3, 0.0, 0.0),
        (2, -1.0, 0.0),
    ],
)
def test_compute_backoff_seconds(attempt: int, base: float, expected: float) -> None:
    assert retry_policy.compute_backoff_seconds(attempt, base) == expected
