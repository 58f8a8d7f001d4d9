from datetime import datetime, timezone

import httpx
import pytest

from exceptions import FeedParseError, FeedTimeoutError, UpstreamError
from Services.NVDFeedAdapter import NVDFeedAdapter, build_query_params, build_window, utc_midnight
from tests.samples import FIXED_NOW, NVD_URL, FeedRecorder, make_cve, nvd_payload


def adapter_for(recorder, config):
    return NVDFeedAdapter(config.nvd, client=httpx.Client(transport=httpx.MockTransport(recorder)))


def test_window_for_180_days_snaps_to_utc_midnight():
    window = build_window(180, now=FIXED_NOW)

    assert window.start == datetime(2025, 4, 7, tzinfo=timezone.utc)
    assert window.end == datetime(2025, 10, 4, tzinfo=timezone.utc)
    assert window.start_iso == "2025-04-07T00:00:00.000Z"
    assert window.end_iso == "2025-10-04T00:00:00.000Z"
    assert window.to_dict() == {
        "field": "published",
        "sinceDays": 180,
        "startIso": "2025-04-07T00:00:00.000Z",
        "endIso": "2025-10-04T00:00:00.000Z",
    }


def test_window_clamps_negative_days():
    window = build_window(-10, now=FIXED_NOW)
    assert window.since_days == 0
    assert window.start == window.end == utc_midnight(FIXED_NOW)


def test_window_rejects_unknown_date_field():
    with pytest.raises(ValueError):
        build_window(30, date_field="modified", now=FIXED_NOW)


def test_query_params_published_window():
    params = build_query_params(build_window(30, now=FIXED_NOW), keyword="  openssl ", start_index=40,
                                results_per_page=20)
    assert params == {
        "resultsPerPage": "20",
        "startIndex": "40",
        "keywordSearch": "openssl",
        "pubStartDate": "2025-09-04T00:00:00.000Z",
        "pubEndDate": "2025-10-04T00:00:00.000Z",
    }


def test_query_params_last_modified_window():
    params = build_query_params(build_window(7, date_field="lastModified", now=FIXED_NOW))
    assert params["lastModStartDate"] == "2025-09-27T00:00:00.000Z"
    assert params["lastModEndDate"] == "2025-10-04T00:00:00.000Z"
    assert "pubStartDate" not in params
    assert "keywordSearch" not in params


def test_fetch_decodes_records(config):
    recorder = FeedRecorder(payload=nvd_payload(make_cve("CVE-2025-0001", v31="HIGH"),
                                                make_cve("CVE-2025-0002"), total=57))
    result = adapter_for(recorder, config).fetch(keyword="zoom", since_days=30, now=FIXED_NOW)

    assert [r.id for r in result.records] == ["CVE-2025-0001", "CVE-2025-0002"]
    assert result.total_results == 57
    assert result.window.since_days == 30
    assert len(recorder.requests) == 1
    assert str(recorder.requests[0].url).startswith(NVD_URL)
    assert recorder.last_params["keywordSearch"] == "zoom"
    assert recorder.last_params["pubStartDate"] == "2025-09-04T00:00:00.000Z"


def test_fetch_sends_api_key_when_configured(config):
    config.nvd.api_key = "secret-key"
    recorder = FeedRecorder()
    adapter_for(recorder, config).fetch(now=FIXED_NOW)
    assert recorder.requests[0].headers["apiKey"] == "secret-key"


def test_non_success_is_passed_through(config):
    recorder = FeedRecorder(status=503, text="Service Unavailable")
    with pytest.raises(UpstreamError) as excinfo:
        adapter_for(recorder, config).fetch(now=FIXED_NOW)

    assert excinfo.value.status_code == 503
    assert excinfo.value.body == "Service Unavailable"
    assert excinfo.value.to_dict()["status"] == 503
    # no retry
    assert len(recorder.requests) == 1


def test_unparsable_body_raises_parse_error(config):
    recorder = FeedRecorder(status=200, text="<html>not json</html>")
    with pytest.raises(FeedParseError):
        adapter_for(recorder, config).fetch(now=FIXED_NOW)


def test_wrong_shape_raises_parse_error(config):
    recorder = FeedRecorder(payload={"vulnerabilities": [{"cve": {"descriptions": "oops"}}]})
    with pytest.raises(FeedParseError) as excinfo:
        adapter_for(recorder, config).fetch(now=FIXED_NOW)
    assert excinfo.value.details["errors"]


def test_timeout_surfaces_distinct_error(config):
    recorder = FeedRecorder(exc=lambda request: httpx.ReadTimeout("timed out", request=request))
    with pytest.raises(FeedTimeoutError) as excinfo:
        adapter_for(recorder, config).fetch(now=FIXED_NOW)
    assert excinfo.value.status_code == 504


def test_connection_failure_is_upstream_error(config):
    recorder = FeedRecorder(exc=lambda request: httpx.ConnectError("refused", request=request))
    with pytest.raises(UpstreamError) as excinfo:
        adapter_for(recorder, config).fetch(now=FIXED_NOW)
    assert excinfo.value.status_code == 502


def test_window_is_clamped_to_first_representable_day():
    window = build_window(10 ** 7, now=FIXED_NOW)
    assert window.start_iso == "0001-01-01T00:00:00.000Z"
    assert window.since_days == (FIXED_NOW - datetime.min.replace(tzinfo=timezone.utc)).days
