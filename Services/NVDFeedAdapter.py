"""
Feed adapter for the NVD CVE API 2.0.

One call == one synchronous upstream request over a bounded date window.
Paging is left to the caller (advance ``start_index`` and call again).
"""
import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import httpx
from pydantic import ValidationError as SchemaError

from Database.DatabaseConfig import NVDConfig, mask_sensitive_data
from exceptions import FeedParseError, FeedTimeoutError, UpstreamError
from Services.NVDSchema import CVEItem, NVDResponse

logger = logging.getLogger(__name__)

DATE_FIELDS = ("published", "lastModified")
DEFAULT_SINCE_DAYS = 180
EARLIEST = datetime.min.replace(tzinfo=timezone.utc)


def utc_midnight(dt: datetime) -> datetime:
    """Snap a datetime to 00:00:00 UTC of the same UTC day."""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.replace(hour=0, minute=0, second=0, microsecond=0)


def to_iso(dt: datetime) -> str:
    """ISO-8601 with milliseconds and Z, e.g. 2025-10-04T00:00:00.000Z"""
    return dt.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class FeedWindow:
    field: str
    since_days: int
    start: datetime
    end: datetime

    @property
    def start_iso(self) -> str:
        return to_iso(self.start)

    @property
    def end_iso(self) -> str:
        return to_iso(self.end)

    def to_dict(self) -> dict:
        return {
            "field": self.field,
            "sinceDays": self.since_days,
            "startIso": self.start_iso,
            "endIso": self.end_iso,
        }


@dataclass
class FeedResult:
    window: FeedWindow
    records: List[CVEItem] = field(default_factory=list)
    total_results: Optional[int] = None


def build_window(since_days: int = DEFAULT_SINCE_DAYS, date_field: str = "published",
                 now: Optional[datetime] = None) -> FeedWindow:
    """
    Compute ``[now - since_days, now]`` with both bounds snapped to UTC midnight.

    Negative ``since_days`` is clamped to 0, and windows reaching past the
    first representable day are clamped to start there.
    """
    if date_field not in DATE_FIELDS:
        raise ValueError(f"date_field must be one of {DATE_FIELDS}")
    now = now or datetime.now(timezone.utc)
    if now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)
    since_days = min(max(0, int(since_days)), (now - EARLIEST).days)
    return FeedWindow(
        field=date_field,
        since_days=since_days,
        start=utc_midnight(now - timedelta(days=since_days)),
        end=utc_midnight(now),
    )


def build_query_params(window: FeedWindow, keyword: Optional[str] = None,
                       start_index: int = 0, results_per_page: int = 20) -> dict:
    params = {
        "resultsPerPage": str(results_per_page),
        "startIndex": str(start_index),
    }
    if keyword and keyword.strip():
        params["keywordSearch"] = keyword.strip()

    if window.field == "lastModified":
        params["lastModStartDate"] = window.start_iso
        params["lastModEndDate"] = window.end_iso
    else:
        params["pubStartDate"] = window.start_iso
        params["pubEndDate"] = window.end_iso
    return params


def decode_response(payload) -> NVDResponse:
    """Validate a parsed JSON payload against the NVD response schema."""
    try:
        return NVDResponse.model_validate(payload)
    except SchemaError as e:
        problems = [f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()]
        raise FeedParseError(f"Unexpected NVD response shape: {e.error_count()} validation error(s)",
                             details={"errors": problems[:10]})


class NVDFeedAdapter:
    """
    Client for the NVD CVE API.

    Strategy:
    1. Build the date window and query parameters
    2. Issue a single GET (bounded by the configured timeout)
    3. Non-success status -> UpstreamError carrying status and raw body
    4. Decode the body into typed records
    """

    def __init__(self, config: Optional[NVDConfig] = None, client: Optional[httpx.Client] = None):
        self.config = config or NVDConfig()
        self._owns_client = client is None
        self.client = client or httpx.Client(timeout=self.config.timeout)

    def close(self):
        if self._owns_client:
            self.client.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()

    def _headers(self) -> dict:
        headers = {"Accept": "application/json"}
        if self.config.api_key:
            headers["apiKey"] = self.config.api_key
        return headers

    def fetch(self, keyword: Optional[str] = None, since_days: int = DEFAULT_SINCE_DAYS,
              date_field: str = "published", start_index: int = 0,
              results_per_page: Optional[int] = None, now: Optional[datetime] = None) -> FeedResult:
        """
        Fetch one page of CVE records.

        Args:
            keyword: optional NVD keywordSearch term
            since_days: window size in days (clamped to >= 0)
            date_field: "published" or "lastModified"
            start_index: NVD paging offset
            results_per_page: page size (defaults to config)
            now: reference time, defaults to the current UTC time

        Returns:
            FeedResult: the window used and the decoded records
        """
        window = build_window(since_days, date_field, now=now)
        params = build_query_params(
            window,
            keyword=keyword,
            start_index=start_index,
            results_per_page=results_per_page or self.config.results_per_page,
        )
        headers = self._headers()

        logger.info(f"Querying NVD {window.field} window {window.start_iso} .. {window.end_iso} "
                    f"(startIndex={start_index})")
        logger.debug(f"NVD request headers: {mask_sensitive_data(headers)}")

        try:
            response = self.client.get(self.config.base_url, params=params, headers=headers,
                                       timeout=self.config.timeout)
        except httpx.TimeoutException as e:
            logger.error(f"NVD request timed out after {self.config.timeout}s: {e}")
            raise FeedTimeoutError(f"NVD did not respond within {self.config.timeout} seconds")
        except httpx.HTTPError as e:
            logger.error(f"Failed to reach NVD: {str(e)}")
            raise UpstreamError(502, body=str(e), hint="NVD unreachable, check network connectivity")

        if not response.is_success:
            logger.warning(f"NVD answered {response.status_code}")
            raise UpstreamError(response.status_code, body=response.text)

        try:
            payload = response.json()
        except (json.JSONDecodeError, ValueError) as e:
            logger.error(f"NVD returned an unparsable body: {e}")
            raise FeedParseError("NVD returned a body that is not valid JSON")

        decoded = decode_response(payload)
        records = [entry.cve for entry in decoded.vulnerabilities]
        logger.info(f"NVD returned {len(records)} records (totalResults={decoded.total_results})")

        return FeedResult(window=window, records=records, total_results=decoded.total_results)
