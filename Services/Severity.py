"""
Severity classification for CVE records.

NVD records may carry several CVSS metric blocks. The newest schema version
present wins; within a version the first entry is used.
"""
from enum import Enum
from typing import Optional


class Severity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"

    @property
    def rank(self) -> int:
        return SEVERITY_RANK[self.value]


SEVERITY_RANK = {"LOW": 1, "MEDIUM": 2, "HIGH": 3, "CRITICAL": 4}

# Newest first
CVSS_METRIC_KEYS = ("cvssMetricV31", "cvssMetricV30", "cvssMetricV2")


def severity_rank(value: Optional[str]) -> int:
    """Rank a severity string; anything unrecognised ranks as LOW."""
    if value is None:
        return 1
    if isinstance(value, Severity):
        return value.rank
    return SEVERITY_RANK.get(str(value).strip().upper(), 1)


def parse_severity(value: Optional[str]) -> Severity:
    """Coerce a provider string to a Severity, defaulting to LOW."""
    if isinstance(value, Severity):
        return value
    key = str(value or "").strip().upper()
    if key in SEVERITY_RANK:
        return Severity(key)
    return Severity.LOW


def select_cvss(metrics):
    """
    Pick the CVSS block used for classification and display.

    Args:
        metrics: decoded ``CVEMetrics`` or None

    Returns:
        The chosen metric entry (with ``cvss_data`` and optional
        ``base_severity``) or None when the record has no scoring data.
    """
    if metrics is None:
        return None
    for key in CVSS_METRIC_KEYS:
        entries = getattr(metrics, key, None)
        if entries:
            return entries[0]
    return None


def resolve_severity(metrics) -> Severity:
    """Canonical severity of a record, LOW when nothing is scored."""
    entry = select_cvss(metrics)
    if entry is None:
        return Severity.LOW
    return parse_severity(entry.cvss_data.base_severity or entry.base_severity)
