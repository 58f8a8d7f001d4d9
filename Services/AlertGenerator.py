"""
Turns vulnerabilities with resolved affected applications into alerts.

No deduplication happens here: callers that must not alert twice for the
same CVE check ``vulnerability_id`` against what they already stored.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Sequence

from Services.Severity import Severity, parse_severity

logger = logging.getLogger(__name__)


@dataclass
class TrackedVulnerability:
    """A vulnerability together with the application ids it affects"""
    id: str
    cve_id: str
    severity: Severity
    affected_apps: List[str] = field(default_factory=list)

    def __post_init__(self):
        self.severity = parse_severity(self.severity)
        # set semantics, first occurrence wins
        self.affected_apps = list(dict.fromkeys(self.affected_apps))

    @classmethod
    def from_item(cls, item, app_ids: Iterable[str]) -> "TrackedVulnerability":
        """Build from a projected ``VulnerabilityItem``."""
        return cls(id=item.id, cve_id=item.id, severity=item.severity, affected_apps=list(app_ids))


@dataclass
class NewAlert:
    id: str
    message: str
    severity: Severity
    timestamp: datetime
    vulnerability_id: str
    app_ids: List[str]
    read: bool = False


def alert_id(vulnerability_id: str, generated_at: datetime, sequence: int = 0) -> str:
    millis = int(generated_at.timestamp() * 1000)
    return f"alert-{vulnerability_id}-{millis}-{sequence}"


def build_message(vuln: TrackedVulnerability, app_names: Sequence[str]) -> str:
    return f"New {vuln.severity.value.lower()} vulnerability {vuln.cve_id} affects {', '.join(app_names)}"


def generate_alert(vuln: TrackedVulnerability, applications: Iterable, now: Optional[datetime] = None,
                   sequence: int = 0) -> NewAlert:
    """
    Create one alert for a vulnerability.

    Args:
        vuln: vulnerability with a non-empty ``affected_apps``
        applications: objects exposing ``id`` and ``name`` used to resolve names
        now: generation time, defaults to the current UTC time
        sequence: position within the batch, keeps ids unique within one timestamp
    """
    if not vuln.affected_apps:
        raise ValueError(f"{vuln.id} has no affected applications")

    names_by_id = {app.id: app.name for app in applications}
    app_names = [names_by_id[app_id] for app_id in vuln.affected_apps if names_by_id.get(app_id)]
    now = now or datetime.now(timezone.utc)

    return NewAlert(
        id=alert_id(vuln.id, now, sequence),
        message=build_message(vuln, app_names),
        severity=vuln.severity,
        timestamp=now,
        vulnerability_id=vuln.id,
        app_ids=list(vuln.affected_apps),
    )


def generate_alerts(vulnerabilities: Iterable[TrackedVulnerability], applications: Iterable,
                    now: Optional[datetime] = None, sequence_start: int = 0) -> List[NewAlert]:
    """
    One alert per vulnerability that affects at least one application.

    ``sequence_start`` lets several batches generated at the same instant
    keep distinct ids.
    """
    applications = list(applications)
    now = now or datetime.now(timezone.utc)

    alerts = []
    for vuln in vulnerabilities:
        if not vuln.affected_apps:
            continue
        alerts.append(generate_alert(vuln, applications, now=now, sequence=sequence_start + len(alerts)))

    logger.info(f"Generated {len(alerts)} alert(s)")
    return alerts
