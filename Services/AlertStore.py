"""
Alert lifecycle: unread -> read, and either -> deleted (row removed).

An AlertStore is scoped to one owner (user id); every query is filtered by it.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Iterable, List, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from Database import Alert
from Database.DatabaseConfig import AlertConfig
from exceptions import NotFoundError
from Services.AlertGenerator import NewAlert
from Services.Severity import Severity, parse_severity

logger = logging.getLogger(__name__)

# Reference CVSS score per severity used for notification gating
SEVERITY_REFERENCE_SCORES = {
    "HIGH": 7.0,
    "MEDIUM": 4.0,
    "LOW": 0.1,
}

SEVERITY_EMOJI = {
    "CRITICAL": "🚨",
    "HIGH": "⚠️",
    "MEDIUM": "🔶",
    "LOW": "ℹ️",
}


def _naive_utc(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


class AlertStore:
    """Alert persistence for a single owner"""

    def __init__(self, db: Session, user_id: str):
        self.db = db
        self.user_id = user_id

    def _query(self):
        return self.db.query(Alert).filter(Alert.user_id == self.user_id)

    def get(self, alert_id: str) -> Optional[Alert]:
        return self._query().filter(Alert.id == alert_id).first()

    def known_vulnerability_ids(self) -> set:
        rows = self.db.query(Alert.vulnerability_id).filter(Alert.user_id == self.user_id).distinct()
        return {row[0] for row in rows}

    def add(self, alerts: Iterable[NewAlert], skip_known_vulnerabilities: bool = True) -> List[Alert]:
        """
        Persist generated alerts.

        Args:
            alerts: alerts produced by the generator
            skip_known_vulnerabilities: drop alerts whose vulnerability id already
                has an alert for this owner (and duplicates within the batch)

        Returns:
            list: the Alert rows actually stored
        """
        seen = self.known_vulnerability_ids() if skip_known_vulnerabilities else set()
        stored = []

        for new_alert in alerts:
            if skip_known_vulnerabilities and new_alert.vulnerability_id in seen:
                logger.debug(f"Skipping duplicate alert for {new_alert.vulnerability_id}")
                continue
            row = Alert(
                id=new_alert.id,
                user_id=self.user_id,
                message=new_alert.message,
                severity=new_alert.severity.value,
                timestamp=_naive_utc(new_alert.timestamp),
                vulnerability_id=new_alert.vulnerability_id,
                app_ids=list(new_alert.app_ids),
                read=new_alert.read,
            )
            self.db.add(row)
            stored.append(row)
            seen.add(new_alert.vulnerability_id)

        self.db.commit()
        logger.info(f"Stored {len(stored)} alert(s) for {self.user_id}")
        return stored

    def filter(self, severity: Optional[str] = None, unread_only: bool = False,
               limit: Optional[int] = None) -> List[Alert]:
        """Matching alerts, newest first. ``limit`` applies after sorting."""
        query = self._query()

        if severity:
            query = query.filter(Alert.severity == severity.upper())

        if unread_only:
            query = query.filter(Alert.read.is_(False))

        query = query.order_by(desc(Alert.timestamp), desc(Alert.id))

        if limit:
            query = query.limit(limit)

        return query.all()

    def mark_as_read(self, alert_ids: Iterable[str]) -> int:
        """
        Mark alerts as read. Already-read and unknown ids are ignored.

        Returns:
            int: number of alerts that changed state
        """
        ids = set(alert_ids)
        if not ids:
            return 0

        alerts = self._query().filter(Alert.id.in_(ids), Alert.read.is_(False)).all()
        for alert in alerts:
            alert.read = True
        self.db.commit()

        logger.info(f"Marked {len(alerts)} alert(s) as read for {self.user_id}")
        return len(alerts)

    def delete(self, alert_id: str, strict: bool = False) -> bool:
        """
        Permanently remove an alert.

        Unknown ids are a no-op unless ``strict`` is set.
        """
        alert = self.get(alert_id)
        if alert is None:
            if strict:
                raise NotFoundError("Alert not found")
            return False

        self.db.delete(alert)
        self.db.commit()
        logger.info(f"Deleted alert {alert_id}")
        return True

    def stats(self, now: Optional[datetime] = None) -> dict:
        """Summary counters for the owner's alerts"""
        now = _naive_utc(now or datetime.now(timezone.utc))
        one_day_ago = now - timedelta(days=1)
        alerts = self._query().all()

        return {
            "total": len(alerts),
            "unread": sum(1 for a in alerts if not a.read),
            "critical": sum(1 for a in alerts if a.severity == Severity.CRITICAL.value),
            "high": sum(1 for a in alerts if a.severity == Severity.HIGH.value),
            "recent": sum(1 for a in alerts if a.timestamp and a.timestamp > one_day_ago),
        }


def should_notify(alert, config: AlertConfig) -> bool:
    """
    Notification gate.

    CRITICAL always notifies. Other severities notify when their reference
    score is >= ``config.critical_threshold``.
    """
    severity = parse_severity(alert.severity)
    if severity is Severity.CRITICAL:
        return True

    reference = SEVERITY_REFERENCE_SCORES.get(severity.value, 0)
    return reference >= config.critical_threshold


def format_alert_message(alert, channel: str = "dashboard") -> str:
    """Render an alert for the dashboard, email or slack."""
    severity = parse_severity(alert.severity).value
    emoji = SEVERITY_EMOJI[severity]

    if channel == "email":
        timestamp = alert.timestamp.strftime("%Y-%m-%d %H:%M:%S UTC") if alert.timestamp else ""
        return "\n".join([
            "ChainGuardia Security Alert",
            "",
            f"{emoji} {severity} Severity Alert",
            "",
            alert.message,
            "",
            f"Timestamp: {timestamp}",
            f"Vulnerability ID: {alert.vulnerability_id}",
            "",
            "Please review this alert in your ChainGuardia dashboard and take appropriate action.",
            "",
            "---",
            "ChainGuardia Security Monitoring",
        ])

    if channel == "slack":
        return f"{emoji} *{severity} Alert*: {alert.message}"

    return alert.message
