"""
Alert cycle: pull recent CVEs, match them against every user's tracked
applications and store alerts that have not been raised before.
"""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from Database import AgentRun
from Database.DatabaseConfig import AppConfig
from Services.AlertGenerator import TrackedVulnerability, generate_alerts
from Services.AlertStore import AlertStore, should_notify
from Services.ApplicationInventory import ApplicationInventory
from Services.ApplicationMatcher import ApplicationMatcher, NameSubstringMatcher
from Services.NVDFeedAdapter import NVDFeedAdapter
from Services.VulnerabilityFilter import FilterCriteria, VulnerabilityItem, filter_and_project

logger = logging.getLogger(__name__)


class VulnerabilityAlertAgent:
    """
    Periodic alert generator.

    Strategy:
    1. Create AgentRun record to track execution
    2. Page through the NVD feed for the configured window
    3. Filter (rejected / minimum severity) and project records
    4. For each user with active applications: match, generate, skip CVEs
       already alerted for that user, store the rest
    5. Update AgentRun record with results
    """

    agent_name = "alert_agent"

    def __init__(self, config: AppConfig, feed: Optional[NVDFeedAdapter] = None,
                 matcher: Optional[ApplicationMatcher] = None, max_pages: int = 5):
        self.config = config
        self.feed = feed or NVDFeedAdapter(config.nvd)
        self.matcher = matcher or NameSubstringMatcher()
        self.max_pages = max_pages

    def run(self, db: Session, now: Optional[datetime] = None) -> dict:
        """
        Main execution method.

        Args:
            db (Session): Database session
            now: reference time for the feed window

        Returns:
            dict: Result status and counts
        """
        run_record = AgentRun(agent_name=self.agent_name, status="running")
        db.add(run_record)
        db.commit()

        try:
            logger.info("Starting alert cycle...")

            items = self._collect(now=now)
            stored, notify = self._alert_users(db, items)

            run_record.status = "success"
            run_record.items_collected = len(items)
            run_record.items_processed = stored
            run_record.agent_run_metadata = {"notifications": notify}
            run_record.completed_at = datetime.utcnow()
            db.commit()

            logger.info(f"Alert cycle completed: {stored} new alert(s) from {len(items)} CVE(s)")
            return {"status": "success", "vulnerabilities": len(items), "alerts_created": stored,
                    "notifications": notify}

        except Exception as e:
            logger.error(f"Alert cycle failed: {str(e)}")
            db.rollback()
            run_record.status = "failed"
            run_record.error_message = str(e)
            run_record.completed_at = datetime.utcnow()
            db.commit()
            return {"status": "failed", "error": str(e)}

    def _collect(self, now: Optional[datetime] = None) -> List[VulnerabilityItem]:
        criteria = FilterCriteria(
            min_severity=self.config.alert.severity_min,
            exclude_rejected=self.config.alert.exclude_rejected,
        )
        per_page = self.config.nvd.results_per_page

        items = []
        start_index = 0
        for _ in range(self.max_pages):
            result = self.feed.fetch(
                since_days=self.config.nvd.since_days,
                start_index=start_index,
                results_per_page=per_page,
                now=now,
            )
            items.extend(filter_and_project(result.records, criteria))

            start_index += len(result.records)
            if not result.records or result.total_results is None or start_index >= result.total_results:
                break

        return items

    def _alert_users(self, db: Session, items: List[VulnerabilityItem]):
        inventory = ApplicationInventory(db)
        generated_at = datetime.now(timezone.utc)
        sequence = 0
        stored_total = 0
        notify_total = 0

        for user_id in inventory.active_owners():
            applications = inventory.list(user_id)

            tracked = []
            for item in items:
                app_ids = self.matcher.match(item, applications)
                if app_ids:
                    tracked.append(TrackedVulnerability.from_item(item, app_ids))

            if not tracked:
                continue

            store = AlertStore(db, user_id)
            alerts = generate_alerts(tracked, applications, now=generated_at, sequence_start=sequence)
            sequence += len(alerts)
            stored = store.add(alerts)
            notify = [alert for alert in stored if should_notify(alert, self.config.alert)]

            stored_total += len(stored)
            notify_total += len(notify)
            logger.info(f"{user_id}: {len(stored)} new alert(s), {len(notify)} to notify")

        return stored_total, notify_total
