"""
Background task scheduler using APScheduler.
Runs the alert cycle on a schedule to keep alerts fresh.
"""
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger
import logging

from Agents import VulnerabilityAlertAgent
from Database import DatabaseManager
from Database.DatabaseConfig import AppConfig

logger = logging.getLogger(__name__)


class TaskScheduler:
    def __init__(self, config: AppConfig, db: DatabaseManager, agent: VulnerabilityAlertAgent = None):
        self.config = config
        self.db = db
        self.scheduler = BackgroundScheduler()
        self.alert_agent = agent or VulnerabilityAlertAgent(config)

    def start(self):
        """Start the scheduler"""
        self.scheduler.add_job(
            self._run_alert_agent,
            trigger=IntervalTrigger(minutes=self.config.alert.check_interval_minutes),
            id="alert_job",
            name="Vulnerability Alert Cycle",
            replace_existing=True,
            max_instances=1,
        )

        self.scheduler.start()
        logger.info(f"Task scheduler started (alert cycle every {self.config.alert.check_interval_minutes} min)")

    def stop(self):
        """Stop the scheduler"""
        self.scheduler.shutdown()
        self.alert_agent.feed.close()
        logger.info("Task scheduler stopped")

    def _run_alert_agent(self):
        """Run alert agent in background"""
        db = self.db.session()
        try:
            logger.info("[Scheduled] Running alert agent...")
            result = self.alert_agent.run(db)
            logger.info(f"[Scheduled] Alert agent result: {result}")
        except Exception as e:
            logger.error(f"[Scheduled] Alert agent failed: {e}")
        finally:
            db.close()
