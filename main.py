"""
Main entry point: start the alert scheduler, then the API server.
"""
import logging
import sys

from dotenv import load_dotenv
from uvicorn import Config, Server

load_dotenv()

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    from api import create_app
    from Database import DatabaseManager
    from Database.DatabaseConfig import get_config
    from scheduler import TaskScheduler

    logger.info("Starting ChainGuardia vulnerability service...")

    config = get_config()

    # One engine (connection pool) for the whole process
    db = DatabaseManager.from_config(config)
    db.create_all()
    logger.info("✓ Database initialized")

    scheduler = TaskScheduler(config, db)
    scheduler.start()
    logger.info("✓ Task scheduler started")

    app = create_app(config=config, db=db)
    server = Server(Config(app=app, host=config.api_host, port=config.api_port, log_level="info"))

    logger.info(f"✓ API server starting (http://{config.api_host}:{config.api_port})")
    try:
        server.run()
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    finally:
        scheduler.stop()
        db.dispose()
    return 0


if __name__ == "__main__":
    sys.exit(main())
