"""
Tracked-application inventory with per-user uniqueness and soft delete.

Identity tuple: (user_id, name, vendor, version). At most one row exists per
tuple; creating over a soft-deleted row restores it under the same id.
"""
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, validator
from sqlalchemy import desc
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from Database import Application
from exceptions import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


class ApplicationPayload(BaseModel):
    """Body of POST /applications"""
    name: str = Field(..., min_length=1, max_length=255)
    vendor: str = Field(..., min_length=1, max_length=255)
    version: Optional[str] = Field(default=None, max_length=100)
    category: Optional[str] = Field(default=None, max_length=100)

    @validator('name', 'vendor', pre=True)
    def strip_required(cls, v):
        if isinstance(v, str):
            v = v.strip()
        return v

    @validator('version', 'category', pre=True)
    def strip_optional(cls, v):
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


class ApplicationInventory:
    """CRUD over a user's tracked applications"""

    def __init__(self, db: Session):
        self.db = db

    def list(self, user_id: str) -> List[Application]:
        """Non-deleted applications owned by ``user_id``, newest first"""
        return (
            self.db.query(Application)
            .filter(Application.user_id == user_id, Application.deleted.is_(False))
            .order_by(desc(Application.created_at), desc(Application.added_date))
            .all()
        )

    def find_by_identity(self, user_id: str, name: str, vendor: str,
                         version: Optional[str]) -> Optional[Application]:
        query = self.db.query(Application).filter(
            Application.user_id == user_id,
            Application.name == name,
            Application.vendor == vendor,
        )
        if version is None:
            query = query.filter(Application.version.is_(None))
        else:
            query = query.filter(Application.version == version)
        return query.first()

    def create(self, user_id: str, payload: ApplicationPayload) -> Tuple[Application, bool]:
        """
        Create or restore an application.

        Returns:
            tuple: (application, created) where ``created`` is False for a restore

        Raises:
            ConflictError: an active application with the same identity exists
        """
        existing = self.find_by_identity(user_id, payload.name, payload.vendor, payload.version)

        if existing is not None:
            if not existing.deleted:
                raise ConflictError("Application already exists")

            existing.deleted = False
            existing.deleted_at = None
            existing.name = payload.name
            existing.vendor = payload.vendor
            existing.version = payload.version
            existing.category = payload.category
            self.db.commit()
            logger.info(f"Restored application {existing.id} for {user_id}")
            return existing, False

        app = Application(
            user_id=user_id,
            name=payload.name,
            vendor=payload.vendor,
            version=payload.version,
            category=payload.category,
        )
        self.db.add(app)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race against a concurrent create of the same identity
            self.db.rollback()
            raise ConflictError("Application already exists")

        logger.info(f"Created application {app.id} for {user_id}")
        return app, True

    def soft_delete(self, user_id: str, app_id: str) -> Application:
        """
        Mark an owned application deleted.

        Raises:
            NotFoundError: unknown id or owned by another user
        """
        app = (
            self.db.query(Application)
            .filter(Application.id == app_id, Application.user_id == user_id)
            .first()
        )
        if app is None:
            raise NotFoundError("Application not found or unauthorized")

        app.deleted = True
        app.deleted_at = datetime.utcnow()
        self.db.commit()
        logger.info(f"Soft-deleted application {app_id} for {user_id}")
        return app

    def active_owners(self) -> List[str]:
        """User ids owning at least one non-deleted application"""
        rows = (
            self.db.query(Application.user_id)
            .filter(Application.deleted.is_(False))
            .distinct()
            .all()
        )
        return [row[0] for row in rows]
