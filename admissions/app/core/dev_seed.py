import os

from sqlalchemy.orm import Session

from admissions.app.core.logging import get_logger
from admissions.app.core.security import get_password_hash
from admissions.app.core.settings import get_settings
from admissions.app.db.base import Base
from admissions.app.models.user import User

logger = get_logger(__name__)

DEFAULT_DEV_PASSWORD = "Secret123!"
DEFAULT_DEV_USERS = [
    ("admin@admissions-dev.org", "admin"),
    ("officer@admissions-dev.org", "admissions_officer"),
    ("guide@admissions-dev.org", "tour_guide"),
]


def ensure_default_dev_admin(db: Session) -> None:
    """
    Create the schema and default staff users for the development tenant.
    Skips execution outside development and under pytest to avoid altering test expectations.
    """
    settings = get_settings()
    if os.getenv("PYTEST_CURRENT_TEST") or not settings.is_development:
        return

    Base.metadata.create_all(bind=db.get_bind())

    created = []
    for email, role in DEFAULT_DEV_USERS:
        existing = db.query(User).filter(User.email == email).first()
        if existing:
            continue

        db.add(
            User(
                tenant_id=settings.dev_tenant_id,
                email=email,
                hashed_password=get_password_hash(DEFAULT_DEV_PASSWORD),
                role=role,
                is_active=True,
            )
        )
        created.append(email)

    if created:
        db.commit()
        logger.info("dev_users_seeded", tenant_id=settings.dev_tenant_id, emails=created)
