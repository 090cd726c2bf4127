# dues/database_init.py
import logging
from sqlalchemy.engine import make_url
from sqlalchemy_utils import database_exists, create_database
from dues.core.config import settings
from dues.core.security import hash_password
from dues.database import DATABASE_URL, SessionLocal
from dues.models.operator import Operator

logger = logging.getLogger(__name__)


def _display_url() -> str:
    return make_url(DATABASE_URL).render_as_string(hide_password=True)


def ensure_database():
    if not database_exists(DATABASE_URL):
        create_database(DATABASE_URL)
        logger.info("Database created: %s", _display_url())
    else:
        logger.info("Database already exists: %s", _display_url())


def ensure_bootstrap_operator():
    """Create the first operator from ADMIN_USERNAME / ADMIN_PASSWORD."""
    if not settings.ADMIN_USERNAME or not settings.ADMIN_PASSWORD:
        return

    db = SessionLocal()
    try:
        exists = db.query(Operator).filter(Operator.username == settings.ADMIN_USERNAME).first()
        if exists:
            return
        db.add(Operator(
            username=settings.ADMIN_USERNAME,
            hashed_password=hash_password(settings.ADMIN_PASSWORD),
        ))
        db.commit()
        logger.info("Bootstrap operator created: %s", settings.ADMIN_USERNAME)
    finally:
        db.close()
