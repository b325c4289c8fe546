"""Schema creation helpers."""
import logging
from typing import Optional

from sqlalchemy.engine import Engine

import hostel_outing.models  # noqa: F401  registers tables on Base.metadata
from hostel_outing.models.base import Base

logger = logging.getLogger(__name__)


def init_db(db_engine: Optional[Engine] = None) -> None:
    """Create all tables that do not exist yet."""
    if db_engine is None:
        from hostel_outing.db.session import engine as db_engine

    Base.metadata.create_all(bind=db_engine)
    logger.info(f"Database schema initialized on {db_engine.url.render_as_string(hide_password=True)}")


def drop_db(db_engine: Engine) -> None:
    Base.metadata.drop_all(bind=db_engine)
