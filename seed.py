import logging
import os

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from database import Base, SessionLocal, engine
from app.core.errors import ValidationError
from app.models import Expert
from app.services import availability, settings_store

logger = logging.getLogger(__name__)

DEMO_EXPERTS = [
    {"name": "Ayşe Demir", "email": "ayse.demir@example.com", "title": "Network Specialist"},
    {"name": "Mehmet Kaya", "email": "mehmet.kaya@example.com", "title": "Systems Engineer"},
    {"name": "Zeynep Arslan", "email": "zeynep.arslan@example.com", "title": "Application Support"},
]


def get_or_create_expert(session: Session, name: str, email: str, title: str) -> Expert:
    expert = session.query(Expert).filter(Expert.email == email).first()
    if expert is None:
        expert = Expert(name=name, email=email, title=title)
        session.add(expert)
        session.commit()
        session.refresh(expert)
    return expert


def seed_demo_data() -> None:
    """
    Seed demo experts, their default weekday windows and the default settings.
    """
    if os.getenv("DISABLE_DEMO_SEED"):
        logger.info("DISABLE_DEMO_SEED is set; skipping demo seed")
        return

    try:
        Base.metadata.create_all(bind=engine)
    except SQLAlchemyError as exc:
        logger.warning("Skipping demo seed; failed to create tables: %s", exc)
        return

    try:
        with SessionLocal() as db:
            for row in DEMO_EXPERTS:
                get_or_create_expert(db, **row)

            try:
                availability.setup_default_windows(db)
            except ValidationError as exc:
                logger.info("No default availability seeded: %s", exc)

            settings_store.ensure_defaults(db)
    except SQLAlchemyError as exc:
        logger.warning("Skipping demo seed due to database error: %s", exc)
