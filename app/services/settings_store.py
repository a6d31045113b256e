from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import NotFoundError, ValidationError
from app.models import Setting

logger = logging.getLogger(__name__)

MINIMUM_BOOKING_HOURS_KEY = "minimum_booking_hours"
SITE_TITLE_KEY = "site_title"

DEFAULT_DESCRIPTIONS = {
    MINIMUM_BOOKING_HOURS_KEY: "Minimum hours between now and a bookable appointment",
    SITE_TITLE_KEY: "Title used in notification emails",
}


def get_value(db: Session, key: str) -> str | None:
    row = db.get(Setting, key)
    return row.value if row else None


def get_setting(db: Session, key: str) -> Setting:
    row = db.get(Setting, key)
    if not row:
        raise NotFoundError("Setting not found")
    return row


def list_settings(db: Session) -> list[Setting]:
    return db.query(Setting).order_by(Setting.key).all()


def set_value(db: Session, key: str, value: str | None, description: str | None = None) -> Setting:
    if key == MINIMUM_BOOKING_HOURS_KEY:
        try:
            if int(value or "") < 0:
                raise ValueError(value)
        except ValueError:
            raise ValidationError("minimum_booking_hours must be a non-negative integer")

    row = db.get(Setting, key)
    if row is None:
        row = Setting(key=key, description=description or DEFAULT_DESCRIPTIONS.get(key))
        db.add(row)
    elif description is not None:
        row.description = description
    row.value = value
    db.commit()
    db.refresh(row)
    return row


def get_minimum_booking_hours(db: Session) -> int:
    raw = get_value(db, MINIMUM_BOOKING_HOURS_KEY)
    if raw is None or raw == "":
        return settings.minimum_booking_hours
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid %s setting %r; using default %s", MINIMUM_BOOKING_HOURS_KEY, raw, settings.minimum_booking_hours)
        return settings.minimum_booking_hours


def get_site_title(db: Session) -> str:
    return get_value(db, SITE_TITLE_KEY) or settings.site_title


def ensure_defaults(db: Session) -> None:
    """Insert missing default rows; existing values are left alone."""
    defaults = {
        MINIMUM_BOOKING_HOURS_KEY: str(settings.minimum_booking_hours),
        SITE_TITLE_KEY: settings.site_title,
    }
    created = False
    for key, value in defaults.items():
        if db.get(Setting, key) is None:
            db.add(Setting(key=key, value=value, description=DEFAULT_DESCRIPTIONS[key]))
            created = True
    if created:
        db.commit()
