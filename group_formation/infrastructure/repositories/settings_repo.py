# group_formation/infrastructure/repositories/settings_repo.py
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from group_formation.infrastructure.models import AppSetting

logger = logging.getLogger(__name__)

PREFERENCE_DEADLINE_KEY = "preference_deadline"


def get_setting_repo(db: Session, key: str) -> Optional[str]:
    return db.execute(
        select(AppSetting.setting_value).where(AppSetting.setting_key == key)
    ).scalar_one_or_none()


def get_preference_deadline_repo(db: Session) -> Optional[datetime]:
    """
    The submission deadline, if one is set.

    Only reported to the instructor; intake enforces it, the run does not.
    Unparseable values are logged and treated as unset.
    """
    raw = get_setting_repo(db, PREFERENCE_DEADLINE_KEY)
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        logger.warning("Ignoring malformed %s setting: %r", PREFERENCE_DEADLINE_KEY, raw)
        return None
