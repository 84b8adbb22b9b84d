import logging
from datetime import datetime, time

from app.extensions import db
from app.models import SystemLog

logger = logging.getLogger(__name__)


def add_log(action: str, description: str, actor=None, previous_status=None) -> SystemLog:
    """Acrescenta uma entrada de auditoria na transação corrente (sem commit)."""
    entry = SystemLog(
        action=action,
        description=description,
        user_name=getattr(actor, "name", None) or "Sistema",
        user_id=getattr(actor, "id", None),
        timestamp=datetime.now(),
        previous_status=previous_status,
    )
    db.session.add(entry)
    logger.info("%s - %s (por %s)", action, description, entry.user_name)
    return entry


def list_logs(start=None, end=None, user_id=None):
    q = SystemLog.query
    if start:
        q = q.filter(SystemLog.timestamp >= datetime.combine(start, time.min))
    if end:
        q = q.filter(SystemLog.timestamp <= datetime.combine(end, time.max))
    if user_id is not None:
        q = q.filter(SystemLog.user_id == user_id)
    return q.order_by(SystemLog.timestamp.desc(), SystemLog.id.desc()).all()
