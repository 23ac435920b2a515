import logging
from functools import wraps

from sqlalchemy.orm import Session
from models.log import Log

logger = logging.getLogger(__name__)


def write_log(db: Session, *, user_id, action, resource, status="SUCCESS", ip=None, meta=None):
    entry = Log(user_id=user_id, action=action, resource=resource, status=status, ip=ip, meta=meta or {})
    db.add(entry)
    db.commit()


def log_handler(func):
    """Log start, failure and completion of a handler returning a Result."""
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        name = type(self).__name__
        logger.info("Starting request %s", name)
        result = func(self, *args, **kwargs)
        if result.is_failure:
            logger.info("Request failure %s: %s (%s)", name, result.error.code, result.error.message)
        logger.info("Completed request %s", name)
        return result
    return wrapper
