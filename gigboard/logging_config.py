"""Logging setup for gigboard.

Log lines are single-line ``event | key=value | ...`` records so they stay
greppable in plain-text log aggregation.
"""

import logging
import sys

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

_configured = False


def configure_logging(level: str = "INFO") -> None:
    """Install a stderr handler on the ``gigboard`` logger once."""
    global _configured
    root = logging.getLogger("gigboard")
    root.setLevel(level.upper())
    if _configured:
        return
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the ``gigboard`` namespace."""
    if not name.startswith("gigboard"):
        name = f"gigboard.{name}"
    return logging.getLogger(name)


def _format_fields(fields: dict) -> str:
    return " | ".join(f"{k}={v}" for k, v in fields.items() if v is not None)


def log_auth_event(event: str, user_id: str | None = None, success: bool = True, **fields) -> None:
    """Log an authentication event (register, login, logout)."""
    logger = get_logger("gigboard.auth")
    line = f"Auth {event} | user={user_id} | success={success}"
    extra = _format_fields(fields)
    if extra:
        line = f"{line} | {extra}"
    if success:
        logger.info(line)
    else:
        logger.warning(line)


def log_hire_event(event: str, gig_id: str, bid_id: str, level: int = logging.INFO, **fields) -> None:
    """Log a hiring state-machine event for one gig/bid pair."""
    logger = get_logger("gigboard.hiring")
    line = f"Hire {event} | gig={gig_id} | bid={bid_id}"
    extra = _format_fields(fields)
    if extra:
        line = f"{line} | {extra}"
    logger.log(level, line)
