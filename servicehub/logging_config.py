"""Logging setup for the ServiceHub backend.

Every module logs through a child of the ``servicehub`` logger, e.g.
``get_logger("servicehub.jobs")``. ``setup_logging`` is called once by the
application factory.
"""

import logging
import sys

ROOT_LOGGER = "servicehub"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def setup_logging(level: str = "INFO") -> logging.Logger:
    """Configure the ``servicehub`` logger with a single stream handler."""
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Re-running setup (tests, reloads) must not stack handlers
    if not any(getattr(h, "_servicehub", False) for h in logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._servicehub = True  # type: ignore[attr-defined]
        logger.addHandler(handler)

    return logger


def get_logger(name: str) -> logging.Logger:
    """Return a logger, namespaced under ``servicehub`` if it isn't already."""
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)


_auth_logger = get_logger("servicehub.auth")


def log_auth_event(event: str, account_id: str | None, success: bool, detail: str | None = None) -> None:
    """Record an authentication event (register, login, logout)."""
    outcome = "ok" if success else "failed"
    message = f"auth.{event} | account={account_id or '-'} | {outcome}"
    if detail:
        message = f"{message} | {detail}"
    if success:
        _auth_logger.info(message)
    else:
        _auth_logger.warning(message)
