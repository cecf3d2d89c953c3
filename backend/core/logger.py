# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Centralised logging configuration.

Levels, handlers, rotation and format live in  etc/logging.conf.  The file
uses a ``%(log_file)s`` placeholder which is resolved here to  log/nexus.log
under the project root before the config is applied with fileConfig.

Import the ready-made logger anywhere:
    from core.logger import logger
"""

import configparser
import logging
import logging.config
from pathlib import Path

_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
_LOG_DIR = _PROJECT_ROOT / "log"
_LOG_FILE = _LOG_DIR / "nexus.log"
_LOGGING_CONF = _PROJECT_ROOT / "etc" / "logging.conf"

_LOG_DIR.mkdir(exist_ok=True)


def _load_config() -> None:
    raw = _LOGGING_CONF.read_text(encoding="utf-8")
    raw = raw.replace("%(log_file)s", str(_LOG_FILE))

    # RawConfigParser: the format strings contain %(asctime)s etc.
    parser = configparser.RawConfigParser()
    parser.read_string(raw)
    logging.config.fileConfig(parser, disable_existing_loggers=False)


_load_config()

logger = logging.getLogger("nexus")


def mask_email(email: str | None) -> str:
    """``alice@example.com`` → ``a***@example.com`` for log lines."""
    if not email or "@" not in email:
        return "***"
    local, _, domain = email.partition("@")
    return f"{local[:1]}***@{domain}"
