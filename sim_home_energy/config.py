from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Dict, Optional, Tuple

DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_STEP_SECONDS = 900
ENV_PREFIX = "SIM_HOME_"
ENV_FILE_VARIABLE = "SIM_HOME_ENV_FILE"


def _parse_setting(line: str) -> Optional[Tuple[str, str]]:
    """Split one dotenv line into a simulator setting, or None when it is not one."""
    line = line.strip()
    if line.startswith("export "):
        line = line[len("export "):].lstrip()
    if line.startswith("#") or "=" not in line:
        return None
    key, value = (part.strip() for part in line.split("=", 1))
    if not key.startswith(ENV_PREFIX):
        return None
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        value = value[1:-1]
    return key, value


def _load_dotenv(path: Optional[str] = None) -> Dict[str, str]:
    """
    Apply ``SIM_HOME_*`` settings from a dotenv file to ``os.environ``.

    The file defaults to ``$SIM_HOME_ENV_FILE`` or ``.env``. Variables already
    present in the environment take precedence; keys of other tools sharing
    the file are left alone.

    Returns:
        The simulator settings read from the file.
    """
    settings_path = Path(path or os.getenv(ENV_FILE_VARIABLE, ".env"))
    if not settings_path.is_file():
        return {}

    settings: Dict[str, str] = {}
    for line in settings_path.read_text(encoding="utf-8").splitlines():
        setting = _parse_setting(line)
        if setting is None:
            continue
        key, value = setting
        settings[key] = value
        os.environ.setdefault(key, value)
    return settings


_load_dotenv()


def get_log_level() -> str:
    """
    Resolve the logging level name for the simulator.

    Returns:
        Upper-case level name from ``SIM_HOME_LOG_LEVEL``, or WARNING when the
        variable is missing or does not name a known level.
    """
    raw = os.getenv("SIM_HOME_LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper()
    if not isinstance(logging.getLevelName(raw), int):
        return DEFAULT_LOG_LEVEL
    return raw


def get_default_step_seconds() -> int:
    """
    Simulation step size used when a scenario does not specify one.

    Returns:
        Positive step size in seconds from ``SIM_HOME_DT_S`` (default 900).
    """
    raw = os.getenv("SIM_HOME_DT_S")
    if not raw:
        return DEFAULT_STEP_SECONDS
    try:
        value = int(raw)
    except ValueError:
        return DEFAULT_STEP_SECONDS
    return value if value > 0 else DEFAULT_STEP_SECONDS


def configure_logging(level: str | None = None) -> None:
    """
    Attach a basic stream handler to the root logger.

    The library never calls this itself; scripts and notebooks opt in.
    """
    logging.basicConfig(
        level=level or get_log_level(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
