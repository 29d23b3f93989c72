"""User-configurable values loaded from environment variables."""

import os
import sys
from pathlib import Path
from zoneinfo import ZoneInfo

from dotenv import load_dotenv

load_dotenv()

_REQUIRED = ("ROUTINE_BOARD_API_URL",)
_missing = [var for var in _REQUIRED if not os.environ.get(var)]
if _missing:
    print(f"Missing required env vars: {', '.join(_missing)}", file=sys.stderr)
    print("Set them in .env or your environment.", file=sys.stderr)
    raise SystemExit(1)

API_URL: str = os.environ["ROUTINE_BOARD_API_URL"].rstrip("/")
USER_ID: str | None = os.environ.get("ROUTINE_BOARD_USER_ID") or None
REQUEST_TIMEOUT: float = float(os.environ.get("ROUTINE_BOARD_TIMEOUT") or 10)
LOG_LEVEL: str = (os.environ.get("ROUTINE_BOARD_LOG_LEVEL") or "WARNING").upper()


def _detect_local_tz() -> str:
    """IANA name of the host zone: $TZ, /etc/timezone, then the /etc/localtime link."""
    from_env = os.environ.get("TZ", "").lstrip(":")
    if "/" in from_env:
        return from_env
    etc_timezone = Path("/etc/timezone")
    if etc_timezone.is_file() and (name := etc_timezone.read_text().strip()):
        return name
    localtime = Path("/etc/localtime")
    if localtime.is_symlink():
        _, found, name = str(localtime.resolve()).partition("/zoneinfo/")
        if found and name:
            return name
    return "UTC"


TZ: ZoneInfo = ZoneInfo(os.environ.get("ROUTINE_BOARD_TIMEZONE") or _detect_local_tz())
