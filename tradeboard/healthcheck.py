"""Check that the public tunnel URL written to the client env reaches the API."""

from __future__ import annotations

import argparse
import logging
import re
import sys
from pathlib import Path
from typing import Optional

import httpx

from .config import settings
from .logging_setup import init_logging

logger = logging.getLogger(__name__)


def read_api_url(path: Path, var: str) -> Optional[str]:
    if not path.exists():
        return None
    match = re.search(rf"^{re.escape(var)}=(.*)$", path.read_text(encoding="utf-8"), re.MULTILINE)
    if not match:
        return None
    return match.group(1).strip().strip("'\"") or None


def check(url: str, timeout: float = 10.0) -> bool:
    try:
        response = httpx.get(url.rstrip("/") + "/", timeout=timeout)
    except httpx.HTTPError as exc:
        logger.error("connection error: %s", exc)
        return False
    return response.status_code == 200


def main(argv: Optional[list[str]] = None) -> int:
    ap = argparse.ArgumentParser(description="Probe the API through its public URL")
    ap.add_argument("--url", default=None)
    ap.add_argument("--client-env", default=settings.CLIENT_ENV_PATH)
    a = ap.parse_args(argv)

    init_logging(settings.LOG_LEVEL)
    url = a.url or read_api_url(Path(a.client_env), settings.CLIENT_ENV_VAR)
    if not url:
        print(f"No {settings.CLIENT_ENV_VAR} found in {a.client_env}")
        return 2
    ok = check(url)
    print(f"Tunnel connection status: {'OK' if ok else 'Failed'}")
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
