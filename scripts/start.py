#!/usr/bin/env python3
"""
Container entry point: release phase, then exec gunicorn on app.wsgi:app.

Reads PORT (default 8080), WEB_CONCURRENCY (workers, default 2) and
GUNICORN_TIMEOUT (seconds, default 60).
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

logger = logging.getLogger("insign.start")


def parse_port(raw: str | None, default: int = 8080) -> int:
    raw = (raw or "").strip()
    if not raw:
        return default
    port = int(raw)
    if not 1 <= port <= 65535:
        raise ValueError(f"PORT out of range: {port}")
    return port


def _positive_int(raw: str | None, default: int) -> int:
    try:
        value = int((raw or "").strip())
    except ValueError:
        return default
    return value if value > 0 else default


def gunicorn_argv(port: int, *, workers: int = 2, timeout: int = 60) -> list[str]:
    # --preload runs create_app() once, in the master.
    return [
        "gunicorn",
        "app.wsgi:app",
        "--bind", f"0.0.0.0:{port}",
        "--workers", str(workers),
        "--timeout", str(timeout),
        "--preload",
        "--access-logfile", "-",
        "--error-logfile", "-",
    ]


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        port = parse_port(os.environ.get("PORT"))
    except ValueError as e:
        logger.error("Invalid PORT: %s", e)
        sys.exit(1)

    from scripts.release import run_release

    try:
        run_release()
    except Exception:
        logger.exception("Release failed; not starting gunicorn")
        sys.exit(1)

    argv = gunicorn_argv(
        port,
        workers=_positive_int(os.environ.get("WEB_CONCURRENCY"), 2),
        timeout=_positive_int(os.environ.get("GUNICORN_TIMEOUT"), 60),
    )
    logger.info("Starting %s", " ".join(argv))
    # exec so gunicorn receives container signals directly
    os.execvp(argv[0], argv)


if __name__ == "__main__":
    main()
