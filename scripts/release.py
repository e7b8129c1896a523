"""
Release phase for the insign backend: check settings, migrate, seed.

Production refuses to release with SQLite or with default SECRET_KEY/JWT_SECRET,
the same rules create_app() enforces at boot, so a bad deploy fails here
instead of in every worker. After migrating it reports contracts that still
lack a viewer token (run scripts/backfill_viewer_tokens.py for those).

Usage:
  python scripts/release.py [--skip-seed]
"""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv

from app.insign.config import Settings, load_settings

logger = logging.getLogger("insign.release")

_DEFAULT_SECRETS = ("", "change-me")


def check_release_settings(settings: Settings, *, database_url_set: bool = True) -> list[str]:
    """Problems that must block a release. Empty list means go."""
    problems = []
    if not database_url_set:
        problems.append("DATABASE_URL is not set.")
    if settings.env in ("prod", "production"):
        if settings.database_url.startswith("sqlite"):
            problems.append("DATABASE_URL must be Postgres in production (not sqlite).")
        if settings.secret_key in _DEFAULT_SECRETS:
            problems.append("SECRET_KEY must be set in production.")
        if settings.jwt_secret in _DEFAULT_SECRETS:
            problems.append("JWT_SECRET must be set in production.")
    return problems


def count_missing_viewer_tokens(database_url: str) -> int:
    from app.insign.models import Contract
    from scripts._db_utils import script_session

    with script_session(database_url) as s:
        return s.query(Contract).filter(Contract.viewer_token.is_(None)).count()


def run_release(*, seed: bool = True) -> None:
    load_dotenv()
    settings = load_settings()
    problems = check_release_settings(settings, database_url_set=bool((os.environ.get("DATABASE_URL") or "").strip()))
    if problems:
        raise RuntimeError(" ".join(problems))

    logger.info("insign release: env=%s", settings.env)
    if not (settings.smtp_host and settings.smtp_user and settings.smtp_pass):
        logger.warning("SMTP is not configured; signature requests and inquiry replies will fail.")

    from alembic import command
    from alembic.config import Config

    cfg = Config(str(ROOT / "alembic.ini"))
    cfg.set_main_option("sqlalchemy.url", settings.database_url)
    command.upgrade(cfg, "head")
    logger.info("Migrations at head.")

    if seed:
        from scripts import init_db

        init_db.seed_only(database_url=settings.database_url)
        logger.info("Permissions and admin account seeded.")

    missing = count_missing_viewer_tokens(settings.database_url)
    if missing:
        logger.warning("%s contracts have no viewer token; run scripts/backfill_viewer_tokens.py", missing)


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--skip-seed", action="store_true", help="Migrate only; do not seed permissions/admin")
    args = parser.parse_args()

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        run_release(seed=not args.skip_seed)
    except Exception:
        logger.exception("Release failed")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
