#!/usr/bin/env python3
"""Give every contract without a viewer token a fresh one (idempotent).

Usage:
  python scripts/backfill_viewer_tokens.py
  python scripts/backfill_viewer_tokens.py --dry-run
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from dotenv import load_dotenv

from app.insign.models import Contract
from app.insign.modules.contracts.service import backfill_viewer_tokens
from scripts._db_utils import script_session


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("--dry-run", action="store_true", help="Only count contracts missing a viewer token")
    args = parser.parse_args()

    load_dotenv()
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    try:
        with script_session() as s:
            if args.dry_run:
                missing = s.query(Contract).filter(Contract.viewer_token.is_(None)).count()
                print(f"{missing} contracts missing a viewer token (dry run, nothing written)")
                return 0
            filled = backfill_viewer_tokens(s)
    except Exception as e:
        print(f"Backfill failed: {e}", file=sys.stderr)
        return 1

    print(f"Backfilled viewer tokens for {filled} contracts")
    return 0


if __name__ == "__main__":
    sys.exit(main())
