"""
stockledger-audit

Purpose:
  Compare each item's materialized ``current_stock`` with its ledger and,
  when asked, repair an item whose balance drifted.

Examples:
  stockledger-audit audit --unit 3
  stockledger-audit repair --item 42
  DATABASE_URL=postgresql+psycopg://... stockledger-audit audit --unit 3

Exit codes:
  0 = no drift found / repair done
  1 = drift found (audit) or handled application error
  2 = database error
"""

from __future__ import annotations

import argparse
import json
import sys
from dataclasses import asdict
from typing import Sequence
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError

from .core.config import settings
from .core.context import bound_context
from .core.exceptions import LedgerError, PersistenceFailure
from .core.logging import configure_logging
from .db.session import SessionLocal
from .services.audit import BalanceAudit, audit_unit_balances, recompute_item_balance

# Registers every table on Base.metadata.
from . import models as _models  # noqa: F401


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    p = argparse.ArgumentParser(prog="stockledger-audit", description="Audit or repair materialized stock balances.")
    sub = p.add_subparsers(dest="command", required=True)

    audit = sub.add_parser("audit", help="List items whose balance differs from their ledger.")
    audit.add_argument("--unit", type=int, required=True, help="Business unit id to audit.")

    repair = sub.add_parser("repair", help="Rewrite one item's balance from its ledger.")
    repair.add_argument("--item", type=int, required=True, help="Item id to repair.")
    return p.parse_args(argv)


def _as_dict(result: BalanceAudit) -> dict[str, object]:
    data = asdict(result)
    data["drift"] = result.drift
    return data


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(settings.LOG_LEVEL)
    with bound_context(request_id=f"cli-{uuid4().hex[:12]}"):
        return _run(args)


def _run(args: argparse.Namespace) -> int:
    db = SessionLocal()
    try:
        if args.command == "audit":
            drifted = audit_unit_balances(db, args.unit)
            print(json.dumps({"unit_id": args.unit, "drifted": [_as_dict(r) for r in drifted]}, indent=2))
            return 1 if drifted else 0
        result = recompute_item_balance(db, args.item)
        print(json.dumps(_as_dict(result), indent=2))
        return 0
    except (PersistenceFailure, SQLAlchemyError) as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 2
    except LedgerError as exc:
        print(f"error: {exc.message}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
