#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from pydantic import TypeAdapter

from georisk.models import UserRecord
from georisk.service import create_service_from_env


def main() -> int:
    parser = argparse.ArgumentParser(description="Upsert user records into the configured record store.")
    parser.add_argument("users_file", help="JSON array of {id, name, email, role}")
    parser.add_argument("--dry-run", action="store_true", help="validate the file without writing")
    args = parser.parse_args()

    users = TypeAdapter(list[UserRecord]).validate_json(Path(args.users_file).read_bytes())
    service = create_service_from_env()
    if not args.dry_run:
        for user in users:
            service.users.upsert(user)

    summary = {
        "users_file": args.users_file,
        "dry_run": bool(args.dry_run),
        "store_backend": service.record_store.backend_name,
        "upserted": 0 if args.dry_run else len(users),
        "total_users": len(service.users.list_all()),
    }
    print(json.dumps(summary, ensure_ascii=True, sort_keys=True, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
