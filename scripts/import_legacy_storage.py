#!/usr/bin/env python3
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from georisk.legacy import import_legacy_dump
from georisk.service import create_service_from_env


def main() -> int:
    parser = argparse.ArgumentParser(
        description="Copy reports and users from a mobile-app storage dump into the configured record store."
    )
    parser.add_argument("dump_file", help="JSON object mapping storage keys to their stored JSON strings")
    parser.add_argument("--dry-run", action="store_true", help="decode and count without writing")
    args = parser.parse_args()

    dump = json.loads(Path(args.dump_file).read_text(encoding="utf-8"))
    service = create_service_from_env()
    counts = import_legacy_dump(dump, service=service, write=not args.dry_run)

    summary = {
        "dump_file": args.dump_file,
        "dry_run": bool(args.dry_run),
        "store_backend": service.record_store.backend_name,
        **counts,
    }
    print(json.dumps(summary, ensure_ascii=True, sort_keys=True, indent=2))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
