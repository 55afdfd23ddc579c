#!/usr/bin/env python
"""Create the PV simulator tables and optionally a demo site.

Examples:
    python -m pvsim_api.db.init_db
    python -m pvsim_api.db.init_db --drop --demo-site 5.0 --timezone Europe/Prague
"""

from __future__ import annotations

import argparse
import os
from pathlib import Path

from pvsim_api.config import settings

# Resolve sqlite:///relative.db paths to INSTANCE_DIR/<name>.db so the file
# lands in a predictable, .gitignore-able location.
_INSTANCE_DIR = Path(os.environ.get("INSTANCE_DIR", "/tmp/pvsim/instance"))

_db_url = settings.DATABASE_URL
if _db_url.startswith("sqlite:///") and not _db_url.startswith("sqlite:////"):
    _db_file = _db_url.removeprefix("sqlite:///")
    if not Path(_db_file).is_absolute():
        _INSTANCE_DIR.mkdir(parents=True, exist_ok=True)
        _db_url = f"sqlite:///{_INSTANCE_DIR / _db_file}"
        os.environ["DATABASE_URL"] = _db_url  # propagate before engine is created
        settings.DATABASE_URL = _db_url

from pvsim_api.db.client import DatabaseClient  # noqa: E402 (must follow the DATABASE_URL patch)
from pvsim_api.db.models import Base  # noqa: E402
from pvsim_api.db.session import engine  # noqa: E402


def init_db(drop: bool = False) -> None:
    db_url = str(engine.url)

    if drop:
        print("Dropping all existing tables …")
        Base.metadata.drop_all(bind=engine)
        print("Done.")

    print(f"Creating tables in: {db_url}")
    Base.metadata.create_all(bind=engine)

    table_names = list(Base.metadata.tables.keys())
    print(f"{len(table_names)} table(s) ready: {', '.join(sorted(table_names))}")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Initialise the PV simulator database.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--drop",
        action="store_true",
        default=False,
        help="Drop all existing tables before creating them (DESTRUCTIVE).",
    )
    parser.add_argument(
        "--demo-site",
        metavar="CAPACITY_KW",
        type=float,
        default=None,
        help="Insert a demo site with this rated capacity.",
    )
    parser.add_argument("--name", default="Demo PV plant", help="Name of the demo site.")
    parser.add_argument("--timezone", default=None, help="IANA timezone of the demo site.")
    return parser.parse_args(argv)


if __name__ == "__main__":
    args = _parse_args()
    init_db(drop=args.drop)
    if args.demo_site is not None:
        site = DatabaseClient().add_site(args.name, args.demo_site, timezone=args.timezone)
        print(f"Created site {site.site_id} ({site.name!r}, {site.capacity_kw} kW)")
