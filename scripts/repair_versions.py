"""Inspect and repair the version history of one subject.

Usage:
    python scripts/repair_versions.py list Article 42
    python scripts/repair_versions.py show Article 42        # include stored data
    python scripts/repair_versions.py renumber Article 42
    python scripts/repair_versions.py prune Article 42 --from 3   # finish a partial rollback
    python scripts/repair_versions.py purge Article 42
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

# Ensure project root is importable
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from versioned.database import async_session, close_db, init_db
from versioned.errors import StorageError
from versioned.repository import VersionRepository
from versioned.schemas.versions import VersionDetailResponse, VersionResponse

logger = logging.getLogger("repair_versions")


async def list_versions(repository: VersionRepository, with_data: bool) -> int:
    schema = VersionDetailResponse if with_data else VersionResponse
    versions = await repository.list(descending=False)
    for version in versions:
        print(schema.model_validate(version).model_dump_json())
    print(f"{len(versions)} version(s)", file=sys.stderr)
    return len(versions)


async def run(command: str, subject_class: str, subject_id: int, from_version_no: int | None) -> int:
    await init_db()
    try:
        async with async_session() as db:
            repository = VersionRepository(db, subject_id, subject_class)
            if command == "list":
                await list_versions(repository, with_data=False)
            elif command == "show":
                await list_versions(repository, with_data=True)
            elif command == "renumber":
                changed = await repository.renumber()
                await db.commit()
                print(f"Renumbered {changed} version(s)")
            elif command == "prune":
                removed = await repository.delete_range(from_version_no)
                await db.commit()
                print(f"Removed {removed} version(s) numbered {from_version_no} or higher")
            elif command == "purge":
                removed = await repository.delete_all()
                await db.commit()
                print(f"Removed {removed} version(s)")
    except StorageError as e:
        logger.error("%s failed: %s", command, e)
        return 1
    finally:
        await close_db()
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Inspect and repair versions of one subject")
    parser.add_argument("command", choices=["list", "show", "renumber", "prune", "purge"])
    parser.add_argument("subject_class", help="Type tag stored with the versions, e.g. Article")
    parser.add_argument("subject_id", type=int)
    parser.add_argument(
        "--from",
        dest="from_version_no",
        type=int,
        help="First version number to remove (prune only)",
    )
    args = parser.parse_args()
    if args.command == "prune" and not args.from_version_no:
        parser.error("prune requires --from")

    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    sys.exit(asyncio.run(run(
        args.command, args.subject_class, args.subject_id, args.from_version_no,
    )))
