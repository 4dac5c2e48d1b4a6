from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Iterable, Tuple
from urllib.parse import unquote

from roadmate.config import get_settings
from roadmate.db.session import init_database
from roadmate.profile_schema import Profile
from roadmate.profile_store import DatabaseProfileStore, FileProfileStore


logger = logging.getLogger("import_profiles")


def _iter_profile_files(store: FileProfileStore) -> Iterable[Tuple[str, Profile]]:
    if not store.directory.exists():
        logger.info("No profile documents found under %s", store.directory)
        return
    for path in sorted(store.directory.glob("*.json")):
        user_id = unquote(path.stem)
        profile = store.load(user_id)
        if profile is None:
            logger.warning("Skipping unreadable profile document %s", path)
            continue
        yield user_id, profile


def _iter_master_file(path: Path) -> Iterable[Tuple[str, Profile]]:
    if not path.exists():
        logger.info("No master profile file at %s", path)
        return
    try:
        payload = json.loads(path.read_text(encoding="utf-8") or "{}")
    except (OSError, ValueError) as exc:
        logger.warning("Failed to read master profile file %s: %s", path, exc)
        return
    if not isinstance(payload, dict):
        logger.warning("Master profile file %s was not a mapping; skipping", path)
        return
    for user_id, entry in payload.items():
        if not isinstance(entry, dict):
            continue
        entry = {**entry, "user_id": entry.get("user_id") or user_id}
        try:
            yield str(user_id), Profile.model_validate(entry)
        except ValueError as exc:
            logger.warning("Skipping invalid profile payload for %s: %s", user_id, exc)


def import_profiles(
    documents: Iterable[Tuple[str, Profile]],
    target: DatabaseProfileStore,
    *,
    overwrite: bool = False,
) -> int:
    imported = 0
    for user_id, profile in documents:
        if not overwrite and target.load(user_id) is not None:
            logger.info("Profile %s already present in database; skipping", user_id)
            continue
        if not target.save(user_id, profile):
            logger.error("Failed to import profile %s", user_id)
            continue
        imported += 1
    return imported


def parse_args() -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Copy file-backed profile documents into the database store.")
    parser.add_argument("--profiles-dir", type=Path, default=settings.resolved_profile_dir)
    parser.add_argument("--master", type=Path, default=settings.data_dir / "user_profiles.json")
    parser.add_argument("--overwrite", action="store_true", help="Replace profiles already in the database.")
    return parser.parse_args()


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    args = parse_args()
    init_database()
    target = DatabaseProfileStore()
    # Per-user documents take precedence over the master file.
    from_files = import_profiles(
        _iter_profile_files(FileProfileStore(args.profiles_dir)),
        target,
        overwrite=args.overwrite,
    )
    from_master = import_profiles(_iter_master_file(args.master), target, overwrite=False)
    logger.info("Import completed: %d from master file, %d from profile documents", from_master, from_files)


if __name__ == "__main__":
    main()
