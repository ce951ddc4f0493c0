"""Service for deriving and backfilling stable card IDs."""

import json
import logging
from pathlib import Path
from typing import Any

from flashdeck.domain.constants import JSON_INDENT
from flashdeck.domain.exceptions import PersistenceError
from flashdeck.domain.identity import generate_card_id

logger = logging.getLogger(__name__)


def assign_card_ids(data_dir: Path, dry_run: bool = False) -> int:
    """
    Scans every deck file listed in the deck index and writes an ID into
    each card that lacks one.
    Returns the number of IDs assigned (or that would be, with dry_run).
    """
    index_file = data_dir / "decks" / "index.json"
    if not index_file.exists():
        logger.info(f"No deck index at {index_file}, nothing to do")
        return 0

    try:
        decks = json.loads(index_file.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise PersistenceError(f"Could not read deck index {index_file}: {e}") from e

    ids_assigned = 0
    for deck in decks:
        deck_file = data_dir / deck["file"]
        try:
            cards: list[dict[str, Any]] = json.loads(deck_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            # Broken decks are skipped; the rest are still processed.
            logger.error(f"Skipping {deck.get('name', deck_file)}: {e}")
            continue

        updated = []
        assigned_here = 0
        for card in cards:
            if not card.get("id"):
                rest = {k: v for k, v in card.items() if k != "id"}
                card = {"id": generate_card_id(card["question"], card["answer"]), **rest}
                assigned_here += 1
            updated.append(card)

        if not assigned_here:
            logger.debug(f"{deck.get('name', deck_file)}: already has IDs")
            continue

        ids_assigned += assigned_here
        if dry_run:
            logger.info(f"[DRY RUN] Would assign {assigned_here} IDs in {deck_file}")
        else:
            deck_file.write_text(
                json.dumps(updated, indent=JSON_INDENT, ensure_ascii=False), encoding="utf-8"
            )
            logger.info(f"Assigned {assigned_here} IDs in {deck_file}")

    return ids_assigned
