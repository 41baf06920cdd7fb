"""Train catalog — point lookup, client-side search, seeding."""
import logging
from typing import Optional

from trainbuddy.schemas.train import Train
from trainbuddy.store.document_store import DocumentStore

logger = logging.getLogger(__name__)

TRAINS = "trains"


def get_train_by_number(store: DocumentStore, train_number: str) -> Optional[Train]:
    data = store.get(TRAINS, train_number)
    return Train.model_validate(data) if data else None


def search_trains(store: DocumentStore, term: str) -> list[Train]:
    """Case-insensitive substring match on number, name and route.

    Scans the whole collection; the catalog is small and static.
    """
    needle = term.lower()
    matches = []
    for data in store.query(TRAINS):
        train = Train.model_validate(data)
        if (
            needle in train.train_number.lower()
            or needle in train.train_name.lower()
            or needle in train.route.lower()
        ):
            matches.append(train)
    return matches


def seed_trains(store: DocumentStore, trains: list[Train]) -> tuple[int, int]:
    """Create trains that are not in the catalog yet. Returns (created, skipped)."""
    created = skipped = 0
    for train in trains:
        if store.get(TRAINS, train.train_number) is not None:
            logger.info("Skipped train %s (%s): already exists", train.train_name, train.train_number)
            skipped += 1
            continue
        store.set(TRAINS, train.train_number, train.model_dump())
        logger.info("Created train %s (%s)", train.train_name, train.train_number)
        created += 1
    return created, skipped
