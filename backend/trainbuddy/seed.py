"""Load the sample train catalog: ``python -m trainbuddy.seed``."""
import logging

from trainbuddy.config import settings
from trainbuddy.database import Base, SessionLocal, engine
from trainbuddy.models.document import Document  # noqa: F401
from trainbuddy.sample_trains import SAMPLE_TRAINS
from trainbuddy.services.train_service import seed_trains
from trainbuddy.store.document_store import DocumentStore

logger = logging.getLogger(__name__)


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        created, skipped = seed_trains(DocumentStore(db), SAMPLE_TRAINS)
    finally:
        db.close()
    logger.info("Trains seeding complete: %d created, %d skipped", created, skipped)
    for collection, fields, order_by in sorted(settings.store_indexes, key=lambda i: i[0]):
        logger.info("Declared index on %s: %s then %s", collection, ", ".join(sorted(fields)), order_by)


if __name__ == "__main__":
    main()
