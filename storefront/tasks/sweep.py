# storefront/tasks/sweep.py
from storefront.celery_worker import celery_app
from storefront.data.database import Database
from storefront.services.inventory_ledger import InventoryLedger
from storefront.utils.logging import get_logger

logger = get_logger(__name__)


def sweep_expired_reservations(database: Database) -> int:
    db = database.session()
    try:
        # bez locka redis - kasujemy tylko wiersze po terminie
        return InventoryLedger(db).sweep_expired()
    finally:
        db.close()


@celery_app.task(name="storefront.tasks.sweep.sweep_expired_reservations_task")
def sweep_expired_reservations_task():
    logger.info("Sweep expired reservations task started")

    database = Database()
    try:
        removed = sweep_expired_reservations(database)
    finally:
        database.dispose()

    logger.info(f"Removed {removed} expired reservation(s)")
    return {"removed": removed}
