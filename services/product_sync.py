"""
Outbox for the product status write that follows a transaction status change.

The outbox row is committed atomically with the transaction status. The
product write is then attempted once inline; rows left pending are retried by
a background worker which re-derives the product status from all of the
product's transactions, so a late retry never overwrites a newer state.
"""
import asyncio
import logging
from typing import Optional

from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from database.connection import SessionLocal
from models.outbox import ProductStatusSync, SyncState
from models.product import Product, ProductStatus
from models.transaction import Transaction
from services.product import set_product_status

logger = logging.getLogger(__name__)


def _record_failure(db: Session, sync_id: str, error: Exception, max_attempts: Optional[int] = None) -> None:
    try:
        sync = db.query(ProductStatusSync).filter(ProductStatusSync.id == sync_id).first()
        if sync is None:
            return
        sync.attempts += 1
        sync.last_error = str(error)[:1000]
        if max_attempts is not None and sync.attempts >= max_attempts:
            sync.state = SyncState.FAILED
            logger.error(
                f"Product status sync {sync_id} for product {sync.product_id} gave up "
                f"after {sync.attempts} attempts: {str(error)}"
            )
        db.commit()
    except Exception as e:
        db.rollback()
        logger.error(f"Could not record failure of product status sync {sync_id}: {str(e)}")


def apply_product_sync(db: Session, sync_id: str) -> bool:
    """
    Apply one pending outbox row with the status it carries.

    Never raises: a failure leaves the row pending and is logged as a warning.
    """
    try:
        sync = db.query(ProductStatusSync).filter(ProductStatusSync.id == sync_id).first()
        if sync is None or sync.state != SyncState.PENDING:
            return False

        set_product_status(db, sync.product_id, sync.target_status)
        sync.state = SyncState.DONE
        sync.attempts += 1
        sync.last_error = None
        db.commit()

        logger.info(f"Product {sync.product_id} set to {sync.target_status.value}")
        return True

    except Exception as e:
        db.rollback()
        logger.warning(f"Product status sync {sync_id} failed, queued for retry: {str(e)}")
        _record_failure(db, sync_id, e)
        return False


def reconcile_product(db: Session, product_id: str) -> Optional[ProductStatus]:
    """Set a product's status to the one derived from its transactions. Caller commits."""
    from services.transaction import derive_product_status

    product = db.query(Product).filter(Product.id == product_id).first()
    if product is None:
        return None

    transactions = db.query(Transaction).filter(Transaction.product_id == product_id).all()
    derived = derive_product_status(transactions)
    if product.status != derived:
        set_product_status(db, product_id, derived)
        logger.info(f"Product {product_id} reconciled from {product.status.value} to {derived.value}")
    return derived


def process_pending_syncs(db: Session, max_attempts: int, limit: int = 100) -> int:
    """Retry pending outbox rows, oldest first. Returns how many were applied."""
    pending_ids = [
        row.id for row in db.query(ProductStatusSync.id)
        .filter(ProductStatusSync.state == SyncState.PENDING)
        .order_by(ProductStatusSync.created_at.asc())
        .limit(limit)
        .all()
    ]

    applied = 0
    for sync_id in pending_ids:
        try:
            sync = db.query(ProductStatusSync).filter(ProductStatusSync.id == sync_id).first()
            reconcile_product(db, sync.product_id)
            sync.state = SyncState.DONE
            sync.attempts += 1
            sync.last_error = None
            db.commit()
            applied += 1
        except Exception as e:
            db.rollback()
            logger.warning(f"Retry of product status sync {sync_id} failed: {str(e)}")
            _record_failure(db, sync_id, e, max_attempts=max_attempts)

    if applied:
        logger.info(f"Applied {applied} pending product status syncs")
    return applied


def _process_once(max_attempts: int) -> int:
    db = SessionLocal()
    try:
        return process_pending_syncs(db, max_attempts)
    finally:
        db.close()


async def run_product_sync_worker(interval_seconds: int, max_attempts: int):
    """Background loop started with the application"""
    logger.info(f"Product status sync worker started (every {interval_seconds}s)")
    while True:
        await asyncio.sleep(interval_seconds)
        try:
            await run_in_threadpool(_process_once, max_attempts)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Product status sync worker error: {str(e)}")
