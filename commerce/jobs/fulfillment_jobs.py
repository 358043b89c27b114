"""
Fulfillment Jobs

Background job for checkout sessions whose payment succeeded but whose
order could not be created when the webhook arrived (e.g. a transient
database error). The gateway's view of the link is re-fetched before
fulfillment is retried.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from commerce.config import settings
from commerce.database import Database
from commerce.services.checkout_service import CheckoutOrchestrator
from commerce.services.payment_service import PaymentService

logger = logging.getLogger(__name__)


async def retry_failed_fulfillments(
    database: Database,
    payment_service: Optional[PaymentService] = None,
    max_attempts: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Retry failed checkout sessions.

    This job runs every FULFILLMENT_RETRY_INTERVAL_MINUTES to:
    1. Find sessions in failed state with attempts left
    2. Fetch the payment link from Razorpay
    3. Re-run fulfillment for links that are paid
    """
    logger.info("Starting failed fulfillment retry...")
    start_time = datetime.now(timezone.utc)
    max_attempts = max_attempts or settings.FULFILLMENT_MAX_ATTEMPTS

    async with database.session() as session:
        orchestrator = CheckoutOrchestrator(session, payment_service=payment_service)
        results = await orchestrator.retry_failed_sessions(max_attempts)

    summary = {
        "retried": len(results),
        "fulfilled": sum(1 for r in results if r.status in ("processed", "duplicate")),
        "failed": sum(1 for r in results if r.status == "failed"),
        "duration_seconds": (datetime.now(timezone.utc) - start_time).total_seconds(),
    }
    logger.info(
        f"Fulfillment retry completed: {summary['fulfilled']}/{summary['retried']} fulfilled "
        f"in {summary['duration_seconds']:.2f}s"
    )
    return summary
