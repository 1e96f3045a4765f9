import logging

from celery import shared_task

from productManagement.models import Products

from .low_stock import AlertOutcome, check_product_stock, run_low_stock_check

logger = logging.getLogger(__name__)


@shared_task
def run_low_stock_check_task(vendor_id: int = None):
    """
    Scan tracked products and alert vendors about low stock.
    Scheduled through Celery beat.
    """
    results = run_low_stock_check(vendor_id=vendor_id)
    summary = {outcome.value: 0 for outcome in AlertOutcome}
    for result in results:
        summary[str(result.outcome)] += 1
    logger.info("Low stock scan checked %s product(s): %s", len(results), summary)
    return summary


@shared_task(bind=True, autoretry_for=(Exception,), retry_backoff=True, retry_kwargs={'max_retries': 3})
def check_product_stock_task(self, product_id: int):
    """Runs after an order decremented a product's stock."""
    product = (Products.objects
               .select_related('vendor', 'vendor__vendor_profile')
               .filter(pk=product_id)
               .first())
    if product is None:
        return None
    result = check_product_stock(product)
    return result.as_dict() if result else None
