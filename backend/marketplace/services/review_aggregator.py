"""
Review aggregator: keeps a business's rating in step with its reviews.

Always recomputed from the full review set, never updated incrementally,
so the stored average cannot drift from the source rows.
"""

from decimal import ROUND_HALF_UP, Decimal

from marketplace.core.exceptions import NotFound
from marketplace.core.logging import get_logger
from marketplace.models import Business
from marketplace.repositories.base import StoreTransaction

logger = get_logger(__name__)

RATING_PRECISION = Decimal("0.1")


def average_rating(ratings: list[int]) -> Decimal:
    if not ratings:
        return Decimal("0.0")
    mean = Decimal(sum(ratings)) / Decimal(len(ratings))
    return mean.quantize(RATING_PRECISION, rounding=ROUND_HALF_UP)


async def recompute(tx: StoreTransaction, business_id: int) -> Business:
    business = await tx.get_business_for_update(business_id)
    if not business:
        raise NotFound(f"Business {business_id} not found")

    ratings = await tx.list_review_ratings(business_id)
    business.rating = average_rating(ratings)
    business.total_reviews = len(ratings)
    await tx.save_business(business)

    logger.info(
        "business_rating_recomputed",
        business_id=business_id,
        rating=str(business.rating),
        total_reviews=business.total_reviews,
    )
    return business
