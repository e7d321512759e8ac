"""
Progreso en vivo de ofertas para el banner del POS.

Solo lectura: re-evalúa cada oferta contra `now` y nunca escribe caché. Una
oferta que falla se omite (y se registra); el resto del lote sale igual.
"""
import logging
from datetime import datetime
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.schemas import CustomerPreview, EligibilityResult, Envelope, OfferProgress, Prize
from ..core.timeutil import as_naive_utc, utcnow
from ..models.offer import Offer
from .eligibility import UNKNOWN_NAME, UNKNOWN_PHONE, evaluate
from .errors import OfferError
from .offer_types import target_count

logger = logging.getLogger(__name__)


def remaining(end: datetime, now: datetime):
    """(días, horas, minutos) hasta `end`, truncados; cero si ya pasó."""
    secs = max(int((end - now).total_seconds()), 0)
    days, secs = divmod(secs, 86400)
    hours, secs = divmod(secs, 3600)
    return days, hours, secs // 60


def _preview(result: EligibilityResult, limit: int) -> List[CustomerPreview]:
    if result.invoices:
        rows = [(i.customer_name, i.customer_phone) for i in result.invoices[:limit]]
    else:
        rows = [(c.display_name, c.phone) for c in result.customers[:limit]]
    return [CustomerPreview(name=n or UNKNOWN_NAME, phone=p or UNKNOWN_PHONE) for n, p in rows]


def project_one(db: Session, offer: Offer, now: datetime, preview_limit: int) -> OfferProgress:
    result = evaluate(db, offer, now)
    days, hours, minutes = remaining(offer.end_date, now)
    product = offer.product
    return OfferProgress(
        id=offer.id,
        offer_type=offer.offer_type,
        festival_sub_type=offer.festival_sub_type,
        regular_sub_type=offer.regular_sub_type,
        festival_name=offer.festival_name,
        product_id=product.id if product else offer.product_id,
        product_name=(product.name if product else None) or "Unknown Product",
        product_volume=product.label if product else "",
        start_date=offer.start_date,
        end_date=offer.end_date,
        status=offer.status,
        current_count=result.count,
        target_count=target_count(offer),
        eligible_customers=_preview(result, preview_limit),
        customer_limit=offer.customer_limit,
        minimum_amount=offer.minimum_amount,
        visit_count=offer.visit_count,
        target_amount=offer.target_amount,
        prize_name=offer.prize_name,
        prizes=[Prize(rank=p.rank, prize_name=p.prize_name, image_url=p.image_url) for p in offer.prizes],
        days_remaining=days,
        hours_remaining=hours,
        minutes_remaining=minutes,
    )


def project(
    db: Session,
    offers: Iterable[Offer],
    now: Optional[datetime] = None,
    preview_limit: Optional[int] = None,
) -> List[OfferProgress]:
    now = as_naive_utc(now) or utcnow()
    limit = settings.offer_preview_limit if preview_limit is None else preview_limit
    views = []
    for offer in offers:
        try:
            views.append(project_one(db, offer, now, limit))
        except OfferError as e:
            logger.warning("offer %s skipped in progress view: %s", offer.id, e.message)
        except SQLAlchemyError:
            logger.exception("offer %s skipped in progress view", offer.id)
    return views


def active_offers(db: Session, now: datetime) -> List[Offer]:
    stmt = (
        select(Offer)
        .where(Offer.status == "active", Offer.start_date <= now, Offer.end_date >= now)
        .order_by(Offer.end_date.asc(), Offer.id.asc())
    )
    return list(db.execute(stmt).scalars().all())


def get_active_offers_for_pos(db: Session, now: Optional[datetime] = None) -> Envelope:
    now = as_naive_utc(now) or utcnow()
    try:
        return Envelope.ok(project(db, active_offers(db, now), now))
    except SQLAlchemyError:
        logger.exception("active offers progress failed")
        return Envelope.fail("Failed to fetch active offers", 503)
