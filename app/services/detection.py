import logging
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.schemas import CheckItem, Envelope, OfferQualification
from ..core.timeutil import as_naive_utc, utcnow
from ..models.invoice import Invoice
from ..models.offer import Offer
from .eligibility import money, one_invoice_per_customer, qualifying_invoices
from .errors import InvalidOfferType
from .offer_types import OfferKind, classify

logger = logging.getLogger(__name__)


def _hit_counter(db: Session, offer: Offer, customer_id: int, at: datetime) -> OfferQualification:
    limit = max(int(offer.customer_limit or 0), 0)
    taken = len(db.execute(one_invoice_per_customer(offer, at, inclusive=False).limit(limit)).all())
    bought_before = (
        db.execute(
            select(Invoice.id)
            .where(qualifying_invoices(offer, at, inclusive=False, customer_id=customer_id))
            .limit(1)
        ).first()
        is not None
    )
    position = taken + 1
    within = position <= limit

    progress = None
    if bought_before:
        progress = "Already purchased this product in this offer period"
    elif not within:
        progress = f"Offer full ({limit} customers reached)"

    return OfferQualification(
        offer_id=offer.id,
        offer_name=offer.festival_name or "Festival Offer",
        offer_type="festival",
        festival_sub_type="hitCounter",
        qualified=within and not bought_before,
        prize_name=f"Position {position}/{limit}" if within else None,
        position=None if bought_before else position,
        progress_to_qualify=progress,
    )

def _amount_based(offer: Offer, total: Decimal) -> OfferQualification:
    minimum = money(offer.minimum_amount or 0)
    ok = total >= minimum
    return OfferQualification(
        offer_id=offer.id,
        offer_name=offer.festival_name or "Festival Offer",
        offer_type="festival",
        festival_sub_type="amountBased",
        qualified=ok,
        prize_name=offer.prize_name,
        progress_to_qualify=None if ok else f"Need {money(minimum - total)} {settings.currency} more",
    )

def _visit_count(db: Session, offer: Offer, customer_id: int, at: datetime) -> OfferQualification:
    prior = db.execute(
        select(func.count(Invoice.id)).where(
            qualifying_invoices(offer, at, inclusive=False, customer_id=customer_id)
        )
    ).scalar_one()
    visits = int(prior or 0) + 1  # +1: la factura en curso
    ok = visits >= (offer.visit_count or 0)
    return OfferQualification(
        offer_id=offer.id,
        offer_name="Regular Visit Reward",
        offer_type="regular",
        regular_sub_type="visitCount",
        qualified=ok,
        prize_name=offer.prize_name,
        progress_to_qualify=None if ok else f"{visits}/{offer.visit_count} visits completed",
    )

def _purchase_amount(
    db: Session, offer: Offer, customer_id: int, at: datetime, total: Decimal
) -> OfferQualification:
    prior = db.execute(
        select(func.coalesce(func.sum(Invoice.total_payable), 0)).where(
            qualifying_invoices(offer, at, inclusive=False, customer_id=customer_id)
        )
    ).scalar_one()
    spent = money(prior or 0) + total
    target = money(offer.target_amount or 0)
    ok = spent >= target
    cur = settings.currency
    return OfferQualification(
        offer_id=offer.id,
        offer_name="Purchase Amount Reward",
        offer_type="regular",
        regular_sub_type="purchaseAmount",
        qualified=ok,
        prize_name=offer.prize_name,
        progress_to_qualify=None if ok else f"{money(spent)} {cur}/{target} {cur} spent",
    )

def check_invoice_for_offers(
    db: Session,
    customer_id: int,
    items: List[CheckItem],
    total_amount,
    invoice_date: Optional[datetime] = None,
) -> Envelope:
    """
    Evalúa una factura que aún no se guarda contra las ofertas activas de sus
    productos. Solo cuenta el historial anterior a `invoice_date`.
    """
    at = as_naive_utc(invoice_date) or utcnow()
    total = money(total_amount)
    variant_ids = {it.variant_id for it in items}
    if not variant_ids:
        return Envelope.ok([])

    try:
        offers = db.execute(
            select(Offer)
            .where(
                Offer.status == "active",
                Offer.start_date <= at,
                Offer.end_date >= at,
                Offer.product_id.in_(variant_ids),
            )
            .order_by(Offer.id.asc())
        ).scalars().all()

        out: List[OfferQualification] = []
        for offer in offers:
            try:
                kind = classify(offer)
            except InvalidOfferType:
                logger.warning("offer %s has an invalid shape; skipped at checkout", offer.id)
                continue
            if kind is OfferKind.HIT_COUNTER:
                out.append(_hit_counter(db, offer, customer_id, at))
            elif kind is OfferKind.AMOUNT_BASED:
                out.append(_amount_based(offer, total))
            elif kind is OfferKind.VISIT_COUNT:
                out.append(_visit_count(db, offer, customer_id, at))
            else:
                out.append(_purchase_amount(db, offer, customer_id, at, total))
        return Envelope.ok(out)
    except SQLAlchemyError:
        logger.exception("offer check failed for customer %s", customer_id)
        return Envelope.fail("Failed to check offers", 503)
