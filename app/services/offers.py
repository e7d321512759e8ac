import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.schemas import (
    EligibleCustomer,
    Envelope,
    HitCounterOfferIn,
    OfferIn,
    OfferOut,
    OfferUpdate,
    Prize,
    Winner,
)
from ..core.timeutil import as_naive_utc
from ..models.offer import Offer, OfferPrize
from ..models.product import Product
from .errors import OfferError, OfferNotFound
from .offer_types import OfferKind, sub_type_fields

logger = logging.getLogger(__name__)

# campos por variante que se copian tal cual del payload
_FIELDS = {
    OfferKind.HIT_COUNTER: ("festival_name", "customer_limit"),
    OfferKind.AMOUNT_BASED: ("festival_name", "minimum_amount", "prize_name", "prize_image_url"),
    OfferKind.VISIT_COUNT: ("visit_count", "prize_name", "prize_image_url"),
    OfferKind.PURCHASE_AMOUNT: ("target_amount", "prize_name", "prize_image_url"),
}


def load_offer(db: Session, offer_id: int) -> Offer:
    offer = db.get(Offer, offer_id)
    if offer is None:
        raise OfferNotFound()
    return offer


def to_offer_out(offer: Offer) -> OfferOut:
    return OfferOut(
        id=offer.id,
        product_id=offer.product_id,
        offer_type=offer.offer_type,
        status=offer.status,
        start_date=offer.start_date,
        end_date=offer.end_date,
        festival_sub_type=offer.festival_sub_type,
        festival_name=offer.festival_name,
        customer_limit=offer.customer_limit,
        minimum_amount=offer.minimum_amount,
        regular_sub_type=offer.regular_sub_type,
        visit_count=offer.visit_count,
        target_amount=offer.target_amount,
        prize_name=offer.prize_name,
        prize_image_url=offer.prize_image_url,
        prizes=[Prize(rank=p.rank, prize_name=p.prize_name, image_url=p.image_url) for p in offer.prizes],
        winners=[
            Winner(
                rank=w.rank,
                invoice_id=w.invoice_id,
                customer_name=w.customer_name,
                mobile_number=w.mobile_number,
                announced_at=w.announced_at,
            )
            for w in offer.winners
        ],
        eligible_invoices=[e.invoice_id for e in offer.eligible_invoices],
        eligible_customers=[
            EligibleCustomer(identifier=c.identifier, display_name=c.display_name, metric=c.metric)
            for c in offer.eligible_customers
        ],
        eligible_computed_at=offer.eligible_computed_at,
    )


def _guard(db: Session, what: str, fn):
    try:
        return fn()
    except OfferError as e:
        db.rollback()
        return Envelope.fail(e.message, e.status_code)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("%s failed", what)
        return Envelope.fail(f"Failed to {what}: {e}", 503)


def create_offer(db: Session, payload: OfferIn) -> Envelope:
    def _do():
        if db.get(Product, payload.product_id) is None:
            return Envelope.fail("Product not found", 404)
        kind = OfferKind(payload.kind)
        offer = Offer(
            product_id=payload.product_id,
            start_date=as_naive_utc(payload.start_date),
            end_date=as_naive_utc(payload.end_date),
            status="active",
            **sub_type_fields(kind),
        )
        for name in _FIELDS[kind]:
            setattr(offer, name, getattr(payload, name))
        if isinstance(payload, HitCounterOfferIn):
            offer.prizes = [
                OfferPrize(rank=p.rank, prize_name=p.prize_name, image_url=p.image_url)
                for p in sorted(payload.prizes, key=lambda p: ("first", "second", "third").index(p.rank))
            ]
        db.add(offer)
        db.commit()
        db.refresh(offer)
        logger.info("offer %s created (%s)", offer.id, kind.value)
        return Envelope.ok(to_offer_out(offer), "Offer created successfully!")

    return _guard(db, "create offer", _do)


def list_offers(db: Session) -> Envelope:
    def _do():
        rows = db.execute(select(Offer).order_by(Offer.created_at.desc(), Offer.id.desc())).scalars().all()
        return Envelope.ok([to_offer_out(o) for o in rows])

    return _guard(db, "fetch offers", _do)


def get_offer(db: Session, offer_id: int) -> Envelope:
    return _guard(db, "fetch offer", lambda: Envelope.ok(to_offer_out(load_offer(db, offer_id))))


def update_offer(db: Session, offer_id: int, changes: OfferUpdate) -> Envelope:
    """Edición parcial: solo se tocan los campos presentes en el payload."""

    def _do():
        offer = load_offer(db, offer_id)
        data = changes.model_dump(exclude_unset=True, exclude_none=True)
        for key in ("start_date", "end_date"):
            if key in data:
                data[key] = as_naive_utc(data[key])
        for name, value in data.items():
            setattr(offer, name, value)
        if offer.start_date >= offer.end_date:
            db.rollback()
            return Envelope.fail("start_date must be before end_date", 422)
        db.commit()
        db.refresh(offer)
        return Envelope.ok(to_offer_out(offer), "Offer updated successfully!")

    return _guard(db, "update offer", _do)


def delete_offer(db: Session, offer_id: int) -> Envelope:
    def _do():
        offer = load_offer(db, offer_id)
        db.delete(offer)
        db.commit()
        logger.info("offer %s deleted", offer_id)
        return Envelope.ok(message="Offer deleted successfully!")

    return _guard(db, "delete offer", _do)
