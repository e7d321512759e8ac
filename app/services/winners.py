"""
Sorteo de ganadores para ofertas festival/hitCounter.

Siempre se recalcula la elegibilidad en vivo (nunca se lee la caché). El cierre
de la oferta es un UPDATE condicional `status='active' -> 'completed'`: si dos
sorteos corren a la vez solo uno confirma, el otro recibe "already completed".
"""
import json
import logging
import random
from datetime import datetime
from typing import List, Optional

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.schemas import EligibleInvoice, Envelope, Winner
from ..core.timeutil import as_naive_utc, utcnow
from ..models.audit import AuditLog
from ..models.offer import PRIZE_RANKS, Offer, OfferWinner
from .eligibility import UNKNOWN_NAME, UNKNOWN_PHONE, evaluate
from .errors import InvalidOfferType, NotEnoughEntries, OfferAlreadyCompleted, OfferError
from .offer_types import OfferKind, classify
from .offers import load_offer

logger = logging.getLogger(__name__)

WINNER_COUNT = len(PRIZE_RANKS)

_sysrand = random.SystemRandom()


def draw(entries: List[EligibleInvoice], rng: random.Random, now: datetime) -> List[Winner]:
    """
    Elige WINNER_COUNT entradas distintas sin reemplazo. `rng.sample` es un
    muestreo uniforme y devuelve en orden de selección: ese orden da el rango.
    """
    if len(entries) < WINNER_COUNT:
        raise NotEnoughEntries(len(entries), WINNER_COUNT)
    picked = rng.sample(entries, WINNER_COUNT)
    return [
        Winner(
            rank=rank,
            invoice_id=e.invoice_id,
            customer_name=e.customer_name or UNKNOWN_NAME,
            mobile_number=e.customer_phone or UNKNOWN_PHONE,
            announced_at=now,
        )
        for rank, e in zip(PRIZE_RANKS, picked)
    ]


def _commit_draw(db: Session, offer: Offer, winners: List[Winner]) -> None:
    res = db.execute(
        update(Offer)
        .where(Offer.id == offer.id, Offer.status == "active")
        .values(status="completed", updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    if res.rowcount != 1:
        db.rollback()
        raise OfferAlreadyCompleted()

    offer.winners = [
        OfferWinner(
            rank=w.rank,
            invoice_id=w.invoice_id,
            customer_name=w.customer_name,
            mobile_number=w.mobile_number,
            announced_at=w.announced_at,
        )
        for w in winners
    ]
    db.add(
        AuditLog(
            user_id="admin",
            entity="offer",
            entity_id=str(offer.id),
            action="draw",
            payload_json=json.dumps([w.model_dump(mode="json") for w in winners]),
        )
    )
    db.commit()
    db.refresh(offer)


def select_winners(
    db: Session,
    offer_id: int,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> Envelope:
    rng = rng or _sysrand
    now = as_naive_utc(now) or utcnow()
    try:
        offer = load_offer(db, offer_id)
        try:
            kind = classify(offer)
        except InvalidOfferType:
            kind = None
        if kind is not OfferKind.HIT_COUNTER:
            raise InvalidOfferType("Invalid offer type for winner selection")
        if offer.status == "completed":
            raise OfferAlreadyCompleted()
        if offer.status != "active":
            raise OfferError(f"Offer is {offer.status}; winners cannot be drawn")

        result = evaluate(db, offer, now)
        winners = draw(result.invoices, rng, now)
        _commit_draw(db, offer, winners)
        logger.info(
            "offer %s: drew %s winners from %s eligible", offer_id, len(winners), result.count
        )
        return Envelope.ok(winners, "Winners selected successfully!")
    except NotEnoughEntries as e:
        logger.info("offer %s: draw rejected, %s eligible", offer_id, e.found)
        return Envelope.fail(e.message, e.status_code)
    except OfferAlreadyCompleted as e:
        logger.warning("offer %s: draw lost, offer no longer active", offer_id)
        return Envelope.fail(e.message, e.status_code)
    except OfferError as e:
        return Envelope.fail(e.message, e.status_code)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("winner selection failed for offer %s", offer_id)
        return Envelope.fail(f"Failed to select winners: {e}", 503)


def get_winners(db: Session, offer_id: int) -> Envelope:
    try:
        offer = load_offer(db, offer_id)
        return Envelope.ok(
            [
                Winner(
                    rank=w.rank,
                    invoice_id=w.invoice_id,
                    customer_name=w.customer_name,
                    mobile_number=w.mobile_number,
                    announced_at=w.announced_at,
                )
                for w in offer.winners
            ]
        )
    except OfferError as e:
        return Envelope.fail(e.message, e.status_code)
    except SQLAlchemyError as e:
        logger.exception("winner read failed for offer %s", offer_id)
        return Envelope.fail(f"Failed to fetch winners: {e}", 503)
