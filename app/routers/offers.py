from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session as OrmSession

from ..core.schemas import OfferIn, OfferUpdate
from ..db import get_db
from ..services import eligibility, offers, winners
from ._envelope import respond

router = APIRouter(prefix="/offers", tags=["offers"])


@router.get("")
def list_offers(db: OrmSession = Depends(get_db)):
    return respond(offers.list_offers(db))


@router.post("")
def create_offer(payload: OfferIn, db: OrmSession = Depends(get_db)):
    return respond(offers.create_offer(db, payload))


@router.get("/{offer_id}")
def get_offer(offer_id: int, db: OrmSession = Depends(get_db)):
    return respond(offers.get_offer(db, offer_id))


@router.patch("/{offer_id}")
def update_offer(offer_id: int, changes: OfferUpdate, db: OrmSession = Depends(get_db)):
    return respond(offers.update_offer(db, offer_id, changes))


@router.delete("/{offer_id}")
def delete_offer(offer_id: int, db: OrmSession = Depends(get_db)):
    return respond(offers.delete_offer(db, offer_id))


# ---------- elegibles ----------
@router.get("/{offer_id}/eligible")
def eligible_live(
    offer_id: int,
    as_of: Optional[datetime] = Query(default=None),
    db: OrmSession = Depends(get_db),
):
    """Evaluación en vivo; no toca la caché de la oferta."""
    return respond(eligibility.get_eligible_entries(db, offer_id, as_of))


@router.post("/{offer_id}/eligible")
def eligible_recompute(offer_id: int, db: OrmSession = Depends(get_db)):
    return respond(eligibility.calculate_eligible_entries(db, offer_id))


# ---------- ganadores ----------
@router.post("/{offer_id}/winners")
def draw_winners(offer_id: int, db: OrmSession = Depends(get_db)):
    return respond(winners.select_winners(db, offer_id))


@router.get("/{offer_id}/winners")
def list_winners(offer_id: int, db: OrmSession = Depends(get_db)):
    return respond(winners.get_winners(db, offer_id))
