from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session as OrmSession

from ..core.config import settings
from ..core.schemas import CheckInvoiceIn
from ..db import get_db
from ..services.detection import check_invoice_for_offers
from ..services.progress import get_active_offers_for_pos
from ._envelope import respond

router = APIRouter(prefix="/pos/offers", tags=["pos", "offers"])


@router.get("/active")
def active_offers(db: OrmSession = Depends(get_db)):
    """Banner del POS: lo consulta la caja cada `refresh_seconds`."""
    resp = respond(get_active_offers_for_pos(db))
    resp.headers["X-Refresh-Seconds"] = str(settings.pos_refresh_seconds)
    return resp


@router.post("/check")
def check_invoice(body: CheckInvoiceIn, db: OrmSession = Depends(get_db)):
    return respond(
        check_invoice_for_offers(
            db, body.customer_id, body.items, body.total_amount, body.invoice_date
        )
    )
