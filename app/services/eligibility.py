"""
Evaluador de elegibilidad de ofertas.

Una sola relación base para las cuatro variantes: facturas `active`, con cliente,
dentro de [start_date, min(end_date, as_of)] y con al menos una línea del producto
de la oferta. Cada variante agrega sobre esa relación:

- hitCounter:     primera factura por cliente, orden por fecha, primeros N clientes
- amountBased:    facturas >= minimum_amount, la ÚLTIMA por cliente
- visitCount:     nº de facturas por cliente >= visit_count
- purchaseAmount: suma de total_payable por cliente >= target_amount

`evaluate` es lectura pura. `calculate_eligible_entries` es el único punto que
reescribe la caché de la oferta (siempre completa, nunca incremental).
"""
import json
import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy import and_, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.schemas import EligibilityResult, EligibleCustomer, EligibleInvoice, Envelope
from ..core.timeutil import as_naive_utc, utcnow
from ..models.audit import AuditLog
from ..models.customer import Customer
from ..models.invoice import Invoice, InvoiceItem
from ..models.offer import Offer, OfferEligibleCustomer, OfferEligibleInvoice
from .errors import OfferError
from .offer_types import OfferKind, classify
from .offers import load_offer

logger = logging.getLogger(__name__)

UNKNOWN_NAME = "Unknown"
UNKNOWN_PHONE = "N/A"


def money(v) -> Decimal:
    return (v if isinstance(v, Decimal) else Decimal(str(v))).quantize(
        Decimal("0.01"), rounding=ROUND_HALF_UP
    )


def cents(expr):
    # SQLite guarda Numeric como REAL: se compara y se devuelve a 2 decimales
    return func.round(expr, 2)


def window_end(offer: Offer, as_of: Optional[datetime] = None) -> datetime:
    end = offer.end_date
    as_of = as_naive_utc(as_of)
    if as_of is not None and as_of < end:
        return as_of
    return end


def qualifying_invoices(offer: Offer, upto: datetime, *, inclusive: bool = True, customer_id=None):
    """Condición base (WHERE) sobre `invoice` para la oferta."""
    conds = [
        Invoice.status == "active",
        Invoice.customer_id.isnot(None),
        Invoice.created_at >= offer.start_date,
        Invoice.created_at <= upto if inclusive else Invoice.created_at < upto,
        Invoice.items.any(InvoiceItem.variant_id == offer.product_id),
    ]
    if customer_id is not None:
        conds.append(Invoice.customer_id == customer_id)
    return and_(*conds)


def one_invoice_per_customer(offer: Offer, upto: datetime, *, latest: bool = False, extra=(), inclusive=True):
    """
    Una factura por cliente: la primera (latest=False) o la última (latest=True).
    El resultado sale ordenado ascendente por fecha.
    """
    if latest:
        order = (Invoice.created_at.desc(), Invoice.id.desc())
    else:
        order = (Invoice.created_at.asc(), Invoice.id.asc())
    rn = func.row_number().over(partition_by=Invoice.customer_id, order_by=order).label("rn")
    ranked = (
        select(Invoice.id.label("invoice_id"), rn)
        .where(qualifying_invoices(offer, upto, inclusive=inclusive), *extra)
        .subquery()
    )
    return (
        select(Invoice, Customer)
        .join(ranked, and_(ranked.c.invoice_id == Invoice.id, ranked.c.rn == 1))
        .outerjoin(Customer, Customer.id == Invoice.customer_id)
        .order_by(Invoice.created_at.asc(), Invoice.id.asc())
    )


def per_customer_totals(offer: Offer, upto: datetime, metric, threshold):
    grouped = (
        select(Invoice.customer_id.label("customer_id"), metric.label("metric"))
        .where(qualifying_invoices(offer, upto))
        .group_by(Invoice.customer_id)
        .having(metric >= threshold)
        .subquery()
    )
    return (
        select(grouped.c.customer_id, grouped.c.metric, Customer.name, Customer.phone)
        .outerjoin(Customer, Customer.id == grouped.c.customer_id)
        .order_by(grouped.c.metric.desc(), grouped.c.customer_id.asc())
    )


def _invoice_entry(inv: Invoice, cust: Optional[Customer]) -> EligibleInvoice:
    return EligibleInvoice(
        invoice_id=inv.id,
        invoice_no=inv.invoice_no,
        customer_id=inv.customer_id,
        customer_name=cust.name if cust else None,
        customer_phone=cust.phone if cust else None,
        total_payable=inv.total_payable,
        created_at=inv.created_at,
    )


def _customer_entry(row, amount: bool = False) -> EligibleCustomer:
    customer_id, metric, name, phone = row
    return EligibleCustomer(
        customer_id=customer_id,
        identifier=phone or str(customer_id),
        display_name=name,
        phone=phone,
        metric=money(metric or 0) if amount else Decimal(str(metric or 0)),
    )


def evaluate(db: Session, offer: Offer, as_of: Optional[datetime] = None) -> EligibilityResult:
    kind = classify(offer)
    upto = window_end(offer, as_of)

    if kind is OfferKind.HIT_COUNTER:
        limit = max(int(offer.customer_limit or 0), 0)
        stmt = one_invoice_per_customer(offer, upto).limit(limit)
        invoices = [_invoice_entry(inv, cust) for inv, cust in db.execute(stmt).all()]
        return EligibilityResult(kind=kind.value, count=len(invoices), invoices=invoices)

    if kind is OfferKind.AMOUNT_BASED:
        minimum = money(offer.minimum_amount or 0)
        stmt = one_invoice_per_customer(
            offer, upto, latest=True, extra=(cents(Invoice.total_payable) >= minimum,)
        )
        invoices = [_invoice_entry(inv, cust) for inv, cust in db.execute(stmt).all()]
        return EligibilityResult(kind=kind.value, count=len(invoices), invoices=invoices)

    spend = kind is OfferKind.PURCHASE_AMOUNT
    if spend:
        stmt = per_customer_totals(
            offer, upto, cents(func.sum(Invoice.total_payable)), money(offer.target_amount or 0)
        )
    else:
        stmt = per_customer_totals(offer, upto, func.count(Invoice.id), offer.visit_count)
    customers = [_customer_entry(r, amount=spend) for r in db.execute(stmt).all()]
    return EligibilityResult(kind=kind.value, count=len(customers), customers=customers)


def _refresh_cache(db: Session, offer: Offer, result: EligibilityResult, now: datetime) -> None:
    kind = OfferKind(result.kind)
    if kind is OfferKind.AMOUNT_BASED:
        offer.eligible_invoices = [OfferEligibleInvoice(invoice_id=i.invoice_id) for i in result.invoices]
    elif not kind.is_festival:
        offer.eligible_customers = [
            OfferEligibleCustomer(
                identifier=c.identifier,
                display_name=c.display_name or UNKNOWN_NAME,
                metric=c.metric,
            )
            for c in result.customers
        ]
    offer.eligible_computed_at = now
    db.add(
        AuditLog(
            user_id="admin",
            entity="offer",
            entity_id=str(offer.id),
            action="recompute",
            payload_json=json.dumps({"kind": kind.value, "count": result.count}),
        )
    )


def calculate_eligible_entries(db: Session, offer_id: int, as_of: Optional[datetime] = None) -> Envelope:
    """Recalcula y persiste la foto de elegibles de la oferta."""
    try:
        offer = load_offer(db, offer_id)
        now = utcnow()
        result = evaluate(db, offer, as_of or now)
        _refresh_cache(db, offer, result, now)
        db.commit()
        logger.info("offer %s recomputed: %s eligible (%s)", offer_id, result.count, result.kind)
        return Envelope.ok(result)
    except OfferError as e:
        db.rollback()
        return Envelope.fail(e.message, e.status_code)
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("recompute failed for offer %s", offer_id)
        return Envelope.fail(f"Failed to calculate eligible entries: {e}", 503)


def get_eligible_entries(db: Session, offer_id: int, as_of: Optional[datetime] = None) -> Envelope:
    """Misma evaluación que el recálculo, sin escribir nada."""
    try:
        offer = load_offer(db, offer_id)
        return Envelope.ok(evaluate(db, offer, as_of or utcnow()))
    except OfferError as e:
        return Envelope.fail(e.message, e.status_code)
    except SQLAlchemyError as e:
        logger.exception("eligibility read failed for offer %s", offer_id)
        return Envelope.fail(f"Failed to calculate eligible entries: {e}", 503)
