from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship

from ..core.timeutil import utcnow
from ..db import Base

OFFER_TYPES = ("festival", "regular")
FESTIVAL_SUB_TYPES = ("hitCounter", "amountBased")
REGULAR_SUB_TYPES = ("visitCount", "purchaseAmount")
OFFER_STATUSES = ("active", "inactive", "completed")
PRIZE_RANKS = ("first", "second", "third")


class Offer(Base):
    __tablename__ = "offer"
    id = Column(Integer, primary_key=True)
    product_id = Column(Integer, ForeignKey("product.id"), nullable=False)
    offer_type = Column(String, nullable=False)  # festival | regular
    status = Column(String, default="active", nullable=False)  # active | inactive | completed
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)

    # festival
    festival_sub_type = Column(String)  # hitCounter | amountBased
    festival_name = Column(String)
    customer_limit = Column(Integer)
    minimum_amount = Column(Numeric(12, 2))

    # regular
    regular_sub_type = Column(String)  # visitCount | purchaseAmount
    visit_count = Column(Integer)
    target_amount = Column(Numeric(12, 2))

    prize_name = Column(String)
    prize_image_url = Column(String)

    # último recálculo (solo auditoría, ninguna decisión lo lee)
    eligible_computed_at = Column(DateTime)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    product = relationship("Product")
    prizes = relationship(
        "OfferPrize", cascade="all, delete-orphan", order_by="OfferPrize.id"
    )
    winners = relationship(
        "OfferWinner", cascade="all, delete-orphan", order_by="OfferWinner.id"
    )
    eligible_invoices = relationship(
        "OfferEligibleInvoice", cascade="all, delete-orphan", order_by="OfferEligibleInvoice.id"
    )
    eligible_customers = relationship(
        "OfferEligibleCustomer", cascade="all, delete-orphan", order_by="OfferEligibleCustomer.id"
    )

    __table_args__ = (
        Index("ix_offer_product_type_status", "product_id", "offer_type", "status"),
        Index("ix_offer_window", "start_date", "end_date"),
    )


class OfferPrize(Base):
    __tablename__ = "offer_prize"
    id = Column(Integer, primary_key=True)
    offer_id = Column(Integer, ForeignKey("offer.id"), nullable=False, index=True)
    rank = Column(String, nullable=False)  # first | second | third
    prize_name = Column(String, nullable=False)
    image_url = Column(String, nullable=False)


class OfferWinner(Base):
    __tablename__ = "offer_winner"
    id = Column(Integer, primary_key=True)
    offer_id = Column(Integer, ForeignKey("offer.id"), nullable=False, index=True)
    rank = Column(String, nullable=False)
    invoice_id = Column(Integer, ForeignKey("invoice.id"), nullable=False)
    customer_name = Column(String, nullable=False)
    mobile_number = Column(String, nullable=False)
    announced_at = Column(DateTime)


class OfferEligibleInvoice(Base):
    __tablename__ = "offer_eligible_invoice"
    id = Column(Integer, primary_key=True)
    offer_id = Column(Integer, ForeignKey("offer.id"), nullable=False, index=True)
    invoice_id = Column(Integer, ForeignKey("invoice.id"), nullable=False)


class OfferEligibleCustomer(Base):
    __tablename__ = "offer_eligible_customer"
    id = Column(Integer, primary_key=True)
    offer_id = Column(Integer, ForeignKey("offer.id"), nullable=False, index=True)
    identifier = Column(String, nullable=False)  # teléfono (o id si no hay)
    display_name = Column(String, nullable=False)
    metric = Column(Numeric(14, 2), nullable=False)  # visitas o monto acumulado
