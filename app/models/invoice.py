from sqlalchemy import Column, DateTime, ForeignKey, Integer, Numeric, String
from sqlalchemy.orm import relationship

from ..core.timeutil import utcnow
from ..db import Base


# Log de ventas: lo escribe la caja, el motor de ofertas solo lo lee.
class Invoice(Base):
    __tablename__ = "invoice"
    id = Column(Integer, primary_key=True)
    invoice_no = Column(String, unique=True, index=True)
    customer_id = Column(Integer, ForeignKey("customer.id"), index=True)
    subtotal = Column(Numeric(12, 2), default=0)
    discount = Column(Numeric(12, 2), default=0)
    total_payable = Column(Numeric(12, 2), nullable=False)
    payment_method = Column(String, default="cash")  # cash | upi | card
    status = Column(String, default="active", index=True)  # active | cancelled
    created_at = Column(DateTime, default=utcnow, index=True)

    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan")
    customer = relationship("Customer")


class InvoiceItem(Base):
    __tablename__ = "invoice_item"
    id = Column(Integer, primary_key=True)
    invoice_id = Column(Integer, ForeignKey("invoice.id"), nullable=False, index=True)
    variant_id = Column(Integer, ForeignKey("product.id"), nullable=False, index=True)
    name = Column(String)
    quantity = Column(Numeric(12, 3), nullable=False, default=1)
    price = Column(Numeric(12, 2), nullable=False)

    invoice = relationship("Invoice", back_populates="items")
