import os

# BD en memoria para app.main (create_all al importar)
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import Base
from app.models import audit as _audit_models  # noqa: F401
from app.models.customer import Customer
from app.models.invoice import Invoice, InvoiceItem
from app.models.offer import Offer, OfferPrize
from app.models.product import Product


def jan(day, hour=12, minute=0):
    return datetime(2025, 1, day, hour, minute)


WINDOW_START = jan(1, 0)
WINDOW_END = jan(31, 23, 59)
AFTER_WINDOW = datetime(2025, 3, 1)


class Shop:
    """Arma catálogo, clientes, facturas y ofertas para las pruebas."""

    def __init__(self, db):
        self.db = db
        self.product = Product(name="Aceite de girasol", volume="1", uom="L")
        self.other = Product(name="Arroz", volume="5", uom="kg")
        db.add_all([self.product, self.other])
        db.commit()
        self._n = 0

    def customer(self, name, phone=None):
        c = Customer(name=name, phone=phone or f"9000{self._next():06d}")
        self.db.add(c)
        self.db.commit()
        return c

    def _next(self):
        self._n += 1
        return self._n

    def invoice(self, customer, when, total=100, product=None, status="active", customer_id=None):
        product = product or self.product
        amount = Decimal(str(total))
        inv = Invoice(
            invoice_no=f"INV-{self._next():05d}",
            customer_id=customer_id if customer is None else customer.id,
            subtotal=amount,
            total_payable=amount,
            status=status,
            created_at=when,
        )
        inv.items = [InvoiceItem(variant_id=product.id, name=product.name, quantity=1, price=amount)]
        self.db.add(inv)
        self.db.commit()
        return inv

    def _offer(self, start, end, status, product_id=None, **fields):
        o = Offer(
            product_id=product_id or self.product.id,
            start_date=start,
            end_date=end,
            status=status,
            **fields,
        )
        self.db.add(o)
        self.db.commit()
        return o

    def hit_counter(self, limit=2, start=WINDOW_START, end=WINDOW_END, status="active", **kw):
        o = self._offer(
            start,
            end,
            status,
            offer_type="festival",
            festival_sub_type="hitCounter",
            festival_name="Sankranti",
            customer_limit=limit,
            **kw,
        )
        o.prizes = [
            OfferPrize(rank=r, prize_name=f"{r} prize", image_url=f"/img/{r}.png")
            for r in ("first", "second", "third")
        ]
        self.db.commit()
        return o

    def amount_based(self, minimum=500, start=WINDOW_START, end=WINDOW_END, status="active", **kw):
        return self._offer(
            start,
            end,
            status,
            offer_type="festival",
            festival_sub_type="amountBased",
            festival_name="Big Basket",
            minimum_amount=Decimal(str(minimum)),
            prize_name="Tote bag",
            prize_image_url="/img/tote.png",
            **kw,
        )

    def visit_count(self, visits=3, start=WINDOW_START, end=WINDOW_END, status="active", **kw):
        return self._offer(
            start,
            end,
            status,
            offer_type="regular",
            regular_sub_type="visitCount",
            visit_count=visits,
            prize_name="Free refill",
            prize_image_url="/img/refill.png",
            **kw,
        )

    def purchase_amount(self, target=1000, start=WINDOW_START, end=WINDOW_END, status="active", **kw):
        return self._offer(
            start,
            end,
            status,
            offer_type="regular",
            regular_sub_type="purchaseAmount",
            target_amount=Decimal(str(target)),
            prize_name="Gift card",
            prize_image_url="/img/gift.png",
            **kw,
        )


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False)


@pytest.fixture
def db(session_factory):
    s = session_factory()
    try:
        yield s
    finally:
        s.close()


@pytest.fixture
def shop(db):
    return Shop(db)
