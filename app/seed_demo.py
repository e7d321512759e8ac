from datetime import timedelta
from decimal import Decimal

from sqlalchemy.orm import Session

from .core.timeutil import utcnow
from .db import Base, SessionLocal, engine
from .models.customer import Customer
from .models.invoice import Invoice, InvoiceItem
from .models.offer import Offer, OfferPrize
from .models.product import Product


def get_or_create(session: Session, model, defaults=None, **kwargs):
    inst = session.query(model).filter_by(**kwargs).first()
    if inst:
        return inst, False
    params = dict(kwargs)
    if defaults:
        params.update(defaults)
    inst = model(**params)
    session.add(inst)
    session.commit()
    session.refresh(inst)
    return inst, True


def main():
    Base.metadata.create_all(bind=engine)
    db: Session = SessionLocal()
    try:
        now = utcnow()
        start = now - timedelta(days=10)
        end = now + timedelta(days=20)

        # Producto demo
        oil, _ = get_or_create(db, Product, name="Aceite de girasol", volume="1", uom="L")

        # Clientes demo
        customers = []
        for i in range(1, 7):
            c, _ = get_or_create(
                db, Customer, phone=f"98765000{i:02d}", defaults={"name": f"Cliente {i}"}
            )
            customers.append(c)

        # Facturas: un par por cliente dentro de la ventana
        for i, c in enumerate(customers):
            for visit in range(2):
                no = f"DEMO-{c.id}-{visit}"
                if db.query(Invoice).filter_by(invoice_no=no).first():
                    continue
                amount = Decimal(300 + 150 * i + 100 * visit)
                inv = Invoice(
                    invoice_no=no,
                    customer_id=c.id,
                    subtotal=amount,
                    total_payable=amount,
                    created_at=start + timedelta(days=1 + i, hours=visit * 30),
                )
                inv.items = [InvoiceItem(variant_id=oil.id, name=oil.name, quantity=1, price=amount)]
                db.add(inv)
        db.commit()

        # Una oferta de cada variante
        hit, created = get_or_create(
            db,
            Offer,
            festival_name="Diwali Rush",
            defaults=dict(
                product_id=oil.id,
                offer_type="festival",
                festival_sub_type="hitCounter",
                customer_limit=5,
                start_date=start,
                end_date=end,
            ),
        )
        if created:
            hit.prizes = [
                OfferPrize(rank=r, prize_name=f"Premio {r}", image_url=f"/offers/{r}.png")
                for r in ("first", "second", "third")
            ]
            db.commit()
        get_or_create(
            db,
            Offer,
            festival_name="Big Basket",
            defaults=dict(
                product_id=oil.id,
                offer_type="festival",
                festival_sub_type="amountBased",
                minimum_amount=Decimal("500.00"),
                prize_name="Tote bag",
                prize_image_url="/offers/tote.png",
                start_date=start,
                end_date=end,
            ),
        )
        get_or_create(
            db,
            Offer,
            regular_sub_type="visitCount",
            product_id=oil.id,
            defaults=dict(
                offer_type="regular",
                visit_count=2,
                prize_name="Free refill",
                prize_image_url="/offers/refill.png",
                start_date=start,
                end_date=end,
            ),
        )
        get_or_create(
            db,
            Offer,
            regular_sub_type="purchaseAmount",
            product_id=oil.id,
            defaults=dict(
                offer_type="regular",
                target_amount=Decimal("1500.00"),
                prize_name="Gift card",
                prize_image_url="/offers/gift.png",
                start_date=start,
                end_date=end,
            ),
        )

        print(f"Seed OK | product_id={oil.id} customers={len(customers)} hit_counter_offer={hit.id}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
