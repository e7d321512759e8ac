from datetime import datetime, timedelta

from sqlalchemy.exc import OperationalError

from app.services import progress as progress_mod
from app.services.progress import get_active_offers_for_pos, project, remaining

from conftest import jan

NOW = jan(15, 10, 30)


def test_remaining_breakdown():
    end = NOW + timedelta(days=2, hours=3, minutes=4, seconds=30)
    assert remaining(end, NOW) == (2, 3, 4)


def test_remaining_is_zero_after_end():
    assert remaining(NOW - timedelta(minutes=5), NOW) == (0, 0, 0)


def test_hit_counter_progress(db, shop):
    offer = shop.hit_counter(limit=10)
    for i in range(7):
        shop.invoice(shop.customer(f"C{i}"), jan(2 + i))

    (view,) = project(db, [offer], NOW)

    assert view.current_count == 7
    assert view.target_count == 10
    assert len(view.eligible_customers) == 5
    assert view.eligible_customers[0].name == "C0"
    assert view.product_name == "Aceite de girasol"
    assert view.product_volume == "1 L"
    assert [p.rank for p in view.prizes] == ["first", "second", "third"]
    assert (view.days_remaining, view.hours_remaining, view.minutes_remaining) == (16, 13, 29)


def test_progress_counts_live_not_cached(db, shop):
    offer = shop.visit_count(visits=2)
    c = shop.customer("Rekha")
    shop.invoice(c, jan(2))

    assert project(db, [offer], NOW)[0].current_count == 0
    shop.invoice(c, jan(3))
    assert project(db, [offer], NOW)[0].current_count == 1
    assert offer.eligible_computed_at is None


def test_progress_only_counts_until_now(db, shop):
    offer = shop.hit_counter(limit=10)
    shop.invoice(shop.customer("Early"), jan(2))
    shop.invoice(shop.customer("Future"), jan(20))

    assert project(db, [offer], NOW)[0].current_count == 1


def test_targets_per_variant(db, shop):
    visits = shop.visit_count(visits=4)
    amount = shop.amount_based(minimum=500)
    spend = shop.purchase_amount(target=2000)

    views = {v.id: v for v in project(db, [visits, amount, spend], NOW)}

    assert views[visits.id].target_count == 4
    assert views[amount.id].target_count is None
    assert views[spend.id].target_count is None


def test_placeholders_for_missing_records(db, shop):
    offer = shop.amount_based(minimum=100, product_id=777)
    shop.invoice(None, jan(2), total=200, customer_id=555)
    # la factura es de self.product; la oferta apunta a un producto inexistente
    ghost = shop.hit_counter(limit=5)
    shop.invoice(None, jan(3), customer_id=556)

    views = {v.id: v for v in project(db, [offer, ghost], NOW)}

    assert views[offer.id].product_name == "Unknown Product"
    assert views[offer.id].product_volume == ""
    assert views[offer.id].current_count == 0
    preview = views[ghost.id].eligible_customers
    assert [(p.name, p.phone) for p in preview] == [("Unknown", "N/A"), ("Unknown", "N/A")]


def test_bad_offer_does_not_break_the_batch(db, shop):
    good = shop.visit_count(visits=1)
    bad = shop.visit_count(visits=1)
    bad.regular_sub_type = "loyalty"
    db.commit()

    views = project(db, [bad, good], NOW)

    assert [v.id for v in views] == [good.id]


def test_store_failure_on_one_offer_keeps_the_rest(db, shop, monkeypatch):
    good = shop.hit_counter(limit=5)
    broken = shop.visit_count(visits=1)
    real_evaluate = progress_mod.evaluate

    def flaky(db, offer, as_of=None):
        if offer.id == broken.id:
            raise OperationalError("SELECT", {}, Exception("database is locked"))
        return real_evaluate(db, offer, as_of)

    monkeypatch.setattr(progress_mod, "evaluate", flaky)

    env = get_active_offers_for_pos(db, NOW)

    assert env.success is True
    assert [v.id for v in env.data] == [good.id]


def test_active_offers_for_pos_filters_running_offers(db, shop):
    running = shop.hit_counter(limit=5)
    shop.hit_counter(limit=5, status="completed")
    shop.visit_count(status="inactive")
    shop.amount_based(start=jan(20, 0))
    shop.purchase_amount(end=jan(10, 0))

    env = get_active_offers_for_pos(db, NOW)

    assert env.success is True
    assert [v.id for v in env.data] == [running.id]


def test_active_offers_empty_store(db):
    env = get_active_offers_for_pos(db, datetime(2025, 6, 1))

    assert env.success is True
    assert env.data == []
