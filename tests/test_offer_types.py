from types import SimpleNamespace

import pytest

from app.services.errors import InvalidOfferType
from app.services.offer_types import OfferKind, classify, target_count


def _offer(offer_type, festival=None, regular=None, **kw):
    return SimpleNamespace(
        offer_type=offer_type, festival_sub_type=festival, regular_sub_type=regular, **kw
    )


@pytest.mark.parametrize(
    "offer, kind",
    [
        (_offer("festival", festival="hitCounter"), OfferKind.HIT_COUNTER),
        (_offer("festival", festival="amountBased"), OfferKind.AMOUNT_BASED),
        (_offer("regular", regular="visitCount"), OfferKind.VISIT_COUNT),
        (_offer("regular", regular="purchaseAmount"), OfferKind.PURCHASE_AMOUNT),
    ],
)
def test_classify_legal_pairs(offer, kind):
    assert classify(offer) is kind


@pytest.mark.parametrize(
    "offer",
    [
        _offer("festival"),
        _offer("festival", festival="visitCount"),
        _offer("regular", regular="hitCounter"),
        _offer("regular", festival="hitCounter", regular="visitCount"),
        _offer("festival", festival="hitCounter", regular="visitCount"),
        _offer("seasonal", festival="hitCounter"),
    ],
)
def test_classify_rejects_everything_else(offer):
    with pytest.raises(InvalidOfferType) as exc:
        classify(offer)
    assert exc.value.message == "Invalid offer type"
    assert exc.value.status_code == 422


def test_target_count_is_variant_specific():
    hit = _offer("festival", festival="hitCounter", customer_limit=50, visit_count=None)
    visits = _offer("regular", regular="visitCount", customer_limit=None, visit_count=4)
    amount = _offer("festival", festival="amountBased", customer_limit=None, visit_count=None)
    spend = _offer("regular", regular="purchaseAmount", customer_limit=7, visit_count=2)

    assert target_count(hit) == 50
    assert target_count(visits) == 4
    assert target_count(amount) is None
    assert target_count(spend) is None
