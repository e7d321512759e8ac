from enum import Enum
from typing import Optional

from .errors import InvalidOfferType


class OfferKind(str, Enum):
    HIT_COUNTER = "hitCounter"
    AMOUNT_BASED = "amountBased"
    VISIT_COUNT = "visitCount"
    PURCHASE_AMOUNT = "purchaseAmount"

    @property
    def is_festival(self) -> bool:
        return self in (OfferKind.HIT_COUNTER, OfferKind.AMOUNT_BASED)


# (offer_type, sub_type) -> variante; cualquier otra combinación es inválida
_KINDS = {
    ("festival", "hitCounter"): OfferKind.HIT_COUNTER,
    ("festival", "amountBased"): OfferKind.AMOUNT_BASED,
    ("regular", "visitCount"): OfferKind.VISIT_COUNT,
    ("regular", "purchaseAmount"): OfferKind.PURCHASE_AMOUNT,
}


def classify(offer) -> OfferKind:
    """
    Devuelve la variante de la oferta. Una oferta festival con sub-tipo regular
    (o al revés) no es una de las cuatro formas legales.
    """
    if offer.offer_type == "festival":
        if offer.regular_sub_type:
            raise InvalidOfferType()
        sub = offer.festival_sub_type
    elif offer.offer_type == "regular":
        if offer.festival_sub_type:
            raise InvalidOfferType()
        sub = offer.regular_sub_type
    else:
        raise InvalidOfferType()

    kind = _KINDS.get((offer.offer_type, sub))
    if kind is None:
        raise InvalidOfferType()
    return kind


def target_count(offer) -> Optional[int]:
    kind = classify(offer)
    if kind is OfferKind.HIT_COUNTER:
        return offer.customer_limit
    if kind is OfferKind.VISIT_COUNT:
        return offer.visit_count
    return None


def sub_type_fields(kind: OfferKind) -> dict:
    if kind.is_festival:
        return {"offer_type": "festival", "festival_sub_type": kind.value}
    return {"offer_type": "regular", "regular_sub_type": kind.value}
