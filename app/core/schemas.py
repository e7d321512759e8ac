from datetime import datetime
from decimal import Decimal
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, Field, field_validator, model_validator

Rank = Literal["first", "second", "third"]


class Envelope(BaseModel):
    success: bool
    message: Optional[str] = None
    data: Optional[Any] = None
    # status HTTP sugerido para el router; no viaja en el JSON
    status_code: int = Field(default=200, exclude=True)

    @classmethod
    def ok(cls, data: Any = None, message: Optional[str] = None) -> "Envelope":
        return cls(success=True, message=message, data=data)

    @classmethod
    def fail(cls, message: str, status_code: int = 400) -> "Envelope":
        return cls(success=False, message=message, status_code=status_code)


# ---------- elegibilidad ----------
class EligibleInvoice(BaseModel):
    invoice_id: int
    invoice_no: Optional[str] = None
    customer_id: Optional[int] = None
    customer_name: Optional[str] = None
    customer_phone: Optional[str] = None
    total_payable: Decimal
    created_at: datetime


class EligibleCustomer(BaseModel):
    customer_id: Optional[int] = None
    identifier: str
    display_name: Optional[str] = None
    phone: Optional[str] = None
    metric: Decimal  # visitas (visitCount) o monto acumulado (purchaseAmount)


class EligibilityResult(BaseModel):
    kind: str
    count: int
    invoices: List[EligibleInvoice] = Field(default_factory=list)
    customers: List[EligibleCustomer] = Field(default_factory=list)


# ---------- ganadores ----------
class Prize(BaseModel):
    rank: Rank
    prize_name: str
    image_url: str


class Winner(BaseModel):
    rank: Rank
    invoice_id: int
    customer_name: str
    mobile_number: str
    announced_at: Optional[datetime] = None


# ---------- progreso POS ----------
class CustomerPreview(BaseModel):
    name: str
    phone: str


class OfferProgress(BaseModel):
    id: int
    offer_type: str
    festival_sub_type: Optional[str] = None
    regular_sub_type: Optional[str] = None
    festival_name: Optional[str] = None
    product_id: Optional[int] = None
    product_name: str
    product_volume: str
    start_date: datetime
    end_date: datetime
    status: str

    current_count: int
    target_count: Optional[int] = None
    eligible_customers: List[CustomerPreview] = Field(default_factory=list)

    customer_limit: Optional[int] = None
    minimum_amount: Optional[Decimal] = None
    visit_count: Optional[int] = None
    target_amount: Optional[Decimal] = None
    prize_name: Optional[str] = None
    prizes: List[Prize] = Field(default_factory=list)

    days_remaining: int
    hours_remaining: int
    minutes_remaining: int


# ---------- detección en caja ----------
class CheckItem(BaseModel):
    variant_id: int
    quantity: Decimal = Decimal("1")
    price: Decimal = Decimal("0")


class CheckInvoiceIn(BaseModel):
    customer_id: int
    items: List[CheckItem]
    total_amount: Decimal
    invoice_date: Optional[datetime] = None


class OfferQualification(BaseModel):
    offer_id: int
    offer_name: str
    offer_type: str
    festival_sub_type: Optional[str] = None
    regular_sub_type: Optional[str] = None
    qualified: bool
    prize_name: Optional[str] = None
    position: Optional[int] = None
    progress_to_qualify: Optional[str] = None


# ---------- alta / edición de ofertas ----------
class _OfferBase(BaseModel):
    product_id: int
    start_date: datetime
    end_date: datetime

    @model_validator(mode="after")
    def _window(self):
        if self.start_date >= self.end_date:
            raise ValueError("start_date must be before end_date")
        return self


class HitCounterOfferIn(_OfferBase):
    kind: Literal["hitCounter"]
    festival_name: str
    customer_limit: int = Field(gt=0)
    prizes: List[Prize]

    @field_validator("prizes")
    @classmethod
    def _three_ranks(cls, v: List[Prize]) -> List[Prize]:
        if sorted(p.rank for p in v) != ["first", "second", "third"]:
            raise ValueError("prizes must have exactly one first, second and third entry")
        return v


class AmountOfferIn(_OfferBase):
    kind: Literal["amountBased"]
    festival_name: str
    minimum_amount: Decimal = Field(gt=0)
    prize_name: str
    prize_image_url: str


class VisitCountOfferIn(_OfferBase):
    kind: Literal["visitCount"]
    visit_count: int = Field(gt=0)
    prize_name: str
    prize_image_url: str


class PurchaseAmountOfferIn(_OfferBase):
    kind: Literal["purchaseAmount"]
    target_amount: Decimal = Field(gt=0)
    prize_name: str
    prize_image_url: str


OfferIn = Union[HitCounterOfferIn, AmountOfferIn, VisitCountOfferIn, PurchaseAmountOfferIn]


class OfferUpdate(BaseModel):
    product_id: Optional[int] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    status: Optional[Literal["active", "inactive", "completed"]] = None
    festival_name: Optional[str] = None
    customer_limit: Optional[int] = Field(default=None, gt=0)
    minimum_amount: Optional[Decimal] = Field(default=None, gt=0)
    visit_count: Optional[int] = Field(default=None, gt=0)
    target_amount: Optional[Decimal] = Field(default=None, gt=0)
    prize_name: Optional[str] = None
    prize_image_url: Optional[str] = None


class OfferOut(BaseModel):
    id: int
    product_id: int
    offer_type: str
    status: str
    start_date: datetime
    end_date: datetime
    festival_sub_type: Optional[str] = None
    festival_name: Optional[str] = None
    customer_limit: Optional[int] = None
    minimum_amount: Optional[Decimal] = None
    regular_sub_type: Optional[str] = None
    visit_count: Optional[int] = None
    target_amount: Optional[Decimal] = None
    prize_name: Optional[str] = None
    prize_image_url: Optional[str] = None
    prizes: List[Prize] = Field(default_factory=list)
    winners: List[Winner] = Field(default_factory=list)
    eligible_invoices: List[int] = Field(default_factory=list)
    eligible_customers: List[EligibleCustomer] = Field(default_factory=list)
    eligible_computed_at: Optional[datetime] = None
