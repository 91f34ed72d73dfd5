from typing import List, Optional

from pydantic import BaseModel

from tourbook.core.errors import CapacityError, UnresolvableReference, ValidationError
from tourbook.schemas.catalog import AddOnService


class AddOnChoice(BaseModel):
    """An add-on as the caller selected it: catalog item plus how many."""

    catalog_item: AddOnService
    quantity: int = 1


class PricingError(BaseModel):
    code: str  # invalid_quantity | slot_exceeded | offering_unavailable | coupon_unresolvable
    message: str
    field: Optional[str] = None


class Quote(BaseModel):
    base_amount: int = 0
    add_ons_amount: int = 0
    complementary_amount: int = 0
    coupon_discount: int = 0
    final_amount: int = 0

    accepted_add_ons: List[AddOnChoice] = []
    dropped_add_on_ids: List[int] = []
    accepted_complementary_ids: List[int] = []
    rejected_complementary_ids: List[int] = []

    coupon_code: Optional[str] = None
    coupon_applied: bool = False
    coupon_message: str = ""

    error: Optional[PricingError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def raise_for_error(self) -> None:
        if self.error is None:
            return
        if self.error.code == "slot_exceeded":
            raise CapacityError(self.error.message, field=self.error.field)
        if self.error.code == "coupon_unresolvable":
            raise UnresolvableReference(self.error.message, field=self.error.field)
        raise ValidationError(self.error.message, field=self.error.field)
