# storefront/models.py
from pydantic import BaseModel, Field
from typing import Any, List, Optional

class ItemFailure(BaseModel):
    kind: str            # "product" or "category"
    op: str              # "insert", "update", "delete", "upsert"
    ref: Optional[Any] = None
    reason: str

class SaveAllResult(BaseModel):
    created: List[int] = Field(default_factory=list)
    updated: List[int] = Field(default_factory=list)
    deleted: List[int] = Field(default_factory=list)
    categories: List[str] = Field(default_factory=list)
    failed: List[ItemFailure] = Field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

class CheckoutLine(BaseModel):
    productId: int
    name: str
    quantity: int
    unitPrice: float
    lineTotal: float

class CheckoutIntent(BaseModel):
    total: float
    whatsapp_url: str
    message: str
    items: List[CheckoutLine] = Field(default_factory=list)
