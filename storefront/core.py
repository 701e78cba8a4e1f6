# storefront/core.py
from pydantic import BaseModel, ConfigDict, Field, AliasChoices
from pydantic import ValidationError as PydanticValidationError
from typing import Optional, Dict, Any, List, Union

from .errors import ValidationError

# Request schemas use the same camelCase keys the storefront client sends.

class ProductIn(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    name: str
    shortDesc: Optional[str] = Field(
        None, validation_alias=AliasChoices("shortDesc", "shortDescription", "shortdesc")
    )
    price: float
    category: Optional[str] = None
    categoryId: Optional[int] = None
    discount: int = 0
    stock: int = 0
    images: List[str] = Field(default_factory=list)

class CatalogProductIn(ProductIn):
    # ids from the admin panel may be server ids or client-side timestamps
    id: Optional[Union[int, str]] = None

class CategoryIn(BaseModel):
    name: str
    label: str

class CartItem(BaseModel):
    productId: int = Field(validation_alias=AliasChoices("productId", "id"))
    quantity: int = 1

class CustomerData(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None

class PurchaseRequest(BaseModel):
    cart: Optional[List[CartItem]] = None
    customerData: Optional[CustomerData] = None

class SaveAllRequest(BaseModel):
    # Items are validated one by one by the reconciler, so a bad record
    # does not reject the whole batch. An absent product list is an error;
    # only an explicit [] empties the catalog.
    products: List[Any]
    categories: List[Any] = Field(default_factory=list)

# ---------------------------
# Helpers
# ---------------------------
def _make_product_dict(p: ProductIn) -> Dict[str, Any]:
    name = (p.name or "").strip()
    if not name:
        raise ValidationError("name is required")
    if p.price <= 0:
        raise ValidationError("price must be > 0")
    if p.stock < 0:
        raise ValidationError("stock must be >= 0")
    if not 0 <= p.discount <= 100:
        raise ValidationError("discount must be between 0 and 100")
    return {
        "name": name,
        "shortDesc": p.shortDesc,
        "price": round(float(p.price), 2),
        "category": p.category,
        "categoryId": p.categoryId,
        "discount": p.discount,
        "stock": p.stock,
        "images": [str(url) for url in p.images],
    }

def _make_category_fields(name: Optional[str], label: Optional[str]) -> Dict[str, str]:
    name = (name or "").strip().lower()
    label = (label or "").strip()
    if not name or not label:
        raise ValidationError("category name and label are required")
    return {"name": name, "label": label}

def parse_catalog_product(raw: Dict[str, Any]) -> CatalogProductIn:
    """Validate one loose record from a saveAll batch."""
    try:
        return CatalogProductIn.model_validate(raw)
    except PydanticValidationError as e:
        raise ValidationError(
            "invalid product",
            detail=[f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}" for err in e.errors()],
        )

def coerce_id(value: Any) -> Optional[int]:
    """Server ids are integers; anything else (timestamps as text, uuids) is unknown."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    try:
        return int(str(value).strip())
    except ValueError:
        return None
