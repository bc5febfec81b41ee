"""
Payment metadata schemas.

The client attaches metadata to every Pi payment describing what is being
bought. Two shapes are accepted and told apart by their fields:

- cart orders carry `items`
- single-product orders carry `productId`

Metadata is validated when the payment is approved and again when the order
is created from it.
"""

import uuid
from decimal import Decimal
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Discriminator, Field, Tag, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from omnigo.errors import BusinessRuleError


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class DiscountSelection(_CamelModel):
    """Discount chosen at checkout."""
    
    id: Optional[uuid.UUID] = None
    code: str
    amount: Optional[Decimal] = None


class CartItem(_CamelModel):
    """
    One cart line.
    `options` maps option title -> chosen choice name (or list of names).
    """
    
    id: uuid.UUID
    quantity: int = Field(gt=0)
    price: Decimal
    options: Dict[str, Union[str, List[str]]] = Field(default_factory=dict)
    image_url: Optional[str] = None
    special_instructions: Optional[str] = None
    
    def selected_choices(self) -> Dict[str, List[str]]:
        """Normalize options so every title maps to a list of choice names."""
        return {
            title: choice if isinstance(choice, list) else [choice]
            for title, choice in self.options.items()
        }


class _OrderMetadataBase(_CamelModel):
    store_id: uuid.UUID
    delivery_address: str = ""
    customer_notes: str = ""
    customer_name: Optional[str] = None
    delivery_fee: Decimal = Decimal("0")
    discount: Optional[DiscountSelection] = None


class CartOrderMetadata(_OrderMetadataBase):
    kind: Literal["cart"] = "cart"
    items: List[CartItem] = Field(min_length=1)


class SingleProductMetadata(_OrderMetadataBase):
    kind: Literal["product"] = "product"
    product_id: uuid.UUID
    product_name: Optional[str] = None


def _metadata_kind(value: Any) -> Optional[str]:
    if isinstance(value, dict):
        if "kind" in value:
            return value["kind"]
        if "items" in value:
            return "cart"
        if "productId" in value or "product_id" in value:
            return "product"
        return None
    return getattr(value, "kind", None)


PaymentMetadata = Annotated[
    Union[
        Annotated[CartOrderMetadata, Tag("cart")],
        Annotated[SingleProductMetadata, Tag("product")],
    ],
    Discriminator(_metadata_kind),
]

_metadata_adapter: TypeAdapter = TypeAdapter(PaymentMetadata)


def parse_payment_metadata(raw: Any) -> Union[CartOrderMetadata, SingleProductMetadata]:
    """
    Validate raw metadata into a tagged variant.
    
    Raises BusinessRuleError for unknown shapes or invalid fields.
    """
    if not raw:
        raise BusinessRuleError("Payment metadata is missing.")
    try:
        return _metadata_adapter.validate_python(raw)
    except ValidationError as e:
        raise BusinessRuleError(f"Invalid payment metadata: {e.errors()[0]['msg']}") from e


def dump_payment_metadata(metadata: Union[CartOrderMetadata, SingleProductMetadata]) -> Dict[str, Any]:
    """Serialize validated metadata for JSON storage (camelCase, tagged)."""
    return metadata.model_dump(mode="json", by_alias=True)
