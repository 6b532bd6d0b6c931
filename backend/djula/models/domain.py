# /djula/models/domain.py

import logging
from datetime import datetime
from enum import Enum
from typing import Optional, List, Dict, Any, Literal
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel

# This file defines the records exchanged with the seller back-office
# (catalog, orders, payments, support, customers). The back-office speaks
# camelCase JSON, so every record accepts both camelCase and snake_case keys.

logger = logging.getLogger(__name__)


class CommerceRecord(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> Optional["CommerceRecord"]:
        """
        Builds a record from a raw back-office dictionary. Malformed records are
        logged and skipped instead of failing the whole response.
        """
        try:
            if "_id" in data and "id" not in data:
                data = {**data, "id": str(data["_id"])}
            return cls.model_validate(data)
        except ValueError as e:
            logger.error(f"Could not parse {cls.__name__} with ID {data.get('id') or data.get('_id')}: {e}")
            return None


class Product(CommerceRecord):
    id: str
    name: str
    description: str = ""
    price: float = 0.0
    currency: str = "FCFA"
    category: Optional[str] = None
    images: List[str] = []
    image_url: Optional[str] = None
    stock: int = 0
    seller_id: Optional[str] = None

    @property
    def primary_image(self) -> Optional[str]:
        return self.image_url or (self.images[0] if self.images else None)

    @property
    def in_stock(self) -> bool:
        return self.stock > 0


class OrderStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    PROCESSING = "PROCESSING"
    SHIPPED = "SHIPPED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"
    RETURNED = "RETURNED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class OrderItem(CommerceRecord):
    product_id: str
    quantity: int = 1
    price: float = 0.0
    name: Optional[str] = None


class ShippingAddress(CommerceRecord):
    street: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None
    phone: Optional[str] = None


class Order(CommerceRecord):
    id: str
    customer_id: Optional[str] = None
    seller_id: Optional[str] = None
    items: List[OrderItem] = []
    status: OrderStatus = OrderStatus.PENDING
    total_amount: float = 0.0
    shipping_fee: float = 0.0
    currency: str = "FCFA"
    shipping_address: Optional[ShippingAddress] = None
    payment_method: Optional[str] = None
    payment_status: PaymentStatus = PaymentStatus.PENDING
    tracking_number: Optional[str] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PaymentMethodType(str, Enum):
    MOBILE_MONEY = "mobile_money"
    DIGITAL_WALLET = "digital_wallet"
    CARD = "card"
    CASH_ON_DELIVERY = "cash_on_delivery"
    USSD = "ussd"
    QR_CODE = "qr_code"
    BANK_TRANSFER = "bank_transfer"


class PaymentMethod(CommerceRecord):
    id: str
    type: str
    name: str
    provider: Optional[str] = None
    merchant_number: Optional[str] = None
    is_active: bool = True


class PaymentTransaction(CommerceRecord):
    id: Optional[str] = None
    order_id: str
    method_id: Optional[str] = None
    method_type: Optional[str] = None
    method_name: Optional[str] = None
    amount: float
    currency: str = "FCFA"
    reference: str
    payment_link: Optional[str] = None
    merchant_number: Optional[str] = None
    status: PaymentStatus = PaymentStatus.PENDING


class TicketPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"


class SupportTicket(CommerceRecord):
    id: str
    customer_id: Optional[str] = None
    issue: str
    status: str = "OPEN"
    priority: TicketPriority = TicketPriority.MEDIUM
    created_at: datetime = Field(default_factory=datetime.utcnow)


class PriceRange(CommerceRecord):
    min: float = 0.0
    max: float = 0.0


class CustomerPreferences(CommerceRecord):
    preferred_language: Literal["fr", "en"] = "fr"
    preferred_categories: List[str] = []
    preferred_payment_methods: List[str] = []
    price_range: Optional[PriceRange] = None
