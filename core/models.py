from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

# Partner roles (a partner may hold several)
SUPPLIER = "supplier"
CUSTOMER = "customer"
SERVICE_PROVIDER = "service_provider"
SELLER = "seller"
PARTNER_ROLES = (SUPPLIER, CUSTOMER, SERVICE_PROVIDER, SELLER)

# Batch lifecycle
RAW = "raw"
PROCESSING = "processing"
FINISHED = "finished"
SOLD = "sold"
EXTRUDING = "extruding"
EXTRUDED = "extruded"
BATCH_STATUSES = (RAW, PROCESSING, FINISHED, SOLD, EXTRUDING, EXTRUDED)
SALEABLE_STATUSES = (FINISHED, EXTRUDED)

# Transaction log types
TX_PURCHASE = "purchase"
TX_PRODUCTION = "production"
TX_SALE = "sale"
TX_EXTRUDING = "extruding"
TX_EXTRUDED = "extruded"
TX_LOSS = "loss"
TX_GAIN = "gain"
TRANSACTION_TYPES = (TX_PURCHASE, TX_PRODUCTION, TX_SALE, TX_EXTRUDING, TX_EXTRUDED, TX_LOSS, TX_GAIN)

# Financial ledger
PAYABLE = "payable"
RECEIVABLE = "receivable"
PENDING = "pending"
PAID = "paid"
OP_PURCHASE = "Purchase of raw material"
OP_FREIGHT = "Freight"
OP_SALE = "Sale of material"
OP_COMMISSION = "Seller commission"

# Orders
ORDER_PENDING = "pending"
ORDER_CONFIRMED = "confirmed"
ORDER_DELIVERED = "delivered"
ORDER_CANCELLED = "cancelled"
ORDER_STATUSES = (ORDER_PENDING, ORDER_CONFIRMED, ORDER_DELIVERED, ORDER_CANCELLED)


@dataclass
class Partner:
    id: str
    code: str
    name: str
    roles: set[str] = field(default_factory=set)
    document: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    address: Optional[str] = None
    contact_person: Optional[str] = None

    def has_role(self, role: str) -> bool:
        return role in self.roles


@dataclass
class Material:
    id: str
    code: str
    name: str
    ncm: Optional[str] = None  # tax classification


@dataclass
class ShippingInfo:
    freight_cost: float = 0.0
    is_fob: bool = False
    carrier_id: Optional[str] = None
    vehicle_plate: Optional[str] = None
    notes: Optional[str] = None

    @property
    def charges_freight(self) -> bool:
        return not self.is_fob and float(self.freight_cost) > 0


@dataclass
class Batch:
    """
    One tracked quantity of a single material.

    `id` is stable for the whole life of the batch. `code` is the display key
    and follows the current material classification:
      {partner_code}/{sequence:03d}/{material_code}{split_path}
    """

    id: str
    partner_id: str
    partner_code: str
    sequence: int
    material_code: str
    weight_kg: float
    status: str
    created_at: str
    updated_at: str
    purchase_price_per_kg: Optional[float] = None
    sale_price_per_kg: Optional[float] = None
    service_provider_id: Optional[str] = None
    customer_id: Optional[str] = None
    shipping: Optional[ShippingInfo] = None
    parent_id: Optional[str] = None
    split_path: str = ""

    @property
    def code(self) -> str:
        return f"{self.partner_code}/{int(self.sequence):03d}/{self.material_code}{self.split_path}"


@dataclass(frozen=True)
class Transaction:
    id: str
    batch_id: str
    type: str
    weight: float
    date: str
    description: str
    original_weight: Optional[float] = None


@dataclass
class FinancialEntry:
    id: str
    type: str  # payable / receivable
    operation_type: str
    partner_id: str
    amount: float
    date: str
    due_date: str
    description: str
    status: str = PENDING
    batch_id: Optional[str] = None
    order_number: Optional[str] = None
    payment_date: Optional[str] = None


@dataclass
class OrderItem:
    id: str
    description: str
    quantity: float
    unit_price: float
    total: float
    delivered_quantity: float = 0.0

    @property
    def is_fully_delivered(self) -> bool:
        return float(self.delivered_quantity) >= float(self.quantity)


@dataclass
class Order:
    id: str
    order_number: str
    date: str
    customer_id: str
    items: list[OrderItem] = field(default_factory=list)
    total_amount: float = 0.0
    status: str = ORDER_PENDING
    seller_id: Optional[str] = None
    commission_amount: float = 0.0
    is_fob: bool = False
    notes: Optional[str] = None

    def find_item(self, item_id: str) -> Optional[OrderItem]:
        return next((i for i in self.items if i.id == item_id), None)
