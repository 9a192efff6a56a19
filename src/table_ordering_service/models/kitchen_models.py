"""Kitchen queue view models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field

from table_ordering_service.models.order_models import OrderItemStatus, OrderStatus


class KitchenPriority(str, Enum):
    """Display priority of an order in the kitchen queue."""

    HIGH = "HIGH"
    URGENT = "URGENT"
    NORMAL = "NORMAL"


class BatchKind(str, Enum):
    ORIGINAL = "original"
    NEW_ADDITION = "new addition"


class KitchenItem(BaseModel):
    id: str
    menu_item_id: str
    name: str
    category: str
    quantity: int
    status: OrderItemStatus
    notes: str | None = None


class KitchenBatch(BaseModel):
    """Active items of one wave, in the order they were added."""

    batch_number: int
    kind: BatchKind
    items: list[KitchenItem]


class KitchenOrder(BaseModel):
    """One actionable order with its completion counters."""

    order_id: str
    order_number: str
    table_id: str
    table_label: str | None = None
    status: OrderStatus
    priority: KitchenPriority
    customer_name: str | None = None
    notes: str | None = None
    created_at: datetime
    age_minutes: int = Field(..., ge=0)
    total_items: int
    pending_items: int
    confirmed_items: int
    preparing_items: int
    ready_items: int
    completion_percentage: float
    is_order_complete: bool
    batches: list[KitchenBatch]


class KitchenSummary(BaseModel):
    active_orders: int = 0
    active_items: int = 0
    pending_items: int = 0
    preparing_items: int = 0
    ready_items: int = 0
    urgent_orders: int = 0
    reopened_orders: int = 0


class KitchenQueue(BaseModel):
    """Prioritised kitchen view plus summary counts."""

    orders: list[KitchenOrder]
    summary: KitchenSummary
    generated_at: datetime
