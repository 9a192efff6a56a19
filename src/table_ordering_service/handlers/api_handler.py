"""FastAPI application for the table ordering API."""

import logging
from datetime import datetime
from decimal import Decimal

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from table_ordering_service.auth.api_dependencies import get_restaurant_id_from_header
from table_ordering_service.auth.api_key_validator import APIKeyValidator
from table_ordering_service.models.errors import InternalError, OrderingError
from table_ordering_service.models.kitchen_models import KitchenQueue
from table_ordering_service.models.menu_models import MenuItem, PublishStatus, Restaurant, Table
from table_ordering_service.models.order_models import (
    AddItemsResult,
    ItemStatusUpdate,
    OrderDetails,
    OrderLineRequest,
)
from table_ordering_service.models.report_models import RestaurantReport
from table_ordering_service.services.kitchen_service import KitchenService
from table_ordering_service.services.menu_service import MenuService
from table_ordering_service.services.order_service import OrderService
from table_ordering_service.services.report_service import ReportService

logger = logging.getLogger(__name__)


class HealthResponse(BaseModel):
    """Health check response model."""

    status: str


class PlaceOrderRequest(BaseModel):
    """Request body for placing an order from a table."""

    restaurant_id: str
    table_id: str
    items: list[OrderLineRequest] = Field(default_factory=list)
    customer_name: str | None = None
    customer_phone: str | None = None
    notes: str | None = None


class AddItemsRequest(BaseModel):
    items: list[OrderLineRequest] = Field(default_factory=list)


class ItemStatusRequest(BaseModel):
    status: str
    notes: str | None = None


class PublishRequest(BaseModel):
    is_published: bool = Field(..., strict=True)


class UpdateSettingsRequest(BaseModel):
    name: str
    currency: str | None = None


class CreateTableRequest(BaseModel):
    label: str


class CreateMenuItemRequest(BaseModel):
    name: str
    category: str
    price: Decimal
    description: str | None = None
    available: bool = True
    image_url: str | None = None


class UpdateMenuItemRequest(BaseModel):
    name: str | None = None
    category: str | None = None
    price: Decimal | None = None
    description: str | None = None
    available: bool | None = None
    image_url: str | None = None


class PublicMenuResponse(BaseModel):
    """Menu as shown to customers, grouped by category."""

    restaurant_id: str
    restaurant_name: str
    currency: str
    categories: dict[str, list[MenuItem]]


class PublicTable(BaseModel):
    id: str
    label: str


def create_app(
    order_service: OrderService,
    kitchen_service: KitchenService,
    report_service: ReportService,
    menu_service: MenuService,
    api_keys: dict[str, str],
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        order_service: Service for the order lifecycle
        kitchen_service: Service building the kitchen queue
        report_service: Service building business reports
        menu_service: Service for menu items and tables
        api_keys: Mapping of API key to restaurant id

    Returns:
        Configured FastAPI application
    """
    app = FastAPI(
        title="Table Ordering Service API",
        description="Table-side ordering, kitchen queue and restaurant reports",
        version="1.0.0",
    )

    # Store services in app state for access in route handlers
    app.state.order_service = order_service
    app.state.kitchen_service = kitchen_service
    app.state.report_service = report_service
    app.state.menu_service = menu_service
    app.state.api_key_validator = APIKeyValidator(api_keys=api_keys)

    @app.exception_handler(OrderingError)
    async def handle_ordering_error(request: Request, exc: OrderingError) -> JSONResponse:
        if isinstance(exc, InternalError):
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
            return JSONResponse(status_code=500, content={"error": "Internal server error"})
        logger.info(f"{request.method} {request.url.path} rejected: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg', 'invalid value')}" if location else "Invalid request"
        return JSONResponse(status_code=400, content={"error": message})

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check() -> HealthResponse:
        """Health check endpoint.

        Returns:
            Health status indicating service is running
        """
        return HealthResponse(status="healthy")

    def authenticated_restaurant(x_api_key: str | None = Header(None)) -> str:
        """Dependency resolving the caller's restaurant id."""
        return get_restaurant_id_from_header(x_api_key=x_api_key, validator=app.state.api_key_validator)

    # Orders

    @app.post("/orders", response_model=OrderDetails, status_code=201, tags=["Orders"])
    async def place_order(body: PlaceOrderRequest) -> OrderDetails:
        details: OrderDetails = await app.state.order_service.place_order(
            restaurant_id=body.restaurant_id,
            table_id=body.table_id,
            lines=body.items,
            customer_name=body.customer_name,
            customer_phone=body.customer_phone,
            notes=body.notes,
        )
        return details

    @app.get("/orders", response_model=list[OrderDetails], tags=["Orders"])
    async def list_orders(
        table_id: str | None = Query(None, alias="tableId"),
        status: str | None = None,
        restaurant_id: str = Depends(authenticated_restaurant),
    ) -> list[OrderDetails]:
        orders: list[OrderDetails] = await app.state.order_service.list_orders(
            restaurant_id=restaurant_id, table_id=table_id, status=status
        )
        return orders

    @app.patch("/orders/items/{item_id}", response_model=ItemStatusUpdate, tags=["Orders"])
    async def update_item_status(
        item_id: str,
        body: ItemStatusRequest,
        order_id: str | None = Query(None, alias="orderId"),
        restaurant_id: str = Depends(authenticated_restaurant),
    ) -> ItemStatusUpdate:
        """Change an order item's status; the order status is re-derived.

        Passing ``orderId`` lets the item be read consistently right after it
        was written.
        """
        result: ItemStatusUpdate = await app.state.order_service.update_item_status(
            restaurant_id=restaurant_id,
            item_id=item_id,
            status=body.status,
            notes=body.notes,
            order_id=order_id,
        )
        return result

    @app.get("/orders/{order_id}", response_model=OrderDetails, tags=["Orders"])
    async def get_order(order_id: str) -> OrderDetails:
        details: OrderDetails = await app.state.order_service.get_order(order_id=order_id)
        return details

    @app.post("/orders/{order_id}/items", response_model=AddItemsResult, tags=["Orders"])
    async def add_items(order_id: str, body: AddItemsRequest) -> AddItemsResult:
        """Append a new batch of items; a delivered order is reopened."""
        result: AddItemsResult = await app.state.order_service.add_items(
            order_id=order_id, lines=body.items
        )
        return result

    @app.post("/orders/{order_id}/cancel", response_model=OrderDetails, tags=["Orders"])
    async def cancel_order(
        order_id: str,
        restaurant_id: str = Depends(authenticated_restaurant),
    ) -> OrderDetails:
        details: OrderDetails = await app.state.order_service.cancel_order(
            restaurant_id=restaurant_id, order_id=order_id
        )
        return details

    # Kitchen and reports

    @app.get("/kitchen/orders", response_model=KitchenQueue, tags=["Kitchen"])
    async def get_kitchen_queue(
        status: str | None = None,
        category: str | None = None,
        restaurant_id: str = Depends(authenticated_restaurant),
    ) -> KitchenQueue:
        queue: KitchenQueue = await app.state.kitchen_service.get_kitchen_queue(
            restaurant_id=restaurant_id, status=status, category=category
        )
        return queue

    @app.get("/reports", response_model=RestaurantReport, tags=["Reports"])
    async def get_report(
        start_date: datetime | None = Query(None, alias="startDate"),
        end_date: datetime | None = Query(None, alias="endDate"),
        restaurant_id: str = Depends(authenticated_restaurant),
    ) -> RestaurantReport:
        report: RestaurantReport = await app.state.report_service.get_report(
            restaurant_id=restaurant_id, start_date=start_date, end_date=end_date
        )
        return report

    # Restaurant

    @app.get("/restaurant/publish", response_model=PublishStatus, tags=["Restaurant"])
    async def get_publish_status(restaurant_id: str = Depends(authenticated_restaurant)) -> PublishStatus:
        status: PublishStatus = await app.state.menu_service.get_publish_status(restaurant_id=restaurant_id)
        return status

    @app.put("/restaurant/publish", response_model=Restaurant, tags=["Restaurant"])
    async def set_published(
        body: PublishRequest,
        restaurant_id: str = Depends(authenticated_restaurant),
    ) -> Restaurant:
        """Publish or unpublish the menu; orders are only accepted while published."""
        restaurant: Restaurant = await app.state.menu_service.set_published(
            restaurant_id=restaurant_id, is_published=body.is_published
        )
        return restaurant

    @app.get("/restaurant/settings", response_model=Restaurant, tags=["Restaurant"])
    async def get_settings(restaurant_id: str = Depends(authenticated_restaurant)) -> Restaurant:
        restaurant: Restaurant = await app.state.menu_service.get_settings(restaurant_id=restaurant_id)
        return restaurant

    @app.put("/restaurant/settings", response_model=Restaurant, tags=["Restaurant"])
    async def update_settings(
        body: UpdateSettingsRequest,
        restaurant_id: str = Depends(authenticated_restaurant),
    ) -> Restaurant:
        restaurant: Restaurant = await app.state.menu_service.update_settings(
            restaurant_id=restaurant_id, name=body.name, currency=body.currency
        )
        return restaurant

    # Tables

    @app.post("/tables", response_model=Table, status_code=201, tags=["Tables"])
    async def create_table(
        body: CreateTableRequest,
        restaurant_id: str = Depends(authenticated_restaurant),
    ) -> Table:
        table: Table = await app.state.menu_service.create_table(
            restaurant_id=restaurant_id, label=body.label
        )
        return table

    @app.get("/tables", response_model=list[Table], tags=["Tables"])
    async def list_tables(restaurant_id: str = Depends(authenticated_restaurant)) -> list[Table]:
        tables: list[Table] = await app.state.menu_service.list_tables(restaurant_id=restaurant_id)
        return tables

    @app.get("/public/{restaurant_id}/tables", response_model=list[PublicTable], tags=["Public"])
    async def list_public_tables(restaurant_id: str) -> list[PublicTable]:
        tables = await app.state.menu_service.list_active_tables(restaurant_id=restaurant_id)
        return [PublicTable(id=t.id, label=t.label) for t in tables]

    # Menu

    @app.post("/menu", response_model=MenuItem, status_code=201, tags=["Menu"])
    async def create_menu_item(
        body: CreateMenuItemRequest,
        restaurant_id: str = Depends(authenticated_restaurant),
    ) -> MenuItem:
        menu_item: MenuItem = await app.state.menu_service.create_menu_item(
            restaurant_id=restaurant_id, **body.model_dump()
        )
        return menu_item

    @app.get("/menu", response_model=list[MenuItem], tags=["Menu"])
    async def list_menu_items(restaurant_id: str = Depends(authenticated_restaurant)) -> list[MenuItem]:
        items: list[MenuItem] = await app.state.menu_service.list_menu_items(restaurant_id=restaurant_id)
        return items

    @app.patch("/menu/{menu_item_id}", response_model=MenuItem, tags=["Menu"])
    async def update_menu_item(
        menu_item_id: str,
        body: UpdateMenuItemRequest,
        restaurant_id: str = Depends(authenticated_restaurant),
    ) -> MenuItem:
        menu_item: MenuItem = await app.state.menu_service.update_menu_item(
            restaurant_id, menu_item_id, **body.model_dump(exclude_unset=True)
        )
        return menu_item

    @app.get("/public/{restaurant_id}/menu", response_model=PublicMenuResponse, tags=["Public"])
    async def get_public_menu(restaurant_id: str) -> PublicMenuResponse:
        restaurant, categories = await app.state.menu_service.get_public_menu(restaurant_id=restaurant_id)
        return PublicMenuResponse(
            restaurant_id=restaurant.id,
            restaurant_name=restaurant.name,
            currency=restaurant.currency,
            categories=categories,
        )

    return app
