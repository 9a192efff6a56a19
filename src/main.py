"""Main application entry point for the table ordering service.

This module provides the FastAPI application factory and configuration
for running the service locally or in production.
"""

import logging
import os
from typing import Any

import boto3
from fastapi import FastAPI

from table_ordering_service.auth.api_key_validator import parse_api_keys
from table_ordering_service.handlers.api_handler import create_app
from table_ordering_service.observability import configure_logging, setup_observability
from table_ordering_service.repositories.menu_repositories import (
    MenuItemRepository,
    RestaurantRepository,
    TableRepository,
)
from table_ordering_service.repositories.order_repositories import OrderRepository
from table_ordering_service.services.kitchen_service import KitchenService
from table_ordering_service.services.menu_service import MenuService
from table_ordering_service.services.order_guard import OptimisticOrderWriteGuard
from table_ordering_service.services.order_service import OrderService
from table_ordering_service.services.report_service import ReportService

logger = logging.getLogger(__name__)


def get_dynamodb_resource() -> Any:
    """Create DynamoDB resource with appropriate configuration.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        # Local DynamoDB needs explicit credentials
        access_key = os.getenv("AWS_ACCESS_KEY_ID")
        secret_key = os.getenv("AWS_SECRET_ACCESS_KEY")
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        return boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
        )
    else:
        logger.info(f"Using AWS DynamoDB in region {region}")
        return boto3.resource("dynamodb", region_name=region)


def get_api_keys() -> dict[str, str]:
    """Read the API key to restaurant mapping from RESTAURANT_API_KEYS.

    Returns:
        Mapping of API key to restaurant id

    Raises:
        ValueError: If no keys are configured or an entry is malformed
    """
    api_keys = parse_api_keys(os.getenv("RESTAURANT_API_KEYS", ""))
    if not api_keys:
        raise ValueError("RESTAURANT_API_KEYS must be set in environment")
    return api_keys


def create_application() -> FastAPI:
    """Create and configure the FastAPI application with all dependencies.

    This factory function:
    1. Configures logging
    2. Creates the DynamoDB resource and repositories
    3. Creates services
    4. Creates the FastAPI app
    5. Sets up observability

    Returns:
        Configured FastAPI application instance
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    configure_logging(log_level)

    logger.info("Initializing table ordering service...")

    dynamodb_resource = get_dynamodb_resource()

    orders_table = os.getenv("DYNAMODB_ORDERS_TABLE", "restaurant-orders")
    items_table = os.getenv("DYNAMODB_ORDER_ITEMS_TABLE", "restaurant-order-items")
    menu_items_table = os.getenv("DYNAMODB_MENU_ITEMS_TABLE", "restaurant-menu-items")
    tables_table = os.getenv("DYNAMODB_TABLES_TABLE", "restaurant-tables")
    restaurants_table = os.getenv("DYNAMODB_RESTAURANTS_TABLE", "restaurants")

    order_repository = OrderRepository(
        dynamodb_resource=dynamodb_resource,
        orders_table_name=orders_table,
        items_table_name=items_table,
    )
    menu_item_repository = MenuItemRepository(dynamodb_resource, menu_items_table)
    table_repository = TableRepository(dynamodb_resource, tables_table)
    restaurant_repository = RestaurantRepository(dynamodb_resource, restaurants_table)

    logger.info(f"Repositories configured - orders: {orders_table}, items: {items_table}")

    max_attempts = int(os.getenv("ORDER_WRITE_MAX_ATTEMPTS", "3"))
    order_service = OrderService(
        order_repository=order_repository,
        menu_item_repository=menu_item_repository,
        table_repository=table_repository,
        restaurant_repository=restaurant_repository,
        write_guard=OptimisticOrderWriteGuard(order_repository, max_attempts=max_attempts),
    )
    kitchen_service = KitchenService(
        order_repository=order_repository,
        table_repository=table_repository,
        urgent_after_minutes=int(os.getenv("URGENT_ORDER_MINUTES", "30")),
    )
    report_service = ReportService(
        order_repository=order_repository,
        restaurant_repository=restaurant_repository,
        table_repository=table_repository,
        menu_item_repository=menu_item_repository,
        default_days=int(os.getenv("REPORT_DEFAULT_DAYS", "30")),
    )
    menu_service = MenuService(
        restaurant_repository=restaurant_repository,
        menu_item_repository=menu_item_repository,
        table_repository=table_repository,
    )

    logger.info("Services initialized")

    app = create_app(
        order_service=order_service,
        kitchen_service=kitchen_service,
        report_service=report_service,
        menu_service=menu_service,
        api_keys=get_api_keys(),
    )

    setup_observability(app)

    logger.info("Table ordering service initialized successfully")

    return app


# Create the FastAPI application instance (only when not in test mode)
# This prevents the app from being created during test collection
if os.getenv("ENVIRONMENT") != "test":  # noqa: SIM108
    app = create_application()
else:
    # Create a placeholder app for test imports
    app = FastAPI()


if __name__ == "__main__":
    """Run the application with uvicorn when executed directly."""
    import uvicorn

    port = int(os.getenv("PORT", "8001"))
    host = os.getenv("HOST", "0.0.0.0")

    logger.info(f"Starting development server on {host}:{port}")
    logger.info(f"API documentation available at http://{host}:{port}/docs")

    uvicorn.run(
        "main:app",
        host=host,
        port=port,
        reload=True,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )
