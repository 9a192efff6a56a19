"""Shared dependency factory for the Lambda handler.

This module provides cached dependency initialization to optimize Lambda cold starts.
Dependencies are created once and reused across invocations within the same Lambda container.
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

# Module-level caches for Lambda container reuse
_dynamodb_resource: Any | None = None
_repositories: dict[str, Any] | None = None
_fastapi_app: FastAPI | None = None


def get_dynamodb_resource() -> Any:
    """Create or retrieve cached DynamoDB resource.

    Returns:
        Boto3 DynamoDB resource configured for environment
    """
    global _dynamodb_resource

    if _dynamodb_resource is not None:
        return _dynamodb_resource

    endpoint_url = os.getenv("DYNAMODB_ENDPOINT")
    region = os.getenv("AWS_REGION", "us-east-1")

    if endpoint_url:
        access_key = os.getenv("AWS_ACCESS_KEY_ID")
        secret_key = os.getenv("AWS_SECRET_ACCESS_KEY")
        logger.info(f"Using local DynamoDB at {endpoint_url}")
        _dynamodb_resource = boto3.resource(
            "dynamodb",
            endpoint_url=endpoint_url,
            region_name=region,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
        )
    else:
        logger.info(f"Using AWS DynamoDB in region {region}")
        _dynamodb_resource = boto3.resource("dynamodb", region_name=region)

    return _dynamodb_resource


def get_repositories() -> dict[str, Any]:
    """Create or retrieve the cached repositories, keyed by role.

    Returns:
        Dictionary with ``orders``, ``menu_items``, ``tables`` and ``restaurants``
    """
    global _repositories

    if _repositories is not None:
        return _repositories

    dynamodb_resource = get_dynamodb_resource()
    _repositories = {
        "orders": OrderRepository(
            dynamodb_resource=dynamodb_resource,
            orders_table_name=os.getenv("DYNAMODB_ORDERS_TABLE", "restaurant-orders"),
            items_table_name=os.getenv("DYNAMODB_ORDER_ITEMS_TABLE", "restaurant-order-items"),
        ),
        "menu_items": MenuItemRepository(
            dynamodb_resource, os.getenv("DYNAMODB_MENU_ITEMS_TABLE", "restaurant-menu-items")
        ),
        "tables": TableRepository(
            dynamodb_resource, os.getenv("DYNAMODB_TABLES_TABLE", "restaurant-tables")
        ),
        "restaurants": RestaurantRepository(
            dynamodb_resource, os.getenv("DYNAMODB_RESTAURANTS_TABLE", "restaurants")
        ),
    }

    logger.info("Repositories initialized")
    return _repositories


def get_fastapi_app() -> FastAPI:
    """Create or retrieve cached FastAPI application.

    Returns:
        Configured FastAPI application instance

    Raises:
        ValueError: If RESTAURANT_API_KEYS is missing or malformed
    """
    global _fastapi_app

    if _fastapi_app is not None:
        return _fastapi_app

    repos = get_repositories()
    api_keys = parse_api_keys(os.getenv("RESTAURANT_API_KEYS", ""))
    if not api_keys:
        raise ValueError("RESTAURANT_API_KEYS must be set in environment")

    write_guard = OptimisticOrderWriteGuard(
        repos["orders"], max_attempts=int(os.getenv("ORDER_WRITE_MAX_ATTEMPTS", "3"))
    )

    _fastapi_app = create_app(
        order_service=OrderService(
            order_repository=repos["orders"],
            menu_item_repository=repos["menu_items"],
            table_repository=repos["tables"],
            restaurant_repository=repos["restaurants"],
            write_guard=write_guard,
        ),
        kitchen_service=KitchenService(
            order_repository=repos["orders"],
            table_repository=repos["tables"],
            urgent_after_minutes=int(os.getenv("URGENT_ORDER_MINUTES", "30")),
        ),
        report_service=ReportService(
            order_repository=repos["orders"],
            restaurant_repository=repos["restaurants"],
            table_repository=repos["tables"],
            menu_item_repository=repos["menu_items"],
            default_days=int(os.getenv("REPORT_DEFAULT_DAYS", "30")),
        ),
        menu_service=MenuService(
            restaurant_repository=repos["restaurants"],
            menu_item_repository=repos["menu_items"],
            table_repository=repos["tables"],
        ),
        api_keys=api_keys,
    )
    setup_observability(_fastapi_app)

    logger.info("FastAPI application initialized")
    return _fastapi_app


def initialize_lambda_environment() -> None:
    """Initialize Lambda environment with logging.

    Should be called once during Lambda cold start.
    """
    log_level = os.getenv("LOG_LEVEL", "INFO")
    configure_logging(log_level)

    logger.info("Lambda environment initialized")
