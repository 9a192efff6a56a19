"""FastAPI dependencies for API authentication."""

from typing import Annotated

from fastapi import Header, HTTPException

from table_ordering_service.auth.api_key_validator import APIKeyValidator


def get_restaurant_id_from_header(
    x_api_key: Annotated[str | None, Header()] = None,
    validator: APIKeyValidator | None = None,
) -> str:
    """Resolve the X-API-Key header to the caller's restaurant id.

    Args:
        x_api_key: API key from X-API-Key header (injected by FastAPI)
        validator: APIKeyValidator holding the configured keys

    Returns:
        str: The authenticated restaurant id

    Raises:
        HTTPException: 401 if the API key is missing or unknown
    """
    if not x_api_key:
        raise HTTPException(status_code=401, detail="Missing API key")

    restaurant_id = validator.restaurant_for(x_api_key) if validator else None
    if restaurant_id is None:
        raise HTTPException(status_code=401, detail="Invalid API key")

    return restaurant_id
