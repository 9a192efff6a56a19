"""API key validation for restaurant staff endpoints.

Each API key belongs to exactly one restaurant. Resolving a key yields the
restaurant id every authenticated operation is scoped to.
"""


def parse_api_keys(raw: str) -> dict[str, str]:
    """Parse ``key:restaurant_id`` pairs separated by commas.

    Args:
        raw: Value of the RESTAURANT_API_KEYS setting

    Returns:
        dict: Mapping of API key to restaurant id

    Raises:
        ValueError: If a pair is malformed
    """
    keys: dict[str, str] = {}
    for pair in raw.split(","):
        pair = pair.strip()
        if not pair:
            continue
        api_key, sep, restaurant_id = pair.partition(":")
        if not sep or not api_key.strip() or not restaurant_id.strip():
            raise ValueError(f"Invalid API key entry: {pair!r}")
        keys[api_key.strip()] = restaurant_id.strip()
    return keys


class APIKeyValidator:
    """Resolves API keys to the restaurant they belong to."""

    def __init__(self, api_keys: dict[str, str]) -> None:
        """Initialize validator with the key to restaurant mapping.

        Args:
            api_keys: Mapping of API key to restaurant id

        Raises:
            ValueError: If no API keys are configured
        """
        if not api_keys:
            raise ValueError("At least one API key must be provided")

        self.api_keys = dict(api_keys)

    def validate(self, api_key: str) -> bool:
        return api_key in self.api_keys

    def restaurant_for(self, api_key: str) -> str | None:
        """Resolve an API key.

        Args:
            api_key: The API key to resolve

        Returns:
            Restaurant id, or None for an unknown key
        """
        return self.api_keys.get(api_key)
