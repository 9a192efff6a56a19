"""Unit tests for API key validation."""

import pytest

from table_ordering_service.auth.api_key_validator import APIKeyValidator, parse_api_keys


@pytest.mark.unit
class TestParseApiKeys:
    """Test suite for parse_api_keys."""

    def test_parses_pairs(self) -> None:
        assert parse_api_keys(" key-a:rest_1 , key-b:rest_2,") == {"key-a": "rest_1", "key-b": "rest_2"}

    def test_empty_value(self) -> None:
        assert parse_api_keys("") == {}

    @pytest.mark.parametrize("raw", ["key-without-restaurant", ":rest_1", "key-a:"])
    def test_malformed_entry(self, raw: str) -> None:
        with pytest.raises(ValueError, match="Invalid API key entry"):
            parse_api_keys(raw)


@pytest.mark.unit
class TestAPIKeyValidator:
    """Test suite for APIKeyValidator."""

    def test_requires_at_least_one_key(self) -> None:
        with pytest.raises(ValueError, match="At least one API key"):
            APIKeyValidator(api_keys={})

    def test_validate(self) -> None:
        validator = APIKeyValidator(api_keys={"key-a": "rest_1"})

        assert validator.validate("key-a") is True
        assert validator.validate("key-b") is False

    def test_restaurant_for(self) -> None:
        validator = APIKeyValidator(api_keys={"key-a": "rest_1", "key-b": "rest_2"})

        assert validator.restaurant_for("key-b") == "rest_2"
        assert validator.restaurant_for("unknown") is None
