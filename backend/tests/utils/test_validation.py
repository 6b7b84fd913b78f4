"""Tests for identifier and name shape checks."""

import uuid

import pytest

from app.utils.validation import is_valid_uuid, validate_cluster_name


class TestIsValidUuid:
    """Tests for is_valid_uuid."""

    def test_accepts_uuid4(self) -> None:
        assert is_valid_uuid(str(uuid.uuid4())) is True

    def test_case_insensitive(self) -> None:
        assert is_valid_uuid("3F2504E0-4F89-41D3-9A0C-0305E82C3301") is True

    @pytest.mark.parametrize(
        "value",
        [
            "",
            "not-a-uuid",
            "3f2504e04f8941d39a0c0305e82c3301",
            "3f2504e0-4f89-41d3-9a0c-0305e82c330",
            "3f2504e0-4f89-41d3-9a0c-0305e82c3301\n",
            " 3f2504e0-4f89-41d3-9a0c-0305e82c3301",
            "g f2504e0-4f89-41d3-9a0c-0305e82c3301",
            None,
            42,
        ],
    )
    def test_rejects_malformed(self, value) -> None:
        assert is_valid_uuid(value) is False


class TestValidateClusterName:
    """Tests for validate_cluster_name."""

    def test_accepts_text(self) -> None:
        assert validate_cluster_name("Pricing Plans") is True

    @pytest.mark.parametrize("value", ["", "   ", "\t\n", None, 12])
    def test_rejects_blank_or_non_string(self, value) -> None:
        assert validate_cluster_name(value) is False
