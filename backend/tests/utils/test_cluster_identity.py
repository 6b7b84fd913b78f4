"""Tests for content-derived suggestion identifiers."""

from app.utils.cluster_identity import generate_cluster_id, string_hash


class TestStringHash:
    """Tests for the 32-bit polynomial hash."""

    def test_empty_string(self) -> None:
        assert string_hash("") == 0

    def test_short_strings(self) -> None:
        assert string_hash("a") == 97
        assert string_hash("ab") == 97 * 31 + 98
        assert string_hash("hello") == 99162322

    def test_wraps_to_signed_32_bits(self) -> None:
        assert string_hash("Hello World") == -862545276

    def test_uses_utf16_code_units(self) -> None:
        # U+1F600 is the surrogate pair D83D DE00
        assert string_hash("\U0001F600") == 0xD83D * 31 + 0xDE00

    def test_long_input_stays_in_range(self) -> None:
        value = string_hash("x" * 10_000)

        assert -(2**31) <= value < 2**31


class TestGenerateClusterId:
    """Tests for generate_cluster_id."""

    def test_format(self) -> None:
        cluster_id = generate_cluster_id("Pricing", ["b", "a"])

        assert cluster_id.startswith("cluster-")
        assert cluster_id[len("cluster-"):].isdigit()

    def test_member_order_does_not_matter(self) -> None:
        ids = ["3f1c", "0a9b", "77de"]

        assert generate_cluster_id("Pricing", ids) == generate_cluster_id(
            "Pricing", list(reversed(ids))
        )

    def test_matches_hash_of_name_and_sorted_ids(self) -> None:
        expected = abs(string_hash("Pricing:a,b,c"))

        assert generate_cluster_id("Pricing", ["c", "a", "b"]) == f"cluster-{expected}"

    def test_name_is_not_trimmed(self) -> None:
        assert generate_cluster_id("Pricing ", ["a"]) != generate_cluster_id("Pricing", ["a"])

    def test_different_members_give_different_ids(self) -> None:
        assert generate_cluster_id("Pricing", ["a", "b"]) != generate_cluster_id(
            "Pricing", ["a", "c"]
        )
