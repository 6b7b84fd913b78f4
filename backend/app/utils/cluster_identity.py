"""Content-derived identifiers for cluster suggestions.

Suggestions are never persisted as-is, so they have no server-issued id.
The identifier here is a 32-bit polynomial hash of the suggestion's name and
sorted member ids. Collisions are possible and only affect client-side list
keys; acceptance always creates a fresh group id.
"""

from collections.abc import Iterable

CLUSTER_ID_PREFIX = "cluster-"

_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def _to_int32(value: int) -> int:
    value &= _INT32_MASK
    return value - (1 << 32) if value & _INT32_SIGN else value


def _utf16_code_units(text: str) -> Iterable[int]:
    encoded = text.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(encoded), 2):
        yield encoded[i] | (encoded[i + 1] << 8)


def string_hash(text: str) -> int:
    """hash = hash * 31 + unit over UTF-16 code units, wrapped to signed 32 bits."""
    value = 0
    for unit in _utf16_code_units(text):
        value = _to_int32((value << 5) - value + unit)
    return value


def generate_cluster_id(name: str, query_ids: Iterable[str]) -> str:
    """Stable id for a suggestion: same name and same id set give the same id.

    The name is used untrimmed; member order does not matter.
    """
    content = f"{name}:{','.join(sorted(query_ids))}"
    return f"{CLUSTER_ID_PREFIX}{abs(string_hash(content))}"
