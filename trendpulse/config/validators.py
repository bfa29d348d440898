"""Shared validators for Pydantic config models.

- Weight sum validation
- Ordered threshold validation
- String list normalization
"""

from typing import Any


def validate_weights_sum(
    values: dict[str, float],
    tolerance: float = 0.01,
    expected_sum: float = 1.0,
) -> None:
    """Validate that numeric values sum to expected value.

    Args:
        values: Dictionary of field names to weight values
        tolerance: Allowed deviation from expected_sum
        expected_sum: Expected sum of all weights

    Raises:
        ValueError: If sum deviates from expected by more than tolerance
    """
    total = sum(values.values())
    if abs(total - expected_sum) > tolerance:
        raise ValueError(f"Weights must sum to {expected_sum} (got {total:.2f}). Values: {values}")


def validate_descending(values: dict[str, float], field_name: str = "Thresholds") -> None:
    """Validate that values are strictly decreasing in the given order.

    Args:
        values: Ordered mapping of name -> value (insertion order is the expected order)
        field_name: Name for error messages

    Raises:
        ValueError: If any value is not smaller than its predecessor
    """
    items = list(values.items())
    for (prev_name, prev), (name, current) in zip(items, items[1:], strict=False):
        if current >= prev:
            raise ValueError(
                f"{field_name} must be decreasing: {name}={current} is not below "
                f"{prev_name}={prev}"
            )


def normalize_string_list(values: Any) -> list[str]:
    """Normalize a list of strings: strip, lowercase, remove empties and duplicates.

    Args:
        values: Input list (or None)

    Returns:
        Normalized list preserving first-seen order
    """
    if values is None:
        return []
    if isinstance(values, str):
        values = [values]

    seen: set[str] = set()
    result: list[str] = []
    for v in values:
        if v is None:
            continue
        normalized = str(v).strip().lower()
        if normalized and normalized not in seen:
            seen.add(normalized)
            result.append(normalized)
    return result


__all__ = [
    "validate_weights_sum",
    "validate_descending",
    "normalize_string_list",
]
