"""Member-name normalization shared by default matching and flattening."""

from __future__ import annotations

NAME_MATCHING_FLEXIBLE = "flexible"
NAME_MATCHING_EXACT = "exact"


def domain_normalize_member_name(name: str, name_matching: str = NAME_MATCHING_FLEXIBLE) -> str:
    """Normalize one member name for default matching.

    Flexible matching ignores case and underscores so `first_name`,
    `FirstName` and `firstname` compare equal. Exact matching keeps the name.

    Args:
        name: Raw member name.
        name_matching: Matching strategy label.

    Returns:
        str: Comparison key for the member name.

    Raises:
        ValueError: Raised when the matching strategy is unknown.
    """

    if name_matching == NAME_MATCHING_EXACT:
        return name
    if name_matching == NAME_MATCHING_FLEXIBLE:
        return name.replace("_", "").lower()
    raise ValueError(f"unsupported name matching strategy: {name_matching}")


def domain_strip_member_prefix(
    destination_name: str,
    member_name: str,
    name_matching: str = NAME_MATCHING_FLEXIBLE,
) -> str | None:
    """Return the remainder of a flattened destination name after one source member prefix.

    Example: `department_name` with member `department` leaves `name`.

    Args:
        destination_name: Flattened destination field name.
        member_name: Candidate source member name used as prefix.
        name_matching: Matching strategy label.

    Returns:
        str | None: Non-empty remainder, or None when the member is not a prefix.

    Raises:
        ValueError: Raised when the matching strategy is unknown.
    """

    if name_matching == NAME_MATCHING_EXACT:
        if not destination_name.startswith(member_name):
            return None
        remainder = destination_name[len(member_name) :]
        if remainder.startswith("_"):
            remainder = remainder[1:]
        elif not remainder[:1].isupper():
            return None
        return remainder or None

    normalized_destination = domain_normalize_member_name(destination_name, name_matching)
    normalized_member = domain_normalize_member_name(member_name, name_matching)
    if not normalized_member or not normalized_destination.startswith(normalized_member):
        return None
    remainder = normalized_destination[len(normalized_member) :]
    return remainder or None
