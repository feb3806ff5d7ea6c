"""Input validators for cluster and sub-resource fields.

Each validator returns a list of human-readable problems; an empty list
means the value is acceptable. The pydantic models turn non-empty results
into validation errors so a bad spec is rejected before any remote call.
"""

from __future__ import annotations

import ipaddress
import re
from collections.abc import Mapping

# HCS caps cluster names at 36 characters and the cluster name defaults to
# the managed application name, so both share this pattern.
SLUG_PATTERN = re.compile(r"^[-\da-zA-Z]{3,36}$")
RESOURCE_GROUP_NAME_PATTERN = re.compile(r"^[-\w._()]+$")
SEMVER_PATTERN = re.compile(r"^v?\d+.\d+.\d+$")

MAX_RESOURCE_GROUP_NAME_LENGTH = 90
MAX_TAG_COUNT = 50
MAX_TAG_KEY_LENGTH = 512
MAX_TAG_VALUE_LENGTH = 256

TagValue = str | int


def validate_not_empty(value: str) -> list[str]:
    if value == "":
        return ["cannot be empty"]
    return []


def validate_slug(value: str) -> list[str]:
    if not SLUG_PATTERN.match(value):
        return [
            "must be between 3 and 36 characters in length and contains only "
            "letters, numbers or hyphens"
        ]
    return []


def validate_resource_group_name(value: str) -> list[str]:
    """Validate an Azure resource group name.

    Args:
        value: Candidate resource group name.

    Returns:
        Every rule the name breaks.
    """
    problems: list[str] = []
    if len(value) > MAX_RESOURCE_GROUP_NAME_LENGTH:
        problems.append(f"may not exceed {MAX_RESOURCE_GROUP_NAME_LENGTH} characters in length")
    if value.endswith("."):
        problems.append("may not end with a period")
    if not RESOURCE_GROUP_NAME_PATTERN.match(value):
        problems.append(
            "may only contain alphanumeric characters, dash, underscores, parentheses and periods"
        )
    return problems


def validate_cidr(value: str) -> list[str]:
    try:
        ipaddress.ip_network(value, strict=False)
    except ValueError:
        return ["expected a valid CIDR"]
    if "/" not in value:
        return ["expected a valid CIDR"]
    return []


def validate_semver(value: str) -> list[str]:
    if not SEMVER_PATTERN.match(value):
        return ["must be a valid semver"]
    return []


def validate_in(value: str, allowed: list[str], *, ignore_case: bool = False) -> list[str]:
    for candidate in allowed:
        if value == candidate or (ignore_case and value.lower() == candidate.lower()):
            return []
    return [f"expected {value} to be one of {allowed}"]


def tag_value_to_string(value: object) -> str:
    """Render a tag value, which may be a string or an integer.

    Raises:
        TypeError: For any other value type.
    """
    # bool is an int subclass but never a valid tag value
    if isinstance(value, bool):
        raise TypeError(f"unknown tag type {type(value).__name__} in tag value")
    if isinstance(value, str):
        return value
    if isinstance(value, int):
        return str(value)
    raise TypeError(f"unknown tag type {type(value).__name__} in tag value")


def validate_tags(tags: Mapping[str, object]) -> list[str]:
    """Validate tags that will be applied to an Azure resource.

    Args:
        tags: Tag map whose values may be strings or integers.

    Returns:
        Every rule the tag map breaks.
    """
    problems: list[str] = []
    if len(tags) > MAX_TAG_COUNT:
        problems.append(f"a maximum of {MAX_TAG_COUNT} tags can be applied to each ARM resource")

    for key, value in tags.items():
        if len(key) > MAX_TAG_KEY_LENGTH:
            problems.append(
                f"the maximum length for a tag key is {MAX_TAG_KEY_LENGTH} characters: "
                f"{key!r} is {len(key)} characters"
            )
        try:
            rendered = tag_value_to_string(value)
        except TypeError as e:
            problems.append(str(e))
            continue
        if len(rendered) > MAX_TAG_VALUE_LENGTH:
            problems.append(
                f"the maximum length for a tag value is {MAX_TAG_VALUE_LENGTH} characters: "
                f"the value for {key!r} is {len(rendered)} characters"
            )
    return problems


def flatten_tags(tags: Mapping[str, TagValue | None] | None) -> dict[str, str]:
    """Render a tag map for the Azure API, dropping empty entries."""
    if not tags:
        return {}
    return {key: tag_value_to_string(value) for key, value in tags.items() if value is not None}
