"""Version comparison and version-history helpers.

Versions are dot-separated non-negative integers ("1.2.0"). Comparison pads
the shorter version with zeros, so "1.2" and "1.2.0" are equal. Malformed
components count as 0 rather than raising.
"""

import functools
import re
from typing import Any, Iterable

_DIGITS = re.compile(r"[0-9]+")


def parse_version(version: Any) -> tuple[int, ...]:
    """
    Split a version string into integer components.

    Components that are not plain ASCII digits become 0, so signs,
    underscores and non-ASCII digits never count as numbers. Anything that
    is not a string parses as an empty tuple.
    """
    if not isinstance(version, str):
        return ()

    parts = []
    for component in version.strip().split("."):
        parts.append(int(component) if _DIGITS.fullmatch(component) else 0)
    return tuple(parts)


def compare_versions(a: Any, b: Any) -> int:
    """
    Compare two version strings.

    Returns:
        -1 if a < b, 0 if they are equal, 1 if a > b.
    """
    a_parts = parse_version(a)
    b_parts = parse_version(b)
    length = max(len(a_parts), len(b_parts))
    a_parts += (0,) * (length - len(a_parts))
    b_parts += (0,) * (length - len(b_parts))

    for a_part, b_part in zip(a_parts, b_parts):
        if a_part > b_part:
            return 1
        if a_part < b_part:
            return -1
    return 0


def sort_versions(versions: Iterable[str], reverse: bool = False) -> list[str]:
    """Sort version strings by version order."""
    return sorted(versions, key=functools.cmp_to_key(compare_versions), reverse=reverse)


def suggest_next_version(
    current: str,
    breaking: bool = False,
    feature: bool = False,
    fix: bool = False,
) -> str:
    """
    Suggest the version that should follow ``current``.

    A breaking change bumps the major component, a feature bumps the minor
    component, anything else bumps the patch component.
    """
    parts = parse_version(current) + (0, 0, 0)
    major, minor, patch = parts[:3]

    if breaking:
        return f"{major + 1}.0.0"
    if feature:
        return f"{major}.{minor + 1}.0"
    return f"{major}.{minor}.{patch + 1}"


def version_tree(entry: dict[str, Any]) -> dict[str, Any]:
    """
    Build the version history of a prompt entry.

    Each version record is returned with ``previous`` and ``next`` pointing to
    its neighbours in version order.
    """
    ordered = sort_versions(entry.get("versions", {}).keys())
    tree: dict[str, Any] = {"latest": entry.get("latest"), "versions": {}}

    for index, version in enumerate(ordered):
        node = dict(entry["versions"][version])
        node["previous"] = ordered[index - 1] if index > 0 else None
        node["next"] = ordered[index + 1] if index < len(ordered) - 1 else None
        tree["versions"][version] = node

    return tree
