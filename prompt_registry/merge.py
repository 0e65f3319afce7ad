"""Version-aware merging of a remote registry into the local one."""

import copy
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from .versioning import compare_versions

if TYPE_CHECKING:
    from .registry import RegistryMetadata

logger = logging.getLogger(__name__)


class MergeStrategy(str, Enum):
    """How a newer remote ``latest`` is reconciled with the local entry."""

    PREFER_LOCAL = "prefer-local"
    PREFER_REMOTE = "prefer-remote"
    # No prompt is shown; behaves exactly like PREFER_LOCAL.
    INTERACTIVE = "interactive"

    @property
    def keeps_local_latest(self) -> bool:
        return self is not MergeStrategy.PREFER_REMOTE


@dataclass
class MergeResult:
    """Counts and warnings produced by one merge."""

    new_prompts: int = 0
    updated_prompts: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.new_prompts > 0 or self.updated_prompts > 0


def _fill_missing_versions(local_entry: dict[str, Any], remote_entry: dict[str, Any]) -> None:
    versions = local_entry.setdefault("versions", {})
    for version, record in remote_entry["versions"].items():
        if version not in versions:
            versions[version] = copy.deepcopy(record)


def merge_registries(
    local: dict[str, Any],
    remote_prompts: dict[str, Any],
    strategy: MergeStrategy | str = MergeStrategy.PREFER_LOCAL,
    metadata: "RegistryMetadata | None" = None,
    remote_schema_version: str | None = None,
) -> MergeResult:
    """
    Merge remote prompt entries into ``local`` in place.

    Local data is authoritative by default: a local ``latest`` pointer only
    moves when the remote one is newer and the strategy is prefer-remote.
    Otherwise remote versions are only used to fill gaps in the local
    history.

    Args:
        local: Local registry document (prompt id -> entry). Mutated.
        remote_prompts: Remote prompt entries (prompt id -> entry).
        strategy: Merge strategy for entries where the remote is newer.
        metadata: Registry metadata whose schema version may be advanced.
        remote_schema_version: Schema version carried by the remote document.

    Returns:
        A MergeResult with new/updated counts and conflict warnings.
    """
    strategy = MergeStrategy(strategy)
    result = MergeResult()

    for prompt_id, remote_entry in remote_prompts.items():
        local_entry = local.get(prompt_id)
        if local_entry is None:
            local[prompt_id] = copy.deepcopy(remote_entry)
            result.new_prompts += 1
            continue

        comparison = compare_versions(local_entry.get("latest"), remote_entry["latest"])

        if comparison >= 0:
            _fill_missing_versions(local_entry, remote_entry)
        elif not strategy.keeps_local_latest:
            local_entry["latest"] = remote_entry["latest"]
            versions = local_entry.setdefault("versions", {})
            for version, record in remote_entry["versions"].items():
                versions[version] = copy.deepcopy(record)
            result.updated_prompts += 1
        else:
            versions = local_entry.setdefault("versions", {})
            for version, record in remote_entry["versions"].items():
                if version in versions:
                    continue
                if compare_versions(version, local_entry.get("latest")) > 0:
                    versions[version] = copy.deepcopy(record)
                    result.warnings.append(
                        f"Added newer version {version} to local prompt {prompt_id}"
                    )

    if metadata is not None and remote_schema_version:
        if compare_versions(remote_schema_version, metadata.schema_version) > 0:
            logger.debug(
                f"Advancing schema version {metadata.schema_version} -> {remote_schema_version}"
            )
            metadata.schema_version = remote_schema_version

    return result
