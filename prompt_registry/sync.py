"""Synchronization of the local registry with a remote registry document.

A sync runs through the stages below, reporting each one to an optional
progress callback::

    initializing -> fetching -> validating -> comparing -> merging
                 -> updating -> finalizing

A fresh cache entry for the URL skips the network stages. Failures are
handled by the per-call error policy: ``throw`` raises, ``warn`` logs and
returns a failed result, ``silent`` returns a failed result quietly.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable

from .errors import ErrorKind, RegistryError, SyncError
from .merge import MergeResult, MergeStrategy, merge_registries
from .schema import validate_remote_document

if TYPE_CHECKING:
    from .registry import Registry

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]

DEFAULT_REMOTE_SCHEMA_VERSION = "2.0"


class SyncStage(str, Enum):
    INITIALIZING = "initializing"
    FETCHING = "fetching"
    VALIDATING = "validating"
    COMPARING = "comparing"
    MERGING = "merging"
    UPDATING = "updating"
    FINALIZING = "finalizing"


class ErrorPolicy(str, Enum):
    THROW = "throw"
    WARN = "warn"
    SILENT = "silent"


@dataclass
class SyncOptions:
    """Options for a single sync run."""

    url: str | None = None
    force: bool = False
    timeout: float | None = None
    progress_callback: ProgressCallback | None = None
    error_policy: ErrorPolicy | str = ErrorPolicy.THROW
    merge_strategy: MergeStrategy | str = MergeStrategy.PREFER_LOCAL
    silent: bool = False
    background: bool = False

    def __post_init__(self) -> None:
        self.error_policy = ErrorPolicy(self.error_policy)
        self.merge_strategy = MergeStrategy(self.merge_strategy)


@dataclass
class SyncResult:
    """Outcome of a sync run."""

    success: bool = False
    local_version: str | None = None
    remote_version: str | None = None
    new_prompts: int = 0
    updated_prompts: int = 0
    errors: list[RegistryError] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    last_sync: str | None = None
    sync_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    from_cache: bool = False
    duration: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert the result to a JSON-friendly dictionary."""
        return {
            "success": self.success,
            "localVersion": self.local_version,
            "remoteVersion": self.remote_version,
            "newPrompts": self.new_prompts,
            "updatedPrompts": self.updated_prompts,
            "errors": [e.to_dict() for e in self.errors],
            "warnings": list(self.warnings),
            "lastSync": self.last_sync,
            "syncId": self.sync_id,
            "fromCache": self.from_cache,
        }


class _ProgressReporter:
    """Forwards stage progress to a callback, never letting the percentage drop."""

    def __init__(self, callback: ProgressCallback | None):
        self._callback = callback
        self._percent = 0

    def __call__(self, stage: str, percent: int) -> None:
        self._percent = min(max(self._percent, int(percent)), 100)
        if self._callback:
            self._callback(str(SyncStage(stage).value), self._percent)


class SyncOrchestrator:
    """Runs sync operations against one registry."""

    def __init__(self, registry: "Registry"):
        self.registry = registry

    def run(self, options: SyncOptions | None = None) -> SyncResult:
        """
        Synchronize the registry with its remote source.

        Args:
            options: Sync options; defaults apply when omitted.

        Returns:
            The SyncResult. On failure under the ``warn`` or ``silent``
            policies, ``success`` is False and the error is in ``errors``.

        Raises:
            SyncError: On failure under the ``throw`` policy.
        """
        options = options or SyncOptions()
        registry = self.registry
        config = registry.config
        metadata = registry.metadata

        url = options.url or config.default_url()
        timeout = options.timeout if options.timeout is not None else config.timeout
        metadata.sync_url = url

        result = SyncResult(local_version=metadata.local_version)
        progress = _ProgressReporter(options.progress_callback)
        started = time.monotonic()

        try:
            progress(SyncStage.INITIALIZING, 0)

            cached = None if options.force else self._load_cached(url, result.sync_id)
            if cached is not None:
                logger.debug(f"[{result.sync_id}] Using cached registry for {url}")
                result.from_cache = True
                document = cached
            else:
                document = registry.fetcher.fetch(
                    url, timeout, config.retry_attempts, progress=progress
                )
                progress(SyncStage.FETCHING, 25)

                progress(SyncStage.VALIDATING, 50)
                validate_remote_document(document)
                registry.cache.put(url, document)

            result.remote_version = (
                document.get("schemaVersion") or DEFAULT_REMOTE_SCHEMA_VERSION
            )

            progress(SyncStage.COMPARING, 60)
            progress(SyncStage.MERGING, 75)
            merged = self._merge(document, options, result.remote_version)
            result.new_prompts = merged.new_prompts
            result.updated_prompts = merged.updated_prompts
            result.warnings = merged.warnings

            progress(SyncStage.UPDATING, 90)
            if merged.changed:
                registry.persist()

            progress(SyncStage.FINALIZING, 100)
            now = datetime.now(timezone.utc)
            metadata.last_sync = now
            metadata.local_version = result.remote_version or metadata.local_version
            result.local_version = metadata.local_version
            result.last_sync = now.isoformat()
            result.success = True

            if not options.silent:
                logger.info(
                    f"Sync from {url} complete: +{result.new_prompts} new, "
                    f"+{result.updated_prompts} updated"
                    + (" (cached)" if result.from_cache else "")
                )

        except Exception as e:
            sync_error = e if isinstance(e, SyncError) else SyncError(
                ErrorKind.UNKNOWN, str(e) or "Unknown error occurred", {"error": repr(e)}
            )
            result.errors.append(sync_error)

            if options.error_policy is ErrorPolicy.THROW:
                if sync_error is e:
                    raise
                raise sync_error from e
            if options.error_policy is ErrorPolicy.WARN:
                logger.warning(f"Sync warning: {sync_error.message}")

        finally:
            result.duration = time.monotonic() - started

        return result

    def _load_cached(self, url: str, sync_id: str) -> dict[str, Any] | None:
        """Get a fresh cached document for ``url`` that still passes validation."""
        cached = self.registry.cache.get(url)
        if cached is None:
            return None
        try:
            validate_remote_document(cached)
        except SyncError as e:
            logger.debug(f"[{sync_id}] Ignoring invalid cached registry for {url}: {e.message}")
            return None
        return cached

    def _merge(
        self, document: dict[str, Any], options: SyncOptions, remote_version: str
    ) -> MergeResult:
        return merge_registries(
            self.registry.prompts,
            document.get("prompts") or {},
            options.merge_strategy,
            metadata=self.registry.metadata,
            remote_schema_version=remote_version,
        )
