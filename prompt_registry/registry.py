"""Registry class: the local prompt document plus its read and sync paths."""

import dataclasses
import logging
import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .cache import CacheStore
from .config import RegistryConfig, load_config
from .errors import (
    Err,
    ErrorKind,
    Ok,
    PromptNotFoundError,
    RegistryError,
    Result,
    SyncError,
    VersionNotFoundError,
)
from .fetcher import RemoteFetcher
from .storage import JsonFileStorage, Storage
from .sync import ErrorPolicy, SyncOptions, SyncOrchestrator, SyncResult
from .template import PromptVersion, RenderedPrompt
from .trust import TrustPolicy
from .versioning import sort_versions, version_tree

logger = logging.getLogger(__name__)

AUTO_SYNC_TIMEOUT = 10.0


@dataclass
class RegistryMetadata:
    """Sync bookkeeping for one registry."""

    local_version: str = "1.0.0"
    last_sync: datetime | None = None
    last_modified: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    sync_url: str | None = None
    schema_version: str = "1.0"

    def to_dict(self) -> dict[str, Any]:
        return {
            "localVersion": self.local_version,
            "lastSync": self.last_sync.isoformat() if self.last_sync else None,
            "lastModified": self.last_modified.isoformat(),
            "syncUrl": self.sync_url,
            "schemaVersion": self.schema_version,
        }


@dataclass
class PromptSummary:
    """Search hit: latest-version metadata plus registry freshness."""

    id: str
    description: str
    category: str
    tags: list[str]
    version: str
    registry_fresh: bool
    source: str = "local"
    last_sync: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "description": self.description,
            "category": self.category,
            "tags": list(self.tags),
            "version": self.version,
            "registryFresh": self.registry_fresh,
            "source": self.source,
            "lastSync": self.last_sync,
        }


def split_identifier(identifier: str) -> tuple[str, str | None]:
    """Split ``id@version`` into its parts. The version is None when absent."""
    if "@" not in identifier:
        return identifier, None
    base_id, version = identifier.split("@")[:2]
    return base_id, version or None


class Registry:
    """
    A prompt registry backed by a storage backend.

    The registry holds the local document (prompt id -> entry) and its sync
    metadata. Every read and sync operation goes through an instance, so
    several independent registries can live in one process.
    """

    def __init__(
        self,
        storage: Storage,
        config: RegistryConfig | None = None,
        cache: CacheStore | None = None,
        fetcher: RemoteFetcher | None = None,
    ):
        """
        Initialize the registry and load its document.

        Args:
            storage: Backend the document is loaded from and saved to.
            config: Resolved configuration. Loaded from the environment if None.
            cache: Remote document cache. Built from ``config`` if None.
            fetcher: Remote fetcher. Built from ``config`` if None.
        """
        self.storage = storage
        self.config = config or load_config()
        self.cache = cache or CacheStore(self.config.cache_dir, self.config.cache_ttl)
        self.fetcher = fetcher or RemoteFetcher(
            TrustPolicy(self.config.trusted_domains, self.config.require_https),
            self.config.max_payload_size,
        )
        self.prompts: dict[str, Any] = storage.load()
        self.metadata = RegistryMetadata()
        last_modified = storage.last_modified()
        if last_modified is not None:
            self.metadata.last_modified = last_modified

        self._orchestrator = SyncOrchestrator(self)
        self._executor: ThreadPoolExecutor | None = None
        self._background: dict[str, Future] = {}
        self._periodic: tuple[threading.Event, threading.Thread] | None = None

    @classmethod
    def from_file(
        cls, path: str | Path, config: RegistryConfig | None = None
    ) -> "Registry":
        """Create a registry backed by a JSON file."""
        return cls(JsonFileStorage(path), config=config)

    def persist(self) -> None:
        """
        Save the local document to storage.

        Raises:
            SyncError: QUOTA_EXCEEDED if the storage backend fails.
        """
        try:
            self.storage.save(self.prompts)
        except (OSError, TypeError, ValueError) as e:
            raise SyncError(
                ErrorKind.QUOTA_EXCEEDED, f"Failed to save registry: {e}", {"error": repr(e)}
            ) from e
        self.metadata.last_modified = datetime.now(timezone.utc)

    # Sync

    def sync(self, options: SyncOptions | None = None, **kwargs: Any) -> SyncResult:
        """
        Synchronize with the remote registry.

        Accepts either a SyncOptions instance or its fields as keyword
        arguments.
        """
        if options is None:
            options = SyncOptions(**kwargs)
        return self._orchestrator.run(options)

    def background_sync(self, options: SyncOptions | None = None, **kwargs: Any) -> str:
        """
        Start a sync on a worker thread and return its id immediately.

        The background run shares this registry's document with foreground
        calls without further coordination.
        """
        if options is None:
            options = SyncOptions(**kwargs)
        announce = not options.silent
        options = dataclasses.replace(options, background=True, silent=True)

        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=1, thread_name_prefix="prompt-registry-sync"
            )

        future = self._executor.submit(self._run_background, options, announce)
        sync_id = uuid.uuid4().hex
        self._background[sync_id] = future
        return sync_id

    def _run_background(self, options: SyncOptions, announce: bool) -> SyncResult:
        try:
            result = self._orchestrator.run(options)
        except RegistryError as e:
            if announce:
                logger.error(f"Background sync failed: {e}")
            raise
        if result.success and announce:
            logger.info(
                f"Background sync completed: +{result.new_prompts} new, "
                f"+{result.updated_prompts} updated prompts"
            )
        return result

    def background_result(self, sync_id: str, timeout: float | None = None) -> SyncResult:
        """
        Wait for a background sync and return its result.

        The id is forgotten once its sync has finished and been returned.

        Raises:
            KeyError: If ``sync_id`` is unknown.
            SyncError: If the background sync failed under the throw policy.
        """
        future = self._background[sync_id]
        try:
            return future.result(timeout=timeout)
        finally:
            if future.done():
                self._background.pop(sync_id, None)

    def start_periodic_sync(
        self, interval: float | None = None, sync_url: str | None = None
    ) -> bool:
        """
        Sync quietly every ``interval`` seconds on a daemon thread.

        Does nothing unless ``config.background_sync`` is enabled. The interval
        defaults to ``config.sync_interval``. Failed runs are logged at debug
        level and the schedule keeps going.

        Returns:
            True if a periodic sync is running after the call.
        """
        if not self.config.background_sync:
            return False
        if self._periodic is not None:
            return True

        interval = interval if interval is not None else self.config.sync_interval
        stop = threading.Event()
        thread = threading.Thread(
            target=self._periodic_loop,
            args=(stop, interval, sync_url),
            name="prompt-registry-periodic-sync",
            daemon=True,
        )
        self._periodic = (stop, thread)
        thread.start()
        logger.debug(f"Periodic sync started every {interval}s")
        return True

    def _periodic_loop(self, stop: threading.Event, interval: float, sync_url: str | None) -> None:
        while not stop.wait(interval):
            result = self._orchestrator.run(
                SyncOptions(
                    url=sync_url,
                    error_policy=ErrorPolicy.SILENT,
                    silent=True,
                    background=True,
                )
            )
            if not result.success:
                logger.debug(f"Periodic sync failed: {result.errors[0]}")

    def stop_periodic_sync(self) -> None:
        """Stop the periodic sync, waiting for a run in progress to finish."""
        if self._periodic is None:
            return
        stop, thread = self._periodic
        stop.set()
        thread.join()
        self._periodic = None

    def shutdown(self) -> None:
        """Stop periodic syncs, wait for background syncs and release the worker thread."""
        self.stop_periodic_sync()
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def initialize(
        self,
        auto_sync: bool | None = None,
        sync_url: str | None = None,
        error_policy: ErrorPolicy | str = ErrorPolicy.WARN,
    ) -> RegistryMetadata:
        """
        Prepare the cache directory and optionally sync once.

        Also starts the periodic sync when ``config.background_sync`` is set.
        """
        try:
            self.cache.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            logger.warning(f"Could not create cache directory {self.cache.directory}: {e}")

        if auto_sync is None:
            auto_sync = self.config.auto_sync
        if auto_sync:
            self.sync(SyncOptions(url=sync_url, error_policy=error_policy))
        self.start_periodic_sync(sync_url=sync_url)
        return self.info()

    def info(self) -> RegistryMetadata:
        """Get a snapshot of the registry metadata."""
        return RegistryMetadata(**vars(self.metadata))

    def is_stale(self, max_age: float) -> bool:
        """Check whether the last successful sync is older than ``max_age`` seconds."""
        if self.metadata.last_sync is None:
            return True
        age = (datetime.now(timezone.utc) - self.metadata.last_sync).total_seconds()
        return age > max_age

    # Reads

    def get_version(self, prompt_id: str, version: str | None = None) -> PromptVersion:
        """
        Get a version record of a prompt without rendering it.

        Raises:
            PromptNotFoundError: If the prompt is unknown.
            VersionNotFoundError: If the version is not available.
        """
        entry = self.prompts.get(prompt_id)
        if entry is None:
            raise PromptNotFoundError(f'Prompt "{prompt_id}" not found', details={"id": prompt_id})

        version = version or entry["latest"]
        record = entry["versions"].get(version)
        if record is None:
            raise VersionNotFoundError(
                f'Version "{version}" not available for "{prompt_id}"',
                details={"id": prompt_id, "version": version},
            )
        return PromptVersion.from_dict(prompt_id, version, record)

    def get(
        self,
        identifier: str,
        variables: dict[str, Any] | None = None,
        *,
        model: str | None = None,
        sync_on_missing: bool = False,
        sync_url: str | None = None,
        timeout: float | None = None,
    ) -> RenderedPrompt:
        """
        Get a prompt by id, optionally pinned with ``@version``, and render it.

        Args:
            identifier: Prompt id, e.g. ``"summarize"`` or ``"summarize@1.0.0"``.
            variables: Values for the ``{{name}}`` placeholders.
            model: Model name used to pick a variant of the template.
            sync_on_missing: Sync once and retry when the prompt is unknown.
            sync_url: Remote URL for that sync.
            timeout: Timeout in seconds for that sync.

        Returns:
            The rendered prompt.

        Raises:
            PromptNotFoundError: If the prompt is unknown (after syncing, if enabled).
            VersionNotFoundError: If the requested version is not available.
            MissingVariablesError: If placeholders are left unsubstituted.
        """
        base_id, version = split_identifier(identifier)

        if base_id not in self.prompts and sync_on_missing:
            try:
                self._sync_for_fallback(sync_url, timeout)
            except SyncError as e:
                raise PromptNotFoundError(
                    f'Prompt "{identifier}" not found locally and sync failed: {e.message}',
                    details={"id": identifier, "sync_error": e.to_dict()},
                ) from e
            return self.get(identifier, variables, model=model)

        return self.get_version(base_id, version).render(variables, model=model)

    def try_get(
        self,
        identifier: str,
        variables: dict[str, Any] | None = None,
        **kwargs: Any,
    ) -> Result[RenderedPrompt]:
        """Like ``get``, but return ``Ok(prompt)`` or ``Err(error)`` instead of raising."""
        try:
            return Ok(self.get(identifier, variables, **kwargs))
        except RegistryError as e:
            return Err(e)

    def search(
        self,
        query: str | dict[str, Any],
        *,
        sync_on_empty: bool = False,
        sync_url: str | None = None,
        timeout: float | None = None,
    ) -> list[PromptSummary]:
        """
        Search prompts by text or by filters.

        A string query matches case-insensitively against the id, description,
        category and tags of each prompt's latest version. A mapping query
        filters on exact ``category``, ``id`` and on all of ``tags``.

        Args:
            query: Search text or filter mapping.
            sync_on_empty: Sync once and search again when nothing matches.
            sync_url: Remote URL for that sync.
            timeout: Timeout in seconds for that sync.
        """
        results = self._search_local(query)
        if results or not sync_on_empty:
            return results

        try:
            self._sync_for_fallback(sync_url, timeout)
        except SyncError as e:
            logger.warning(f"Search sync failed: {e.message}")
            return []
        return self._search_local(query)

    def _search_local(self, query: str | dict[str, Any]) -> list[PromptSummary]:
        summaries = self._summaries()

        if isinstance(query, str):
            needle = query.lower()
            return [
                s
                for s in summaries
                if needle in s.id.lower()
                or needle in s.description.lower()
                or needle in s.category.lower()
                or any(needle in tag.lower() for tag in s.tags)
            ]

        category = query.get("category")
        tags = query.get("tags") or []
        if isinstance(tags, str):
            tags = [tags]
        prompt_id = query.get("id")
        return [
            s
            for s in summaries
            if (not category or s.category == category)
            and all(tag in s.tags for tag in tags)
            and (not prompt_id or s.id == prompt_id)
        ]

    def _summaries(self) -> list[PromptSummary]:
        fresh = not self.is_stale(self.config.cache_ttl)
        last_sync = self.metadata.last_sync.isoformat() if self.metadata.last_sync else None
        summaries = []
        for prompt_id, entry in self.prompts.items():
            latest = entry["versions"][entry["latest"]]
            summaries.append(
                PromptSummary(
                    id=prompt_id,
                    description=latest.get("description", ""),
                    category=latest.get("category", ""),
                    tags=list(latest.get("tags") or []),
                    version=latest.get("version", entry["latest"]),
                    registry_fresh=fresh,
                    last_sync=last_sync,
                )
            )
        return summaries

    def _sync_for_fallback(self, sync_url: str | None, timeout: float | None) -> SyncResult:
        return self.sync(
            SyncOptions(
                url=sync_url,
                timeout=timeout if timeout is not None else AUTO_SYNC_TIMEOUT,
                error_policy=ErrorPolicy.THROW,
                silent=True,
            )
        )

    def list_prompts(self) -> list[str]:
        """Get list of all prompt ids."""
        return sorted(self.prompts)

    def list_versions(self, prompt_id: str) -> list[str]:
        """Get the versions of a prompt in version order."""
        entry = self.prompts.get(prompt_id)
        if entry is None:
            return []
        return sort_versions(entry["versions"])

    def history(self, prompt_id: str) -> dict[str, Any]:
        """
        Get the version tree of a prompt.

        Raises:
            PromptNotFoundError: If the prompt is unknown.
        """
        if prompt_id not in self.prompts:
            raise PromptNotFoundError(f'Prompt "{prompt_id}" not found', details={"id": prompt_id})
        return version_tree(self.prompts[prompt_id])

    def __len__(self) -> int:
        return len(self.prompts)

    def __contains__(self, prompt_id: str) -> bool:
        return prompt_id in self.prompts

    def __iter__(self):
        return iter(sorted(self.prompts))
