"""HTTP fetching of remote registry documents."""

import json
import logging
import threading
import time
from typing import Any, Callable

import requests

from .errors import ErrorKind, SyncError
from .trust import TrustPolicy

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]

USER_AGENT = "PromptRegistry/2.0"
MAX_BACKOFF = 30.0
CHUNK_SIZE = 64 * 1024


def backoff_delay(attempt: int) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
    return min(1.0 * 2 ** (attempt - 1), MAX_BACKOFF)


class RemoteFetcher:
    """
    Fetches a remote registry document over HTTP(S).

    The URL is checked against the trust policy before any request is made.
    All attempts share one overall deadline; transport failures and non-2xx
    responses are retried with exponential backoff, while a 2xx response is
    never retried even if its body is rejected.
    """

    def __init__(
        self,
        trust_policy: TrustPolicy,
        max_payload_size: int,
        session: requests.Session | None = None,
        sleep: Callable[[float], Any] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize the fetcher.

        Args:
            trust_policy: Policy deciding which URLs may be fetched.
            max_payload_size: Largest accepted response body, in bytes.
            session: HTTP session to use. A new one is created if omitted.
            sleep: Function used to wait between attempts.
            clock: Monotonic clock used for the overall deadline.
        """
        self.trust_policy = trust_policy
        self.max_payload_size = max_payload_size
        self.session = session or requests.Session()
        self._sleep = sleep or self._wait
        self._clock = clock

    @staticmethod
    def _wait(seconds: float) -> None:
        threading.Event().wait(seconds)

    def fetch(
        self,
        url: str,
        timeout: float,
        max_attempts: int,
        progress: ProgressCallback | None = None,
    ) -> dict[str, Any]:
        """
        Fetch and decode the JSON document at ``url``.

        Args:
            url: Remote registry URL.
            timeout: Overall time budget in seconds, shared by all attempts.
            max_attempts: Maximum number of requests to make.
            progress: Optional callback receiving ``("fetching", percent)``.

        Returns:
            The decoded JSON document.

        Raises:
            SyncError: CERTIFICATE_ERROR, NETWORK_ERROR, TIMEOUT,
                INVALID_SCHEMA or QUOTA_EXCEEDED.
        """
        if not self.trust_policy.is_trusted(url):
            raise SyncError(
                ErrorKind.CERTIFICATE_ERROR,
                f"Untrusted domain: {self.trust_policy.hostname(url)}",
                {"url": url},
            )

        max_attempts = max(int(max_attempts), 1)
        deadline = self._clock() + timeout
        last_error: SyncError | None = None

        for attempt in range(1, max_attempts + 1):
            if progress:
                progress("fetching", round((attempt - 1) / max_attempts * 20))

            remaining = deadline - self._clock()
            if remaining <= 0:
                raise self._timeout_error(url, timeout)

            try:
                return self._attempt(url, remaining, deadline, timeout)
            except SyncError as e:
                if e.kind != ErrorKind.NETWORK_ERROR:
                    raise
                last_error = e

            if attempt < max_attempts:
                delay = min(backoff_delay(attempt), max(deadline - self._clock(), 0.0))
                logger.warning(
                    f"Fetch failed (attempt {attempt}/{max_attempts}): {last_error}. "
                    f"Retrying in {delay:.1f}s..."
                )
                self._sleep(delay)

        if last_error is None:
            last_error = SyncError(
                ErrorKind.NETWORK_ERROR, "Network request failed", {"url": url}
            )
        logger.error(f"Fetch of {url} failed after {max_attempts} attempts: {last_error}")
        raise last_error

    def _attempt(
        self, url: str, remaining: float, deadline: float, timeout: float
    ) -> dict[str, Any]:
        """Make one request. Only NETWORK_ERROR failures are retryable."""
        try:
            response = self.session.get(
                url,
                headers={"Accept": "application/json", "User-Agent": USER_AGENT},
                timeout=remaining,
                stream=True,
            )
        except requests.Timeout as e:
            raise self._timeout_error(url, timeout) from e
        except requests.RequestException as e:
            raise SyncError(
                ErrorKind.NETWORK_ERROR,
                f"Request to {url} failed: {e}",
                {"url": url},
            ) from e

        try:
            body = self._read_response(response, url, deadline, timeout)
        finally:
            response.close()

        try:
            return json.loads(body)
        except ValueError as e:
            raise SyncError(
                ErrorKind.INVALID_SCHEMA,
                f"Response from {url} is not valid JSON: {e}",
                {"url": url},
            ) from e

    def _read_response(
        self, response: requests.Response, url: str, deadline: float, timeout: float
    ) -> bytes:
        status = response.status_code
        if not 200 <= status < 300:
            raise SyncError(
                ErrorKind.NETWORK_ERROR,
                f"HTTP {status}: {response.reason or ''}".rstrip(),
                {"url": url, "status": status},
            )

        final_url = getattr(response, "url", None) or url
        if final_url != url and not self.trust_policy.is_trusted(final_url):
            raise SyncError(
                ErrorKind.CERTIFICATE_ERROR,
                f"Redirected to untrusted domain: {self.trust_policy.hostname(final_url)}",
                {"url": url, "final_url": final_url},
            )

        content_type = response.headers.get("Content-Type", "")
        if "application/json" not in content_type.lower():
            raise SyncError(
                ErrorKind.INVALID_SCHEMA,
                f"Invalid content type: {content_type}",
                {"url": url, "content_type": content_type},
            )

        declared = response.headers.get("Content-Length")
        if declared and declared.isdigit() and int(declared) > self.max_payload_size:
            raise self._quota_error(url, int(declared))

        chunks = []
        size = 0
        try:
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                size += len(chunk)
                if size > self.max_payload_size:
                    raise self._quota_error(url, size)
                if self._clock() > deadline:
                    raise self._timeout_error(url, timeout)
                chunks.append(chunk)
        except requests.Timeout as e:
            raise self._timeout_error(url, timeout) from e
        except requests.RequestException as e:
            raise SyncError(
                ErrorKind.NETWORK_ERROR,
                f"Reading response from {url} failed: {e}",
                {"url": url},
            ) from e

        return b"".join(chunks)

    def _quota_error(self, url: str, size: int) -> SyncError:
        return SyncError(
            ErrorKind.QUOTA_EXCEEDED,
            f"Payload too large: {size} bytes (limit {self.max_payload_size})",
            {"url": url, "size": size},
        )

    @staticmethod
    def _timeout_error(url: str, timeout: float) -> SyncError:
        return SyncError(
            ErrorKind.TIMEOUT,
            f"Fetching {url} timed out after {timeout}s",
            {"url": url, "timeout": timeout},
        )
