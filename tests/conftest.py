"""Shared fixtures: sample documents and a fake HTTP session."""

import copy
import json

import pytest
import requests
from requests.structures import CaseInsensitiveDict

from prompt_registry.cache import CacheStore
from prompt_registry.config import RegistryConfig
from prompt_registry.fetcher import RemoteFetcher
from prompt_registry.registry import Registry
from prompt_registry.storage import MemoryStorage
from prompt_registry.trust import TrustPolicy

REMOTE_URL = "https://registry.example.com/registry.json"


def version_record(version, prompt="Hello {{name}}", **extra):
    record = {
        "description": f"Greeting v{version}",
        "prompt": prompt,
        "category": "greeting",
        "tags": ["hello", "intro"],
        "version": version,
    }
    record.update(extra)
    return record


LOCAL_DOC = {
    "greet": {
        "latest": "1.0.0",
        "versions": {"1.0.0": version_record("1.0.0")},
    },
    "summarize": {
        "latest": "2.0.0",
        "versions": {
            "1.0.0": {
                "description": "Summarize text",
                "prompt": "Summarize: {{text}}",
                "category": "writing",
                "tags": ["summary"],
                "version": "1.0.0",
            },
            "2.0.0": {
                "description": "Summarize text in N sentences",
                "prompt": "Summarize in {{count}} sentences: {{text}}",
                "category": "writing",
                "tags": ["summary", "concise"],
                "version": "2.0.0",
                "variants": {
                    "claude": "Please summarize in {{count}} sentences: {{text}}",
                    "gpt-4": "TL;DR ({{count}} sentences): {{text}}",
                    "generic": "Summary ({{count}}): {{text}}",
                },
            },
        },
    },
}

REMOTE_DOC = {
    "schemaVersion": "2.1",
    "prompts": {
        "greet": {
            "latest": "2.0.0",
            "versions": {
                "1.0.0": version_record("1.0.0"),
                "1.5.0": version_record("1.5.0", "Hi {{name}}"),
                "2.0.0": version_record("2.0.0", "Hey {{name}}!"),
            },
        },
        "translate": {
            "latest": "1.0.0",
            "versions": {
                "1.0.0": {
                    "description": "Translate text",
                    "prompt": "Translate to {{language}}: {{text}}",
                    "category": "language",
                    "tags": ["translation"],
                    "version": "1.0.0",
                }
            },
        },
    },
}


class FakeResponse:
    """Minimal stand-in for a streamed requests.Response."""

    def __init__(
        self,
        body=None,
        status_code=200,
        content_type="application/json; charset=utf-8",
        headers=None,
        url=REMOTE_URL,
        raw=None,
    ):
        if raw is None:
            raw = json.dumps(body if body is not None else {}).encode("utf-8")
        self._raw = raw
        self.status_code = status_code
        self.reason = "OK" if status_code < 400 else "Error"
        self.url = url
        self.headers = CaseInsensitiveDict(headers or {})
        if content_type is not None:
            self.headers.setdefault("Content-Type", content_type)
        self.closed = False

    def iter_content(self, chunk_size=1):
        for start in range(0, len(self._raw), chunk_size):
            yield self._raw[start : start + chunk_size]

    def close(self):
        self.closed = True


class FakeSession:
    """Returns (or raises) queued outcomes in order and records each call."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def get(self, url, headers=None, timeout=None, stream=False):
        self.calls.append({"url": url, "headers": headers, "timeout": timeout})
        if not self.outcomes:
            raise requests.ConnectionError("no more queued responses")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in (
        "PROMPT_REGISTRY_ENV",
        "PROMPT_REGISTRY_SYNC_URL",
        "PROMPT_SYNC_URL",
        "PROMPT_REGISTRY_URL",
        "PROMPT_REGISTRY_CACHE_DIR",
    ):
        monkeypatch.delenv(var, raising=False)


@pytest.fixture
def config(tmp_path):
    return RegistryConfig(
        urls={"development": REMOTE_URL, "production": REMOTE_URL},
        trusted_domains=["example.com", "githubusercontent.com"],
        cache_dir=tmp_path / "cache",
        cache_ttl=3600,
        retry_attempts=3,
        timeout=30,
    )


@pytest.fixture
def local_doc():
    return copy.deepcopy(LOCAL_DOC)


@pytest.fixture
def remote_doc():
    return copy.deepcopy(REMOTE_DOC)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def make_registry(config, local_doc, sleeps):
    """Build a Registry on in-memory storage whose fetcher uses the given session."""

    def factory(session, document=None):
        storage = MemoryStorage(local_doc if document is None else document)
        fetcher = RemoteFetcher(
            TrustPolicy(config.trusted_domains, config.require_https),
            config.max_payload_size,
            session=session,
            sleep=sleeps.append,
        )
        cache = CacheStore(config.cache_dir, config.cache_ttl)
        return Registry(storage, config=config, cache=cache, fetcher=fetcher)

    return factory
