"""Prompt version records, model variants and ``{{variable}}`` interpolation."""

import re
from dataclasses import dataclass, field
from typing import Any

from .errors import MissingVariablesError

PLACEHOLDER_PATTERN = re.compile(r"\{\{([^}]+)\}\}")

MODEL_CATEGORIES = {
    "gpt-4": "gpt",
    "gpt-3.5-turbo": "gpt",
    "claude-3-opus": "claude",
    "claude-3-sonnet": "claude",
    "claude-3-haiku": "claude",
    "llama-3": "llama",
    "llama-2": "llama",
    "gemini-pro": "gemini",
    "mistral-large": "mistral",
    "mixtral": "mistral",
}

MODEL_PREFIXES = {
    "gpt": ("gpt-4", "gpt-3.5"),
    "claude": ("claude-3", "claude-2"),
    "llama": ("llama-3", "llama-2"),
    "gemini": ("gemini",),
    "mistral": ("mistral", "mixtral"),
}

GENERIC_VARIANT = "generic"


def get_model_category(model: str) -> str:
    """Get the category (gpt, claude, ...) of a model name, or ``generic``."""
    if model in MODEL_CATEGORIES:
        return MODEL_CATEGORIES[model]

    for category, prefixes in MODEL_PREFIXES.items():
        if model.startswith(prefixes):
            return category

    return GENERIC_VARIANT


def find_placeholders(text: str) -> list[str]:
    """Names of the ``{{name}}`` placeholders in ``text``, in order, without repeats."""
    names: list[str] = []
    for match in PLACEHOLDER_PATTERN.finditer(text):
        if match.group(1) not in names:
            names.append(match.group(1))
    return names


def interpolate(text: str, variables: dict[str, Any] | None = None) -> str:
    """
    Substitute ``{{name}}`` placeholders in ``text``.

    Every occurrence of ``{{key}}`` is replaced literally by the matching
    value; falsy values become the empty string. Keys with no placeholder are
    ignored.

    Raises:
        MissingVariablesError: Naming every placeholder left unsubstituted.
    """
    for key, value in (variables or {}).items():
        text = text.replace("{{" + str(key) + "}}", str(value) if value else "")

    missing = find_placeholders(text)
    if missing:
        raise MissingVariablesError(missing)
    return text


@dataclass
class RenderedPrompt:
    """A prompt version with its template interpolated."""

    id: str
    prompt: str
    description: str
    category: str
    tags: list[str]
    version: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "prompt": self.prompt,
            "description": self.description,
            "category": self.category,
            "tags": list(self.tags),
            "version": self.version,
        }


@dataclass
class PromptVersion:
    """One version record of a prompt entry."""

    prompt_id: str
    version: str
    prompt: str
    description: str = ""
    category: str = ""
    tags: list[str] = field(default_factory=list)
    variants: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, prompt_id: str, version: str, data: dict[str, Any]) -> "PromptVersion":
        """Create a PromptVersion from a version record of the registry document."""
        return cls(
            prompt_id=prompt_id,
            version=str(data.get("version", version)),
            prompt=data.get("prompt", ""),
            description=data.get("description", ""),
            category=data.get("category", ""),
            tags=list(data.get("tags") or []),
            variants=dict(data.get("variants") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a version record for serialization."""
        result: dict[str, Any] = {
            "description": self.description,
            "prompt": self.prompt,
            "category": self.category,
            "tags": list(self.tags),
            "version": self.version,
        }
        if self.variants:
            result["variants"] = dict(self.variants)
        return result

    def select_template(self, model: str | None = None) -> str:
        """Pick the template text for ``model``. See ``select_variant``."""
        return select_variant(self, model)

    def list_variants(self) -> list[str]:
        return list_variants(self)

    def get_variables(self, model: str | None = None) -> list[str]:
        """Get the placeholder names used by the template for ``model``."""
        return find_placeholders(self.select_template(model))

    def render(
        self, variables: dict[str, Any] | None = None, model: str | None = None
    ) -> RenderedPrompt:
        """
        Render this version with the given variables.

        Raises:
            MissingVariablesError: If any placeholder is left after substitution.
        """
        return RenderedPrompt(
            id=f"{self.prompt_id}@{self.version}",
            prompt=interpolate(self.select_template(model), variables),
            description=self.description,
            category=self.category,
            tags=list(self.tags),
            version=self.version,
        )

    def __str__(self) -> str:
        return f"PromptVersion(id={self.prompt_id}, version={self.version})"


def select_variant(record: PromptVersion, model: str | None = None) -> str:
    """
    Pick the template text of ``record`` for ``model``.

    Precedence: exact model variant, model category variant, ``generic``
    variant, then the base template.
    """
    variants = record.variants
    if not model or not variants:
        return record.prompt

    if model in variants:
        return variants[model]

    category = get_model_category(model)
    if category in variants:
        return variants[category]

    if GENERIC_VARIANT in variants:
        return variants[GENERIC_VARIANT]

    return record.prompt


def list_variants(record: PromptVersion) -> list[str]:
    """Get the variant keys of ``record`` in document order."""
    return list(record.variants)
