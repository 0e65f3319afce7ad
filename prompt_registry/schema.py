"""Structural validation of remote registry documents."""

from typing import Any

from .errors import ErrorKind, SyncError

REQUIRED_VERSION_FIELDS = ("description", "prompt", "category", "tags", "version")


def _invalid(message: str, **details: Any) -> SyncError:
    return SyncError(ErrorKind.INVALID_SCHEMA, message, details)


def validate_remote_document(document: Any) -> None:
    """
    Validate the shape of a fetched remote registry document.

    The document must be a mapping with a ``prompts`` mapping of prompt id to
    entry. Each entry needs a string ``latest`` that names a record in its
    ``versions`` mapping, and that record must carry every required field.
    Validation stops at the first invalid entry.

    Raises:
        SyncError: With kind INVALID_SCHEMA, naming the offending prompt.
    """
    if not isinstance(document, dict):
        raise _invalid("Registry must be an object")

    prompts = document.get("prompts")
    if not isinstance(prompts, dict):
        raise _invalid('Registry must contain "prompts" object')

    for prompt_id, entry in prompts.items():
        if not isinstance(entry, dict):
            raise _invalid(f"Prompt {prompt_id} must be an object", prompt_id=prompt_id)

        latest = entry.get("latest")
        if not isinstance(latest, str) or not latest:
            raise _invalid(
                f'Prompt {prompt_id} missing valid "latest" version', prompt_id=prompt_id
            )

        versions = entry.get("versions")
        if not isinstance(versions, dict):
            raise _invalid(f'Prompt {prompt_id} missing "versions" object', prompt_id=prompt_id)

        record = versions.get(latest)
        if not isinstance(record, dict):
            raise _invalid(
                f'Prompt {prompt_id} latest version "{latest}" not found',
                prompt_id=prompt_id,
                version=latest,
            )

        for field_name in REQUIRED_VERSION_FIELDS:
            if field_name not in record:
                raise _invalid(
                    f"Prompt {prompt_id}@{latest} missing required field: {field_name}",
                    prompt_id=prompt_id,
                    version=latest,
                    field=field_name,
                )
