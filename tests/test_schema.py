"""Tests for remote document validation."""

import pytest

from prompt_registry.errors import ErrorKind, SyncError
from prompt_registry.schema import validate_remote_document


def assert_invalid(document, fragment):
    with pytest.raises(SyncError) as exc_info:
        validate_remote_document(document)
    assert exc_info.value.kind == ErrorKind.INVALID_SCHEMA
    assert fragment in exc_info.value.message
    return exc_info.value


def test_valid_document_passes(remote_doc):
    validate_remote_document(remote_doc)


def test_empty_prompts_is_valid():
    validate_remote_document({"prompts": {}})


def test_document_must_be_object():
    assert_invalid(["not", "an", "object"], "must be an object")
    assert_invalid(None, "must be an object")


def test_document_needs_prompts_mapping():
    assert_invalid({"greet": {}}, '"prompts"')
    assert_invalid({"prompts": []}, '"prompts"')


def test_entry_needs_latest(remote_doc):
    del remote_doc["prompts"]["translate"]["latest"]
    error = assert_invalid(remote_doc, "translate")
    assert error.details["prompt_id"] == "translate"

    remote_doc["prompts"]["translate"]["latest"] = 1
    assert_invalid(remote_doc, '"latest"')


def test_entry_needs_versions_mapping(remote_doc):
    del remote_doc["prompts"]["greet"]["versions"]
    assert_invalid(remote_doc, 'Prompt greet missing "versions" object')


def test_latest_must_exist_in_versions(remote_doc):
    remote_doc["prompts"]["greet"]["latest"] = "9.9.9"
    assert_invalid(remote_doc, 'latest version "9.9.9" not found')


@pytest.mark.parametrize("field_name", ["description", "prompt", "category", "tags", "version"])
def test_latest_record_needs_required_fields(remote_doc, field_name):
    del remote_doc["prompts"]["greet"]["versions"]["2.0.0"][field_name]
    assert_invalid(remote_doc, f"greet@2.0.0 missing required field: {field_name}")


def test_only_latest_record_is_checked(remote_doc):
    del remote_doc["prompts"]["greet"]["versions"]["1.0.0"]["category"]
    validate_remote_document(remote_doc)
