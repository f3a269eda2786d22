"""Tests for the default catalog."""

import json

from scriptflow.catalog import build_default_catalog
from scriptflow.catalog.builtin import BUILTIN_NODE_TYPES, SCOPE_EXTERNAL_REQUEST
from scriptflow.compiler import EMITTERS


def test_default_catalog_is_frozen(catalog):
    assert catalog.is_frozen


def test_all_categories_present(catalog):
    for category in ("trigger", "transform", "action"):
        assert catalog.list_types(category)


def test_every_builtin_has_a_code_generator():
    missing = [t.id for t in BUILTIN_NODE_TYPES if t.dispatch_key not in EMITTERS]
    assert missing == []


def test_packaged_connectors_are_loaded(catalog):
    slack = catalog.lookup("action.slack.post_message")

    assert slack.request is not None
    assert SCOPE_EXTERNAL_REQUEST in slack.required_scopes
    assert "action.airtable.create_record" in catalog
    assert "action.notion.create_page" in catalog


def test_every_connector_operation_has_a_request():
    catalog = build_default_catalog()
    builtin_ids = {t.id for t in BUILTIN_NODE_TYPES}
    connectors = [t for t in catalog if t.id not in builtin_ids]

    assert connectors
    assert all(t.request is not None for t in connectors)


def test_without_connectors():
    catalog = build_default_catalog(include_connectors=False)
    assert len(catalog) == len(BUILTIN_NODE_TYPES)


def test_extra_dirs_add_types(tmp_path):
    descriptor = {
        "app": "todo",
        "operations": [{"operation": "add", "category": "action", "request": {"url": "https://todo.test"}}],
    }
    (tmp_path / "todo.json").write_text(json.dumps(descriptor))

    catalog = build_default_catalog(extra_dirs=[tmp_path])

    assert "action.todo.add" in catalog


def test_conflicting_connector_is_skipped(tmp_path):
    descriptor = {"app": "gmail", "operations": [{"id": "action.gmail.send", "operation": "send", "category": "trigger"}]}
    (tmp_path / "clash.json").write_text(json.dumps(descriptor))

    catalog = build_default_catalog(extra_dirs=[tmp_path])

    assert catalog.lookup("action.gmail.send").category == "action"
