"""Root-level test configuration and fixtures."""

import pytest

from scriptflow.catalog import NodeCatalog, build_default_catalog
from scriptflow.core.graph_model import NodeGraph
from scriptflow.core.graph_schema import load_graph_document
from scriptflow.core.settings import SettingsManager
from tests.shared.graphs import weekly_digest
from tests.shared.llm_mock import create_mock_get_model


@pytest.fixture(autouse=True, scope="function")
def mock_llm_calls(monkeypatch, request):
    """Auto-applied fixture that mocks all LLM calls to prevent API usage.

    Tests configure responses through the ``mock_llm`` fixture.
    """
    mock_get_model = create_mock_get_model()
    monkeypatch.setattr("llm.get_model", mock_get_model)
    request.node.mock_llm = mock_get_model

    yield mock_get_model

    mock_get_model.reset()


@pytest.fixture
def mock_llm(request):
    """The auto-applied ``llm.get_model`` mock for this test.

    Usage:
        def test_something(mock_llm):
            mock_llm.queue_response('{"questions": [...]}')
    """
    return request.node.mock_llm


@pytest.fixture(autouse=True, scope="function")
def isolate_scriptflow_config(tmp_path, monkeypatch):
    """Keep tests away from ~/.scriptflow and from SCRIPTFLOW_* variables in the environment."""
    test_settings_path = tmp_path / ".scriptflow" / "settings.json"

    original_init = SettingsManager.__init__

    def patched_settings_init(self, *args, **kwargs):
        if "settings_path" not in kwargs and (len(args) < 1 or args[0] is None):
            kwargs["settings_path"] = test_settings_path
        original_init(self, *args, **kwargs)

    monkeypatch.setattr(SettingsManager, "__init__", patched_settings_init)

    for name in (
        "SCRIPTFLOW_MODEL",
        "SCRIPTFLOW_TOOL_TIMEOUT",
        "SCRIPTFLOW_MAX_FIX_ATTEMPTS",
        "SCRIPTFLOW_TIME_ZONE",
        "SCRIPTFLOW_CATALOG_DIRS",
    ):
        monkeypatch.delenv(name, raising=False)

    return {"settings_path": test_settings_path}


@pytest.fixture(scope="session")
def catalog() -> NodeCatalog:
    """The default frozen catalog; safe to share because it is read-only."""
    return build_default_catalog()


@pytest.fixture
def weekly_digest_graph() -> NodeGraph:
    return load_graph_document(weekly_digest())
