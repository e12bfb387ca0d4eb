"""
Shared test fixtures.

Environment is pinned before any knowspark import so settings never pick up
real API keys or write into the working tree.
"""

import os
import tempfile

os.environ["DATA_DIR"] = tempfile.mkdtemp(prefix="knowspark-tests-")
os.environ["API_KEY"] = ""
os.environ["GEMINI_API_KEY"] = ""
os.environ["GROQ_API_KEY"] = ""
os.environ["ANALYTICS_PATH"] = ""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from knowspark.dependencies import get_llm_service, get_project_store
from knowspark.main import app
from knowspark.services.llm_service import LLMService
from knowspark.services.project_store import ProjectStore


HALF_ADDER_GRAPH = (
    '{"nodes":['
    '{"id":"A","data":{"label":"INPUT"},"position":{"x":0,"y":0}},'
    '{"id":"B","data":{"label":"INPUT"},"position":{"x":0,"y":100}},'
    '{"id":"G1","data":{"label":"XOR"},"position":{"x":200,"y":0}},'
    '{"id":"S","data":{"label":"OUTPUT"},"position":{"x":400,"y":0}}'
    '],"edges":['
    '{"id":"e1","source":"A","target":"G1"},'
    '{"id":"e2","source":"B","target":"G1"},'
    '{"id":"e3","source":"G1","target":"S"}'
    ']}'
)

HALF_ADDER_COMPLETION = (
    "```markdown\n"
    "# Half Adder\n\n"
    "The sum is $S = A \\oplus B$ and the carry is $C = A*B$.\n\n"
    "```json\n" + HALF_ADDER_GRAPH + "\n```\n\n"
    "## Summary\n"
    "Two inputs, two outputs.\n"
    "```"
)


@pytest.fixture
def half_adder_graph():
    return HALF_ADDER_GRAPH


@pytest.fixture
def half_adder_completion():
    return HALF_ADDER_COMPLETION


@pytest.fixture
def store(tmp_path):
    """ProjectStore writing into a per-test directory."""
    return ProjectStore(tmp_path)


@pytest.fixture
def llm():
    """Real LLMService with the network call replaced."""
    service = LLMService()
    service.complete = AsyncMock(return_value=HALF_ADDER_COMPLETION)
    return service


@pytest.fixture
def client(store, llm):
    app.dependency_overrides[get_project_store] = lambda: store
    app.dependency_overrides[get_llm_service] = lambda: llm
    yield TestClient(app)
    app.dependency_overrides.clear()
