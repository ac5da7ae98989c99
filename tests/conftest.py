import pytest
from unittest.mock import MagicMock

from gtasks_mcp.auth import CredentialStore
from gtasks_mcp.config import Settings
from gtasks_mcp.tools import ToolContext


# --- Canned API responses ---

TASKLIST_API = {
    "kind": "tasks#taskList",
    "id": "list123",
    "etag": '"etag-list"',
    "title": "Groceries",
    "updated": "2025-01-02T00:00:00.000Z",
    "selfLink": "https://www.googleapis.com/tasks/v1/users/@me/lists/list123",
}

TASKLIST_API_LIST = {
    "kind": "tasks#taskLists",
    "items": [TASKLIST_API],
}

TASK_API = {
    "kind": "tasks#task",
    "id": "task456",
    "etag": '"etag-task"',
    "title": "Buy milk",
    "notes": "Y",
    "status": "needsAction",
    "due": "2025-03-19T00:00:00.000Z",
    "position": "00000000000000000000",
    "updated": "2025-01-02T00:00:00.000Z",
    "selfLink": "https://www.googleapis.com/tasks/v1/lists/list123/tasks/task456",
}

TASK_API_LIST = {
    "kind": "tasks#tasks",
    "items": [TASK_API],
}


@pytest.fixture
def settings():
    return Settings(
        google_client_id="test-client-id.apps.googleusercontent.com",
        google_client_secret="test-client-secret",
        _env_file=None,
    )


@pytest.fixture
def mock_service():
    """Stand-in for the googleapiclient Tasks resource."""
    return MagicMock()


@pytest.fixture
def mock_build(mock_service):
    return MagicMock(return_value=mock_service)


@pytest.fixture
def mock_oauth():
    oauth = MagicMock()
    oauth.authorization_url.return_value = "https://accounts.google.com/o/oauth2/auth?client_id=test"
    oauth.exchange_code.return_value = MagicMock(name="credentials")
    return oauth


@pytest.fixture
def mock_flow():
    return MagicMock()


@pytest.fixture
def ctx(mock_oauth, mock_flow, mock_build):
    return ToolContext(store=CredentialStore(), oauth=mock_oauth, flow=mock_flow, build_service=mock_build)


@pytest.fixture
def authed_ctx(ctx):
    ctx.store.set_credentials(MagicMock(name="credentials"))
    return ctx
