import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import httplib2
from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError

from gtasks_mcp.exceptions import AuthenticationError, IntegrationError, RateLimitError
from gtasks_mcp.models.tasks import TaskItem, TaskListInfo
from gtasks_mcp.services import tasks as tasks_service
from conftest import TASK_API, TASK_API_LIST, TASKLIST_API, TASKLIST_API_LIST


def _parse_rfc3339(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class TestTaskLists:
    def test_list_returns_models(self, mock_service):
        mock_service.tasklists().list().execute.return_value = TASKLIST_API_LIST
        result = tasks_service.list_task_lists(mock_service)
        assert len(result) == 1
        assert isinstance(result[0], TaskListInfo)
        assert result[0].id == "list123"
        assert result[0].updated == "2025-01-02T00:00:00.000Z"

    def test_list_without_items_key(self, mock_service):
        mock_service.tasklists().list().execute.return_value = {"kind": "tasks#taskLists"}
        assert tasks_service.list_task_lists(mock_service) == []

    def test_get_keeps_extra_fields(self, mock_service):
        mock_service.tasklists().get().execute.return_value = TASKLIST_API
        result = tasks_service.get_task_list(mock_service, "list123")
        assert result.title == "Groceries"
        assert result.model_dump()["selfLink"] == TASKLIST_API["selfLink"]
        mock_service.tasklists().get.assert_called_with(tasklist="list123")

    def test_create_sends_title(self, mock_service):
        mock_service.tasklists().insert().execute.return_value = TASKLIST_API
        tasks_service.create_task_list(mock_service, "Groceries")
        mock_service.tasklists().insert.assert_called_with(body={"title": "Groceries"})

    def test_update_renames(self, mock_service):
        mock_service.tasklists().update().execute.return_value = {**TASKLIST_API, "title": "Food"}
        result = tasks_service.update_task_list(mock_service, "list123", "Food")
        assert result.title == "Food"
        mock_service.tasklists().update.assert_called_with(tasklist="list123", body={"title": "Food"})

    def test_delete_handles_empty_body(self, mock_service):
        mock_service.tasklists().delete().execute.return_value = ""
        assert tasks_service.delete_task_list(mock_service, "list123") is None
        mock_service.tasklists().delete.assert_called_with(tasklist="list123")


class TestListTasks:
    def test_default_flags_passed_through(self, mock_service):
        mock_service.tasks().list().execute.return_value = TASK_API_LIST
        result = tasks_service.list_tasks(mock_service, "list123")
        mock_service.tasks().list.assert_called_with(
            tasklist="list123", showCompleted=True, showHidden=False, showDeleted=False,
        )
        assert isinstance(result[0], TaskItem)
        assert result[0].notes == "Y"

    def test_explicit_flags_passed_through(self, mock_service):
        mock_service.tasks().list().execute.return_value = {}
        tasks_service.list_tasks(mock_service, "list123", show_completed=False, show_hidden=True, show_deleted=True)
        mock_service.tasks().list.assert_called_with(
            tasklist="list123", showCompleted=False, showHidden=True, showDeleted=True,
        )

    def test_empty_list(self, mock_service):
        mock_service.tasks().list().execute.return_value = {"items": []}
        assert tasks_service.list_tasks(mock_service, "list123") == []


class TestCreateTask:
    def test_status_is_needs_action(self, mock_service):
        mock_service.tasks().insert().execute.return_value = TASK_API
        tasks_service.create_task(mock_service, "list123", "Buy milk")
        mock_service.tasks().insert.assert_called_with(
            tasklist="list123", body={"title": "Buy milk", "status": "needsAction"},
        )

    def test_optional_fields_included(self, mock_service):
        mock_service.tasks().insert().execute.return_value = TASK_API
        tasks_service.create_task(mock_service, "list123", "Buy milk", notes="2%", due="2025-03-19T12:00:00Z")
        body = mock_service.tasks().insert.call_args.kwargs["body"]
        assert body["notes"] == "2%"
        assert body["due"] == "2025-03-19T12:00:00Z"


class TestUpdateTask:
    def _setup(self, mock_service, current=TASK_API):
        mock_service.tasks().get().execute.side_effect = lambda: dict(current)
        mock_service.tasks().update().execute.side_effect = lambda: dict(
            mock_service.tasks.return_value.update.call_args.kwargs["body"]
        )

    def _written_body(self, mock_service) -> dict:
        return mock_service.tasks.return_value.update.call_args.kwargs["body"]

    def test_preserves_unmentioned_fields(self, mock_service):
        self._setup(mock_service)
        result = tasks_service.update_task(mock_service, "list123", "task456", title="X")
        body = self._written_body(mock_service)
        assert body["title"] == "X"
        assert body["notes"] == "Y"
        assert body["status"] == "needsAction"
        assert body["due"] == TASK_API["due"]
        assert body["etag"] == TASK_API["etag"]
        assert result.title == "X"

    def test_empty_string_is_applied(self, mock_service):
        self._setup(mock_service)
        tasks_service.update_task(mock_service, "list123", "task456", notes="")
        body = self._written_body(mock_service)
        assert body["notes"] == ""
        assert body["title"] == "Buy milk"

    def test_all_fields_applied(self, mock_service):
        self._setup(mock_service)
        tasks_service.update_task(
            mock_service, "list123", "task456",
            title="T", notes="N", status="completed", due="2025-04-01T00:00:00Z",
        )
        body = self._written_body(mock_service)
        assert (body["title"], body["notes"], body["status"], body["due"]) == (
            "T", "N", "completed", "2025-04-01T00:00:00Z",
        )

    def test_writes_to_same_task(self, mock_service):
        self._setup(mock_service)
        tasks_service.update_task(mock_service, "list123", "task456", title="X")
        call = mock_service.tasks.return_value.update.call_args
        assert call.kwargs["tasklist"] == "list123"
        assert call.kwargs["task"] == "task456"


class TestCompleteTask:
    def test_sets_status_and_timestamp(self, mock_service):
        mock_service.tasks().get().execute.side_effect = lambda: dict(TASK_API)
        mock_service.tasks().update().execute.return_value = {**TASK_API, "status": "completed"}
        before = datetime.now(timezone.utc)
        tasks_service.complete_task(mock_service, "list123", "task456")
        after = datetime.now(timezone.utc)
        body = mock_service.tasks.return_value.update.call_args.kwargs["body"]
        assert body["status"] == "completed"
        assert body["notes"] == "Y"
        completed = _parse_rfc3339(body["completed"])
        # The timestamp is truncated to milliseconds
        assert before - timedelta(milliseconds=1) <= completed <= after
        assert body["completed"].endswith("Z")

    def test_completing_twice_refreshes_timestamp(self, mock_service, mocker):
        mocker.patch.object(
            tasks_service, "_now_rfc3339",
            side_effect=["2025-03-19T12:00:00.000Z", "2025-03-19T12:05:00.000Z"],
        )
        mock_service.tasks().get().execute.side_effect = [
            dict(TASK_API),
            {**TASK_API, "status": "completed", "completed": "2025-03-19T12:00:00.000Z"},
        ]
        mock_service.tasks().update().execute.return_value = {**TASK_API, "status": "completed"}
        tasks_service.complete_task(mock_service, "list123", "task456")
        tasks_service.complete_task(mock_service, "list123", "task456")
        bodies = [c.kwargs["body"] for c in mock_service.tasks.return_value.update.call_args_list if c.kwargs]
        assert [b["completed"] for b in bodies] == ["2025-03-19T12:00:00.000Z", "2025-03-19T12:05:00.000Z"]
        assert all(b["status"] == "completed" for b in bodies)


class TestMoveAndClear:
    def test_move_without_position_args(self, mock_service):
        mock_service.tasks().move().execute.return_value = TASK_API
        tasks_service.move_task(mock_service, "list123", "task456")
        mock_service.tasks().move.assert_called_with(tasklist="list123", task="task456")

    def test_move_with_parent_and_previous(self, mock_service):
        mock_service.tasks().move().execute.return_value = {**TASK_API, "parent": "p1"}
        result = tasks_service.move_task(mock_service, "list123", "task456", parent="p1", previous="s1")
        mock_service.tasks().move.assert_called_with(tasklist="list123", task="task456", parent="p1", previous="s1")
        assert result.parent == "p1"

    def test_clear(self, mock_service):
        mock_service.tasks().clear().execute.return_value = ""
        tasks_service.clear_completed_tasks(mock_service, "list123")
        mock_service.tasks().clear.assert_called_with(tasklist="list123")


class TestErrorHandling:
    def _make_http_error(self, status):
        resp = MagicMock()
        resp.status = status
        return HttpError(resp=resp, content=b"error")

    def test_401_raises_auth_error(self, mock_service):
        mock_service.tasklists().list().execute.side_effect = self._make_http_error(401)
        with pytest.raises(AuthenticationError):
            tasks_service.list_task_lists(mock_service)

    def test_429_raises_rate_limit(self, mock_service):
        mock_service.tasks().get().execute.side_effect = self._make_http_error(429)
        with pytest.raises(RateLimitError):
            tasks_service.get_task(mock_service, "list123", "task456")

    def test_404_raises_integration_error(self, mock_service):
        mock_service.tasks().get().execute.side_effect = self._make_http_error(404)
        with pytest.raises(IntegrationError):
            tasks_service.get_task(mock_service, "list123", "missing")

    def test_refresh_error_raises_auth_error(self, mock_service):
        mock_service.tasklists().list().execute.side_effect = RefreshError("invalid_grant")
        with pytest.raises(AuthenticationError, match="invalid_grant"):
            tasks_service.list_task_lists(mock_service)

    def test_transport_error_raises_integration_error(self, mock_service):
        mock_service.tasklists().list().execute.side_effect = httplib2.ServerNotFoundError("no route")
        with pytest.raises(IntegrationError, match="no route"):
            tasks_service.list_task_lists(mock_service)

    def test_update_not_written_when_fetch_fails(self, mock_service):
        mock_service.tasks().get().execute.side_effect = self._make_http_error(404)
        with pytest.raises(IntegrationError):
            tasks_service.update_task(mock_service, "list123", "task456", title="X")
        mock_service.tasks.return_value.update.assert_not_called()

    def test_requests_are_not_retried(self, mock_service):
        mock_service.tasklists().list().execute.side_effect = self._make_http_error(500)
        with pytest.raises(IntegrationError):
            tasks_service.list_task_lists(mock_service)
        mock_service.tasklists().list().execute.assert_called_once_with()
