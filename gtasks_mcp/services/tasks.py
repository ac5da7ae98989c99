from datetime import datetime, timezone

import httplib2
from google.auth.exceptions import RefreshError, TransportError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from gtasks_mcp.exceptions import AuthenticationError, IntegrationError, RateLimitError
from gtasks_mcp.models.tasks import TaskItem, TaskListInfo


def build_tasks_service(credentials: Credentials):
    return build("tasks", "v1", credentials=credentials, cache_discovery=False)


def _handle_api_error(e: HttpError):
    if e.resp.status == 429:
        raise RateLimitError("Tasks API rate limit exceeded. Try again shortly.") from e
    if e.resp.status in (401, 403):
        raise AuthenticationError(
            "Tasks credentials expired or revoked. Use the 'authenticate' tool to re-authenticate."
        ) from e
    raise IntegrationError(f"Tasks API error: {e}") from e


def _execute(request) -> dict:
    """Run a prepared request exactly once; upstream faults are never retried."""
    try:
        return request.execute() or {}
    except HttpError as e:
        _handle_api_error(e)
    except RefreshError as e:
        raise AuthenticationError(
            f"Tasks credentials could not be refreshed: {e}. Use the 'authenticate' tool to re-authenticate."
        ) from e
    except (TransportError, httplib2.HttpLib2Error, OSError) as e:
        raise IntegrationError(f"Tasks API request failed: {e}") from e


def _now_rfc3339() -> str:
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


# --- Task Lists ---


def list_task_lists(service) -> list[TaskListInfo]:
    """List all task lists for the authenticated user."""
    result = _execute(service.tasklists().list())
    return [TaskListInfo.model_validate(tl) for tl in result.get("items", [])]


def get_task_list(service, tasklist_id: str) -> TaskListInfo:
    tl = _execute(service.tasklists().get(tasklist=tasklist_id))
    return TaskListInfo.model_validate(tl)


def create_task_list(service, title: str) -> TaskListInfo:
    tl = _execute(service.tasklists().insert(body={"title": title}))
    return TaskListInfo.model_validate(tl)


def update_task_list(service, tasklist_id: str, title: str) -> TaskListInfo:
    tl = _execute(service.tasklists().update(tasklist=tasklist_id, body={"title": title}))
    return TaskListInfo.model_validate(tl)


def delete_task_list(service, tasklist_id: str) -> None:
    _execute(service.tasklists().delete(tasklist=tasklist_id))


# --- Tasks ---


def list_tasks(
    service,
    tasklist_id: str,
    show_completed: bool = True,
    show_hidden: bool = False,
    show_deleted: bool = False,
) -> list[TaskItem]:
    """List tasks in a task list, filtered by the three visibility flags."""
    result = _execute(
        service.tasks().list(
            tasklist=tasklist_id,
            showCompleted=show_completed,
            showHidden=show_hidden,
            showDeleted=show_deleted,
        )
    )
    return [TaskItem.model_validate(t) for t in result.get("items", [])]


def get_task(service, tasklist_id: str, task_id: str) -> TaskItem:
    task = _execute(service.tasks().get(tasklist=tasklist_id, task=task_id))
    return TaskItem.model_validate(task)


def create_task(
    service,
    tasklist_id: str,
    title: str,
    notes: str | None = None,
    due: str | None = None,
) -> TaskItem:
    """Create a new task. New tasks always start as needsAction."""
    body: dict = {"title": title, "status": "needsAction"}
    if notes:
        body["notes"] = notes
    if due:
        body["due"] = due
    task = _execute(service.tasks().insert(tasklist=tasklist_id, body=body))
    return TaskItem.model_validate(task)


def update_task(
    service,
    tasklist_id: str,
    task_id: str,
    title: str | None = None,
    notes: str | None = None,
    status: str | None = None,
    due: str | None = None,
) -> TaskItem:
    """Update an existing task. Only provided fields are changed.

    None leaves a field as it is; an empty string is written through.
    The fetch and the write are not atomic, so a concurrent edit made in
    between is overwritten.
    """
    current = _execute(service.tasks().get(tasklist=tasklist_id, task=task_id))
    if title is not None:
        current["title"] = title
    if notes is not None:
        current["notes"] = notes
    if status is not None:
        current["status"] = status
    if due is not None:
        current["due"] = due
    task = _execute(service.tasks().update(tasklist=tasklist_id, task=task_id, body=current))
    return TaskItem.model_validate(task)


def delete_task(service, tasklist_id: str, task_id: str) -> None:
    _execute(service.tasks().delete(tasklist=tasklist_id, task=task_id))


def complete_task(service, tasklist_id: str, task_id: str) -> TaskItem:
    """Mark a task as completed, stamping the completion time even if it already was."""
    current = _execute(service.tasks().get(tasklist=tasklist_id, task=task_id))
    current["status"] = "completed"
    current["completed"] = _now_rfc3339()
    task = _execute(service.tasks().update(tasklist=tasklist_id, task=task_id, body=current))
    return TaskItem.model_validate(task)


def move_task(
    service,
    tasklist_id: str,
    task_id: str,
    parent: str | None = None,
    previous: str | None = None,
) -> TaskItem:
    params = {"tasklist": tasklist_id, "task": task_id}
    if parent is not None:
        params["parent"] = parent
    if previous is not None:
        params["previous"] = previous
    task = _execute(service.tasks().move(**params))
    return TaskItem.model_validate(task)


def clear_completed_tasks(service, tasklist_id: str) -> None:
    """Hide all completed tasks in a list (the API's bulk clear)."""
    _execute(service.tasks().clear(tasklist=tasklist_id))
