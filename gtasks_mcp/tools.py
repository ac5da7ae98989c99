"""Tool handlers: gate on credentials, validate, make the upstream call, format.

Handlers return a ``ToolResult`` and never raise for expected failures; the
MCP layer decides how a failure is presented.
"""

import json
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

from gtasks_mcp.auth import CredentialStore, GoogleOAuth
from gtasks_mcp.callback import AuthorizationFlow, FlowState
from gtasks_mcp.config import Settings
from gtasks_mcp.exceptions import AuthenticationError, IntegrationError, RateLimitError
from gtasks_mcp.models.common import ErrorKind, ToolResult
from gtasks_mcp.models.tasks import TASK_SUMMARY_FIELDS, TASKLIST_SUMMARY_FIELDS
from gtasks_mcp.services import tasks as tasks_service

logger = logging.getLogger(__name__)

TASK_STATUSES = ("needsAction", "completed")

NOT_AUTHENTICATED = "Not authenticated. Please use the 'authenticate' tool first."

UPSTREAM_ERRORS = (AuthenticationError, IntegrationError, RateLimitError)


@dataclass
class ToolContext:
    """Everything a handler may touch. One per process, passed to every call."""

    store: CredentialStore
    oauth: GoogleOAuth
    flow: AuthorizationFlow
    build_service: Callable[[Any], Any] = tasks_service.build_tasks_service

    def tasks_service(self):
        return self.build_service(self.store.credentials)


def create_context(settings: Settings) -> ToolContext:
    return ToolContext(
        store=CredentialStore(),
        oauth=GoogleOAuth(settings),
        flow=AuthorizationFlow(settings),
    )


def _dump(data: BaseModel | list[BaseModel], include: set[str] | None = None) -> str:
    if isinstance(data, list):
        payload = [item.model_dump(include=include, exclude_none=True) for item in data]
    else:
        payload = data.model_dump(include=include, exclude_none=True)
    return json.dumps(payload, indent=2, ensure_ascii=False)


def _blank(**fields: str) -> ToolResult | None:
    missing = [name for name, value in fields.items() if not isinstance(value, str) or not value.strip()]
    if missing:
        return ToolResult.failure(ErrorKind.VALIDATION, f"Missing required input: {', '.join(missing)}")
    return None


def _guard(ctx: ToolContext, **required: str) -> ToolResult | None:
    """Authentication first, then required inputs. Either failure skips the upstream call."""
    if not ctx.store.is_authenticated():
        return ToolResult.failure(ErrorKind.UNAUTHENTICATED, NOT_AUTHENTICATED)
    return _blank(**required)


def _upstream_failure(action: str, e: Exception) -> ToolResult:
    logger.error("Error %s: %s", action, e)
    return ToolResult.failure(ErrorKind.UPSTREAM, f"Error {action}: {e}")


# --- Authorization ---


def authenticate(ctx: ToolContext) -> ToolResult:
    # A listener left over from an earlier call goes away even if this one fails
    ctx.flow.stop()
    try:
        auth_url = ctx.oauth.authorization_url()
        ctx.flow.start()
    except (AuthenticationError, IntegrationError) as e:
        logger.error("Could not start authentication: %s", e)
        return ToolResult.failure(ErrorKind.AUTH_FLOW, str(e))
    return ToolResult.ok(
        f"Please visit this URL to authenticate with Google Tasks:\n\n{auth_url}\n\n"
        "After authenticating, you'll receive a code. Use the 'set-auth-code' tool with that code."
    )


def set_auth_code(ctx: ToolContext, code: str) -> ToolResult:
    if invalid := _blank(code=code):
        return invalid
    try:
        credentials = ctx.oauth.exchange_code(code)
    except AuthenticationError as e:
        return ToolResult.failure(ErrorKind.AUTH_FLOW, str(e))
    ctx.store.set_credentials(credentials)
    ctx.flow.stop()
    return ToolResult.ok("Authentication successful! You can now use the Google Tasks tools.")


def auth_status(ctx: ToolContext) -> ToolResult:
    lines = ["Authenticated" if ctx.store.is_authenticated() else "Not authenticated"]
    if ctx.flow.state == FlowState.AWAITING_CODE:
        lines.append(f"Waiting for the authorization callback at {ctx.flow.settings.redirect_uri}")
    return ToolResult.ok("\n".join(lines))


# --- Task Lists ---


def list_tasklists(ctx: ToolContext) -> ToolResult:
    if rejected := _guard(ctx):
        return rejected
    try:
        task_lists = tasks_service.list_task_lists(ctx.tasks_service())
    except UPSTREAM_ERRORS as e:
        return _upstream_failure("listing task lists", e)
    if not task_lists:
        return ToolResult.ok("No task lists found.")
    return ToolResult.ok(_dump(task_lists, include=TASKLIST_SUMMARY_FIELDS))


def get_tasklist(ctx: ToolContext, tasklist: str) -> ToolResult:
    if rejected := _guard(ctx, tasklist=tasklist):
        return rejected
    try:
        task_list = tasks_service.get_task_list(ctx.tasks_service(), tasklist)
    except UPSTREAM_ERRORS as e:
        return _upstream_failure("getting task list", e)
    return ToolResult.ok(_dump(task_list))


def create_tasklist(ctx: ToolContext, title: str) -> ToolResult:
    if rejected := _guard(ctx, title=title):
        return rejected
    try:
        task_list = tasks_service.create_task_list(ctx.tasks_service(), title)
    except UPSTREAM_ERRORS as e:
        return _upstream_failure("creating task list", e)
    return ToolResult.ok(f"Task list created successfully:\n\n{_dump(task_list)}")


def update_tasklist(ctx: ToolContext, tasklist: str, title: str) -> ToolResult:
    if rejected := _guard(ctx, tasklist=tasklist, title=title):
        return rejected
    try:
        task_list = tasks_service.update_task_list(ctx.tasks_service(), tasklist, title)
    except UPSTREAM_ERRORS as e:
        return _upstream_failure("updating task list", e)
    return ToolResult.ok(f"Task list updated successfully:\n\n{_dump(task_list)}")


def delete_tasklist(ctx: ToolContext, tasklist: str) -> ToolResult:
    if rejected := _guard(ctx, tasklist=tasklist):
        return rejected
    try:
        tasks_service.delete_task_list(ctx.tasks_service(), tasklist)
    except UPSTREAM_ERRORS as e:
        return _upstream_failure("deleting task list", e)
    return ToolResult.ok(f"Task list with ID '{tasklist}' was successfully deleted.")


# --- Tasks ---


def list_tasks(
    ctx: ToolContext,
    tasklist: str,
    show_completed: bool = True,
    show_hidden: bool = False,
    show_deleted: bool = False,
) -> ToolResult:
    if rejected := _guard(ctx, tasklist=tasklist):
        return rejected
    try:
        items = tasks_service.list_tasks(
            ctx.tasks_service(),
            tasklist,
            show_completed=show_completed,
            show_hidden=show_hidden,
            show_deleted=show_deleted,
        )
    except UPSTREAM_ERRORS as e:
        return _upstream_failure("listing tasks", e)
    if not items:
        return ToolResult.ok("No tasks found in this list.")
    return ToolResult.ok(_dump(items, include=TASK_SUMMARY_FIELDS))


def get_task(ctx: ToolContext, tasklist: str, task: str) -> ToolResult:
    if rejected := _guard(ctx, tasklist=tasklist, task=task):
        return rejected
    try:
        item = tasks_service.get_task(ctx.tasks_service(), tasklist, task)
    except UPSTREAM_ERRORS as e:
        return _upstream_failure("getting task", e)
    return ToolResult.ok(_dump(item))


def create_task(
    ctx: ToolContext,
    tasklist: str,
    title: str,
    notes: str | None = None,
    due: str | None = None,
) -> ToolResult:
    if rejected := _guard(ctx, tasklist=tasklist, title=title):
        return rejected
    try:
        item = tasks_service.create_task(ctx.tasks_service(), tasklist, title, notes=notes, due=due)
    except UPSTREAM_ERRORS as e:
        return _upstream_failure("creating task", e)
    return ToolResult.ok(f"Task created successfully:\n\n{_dump(item)}")


def update_task(
    ctx: ToolContext,
    tasklist: str,
    task: str,
    title: str | None = None,
    notes: str | None = None,
    status: str | None = None,
    due: str | None = None,
) -> ToolResult:
    if rejected := _guard(ctx, tasklist=tasklist, task=task):
        return rejected
    if status is not None and status not in TASK_STATUSES:
        return ToolResult.failure(
            ErrorKind.VALIDATION, f"Invalid status '{status}'. Expected one of: {', '.join(TASK_STATUSES)}"
        )
    try:
        item = tasks_service.update_task(
            ctx.tasks_service(), tasklist, task, title=title, notes=notes, status=status, due=due,
        )
    except UPSTREAM_ERRORS as e:
        return _upstream_failure("updating task", e)
    return ToolResult.ok(f"Task updated successfully:\n\n{_dump(item)}")


def delete_task(ctx: ToolContext, tasklist: str, task: str) -> ToolResult:
    if rejected := _guard(ctx, tasklist=tasklist, task=task):
        return rejected
    try:
        tasks_service.delete_task(ctx.tasks_service(), tasklist, task)
    except UPSTREAM_ERRORS as e:
        return _upstream_failure("deleting task", e)
    return ToolResult.ok(f"Task with ID '{task}' was successfully deleted.")


def complete_task(ctx: ToolContext, tasklist: str, task: str) -> ToolResult:
    if rejected := _guard(ctx, tasklist=tasklist, task=task):
        return rejected
    try:
        item = tasks_service.complete_task(ctx.tasks_service(), tasklist, task)
    except UPSTREAM_ERRORS as e:
        return _upstream_failure("completing task", e)
    return ToolResult.ok(f"Task marked as completed:\n\n{_dump(item)}")


def move_task(
    ctx: ToolContext,
    tasklist: str,
    task: str,
    parent: str | None = None,
    previous: str | None = None,
) -> ToolResult:
    if rejected := _guard(ctx, tasklist=tasklist, task=task):
        return rejected
    try:
        item = tasks_service.move_task(ctx.tasks_service(), tasklist, task, parent=parent, previous=previous)
    except UPSTREAM_ERRORS as e:
        return _upstream_failure("moving task", e)
    return ToolResult.ok(f"Task moved successfully:\n\n{_dump(item)}")


def clear_completed_tasks(ctx: ToolContext, tasklist: str) -> ToolResult:
    if rejected := _guard(ctx, tasklist=tasklist):
        return rejected
    try:
        tasks_service.clear_completed_tasks(ctx.tasks_service(), tasklist)
    except UPSTREAM_ERRORS as e:
        return _upstream_failure("clearing completed tasks", e)
    return ToolResult.ok(f"All completed tasks in list '{tasklist}' have been cleared.")
