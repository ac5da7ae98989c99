from typing import Annotated, Literal

from fastmcp import FastMCP
from fastmcp.exceptions import ToolError
from pydantic import Field

from gtasks_mcp import tools
from gtasks_mcp.models.common import ToolResult
from gtasks_mcp.tools import ToolContext

TaskListId = Annotated[str, Field(description="Task list ID")]
TaskId = Annotated[str, Field(description="Task ID")]
DueDate = Annotated[str | None, Field(description="Due date in RFC 3339 format (e.g., 2025-03-19T12:00:00Z)")]


def _respond(result: ToolResult) -> str:
    """Failures become MCP error results (isError=true) carrying the message."""
    if result.is_error:
        raise ToolError(result.text)
    return result.text


def build_server(ctx: ToolContext) -> FastMCP:
    mcp = FastMCP("google-tasks")

    # --- Authorization tools ---

    @mcp.tool(name="authenticate")
    def authenticate() -> str:
        """Get URL to authenticate with Google Tasks"""
        return _respond(tools.authenticate(ctx))

    @mcp.tool(name="set-auth-code")
    def set_auth_code(code: Annotated[str, Field(description="The authentication code received from Google")]) -> str:
        """Set the authentication code received from Google OAuth flow"""
        return _respond(tools.set_auth_code(ctx, code))

    @mcp.tool(name="auth-status")
    def auth_status() -> str:
        """Check whether the server holds Google Tasks credentials and whether an authorization is in progress"""
        return _respond(tools.auth_status(ctx))

    # --- Task list tools ---

    @mcp.tool(name="list-tasklists")
    def list_tasklists() -> str:
        """List all task lists"""
        return _respond(tools.list_tasklists(ctx))

    @mcp.tool(name="get-tasklist")
    def get_tasklist(tasklist: TaskListId) -> str:
        """Get a task list by ID"""
        return _respond(tools.get_tasklist(ctx, tasklist))

    @mcp.tool(name="create-tasklist")
    def create_tasklist(title: Annotated[str, Field(description="Title of the new task list")]) -> str:
        """Create a new task list"""
        return _respond(tools.create_tasklist(ctx, title))

    @mcp.tool(name="update-tasklist")
    def update_tasklist(
        tasklist: TaskListId,
        title: Annotated[str, Field(description="New title for the task list")],
    ) -> str:
        """Update an existing task list"""
        return _respond(tools.update_tasklist(ctx, tasklist, title))

    @mcp.tool(name="delete-tasklist")
    def delete_tasklist(tasklist: Annotated[str, Field(description="Task list ID to delete")]) -> str:
        """Delete a task list"""
        return _respond(tools.delete_tasklist(ctx, tasklist))

    # --- Task tools ---
    # Parameter names are the wire names, hence the camelCase flags.

    @mcp.tool(name="list-tasks")
    def list_tasks(
        tasklist: TaskListId,
        showCompleted: Annotated[bool, Field(description="Whether to include completed tasks")] = True,
        showHidden: Annotated[bool, Field(description="Whether to include hidden tasks")] = False,
        showDeleted: Annotated[bool, Field(description="Whether to include deleted tasks")] = False,
    ) -> str:
        """List all tasks in a task list"""
        return _respond(
            tools.list_tasks(
                ctx, tasklist, show_completed=showCompleted, show_hidden=showHidden, show_deleted=showDeleted,
            )
        )

    @mcp.tool(name="get-task")
    def get_task(tasklist: TaskListId, task: TaskId) -> str:
        """Get a specific task by ID"""
        return _respond(tools.get_task(ctx, tasklist, task))

    @mcp.tool(name="create-task")
    def create_task(
        tasklist: TaskListId,
        title: Annotated[str, Field(description="Title of the task")],
        notes: Annotated[str | None, Field(description="Notes for the task")] = None,
        due: DueDate = None,
    ) -> str:
        """Create a new task in a task list"""
        return _respond(tools.create_task(ctx, tasklist, title, notes=notes, due=due))

    @mcp.tool(name="update-task")
    def update_task(
        tasklist: TaskListId,
        task: TaskId,
        title: Annotated[str | None, Field(description="New title for the task")] = None,
        notes: Annotated[str | None, Field(description="New notes for the task")] = None,
        status: Annotated[Literal["needsAction", "completed"] | None, Field(description="Status of the task")] = None,
        due: DueDate = None,
    ) -> str:
        """Update an existing task. Fields left out keep their current values."""
        return _respond(tools.update_task(ctx, tasklist, task, title=title, notes=notes, status=status, due=due))

    @mcp.tool(name="delete-task")
    def delete_task(tasklist: TaskListId, task: Annotated[str, Field(description="Task ID to delete")]) -> str:
        """Delete a task"""
        return _respond(tools.delete_task(ctx, tasklist, task))

    @mcp.tool(name="complete-task")
    def complete_task(
        tasklist: TaskListId,
        task: Annotated[str, Field(description="Task ID to mark as completed")],
    ) -> str:
        """Mark a task as completed"""
        return _respond(tools.complete_task(ctx, tasklist, task))

    @mcp.tool(name="move-task")
    def move_task(
        tasklist: TaskListId,
        task: Annotated[str, Field(description="Task ID to move")],
        parent: Annotated[str | None, Field(description="Optional new parent task ID")] = None,
        previous: Annotated[str | None, Field(description="Optional previous sibling task ID")] = None,
    ) -> str:
        """Move a task to another position"""
        return _respond(tools.move_task(ctx, tasklist, task, parent=parent, previous=previous))

    @mcp.tool(name="clear-completed-tasks")
    def clear_completed_tasks(tasklist: TaskListId) -> str:
        """Clear all completed tasks from a task list"""
        return _respond(tools.clear_completed_tasks(ctx, tasklist))

    return mcp
