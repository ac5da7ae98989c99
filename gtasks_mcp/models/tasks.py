from pydantic import BaseModel, ConfigDict

# Upstream representations carry more fields (kind, etag, selfLink, links, ...)
# than we name here; they are kept so results serialize in full.


class TaskListInfo(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    title: str | None = None
    updated: str | None = None


class TaskItem(BaseModel):
    model_config = ConfigDict(extra="allow")

    id: str
    title: str | None = None
    status: str | None = None  # "needsAction" or "completed"
    due: str | None = None
    notes: str | None = None
    completed: str | None = None
    parent: str | None = None
    position: str | None = None


TASKLIST_SUMMARY_FIELDS = {"id", "title", "updated"}
TASK_SUMMARY_FIELDS = {"id", "title", "status", "due", "notes", "completed"}
