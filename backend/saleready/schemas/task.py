from enum import Enum
from pydantic import BaseModel, field_validator
from typing import Optional, Any, List
from datetime import datetime


class TaskCategory(str, Enum):
    FINANCIAL = "financial"
    LEGAL = "legal"
    OPERATIONS = "operations"
    DOCUMENTATION = "documentation"
    CUSTOMERS = "customers"
    PERSONNEL = "personnel"
    STRATEGY = "strategy"


class TaskType(str, Enum):
    CHECKBOX = "checkbox"
    MULTIPLE_CHOICE = "multiple_choice"
    TEXT_INPUT = "text_input"
    DOCUMENT_UPLOAD = "document_upload"
    EXPLANATION = "explanation"
    CONTACT_INFO = "contact_info"


class Level(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class CompletionStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


def _non_empty_title(v):
    v = str(v if v is not None else "").strip()
    if not v:
        raise ValueError("Task title is required")
    return v


class TaskBase(BaseModel):
    title: str
    description: Optional[str] = None
    category: TaskCategory
    type: TaskType
    priority: Level = Level.MEDIUM
    impact: Optional[Level] = None
    completion_status: CompletionStatus = CompletionStatus.NOT_STARTED
    options: Optional[List[str]] = None
    value: Optional[Any] = None
    dd_related: bool = False

    @field_validator("title", mode="before")
    @classmethod
    def check_title(cls, v):
        return _non_empty_title(v)

    class Config:
        from_attributes = True
        use_enum_values = True


class TaskCreate(TaskBase):
    company_id: str


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    category: Optional[TaskCategory] = None
    type: Optional[TaskType] = None
    priority: Optional[Level] = None
    impact: Optional[Level] = None
    completion_status: Optional[CompletionStatus] = None
    options: Optional[List[str]] = None
    value: Optional[Any] = None
    dd_related: Optional[bool] = None

    @field_validator("title", mode="before")
    @classmethod
    def check_title(cls, v):
        return _non_empty_title(v)

    @field_validator("category", "type", "priority", "completion_status", "dd_related", mode="before")
    @classmethod
    def not_null(cls, v):
        if v is None:
            raise ValueError("Field cannot be null")
        return v

    class Config:
        use_enum_values = True


class Task(TaskBase):
    id: str
    company_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
