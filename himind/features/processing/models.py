"""
Processing models - content payloads, jobs and statistics.

Content payloads form a closed union discriminated on ``type``. Required
fields are enforced when the payload is parsed, so a job can only be
enqueued for content the ingestion service is able to process.
"""

from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, field_validator

from himind.features.extraction.base import ExtractedStatement


class Priority(str, Enum):
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def weight(self) -> int:
        """Numeric weight used for ordering (higher is claimed first)."""
        return PRIORITY_WEIGHTS[self]


PRIORITY_WEIGHTS = {Priority.HIGH: 3, Priority.NORMAL: 2, Priority.LOW: 1}


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    RETRYING = "retrying"


# ===================== Content payloads =====================

class _ContentBase(BaseModel):
    external_id: str = Field(..., min_length=1)
    body: str = Field(..., min_length=1)
    author_external_id: str = Field(..., min_length=1)
    platform_created_at: datetime
    external_url: Optional[str] = None
    title: Optional[str] = None
    parent_external_id: Optional[str] = None
    raw_content: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("body")
    @classmethod
    def _body_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("body must not be blank")
        return value

    @property
    def platform(self) -> str:
        return self.type.split("_", 1)[0]

    @property
    def text(self) -> str:
        """Title and body as fed to the extractor and the embedder."""
        if self.title:
            return f"{self.title}\n\n{self.body}"
        return self.body


class SlackMessage(_ContentBase):
    type: Literal["slack_message"] = "slack_message"
    channel: Optional[str] = None


class SlackThread(_ContentBase):
    type: Literal["slack_thread"] = "slack_thread"
    channel: Optional[str] = None
    reply_count: int = 0


class GitHubPullRequest(_ContentBase):
    type: Literal["github_pr"] = "github_pr"
    repository: Optional[str] = None
    number: Optional[int] = None


class GitHubIssue(_ContentBase):
    type: Literal["github_issue"] = "github_issue"
    repository: Optional[str] = None
    number: Optional[int] = None


class GitHubComment(_ContentBase):
    type: Literal["github_comment"] = "github_comment"
    repository: Optional[str] = None


ContentSource = Annotated[
    Union[SlackMessage, SlackThread, GitHubPullRequest, GitHubIssue, GitHubComment],
    Field(discriminator="type"),
]

CONTENT_TYPES = ["slack_message", "slack_thread", "github_pr", "github_issue", "github_comment"]

_content_adapter = TypeAdapter(ContentSource)


def parse_content(data: Union[Dict[str, Any], BaseModel]) -> "ContentSource":
    """Validate a raw payload into one of the content variants.

    Raises:
        pydantic.ValidationError: unknown ``type`` or missing required fields
    """
    if isinstance(data, BaseModel):
        data = data.model_dump()
    return _content_adapter.validate_python(data)


# ===================== Jobs =====================

class ProcessingJob(BaseModel):
    id: str
    content_type: str
    content_data: Dict[str, Any]
    priority: Priority = Priority.NORMAL
    status: JobStatus = JobStatus.PENDING
    retry_count: int = 0
    max_retries: int = 3
    created_at: datetime
    updated_at: Optional[datetime] = None
    scheduled_for: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None
    processing_metadata: Dict[str, Any] = Field(default_factory=dict)
    processing_time_ms: Optional[int] = None

    @property
    def content(self) -> "ContentSource":
        return parse_content(self.content_data)


class ProcessingStats(BaseModel):
    total: int = 0
    pending: int = 0
    processing: int = 0
    completed: int = 0
    failed: int = 0
    retrying: int = 0
    avg_processing_time_ms: float = 0.0
    throughput_per_hour: float = 0.0


class HealthCheck(BaseModel):
    name: str
    status: Literal["pass", "fail"]
    details: Optional[str] = None


class HealthStatus(BaseModel):
    status: Literal["healthy", "degraded", "unhealthy"]
    checks: List[HealthCheck] = Field(default_factory=list)


class IngestionTopic(BaseModel):
    id: str
    name: str
    canonical_name: str
    keywords: List[str] = Field(default_factory=list)
    relevance_score: float = 0.0


class IngestionResult(BaseModel):
    content_artifact_id: str
    statements: List[ExtractedStatement] = Field(default_factory=list)
    topics: List[IngestionTopic] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    already_processed: bool = False


__all__ = [
    "CONTENT_TYPES",
    "ContentSource",
    "GitHubComment",
    "GitHubIssue",
    "GitHubPullRequest",
    "HealthCheck",
    "HealthStatus",
    "IngestionResult",
    "IngestionTopic",
    "JobStatus",
    "Priority",
    "ProcessingJob",
    "ProcessingStats",
    "SlackMessage",
    "SlackThread",
    "parse_content",
]
