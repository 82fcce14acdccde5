"""Pydantic request/response models for the API."""

from typing import List, Optional

from pydantic import BaseModel, Field


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(..., description="Service status ('healthy' or 'unhealthy')")
    version: str = Field(..., description="Service version")
    translation_enabled: bool = Field(..., description="Whether translation is enabled")
    redis_configured: bool = Field(..., description="Whether a Redis connection is available")
    translator_configured: bool = Field(
        ..., description="Whether the translator endpoint and subscription key are set"
    )


class ErrorResponse(BaseModel):
    """Error response model."""

    error: str = Field(..., description="Error type/code")
    message: str = Field(..., description="Human-readable error message")


class TranslationSubmitRequest(BaseModel):
    """Request to translate a stored chat message."""

    targetLanguages: List[str] = Field(
        ...,
        min_length=1,
        description="Target language codes. English is always added.",
    )
    sourceLanguage: Optional[str] = Field(
        default=None,
        description="Source language code; auto-detected when omitted",
    )
    deploymentName: Optional[str] = Field(
        default=None,
        description="Translator model deployment to use",
    )


class TranslationJobResponse(BaseModel):
    """Response after a translation job is queued."""

    jobId: str = Field(..., description="Translation job identifier")
    messageId: int = Field(..., description="Id of the message being translated")
    status: str = Field(default="pending", description="Message translation status")
    targetLanguages: List[str] = Field(..., description="Normalized target languages")


class WorkerStats(BaseModel):
    """Background worker counters."""

    running: bool = Field(..., description="Whether the dequeue loop is running")
    active: int = Field(..., description="Jobs currently being processed")
    completed: int = Field(..., description="Jobs completed since start")
    failed: int = Field(..., description="Jobs failed permanently since start")
    retried: int = Field(..., description="Automatic retries since start")
    requeued_on_shutdown: int = Field(..., description="Jobs returned to the queue on shutdown")


class QueueStatusResponse(BaseModel):
    """Translation queue status."""

    enabled: bool = Field(..., description="Whether the queue accepts jobs")
    queueName: str = Field(..., description="Redis list holding the jobs")
    length: int = Field(..., description="Number of waiting jobs")
    maxConcurrentJobs: int = Field(..., description="Worker concurrency limit")
    worker: Optional[WorkerStats] = Field(default=None, description="Worker statistics")


class JobDeleteResponse(BaseModel):
    """Response for job removal."""

    jobId: str = Field(..., description="The job ID")
    removed: bool = Field(..., description="Whether the job was removed")
    message: str = Field(..., description="Operation result message")
