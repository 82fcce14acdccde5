"""FastAPI API endpoints for message translation."""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

from chat_translation.api.models import (
    ErrorResponse,
    HealthResponse,
    JobDeleteResponse,
    QueueStatusResponse,
    TranslationJobResponse,
    TranslationSubmitRequest,
    WorkerStats,
)
from chat_translation.config import Settings
from chat_translation.core.log_sanitizer import sanitize_for_log
from chat_translation.core.manual_retry import ManualRetryError, ManualRetryHandler, TranslationSubmitter
from chat_translation.core.translator import TranslationClient
from chat_translation.messages.store import MessageNotFoundError
from chat_translation.queue.job_queue import JobQueueError, QueueUnavailableError, TranslationJobQueue
from chat_translation.queue.worker import TranslationWorker

logger = logging.getLogger(__name__)

# Create routers
health_router = APIRouter(tags=["Health"])
api_router = APIRouter(prefix="/api/v1", tags=["Translation"])


# Dependencies: the pipeline objects are built in the app lifespan and kept on app.state


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_job_queue(request: Request) -> TranslationJobQueue:
    return request.app.state.job_queue


def get_translation_client(request: Request) -> TranslationClient:
    return request.app.state.translation_client


def get_worker(request: Request) -> Optional[TranslationWorker]:
    return getattr(request.app.state, "worker", None)


def get_retry_handler(request: Request) -> ManualRetryHandler:
    return request.app.state.retry_handler


def get_submitter(request: Request) -> TranslationSubmitter:
    return request.app.state.submitter


SettingsDep = Annotated[Settings, Depends(get_app_settings)]
QueueDep = Annotated[TranslationJobQueue, Depends(get_job_queue)]
ClientDep = Annotated[TranslationClient, Depends(get_translation_client)]
WorkerDep = Annotated[Optional[TranslationWorker], Depends(get_worker)]
RetryHandlerDep = Annotated[ManualRetryHandler, Depends(get_retry_handler)]
SubmitterDep = Annotated[TranslationSubmitter, Depends(get_submitter)]


def _queue_unavailable(e: Exception) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail={
            "error": "queue_unavailable",
            "message": str(e) or "Translation queue is not available",
        },
    )


@health_router.get(
    "/health",
    response_model=HealthResponse,
    summary="Health Check",
    description="Check if the service is healthy and properly configured.",
)
async def health_check(settings: SettingsDep, queue: QueueDep, client: ClientDep) -> HealthResponse:
    """
    Health check endpoint.

    Returns service status and configuration state.
    """
    # Only check the translator when it is configured
    is_healthy = True
    if settings.translator_configured:
        try:
            is_healthy = await client.health_check()
        except Exception as e:
            logger.warning(f"Health check failed: {e}")
            is_healthy = False

    return HealthResponse(
        status="healthy" if is_healthy else "unhealthy",
        version="1.0.0",
        translation_enabled=settings.translation_enabled,
        redis_configured=queue.enabled,
        translator_configured=settings.translator_configured,
    )


@api_router.post(
    "/messages/{message_id}/translation",
    response_model=TranslationJobResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Queue Message Translation",
    description="Mark a message as pending translation and queue a translation job.",
    responses={
        404: {"model": ErrorResponse, "description": "Message not found"},
        503: {"model": ErrorResponse, "description": "Translation queue unavailable"},
    },
)
async def submit_translation(
    message_id: int,
    request: TranslationSubmitRequest,
    submitter: SubmitterDep,
) -> TranslationJobResponse:
    """Queue translation of a stored message. Returns without waiting for the result."""
    try:
        job = await submitter.submit(
            message_id,
            request.targetLanguages,
            source_language=request.sourceLanguage,
            deployment_name=request.deploymentName,
        )
    except MessageNotFoundError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "message_not_found", "message": str(e)},
        )
    except (QueueUnavailableError, JobQueueError) as e:
        raise _queue_unavailable(e)

    return TranslationJobResponse(
        jobId=job.job_id,
        messageId=job.message_id,
        status="pending",
        targetLanguages=job.target_languages,
    )


@api_router.post(
    "/messages/{message_id}/translation/retry",
    response_model=TranslationJobResponse,
    summary="Retry Failed Translation",
    description=(
        "Retry a failed translation. The job is placed at the head of the queue "
        "with a fresh retry budget."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Translation disabled or not in failed state"},
        401: {"model": ErrorResponse, "description": "Caller identity missing"},
        403: {"model": ErrorResponse, "description": "Caller is not a member of the room"},
        404: {"model": ErrorResponse, "description": "Message not found"},
        503: {"model": ErrorResponse, "description": "Translation queue unavailable"},
    },
)
async def retry_translation(
    message_id: int,
    retry_handler: RetryHandlerDep,
    user_name: Annotated[Optional[str], Header(alias="X-User-Name")] = None,
) -> TranslationJobResponse:
    """
    Retry a failed message translation.

    The caller identity comes from the ``X-User-Name`` header set by the
    upstream authentication layer.
    """
    if not user_name:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={
                "error": "unauthenticated",
                "message": "Caller identity is required",
            },
        )

    try:
        job = await retry_handler.retry(message_id, user_name)
    except ManualRetryError as e:
        logger.info(
            f"Manual retry of message {message_id} by {sanitize_for_log(user_name)} rejected: {e.code}"
        )
        raise HTTPException(
            status_code=e.status_code,
            detail={"error": e.code, "message": e.message},
        )
    except (QueueUnavailableError, JobQueueError) as e:
        raise _queue_unavailable(e)

    return TranslationJobResponse(
        jobId=job.job_id,
        messageId=job.message_id,
        status="pending",
        targetLanguages=job.target_languages,
    )


@api_router.get(
    "/translation/queue",
    response_model=QueueStatusResponse,
    summary="Translation Queue Status",
    description="Get the number of waiting jobs and worker statistics.",
)
async def get_queue_status(
    settings: SettingsDep,
    queue: QueueDep,
    worker: WorkerDep,
) -> QueueStatusResponse:
    """Get translation queue status."""
    return QueueStatusResponse(
        enabled=queue.enabled,
        queueName=queue.queue_name,
        length=await queue.queue_length(),
        maxConcurrentJobs=settings.translation_max_concurrent_jobs,
        worker=WorkerStats(**worker.stats()) if worker is not None else None,
    )


@api_router.delete(
    "/translation/jobs/{job_id}",
    response_model=JobDeleteResponse,
    summary="Remove Queued Job",
    description="Remove a job that is still waiting in the queue.",
    responses={
        404: {"model": ErrorResponse, "description": "Job not found in queue"},
    },
)
async def delete_job(job_id: str, queue: QueueDep) -> JobDeleteResponse:
    """Remove a waiting job. Jobs already being processed cannot be removed."""
    removed = await queue.remove_job(job_id)
    if not removed:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={
                "error": "job_not_found",
                "message": "Job not found in the translation queue",
            },
        )

    return JobDeleteResponse(
        jobId=job_id,
        removed=True,
        message="Job removed from the translation queue",
    )
