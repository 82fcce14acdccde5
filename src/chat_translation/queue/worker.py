"""Background worker that processes message translation jobs."""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Optional

from chat_translation.config import Settings, get_settings
from chat_translation.core.failure_classifier import TranslationFailureInfo, classify
from chat_translation.core.log_sanitizer import sanitize_for_log
from chat_translation.core.translator import TranslationClient
from chat_translation.messages.models import TranslationStatus
from chat_translation.messages.notifications import RoomNotifier
from chat_translation.messages.store import MessageNotFoundError, MessageStore
from chat_translation.providers.base import TranslateRequest, TranslationTarget
from chat_translation.queue.job_queue import (
    JobQueueError,
    MessageTranslationJob,
    QueueUnavailableError,
    TranslationJobQueue,
)

logger = logging.getLogger(__name__)

# Pause after an unexpected error in the dequeue loop
LOOP_ERROR_PAUSE_SECONDS = 1.0


class TranslationWorker:
    """
    Dequeues jobs and processes them with bounded concurrency.

    Each job runs in its own task while holding one semaphore slot. Retryable
    failures are requeued with a delay until the retry budget is spent; any
    other failure marks the message failed. On shutdown in-flight jobs are
    cancelled and pushed back to the head of the queue.
    """

    def __init__(
        self,
        queue: TranslationJobQueue,
        client: TranslationClient,
        store: MessageStore,
        notifier: RoomNotifier,
        settings: Optional[Settings] = None,
    ):
        self.settings = settings or get_settings()
        self.queue = queue
        self.client = client
        self.store = store
        self.notifier = notifier

        self.max_concurrent = max(1, self.settings.translation_max_concurrent_jobs)
        self._semaphore = asyncio.Semaphore(self.max_concurrent)
        self._shutdown = asyncio.Event()
        self._active: set[asyncio.Task] = set()
        self._loop_task: Optional[asyncio.Task] = None

        self._stats = {
            "completed": 0,
            "failed": 0,
            "retried": 0,
            "requeued_on_shutdown": 0,
        }

    @property
    def running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def stats(self) -> dict[str, Any]:
        """Job counters since start, plus the number of jobs in flight."""
        return {**self._stats, "active": len(self._active), "running": self.running}

    async def start(self) -> None:
        """Start the dequeue loop in the background."""
        if self.running:
            logger.warning("Translation worker already started")
            return

        self._shutdown.clear()
        self._loop_task = asyncio.create_task(self.run())
        logger.info(f"Translation worker started (max {self.max_concurrent} concurrent jobs)")

    async def stop(self) -> None:
        """
        Stop the loop and cancel in-flight jobs.

        Cancelled jobs requeue themselves at the head of the queue. Waits up
        to ``translation_shutdown_timeout_seconds`` for them to finish.
        """
        if self._loop_task is None:
            return

        logger.info("Stopping translation worker")
        self._shutdown.set()
        timeout = self.settings.translation_shutdown_timeout_seconds

        # Let freshly spawned job tasks reach their first await so that
        # cancellation runs their requeue handler
        await asyncio.sleep(0)

        for task in list(self._active):
            task.cancel()

        if self._active:
            _, pending = await asyncio.wait(list(self._active), timeout=timeout)
            if pending:
                logger.warning(f"{len(pending)} translation jobs did not stop within {timeout}s")

        try:
            await asyncio.wait_for(self._loop_task, timeout=timeout)
        except asyncio.TimeoutError:
            logger.warning("Translation worker loop did not stop in time, cancelling")
            self._loop_task.cancel()
            await asyncio.gather(self._loop_task, return_exceptions=True)
        finally:
            self._loop_task = None

        logger.info("Translation worker stopped")

    async def run(self) -> None:
        """Dequeue loop. Returns when translation is disabled or on shutdown."""
        if not self.settings.translation_enabled:
            logger.info("Translation is disabled, worker loop not running")
            return

        # Ids of not-yet-due jobs cycled to the tail since the last processed job
        deferred: set[str] = set()

        while not self._shutdown.is_set():
            await self._semaphore.acquire()
            released = False
            try:
                if self._shutdown.is_set():
                    break

                job = await self.queue.dequeue()

                if job is None:
                    deferred.clear()
                    self._semaphore.release()
                    released = True
                    await self._pause(self.settings.translation_dequeue_poll_seconds)
                    continue

                if self._shutdown.is_set():
                    await self._return_to_queue_head(job)
                    break

                if not job.is_due():
                    await self._defer(job)
                    self._semaphore.release()
                    released = True
                    if job.job_id in deferred:
                        # Went around the whole queue without finding a due job
                        deferred.clear()
                        await self._pause(self.settings.translation_dequeue_poll_seconds)
                    else:
                        deferred.add(job.job_id)
                    continue

                deferred.clear()
                task = asyncio.create_task(self._run_job(job))
                self._active.add(task)
                task.add_done_callback(self._active.discard)
                # The task now owns the slot
                released = True
            except Exception as e:
                logger.exception(f"Translation worker loop error: {e}")
                if not released:
                    self._semaphore.release()
                    released = True
                await self._pause(LOOP_ERROR_PAUSE_SECONDS)
            finally:
                if not released:
                    self._semaphore.release()

    async def _pause(self, seconds: float) -> None:
        # Wakes early when shutdown starts
        try:
            await asyncio.wait_for(self._shutdown.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _run_job(self, job: MessageTranslationJob) -> None:
        try:
            await self.process_job(job)
        except asyncio.CancelledError:
            if self._shutdown.is_set():
                logger.info(f"Job {job.job_id} interrupted by shutdown, returning it to the queue head")
                try:
                    await asyncio.shield(self._return_to_queue_head(job))
                except Exception as e:
                    logger.error(f"Failed to return job {job.job_id} to the queue: {e}")
            raise
        except Exception as e:
            logger.exception(f"Unexpected error processing job {job.job_id}: {e}")
        finally:
            self._semaphore.release()

    async def _defer(self, job: MessageTranslationJob) -> None:
        try:
            await self.queue.requeue(job)
        except (QueueUnavailableError, JobQueueError) as e:
            logger.error(f"Failed to put back delayed job {job.job_id}, marking message failed")
            await self._mark_failed(job, classify(e))

    async def _return_to_queue_head(self, job: MessageTranslationJob) -> None:
        try:
            await self.queue.requeue(job, high_priority=True)
        except (QueueUnavailableError, JobQueueError) as e:
            logger.error(f"Failed to requeue job {job.job_id} on shutdown, marking message failed")
            await self._mark_failed(job, classify(e))
            return
        self._stats["requeued_on_shutdown"] += 1

    async def process_job(self, job: MessageTranslationJob) -> None:
        """
        Translate one job and record the outcome.

        Args:
            job: The job to process
        """
        logger.info(
            f"Processing job {job.job_id} for message {job.message_id} "
            f"in room {sanitize_for_log(job.room_name)} (attempt {job.retry_count + 1})"
        )

        try:
            await self.store.update_translation_status(
                job.message_id, TranslationStatus.IN_PROGRESS, job_id=job.job_id
            )
        except MessageNotFoundError:
            logger.warning(f"Message {job.message_id} no longer exists, dropping job {job.job_id}")
            return

        request = TranslateRequest(
            text=job.content,
            targets=[
                TranslationTarget(language=language, deployment_name=job.deployment_name)
                for language in job.target_languages
            ],
            source_language=job.source_language,
        )

        try:
            response = await asyncio.wait_for(
                self.client.translate(request),
                timeout=self.settings.translation_job_timeout_seconds,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            await self._handle_failure(job, e)
            return

        translations = response.as_language_map()
        await self.store.update_translation_status(
            job.message_id,
            TranslationStatus.COMPLETED,
            translations=translations,
            job_id=job.job_id,
            completed_at=datetime.now(timezone.utc),
        )
        await self.notifier.translation_completed(
            job.room_name,
            job.message_id,
            translations,
            detected_language=response.detected_language,
        )
        self._stats["completed"] += 1

        logger.info(
            f"Job {job.job_id} completed: {len(translations)} translations"
            f"{' (cached)' if response.from_cache else ''}"
        )

    async def _handle_failure(self, job: MessageTranslationJob, error: Exception) -> None:
        failure = classify(error)
        max_retries = self.settings.translation_max_retries

        if failure.is_retryable and job.retry_count < max_retries:
            retry = job.next_retry(self.settings.translation_retry_delay_seconds)
            logger.warning(
                f"Job {job.job_id} failed ({failure.code.value}), "
                f"retrying {retry.retry_count}/{max_retries}"
            )
            try:
                await self.queue.requeue(retry)
            except (QueueUnavailableError, JobQueueError):
                logger.error(f"Could not requeue retry of job {job.job_id}, giving up")
            else:
                self._stats["retried"] += 1
                return

        logger.error(
            f"Job {job.job_id} failed permanently: {failure.category.value}/{failure.code.value} "
            f"({type(error).__name__}, retryable={failure.is_retryable}, attempts={job.retry_count + 1})"
        )
        await self._mark_failed(job, failure)

    async def _mark_failed(self, job: MessageTranslationJob, failure: TranslationFailureInfo) -> None:
        try:
            await self.store.update_translation_status(
                job.message_id,
                TranslationStatus.FAILED,
                job_id=job.job_id,
                failed_at=datetime.now(timezone.utc),
                failure_category=failure.category,
                failure_code=failure.code,
                failure_message=failure.safe_message,
            )
        except MessageNotFoundError:
            logger.warning(f"Message {job.message_id} no longer exists, not recording failure of {job.job_id}")
            return
        await self.notifier.translation_failed(job.room_name, job.message_id, failure)
        self._stats["failed"] += 1
