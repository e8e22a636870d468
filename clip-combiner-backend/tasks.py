# tasks.py

import asyncio
import logging
import os
from collections import deque
from dataclasses import dataclass
from typing import Deque, Optional, Tuple


@dataclass(frozen=True)
class CompositionJob:
    """Everything the worker needs to render one combination."""
    combination_id: str
    input_files: Tuple[str, ...]
    output_path: str
    download_url: str


class ProcessingQueue:
    """
    FIFO queue of composition jobs drained by a single background worker.

    Jobs run strictly one after another in the order they were enqueued, so
    only one FFmpeg process is alive at any time. A failing job marks its own
    combination as "error" and the worker moves straight on to the next one.
    The worker exits once the queue is empty and the next enqueue starts a new one.
    """

    def __init__(self, compositor, combinations):
        self.compositor = compositor
        self.combinations = combinations
        self._jobs: Deque[CompositionJob] = deque()
        self._worker: Optional[asyncio.Task] = None
        self._closed = False

    @property
    def pending(self) -> int:
        return len(self._jobs)

    @property
    def is_draining(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def ensure_accepting(self) -> asyncio.AbstractEventLoop:
        """Raises RuntimeError unless enqueue() would succeed right now."""
        if self._closed:
            raise RuntimeError("Processing queue has been shut down")
        return asyncio.get_running_loop()

    def enqueue(self, job: CompositionJob) -> None:
        """Appends a job and makes sure a worker is draining. Must run on the event loop."""
        loop = self.ensure_accepting()

        self._jobs.append(job)
        if not self.is_draining:
            self._worker = loop.create_task(self._drain())

    async def join(self) -> None:
        """Waits until every queued job has finished."""
        while self.is_draining:
            await asyncio.wait({self._worker})

    async def shutdown(self, wait: bool = False) -> None:
        """
        Drops jobs that have not started yet. The running job is either awaited
        (wait=True) or cancelled, which kills its FFmpeg process.
        """
        self._closed = True
        dropped = len(self._jobs)
        self._jobs.clear()
        if dropped:
            logging.warning(f"[Queue] Dropped {dropped} pending tasks on shutdown")

        worker = self._worker
        if worker is None or worker.done():
            return
        if not wait:
            worker.cancel()
        await asyncio.wait({worker})

    async def _drain(self):
        logging.info(f"[Queue] Starting to process {len(self._jobs)} tasks")
        while self._jobs:
            job = self._jobs.popleft()
            await self._run_job(job)
        logging.info("[Queue] All tasks completed")

    async def _run_job(self, job: CompositionJob):
        logging.info(f"📝 Worker received combination {job.combination_id}")
        try:
            await self.compositor.compose(list(job.input_files), job.output_path)
        except Exception as e:
            logging.error(f"❌ Worker failed combination {job.combination_id}. Error: {e}")
            diagnostics = getattr(e, "diagnostics", "")
            if diagnostics:
                logging.error(f"--- FFMPEG OUTPUT ---\n{diagnostics}\n---")
            self._record(job, error=str(e) or e.__class__.__name__)
        else:
            logging.info(f"✅ Worker finished combination {job.combination_id}. Video at: {job.output_path}")
            self._record(job)

    def _record(self, job: CompositionJob, error: Optional[str] = None):
        if error is None:
            try:
                self.combinations.mark_ready(job.combination_id, job.download_url)
                return
            except Exception as e:
                logging.error(f"Could not mark combination {job.combination_id} ready: {e}")
                error = f"Could not record finished render: {e}"
                self._discard_output(job)

        try:
            self.combinations.mark_error(job.combination_id, error)
        except Exception as e:
            logging.error(f"Could not update status of combination {job.combination_id}: {e}")

    @staticmethod
    def _discard_output(job: CompositionJob):
        # A render nobody can download must not stay on disk
        try:
            if os.path.exists(job.output_path):
                os.remove(job.output_path)
                logging.info(f"Removed unrecorded output file: {job.output_path}")
        except OSError as e:
            logging.warning(f"Could not delete output file {job.output_path}: {e}")
