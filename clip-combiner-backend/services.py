"""
Service classes for the Clip Combiner backend.
Contains the FFmpeg compositor and thumbnailer, the combination generator
and the CombinationService that ties the stores and the queue together.
"""

import asyncio
import itertools
import logging
import os
import re
import uuid
from collections import deque
from typing import Dict, List, Optional, Sequence, Tuple

import ffmpeg

from config import (
    AUDIO_BITRATE,
    AUDIO_CODEC,
    COMBINATIONS_DIR,
    COMPOSITOR_TIMEOUT_SECONDS,
    DATABASE_URL,
    FFMPEG_BINARY,
    POOL_TYPES,
    THUMBNAIL_OFFSET,
    THUMBNAIL_WIDTH,
    THUMBNAILS_DIR,
    VIDEO_CODEC,
    VIDEO_CRF,
    VIDEO_PRESET,
)
from database import create_session_factory, db_lock
from exceptions import (
    CompositorTimeoutError,
    EmptyOutputError,
    InputNotFoundError,
    MissingInputsError,
    ProcessFailedError,
    ThumbnailError,
)
from schemas import CombinationOut, SegmentOut
from stores import CombinationStore, SegmentStore
from tasks import CompositionJob, ProcessingQueue

# How much of FFmpeg's stderr we keep around for error reports
DIAGNOSTIC_LINES = 200


class FFmpegCompositor:
    """Concatenates clips (video and audio) into one re-encoded mp4 with FFmpeg."""

    def __init__(
        self,
        ffmpeg_cmd=FFMPEG_BINARY,
        timeout: float = COMPOSITOR_TIMEOUT_SECONDS,
        video_codec: str = VIDEO_CODEC,
        preset: str = VIDEO_PRESET,
        crf: int = VIDEO_CRF,
        audio_codec: str = AUDIO_CODEC,
        audio_bitrate: str = AUDIO_BITRATE,
    ):
        # ffmpeg_cmd may be a binary name or a full argv prefix
        self.ffmpeg_cmd = ffmpeg_cmd
        self.timeout = timeout
        self.video_codec = video_codec
        self.preset = preset
        self.crf = crf
        self.audio_codec = audio_codec
        self.audio_bitrate = audio_bitrate

    def build_command(self, input_files: Sequence[str], output_path: str) -> List[str]:
        streams = []
        for path in input_files:
            clip = ffmpeg.input(os.path.abspath(path))
            streams.extend([clip.video, clip.audio])

        joined = ffmpeg.concat(*streams, v=1, a=1).node
        output = ffmpeg.output(
            joined[0],
            joined[1],
            os.path.abspath(output_path),
            vcodec=self.video_codec,
            preset=self.preset,
            crf=self.crf,
            acodec=self.audio_codec,
            audio_bitrate=self.audio_bitrate,
        ).global_args("-hide_banner", "-nostdin")
        return output.compile(cmd=self.ffmpeg_cmd, overwrite_output=True)

    def _validate_inputs(self, input_files: Sequence[str]):
        for path in input_files:
            if not os.path.isfile(path) or not os.access(path, os.R_OK):
                raise InputNotFoundError(path)
            logging.info(f"[FFmpeg] Input file verified: {path} ({os.path.getsize(path)} bytes)")

    def _validate_output(self, output_path: str):
        if not os.path.isfile(output_path) or os.path.getsize(output_path) == 0:
            raise EmptyOutputError(output_path)

    def _cleanup(self, output_path: str):
        # Remove whatever FFmpeg managed to write before failing
        try:
            if os.path.exists(output_path):
                os.remove(output_path)
                logging.info(f"Cleaned up partial output file: {output_path}")
        except OSError as e:
            logging.warning(f"Could not delete partial output file {output_path}: {e}")

    async def _collect_stderr(self, process, diagnostics: deque) -> int:
        # FFmpeg separates progress updates with \r, so split on both line endings
        pending = ""
        while True:
            chunk = await process.stderr.read(4096)
            if not chunk:
                break
            pending += chunk.decode("utf-8", errors="replace")
            *lines, pending = re.split(r"[\r\n]", pending)
            for line in lines:
                self._record_line(line, diagnostics)
        self._record_line(pending, diagnostics)
        return await process.wait()

    @staticmethod
    def _record_line(line: str, diagnostics: deque):
        line = line.strip()
        if line:
            diagnostics.append(line)
            logging.debug(f"[FFmpeg Processing] {line}")

    @staticmethod
    async def _kill(process):
        if process.returncode is None:
            try:
                process.kill()
            except ProcessLookupError:
                pass
        await process.wait()

    async def compose(self, input_files: Sequence[str], output_path: str) -> str:
        """
        Renders input_files, in order, into output_path and returns output_path.

        Raises InputNotFoundError before spawning anything if an input is unreadable,
        CompositorTimeoutError if FFmpeg runs past the timeout (it is killed),
        ProcessFailedError on a nonzero exit and EmptyOutputError if nothing usable
        was written. A partial output file never survives a failure.
        """
        input_files = [os.path.abspath(path) for path in input_files]
        output_path = os.path.abspath(output_path)
        self._validate_inputs(input_files)

        os.makedirs(os.path.dirname(output_path), exist_ok=True)
        command = self.build_command(input_files, output_path)
        logging.info(f"🎬 Running FFmpeg command: {' '.join(command)}")

        diagnostics = deque(maxlen=DIAGNOSTIC_LINES)
        try:
            try:
                process = await asyncio.create_subprocess_exec(
                    *command,
                    stdin=asyncio.subprocess.DEVNULL,
                    stdout=asyncio.subprocess.DEVNULL,
                    stderr=asyncio.subprocess.PIPE,
                )
            except OSError as e:
                raise ProcessFailedError(None, str(e)) from e

            try:
                returncode = await asyncio.wait_for(
                    self._collect_stderr(process, diagnostics), timeout=self.timeout
                )
            except asyncio.TimeoutError:
                logging.error(f"❌ FFmpeg timed out after {self.timeout:g}s, killing pid {process.pid}")
                await self._kill(process)
                raise CompositorTimeoutError(self.timeout, "\n".join(diagnostics)) from None
            except asyncio.CancelledError:
                await self._kill(process)
                raise

            if returncode != 0:
                raise ProcessFailedError(returncode, "\n".join(diagnostics))

            self._validate_output(output_path)
        except BaseException:
            self._cleanup(output_path)
            raise

        logging.info(f"✅ FFmpeg wrote {output_path} ({os.path.getsize(output_path)} bytes)")
        return output_path


class FFmpegThumbnailer:
    """Grabs a single scaled frame from an uploaded clip."""

    def __init__(self, thumbnails_dir: str = THUMBNAILS_DIR, ffmpeg_cmd=FFMPEG_BINARY,
                 width: int = THUMBNAIL_WIDTH, offset: str = THUMBNAIL_OFFSET):
        self.thumbnails_dir = thumbnails_dir
        self.ffmpeg_cmd = ffmpeg_cmd
        self.width = width
        self.offset = offset

    def generate(self, video_path: str) -> str:
        os.makedirs(self.thumbnails_dir, exist_ok=True)
        thumbnail_path = os.path.join(self.thumbnails_dir, f"{uuid.uuid4()}.jpg")
        try:
            (
                ffmpeg
                .input(video_path)
                .output(thumbnail_path, ss=self.offset, vframes=1, vf=f"scale={self.width}:-1")
                .run(cmd=self.ffmpeg_cmd, capture_stdout=True, capture_stderr=True, overwrite_output=True)
            )
        except ffmpeg.Error as e:
            error_details = e.stderr.decode("utf8") if e.stderr else "Unknown FFmpeg error"
            logging.error(f"FFmpeg thumbnail generation failed: {error_details}")
            raise ThumbnailError(f"Thumbnail generation failed for {video_path}") from e
        except OSError as e:
            raise ThumbnailError(f"Could not run FFmpeg: {e}") from e
        return thumbnail_path


def build_combinations(hooks: Sequence, stories: Sequence, ctas: Sequence) -> List[Tuple]:
    """
    Returns every (hook, story, cta) triple: hooks outermost, ctas innermost.
    Listing order depends on this, so keep it stable.
    """
    missing = [
        pool for pool, items in zip(POOL_TYPES, (hooks, stories, ctas)) if not items
    ]
    if missing:
        raise MissingInputsError(missing)
    return list(itertools.product(hooks, stories, ctas))


class CombinationService:
    """Entry point used by the HTTP layer: uploads in, combinations out."""

    def __init__(self, segments: SegmentStore, combinations: CombinationStore,
                 queue: ProcessingQueue, combinations_dir: str = COMBINATIONS_DIR):
        self.segments = segments
        self.combinations = combinations
        self.queue = queue
        self.combinations_dir = combinations_dir

    def register_upload(self, pool_type: str, media_reference: str,
                        thumbnail_url: Optional[str] = None) -> SegmentOut:
        segment = self.segments.add(
            pool_type,
            media_reference,
            preview_url=f"/uploads/{os.path.basename(media_reference)}",
            thumbnail_url=thumbnail_url,
        )
        logging.info(f"[Upload] Created {pool_type} segment {segment.id} with preview URL: {segment.preview_url}")
        return segment

    def output_path_for(self, combination_id: str) -> str:
        return os.path.join(self.combinations_dir, f"{combination_id}.mp4")

    def generate_combinations(self) -> List[CombinationOut]:
        """
        Creates one "processing" combination per hook/story/cta triple and queues
        a render job for each. Every call adds new records, even for the same segments.
        """
        pools: Dict[str, List[SegmentOut]] = self.segments.by_pool()
        triples = build_combinations(pools["hook"], pools["story"], pools["cta"])
        # Nothing is inserted unless every new record is guaranteed its job
        self.queue.ensure_accepting()

        records = [
            {"id": str(uuid.uuid4()), "hook": hook.id, "story": story.id, "cta": cta.id}
            for hook, story, cta in triples
        ]
        created = self.combinations.add_many(records)
        logging.info(f"[Combinations] Created {len(created)} combinations")

        for combination, (hook, story, cta) in zip(created, triples):
            self.queue.enqueue(CompositionJob(
                combination_id=combination.id,
                input_files=(hook.file, story.file, cta.file),
                output_path=self.output_path_for(combination.id),
                download_url=f"/combinations/{combination.id}.mp4",
            ))

        logging.info("[Combinations] Added all combinations to processing queue")
        return created

    def list_combinations(self) -> List[CombinationOut]:
        return self.combinations.list()

    def list_segments(self, pool_type: Optional[str] = None) -> List[SegmentOut]:
        return self.segments.list(pool_type)


def create_service(database_url: str = DATABASE_URL, combinations_dir: str = COMBINATIONS_DIR,
                   compositor: Optional[FFmpegCompositor] = None) -> CombinationService:
    """Builds the stores, queue and compositor once per process."""
    session_factory = create_session_factory(database_url)
    segments = SegmentStore(session_factory, lock=db_lock)
    combinations = CombinationStore(session_factory, lock=db_lock)
    queue = ProcessingQueue(compositor or FFmpegCompositor(), combinations)
    return CombinationService(segments, combinations, queue, combinations_dir)
