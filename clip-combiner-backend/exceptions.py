"""
Exceptions raised by the Clip Combiner backend.

Generation errors reach the caller directly. Composition errors are raised
by the compositor and caught by the processing queue, which records them on
the affected combination.
"""

from typing import Iterable, Optional


class ClipCombinerError(Exception):
    """Base exception for all clip combiner errors."""


class MissingInputsError(ClipCombinerError):
    """At least one pool has no segments, so no combination can be built."""

    def __init__(self, missing_pools: Iterable[str]):
        self.missing_pools = list(missing_pools)
        super().__init__(f"Missing required segments: {', '.join(self.missing_pools)}")


class StatusTransitionError(ClipCombinerError):
    """A combination was asked to leave a terminal status."""

    def __init__(self, combination_id: str, current: str, requested: str):
        self.combination_id = combination_id
        self.current = current
        self.requested = requested
        super().__init__(
            f"Combination {combination_id} cannot move from '{current}' to '{requested}'"
        )


class ThumbnailError(ClipCombinerError):
    """FFmpeg could not grab a preview frame from an uploaded clip."""


# --- Per-job composition errors ---

class CompositionError(ClipCombinerError):
    """Base class for failures of a single compositor run."""


class InputNotFoundError(CompositionError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Unable to access input file {path}")


class CompositorTimeoutError(CompositionError):
    def __init__(self, timeout: float, diagnostics: str = ""):
        self.timeout = timeout
        self.diagnostics = diagnostics
        super().__init__(f"FFmpeg process timed out after {timeout:g} seconds")


class ProcessFailedError(CompositionError):
    """FFmpeg could not be started or exited with a nonzero code."""

    def __init__(self, exit_code: Optional[int], diagnostics: str = ""):
        self.exit_code = exit_code
        self.diagnostics = diagnostics
        if exit_code is None:
            message = f"FFmpeg process error: {diagnostics}"
        else:
            last_line = diagnostics.splitlines()[-1] if diagnostics else "no error output"
            message = f"FFmpeg process failed with code {exit_code}: {last_line}"
        super().__init__(message)


class EmptyOutputError(CompositionError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(f"Output file is missing or empty: {path}")
