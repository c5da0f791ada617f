from __future__ import annotations

import logging
from typing import Callable, List, Optional, Tuple

from .contracts import UploadProgress, UploadStage

log = logging.getLogger("walrusupload.progress")

ProgressCallback = Callable[[UploadProgress], None]


class ProgressReporter:
    """Ordered progress events for one upload. Callback errors never propagate."""

    def __init__(self, callback: Optional[ProgressCallback] = None) -> None:
        self._callback = callback
        self._events: List[UploadProgress] = []

    @property
    def history(self) -> Tuple[UploadProgress, ...]:
        return tuple(self._events)

    @property
    def current(self) -> UploadProgress:
        if not self._events:
            return UploadProgress(stage=UploadStage.idle, percent=0)
        return self._events[-1]

    def emit(self, stage: UploadStage, percent: int) -> UploadProgress:
        event = UploadProgress(stage=stage, percent=percent)
        self._events.append(event)
        log.debug("progress stage=%s percent=%s", stage.value, percent)
        if self._callback is not None:
            try:
                self._callback(event)
            except Exception:
                log.exception("progress callback failed stage=%s percent=%s", stage.value, percent)
        return event

    def reset(self) -> UploadProgress:
        return self.emit(UploadStage.idle, 0)
