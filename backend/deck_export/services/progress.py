# deck_export/services/progress.py
"""Render progress reporting

A renderer reports progress through a ProgressReporter, which forwards
ExportProgress snapshots to an optional synchronous callback. No callback
means no work: nothing is buffered or queued.

Guarantees per render:
    - `current` never decreases
    - `current == total` is reported exactly once, on the final call (100%)
"""
from dataclasses import dataclass, field
from typing import Callable, List, Optional

PREPARING = "preparing"
RENDERING = "rendering"
FINALIZING = "finalizing"
STAGES = (PREPARING, RENDERING, FINALIZING)


@dataclass(frozen=True)
class ExportProgress:
    current: int
    total: int
    stage: str
    message: str
    percentage: int = field(init=False)

    def __post_init__(self):
        if self.total <= 0:
            raise ValueError("progress total must be positive")
        if not 0 <= self.current <= self.total:
            raise ValueError(f"progress current {self.current} outside 0..{self.total}")
        if self.stage not in STAGES:
            raise ValueError(f"unknown progress stage: {self.stage}")
        object.__setattr__(self, "percentage", round(self.current / self.total * 100))

    def to_dict(self) -> dict:
        return {
            "current": self.current,
            "total": self.total,
            "stage": self.stage,
            "message": self.message,
            "percentage": self.percentage,
        }


ProgressCallback = Callable[[ExportProgress], None]


class ProgressReporter:
    """Forwards progress snapshots for one render call."""

    def __init__(self, callback: Optional[ProgressCallback], total: int):
        self.callback = callback
        self.total = max(1, total)
        self._last_current = -1
        self._completed = False

    def _emit(self, current: int, stage: str, message: str):
        if self._completed:
            raise RuntimeError("progress already reported as complete")
        if current < self._last_current:
            raise RuntimeError(f"progress went backwards: {self._last_current} -> {current}")
        self._last_current = current
        if current == self.total:
            self._completed = True
        if self.callback is None:
            return
        self.callback(ExportProgress(current=current, total=self.total, stage=stage, message=message))

    def preparing(self, message: str):
        self._emit(0, PREPARING, message)

    def rendering(self, step: int, message: str):
        # Rendering steps stay below total; only finalizing reaches it
        self._emit(min(step, self.total - 1), RENDERING, message)

    def finalizing(self, message: str):
        self._emit(self.total, FINALIZING, message)


class ProgressRecorder:
    """Callable that collects snapshots into a list, for callers that want the whole sequence."""

    def __init__(self):
        self.snapshots: List[ExportProgress] = []

    def __call__(self, progress: ExportProgress):
        self.snapshots.append(progress)

    @property
    def last(self) -> Optional[ExportProgress]:
        return self.snapshots[-1] if self.snapshots else None

    def stages(self) -> List[str]:
        return [p.stage for p in self.snapshots]
