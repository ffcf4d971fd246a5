from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Iterator, List, Optional

import numpy as np

from .types import Detection

logger = logging.getLogger(__name__)

DetectFn = Callable[[np.ndarray], List[Detection]]


@dataclass(frozen=True)
class FrameResult:
    """
    Outcome of one frame. Exactly one of `detections` / `error` is meaningful.
    """

    index: int
    frame: Optional[np.ndarray] = field(default=None, repr=False)
    detections: List[Detection] = field(default_factory=list)
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def _run_one(detect: DetectFn, index: int, frame: np.ndarray) -> FrameResult:
    try:
        return FrameResult(index=index, frame=frame, detections=detect(frame))
    except Exception as exc:
        logger.exception("Frame %d failed; continuing with the next frame.", index)
        return FrameResult(index=index, frame=frame, error=exc)


def process_stream(detect: DetectFn, frames: Iterable[np.ndarray]) -> Iterator[FrameResult]:
    """
    Run `detect` over `frames`, one FrameResult per frame.

    A failing frame is reported in its result and does not stop the stream.
    """

    for index, frame in enumerate(frames):
        yield _run_one(detect, index, frame)


class LatestFrameRunner:
    """
    Single-worker "keep only latest, drop if busy" admission in front of `detect`.

    `submit()` never blocks: the pending slot holds one frame and a newer frame
    replaces an older one that has not started yet. Results go to `on_result` on
    the worker thread.
    """

    def __init__(self, detect: DetectFn, on_result: Callable[[FrameResult], Any], *, name: str = "LatestFrameRunner"):
        self._detect = detect
        self._on_result = on_result
        self._name = name
        self._cond = threading.Condition()
        self._pending: Optional[np.ndarray] = None
        self._pending_index = -1
        self._next_index = 0
        self._running = False
        self._busy = False
        self._thread: Optional[threading.Thread] = None
        self.dropped = 0
        self.processed = 0

    def start(self) -> None:
        """Start the worker. Waits for a previous worker still finishing a frame."""
        with self._cond:
            if self._running:
                return
        previous = self._thread
        if previous is not None:
            previous.join()
        with self._cond:
            if self._running:
                return
            self._running = True
        self._thread = threading.Thread(target=self._worker, name=self._name, daemon=True)
        self._thread.start()

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop the worker. A frame still pending is dropped; one in flight finishes."""
        with self._cond:
            if not self._running:
                return
            self._running = False
            if self._pending is not None:
                self._pending = None
                self.dropped += 1
            self._cond.notify_all()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            if self._thread.is_alive():
                logger.debug("Worker %s still finishing frame after stop().", self._name)
            else:
                self._thread = None

    def submit(self, frame: np.ndarray) -> int:
        """Queue `frame` and return its index. Replaces (drops) any frame not yet started."""
        with self._cond:
            if not self._running:
                raise RuntimeError("LatestFrameRunner is not running; call start() first.")
            if self._pending is not None:
                self.dropped += 1
                logger.debug("Dropping frame %d; worker busy.", self._pending_index)
            index = self._next_index
            self._next_index += 1
            self._pending = frame
            self._pending_index = index
            self._cond.notify()
            return index

    def wait_idle(self, timeout: Optional[float] = None) -> bool:
        """Block until nothing is pending or in flight."""
        with self._cond:
            return self._cond.wait_for(lambda: self._pending is None and not self._busy, timeout=timeout)

    def _worker(self) -> None:
        while True:
            with self._cond:
                self._cond.wait_for(lambda: self._pending is not None or not self._running)
                if not self._running:
                    return
                frame, index = self._pending, self._pending_index
                self._pending = None
                self._busy = True

            result = _run_one(self._detect, index, frame)
            try:
                self._on_result(result)
            except Exception:
                logger.exception("Result callback failed for frame %d.", index)
            finally:
                with self._cond:
                    self._busy = False
                    self.processed += 1
                    self._cond.notify_all()

    def __enter__(self) -> "LatestFrameRunner":
        self.start()
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()
