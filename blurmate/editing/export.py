"""
Export state machine.

Exports run the compositing pipeline on a single background worker and hand
the result to a persistence sink. A timer bounds every attempt. Each attempt
carries a generation number and only the current generation may change
state, so results that arrive after a timeout are dropped.

State changes are published to listeners while the controller lock is held,
which keeps notifications in order. Listeners must not block; a UI should
pass a dispatcher that queues the call onto its own thread.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from functools import partial
from typing import Callable, List, Optional

from ..exceptions import (
    BlurMateError, CompositeError, ExportInProgressError, ExportTimeoutError,
    NoImageError, NoStrokesError
)
from ..processing.pipeline import CompositingPipeline
from ..storage.abstract import PersistenceDeniedError, PersistenceError, PersistenceSink
from ..utils.logging import StructuredLogger
from .models import ExportEvent, ExportSnapshot, ExportState, SourceImage

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 15.0

ExportListener = Callable[[ExportEvent], None]
Dispatcher = Callable[[Callable[[], None]], None]


def _call_now(fn: Callable[[], None]) -> None:
    fn()


class ExportController:
    """
    Drives exports through idle -> exporting -> succeeded/failed.

    At most one export runs at a time. A request made while exporting is
    rejected with ExportInProgressError rather than queued.
    """

    def __init__(self, pipeline: CompositingPipeline, sink: PersistenceSink,
                 timeout: float = DEFAULT_TIMEOUT_SECONDS,
                 dispatcher: Optional[Dispatcher] = None):
        """
        Initialize the controller.

        Args:
            pipeline: Pipeline that renders the final image
            sink: Destination for finished images
            timeout: Seconds an export may take before it fails
            dispatcher: Runs listener notifications, defaults to calling inline
        """
        if not timeout > 0:
            raise ValueError(f"Timeout must be positive, got {timeout}")

        self.pipeline = pipeline
        self.sink = sink
        self.timeout = timeout
        self._dispatch = dispatcher or _call_now

        self._executor = ThreadPoolExecutor(
            max_workers=1,
            thread_name_prefix="BlurMate-Export"
        )
        self._lock = threading.RLock()
        self._settled = threading.Condition(self._lock)
        self._listeners: List[ExportListener] = []

        self._state = ExportState.IDLE
        self._generation = 0
        self._timer: Optional[threading.Timer] = None
        self._snapshot: Optional[ExportSnapshot] = None
        self._last_event: Optional[ExportEvent] = None
        self._shutdown = False

        self.log = StructuredLogger(__name__)

    @property
    def state(self) -> ExportState:
        with self._lock:
            return self._state

    @property
    def last_event(self) -> Optional[ExportEvent]:
        """Most recent state change, without the rendered output."""
        with self._lock:
            return self._last_event

    @property
    def in_flight(self) -> bool:
        """True while an export attempt holds its snapshot."""
        with self._lock:
            return self._snapshot is not None

    def subscribe(self, listener: ExportListener) -> Callable[[], None]:
        """
        Register a state-change listener.

        Returns:
            Callable that removes the listener
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def export(self, snapshot: ExportSnapshot) -> int:
        """
        Start an export in the background.

        Args:
            snapshot: Immutable session state to render

        Returns:
            Generation number of the new attempt

        Raises:
            NoImageError: If the snapshot has no source image
            NoStrokesError: If the snapshot has no strokes
            ExportInProgressError: If another export is still running
        """
        if snapshot.source is None:
            raise NoImageError()
        if not snapshot.strokes:
            raise NoStrokesError()

        with self._lock:
            if self._shutdown:
                raise RuntimeError("ExportController is shut down")
            if self._state == ExportState.EXPORTING:
                raise ExportInProgressError(
                    f"Export {self._generation} is still running"
                )

            self._generation += 1
            generation = self._generation
            self._snapshot = snapshot
            self._transition(ExportEvent(ExportState.EXPORTING, generation))

            self._timer = threading.Timer(self.timeout, self._on_timeout, args=(generation,))
            self._timer.daemon = True
            self._timer.start()

            self._executor.submit(self._run, generation, snapshot)

        self.log.info("Export started", generation=generation,
                      strokes=len(snapshot.strokes), timeout=self.timeout)
        return generation

    def wait(self, timeout: Optional[float] = None) -> ExportState:
        """
        Block until no export is running.

        Args:
            timeout: Maximum seconds to wait, None waits indefinitely

        Returns:
            The state after waiting
        """
        with self._settled:
            self._settled.wait_for(lambda: self._state != ExportState.EXPORTING, timeout)
            return self._state

    def shutdown(self, wait: bool = True) -> None:
        """Stop the worker and cancel any pending timeout."""
        with self._lock:
            self._shutdown = True
            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
        self._executor.shutdown(wait=wait)

    def _run(self, generation: int, snapshot: ExportSnapshot) -> None:
        """Worker body: render, then hand the result to the sink."""
        log = self.log.bind(generation=generation)

        # Attempts that timed out while queued behind a stale render never start
        if not self._is_current(generation):
            log.warning("Skipping render for abandoned export")
            return

        try:
            output = self.pipeline.render(snapshot)
        except BlurMateError as e:
            self._finish(ExportEvent(ExportState.FAILED, generation, reason=str(e), error=e))
            return
        except Exception as e:
            logger.exception(f"Unexpected failure rendering export {generation}")
            error = CompositeError(f"Image processing failed: {e}")
            self._finish(ExportEvent(ExportState.FAILED, generation, reason=str(error), error=error))
            return

        if not self._is_current(generation):
            log.warning("Skipping save for abandoned export")
            return

        try:
            self.sink.save(output, partial(self._on_saved, generation, output))
        except Exception as e:
            logger.error(f"Persistence sink raised for export {generation}: {e}")
            error = PersistenceError(str(e) or type(e).__name__)
            self._finish(ExportEvent(ExportState.FAILED, generation, reason=str(error), error=error))

    def _on_saved(self, generation: int, output: SourceImage,
                  error: Optional[Exception]) -> None:
        """Sink callback."""
        if error is None:
            self._finish(ExportEvent(ExportState.SUCCEEDED, generation, output=output))
            return

        if not isinstance(error, PersistenceError):
            error = PersistenceError(str(error) or type(error).__name__)
        if isinstance(error, PersistenceDeniedError):
            self.log.warning("Export not saved: permission denied", generation=generation)
        self._finish(ExportEvent(ExportState.FAILED, generation, reason=str(error), error=error))

    def _on_timeout(self, generation: int) -> None:
        error = ExportTimeoutError(f"Export timed out after {self.timeout:g} seconds")
        self._finish(ExportEvent(ExportState.FAILED, generation, reason=str(error), error=error))

    def _is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation and self._state == ExportState.EXPORTING

    def _finish(self, event: ExportEvent) -> bool:
        """Apply a terminal event if its attempt is still current."""
        with self._lock:
            if not self._is_current(event.generation):
                self.log.warning("Discarding late export result", generation=event.generation,
                                 result=event.state.value, current=self._generation)
                return False

            if self._timer is not None:
                self._timer.cancel()
                self._timer = None
            self._snapshot = None
            self._transition(event)
            self._settled.notify_all()

        if event.state == ExportState.SUCCEEDED:
            self.log.info("Export succeeded", generation=event.generation)
        else:
            self.log.error("Export failed", generation=event.generation, reason=event.reason)
        return True

    def _transition(self, event: ExportEvent) -> None:
        """Set state and notify listeners. Caller holds the lock."""
        self._state = event.state
        # The stored event drops the rendered image; only listeners receive it
        self._last_event = replace(event, output=None)
        for listener in list(self._listeners):
            self._dispatch(partial(self._notify, listener, event))

    @staticmethod
    def _notify(listener: ExportListener, event: ExportEvent) -> None:
        try:
            listener(event)
        except Exception as e:
            logger.error(f"Export listener failed: {e}")
