from typing import Any, Callable, Optional, Set

from PySide6.QtCore import QObject, QRunnable, QThread, QThreadPool, QTimer, Qt, Signal, Slot

from ..utils import get_logger


class WorkerSignals(QObject):
    finished = Signal()
    error = Signal(Exception)
    result = Signal(object)


class Worker(QRunnable):
    """One blocking call (archive or HTTP request) on the pool."""

    def __init__(self, fn: Callable[[], Any], name: str = "") -> None:
        super().__init__()
        self.fn = fn
        self.name = name or getattr(fn, "__qualname__", "task")
        self.signals = WorkerSignals()
        self.logger = get_logger("webglpub.qt")

    @Slot()
    def run(self) -> None:
        self.logger.debug("%s started on %s", self.name, QThread.currentThread())
        try:
            result = self.fn()
        except Exception as exc:
            self.logger.debug("%s failed: %s", self.name, exc)
            self.signals.error.emit(exc)
        else:
            self.signals.result.emit(result)
        finally:
            self.signals.finished.emit()


class TaskRunner:
    """Background work and timers for the share middleware.

    Archiving and HTTP calls run on the global ``QThreadPool``. Their results,
    errors and every timer tick are delivered on the thread that called
    ``run``/``schedule``, which is the thread owning the store.
    """

    def __init__(self, pool: Optional[QThreadPool] = None) -> None:
        self.pool = pool or QThreadPool.globalInstance()
        self.logger = get_logger("webglpub.qt")
        self._workers: Set[Worker] = set()
        self._timers: Set[QTimer] = set()

    def run(
        self,
        fn: Callable[[], Any],
        on_result: Optional[Callable[[Any], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        on_finished: Optional[Callable[[], None]] = None,
    ) -> Worker:
        worker = Worker(fn)
        self._workers.add(worker)
        if on_result:
            worker.signals.result.connect(on_result, Qt.QueuedConnection)
        if on_error:
            worker.signals.error.connect(on_error, Qt.QueuedConnection)
        if on_finished:
            worker.signals.finished.connect(on_finished, Qt.QueuedConnection)
        worker.signals.finished.connect(lambda: self._workers.discard(worker), Qt.QueuedConnection)
        self.pool.start(worker)
        return worker

    def schedule(self, delay: float, fn: Callable[[], None]) -> QTimer:
        """Call ``fn`` once after ``delay`` seconds; the returned timer can be passed to ``cancel``."""
        timer = QTimer()
        timer.setSingleShot(True)
        timer.setInterval(int(delay * 1000))

        def fire() -> None:
            self._timers.discard(timer)
            fn()

        timer.timeout.connect(fire)
        self._timers.add(timer)
        timer.start()
        return timer

    def cancel(self, timer: Optional[QTimer]) -> None:
        if timer is None:
            return
        timer.stop()
        self._timers.discard(timer)

    def shutdown(self) -> None:
        """Stop pending timers. Running workers finish; their callbacks are dropped by the caller's tokens."""
        for timer in list(self._timers):
            self.cancel(timer)
        if self._workers:
            self.logger.debug("Shutting down with %d worker(s) still running", len(self._workers))
