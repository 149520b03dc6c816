import logging
import threading

from topicq import task_queue

logger = logging.getLogger(name=__name__)


class ReclaimWorker:
    """Runs `reclaim` of the task queue every `interval` seconds in a background thread.

    The task queue doesn't own any timer, so this is one way to schedule the sweep. Any external scheduler (cron, etc.) calling `reclaim` works as well, and several of them may run at the same time.
    """

    def __init__(
        self,
        task_queue: task_queue.TaskQueue,
        interval: float = 60,
        topic: str | None = None,
    ) -> None:
        self._task_queue = task_queue
        self._interval = interval
        self._topic = topic

        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()
        self._event = threading.Event()

    def _loop(self, event: threading.Event):
        while True:
            if event.wait(self._interval):
                return
            try:
                self._task_queue.reclaim(self._topic)
            except Exception as e:
                # the next round will sweep again
                logger.error("reclaim failed for %s", self._topic, exc_info=e)

    @property
    def running(self) -> bool:
        return self._thread is not None

    def start(self):
        if not self._thread:
            with self._lock:
                if not self._thread:
                    self._event = threading.Event()
                    self._thread = threading.Thread(
                        target=self._loop, args=(self._event,), name="topicq-reclaim"
                    )
                    self._thread.start()

    def stop(self, wait: bool = False):
        """With `wait`, blocks until the ongoing sweep, if any, is finished."""
        with self._lock:
            thread, self._thread = self._thread, None
            if thread:
                self._event.set()
        if thread and wait:
            thread.join()
