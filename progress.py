"""In-process progress broadcasting for ingestion jobs."""
import json
import queue
import threading
import time
from typing import Any, Callable, Dict, List, Optional
from loguru import logger


def _initial_state() -> Dict[str, Any]:
    return {
        "jobId": None,
        "batchNumber": 1,
        "totalBusinesses": 0,
        "currentBusiness": 0,
        "businessName": "",
        "status": "idle",
        "logos": 0,
        "photos": 0,
        "errors": [],
        "currentStep": None,
    }


def format_sse(payload: Dict[str, Any]) -> str:
    """Render one server-sent event frame."""
    return f"data: {json.dumps(payload, default=str)}\n\n"


def connected_frame() -> Dict[str, Any]:
    return {"type": "connected", "timestamp": int(time.time() * 1000)}


class ProgressTracker:
    """
    Current progress of the running ingestion job, fanned out to subscribers.

    Updates may come from worker threads; each subscriber gets its own
    queue of snapshots.
    """

    def __init__(self, max_queue: int = 1000):
        self._lock = threading.Lock()
        self._state: Optional[Dict[str, Any]] = None
        self._subscribers: List[queue.Queue] = []
        self.max_queue = max_queue

    def snapshot(self) -> Optional[Dict[str, Any]]:
        with self._lock:
            if self._state is None:
                return None
            return {**self._state, "errors": list(self._state["errors"])}

    def subscribe(self) -> queue.Queue:
        subscriber = queue.Queue(maxsize=self.max_queue)
        with self._lock:
            self._subscribers.append(subscriber)
        return subscriber

    def unsubscribe(self, subscriber: queue.Queue):
        with self._lock:
            if subscriber in self._subscribers:
                self._subscribers.remove(subscriber)

    @property
    def subscriber_count(self) -> int:
        with self._lock:
            return len(self._subscribers)

    def _mutate(self, apply: Callable[[Dict[str, Any]], None]) -> Dict[str, Any]:
        with self._lock:
            if self._state is None:
                self._state = _initial_state()
            apply(self._state)
            frame = {**self._state, "errors": list(self._state["errors"])}
            subscribers = list(self._subscribers)

        for subscriber in subscribers:
            try:
                subscriber.put_nowait(frame)
            except queue.Full:
                logger.warning("Progress subscriber queue full, dropping frame")
        return frame

    def update(self, **changes) -> Dict[str, Any]:
        return self._mutate(lambda state: state.update(changes))

    def start_batch(self, batch_number: int, total_businesses: int, job_id: Optional[str] = None):
        self.update(
            jobId=job_id,
            batchNumber=batch_number,
            totalBusinesses=total_businesses,
            currentBusiness=0,
            businessName="",
            status="processing",
            logos=0,
            photos=0,
            errors=[],
            currentStep=f"Processing batch {batch_number}",
        )

    def update_business(self, current: int, business_name: str, step: Optional[str] = None):
        self.update(currentBusiness=current, businessName=business_name, currentStep=step)

    def add_success(self, business_name: str, logo_added: bool, photos_added: int):
        def apply(state):
            state["logos"] += 1 if logo_added else 0
            state["photos"] += photos_added
            state["currentStep"] = f"Done: {business_name}"
        self._mutate(apply)

    def add_error(self, business_name: str, error: str):
        def apply(state):
            state["errors"] = state["errors"] + [f"{business_name}: {error}"]
        self._mutate(apply)

    def complete(self, step: Optional[str] = None):
        self.update(status="completed", currentStep=step or "Batch complete")

    def fail(self, error: str):
        self.update(status="failed", currentStep=error)

    def cancel(self):
        self.update(status="cancelled", currentStep="Cancelled")


tracker = ProgressTracker()
