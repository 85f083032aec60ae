"""Consumer for the admin progress event stream."""
import json
import time
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional
from loguru import logger
import requests

from config import settings
from errors import TransportError
from utils.retry import backoff_delays

TERMINAL_STATUSES = ("completed", "failed", "cancelled")


def parse_events(lines: Iterable[str]) -> Iterator[Dict[str, Any]]:
    """
    Turn server-sent event lines into decoded JSON payloads.

    Comment lines (keepalives) are ignored; undecodable payloads are
    skipped with a warning.
    """
    data: List[str] = []
    for line in lines:
        if line is None:
            continue
        if isinstance(line, bytes):
            line = line.decode("utf-8", errors="replace")
        line = line.rstrip("\r")

        if not line:
            if data:
                payload = "\n".join(data)
                data = []
                try:
                    yield json.loads(payload)
                except ValueError:
                    logger.warning(f"Skipping malformed progress frame: {payload[:80]}")
            continue
        if line.startswith(":"):
            continue
        if line.startswith("data:"):
            data.append(line[5:].lstrip())

    if data:
        try:
            yield json.loads("\n".join(data))
        except ValueError:
            logger.warning("Skipping truncated progress frame")


class ProgressStreamClient:
    """
    Follow /api/admin/progress-stream, reconnecting with bounded backoff.

    States: idle, connecting, connected, reconnecting, finished, disconnected.
    'disconnected' is terminal: retries are exhausted and the caller should
    tell the user the live view has stopped.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        session: Optional[requests.Session] = None,
        max_retries: Optional[int] = None,
        base_delay: Optional[float] = None,
        max_delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
        stop_on_terminal: bool = True,
    ):
        self.url = f"{(base_url or settings.api_base_url).rstrip('/')}/api/admin/progress-stream"
        self.session = session or requests.Session()
        self.max_retries = settings.max_retries if max_retries is None else max_retries
        self.delays = list(backoff_delays(
            self.max_retries,
            settings.retry_base_delay if base_delay is None else base_delay,
            settings.retry_max_delay if max_delay is None else max_delay,
        ))
        self.sleep = sleep
        self.stop_on_terminal = stop_on_terminal
        self.state = "idle"
        self.last_error: Optional[str] = None

    def _open(self) -> requests.Response:
        response = self.session.get(
            self.url,
            params={"follow": "true"},
            headers={"Accept": "text/event-stream", "Cache-Control": "no-cache"},
            stream=True,
            timeout=(settings.request_timeout, None),
        )
        if response.status_code != 200:
            response.close()
            raise TransportError(f"Progress stream returned HTTP {response.status_code}")
        return response

    def frames(self) -> Iterator[Dict[str, Any]]:
        """Yield progress frames until a terminal status or retries run out."""
        failures = 0
        while True:
            self.state = "connecting"
            try:
                response = self._open()
                try:
                    self.state = "connected"
                    for frame in parse_events(response.iter_lines(decode_unicode=True)):
                        if frame.get("type") != "connected":
                            failures = 0
                        yield frame
                        if self.stop_on_terminal and frame.get("status") in TERMINAL_STATUSES:
                            self.state = "finished"
                            return
                finally:
                    response.close()
                raise TransportError("Progress stream closed by server")
            except (requests.RequestException, TransportError) as e:
                self.last_error = str(e)
                if failures >= len(self.delays):
                    self.state = "disconnected"
                    logger.error(f"Progress stream lost after {failures} retries: {e}")
                    return
                delay = self.delays[failures]
                failures += 1
                self.state = "reconnecting"
                logger.warning(f"Progress stream error: {e}; reconnecting in {delay:.1f}s ({failures}/{len(self.delays)})")
                self.sleep(delay)

    def follow(self, on_frame: Optional[Callable[[Dict[str, Any]], None]] = None) -> List[Dict[str, Any]]:
        """Consume the stream to the end, returning every frame received."""
        received = []
        for frame in self.frames():
            received.append(frame)
            if on_frame:
                on_frame(frame)
        return received
