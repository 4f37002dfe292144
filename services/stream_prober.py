"""
Stream Prober - checks whether a channel's stream is reachable.

A probe is:
1. A HEAD request against the channel URL. Any network error, timeout or a
   status outside 2xx/3xx ends the probe with a failure.
2. For manifest-style URLs (.m3u / .m3u8), a GET of the manifest body which is
   handed to the manifest inspector for bitrate/resolution hints.
3. For anything else, a reachable URL is a success with bitrate 0 and
   resolution "unknown".

Both steps share one deadline of ``timeout`` seconds from the start of the
probe. The manifest is streamed and abandoned once the deadline passes or the
body grows past MAX_MANIFEST_BYTES, so an endless live stream behind a
playlist URL cannot hold a worker.

probe() never raises: unexpected errors become failure results, so one bad
channel cannot abort a batch. The HTTP session and the clocks are injected so
tests can run without a network.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from typing import Callable, Iterable, List, Optional

import requests

from services.manifest_inspector import inspect_manifest
from services.records import (
    RESULT_FAILURE,
    RESULT_SUCCESS,
    UNKNOWN_RESOLUTION,
    ChannelRecord,
    StreamTestResult,
    utc_now,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 10
DEFAULT_REGION = "local"
DEFAULT_MAX_WORKERS = 8
DEFAULT_USER_AGENT = "Mozilla/5.0 (compatible; IPTV-Tester/1.0)"

MANIFEST_EXTENSIONS = (".m3u8", ".m3u")
MAX_MANIFEST_BYTES = 1024 * 1024
MANIFEST_CHUNK_BYTES = 16 * 1024


def looks_like_manifest(url: str) -> bool:
    """True for playlist-style stream URLs that can be inspected further."""
    lowered = url.lower()
    return any(ext in lowered for ext in MANIFEST_EXTENSIONS)


class StreamProber:
    """Runs bounded-time liveness checks against channel streams."""

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        clock: Optional[Callable[[], datetime]] = None,
        timer: Optional[Callable[[], float]] = None,
        user_agent: str = DEFAULT_USER_AGENT,
    ):
        self.session = session or requests.Session()
        self.clock = clock or utc_now
        self.timer = timer or time.monotonic
        self.user_agent = user_agent

    def _headers(self):
        return {"User-Agent": self.user_agent}

    def _elapsed_ms(self, started: float) -> int:
        return max(0, int((self.timer() - started) * 1000))

    def _remaining(self, deadline: float) -> float:
        return deadline - self.timer()

    def check_availability(self, url: str, deadline: float) -> bool:
        """HEAD the URL within the budget; 2xx and 3xx count as reachable."""
        remaining = self._remaining(deadline)
        if remaining <= 0:
            return False
        try:
            response = self.session.head(url, headers=self._headers(), timeout=remaining, allow_redirects=False)
        except requests.RequestException as e:
            logger.debug(f"HEAD {url} failed: {e}")
            return False
        if self.timer() > deadline:
            logger.debug(f"HEAD {url} answered after its time budget")
            return False
        return 200 <= response.status_code < 400

    def fetch_manifest(self, url: str, deadline: float) -> Optional[str]:
        """
        Stream the manifest body until ``deadline`` (a ``timer`` reading).

        A watchdog closes the response when the budget runs out, which
        interrupts a read blocked on a slow server.

        Returns:
            Decoded body, or None on network error, non-2xx status, an
            expired deadline or a body larger than MAX_MANIFEST_BYTES
        """
        remaining = self._remaining(deadline)
        if remaining <= 0:
            return None
        try:
            response = self.session.get(url, headers=self._headers(), timeout=remaining, stream=True)
        except requests.RequestException as e:
            logger.debug(f"GET {url} failed: {e}")
            return None

        aborted = threading.Event()

        def abort():
            aborted.set()
            response.close()

        watchdog = threading.Timer(remaining, abort)
        watchdog.daemon = True
        watchdog.start()
        try:
            if not 200 <= response.status_code < 300:
                logger.debug(f"GET {url} returned HTTP {response.status_code}")
                return None

            body = bytearray()
            for chunk in response.iter_content(chunk_size=MANIFEST_CHUNK_BYTES):
                if aborted.is_set() or self.timer() > deadline:
                    logger.debug(f"GET {url} exceeded its time budget")
                    return None
                body.extend(chunk)
                if len(body) > MAX_MANIFEST_BYTES:
                    logger.debug(f"GET {url} body exceeded {MAX_MANIFEST_BYTES} bytes")
                    return None

            if aborted.is_set() or self.timer() > deadline:
                logger.debug(f"GET {url} exceeded its time budget")
                return None
            return body.decode(response.encoding or "utf-8", errors="replace")
        except Exception as e:
            # Reads on a response closed by the watchdog fail in assorted ways
            if aborted.is_set() or isinstance(e, requests.RequestException):
                logger.debug(f"Reading {url} failed: {e}")
                return None
            raise
        finally:
            watchdog.cancel()
            response.close()

    def probe(
        self, channel: ChannelRecord, region: str = DEFAULT_REGION, timeout: float = DEFAULT_TIMEOUT_SECONDS
    ) -> StreamTestResult:
        """
        Probe one channel.

        Args:
            channel: Channel to check
            region: Label of the probe origin recorded on the result
            timeout: Seconds allowed for the whole probe, shared by its steps

        Returns:
            A complete StreamTestResult; never raises
        """
        started = self.timer()
        deadline = started + timeout
        tested_at = self.clock()

        def result(status: str, bitrate_kbps: int = 0, resolution: str = UNKNOWN_RESOLUTION) -> StreamTestResult:
            return StreamTestResult(
                channel_id=channel.id,
                status=status,
                response_time_ms=self._elapsed_ms(started),
                bitrate_kbps=bitrate_kbps,
                resolution=resolution,
                tested_at=tested_at,
                region=region,
            )

        try:
            if not self.check_availability(channel.url, deadline):
                return result(RESULT_FAILURE)

            if not looks_like_manifest(channel.url):
                return result(RESULT_SUCCESS)

            body = self.fetch_manifest(channel.url, deadline)
            if body is None:
                return result(RESULT_FAILURE)

            info = inspect_manifest(body)
            return result(RESULT_SUCCESS, info.bitrate_kbps, info.resolution)

        except Exception as e:
            logger.error(f"Stream test error for {channel.url}: {e}", exc_info=True)
            return result(RESULT_FAILURE)

    def probe_many(
        self,
        channels: Iterable[ChannelRecord],
        region: str = DEFAULT_REGION,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        max_workers: int = DEFAULT_MAX_WORKERS,
        on_result: Optional[Callable[[StreamTestResult], None]] = None,
    ) -> List[StreamTestResult]:
        """
        Probe channels on a bounded worker pool.

        Results come back in completion order. ``on_result`` is called on the
        calling thread as each probe finishes, so a caller can persist every
        result as soon as it exists.
        """
        channels = list(channels)
        if not channels:
            return []

        results: List[StreamTestResult] = []
        workers = max(1, min(max_workers, len(channels)))

        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self.probe, channel, region, timeout): channel for channel in channels}
            for future in as_completed(futures):
                probe_result = future.result()
                results.append(probe_result)
                if on_result is not None:
                    on_result(probe_result)

        succeeded = sum(1 for r in results if r.is_success)
        logger.info(f"Probed {len(results)} channels from region {region}: {succeeded} reachable")
        return results
