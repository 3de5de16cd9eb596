"""
Live RSSI collector: periodically snapshots a session's scanned devices into
`rssi_timeseries`.

The collector owns its asyncio task and its sample counter. Use it as an
async context manager, or call `start()` / `await stop()` explicitly.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import Callable, Optional

from scanview.storage.source import Filter, QueryError, RowSource
from scanview.utils.log import get_logger
from scanview.utils.validate import RowShapeError, ScannedDeviceRow, decode_rows

logger = get_logger(__name__)


class RssiCollector:
    """
    Timer-driven writer of per-device RSSI samples for one session.

    Parameters
    ----------
    source
        Row source to read `scanned_device` from and write samples to.
    session_id
        Session whose devices are sampled.
    interval_s
        Seconds between ticks.
    clock
        Returns the sample timestamp; defaults to UTC now.
    """

    def __init__(
        self,
        source: RowSource,
        session_id: str,
        interval_s: float = 0.5,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.source = source
        self.session_id = session_id
        self.interval_s = interval_s
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.sequence_number = 0
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.running:
            logger.info("RSSI collection already running for %s", self.session_id)
            return
        logger.info("Starting RSSI collection for session %s", self.session_id)
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Stopped RSSI collection after %d samples", self.sequence_number)

    async def __aenter__(self) -> RssiCollector:
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    def collect_once(self) -> int:
        """
        Write one sample per scanned device of the session; return the count.
        """
        rows = decode_rows(
            ScannedDeviceRow,
            self.source.query("scanned_device", [Filter("session_id", "eq", self.session_id)]),
            "scanned_device",
        )
        now = self.clock()
        samples = []
        for row in rows:
            if not row.device_id or row.rssi is None:
                continue
            self.sequence_number += 1
            samples.append(
                {
                    "device_id": row.device_id,
                    "session_id": self.session_id,
                    "rssi": row.rssi,
                    "timestamp": now,
                    "sequence_number": self.sequence_number,
                    "latitude": row.device_latitude or None,
                    "longitude": row.device_longitude or None,
                    "accuracy": row.device_accuracy or None,
                }
            )
        if not samples:
            logger.info("No devices found in session %s", self.session_id)
            return 0
        written = self.source.insert("rssi_timeseries", samples)
        logger.debug("Recorded %d RSSI readings", written)
        return written

    async def _run(self) -> None:
        while True:
            try:
                await asyncio.to_thread(self.collect_once)
            except (QueryError, RowShapeError) as exc:
                # a failed tick never stops collection
                logger.error("RSSI collection tick failed: %s", exc)
            await asyncio.sleep(self.interval_s)
