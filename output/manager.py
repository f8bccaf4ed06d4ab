# -- coding: utf-8 --
"""OutputManager: persist scan records and fan out to output channels."""

import json
import logging
import os
import queue
import threading
from collections import deque
from typing import Protocol

from core.contracts import ScanRecord
from decode import ScanStatus
from utils.path_time import UtcDailyDirCache

L = logging.getLogger("scan_runtime.output")


class OutputChannel(Protocol):
    def start(self): ...
    def stop(self): ...
    async def publish(self, rec: ScanRecord): ...
    async def publish_image(self, rec: ScanRecord): ...


class ResultStore:
    """History of recent scans plus, optionally, one set of files per capture.

    Files go to `<base_dir>/<UTC date>/<stamp>_data.bin|_data.json|_image.jpg`
    and are written by a background thread so the event loop never blocks on disk.
    """

    _STOP_SENTINEL = None

    def __init__(self, base_dir: str, max_records: int = 10, write_files: bool = True):
        self.base_dir = base_dir
        self._records: deque[ScanRecord] = deque(maxlen=max_records)
        self._lock = threading.Lock()
        self._dirs = UtcDailyDirCache()
        self.total_count = 0
        self.identified_count = 0
        self.partial_count = 0
        self.noread_count = 0
        self.image_count = 0
        self._write_queue: queue.Queue[tuple[str, ScanRecord] | None] | None = (
            queue.Queue() if write_files else None
        )
        self._writer_thread = (
            threading.Thread(target=self._writer_loop, name="result-writer", daemon=True)
            if write_files
            else None
        )
        if write_files:
            os.makedirs(self.base_dir, exist_ok=True)
        if self._writer_thread:
            self._writer_thread.start()

    def stop(self):
        thread = self._writer_thread
        q = self._write_queue
        if thread is None or q is None:
            return
        q.put(self._STOP_SENTINEL)
        thread.join()
        self._writer_thread = None
        self._write_queue = None

    def submit(self, rec: ScanRecord):
        with self._lock:
            self._records.appendleft(rec)
            self.total_count += 1
            if rec.status is ScanStatus.IDENTIFIED:
                self.identified_count += 1
            elif rec.status is ScanStatus.PARTIAL:
                self.partial_count += 1
            else:
                self.noread_count += 1
        if self._write_queue is not None:
            self._write_queue.put(("data", rec))

    def submit_image(self, rec: ScanRecord):
        if rec.image is None:
            return
        with self._lock:
            self.image_count += 1
        if self._write_queue is not None:
            self._write_queue.put(("image", rec))

    def flush(self):
        """Block until every queued file has been written."""
        if self._write_queue is not None:
            self._write_queue.join()

    def reset(self):
        with self._lock:
            self._records.clear()
            self.total_count = 0
            self.identified_count = 0
            self.partial_count = 0
            self.noread_count = 0
            self.image_count = 0

    @property
    def latest_records(self) -> list[ScanRecord]:
        with self._lock:
            return list(self._records)

    def stats(self):
        with self._lock:
            total = self.total_count
            identified = self.identified_count
            partial = self.partial_count
            noread = self.noread_count
            images = self.image_count
        return {
            "total": total,
            "identified": identified,
            "partial": partial,
            "noread": noread,
            "images": images,
            "read_rate": ((identified + partial) / total) if total else 0.0,
        }

    def record_paths(self, rec: ScanRecord) -> dict[str, str]:
        day_dir = self._dirs.get_or_create(self.base_dir, rec.captured_at)
        prefix = os.path.join(day_dir, rec.stamp)
        return {
            "raw": f"{prefix}_data.bin",
            "fields": f"{prefix}_data.json",
            "image": f"{prefix}_image.jpg",
        }

    def _writer_loop(self):
        queue_ref = self._write_queue
        if queue_ref is None:
            raise RuntimeError("writer queue missing")
        while True:
            item = queue_ref.get()
            try:
                if item is None:
                    break
                kind, rec = item
                try:
                    if kind == "image":
                        self._write_image(rec)
                    else:
                        self._write_data(rec)
                except OSError:
                    L.exception("Writing %s files for %s failed", kind, rec.stamp)
            finally:
                queue_ref.task_done()

    def _write_data(self, rec: ScanRecord):
        paths = self.record_paths(rec)
        raw = rec.result.raw if rec.result else b""
        with open(paths["raw"], "wb") as f:
            f.write(raw)
        fields = rec.result.fields.as_dict() if rec.result else {}
        with open(paths["fields"], "w", encoding="utf-8") as f:
            json.dump(fields, f, indent=1, ensure_ascii=False)

    def _write_image(self, rec: ScanRecord):
        paths = self.record_paths(rec)
        with open(paths["image"], "wb") as f:
            f.write(rec.image or b"")
        L.info("%s: image saved", rec.stamp)


class OutputManager:
    def __init__(self, store: ResultStore):
        self._store = store
        self._channels: list[OutputChannel] = []

    async def publish(self, rec: ScanRecord):
        self._store.submit(rec)
        for ch in self._channels:
            await ch.publish(rec)

    async def publish_image(self, rec: ScanRecord):
        self._store.submit_image(rec)
        for ch in self._channels:
            await ch.publish_image(rec)

    def add_channel(self, channel: OutputChannel):
        self._channels.append(channel)

    @property
    def channels(self) -> list[OutputChannel]:
        return list(self._channels)

    def start(self):
        for ch in self._channels:
            ch.start()

    def stop(self):
        for ch in self._channels:
            ch.stop()
        self._store.stop()

    def reset(self):
        self._store.reset()

    # ---- read API (proxy to internal store) ----
    @property
    def store(self) -> ResultStore:
        return self._store

    @property
    def latest_records(self):
        return self._store.latest_records

    def stats(self):
        return self._store.stats()


__all__ = ["OutputChannel", "OutputManager", "ResultStore"]
