"""Core runtime: AppContext wiring and ScannerRuntime orchestration."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol

from camera import CameraConfig, CameraSession, create_camera_session
from core.lifecycle import AsyncTaskOwner, LoopRunner
from output.feedback import LogFeedback
from output.manager import OutputManager, ResultStore
from sensor.filter import MeasurementFilter, MeasurementStats
from trigger import TriggerController, TriggerDecision, TriggerThresholds

L = logging.getLogger("scan_runtime.runtime")

HEALTH_LOG_INTERVAL_S = 30.0


@dataclass
class RuntimeBuildConfig:
    save_dir: str
    history_size: int = 20
    write_files: bool = True
    stats_log_interval_s: float = 3.0
    threshold_distance_mm: float = 50.0
    threshold_max_deviation: float = 1.0
    feedback: bool = True
    notify_url: str = ""
    notify_timeout_ms: int = 3000


def build_runtime_config_from_loaded_config(cfg) -> RuntimeBuildConfig:
    return RuntimeBuildConfig(
        save_dir=cfg.runtime.save_dir,
        history_size=int(cfg.runtime.history_size),
        write_files=bool(cfg.output.write_files),
        stats_log_interval_s=float(cfg.runtime.stats_log_interval_s),
        threshold_distance_mm=float(cfg.trigger.threshold_distance_mm),
        threshold_max_deviation=float(cfg.trigger.threshold_max_deviation),
        feedback=bool(cfg.output.feedback),
        notify_url=str(cfg.notify.url or "") if cfg.notify.enabled else "",
        notify_timeout_ms=int(cfg.notify.timeout_ms),
    )


class SensorHandle(Protocol):
    def start(self) -> None: ...
    def stop(self) -> None: ...
    def raise_if_failed(self) -> None: ...


@dataclass
class AppContext:
    """Everything the sample path mutates, built once at startup."""

    measurements: MeasurementFilter
    controller: TriggerController
    session: CameraSession
    results: OutputManager


class ScannerRuntime:
    """Feeds sensor samples through filter and controller into the camera session."""

    def __init__(
        self,
        app_context: AppContext,
        loop_runner: LoopRunner,
        *,
        stats_log_interval_s: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.app_context = app_context
        self.loop_runner = loop_runner
        self.stats_log_interval_s = float(stats_log_interval_s)
        self.sensors: list[SensorHandle] = []
        self.samples_seen = 0
        self.last_stats: MeasurementStats | None = None

        self._clock = clock
        self._last_stats_log = clock()
        self._commands = AsyncTaskOwner(owner_name="camera_command")
        self._aim_task: Any = None
        self._stop_evt = threading.Event()
        self._started = False
        self._stopped = False

    # ---- sample path (runs on the loop thread) ----

    def handle_sample(self, sample: float) -> TriggerDecision | None:
        ctx = self.app_context
        self.samples_seen += 1
        stats = ctx.measurements.ingest(sample)
        if stats is None:
            return None
        self.last_stats = stats
        self._maybe_log_stats(stats)
        decision = ctx.controller.decide(stats.mean, stats.stddev)
        self.dispatch(decision)
        return decision

    def dispatch(self, decision: TriggerDecision):
        session = self.app_context.session
        if decision is TriggerDecision.FIRE:
            coro_fn, label = session.trigger_capture, "capture"
        elif decision is TriggerDecision.ARM:
            coro_fn, label = lambda: session.set_aim_indicator(True), "aim on"
        elif decision is TriggerDecision.DISARM:
            coro_fn, label = lambda: session.set_aim_indicator(False), "aim off"
        else:
            return
        if decision is TriggerDecision.FIRE:
            # the session ignores a capture while another one is in flight
            self._commands.spawn(self._run_command(label, coro_fn))
            return
        if self._aim_task is not None and not self._aim_task.done():
            # an earlier aim command is still connecting; the next sample decides again
            return
        self._aim_task = self._commands.spawn(self._run_command(label, coro_fn))

    async def _run_command(self, label: str, coro_fn):
        try:
            await coro_fn()
        except ConnectionError as e:
            L.warning("Camera command '%s' failed: %s", label, e)

    def _maybe_log_stats(self, stats: MeasurementStats):
        if self.stats_log_interval_s <= 0:
            return
        now = self._clock()
        if now - self._last_stats_log < self.stats_log_interval_s:
            return
        self._last_stats_log = now
        L.info(
            "Average: %.2f, std dev: %.2f: %s",
            stats.mean,
            stats.stddev,
            [round(v, 1) for v in stats.samples],
        )

    # ---- lifecycle (main thread) ----

    def start(self, sensors: Optional[list[SensorHandle]] = None):
        if self._started:
            raise RuntimeError(
                "ScannerRuntime is single-use; start() may only be called once"
            )
        if self._stopped:
            raise RuntimeError("ScannerRuntime is stopped and cannot be started again")
        self._started = True
        self.sensors = list(sensors or [])
        try:
            self.app_context.results.start()
            self._connect_camera()
            for s in self.sensors:
                s.start()
        except Exception:
            L.exception("Runtime start failed; rolling back partial startup")
            try:
                self.stop()
            except Exception:
                L.exception("Runtime rollback stop failed")
            raise

    def _connect_camera(self):
        session = self.app_context.session
        try:
            self.loop_runner.run_async(session.connect(), timeout=None)
        except ConnectionError as e:
            # not fatal: the first command reconnects lazily
            L.warning("Camera not reachable at startup: %s", e)

    def request_stop(self):
        self._stop_evt.set()

    def run(self, runtime_limit_s: float | None = None):
        if not self._started:
            raise RuntimeError("ScannerRuntime.run() requires start() first")
        start_ts = time.perf_counter()
        last_health = start_ts
        try:
            while not self._stop_evt.wait(0.1):
                self._raise_if_failed()
                now = time.perf_counter()
                if now - last_health >= HEALTH_LOG_INTERVAL_S:
                    last_health = now
                    self._log_health()
                if (
                    runtime_limit_s is not None
                    and (time.perf_counter() - start_ts) >= runtime_limit_s
                ):
                    L.info(
                        "Runtime limit reached (%ss); shutting down service",
                        runtime_limit_s,
                    )
                    self.request_stop()
        finally:
            self.stop()

    def _log_health(self):
        ctx = self.app_context
        L.info(
            "Health: camera=%s samples=%d results=%s",
            ctx.session.state.value,
            self.samples_seen,
            ctx.results.stats(),
        )

    def _raise_if_failed(self):
        for s in self.sensors:
            s.raise_if_failed()
        self.app_context.session.raise_if_failed()
        self._commands.raise_if_failed()

    def stop(self):
        if self._stopped:
            return
        self._stopped = True
        stop_t0 = time.perf_counter()

        def _run_stage(name: str, fn: Callable[[], None]):
            t0 = time.perf_counter()
            try:
                fn()
            except Exception:
                L.exception("Shutdown stage failed: %s", name)
            finally:
                L.debug(
                    "Shutdown stage=%s elapsed=%.1fms",
                    name,
                    (time.perf_counter() - t0) * 1000,
                )

        def _stop_sensors():
            for s in list(self.sensors):
                try:
                    s.stop()
                except Exception:
                    L.exception("Sensor stop failed: %r", s)

        def _close_session():
            self.loop_runner.run_async(self.app_context.session.close(), timeout=1.0)

        _run_stage("sensors", _stop_sensors)
        _run_stage("camera_session", _close_session)
        _run_stage("async_loop", self.loop_runner.shutdown_loop)
        _run_stage("output_manager", self.app_context.results.stop)
        L.debug(
            "Shutdown stage=total elapsed=%.1fms",
            (time.perf_counter() - stop_t0) * 1000,
        )


def _build_output_manager(cfg: RuntimeBuildConfig) -> OutputManager:
    store = ResultStore(
        base_dir=cfg.save_dir,
        max_records=cfg.history_size,
        write_files=cfg.write_files,
    )
    output_mgr = OutputManager(store)
    if cfg.notify_url:
        from output.notify import HttpNotifier

        output_mgr.add_channel(
            HttpNotifier(cfg.notify_url, timeout_ms=cfg.notify_timeout_ms)
        )
    if cfg.feedback:
        output_mgr.add_channel(LogFeedback())
    return output_mgr


def build_runtime(
    camera_cfg: CameraConfig,
    *,
    config: RuntimeBuildConfig,
    session: CameraSession | None = None,
    loop_runner: LoopRunner | None = None,
) -> ScannerRuntime:
    loop_runner = loop_runner or LoopRunner()
    cfg = config
    output_mgr = _build_output_manager(cfg)
    if session is None:
        session = create_camera_session(camera_cfg, sink=output_mgr)
    else:
        session.sink = output_mgr
    app_context = AppContext(
        measurements=MeasurementFilter(),
        controller=TriggerController(
            TriggerThresholds(
                distance_mm=cfg.threshold_distance_mm,
                max_deviation=cfg.threshold_max_deviation,
            )
        ),
        session=session,
        results=output_mgr,
    )
    return ScannerRuntime(
        app_context,
        loop_runner,
        stats_log_interval_s=cfg.stats_log_interval_s,
    )


__all__ = [
    "AppContext",
    "RuntimeBuildConfig",
    "ScannerRuntime",
    "build_runtime",
    "build_runtime_config_from_loaded_config",
]
