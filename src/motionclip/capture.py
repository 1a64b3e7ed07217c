"""Laço de captura: analisa, retém os últimos segundos e exporta ao final."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, Optional, Tuple

import numpy as np

from motionclip.ioutils.ringbuffer import FrameWindow
from motionclip.ioutils.video_clip import make_clip_path
from motionclip.utils.log import get_logger, set_level
from motionclip.utils.metrics import RateCounter

LOG = get_logger("motionclip.capture")

STATUS_DISABLED = "Motion detection disabled"
STATUS_MOTION = "Motion detected"
STATUS_READY = "Ready"


@dataclass
class DetectorSettings:
    """Parâmetros lidos pelo analisador de movimento externo."""

    min_contour_area: float = 3000.0
    dilate_size: int = 3
    threshold: float = 25.0
    draw_contours: bool = True
    draw_rects: bool = True


@dataclass
class CaptureState:
    width: int = 0
    height: int = 0
    max_fps: float = 0.0
    detection_enabled: bool = True
    field_changed: str = "a"  # campo em edição: a=área, d=dilatação, t=limiar
    detector: DetectorSettings = field(default_factory=DetectorSettings)
    done: bool = False
    status: str = ""
    motion_frames: int = 0


def apply_key(state: CaptureState, key: int) -> None:
    """Ajustes por teclado; teclas desconhecidas são ignoradas."""
    if key == 3:  # ctrl+c
        state.done = True
        return
    if key < 0:
        return
    ch = chr(key & 0xFF)
    det = state.detector
    if ch == "m":
        state.detection_enabled = not state.detection_enabled
    elif ch == "c":
        det.draw_contours = not det.draw_contours
    elif ch == "r":
        det.draw_rects = not det.draw_rects
    elif ch in ("a", "d", "t"):
        state.field_changed = ch
    elif ch in ("-", "="):
        step = -1 if ch == "-" else 1
        if state.field_changed == "a":
            det.min_contour_area += 100 * step
            if det.min_contour_area <= 0:
                det.min_contour_area = 100
        elif state.field_changed == "d":
            det.dilate_size += step
            if det.dilate_size <= 0:
                det.dilate_size = 1
        elif state.field_changed == "t":
            det.threshold += step
            if det.threshold <= 0:
                det.threshold = 1


def status_line(state: CaptureState, counter: RateCounter, message: str) -> str:
    det = state.detector
    return (
        f"[{state.width}x{state.height} @ {counter.fps:.0f}/{state.max_fps:.0f}fps] "
        f"[a={det.min_contour_area:g} d={det.dilate_size} t={det.threshold:g} ({state.field_changed})]: {message}"
    )


def run_capture(
    frames: Iterable[Tuple[Optional[np.ndarray], float]],
    analyze: Callable[[np.ndarray, DetectorSettings], bool],
    window: FrameWindow,
    counter: RateCounter,
    state: CaptureState,
    on_frame: Optional[Callable[[np.ndarray, CaptureState], None]] = None,
) -> int:
    """
    Consome (frame, ts) até a fonte fechar ou `state.done`.
    Frames None/vazios são pulados. Devolve quantos frames foram retidos.
    """
    added = 0
    for frame, ts in frames:
        if state.done:
            break
        if frame is None or frame.size == 0:
            continue

        if not state.detection_enabled:
            state.status = STATUS_DISABLED
        elif analyze(frame, state.detector):
            state.status = STATUS_MOTION
            state.motion_frames += 1
        else:
            state.status = STATUS_READY

        window.add(frame, ts)
        counter.next_frame()
        added += 1

        if on_frame is not None:
            on_frame(frame, state)
        if LOG.isEnabledFor(logging.DEBUG):
            LOG.debug(status_line(state, counter, state.status))
            LOG.debug({"event": "buckets", "buckets": counter.buckets()})
        if state.done:
            break
    return added


def record(
    cfg: Dict[str, Any],
    frames: Iterable[Tuple[Optional[np.ndarray], float]],
    analyze: Callable[[np.ndarray, DetectorSettings], bool],
    state: CaptureState,
    on_frame: Optional[Callable[[np.ndarray, CaptureState], None]] = None,
) -> str:
    """Executa o laço completo e grava os últimos segundos retidos."""
    set_level(str(cfg.get("log_level", "INFO")))
    fps = state.max_fps if state.max_fps and state.max_fps > 0 else float(cfg["buffer"]["fallback_fps"])
    seconds = float(cfg["buffer"]["seconds"])
    out = cfg["output"]
    path = out.get("path") or make_clip_path(out.get("dir", "runs/clips"))

    window = FrameWindow(seconds, fps)
    LOG.info({"event": "buffering", "seconds": seconds, "fps": fps, "slots": window.count()})
    try:
        counter = RateCounter(cfg["fps_window"])
        counter.start()
        try:
            added = run_capture(frames, analyze, window, counter, state, on_frame)
        finally:
            counter.stop()
        LOG.info({"event": "capture_done", "frames": added, "motion_frames": state.motion_frames,
                  "fps": round(counter.fps, 2)})
        return window.export(path, out["codec"])
    finally:
        window.close()
