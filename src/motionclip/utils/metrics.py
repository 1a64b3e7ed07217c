from __future__ import annotations

import threading
import time
from typing import Callable, List, Optional, Tuple

from motionclip.utils.log import get_logger

LOG = get_logger("motionclip.metrics")


class RateCounter:
    """
    FPS médio dos últimos `seconds` segundos.

    Cada chamada a `next_frame` conta um frame no balde do segundo atual.
    Uma thread em segundo plano chama `tick` a cada `interval`: fecha o balde
    atual, avança o índice e descarta o balde mais antigo, mantendo totais
    corridos sem reler o histórico. O contador é criado parado; `start` não
    pode ser chamado de novo sem um `stop` antes.
    """

    def __init__(self, seconds: int = 5, interval: float = 1.0, clock: Callable[[], float] = time.monotonic):
        if int(seconds) < 1:
            raise ValueError(f"janela precisa de ao menos 1 segundo: {seconds}")
        self.interval = float(interval)
        self.clock = clock

        self.frames: List[int] = [0] * int(seconds)
        self.durations: List[float] = [0.0] * int(seconds)
        self.ticks = 0
        self.total_frames = 0
        self.total_duration = 0.0
        self._fps = 0.0

        self._lock = threading.Lock()
        self._done = threading.Event()
        self._thread: Optional[threading.Thread] = None
        self._last = clock()

    def __enter__(self) -> "RateCounter":
        self.start()
        return self

    def __exit__(self, *exc) -> None:
        self.stop()

    @property
    def fps(self) -> float:
        return self._fps

    rate = fps

    @property
    def running(self) -> bool:
        return self._thread is not None

    def start(self) -> None:
        if self._thread is not None:
            raise RuntimeError("RateCounter já iniciado; chame stop() antes")
        self._done.clear()
        self._last = self.clock()
        self._thread = threading.Thread(target=self._run, name="rate-counter", daemon=True)
        self._thread.start()

    def _run(self) -> None:
        deadline = self.clock() + self.interval
        # o evento setado é a condição de saída do laço
        while not self._done.wait(max(0.0, deadline - self.clock())):
            self.tick()
            deadline += self.interval

    def tick(self, now: Optional[float] = None) -> float:
        """Rotaciona os baldes uma vez e devolve o FPS recalculado."""
        now = self.clock() if now is None else now
        n = len(self.frames)
        with self._lock:
            last_duration = now - self._last
            self._last = now

            idx = self.ticks % n
            self.durations[idx] = last_duration
            self.total_frames += self.frames[idx]
            self.total_duration += last_duration

            self.ticks += 1
            idx = self.ticks % n
            self.total_frames -= self.frames[idx]
            self.total_duration -= self.durations[idx]
            self.frames[idx] = 0
            self.durations[idx] = 0.0

            if self.total_duration > 0:
                self._fps = self.total_frames / self.total_duration
            else:
                self._fps = 0.0
            return self._fps

    def next_frame(self) -> None:
        with self._lock:
            self.frames[self.ticks % len(self.frames)] += 1

    def duration(self) -> float:
        """Período efetivamente coberto pela janela."""
        with self._lock:
            return self.total_duration

    def buckets(self) -> List[Tuple[int, float]]:
        with self._lock:
            return list(zip(self.frames, self.durations))

    def stop(self, timeout: Optional[float] = None) -> None:
        thread = self._thread
        if thread is None:
            return
        self._done.set()
        thread.join(timeout)
        if thread.is_alive():
            raise RuntimeError("thread do RateCounter não terminou a tempo")
        self._thread = None
        LOG.debug({"event": "rate_counter_stopped", "fps": round(self._fps, 3), "ticks": self.ticks})
