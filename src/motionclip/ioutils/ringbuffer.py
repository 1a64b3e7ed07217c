from __future__ import annotations

from typing import List, Optional, Tuple

import numpy as np

from motionclip.ioutils.video_clip import (
    DimensionMismatch,
    InsufficientFrames,
    WriterOpenFailed,
    open_writer,
    write_frame,
)
from motionclip.utils.log import get_logger

LOG = get_logger("motionclip.ringbuffer")


class Slot:
    """Uma posição do anel: buffer de imagem reaproveitado + timestamp."""

    __slots__ = ("image", "ts")

    def __init__(self, image: np.ndarray):
        self.image: Optional[np.ndarray] = image
        self.ts = 0.0

    def store(self, frame: np.ndarray, ts: float) -> None:
        img = self.image
        if img is not None and img.shape == frame.shape and img.dtype == frame.dtype:
            np.copyto(img, frame)  # sobrescreve sem realocar
        else:
            self.image = np.array(frame, copy=True)
        self.ts = float(ts)

    def release(self) -> None:
        self.image = None


class FrameWindow:
    """
    Anel de tamanho fixo com os frames mais recentes e seus timestamps.

    A capacidade é `int(fps * seconds)` e não muda depois da construção.
    `writes` conta todas as escritas e nunca volta a zero; a escrita `w`
    ocupa o slot `w % capacity`. Não é thread-safe: `add`, `ordered_snapshot`
    e `export` devem ser chamados pela mesma thread.
    """

    def __init__(self, seconds: float, fps: float, frame_shape: Optional[Tuple[int, ...]] = None, dtype=np.uint8):
        self.seconds = float(seconds)
        self.fps = float(fps)
        capacity = int(self.fps * self.seconds)
        if capacity <= 0:
            raise ValueError(f"janela sem capacidade: {seconds}s @ {fps}fps")
        shape = tuple(frame_shape) if frame_shape is not None else (0, 0)
        self.slots: List[Slot] = [Slot(np.zeros(shape, dtype=dtype)) for _ in range(capacity)]
        self.writes = 0
        self.closed = False

    def __enter__(self) -> "FrameWindow":
        return self

    def __exit__(self, *exc) -> None:
        self.close()

    def _check_open(self) -> None:
        if self.closed:
            raise RuntimeError("FrameWindow fechada")

    def add(self, frame: np.ndarray, ts: float) -> None:
        self._check_open()
        self.slots[self.writes % len(self.slots)].store(frame, ts)
        self.writes += 1

    def count(self) -> int:
        """Número de slots (capacidade), não de frames válidos."""
        return len(self.slots)

    def time_window(self) -> Tuple[float, float]:
        """(mais antigo, mais recente); (0.0, 0.0) se nada foi adicionado."""
        n = len(self.slots)
        if self.writes == 0:
            return 0.0, 0.0
        if self.writes <= n:
            return self.slots[0].ts, self.slots[self.writes - 1].ts
        return self.slots[self.writes % n].ts, self.slots[(self.writes - 1) % n].ts

    def duration(self) -> float:
        oldest, newest = self.time_window()
        return newest - oldest

    def estimated_rate(self) -> float:
        """
        FPS médio do conteúdo atual. Pode diferir do fps de construção.
        Antes de encher divide `writes`; depois, a capacidade.
        """
        if self.writes < 2:
            return 0.0
        seconds = self.duration()
        if seconds <= 0:
            return 0.0
        if self.writes < len(self.slots):
            return self.writes / seconds
        return len(self.slots) / seconds

    def ordered_snapshot(self) -> List[np.ndarray]:
        """
        Frames do mais antigo ao mais recente. Os arrays são os buffers
        internos: copie se precisar deles depois do próximo `add`.
        """
        self._check_open()
        n = len(self.slots)
        if self.writes <= n:
            return [s.image for s in self.slots[: self.writes]]
        i = self.writes % n
        return [s.image for s in self.slots[i:]] + [s.image for s in self.slots[:i]]

    def export(self, path: str, codec: str = "mp4v", writer_factory=open_writer) -> str:
        imgs = self.ordered_snapshot()
        if len(imgs) < 2:
            raise InsufficientFrames(f"são necessários ao menos 2 frames (há {len(imgs)})")

        height, width = imgs[0].shape[:2]
        fps = self.estimated_rate()
        if fps <= 0:
            # sem intervalo de tempo não há taxa; nenhum arquivo é criado
            raise WriterOpenFailed(f"intervalo de tempo nulo entre {len(imgs)} frames; FPS indefinido")
        vw = writer_factory(path, codec, fps, (width, height))
        try:
            for idx, img in enumerate(imgs):
                if img.shape[:2] != (height, width):
                    raise DimensionMismatch(
                        f"frame {idx} tem {img.shape[1]}x{img.shape[0]}, esperado {width}x{height}"
                    )
                write_frame(vw, img)
        finally:
            vw.release()

        LOG.info({"event": "export", "path": path, "codec": codec, "frames": len(imgs),
                  "fps": round(fps, 3), "size": [width, height]})
        return path

    def close(self) -> None:
        """Libera todos os slots; o primeiro erro é relançado ao final."""
        if self.closed:
            return
        self.closed = True
        first_err: Optional[BaseException] = None
        for slot in self.slots:
            try:
                slot.release()
            except Exception as exc:
                if first_err is None:
                    first_err = exc
        if first_err is not None:
            raise first_err
