"""Escrita de clipes de vídeo via OpenCV e os erros de exportação."""

from __future__ import annotations

import os, time, uuid
from typing import Tuple

import cv2
import numpy as np


class ClipError(RuntimeError):
    """Base dos erros de exportação de clipe."""


class InsufficientFrames(ClipError):
    pass


class DimensionMismatch(ClipError):
    pass


class WriterOpenFailed(ClipError):
    pass


class WriteFailed(ClipError):
    pass


def make_clip_path(outdir="runs/clips", prefix="motion", ext="mp4") -> str:
    ts = time.strftime("%Y%m%d-%H%M%S")
    fid = uuid.uuid4().hex[:6]
    return os.path.join(outdir, f"{prefix}_{ts}_{fid}.{ext}")


def open_writer(path: str, codec: str, fps: float, size: Tuple[int, int]) -> cv2.VideoWriter:
    """
    Abre um `cv2.VideoWriter` colorido em `path`.
    size: (largura, altura), na ordem que o OpenCV espera.
    """
    if len(codec) != 4:
        raise WriterOpenFailed(f"codec FourCC inválido: {codec!r}")
    parent = os.path.dirname(path)
    if parent:
        os.makedirs(parent, exist_ok=True)
    try:
        fourcc = cv2.VideoWriter_fourcc(*codec)
        vw = cv2.VideoWriter(path, fourcc, float(fps), (int(size[0]), int(size[1])), True)
    except cv2.error as exc:
        raise WriterOpenFailed(f"falha ao abrir writer em {path}") from exc
    if not vw.isOpened():
        vw.release()
        raise WriterOpenFailed(f"Não foi possível criar o arquivo de saída: {path} ({codec} @ {fps:.2f}fps)")
    return vw


def write_frame(vw, frame: np.ndarray) -> None:
    # o binding Python do VideoWriter.write não devolve status; só exceções
    try:
        vw.write(frame)
    except cv2.error as exc:
        raise WriteFailed("falha ao escrever frame") from exc
