import cv2, time

from motionclip.utils.log import get_logger

LOG = get_logger("motionclip.video")


class VideoSource:
    """
    Fonte de frames sobre `cv2.VideoCapture`.
    `frames()` produz (frame, ts); frame None = nada disponível agora,
    fim do gerador = fonte fechada.
    """

    def __init__(self, cfg):
        self.uri = cfg["source"]
        if str(self.uri).isdigit():
            self.uri = int(self.uri)
        self.cap = cv2.VideoCapture(self.uri)
        if not self.cap.isOpened():
            self.cap.release()
            raise RuntimeError(f"Falha ao abrir fonte: {self.uri}")
        self.width = int(self.cap.get(cv2.CAP_PROP_FRAME_WIDTH) or 0)
        self.height = int(self.cap.get(cv2.CAP_PROP_FRAME_HEIGHT) or 0)
        self.fps = float(self.cap.get(cv2.CAP_PROP_FPS) or 0.0)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.release()

    def frames(self):
        while True:
            ok, frame = self.cap.read()
            ts = time.time()
            if not ok:
                LOG.info({"event": "source_closed", "source": str(self.uri)})
                return
            if frame is None or frame.size == 0:
                yield None, ts
                continue
            yield frame, ts

    def release(self):
        if self.cap is not None:
            self.cap.release()
            self.cap = None
