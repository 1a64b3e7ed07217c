"""Captura da câmera configurada; ao sair, grava os últimos segundos em vídeo."""

import cv2

from motionclip.capture import CaptureState, apply_key, record
from motionclip.config import load_config
from motionclip.inference.video import VideoSource
from motionclip.utils.log import get_logger

logger = get_logger("motionclip.app")

WINDOW = "Motion Window"


def no_motion(frame, settings):
    # o detector de movimento é plugado por quem chama main()
    return False


def show_and_poll(frame, state):
    cv2.imshow(WINDOW, frame)
    apply_key(state, cv2.waitKey(1))


def main(cfg, analyze=no_motion, on_frame=show_and_poll):
    with VideoSource(cfg) as src:
        state = CaptureState(width=src.width, height=src.height, max_fps=src.fps)
        logger.info({"event": "start", "source": str(src.uri),
                     "size": [src.width, src.height], "fps": src.fps})
        try:
            path = record(cfg, src.frames(), analyze, state, on_frame)
        finally:
            cv2.destroyAllWindows()
    logger.info({"event": "saved", "path": path})
    return path


if __name__ == "__main__":
    cfg = load_config("config.yaml")
    main(cfg)
