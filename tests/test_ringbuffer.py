import numpy as np
import pytest

from motionclip.ioutils.ringbuffer import FrameWindow, Slot
from motionclip.ioutils.video_clip import (
    DimensionMismatch,
    InsufficientFrames,
    WriteFailed,
    WriterOpenFailed,
)


def _frame(value, h=4, w=6):
    return np.full((h, w, 3), value, dtype=np.uint8)


def _values(imgs):
    return [int(img[0, 0, 0]) for img in imgs]


def _fill(window, n, dt=0.1, start=0):
    for i in range(start, start + n):
        window.add(_frame(i), 100.0 + i * dt)


class FakeWriter:
    def __init__(self, path, codec, fps, size, fail_at=None):
        self.path, self.codec, self.fps, self.size = path, codec, fps, size
        self.frames = []
        self.released = False
        self.fail_at = fail_at

    def write(self, frame):
        if self.fail_at is not None and len(self.frames) == self.fail_at:
            import cv2
            raise cv2.error("write rejeitado")
        self.frames.append(frame.copy())

    def release(self):
        self.released = True


def _factory(store, **kw):
    def make(path, codec, fps, size):
        vw = FakeWriter(path, codec, fps, size, **kw)
        store.append(vw)
        return vw
    return make


def test_capacity_from_fps_and_seconds():
    window = FrameWindow(seconds=5, fps=30)
    assert window.count() == 150
    assert FrameWindow(1.0, 9.9).count() == 9


def test_zero_capacity_rejected():
    with pytest.raises(ValueError):
        FrameWindow(seconds=0.1, fps=5)


def test_full_window_keeps_insertion_order():
    window = FrameWindow(1, 10)
    _fill(window, 10)
    snap = window.ordered_snapshot()
    assert len(snap) == 10
    assert _values(snap) == list(range(10))


@pytest.mark.parametrize("extra", [1, 21])
def test_wraparound_keeps_last_frames(extra):
    window = FrameWindow(1, 10)
    _fill(window, 10 + extra)
    snap = window.ordered_snapshot()
    assert len(snap) == 10
    assert _values(snap) == list(range(extra, extra + 10))
    assert window.writes == 10 + extra


def test_partial_window_snapshot():
    window = FrameWindow(1, 10)
    _fill(window, 3)
    assert _values(window.ordered_snapshot()) == [0, 1, 2]
    assert window.count() == 10


def test_time_window_empty_and_wrapped():
    window = FrameWindow(1, 4)
    assert window.time_window() == (0.0, 0.0)
    assert window.duration() == 0.0

    _fill(window, 3)
    assert window.time_window() == pytest.approx((100.0, 100.2))

    _fill(window, 3, start=3)  # 6 escritas em 4 slots
    oldest, newest = window.time_window()
    assert oldest == pytest.approx(100.2)
    assert newest == pytest.approx(100.5)
    assert window.duration() == pytest.approx(0.3)


def test_estimated_rate_switches_numerator_when_full():
    window = FrameWindow(1, 10)
    assert window.estimated_rate() == 0.0
    _fill(window, 1)
    assert window.estimated_rate() == 0.0

    _fill(window, 4, start=1)
    assert window.estimated_rate() == pytest.approx(5 / 0.4)

    _fill(window, 15, start=5)  # 20 frames, 100ms entre eles
    assert window.estimated_rate() == pytest.approx(10 / 0.9)


def test_estimated_rate_same_timestamps():
    window = FrameWindow(1, 10)
    window.add(_frame(1), 5.0)
    window.add(_frame(2), 5.0)
    assert window.estimated_rate() == 0.0


def test_add_copies_pixels():
    window = FrameWindow(1, 4)
    src = _frame(7)
    window.add(src, 1.0)
    src[:] = 99
    assert _values(window.ordered_snapshot()) == [7]


def test_slot_buffer_reused_in_place():
    window = FrameWindow(1, 2, frame_shape=(4, 6, 3))
    buf = window.slots[0].image
    _fill(window, 5)
    assert window.slots[0].image is buf
    assert _values(window.ordered_snapshot()) == [3, 4]


def test_slot_reallocates_on_new_shape():
    window = FrameWindow(1, 2)
    window.add(_frame(1), 1.0)
    window.add(_frame(2, h=8), 2.0)
    shapes = [img.shape for img in window.ordered_snapshot()]
    assert shapes == [(4, 6, 3), (8, 6, 3)]


def test_export_writes_chronological_frames():
    window = FrameWindow(1, 5)
    _fill(window, 7)
    writers = []
    out = window.export("clip.mp4", "mp4v", writer_factory=_factory(writers))

    assert out == "clip.mp4"
    vw = writers[0]
    assert vw.codec == "mp4v"
    assert vw.size == (6, 4)
    assert vw.fps == pytest.approx(5 / 0.4)
    assert _values(vw.frames) == [2, 3, 4, 5, 6]
    assert vw.released


@pytest.mark.parametrize("n", [0, 1])
def test_export_needs_two_frames(tmp_path, n):
    window = FrameWindow(1, 5)
    _fill(window, n)
    target = tmp_path / "out.avi"
    with pytest.raises(InsufficientFrames):
        window.export(str(target), "MJPG")
    assert not target.exists()


def test_export_dimension_mismatch_releases_writer():
    window = FrameWindow(1, 5)
    _fill(window, 2)
    window.add(_frame(9, h=8), 101.0)
    writers = []
    with pytest.raises(DimensionMismatch):
        window.export("clip.mp4", writer_factory=_factory(writers))
    assert len(writers[0].frames) == 2
    assert writers[0].released


def test_export_write_failure_wraps_cause():
    window = FrameWindow(1, 5)
    _fill(window, 4)
    writers = []
    with pytest.raises(WriteFailed) as info:
        window.export("clip.mp4", writer_factory=_factory(writers, fail_at=1))
    assert info.value.__cause__ is not None
    assert writers[0].released


def test_export_real_mjpg_file(tmp_path):
    import cv2

    window = FrameWindow(1, 10)
    for i in range(12):
        window.add(np.full((48, 64, 3), i * 10, dtype=np.uint8), i * 0.1)
    target = tmp_path / "clips" / "out.avi"
    window.export(str(target), "MJPG")

    assert target.exists()
    cap = cv2.VideoCapture(str(target))
    read = 0
    while True:
        ok, frame = cap.read()
        if not ok:
            break
        assert frame.shape == (48, 64, 3)
        read += 1
    cap.release()
    assert read == 10


class BrokenSlot(Slot):
    def release(self):
        super().release()
        raise OSError(f"falha ao liberar {self.ts}")


def test_close_releases_all_and_raises_first_error():
    window = FrameWindow(1, 4)
    window.slots[1] = BrokenSlot(np.zeros((1,), np.uint8))
    window.slots[1].ts = 1.0
    window.slots[3] = BrokenSlot(np.zeros((1,), np.uint8))
    window.slots[3].ts = 3.0

    with pytest.raises(OSError, match="1.0"):
        window.close()
    assert all(s.image is None for s in window.slots)
    window.close()  # segunda chamada não faz nada


def test_add_after_close_fails():
    with FrameWindow(1, 4) as window:
        _fill(window, 2)
    with pytest.raises(RuntimeError):
        window.add(_frame(1), 1.0)


def test_reads_after_close_fail(tmp_path):
    window = FrameWindow(1, 4)
    _fill(window, 3)
    window.close()
    with pytest.raises(RuntimeError, match="fechada"):
        window.ordered_snapshot()
    target = tmp_path / "x.avi"
    with pytest.raises(RuntimeError, match="fechada"):
        window.export(str(target), "MJPG")
    assert not target.exists()


def test_export_zero_time_span_opens_no_writer(tmp_path):
    window = FrameWindow(1, 5)
    for i in range(3):
        window.add(_frame(i), 42.0)
    writers = []
    with pytest.raises(WriterOpenFailed, match="intervalo de tempo nulo"):
        window.export(str(tmp_path / "x.avi"), "MJPG", writer_factory=_factory(writers))
    assert writers == []
    assert not (tmp_path / "x.avi").exists()
