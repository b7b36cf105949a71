import io
import threading

from PIL import Image

from tabsnap.extension_bridge import CaptureSource
from tabsnap.imaging import encode_data_url


def make_jpeg_data_url(width=640, height=480, color=(200, 40, 40)):
    img = Image.new("RGB", (width, height), color)
    out = io.BytesIO()
    img.save(out, format="JPEG", quality=80)
    return encode_data_url(out.getvalue(), "image/jpeg")


class ScriptedCaptureSource(CaptureSource):
    """Capture source that replays a list of results; exceptions are raised."""

    def __init__(self, script):
        self.script = list(script)
        self.calls = []
        self.lock = threading.Lock()

    def capture_visible_area(self, window_id, quality, cancel_event=None):
        with self.lock:
            self.calls.append((window_id, quality))
            result = self.script.pop(0) if self.script else self.script_exhausted()
        if isinstance(result, Exception):
            raise result
        return result

    def script_exhausted(self):
        raise AssertionError("capture called more often than scripted")


class Clock:
    """Millisecond clock that advances by step on every call."""

    def __init__(self, start=1_000, step=1):
        self.now = start
        self.step = step
        self.calls = 0

    def __call__(self):
        self.calls += 1
        value = self.now
        self.now += self.step
        return value


def fake_resizer(image, width, quality):
    return f"thumb:{width}:{quality}:{image}"


