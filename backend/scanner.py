import cv2 # type: ignore
import numpy as np # type: ignore

from backend.config import QR_QUIET_ZONE_MODULES, QR_SCALE
from backend.errors import ValidationError


def _detect(image):
    # detectors keep per-call state; one per decode
    data, points, _ = cv2.QRCodeDetector().detectAndDecode(image)
    return points is not None, (data or "").strip()


def decode_qr_from_frame(frame_bgr):
    """
    Returns:
      (code:str|None, reason:str|None)
    """
    found, code = _detect(frame_bgr)

    if not code and frame_bgr.ndim == 3:
        # colour noise can hide the finder patterns; retry on luminance only
        gray = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2GRAY)
        found_gray, code = _detect(gray)
        found = found or found_gray

    if not found:
        return None, "no_qr_code"
    if not code:
        return None, "empty_payload"
    return code, None


def decode_qr_from_bytes(data: bytes):
    img_array = np.frombuffer(data, np.uint8)
    frame = cv2.imdecode(img_array, cv2.IMREAD_COLOR)
    if frame is None:
        raise ValidationError("Invalid image data.")
    return decode_qr_from_frame(frame)


def render_qr(payload: str, scale: int = QR_SCALE):
    encoder = cv2.QRCodeEncoder.create()
    try:
        modules = encoder.encode(payload)
    except cv2.error as e:
        # payload over QR capacity
        raise ValidationError("Could not encode QR payload.") from e
    if modules is None or modules.size == 0:
        raise ValidationError("Could not encode QR payload.")

    if modules.ndim == 3:
        modules = cv2.cvtColor(modules, cv2.COLOR_BGR2GRAY)
    scaled = cv2.resize(
        modules,
        (modules.shape[1] * scale, modules.shape[0] * scale),
        interpolation=cv2.INTER_NEAREST,
    )
    pad = QR_QUIET_ZONE_MODULES * scale
    return cv2.copyMakeBorder(scaled, pad, pad, pad, pad, cv2.BORDER_CONSTANT, value=255)


def render_qr_png(payload: str, scale: int = QR_SCALE) -> bytes:
    ok, buf = cv2.imencode(".png", render_qr(payload, scale))
    if not ok:
        raise ValidationError("Could not render QR image.")
    return buf.tobytes()
