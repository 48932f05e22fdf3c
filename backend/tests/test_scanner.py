import cv2
import numpy as np
import pytest

from backend.errors import ValidationError
from backend.scanner import decode_qr_from_bytes, decode_qr_from_frame, render_qr, render_qr_png


def test_rendered_code_decodes_back():
    image = render_qr("STU001")
    frame = cv2.cvtColor(image, cv2.COLOR_GRAY2BGR)

    code, reason = decode_qr_from_frame(frame)
    assert reason is None
    assert code == "STU001"


def test_png_upload_decodes():
    png = render_qr_png("STU1760000000000")
    assert png.startswith(b"\x89PNG")

    code, reason = decode_qr_from_bytes(png)
    assert (code, reason) == ("STU1760000000000", None)


def test_render_adds_quiet_zone():
    image = render_qr("STU001", scale=4)
    assert image[0, 0] == 255
    assert image[-1, -1] == 255
    assert image.shape[0] == image.shape[1]


def test_blank_frame_has_no_code():
    frame = np.full((240, 320, 3), 255, dtype=np.uint8)
    assert decode_qr_from_frame(frame) == (None, "no_qr_code")


def test_garbage_bytes_are_rejected():
    with pytest.raises(ValidationError):
        decode_qr_from_bytes(b"not-an-image")


def test_payload_over_capacity_is_rejected():
    with pytest.raises(ValidationError) as exc:
        render_qr("X" * 5000)
    assert exc.value.message == "Could not encode QR payload."
