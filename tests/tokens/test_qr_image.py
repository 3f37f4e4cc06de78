import io
from types import SimpleNamespace

import pytest

from src.clinic_attendance.clinic_attendance.core.exceptions import ValidationError
from src.clinic_attendance.clinic_attendance.tokens import qr_image


def test_rendered_png_decodes_to_its_payload():
    png = qr_image.render_qr_png("https://clinic.test/scan?token=abc")

    assert png.startswith(b"\x89PNG")
    assert qr_image.decode_qr_image(io.BytesIO(png)) == "https://clinic.test/scan?token=abc"


def test_upload_that_is_not_an_image_is_rejected():
    with pytest.raises(ValidationError, match="No QR code found"):
        qr_image.decode_qr_image(io.BytesIO(b"not an image"))


def test_binary_qr_payload_is_rejected(monkeypatch):
    monkeypatch.setattr(qr_image, "pyzbar_decode", lambda img: [SimpleNamespace(data=b"\xff\xfe")])

    with pytest.raises(ValidationError, match="No QR code found"):
        qr_image.decode_qr_image(io.BytesIO(qr_image.render_qr_png("x")))


def test_image_without_qr_returns_none(monkeypatch):
    monkeypatch.setattr(qr_image, "pyzbar_decode", lambda img: [])

    assert qr_image.decode_qr_image(io.BytesIO(qr_image.render_qr_png("x"))) is None
