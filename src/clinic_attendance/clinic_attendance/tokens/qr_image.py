from __future__ import annotations

import io
from typing import BinaryIO, Optional

import qrcode
from PIL import Image, UnidentifiedImageError
from pyzbar.pyzbar import decode as pyzbar_decode

from ..core.exceptions import ValidationError

_NO_QR = "No QR code found in the image"


def render_qr_png(data: str, *, box_size: int = 10, border: int = 2) -> bytes:
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_L,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def decode_qr_image(stream: BinaryIO) -> Optional[str]:
    """First QR payload found in an uploaded photo, or None.

    Raises ValidationError for uploads that are not readable images or whose
    QR payload is not UTF-8 text.
    """
    try:
        img = Image.open(stream).convert("RGB")
    except (UnidentifiedImageError, OSError):
        # OSError covers truncated files that PIL identifies but cannot load.
        raise ValidationError(_NO_QR)

    decoded = pyzbar_decode(img)
    if not decoded:
        return None
    try:
        return decoded[0].data.decode("utf-8").strip()
    except UnicodeDecodeError:
        raise ValidationError(_NO_QR)
