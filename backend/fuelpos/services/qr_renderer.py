"""
QR Image Renderer — turns a payload string into a scannable PNG data URL.
"""
import base64
import io

import qrcode
from qrcode.constants import ERROR_CORRECT_M
from qrcode.exceptions import DataOverflowError

from fuelpos.services.qr_payload import EncodingError


def render_image(payload: str, box_size: int = 10, border: int = 2) -> str:
    """Render ``payload`` as ``data:image/png;base64,...``.

    Raises:
        EncodingError: the payload is empty or cannot be rendered.
    """
    if not payload:
        raise EncodingError("Cannot render an empty payload")
    try:
        qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=box_size, border=border)
        qr.add_data(payload)
        qr.make(fit=True)
        image = qr.make_image(fill_color="black", back_color="white")
        buffer = io.BytesIO()
        image.save(buffer)
    except (ValueError, OSError, DataOverflowError) as exc:
        raise EncodingError(f"QR rendering failed: {exc}")
    return "data:image/png;base64," + base64.b64encode(buffer.getvalue()).decode("ascii")
