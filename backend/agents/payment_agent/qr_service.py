"""
qr_service.py - Renders the wallet link as a PNG data URI for the checkout modal.

The image is 240×240 with a one-module quiet zone. Any failure inside the
qrcode / Pillow stack is re-raised as ImageGenerationError so the store can
refuse to commit the session.
"""
import base64
import io
import logging

import qrcode
from PIL import Image

from backend.errors import ImageGenerationError

logger = logging.getLogger(__name__)

QR_SIZE_PX = 240
QR_BORDER_MODULES = 1


def render_qr_data_uri(payload: str) -> str:
    """Encode payload as a QR code and return it as data:image/png;base64,..."""
    try:
        qr = qrcode.QRCode(
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=8,
            border=QR_BORDER_MODULES,
        )
        qr.add_data(payload)
        qr.make(fit=True)
        img = qr.make_image(fill_color="black", back_color="white").get_image()
        img = img.resize((QR_SIZE_PX, QR_SIZE_PX), Image.NEAREST)

        buffer = io.BytesIO()
        img.save(buffer, format="PNG")
    except Exception as exc:
        logger.error("QR generation failed: %s", exc, exc_info=True)
        raise ImageGenerationError() from exc

    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:image/png;base64,{encoded}"
