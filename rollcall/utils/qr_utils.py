import base64
import io

import qrcode


def render_qr_b64(token: str) -> str:
    """PNG of ``token`` as a QR code, base64 encoded for JSON responses."""
    img = qrcode.make(token)
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return base64.b64encode(buf.getvalue()).decode("utf-8")
