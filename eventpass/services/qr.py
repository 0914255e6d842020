from io import BytesIO

import qrcode


def render_qr_png(data: str, box_size: int = 10, border: int = 4) -> bytes:
    """Encode `data` as a QR code and return the PNG bytes."""
    qr = qrcode.QRCode(box_size=box_size, border=border)
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    bio = BytesIO()
    img.save(bio, "PNG")
    return bio.getvalue()
