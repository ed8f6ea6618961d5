import qrcode
from io import BytesIO


def generate_qr_code(confirmation_code: str) -> bytes:
    """
    Generate a QR code image encoding a ticket's confirmation code.
    Returns the image as PNG bytes.
    """
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(confirmation_code)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffer = BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()
