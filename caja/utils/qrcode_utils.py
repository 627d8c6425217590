import base64
from io import BytesIO
import qrcode
from qrcode.constants import ERROR_CORRECT_M

QR_BOX_SIZE = 6
QR_BORDER = 2


def receipt_qr_data_uri(url: str) -> str:
    """
    QR code (PNG) pointant vers l'URL publique d'un reçu, en data URI.
    La correction M reste lisible sur un ticket imprimé ou une photo d'écran.
    """
    qr = qrcode.QRCode(error_correction=ERROR_CORRECT_M, box_size=QR_BOX_SIZE, border=QR_BORDER)
    qr.add_data(url)
    qr.make(fit=True)
    png = BytesIO()
    qr.make_image(fill_color="black", back_color="white").save(png, format="PNG")
    return "data:image/png;base64," + base64.b64encode(png.getvalue()).decode("ascii")
