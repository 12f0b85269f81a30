"""
UPI Payment Payloads
=====================
Builds the upi://pay intent string and a scannable QR (PNG data URI) of it.
"""

import io
import base64
from decimal import Decimal
from urllib.parse import urlencode, quote

import qrcode
from qrcode.image.pil import PilImage

from config.settings import UPI_CURRENCY


def build_upi_string(
    payee_id: str,
    payee_name: str,
    amount: Decimal,
    transaction_id: str,
    note: str = "",
) -> str:
    """upi://pay?pa=<payee>&pn=<name>&am=<amount>&cu=<currency>&tr=<txn>&tn=<note>"""
    params = {
        "pa": payee_id,
        "pn": payee_name,
        "am": f"{amount:.2f}",
        "cu": UPI_CURRENCY,
        "tr": transaction_id,
    }
    if note:
        params["tn"] = note
    return "upi://pay?" + urlencode(params, quote_via=quote, safe="@")


def generate_qr_data_uri(data: str) -> str:
    """QR code PNG of `data`, as a data URI the front end can drop into <img src>."""
    qr = qrcode.QRCode(
        version=None,  # auto-fit
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=8,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img: PilImage = qr.make_image(fill_color="black", back_color="white")

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return "data:image/png;base64," + base64.b64encode(buf.getvalue()).decode("ascii")
