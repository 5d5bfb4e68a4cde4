import io
import base64
import logging

import qrcode

logger = logging.getLogger(__name__)


def generate_qr_code_base64(pix_code: str, box_size: int = 10, border: int = 4) -> str:
    """
    Gerar QR Code em base64 a partir do código PIX

    Args:
        pix_code: Código PIX "copia e cola"
        box_size: Pixels por módulo
        border: Margem em módulos

    Returns:
        Data URI PNG, ou string vazia se a renderização falhar

    Raises:
        ValueError: Se o código PIX estiver vazio
    """
    if not pix_code:
        raise ValueError("Código PIX é obrigatório para gerar o QR Code")

    try:
        # Nível M, o mesmo usado nas telas de pagamento
        qr = qrcode.QRCode(
            version=None,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=box_size,
            border=border
        )
        qr.add_data(pix_code)
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format='PNG')
        buffer.seek(0)

        base64_image = base64.b64encode(buffer.getvalue()).decode()
        return f"data:image/png;base64,{base64_image}"

    except Exception as e:
        logger.error(f"❌ Erro ao gerar QR Code: {e}")
        return ""
