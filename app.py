import os
import json
import logging
from decimal import Decimal, InvalidOperation

from flask import Flask, request, jsonify

from pix_generator import (
    MalformedPixKeyError,
    PixKeyType,
    PixPayload,
    format_pix_key,
    format_pix_key_for_display,
    generate_pix_code,
    validate_pix_key,
)
from pix_payments import (
    PaymentConfigError,
    commission_pix_charge,
    order_pix_charge,
    paquera_pix_charge,
)
from pix_qrcode import generate_qr_code_base64
from supabase_api import SupabaseAPIError, create_supabase_provider
from validate_pix import PixDecodeError, decode_pix_code, validate_pix_code

app = Flask(__name__)

# Configurar logging
logging.basicConfig(level=logging.DEBUG)

# Configure secret key with fallback for development
secret_key = os.environ.get("SESSION_SECRET")
if not secret_key:
    app.logger.warning(
        "[PROD] SESSION_SECRET não encontrado, usando chave de desenvolvimento"
    )
    secret_key = "dev-secret-key-change-in-production"
app.secret_key = secret_key

STRICT_MODE = os.environ.get("PIX_STRICT_MODE", "").strip().lower() in ("1", "true", "yes")


def _error(message: str, status: int = 400):
    return jsonify({'success': False, 'error': message}), status


def _get_json_body():
    """Retorna o corpo JSON da requisição, ou None se ausente/inválido"""
    if not request.is_json:
        app.logger.error("[PROD] Requisição não contém JSON válido")
        return None
    data = request.get_json(silent=True)
    if not data or not isinstance(data, dict):
        app.logger.error("[PROD] Nenhum dado recebido na requisição")
        return None
    return data


def _parse_amount(value):
    """Converte o valor recebido em Decimal (None quando ausente)"""
    if value is None or value == '':
        return None
    try:
        # str() evita herdar a imprecisão do float do JSON
        amount = Decimal(str(value).replace(',', '.'))
    except InvalidOperation:
        raise ValueError(f"Valor inválido: {value}")
    if not amount.is_finite():
        raise ValueError(f"Valor inválido: {value}")
    return amount


def _parse_flag(value) -> bool:
    """Booleano JSON ou string no mesmo formato de PIX_STRICT_MODE"""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes")
    return False


def _is_strict(data: dict) -> bool:
    if 'strict' not in data:
        return STRICT_MODE
    return _parse_flag(data['strict'])


def _non_string_fields(data: dict, fields) -> list:
    """Campos presentes que não são texto"""
    return [f for f in fields if data.get(f) is not None and not isinstance(data[f], str)]


@app.route('/health')
def health():
    return jsonify({'success': True, 'status': 'ok'})


@app.route('/api/pix/generate', methods=['POST'])
def generate_pix():
    """Gerar código PIX copia e cola (e QR Code opcional)"""
    data = _get_json_body()
    if data is None:
        return _error('Dados não enviados na requisição')

    missing = [f for f in ('pix_key', 'pix_key_type', 'merchant_name', 'merchant_city')
               if not data.get(f)]
    if missing:
        app.logger.error(f"[PROD] Campos obrigatórios ausentes: {missing}")
        return _error(f"Campos obrigatórios ausentes: {', '.join(missing)}")

    not_text = _non_string_fields(data, ('pix_key', 'pix_key_type', 'merchant_name',
                                         'merchant_city', 'txid', 'description'))
    if not_text:
        app.logger.error(f"[PROD] Campos devem ser texto: {not_text}")
        return _error(f"Campos devem ser texto: {', '.join(not_text)}")

    try:
        payload = PixPayload(
            pix_key=data['pix_key'],
            pix_key_type=data['pix_key_type'],
            merchant_name=data['merchant_name'],
            merchant_city=data['merchant_city'],
            amount=_parse_amount(data.get('amount')),
            txid=data.get('txid'),
            description=data.get('description'),
        )
        pix_code = generate_pix_code(payload, strict=_is_strict(data))
    except ValueError as e:
        app.logger.error(f"[PROD] Erro ao gerar PIX: {e}")
        return _error(str(e))

    app.logger.info(f"[PROD] ✅ PIX gerado com {len(pix_code)} caracteres")

    response = {'success': True, 'pix_code': pix_code}
    if data.get('include_qr_code'):
        response['qr_code'] = generate_qr_code_base64(pix_code)
    return jsonify(response)


@app.route('/api/pix/format-key', methods=['POST'])
def format_key():
    """Chave normalizada para transmissão e formatada para exibição"""
    data = _get_json_body()
    if data is None or not data.get('pix_key'):
        return _error('pix_key é obrigatório')

    not_text = _non_string_fields(data, ('pix_key', 'pix_key_type'))
    if not_text:
        return _error(f"Campos devem ser texto: {', '.join(not_text)}")

    key = data['pix_key']
    key_type = data.get('pix_key_type', PixKeyType.RANDOM.value)

    try:
        normalized = validate_pix_key(key, key_type) if _is_strict(data) else format_pix_key(key, key_type)
    except MalformedPixKeyError as e:
        app.logger.warning(f"[PROD] ⚠️ Chave PIX inválida ({key_type}): {e}")
        return _error(str(e))

    return jsonify({
        'success': True,
        'normalized': normalized,
        'display': format_pix_key_for_display(key, key_type),
    })


@app.route('/api/pix/validate', methods=['POST'])
def validate_pix():
    """Validar e decodificar um código PIX"""
    data = _get_json_body()
    if data is None or not data.get('pix_code'):
        return _error('pix_code é obrigatório')

    result = validate_pix_code(data['pix_code'])
    app.logger.info(
        f"[PROD] Validação PIX: {'✅ válido' if result['valid'] else '❌ ' + result.get('error', '')}")
    return jsonify({'success': True, **result})


@app.route('/api/pix/qrcode', methods=['POST'])
def pix_qrcode():
    """Renderizar QR Code de um código PIX existente"""
    data = _get_json_body()
    if data is None or not data.get('pix_code'):
        return _error('pix_code é obrigatório')
    if _non_string_fields(data, ('pix_code',)):
        return _error('pix_code deve ser texto')

    pix_code = data['pix_code'].strip()
    try:
        decode_pix_code(pix_code)
    except PixDecodeError as e:
        return _error(f"Código PIX inválido: {e}")

    qr_code = generate_qr_code_base64(pix_code)
    if not qr_code:
        return _error('Não foi possível gerar o QR Code', 500)
    return jsonify({'success': True, 'qr_code': qr_code})


@app.route('/api/paquera/pix', methods=['POST'])
def paquera_pix():
    """PIX da assinatura Paquera"""
    data = _get_json_body()
    if data is None or not data.get('profile_id'):
        return _error('profile_id é obrigatório')

    try:
        charge = paquera_pix_charge(str(data['profile_id']))
    except PaymentConfigError as e:
        app.logger.error(f"[PROD] ❌ PIX da plataforma não configurado: {e}")
        return _error(str(e), 500)

    return jsonify({'success': True, **charge.to_dict()})


@app.route('/api/commissions/pix', methods=['POST'])
def commission_pix():
    """PIX de pagamento de comissão"""
    data = _get_json_body()
    if data is None:
        return _error('Dados não enviados na requisição')

    try:
        amount = _parse_amount(data.get('amount'))
        if amount is None:
            return _error('amount é obrigatório')
        charge = commission_pix_charge(amount)
    except PaymentConfigError as e:
        app.logger.error(f"[PROD] ❌ PIX da plataforma não configurado: {e}")
        return _error(str(e), 500)
    except ValueError as e:
        return _error(str(e))

    return jsonify({'success': True, **charge.to_dict()})


@app.route('/api/businesses/<business_id>/orders/pix', methods=['POST'])
def order_pix(business_id):
    """PIX de um pedido, com a chave configurada pela empresa"""
    data = _get_json_body()
    if data is None:
        return _error('Dados não enviados na requisição')

    app.logger.info(f"[PROD] Pedido recebido: {json.dumps(data, ensure_ascii=False)}")

    missing = [f for f in ('order_number', 'total', 'customer_name') if not data.get(f)]
    if missing:
        return _error(f"Campos obrigatórios ausentes: {', '.join(missing)}")

    not_text = _non_string_fields(data, ('customer_name',))
    if not_text:
        return _error(f"Campos devem ser texto: {', '.join(not_text)}")

    try:
        total = _parse_amount(data['total'])
    except ValueError as e:
        return _error(str(e))

    try:
        provider = create_supabase_provider()
    except ValueError as e:
        app.logger.error(f"[PROD] ❌ Supabase não configurado: {e}")
        return _error('Não foi possível carregar os dados da empresa', 502)

    try:
        settings = provider.get_business_pix_settings(business_id)
    except SupabaseAPIError as e:
        app.logger.error(f"[PROD] ❌ Erro ao buscar empresa {business_id}: {e}")
        return _error('Não foi possível carregar os dados da empresa', 502)
    finally:
        provider.close()

    if settings is None:
        return _error('Empresa não encontrada', 404)

    try:
        charge = order_pix_charge(str(data['order_number']), total,
                                  data['customer_name'], settings)
    except PaymentConfigError as e:
        app.logger.warning(f"[PROD] ⚠️ {e}")
        return _error(str(e))

    return jsonify({'success': True, **charge.to_dict()})


if __name__ == '__main__':
    from logging.handlers import RotatingFileHandler

    # Detectar se está em produção
    is_production = os.environ.get(
        'ENVIRONMENT') == 'production' or os.environ.get('PORT') is not None

    if is_production:
        file_handler = RotatingFileHandler('app.log',
                                           maxBytes=10240,
                                           backupCount=10)
        file_handler.setFormatter(
            logging.Formatter(
                '%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
            ))
        file_handler.setLevel(logging.INFO)
        app.logger.addHandler(file_handler)
        app.logger.setLevel(logging.INFO)
        app.logger.info('[PROD] Serviço PIX iniciado em produção')
    else:
        app.logger.setLevel(logging.DEBUG)
        app.logger.info('[DEV] Serviço PIX iniciado em desenvolvimento')

    port = int(os.environ.get('PORT', 5000))
    debug_mode = not is_production
    app.run(host='0.0.0.0', port=port, debug=debug_mode)
