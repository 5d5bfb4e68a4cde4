"""
Pytest configuration and fixtures.
"""

import os
import pytest

from pix_generator import PixPayload
from pix_payments import PixReceiver
from supabase_api import BusinessPixSettings

os.environ['ENVIRONMENT'] = 'test'
os.environ.setdefault('SESSION_SECRET', 'test-secret')


@pytest.fixture
def paquera_payload():
    """Payload da assinatura Paquera."""
    return PixPayload(
        pix_key="09607890906",
        pix_key_type="cpf",
        merchant_name="Bruno Eduardo Ochner",
        merchant_city="Timbó",
        amount=19.90,
        description="Paquera PAQ-ABCD1234",
    )


@pytest.fixture
def platform_receiver():
    return PixReceiver(
        pix_key="09607890906",
        pix_key_type="cpf",
        holder_name="Bruno Eduardo Ochner",
    )


@pytest.fixture
def platform_env(monkeypatch):
    """Recebedor da plataforma configurado via ambiente."""
    monkeypatch.setenv('PLATFORM_PIX_KEY', '096.078.909-06')
    monkeypatch.setenv('PLATFORM_PIX_KEY_TYPE', 'cpf')
    monkeypatch.setenv('PLATFORM_PIX_HOLDER_NAME', 'Bruno Eduardo Ochner')


@pytest.fixture
def business_settings():
    return BusinessPixSettings(
        business_id="b1",
        business_name="Padaria Central",
        pix_key="contato@PadariaCentral.com.br",
        pix_key_type="email",
        pix_holder_name="Maria Souza",
        accepts_pix=True,
    )


@pytest.fixture
def client():
    """Flask test client."""
    from app import app
    app.config['TESTING'] = True
    with app.test_client() as test_client:
        yield test_client
