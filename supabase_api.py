import os
import logging
from dataclasses import dataclass
from typing import Dict, Optional

import requests

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BUSINESS_PIX_COLUMNS = "id,business_name,pix_key,pix_key_type,pix_holder_name,accepts_pix"


class SupabaseAPIError(Exception):
    """Falha ao consultar o backend Supabase"""


@dataclass
class BusinessPixSettings:
    business_id: str
    business_name: str
    pix_key: Optional[str] = None
    pix_key_type: str = "cpf"
    pix_holder_name: Optional[str] = None
    accepts_pix: bool = False

    @classmethod
    def from_row(cls, row: dict) -> "BusinessPixSettings":
        return cls(
            business_id=str(row.get("id", "")),
            business_name=row.get("business_name") or "",
            pix_key=row.get("pix_key") or None,
            pix_key_type=row.get("pix_key_type") or "cpf",
            pix_holder_name=row.get("pix_holder_name") or None,
            accepts_pix=bool(row.get("accepts_pix")),
        )


class SupabaseAPI:
    """
    Cliente REST (PostgREST) somente leitura para as configurações PIX
    das empresas cadastradas
    """

    def __init__(self, url: Optional[str] = None, api_key: Optional[str] = None,
                 timeout: int = 15, max_retries: int = 3):
        """
        Inicializar cliente Supabase

        Args:
            url: URL do projeto (se None, busca SUPABASE_URL)
            api_key: Chave anon (se None, busca SUPABASE_ANON_KEY)
            timeout: Timeout para requisições em segundos
            max_retries: Número máximo de tentativas em caso de falha de conexão
        """
        self.url = (url or os.getenv("SUPABASE_URL") or "").rstrip("/")
        self.api_key = api_key or os.getenv("SUPABASE_ANON_KEY")
        self.timeout = timeout
        self.max_retries = max_retries

        if not self.url or not self.api_key:
            raise ValueError("SUPABASE_URL e SUPABASE_ANON_KEY são obrigatórios")

        self.session = requests.Session()
        self.session.headers.update(self._get_headers())

        logger.info(f"✅ Supabase API initialized - URL: {self.url}")

    def close(self) -> None:
        self.session.close()

    def _get_headers(self) -> Dict[str, str]:
        return {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Accept": "application/json",
        }

    def _make_request_with_retry(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Fazer requisição HTTP com retry automático
        """
        for attempt in range(self.max_retries):
            try:
                return self.session.request(method, url, timeout=self.timeout, **kwargs)
            except requests.exceptions.RequestException as e:
                if attempt == self.max_retries - 1:
                    logger.error(f"❌ Supabase request failed after {self.max_retries} attempts: {e}")
                    raise SupabaseAPIError(f"Supabase connection error: {e}") from e
                logger.warning(f"⚠️ Supabase request attempt {attempt + 1} failed: {e}, retrying...")

    def get_business_pix_settings(self, business_id: str) -> Optional[BusinessPixSettings]:
        """
        Buscar configurações PIX de uma empresa

        Args:
            business_id: ID da empresa

        Returns:
            BusinessPixSettings, ou None se a empresa não existir

        Raises:
            SupabaseAPIError: Se o backend responder com erro
        """
        response = self._make_request_with_retry(
            "GET",
            f"{self.url}/rest/v1/businesses",
            params={"id": f"eq.{business_id}", "select": BUSINESS_PIX_COLUMNS},
        )

        if response.status_code != 200:
            error_msg = f"Supabase API error: HTTP {response.status_code} - {response.text}"
            logger.error(f"❌ {error_msg}")
            raise SupabaseAPIError(error_msg)

        rows = response.json()
        if not rows:
            logger.info(f"Empresa não encontrada: {business_id}")
            return None

        return BusinessPixSettings.from_row(rows[0])


def create_supabase_provider(url: Optional[str] = None, api_key: Optional[str] = None) -> SupabaseAPI:
    """
    Criar instância do cliente Supabase com configurações padrão
    """
    return SupabaseAPI(url=url, api_key=api_key)
