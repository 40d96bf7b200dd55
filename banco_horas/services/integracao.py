"""Consumption sources for the monthly calculation.

``buscar_consumo`` returns billable hours/tickets of a month;
``buscar_requerimentos_em_desenvolvimento`` returns requirements already
assigned to the billing month but not yet sent (informational only). Any
object with these two methods can serve as the consumption source.
"""
from __future__ import annotations

import datetime
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict

import jwt
import requests
from django.conf import settings
from django.core.exceptions import ImproperlyConfigured
from django.db.models import Count, Sum

from ..exceptions import IntegracaoError
from ..models import Apontamento, Requerimento
from ..utils.horas import ZERO, to_decimal
from ..utils.periodos import primeiro_dia, proximo_mes
from ..utils.retry import retry_call

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Consumo:
    horas: Decimal = ZERO
    tickets: int = 0


def validar_periodo(empresa_id, mes, ano):
    if not empresa_id:
        raise IntegracaoError("validacao", "ID da empresa é obrigatório")
    if not 1 <= int(mes) <= 12:
        raise IntegracaoError("validacao", f"Mês inválido: {mes}")
    if int(ano) < 2000:
        raise IntegracaoError("validacao", f"Ano inválido: {ano}")


class OrmConsumoProvider:
    """Reads consumption from the local apontamento/requerimento tables."""

    def buscar_consumo(self, empresa_id, mes, ano) -> Consumo:
        validar_periodo(empresa_id, mes, ano)
        inicio = primeiro_dia(mes, ano)
        fim = primeiro_dia(*proximo_mes(mes, ano))

        apontamentos = Apontamento.objects.filter(
            empresa_id=empresa_id,
            data_atividade__gte=inicio,
            data_atividade__lt=fim,
            atividade_interna=False,
        ).aggregate(horas=Sum("horas"), tickets=Count("id"))

        enviados = Requerimento.objects.filter(
            empresa_id=empresa_id, mes_cobranca=mes, ano_cobranca=ano, enviado=True
        ).aggregate(horas=Sum("horas"), tickets=Sum("tickets"))

        return Consumo(
            horas=(apontamentos["horas"] or ZERO) + (enviados["horas"] or ZERO),
            tickets=(apontamentos["tickets"] or 0) + (enviados["tickets"] or 0),
        )

    def buscar_requerimentos_em_desenvolvimento(self, empresa_id, mes, ano) -> Consumo:
        validar_periodo(empresa_id, mes, ano)
        pendentes = Requerimento.objects.filter(
            empresa_id=empresa_id, mes_cobranca=mes, ano_cobranca=ano, enviado=False
        ).aggregate(horas=Sum("horas"), tickets=Sum("tickets"))
        return Consumo(horas=pendentes["horas"] or ZERO, tickets=pendentes["tickets"] or 0)


def gerar_service_jwt(role: str = "service_role", expires_minutes: int = 5) -> str:
    secret = settings.SUPABASE_JWT_SECRET
    if not secret:
        raise ImproperlyConfigured("A variável de ambiente 'SUPABASE_JWT_SECRET' está em falta.")
    now = datetime.datetime.now(datetime.timezone.utc)
    payload: Dict[str, Any] = {
        "role": role,
        "iat": now,
        "exp": now + datetime.timedelta(minutes=expires_minutes),
    }
    return jwt.encode(payload, secret, algorithm="HS256")


class SupabaseConsumoProvider:
    """Reads consumption through Supabase RPC functions over PostgREST."""

    FN_CONSUMO = "banco_horas_consumo"
    FN_DESENVOLVIMENTO = "banco_horas_requerimentos_desenvolvimento"

    def __init__(self, rest_url=None, api_key=None, session=None):
        self.rest_url = rest_url or settings.SUPABASE_REST_URL
        self.api_key = api_key or settings.SUPABASE_API_KEY
        if not self.rest_url or not self.api_key:
            raise ImproperlyConfigured("SUPABASE_REST_URL e SUPABASE_API_KEY são obrigatórios.")
        self.session = session or requests.Session()

    def _post(self, fn_name, payload):
        headers = {
            "Authorization": f"Bearer {gerar_service_jwt()}",
            "apikey": self.api_key,
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        url = f"{self.rest_url}/rpc/{fn_name}"
        logger.debug("🔗 Chamada RPC para %s %s", url, payload)
        try:
            resp = self.session.post(url, headers=headers, json=payload, timeout=settings.BANCO_HORAS_RPC_TIMEOUT)
        except requests.exceptions.RequestException as exc:
            raise IntegracaoError("supabase", f"Erro de rede: {exc}", retryable=True) from exc

        if resp.status_code >= 400:
            retryable = resp.status_code >= 500 or resp.status_code == 429
            raise IntegracaoError(
                "supabase",
                f"Erro HTTP {resp.status_code}: {resp.text[:200]}",
                codigo=resp.status_code,
                retryable=retryable,
            )
        return resp.json()

    def _chamar(self, fn_name, empresa_id, mes, ano) -> Consumo:
        validar_periodo(empresa_id, mes, ano)
        payload = {"p_empresa_id": empresa_id, "p_mes": mes, "p_ano": ano}
        data = retry_call(
            self._post,
            fn_name,
            payload,
            excecoes=(IntegracaoError,),
            deve_repetir=lambda exc: exc.retryable,
        )
        if isinstance(data, list):
            data = data[0] if data else {}
        return Consumo(horas=to_decimal(data.get("horas")), tickets=int(data.get("tickets") or 0))

    def buscar_consumo(self, empresa_id, mes, ano) -> Consumo:
        return self._chamar(self.FN_CONSUMO, empresa_id, mes, ano)

    def buscar_requerimentos_em_desenvolvimento(self, empresa_id, mes, ano) -> Consumo:
        return self._chamar(self.FN_DESENVOLVIMENTO, empresa_id, mes, ano)


def get_consumo_provider():
    fonte = getattr(settings, "BANCO_HORAS_CONSUMO_PROVIDER", "orm")
    if fonte == "supabase":
        return SupabaseConsumoProvider()
    if fonte == "orm":
        return OrmConsumoProvider()
    raise ImproperlyConfigured(f"BANCO_HORAS_CONSUMO_PROVIDER desconhecido: {fonte!r}")
