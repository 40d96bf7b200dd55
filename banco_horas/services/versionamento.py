"""Append-only history of monthly calculations.

A :class:`~banco_horas.models.Versao` holds the state a ``Calculo`` had right
before it was overwritten. Versions are never updated or deleted.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any, List

from django.db.models import Max

from ..exceptions import VersionamentoError
from ..models import Calculo, Versao

logger = logging.getLogger(__name__)

CAMPOS_RASTREADOS = (
    "saldo",
    "baseline_aplicado",
    "horas_consumidas",
    "excedente_horas",
    "excedente_valor",
    "saldo_tickets",
    "excedente_tickets",
    "excedente_tickets_valor",
    "status",
)


@dataclass(frozen=True)
class CampoModificado:
    campo: str
    valor_antigo: Any
    valor_novo: Any


@dataclass
class DiferencasVersao:
    campos_modificados: List[CampoModificado] = field(default_factory=list)
    campos_adicionados: List[str] = field(default_factory=list)
    campos_removidos: List[str] = field(default_factory=list)

    @property
    def tem_diferencas(self):
        return bool(self.campos_modificados or self.campos_adicionados or self.campos_removidos)

    def as_dict(self):
        return {
            "campos_modificados": [
                {"campo": c.campo, "valor_antigo": c.valor_antigo, "valor_novo": c.valor_novo}
                for c in self.campos_modificados
            ],
            "campos_adicionados": self.campos_adicionados,
            "campos_removidos": self.campos_removidos,
        }


def snapshot_before_overwrite(calculo, motivo="", tipo_mudanca=Versao.TipoMudanca.RECALCULO, usuario=None):
    """Store the current state of ``calculo`` as a new version.

    Returns ``None`` for a calculation that was never persisted: the first
    calculation of a month has nothing to preserve. Callers must hold the row
    lock of ``calculo`` so the snapshot and the overwrite are not interleaved.
    """
    if calculo is None or calculo.pk is None:
        return None

    ultimo = Versao.objects.filter(calculo=calculo).aggregate(ultimo=Max("numero"))["ultimo"] or 0
    versao = Versao.objects.create(
        calculo=calculo,
        empresa_id=calculo.empresa_id,
        mes=calculo.mes,
        ano=calculo.ano,
        numero=ultimo + 1,
        dados=calculo.to_snapshot(),
        motivo=motivo[:255],
        tipo_mudanca=tipo_mudanca,
        created_by=usuario,
    )
    logger.debug("🗂️ Versão %s criada para cálculo %s (%02d/%s)", versao.numero, calculo.pk, calculo.mes, calculo.ano)
    return versao


def listar_versoes(empresa_id, mes, ano):
    """Versions of one month, newest first."""
    return list(
        Versao.objects.filter(empresa_id=empresa_id, mes=mes, ano=ano).order_by("-numero", "-created_at")
    )


def obter_versao(versao_id):
    try:
        return Versao.objects.select_related("calculo").get(pk=versao_id)
    except Versao.DoesNotExist as exc:
        raise VersionamentoError(f"Versão {versao_id} não encontrada", dados={"versao_id": versao_id}) from exc


def _dados(origem):
    if isinstance(origem, Versao):
        return origem.dados
    if isinstance(origem, Calculo):
        return origem.to_snapshot()
    if isinstance(origem, dict):
        return origem
    raise VersionamentoError(f"Não é possível comparar {type(origem).__name__}")


def _normalizar(valor):
    # Decimal("10.00") e "10.0" são o mesmo valor
    if isinstance(valor, bool) or valor is None:
        return valor
    if isinstance(valor, (int, float, Decimal, str)):
        try:
            return Decimal(str(valor)).normalize()
        except InvalidOperation:
            return valor
    return valor


def comparar_versoes(antiga, nova, campos=CAMPOS_RASTREADOS):
    """Field-by-field diff of two versions (or a version and a Calculo)."""
    dados_antigos = _dados(antiga)
    dados_novos = _dados(nova)

    modificados = [
        CampoModificado(campo, dados_antigos.get(campo), dados_novos.get(campo))
        for campo in campos
        if campo in dados_antigos
        and campo in dados_novos
        and _normalizar(dados_antigos[campo]) != _normalizar(dados_novos[campo])
    ]
    return DiferencasVersao(
        campos_modificados=modificados,
        campos_adicionados=sorted(set(dados_novos) - set(dados_antigos)),
        campos_removidos=sorted(set(dados_antigos) - set(dados_novos)),
    )


def comparar_com_atual(versao):
    return comparar_versoes(versao, versao.calculo)
