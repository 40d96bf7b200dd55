"""Splitting a monthly calculation across baseline allocations.

An empresa may divide its baseline between segments (areas, projects, cost
centres) by percentage. The active set must add up to exactly 100%; the
segmented view then splits every figure of a stored :class:`Calculo` in that
proportion so that the parts always add back up to the whole.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_FLOOR, ROUND_HALF_UP
from typing import Dict, List

from django.db import DatabaseError, transaction

from ..exceptions import AlocacaoError, AlocacaoValidationError
from ..models import Alocacao, Calculo, Empresa
from ..utils.horas import CENTAVOS, ZERO, em_minutos, formatar_horas, to_decimal
from ..utils.periodos import rotulo

logger = logging.getLogger(__name__)

CEM = Decimal("100")

CAMPOS_HORAS = (
    "baseline_aplicado",
    "repasse_mes_anterior",
    "reajustes_horas",
    "horas_consumidas",
    "saldo",
    "repasse",
    "excedente_horas",
)
CAMPOS_TICKETS = (
    "baseline_tickets",
    "tickets_consumidos",
    "saldo_tickets",
    "repasse_tickets",
    "excedente_tickets",
)
CAMPOS_VALOR = ("excedente_valor", "excedente_tickets_valor")


@dataclass
class ValidacaoAlocacoes:
    valido: bool
    erros: List[str]
    soma_percentuais: Decimal


@dataclass
class Segmento:
    nome: str
    percentual: Decimal
    valores: Dict[str, Decimal] = field(default_factory=dict)

    def as_dict(self):
        data = {"nome": self.nome, "percentual": str(self.percentual)}
        for campo, valor in self.valores.items():
            data[campo] = formatar_horas(valor) if campo in CAMPOS_HORAS else str(valor)
        return data


@dataclass
class VisaoSegmentada:
    calculo: Calculo
    segmentos: List[Segmento]
    divergencias: List[str]

    @property
    def consistente(self):
        return not self.divergencias

    def as_dict(self):
        return {
            "calculo_id": self.calculo.pk,
            "mes": self.calculo.mes,
            "ano": self.calculo.ano,
            "segmentos": [s.as_dict() for s in self.segmentos],
            "consistente": self.consistente,
            "divergencias": self.divergencias,
        }


def validar_alocacoes(itens) -> ValidacaoAlocacoes:
    """Check a proposed allocation set without touching the database."""
    erros = []
    soma = ZERO
    if not itens:
        return ValidacaoAlocacoes(False, ["É necessário pelo menos uma alocação."], soma)

    nomes = set()
    for posicao, item in enumerate(itens, start=1):
        nome = item.get("nome")
        if not isinstance(nome, str) or not nome.strip():
            erros.append(f"Alocação {posicao}: o nome é obrigatório.")
        elif nome.strip().lower() in nomes:
            erros.append(f"Alocação {posicao}: nome repetido ({nome.strip()}).")
        else:
            nomes.add(nome.strip().lower())

        try:
            percentual = to_decimal(item.get("percentual_baseline"))
        except (ValueError, TypeError):
            erros.append(f"Alocação {posicao}: percentual inválido.")
            continue
        if not percentual.is_finite() or percentual < 0 or percentual > CEM:
            erros.append(f"Alocação {posicao}: o percentual deve estar entre 0 e 100.")
            continue
        soma += percentual

    if not erros and soma != CEM:
        erros.append(f"A soma dos percentuais deve ser 100% (atual: {soma}%).")
    return ValidacaoAlocacoes(not erros, erros, soma)


def repartir(total, percentuais, quantum=CENTAVOS):
    """Split ``total`` by ``percentuais`` in multiples of ``quantum``.

    Largest remainder: every part is rounded down and the units left over go
    to the parts with the biggest fractional share, so the parts add up to
    ``total`` exactly. The sign of ``total`` is kept on every part.
    """
    total = to_decimal(total)
    unidades = int((abs(total) / quantum).to_integral_value(rounding=ROUND_HALF_UP))
    brutos = [Decimal(unidades) * to_decimal(p) / CEM for p in percentuais]
    partes = [int(b.to_integral_value(rounding=ROUND_FLOOR)) for b in brutos]
    sobra = unidades - sum(partes)
    ordem = sorted(range(len(partes)), key=lambda i: (-(brutos[i] - partes[i]), i))
    for i in ordem[:max(sobra, 0)]:
        partes[i] += 1
    sinal = -1 if total < 0 else 1
    return [sinal * Decimal(p) * quantum for p in partes]


def calcular_valores_segmentados(calculo, alocacoes) -> List[Segmento]:
    percentuais = [a.percentual_baseline for a in alocacoes]
    segmentos = [Segmento(nome=a.nome, percentual=a.percentual_baseline) for a in alocacoes]
    for campo in CAMPOS_HORAS + CAMPOS_TICKETS + CAMPOS_VALOR:
        for segmento, parte in zip(segmentos, repartir(getattr(calculo, campo), percentuais)):
            segmento.valores[campo] = parte
    return segmentos


def verificar_soma_segmentada(calculo, segmentos) -> List[str]:
    """Fields whose parts do not add back to the calculation (1 minute / 0.01 tolerance)."""
    divergencias = []
    for campo in CAMPOS_HORAS + CAMPOS_TICKETS + CAMPOS_VALOR:
        total = to_decimal(getattr(calculo, campo))
        soma = sum((s.valores[campo] for s in segmentos), ZERO)
        if campo in CAMPOS_HORAS:
            ok = abs(em_minutos(total) - em_minutos(soma)) <= 1
        else:
            ok = abs(total - soma) <= CENTAVOS
        if not ok:
            divergencias.append(campo)
    return divergencias


class AlocacaoService:
    def listar_alocacoes(self, empresa_id, incluir_inativas=False):
        qs = Alocacao.objects.filter(empresa_id=empresa_id)
        if not incluir_inativas:
            qs = qs.filter(ativo=True)
        return list(qs.order_by("nome", "id"))

    def definir_alocacoes(self, empresa_id, itens, usuario=None):
        """Replace the active allocation set of an empresa as a whole."""
        validacao = validar_alocacoes(itens)
        if not validacao.valido:
            raise AlocacaoValidationError({"alocacoes": validacao.erros})

        try:
            with transaction.atomic():
                try:
                    empresa = Empresa.objects.select_for_update().get(pk=empresa_id)
                except Empresa.DoesNotExist as exc:
                    raise AlocacaoError(
                        f"Empresa {empresa_id} não encontrada",
                        operacao="definir_alocacoes",
                        dados={"empresa_id": empresa_id},
                    ) from exc
                desativadas = Alocacao.objects.filter(empresa=empresa, ativo=True).update(ativo=False)
                novas = [
                    Alocacao.objects.create(
                        empresa=empresa,
                        nome=item["nome"].strip(),
                        percentual_baseline=to_decimal(item["percentual_baseline"]),
                        created_by=usuario,
                    )
                    for item in itens
                ]
        except DatabaseError as exc:
            raise AlocacaoError(
                f"Erro ao gravar alocações: {exc}",
                operacao="definir_alocacoes",
                dados={"empresa_id": empresa_id},
            ) from exc

        logger.info("🧩 Empresa %s: %d alocação(ões) ativas, %d desativadas", empresa_id, len(novas), desativadas)
        return novas

    def visao_segmentada(self, empresa_id, mes, ano) -> VisaoSegmentada:
        calculo = Calculo.objects.filter(empresa_id=empresa_id, mes=mes, ano=ano).first()
        if calculo is None:
            raise AlocacaoError(
                f"Não há cálculo da empresa {empresa_id} em {rotulo(mes, ano)}",
                operacao="visao_segmentada",
                dados={"empresa_id": empresa_id, "mes": mes, "ano": ano},
            )
        alocacoes = self.listar_alocacoes(empresa_id)
        if not alocacoes:
            raise AlocacaoError(
                f"A empresa {empresa_id} não tem alocações ativas",
                operacao="visao_segmentada",
                dados={"empresa_id": empresa_id},
            )

        segmentos = calcular_valores_segmentados(calculo, alocacoes)
        divergencias = verificar_soma_segmentada(calculo, segmentos)
        if divergencias:
            logger.warning("⚠️ Soma segmentada diverge em %s: %s", rotulo(mes, ano), ", ".join(divergencias))
        return VisaoSegmentada(calculo=calculo, segmentos=segmentos, divergencias=divergencias)
