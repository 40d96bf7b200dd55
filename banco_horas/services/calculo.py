"""Monthly hour-bank calculation.

For one empresa and month::

    saldo = repasse do mês anterior + baseline + reajustes - horas consumidas

The part of the saldo carried into the next month (``repasse``) follows the
repasse percentage, except at the end of an apuração period where the closing
rules apply. A negative saldo is reported as excedente and valued with the
rate in force.

Empresas billed by tickets run the same chain on whole tickets, side by side
with the hours one; ``Empresa.tipo_cobranca`` says which of the two are used.
"""
from __future__ import annotations

import logging
import threading
import weakref
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal, ROUND_DOWN
from typing import List, Optional

from dateutil.relativedelta import relativedelta
from django.db import transaction

from ..exceptions import CalculoError
from ..models import Calculo, Empresa, Reajuste, Versao
from ..utils.horas import ZERO, CENTAVOS, quantizar, formatar_horas
from ..utils.periodos import (
    chave,
    mes_anterior,
    mes_atual,
    meses_entre,
    parse_mes_ano,
    primeiro_dia,
    rotulo,
)
from . import versionamento
from .integracao import get_consumo_provider
from .notificacoes import (
    CalculoErro,
    CalculoSucesso,
    ExcedenteGerado,
    FimPeriodoProximo,
    NotificacaoEmitter,
    SaldoNegativo,
    TaxaAusente,
)
from .vigencia import baselines, repasses, taxas

logger = logging.getLogger(__name__)

CEM = Decimal("100")
UNIDADE = Decimal("1")


class _Trava:
    """Re-entrant lock that can live in a weak-valued registry."""

    __slots__ = ("_rlock", "__weakref__")

    def __init__(self):
        self._rlock = threading.RLock()

    def __enter__(self):
        self._rlock.acquire()
        return self

    def __exit__(self, *exc_info):
        self._rlock.release()


# entries disappear once no thread holds or waits on them
_locks = weakref.WeakValueDictionary()
_locks_guard = threading.Lock()


@contextmanager
def lock_empresa(empresa_id):
    """Serialize calculations of one empresa inside this process."""
    with _locks_guard:
        lock = _locks.get(empresa_id)
        if lock is None:
            lock = _locks[empresa_id] = _Trava()
    with lock:
        yield


# ──────────────────────────── Regras de repasse ─────────────────────────────

def is_fim_periodo(mes, ano, inicio_vigencia, periodo_apuracao):
    """True when (mes, ano) closes an apuração period started at ``inicio_vigencia``."""
    if inicio_vigencia is None or not periodo_apuracao:
        return False
    meses_passados = (ano - inicio_vigencia.year) * 12 + (mes - inicio_vigencia.month + 1)
    return meses_passados > 0 and meses_passados % periodo_apuracao == 0


def ciclo_atual(mes, ano, inicio_vigencia, periodo_apuracao, ciclos_para_zerar):
    meses_passados = (ano - inicio_vigencia.year) * 12 + (mes - inicio_vigencia.month + 1)
    periodos_completos = max(meses_passados // periodo_apuracao, 1)
    return (periodos_completos - 1) % max(ciclos_para_zerar, 1) + 1


def calcular_repasse(saldo, percentual, quantum=CENTAVOS):
    """Monthly carry: a deficit carries in full, a surplus by ``percentual``.

    The surplus share is rounded down to ``quantum`` (cents for hours, whole
    tickets for the ticket bank).
    """
    if percentual < 0 or percentual > CEM:
        raise ValueError(f"Percentual de repasse inválido: {percentual}. Deve estar entre 0 e 100.")
    if saldo < 0:
        return saldo
    return (saldo * percentual / CEM).quantize(quantum, rounding=ROUND_DOWN)


def aplicar_fechamento(saldo, possui_repasse_especial, ciclo, ciclos_para_zerar):
    """Carry at the end of a period.

    A deficit is billed as excedente and not carried. A surplus is dropped
    unless the empresa has repasse especial and is not on its last cycle.
    """
    if saldo < 0:
        return ZERO
    if possui_repasse_especial and ciclo < ciclos_para_zerar:
        return saldo
    return ZERO


# ──────────────────────────── Resultados ─────────────────────────────

@dataclass
class ResultadoCalculo:
    empresa_id: int
    mes: int
    ano: int
    status: str
    calculo: Optional[Calculo] = None
    versao: Optional[Versao] = None
    eventos: list = field(default_factory=list)
    erro: Optional[CalculoError] = None

    @property
    def sucesso(self):
        return self.status == Calculo.Status.SUCESSO

    def as_dict(self):
        data = {
            "empresa_id": self.empresa_id,
            "mes": self.mes,
            "ano": self.ano,
            "status": self.status,
            "versao_id": self.versao.pk if self.versao else None,
        }
        if self.calculo is not None:
            data["calculo"] = serializar_calculo(self.calculo)
        if self.erro is not None:
            data["erro"] = self.erro.as_dict()
        return data


@dataclass
class ResultadoCascata:
    empresa_id: int
    meses_esperados: int
    meses_recalculados: int = 0
    resultados: List[ResultadoCalculo] = field(default_factory=list)
    falha: Optional[ResultadoCalculo] = None

    @property
    def completo(self):
        return self.falha is None and self.meses_recalculados == self.meses_esperados

    def as_dict(self):
        return {
            "empresa_id": self.empresa_id,
            "meses_esperados": self.meses_esperados,
            "meses_recalculados": self.meses_recalculados,
            "completo": self.completo,
            "falha": self.falha.as_dict() if self.falha else None,
        }


def serializar_calculo(calculo):
    return {
        "id": calculo.pk,
        "empresa_id": calculo.empresa_id,
        "mes": calculo.mes,
        "ano": calculo.ano,
        "baseline": formatar_horas(calculo.baseline_aplicado),
        "repasse_mes_anterior": formatar_horas(calculo.repasse_mes_anterior),
        "reajustes": formatar_horas(calculo.reajustes_horas),
        "horas_consumidas": formatar_horas(calculo.horas_consumidas),
        "horas_em_desenvolvimento": formatar_horas(calculo.horas_em_desenvolvimento),
        "saldo": formatar_horas(calculo.saldo),
        "repasse": formatar_horas(calculo.repasse),
        "excedente_horas": formatar_horas(calculo.excedente_horas),
        "excedente_valor": str(calculo.excedente_valor),
        "baseline_tickets": calculo.baseline_tickets,
        "repasse_tickets_mes_anterior": calculo.repasse_tickets_mes_anterior,
        "reajustes_tickets": calculo.reajustes_tickets,
        "tickets_consumidos": calculo.tickets_consumidos,
        "saldo_tickets": calculo.saldo_tickets,
        "repasse_tickets": calculo.repasse_tickets,
        "excedente_tickets": calculo.excedente_tickets,
        "excedente_tickets_valor": str(calculo.excedente_tickets_valor),
        "valor_a_faturar": str(calculo.valor_a_faturar),
        "is_fim_periodo": calculo.is_fim_periodo,
        "status": calculo.status,
        "versao": calculo.versao,
    }


# ──────────────────────────── Serviço ─────────────────────────────

class BancoHorasService:
    """Calculates and recalculates monthly hour-bank rows."""

    def __init__(self, consumo_provider=None, emitter=None):
        self.consumo_provider = consumo_provider or get_consumo_provider()
        self.emitter = emitter or NotificacaoEmitter()

    # API pública

    def calcular_mes(self, empresa_id, mes, ano, motivo="", tipo_mudanca=Versao.TipoMudanca.RECALCULO, usuario=None):
        """Calculate one month. Failures come back as ``status=erro``, never raised."""
        with lock_empresa(empresa_id):
            resultado = self._calcular(empresa_id, mes, ano, motivo, tipo_mudanca, usuario)
        self.emitter.emitir_todos(resultado.eventos)
        return resultado

    def calcular_mes_ou_falhar(self, empresa_id, mes, ano, **kwargs):
        resultado = self.calcular_mes(empresa_id, mes, ano, **kwargs)
        if not resultado.sucesso:
            raise resultado.erro
        return resultado.calculo

    def obter_ou_calcular(self, empresa_id, mes, ano):
        calculo = Calculo.objects.filter(empresa_id=empresa_id, mes=mes, ano=ano).first()
        if calculo is not None:
            return calculo
        return self.calcular_mes_ou_falhar(empresa_id, mes, ano)

    def recalcular_periodo(
        self,
        empresa_id,
        inicio,
        fim=None,
        motivo="",
        tipo_mudanca=Versao.TipoMudanca.RECALCULO,
        usuario=None,
    ):
        """Recalculate every month from ``inicio`` to ``fim`` (default: current month).

        Months run oldest first because each one reads the carry of the
        previous. The cascade holds the empresa lock for its whole duration and
        stops at the first month that fails; months before it stay committed.
        """
        inicio = parse_mes_ano(inicio)
        fim = parse_mes_ano(fim) if fim is not None else mes_atual()
        if chave(*inicio) > chave(*fim):
            raise CalculoError(
                "periodo",
                f"Início {rotulo(*inicio)} posterior ao fim {rotulo(*fim)}",
                dados={"empresa_id": empresa_id},
            )

        meses = meses_entre(inicio, fim)
        cascata = ResultadoCascata(empresa_id=empresa_id, meses_esperados=len(meses))
        logger.info(
            "🔄 Recalculando empresa %s de %s a %s (%d meses)",
            empresa_id, rotulo(*inicio), rotulo(*fim), len(meses),
        )

        with lock_empresa(empresa_id):
            with transaction.atomic():
                Empresa.objects.select_for_update().filter(pk=empresa_id).first()
                for mes, ano in meses:
                    resultado = self._calcular(empresa_id, mes, ano, motivo, tipo_mudanca, usuario)
                    cascata.resultados.append(resultado)
                    if not resultado.sucesso:
                        cascata.falha = resultado
                        break
                    cascata.meses_recalculados += 1

        if cascata.falha is not None:
            logger.warning(
                "⚠️ Cascata da empresa %s parou em %s: %d/%d meses recalculados",
                empresa_id,
                rotulo(cascata.falha.mes, cascata.falha.ano),
                cascata.meses_recalculados,
                cascata.meses_esperados,
            )

        for resultado in cascata.resultados:
            self.emitter.emitir_todos(resultado.eventos)
        return cascata

    def calcular_trimestre(self, empresa_id, mes_inicial, ano):
        fim = primeiro_dia(mes_inicial, ano) + relativedelta(months=2)
        return self.recalcular_periodo(empresa_id, (mes_inicial, ano), (fim.month, fim.year))

    def listar_calculos(self, empresa_id, ano=None):
        qs = Calculo.objects.filter(empresa_id=empresa_id)
        if ano is not None:
            qs = qs.filter(ano=ano)
        return list(qs.order_by("ano", "mes"))

    # Cálculo de um mês

    def _calcular(self, empresa_id, mes, ano, motivo, tipo_mudanca, usuario):
        etapa = "validacao"
        empresa_nome = str(empresa_id)
        try:
            if not 1 <= int(mes) <= 12:
                raise CalculoError(etapa, f"Mês inválido: {mes}")

            with transaction.atomic():
                etapa = "parametros"
                empresa = Empresa.objects.select_for_update().get(pk=empresa_id)
                empresa_nome = empresa.nome
                usa_horas = empresa.tipo_cobranca != Empresa.TipoCobranca.TICKETS
                usa_tickets = empresa.tipo_cobranca != Empresa.TipoCobranca.HORAS
                eventos = []
                data_referencia = primeiro_dia(mes, ano)

                etapa = "vigencias"
                baseline = baselines.vigente(empresa, data_referencia)
                if baseline is None:
                    eventos.append(TaxaAusente(empresa_nome, mes, ano, "baseline"))
                repasse_vigente = repasses.vigente(empresa, data_referencia)
                if repasse_vigente is None:
                    eventos.append(TaxaAusente(empresa_nome, mes, ano, "percentual de repasse"))
                taxa = taxas.vigente(empresa, data_referencia)

                baseline_horas = baseline.baseline_horas if baseline and usa_horas else ZERO
                baseline_tickets = baseline.baseline_tickets if baseline and usa_tickets else 0
                percentual = repasse_vigente.percentual if repasse_vigente else CEM

                etapa = "consumo"
                consumo = self.consumo_provider.buscar_consumo(empresa.pk, mes, ano)
                desenvolvimento = self.consumo_provider.buscar_requerimentos_em_desenvolvimento(
                    empresa.pk, mes, ano
                )

                etapa = "reajustes"
                reajustes = list(Reajuste.objects.filter(empresa=empresa, mes=mes, ano=ano, ativo=True))
                reajustes_horas = sum(
                    (r.delta for r in reajustes if r.dimensao == Reajuste.Dimensao.HORAS), ZERO
                )
                reajustes_tickets = int(
                    sum((r.delta for r in reajustes if r.dimensao == Reajuste.Dimensao.TICKETS), ZERO)
                )

                etapa = "repasse_anterior"
                mes_ant, ano_ant = mes_anterior(mes, ano)
                anterior = Calculo.objects.filter(empresa=empresa, mes=mes_ant, ano=ano_ant).first()
                repasse_anterior = anterior.repasse if anterior and usa_horas else ZERO
                repasse_tickets_anterior = anterior.repasse_tickets if anterior and usa_tickets else 0

                etapa = "saldo"
                fim_periodo = is_fim_periodo(mes, ano, empresa.inicio_vigencia, empresa.periodo_apuracao)
                ciclo = None
                if fim_periodo:
                    ciclo = ciclo_atual(
                        mes, ano, empresa.inicio_vigencia, empresa.periodo_apuracao, empresa.ciclos_para_zerar
                    )
                    eventos.append(
                        FimPeriodoProximo(
                            empresa_nome, mes, ano, empresa.periodo_apuracao, empresa.possui_repasse_especial
                        )
                    )

                def repassar(valor, quantum):
                    if fim_periodo:
                        return aplicar_fechamento(
                            valor, empresa.possui_repasse_especial, ciclo, empresa.ciclos_para_zerar
                        )
                    return calcular_repasse(valor, percentual, quantum)

                saldo = ZERO
                repasse = ZERO
                if usa_horas:
                    saldo = repasse_anterior + baseline_horas + reajustes_horas - consumo.horas
                    repasse = repassar(saldo, CENTAVOS)
                saldo_tickets = 0
                repasse_tickets = 0
                if usa_tickets:
                    saldo_tickets = repasse_tickets_anterior + baseline_tickets + reajustes_tickets - consumo.tickets
                    repasse_tickets = int(repassar(Decimal(saldo_tickets), UNIDADE))

                etapa = "excedente"
                excedente_horas = -saldo if saldo < 0 else ZERO
                excedente_tickets = -saldo_tickets if saldo_tickets < 0 else 0
                excedente_valor = quantizar(excedente_horas * taxa.valor_hora) if taxa else ZERO
                excedente_tickets_valor = quantizar(excedente_tickets * taxa.valor_ticket) if taxa else ZERO
                taxa_reportada = False
                for unidade, saldo_unidade, excedente, valor in (
                    ("horas", saldo, excedente_horas, excedente_valor),
                    ("tickets", saldo_tickets, excedente_tickets, excedente_tickets_valor),
                ):
                    if saldo_unidade >= 0:
                        continue
                    eventos.append(SaldoNegativo(empresa_nome, mes, ano, saldo_unidade, unidade))
                    if taxa is None and not taxa_reportada:
                        eventos.append(TaxaAusente(empresa_nome, mes, ano, "taxa"))
                        taxa_reportada = True
                    eventos.append(ExcedenteGerado(empresa_nome, mes, ano, excedente, valor, unidade))

                etapa = "persistencia"
                valores = {
                    "baseline_aplicado": baseline_horas,
                    "baseline_tickets": baseline_tickets,
                    "repasse_mes_anterior": repasse_anterior,
                    "repasse_tickets_mes_anterior": repasse_tickets_anterior,
                    "reajustes_horas": reajustes_horas,
                    "reajustes_tickets": reajustes_tickets,
                    "horas_consumidas": consumo.horas,
                    "tickets_consumidos": consumo.tickets,
                    "horas_em_desenvolvimento": desenvolvimento.horas,
                    "tickets_em_desenvolvimento": desenvolvimento.tickets,
                    "saldo": saldo,
                    "saldo_tickets": saldo_tickets,
                    "percentual_repasse": percentual,
                    "repasse": repasse,
                    "repasse_tickets": repasse_tickets,
                    "excedente_horas": excedente_horas,
                    "excedente_valor": excedente_valor,
                    "excedente_tickets": excedente_tickets,
                    "excedente_tickets_valor": excedente_tickets_valor,
                    "taxa_utilizada": taxa.valor_hora if taxa and usa_horas else None,
                    "taxa_ticket_utilizada": taxa.valor_ticket if taxa and usa_tickets else None,
                    "is_fim_periodo": fim_periodo,
                    "status": Calculo.Status.SUCESSO,
                    "mensagem_erro": "",
                }
                calculo, versao = self._gravar(empresa, mes, ano, valores, motivo, tipo_mudanca, usuario)
        except Exception as exc:
            erro = exc if isinstance(exc, CalculoError) else CalculoError(
                etapa,
                str(exc) or type(exc).__name__,
                dados={"empresa_id": empresa_id, "mes": mes, "ano": ano},
            )
            erro.dados.setdefault("empresa_id", empresa_id)
            erro.dados.setdefault("mes", mes)
            erro.dados.setdefault("ano", ano)
            logger.exception("❌ Erro ao calcular empresa %s em %s/%s (etapa %s)", empresa_id, mes, ano, etapa)
            return ResultadoCalculo(
                empresa_id=empresa_id,
                mes=mes,
                ano=ano,
                status=Calculo.Status.ERRO,
                eventos=[CalculoErro(empresa_nome, mes, ano, erro.mensagem)],
                erro=erro,
            )

        eventos.append(CalculoSucesso(empresa_nome, mes, ano, saldo))
        logger.info("✅ Empresa %s %s: saldo %s", empresa_id, rotulo(mes, ano), formatar_horas(saldo))
        return ResultadoCalculo(
            empresa_id=empresa_id,
            mes=mes,
            ano=ano,
            status=Calculo.Status.SUCESSO,
            calculo=calculo,
            versao=versao,
            eventos=eventos,
        )

    def _gravar(self, empresa, mes, ano, valores, motivo, tipo_mudanca, usuario):
        """Snapshot the stored row (if any) and overwrite it under a row lock."""
        atual = Calculo.objects.select_for_update().filter(empresa=empresa, mes=mes, ano=ano).first()
        if atual is None:
            return Calculo.objects.create(empresa=empresa, mes=mes, ano=ano, **valores), None

        versao = versionamento.snapshot_before_overwrite(atual, motivo, tipo_mudanca, usuario)
        for campo, valor in valores.items():
            setattr(atual, campo, valor)
        atual.versao += 1
        atual.save()
        return atual, versao
