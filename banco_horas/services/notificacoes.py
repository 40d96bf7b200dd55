"""Domain events of the banco de horas and their delivery.

The calculator and the reajuste manager only *produce* events (frozen
dataclasses below). :class:`NotificacaoEmitter` turns each event into a
formatted :class:`Notificacao` and hands it to its channels; it takes no business
decision of its own.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Dict, Iterable, List

from django.contrib import messages

from ..utils.horas import formatar_horas, formatar_moeda
from ..utils.periodos import rotulo

logger = logging.getLogger(__name__)

INFO = "info"
WARNING = "warning"
SUCCESS = "success"
ERROR = "error"

OBSERVACAO_MAX = 100


def formatar_quantidade(valor, unidade="horas"):
    if unidade == "tickets":
        quantidade = int(valor)
        return f"{quantidade} ticket" if abs(quantidade) == 1 else f"{quantidade} tickets"
    return formatar_horas(valor)


# ──────────────────────────── Eventos ─────────────────────────────

@dataclass(frozen=True)
class SaldoNegativo:
    empresa_nome: str
    mes: int
    ano: int
    saldo: Decimal
    unidade: str = "horas"


@dataclass(frozen=True)
class ExcedenteGerado:
    empresa_nome: str
    mes: int
    ano: int
    excedente: Decimal
    excedente_valor: Decimal
    unidade: str = "horas"


@dataclass(frozen=True)
class TaxaAusente:
    empresa_nome: str
    mes: int
    ano: int
    parametro: str = "taxa"


@dataclass(frozen=True)
class FimPeriodoProximo:
    empresa_nome: str
    mes: int
    ano: int
    periodo_apuracao: int
    possui_repasse_especial: bool


@dataclass(frozen=True)
class ReajusteCriado:
    empresa_nome: str
    mes: int
    ano: int
    valor: Decimal
    tipo: str
    observacao: str = ""
    unidade: str = "horas"


@dataclass(frozen=True)
class CalculoSucesso:
    empresa_nome: str
    mes: int
    ano: int
    saldo: Decimal


@dataclass(frozen=True)
class CalculoErro:
    empresa_nome: str
    mes: int
    ano: int
    mensagem: str


EVENTOS = (
    SaldoNegativo,
    ExcedenteGerado,
    TaxaAusente,
    FimPeriodoProximo,
    ReajusteCriado,
    CalculoSucesso,
    CalculoErro,
)


@dataclass
class Notificacao:
    nivel: str
    titulo: str
    mensagem: str
    evento: str = ""
    dados: Dict[str, Any] = field(default_factory=dict)


# ──────────────────────────── Canais ─────────────────────────────

class LoggingCanal:
    """Default channel: writes notifications to the application log."""

    NIVEIS = {
        INFO: logging.INFO,
        SUCCESS: logging.INFO,
        WARNING: logging.WARNING,
        ERROR: logging.ERROR,
    }

    def enviar(self, notificacao: Notificacao) -> None:
        logger.log(
            self.NIVEIS.get(notificacao.nivel, logging.INFO),
            "🔔 %s: %s",
            notificacao.titulo,
            notificacao.mensagem,
        )


class MessagesCanal:
    """Queues notifications in the Django messages framework of a request."""

    NIVEIS = {
        INFO: messages.INFO,
        SUCCESS: messages.SUCCESS,
        WARNING: messages.WARNING,
        ERROR: messages.ERROR,
    }

    def __init__(self, request):
        self.request = request

    def enviar(self, notificacao: Notificacao) -> None:
        messages.add_message(
            self.request,
            self.NIVEIS.get(notificacao.nivel, messages.INFO),
            f"{notificacao.titulo}: {notificacao.mensagem}",
            fail_silently=True,
        )


class MemoriaCanal:
    """Keeps every notification in memory (JSON responses, tests)."""

    def __init__(self):
        self.notificacoes: List[Notificacao] = []

    def enviar(self, notificacao: Notificacao) -> None:
        self.notificacoes.append(notificacao)

    def como_dicts(self):
        return [
            {"nivel": n.nivel, "titulo": n.titulo, "mensagem": n.mensagem, "evento": n.evento}
            for n in self.notificacoes
        ]


# ──────────────────────────── Emissor ─────────────────────────────

class NotificacaoEmitter:
    def __init__(self, *canais):
        self.canais = list(canais) or [LoggingCanal()]

    def _enviar(self, nivel, titulo, mensagem, evento="", **dados) -> Notificacao:
        notificacao = Notificacao(nivel=nivel, titulo=titulo, mensagem=mensagem, evento=evento, dados=dados)
        for canal in self.canais:
            try:
                canal.enviar(notificacao)
            except Exception:
                # entrega fire-and-forget
                logger.exception("❌ Falha ao entregar notificação '%s' (%s)", titulo, type(canal).__name__)
        return notificacao

    # Genéricas
    def info(self, titulo, mensagem):
        return self._enviar(INFO, titulo, mensagem)

    def warning(self, titulo, mensagem):
        return self._enviar(WARNING, titulo, mensagem)

    def success(self, titulo, mensagem):
        return self._enviar(SUCCESS, titulo, mensagem)

    def error(self, titulo, mensagem):
        return self._enviar(ERROR, titulo, mensagem)

    # Domínio
    def saldo_negativo(self, empresa_nome, saldo, mes_ano, unidade="horas"):
        return self._enviar(
            WARNING,
            "Saldo Negativo Detectado",
            f"{empresa_nome} apresentou saldo negativo de {formatar_quantidade(saldo, unidade)} no período {mes_ano}. "
            "O consumo excedeu o baseline disponível.",
            evento="saldo_negativo",
            empresa=empresa_nome,
            saldo=formatar_quantidade(saldo, unidade),
            unidade=unidade,
            mes_ano=mes_ano,
        )

    def excedente_gerado(self, empresa_nome, excedente, excedente_valor, mes_ano, unidade="horas"):
        return self._enviar(
            INFO,
            "Excedente Gerado",
            f"Excedente de {formatar_quantidade(excedente, unidade)} gerado para {empresa_nome} no período {mes_ano}. "
            f"Valor a faturar: {formatar_moeda(excedente_valor)}.",
            evento="excedente_gerado",
            empresa=empresa_nome,
            excedente=formatar_quantidade(excedente, unidade),
            unidade=unidade,
            excedente_valor=formatar_moeda(excedente_valor),
            mes_ano=mes_ano,
        )

    def taxa_ausente(self, empresa_nome, mes_ano, parametro="taxa"):
        return self._enviar(
            ERROR,
            "Taxa Não Encontrada",
            f"Não foi encontrada {parametro} vigente para {empresa_nome} no período {mes_ano}. "
            "O cálculo foi feito com valores por omissão.",
            evento="taxa_ausente",
            empresa=empresa_nome,
            parametro=parametro,
            mes_ano=mes_ano,
        )

    def fim_periodo_proximo(self, empresa_nome, mes_ano, periodo_apuracao, possui_repasse_especial):
        meses = "mês" if periodo_apuracao == 1 else "meses"
        destino = (
            "O saldo positivo será repassado para o próximo período (repasse especial)."
            if possui_repasse_especial
            else "O saldo positivo será zerado ao final do período."
        )
        return self._enviar(
            WARNING,
            "Fim de Período de Apuração",
            f"O período de apuração de {periodo_apuracao} {meses} para {empresa_nome} termina em {mes_ano}. {destino}",
            evento="fim_periodo_proximo",
            empresa=empresa_nome,
            mes_ano=mes_ano,
        )

    def reajuste_criado(self, empresa_nome, valor, tipo, mes_ano, observacao="", unidade="horas"):
        texto = f"Reajuste {tipo} de {formatar_quantidade(valor, unidade)} aplicado para {empresa_nome} no período {mes_ano}."
        if observacao:
            resumo = observacao if len(observacao) <= OBSERVACAO_MAX else observacao[:OBSERVACAO_MAX] + "..."
            texto += f' "{resumo}"'
        return self._enviar(
            SUCCESS,
            "Reajuste Aplicado com Sucesso",
            texto,
            evento="reajuste_criado",
            empresa=empresa_nome,
            tipo=tipo,
            mes_ano=mes_ano,
        )

    def calculo_sucesso(self, empresa_nome, mes_ano, saldo):
        return self._enviar(
            SUCCESS,
            "Cálculo Concluído",
            f"Banco de horas de {empresa_nome} calculado para {mes_ano}. Saldo: {formatar_horas(saldo)}.",
            evento="calculo_sucesso",
            empresa=empresa_nome,
            mes_ano=mes_ano,
        )

    def calculo_erro(self, empresa_nome, mes_ano, mensagem):
        return self._enviar(
            ERROR,
            "Erro no Cálculo",
            f"Não foi possível calcular o banco de horas de {empresa_nome} para {mes_ano}: {mensagem}",
            evento="calculo_erro",
            empresa=empresa_nome,
            mes_ano=mes_ano,
        )

    # Encaminhamento de eventos
    def emitir(self, evento) -> Notificacao:
        if not isinstance(evento, EVENTOS):
            raise TypeError(f"Evento desconhecido: {type(evento).__name__}")
        mes_ano = rotulo(evento.mes, evento.ano)
        if isinstance(evento, SaldoNegativo):
            return self.saldo_negativo(evento.empresa_nome, evento.saldo, mes_ano, evento.unidade)
        if isinstance(evento, ExcedenteGerado):
            return self.excedente_gerado(
                evento.empresa_nome, evento.excedente, evento.excedente_valor, mes_ano, evento.unidade
            )
        if isinstance(evento, TaxaAusente):
            return self.taxa_ausente(evento.empresa_nome, mes_ano, evento.parametro)
        if isinstance(evento, FimPeriodoProximo):
            return self.fim_periodo_proximo(
                evento.empresa_nome, mes_ano, evento.periodo_apuracao, evento.possui_repasse_especial
            )
        if isinstance(evento, ReajusteCriado):
            return self.reajuste_criado(
                evento.empresa_nome, evento.valor, evento.tipo, mes_ano, evento.observacao, evento.unidade
            )
        if isinstance(evento, CalculoSucesso):
            return self.calculo_sucesso(evento.empresa_nome, mes_ano, evento.saldo)
        if isinstance(evento, CalculoErro):
            return self.calculo_erro(evento.empresa_nome, mes_ano, evento.mensagem)
        raise TypeError(f"Evento sem destino: {type(evento).__name__}")

    def emitir_todos(self, eventos: Iterable) -> List[Notificacao]:
        return [self.emitir(evento) for evento in eventos]
