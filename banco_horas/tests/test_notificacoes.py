from dataclasses import dataclass
from decimal import Decimal
from unittest.mock import Mock, patch

import pytest

from banco_horas.services.notificacoes import (
    CalculoErro,
    ExcedenteGerado,
    FimPeriodoProximo,
    MemoriaCanal,
    NotificacaoEmitter,
    SaldoNegativo,
    TaxaAusente,
)


def test_saldo_negativo_message(emitter, canal):
    emitter.emitir(SaldoNegativo("ACME", 3, 2024, Decimal("-2.5")))

    notificacao = canal.notificacoes[0]
    assert notificacao.nivel == "warning"
    assert notificacao.titulo == "Saldo Negativo Detectado"
    assert "-2:30" in notificacao.mensagem
    assert "03/2024" in notificacao.mensagem


def test_excedente_message_formats_hours_and_money(emitter, canal):
    emitter.emitir(ExcedenteGerado("ACME", 1, 2024, Decimal("30"), Decimal("4500")))
    notificacao = canal.notificacoes[0]
    assert notificacao.dados["excedente"] == "30:00"
    assert notificacao.dados["excedente_valor"] == "R$ 4.500,00"


def test_ticket_events_count_tickets(emitter, canal):
    emitter.emitir(SaldoNegativo("ACME", 2, 2024, Decimal("-15"), unidade="tickets"))
    emitter.emitir(ExcedenteGerado("ACME", 2, 2024, Decimal("1"), Decimal("50"), unidade="tickets"))

    saldo, excedente = canal.notificacoes
    assert "-15 tickets" in saldo.mensagem
    assert excedente.dados["excedente"] == "1 ticket"
    assert excedente.dados["unidade"] == "tickets"
    assert "R$ 50,00" in excedente.mensagem


def test_taxa_ausente_is_error(emitter, canal):
    emitter.emitir(TaxaAusente("ACME", 1, 2024, "baseline"))
    assert canal.notificacoes[0].nivel == "error"
    assert "baseline" in canal.notificacoes[0].mensagem


@pytest.mark.parametrize(
    "especial, trecho",
    [(True, "repassado para o próximo período"), (False, "será zerado")],
)
def test_fim_periodo_message(emitter, canal, especial, trecho):
    emitter.emitir(FimPeriodoProximo("ACME", 12, 2024, 12, especial))
    assert trecho in canal.notificacoes[0].mensagem
    assert "12 meses" in canal.notificacoes[0].mensagem


def test_emitir_unknown_event(emitter):
    with pytest.raises(TypeError):
        emitter.emitir(object())


def test_emitir_rejects_lookalike_events(emitter, canal):
    @dataclass(frozen=True)
    class Outro:
        empresa_nome: str
        mes: int
        ano: int

    with pytest.raises(TypeError):
        emitter.emitir(Outro("ACME", 1, 2024))
    assert canal.notificacoes == []


def test_failing_channel_does_not_stop_delivery():
    quebrado = Mock()
    quebrado.enviar.side_effect = RuntimeError("canal fora do ar")
    memoria = MemoriaCanal()
    emitter = NotificacaoEmitter(quebrado, memoria)

    emitter.emitir(CalculoErro("ACME", 1, 2024, "timeout"))

    quebrado.enviar.assert_called_once()
    assert memoria.como_dicts() == [
        {
            "nivel": "error",
            "titulo": "Erro no Cálculo",
            "mensagem": "Não foi possível calcular o banco de horas de ACME para 01/2024: timeout",
            "evento": "calculo_erro",
        }
    ]


def test_default_channel_logs():
    with patch("banco_horas.services.notificacoes.logger") as logger:
        NotificacaoEmitter().success("Título", "tudo certo")
    nivel, formato, titulo, mensagem = logger.log.call_args.args
    assert (titulo, mensagem) == ("Título", "tudo certo")
