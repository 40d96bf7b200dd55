from decimal import Decimal

import pytest

from banco_horas.exceptions import ReajusteError, ReajusteValidationError
from banco_horas.models import AuditLog, Calculo, Empresa, Reajuste, Versao
from banco_horas.tests.factories import (
    BaselineVigenciaFactory,
    EmpresaFactory,
    ReajusteFactory,
    RepasseVigenciaFactory,
    UserFactory,
)


@pytest.fixture
def cadeia(servico, consumo, empresa, abril_2024):
    """Jan-Apr 2024 calculated with consumption 0, 15, 17 and 10 hours."""
    consumo.horas.update({(1, 2024): 0, (2, 2024): 15, (3, 2024): 17, (4, 2024): 10})
    servico.recalcular_periodo(empresa.pk, (1, 2024), (4, 2024))
    return empresa


def _saldos(empresa):
    return [c.saldo for c in Calculo.objects.filter(empresa=empresa).order_by("ano", "mes")]


@pytest.mark.django_db
def test_reajuste_cascades_to_following_months(reajustes, cadeia):
    assert _saldos(cadeia) == [Decimal("10"), Decimal("5"), Decimal("-2"), Decimal("-2")]

    resultado = reajustes.criar_reajuste(cadeia.pk, "20", "positivo", "01/2024", "Crédito de horas acordado")

    assert resultado.completo
    assert resultado.meses_esperados == 4
    assert resultado.meses_recalculados == 4
    assert _saldos(cadeia) == [Decimal("30"), Decimal("25"), Decimal("18"), Decimal("18")]
    assert Calculo.objects.get(empresa=cadeia, mes=1).reajustes_horas == Decimal("20")


@pytest.mark.django_db
def test_reajuste_versions_every_recalculated_month(reajustes, cadeia):
    reajustes.criar_reajuste(cadeia.pk, "20", "positivo", "02/2024", "Crédito de horas acordado")

    versoes = Versao.objects.filter(empresa=cadeia)
    assert sorted(versoes.values_list("mes", flat=True)) == [2, 3, 4]
    assert set(versoes.values_list("tipo_mudanca", flat=True)) == {Versao.TipoMudanca.REAJUSTE}


@pytest.mark.django_db
def test_desativar_restores_original_chain(reajustes, cadeia):
    resultado = reajustes.criar_reajuste(cadeia.pk, "20", "positivo", "01/2024", "Crédito de horas acordado")

    desativado = reajustes.desativar_reajuste(resultado.reajuste.pk, motivo="Lançado em duplicado")

    assert desativado.completo
    assert _saldos(cadeia) == [Decimal("10"), Decimal("5"), Decimal("-2"), Decimal("-2")]
    reajuste = Reajuste.objects.get(pk=resultado.reajuste.pk)
    assert not reajuste.ativo
    assert reajuste.desativado_em is not None
    assert reajuste.motivo_desativacao == "Lançado em duplicado"


@pytest.mark.django_db
def test_negative_reajuste(reajustes, cadeia):
    reajustes.criar_reajuste(cadeia.pk, "5", "negativo", "04/2024", "Débito por horas não lançadas")
    assert _saldos(cadeia)[-1] == Decimal("-7")


@pytest.mark.django_db
def test_negative_value_without_tipo_becomes_negativo(reajustes, cadeia):
    resultado = reajustes.criar_reajuste(cadeia.pk, "-2:30", None, "04/2024", "Débito por horas não lançadas")
    reajuste = resultado.reajuste
    assert reajuste.tipo == Reajuste.Tipo.NEGATIVO
    assert reajuste.valor == Decimal("2.50")
    assert reajuste.delta == Decimal("-2.50")


@pytest.mark.django_db
def test_future_month_cascade_covers_only_that_month(reajustes, empresa, abril_2024):
    resultado = reajustes.criar_reajuste(empresa.pk, "3", "positivo", "06/2024", "Crédito antecipado para junho")
    assert resultado.meses_esperados == 1
    assert Calculo.objects.get(empresa=empresa, mes=6, ano=2024).reajustes_horas == Decimal("3")


@pytest.mark.django_db
def test_creation_emits_notification(reajustes, cadeia, canal):
    observacao = "x" * 150
    reajustes.criar_reajuste(cadeia.pk, "1", "positivo", "04/2024", observacao)

    notificacao = canal.notificacoes[-1]
    assert notificacao.evento == "reajuste_criado"
    assert notificacao.nivel == "success"
    assert "x" * 100 + "..." in notificacao.mensagem
    assert "x" * 101 not in notificacao.mensagem


@pytest.mark.django_db
@pytest.mark.parametrize(
    "valor, tipo, mes_ano, observacao, campo",
    [
        ("0", "positivo", "01/2024", "Observação suficiente", "valor"),
        ("abc", "positivo", "01/2024", "Observação suficiente", "valor"),
        ("1.234", "positivo", "01/2024", "Observação suficiente", "valor"),
        ("-3", "positivo", "01/2024", "Observação suficiente", "valor"),
        ("3", "bonus", "01/2024", "Observação suficiente", "tipo"),
        ("3", "positivo", "13/2024", "Observação suficiente", "mes_ano"),
        ("3", "positivo", "janeiro", "Observação suficiente", "mes_ano"),
        ("3", "positivo", "01/2024", "curta", "observacao"),
        ("3", "positivo", "01/2024", "          x", "observacao"),
        ("NaN", "positivo", "01/2024", "Observação suficiente", "valor"),
        ("sNaN", "positivo", "01/2024", "Observação suficiente", "valor"),
        ("-Infinity", "negativo", "01/2024", "Observação suficiente", "valor"),
        ("3", "positivo", [None, 2024], "Observação suficiente", "mes_ano"),
        ("3", "positivo", ("1", "abc"), "Observação suficiente", "mes_ano"),
        ("3", "positivo", "01/2024", None, "observacao"),
        ("3", "positivo", "01/2024", 1234567890123, "observacao"),
    ],
)
def test_invalid_input_is_rejected_before_any_write(reajustes, empresa, valor, tipo, mes_ano, observacao, campo):
    with pytest.raises(ReajusteValidationError) as exc:
        reajustes.criar_reajuste(empresa.pk, valor, tipo, mes_ano, observacao)

    assert campo in exc.value.message_dict
    assert not Reajuste.objects.exists()
    assert not Calculo.objects.exists()
    assert not AuditLog.objects.exists()


@pytest.mark.django_db
def test_validation_collects_every_error(reajustes, empresa):
    with pytest.raises(ReajusteValidationError) as exc:
        reajustes.criar_reajuste(empresa.pk, "0", "bonus", "99/2024", "")
    assert set(exc.value.message_dict) == {"valor", "tipo", "mes_ano", "observacao"}


@pytest.mark.django_db
def test_unknown_empresa(reajustes):
    with pytest.raises(ReajusteError):
        reajustes.criar_reajuste(999999, "3", "positivo", "01/2024", "Observação suficiente")


@pytest.mark.django_db
def test_partial_cascade_keeps_reajuste(reajustes, cadeia, consumo, canal):
    consumo.falhar_em.add((3, 2024))

    resultado = reajustes.criar_reajuste(cadeia.pk, "20", "positivo", "01/2024", "Crédito de horas acordado")

    assert not resultado.completo
    assert resultado.meses_recalculados == 2
    assert (resultado.falha.mes, resultado.falha.ano) == (3, 2024)
    assert Reajuste.objects.filter(pk=resultado.reajuste.pk, ativo=True).exists()
    assert _saldos(cadeia) == [Decimal("30"), Decimal("25"), Decimal("-2"), Decimal("-2")]
    assert "reajuste_criado" not in [n.evento for n in canal.notificacoes]
    assert resultado.as_dict()["completo"] is False


@pytest.mark.django_db
def test_audit_log_records_creation_and_deactivation(reajustes, cadeia):
    usuario = UserFactory()
    resultado = reajustes.criar_reajuste(
        cadeia.pk, "4", "positivo", "03/2024", "Crédito de horas acordado", usuario=usuario
    )
    reajustes.desativar_reajuste(resultado.reajuste.pk, motivo="Revertido", usuario=usuario)

    acoes = list(AuditLog.objects.filter(empresa=cadeia).order_by("id").values_list("acao", flat=True))
    assert acoes == [AuditLog.Acao.REAJUSTE_CRIADO, AuditLog.Acao.REAJUSTE_DESATIVADO]
    assert all(log.created_by == usuario for log in AuditLog.objects.filter(empresa=cadeia))
    assert AuditLog.objects.get(acao=AuditLog.Acao.REAJUSTE_DESATIVADO).dados["motivo"] == "Revertido"


@pytest.mark.django_db
def test_desativar_twice_fails(reajustes, cadeia):
    resultado = reajustes.criar_reajuste(cadeia.pk, "4", "positivo", "04/2024", "Crédito de horas acordado")
    reajustes.desativar_reajuste(resultado.reajuste.pk)
    with pytest.raises(ReajusteError):
        reajustes.desativar_reajuste(resultado.reajuste.pk)


@pytest.mark.django_db
def test_desativar_unknown_reajuste(reajustes):
    with pytest.raises(ReajusteError):
        reajustes.desativar_reajuste(999999)


@pytest.mark.django_db
def test_listar_reajustes(reajustes, empresa):
    ativo = ReajusteFactory(empresa=empresa, mes=1)
    inativo = ReajusteFactory(empresa=empresa, mes=2, ativo=False)
    ReajusteFactory()

    assert [r.pk for r in reajustes.listar_reajustes(empresa.pk)] == [ativo.pk]
    todos = reajustes.listar_reajustes(empresa.pk, incluir_inativos=True)
    assert {r.pk for r in todos} == {ativo.pk, inativo.pk}
    assert [r.pk for r in reajustes.listar_reajustes(empresa.pk, mes=2, incluir_inativos=True)] == [inativo.pk]


@pytest.fixture
def cadeia_tickets(servico, consumo, abril_2024):
    """Ticket-billed empresa: 10 tickets/month, 50% repasse, Jan-Apr consumption 4, 12, 9 and 0."""
    empresa = EmpresaFactory(nome_abreviado="Initech", tipo_cobranca=Empresa.TipoCobranca.TICKETS)
    BaselineVigenciaFactory(empresa=empresa, baseline_horas=Decimal("50"), baseline_tickets=10)
    RepasseVigenciaFactory(empresa=empresa, percentual=Decimal("50"))
    consumo.tickets.update({(1, 2024): 4, (2, 2024): 12, (3, 2024): 9, (4, 2024): 0})
    servico.recalcular_periodo(empresa.pk, (1, 2024), (4, 2024))
    return empresa


def _saldos_tickets(empresa):
    return list(
        Calculo.objects.filter(empresa=empresa).order_by("ano", "mes").values_list("saldo_tickets", flat=True)
    )


@pytest.mark.django_db
def test_ticket_reajuste_cascades_through_ticket_chain(reajustes, cadeia_tickets, canal):
    assert _saldos_tickets(cadeia_tickets) == [6, 1, 1, 10]

    resultado = reajustes.criar_reajuste(
        cadeia_tickets.pk, "5", "positivo", "01/2024", "Tickets cedidos pelo cliente", dimensao="tickets"
    )

    assert resultado.completo
    assert resultado.reajuste.dimensao == Reajuste.Dimensao.TICKETS
    assert _saldos_tickets(cadeia_tickets) == [15, 5, 3, 11]
    janeiro = Calculo.objects.get(empresa=cadeia_tickets, mes=1, ano=2024)
    assert janeiro.reajustes_tickets == 5
    assert janeiro.reajustes_horas == 0
    assert janeiro.saldo == 0
    assert "Reajuste positivo de 5 tickets" in canal.notificacoes[-1].mensagem


@pytest.mark.django_db
def test_hour_reajuste_does_not_touch_tickets(reajustes, cadeia_tickets):
    reajustes.criar_reajuste(cadeia_tickets.pk, "3", "positivo", "02/2024", "Crédito de horas acordado")
    assert _saldos_tickets(cadeia_tickets) == [6, 1, 1, 10]


@pytest.mark.django_db
@pytest.mark.parametrize(
    "valor, dimensao, campo",
    [("2.5", "tickets", "valor"), ("2:30", "tickets", "valor"), ("2", "minutos", "dimensao")],
)
def test_invalid_ticket_reajuste(reajustes, empresa, valor, dimensao, campo):
    with pytest.raises(ReajusteValidationError) as exc:
        reajustes.criar_reajuste(empresa.pk, valor, "positivo", "01/2024", "Observação suficiente", dimensao=dimensao)
    assert campo in exc.value.message_dict
    assert not Reajuste.objects.exists()
