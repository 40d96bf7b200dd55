from datetime import date
from decimal import Decimal
from unittest.mock import Mock

import pytest

from banco_horas.utils.horas import em_minutos, formatar_horas, formatar_moeda, parse_horas, to_decimal
from banco_horas.utils.periodos import mes_anterior, meses_entre, parse_mes_ano, proximo_mes
from banco_horas.utils.retry import retry_call


@pytest.mark.parametrize(
    "valor, esperado",
    [
        (Decimal("2.5"), "2:30"),
        (Decimal("130.75"), "130:45"),
        (Decimal("-0.25"), "-0:15"),
        (Decimal("0"), "0:00"),
    ],
)
def test_formatar_horas(valor, esperado):
    assert formatar_horas(valor) == esperado


def test_parse_horas():
    assert parse_horas("1:30") == Decimal("1.50")
    assert parse_horas("-0:20") == Decimal("-0.33")
    with pytest.raises(ValueError):
        parse_horas("1:75")


def test_to_decimal_accepts_common_inputs():
    assert to_decimal("1,5") == Decimal("1.5")
    assert to_decimal(2) == Decimal("2")
    assert to_decimal(None) == 0
    assert to_decimal("2:15") == Decimal("2.25")
    with pytest.raises(ValueError):
        to_decimal("duas horas")


def test_em_minutos():
    assert em_minutos("1:45") == 105


@pytest.mark.parametrize(
    "valor, esperado",
    [
        (Decimal("1234.5"), "R$ 1.234,50"),
        (Decimal("0.005"), "R$ 0,01"),
        (Decimal("-10"), "-R$ 10,00"),
        (Decimal("1000000"), "R$ 1.000.000,00"),
    ],
)
def test_formatar_moeda(valor, esperado):
    assert formatar_moeda(valor) == esperado


def test_month_navigation_crosses_years():
    assert mes_anterior(1, 2024) == (12, 2023)
    assert proximo_mes(12, 2024) == (1, 2025)
    assert meses_entre((11, 2023), (2, 2024)) == [(11, 2023), (12, 2023), (1, 2024), (2, 2024)]
    assert meses_entre((3, 2024), (2, 2024)) == []


@pytest.mark.parametrize(
    "valor",
    ["03/2024", "2024-03", (3, 2024), ["3", "2024"], date(2024, 3, 9)],
)
def test_parse_mes_ano(valor):
    assert parse_mes_ano(valor) == (3, 2024)


@pytest.mark.parametrize("valor", ["13/2024", "03/1999", "março", None, (1, 2, 3)])
def test_parse_mes_ano_invalid(valor):
    with pytest.raises(ValueError):
        parse_mes_ano(valor)


def test_retry_call_succeeds_after_transient_errors():
    func = Mock(side_effect=[ConnectionError("x"), ConnectionError("y"), "ok"])
    assert retry_call(func, tentativas=3, backoff=0) == "ok"
    assert func.call_count == 3


def test_retry_call_reraises_last_error():
    func = Mock(side_effect=ConnectionError("sempre"))
    with pytest.raises(ConnectionError):
        retry_call(func, tentativas=2, backoff=0)
    assert func.call_count == 3


def test_retry_call_respects_veto():
    func = Mock(side_effect=ValueError("permanente"))
    with pytest.raises(ValueError):
        retry_call(func, tentativas=5, backoff=0, deve_repetir=lambda exc: False)
    assert func.call_count == 1


def test_retry_call_ignores_other_exceptions():
    func = Mock(side_effect=KeyError("k"))
    with pytest.raises(KeyError):
        retry_call(func, tentativas=3, backoff=0, excecoes=(ConnectionError,))
    assert func.call_count == 1
