from datetime import date
from decimal import Decimal
from io import StringIO
from unittest.mock import patch

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError

from banco_horas.models import Calculo
from banco_horas.tasks import recalcular_periodo_task, recalcular_todas_empresas_task, verificar_fim_periodo_task
from banco_horas.tests.factories import BaselineVigenciaFactory, EmpresaFactory


@pytest.mark.django_db
def test_command_recalculates_one_empresa(empresa):
    out = StringIO()
    call_command("recalcular_banco_horas", empresa=empresa.pk, desde="01/2024", ate="03/2024", stdout=out)

    assert "3/3 meses recalculados" in out.getvalue()
    assert "Processed 1 empresa(s)" in out.getvalue()
    assert Calculo.objects.filter(empresa=empresa).count() == 3


@pytest.mark.django_db
def test_command_all_active_empresas(empresa):
    EmpresaFactory(ativo=False)
    outra = EmpresaFactory()
    BaselineVigenciaFactory(empresa=outra)

    out = StringIO()
    call_command("recalcular_banco_horas", "--todas", "--desde", "01/2024", "--ate", "01/2024", stdout=out)

    assert "Processed 2 empresa(s)" in out.getvalue()
    assert Calculo.objects.filter(mes=1, ano=2024).count() == 2


@pytest.mark.django_db
def test_command_defaults_to_previous_month(empresa):
    with patch("banco_horas.management.commands.recalcular_banco_horas.mes_atual", return_value=(1, 2024)), patch(
        "banco_horas.services.calculo.mes_atual", return_value=(1, 2024)
    ):
        call_command("recalcular_banco_horas", empresa=empresa.pk, stdout=StringIO())

    assert sorted(Calculo.objects.filter(empresa=empresa).values_list("ano", "mes")) == [(2023, 12), (2024, 1)]


@pytest.mark.django_db
def test_command_requires_target():
    with pytest.raises(CommandError):
        call_command("recalcular_banco_horas", stdout=StringIO())


@pytest.mark.django_db
def test_command_rejects_bad_month(empresa):
    with pytest.raises(CommandError):
        call_command("recalcular_banco_horas", empresa=empresa.pk, desde="13/2024", stdout=StringIO())


@pytest.mark.django_db
def test_command_fails_on_incomplete_cascade(empresa):
    with patch(
        "banco_horas.services.integracao.OrmConsumoProvider.buscar_consumo",
        side_effect=RuntimeError("fonte indisponível"),
    ):
        with pytest.raises(CommandError, match="recálculo incompleto"):
            call_command(
                "recalcular_banco_horas", empresa=empresa.pk, desde="01/2024", ate="02/2024", stdout=StringIO()
            )
    assert not Calculo.objects.exists()


@pytest.mark.django_db
def test_recalcular_periodo_task(empresa):
    resultado = recalcular_periodo_task.delay(empresa.pk, "01/2024", "02/2024").get()
    assert resultado["completo"] is True
    assert resultado["meses_recalculados"] == 2


@pytest.mark.django_db
def test_recalcular_todas_empresas_task(empresa):
    recalcular_todas_empresas_task(desde="02/2024", ate="02/2024")
    assert Calculo.objects.get(empresa=empresa, mes=2, ano=2024).saldo == Decimal("10")


@pytest.mark.django_db
def test_verificar_fim_periodo_task_warns_the_month_before_closing(monkeypatch):
    fecha_dezembro = EmpresaFactory(inicio_vigencia=date(2024, 1, 1), periodo_apuracao=12)
    fecha_janeiro = EmpresaFactory(inicio_vigencia=date(2024, 2, 1), periodo_apuracao=12)
    EmpresaFactory(inicio_vigencia=date(2024, 1, 1), periodo_apuracao=12, ativo=False)
    EmpresaFactory(inicio_vigencia=None)
    monkeypatch.setattr("banco_horas.utils.periodos.mes_atual", lambda: (11, 2024))
    assert verificar_fim_periodo_task() == [fecha_dezembro.pk]

    monkeypatch.setattr("banco_horas.utils.periodos.mes_atual", lambda: (12, 2024))
    assert verificar_fim_periodo_task() == [fecha_janeiro.pk]
