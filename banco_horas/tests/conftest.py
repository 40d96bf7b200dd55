from datetime import date
from decimal import Decimal

import pytest

from banco_horas.services.calculo import BancoHorasService
from banco_horas.services.integracao import Consumo
from banco_horas.services.notificacoes import MemoriaCanal, NotificacaoEmitter
from banco_horas.services.reajustes import ReajusteService
from banco_horas.tests.factories import (
    BaselineVigenciaFactory,
    EmpresaFactory,
    RepasseVigenciaFactory,
)


class ConsumoFixo:
    """Consumption source with fixed hours and tickets per (mes, ano)."""

    def __init__(self, horas=None, desenvolvimento=None, tickets=None):
        self.horas = horas or {}
        self.tickets = tickets or {}
        self.desenvolvimento = desenvolvimento or {}
        self.falhar_em = set()

    def buscar_consumo(self, empresa_id, mes, ano):
        if (mes, ano) in self.falhar_em:
            raise RuntimeError("fonte de consumo indisponível")
        return Consumo(
            horas=Decimal(str(self.horas.get((mes, ano), 0))), tickets=self.tickets.get((mes, ano), 0)
        )

    def buscar_requerimentos_em_desenvolvimento(self, empresa_id, mes, ano):
        return Consumo(horas=Decimal(str(self.desenvolvimento.get((mes, ano), 0))), tickets=0)


@pytest.fixture
def canal():
    return MemoriaCanal()


@pytest.fixture
def emitter(canal):
    return NotificacaoEmitter(canal)


@pytest.fixture
def consumo():
    return ConsumoFixo()


@pytest.fixture
def servico(consumo, emitter):
    return BancoHorasService(consumo_provider=consumo, emitter=emitter)


@pytest.fixture
def reajustes(servico, emitter):
    return ReajusteService(calculadora=servico, emitter=emitter)


@pytest.fixture
def empresa(db):
    """Empresa with 10h/month since Jan 2024 and 100% repasse."""
    empresa = EmpresaFactory(nome_abreviado="ACME")
    BaselineVigenciaFactory(empresa=empresa, baseline_horas=Decimal("10"), data_inicio=date(2024, 1, 1))
    RepasseVigenciaFactory(empresa=empresa, percentual=Decimal("100"), data_inicio=date(2024, 1, 1))
    return empresa


@pytest.fixture
def abril_2024(monkeypatch):
    """Pin "current month" to 04/2024 for cascades."""
    monkeypatch.setattr("banco_horas.services.reajustes.mes_atual", lambda: (4, 2024))
    monkeypatch.setattr("banco_horas.services.calculo.mes_atual", lambda: (4, 2024))
