import json
from datetime import date
from decimal import Decimal

import pytest
from django.test import TestCase
from django.urls import reverse

from banco_horas.models import Alocacao, BaselineVigencia, Calculo, Reajuste
from banco_horas.tests.factories import AlocacaoFactory, ApontamentoFactory, ReajusteFactory


def _post_json(client, url, payload):
    return client.post(url, data=json.dumps(payload), content_type="application/json")


@pytest.fixture
def logged_client(client, django_user_model):
    user = django_user_model.objects.create_user(username="u", password="p")
    client.force_login(user)
    return client


class HealthzTests(TestCase):
    def test_healthz_ok(self):
        response = self.client.get("/healthz")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.content, b"ok")
        self.assertIn("no-store", response.get("Cache-Control", ""))


@pytest.mark.django_db
def test_endpoints_require_login(client, empresa):
    response = client.post(reverse("banco_horas:calcular_mes", args=[empresa.pk]))
    assert response.status_code == 302


@pytest.mark.django_db
def test_calcular_mes_returns_row_and_notifications(logged_client, empresa):
    ApontamentoFactory(empresa=empresa, horas=Decimal("12.5"))

    response = _post_json(logged_client, reverse("banco_horas:calcular_mes", args=[empresa.pk]), {"mes": 1, "ano": 2024})

    assert response.status_code == 200
    data = response.json()
    assert data["success"] is True
    assert data["calculo"]["saldo"] == "-2:30"
    assert data["calculo"]["excedente_horas"] == "2:30"
    eventos = [n["evento"] for n in data["notificacoes"]]
    assert "saldo_negativo" in eventos
    assert "calculo_sucesso" in eventos


@pytest.mark.django_db
def test_calcular_mes_rejects_bad_month(logged_client, empresa):
    response = _post_json(logged_client, reverse("banco_horas:calcular_mes", args=[empresa.pk]), {"mes": 13, "ano": 2024})
    assert response.status_code == 400
    assert response.json()["success"] is False


@pytest.mark.django_db
def test_calcular_mes_unknown_empresa(logged_client):
    response = _post_json(logged_client, reverse("banco_horas:calcular_mes", args=[999999]), {"mes": 1, "ano": 2024})
    assert response.status_code == 404


@pytest.mark.django_db
def test_recalcular_periodo(logged_client, empresa):
    url = reverse("banco_horas:recalcular_periodo", args=[empresa.pk])

    response = _post_json(logged_client, url, {"desde": "01/2024", "ate": "03/2024"})

    assert response.status_code == 200
    assert response.json()["meses_recalculados"] == 3
    assert Calculo.objects.filter(empresa=empresa).count() == 3
    assert _post_json(logged_client, url, {}).status_code == 400
    assert _post_json(logged_client, url, {"desde": "04/2024", "ate": "01/2024"}).status_code == 400


@pytest.mark.django_db
def test_listar_calculos(logged_client, empresa, servico):
    servico.recalcular_periodo(empresa.pk, (12, 2023), (1, 2024))

    response = logged_client.get(reverse("banco_horas:listar_calculos", args=[empresa.pk]), {"ano": 2024})

    assert response.status_code == 200
    assert [c["mes"] for c in response.json()["calculos"]] == [1]
    bad = logged_client.get(reverse("banco_horas:listar_calculos", args=[empresa.pk]), {"ano": "dois mil"})
    assert bad.status_code == 400


@pytest.mark.django_db
def test_criar_reajuste_endpoint(logged_client, empresa, abril_2024):
    url = reverse("banco_horas:criar_reajuste", args=[empresa.pk])
    payload = {"valor": "1:30", "tipo": "positivo", "mes_ano": "03/2024", "observacao": "Crédito de horas acordado"}

    response = _post_json(logged_client, url, payload)

    assert response.status_code == 201
    data = response.json()
    assert data["meses_esperados"] == 2
    assert data["completo"] is True
    assert "reajuste_criado" in [n["evento"] for n in data["notificacoes"]]
    assert Reajuste.objects.get(pk=data["reajuste_id"]).valor == Decimal("1.50")


@pytest.mark.django_db
def test_criar_reajuste_endpoint_validation(logged_client, empresa):
    url = reverse("banco_horas:criar_reajuste", args=[empresa.pk])

    response = _post_json(logged_client, url, {"valor": "0", "tipo": "positivo", "mes_ano": "03/2024", "observacao": "x"})

    assert response.status_code == 400
    assert set(response.json()["errors"]) == {"valor", "observacao"}
    assert not Reajuste.objects.exists()


@pytest.mark.django_db
def test_criar_reajuste_endpoint_rejects_malformed_json_values(logged_client, empresa):
    url = reverse("banco_horas:criar_reajuste", args=[empresa.pk])
    payload = {"valor": "NaN", "tipo": "positivo", "mes_ano": [None, 2024], "observacao": 1234567890}

    response = _post_json(logged_client, url, payload)

    assert response.status_code == 400
    assert set(response.json()["errors"]) == {"valor", "mes_ano", "observacao"}
    assert not Reajuste.objects.exists()


@pytest.mark.django_db
def test_listar_and_desativar_reajuste(logged_client, empresa, abril_2024):
    reajuste = ReajusteFactory(empresa=empresa, mes=4, ano=2024)

    listagem = logged_client.get(reverse("banco_horas:listar_reajustes", args=[empresa.pk]))
    assert [r["id"] for r in listagem.json()["reajustes"]] == [reajuste.pk]
    assert listagem.json()["reajustes"][0]["valor"] == "10:00"

    url = reverse("banco_horas:desativar_reajuste", args=[reajuste.pk])
    response = _post_json(logged_client, url, {"motivo": "Duplicado"})
    assert response.status_code == 200
    assert response.json()["ativo"] is False

    assert _post_json(logged_client, url, {}).status_code == 400
    assert _post_json(logged_client, reverse("banco_horas:desativar_reajuste", args=[999999]), {}).status_code == 404


@pytest.mark.django_db
def test_versoes_endpoints(logged_client, empresa, servico):
    for _ in range(3):
        servico.calcular_mes(empresa.pk, 1, 2024)

    response = logged_client.get(reverse("banco_horas:listar_versoes", args=[empresa.pk, 2024, 1]))
    versoes = response.json()["versoes"]
    assert [v["numero"] for v in versoes] == [2, 1]

    comparar = reverse("banco_horas:comparar_versoes")
    entre = logged_client.get(comparar, {"v1": versoes[1]["id"], "v2": versoes[0]["id"]})
    assert entre.status_code == 200
    assert entre.json()["campos_modificados"] == []
    assert logged_client.get(comparar, {"v1": versoes[0]["id"]}).status_code == 200
    assert logged_client.get(comparar, {"v1": 999999}).status_code == 404
    assert logged_client.get(comparar).status_code == 400


@pytest.mark.django_db
def test_criar_vigencia_endpoint(logged_client, empresa):
    url = reverse("banco_horas:criar_vigencia", args=[empresa.pk, "baseline"])

    response = _post_json(
        logged_client, url, {"data_inicio": "2024-06-01", "baseline_horas": "20", "motivo": "aditivo"}
    )

    assert response.status_code == 201
    assert BaselineVigencia.objects.get(pk=response.json()["id"]).baseline_horas == Decimal("20")
    anterior = BaselineVigencia.objects.get(empresa=empresa, data_inicio=date(2024, 1, 1))
    assert anterior.data_fim == date(2024, 6, 1)

    conflito = _post_json(logged_client, url, {"data_inicio": "2024-03-01", "baseline_horas": "15"})
    assert conflito.status_code == 409

    invalida = _post_json(
        logged_client,
        reverse("banco_horas:criar_vigencia", args=[empresa.pk, "repasse"]),
        {"data_inicio": "2024-06-01", "percentual": "150"},
    )
    assert invalida.status_code == 400

    desconhecido = reverse("banco_horas:criar_vigencia", args=[empresa.pk, "multa"])
    assert _post_json(logged_client, desconhecido, {}).status_code == 404


@pytest.mark.django_db
def test_alocacoes_endpoints(logged_client, empresa, servico):
    servico.calcular_mes(empresa.pk, 1, 2024)
    url = reverse("banco_horas:definir_alocacoes", args=[empresa.pk])

    response = _post_json(
        logged_client,
        url,
        {"alocacoes": [{"nome": "Suporte", "percentual_baseline": "75"}, {"nome": "Projetos", "percentual_baseline": "25"}]},
    )
    assert response.status_code == 201
    assert Alocacao.objects.filter(empresa=empresa, ativo=True).count() == 2

    listagem = logged_client.get(reverse("banco_horas:listar_alocacoes", args=[empresa.pk])).json()
    assert [a["nome"] for a in listagem["alocacoes"]] == ["Projetos", "Suporte"]

    visao = logged_client.get(reverse("banco_horas:visao_segmentada", args=[empresa.pk, 2024, 1])).json()
    assert visao["consistente"] is True
    assert {s["nome"]: s["baseline_aplicado"] for s in visao["segmentos"]} == {"Projetos": "2:30", "Suporte": "7:30"}


@pytest.mark.django_db
def test_definir_alocacoes_endpoint_validation(logged_client, empresa):
    atual = AlocacaoFactory(empresa=empresa, percentual_baseline=Decimal("100"))
    url = reverse("banco_horas:definir_alocacoes", args=[empresa.pk])

    response = _post_json(logged_client, url, {"alocacoes": [{"nome": "Suporte", "percentual_baseline": "80"}]})
    assert response.status_code == 400
    assert "alocacoes" in response.json()["errors"]

    assert _post_json(logged_client, url, {"alocacoes": "tudo"}).status_code == 400
    assert list(Alocacao.objects.filter(ativo=True)) == [atual]


@pytest.mark.django_db
def test_visao_segmentada_endpoint_without_calculo(logged_client, empresa):
    AlocacaoFactory(empresa=empresa, percentual_baseline=Decimal("100"))
    response = logged_client.get(reverse("banco_horas:visao_segmentada", args=[empresa.pk, 2024, 1]))
    assert response.status_code == 404
    assert response.json()["success"] is False
