from django.urls import path

from . import views

app_name = "banco_horas"

urlpatterns = [
    # Cálculos
    path("empresas/<int:empresa_id>/calcular/", views.calcular_mes, name="calcular_mes"),
    path("empresas/<int:empresa_id>/recalcular/", views.recalcular_periodo, name="recalcular_periodo"),
    path("empresas/<int:empresa_id>/calculos/", views.listar_calculos, name="listar_calculos"),
    # Reajustes
    path("empresas/<int:empresa_id>/reajustes/", views.listar_reajustes, name="listar_reajustes"),
    path("empresas/<int:empresa_id>/reajustes/novo/", views.criar_reajuste, name="criar_reajuste"),
    path("reajustes/<int:reajuste_id>/desativar/", views.desativar_reajuste, name="desativar_reajuste"),
    # Versões
    path(
        "empresas/<int:empresa_id>/versoes/<int:ano>/<int:mes>/",
        views.listar_versoes,
        name="listar_versoes",
    ),
    path("versoes/comparar/", views.comparar_versoes, name="comparar_versoes"),
    # Alocações
    path("empresas/<int:empresa_id>/alocacoes/", views.listar_alocacoes, name="listar_alocacoes"),
    path("empresas/<int:empresa_id>/alocacoes/definir/", views.definir_alocacoes, name="definir_alocacoes"),
    path(
        "empresas/<int:empresa_id>/alocacoes/<int:ano>/<int:mes>/",
        views.visao_segmentada,
        name="visao_segmentada",
    ),
    # Vigências
    path("empresas/<int:empresa_id>/vigencias/<str:tipo>/", views.criar_vigencia, name="criar_vigencia"),
]
