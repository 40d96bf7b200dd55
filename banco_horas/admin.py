# banco_horas/admin.py

from django.contrib import admin
from .models import (
    Empresa,
    BaselineVigencia,
    RepasseVigencia,
    TaxaVigencia,
    Apontamento,
    Requerimento,
    Calculo,
    Reajuste,
    Versao,
    AuditLog,
    Alocacao,
)

# Registo simples
admin.site.register([Apontamento, Requerimento])


@admin.register(Empresa)
class EmpresaAdmin(admin.ModelAdmin):
    list_display = ("nome_completo", "nome_abreviado", "tipo_cobranca", "periodo_apuracao", "ativo")
    list_filter = ("tipo_cobranca", "ativo")
    search_fields = ("nome_completo", "nome_abreviado")

    def get_readonly_fields(self, request, obj=None):
        # Com histórico de vigências, os valores contratados só mudam por vigência nova
        if obj is not None and (obj.baselinevigencias.exists() or obj.repassevigencias.exists()):
            return ("baseline_horas_mensal", "baseline_tickets_mensal", "percentual_repasse_mensal")
        return ()


class VigenciaAdmin(admin.ModelAdmin):
    list_filter = ("motivo",)
    search_fields = ("empresa__nome_completo", "observacao")
    date_hierarchy = "data_inicio"
    readonly_fields = ("created_at", "created_by")


@admin.register(BaselineVigencia)
class BaselineVigenciaAdmin(VigenciaAdmin):
    list_display = ("empresa", "baseline_horas", "baseline_tickets", "data_inicio", "data_fim", "motivo")


@admin.register(RepasseVigencia)
class RepasseVigenciaAdmin(VigenciaAdmin):
    list_display = ("empresa", "percentual", "data_inicio", "data_fim", "motivo")


@admin.register(TaxaVigencia)
class TaxaVigenciaAdmin(VigenciaAdmin):
    list_display = ("empresa", "valor_hora", "valor_ticket", "data_inicio", "data_fim")


@admin.register(Calculo)
class CalculoAdmin(admin.ModelAdmin):
    list_display = (
        "empresa", "mes", "ano", "saldo", "saldo_tickets", "excedente_horas", "excedente_tickets", "status", "versao"
    )
    list_filter = ("status", "ano", "is_fim_periodo")
    search_fields = ("empresa__nome_completo",)

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Reajuste)
class ReajusteAdmin(admin.ModelAdmin):
    list_display = ("empresa", "mes", "ano", "tipo", "dimensao", "valor", "ativo", "created_at")
    list_filter = ("tipo", "dimensao", "ativo", "ano")
    search_fields = ("empresa__nome_completo", "observacao")

    # Reajustes passam pelo ReajusteService para recalcular os meses seguintes
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(Alocacao)
class AlocacaoAdmin(admin.ModelAdmin):
    list_display = ("empresa", "nome", "percentual_baseline", "ativo", "created_at")
    list_filter = ("ativo",)
    search_fields = ("empresa__nome_completo", "nome")

    # o conjunto ativo tem de somar 100%; só o AlocacaoService o substitui
    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Versao)
class VersaoAdmin(admin.ModelAdmin):
    list_display = ("empresa", "mes", "ano", "numero", "tipo_mudanca", "created_at")
    list_filter = ("tipo_mudanca", "ano")
    readonly_fields = [f.name for f in Versao._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ("created_at", "empresa", "acao", "descricao", "created_by")
    list_filter = ("acao",)
    search_fields = ("descricao",)
