import logging

from celery import shared_task

from .models import Empresa

logger = logging.getLogger(__name__)


@shared_task
def recalcular_periodo_task(empresa_id, desde, ate=None, motivo="Recálculo agendado"):
    """Recalculate an empresa from ``desde`` up to ``ate`` (MM/YYYY strings)."""
    from .services.calculo import BancoHorasService

    cascata = BancoHorasService().recalcular_periodo(empresa_id, desde, ate, motivo=motivo)
    return cascata.as_dict()


@shared_task
def recalcular_todas_empresas_task(desde=None, ate=None):
    """Monthly close: recalculate every active empresa."""
    from banco_horas.management.commands.recalcular_banco_horas import Command

    cmd = Command()
    options = {"todas": True}
    if desde:
        options["desde"] = desde
    if ate:
        options["ate"] = ate
    cmd.handle(**options)


@shared_task
def verificar_fim_periodo_task():
    """Warn, one month ahead, about empresas whose apuração period closes next month."""
    from .services.calculo import is_fim_periodo
    from .services.notificacoes import NotificacaoEmitter
    from .utils.periodos import mes_atual, proximo_mes, rotulo

    mes, ano = proximo_mes(*mes_atual())
    emitter = NotificacaoEmitter()
    avisadas = []
    qs = Empresa.objects.filter(ativo=True, inicio_vigencia__isnull=False)
    for empresa in qs:
        if is_fim_periodo(mes, ano, empresa.inicio_vigencia, empresa.periodo_apuracao):
            emitter.fim_periodo_proximo(
                empresa.nome, rotulo(mes, ano), empresa.periodo_apuracao, empresa.possui_repasse_especial
            )
            avisadas.append(empresa.pk)
    logger.info("📅 %d empresa(s) fecham o período em %s", len(avisadas), rotulo(mes, ano))
    return avisadas
