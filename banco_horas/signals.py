# banco_horas/signals.py

from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import AuditLog, Reajuste
from .utils.periodos import rotulo
import logging

logger = logging.getLogger(__name__)


# ──────────────────────────── Reajustes ─────────────────────────────

@receiver(post_save, sender=Reajuste)
def auditar_reajuste(sender, instance, created, update_fields=None, **kwargs):
    """
    Regista no audit log a criação e a desativação de reajustes.
    """
    usuario = getattr(instance, "_auditoria_usuario", None) or instance.created_by
    dados = {
        "reajuste_id": instance.pk,
        "valor": str(instance.valor),
        "tipo": instance.tipo,
        "dimensao": instance.dimensao,
        "mes": instance.mes,
        "ano": instance.ano,
    }

    if created:
        acao = AuditLog.Acao.REAJUSTE_CRIADO
        unidade = "h" if instance.dimensao == Reajuste.Dimensao.HORAS else " tickets"
        descricao = f"Reajuste {instance.tipo} de {instance.valor}{unidade} em {rotulo(instance.mes, instance.ano)}"
        dados["observacao"] = instance.observacao
    elif not instance.ativo and update_fields and "ativo" in update_fields:
        acao = AuditLog.Acao.REAJUSTE_DESATIVADO
        descricao = f"Reajuste #{instance.pk} desativado"
        dados["motivo"] = instance.motivo_desativacao
    else:
        return

    AuditLog.objects.create(
        empresa_id=instance.empresa_id,
        acao=acao,
        descricao=descricao,
        dados=dados,
        created_by=usuario,
    )
    logger.debug(f"📝 Audit log: {descricao}")
