"""Vigência histories: which contract value is in force on a given date.

Nothing here caches a "current" record. Every lookup resolves against the
full interval history of the empresa.
"""
import logging

from django.db import transaction

from ..exceptions import ErroVigenciaAmbigua, VigenciaSobrepostaError
from ..models import AuditLog, BaselineVigencia, Empresa, RepasseVigencia, TaxaVigencia
from ..validators import validate_intervalo

logger = logging.getLogger(__name__)


def em_vigor(vigencia, data_referencia):
    return vigencia.data_inicio <= data_referencia and (
        vigencia.data_fim is None or data_referencia < vigencia.data_fim
    )


def resolver_vigente(vigencias, data_referencia):
    """Return the vigência in force on ``data_referencia`` or ``None``.

    Raises :class:`ErroVigenciaAmbigua` when the history overlaps and more than
    one record matches.
    """
    candidatas = [v for v in vigencias if em_vigor(v, data_referencia)]
    if len(candidatas) > 1:
        raise ErroVigenciaAmbigua(data_referencia, candidatas)
    return candidatas[0] if candidatas else None


class VigenciaService:
    """Reads and appends to one vigência history (baseline, repasse or taxa)."""

    def __init__(self, model, campos_empresa=None):
        self.model = model
        # campo da vigência -> campo contratado na Empresa
        self.campos_empresa = campos_empresa or {}

    def listar(self, empresa):
        return list(self.model.objects.filter(empresa=empresa).order_by("data_inicio"))

    def vigente(self, empresa, data_referencia):
        candidatas = self.model.objects.filter(empresa=empresa, data_inicio__lte=data_referencia)
        return resolver_vigente(candidatas, data_referencia)

    def validar_sobreposicao(self, empresa, data_inicio, data_fim=None, excluir_id=None):
        """Records of ``empresa`` that intersect [data_inicio, data_fim)."""
        qs = self.model.objects.filter(empresa=empresa)
        if excluir_id is not None:
            qs = qs.exclude(pk=excluir_id)
        return [v for v in qs if v.sobrepoe(data_inicio, data_fim)]

    def criar(self, empresa, data_inicio, data_fim=None, usuario=None, **valores):
        """Append a vigência, closing the open one when the new one supersedes it."""
        validate_intervalo(data_inicio, data_fim)

        with transaction.atomic():
            Empresa.objects.select_for_update().get(pk=empresa.pk)

            if data_fim is None:
                aberta = self.model.objects.filter(empresa=empresa, data_fim__isnull=True).first()
                if aberta is not None and aberta.data_inicio < data_inicio:
                    aberta.data_fim = data_inicio
                    aberta.save(update_fields=["data_fim"])
                    logger.info(
                        "📅 %s %s encerrada em %s", self.model.__name__, aberta.pk, data_inicio
                    )

            conflitos = self.validar_sobreposicao(empresa, data_inicio, data_fim)
            if conflitos:
                raise VigenciaSobrepostaError(
                    f"A nova vigência sobrepõe {len(conflitos)} vigência(s) existente(s).",
                    dados={
                        "empresa_id": empresa.pk,
                        "data_inicio": data_inicio.isoformat(),
                        "data_fim": data_fim.isoformat() if data_fim else None,
                        "conflitos": [v.pk for v in conflitos],
                    },
                )

            vigencia = self.model(
                empresa=empresa,
                data_inicio=data_inicio,
                data_fim=data_fim,
                created_by=usuario,
                **valores,
            )
            vigencia.full_clean()
            vigencia.save()

            if data_fim is None and self.campos_empresa:
                Empresa.objects.filter(pk=empresa.pk).update(
                    **{destino: valores[origem] for origem, destino in self.campos_empresa.items() if origem in valores}
                )

            AuditLog.objects.create(
                empresa=empresa,
                acao=AuditLog.Acao.VIGENCIA_CRIADA,
                descricao=f"{self.model._meta.verbose_name} a partir de {data_inicio:%d/%m/%Y}",
                dados={
                    "modelo": self.model.__name__,
                    "vigencia_id": vigencia.pk,
                    "valores": {k: str(v) for k, v in valores.items()},
                },
                created_by=usuario,
            )

        logger.info("✅ %s criada para empresa %s desde %s", self.model.__name__, empresa.pk, data_inicio)
        return vigencia


baselines = VigenciaService(
    BaselineVigencia,
    {"baseline_horas": "baseline_horas_mensal", "baseline_tickets": "baseline_tickets_mensal"},
)
repasses = VigenciaService(RepasseVigencia, {"percentual": "percentual_repasse_mensal"})
taxas = VigenciaService(TaxaVigencia)
