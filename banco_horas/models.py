# banco_horas/models.py

from decimal import Decimal

from django.conf import settings
from django.core.validators import MinValueValidator
from django.db import models
from django.db.models import UniqueConstraint, CheckConstraint, Q, F

from .exceptions import VersaoImutavelError
from .validators import (
    validate_mes,
    validate_ano,
    validate_periodo_apuracao,
    validate_percentual,
    validate_horas_nao_negativas,
    validate_intervalo,
)

import logging
logger = logging.getLogger(__name__)

ZERO = Decimal("0")


def _horas_field(**kwargs):
    kwargs.setdefault("default", ZERO)
    return models.DecimalField(max_digits=10, decimal_places=2, **kwargs)


# ────────────────────────────── Empresa ──────────────────────────────

class Empresa(models.Model):
    class TipoCobranca(models.TextChoices):
        HORAS = "horas", "Banco de horas"
        TICKETS = "tickets", "Banco de tickets"
        AMBOS = "ambos", "Horas e tickets"

    nome_completo = models.CharField(max_length=200)
    nome_abreviado = models.CharField(max_length=60, blank=True)
    tipo_cobranca = models.CharField(max_length=10, choices=TipoCobranca.choices, default=TipoCobranca.HORAS)

    # Valores contratados; a fonte de verdade por mês são as vigências
    baseline_horas_mensal = _horas_field(validators=[validate_horas_nao_negativas])
    baseline_tickets_mensal = models.PositiveIntegerField(default=0)
    percentual_repasse_mensal = models.DecimalField(
        max_digits=5, decimal_places=2, default=Decimal("100"), validators=[validate_percentual]
    )

    periodo_apuracao = models.PositiveSmallIntegerField(default=12, validators=[validate_periodo_apuracao])
    inicio_vigencia = models.DateField(null=True, blank=True)
    possui_repasse_especial = models.BooleanField(default=False)
    ciclos_para_zerar = models.PositiveSmallIntegerField(default=1, validators=[MinValueValidator(1)])

    ativo = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["nome_completo"]

    def __str__(self):
        return self.nome

    @property
    def nome(self):
        return self.nome_abreviado or self.nome_completo


# ────────────────────────────── Vigências ──────────────────────────────

class VigenciaBase(models.Model):
    """Interval [data_inicio, data_fim) during which a contract value is in force.

    ``data_fim`` null means the vigência is still open. Intervals of the same
    empresa never overlap and only one of them may be open.
    """

    class Motivo(models.TextChoices):
        RENOVACAO = "renovacao", "Renovação contratual"
        RENEGOCIACAO = "renegociacao", "Renegociação"
        AJUSTE = "ajuste", "Ajuste contratual"
        CORRECAO = "correcao", "Correção"
        ADITIVO = "aditivo", "Aditivo contratual"
        REDUCAO_ESCOPO = "reducao_escopo", "Redução de escopo"
        AMPLIACAO_ESCOPO = "ampliacao_escopo", "Ampliação de escopo"
        OUTRO = "outro", "Outro"

    empresa = models.ForeignKey(Empresa, on_delete=models.CASCADE, related_name="%(class)ss")
    data_inicio = models.DateField()
    data_fim = models.DateField(null=True, blank=True)
    motivo = models.CharField(max_length=20, choices=Motivo.choices, default=Motivo.OUTRO)
    observacao = models.TextField(blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )

    class Meta:
        abstract = True
        ordering = ["empresa", "data_inicio"]
        constraints = [
            UniqueConstraint(
                fields=["empresa"],
                condition=Q(data_fim__isnull=True),
                name="%(class)s_uma_aberta_por_empresa",
            ),
            CheckConstraint(
                condition=Q(data_fim__isnull=True) | Q(data_fim__gt=F("data_inicio")),
                name="%(class)s_intervalo_valido",
            ),
        ]

    def clean(self):
        validate_intervalo(self.data_inicio, self.data_fim)

    def em_vigor(self, data_referencia):
        return self.data_inicio <= data_referencia and (
            self.data_fim is None or data_referencia < self.data_fim
        )

    def sobrepoe(self, data_inicio, data_fim):
        """True when [data_inicio, data_fim) intersects this interval."""
        fim_a_depois_de_inicio_b = self.data_fim is None or self.data_fim > data_inicio
        fim_b_depois_de_inicio_a = data_fim is None or data_fim > self.data_inicio
        return fim_a_depois_de_inicio_b and fim_b_depois_de_inicio_a


class BaselineVigencia(VigenciaBase):
    baseline_horas = _horas_field(validators=[validate_horas_nao_negativas])
    baseline_tickets = models.PositiveIntegerField(default=0)

    class Meta(VigenciaBase.Meta):
        verbose_name = "vigência de baseline"
        verbose_name_plural = "vigências de baseline"

    def __str__(self):
        return f"{self.empresa} – {self.baseline_horas}h desde {self.data_inicio}"


class RepasseVigencia(VigenciaBase):
    percentual = models.DecimalField(max_digits=5, decimal_places=2, validators=[validate_percentual])

    class Meta(VigenciaBase.Meta):
        verbose_name = "vigência de repasse"
        verbose_name_plural = "vigências de repasse"

    def __str__(self):
        return f"{self.empresa} – {self.percentual}% desde {self.data_inicio}"


class TaxaVigencia(VigenciaBase):
    """Rate used to bill excedente hours/tickets."""

    valor_hora = models.DecimalField(max_digits=12, decimal_places=2, validators=[MinValueValidator(0)])
    valor_ticket = models.DecimalField(
        max_digits=12, decimal_places=2, default=ZERO, validators=[MinValueValidator(0)]
    )

    class Meta(VigenciaBase.Meta):
        verbose_name = "vigência de taxa"
        verbose_name_plural = "vigências de taxa"

    def __str__(self):
        return f"{self.empresa} – R$ {self.valor_hora}/h desde {self.data_inicio}"


# ────────────────────────────── Consumo ──────────────────────────────

class Apontamento(models.Model):
    """Hours logged against a company; each row counts as one ticket."""

    empresa = models.ForeignKey(Empresa, on_delete=models.CASCADE, related_name="apontamentos")
    data_atividade = models.DateField()
    horas = _horas_field(validators=[validate_horas_nao_negativas])
    descricao = models.CharField(max_length=255, blank=True)
    atividade_interna = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-data_atividade"]
        indexes = [models.Index(fields=["empresa", "data_atividade"], name="banco_horas_empresa_apont_idx")]

    def __str__(self):
        return f"{self.empresa} {self.data_atividade} {self.horas}h"


class Requerimento(models.Model):
    empresa = models.ForeignKey(Empresa, on_delete=models.CASCADE, related_name="requerimentos")
    descricao = models.CharField(max_length=255)
    horas = _horas_field(validators=[validate_horas_nao_negativas])
    tickets = models.PositiveIntegerField(default=0)
    mes_cobranca = models.PositiveSmallIntegerField(null=True, blank=True, validators=[validate_mes])
    ano_cobranca = models.PositiveSmallIntegerField(null=True, blank=True, validators=[validate_ano])
    enviado = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [models.Index(fields=["empresa", "ano_cobranca", "mes_cobranca", "enviado"], name="banco_horas_empresa_req_idx")]

    def __str__(self):
        return self.descricao


# ────────────────────────────── Cálculo mensal ──────────────────────────────

class Calculo(models.Model):
    """Hour-bank state of one empresa in one month."""

    class Status(models.TextChoices):
        SUCESSO = "sucesso", "Sucesso"
        ERRO = "erro", "Erro"

    # Campos copiados para as versões
    CAMPOS_SNAPSHOT = (
        "baseline_aplicado",
        "baseline_tickets",
        "repasse_mes_anterior",
        "reajustes_horas",
        "horas_consumidas",
        "tickets_consumidos",
        "horas_em_desenvolvimento",
        "tickets_em_desenvolvimento",
        "reajustes_tickets",
        "repasse_tickets_mes_anterior",
        "saldo",
        "saldo_tickets",
        "percentual_repasse",
        "repasse",
        "repasse_tickets",
        "excedente_horas",
        "excedente_valor",
        "excedente_tickets",
        "excedente_tickets_valor",
        "taxa_utilizada",
        "taxa_ticket_utilizada",
        "is_fim_periodo",
        "status",
        "mensagem_erro",
        "versao",
    )

    empresa = models.ForeignKey(Empresa, on_delete=models.PROTECT, related_name="calculos")
    mes = models.PositiveSmallIntegerField(validators=[validate_mes])
    ano = models.PositiveSmallIntegerField(validators=[validate_ano])

    baseline_aplicado = _horas_field()
    baseline_tickets = models.PositiveIntegerField(default=0)
    repasse_mes_anterior = _horas_field()
    reajustes_horas = _horas_field()
    horas_consumidas = _horas_field()
    tickets_consumidos = models.PositiveIntegerField(default=0)
    horas_em_desenvolvimento = _horas_field()
    tickets_em_desenvolvimento = models.PositiveIntegerField(default=0)
    reajustes_tickets = models.IntegerField(default=0)
    repasse_tickets_mes_anterior = models.IntegerField(default=0)

    saldo = _horas_field()
    saldo_tickets = models.IntegerField(default=0)
    percentual_repasse = models.DecimalField(max_digits=5, decimal_places=2, null=True, blank=True)
    repasse = _horas_field()
    repasse_tickets = models.IntegerField(default=0)
    excedente_horas = _horas_field()
    excedente_valor = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    excedente_tickets = models.PositiveIntegerField(default=0)
    excedente_tickets_valor = models.DecimalField(max_digits=14, decimal_places=2, default=ZERO)
    taxa_utilizada = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    taxa_ticket_utilizada = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    is_fim_periodo = models.BooleanField(default=False)

    status = models.CharField(max_length=10, choices=Status.choices, default=Status.SUCESSO)
    mensagem_erro = models.TextField(blank=True)
    versao = models.PositiveIntegerField(default=1)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["empresa", "ano", "mes"]
        constraints = [
            UniqueConstraint(fields=["empresa", "mes", "ano"], name="unique_calculo_empresa_mes_ano"),
        ]
        indexes = [models.Index(fields=["empresa", "ano", "mes"], name="banco_horas_calculo_mes_idx")]

    def __str__(self):
        return f"{self.empresa} {self.mes:02d}/{self.ano}: {self.saldo}h"

    @property
    def valor_a_faturar(self):
        return self.excedente_valor + self.excedente_tickets_valor

    def to_snapshot(self):
        """JSON-safe copy of the calculated state."""
        dados = {}
        for campo in self.CAMPOS_SNAPSHOT:
            valor = getattr(self, campo)
            dados[campo] = str(valor) if isinstance(valor, Decimal) else valor
        dados["updated_at"] = self.updated_at.isoformat() if self.updated_at else None
        return dados


# ────────────────────────────── Reajustes ──────────────────────────────

class Reajuste(models.Model):
    class Tipo(models.TextChoices):
        POSITIVO = "positivo", "Positivo"
        NEGATIVO = "negativo", "Negativo"

    class Dimensao(models.TextChoices):
        HORAS = "horas", "Horas"
        TICKETS = "tickets", "Tickets"

    empresa = models.ForeignKey(Empresa, on_delete=models.PROTECT, related_name="reajustes")
    mes = models.PositiveSmallIntegerField(validators=[validate_mes])
    ano = models.PositiveSmallIntegerField(validators=[validate_ano])
    valor = models.DecimalField(max_digits=10, decimal_places=2, validators=[MinValueValidator(Decimal("0.01"))])
    tipo = models.CharField(max_length=10, choices=Tipo.choices)
    dimensao = models.CharField(max_length=10, choices=Dimensao.choices, default=Dimensao.HORAS)
    observacao = models.TextField()

    ativo = models.BooleanField(default=True)
    desativado_em = models.DateTimeField(null=True, blank=True)
    motivo_desativacao = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [models.Index(fields=["empresa", "ano", "mes", "ativo"], name="banco_horas_reajuste_idx")]

    def __str__(self):
        sinal = "+" if self.tipo == self.Tipo.POSITIVO else "-"
        unidade = "h" if self.dimensao == self.Dimensao.HORAS else " tickets"
        return f"{self.empresa} {self.mes:02d}/{self.ano}: {sinal}{self.valor}{unidade}"

    @property
    def delta(self):
        return self.valor if self.tipo == self.Tipo.POSITIVO else -self.valor


# ────────────────────────────── Alocações ──────────────────────────────

class Alocacao(models.Model):
    """Share of an empresa's baseline assigned to a segment (area, project, cost centre)."""

    empresa = models.ForeignKey(Empresa, on_delete=models.CASCADE, related_name="alocacoes")
    nome = models.CharField(max_length=100)
    percentual_baseline = models.DecimalField(max_digits=5, decimal_places=2, validators=[validate_percentual])
    ativo = models.BooleanField(default=True)
    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )

    class Meta:
        ordering = ["empresa", "nome"]
        verbose_name = "alocação"
        verbose_name_plural = "alocações"
        constraints = [
            UniqueConstraint(
                fields=["empresa", "nome"],
                condition=Q(ativo=True),
                name="unique_alocacao_ativa_por_nome",
            ),
        ]

    def __str__(self):
        return f"{self.empresa} – {self.nome} ({self.percentual_baseline}%)"


# ────────────────────────────── Versões ──────────────────────────────

class VersaoQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise VersaoImutavelError("Versões não podem ser alteradas.")

    def delete(self):
        raise VersaoImutavelError("Versões não podem ser apagadas.")


class Versao(models.Model):
    """Write-once copy of a Calculo taken right before it was overwritten."""

    class TipoMudanca(models.TextChoices):
        RECALCULO = "recalculo", "Recálculo"
        REAJUSTE = "reajuste", "Reajuste"
        CORRECAO = "correcao", "Correção"

    calculo = models.ForeignKey(Calculo, on_delete=models.PROTECT, related_name="versoes")
    empresa = models.ForeignKey(Empresa, on_delete=models.PROTECT, related_name="versoes")
    mes = models.PositiveSmallIntegerField(validators=[validate_mes])
    ano = models.PositiveSmallIntegerField(validators=[validate_ano])
    numero = models.PositiveIntegerField()
    dados = models.JSONField()
    motivo = models.CharField(max_length=255, blank=True)
    tipo_mudanca = models.CharField(max_length=10, choices=TipoMudanca.choices, default=TipoMudanca.RECALCULO)
    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )

    objects = VersaoQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-numero"]
        constraints = [
            UniqueConstraint(fields=["calculo", "numero"], name="unique_versao_calculo_numero"),
        ]
        indexes = [models.Index(fields=["empresa", "ano", "mes"], name="banco_horas_versao_mes_idx")]

    def __str__(self):
        return f"v{self.numero} {self.empresa} {self.mes:02d}/{self.ano}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise VersaoImutavelError(f"A versão {self.pk} é imutável.", dados={"versao_id": self.pk})
        super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise VersaoImutavelError(f"A versão {self.pk} não pode ser apagada.", dados={"versao_id": self.pk})


# ────────────────────────────── Auditoria ──────────────────────────────

class AuditLog(models.Model):
    class Acao(models.TextChoices):
        REAJUSTE_CRIADO = "reajuste_criado", "Reajuste criado"
        REAJUSTE_DESATIVADO = "reajuste_desativado", "Reajuste desativado"
        VIGENCIA_CRIADA = "vigencia_criada", "Vigência criada"

    empresa = models.ForeignKey(Empresa, on_delete=models.CASCADE, related_name="audit_logs")
    calculo = models.ForeignKey(Calculo, on_delete=models.SET_NULL, null=True, blank=True, related_name="audit_logs")
    acao = models.CharField(max_length=30, choices=Acao.choices)
    descricao = models.TextField()
    dados = models.JSONField(default=dict, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    created_by = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.SET_NULL, null=True, blank=True, related_name="+"
    )

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self):
        return f"{self.get_acao_display()} – {self.empresa}"
