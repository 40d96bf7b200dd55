from django.core.exceptions import ValidationError
from django.utils.translation import gettext_lazy as _
from decimal import Decimal

OBSERVACAO_MINIMA = 10


def validate_mes(value):
    """Valida o número do mês"""
    if not 1 <= int(value) <= 12:
        raise ValidationError(_('Mês inválido: %(mes)s. Deve estar entre 1 e 12.'), params={'mes': value})


def validate_ano(value):
    if int(value) < 2000:
        raise ValidationError(_('Ano inválido: %(ano)s.'), params={'ano': value})


def validate_periodo_apuracao(value):
    if not 1 <= int(value) <= 12:
        raise ValidationError(_('O período de apuração deve estar entre 1 e 12 meses.'))


def validate_percentual(value):
    """Valida percentuais de repasse (0 a 100)"""
    if value is None:
        return
    if value < 0 or value > 100:
        raise ValidationError(_('O percentual deve estar entre 0 e 100.'))


def validate_horas_nao_negativas(value):
    if value is not None and value < 0:
        raise ValidationError(_('O número de horas não pode ser negativo.'))


def validate_valor_reajuste(value):
    """Valida o valor de um reajuste"""
    if value is None or value == 0:
        raise ValidationError(_('O valor do reajuste não pode ser zero.'))

    if abs(value) > Decimal('99999.99'):
        raise ValidationError(_('O valor do reajuste é demasiado grande.'))

    if value.as_tuple().exponent < -2:
        raise ValidationError(_('O valor do reajuste não pode ter mais de 2 casas decimais.'))


def validate_observacao(value):
    if not value or len(value.strip()) < OBSERVACAO_MINIMA:
        raise ValidationError(
            _('A observação deve ter pelo menos %(minimo)s caracteres.'),
            params={'minimo': OBSERVACAO_MINIMA},
        )


def validate_intervalo(data_inicio, data_fim):
    """Valida intervalos [data_inicio, data_fim)"""
    if data_inicio and data_fim and data_fim <= data_inicio:
        raise ValidationError(_('A data de fim tem de ser posterior à data de início.'))
