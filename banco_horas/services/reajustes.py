import logging
from dataclasses import dataclass
from typing import Optional

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from ..exceptions import ReajusteError, ReajusteValidationError
from ..models import Empresa, Reajuste, Versao
from ..utils.horas import to_decimal
from ..utils.periodos import chave, mes_atual, parse_mes_ano
from ..validators import validate_observacao, validate_valor_reajuste
from .calculo import BancoHorasService, ResultadoCalculo
from .notificacoes import NotificacaoEmitter, ReajusteCriado

logger = logging.getLogger(__name__)


@dataclass
class ResultadoReajuste:
    reajuste: Reajuste
    meses_recalculados: int
    meses_esperados: int
    falha: Optional[ResultadoCalculo] = None

    @property
    def completo(self):
        return self.falha is None and self.meses_recalculados == self.meses_esperados

    def as_dict(self):
        return {
            "reajuste_id": self.reajuste.pk,
            "ativo": self.reajuste.ativo,
            "meses_recalculados": self.meses_recalculados,
            "meses_esperados": self.meses_esperados,
            "completo": self.completo,
            "falha": self.falha.as_dict() if self.falha else None,
        }


class ReajusteService:
    """Creates and deactivates manual adjustments and replays the saldo chain."""

    def __init__(self, calculadora=None, emitter=None):
        self.emitter = emitter or NotificacaoEmitter()
        self.calculadora = calculadora or BancoHorasService(emitter=self.emitter)

    def validar(self, valor, tipo, mes_ano, observacao, dimensao=Reajuste.Dimensao.HORAS):
        """Normalize the input or raise :class:`ReajusteValidationError` with every problem found."""
        errors = {}
        mes = ano = None

        try:
            valor = to_decimal(valor)
        except (ValueError, TypeError) as exc:
            errors["valor"] = [str(exc)]
            valor = None
        if valor is not None and not valor.is_finite():
            errors["valor"] = [f"Valor inválido: {valor}"]
            valor = None

        if valor is not None and valor < 0:
            if tipo in (None, "", Reajuste.Tipo.NEGATIVO):
                valor, tipo = -valor, Reajuste.Tipo.NEGATIVO
            else:
                errors["valor"] = ["Um reajuste positivo não pode ter valor negativo."]
        if valor is not None and "valor" not in errors:
            try:
                validate_valor_reajuste(valor)
            except ValidationError as exc:
                errors["valor"] = exc.messages
        if valor is not None and "valor" not in errors and dimensao == Reajuste.Dimensao.TICKETS:
            if valor != valor.to_integral_value():
                errors["valor"] = ["Um reajuste de tickets tem de ser um número inteiro."]

        if tipo not in Reajuste.Tipo.values:
            errors["tipo"] = [f"Tipo inválido: {tipo!r}. Use 'positivo' ou 'negativo'."]

        if dimensao not in Reajuste.Dimensao.values:
            errors["dimensao"] = [f"Dimensão inválida: {dimensao!r}. Use 'horas' ou 'tickets'."]

        try:
            mes, ano = parse_mes_ano(mes_ano)
        except (ValueError, TypeError) as exc:
            errors["mes_ano"] = [str(exc)]

        if not isinstance(observacao, str):
            errors["observacao"] = ["A observação tem de ser texto."]
        else:
            try:
                validate_observacao(observacao)
            except ValidationError as exc:
                errors["observacao"] = exc.messages

        if errors:
            raise ReajusteValidationError(errors)
        return valor, tipo, mes, ano, observacao.strip()

    def criar_reajuste(
        self, empresa_id, valor, tipo, mes_ano, observacao, usuario=None, dimensao=Reajuste.Dimensao.HORAS
    ):
        valor, tipo, mes, ano, observacao = self.validar(valor, tipo, mes_ano, observacao, dimensao)

        try:
            empresa = Empresa.objects.get(pk=empresa_id)
        except Empresa.DoesNotExist as exc:
            raise ReajusteError(
                f"Empresa {empresa_id} não encontrada", operacao="criar_reajuste", dados={"empresa_id": empresa_id}
            ) from exc

        try:
            with transaction.atomic():
                reajuste = Reajuste(
                    empresa=empresa,
                    mes=mes,
                    ano=ano,
                    valor=valor,
                    tipo=tipo,
                    dimensao=dimensao,
                    observacao=observacao,
                    ativo=True,
                    created_by=usuario,
                )
                reajuste._auditoria_usuario = usuario
                reajuste.save()
        except DatabaseError as exc:
            raise ReajusteError(
                f"Erro ao gravar reajuste: {exc}",
                operacao="criar_reajuste",
                dados={"empresa_id": empresa_id, "mes": mes, "ano": ano},
            ) from exc

        logger.info(
            "➕ Reajuste %s criado: empresa %s %02d/%s %s %s %s", reajuste.pk, empresa_id, mes, ano, tipo, valor, dimensao
        )
        resultado = self._recalcular(reajuste, usuario, motivo=f"Reajuste #{reajuste.pk} criado")
        if resultado.completo:
            self.emitter.emitir(ReajusteCriado(empresa.nome, mes, ano, valor, tipo, observacao, unidade=dimensao))
        return resultado

    def desativar_reajuste(self, reajuste_id, motivo="", usuario=None):
        try:
            with transaction.atomic():
                try:
                    reajuste = Reajuste.objects.select_for_update().select_related("empresa").get(pk=reajuste_id)
                except Reajuste.DoesNotExist as exc:
                    raise ReajusteError(
                        f"Reajuste {reajuste_id} não encontrado",
                        operacao="desativar_reajuste",
                        dados={"reajuste_id": reajuste_id},
                    ) from exc
                if not reajuste.ativo:
                    raise ReajusteError(
                        f"Reajuste {reajuste_id} já está inativo",
                        operacao="desativar_reajuste",
                        dados={"reajuste_id": reajuste_id},
                    )
                reajuste.ativo = False
                reajuste.desativado_em = timezone.now()
                reajuste.motivo_desativacao = motivo
                reajuste._auditoria_usuario = usuario
                reajuste.save(update_fields=["ativo", "desativado_em", "motivo_desativacao"])
        except DatabaseError as exc:
            raise ReajusteError(
                f"Erro ao desativar reajuste: {exc}",
                operacao="desativar_reajuste",
                dados={"reajuste_id": reajuste_id},
            ) from exc

        logger.info("➖ Reajuste %s desativado", reajuste_id)
        return self._recalcular(reajuste, usuario, motivo=f"Reajuste #{reajuste.pk} desativado")

    def listar_reajustes(self, empresa_id, mes=None, ano=None, incluir_inativos=False):
        """Reajustes of an empresa, newest first."""
        qs = Reajuste.objects.filter(empresa_id=empresa_id)
        if not incluir_inativos:
            qs = qs.filter(ativo=True)
        if mes is not None:
            qs = qs.filter(mes=mes)
        if ano is not None:
            qs = qs.filter(ano=ano)
        return list(qs.order_by("-created_at", "-id"))

    def _recalcular(self, reajuste, usuario, motivo):
        inicio = (reajuste.mes, reajuste.ano)
        fim = mes_atual()
        if chave(*fim) < chave(*inicio):
            fim = inicio
        cascata = self.calculadora.recalcular_periodo(
            reajuste.empresa_id,
            inicio,
            fim,
            motivo=motivo,
            tipo_mudanca=Versao.TipoMudanca.REAJUSTE,
            usuario=usuario,
        )
        return ResultadoReajuste(
            reajuste=reajuste,
            meses_recalculados=cascata.meses_recalculados,
            meses_esperados=cascata.meses_esperados,
            falha=cascata.falha,
        )
