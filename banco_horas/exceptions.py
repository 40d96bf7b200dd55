"""Domain errors raised by the banco de horas services.

Every error carries the operation that failed and a ``dados`` dict with the
context a caller needs to retry by hand (empresa, mês/ano, ids).
"""

from django.core.exceptions import ValidationError


class BancoHorasError(Exception):
    """Base class for banco de horas failures."""

    operacao = "banco_horas"

    def __init__(self, mensagem, operacao=None, dados=None):
        super().__init__(mensagem)
        self.mensagem = mensagem
        if operacao:
            self.operacao = operacao
        self.dados = dados or {}

    def as_dict(self):
        return {"operacao": self.operacao, "mensagem": self.mensagem, "dados": self.dados}


class ErroVigenciaAmbigua(BancoHorasError):
    """More than one vigência matched a reference date."""

    operacao = "resolver_vigencia"

    def __init__(self, data_referencia, vigencias):
        ids = [getattr(v, "pk", None) for v in vigencias]
        super().__init__(
            f"{len(vigencias)} vigências em vigor em {data_referencia:%d/%m/%Y}: {ids}",
            dados={"data_referencia": data_referencia.isoformat(), "vigencias": ids},
        )
        self.data_referencia = data_referencia
        self.vigencias = list(vigencias)


class VigenciaSobrepostaError(BancoHorasError):
    operacao = "criar_vigencia"


class CalculoError(BancoHorasError):
    """A month could not be calculated; the stored row was left untouched."""

    operacao = "calcular_mes"

    def __init__(self, etapa, mensagem, dados=None):
        super().__init__(mensagem, dados=dados)
        self.etapa = etapa

    def as_dict(self):
        data = super().as_dict()
        data["etapa"] = self.etapa
        return data


class ReajusteError(BancoHorasError):
    operacao = "reajuste"


class ReajusteValidationError(ValidationError):
    """Invalid reajuste input, rejected before any write."""


class VersionamentoError(BancoHorasError):
    operacao = "versionamento"


class VersaoImutavelError(VersionamentoError):
    pass


class IntegracaoError(BancoHorasError):
    """Failure talking to the consumption source."""

    operacao = "integracao"

    def __init__(self, fonte, mensagem, codigo=None, retryable=False, dados=None):
        super().__init__(mensagem, dados=dados)
        self.fonte = fonte
        self.codigo = codigo
        self.retryable = retryable


class AlocacaoError(BancoHorasError):
    operacao = "alocacao"


class AlocacaoValidationError(ValidationError):
    """Allocation set rejected as a whole; nothing was replaced."""
