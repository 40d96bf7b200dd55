from datetime import date, datetime
from dateutil.relativedelta import relativedelta
from django.utils import timezone


def primeiro_dia(mes, ano):
    return date(ano, mes, 1)


def rotulo(mes, ano):
    """(3, 2024) -> '03/2024'"""
    return f"{mes:02d}/{ano}"


def mes_anterior(mes, ano):
    dt = primeiro_dia(mes, ano) - relativedelta(months=1)
    return dt.month, dt.year


def proximo_mes(mes, ano):
    dt = primeiro_dia(mes, ano) + relativedelta(months=1)
    return dt.month, dt.year


def mes_atual():
    hoje = timezone.localdate()
    return hoje.month, hoje.year


def chave(mes, ano):
    """Sortable key for a month."""
    return ano * 12 + (mes - 1)


def meses_entre(inicio, fim):
    """All (mes, ano) pairs from ``inicio`` to ``fim``, both inclusive."""
    mes, ano = inicio
    meses = []
    while chave(mes, ano) <= chave(*fim):
        meses.append((mes, ano))
        mes, ano = proximo_mes(mes, ano)
    return meses


def parse_mes_ano(valor):
    """Accept (mes, ano), 'MM/YYYY', 'YYYY-MM' or a date and return (mes, ano)."""
    if isinstance(valor, (datetime, date)):
        return valor.month, valor.year
    if isinstance(valor, (tuple, list)) and len(valor) == 2:
        mes, ano = int(valor[0]), int(valor[1])
    elif isinstance(valor, str):
        texto = valor.strip()
        try:
            if "/" in texto:
                mes, ano = (int(p) for p in texto.split("/"))
            else:
                ano, mes = (int(p) for p in texto.split("-")[:2])
        except ValueError as exc:
            raise ValueError(f"Mês/ano inválido: {valor!r}") from exc
    else:
        raise ValueError(f"Mês/ano inválido: {valor!r}")
    if not 1 <= mes <= 12:
        raise ValueError(f"Mês inválido: {mes}. Deve estar entre 1 e 12.")
    if ano < 2000:
        raise ValueError(f"Ano inválido: {ano}")
    return mes, ano
