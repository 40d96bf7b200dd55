"""Hour and currency formatting helpers.

Hours are kept as ``Decimal`` values in the database and shown as ``H:MM``
strings (the hour part may exceed 24, e.g. ``130:45``).
"""

import re
from decimal import Decimal, ROUND_HALF_UP, InvalidOperation

ZERO = Decimal("0")
CENTAVOS = Decimal("0.01")

_HORAS_RE = re.compile(r"^(-)?(\d+):([0-5]\d)$")


def to_decimal(value) -> Decimal:
    if value is None or value == "":
        return ZERO
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str) and ":" in value:
        return parse_horas(value)
    try:
        return Decimal(str(value).replace(",", "."))
    except InvalidOperation as exc:
        raise ValueError(f"Valor de horas inválido: {value!r}") from exc


def parse_horas(texto: str) -> Decimal:
    """``"2:30"`` -> ``Decimal("2.50")``."""
    match = _HORAS_RE.match(texto.strip())
    if not match:
        raise ValueError(f"Formato de horas inválido: {texto!r} (esperado H:MM)")
    sinal, horas, minutos = match.groups()
    total = Decimal(horas) + Decimal(minutos) / Decimal(60)
    total = total.quantize(CENTAVOS, rounding=ROUND_HALF_UP)
    return -total if sinal else total


def em_minutos(horas) -> int:
    return int((to_decimal(horas) * 60).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def formatar_horas(horas) -> str:
    """``Decimal("-2.5")`` -> ``"-2:30"``."""
    minutos = em_minutos(horas)
    sinal = "-" if minutos < 0 else ""
    h, m = divmod(abs(minutos), 60)
    return f"{sinal}{h}:{m:02d}"


def quantizar(valor) -> Decimal:
    return to_decimal(valor).quantize(CENTAVOS, rounding=ROUND_HALF_UP)


def formatar_moeda(valor) -> str:
    """``Decimal("1234.5")`` -> ``"R$ 1.234,50"``."""
    numero = quantizar(valor)
    texto = f"{abs(numero):,.2f}".replace(",", "_").replace(".", ",").replace("_", ".")
    return f"-R$ {texto}" if numero < 0 else f"R$ {texto}"
