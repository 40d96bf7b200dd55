"""Bounded retries with exponential backoff for boundary calls."""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Tuple, Type

from django.conf import settings

logger = logging.getLogger(__name__)


def retry_call(
    func: Callable[..., Any],
    *args: Any,
    tentativas: int | None = None,
    backoff: float | None = None,
    excecoes: Tuple[Type[BaseException], ...] = (Exception,),
    deve_repetir: Callable[[BaseException], bool] | None = None,
    **kwargs: Any,
) -> Any:
    """Call ``func`` retrying on ``excecoes`` with ``backoff * 2**attempt`` sleeps.

    ``tentativas`` counts retries after the first call. The last error is
    re-raised unchanged. ``deve_repetir`` can veto a retry for errors that
    will not go away (e.g. HTTP 4xx).
    """
    if tentativas is None:
        tentativas = getattr(settings, "BANCO_HORAS_RETRY_TENTATIVAS", 3)
    if backoff is None:
        backoff = getattr(settings, "BANCO_HORAS_RETRY_BACKOFF", 0.5)

    for attempt in range(tentativas + 1):
        try:
            return func(*args, **kwargs)
        except excecoes as exc:
            if attempt == tentativas or (deve_repetir and not deve_repetir(exc)):
                raise
            espera = backoff * (2 ** attempt)
            logger.warning(
                "🔁 %s falhou (%s), nova tentativa %d/%d em %.1fs",
                getattr(func, "__name__", func), exc, attempt + 1, tentativas, espera,
            )
            time.sleep(espera)
