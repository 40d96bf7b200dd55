import json
import logging
from datetime import date

from django.contrib.auth.decorators import login_required
from django.core.exceptions import ValidationError
from django.http import HttpResponse, JsonResponse
from django.shortcuts import get_object_or_404
from django.views.decorators.http import require_GET, require_POST

from .exceptions import AlocacaoError, BancoHorasError, ReajusteError, VersionamentoError
from .models import Empresa, Reajuste
from .services import versionamento
from .services.alocacoes import AlocacaoService
from .services.calculo import BancoHorasService, serializar_calculo
from .services.notificacoes import (
    LoggingCanal,
    MemoriaCanal,
    MessagesCanal,
    NotificacaoEmitter,
    formatar_quantidade,
)
from .services.reajustes import ReajusteService
from .services.vigencia import baselines, repasses, taxas
from .utils.horas import to_decimal
from .utils.periodos import parse_mes_ano

logger = logging.getLogger(__name__)

VIGENCIAS = {
    "baseline": (baselines, ("baseline_horas", "baseline_tickets")),
    "repasse": (repasses, ("percentual",)),
    "taxa": (taxas, ("valor_hora", "valor_ticket")),
}


def _payload(request):
    if request.content_type == "application/json":
        try:
            return json.loads(request.body or b"{}")
        except json.JSONDecodeError:
            raise ValidationError("JSON inválido")
    return request.POST


def _emitter(request):
    """Emitter that logs, queues Django messages and keeps a copy for the response."""
    memoria = MemoriaCanal()
    return NotificacaoEmitter(LoggingCanal(), MessagesCanal(request), memoria), memoria


def _erro(mensagem, status=400, **extra):
    return JsonResponse({"success": False, "error": mensagem, **extra}, status=status)


def _validation_payload(e):
    return e.message_dict if hasattr(e, "error_dict") else {"__all__": e.messages}


def _versao_dict(versao):
    return {
        "id": versao.pk,
        "numero": versao.numero,
        "calculo_id": versao.calculo_id,
        "mes": versao.mes,
        "ano": versao.ano,
        "motivo": versao.motivo,
        "tipo_mudanca": versao.tipo_mudanca,
        "created_at": versao.created_at.isoformat(),
        "dados": versao.dados,
    }


def _reajuste_dict(reajuste):
    return {
        "id": reajuste.pk,
        "mes": reajuste.mes,
        "ano": reajuste.ano,
        "valor": formatar_quantidade(reajuste.valor, reajuste.dimensao),
        "tipo": reajuste.tipo,
        "dimensao": reajuste.dimensao,
        "observacao": reajuste.observacao,
        "ativo": reajuste.ativo,
        "created_at": reajuste.created_at.isoformat(),
    }


def _alocacao_dict(alocacao):
    return {
        "id": alocacao.pk,
        "nome": alocacao.nome,
        "percentual_baseline": str(alocacao.percentual_baseline),
        "ativo": alocacao.ativo,
    }


# ──────────────────────────── Cálculos ─────────────────────────────

@login_required
@require_POST
def calcular_mes(request, empresa_id):
    """Calculate one month and return the stored row."""
    get_object_or_404(Empresa, pk=empresa_id)
    try:
        data = _payload(request)
        mes, ano = parse_mes_ano((data.get("mes"), data.get("ano")))
    except (ValidationError, ValueError, TypeError) as e:
        return _erro(str(e))

    emitter, memoria = _emitter(request)
    resultado = BancoHorasService(emitter=emitter).calcular_mes(
        empresa_id, mes, ano, motivo="Recálculo manual", usuario=request.user
    )
    status = 200 if resultado.sucesso else 500
    return JsonResponse(
        {"success": resultado.sucesso, **resultado.as_dict(), "notificacoes": memoria.como_dicts()},
        status=status,
    )


@login_required
@require_POST
def recalcular_periodo(request, empresa_id):
    get_object_or_404(Empresa, pk=empresa_id)
    try:
        data = _payload(request)
        desde = data.get("desde")
        if not desde:
            return _erro("O campo 'desde' é obrigatório (MM/YYYY).")
        emitter, memoria = _emitter(request)
        cascata = BancoHorasService(emitter=emitter).recalcular_periodo(
            empresa_id, desde, data.get("ate") or None, motivo="Recálculo de período", usuario=request.user
        )
    except (ValidationError, ValueError) as e:
        return _erro(str(e))
    except BancoHorasError as e:
        return _erro(e.mensagem, detalhe=e.as_dict())

    return JsonResponse(
        {"success": cascata.completo, **cascata.as_dict(), "notificacoes": memoria.como_dicts()},
        status=200 if cascata.completo else 500,
    )


@login_required
@require_GET
def listar_calculos(request, empresa_id):
    get_object_or_404(Empresa, pk=empresa_id)
    ano = request.GET.get("ano")
    try:
        ano = int(ano) if ano else date.today().year
    except (ValueError, TypeError):
        logger.warning(f"Invalid year filter: {ano}")
        return _erro(f"Ano inválido: {ano}")

    calculos = BancoHorasService().listar_calculos(empresa_id, ano)
    return JsonResponse({"success": True, "ano": ano, "calculos": [serializar_calculo(c) for c in calculos]})


# ──────────────────────────── Reajustes ─────────────────────────────

@login_required
@require_GET
def listar_reajustes(request, empresa_id):
    get_object_or_404(Empresa, pk=empresa_id)
    incluir_inativos = request.GET.get("inativos") in {"1", "true"}
    reajustes = ReajusteService().listar_reajustes(empresa_id, incluir_inativos=incluir_inativos)
    return JsonResponse({"success": True, "reajustes": [_reajuste_dict(r) for r in reajustes]})


@login_required
@require_POST
def criar_reajuste(request, empresa_id):
    get_object_or_404(Empresa, pk=empresa_id)
    try:
        data = _payload(request)
        emitter, memoria = _emitter(request)
        resultado = ReajusteService(emitter=emitter).criar_reajuste(
            empresa_id,
            data.get("valor"),
            data.get("tipo"),
            data.get("mes_ano"),
            data.get("observacao", ""),
            usuario=request.user,
            dimensao=data.get("dimensao") or Reajuste.Dimensao.HORAS,
        )
    except ValidationError as e:
        return _erro("Dados inválidos", errors=_validation_payload(e))
    except ReajusteError as e:
        return _erro(e.mensagem)

    return JsonResponse(
        {"success": resultado.completo, **resultado.as_dict(), "notificacoes": memoria.como_dicts()},
        status=201 if resultado.completo else 207,
    )


@login_required
@require_POST
def desativar_reajuste(request, reajuste_id):
    get_object_or_404(Reajuste, pk=reajuste_id)
    try:
        data = _payload(request)
        emitter, memoria = _emitter(request)
        resultado = ReajusteService(emitter=emitter).desativar_reajuste(
            reajuste_id, motivo=data.get("motivo", ""), usuario=request.user
        )
    except ValidationError as e:
        return _erro(str(e))
    except ReajusteError as e:
        return _erro(e.mensagem)

    return JsonResponse(
        {"success": resultado.completo, **resultado.as_dict(), "notificacoes": memoria.como_dicts()},
        status=200 if resultado.completo else 207,
    )


# ──────────────────────────── Versões ─────────────────────────────

@login_required
@require_GET
def listar_versoes(request, empresa_id, ano, mes):
    get_object_or_404(Empresa, pk=empresa_id)
    versoes = versionamento.listar_versoes(empresa_id, mes, ano)
    return JsonResponse({"success": True, "versoes": [_versao_dict(v) for v in versoes]})


@login_required
@require_GET
def comparar_versoes(request):
    """Diff two versions, or one version against the current calculation."""
    try:
        antiga = versionamento.obter_versao(int(request.GET.get("v1", "")))
        v2 = request.GET.get("v2")
        if v2:
            diferencas = versionamento.comparar_versoes(antiga, versionamento.obter_versao(int(v2)))
        else:
            diferencas = versionamento.comparar_com_atual(antiga)
    except ValueError:
        return _erro("Parâmetros v1/v2 inválidos.")
    except VersionamentoError as e:
        return _erro(e.mensagem, status=404)

    return JsonResponse({"success": True, **diferencas.as_dict()})


# ──────────────────────────── Alocações ─────────────────────────────

@login_required
@require_GET
def listar_alocacoes(request, empresa_id):
    get_object_or_404(Empresa, pk=empresa_id)
    alocacoes = AlocacaoService().listar_alocacoes(empresa_id)
    return JsonResponse({"success": True, "alocacoes": [_alocacao_dict(a) for a in alocacoes]})


@login_required
@require_POST
def definir_alocacoes(request, empresa_id):
    """Replace the active allocation set; body: ``{"alocacoes": [{"nome", "percentual_baseline"}]}``."""
    get_object_or_404(Empresa, pk=empresa_id)
    try:
        data = _payload(request)
        itens = data.get("alocacoes")
        if not isinstance(itens, list) or not all(isinstance(item, dict) for item in itens):
            return _erro("O campo 'alocacoes' deve ser uma lista de objetos.")
        alocacoes = AlocacaoService().definir_alocacoes(empresa_id, itens, usuario=request.user)
    except ValidationError as e:
        return _erro("Dados inválidos", errors=_validation_payload(e))
    except AlocacaoError as e:
        return _erro(e.mensagem)

    return JsonResponse({"success": True, "alocacoes": [_alocacao_dict(a) for a in alocacoes]}, status=201)


@login_required
@require_GET
def visao_segmentada(request, empresa_id, ano, mes):
    get_object_or_404(Empresa, pk=empresa_id)
    try:
        visao = AlocacaoService().visao_segmentada(empresa_id, mes, ano)
    except AlocacaoError as e:
        return _erro(e.mensagem, status=404)
    return JsonResponse({"success": True, **visao.as_dict()})


# ──────────────────────────── Vigências ─────────────────────────────

@login_required
@require_POST
def criar_vigencia(request, empresa_id, tipo):
    if tipo not in VIGENCIAS:
        return _erro(f"Tipo de vigência desconhecido: {tipo}", status=404)
    empresa = get_object_or_404(Empresa, pk=empresa_id)
    service, campos = VIGENCIAS[tipo]

    try:
        data = _payload(request)
        data_inicio = date.fromisoformat(data.get("data_inicio", ""))
        data_fim = date.fromisoformat(data["data_fim"]) if data.get("data_fim") else None
        valores = {campo: to_decimal(data[campo]) for campo in campos if data.get(campo) not in (None, "")}
        if "baseline_tickets" in valores:
            valores["baseline_tickets"] = int(valores["baseline_tickets"])
        vigencia = service.criar(
            empresa,
            data_inicio,
            data_fim,
            usuario=request.user,
            motivo=data.get("motivo") or "outro",
            observacao=data.get("observacao", ""),
            **valores,
        )
    except ValidationError as e:
        return _erro("Dados inválidos", errors=_validation_payload(e))
    except (ValueError, TypeError) as e:
        return _erro(str(e))
    except BancoHorasError as e:
        return _erro(e.mensagem, status=409, dados=e.dados)
    except Exception as e:
        logger.error(f"Error creating vigência for empresa {empresa_id}: {e}")
        return _erro("Erro ao criar vigência", status=500)

    return JsonResponse({"success": True, "id": vigencia.pk}, status=201)


def healthz(_request):
    """
    Lightweight health endpoint used by external monitors.
    Must not touch the database.
    """
    response = HttpResponse("ok", content_type="text/plain", status=200)
    response["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
    response["X-Robots-Tag"] = "noindex, nofollow"
    return response
