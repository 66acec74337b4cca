"""
Módulo Auditoria (Shared)
=========================

Registro "fire-and-forget" de ações na tabela `logs`.

Regras
------
- Chamado **depois** da transação de negócio (sucesso ou falha).
- Usa conexão própria; nunca participa da transação do chamador.
- Qualquer erro é apenas logado (`logger.warning`) e descartado: a
  operação de negócio não falha nem espera por causa do log.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from shared.db import conexao

logger = logging.getLogger(__name__)

Auditor = Callable[[str, Dict[str, Any], Optional[str]], None]


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return str(obj)
    if hasattr(obj, "isoformat"):
        return obj.isoformat()
    return str(obj)


def registrar_acao(
    db_path: Any,
    acao: str,
    detalhes: Optional[Dict[str, Any]] = None,
    usuario: Optional[str] = None,
) -> None:
    """Insere `(usuario, acao, detalhes)` em `logs`. Nunca levanta exceção."""
    try:
        payload = json.dumps(detalhes or {}, default=_json_default, ensure_ascii=False)
        with conexao(db_path, busy_timeout_ms=2000) as conn:
            conn.execute(
                "INSERT INTO logs (user_id, action, details, created_at) VALUES (?, ?, ?, ?)",
                (usuario, acao, payload, datetime.now().isoformat(timespec="seconds")),
            )
    except Exception as e:
        logger.warning("Falha ao registrar log de auditoria (%s): %s", acao, e)


def auditor_sqlite(db_path: Any) -> Auditor:
    """Fábrica do auditor padrão ligado a um banco."""
    def _auditor(acao: str, detalhes: Dict[str, Any], usuario: Optional[str]) -> None:
        registrar_acao(db_path, acao, detalhes, usuario)
    return _auditor


def auditar(auditor: Optional[Auditor], acao: str, detalhes: Dict[str, Any], usuario: Optional[str]) -> None:
    """Chama um auditor injetado protegendo o chamador de qualquer falha dele."""
    if auditor is None:
        return
    try:
        auditor(acao, detalhes, usuario)
    except Exception as e:
        logger.warning("Auditor falhou (%s): %s", acao, e)


__all__ = ["Auditor", "registrar_acao", "auditor_sqlite", "auditar"]
