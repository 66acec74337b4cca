"""
Infraestrutura do Ledger.

Utilitários comuns para os mixins do `LedgerService`:
- Executar uma mutação dentro de uma transação `BEGIN IMMEDIATE`.
- Repetir **uma** vez quando a transação perde a disputa pelo lock
  (`ConcurrencyConflict`).
- Emitir o evento de auditoria (sucesso ou `<acao>_failed`) depois que a
  transação terminou, sem nunca bloquear ou falhar por causa do log.

Dependências:
- shared.db (conexao, transacao)
- shared.auditoria (auditar)
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional, TypeVar

from shared.auditoria import auditar
from shared.db import conexao, transacao
from shared.erros import ConcurrencyConflict, ErroNegocio

logger = logging.getLogger(__name__)

R = TypeVar("R")

TENTATIVAS_CONFLITO = 2

__all__ = ["_InfraLedgerMixin", "TENTATIVAS_CONFLITO"]


class _InfraLedgerMixin:
    """Mixin com utilitários de infraestrutura para o Ledger."""

    def _usuario(self, usuario: Optional[str]) -> str:
        return usuario or getattr(self, "usuario_padrao", None) or "sistema"

    def _auditar(self, acao: str, detalhes: Dict[str, Any], usuario: Optional[str]) -> None:
        auditar(getattr(self, "auditor", None), acao, detalhes, self._usuario(usuario))

    def _executar_mutacao(
        self,
        acao: str,
        operacao: Callable[[Any], R],
        *,
        detalhes: Optional[Dict[str, Any]] = None,
        usuario: Optional[str] = None,
        resumo: Optional[Callable[[R], Dict[str, Any]]] = None,
    ) -> R:
        """
        Roda `operacao(conn)` numa transação de escrita e audita o resultado.

        - `ConcurrencyConflict` na primeira tentativa: repete uma vez.
        - Qualquer erro: ROLLBACK (via `transacao`), evento `<acao>_failed`
          e a exceção é re-lançada.
        - `resumo(resultado)` acrescenta campos ao evento de sucesso.
        """
        detalhes = dict(detalhes or {})
        tentativa = 0
        while True:
            tentativa += 1
            try:
                with conexao(self.db_path) as conn:  # type: ignore[attr-defined]
                    with transacao(conn):
                        resultado = operacao(conn)
                break
            except ConcurrencyConflict as exc:
                if tentativa < TENTATIVAS_CONFLITO:
                    logger.info("%s: conflito de concorrência, repetindo (tentativa %d).", acao, tentativa)
                    continue
                self._auditar(f"{acao}_failed", {**detalhes, "code": exc.codigo, "message": exc.mensagem}, usuario)
                raise
            except ErroNegocio as exc:
                logger.info("%s rejeitado: [%s] %s", acao, exc.codigo, exc.mensagem)
                self._auditar(f"{acao}_failed", {**detalhes, "code": exc.codigo, "message": exc.mensagem}, usuario)
                raise
            except Exception as exc:
                logger.exception("%s falhou com erro inesperado.", acao)
                self._auditar(f"{acao}_failed", {**detalhes, "code": type(exc).__name__, "message": str(exc)}, usuario)
                raise

        if resumo is not None:
            detalhes.update(resumo(resultado))
        self._auditar(acao, detalhes, usuario)
        return resultado
