"""
Módulo Parcelas (Crédito/Débito - Mixins)
=========================================

Define a classe `ParcelasMixin`, responsável pelas linhas de `parcelas`
(entrada = número 0, regulares = 1..N).

Regras de concorrência
----------------------
- Toda escrita que muda `paid_amount`/`status` de uma parcela passa pela
  coluna `versao`: `UPDATE ... WHERE id = ? AND versao = ?`. Se outra
  operação alterou a linha antes, nenhuma linha é afetada e o método
  retorna False (o serviço converte em `ConcurrencyConflict`).
"""

from __future__ import annotations

import sqlite3
from typing import Any, Iterable, List, Optional

from repository.credito_debito_repository.types import STATUS_CANCELED, STATUS_PENDING


class ParcelasMixin(object):
    """Operações sobre `parcelas`."""

    def __init__(self, *args, **kwargs):
        # __init__ cooperativo para múltipla herança
        super().__init__(*args, **kwargs)

    def inserir_parcela(
        self,
        conn: Any = None,
        *,
        lancamento_id: int,
        numero: int,
        vencimento: str,
        valor: Any,
    ) -> int:
        with self._conn_ctx(conn) as c:  # type: ignore[attr-defined]
            cur = c.execute(
                """
                INSERT INTO parcelas (credito_debito_id, installment_number, due_date,
                                      expected_amount, paid_amount, status)
                VALUES (?, ?, ?, ?, 0, ?)
                """,
                (int(lancamento_id), int(numero), str(vencimento), float(valor), STATUS_PENDING),
            )
            return int(cur.lastrowid)

    def listar_parcelas(self, conn: Any = None, lancamento_id: int = 0) -> List[sqlite3.Row]:
        """Parcelas do lançamento ordenadas pelo número (entrada primeiro)."""
        with self._conn_ctx(conn) as c:  # type: ignore[attr-defined]
            return c.execute(
                """
                SELECT * FROM parcelas
                 WHERE credito_debito_id = ?
                 ORDER BY installment_number
                """,
                (int(lancamento_id),),
            ).fetchall()

    def obter_parcela(self, conn: Any = None, parcela_id: int = 0) -> Optional[sqlite3.Row]:
        with self._conn_ctx(conn) as c:  # type: ignore[attr-defined]
            return c.execute("SELECT * FROM parcelas WHERE id = ?", (int(parcela_id),)).fetchone()

    def reagendar_parcela(self, conn: Any = None, parcela_id: int = 0, *, vencimento: str, valor: Any) -> None:
        """Troca vencimento/valor de uma parcela sem pagamentos."""
        with self._conn_ctx(conn) as c:  # type: ignore[attr-defined]
            c.execute(
                """
                UPDATE parcelas
                   SET due_date = ?, expected_amount = ?, status = ?, versao = versao + 1
                 WHERE id = ?
                """,
                (str(vencimento), float(valor), STATUS_PENDING, int(parcela_id)),
            )

    def excluir_parcelas(self, conn: Any = None, parcela_ids: Iterable[int] = ()) -> None:
        ids = [int(i) for i in parcela_ids]
        if not ids:
            return
        with self._conn_ctx(conn) as c:  # type: ignore[attr-defined]
            c.executemany("DELETE FROM parcelas WHERE id = ?", [(i,) for i in ids])

    def aplicar_pagamento_parcela(
        self,
        conn: Any = None,
        parcela_id: int = 0,
        *,
        novo_pago: Any,
        novo_status: str,
        versao_esperada: int,
        conta_corrente_id: Optional[int] = None,
    ) -> bool:
        """Grava o novo acumulado/status se a versão ainda for a lida. Retorna se gravou."""
        with self._conn_ctx(conn) as c:  # type: ignore[attr-defined]
            cur = c.execute(
                """
                UPDATE parcelas
                   SET paid_amount = ?,
                       status = ?,
                       conta_corrente_id = COALESCE(?, conta_corrente_id),
                       versao = versao + 1
                 WHERE id = ? AND versao = ?
                """,
                (float(novo_pago), novo_status, conta_corrente_id, int(parcela_id), int(versao_esperada)),
            )
            return cur.rowcount == 1

    def cancelar_parcela(self, conn: Any = None, parcela_id: int = 0, *, versao_esperada: int) -> bool:
        with self._conn_ctx(conn) as c:  # type: ignore[attr-defined]
            cur = c.execute(
                "UPDATE parcelas SET status = ?, versao = versao + 1 WHERE id = ? AND versao = ?",
                (STATUS_CANCELED, int(parcela_id), int(versao_esperada)),
            )
            return cur.rowcount == 1


# API pública explícita
__all__ = ["ParcelasMixin"]
