"""
Módulo Pagamentos (Crédito/Débito - Mixins)
===========================================

Define a classe `PagamentosMixin`: inserção e leitura de `pagamentos`.

Regras
------
- `pagamentos` é append-only: o schema tem triggers que abortam UPDATE e
  DELETE. Correções são feitas por novos registros ou pelo cancelamento
  da parcela, nunca por edição.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Iterable, List, Optional


class PagamentosMixin(object):
    """Operações sobre `pagamentos`."""

    def __init__(self, *args, **kwargs):
        # __init__ cooperativo para múltipla herança
        super().__init__(*args, **kwargs)

    def inserir_pagamento(
        self,
        conn: Any = None,
        *,
        parcela_id: int,
        valor: Any,
        data_pagamento: str,
        metodo: str,
        conta_corrente_id: Optional[int] = None,
        notes: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> int:
        with self._conn_ctx(conn) as c:  # type: ignore[attr-defined]
            cur = c.execute(
                """
                INSERT INTO pagamentos (parcela_id, paid_amount, payment_date, payment_method,
                                        conta_corrente_id, notes, user_id)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (int(parcela_id), float(valor), str(data_pagamento), metodo,
                 conta_corrente_id, notes, user_id),
            )
            return int(cur.lastrowid)

    def listar_pagamentos(self, conn: Any = None, parcela_id: int = 0) -> List[sqlite3.Row]:
        with self._conn_ctx(conn) as c:  # type: ignore[attr-defined]
            return c.execute(
                "SELECT * FROM pagamentos WHERE parcela_id = ? ORDER BY id",
                (int(parcela_id),),
            ).fetchall()

    def contar_pagamentos(self, conn: Any = None, parcela_ids: Iterable[int] = ()) -> int:
        """Quantidade de pagamentos registrados para o conjunto de parcelas."""
        ids = [int(i) for i in parcela_ids]
        if not ids:
            return 0
        marcadores = ",".join("?" * len(ids))
        with self._conn_ctx(conn) as c:  # type: ignore[attr-defined]
            row = c.execute(
                f"SELECT COUNT(*) FROM pagamentos WHERE parcela_id IN ({marcadores})", ids
            ).fetchone()
            return int(row[0])


# API pública explícita
__all__ = ["PagamentosMixin"]
