"""
Módulo Coletas (Repositório)
============================

Acesso à tabela **`coletas`**: cada linha é o registro de uma coleta com o
**snapshot de precificação** (modo, fator/preço, resultado) copiado do
contrato no momento do registro.

Detalhes técnicos
-----------------
- O snapshot nunca é relido do contrato; só muda por edição explícita.
- `numero_coleta` é sequencial (máximo + 1) e único.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from shared.db import conexao

logger = logging.getLogger(__name__)

_COLUNAS = (
    "numero_coleta", "cliente_id", "contrato_id", "cliente_nome", "data_coleta",
    "tipo_coleta", "fator", "valor_compra", "quantidade_coletada",
    "quantidade_entregue", "total_pago", "observacao", "fluxo_direcao",
    "produto_coletado_id", "produto_entregue_id", "user_id",
)

_EDITAVEIS = frozenset(_COLUNAS) - {"numero_coleta", "cliente_id", "user_id"}


class ColetasRepository:
    """Persistência das coletas e do seu snapshot de preço."""

    def __init__(self, db_path: Any):
        self.db_path = db_path

    @contextmanager
    def _conn_ctx(self, conn: Any) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with conexao(self.db_path) as c:
            yield c

    def proximo_numero(self, conn: Any = None) -> int:
        """Próximo `numero_coleta` (máximo atual + 1, ou 1 se tabela vazia)."""
        with self._conn_ctx(conn) as c:
            row = c.execute("SELECT COALESCE(MAX(numero_coleta), 0) + 1 FROM coletas").fetchone()
            return int(row[0])

    def inserir(self, conn: Any = None, **campos: Any) -> int:
        sql = f"INSERT INTO coletas ({','.join(_COLUNAS)}) VALUES ({','.join(['?'] * len(_COLUNAS))})"
        with self._conn_ctx(conn) as c:
            cur = c.execute(sql, [campos.get(col) for col in _COLUNAS])
            return int(cur.lastrowid)

    def atualizar(self, conn: Any = None, coleta_id: int = 0, campos: Optional[Dict[str, Any]] = None) -> None:
        """Atualiza apenas colunas editáveis; nomes fora da whitelist geram ValueError."""
        campos = dict(campos or {})
        invalidas = set(campos) - _EDITAVEIS
        if invalidas:
            raise ValueError(f"Colunas não editáveis em coletas: {sorted(invalidas)}")
        if not campos:
            return
        sets = ", ".join(f"{k} = ?" for k in campos)
        with self._conn_ctx(conn) as c:
            c.execute(
                f"UPDATE coletas SET {sets}, updated_at = datetime('now') WHERE id = ?",
                [*campos.values(), int(coleta_id)],
            )

    def obter(self, conn: Any = None, coleta_id: int = 0) -> Optional[sqlite3.Row]:
        with self._conn_ctx(conn) as c:
            return c.execute("SELECT * FROM coletas WHERE id = ?", (int(coleta_id),)).fetchone()

    def excluir(self, conn: Any = None, coleta_id: int = 0) -> None:
        with self._conn_ctx(conn) as c:
            c.execute("DELETE FROM coletas WHERE id = ?", (int(coleta_id),))


# API pública explícita
__all__ = ["ColetasRepository"]
