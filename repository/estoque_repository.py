"""
Módulo Estoque (Repositório)
============================

Este módulo define a classe `EstoqueRepository`, responsável pelas tabelas
**`entrada_saida`** (cabeçalho da movimentação) e **`itens_entrada_saida`**
(linhas produto/quantidade), e pela view **`v_saldo_produtos`**.

Funcionalidades principais
--------------------------
- CRUD de movimentações e substituição das linhas.
- Busca da movimentação vinculada a uma coleta (`coleta_id` é único).
- Saldo por produto (view) e consultas tabulares para relatórios.

Detalhes técnicos
-----------------
- Métodos recebem `conn` (opcional) para participar da transação do serviço.
- Consultas de listagem via `pandas.read_sql`.

Dependências
------------
- pandas
- shared.db.conexao
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Iterable, Iterator, List, Optional, Sequence, Tuple

import pandas as pd

from shared.db import conexao
from utils.utils import padrao_like

logger = logging.getLogger(__name__)


class EstoqueRepository:
    """Persistência de movimentações de estoque e leitura de saldos."""

    def __init__(self, db_path: Any):
        self.db_path = db_path

    @contextmanager
    def _conn_ctx(self, conn: Any) -> Iterator[sqlite3.Connection]:
        if conn is not None:
            yield conn
            return
        with conexao(self.db_path) as c:
            yield c

    # ------------------ movimentações ------------------

    def inserir_movimentacao(
        self,
        conn: Any = None,
        *,
        tipo: str,
        origem: str,
        data: str,
        coleta_id: Optional[int] = None,
        cliente_id: Optional[int] = None,
        document_number: Optional[str] = None,
        observacao: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> int:
        with self._conn_ctx(conn) as c:
            cur = c.execute(
                """
                INSERT INTO entrada_saida (tipo, origem, coleta_id, cliente_id, data,
                                           document_number, observacao, user_id)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (tipo, origem, coleta_id, cliente_id, str(data), document_number, observacao, user_id),
            )
            return int(cur.lastrowid)

    def atualizar_movimentacao(
        self,
        conn: Any = None,
        mov_id: int = 0,
        *,
        tipo: str,
        data: str,
        cliente_id: Optional[int],
        document_number: Optional[str],
        observacao: Optional[str],
    ) -> None:
        with self._conn_ctx(conn) as c:
            c.execute(
                """
                UPDATE entrada_saida
                   SET tipo = ?, data = ?, cliente_id = ?, document_number = ?,
                       observacao = ?, updated_at = datetime('now')
                 WHERE id = ?
                """,
                (tipo, str(data), cliente_id, document_number, observacao, int(mov_id)),
            )

    def substituir_itens(self, conn: Any = None, mov_id: int = 0, linhas: Iterable[Tuple[int, Any]] = ()) -> None:
        """Apaga as linhas atuais e grava `linhas` ((produto_id, quantidade), ...)."""
        with self._conn_ctx(conn) as c:
            c.execute("DELETE FROM itens_entrada_saida WHERE entrada_saida_id = ?", (int(mov_id),))
            c.executemany(
                "INSERT INTO itens_entrada_saida (entrada_saida_id, produto_id, quantidade) VALUES (?, ?, ?)",
                [(int(mov_id), int(pid), float(q)) for pid, q in linhas],
            )

    def obter_movimentacao(self, conn: Any = None, mov_id: int = 0) -> Optional[sqlite3.Row]:
        with self._conn_ctx(conn) as c:
            return c.execute("SELECT * FROM entrada_saida WHERE id = ?", (int(mov_id),)).fetchone()

    def obter_por_coleta(self, conn: Any = None, coleta_id: int = 0) -> Optional[sqlite3.Row]:
        with self._conn_ctx(conn) as c:
            return c.execute(
                "SELECT * FROM entrada_saida WHERE coleta_id = ? LIMIT 1", (int(coleta_id),)
            ).fetchone()

    def listar_itens(self, conn: Any = None, mov_id: int = 0) -> List[sqlite3.Row]:
        with self._conn_ctx(conn) as c:
            return c.execute(
                """
                SELECT produto_id, quantidade FROM itens_entrada_saida
                 WHERE entrada_saida_id = ?
                 ORDER BY id
                """,
                (int(mov_id),),
            ).fetchall()

    def excluir_movimentacao(self, conn: Any = None, mov_id: int = 0) -> None:
        with self._conn_ctx(conn) as c:
            c.execute("DELETE FROM entrada_saida WHERE id = ?", (int(mov_id),))

    def contar_movimentacoes_coleta(self, conn: Any = None, coleta_id: int = 0) -> int:
        with self._conn_ctx(conn) as c:
            row = c.execute(
                "SELECT COUNT(*) FROM entrada_saida WHERE coleta_id = ?", (int(coleta_id),)
            ).fetchone()
            return int(row[0])

    # ------------------ saldos ------------------

    def saldo_produto(self, conn: Any = None, produto_id: int = 0) -> float:
        """`saldo_atual` do produto na view (0 se o produto não existir)."""
        with self._conn_ctx(conn) as c:
            row = c.execute(
                "SELECT saldo_atual FROM v_saldo_produtos WHERE produto_id = ?", (int(produto_id),)
            ).fetchone()
            return float(row[0]) if row else 0.0

    def saldo_produtos_df(self, conn: Any = None) -> pd.DataFrame:
        with self._conn_ctx(conn) as c:
            return pd.read_sql(
                """
                SELECT produto_id, produto_codigo, produto_nome, unidade,
                       total_entradas, total_saidas, saldo_atual
                  FROM v_saldo_produtos
                 ORDER BY produto_nome
                """,
                c,
            )

    # ------------------ relatórios ------------------

    def itens_filtrados(
        self,
        conn: Any = None,
        *,
        data_inicio: Optional[str] = None,
        data_fim: Optional[str] = None,
        tipo: Optional[str] = None,
        busca_produto: Optional[str] = None,
    ) -> pd.DataFrame:
        """
        Uma linha por item de movimentação que atende aos filtros.

        Colunas: entrada_saida_id, tipo, origem, coleta_id, data, document_number,
        produto_id, produto_codigo, produto_nome, quantidade.
        """
        where: List[str] = []
        params: List[Any] = []
        if data_inicio:
            where.append("es.data >= ?")
            params.append(str(data_inicio))
        if data_fim:
            where.append("es.data <= ?")
            params.append(str(data_fim))
        if tipo:
            where.append("es.tipo = ?")
            params.append(tipo)
        termo = (busca_produto or "").strip()
        if termo:
            where.append("(COALESCE(p.nome, '') LIKE ? ESCAPE '\\' OR COALESCE(p.codigo, '') LIKE ? ESCAPE '\\')")
            params.extend([padrao_like(termo)] * 2)
        filtro = (" WHERE " + " AND ".join(where)) if where else ""
        sql = f"""
            SELECT es.id AS entrada_saida_id, es.tipo, es.origem, es.coleta_id, es.data,
                   es.document_number, i.produto_id, p.codigo AS produto_codigo,
                   p.nome AS produto_nome, i.quantidade
              FROM itens_entrada_saida i
              JOIN entrada_saida es ON es.id = i.entrada_saida_id
              JOIN produtos p ON p.id = i.produto_id
              {filtro}
             ORDER BY es.data, es.id, i.id
        """
        with self._conn_ctx(conn) as c:
            return pd.read_sql(sql, c, params=params)

    def saldos_de(self, conn: Any = None, produto_ids: Sequence[int] = ()) -> List[sqlite3.Row]:
        """(produto_id, saldo_atual) para os produtos informados."""
        ids = [int(i) for i in produto_ids]
        if not ids:
            return []
        marcadores = ",".join("?" * len(ids))
        with self._conn_ctx(conn) as c:
            return c.execute(
                f"SELECT produto_id, produto_nome, saldo_atual FROM v_saldo_produtos WHERE produto_id IN ({marcadores})",
                ids,
            ).fetchall()


# API pública explícita
__all__ = ["EstoqueRepository"]
