"""
Módulo Cadastros (Repositório)
==============================

Este módulo define a classe `CadastrosRepository`, responsável pelas tabelas
de cadastro consumidas pelo motor: **`clientes`**, **`contratos`**,
**`contas_correntes`** e **`produtos`**.

Funcionalidades principais
--------------------------
- Inserção e leitura de clientes (snapshot de contraparte).
- Listagem dos contratos de um cliente (entrada do resolvedor de preço).
- Leitura de contas correntes e produtos (validação de referências).

Detalhes técnicos
-----------------
- Todos os métodos recebem `conn` (opcional). Sem `conn`, abrem e fecham
  uma conexão própria via `shared.db.conexao`.
- Linhas retornadas como `sqlite3.Row` (acesso por nome) ou `None`.
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

import pandas as pd

from shared.db import conexao

logger = logging.getLogger(__name__)


class CadastrosRepository:
    """Acesso às tabelas de cadastro (clientes, contratos, contas, produtos)."""

    def __init__(self, db_path: Any):
        self.db_path = db_path

    @contextmanager
    def _conn_ctx(self, conn: Any) -> Iterator[sqlite3.Connection]:
        """Usa `conn` quando fornecido; senão abre (e fecha) uma conexão própria."""
        if conn is not None:
            yield conn
            return
        with conexao(self.db_path) as c:
            yield c

    # ------------------ clientes ------------------

    def inserir_cliente(
        self,
        conn: Any = None,
        *,
        razao_social: str,
        nome_fantasia: Optional[str] = None,
        cnpj_cpf: Optional[str] = None,
        municipio: Optional[str] = None,
        estado: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> int:
        if not (razao_social or "").strip():
            raise ValueError("razao_social é obrigatória.")
        with self._conn_ctx(conn) as c:
            cur = c.execute(
                """
                INSERT INTO clientes (razao_social, nome_fantasia, cnpj_cpf, municipio, estado, user_id)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (razao_social.strip(), nome_fantasia, cnpj_cpf, municipio, estado, user_id),
            )
            return int(cur.lastrowid)

    def obter_cliente(self, conn: Any = None, cliente_id: int = 0) -> Optional[sqlite3.Row]:
        with self._conn_ctx(conn) as c:
            return c.execute("SELECT * FROM clientes WHERE id = ?", (int(cliente_id),)).fetchone()

    # ------------------ contratos ------------------

    def inserir_contrato(
        self,
        conn: Any = None,
        *,
        cliente_id: int,
        tipo_coleta: str,
        fator_troca: Optional[int] = None,
        valor_coleta: Optional[float] = None,
        data_inicio: Optional[str] = None,
        data_fim: Optional[str] = None,
        status: str = "Ativo",
        created_at: Optional[str] = None,
    ) -> int:
        """Insere um contrato. `created_at` explícito serve para desempates determinísticos."""
        with self._conn_ctx(conn) as c:
            if created_at:
                cur = c.execute(
                    """
                    INSERT INTO contratos (cliente_id, tipo_coleta, fator_troca, valor_coleta,
                                           data_inicio, data_fim, status, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (int(cliente_id), tipo_coleta, fator_troca, valor_coleta,
                     data_inicio, data_fim, status, created_at),
                )
            else:
                cur = c.execute(
                    """
                    INSERT INTO contratos (cliente_id, tipo_coleta, fator_troca, valor_coleta,
                                           data_inicio, data_fim, status)
                    VALUES (?, ?, ?, ?, ?, ?, ?)
                    """,
                    (int(cliente_id), tipo_coleta, fator_troca, valor_coleta,
                     data_inicio, data_fim, status),
                )
            return int(cur.lastrowid)

    def listar_contratos_cliente(self, conn: Any = None, cliente_id: int = 0) -> List[sqlite3.Row]:
        """Todos os contratos do cliente, sem filtro de status (o filtro é regra do serviço)."""
        with self._conn_ctx(conn) as c:
            return c.execute(
                "SELECT * FROM contratos WHERE cliente_id = ? ORDER BY id",
                (int(cliente_id),),
            ).fetchall()

    def obter_contrato(self, conn: Any = None, contrato_id: int = 0) -> Optional[sqlite3.Row]:
        with self._conn_ctx(conn) as c:
            return c.execute("SELECT * FROM contratos WHERE id = ?", (int(contrato_id),)).fetchone()

    def atualizar_status_contrato(self, conn: Any = None, contrato_id: int = 0, status: str = "Inativo") -> None:
        with self._conn_ctx(conn) as c:
            c.execute("UPDATE contratos SET status = ? WHERE id = ?", (status, int(contrato_id)))

    # ------------------ contas correntes ------------------

    def inserir_conta_corrente(
        self,
        conn: Any = None,
        *,
        banco: str,
        agencia: Optional[str] = None,
        conta: Optional[str] = None,
        is_default: bool = False,
    ) -> int:
        with self._conn_ctx(conn) as c:
            cur = c.execute(
                "INSERT INTO contas_correntes (banco, agencia, conta, is_default) VALUES (?, ?, ?, ?)",
                (banco, agencia, conta, 1 if is_default else 0),
            )
            return int(cur.lastrowid)

    def obter_conta_corrente(self, conn: Any = None, conta_id: int = 0) -> Optional[sqlite3.Row]:
        with self._conn_ctx(conn) as c:
            return c.execute("SELECT * FROM contas_correntes WHERE id = ?", (int(conta_id),)).fetchone()

    # ------------------ produtos ------------------

    def inserir_produto(
        self,
        conn: Any = None,
        *,
        nome: str,
        codigo: Optional[str] = None,
        unidade: str = "kg",
        tipo: Optional[str] = None,
    ) -> int:
        with self._conn_ctx(conn) as c:
            cur = c.execute(
                "INSERT INTO produtos (codigo, nome, unidade, tipo) VALUES (?, ?, ?, ?)",
                (codigo, nome, unidade, tipo),
            )
            return int(cur.lastrowid)

    def obter_produto(self, conn: Any = None, produto_id: int = 0) -> Optional[sqlite3.Row]:
        with self._conn_ctx(conn) as c:
            return c.execute("SELECT * FROM produtos WHERE id = ?", (int(produto_id),)).fetchone()

    def listar_produtos(self, conn: Any = None) -> pd.DataFrame:
        with self._conn_ctx(conn) as c:
            return pd.read_sql("SELECT id, codigo, nome, unidade, tipo FROM produtos ORDER BY nome", c)


# API pública explícita
__all__ = ["CadastrosRepository"]
