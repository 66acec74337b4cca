"""
Módulo DB (Shared)
==================

Camada de acesso SQLite (PRAGMAs padrão) do motor financeiro/estoque.

Funcionalidades principais
--------------------------
- `get_conn`: abre conexões SQLite já configuradas para uso em produção.
- `conexao`: context manager que abre e **fecha** a conexão.
- `transacao`: bloco transacional com `BEGIN IMMEDIATE` (lock de escrita
  adquirido no início), COMMIT no sucesso e ROLLBACK em qualquer falha.

Detalhes técnicos
-----------------
- `journal_mode = WAL`: leitores não bloqueiam o escritor.
- `busy_timeout`: um segundo escritor espera o primeiro terminar.
- `foreign_keys = ON`: integridade referencial.
- `isolation_level = None`: as transações são controladas explicitamente
  por `transacao`, nunca abertas implicitamente pelo driver.
- `row_factory = sqlite3.Row`: acesso às colunas por nome.
- Datas são gravadas como TEXT ISO (`YYYY-MM-DD`).
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Any, Iterator

from shared.erros import traduzir_erro_sqlite
from utils.utils import resolve_db_path

logger = logging.getLogger(__name__)

BUSY_TIMEOUT_MS = 30000


def get_conn(db_path_like: Any, *, busy_timeout_ms: int = BUSY_TIMEOUT_MS) -> sqlite3.Connection:
    """
    Abre uma conexão SQLite pronta para uso.

    Aceita:
        - Caminho (str ou PathLike)
        - Objetos com atributo `db_path`, `caminho_banco` ou `database`

    Returns:
        sqlite3.Connection: Conexão aberta. O chamador é responsável por fechá-la.
    """
    db_path = resolve_db_path(db_path_like)

    conn = sqlite3.connect(
        db_path,
        timeout=busy_timeout_ms / 1000,
        isolation_level=None,
        check_same_thread=False,
    )
    conn.execute("PRAGMA journal_mode=WAL;")
    conn.execute(f"PRAGMA busy_timeout={int(busy_timeout_ms)};")
    conn.execute("PRAGMA foreign_keys=ON;")
    conn.execute("PRAGMA synchronous=NORMAL;")

    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def conexao(db_path_like: Any, **kwargs: Any) -> Iterator[sqlite3.Connection]:
    """Abre uma conexão e garante o fechamento ao sair do bloco."""
    conn = get_conn(db_path_like, **kwargs)
    try:
        yield conn
    finally:
        conn.close()


@contextmanager
def transacao(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """
    Executa o bloco dentro de uma transação `BEGIN IMMEDIATE`.

    - Se a conexão já estiver em transação, apenas participa dela (o dono
      externo decide COMMIT/ROLLBACK).
    - Qualquer exceção faz ROLLBACK e é re-lançada; lock não obtido
      (database is locked) vira `ConcurrencyConflict`.
    """
    if conn.in_transaction:
        yield conn
        return

    try:
        conn.execute("BEGIN IMMEDIATE;")
    except sqlite3.OperationalError as exc:
        erro = traduzir_erro_sqlite(exc)
        if erro is not None:
            raise erro from exc
        raise

    try:
        yield conn
    except BaseException:
        # o SQLite pode já ter revertido sozinho (ex.: SQLITE_FULL)
        if conn.in_transaction:
            conn.execute("ROLLBACK;")
        logger.debug("Transação revertida.")
        raise
    else:
        try:
            conn.execute("COMMIT;")
        except sqlite3.OperationalError as exc:
            if conn.in_transaction:
                conn.execute("ROLLBACK;")
            erro = traduzir_erro_sqlite(exc)
            if erro is not None:
                raise erro from exc
            raise


__all__ = ["BUSY_TIMEOUT_MS", "get_conn", "conexao", "transacao"]
