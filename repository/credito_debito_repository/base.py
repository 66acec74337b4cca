"""
Módulo Base (Crédito/Débito - Repositório)
==========================================

Define a classe `BaseRepo`, com as funcionalidades comuns aos mixins do
repositório `credito_debito_repository`.

Funcionalidades principais
--------------------------
- Guardar o caminho do banco.
- Abrir conexão SQLite com os PRAGMAs do projeto (`shared.db.get_conn`).
- `_conn_ctx`: usa a conexão do chamador (participa da transação dele) ou
  abre e fecha uma própria.

Detalhes técnicos
-----------------
- Nenhum método daqui faz COMMIT: quem controla a transação é o serviço
  (`shared.db.transacao`).
"""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from typing import Any, Iterator

from shared.db import get_conn


class BaseRepo(object):
    """Classe base com utilitários comuns para os mixins de crédito/débito."""

    def __init__(self, db_path: Any, *args, **kwargs):
        # __init__ cooperativo para múltipla herança com mixins
        super().__init__(*args, **kwargs)
        self.db_path = db_path

    # ------------------ conexão ------------------

    def _get_conn(self) -> sqlite3.Connection:
        return get_conn(self.db_path)

    @contextmanager
    def _conn_ctx(self, conn: Any) -> Iterator[sqlite3.Connection]:
        """
        Context manager de conexão:
        - Se `conn` for fornecido, usa-o diretamente (não fecha).
        - Se `conn` for None, abre via `self._get_conn()` e fecha ao sair.
        """
        if conn is not None:
            yield conn
            return
        c = self._get_conn()
        try:
            yield c
        finally:
            c.close()


# API pública explícita
__all__ = ["BaseRepo"]
