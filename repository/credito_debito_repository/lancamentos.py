"""
Módulo Lançamentos (Crédito/Débito - Mixins)
============================================

Define a classe `LancamentosMixin`, responsável pelo **cabeçalho** do
lançamento financeiro na tabela `credito_debito`.

Funcionalidades principais
--------------------------
- Inserir o cabeçalho (tipo, snapshot da contraparte, valores, datas).
- Atualizar colunas do cabeçalho (whitelist `CAMPOS_CABECALHO`).
- Ler por id ou pelo vínculo com a coleta de origem.
- Excluir (as parcelas saem por ON DELETE CASCADE).

Detalhes técnicos
-----------------
- Combinado com `BaseRepo` na classe final (`CreditoDebitoRepository`).
- Valores monetários chegam já quantizados pelo serviço (Decimal) e são
  gravados como REAL.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict, Optional

from repository.credito_debito_repository.types import ALLOWED_TIPOS, CAMPOS_CABECALHO

_COLUNAS_INSERT = ("tipo", "coleta_id", "user_id") + CAMPOS_CABECALHO


def _sql_valor(v: Any) -> Any:
    """Decimal -> float para o SQLite; demais tipos passam direto."""
    if v is None or isinstance(v, (int, float, str)):
        return v
    if hasattr(v, "isoformat"):
        return v.isoformat()
    return float(v)


class LancamentosMixin(object):
    """Operações sobre o cabeçalho `credito_debito`."""

    def __init__(self, *args, **kwargs):
        # __init__ cooperativo para múltipla herança
        super().__init__(*args, **kwargs)

    def inserir_lancamento(self, conn: Any = None, **campos: Any) -> int:
        """Insere o cabeçalho e retorna o id. Espera campos já validados."""
        if campos.get("tipo") not in ALLOWED_TIPOS:
            raise ValueError(f"tipo inválido: {campos.get('tipo')}. Use {sorted(ALLOWED_TIPOS)}")
        sql = (
            f"INSERT INTO credito_debito ({','.join(_COLUNAS_INSERT)}) "
            f"VALUES ({','.join(['?'] * len(_COLUNAS_INSERT))})"
        )
        with self._conn_ctx(conn) as c:  # type: ignore[attr-defined]
            cur = c.execute(sql, [_sql_valor(campos.get(col)) for col in _COLUNAS_INSERT])
            return int(cur.lastrowid)

    def atualizar_cabecalho(self, conn: Any = None, lancamento_id: int = 0, campos: Optional[Dict[str, Any]] = None) -> None:
        campos = dict(campos or {})
        invalidas = set(campos) - set(CAMPOS_CABECALHO)
        if invalidas:
            raise ValueError(f"Colunas não editáveis em credito_debito: {sorted(invalidas)}")
        if not campos:
            return
        sets = ", ".join(f"{k} = ?" for k in campos)
        with self._conn_ctx(conn) as c:  # type: ignore[attr-defined]
            c.execute(
                f"UPDATE credito_debito SET {sets}, updated_at = datetime('now') WHERE id = ?",
                [*(_sql_valor(v) for v in campos.values()), int(lancamento_id)],
            )

    def obter_lancamento(self, conn: Any = None, lancamento_id: int = 0) -> Optional[sqlite3.Row]:
        with self._conn_ctx(conn) as c:  # type: ignore[attr-defined]
            return c.execute("SELECT * FROM credito_debito WHERE id = ?", (int(lancamento_id),)).fetchone()

    def obter_lancamento_por_coleta(self, conn: Any = None, coleta_id: int = 0) -> Optional[sqlite3.Row]:
        with self._conn_ctx(conn) as c:  # type: ignore[attr-defined]
            return c.execute(
                "SELECT * FROM credito_debito WHERE coleta_id = ? LIMIT 1", (int(coleta_id),)
            ).fetchone()

    def excluir_lancamento(self, conn: Any = None, lancamento_id: int = 0) -> None:
        with self._conn_ctx(conn) as c:  # type: ignore[attr-defined]
            c.execute("DELETE FROM credito_debito WHERE id = ?", (int(lancamento_id),))


# API pública explícita
__all__ = ["LancamentosMixin"]
