"""
Módulo Consultas (Crédito/Débito - Mixins)
==========================================

Define a classe `QueriesMixin`, responsável pelas consultas de leitura que
alimentam listagens e relatórios.

Funcionalidades principais
--------------------------
- `parcelas_filtradas`: uma linha por parcela, já com os campos do
  cabeçalho do lançamento, filtrada por período de emissão, tipo, busca
  textual, centro de custo e escopo de dono.

Detalhes técnicos
-----------------
- Usa `pandas.read_sql` para retornar DataFrames prontos para UI.
- O status **derivado** (com 'overdue') não é calculado aqui: a camada de
  serviço aplica a mesma regra pura usada no registro de pagamentos, para
  que totais e detalhe venham de uma única fonte.

Dependências
------------
- pandas
"""

from __future__ import annotations

from typing import Any, List, Optional, Tuple

import pandas as pd

from utils.utils import padrao_like

_CAMPOS_BUSCA = (
    "cd.cliente_fornecedor_name",
    "cd.cliente_fornecedor_fantasy_name",
    "cd.cnpj_cpf",
    "cd.document_number",
    "cd.description",
)


def _montar_filtros(
    *,
    data_inicio: Optional[str],
    data_fim: Optional[str],
    tipo: Optional[str],
    busca: Optional[str],
    user_id: Optional[str],
    cost_center: Optional[str],
    lancamento_id: Optional[int],
) -> Tuple[str, List[Any]]:
    where: List[str] = []
    params: List[Any] = []
    if data_inicio:
        where.append("cd.issue_date >= ?")
        params.append(str(data_inicio))
    if data_fim:
        where.append("cd.issue_date <= ?")
        params.append(str(data_fim))
    if tipo:
        where.append("cd.tipo = ?")
        params.append(tipo)
    if user_id:
        where.append("cd.user_id = ?")
        params.append(user_id)
    if cost_center:
        where.append("cd.cost_center = ?")
        params.append(cost_center)
    if lancamento_id is not None:
        where.append("cd.id = ?")
        params.append(int(lancamento_id))
    termo = (busca or "").strip()
    if termo:
        where.append("(" + " OR ".join(f"COALESCE({c}, '') LIKE ? ESCAPE '\\'" for c in _CAMPOS_BUSCA) + ")")
        params.extend([padrao_like(termo)] * len(_CAMPOS_BUSCA))
    sql = (" WHERE " + " AND ".join(where)) if where else ""
    return sql, params


class QueriesMixin(object):
    """Mixin de consultas para listagens e totais."""

    def __init__(self, *args, **kwargs):
        # __init__ cooperativo para múltipla herança
        super().__init__(*args, **kwargs)

    def parcelas_filtradas(
        self,
        conn: Any = None,
        *,
        data_inicio: Optional[str] = None,
        data_fim: Optional[str] = None,
        tipo: Optional[str] = None,
        busca: Optional[str] = None,
        user_id: Optional[str] = None,
        cost_center: Optional[str] = None,
        lancamento_id: Optional[int] = None,
    ) -> pd.DataFrame:
        """
        Retorna as parcelas (com cabeçalho do lançamento) que atendem aos filtros.

        Retorno
        -------
        pd.DataFrame
            Colunas:
            parcela_id, credito_debito_id, installment_number, due_date,
            expected_amount, paid_amount, status, conta_corrente_id, tipo,
            cliente_fornecedor_name, cliente_fornecedor_fantasy_name, cnpj_cpf,
            description, document_number, cost_center, issue_date,
            total_value, coleta_id, user_id.
        """
        where, params = _montar_filtros(
            data_inicio=data_inicio,
            data_fim=data_fim,
            tipo=tipo,
            busca=busca,
            user_id=user_id,
            cost_center=cost_center,
            lancamento_id=lancamento_id,
        )
        sql = f"""
            SELECT p.id                 AS parcela_id,
                   p.credito_debito_id,
                   p.installment_number,
                   p.due_date,
                   p.expected_amount,
                   p.paid_amount,
                   p.status,
                   p.conta_corrente_id,
                   cd.tipo,
                   cd.cliente_fornecedor_name,
                   cd.cliente_fornecedor_fantasy_name,
                   cd.cnpj_cpf,
                   cd.description,
                   cd.document_number,
                   cd.cost_center,
                   cd.issue_date,
                   cd.total_value,
                   cd.coleta_id,
                   cd.user_id
              FROM parcelas p
              JOIN credito_debito cd ON cd.id = p.credito_debito_id
              {where}
             ORDER BY cd.issue_date, cd.id, p.installment_number
        """
        with self._conn_ctx(conn) as c:  # type: ignore[attr-defined]
            return pd.read_sql(sql, c, params=params)


# API pública explícita
__all__ = ["QueriesMixin"]
