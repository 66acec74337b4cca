"""
Módulo Relatórios
=================

Totais e listagens de leitura, sempre **dobrados** sobre as parcelas e as
linhas de movimentação (sem contadores paralelos).

Funcionalidades principais
--------------------------
- `get_ledger_summary`: {total_entries, total_value, total_paid, total_balance}
  das parcelas que atendem aos filtros.
- `listar_lancamentos_detalhado`: as mesmas parcelas, paginadas, com o
  status derivado. A soma da listagem completa é igual ao resumo.
- `resumo_lancamento`: totais e "badge" de um lançamento.
- `get_stock_summary` / `listar_movimentacoes_detalhado`: idem para estoque.

Regras de filtro
----------------
- Período: data de **emissão** do lançamento (`issue_date`), inclusive.
- `status`: status derivado da parcela (inclui 'overdue').
- Parcela cancelada vale só o que já foi recebido nela (`valor_considerado`
  = `paid_amount`, saldo 0). Sem filtro de status ela só aparece se recebeu
  algo; com `status='canceled'` aparecem todas.
- `user_id`: escopo de dono já autorizado pelo chamador.

Dependências
------------
- pandas
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

import pandas as pd

from repository.credito_debito_repository.types import (
    ALLOWED_TIPOS,
    STATUS_CANCELED,
    STATUS_DERIVADOS,
    STATUS_OVERDUE,
    STATUS_PAID,
    STATUS_PARTIALLY_PAID,
    STATUS_PENDING,
)
from services.estoque import DIRECOES
from services.ledger.service_ledger_pagamento import derivar_status
from shared.erros import NotFound, ValidationError
from utils.utils import ZERO, coerce_data, q2, qtd

logger = logging.getLogger(__name__)

ORDENAVEIS_LANCAMENTOS = (
    "due_date",
    "issue_date",
    "installment_number",
    "expected_amount",
    "paid_amount",
    "balance",
    "status",
    "cliente_fornecedor_name",
    "credito_debito_id",
)

ORDENAVEIS_ESTOQUE = ("data", "produto_nome", "quantidade", "tipo", "entrada_saida_id")

__all__ = ["ORDENAVEIS_LANCAMENTOS", "ORDENAVEIS_ESTOQUE", "_RelatoriosLedgerMixin"]


def _data_iso(valor: Any) -> Optional[str]:
    if valor in (None, ""):
        return None
    try:
        return coerce_data(valor).isoformat()
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc


def _paginar(
    df: pd.DataFrame,
    *,
    ordenar_por: str,
    direcao: str,
    permitidas: Tuple[str, ...],
    desempate: str,
    offset: int,
    limit: Optional[int],
) -> pd.DataFrame:
    if ordenar_por not in permitidas:
        raise ValidationError(f"Ordenação inválida: {ordenar_por!r}. Use {list(permitidas)}")
    if str(direcao).lower() not in ("asc", "desc"):
        raise ValidationError("Direção da ordenação deve ser 'asc' ou 'desc'.")
    if int(offset) < 0 or (limit is not None and int(limit) < 0):
        raise ValidationError("offset/limit não podem ser negativos.")

    asc = str(direcao).lower() == "asc"
    colunas = [ordenar_por] if ordenar_por == desempate else [ordenar_por, desempate]
    df = df.sort_values(colunas, ascending=[asc] + [True] * (len(colunas) - 1), kind="mergesort")
    fim = None if limit is None else int(offset) + int(limit)
    return df.iloc[int(offset):fim].reset_index(drop=True)


class _RelatoriosLedgerMixin:
    """Leituras agregadas de lançamentos e estoque."""

    # ------------------------------------------------------------------
    # Lançamentos
    # ------------------------------------------------------------------
    def _parcelas_com_status(
        self,
        *,
        data_inicio: Any = None,
        data_fim: Any = None,
        tipo: Optional[str] = None,
        status: Optional[str] = None,
        busca: Optional[str] = None,
        user_id: Optional[str] = None,
        cost_center: Optional[str] = None,
        hoje: Any = None,
        lancamento_id: Optional[int] = None,
        incluir_canceladas: bool = False,
    ) -> pd.DataFrame:
        """Fonte única de totais e listagens: parcelas filtradas + status derivado."""
        if tipo is not None and tipo not in ALLOWED_TIPOS:
            raise ValidationError(f"Tipo inválido: {tipo!r}. Use {sorted(ALLOWED_TIPOS)}")
        if status is not None and status not in STATUS_DERIVADOS:
            raise ValidationError(f"Status inválido: {status!r}. Use {sorted(STATUS_DERIVADOS)}")

        df = self.cd_repo.parcelas_filtradas(
            data_inicio=_data_iso(data_inicio),
            data_fim=_data_iso(data_fim),
            tipo=tipo,
            busca=busca,
            user_id=user_id,
            cost_center=cost_center,
            lancamento_id=lancamento_id,
        )
        dia = coerce_data(hoje)
        df["status"] = [
            derivar_status(e, p, d, dia, cancelada=(s == STATUS_CANCELED))
            for e, p, d, s in zip(df["expected_amount"], df["paid_amount"], df["due_date"], df["status"])
        ]
        # cancelada: só o recebido continua valendo
        df["valor_considerado"] = [
            float(q2(p)) if s == STATUS_CANCELED else float(q2(e))
            for e, p, s in zip(df["expected_amount"], df["paid_amount"], df["status"])
        ]
        df["balance"] = [float(q2(v) - q2(p)) for v, p in zip(df["valor_considerado"], df["paid_amount"])]

        if status is not None:
            df = df[df["status"] == status]
        elif not incluir_canceladas:
            df = df[(df["status"] != STATUS_CANCELED) | (df["paid_amount"] > 0)]
        return df.reset_index(drop=True)

    @staticmethod
    def _somar(df: pd.DataFrame) -> Dict[str, Any]:
        total_value = sum((q2(v) for v in df["valor_considerado"]), ZERO)
        total_paid = sum((q2(v) for v in df["paid_amount"]), ZERO)
        return {
            "total_entries": int(df["credito_debito_id"].nunique()),
            "total_value": total_value,
            "total_paid": total_paid,
            "total_balance": q2(total_value - total_paid),
        }

    def get_ledger_summary(
        self,
        data_inicio: Any = None,
        data_fim: Any = None,
        tipo: Optional[str] = None,
        status: Optional[str] = None,
        busca: Optional[str] = None,
        *,
        user_id: Optional[str] = None,
        cost_center: Optional[str] = None,
        hoje: Any = None,
    ) -> Dict[str, Any]:
        """Quantidade de lançamentos e totais (Decimal) das parcelas que atendem aos filtros."""
        df = self._parcelas_com_status(
            data_inicio=data_inicio, data_fim=data_fim, tipo=tipo, status=status,
            busca=busca, user_id=user_id, cost_center=cost_center, hoje=hoje,
        )
        return self._somar(df)

    def listar_lancamentos_detalhado(
        self,
        data_inicio: Any = None,
        data_fim: Any = None,
        tipo: Optional[str] = None,
        status: Optional[str] = None,
        busca: Optional[str] = None,
        *,
        user_id: Optional[str] = None,
        cost_center: Optional[str] = None,
        hoje: Any = None,
        offset: int = 0,
        limit: Optional[int] = 50,
        ordenar_por: str = "due_date",
        direcao: str = "asc",
    ) -> Tuple[pd.DataFrame, int]:
        """
        Parcelas paginadas com status derivado.

        Retorno
        -------
        (pd.DataFrame, int)
            Página pedida e a contagem total antes da paginação.
        """
        df = self._parcelas_com_status(
            data_inicio=data_inicio, data_fim=data_fim, tipo=tipo, status=status,
            busca=busca, user_id=user_id, cost_center=cost_center, hoje=hoje,
        )
        pagina = _paginar(
            df, ordenar_por=ordenar_por, direcao=direcao, permitidas=ORDENAVEIS_LANCAMENTOS,
            desempate="parcela_id", offset=offset, limit=limit,
        )
        return pagina, int(len(df))

    def resumo_lancamento(self, lancamento_id: int, *, hoje: Any = None) -> Dict[str, Any]:
        """
        Totais do lançamento e o status de exibição agregado.

        `total_value` é o total gravado no lançamento. O que foi cancelado
        sem receber fica em `total_cancelado`, de modo que
        total_value = total_paid + total_balance + total_cancelado.
        """
        lanc = self.cd_repo.obter_lancamento(None, int(lancamento_id))
        if lanc is None:
            raise NotFound(f"Lançamento {lancamento_id} não encontrado.", lancamento_id=lancamento_id)
        df = self._parcelas_com_status(lancamento_id=int(lancamento_id), hoje=hoje, incluir_canceladas=True)
        canceladas = df[df["status"] == STATUS_CANCELED]
        ativas = df[df["status"] != STATUS_CANCELED]
        totais = self._somar(df)
        pago_ativas = sum((q2(v) for v in ativas["paid_amount"]), ZERO)

        if ativas.empty:
            badge = STATUS_CANCELED
        elif (ativas["status"] == STATUS_PAID).all():
            badge = STATUS_PAID
        elif (ativas["status"] == STATUS_OVERDUE).any():
            badge = STATUS_OVERDUE
        elif pago_ativas > 0:
            badge = STATUS_PARTIALLY_PAID
        else:
            badge = STATUS_PENDING

        return {
            "id": int(lancamento_id),
            "total_value": q2(lanc["total_value"]),
            "total_paid": totais["total_paid"],
            "total_balance": totais["total_balance"],
            "total_cancelado": sum((q2(e) - q2(p) for e, p in zip(canceladas["expected_amount"], canceladas["paid_amount"])), ZERO),
            "status": badge,
            "parcelas": int(len(df)),
            "parcelas_pagas": int((df["status"] == STATUS_PAID).sum()),
            "parcelas_canceladas": int(len(canceladas)),
        }

    # ------------------------------------------------------------------
    # Estoque
    # ------------------------------------------------------------------
    def _itens_estoque(
        self,
        data_inicio: Any = None,
        data_fim: Any = None,
        tipo: Optional[str] = None,
        busca_produto: Optional[str] = None,
    ) -> pd.DataFrame:
        if tipo is not None and tipo not in DIRECOES:
            raise ValidationError(f"Tipo inválido: {tipo!r}. Use {list(DIRECOES)}")
        return self.estoque_repo.itens_filtrados(
            data_inicio=_data_iso(data_inicio),
            data_fim=_data_iso(data_fim),
            tipo=tipo,
            busca_produto=busca_produto,
        )

    def get_stock_summary(
        self,
        data_inicio: Any = None,
        data_fim: Any = None,
        tipo: Optional[str] = None,
        busca_produto: Optional[str] = None,
    ) -> Dict[str, Any]:
        """{total_movements, total_in, total_out} das linhas que atendem aos filtros."""
        df = self._itens_estoque(data_inicio, data_fim, tipo, busca_produto)
        total_in = sum((qtd(q) for q, t in zip(df["quantidade"], df["tipo"]) if t == "entrada"), qtd(0))
        total_out = sum((qtd(q) for q, t in zip(df["quantidade"], df["tipo"]) if t == "saida"), qtd(0))
        return {
            "total_movements": int(df["entrada_saida_id"].nunique()),
            "total_in": total_in,
            "total_out": total_out,
        }

    def listar_movimentacoes_detalhado(
        self,
        data_inicio: Any = None,
        data_fim: Any = None,
        tipo: Optional[str] = None,
        busca_produto: Optional[str] = None,
        *,
        offset: int = 0,
        limit: Optional[int] = 50,
        ordenar_por: str = "data",
        direcao: str = "desc",
    ) -> Tuple[pd.DataFrame, int]:
        df = self._itens_estoque(data_inicio, data_fim, tipo, busca_produto).reset_index(drop=True)
        pagina = _paginar(
            df, ordenar_por=ordenar_por, direcao=direcao, permitidas=ORDENAVEIS_ESTOQUE,
            desempate="entrada_saida_id", offset=offset, limit=limit,
        )
        return pagina, int(len(df))
