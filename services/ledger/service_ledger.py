# services/ledger/service_ledger.py
"""
LedgerService
=============

Fachada do motor que compõe os mixins e delega as operações:

- Precificação (contrato ativo) via `_PrecificacaoLedgerMixin`
- Lançamentos e agenda de parcelas via `_LancamentoLedgerMixin`
- Pagamentos/cancelamento via `_PagamentoLedgerMixin`
- Estoque (manual e vinculado a coleta) via `_EstoqueLedgerMixin`
- Coletas via `_ColetasLedgerMixin`
- Totais e listagens via `_RelatoriosLedgerMixin`
- Transação/retry/auditoria via `_InfraLedgerMixin`

Notas:
- Os nomes em inglês (`resolve_active_contract`, `create_ledger_entry`,
  `register_payment`, `link_stock_movement`) são a fronteira no formato de
  RPC; `register_payment` devolve `{success, message, payment_id}` e nunca
  deixa escapar erro de persistência cru.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Dict, Iterable, Optional, Sequence

from repository.cadastros_repository import CadastrosRepository
from repository.coletas_repository import ColetasRepository
from repository.credito_debito_repository import CreditoDebitoRepository
from repository.estoque_repository import EstoqueRepository
from repository.schema import garantir_schema
from services.coletas import _ColetasLedgerMixin
from services.estoque import _EstoqueLedgerMixin
from services.ledger.service_ledger_infra import _InfraLedgerMixin
from services.ledger.service_ledger_lancamento import LancamentoCriado, _LancamentoLedgerMixin
from services.ledger.service_ledger_pagamento import _PagamentoLedgerMixin
from services.precificacao import (
    Contrato,
    PrecificacaoManual,
    _PrecificacaoLedgerMixin,
    precificacao_manual,
)
from services.relatorios import _RelatoriosLedgerMixin
from shared.auditoria import Auditor, auditor_sqlite
from shared.config import Configuracao, carregar_configuracao
from shared.erros import ErroNegocio
from utils.utils import resolve_db_path

logger = logging.getLogger(__name__)

__all__ = ["LedgerService"]


# =====================================================================
# Serviço Agregador
# =====================================================================
class LedgerService(
    _ColetasLedgerMixin,
    _LancamentoLedgerMixin,
    _PagamentoLedgerMixin,
    _EstoqueLedgerMixin,
    _PrecificacaoLedgerMixin,
    _RelatoriosLedgerMixin,
    _InfraLedgerMixin,
):
    """
    Fachada central do motor, compondo mixins específicos.

    Parâmetros
    ----------
    db_path : str | PathLike | objeto com `db_path`
        Caminho do banco SQLite.
    auditor : callable (acao, detalhes, usuario), opcional
        Coletor de eventos de auditoria. Padrão: tabela `logs` do mesmo banco.
    config : Configuracao, opcional
        Padrão: `carregar_configuracao()` (variáveis de ambiente).
    criar_schema : bool
        Cria tabelas/views/triggers ausentes ao instanciar.
    """

    def __init__(
        self,
        db_path: Any,
        *,
        auditor: Optional[Auditor] = None,
        config: Optional[Configuracao] = None,
        criar_schema: bool = True,
    ) -> None:
        self.db_path = resolve_db_path(db_path)
        self.config = config or carregar_configuracao()
        self.tolerancia = self.config.tolerancia_pagamento
        self.usuario_padrao = self.config.usuario
        self.auditor: Optional[Auditor] = auditor if auditor is not None else auditor_sqlite(self.db_path)

        # Repositórios aguardados pelos mixins
        self.cadastros_repo = CadastrosRepository(self.db_path)
        self.coletas_repo = ColetasRepository(self.db_path)
        self.cd_repo = CreditoDebitoRepository(self.db_path)
        self.estoque_repo = EstoqueRepository(self.db_path)

        if criar_schema:
            garantir_schema(self.db_path)

    def __repr__(self) -> str:  # pragma: no cover
        return f"<LedgerService db_path={self.db_path!r}>"

    def manual_padrao(self) -> PrecificacaoManual:
        """Fallback manual com o fator configurado (`OLEO_FATOR_PADRAO`)."""
        return precificacao_manual(fator=self.config.fator_padrao)

    # ------------------ Fronteira (formato RPC) ------------------
    def resolve_active_contract(self, client_id: int, contract_id: Optional[int] = None) -> Contrato:
        return self.resolver_contrato_ativo(client_id, contrato_id=contract_id)

    def create_ledger_entry(
        self,
        direction: str,
        counterparty: Any,
        total_value: Any,
        issue_date: Any,
        down_payment: Any = 0,
        installments: Optional[Sequence[Any]] = None,
        *,
        single_due_date: Any = None,
        user_id: Optional[str] = None,
        **extras: Any,
    ) -> LancamentoCriado:
        return self.criar_lancamento(
            tipo=direction,
            contraparte=counterparty,
            total_value=total_value,
            issue_date=issue_date,
            down_payment=down_payment,
            installments=installments,
            single_due_date=single_due_date,
            usuario=user_id,
            **extras,
        )

    def register_payment(
        self,
        installment_id: int,
        amount: Any,
        date: Any,
        method: str,
        account_id: Optional[int] = None,
        notes: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Registra o pagamento e devolve um resultado estruturado.

        Sucesso: {"success": True, "message", "payment_id", "status", "restante"}
        Falha:   {"success": False, "code", "kind", "message", "payment_id": None}
        """
        try:
            r = self.registrar_pagamento(
                installment_id, amount, date, method, account_id, notes, usuario=user_id
            )
        except ErroNegocio as exc:
            return {**exc.como_resposta(), "payment_id": None}
        except sqlite3.Error as exc:
            logger.error("register_payment: erro de persistência: %s", exc)
            return {
                "success": False,
                "code": "PersistenceError",
                "kind": "conflito",
                "message": "Não foi possível gravar o pagamento. Tente novamente.",
                "payment_id": None,
            }
        return {
            "success": True,
            "message": "Pagamento registrado com sucesso.",
            "payment_id": r["pagamento_id"],
            "status": r["status"],
            "restante": r["restante"],
        }

    def link_stock_movement(
        self,
        collection_id: int,
        direction: str,
        lines: Iterable[Any],
        user_id: Optional[str] = None,
    ) -> Optional[Dict[str, Any]]:
        """Upsert por coleta. Retorna a movimentação (com linhas) ou None se removida."""
        r = self.vincular_movimentacao_coleta(collection_id, direction, lines, usuario=user_id)
        if r["acao"] in ("removida", "nenhuma"):
            return None
        return self.obter_movimentacao(r["id"])
