# services/ledger/service_ledger_pagamento.py
"""
Pagamentos de parcelas.

Máquina de estados da parcela:
    pending -> partially_paid -> paid
    qualquer estado -> canceled (ação explícita, terminal)
    'overdue' é derivado na leitura: vencimento < hoje e pago < esperado.

Regras de `registrar_pagamento` (nesta ordem):
1. parcela `paid` ou `canceled` -> AlreadySettled
2. valor <= 0 -> InvalidAmount; forma desconhecida -> ValidationError
3. valor > saldo + tolerância -> ExceedsBalance
4. grava o pagamento e soma em `paid_amount` (sobra dentro da tolerância é
   aparada para o saldo: pagamento final de conciliação)
5. status `paid` se pago == esperado (2 casas), senão `partially_paid`

Os passos 3 a 5 rodam na mesma transação `BEGIN IMMEDIATE`, com trava
otimista por `versao` na linha da parcela.

Dependências:
- self.cd_repo (CreditoDebitoRepository)
- self.cadastros_repo (contas correntes)
- self.tolerancia (Decimal)
- self._executar_mutacao (mixin de infra)
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Optional

from repository.credito_debito_repository.types import (
    METODOS_PAGAMENTO,
    STATUS_CANCELED,
    STATUS_OVERDUE,
    STATUS_PAID,
    STATUS_PARTIALLY_PAID,
    STATUS_PENDING,
)
from shared.config import TOLERANCIA_PAGAMENTO_PADRAO
from shared.erros import (
    AlreadySettled,
    ConcurrencyConflict,
    ExceedsBalance,
    InvalidAmount,
    NotFound,
    ValidationError,
)
from utils.utils import coerce_data, parse_moeda, q2

logger = logging.getLogger(__name__)

__all__ = ["derivar_status", "status_apos_pagamento", "_PagamentoLedgerMixin"]


def derivar_status(
    expected: Any,
    paid: Any,
    due_date: Any,
    hoje: Any = None,
    cancelada: bool = False,
) -> str:
    """
    Status de exibição da parcela. Função pura.

    Precedência: canceled > paid > overdue > partially_paid > pending.
    """
    if cancelada:
        return STATUS_CANCELED
    esperado, pago = q2(expected), q2(paid)
    if pago >= esperado:
        return STATUS_PAID
    if coerce_data(due_date) < coerce_data(hoje):
        return STATUS_OVERDUE
    if pago > 0:
        return STATUS_PARTIALLY_PAID
    return STATUS_PENDING


def status_apos_pagamento(expected: Any, paid: Any) -> str:
    """Status gravado depois de um pagamento (nunca 'overdue')."""
    return STATUS_PAID if q2(paid) == q2(expected) else STATUS_PARTIALLY_PAID


class _PagamentoLedgerMixin:
    """Registro de pagamentos e cancelamento de parcelas."""

    def _registrar_pagamento_tx(
        self,
        conn: Any,
        *,
        parcela_id: int,
        amount: Any,
        payment_date: Any,
        method: str,
        conta_corrente_id: Optional[int] = None,
        notes: Optional[str] = None,
        usuario: Optional[str] = None,
    ) -> Dict[str, Any]:
        row = self.cd_repo.obter_parcela(conn, int(parcela_id))
        if row is None:
            raise NotFound(f"Parcela {parcela_id} não encontrada.", parcela_id=parcela_id)

        if row["status"] in (STATUS_PAID, STATUS_CANCELED):
            raise AlreadySettled(
                f"Parcela {parcela_id} está '{row['status']}' e não aceita pagamentos.",
                parcela_id=parcela_id,
            )

        try:
            valor = parse_moeda(amount)
        except ValueError as exc:
            raise InvalidAmount(f"Valor de pagamento inválido: {amount!r}") from exc
        if valor <= 0:
            raise InvalidAmount("O valor do pagamento deve ser positivo.")

        if method not in METODOS_PAGAMENTO:
            raise ValidationError(f"Forma de pagamento inválida: {method!r}. Use {sorted(METODOS_PAGAMENTO)}")
        try:
            data_pag = coerce_data(payment_date)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        if conta_corrente_id is not None and self.cadastros_repo.obter_conta_corrente(conn, int(conta_corrente_id)) is None:
            raise NotFound(f"Conta corrente {conta_corrente_id} não encontrada.", conta_corrente_id=conta_corrente_id)

        esperado, pago = q2(row["expected_amount"]), q2(row["paid_amount"])
        saldo = esperado - pago
        tolerancia = Decimal(getattr(self, "tolerancia", TOLERANCIA_PAGAMENTO_PADRAO))
        if valor > saldo + tolerancia:
            raise ExceedsBalance(
                f"Pagamento (R$ {valor:.2f}) maior que o saldo da parcela (R$ {saldo:.2f}).",
                saldo=str(saldo),
            )
        aplicado = min(valor, saldo)
        novo_pago = q2(pago + aplicado)
        novo_status = status_apos_pagamento(esperado, novo_pago)

        pagamento_id = self.cd_repo.inserir_pagamento(
            conn,
            parcela_id=int(parcela_id),
            valor=aplicado,
            data_pagamento=data_pag.isoformat(),
            metodo=method,
            conta_corrente_id=conta_corrente_id,
            notes=notes,
            user_id=self._usuario(usuario),
        )
        gravou = self.cd_repo.aplicar_pagamento_parcela(
            conn,
            int(parcela_id),
            novo_pago=novo_pago,
            novo_status=novo_status,
            versao_esperada=int(row["versao"]),
            conta_corrente_id=conta_corrente_id,
        )
        if not gravou:
            raise ConcurrencyConflict("Parcela alterada por outra operação. Tente novamente.", parcela_id=parcela_id)

        logger.info(
            "Pagamento %s na parcela %s: valor=%s pago=%s/%s status=%s",
            pagamento_id, parcela_id, aplicado, novo_pago, esperado, novo_status,
        )
        return {
            "pagamento_id": pagamento_id,
            "parcela_id": int(parcela_id),
            "lancamento_id": int(row["credito_debito_id"]),
            "valor_aplicado": aplicado,
            "paid_amount": novo_pago,
            "restante": q2(esperado - novo_pago),
            "status": novo_status,
        }

    def registrar_pagamento(
        self,
        parcela_id: int,
        amount: Any,
        payment_date: Any = None,
        method: str = "pix",
        conta_corrente_id: Optional[int] = None,
        notes: Optional[str] = None,
        *,
        usuario: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Registra um pagamento na parcela de forma atômica.

        Retorna:
            dict com pagamento_id, parcela_id, lancamento_id, valor_aplicado,
            paid_amount, restante e status.

        Lança:
            AlreadySettled, InvalidAmount, ValidationError, ExceedsBalance,
            NotFound, ConcurrencyConflict (já repetido uma vez).
        """
        return self._executar_mutacao(
            "register_payment",
            lambda conn: self._registrar_pagamento_tx(
                conn,
                parcela_id=parcela_id,
                amount=amount,
                payment_date=payment_date,
                method=method,
                conta_corrente_id=conta_corrente_id,
                notes=notes,
                usuario=usuario,
            ),
            detalhes={"parcela_id": parcela_id, "amount": str(amount), "method": method},
            usuario=usuario,
            resumo=lambda r: {"pagamento_id": r["pagamento_id"], "status": r["status"]},
        )

    def _cancelar_parcela_tx(self, conn: Any, parcela_id: int) -> Dict[str, Any]:
        row = self.cd_repo.obter_parcela(conn, int(parcela_id))
        if row is None:
            raise NotFound(f"Parcela {parcela_id} não encontrada.", parcela_id=parcela_id)
        if row["status"] in (STATUS_PAID, STATUS_CANCELED):
            raise AlreadySettled(f"Parcela {parcela_id} já está '{row['status']}'.", parcela_id=parcela_id)
        if not self.cd_repo.cancelar_parcela(conn, int(parcela_id), versao_esperada=int(row["versao"])):
            raise ConcurrencyConflict("Parcela alterada por outra operação. Tente novamente.", parcela_id=parcela_id)
        logger.info("Parcela %s cancelada.", parcela_id)
        return {"parcela_id": int(parcela_id), "status": STATUS_CANCELED}

    def cancelar_parcela(self, parcela_id: int, *, usuario: Optional[str] = None) -> Dict[str, Any]:
        """Cancela a parcela (terminal). Pagamentos futuros: AlreadySettled."""
        return self._executar_mutacao(
            "cancel_parcela",
            lambda conn: self._cancelar_parcela_tx(conn, parcela_id),
            detalhes={"parcela_id": parcela_id},
            usuario=usuario,
        )
