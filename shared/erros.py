"""
Módulo Erros (Shared)
=====================

Taxonomia de erros do motor financeiro/estoque.

Cada erro carrega:
- `codigo`: código estável do motivo (ex.: 'ExceedsBalance');
- `categoria`: como o chamador deve reagir;
- mensagem legível (pt-BR).

Categorias
----------
- `entrada` ........ dados inválidos; corrija a entrada (nunca persistido).
- `regra` .......... operação não permitida no estado atual.
- `conflito` ....... perdeu uma disputa de lock; pode repetir uma vez.
- `nao_encontrado` . registro inexistente; sem retry.
"""

from __future__ import annotations

import sqlite3
from typing import Any, Dict, Optional

CATEGORIA_ENTRADA = "entrada"
CATEGORIA_REGRA = "regra"
CATEGORIA_CONFLITO = "conflito"
CATEGORIA_NAO_ENCONTRADO = "nao_encontrado"


class ErroNegocio(Exception):
    """Base de todos os erros reportados pelo motor."""

    codigo = "ErroNegocio"
    categoria = CATEGORIA_REGRA

    def __init__(self, mensagem: str, **detalhes: Any) -> None:
        super().__init__(mensagem)
        self.mensagem = mensagem
        self.detalhes = detalhes

    def como_resposta(self) -> Dict[str, Any]:
        """Resposta estruturada no formato das RPCs (`success=False`)."""
        return {
            "success": False,
            "code": self.codigo,
            "kind": self.categoria,
            "message": self.mensagem,
        }


# ------------------ entrada ------------------

class ValidationError(ErroNegocio, ValueError):
    codigo = "ValidationError"
    categoria = CATEGORIA_ENTRADA


class InvalidAmount(ValidationError):
    codigo = "InvalidAmount"


# ------------------ regra de negócio ------------------

class BusinessRuleViolation(ErroNegocio):
    codigo = "BusinessRuleViolation"
    categoria = CATEGORIA_REGRA


class ScheduleMismatch(BusinessRuleViolation):
    codigo = "ScheduleMismatch"


class ExceedsBalance(BusinessRuleViolation):
    codigo = "ExceedsBalance"


class AlreadySettled(BusinessRuleViolation):
    codigo = "AlreadySettled"


class InstallmentLocked(BusinessRuleViolation):
    codigo = "InstallmentLocked"


class InsufficientStock(BusinessRuleViolation):
    codigo = "InsufficientStock"


class LinkedToCollection(BusinessRuleViolation):
    codigo = "LinkedToCollection"


class EntryHasPayments(BusinessRuleViolation):
    codigo = "EntryHasPayments"


# ------------------ concorrência ------------------

class ConcurrencyConflict(ErroNegocio):
    codigo = "ConcurrencyConflict"
    categoria = CATEGORIA_CONFLITO


# ------------------ não encontrado ------------------

class NotFound(ErroNegocio):
    codigo = "NotFound"
    categoria = CATEGORIA_NAO_ENCONTRADO


class NoActiveContract(NotFound):
    codigo = "NoActiveContract"


def traduzir_erro_sqlite(exc: sqlite3.Error) -> Optional[ErroNegocio]:
    """
    Converte erros do SQLite conhecidos em erros de negócio.

    - 'database is locked' / 'database is busy' -> ConcurrencyConflict
    Retorna None quando o erro não é reconhecido (o chamador re-lança o original).
    """
    msg = str(exc).lower()
    if isinstance(exc, sqlite3.OperationalError) and ("locked" in msg or "busy" in msg):
        return ConcurrencyConflict("Registro em uso por outra operação. Tente novamente.")
    return None


__all__ = [
    "CATEGORIA_ENTRADA",
    "CATEGORIA_REGRA",
    "CATEGORIA_CONFLITO",
    "CATEGORIA_NAO_ENCONTRADO",
    "ErroNegocio",
    "ValidationError",
    "InvalidAmount",
    "BusinessRuleViolation",
    "ScheduleMismatch",
    "ExceedsBalance",
    "AlreadySettled",
    "InstallmentLocked",
    "InsufficientStock",
    "LinkedToCollection",
    "EntryHasPayments",
    "ConcurrencyConflict",
    "NotFound",
    "NoActiveContract",
    "traduzir_erro_sqlite",
]
