"""
Pacote Shared
=============

Componentes globais usados em todo o motor.

Submódulos
----------
- db .......... conexão central SQLite (`get_conn`, `conexao`, `transacao`)
- erros ....... taxonomia de erros de negócio
- config ...... configuração via variáveis de ambiente
- auditoria ... registro fire-and-forget na tabela `logs`
- debug_trace . exibição de erros no painel (Streamlit)

Observação
----------
`debug_trace` não é importado aqui para não exigir Streamlit em scripts e testes.
"""

from shared.db import get_conn, conexao, transacao
from shared.erros import (
    ErroNegocio,
    ValidationError,
    InvalidAmount,
    BusinessRuleViolation,
    ScheduleMismatch,
    ExceedsBalance,
    AlreadySettled,
    InstallmentLocked,
    InsufficientStock,
    LinkedToCollection,
    EntryHasPayments,
    ConcurrencyConflict,
    NotFound,
    NoActiveContract,
)
from shared.config import Configuracao, carregar_configuracao, configurar_logging
from shared.auditoria import registrar_acao, auditor_sqlite

__all__ = [
    "get_conn",
    "conexao",
    "transacao",
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
    "Configuracao",
    "carregar_configuracao",
    "configurar_logging",
    "registrar_acao",
    "auditor_sqlite",
]
