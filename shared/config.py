"""
Módulo Config (Shared)
======================

Configuração do motor lida de variáveis de ambiente.

Variáveis
---------
- OLEO_DB_PATH ............... caminho do SQLite (padrão: data/oleo_data.db)
- OLEO_LOG_LEVEL ............. nível de log (padrão: INFO)
- OLEO_USUARIO ............... usuário padrão para scripts (padrão: sistema)
- OLEO_FATOR_PADRAO .......... fator de troca do lançamento manual (padrão: 6)
- OLEO_TOLERANCIA_PAGAMENTO .. tolerância de conciliação em R$ (padrão: 0.01)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from decimal import Decimal
from typing import Mapping, Optional

DB_PATH_PADRAO = os.path.join("data", "oleo_data.db")
FATOR_TROCA_PADRAO = 6
TOLERANCIA_PAGAMENTO_PADRAO = Decimal("0.01")


@dataclass(frozen=True)
class Configuracao:
    db_path: str = DB_PATH_PADRAO
    log_level: str = "INFO"
    usuario: str = "sistema"
    fator_padrao: int = FATOR_TROCA_PADRAO
    tolerancia_pagamento: Decimal = TOLERANCIA_PAGAMENTO_PADRAO


def carregar_configuracao(env: Optional[Mapping[str, str]] = None) -> Configuracao:
    """Monta a `Configuracao` a partir do ambiente (ou de um mapping informado)."""
    env = os.environ if env is None else env

    fator = int(env.get("OLEO_FATOR_PADRAO", FATOR_TROCA_PADRAO))
    if fator <= 0:
        raise ValueError("OLEO_FATOR_PADRAO deve ser inteiro positivo.")

    tolerancia = Decimal(str(env.get("OLEO_TOLERANCIA_PAGAMENTO", TOLERANCIA_PAGAMENTO_PADRAO)))
    if tolerancia < 0:
        raise ValueError("OLEO_TOLERANCIA_PAGAMENTO não pode ser negativa.")

    return Configuracao(
        db_path=env.get("OLEO_DB_PATH", "").strip() or DB_PATH_PADRAO,
        log_level=(env.get("OLEO_LOG_LEVEL", "").strip() or "INFO").upper(),
        usuario=env.get("OLEO_USUARIO", "").strip() or "sistema",
        fator_padrao=fator,
        tolerancia_pagamento=tolerancia,
    )


def configurar_logging(nivel: str = "INFO") -> None:
    """Instala um handler básico no logger raiz (idempotente)."""
    logging.basicConfig(
        level=getattr(logging, str(nivel).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


__all__ = [
    "DB_PATH_PADRAO",
    "FATOR_TROCA_PADRAO",
    "TOLERANCIA_PAGAMENTO_PADRAO",
    "Configuracao",
    "carregar_configuracao",
    "configurar_logging",
]
