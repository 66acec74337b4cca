"""
Pacote Services
===============

Camada de serviços de domínio do motor financeiro/estoque.

Subpacotes e módulos
--------------------
- ledger ........ fachada `LedgerService` + lançamentos/pagamentos (mixins).
- precificacao .. contrato ativo e cálculo Troca/Compra/Doação.
- estoque ....... movimentações de estoque e vínculo com coletas.
- coletas ....... registro/edição de coletas com efeitos financeiros e de estoque.
- relatorios .... totais e listagens (pandas).

Observação:
    - `ledger` é importado primeiro: a fachada importa os demais módulos e
      `relatorios` usa a regra de status de `ledger`.
"""

from __future__ import annotations

from . import ledger
from . import precificacao, estoque, coletas, relatorios

__all__ = ["ledger", "precificacao", "estoque", "coletas", "relatorios"]
