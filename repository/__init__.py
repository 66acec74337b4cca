"""
Pacote repository
=================

Este pacote concentra os **repositórios de acesso ao banco de dados** do motor.
Cada repositório encapsula operações de leitura e escrita em tabelas
específicas do SQLite, sempre com SQL parametrizado, e aceita a conexão do
serviço para participar da mesma transação.

Repositórios principais
-----------------------
- CadastrosRepository ........ clientes, contratos, contas correntes, produtos
- ColetasRepository .......... coletas (snapshot de precificação)
- CreditoDebitoRepository .... lançamentos, parcelas e pagamentos (mixins)
- EstoqueRepository .......... movimentações de estoque e saldos
- schema ..................... criação idempotente de tabelas/views/triggers
"""

from repository.cadastros_repository import CadastrosRepository
from repository.coletas_repository import ColetasRepository
from repository.credito_debito_repository import CreditoDebitoRepository
from repository.estoque_repository import EstoqueRepository
from repository.schema import garantir_schema

__all__ = [
    "CadastrosRepository",
    "ColetasRepository",
    "CreditoDebitoRepository",
    "EstoqueRepository",
    "garantir_schema",
]
