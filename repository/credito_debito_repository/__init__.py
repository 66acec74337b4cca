"""
Módulo Crédito/Débito (Repositório - Facade)
============================================

Expõe a classe `CreditoDebitoRepository`, delegando a lógica real para
mixins organizados por responsabilidade.

Estrutura
---------
- BaseRepo .......... conexão e `_conn_ctx` (vem por ÚLTIMO no MRO).
- LancamentosMixin .. cabeçalho em `credito_debito`.
- ParcelasMixin ..... linhas de `parcelas` (com trava de versão).
- PagamentosMixin ... `pagamentos` (append-only).
- QueriesMixin ...... consultas para listagens/relatórios (pandas).

Regra de MRO
------------
Mixins **não** herdam de BaseRepo nem entre si. Na classe final, `BaseRepo`
deve vir **por último** na lista de bases.
"""

from repository.credito_debito_repository.types import TipoLancamento  # re-export
from repository.credito_debito_repository.base import BaseRepo
from repository.credito_debito_repository.lancamentos import LancamentosMixin
from repository.credito_debito_repository.parcelas import ParcelasMixin
from repository.credito_debito_repository.pagamentos import PagamentosMixin
from repository.credito_debito_repository.queries import QueriesMixin


class CreditoDebitoRepository(
    LancamentosMixin,
    ParcelasMixin,
    PagamentosMixin,
    QueriesMixin,
    BaseRepo,  # <<< Base concreta sempre por último
):
    """Facade que agrega as funcionalidades do repositório de crédito/débito."""
    def __init__(self, db_path, *args, **kwargs):
        # __init__ cooperativo para múltipla herança
        super().__init__(db_path, *args, **kwargs)


# API pública explícita
__all__ = ["CreditoDebitoRepository", "TipoLancamento"]
