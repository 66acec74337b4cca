"""
Módulo Tipos (Crédito/Débito)
=============================

Tipos e constantes compartilhados entre os mixins do repositório
`credito_debito_repository`.

Constantes
----------
- `TipoLancamento`: 'credito' (a receber) | 'debito' (a pagar).
- `STATUS_ARMAZENADOS`: status gravados em `parcelas.status`.
  'overdue' nunca é gravado: é derivado na leitura.
- `METODOS_PAGAMENTO`: formas aceitas em `pagamentos.payment_method`.
"""

from typing import Literal

TipoLancamento = Literal["credito", "debito"]

ALLOWED_TIPOS = {"credito", "debito"}

STATUS_PENDING = "pending"
STATUS_PARTIALLY_PAID = "partially_paid"
STATUS_PAID = "paid"
STATUS_OVERDUE = "overdue"
STATUS_CANCELED = "canceled"

STATUS_ARMAZENADOS = {STATUS_PENDING, STATUS_PARTIALLY_PAID, STATUS_PAID, STATUS_CANCELED}
STATUS_DERIVADOS = STATUS_ARMAZENADOS | {STATUS_OVERDUE}

METODOS_PAGAMENTO = {"pix", "cash", "bank_transfer", "credit_card", "debit_card"}

# Colunas do cabeçalho que podem ser alteradas após a criação
CAMPOS_CABECALHO = (
    "cliente_id",
    "cliente_fornecedor_name",
    "cliente_fornecedor_fantasy_name",
    "cnpj_cpf",
    "description",
    "document_number",
    "model",
    "payment_method",
    "cost_center",
    "notes",
    "issue_date",
    "total_value",
    "discount",
    "interest",
)


# API pública explícita
__all__ = [
    "TipoLancamento",
    "ALLOWED_TIPOS",
    "STATUS_PENDING",
    "STATUS_PARTIALLY_PAID",
    "STATUS_PAID",
    "STATUS_OVERDUE",
    "STATUS_CANCELED",
    "STATUS_ARMAZENADOS",
    "STATUS_DERIVADOS",
    "METODOS_PAGAMENTO",
    "CAMPOS_CABECALHO",
]
