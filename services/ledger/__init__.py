"""
Pacote Ledger
=============

Mixins de lançamentos, parcelas e pagamentos, compostos pelo `LedgerService`.
⚠️ Não reexporta mixins individuais para evitar dependências cíclicas.

Uso recomendado (fora deste pacote):
    from services.ledger import LedgerService

    svc = LedgerService("data/oleo_data.db")
    svc.register_payment(parcela_id, "400,00", "2025-02-10", "pix")
"""

# Exponha somente a fachada pública
from .service_ledger import LedgerService

__all__ = ["LedgerService"]
