# tests/conftest.py
"""
Fixtures compartilhadas dos testes do motor.

Cada teste recebe um banco SQLite novo em `tmp_path`, o `LedgerService`
ligado a ele (auditoria capturada numa lista) e um cadastro mínimo:
um cliente, dois produtos e uma conta corrente.
"""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from services.ledger import LedgerService
from shared.config import Configuracao


@pytest.fixture
def eventos():
    """Eventos de auditoria capturados: lista de (acao, detalhes, usuario)."""
    return []


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "oleo_test.db")


@pytest.fixture
def svc(db_path, eventos):
    def _auditor(acao, detalhes, usuario):
        eventos.append((acao, detalhes, usuario))

    return LedgerService(db_path, auditor=_auditor, config=Configuracao(db_path=db_path, usuario="tester"))


@pytest.fixture
def cadastro(svc):
    repo = svc.cadastros_repo
    cliente_id = repo.inserir_cliente(
        razao_social="Restaurante Bom Sabor Ltda",
        nome_fantasia="Bom Sabor",
        cnpj_cpf="12.345.678/0001-90",
        municipio="Campinas",
        estado="SP",
    )
    oleo_id = repo.inserir_produto(nome="Óleo usado", codigo="OLEO", unidade="kg", tipo="insumo")
    sabao_id = repo.inserir_produto(nome="Sabão em barra", codigo="SABAO", unidade="un", tipo="produto")
    conta_id = repo.inserir_conta_corrente(banco="Banco do Brasil", agencia="0001", conta="12345-6", is_default=True)
    return SimpleNamespace(cliente_id=cliente_id, oleo_id=oleo_id, sabao_id=sabao_id, conta_id=conta_id)


@pytest.fixture
def lancamento_1000(svc, cadastro):
    """Total 1000,00 com entrada de 200,00 e duas parcelas de 400,00."""
    return svc.create_ledger_entry(
        "credito",
        {"nome": "Restaurante Bom Sabor Ltda", "cliente_id": cadastro.cliente_id},
        "1000.00",
        "2025-01-10",
        down_payment="200.00",
        installments=[
            {"installment_number": 1, "due_date": "2025-02-09", "amount": "400.00"},
            {"installment_number": 2, "due_date": "2025-03-11", "amount": "400.00"},
        ],
    )
