# tests/test_lancamento.py
"""Criação, edição e exclusão de lançamentos com agenda de parcelas."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from services.ledger.service_ledger_lancamento import montar_agenda, sugerir_parcelas
from shared.erros import (
    EntryHasPayments,
    InstallmentLocked,
    InvalidAmount,
    LinkedToCollection,
    NotFound,
    ScheduleMismatch,
    ValidationError,
)
from shared.db import conexao


def _contar(db_path, tabela):
    with conexao(db_path) as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {tabela}").fetchone()[0]


# ------------------ montagem da agenda ------------------

def test_agenda_com_entrada_gera_parcela_zero_na_emissao():
    agenda = montar_agenda(
        "1.000,00", "2025-01-10", down_payment="200,00",
        installments=[
            {"numero": 2, "vencimento": "2025-03-11", "valor": "400,00"},
            {"numero": 1, "vencimento": "2025-02-09", "valor": "400,00"},
        ],
    )
    assert [p.numero for p in agenda] == [0, 1, 2]
    assert agenda[0].vencimento == date(2025, 1, 10)
    assert agenda[0].valor == Decimal("200.00")
    assert sum(p.valor for p in agenda) == Decimal("1000.00")


def test_agenda_sem_entrada_e_sem_parcelas_vira_parcela_unica():
    agenda = montar_agenda(150, "2025-01-10", single_due_date="2025-02-10")
    assert len(agenda) == 1
    assert (agenda[0].numero, agenda[0].vencimento, agenda[0].valor) == (1, date(2025, 2, 10), Decimal("150.00"))


def test_parcela_unica_exige_vencimento():
    with pytest.raises(ValidationError):
        montar_agenda(150, "2025-01-10")


def test_soma_diferente_do_total_levanta_schedule_mismatch():
    with pytest.raises(ScheduleMismatch):
        montar_agenda(
            1000, "2025-01-10", down_payment=200,
            installments=[{"due_date": "2025-02-09", "amount": "400.00"}, {"due_date": "2025-03-11", "amount": "399.99"}],
        )


@pytest.mark.parametrize(
    "total, entrada, parcelas",
    [
        (0, 0, None),
        (-10, 0, None),
        (100, -1, None),
        (100, 100, None),
        (100, 0, [{"due_date": "2025-02-01", "amount": 0}, {"due_date": "2025-03-01", "amount": 100}]),
        ("abc", 0, None),
    ],
)
def test_valores_invalidos_levantam_invalid_amount(total, entrada, parcelas):
    with pytest.raises(InvalidAmount):
        montar_agenda(total, "2025-01-10", down_payment=entrada, installments=parcelas, single_due_date="2025-02-01")


def test_numeracao_com_buraco_e_rejeitada():
    with pytest.raises(ValidationError):
        montar_agenda(
            100, "2025-01-10",
            installments=[{"numero": 1, "due_date": "2025-02-01", "amount": 50},
                          {"numero": 3, "due_date": "2025-03-01", "amount": 50}],
        )


def test_sugerir_parcelas_joga_centavos_nas_ultimas():
    parcelas = sugerir_parcelas("100.00", 3, "2025-01-31")
    assert [p.valor for p in parcelas] == [Decimal("33.33"), Decimal("33.33"), Decimal("33.34")]
    assert [p.vencimento for p in parcelas] == [date(2025, 2, 28), date(2025, 3, 31), date(2025, 4, 30)]
    assert sum(p.valor for p in parcelas) == Decimal("100.00")


def test_sugerir_parcelas_pode_empurrar_para_dia_util():
    # 2025-06-01 é domingo
    parcelas = sugerir_parcelas("50.00", 1, "2025-05-01", ajustar_dia_util=True)
    assert parcelas[0].vencimento == date(2025, 6, 2)


# ------------------ criação ------------------

def test_create_ledger_entry_grava_cabecalho_e_parcelas(svc, lancamento_1000):
    assert lancamento_1000.total_value == Decimal("1000.00")
    assert lancamento_1000.down_payment == Decimal("200.00")
    assert len(lancamento_1000.parcela_ids) == 3

    parcelas = svc.cd_repo.listar_parcelas(None, lancamento_1000.id)
    assert [(r["installment_number"], r["expected_amount"], r["status"]) for r in parcelas] == [
        (0, 200.0, "pending"),
        (1, 400.0, "pending"),
        (2, 400.0, "pending"),
    ]


def test_agenda_invalida_nao_grava_nada(svc, cadastro, db_path, eventos):
    with pytest.raises(ScheduleMismatch):
        svc.create_ledger_entry(
            "debito", "Fornecedor X", 300, "2025-01-10",
            installments=[{"due_date": "2025-02-10", "amount": 100}, {"due_date": "2025-03-10", "amount": 100}],
        )
    assert _contar(db_path, "credito_debito") == 0
    assert _contar(db_path, "parcelas") == 0
    assert eventos[-1][0] == "create_lancamento_failed"
    assert eventos[-1][1]["code"] == "ScheduleMismatch"


def test_tipo_e_contraparte_sao_validados(svc):
    with pytest.raises(ValidationError):
        svc.create_ledger_entry("transferencia", "Fulano", 10, "2025-01-10", single_due_date="2025-01-10")
    with pytest.raises(ValidationError):
        svc.create_ledger_entry("credito", "  ", 10, "2025-01-10", single_due_date="2025-01-10")
    with pytest.raises(NotFound):
        svc.create_ledger_entry("credito", {"nome": "X", "cliente_id": 999}, 10, "2025-01-10",
                                single_due_date="2025-01-10")


def test_como_dict_lista_parcelas_com_ids(lancamento_1000):
    d = lancamento_1000.como_dict()
    assert [p["installment_number"] for p in d["installments"]] == [0, 1, 2]
    assert d["installments"][1]["id"] == lancamento_1000.parcela_ids[1]


# ------------------ edição ------------------

def test_editar_cabecalho_nao_mexe_nas_parcelas(svc, lancamento_1000):
    r = svc.editar_lancamento(lancamento_1000.id, description="Venda de sabão", cost_center="vendas")
    assert (r["inseridas"], r["atualizadas"], r["removidas"]) == (0, 0, 0)
    row = svc.cd_repo.obter_lancamento(None, lancamento_1000.id)
    assert row["description"] == "Venda de sabão"
    assert row["cost_center"] == "vendas"


def test_reprogramar_substitui_parcelas_sem_pagamento(svc, lancamento_1000):
    r = svc.editar_lancamento(
        lancamento_1000.id,
        installments=[
            {"installment_number": 1, "due_date": "2025-02-09", "amount": "200.00"},
            {"installment_number": 2, "due_date": "2025-03-11", "amount": "300.00"},
            {"installment_number": 3, "due_date": "2025-04-10", "amount": "300.00"},
        ],
    )
    assert r["inseridas"] == 1
    assert r["atualizadas"] == 2
    parcelas = svc.cd_repo.listar_parcelas(None, lancamento_1000.id)
    assert [r["installment_number"] for r in parcelas] == [0, 1, 2, 3]
    assert sum(Decimal(str(r["expected_amount"])) for r in parcelas) == Decimal("1000.00")


def test_reprogramar_parcela_paga_levanta_installment_locked(svc, lancamento_1000):
    svc.registrar_pagamento(lancamento_1000.parcela_ids[1], "400.00", "2025-02-09", "pix")
    with pytest.raises(InstallmentLocked):
        svc.editar_lancamento(
            lancamento_1000.id,
            installments=[
                {"installment_number": 1, "due_date": "2025-02-20", "amount": "400.00"},
                {"installment_number": 2, "due_date": "2025-03-11", "amount": "400.00"},
            ],
        )


def test_reprogramar_preserva_parcela_paga_identica(svc, lancamento_1000):
    svc.registrar_pagamento(lancamento_1000.parcela_ids[1], "400.00", "2025-02-09", "pix")
    svc.editar_lancamento(
        lancamento_1000.id,
        installments=[
            {"installment_number": 1, "due_date": "2025-02-09", "amount": "400.00"},
            {"installment_number": 2, "due_date": "2025-03-11", "amount": "200.00"},
            {"installment_number": 3, "due_date": "2025-04-10", "amount": "200.00"},
        ],
    )
    paga = svc.cd_repo.obter_parcela(None, lancamento_1000.parcela_ids[1])
    assert paga["status"] == "paid"
    assert paga["paid_amount"] == 400.0


def test_excluir_lancamento_sem_pagamentos(svc, lancamento_1000, db_path):
    svc.excluir_lancamento(lancamento_1000.id)
    assert svc.cd_repo.obter_lancamento(None, lancamento_1000.id) is None
    assert _contar(db_path, "parcelas") == 0


def test_excluir_lancamento_com_pagamento_levanta_entry_has_payments(svc, lancamento_1000):
    svc.registrar_pagamento(lancamento_1000.parcela_ids[0], "50.00", "2025-01-10", "cash")
    with pytest.raises(EntryHasPayments):
        svc.excluir_lancamento(lancamento_1000.id)
    assert svc.cd_repo.obter_lancamento(None, lancamento_1000.id) is not None


def test_lancamento_de_coleta_so_muda_pela_coleta(svc, cadastro):
    svc.cadastros_repo.inserir_contrato(
        cliente_id=cadastro.cliente_id, tipo_coleta="Compra", valor_coleta=1.2, data_inicio="2024-01-01",
    )
    r = svc.registrar_coleta(cadastro.cliente_id, "2025-01-15", 50)
    with pytest.raises(LinkedToCollection):
        svc.editar_lancamento(r["lancamento_id"], description="outra")
    with pytest.raises(LinkedToCollection):
        svc.excluir_lancamento(r["lancamento_id"])
