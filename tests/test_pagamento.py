# tests/test_pagamento.py
"""Pagamentos de parcelas: regras de aceite, status e concorrência."""

from __future__ import annotations

import threading
from datetime import date
from decimal import Decimal

import pytest

from services.ledger import LedgerService
from services.ledger.service_ledger_pagamento import derivar_status
from shared.config import Configuracao
from shared.db import conexao
from shared.erros import AlreadySettled, ConcurrencyConflict, ExceedsBalance, InvalidAmount, NotFound, ValidationError


def _pagamentos(db_path, parcela_id):
    with conexao(db_path) as conn:
        return conn.execute("SELECT COUNT(*) FROM pagamentos WHERE parcela_id = ?", (parcela_id,)).fetchone()[0]


# ------------------ status derivado ------------------

@pytest.mark.parametrize(
    "esperado, pago, vencimento, cancelada, status",
    [
        ("100", "0", "2025-03-01", False, "pending"),
        ("100", "40", "2025-03-01", False, "partially_paid"),
        ("100", "100", "2025-01-01", False, "paid"),
        ("100", "40", "2025-01-01", False, "overdue"),
        ("100", "0", "2025-01-01", False, "overdue"),
        ("100", "100", "2025-01-01", True, "canceled"),
        ("100", "0", "2025-02-01", False, "pending"),
    ],
)
def test_derivar_status(esperado, pago, vencimento, cancelada, status):
    assert derivar_status(esperado, pago, vencimento, date(2025, 2, 1), cancelada=cancelada) == status


def test_derivar_status_e_deterministico():
    args = ("100.00", "30.00", "2025-01-15", date(2025, 2, 1))
    assert {derivar_status(*args) for _ in range(5)} == {"overdue"}


# ------------------ cenários de pagamento ------------------

def test_pagamento_integral_quita_parcela_e_reduz_saldo(svc, lancamento_1000):
    r = svc.register_payment(lancamento_1000.parcela_ids[1], "400.00", "2025-02-09", "pix")
    assert r["success"] is True
    assert r["status"] == "paid"
    assert r["payment_id"] is not None

    resumo = svc.resumo_lancamento(lancamento_1000.id, hoje="2025-01-20")
    assert resumo["total_paid"] == Decimal("400.00")
    assert resumo["total_balance"] == Decimal("600.00")
    assert resumo["parcelas_pagas"] == 1


def test_pagamento_maior_que_saldo_e_rejeitado_sem_mudanca(svc, lancamento_1000, db_path):
    pid = lancamento_1000.parcela_ids[1]
    r = svc.register_payment(pid, "500.00", "2025-02-09", "pix")
    assert r == {
        "success": False,
        "code": "ExceedsBalance",
        "kind": "regra",
        "message": r["message"],
        "payment_id": None,
    }
    parcela = svc.cd_repo.obter_parcela(None, pid)
    assert parcela["paid_amount"] == 0
    assert parcela["status"] == "pending"
    assert _pagamentos(db_path, pid) == 0


def test_pagamentos_parciais_acumulam_ate_quitar(svc, lancamento_1000):
    pid = lancamento_1000.parcela_ids[1]
    r1 = svc.registrar_pagamento(pid, "150,00", "2025-02-01", "cash")
    assert r1["status"] == "partially_paid"
    assert r1["restante"] == Decimal("250.00")

    r2 = svc.registrar_pagamento(pid, Decimal("250.00"), "2025-02-05", "bank_transfer")
    assert r2["status"] == "paid"
    assert r2["paid_amount"] == Decimal("400.00")
    assert len(svc.cd_repo.listar_pagamentos(None, pid)) == 2


def test_sobra_dentro_da_tolerancia_e_aparada(svc, cadastro):
    criado = svc.create_ledger_entry("credito", "Cliente", "100.00", "2025-01-10", single_due_date="2025-02-10")
    pid = criado.parcela_ids[0]
    svc.registrar_pagamento(pid, "33.33", "2025-01-20", "pix")
    svc.registrar_pagamento(pid, "33.33", "2025-01-21", "pix")
    r = svc.registrar_pagamento(pid, "33.35", "2025-01-22", "pix")
    assert r["status"] == "paid"
    assert r["valor_aplicado"] == Decimal("33.34")
    assert r["paid_amount"] == Decimal("100.00")


def test_parcela_quitada_nao_aceita_pagamento(svc, lancamento_1000):
    pid = lancamento_1000.parcela_ids[0]
    svc.registrar_pagamento(pid, "200.00", "2025-01-10", "pix")
    with pytest.raises(AlreadySettled):
        svc.registrar_pagamento(pid, "0.01", "2025-01-11", "pix")


def test_parcela_cancelada_nao_aceita_pagamento(svc, lancamento_1000):
    pid = lancamento_1000.parcela_ids[2]
    assert svc.cancelar_parcela(pid)["status"] == "canceled"
    r = svc.register_payment(pid, "10.00", "2025-03-01", "pix")
    assert (r["success"], r["code"]) == (False, "AlreadySettled")
    with pytest.raises(AlreadySettled):
        svc.cancelar_parcela(pid)


@pytest.mark.parametrize("valor", [0, "-10", "0,00", "abc"])
def test_valor_nao_positivo_e_invalid_amount(svc, lancamento_1000, valor):
    with pytest.raises(InvalidAmount):
        svc.registrar_pagamento(lancamento_1000.parcela_ids[1], valor, "2025-02-01", "pix")


def test_forma_e_conta_sao_validadas(svc, lancamento_1000, cadastro):
    pid = lancamento_1000.parcela_ids[1]
    with pytest.raises(ValidationError):
        svc.registrar_pagamento(pid, "10.00", "2025-02-01", "cheque")
    with pytest.raises(NotFound):
        svc.registrar_pagamento(pid, "10.00", "2025-02-01", "pix", conta_corrente_id=999)

    r = svc.registrar_pagamento(pid, "10.00", "2025-02-01", "pix", conta_corrente_id=cadastro.conta_id)
    assert svc.cd_repo.obter_parcela(None, pid)["conta_corrente_id"] == cadastro.conta_id
    assert r["status"] == "partially_paid"


def test_parcela_inexistente(svc):
    r = svc.register_payment(12345, "10.00", "2025-02-01", "pix")
    assert (r["success"], r["code"], r["kind"]) == (False, "NotFound", "nao_encontrado")


def test_pago_nunca_diminui(svc, lancamento_1000):
    pid = lancamento_1000.parcela_ids[1]
    vistos = []
    for valor in ("100.00", "500.00", "50.00", "0", "250.00"):
        svc.register_payment(pid, valor, "2025-02-01", "pix")
        vistos.append(svc.cd_repo.obter_parcela(None, pid)["paid_amount"])
    assert vistos == sorted(vistos)
    assert vistos[-1] == 400.0


def test_pagamentos_sao_imutaveis_no_banco(svc, lancamento_1000, db_path):
    svc.registrar_pagamento(lancamento_1000.parcela_ids[1], "10.00", "2025-02-01", "pix")
    with conexao(db_path) as conn:
        with pytest.raises(Exception, match="imutáveis"):
            conn.execute("UPDATE pagamentos SET paid_amount = 1")
        with pytest.raises(Exception, match="imutáveis"):
            conn.execute("DELETE FROM pagamentos")


def test_auditoria_registra_sucesso_e_falha(svc, lancamento_1000, eventos):
    pid = lancamento_1000.parcela_ids[1]
    svc.register_payment(pid, "10.00", "2025-02-01", "pix", user_id="ana")
    svc.register_payment(pid, "999.00", "2025-02-01", "pix", user_id="ana")

    acoes = [(a, u) for a, _, u in eventos]
    assert ("register_payment", "ana") in acoes
    assert ("register_payment_failed", "ana") in acoes
    falha = [d for a, d, _ in eventos if a == "register_payment_failed"][-1]
    assert falha["code"] == "ExceedsBalance"


def test_auditor_com_erro_nao_quebra_o_pagamento(db_path, lancamento_1000):
    def _quebrado(acao, detalhes, usuario):
        raise RuntimeError("log fora do ar")

    outro = LedgerService(db_path, auditor=_quebrado, config=Configuracao(db_path=db_path))
    r = outro.register_payment(lancamento_1000.parcela_ids[1], "400.00", "2025-02-09", "pix")
    assert r["success"] is True


def test_auditor_padrao_grava_na_tabela_logs(db_path, lancamento_1000):
    padrao = LedgerService(db_path, config=Configuracao(db_path=db_path))
    padrao.register_payment(lancamento_1000.parcela_ids[1], "400.00", "2025-02-09", "pix", user_id="joao")
    with conexao(db_path) as conn:
        row = conn.execute("SELECT user_id, action FROM logs ORDER BY id DESC LIMIT 1").fetchone()
    assert (row["user_id"], row["action"]) == ("joao", "register_payment")


# ------------------ concorrência ------------------

def test_pagamentos_concorrentes_nao_passam_do_esperado(db_path, cadastro, svc):
    criado = svc.create_ledger_entry("credito", "Cliente", "100.00", "2025-01-10", single_due_date="2025-02-10")
    pid = criado.parcela_ids[0]

    barreira = threading.Barrier(2)
    resultados = []
    trava = threading.Lock()

    def _pagar():
        servico = LedgerService(db_path, auditor=lambda *a: None, config=Configuracao(db_path=db_path),
                                criar_schema=False)
        barreira.wait()
        r = servico.register_payment(pid, "60.00", "2025-01-20", "pix")
        with trava:
            resultados.append(r)

    threads = [threading.Thread(target=_pagar) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    sucessos = [r for r in resultados if r["success"]]
    falhas = [r for r in resultados if not r["success"]]
    assert len(sucessos) == 1
    assert len(falhas) == 1
    assert falhas[0]["code"] in (ExceedsBalance.codigo, ConcurrencyConflict.codigo)

    parcela = svc.cd_repo.obter_parcela(None, pid)
    assert parcela["paid_amount"] == 60.0
    assert parcela["status"] == "partially_paid"
