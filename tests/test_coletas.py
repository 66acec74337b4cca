# tests/test_coletas.py
"""Coletas: precificação, lançamento de Compra e movimentação vinculada."""

from __future__ import annotations

from decimal import Decimal

import pytest

from services.estoque import FluxoColeta
from services.precificacao import OBS_DOACAO, precificacao_manual
from shared.db import conexao
from shared.erros import EntryHasPayments, InstallmentLocked, NoActiveContract, NotFound


def _contrato(svc, cadastro, **kw):
    kw.setdefault("data_inicio", "2024-01-01")
    return svc.cadastros_repo.inserir_contrato(cliente_id=cadastro.cliente_id, **kw)


def _contar(db_path, tabela):
    with conexao(db_path) as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {tabela}").fetchone()[0]


# ------------------ registro ------------------

def test_troca_registra_snapshot_sem_lancamento(svc, cadastro):
    contrato = _contrato(svc, cadastro, tipo_coleta="Troca", fator_troca=6)
    r = svc.registrar_coleta(cadastro.cliente_id, "2025-02-03", 120)

    assert r["precificacao"].unidades_entregues == 20
    assert r["lancamento_id"] is None
    assert r["movimentacao_id"] is None
    assert r["numero_coleta"] == 1

    coleta = svc.coletas_repo.obter(None, r["coleta_id"])
    assert (coleta["tipo_coleta"], coleta["fator"], coleta["contrato_id"]) == ("Troca", 6, contrato)
    assert coleta["quantidade_entregue"] == 20.0


def test_compra_gera_debito_com_parcela_unica_na_data_da_coleta(svc, cadastro):
    _contrato(svc, cadastro, tipo_coleta="Compra", valor_coleta=1.2)
    r = svc.registrar_coleta(cadastro.cliente_id, "2025-02-03", 50)

    assert r["precificacao"].valor_pago == Decimal("60.00")
    lanc = svc.cd_repo.obter_lancamento(None, r["lancamento_id"])
    assert lanc["tipo"] == "debito"
    assert lanc["coleta_id"] == r["coleta_id"]
    assert lanc["total_value"] == 60.0
    assert lanc["cliente_fornecedor_name"] == "Restaurante Bom Sabor Ltda"
    assert lanc["document_number"] == "000001"

    parcelas = svc.cd_repo.listar_parcelas(None, r["lancamento_id"])
    assert [(p["installment_number"], p["due_date"], p["expected_amount"]) for p in parcelas] == [
        (1, "2025-02-03", 60.0)
    ]


def test_doacao_nao_gera_lancamento_e_anota_observacao(svc, cadastro):
    _contrato(svc, cadastro, tipo_coleta="Doação")
    r = svc.registrar_coleta(cadastro.cliente_id, "2025-02-03", 35)
    assert r["lancamento_id"] is None
    assert svc.coletas_repo.obter(None, r["coleta_id"])["observacao"] == OBS_DOACAO


def test_sem_contrato_exige_fallback_manual_explicito(svc, cadastro, db_path):
    with pytest.raises(NoActiveContract):
        svc.registrar_coleta(cadastro.cliente_id, "2025-02-03", 60)
    assert _contar(db_path, "coletas") == 0

    r = svc.registrar_coleta(cadastro.cliente_id, "2025-02-03", 60, manual=svc.manual_padrao())
    p = r["precificacao"]
    assert (p.modo, p.fator, p.resultado, p.manual, p.contrato_id) == ("Troca", 6, Decimal(10), True, None)


def test_cliente_inexistente(svc):
    with pytest.raises(NotFound):
        svc.registrar_coleta(999, "2025-02-03", 10, manual=precificacao_manual())


def test_fluxo_cria_movimentacao_vinculada(svc, cadastro):
    _contrato(svc, cadastro, tipo_coleta="Troca", fator_troca=6)
    fluxo = FluxoColeta(produto_coletado_id=cadastro.oleo_id, produto_entregue_id=cadastro.sabao_id)
    r = svc.registrar_coleta(cadastro.cliente_id, "2025-02-03", 120, fluxo=fluxo)

    mov = svc.obter_movimentacao(r["movimentacao_id"])
    assert mov["coleta_id"] == r["coleta_id"]
    assert mov["observacao"] == "Coleta nº 000001"
    assert {(l.produto_id, l.quantidade) for l in mov["linhas"]} == {
        (cadastro.oleo_id, Decimal("120.000")),
        (cadastro.sabao_id, Decimal("20.000")),
    }


# ------------------ edição ------------------

def test_editar_usa_snapshot_mesmo_com_contrato_novo(svc, cadastro):
    antigo = _contrato(svc, cadastro, tipo_coleta="Compra", valor_coleta=1.2)
    r = svc.registrar_coleta(cadastro.cliente_id, "2025-02-03", 50)

    svc.cadastros_repo.atualizar_status_contrato(None, antigo, "Inativo")
    _contrato(svc, cadastro, tipo_coleta="Compra", valor_coleta=2.0)

    e = svc.editar_coleta(r["coleta_id"], quantidade_coletada=60)
    assert e["precificacao"].valor_unitario == Decimal("1.20")
    assert e["precificacao"].resultado == Decimal("72.00")
    assert e["lancamento_id"] == r["lancamento_id"]
    assert svc.cd_repo.obter_lancamento(None, r["lancamento_id"])["total_value"] == 72.0

    e = svc.editar_coleta(r["coleta_id"], reprecificar=True)
    assert e["precificacao"].resultado == Decimal("120.00")


def test_reprecificar_coleta_manual_aceita_novos_parametros_manuais(svc, cadastro):
    r = svc.registrar_coleta(cadastro.cliente_id, "2025-02-03", 60, manual=svc.manual_padrao())

    with pytest.raises(NoActiveContract):
        svc.editar_coleta(r["coleta_id"], reprecificar=True)

    e = svc.editar_coleta(r["coleta_id"], reprecificar=True, manual=precificacao_manual("Troca", 5))
    p = e["precificacao"]
    assert (p.fator, p.resultado, p.manual) == (5, Decimal(12), True)
    assert svc.coletas_repo.obter(None, r["coleta_id"])["fator"] == 5


def test_reprecificar_prefere_contrato_ativo_ao_manual(svc, cadastro):
    r = svc.registrar_coleta(cadastro.cliente_id, "2025-02-03", 60, manual=svc.manual_padrao())
    _contrato(svc, cadastro, tipo_coleta="Troca", fator_troca=4)

    e = svc.editar_coleta(r["coleta_id"], reprecificar=True, manual=precificacao_manual("Troca", 5))
    assert (e["precificacao"].fator, e["precificacao"].resultado, e["precificacao"].manual) == (4, Decimal(15), False)


def test_editar_mantem_a_mesma_movimentacao(svc, cadastro, db_path):
    _contrato(svc, cadastro, tipo_coleta="Troca", fator_troca=6)
    fluxo = FluxoColeta(produto_coletado_id=cadastro.oleo_id)
    r = svc.registrar_coleta(cadastro.cliente_id, "2025-02-03", 120, fluxo=fluxo)

    e = svc.editar_coleta(r["coleta_id"], quantidade_coletada=90, data_coleta="2025-02-04")
    assert e["movimentacao_id"] == r["movimentacao_id"]
    assert _contar(db_path, "entrada_saida") == 1
    mov = svc.obter_movimentacao(e["movimentacao_id"])
    assert mov["data"] == "2025-02-04"
    assert mov["linhas"][0].quantidade == Decimal("90.000")


def test_editar_compra_paga_levanta_installment_locked(svc, cadastro):
    _contrato(svc, cadastro, tipo_coleta="Compra", valor_coleta=1.2)
    r = svc.registrar_coleta(cadastro.cliente_id, "2025-02-03", 50)
    parcela = svc.cd_repo.listar_parcelas(None, r["lancamento_id"])[0]
    svc.registrar_pagamento(parcela["id"], "60.00", "2025-02-03", "pix")

    with pytest.raises(InstallmentLocked):
        svc.editar_coleta(r["coleta_id"], quantidade_coletada=55)
    assert svc.coletas_repo.obter(None, r["coleta_id"])["quantidade_coletada"] == 50.0

    svc.editar_coleta(r["coleta_id"], observacao="conferido")
    assert svc.coletas_repo.obter(None, r["coleta_id"])["observacao"] == "conferido"


def test_compra_zerada_remove_lancamento(svc, cadastro):
    _contrato(svc, cadastro, tipo_coleta="Compra", valor_coleta=1.2)
    r = svc.registrar_coleta(cadastro.cliente_id, "2025-02-03", 50)
    svc.editar_coleta(r["coleta_id"], quantidade_coletada=0)
    assert svc.cd_repo.obter_lancamento(None, r["lancamento_id"]) is None


# ------------------ exclusão ------------------

def test_excluir_coleta_remove_lancamento_e_movimentacao(svc, cadastro, db_path):
    _contrato(svc, cadastro, tipo_coleta="Compra", valor_coleta=1.2)
    fluxo = FluxoColeta(produto_coletado_id=cadastro.oleo_id)
    r = svc.registrar_coleta(cadastro.cliente_id, "2025-02-03", 50, fluxo=fluxo)

    svc.excluir_coleta(r["coleta_id"])
    assert _contar(db_path, "coletas") == 0
    assert _contar(db_path, "credito_debito") == 0
    assert _contar(db_path, "entrada_saida") == 0


def test_excluir_coleta_com_pagamento_e_recusado(svc, cadastro, db_path):
    _contrato(svc, cadastro, tipo_coleta="Compra", valor_coleta=1.2)
    r = svc.registrar_coleta(cadastro.cliente_id, "2025-02-03", 50)
    parcela = svc.cd_repo.listar_parcelas(None, r["lancamento_id"])[0]
    svc.registrar_pagamento(parcela["id"], "10.00", "2025-02-03", "pix")

    with pytest.raises(EntryHasPayments):
        svc.excluir_coleta(r["coleta_id"])
    assert _contar(db_path, "coletas") == 1
