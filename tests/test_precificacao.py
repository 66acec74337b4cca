# tests/test_precificacao.py
"""Resolução do contrato ativo e cálculo Troca/Compra/Doação."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from services.precificacao import (
    MODO_COMPRA,
    MODO_DOACAO,
    MODO_TROCA,
    OBS_DOACAO,
    Contrato,
    PrecificacaoManual,
    escolher_contrato,
    precificacao_manual,
    precificar,
)
from shared.erros import NoActiveContract, NotFound, ValidationError


def _contrato(id, *, tipo=MODO_TROCA, fator=6, preco=None, fim=None, status="Ativo", criado="2025-01-01 00:00:00"):
    return Contrato(
        id=id, cliente_id=1, tipo_coleta=tipo, fator_troca=fator,
        valor_coleta=Decimal(preco) if preco is not None else None,
        data_inicio=date(2024, 1, 1), data_fim=fim, status=status, created_at=criado,
    )


# ------------------ cálculo ------------------

def test_troca_usa_divisao_inteira_para_baixo():
    p = precificar(_contrato(1, fator=6), 120)
    assert p.modo == MODO_TROCA
    assert p.resultado == Decimal(20)
    assert p.unidades_entregues == 20
    assert p.valor_pago == Decimal("0.00")

    assert precificar(_contrato(1, fator=6), "125.9").unidades_entregues == 20


def test_compra_multiplica_quantidade_pelo_preco():
    p = precificar(_contrato(2, tipo=MODO_COMPRA, fator=None, preco="1.20"), 50)
    assert p.resultado == Decimal("60.00")
    assert p.valor_pago == Decimal("60.00")
    assert p.unidades_entregues == 0


def test_compra_arredonda_meio_centavo_para_cima():
    p = precificar(_contrato(2, tipo=MODO_COMPRA, fator=None, preco="0.25"), "10.5")
    assert p.resultado == Decimal("2.63")


def test_doacao_tem_resultado_zero_e_observacao():
    p = precificar(_contrato(3, tipo=MODO_DOACAO, fator=None), 80)
    assert p.resultado == Decimal("0.00")
    assert p.observacao == OBS_DOACAO


@pytest.mark.parametrize(
    "fonte, quantidade",
    [
        (_contrato(1, fator=0), 10),
        (_contrato(1, fator=None), 10),
        (_contrato(2, tipo=MODO_COMPRA, fator=None, preco=None), 10),
        (_contrato(1), -1),
        (_contrato(1), "abc"),
    ],
)
def test_precificar_rejeita_parametros_invalidos(fonte, quantidade):
    with pytest.raises(ValidationError):
        precificar(fonte, quantidade)


def test_manual_padrao_e_troca_fator_6():
    manual = precificacao_manual()
    p = precificar(manual, 60)
    assert (p.modo, p.fator, p.resultado) == (MODO_TROCA, 6, Decimal(10))
    assert p.manual is True
    assert p.contrato_id is None


def test_manual_rejeita_modo_desconhecido():
    with pytest.raises(ValidationError):
        precificacao_manual(modo="Aluguel")


@pytest.mark.parametrize("fator", ["6.5", "abc", 6.7, 0, -2, ""])
def test_manual_rejeita_fator_que_nao_e_inteiro_positivo(fator):
    with pytest.raises(ValidationError):
        precificacao_manual(fator=fator)


def test_manual_aceita_fator_inteiro_em_texto():
    assert precificacao_manual(fator="6").fator == 6
    assert precificacao_manual(fator=Decimal("5.0")).fator == 5


def test_precificar_nao_trunca_fator_fracionario():
    with pytest.raises(ValidationError):
        precificar(PrecificacaoManual(fator=6.7), 60)
    with pytest.raises(ValidationError):
        precificar(_contrato(1, fator="seis"), 60)


def test_troca_arredonda_quantidade_para_gramas_antes_do_piso():
    p = precificar(_contrato(1, fator=6), "5.9996")
    assert p.quantidade == Decimal("6.000")
    assert p.resultado == Decimal(1)
    assert precificar(_contrato(1, fator=6), "5.9994").resultado == Decimal(0)


# ------------------ seleção de contrato ------------------

def test_escolhe_maior_data_fim_e_sem_fim_como_mais_distante():
    hoje = date(2025, 6, 1)
    a = _contrato(1, fim=date(2025, 12, 31))
    b = _contrato(2, fim=None)
    c = _contrato(3, fim=date(2026, 6, 30))
    assert escolher_contrato([a, b, c], hoje).id == 2
    assert escolher_contrato([a, c], hoje).id == 3


def test_empate_de_data_fim_fica_com_o_criado_por_ultimo():
    hoje = date(2025, 6, 1)
    antigo = _contrato(1, fim=date(2025, 12, 31), criado="2025-01-01 10:00:00")
    novo = _contrato(2, fim=date(2025, 12, 31), criado="2025-03-01 10:00:00")
    assert escolher_contrato([novo, antigo], hoje).id == 2


def test_ignora_inativos_e_vencidos():
    hoje = date(2025, 6, 1)
    inativo = _contrato(1, status="Inativo")
    vencido = _contrato(2, fim=date(2025, 5, 31))
    with pytest.raises(NoActiveContract):
        escolher_contrato([inativo, vencido], hoje)


def test_contrato_vence_no_proprio_dia_ainda_vale():
    assert escolher_contrato([_contrato(1, fim=date(2025, 6, 1))], date(2025, 6, 1)).id == 1


# ------------------ via serviço ------------------

def test_resolve_active_contract_no_banco(svc, cadastro):
    repo = svc.cadastros_repo
    repo.inserir_contrato(cliente_id=cadastro.cliente_id, tipo_coleta="Troca", fator_troca=6,
                          data_inicio="2024-01-01", data_fim="2030-12-31")
    ultimo = repo.inserir_contrato(cliente_id=cadastro.cliente_id, tipo_coleta="Compra", valor_coleta=1.2,
                                   data_inicio="2024-01-01", data_fim=None)

    contrato = svc.resolve_active_contract(cadastro.cliente_id)
    assert contrato.id == ultimo
    assert contrato.valor_coleta == Decimal("1.20")


def test_resolve_sem_contrato_levanta_no_active_contract(svc, cadastro):
    with pytest.raises(NoActiveContract):
        svc.resolve_active_contract(cadastro.cliente_id)


def test_resolve_cliente_inexistente(svc):
    with pytest.raises(NotFound):
        svc.resolve_active_contract(999)


def test_contrato_explicito_de_outro_cliente_e_rejeitado(svc, cadastro):
    repo = svc.cadastros_repo
    outro = repo.inserir_cliente(razao_social="Padaria Central")
    contrato_outro = repo.inserir_contrato(cliente_id=outro, tipo_coleta="Troca", fator_troca=5)
    with pytest.raises(ValidationError):
        svc.resolve_active_contract(cadastro.cliente_id, contract_id=contrato_outro)
