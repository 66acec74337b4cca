# tests/test_utils_config.py
"""Utilitários de dinheiro/datas, configuração e erros."""

from __future__ import annotations

import sqlite3
from datetime import date
from decimal import Decimal

import pytest

from shared.config import Configuracao, carregar_configuracao
from shared.db import conexao, transacao
from shared.erros import ConcurrencyConflict, ExceedsBalance, NoActiveContract, traduzir_erro_sqlite
from utils.utils import adicionar_meses, coerce_data, formatar_moeda, parse_moeda, q2, resolve_db_path


@pytest.mark.parametrize(
    "texto, esperado",
    [
        ("R$ 1.234,56", Decimal("1234.56")),
        ("1,234.56", Decimal("1234.56")),
        ("1234,5", Decimal("1234.50")),
        ("", Decimal("0.00")),
        (None, Decimal("0.00")),
        (10, Decimal("10.00")),
        (0.1 + 0.2, Decimal("0.30")),
    ],
)
def test_parse_moeda(texto, esperado):
    assert parse_moeda(texto) == esperado


def test_parse_moeda_sem_digitos():
    with pytest.raises(ValueError):
        parse_moeda("R$ --")


def test_q2_arredonda_meio_para_cima():
    assert q2("2.675") == Decimal("2.68")
    assert q2(None) == Decimal("0.00")


def test_formatar_moeda():
    assert formatar_moeda(1234.5) == "R$ 1.234,50"


def test_coerce_data_formatos():
    assert coerce_data("2025-02-03") == date(2025, 2, 3)
    assert coerce_data("03/02/2025") == date(2025, 2, 3)
    assert coerce_data("2025-02-03T10:00:00") == date(2025, 2, 3)
    with pytest.raises(ValueError):
        coerce_data("ontem")


def test_adicionar_meses_preserva_fim_de_mes():
    assert adicionar_meses(date(2024, 1, 31), 1) == date(2024, 2, 29)
    assert adicionar_meses(date(2025, 11, 15), 3) == date(2026, 2, 15)


def test_resolve_db_path():
    assert resolve_db_path("x.db") == "x.db"
    assert resolve_db_path(Configuracao(db_path="y.db")) == "y.db"
    with pytest.raises(TypeError):
        resolve_db_path(None)


def test_configuracao_padrao():
    cfg = carregar_configuracao({})
    assert cfg.fator_padrao == 6
    assert cfg.tolerancia_pagamento == Decimal("0.01")
    assert cfg.log_level == "INFO"
    assert cfg.usuario == "sistema"


def test_configuracao_do_ambiente():
    cfg = carregar_configuracao({
        "OLEO_DB_PATH": "/tmp/oleo.db",
        "OLEO_LOG_LEVEL": "debug",
        "OLEO_USUARIO": "operador",
        "OLEO_FATOR_PADRAO": "5",
        "OLEO_TOLERANCIA_PAGAMENTO": "0.02",
    })
    assert (cfg.db_path, cfg.log_level, cfg.usuario, cfg.fator_padrao) == ("/tmp/oleo.db", "DEBUG", "operador", 5)
    assert cfg.tolerancia_pagamento == Decimal("0.02")


@pytest.mark.parametrize("env", [{"OLEO_FATOR_PADRAO": "0"}, {"OLEO_TOLERANCIA_PAGAMENTO": "-1"}])
def test_configuracao_invalida(env):
    with pytest.raises(ValueError):
        carregar_configuracao(env)


def test_manual_padrao_segue_a_configuracao(db_path):
    from services.ledger import LedgerService

    svc = LedgerService(db_path, auditor=lambda *a: None, config=Configuracao(db_path=db_path, fator_padrao=4))
    assert svc.manual_padrao().fator == 4


def test_erros_trazem_codigo_e_categoria():
    resposta = ExceedsBalance("maior que o saldo").como_resposta()
    assert resposta == {"success": False, "code": "ExceedsBalance", "kind": "regra", "message": "maior que o saldo"}
    assert NoActiveContract("x").categoria == "nao_encontrado"


def test_lock_do_sqlite_vira_conflito():
    assert isinstance(traduzir_erro_sqlite(sqlite3.OperationalError("database is locked")), ConcurrencyConflict)
    assert traduzir_erro_sqlite(sqlite3.OperationalError("no such table: x")) is None


def test_transacao_ja_revertida_preserva_o_erro_original(db_path):
    with conexao(db_path) as conn:
        conn.execute("CREATE TABLE t (x INTEGER)")
        with pytest.raises(ZeroDivisionError):
            with transacao(conn):
                conn.execute("INSERT INTO t VALUES (1)")
                conn.execute("ROLLBACK")
                1 / 0
        assert not conn.in_transaction
        assert conn.execute("SELECT COUNT(*) FROM t").fetchone()[0] == 0
