"""
Módulo Schema (Repositório)
===========================

Criação idempotente das tabelas, índices, triggers e views do motor.

Tabelas
-------
- clientes, contratos, coletas ............... cadastro e coletas
- credito_debito, parcelas, pagamentos ....... lançamentos financeiros
- contas_correntes ........................... contas de movimento
- produtos, entrada_saida, itens_entrada_saida estoque
- logs ....................................... auditoria

Views
-----
- v_saldo_produtos: entradas - saídas por produto (fonte do saldo de estoque).

Regras garantidas no banco
--------------------------
- `pagamentos` é append-only (triggers bloqueiam UPDATE/DELETE).
- `parcelas` é única por (credito_debito_id, installment_number).
- `entrada_saida.coleta_id` é único (uma movimentação por coleta).
"""

from __future__ import annotations

import logging
from typing import Any

from shared.db import conexao

logger = logging.getLogger(__name__)

DDL = """
CREATE TABLE IF NOT EXISTS clientes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    razao_social TEXT NOT NULL,
    nome_fantasia TEXT,
    cnpj_cpf TEXT,
    municipio TEXT,
    estado TEXT,
    user_id TEXT,
    created_at TEXT DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS contratos (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    cliente_id INTEGER NOT NULL REFERENCES clientes(id),
    tipo_coleta TEXT NOT NULL CHECK (tipo_coleta IN ('Troca', 'Compra', 'Doação')),
    fator_troca INTEGER,
    valor_coleta REAL,
    data_inicio TEXT,
    data_fim TEXT,
    status TEXT NOT NULL DEFAULT 'Aguardando Assinatura'
        CHECK (status IN ('Aguardando Assinatura', 'Ativo', 'Inativo', 'Cancelado')),
    created_at TEXT DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_contratos_cliente ON contratos(cliente_id);

CREATE TABLE IF NOT EXISTS coletas (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    numero_coleta INTEGER NOT NULL UNIQUE,
    cliente_id INTEGER NOT NULL REFERENCES clientes(id),
    contrato_id INTEGER REFERENCES contratos(id),
    cliente_nome TEXT,
    data_coleta TEXT NOT NULL,
    tipo_coleta TEXT NOT NULL CHECK (tipo_coleta IN ('Troca', 'Compra', 'Doação')),
    fator INTEGER,
    valor_compra REAL,
    quantidade_coletada REAL NOT NULL CHECK (quantidade_coletada >= 0),
    quantidade_entregue REAL,
    total_pago REAL,
    observacao TEXT,
    fluxo_direcao TEXT CHECK (fluxo_direcao IN ('entrada', 'saida')),
    produto_coletado_id INTEGER REFERENCES produtos(id),
    produto_entregue_id INTEGER REFERENCES produtos(id),
    user_id TEXT,
    created_at TEXT DEFAULT (datetime('now')),
    updated_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_coletas_cliente ON coletas(cliente_id);

CREATE TABLE IF NOT EXISTS contas_correntes (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    banco TEXT NOT NULL,
    agencia TEXT,
    conta TEXT,
    is_default INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS credito_debito (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tipo TEXT NOT NULL CHECK (tipo IN ('credito', 'debito')),
    cliente_id INTEGER REFERENCES clientes(id),
    cliente_fornecedor_name TEXT NOT NULL,
    cliente_fornecedor_fantasy_name TEXT,
    cnpj_cpf TEXT,
    description TEXT,
    document_number TEXT,
    model TEXT,
    payment_method TEXT,
    cost_center TEXT,
    notes TEXT,
    issue_date TEXT NOT NULL,
    total_value REAL NOT NULL CHECK (total_value > 0),
    discount REAL NOT NULL DEFAULT 0,
    interest REAL NOT NULL DEFAULT 0,
    coleta_id INTEGER UNIQUE REFERENCES coletas(id),
    user_id TEXT,
    created_at TEXT DEFAULT (datetime('now')),
    updated_at TEXT
);
CREATE INDEX IF NOT EXISTS idx_cd_issue ON credito_debito(issue_date);
CREATE INDEX IF NOT EXISTS idx_cd_tipo ON credito_debito(tipo);

CREATE TABLE IF NOT EXISTS parcelas (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    credito_debito_id INTEGER NOT NULL REFERENCES credito_debito(id) ON DELETE CASCADE,
    installment_number INTEGER NOT NULL CHECK (installment_number >= 0),
    due_date TEXT NOT NULL,
    expected_amount REAL NOT NULL CHECK (expected_amount > 0),
    paid_amount REAL NOT NULL DEFAULT 0 CHECK (paid_amount >= 0),
    status TEXT NOT NULL DEFAULT 'pending'
        CHECK (status IN ('pending', 'partially_paid', 'paid', 'canceled')),
    conta_corrente_id INTEGER REFERENCES contas_correntes(id),
    versao INTEGER NOT NULL DEFAULT 0,
    UNIQUE (credito_debito_id, installment_number)
);

CREATE TABLE IF NOT EXISTS pagamentos (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    parcela_id INTEGER NOT NULL REFERENCES parcelas(id),
    paid_amount REAL NOT NULL CHECK (paid_amount > 0),
    payment_date TEXT NOT NULL,
    payment_method TEXT NOT NULL
        CHECK (payment_method IN ('pix', 'cash', 'bank_transfer', 'credit_card', 'debit_card')),
    conta_corrente_id INTEGER REFERENCES contas_correntes(id),
    notes TEXT,
    user_id TEXT,
    created_at TEXT DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_pag_parcela ON pagamentos(parcela_id);

CREATE TRIGGER IF NOT EXISTS trg_pagamentos_no_update
BEFORE UPDATE ON pagamentos
BEGIN
    SELECT RAISE(ABORT, 'pagamentos são imutáveis');
END;

CREATE TRIGGER IF NOT EXISTS trg_pagamentos_no_delete
BEFORE DELETE ON pagamentos
BEGIN
    SELECT RAISE(ABORT, 'pagamentos são imutáveis');
END;

CREATE TABLE IF NOT EXISTS produtos (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    codigo TEXT,
    nome TEXT NOT NULL,
    unidade TEXT NOT NULL DEFAULT 'kg',
    tipo TEXT
);

CREATE TABLE IF NOT EXISTS entrada_saida (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    tipo TEXT NOT NULL CHECK (tipo IN ('entrada', 'saida')),
    origem TEXT NOT NULL CHECK (origem IN ('manual', 'coleta')),
    coleta_id INTEGER UNIQUE REFERENCES coletas(id),
    cliente_id INTEGER REFERENCES clientes(id),
    data TEXT NOT NULL,
    document_number TEXT,
    observacao TEXT,
    user_id TEXT,
    created_at TEXT DEFAULT (datetime('now')),
    updated_at TEXT,
    CHECK ((origem = 'coleta') = (coleta_id IS NOT NULL))
);
CREATE INDEX IF NOT EXISTS idx_es_data ON entrada_saida(data);

CREATE TABLE IF NOT EXISTS itens_entrada_saida (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    entrada_saida_id INTEGER NOT NULL REFERENCES entrada_saida(id) ON DELETE CASCADE,
    produto_id INTEGER NOT NULL REFERENCES produtos(id),
    quantidade REAL NOT NULL CHECK (quantidade > 0)
);
CREATE INDEX IF NOT EXISTS idx_ies_mov ON itens_entrada_saida(entrada_saida_id);

CREATE VIEW IF NOT EXISTS v_saldo_produtos AS
SELECT
    p.id      AS produto_id,
    p.codigo  AS produto_codigo,
    p.nome    AS produto_nome,
    p.unidade AS unidade,
    COALESCE(SUM(CASE WHEN es.tipo = 'entrada' THEN i.quantidade END), 0) AS total_entradas,
    COALESCE(SUM(CASE WHEN es.tipo = 'saida'   THEN i.quantidade END), 0) AS total_saidas,
    COALESCE(SUM(CASE WHEN es.tipo = 'entrada' THEN i.quantidade
                      WHEN es.tipo = 'saida'   THEN -i.quantidade END), 0) AS saldo_atual
FROM produtos p
LEFT JOIN itens_entrada_saida i ON i.produto_id = p.id
LEFT JOIN entrada_saida es ON es.id = i.entrada_saida_id
GROUP BY p.id, p.codigo, p.nome, p.unidade;

CREATE TABLE IF NOT EXISTS logs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    user_id TEXT,
    action TEXT NOT NULL,
    details TEXT,
    created_at TEXT
);
"""


def garantir_schema(db_path: Any) -> None:
    """Cria tabelas/índices/triggers/views ausentes. Idempotente."""
    with conexao(db_path) as conn:
        conn.executescript(DDL)
    logger.debug("Schema garantido em %s", db_path)


__all__ = ["DDL", "garantir_schema"]
