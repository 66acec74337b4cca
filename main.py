"""
Painel do Motor de Coletas
==========================

Ponto de entrada Streamlit: totais financeiros, parcelas com status
derivado, saldo de estoque e registro de pagamento.

Uso:
    streamlit run main.py
"""

from __future__ import annotations

import logging
import os
from datetime import date

import streamlit as st

from services.ledger import LedgerService
from shared.config import carregar_configuracao, configurar_logging
from shared.debug_trace import debug_wrap, debug_wrap_ctx
from utils.utils import formatar_moeda

logger = logging.getLogger(__name__)


# ======================================================================================
# Configuração inicial da página
# ======================================================================================
st.set_page_config(page_title="Coletas de Óleo", layout="wide")

config = carregar_configuracao()
configurar_logging(config.log_level)
os.makedirs(os.path.dirname(config.db_path) or ".", exist_ok=True)


@st.cache_resource
def _servico(db_path: str) -> LedgerService:
    return LedgerService(db_path, config=config)


svc = _servico(config.db_path)


# ======================================================================================
# Estado de sessão
# ======================================================================================
if "pagina_atual" not in st.session_state:
    st.session_state.pagina_atual = "📊 Resumo"


# ======================================================================================
# Sidebar: filtros e navegação
# ======================================================================================
st.sidebar.markdown("## 🧭 Menu de Navegação")
for pagina in ("📊 Resumo", "🧾 Parcelas", "📦 Estoque", "💳 Pagamento"):
    if st.sidebar.button(pagina, use_container_width=True):
        st.session_state.pagina_atual = pagina
        st.rerun()

st.sidebar.markdown("---")
hoje = date.today()
periodo = st.sidebar.date_input("Emissão", value=(hoje.replace(day=1), hoje))
data_inicio, data_fim = (periodo if isinstance(periodo, tuple) and len(periodo) == 2 else (None, None))
tipo = st.sidebar.selectbox("Tipo", ["(todos)", "credito", "debito"])
tipo = None if tipo == "(todos)" else tipo
busca = st.sidebar.text_input("Buscar (nome, documento, CNPJ)") or None


# ======================================================================================
# Páginas
# ======================================================================================
def _pagina_resumo() -> None:
    st.title("📊 Resumo financeiro")
    with debug_wrap_ctx("Erro ao calcular totais"):
        totais = svc.get_ledger_summary(data_inicio, data_fim, tipo, busca=busca)
    c1, c2, c3 = st.columns(3)
    c1.metric("Total", formatar_moeda(totais["total_value"]))
    c2.metric("Pago", formatar_moeda(totais["total_paid"]))
    c3.metric("Em aberto", formatar_moeda(totais["total_balance"]))


def _pagina_parcelas() -> None:
    st.title("🧾 Parcelas")
    status = st.selectbox("Status", ["(todos)", "pending", "partially_paid", "overdue", "paid", "canceled"])
    limite = st.number_input("Por página", min_value=10, max_value=500, value=50, step=10)
    pagina = st.number_input("Página", min_value=1, value=1, step=1)
    with debug_wrap_ctx("Erro ao listar parcelas"):
        df, total = svc.listar_lancamentos_detalhado(
            data_inicio, data_fim, tipo,
            None if status == "(todos)" else status,
            busca,
            offset=(int(pagina) - 1) * int(limite),
            limit=int(limite),
        )
    st.caption(f"{total} parcela(s)")
    st.dataframe(df, use_container_width=True, hide_index=True)


def _pagina_estoque() -> None:
    st.title("📦 Estoque")
    with debug_wrap_ctx("Erro ao ler estoque"):
        resumo = svc.get_stock_summary(data_inicio, data_fim)
        saldos = svc.saldo_produtos()
    c1, c2, c3 = st.columns(3)
    c1.metric("Movimentações", resumo["total_movements"])
    c2.metric("Entradas", f"{resumo['total_in']}")
    c3.metric("Saídas", f"{resumo['total_out']}")
    st.dataframe(saldos, use_container_width=True, hide_index=True)


@debug_wrap("Erro ao registrar pagamento")
def _registrar(parcela_id: int, valor: str, data_pag: date, forma: str) -> None:
    r = svc.register_payment(parcela_id, valor, data_pag, forma, user_id=config.usuario)
    if r["success"]:
        st.success(f"{r['message']} Status: {r['status']} | Restante: {formatar_moeda(r['restante'])}")
    else:
        st.warning(r["message"])


def _pagina_pagamento() -> None:
    st.title("💳 Registrar pagamento")
    with st.form("form_pagamento"):
        parcela_id = st.number_input("Parcela (id)", min_value=1, step=1)
        valor = st.text_input("Valor (R$)", placeholder="0,00")
        data_pag = st.date_input("Data", value=date.today())
        forma = st.selectbox("Forma", ["pix", "cash", "bank_transfer", "credit_card", "debit_card"])
        enviado = st.form_submit_button("Registrar")
    if enviado:
        _registrar(int(parcela_id), valor, data_pag, forma)


PAGINAS = {
    "📊 Resumo": _pagina_resumo,
    "🧾 Parcelas": _pagina_parcelas,
    "📦 Estoque": _pagina_estoque,
    "💳 Pagamento": _pagina_pagamento,
}

PAGINAS.get(st.session_state.pagina_atual, _pagina_resumo)()
