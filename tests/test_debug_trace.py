# tests/test_debug_trace.py
"""Wrappers de depuração do painel (Streamlit substituído por um registro)."""

from __future__ import annotations

from types import SimpleNamespace

import pytest

from shared import debug_trace
from shared.erros import ExceedsBalance


@pytest.fixture
def tela(monkeypatch):
    chamadas = []
    falso = SimpleNamespace(
        warning=lambda msg: chamadas.append(("warning", msg)),
        error=lambda msg: chamadas.append(("error", msg)),
        code=lambda txt: chamadas.append(("code", txt)),
    )
    monkeypatch.setattr(debug_trace, "st", falso)
    return chamadas


def test_erro_de_negocio_vira_aviso_e_e_relancado(tela):
    @debug_trace.debug_wrap("Pagamento")
    def _pagar():
        raise ExceedsBalance("maior que o saldo")

    with pytest.raises(ExceedsBalance):
        _pagar()
    assert tela == [("warning", "Pagamento: maior que o saldo")]


def test_erro_inesperado_mostra_traceback(tela):
    with pytest.raises(ZeroDivisionError):
        with debug_trace.debug_wrap_ctx("Totais"):
            1 / 0
    assert [tipo for tipo, _ in tela] == ["error", "code"]
    assert "ZeroDivisionError" in tela[1][1]


def test_sem_erro_nao_exibe_nada(tela):
    assert debug_trace.debug_wrap()(lambda: 42)() == 42
    assert tela == []
