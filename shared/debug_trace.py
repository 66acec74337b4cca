# shared/debug_trace.py
"""
Ferramentas simples de depuração para handlers/ações do painel.

Objetivo
--------
Exibir o traceback no log e também no Streamlit, separando erros de
negócio (mensagem amigável, sem traceback) de falhas inesperadas.

Uso rápido
----------
    from shared.debug_trace import debug_wrap

    @debug_wrap("Erro ao registrar pagamento")
    def on_click():
        ...

Observações
----------
- Sempre **re-lança** a exceção após exibir (comportamento intencional).
"""

from __future__ import annotations

import logging
import traceback
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Generator, TypeVar

import streamlit as st

from shared.erros import ErroNegocio

__all__ = ["debug_wrap", "debug_wrap_ctx"]

logger = logging.getLogger(__name__)

R = TypeVar("R")


def _exibir(title: str, exc: BaseException) -> None:
    """Mostra o erro no painel: aviso para erro de negócio, traceback para o resto."""
    if isinstance(exc, ErroNegocio):
        logger.info("%s: [%s] %s", title, exc.codigo, exc.mensagem)
        st.warning(f"{title}: {exc.mensagem}")
        return
    tb = traceback.format_exc()
    logger.error("%s\n%s", title, tb)
    st.error(title)
    st.code(tb)


def debug_wrap(title: str = "Erro no handler") -> Callable[[Callable[..., R]], Callable[..., R]]:
    """Decorator de proteção: exibe o erro e re-lança a exceção."""
    def deco(fn: Callable[..., R]) -> Callable[..., R]:
        @wraps(fn)
        def wrapper(*args: Any, **kwargs: Any) -> R:
            try:
                return fn(*args, **kwargs)
            except Exception as exc:
                _exibir(title, exc)
                raise
        return wrapper
    return deco


@contextmanager
def debug_wrap_ctx(title: str = "Erro no handler") -> Generator[None, None, None]:
    """Context manager de proteção: exibe o erro e re-lança a exceção."""
    try:
        yield
    except Exception as exc:
        _exibir(title, exc)
        raise
