"""
Pacote `utils`
==============

Reexporta utilitários de uso comum para facilitar imports.

Exemplos
--------
- `from utils import q2`
- `from utils import formatar_moeda`
- `from utils import coerce_data`
"""

from .utils import (
    CENTAVO,
    GRAMA,
    ZERO,
    q2,
    qtd,
    parse_moeda,
    formatar_moeda,
    coerce_data,
    adicionar_meses,
    proximo_dia_util,
    padrao_like,
    resolve_db_path,
)

__all__ = [
    "CENTAVO",
    "GRAMA",
    "ZERO",
    "q2",
    "qtd",
    "parse_moeda",
    "formatar_moeda",
    "coerce_data",
    "adicionar_meses",
    "proximo_dia_util",
    "padrao_like",
    "resolve_db_path",
]
