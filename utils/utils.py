"""
Módulo Utils
============

Funções utilitárias de uso geral no motor financeiro.

Inclui:
- Dinheiro: arredondamento financeiro (`q2`), parsing de textos de moeda
  (`parse_moeda`) e formatação BR (`formatar_moeda`).
- Quantidades: kg com 3 casas (`qtd`).
- Datas: normalização (`coerce_data`), soma de meses preservando fim de mês
  (`adicionar_meses`) e próximo dia útil (`proximo_dia_util`).
- Infra: resolução do caminho do banco (`resolve_db_path`).

Observações
-----------
- Todo valor monetário que entra no motor passa por `q2` (Decimal, 2 casas,
  ROUND_HALF_UP). No SQLite os valores ficam em REAL e são re-quantizados
  na leitura.
"""

from __future__ import annotations

import calendar
import os
import re
from datetime import date, datetime, timedelta
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from types import SimpleNamespace
from typing import Any

from workalendar.america import Brazil

CENTAVO = Decimal("0.01")
GRAMA = Decimal("0.001")
ZERO = Decimal("0.00")


# -----------------------------------------------------------------------------
# Dinheiro
# -----------------------------------------------------------------------------
def q2(valor: Any) -> Decimal:
    """
    Arredonda para 2 casas decimais no modo financeiro (ROUND_HALF_UP).

    Aceita int/float/str/Decimal. `None` vira 0,00.
    """
    if valor is None:
        return ZERO
    if not isinstance(valor, Decimal):
        try:
            valor = Decimal(str(valor))
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"Valor monetário inválido: {valor!r}") from exc
    return valor.quantize(CENTAVO, rounding=ROUND_HALF_UP)


def qtd(valor: Any) -> Decimal:
    """Quantidade (kg) como Decimal com 3 casas. `None` vira 0."""
    if valor is None:
        return Decimal("0.000")
    try:
        d = valor if isinstance(valor, Decimal) else Decimal(str(valor))
    except (InvalidOperation, ValueError) as exc:
        raise ValueError(f"Quantidade inválida: {valor!r}") from exc
    return d.quantize(GRAMA, rounding=ROUND_HALF_UP)


def parse_moeda(valor: Any) -> Decimal:
    """
    Converte textos de moeda em Decimal com 2 casas.

    Aceita formatos BR e EN:
    - "R$ 1.234,56"  -> 1234.56
    - "1.234,56"     -> 1234.56
    - "1,234.56"     -> 1234.56
    - "1234,56"      -> 1234.56
    - 1234 / 1234.5  -> 1234.00 / 1234.50

    Regras
    ------
    - Quando há ',' e '.', o separador decimal é o que aparece mais à direita.
    - Só ',' -> vírgula decimal. Só '.' -> ponto decimal.
    - Texto vazio/None -> 0,00. Texto sem dígitos -> ValueError.
    """
    if isinstance(valor, (int, float, Decimal)):
        return q2(valor)
    if valor is None:
        return ZERO

    txt = str(valor).strip()
    if not txt:
        return ZERO

    txt = re.sub(r"[^\d,.\-]", "", txt)
    if not re.search(r"\d", txt):
        raise ValueError(f"Valor monetário inválido: {valor!r}")

    if "," in txt and "." in txt:
        if txt.rfind(",") > txt.rfind("."):
            txt = txt.replace(".", "").replace(",", ".")
        else:
            txt = txt.replace(",", "")
    elif "," in txt:
        txt = txt.replace(",", ".")

    return q2(txt)


def formatar_moeda(valor: Any) -> str:
    """Formata um valor numérico no padrão BR: `R$ 1.234,56`."""
    v = q2(valor)
    s = f"{v:,.2f}"
    s = s.replace(",", "X").replace(".", ",").replace("X", ".")
    return f"R$ {s}"


# -----------------------------------------------------------------------------
# Datas
# -----------------------------------------------------------------------------
def coerce_data(value: Any = None) -> date:
    """
    Normaliza 'value' para datetime.date.
    Aceita: None, date, datetime, 'YYYY-MM-DD', 'YYYY-MM-DDTHH:MM:SS', 'DD/MM/YYYY', 'DD-MM-YYYY'.
    Se vier vazio/None, retorna a data de hoje.
    """
    if value is None or (isinstance(value, str) and value.strip() == ""):
        return date.today()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        s = value.strip()
        for fmt in ("%Y-%m-%d", "%d/%m/%Y", "%d-%m-%Y"):
            try:
                return datetime.strptime(s[:10], fmt).date()
            except ValueError:
                continue
    raise ValueError(f"Data inválida: {value!r}")


def adicionar_meses(dt: date, meses: int) -> date:
    """Soma meses preservando fim de mês quando aplicável (31/01 + 1 -> 28/02)."""
    y = dt.year + (dt.month - 1 + meses) // 12
    m = (dt.month - 1 + meses) % 12 + 1
    ultimo = calendar.monthrange(y, m)[1]
    return date(y, m, min(dt.day, ultimo))


_CALENDARIO = Brazil()


def proximo_dia_util(dt: date) -> date:
    """Retorna `dt` se for dia útil (calendário nacional); senão o próximo dia útil."""
    d = dt
    while not _CALENDARIO.is_working_day(d):
        d += timedelta(days=1)
    return d


# -----------------------------------------------------------------------------
# Infraestrutura
# -----------------------------------------------------------------------------
def padrao_like(termo: str) -> str:
    """`%termo%` para `LIKE ... ESCAPE '\\'`, com `%`, `_` e `\\` literais."""
    escapado = termo.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escapado}%"


def resolve_db_path(obj: Any) -> str:
    """
    Normaliza o 'caminho do banco' aceitando string/Path/objetos de config.
    Retorna sempre uma string com o path.
    Levanta TypeError se não conseguir resolver.
    """
    if obj is None:
        raise TypeError("Caminho do banco não informado.")

    if isinstance(obj, (str, os.PathLike)):
        return str(obj)

    if isinstance(obj, SimpleNamespace):
        for key in ("db_path", "caminho_banco", "database"):
            if hasattr(obj, key):
                return str(getattr(obj, key))

    for key in ("db_path", "caminho_banco", "database"):
        if hasattr(obj, key):
            return str(getattr(obj, key))

    raise TypeError(f"expected str, bytes or os.PathLike object, got {type(obj).__name__}")


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
