"""
Módulo Precificação
===================

Resolve o contrato ativo de um cliente e calcula o resultado de uma coleta
conforme o modo de precificação.

Modos
-----
- `Troca` ... produto novo entregue: `floor(quantidade / fator)` unidades.
- `Compra` .. pagamento por kg: `quantidade * preço` (2 casas, HALF_UP).
- `Doação` .. sem contrapartida: preço 0, resultado 0 e uma observação.

Seleção do contrato
-------------------
1. `contrato_id` explícito tem prioridade (precisa ser do mesmo cliente).
2. Senão: contratos do cliente com status `Ativo` e vigentes
   (`data_fim` vazia ou >= hoje). Nenhum -> `NoActiveContract`.
3. Vários -> maior `data_fim` (sem `data_fim` conta como a mais distante);
   empate -> criado por último.

Fallback manual
---------------
`NoActiveContract` não é resolvido aqui. O chamador que quiser seguir sem
contrato usa explicitamente `precificacao_manual()` (padrão: Troca, fator 6).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_FLOOR
from typing import Any, Iterable, List, Optional, Union

from shared.config import FATOR_TROCA_PADRAO
from shared.erros import NoActiveContract, NotFound, ValidationError
from utils.utils import ZERO, coerce_data, q2, qtd

logger = logging.getLogger(__name__)

MODO_TROCA = "Troca"
MODO_COMPRA = "Compra"
MODO_DOACAO = "Doação"
MODOS = (MODO_TROCA, MODO_COMPRA, MODO_DOACAO)

STATUS_CONTRATO_ATIVO = "Ativo"

OBS_DOACAO = "Doação: coleta sem contrapartida financeira ou de produto."


@dataclass(frozen=True)
class Contrato:
    id: int
    cliente_id: int
    tipo_coleta: str
    fator_troca: Optional[int]
    valor_coleta: Optional[Decimal]
    data_inicio: Optional[date]
    data_fim: Optional[date]
    status: str
    created_at: Optional[str] = None

    @classmethod
    def de_row(cls, row: Any) -> "Contrato":
        return cls(
            id=int(row["id"]),
            cliente_id=int(row["cliente_id"]),
            tipo_coleta=row["tipo_coleta"],
            fator_troca=int(row["fator_troca"]) if row["fator_troca"] is not None else None,
            valor_coleta=q2(row["valor_coleta"]) if row["valor_coleta"] is not None else None,
            data_inicio=coerce_data(row["data_inicio"]) if row["data_inicio"] else None,
            data_fim=coerce_data(row["data_fim"]) if row["data_fim"] else None,
            status=row["status"],
            created_at=row["created_at"],
        )

    def vigente_em(self, dia: date) -> bool:
        return self.status == STATUS_CONTRATO_ATIVO and (self.data_fim is None or self.data_fim >= dia)


@dataclass(frozen=True)
class PrecificacaoManual:
    """Parâmetros informados à mão quando o cliente não tem contrato ativo."""
    modo: str = MODO_TROCA
    fator: Optional[int] = FATOR_TROCA_PADRAO
    valor_unitario: Optional[Decimal] = None


MANUAL_PADRAO = PrecificacaoManual()


@dataclass(frozen=True)
class Precificacao:
    modo: str
    fator: Optional[int]
    valor_unitario: Optional[Decimal]
    quantidade: Decimal
    resultado: Decimal
    observacao: Optional[str] = None
    contrato_id: Optional[int] = None
    manual: bool = False

    @property
    def unidades_entregues(self) -> int:
        """Unidades de produto novo (só em Troca)."""
        return int(self.resultado) if self.modo == MODO_TROCA else 0

    @property
    def valor_pago(self) -> Decimal:
        """Valor em R$ (só em Compra)."""
        return self.resultado if self.modo == MODO_COMPRA else ZERO


def _fator_inteiro(valor: Any) -> Optional[int]:
    """Fator de troca como int; rejeita texto, frações e não positivos."""
    if valor is None:
        return None
    try:
        fator = Decimal(str(valor).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValidationError(f"Fator de troca inválido: {valor!r}.") from exc
    if not fator.is_finite() or fator != fator.to_integral_value() or fator <= 0:
        raise ValidationError(f"Fator de troca deve ser inteiro positivo (recebido {valor!r}).")
    return int(fator)


def precificacao_manual(
    modo: str = MODO_TROCA,
    fator: Optional[int] = FATOR_TROCA_PADRAO,
    valor_unitario: Any = None,
) -> PrecificacaoManual:
    """Caminho manual explícito. Sem argumentos: Troca com fator 6."""
    if modo not in MODOS:
        raise ValidationError(f"Modo de precificação inválido: {modo!r}. Use {list(MODOS)}")
    return PrecificacaoManual(
        modo=modo,
        fator=_fator_inteiro(fator),
        valor_unitario=q2(valor_unitario) if valor_unitario is not None else None,
    )


def escolher_contrato(contratos: Iterable[Contrato], hoje: Optional[date] = None) -> Contrato:
    """Aplica filtro de vigência e a regra de desempate. Função pura."""
    dia = coerce_data(hoje)
    vigentes: List[Contrato] = [c for c in contratos if c.vigente_em(dia)]
    if not vigentes:
        raise NoActiveContract("Cliente sem contrato ativo.")
    if len(vigentes) > 1:
        logger.warning(
            "Cliente %s com %d contratos ativos; usando o de maior data_fim.",
            vigentes[0].cliente_id, len(vigentes),
        )
    return max(
        vigentes,
        key=lambda c: (c.data_fim or date.max, c.created_at or "", c.id),
    )


def precificar(fonte: Union[Contrato, PrecificacaoManual], quantidade: Any) -> Precificacao:
    """
    Calcula o resultado da coleta para `quantidade` kg.

    A quantidade é arredondada para 3 casas (gramas) antes de qualquer conta,
    a mesma precisão gravada no snapshot da coleta. Em Troca o piso é
    aplicado sobre esse valor: 5,9996 kg viram 6,000 kg e, com fator 6, 1 unidade.

    Lança:
        ValidationError: quantidade negativa, fator <= 0 em Troca,
        preço ausente/negativo em Compra, modo desconhecido.
    """
    try:
        kg = qtd(quantidade)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    if kg < 0:
        raise ValidationError("Quantidade coletada não pode ser negativa.")

    if isinstance(fonte, Contrato):
        modo, fator, preco = fonte.tipo_coleta, fonte.fator_troca, fonte.valor_coleta
        contrato_id, manual = fonte.id, False
    else:
        modo, fator, preco = fonte.modo, fonte.fator, fonte.valor_unitario
        contrato_id, manual = None, True

    if modo == MODO_TROCA:
        fator = _fator_inteiro(fator)
        if fator is None:
            raise ValidationError("Fator de troca deve ser inteiro positivo.")
        unidades = (kg / Decimal(fator)).to_integral_value(rounding=ROUND_FLOOR)
        return Precificacao(
            modo=modo, fator=fator, valor_unitario=None, quantidade=kg,
            resultado=Decimal(int(unidades)), contrato_id=contrato_id, manual=manual,
        )

    if modo == MODO_COMPRA:
        if preco is None:
            raise ValidationError("Preço por kg é obrigatório no modo Compra.")
        preco = q2(preco)
        if preco < 0:
            raise ValidationError("Preço por kg não pode ser negativo.")
        return Precificacao(
            modo=modo, fator=None, valor_unitario=preco, quantidade=kg,
            resultado=q2(kg * preco), contrato_id=contrato_id, manual=manual,
        )

    if modo == MODO_DOACAO:
        return Precificacao(
            modo=modo, fator=None, valor_unitario=ZERO, quantidade=kg,
            resultado=ZERO, observacao=OBS_DOACAO, contrato_id=contrato_id, manual=manual,
        )

    raise ValidationError(f"Modo de precificação inválido: {modo!r}. Use {list(MODOS)}")


class _PrecificacaoLedgerMixin:
    """Resolução do contrato ativo (leitura pura, sem transação de escrita)."""

    def _resolver_contrato_tx(
        self,
        conn: Any,
        cliente_id: int,
        *,
        hoje: Any = None,
        contrato_id: Optional[int] = None,
    ) -> Contrato:
        if contrato_id is not None:
            row = self.cadastros_repo.obter_contrato(conn, int(contrato_id))
            if row is None:
                raise NotFound(f"Contrato {contrato_id} não encontrado.", contrato_id=contrato_id)
            contrato = Contrato.de_row(row)
            if contrato.cliente_id != int(cliente_id):
                raise ValidationError("Contrato informado não pertence ao cliente.")
            return contrato

        if self.cadastros_repo.obter_cliente(conn, int(cliente_id)) is None:
            raise NotFound(f"Cliente {cliente_id} não encontrado.", cliente_id=cliente_id)
        rows = self.cadastros_repo.listar_contratos_cliente(conn, int(cliente_id))
        return escolher_contrato((Contrato.de_row(r) for r in rows), hoje)

    def resolver_contrato_ativo(
        self,
        cliente_id: int,
        *,
        hoje: Any = None,
        contrato_id: Optional[int] = None,
    ) -> Contrato:
        """
        Retorna o contrato que precifica as coletas do cliente em `hoje`.

        Lança:
            NoActiveContract: cliente sem contrato ativo/vigente.
            NotFound: cliente ou contrato explícito inexistente.
        """
        with self.cadastros_repo._conn_ctx(None) as conn:
            contrato = self._resolver_contrato_tx(conn, cliente_id, hoje=hoje, contrato_id=contrato_id)
        logger.debug("Contrato %s resolvido para cliente %s", contrato.id, cliente_id)
        return contrato


__all__ = [
    "MODO_TROCA",
    "MODO_COMPRA",
    "MODO_DOACAO",
    "MODOS",
    "OBS_DOACAO",
    "Contrato",
    "PrecificacaoManual",
    "MANUAL_PADRAO",
    "Precificacao",
    "precificacao_manual",
    "escolher_contrato",
    "precificar",
    "_PrecificacaoLedgerMixin",
]
