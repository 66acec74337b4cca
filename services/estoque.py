"""
Módulo Estoque
==============

Movimentações de estoque (`entrada_saida` + itens) e o vínculo com coletas.

Vínculo com coleta
------------------
- Uma movimentação por coleta (`origem='coleta'`, `coleta_id` único).
- `vincular_movimentacao_coleta` é um upsert por `coleta_id`: a segunda
  chamada atualiza a mesma linha (mesmo id) ou não faz nada se os dados
  não mudaram.
- Linhas com quantidade <= 0 são descartadas; sem linhas, a movimentação
  vinculada é removida.
- Saídas vinculadas a coleta **não** checam saldo.
- Movimentações de coleta só mudam pela coleta (`LinkedToCollection`).

Movimentações manuais
---------------------
- Saída checa o saldo em `v_saldo_produtos` **dentro** da transação de
  escrita: as linhas são gravadas e o saldo é relido antes do COMMIT. Saldo
  negativo -> `InsufficientStock` e ROLLBACK.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import pandas as pd

from shared.erros import InsufficientStock, LinkedToCollection, NotFound, ValidationError
from utils.utils import coerce_data, qtd

logger = logging.getLogger(__name__)

DIRECOES = ("entrada", "saida")
ORIGEM_MANUAL = "manual"
ORIGEM_COLETA = "coleta"


@dataclass(frozen=True)
class LinhaMovimento:
    produto_id: int
    quantidade: Decimal

    @classmethod
    def de(cls, obj: Any) -> "LinhaMovimento":
        """Aceita `LinhaMovimento`, mapping (`produto_id`/`product_id`, `quantidade`/`quantity`) ou par."""
        if isinstance(obj, LinhaMovimento):
            return obj
        if isinstance(obj, Mapping):
            pid = obj.get("produto_id", obj.get("product_id"))
            q = obj.get("quantidade", obj.get("quantity"))
        else:
            pid, q = obj
        if pid is None:
            raise ValidationError("Linha de movimentação sem produto.")
        try:
            return cls(produto_id=int(pid), quantidade=qtd(q))
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc


@dataclass(frozen=True)
class FluxoColeta:
    """
    Como uma coleta movimenta o estoque.

    - `direcao`: 'entrada' (empresa recebe o produto) ou 'saida'.
    - `produto_coletado_id`: produto da linha com a quantidade coletada.
    - `produto_entregue_id`: em Troca, produto da segunda linha com a
      quantidade entregue ao cliente (opcional).
    """
    produto_coletado_id: int
    direcao: str = "entrada"
    produto_entregue_id: Optional[int] = None

    def __post_init__(self) -> None:
        if self.direcao not in DIRECOES:
            raise ValidationError(f"Direção inválida: {self.direcao!r}. Use {list(DIRECOES)}")

    def linhas(self, modo: str, quantidade_coletada: Any, quantidade_entregue: Any = None) -> List[LinhaMovimento]:
        out = [LinhaMovimento(int(self.produto_coletado_id), qtd(quantidade_coletada))]
        if modo == "Troca" and self.produto_entregue_id is not None and quantidade_entregue is not None:
            out.append(LinhaMovimento(int(self.produto_entregue_id), qtd(quantidade_entregue)))
        return out


def _validar_direcao(direcao: str) -> str:
    if direcao not in DIRECOES:
        raise ValidationError(f"Direção inválida: {direcao!r}. Use {list(DIRECOES)}")
    return direcao


def _assinatura(linhas: Iterable[Any]) -> Tuple[Tuple[int, Decimal], ...]:
    return tuple(sorted((int(l[0]), qtd(l[1])) for l in linhas))


class _EstoqueLedgerMixin:
    """Movimentações de estoque manuais e vinculadas a coletas."""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _validar_produtos(self, conn: Any, linhas: Sequence[LinhaMovimento]) -> None:
        for l in linhas:
            if self.cadastros_repo.obter_produto(conn, l.produto_id) is None:
                raise NotFound(f"Produto {l.produto_id} não encontrado.", produto_id=l.produto_id)

    def _saldos_tx(self, conn: Any, produto_ids: Iterable[int]) -> Dict[int, Decimal]:
        return {
            int(r["produto_id"]): qtd(r["saldo_atual"])
            for r in self.estoque_repo.saldos_de(conn, sorted(set(produto_ids)))
        }

    def _checar_saldo_tx(
        self,
        conn: Any,
        produto_ids: Iterable[int],
        antes: Optional[Dict[int, Decimal]] = None,
    ) -> None:
        """
        Relê o saldo (já com as linhas desta transação) e rejeita negativos.

        Com `antes`, só rejeita o produto cujo saldo ficou negativo **e** caiu
        nesta operação; saldo que já era negativo e não mudou passa.
        """
        for row in self.estoque_repo.saldos_de(conn, sorted(set(produto_ids))):
            saldo = qtd(row["saldo_atual"])
            if saldo >= 0:
                continue
            if antes is not None and saldo >= antes.get(int(row["produto_id"]), saldo):
                continue
            raise InsufficientStock(
                f"Saldo insuficiente de '{row['produto_nome']}': faltam {-saldo} após a operação.",
                produto_id=row["produto_id"],
            )

    def _carregar_manual(self, conn: Any, mov_id: int) -> Any:
        row = self.estoque_repo.obter_movimentacao(conn, int(mov_id))
        if row is None:
            raise NotFound(f"Movimentação {mov_id} não encontrada.", mov_id=mov_id)
        if row["origem"] == ORIGEM_COLETA:
            raise LinkedToCollection(
                "Movimentação gerada por coleta: altere pela coleta.", coleta_id=row["coleta_id"]
            )
        return row

    # ------------------------------------------------------------------
    # Vínculo com coleta
    # ------------------------------------------------------------------
    def _vincular_tx(
        self,
        conn: Any,
        coleta_id: int,
        direcao: str,
        linhas: Iterable[Any],
        *,
        usuario: Optional[str] = None,
    ) -> Dict[str, Any]:
        coleta = self.coletas_repo.obter(conn, int(coleta_id))
        if coleta is None:
            raise NotFound(f"Coleta {coleta_id} não encontrada.", coleta_id=coleta_id)
        _validar_direcao(direcao)

        validas = [l for l in (LinhaMovimento.de(x) for x in linhas) if l.quantidade > 0]
        self._validar_produtos(conn, validas)
        existente = self.estoque_repo.obter_por_coleta(conn, int(coleta_id))

        if not validas:
            if existente is None:
                return {"id": None, "acao": "nenhuma"}
            self.estoque_repo.excluir_movimentacao(conn, existente["id"])
            logger.info("Movimentação %s da coleta %s removida (sem linhas).", existente["id"], coleta_id)
            return {"id": int(existente["id"]), "acao": "removida"}

        numero = f"{int(coleta['numero_coleta']):06d}"
        cabecalho = {
            "tipo": direcao,
            "data": coerce_data(coleta["data_coleta"]).isoformat(),
            "cliente_id": coleta["cliente_id"],
            "document_number": numero,
            "observacao": f"Coleta nº {numero}",
        }
        novas = [(l.produto_id, l.quantidade) for l in validas]

        if existente is None:
            mov_id = self.estoque_repo.inserir_movimentacao(
                conn, origem=ORIGEM_COLETA, coleta_id=int(coleta_id),
                user_id=self._usuario(usuario), **cabecalho,
            )
            self.estoque_repo.substituir_itens(conn, mov_id, novas)
            logger.info("Movimentação %s criada para coleta %s.", mov_id, coleta_id)
            return {"id": mov_id, "acao": "criada"}

        mov_id = int(existente["id"])
        atuais = [(r["produto_id"], r["quantidade"]) for r in self.estoque_repo.listar_itens(conn, mov_id)]
        mesmo_cabecalho = all(existente[k] == v for k, v in cabecalho.items())
        if mesmo_cabecalho and _assinatura(atuais) == _assinatura(novas):
            return {"id": mov_id, "acao": "inalterada"}

        self.estoque_repo.atualizar_movimentacao(conn, mov_id, **cabecalho)
        self.estoque_repo.substituir_itens(conn, mov_id, novas)
        logger.info("Movimentação %s da coleta %s atualizada.", mov_id, coleta_id)
        return {"id": mov_id, "acao": "atualizada"}

    def vincular_movimentacao_coleta(
        self,
        coleta_id: int,
        direcao: str,
        linhas: Iterable[Any],
        *,
        usuario: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Cria/atualiza a movimentação da coleta (upsert por `coleta_id`).

        Retorna:
            dict {"id", "acao"} com acao em criada/atualizada/inalterada/removida/nenhuma.
        """
        linhas = list(linhas)
        return self._executar_mutacao(
            "link_stock_movement",
            lambda conn: self._vincular_tx(conn, coleta_id, direcao, linhas, usuario=usuario),
            detalhes={"coleta_id": coleta_id, "direcao": direcao},
            usuario=usuario,
            resumo=lambda r: dict(r),
        )

    # ------------------------------------------------------------------
    # Movimentações manuais
    # ------------------------------------------------------------------
    def _linhas_manuais(self, linhas: Iterable[Any]) -> List[LinhaMovimento]:
        out = [LinhaMovimento.de(x) for x in linhas]
        if not out:
            raise ValidationError("Informe ao menos um produto.")
        for l in out:
            if l.quantidade <= 0:
                raise ValidationError(f"Quantidade do produto {l.produto_id} deve ser maior que zero.")
        return out

    def criar_movimentacao(
        self,
        tipo: str,
        linhas: Iterable[Any],
        *,
        data: Any = None,
        cliente_id: Optional[int] = None,
        document_number: Optional[str] = None,
        observacao: Optional[str] = None,
        usuario: Optional[str] = None,
    ) -> int:
        """Movimentação manual. Saída sem saldo -> InsufficientStock (nada é gravado)."""
        linhas = list(linhas)

        def _op(conn: Any) -> int:
            _validar_direcao(tipo)
            itens = self._linhas_manuais(linhas)
            self._validar_produtos(conn, itens)
            mov_id = self.estoque_repo.inserir_movimentacao(
                conn,
                tipo=tipo,
                origem=ORIGEM_MANUAL,
                data=coerce_data(data).isoformat(),
                cliente_id=cliente_id,
                document_number=document_number,
                observacao=observacao,
                user_id=self._usuario(usuario),
            )
            self.estoque_repo.substituir_itens(conn, mov_id, [(l.produto_id, l.quantidade) for l in itens])
            if tipo == "saida":
                self._checar_saldo_tx(conn, (l.produto_id for l in itens))
            logger.info("Movimentação manual %s (%s) criada.", mov_id, tipo)
            return mov_id

        return self._executar_mutacao(
            "create_movimentacao", _op,
            detalhes={"tipo": tipo}, usuario=usuario,
            resumo=lambda mov_id: {"movimentacao_id": mov_id},
        )

    def editar_movimentacao(
        self,
        mov_id: int,
        *,
        tipo: Optional[str] = None,
        linhas: Optional[Iterable[Any]] = None,
        data: Any = None,
        cliente_id: Optional[int] = None,
        document_number: Optional[str] = None,
        observacao: Optional[str] = None,
        usuario: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Edita movimentação manual. Campos `None` ficam como estão."""
        linhas = list(linhas) if linhas is not None else None

        def _op(conn: Any) -> Dict[str, Any]:
            row = self._carregar_manual(conn, mov_id)
            novo_tipo = _validar_direcao(tipo or row["tipo"])
            itens = None
            if linhas is not None:
                itens = self._linhas_manuais(linhas)
                self._validar_produtos(conn, itens)
            afetados = [r["produto_id"] for r in self.estoque_repo.listar_itens(conn, mov_id)]
            afetados += [l.produto_id for l in itens or ()]
            antes = self._saldos_tx(conn, afetados)

            self.estoque_repo.atualizar_movimentacao(
                conn,
                mov_id,
                tipo=novo_tipo,
                data=coerce_data(data).isoformat() if data is not None else row["data"],
                cliente_id=cliente_id if cliente_id is not None else row["cliente_id"],
                document_number=document_number if document_number is not None else row["document_number"],
                observacao=observacao if observacao is not None else row["observacao"],
            )
            if itens is not None:
                self.estoque_repo.substituir_itens(conn, mov_id, [(l.produto_id, l.quantidade) for l in itens])
            # entrada reduzida ou trocada por saída também derruba o saldo
            self._checar_saldo_tx(conn, afetados, antes)
            return {"id": int(mov_id), "tipo": novo_tipo}

        return self._executar_mutacao(
            "update_movimentacao", _op, detalhes={"movimentacao_id": mov_id}, usuario=usuario,
        )

    def excluir_movimentacao(self, mov_id: int, *, usuario: Optional[str] = None) -> None:
        def _op(conn: Any) -> None:
            self._carregar_manual(conn, mov_id)
            afetados = [r["produto_id"] for r in self.estoque_repo.listar_itens(conn, mov_id)]
            antes = self._saldos_tx(conn, afetados)
            self.estoque_repo.excluir_movimentacao(conn, mov_id)
            self._checar_saldo_tx(conn, afetados, antes)
            logger.info("Movimentação manual %s excluída.", mov_id)

        self._executar_mutacao(
            "delete_movimentacao", _op, detalhes={"movimentacao_id": mov_id}, usuario=usuario,
        )

    # ------------------------------------------------------------------
    # Leitura
    # ------------------------------------------------------------------
    def obter_movimentacao(self, mov_id: int) -> Dict[str, Any]:
        """Cabeçalho + linhas de uma movimentação."""
        with self.estoque_repo._conn_ctx(None) as conn:
            row = self.estoque_repo.obter_movimentacao(conn, int(mov_id))
            if row is None:
                raise NotFound(f"Movimentação {mov_id} não encontrada.", mov_id=mov_id)
            itens = self.estoque_repo.listar_itens(conn, int(mov_id))
        mov = dict(row)
        mov["linhas"] = [LinhaMovimento(int(r["produto_id"]), qtd(r["quantidade"])) for r in itens]
        return mov

    def saldo_produtos(self) -> pd.DataFrame:
        """Saldo atual por produto (`v_saldo_produtos`)."""
        return self.estoque_repo.saldo_produtos_df()


__all__ = [
    "DIRECOES",
    "ORIGEM_MANUAL",
    "ORIGEM_COLETA",
    "LinhaMovimento",
    "FluxoColeta",
    "_EstoqueLedgerMixin",
]
