"""
Módulo Coletas
==============

Registro, edição e exclusão de coletas, com as consequências financeiras
e de estoque na **mesma transação**.

Fluxo de `registrar_coleta`
---------------------------
1. Precificação: contrato ativo do cliente na data da coleta (ou o
   `contrato_id` informado). Sem contrato: `NoActiveContract`, a menos que
   o chamador passe `manual=` (fallback explícito, ver `precificacao_manual`).
2. Grava a coleta com o snapshot (modo, fator/preço, resultado).
3. `Compra` com valor > 0: lançamento `debito` do valor pago, parcela única
   vencendo na data da coleta, vinculado à coleta.
4. Com `fluxo`: movimentação de estoque vinculada (upsert por coleta).

Edição
------
- Usa o **snapshot** gravado, não o contrato atual (`reprecificar=True`
  força nova resolução de contrato).
- Refaz o lançamento (no lugar; parcela paga alterada -> `InstallmentLocked`)
  e a movimentação (mesmo id).
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Optional

from services.estoque import FluxoColeta
from services.precificacao import (
    MODO_COMPRA,
    MODO_TROCA,
    Precificacao,
    PrecificacaoManual,
    precificar,
)
from shared.erros import NoActiveContract, NotFound, ValidationError
from utils.utils import coerce_data, q2, qtd

logger = logging.getLogger(__name__)

__all__ = ["_ColetasLedgerMixin"]


def _numero_doc(numero_coleta: int) -> str:
    return f"{int(numero_coleta):06d}"


def _fonte_snapshot(coleta: Any) -> PrecificacaoManual:
    """Parâmetros de preço gravados na coleta."""
    return PrecificacaoManual(
        modo=coleta["tipo_coleta"],
        fator=int(coleta["fator"]) if coleta["fator"] is not None else None,
        valor_unitario=q2(coleta["valor_compra"]) if coleta["valor_compra"] is not None else None,
    )


class _ColetasLedgerMixin:
    """Coletas: precificação + lançamento + movimentação de estoque."""

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _precificar_coleta(
        self,
        conn: Any,
        cliente_id: int,
        data_coleta: Any,
        quantidade: Any,
        *,
        contrato_id: Optional[int],
        manual: Optional[PrecificacaoManual],
    ) -> Precificacao:
        try:
            contrato: Any = self._resolver_contrato_tx(conn, cliente_id, hoje=data_coleta, contrato_id=contrato_id)
        except NoActiveContract:
            if manual is None:
                raise
            logger.info("Cliente %s sem contrato ativo: usando precificação manual %s.", cliente_id, manual)
            contrato = manual
        return precificar(contrato, quantidade)

    def _campos_preco(self, p: Precificacao, quantidade_entregue: Any) -> Dict[str, Any]:
        entregue = None
        if p.modo == MODO_TROCA:
            entregue = float(qtd(quantidade_entregue)) if quantidade_entregue is not None else float(p.unidades_entregues)
        return {
            "contrato_id": p.contrato_id,
            "tipo_coleta": p.modo,
            "fator": p.fator,
            "valor_compra": float(p.valor_unitario) if p.valor_unitario is not None else None,
            "quantidade_coletada": float(p.quantidade),
            "quantidade_entregue": entregue,
            "total_pago": float(p.valor_pago) if p.modo == MODO_COMPRA else 0.0,
        }

    def _sincronizar_lancamento_tx(self, conn: Any, coleta: Any, usuario: Optional[str]) -> Optional[int]:
        """Garante o lançamento da coleta coerente com o snapshot atual."""
        existente = self.cd_repo.obter_lancamento_por_coleta(conn, coleta["id"])
        total = q2(coleta["total_pago"])
        precisa = coleta["tipo_coleta"] == MODO_COMPRA and total > 0

        if not precisa:
            if existente is not None:
                self._excluir_lancamento_tx(conn, existente["id"], via_coleta=True)
            return None

        data = coerce_data(coleta["data_coleta"]).isoformat()
        if existente is None:
            cliente = self.cadastros_repo.obter_cliente(conn, coleta["cliente_id"])
            criado = self._criar_lancamento_tx(
                conn,
                tipo="debito",
                contraparte={
                    "nome": cliente["razao_social"],
                    "fantasia": cliente["nome_fantasia"],
                    "cnpj_cpf": cliente["cnpj_cpf"],
                    "cliente_id": cliente["id"],
                },
                total_value=total,
                issue_date=data,
                single_due_date=data,
                description=f"Coleta nº {_numero_doc(coleta['numero_coleta'])}",
                document_number=_numero_doc(coleta["numero_coleta"]),
                coleta_id=coleta["id"],
                usuario=usuario,
            )
            return criado.id

        self._editar_lancamento_tx(
            conn,
            existente["id"],
            via_coleta=True,
            cabecalho={"issue_date": data},
            total_value=total,
            down_payment=0,
            installments=[],
            single_due_date=data,
        )
        return int(existente["id"])

    def _sincronizar_estoque_tx(self, conn: Any, coleta: Any, usuario: Optional[str]) -> Optional[int]:
        if coleta["produto_coletado_id"] is None:
            return None
        fluxo = FluxoColeta(
            produto_coletado_id=coleta["produto_coletado_id"],
            direcao=coleta["fluxo_direcao"] or "entrada",
            produto_entregue_id=coleta["produto_entregue_id"],
        )
        linhas = fluxo.linhas(coleta["tipo_coleta"], coleta["quantidade_coletada"], coleta["quantidade_entregue"])
        return self._vincular_tx(conn, coleta["id"], fluxo.direcao, linhas, usuario=usuario)["id"]

    @staticmethod
    def _campos_fluxo(fluxo: Optional[FluxoColeta]) -> Dict[str, Any]:
        if fluxo is None:
            return {}
        return {
            "fluxo_direcao": fluxo.direcao,
            "produto_coletado_id": fluxo.produto_coletado_id,
            "produto_entregue_id": fluxo.produto_entregue_id,
        }

    # ------------------------------------------------------------------
    # API pública
    # ------------------------------------------------------------------
    def registrar_coleta(
        self,
        cliente_id: int,
        data_coleta: Any,
        quantidade_coletada: Any,
        *,
        contrato_id: Optional[int] = None,
        manual: Optional[PrecificacaoManual] = None,
        fluxo: Optional[FluxoColeta] = None,
        quantidade_entregue: Any = None,
        observacao: Optional[str] = None,
        usuario: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Registra a coleta e deriva lançamento/movimentação.

        Retorna:
            dict com coleta_id, numero_coleta, precificacao, lancamento_id,
            movimentacao_id.
        """
        def _op(conn: Any) -> Dict[str, Any]:
            cliente = self.cadastros_repo.obter_cliente(conn, int(cliente_id))
            if cliente is None:
                raise NotFound(f"Cliente {cliente_id} não encontrado.", cliente_id=cliente_id)
            try:
                data = coerce_data(data_coleta)
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc

            preco = self._precificar_coleta(
                conn, cliente_id, data, quantidade_coletada, contrato_id=contrato_id, manual=manual,
            )
            numero = self.coletas_repo.proximo_numero(conn)
            coleta_id = self.coletas_repo.inserir(
                conn,
                numero_coleta=numero,
                cliente_id=int(cliente_id),
                cliente_nome=cliente["razao_social"],
                data_coleta=data.isoformat(),
                observacao=observacao or preco.observacao,
                user_id=self._usuario(usuario),
                **self._campos_preco(preco, quantidade_entregue),
                **self._campos_fluxo(fluxo),
            )
            coleta = self.coletas_repo.obter(conn, coleta_id)
            lancamento_id = self._sincronizar_lancamento_tx(conn, coleta, usuario)
            mov_id = self._sincronizar_estoque_tx(conn, coleta, usuario)
            logger.info(
                "Coleta %s (nº %s) registrada: %s resultado=%s",
                coleta_id, numero, preco.modo, preco.resultado,
            )
            return {
                "coleta_id": coleta_id,
                "numero_coleta": numero,
                "precificacao": preco,
                "lancamento_id": lancamento_id,
                "movimentacao_id": mov_id,
            }

        return self._executar_mutacao(
            "create_coleta", _op,
            detalhes={"cliente_id": cliente_id, "quantidade": str(quantidade_coletada)},
            usuario=usuario,
            resumo=lambda r: {"coleta_id": r["coleta_id"], "lancamento_id": r["lancamento_id"]},
        )

    def editar_coleta(
        self,
        coleta_id: int,
        *,
        quantidade_coletada: Any = None,
        data_coleta: Any = None,
        quantidade_entregue: Any = None,
        observacao: Optional[str] = None,
        fluxo: Optional[FluxoColeta] = None,
        reprecificar: bool = False,
        manual: Optional[PrecificacaoManual] = None,
        usuario: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Edita a coleta e refaz lançamento/movimentação vinculados.

        Sem `reprecificar`, vale o snapshot gravado na coleta. Com
        `reprecificar=True` o contrato ativo é resolvido de novo; `manual`
        só é usado se o cliente continuar sem contrato.
        """
        def _op(conn: Any) -> Dict[str, Any]:
            atual = self.coletas_repo.obter(conn, int(coleta_id))
            if atual is None:
                raise NotFound(f"Coleta {coleta_id} não encontrada.", coleta_id=coleta_id)
            try:
                data = coerce_data(data_coleta if data_coleta is not None else atual["data_coleta"])
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc
            quantidade = quantidade_coletada if quantidade_coletada is not None else atual["quantidade_coletada"]

            if reprecificar:
                preco = self._precificar_coleta(
                    conn, atual["cliente_id"], data, quantidade, contrato_id=None, manual=manual,
                )
            else:
                preco = precificar(_fonte_snapshot(atual), quantidade)
                if atual["contrato_id"] is not None:
                    preco = replace(preco, contrato_id=atual["contrato_id"], manual=False)

            entregue = quantidade_entregue
            if entregue is None and quantidade_coletada is None and not reprecificar:
                entregue = atual["quantidade_entregue"]

            campos = {
                "data_coleta": data.isoformat(),
                **self._campos_preco(preco, entregue),
                **self._campos_fluxo(fluxo),
            }
            if observacao is not None:
                campos["observacao"] = observacao
            self.coletas_repo.atualizar(conn, int(coleta_id), campos)

            coleta = self.coletas_repo.obter(conn, int(coleta_id))
            lancamento_id = self._sincronizar_lancamento_tx(conn, coleta, usuario)
            mov_id = self._sincronizar_estoque_tx(conn, coleta, usuario)
            logger.info("Coleta %s editada: %s resultado=%s", coleta_id, preco.modo, preco.resultado)
            return {
                "coleta_id": int(coleta_id),
                "precificacao": preco,
                "lancamento_id": lancamento_id,
                "movimentacao_id": mov_id,
            }

        return self._executar_mutacao(
            "update_coleta", _op,
            detalhes={"coleta_id": coleta_id},
            usuario=usuario,
            resumo=lambda r: {"lancamento_id": r["lancamento_id"], "movimentacao_id": r["movimentacao_id"]},
        )

    def excluir_coleta(self, coleta_id: int, *, usuario: Optional[str] = None) -> None:
        """Remove coleta, movimentação e lançamento (recusa se houver pagamentos)."""
        def _op(conn: Any) -> None:
            if self.coletas_repo.obter(conn, int(coleta_id)) is None:
                raise NotFound(f"Coleta {coleta_id} não encontrada.", coleta_id=coleta_id)
            lanc = self.cd_repo.obter_lancamento_por_coleta(conn, int(coleta_id))
            if lanc is not None:
                self._excluir_lancamento_tx(conn, lanc["id"], via_coleta=True)
            mov = self.estoque_repo.obter_por_coleta(conn, int(coleta_id))
            if mov is not None:
                self.estoque_repo.excluir_movimentacao(conn, mov["id"])
            self.coletas_repo.excluir(conn, int(coleta_id))
            logger.info("Coleta %s excluída.", coleta_id)

        self._executar_mutacao(
            "delete_coleta", _op, detalhes={"coleta_id": coleta_id}, usuario=usuario,
        )
