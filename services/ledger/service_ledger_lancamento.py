# services/ledger/service_ledger_lancamento.py
"""
Lançamentos financeiros (crédito/débito) e suas parcelas.

Regras de montagem da agenda:
- Entrada = 0 e nenhuma parcela informada: uma única parcela nº 1 com
  vencimento em `single_due_date` (obrigatório) e valor = total.
- Entrada > 0: parcela nº 0 vencendo na data de emissão com o valor da
  entrada; o restante vem da agenda informada (nº 1..N, valor e data).
- Entrada = 0 com agenda informada: a agenda é usada como veio.
- Sempre: `entrada + Σ parcelas == total` ao centavo, senão
  `ScheduleMismatch`. Nada é gravado em caso de erro (uma transação).

A montagem não calcula divisões: ela só valida. `sugerir_parcelas` monta
uma proposta de divisão igual para o chamador revisar.

Edição:
- Cabeçalho sempre editável (exceto lançamentos de coleta: só pela coleta).
- Nova agenda: parcelas com pagamento registrado precisam continuar
  idênticas (número, valor, vencimento), senão `InstallmentLocked`; as
  demais são substituídas.
- Parcela cancelada só volta a 'pending' se a nova agenda mudar seu valor
  ou vencimento.

Dependências:
- self.cd_repo (CreditoDebitoRepository)
- self.cadastros_repo (CadastrosRepository)
- self._executar_mutacao (mixin de infra)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from repository.credito_debito_repository.types import ALLOWED_TIPOS
from shared.erros import (
    EntryHasPayments,
    InstallmentLocked,
    InvalidAmount,
    LinkedToCollection,
    NotFound,
    ScheduleMismatch,
    ValidationError,
)
from utils.utils import ZERO, adicionar_meses, coerce_data, parse_moeda, proximo_dia_util, q2

logger = logging.getLogger(__name__)

__all__ = [
    "ParcelaAgenda",
    "Contraparte",
    "LancamentoCriado",
    "montar_agenda",
    "sugerir_parcelas",
    "_LancamentoLedgerMixin",
]


# =============================================================================
# Tipos
# =============================================================================
@dataclass(frozen=True)
class ParcelaAgenda:
    numero: int
    vencimento: date
    valor: Decimal

    @classmethod
    def de(cls, obj: Any, numero_padrao: int) -> "ParcelaAgenda":
        """Aceita `ParcelaAgenda` ou mapping (`numero`/`installment_number`, `vencimento`/`due_date`, `valor`/`amount`)."""
        if isinstance(obj, ParcelaAgenda):
            return obj
        if not isinstance(obj, Mapping):
            raise ValidationError(f"Parcela inválida: {obj!r}")

        numero = obj.get("numero", obj.get("installment_number", numero_padrao))
        venc = obj.get("vencimento", obj.get("due_date"))
        valor = obj.get("valor", obj.get("amount", obj.get("expected_amount")))

        if venc in (None, ""):
            raise ValidationError(f"Parcela {numero}: vencimento é obrigatório.")
        try:
            vencimento = coerce_data(venc)
        except ValueError as exc:
            raise ValidationError(f"Parcela {numero}: {exc}") from exc
        return cls(numero=int(numero), vencimento=vencimento, valor=_valor(valor, f"Parcela {numero}"))


@dataclass(frozen=True)
class Contraparte:
    """Snapshot da contraparte gravado no lançamento (não é um join vivo)."""
    nome: str
    fantasia: Optional[str] = None
    cnpj_cpf: Optional[str] = None
    cliente_id: Optional[int] = None

    @classmethod
    def de(cls, obj: Any) -> "Contraparte":
        if isinstance(obj, Contraparte):
            c = obj
        elif isinstance(obj, Mapping):
            c = cls(
                nome=str(obj.get("nome") or obj.get("name") or obj.get("cliente_fornecedor_name") or ""),
                fantasia=obj.get("fantasia") or obj.get("fantasy_name") or obj.get("cliente_fornecedor_fantasy_name"),
                cnpj_cpf=obj.get("cnpj_cpf"),
                cliente_id=obj.get("cliente_id"),
            )
        elif isinstance(obj, str):
            c = cls(nome=obj)
        else:
            raise ValidationError(f"Contraparte inválida: {obj!r}")
        if not c.nome.strip():
            raise ValidationError("Nome da contraparte é obrigatório.")
        return c


@dataclass(frozen=True)
class LancamentoCriado:
    id: int
    tipo: str
    total_value: Decimal
    down_payment: Decimal
    parcelas: Tuple[ParcelaAgenda, ...]
    parcela_ids: Tuple[int, ...]

    def como_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "tipo": self.tipo,
            "total_value": self.total_value,
            "down_payment": self.down_payment,
            "installments": [
                {"id": pid, "installment_number": p.numero, "due_date": p.vencimento.isoformat(), "amount": p.valor}
                for pid, p in zip(self.parcela_ids, self.parcelas)
            ],
        }


# =============================================================================
# Regras puras
# =============================================================================
def _valor(v: Any, rotulo: str) -> Decimal:
    try:
        return parse_moeda(v)
    except ValueError as exc:
        raise InvalidAmount(f"{rotulo}: valor inválido ({v!r}).") from exc


def montar_agenda(
    total_value: Any,
    issue_date: Any,
    *,
    down_payment: Any = 0,
    installments: Optional[Sequence[Any]] = None,
    single_due_date: Any = None,
) -> List[ParcelaAgenda]:
    """
    Valida a agenda e devolve as parcelas a gravar (entrada como nº 0).

    Lança:
        InvalidAmount: total <= 0, entrada < 0 ou >= total, parcela <= 0.
        ValidationError: datas ausentes/inválidas, numeração fora de 1..N.
        ScheduleMismatch: entrada + Σ parcelas != total.
    """
    total = _valor(total_value, "Total")
    if total <= 0:
        raise InvalidAmount("O valor total deve ser maior que zero.")

    entrada = _valor(down_payment or 0, "Entrada")
    if entrada < 0:
        raise InvalidAmount("A entrada não pode ser negativa.")
    if entrada >= total:
        raise InvalidAmount("A entrada deve ser menor que o valor total.")

    if issue_date in (None, ""):
        raise ValidationError("Data de emissão é obrigatória.")
    try:
        emissao = coerce_data(issue_date)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc

    regulares = [ParcelaAgenda.de(p, i) for i, p in enumerate(installments or [], start=1)]

    if entrada == 0 and not regulares:
        if single_due_date in (None, ""):
            raise ValidationError("Informe o vencimento da parcela única.")
        try:
            venc = coerce_data(single_due_date)
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc
        return [ParcelaAgenda(numero=1, vencimento=venc, valor=total)]

    for p in regulares:
        if p.valor <= 0:
            raise InvalidAmount(f"Parcela {p.numero}: valor deve ser maior que zero.")
    numeros = sorted(p.numero for p in regulares)
    if numeros != list(range(1, len(regulares) + 1)):
        raise ValidationError(f"Numeração das parcelas deve ser 1..{len(regulares)} sem repetição: {numeros}")

    soma = sum((p.valor for p in regulares), ZERO)
    if entrada + soma != total:
        raise ScheduleMismatch(
            f"Entrada ({entrada}) + parcelas ({soma}) = {entrada + soma} difere do total ({total}).",
            total=str(total), soma=str(entrada + soma),
        )

    agenda = sorted(regulares, key=lambda p: p.numero)
    if entrada > 0:
        agenda.insert(0, ParcelaAgenda(numero=0, vencimento=emissao, valor=entrada))
    return agenda


def sugerir_parcelas(
    restante: Any,
    n: int,
    issue_date: Any,
    *,
    ajustar_dia_util: bool = False,
) -> List[ParcelaAgenda]:
    """
    Divide `restante` em `n` parcelas iguais em centavos.

    Os centavos que sobram vão para as últimas parcelas. Vencimentos mensais
    a partir da emissão (emissão + 1 mês, + 2 meses, ...), opcionalmente
    empurrados para o próximo dia útil.
    """
    total = _valor(restante, "Restante")
    if total <= 0:
        raise InvalidAmount("O restante a parcelar deve ser maior que zero.")
    if int(n) <= 0:
        raise ValidationError("Quantidade de parcelas deve ser positiva.")
    n = int(n)

    centavos = int(total * 100)
    base, sobra = divmod(centavos, n)
    if base == 0:
        raise InvalidAmount(f"R$ {total} não pode ser dividido em {n} parcelas maiores que zero.")

    emissao = coerce_data(issue_date)
    parcelas: List[ParcelaAgenda] = []
    for i in range(n):
        extra = 1 if i >= n - sobra else 0
        venc = adicionar_meses(emissao, i + 1)
        if ajustar_dia_util:
            venc = proximo_dia_util(venc)
        parcelas.append(ParcelaAgenda(numero=i + 1, vencimento=venc, valor=q2(Decimal(base + extra) / 100)))
    return parcelas


def _agenda_atual(rows: Iterable[Any]) -> Tuple[Decimal, List[ParcelaAgenda]]:
    """(entrada, parcelas regulares) a partir das linhas gravadas."""
    entrada = ZERO
    regulares: List[ParcelaAgenda] = []
    for r in rows:
        p = ParcelaAgenda(
            numero=int(r["installment_number"]),
            vencimento=coerce_data(r["due_date"]),
            valor=q2(r["expected_amount"]),
        )
        if p.numero == 0:
            entrada = p.valor
        else:
            regulares.append(p)
    return entrada, regulares


# =============================================================================
# Mixin
# =============================================================================
class _LancamentoLedgerMixin:
    """Criação/edição/exclusão de lançamentos com agenda de parcelas."""

    # ------------------------------------------------------------------
    # Helpers de transação (recebem conn já em transação)
    # ------------------------------------------------------------------
    def _criar_lancamento_tx(
        self,
        conn: Any,
        *,
        tipo: str,
        contraparte: Any,
        total_value: Any,
        issue_date: Any,
        down_payment: Any = 0,
        installments: Optional[Sequence[Any]] = None,
        single_due_date: Any = None,
        description: Optional[str] = None,
        document_number: Optional[str] = None,
        model: Optional[str] = None,
        payment_method: Optional[str] = None,
        cost_center: Optional[str] = None,
        notes: Optional[str] = None,
        discount: Any = 0,
        interest: Any = 0,
        coleta_id: Optional[int] = None,
        usuario: Optional[str] = None,
    ) -> LancamentoCriado:
        if tipo not in ALLOWED_TIPOS:
            raise ValidationError(f"Tipo inválido: {tipo!r}. Use {sorted(ALLOWED_TIPOS)}")
        cp = Contraparte.de(contraparte)
        if cp.cliente_id is not None and self.cadastros_repo.obter_cliente(conn, int(cp.cliente_id)) is None:
            raise NotFound(f"Cliente {cp.cliente_id} não encontrado.", cliente_id=cp.cliente_id)

        agenda = montar_agenda(
            total_value,
            issue_date,
            down_payment=down_payment,
            installments=installments,
            single_due_date=single_due_date,
        )
        desconto, juros = _valor(discount or 0, "Desconto"), _valor(interest or 0, "Juros")
        if desconto < 0 or juros < 0:
            raise InvalidAmount("Desconto e juros não podem ser negativos.")

        total = _valor(total_value, "Total")
        lancamento_id = self.cd_repo.inserir_lancamento(
            conn,
            tipo=tipo,
            cliente_id=cp.cliente_id,
            cliente_fornecedor_name=cp.nome.strip(),
            cliente_fornecedor_fantasy_name=cp.fantasia,
            cnpj_cpf=cp.cnpj_cpf,
            description=description,
            document_number=document_number,
            model=model,
            payment_method=payment_method,
            cost_center=cost_center,
            notes=notes,
            issue_date=coerce_data(issue_date).isoformat(),
            total_value=total,
            discount=desconto,
            interest=juros,
            coleta_id=coleta_id,
            user_id=self._usuario(usuario),
        )
        ids = tuple(
            self.cd_repo.inserir_parcela(
                conn,
                lancamento_id=lancamento_id,
                numero=p.numero,
                vencimento=p.vencimento.isoformat(),
                valor=p.valor,
            )
            for p in agenda
        )
        entrada = agenda[0].valor if agenda and agenda[0].numero == 0 else ZERO
        logger.info(
            "Lançamento %s (%s) criado: total=%s entrada=%s parcelas=%d",
            lancamento_id, tipo, total, entrada, len(agenda),
        )
        return LancamentoCriado(
            id=lancamento_id, tipo=tipo, total_value=total, down_payment=entrada,
            parcelas=tuple(agenda), parcela_ids=ids,
        )

    def _carregar_lancamento(self, conn: Any, lancamento_id: int, *, via_coleta: bool) -> Any:
        row = self.cd_repo.obter_lancamento(conn, int(lancamento_id))
        if row is None:
            raise NotFound(f"Lançamento {lancamento_id} não encontrado.", lancamento_id=lancamento_id)
        if row["coleta_id"] is not None and not via_coleta:
            raise LinkedToCollection(
                "Lançamento gerado por coleta: altere pela coleta.", coleta_id=row["coleta_id"]
            )
        return row

    def _parcela_tem_pagamento(self, conn: Any, row: Any) -> bool:
        return q2(row["paid_amount"]) > 0 or self.cd_repo.contar_pagamentos(conn, [row["id"]]) > 0

    def _reprogramar_tx(self, conn: Any, lancamento_id: int, agenda: Sequence[ParcelaAgenda]) -> Dict[str, int]:
        """Aplica a nova agenda preservando parcelas com pagamento."""
        atuais = {int(r["installment_number"]): r for r in self.cd_repo.listar_parcelas(conn, lancamento_id)}
        novas = {p.numero: p for p in agenda}

        travadas = set()
        for numero, row in atuais.items():
            if not self._parcela_tem_pagamento(conn, row):
                continue
            nova = novas.get(numero)
            if (
                nova is None
                or nova.valor != q2(row["expected_amount"])
                or nova.vencimento != coerce_data(row["due_date"])
            ):
                raise InstallmentLocked(
                    f"Parcela {numero} já tem pagamento registrado e não pode ser alterada.",
                    parcela_id=row["id"],
                )
            travadas.add(numero)

        removidas = [row["id"] for numero, row in atuais.items() if numero not in novas]
        self.cd_repo.excluir_parcelas(conn, removidas)

        inseridas = atualizadas = 0
        for p in agenda:
            row = atuais.get(p.numero)
            if row is None:
                self.cd_repo.inserir_parcela(
                    conn, lancamento_id=lancamento_id, numero=p.numero,
                    vencimento=p.vencimento.isoformat(), valor=p.valor,
                )
                inseridas += 1
            elif p.numero not in travadas and (
                p.valor != q2(row["expected_amount"])
                or p.vencimento != coerce_data(row["due_date"])
            ):
                self.cd_repo.reagendar_parcela(
                    conn, row["id"], vencimento=p.vencimento.isoformat(), valor=p.valor
                )
                atualizadas += 1

        return {"inseridas": inseridas, "atualizadas": atualizadas, "removidas": len(removidas)}

    def _editar_lancamento_tx(
        self,
        conn: Any,
        lancamento_id: int,
        *,
        via_coleta: bool = False,
        cabecalho: Optional[Dict[str, Any]] = None,
        total_value: Any = None,
        down_payment: Any = None,
        installments: Optional[Sequence[Any]] = None,
        single_due_date: Any = None,
    ) -> Dict[str, Any]:
        row = self._carregar_lancamento(conn, lancamento_id, via_coleta=via_coleta)
        campos = {k: v for k, v in (cabecalho or {}).items() if v is not None}

        if "contraparte" in campos:
            cp = Contraparte.de(campos.pop("contraparte"))
            campos.update(
                cliente_id=cp.cliente_id,
                cliente_fornecedor_name=cp.nome.strip(),
                cliente_fornecedor_fantasy_name=cp.fantasia,
                cnpj_cpf=cp.cnpj_cpf,
            )
        for chave in ("discount", "interest"):
            if chave in campos:
                campos[chave] = _valor(campos[chave], chave)
                if campos[chave] < 0:
                    raise InvalidAmount("Desconto e juros não podem ser negativos.")
        if "issue_date" in campos:
            try:
                campos["issue_date"] = coerce_data(campos["issue_date"]).isoformat()
            except ValueError as exc:
                raise ValidationError(str(exc)) from exc

        linhas = self.cd_repo.listar_parcelas(conn, lancamento_id)
        entrada_atual, regulares_atuais = _agenda_atual(linhas)
        emissao = campos.get("issue_date", row["issue_date"])

        reprogramar = any(v is not None for v in (total_value, down_payment, installments, single_due_date))
        if "issue_date" in campos and entrada_atual > 0:
            reprogramar = True

        resultado: Dict[str, Any] = {"id": int(lancamento_id), "inseridas": 0, "atualizadas": 0, "removidas": 0}
        if reprogramar:
            total = _valor(total_value, "Total") if total_value is not None else q2(row["total_value"])
            entrada = down_payment if down_payment is not None else entrada_atual
            regulares = list(installments) if installments is not None else regulares_atuais
            if not regulares and single_due_date is None:
                unica = next((p for p in regulares_atuais if p.numero == 1), None)
                single_due_date = unica.vencimento if unica else None
            agenda = montar_agenda(
                total, emissao,
                down_payment=entrada, installments=regulares, single_due_date=single_due_date,
            )
            resultado.update(self._reprogramar_tx(conn, lancamento_id, agenda))
            campos["total_value"] = total

        self.cd_repo.atualizar_cabecalho(conn, lancamento_id, campos)
        logger.info("Lançamento %s editado: %s", lancamento_id, resultado)
        return resultado

    def _excluir_lancamento_tx(self, conn: Any, lancamento_id: int, *, via_coleta: bool = False) -> None:
        self._carregar_lancamento(conn, lancamento_id, via_coleta=via_coleta)
        ids = [r["id"] for r in self.cd_repo.listar_parcelas(conn, lancamento_id)]
        if self.cd_repo.contar_pagamentos(conn, ids) > 0:
            raise EntryHasPayments(
                "Lançamento com pagamentos registrados não pode ser excluído.", lancamento_id=lancamento_id
            )
        self.cd_repo.excluir_lancamento(conn, lancamento_id)
        logger.info("Lançamento %s excluído.", lancamento_id)

    # ------------------------------------------------------------------
    # API pública
    # ------------------------------------------------------------------
    def criar_lancamento(self, *, usuario: Optional[str] = None, **dados: Any) -> LancamentoCriado:
        """
        Cria lançamento + parcelas numa única transação.

        Parâmetros (nomeados): tipo, contraparte, total_value, issue_date,
        down_payment, installments, single_due_date, description,
        document_number, model, payment_method, cost_center, notes,
        discount, interest.
        """
        dados.pop("coleta_id", None)
        return self._executar_mutacao(
            "create_lancamento",
            lambda conn: self._criar_lancamento_tx(conn, usuario=usuario, **dados),
            detalhes={"tipo": dados.get("tipo"), "total_value": dados.get("total_value")},
            usuario=usuario,
            resumo=lambda r: {"lancamento_id": r.id, "parcelas": len(r.parcelas)},
        )

    def editar_lancamento(
        self,
        lancamento_id: int,
        *,
        contraparte: Any = None,
        description: Optional[str] = None,
        document_number: Optional[str] = None,
        model: Optional[str] = None,
        payment_method: Optional[str] = None,
        cost_center: Optional[str] = None,
        notes: Optional[str] = None,
        issue_date: Any = None,
        discount: Any = None,
        interest: Any = None,
        total_value: Any = None,
        down_payment: Any = None,
        installments: Optional[Sequence[Any]] = None,
        single_due_date: Any = None,
        usuario: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Edita cabeçalho e, se pedido, a agenda. Campos `None` ficam como estão."""
        cabecalho = {
            "contraparte": contraparte,
            "description": description,
            "document_number": document_number,
            "model": model,
            "payment_method": payment_method,
            "cost_center": cost_center,
            "notes": notes,
            "issue_date": issue_date,
            "discount": discount,
            "interest": interest,
        }
        return self._executar_mutacao(
            "update_lancamento",
            lambda conn: self._editar_lancamento_tx(
                conn, lancamento_id,
                cabecalho=cabecalho,
                total_value=total_value,
                down_payment=down_payment,
                installments=installments,
                single_due_date=single_due_date,
            ),
            detalhes={"lancamento_id": lancamento_id},
            usuario=usuario,
        )

    def excluir_lancamento(self, lancamento_id: int, *, usuario: Optional[str] = None) -> None:
        """Exclui o lançamento (e parcelas) se não houver pagamentos nem vínculo com coleta."""
        self._executar_mutacao(
            "delete_lancamento",
            lambda conn: self._excluir_lancamento_tx(conn, lancamento_id),
            detalhes={"lancamento_id": lancamento_id},
            usuario=usuario,
        )
