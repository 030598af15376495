from __future__ import annotations

import pytest
from card_reconciliation.heuristics import (
    bill_predicate_for,
    fold,
    is_bill_like,
    is_statement_payment,
)


def test_fold_strips_accents_case_and_spacing() -> None:
    assert fold("  Cartão   de CRÉDITO ") == "cartao de credito"
    assert fold(None) == ""


@pytest.mark.parametrize(
    "description",
    [
        "Pagamento de Fatura",
        "PAGAMENTO DA FATURA NUBANK",
        "pagto  fatura cartao",
        "Pagamento cartão",
        "Cartão de Crédito Itaú",
    ],
)
def test_portuguese_bill_descriptions(description: str) -> None:
    assert is_bill_like(description)


@pytest.mark.parametrize("description", ["Supermercado Extra", "Faturamento ltda", "Pix recebido", ""])
def test_non_bill_descriptions(description: str) -> None:
    assert not is_bill_like(description)


def test_english_vocabulary_is_separate() -> None:
    en = bill_predicate_for("en")
    assert en("Credit card bill payment")
    assert not en("Pagamento de fatura")
    assert bill_predicate_for("all")("Pagamento de fatura")


def test_unknown_locale_raises() -> None:
    with pytest.raises(ValueError, match="Unsupported bill locale"):
        bill_predicate_for("fr")


def test_statement_payment_lines() -> None:
    assert is_statement_payment("Pagamento recebido")
    assert is_statement_payment("PAGAMENTO RECEBIDO ")
    assert not is_statement_payment("Amazon - Parcela 2/6")
