from datetime import date

from chronology import EPOCH, reconcile_order, sequence_documents, sort_key
from schemas import Document


def doc(name, execution=None, effective=None):
    return Document(filename=name, text="x", execution_date=execution, effective_date=effective)


#============================================
def test_sort_key_precedence() -> None:
    assert sort_key(doc("a", "2023-05-01", "2020-01-01")) == date(2023, 5, 1)
    assert sort_key(doc("a", None, "2020-01-01")) == date(2020, 1, 1)
    assert sort_key(doc("a")) == EPOCH


#============================================
def test_sequence_orders_by_date() -> None:
    docs = [doc("amend2", "2023-09-01"), doc("base", "2022-01-01"), doc("amend1", "2023-03-01")]
    assert sequence_documents(docs) == ["base", "amend1", "amend2"]


#============================================
def test_undated_documents_sort_first() -> None:
    docs = [doc("dated", "2001-01-01"), doc("undated")]
    assert sequence_documents(docs) == ["undated", "dated"]


#============================================
def test_equal_dates_keep_input_order() -> None:
    docs = [doc("c", "2023-01-01"), doc("a", "2023-01-01"), doc("b", "2023-01-01")]
    assert sequence_documents(docs) == ["c", "a", "b"]


#============================================
def test_reconcile_without_suggestion_uses_computed_order() -> None:
    docs = [doc("b.txt", "2023-02-01"), doc("a.txt", "2023-01-01")]
    assert reconcile_order(None, docs) == ["a.txt", "b.txt"]
    assert reconcile_order([], docs) == ["a.txt", "b.txt"]


#============================================
def test_reconcile_prefers_suggested_order() -> None:
    docs = [doc("Base.txt", "2023-01-01"), doc("Rider.txt", "2023-01-01")]
    assert reconcile_order(["Rider.txt", "Base.txt"], docs) == ["Rider.txt", "Base.txt"]


#============================================
def test_reconcile_drops_unknown_and_repeated_names() -> None:
    """
    Result is always a permutation of the real filenames.
    """
    docs = [doc("Master Agreement.txt", "2023-01-01"), doc("Amendment 1.txt", "2023-06-01"),
            doc("Exhibit B.txt", "2024-01-15")]
    order = reconcile_order(["Amendment_1.txt", "Amendment 1.txt", "ghost.txt"], docs)
    assert order == ["Amendment 1.txt", "Master Agreement.txt", "Exhibit B.txt"]
    assert sorted(order) == sorted(d.filename for d in docs)


#============================================
def test_reconcile_all_unknown_falls_back_to_computed() -> None:
    docs = [doc("b.txt", "2023-02-01"), doc("a.txt", "2023-01-01")]
    assert reconcile_order(["zzz.txt", 42], docs) == ["a.txt", "b.txt"]
