"""Chronological sequencing of classified documents."""

from datetime import date
from typing import Iterable, List, Optional, Sequence

from filename_matcher import ChainedMatcher, default_matcher
from schemas import Document

EPOCH = date(1970, 1, 1)


def sort_key(doc: Document) -> date:
    return doc.execution_date or doc.effective_date or EPOCH


def sequence_documents(documents: Sequence[Document]) -> List[str]:
    """
    Filenames ordered by execution date, then effective date, then epoch.

    sorted() is stable, so equal dates keep their input order.
    """
    return [doc.filename for doc in sorted(documents, key=sort_key)]


def reconcile_order(
    suggested: Optional[Iterable[str]],
    documents: Sequence[Document],
    matcher: ChainedMatcher = default_matcher,
) -> List[str]:
    """
    Prefer an order suggested by the service, but only as a permutation of the
    real filenames: names that match no file or repeat are dropped, and files
    the suggestion left out are appended in computed order.
    """
    computed = sequence_documents(documents)
    if not suggested:
        return computed

    real_names = [doc.filename for doc in documents]
    ordered: List[str] = []
    seen = set()
    for name in suggested:
        if not isinstance(name, str):
            continue
        resolved = matcher.resolve_name(name, [n for n in real_names if n not in seen])
        if resolved is None:
            continue
        ordered.append(resolved)
        seen.add(resolved)

    if not ordered:
        return computed
    ordered.extend(name for name in computed if name not in seen)
    return ordered
