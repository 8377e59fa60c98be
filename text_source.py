"""
Text source collaborators. Raw PDF/DOCX extraction happens upstream; these
only hand over already-extracted plain text per document.
"""

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from schemas import SourceText

log = logging.getLogger("contractmerge.text_source")


class TextSource(ABC):
    @abstractmethod
    def fetch(self, project_id: str) -> List[SourceText]: ...


class InMemoryTextSource(TextSource):
    def __init__(self, projects: Optional[Dict[str, Sequence[SourceText]]] = None):
        self.projects: Dict[str, List[SourceText]] = {k: list(v) for k, v in (projects or {}).items()}

    def add(self, project_id: str, source: SourceText) -> None:
        self.projects.setdefault(project_id, []).append(source)

    def fetch(self, project_id: str) -> List[SourceText]:
        return list(self.projects.get(project_id, []))


class DirectoryTextSource(TextSource):
    """
    Reads `<root>/<project_id>/*.txt`. An empty file stands for a document
    whose extraction failed upstream.
    """

    def __init__(self, root: str | Path, pattern: str = "*.txt"):
        self.root = Path(root)
        self.pattern = pattern

    def fetch(self, project_id: str) -> List[SourceText]:
        folder = self.root / project_id
        if not folder.is_dir():
            log.warning("No document folder for project %s at %s", project_id, folder)
            return []
        return read_text_folder(folder, self.pattern)


def read_text_folder(folder: Path, pattern: str = "*.txt") -> List[SourceText]:
    sources: List[SourceText] = []
    for path in sorted(folder.glob(pattern)):
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            log.warning("Could not read %s: %s", path.name, e)
            sources.append(SourceText(filename=path.name, text="", extraction_succeeded=False, extraction_error=str(e)))
            continue
        if text.strip():
            sources.append(SourceText(filename=path.name, text=text))
        else:
            sources.append(SourceText(filename=path.name, text="", extraction_succeeded=False,
                                      extraction_error="No text extracted"))
    return sources
