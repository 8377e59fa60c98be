# report_writer.py
import json
from pathlib import Path
from schemas import MergeResult

CHANGE_LABELS = {"added": "Added", "modified": "Modified", "deleted": "Deleted"}

# ---- Markdown utilities (used by main.py) ----
def render_markdown(result: MergeResult, project_name: str = "Contract Project") -> str:
    lines = []
    lines.append(f"# Merged Contract: {project_name}")
    lines.append("")
    if result.source == "fallback":
        lines.append("> Generated from document metadata only; the generative merge was unavailable.")
        lines.append("")

    lines.append("## Base Summary")
    lines.append("")
    lines.append(result.base_summary)
    lines.append("")

    if result.amendment_summaries:
        lines.append("## Amendment Summaries")
        lines.append("")
        for s in result.amendment_summaries:
            lines.append(f"### {s.document} ({s.role})")
            for change in s.changes:
                lines.append(f"- {change}")
            lines.append("")

    if result.clause_change_log:
        lines.append("## Clause Change Log")
        lines.append("")
        lines.append("| Section | Change | Summary |")
        lines.append("|---|---|---|")
        for c in result.clause_change_log:
            summary = (c.summary or "").replace("|", "\\|").replace("\n", " ")
            section = (c.section or "").replace("|", "\\|")
            lines.append(f"| {section} | {CHANGE_LABELS.get(c.change_type, c.change_type)} | {summary} |")
        lines.append("")

    lines.append("## Document Incorporation Log")
    lines.append("")
    for i, entry in enumerate(result.document_incorporation_log, start=1):
        lines.append(f"{i}. {entry}")
    lines.append("")

    lines.append("## Final Contract")
    lines.append("")
    lines.append(result.final_contract)
    lines.append("")
    return "\n".join(lines)

def save_markdown(result: MergeResult, out_dir: Path, project_name: str = "Contract Project") -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / "merged_contract.md"
    path.write_text(render_markdown(result, project_name), encoding="utf-8")
    return path

def save_json(result: MergeResult, out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / "merge_result.json"
    path.write_text(json.dumps(result.to_wire(), indent=2, ensure_ascii=False), encoding="utf-8")
    return path

def save_txt(result: MergeResult, out_dir: Path) -> Path:
    out_dir.mkdir(parents=True, exist_ok=True)
    path = out_dir / "final_contract.txt"
    path.write_text(result.final_contract, encoding="utf-8")
    return path
