# main.py: local runner that classifies and merges a folder of extracted-text documents
from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from telemetry import go_quiet
from errors import ConfigurationError, NoUsableInput
from llm_factory import load_provider, load_service_config
from merge_service import ContractMergeService
from report_writer import save_json, save_markdown, save_txt
from result_store import InMemoryResultStore, SqlResultStore
from text_source import InMemoryTextSource, read_text_folder

log = logging.getLogger("contractmerge.cli")


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Classify and merge a folder of extracted contract texts.")
    parser.add_argument("folder", help="Directory containing one .txt file per document")
    parser.add_argument("--project-id", default=None, help="Project id (defaults to the folder name)")
    parser.add_argument("--config", default="llm.yaml", help="YAML service configuration")
    parser.add_argument("--out", default="outputs", help="Output directory for reports")
    parser.add_argument("--refresh", action="store_true", help="Ignore a stored result and re-run")
    parser.add_argument("--persist", action="store_true", help="Store results in DATABASE_URL instead of memory")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    go_quiet()
    args = parse_args(argv)
    folder = Path(args.folder)
    if not folder.is_dir():
        log.error("Not a directory: %s", folder)
        return 2
    project_id = args.project_id or folder.name

    sources = read_text_folder(folder)
    log.info("Read %d documents from %s", len(sources), folder)

    if args.persist:
        from db import SessionLocal, init_db
        init_db()
        store = SqlResultStore(SessionLocal)
    else:
        store = InMemoryResultStore()

    config = load_service_config(args.config)
    svc = ContractMergeService.build(
        service=load_provider(config),
        config=config,
        text_source=InMemoryTextSource({project_id: sources}),
        store=store,
    )

    try:
        batch = svc.classify_project(project_id)
        result = None if args.refresh else svc.load_result(project_id)
        if result is None:
            result = svc.merge_documents(project_id, batch.ordered_documents())
        else:
            log.info("Using stored merge result for %s (pass --refresh to re-run)", project_id)
    except (ConfigurationError, NoUsableInput) as e:
        log.error("%s", e)
        return 1

    out_dir = Path(args.out) / project_id
    save_markdown(result, out_dir, project_name=project_id)
    save_json(result, out_dir)
    save_txt(result, out_dir)
    (out_dir / "classification.json").write_text(
        json.dumps(batch.model_dump(mode="json", exclude={"documents": {"__all__": {"text"}}}), indent=2),
        encoding="utf-8",
    )
    log.info("Wrote %s (source=%s)", out_dir, result.source)
    return 0


if __name__ == "__main__":
    sys.exit(main())
