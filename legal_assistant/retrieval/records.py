"""
Case records for indexing.

A case record is a flat dict:
    case_id, case_title, court, judge, year, source_url, r2_url, text_snippet

Records come from a JSONL file (one record per line), a JSON list, or a
directory of judgment PDFs.
"""

import json
import logging
from pathlib import Path

import fitz  # PyMuPDF
from tqdm import tqdm

from .document_fetcher import normalize_whitespace
from .vector_store import CaseVectorStore

logger = logging.getLogger(__name__)

SNIPPET_CHARS = 1500


def _valid(record: dict) -> bool:
    return bool(record.get("case_title")) and bool(record.get("text_snippet"))


def read_case_records(path: str | Path) -> list[dict]:
    """Load records from .jsonl or .json. Records without a title or text are skipped."""
    path = Path(path)

    if path.suffix == ".jsonl":
        records = []
        with open(path, "r", encoding="utf-8") as f:
            for line_num, line in enumerate(tqdm(f, desc="Reading cases"), start=1):
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(json.loads(line))
                except json.JSONDecodeError as e:
                    logger.warning(f"Skipping line {line_num} of {path.name}: {e}")
    else:
        with open(path, "r", encoding="utf-8") as f:
            records = json.load(f)

    valid = [r for r in records if _valid(r)]
    if len(valid) < len(records):
        logger.warning(f"Skipped {len(records) - len(valid)} record(s) without case_title/text_snippet")
    return valid


def records_from_pdfs(directory: str | Path, court: str | None = None) -> list[dict]:
    """One record per judgment PDF, titled after the file name."""
    records = []
    for pdf_path in tqdm(sorted(Path(directory).glob("*.pdf")), desc="Reading judgments"):
        with fitz.open(str(pdf_path)) as doc:
            text = normalize_whitespace(" ".join(page.get_text("text") for page in doc))
        if not text:
            logger.warning(f"No extractable text in {pdf_path.name}")
            continue
        records.append({
            "case_id": pdf_path.stem,
            "case_title": pdf_path.stem.replace("_", " "),
            "court": court,
            "source_url": pdf_path.resolve().as_uri(),
            "text_snippet": text[:SNIPPET_CHARS],
        })
    return records


def index_records(store: CaseVectorStore, records: list[dict], chunk_size: int = 256) -> int:
    """Add records to the store in chunks. Returns the number indexed."""
    added = 0
    for start in tqdm(range(0, len(records), chunk_size), desc="Indexing cases"):
        added += store.add_records(records[start:start + chunk_size])
    return added
