"""
Legal statute identification.

Asks the cost-sensitive backend for a JSON object mapping each statute
("Section 302 IPC") to a short explanation, and decodes whatever comes back.

Decoding strategies, in order:
1. JSON inside a ```json fenced block
2. The outermost {...} span of the response
3. Line parser for "Statute: explanation" pairs

Decoding is best-effort. An unusable response gives {}.
"""

import json
import logging
import re

from .llm import ProviderGateway

logger = logging.getLogger(__name__)

MAX_STATUTE_WORDS = 4000

STATUTE_PROMPT = """You are an expert Indian legal analyst. Analyze this legal document and extract ALL applicable Indian laws, acts, sections, and legal provisions mentioned or relevant to the case.

For each statute/law found, provide:
1. The official name (e.g., "Section 302 IPC", "Contract Act, 1872")
2. A clear 2-3 sentence explanation of what it means and how it applies

DOCUMENT:
{document}

IMPORTANT: Return your response as valid JSON only, no other text. Format:
{{
  "Section 302 IPC": "This section deals with punishment for murder under the Indian Penal Code.",
  "Section 34 IPC": "This section addresses acts done by several persons in furtherance of common intention."
}}

If no specific statutes are found, return: {{}}"""

_FENCE_PATTERN = re.compile(r"```(?:json)?\s*([\s\S]*?)```")

# "**Section 302 IPC**: explanation" style lines
_STATUTE_LINE = re.compile(
    r"^\*{0,2}([^:*]*(?:Section|Act|IPC|CrPC|CPC)[^:*]*)\*{0,2}\s*:\s*(.+)$",
    re.IGNORECASE,
)
# '"Key": "value",' style lines from broken JSON
_QUOTED_LINE = re.compile(r"""^["']?([^"':]+)["']?\s*:\s*["']?(.+?)["']?,?$""")

MIN_EXPLANATION_CHARS = 20


def truncate_words(text: str, max_words: int) -> str:
    words = text.split()
    if len(words) <= max_words:
        return text
    return " ".join(words[:max_words])


def _json_candidate(text: str) -> str:
    fenced = _FENCE_PATTERN.search(text)
    candidate = fenced.group(1) if fenced else text
    candidate = candidate.strip()
    if not candidate.startswith("{"):
        start, end = candidate.find("{"), candidate.rfind("}")
        if start != -1 and end > start:
            candidate = candidate[start:end + 1]
    return candidate


def _parse_lines(text: str) -> dict[str, str]:
    statutes: dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        match = _STATUTE_LINE.match(line) or _QUOTED_LINE.match(line)
        if not match:
            continue
        key = match.group(1).strip().strip("*\"'").strip()
        value = match.group(2).strip().strip("\"',").strip()
        if len(value) > MIN_EXPLANATION_CHARS and 3 < len(key) < 100:
            statutes[key] = value
    return statutes


def decode_statutes(response_text: str) -> dict[str, str]:
    """Decode a model response into {statute: explanation}. Never raises."""
    if not response_text or not response_text.strip():
        return {}

    try:
        data = json.loads(_json_candidate(response_text))
    except json.JSONDecodeError as e:
        logger.warning(f"[STATUTES] JSON parse failed, using line parser: {e}")
        data = None

    if isinstance(data, dict):
        return {str(k).strip(): str(v).strip() for k, v in data.items() if str(k).strip()}

    statutes = _parse_lines(response_text)
    logger.info(f"[STATUTES] Line parser recovered {len(statutes)} statute(s)")
    return statutes


async def extract_statutes(gateway: ProviderGateway, text: str) -> dict[str, str]:
    """Identify the statutes a document relies on. Returns {} on any failure."""
    prompt = STATUTE_PROMPT.format(document=truncate_words(text, MAX_STATUTE_WORDS))
    try:
        response = await gateway.invoke_once(prompt, cost_sensitive=True)
    except Exception as e:
        logger.error(f"[STATUTES] Extraction failed: {e}")
        return {}

    statutes = decode_statutes(response)
    logger.info(f"[STATUTES] Extracted {len(statutes)} statute(s)")
    return statutes
