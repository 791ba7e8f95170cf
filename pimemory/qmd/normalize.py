"""Normalize qmd stdout into SearchSnippet records.

qmd output is not always clean JSON: progress spinners, ANSI colour codes
and status lines can precede the payload, and an empty search prints a
plain sentence instead of an empty array. Accepted payloads:

    [ {...}, ... ]
    {"results": [ {...}, ... ]}
    {"hits": [ {...}, ... ]}

Field aliases differ between qmd versions; see PATH_KEYS and CONTENT_KEYS.
"""

import json
import re
from typing import Any, List, Optional

from .protocol import QmdParseError, SearchSnippet

ANSI_PATTERN = re.compile(
    r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)"   # OSC ... BEL/ST
    r"|\x1b\[[0-?]*[ -/]*[@-~]"            # CSI
    r"|\x1b[@-Z\\-_]"                       # two-byte escapes
)

PAYLOAD_START = re.compile(r"[\[{]")
SPINNER_FRAME = re.compile(r"[^\n]*\r(?=[^\n])")

PATH_KEYS = ("path", "file")
CONTENT_KEYS = ("content", "chunk", "snippet")
LIST_KEYS = ("results", "hits")

_decoder = json.JSONDecoder()


def strip_noise(output: str) -> str:
    """Remove escape sequences and carriage-return spinner frames."""
    text = ANSI_PATTERN.sub("", output).replace("\r\n", "\n")
    # A spinner redraws the line with \r; keep only the final frame.
    return SPINNER_FRAME.sub("", text)


def extract_payload(output: str) -> Optional[Any]:
    """Decode the results payload from noisy output.

    Returns None when the output has no JSON at all (e.g. "No results
    found."). A results payload is a list of objects or an object with a
    results/hits list. When none is found the first other decoded value
    is returned, unless the first JSON-shaped text failed to decode, in
    which case the output was cut short and QmdParseError is raised.
    """
    text = strip_noise(output)
    candidates = [m.start() for m in PAYLOAD_START.finditer(text)]
    if not candidates:
        return None

    fallback = None
    decoded_any = False
    first_failed = False
    decoded_end = 0
    for index, start in enumerate(candidates):
        if start < decoded_end:
            continue
        try:
            payload, end = _decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            first_failed = first_failed or index == 0
            continue
        if _looks_like_results(payload):
            return payload
        # Status lines such as "[2] indexing" or {"status": ...} are skipped whole.
        decoded_end = end
        if not decoded_any:
            fallback, decoded_any = payload, True

    if decoded_any and not first_failed:
        return fallback
    raise QmdParseError(f"Failed to parse qmd output: {text[:200]}")


def _looks_like_results(payload: Any) -> bool:
    if isinstance(payload, dict):
        return any(key in payload for key in LIST_KEYS)
    return isinstance(payload, list) and all(isinstance(item, dict) for item in payload)


def _first_string(record: dict, keys) -> Optional[str]:
    for key in keys:
        value = record.get(key)
        if isinstance(value, str):
            return value
    return None


def normalize_record(record: Any) -> Optional[SearchSnippet]:
    """Map one raw record onto SearchSnippet; None for non-objects."""
    if not isinstance(record, dict):
        return None

    score = record.get("score")
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        score = None

    return SearchSnippet(
        content=_first_string(record, CONTENT_KEYS) or "",
        path=_first_string(record, PATH_KEYS) or None,
        score=float(score) if score is not None else None,
    )


def normalize_results(output: str) -> List[SearchSnippet]:
    """Turn raw qmd stdout into a list of snippets, in qmd's ranking order."""
    payload = extract_payload(output)

    if isinstance(payload, dict):
        records = next((payload[key] for key in LIST_KEYS if key in payload), [])
    elif isinstance(payload, list):
        records = payload
    else:
        records = []

    if not isinstance(records, list):
        return []

    snippets = []
    for record in records:
        snippet = normalize_record(record)
        if snippet is not None:
            snippets.append(snippet)
    return snippets
