"""Reading tutoring transcripts from files and pasted text.

Transcripts arrive as speaker-labelled exports ("Tutor: ...", "Student: ...")
with timestamps, hard line wraps and page breaks. ``normalize_transcript``
turns them into one line per speaker turn, each ending in terminal
punctuation, so the chunker never merges two turns into one sentence.
"""

import re
from pathlib import Path

import pypdf
from pypdf.errors import PyPdfError

from .config import config

logger = config.get_logger(__name__)

TIMESTAMP_PATTERN = re.compile(r"^\[?\(?\d{1,2}:\d{2}(?::\d{2})?\]?\)?\s*")
SPEAKER_PATTERN = re.compile(r"^[A-Z][\w .'-]{0,30}:\s")
TERMINAL_PUNCTUATION = (".", "!", "?")


def _close_turn(lines: list[str]) -> str:
    turn = " ".join(lines)
    if not turn.endswith(TERMINAL_PUNCTUATION):
        turn += "."
    return turn


def normalize_transcript(text: str) -> str:
    """Rebuild raw transcript text as one speaker turn per line.

    Leading timestamps are removed. A line that opens with a speaker label or
    follows a blank line starts a new turn; any other line continues the
    current turn. Turns without terminal punctuation get a closing period.

    Returns:
        The normalized transcript, or an empty string if it has no text.
    """
    turns: list[str] = []
    current: list[str] = []

    for raw_line in text.splitlines():
        line = TIMESTAMP_PATTERN.sub("", raw_line.strip())
        line = " ".join(line.split())
        if not line:
            if current:
                turns.append(_close_turn(current))
                current = []
            continue
        if current and SPEAKER_PATTERN.match(line):
            turns.append(_close_turn(current))
            current = []
        current.append(line)

    if current:
        turns.append(_close_turn(current))
    return "\n".join(turns)


def _read_pdf(path: Path) -> str:
    reader = pypdf.PdfReader(path)
    # Pages are joined without a blank line; a turn may run across a page break.
    text = "\n".join(page.extract_text() or "" for page in reader.pages)
    logger.debug("Extracted %d pages from %s", len(reader.pages), path.name)
    return text


def _read_txt(path: Path) -> str:
    return path.read_text(encoding="utf-8-sig")


READERS = {".pdf": _read_pdf, ".txt": _read_txt}


def load_transcript(path: Path) -> str:
    """Read and normalize a transcript file.

    Args:
        path: A ``.txt`` (UTF-8) or ``.pdf`` transcript.

    Returns:
        The normalized transcript text.

    Raises:
        ValueError: If the file type is not supported or the file holds no
            transcript text (e.g. a scanned PDF without a text layer).
    """
    reader = READERS.get(path.suffix.lower())
    if reader is None:
        msg = (
            f"Unsupported transcript type {path.suffix or '(none)'}; "
            f"expected one of {', '.join(sorted(READERS))}"
        )
        raise ValueError(msg)

    try:
        raw_text = reader(path)
    except (OSError, PyPdfError):
        logger.exception("Could not read transcript %s", path)
        raise

    transcript = normalize_transcript(raw_text)
    if not transcript:
        msg = f"No transcript text found in {path.name}"
        raise ValueError(msg)

    turn_count = transcript.count("\n") + 1
    logger.info("Loaded transcript %s with %d turns", path.name, turn_count)
    return transcript
