"""Command-line entry point for TutorRAG.

``serve`` launches the Streamlit UI, ``ingest`` indexes a transcript file for a
student, ``sessions`` lists a student's latest sessions, and ``reindex`` retries
sessions that were stored without chunks.
"""

from __future__ import annotations

import argparse
import datetime
import subprocess
import sys
from pathlib import Path
from typing import TYPE_CHECKING

from tutorrag import IngestionPipeline, SQLiteSessionStore, load_transcript
from tutorrag.config import config
from tutorrag.exceptions import TutorRAGError

if TYPE_CHECKING:
    from collections.abc import Sequence
    from logging import Logger

PROJECT_ROOT = Path(__file__).resolve().parent
DEFAULT_APP = PROJECT_ROOT / "app.py"


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Build the CLI parser and read command-line arguments."""  # noqa: DOC201
    parser = argparse.ArgumentParser(
        description="TutorRAG study companion: web UI and transcript tools.",
    )
    subparsers = parser.add_subparsers(dest="command")

    serve = subparsers.add_parser("serve", help="Launch the Streamlit web UI.")
    serve.add_argument(
        "--app",
        type=Path,
        default=DEFAULT_APP,
        help="Path to the Streamlit script (default: app.py).",
    )
    serve.add_argument(
        "--port",
        type=int,
        default=8501,
        help="Port for the Streamlit server (default: 8501).",
    )
    serve.add_argument(
        "--address",
        default="localhost",
        help="Bind address for the Streamlit server (default: localhost).",
    )
    serve.add_argument(
        "--show",
        dest="headless",
        action="store_false",
        help="Open Streamlit in a browser window instead of headless mode.",
    )
    serve.set_defaults(headless=True)

    ingest = subparsers.add_parser("ingest", help="Ingest a transcript file.")
    ingest.add_argument("transcript", type=Path, help="TXT or PDF transcript.")
    ingest.add_argument("--student-id", required=True, help="Owning student.")
    ingest.add_argument(
        "--session-date",
        default=None,
        help="ISO date of the session (default: today).",
    )
    ingest.add_argument("--duration", type=int, default=None, help="Minutes.")
    ingest.add_argument("--tutor-id", default=None, help="Tutor who ran it.")

    sessions = subparsers.add_parser(
        "sessions", help="List a student's most recent sessions."
    )
    sessions.add_argument("--student-id", required=True, help="Owning student.")
    sessions.add_argument(
        "--limit", type=int, default=10, help="Sessions to show (default: 10)."
    )

    reindex = subparsers.add_parser(
        "reindex", help="Re-chunk sessions stored without any chunks."
    )
    reindex.add_argument(
        "--student-id", default=None, help="Limit to one student's sessions."
    )

    args = parser.parse_args(argv)
    if args.command is None:
        args = parser.parse_args(["serve", *(argv or [])])
    return args


def build_streamlit_command(
    script_path: Path,
    *,
    port: int,
    headless: bool,
    address: str,
) -> list[str]:
    """Construct the streamlit CLI invocation."""  # noqa: DOC201
    return [
        sys.executable,
        "-m",
        "streamlit",
        "run",
        str(script_path),
        "--server.port",
        str(port),
        "--server.address",
        address,
        "--server.headless",
        "true" if headless else "false",
    ]


def run_streamlit(command: Sequence[str], logger: Logger) -> int:
    """Execute the configured streamlit command and return its exit code."""  # noqa: DOC201
    try:
        result = subprocess.run(
            command,
            check=False,
            cwd=PROJECT_ROOT,
        )
    except KeyboardInterrupt:
        logger.info("TutorRAG stopped by user")
        return 0
    except OSError:
        logger.exception("Unable to launch Streamlit")
        return 1
    return result.returncode


def serve(args: argparse.Namespace, logger: Logger) -> int:
    """Launch the Streamlit UI."""  # noqa: DOC201
    script_path = (
        args.app if args.app.is_absolute() else (PROJECT_ROOT / args.app)
    ).resolve()
    if not script_path.exists():
        logger.error("Streamlit script not found: %s", script_path)
        return 1

    logger.info(
        "Starting TutorRAG Streamlit app at http://%s:%s (headless=%s)",
        args.address,
        args.port,
        args.headless,
    )

    command = build_streamlit_command(
        script_path,
        port=args.port,
        headless=args.headless,
        address=args.address,
    )

    return_code = run_streamlit(command, logger)
    if return_code != 0:
        logger.error("Streamlit exited with status %s", return_code)
    return return_code


def ingest(args: argparse.Namespace, logger: Logger) -> int:
    """Ingest one transcript file for a student."""  # noqa: DOC201
    session_date = args.session_date or datetime.date.today().isoformat()
    try:
        transcript = load_transcript(args.transcript)
        result = IngestionPipeline().ingest(
            student_id=args.student_id,
            transcript=transcript,
            session_date=session_date,
            duration_minutes=args.duration,
            tutor_id=args.tutor_id,
        )
    except (TutorRAGError, ValueError, OSError):
        logger.exception("Failed to ingest %s", args.transcript)
        return 1

    logger.info(
        "Session %s: %d chunks, %d embeddings",
        result.session_id,
        result.chunks_created,
        result.embeddings_generated,
    )
    return 0


def list_sessions(args: argparse.Namespace, logger: Logger) -> int:
    """Print the latest sessions of a student, newest first."""  # noqa: DOC201
    store = SQLiteSessionStore(config.DATABASE_PATH)
    sessions = store.list_sessions(args.student_id, limit=args.limit)
    logger.info("%d sessions for student %s", len(sessions), args.student_id)

    for session in sessions:
        duration = (
            f"{session.duration_minutes} min"
            if session.duration_minutes is not None
            else "-"
        )
        sys.stdout.write(f"{session.session_date}  {duration:>8}  {session.id}\n")
    return 0


def reindex(args: argparse.Namespace, logger: Logger) -> int:
    """Re-run chunking and embedding for sessions without chunks."""  # noqa: DOC201
    pipeline = IngestionPipeline()
    pending = pipeline.session_store.sessions_without_chunks(args.student_id)
    logger.info("%d sessions without chunks", len(pending))

    failures = 0
    for session_id in pending:
        try:
            result = pipeline.reindex_session(session_id)
        except (TutorRAGError, ValueError):
            logger.exception("Failed to re-index session %s", session_id)
            failures += 1
            continue
        logger.info("Session %s: %d chunks", session_id, result.chunks_created)
    return 1 if failures else 0


def main(argv: Sequence[str] | None = None) -> int:
    """Validate configuration and dispatch the selected command."""  # noqa: DOC201
    args = parse_args(argv)

    config.setup_logging()
    logger = config.get_logger(__name__)

    try:
        config.validate()
    except ValueError:
        logger.exception("Configuration invalid")
        return 1

    commands = {
        "serve": serve,
        "ingest": ingest,
        "sessions": list_sessions,
        "reindex": reindex,
    }
    return commands[args.command](args, logger)


if __name__ == "__main__":
    sys.exit(main())
