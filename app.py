"""Web interface using Streamlit."""

import datetime
import tempfile
from pathlib import Path

import streamlit as st

from tutorrag import (
    ConversationManager,
    IngestionPipeline,
    RetrievalEngine,
    TutorRAGError,
    load_transcript,
    normalize_transcript,
)
from tutorrag.config import config
from tutorrag.context import format_session_date

MAX_CONTEXT_PREVIEW_LENGTH = 200

config.setup_logging()
logger = config.get_logger(__name__)


class SessionState:
    """Centralized session state management."""

    @staticmethod
    def initialize() -> None:
        """Initialize all session state variables."""
        defaults = {
            "pipeline": None,
            "retrieval_engine": None,
            "conversation_manager": None,
            "system_ready": False,
            "last_context": None,
        }

        for key, default_value in defaults.items():
            if key not in st.session_state:
                st.session_state[key] = default_value

    @staticmethod
    def is_system_ready() -> bool:
        """Check if the system is properly initialized.

        Returns:
            bool: True if the pipeline and conversation manager exist.
        """
        return (
            st.session_state.get("pipeline") is not None
            and st.session_state.get("conversation_manager") is not None
        )


def validate_configuration() -> bool:
    """Validate application configuration and show user feedback.

    Returns:
        bool: True if configuration is valid, False otherwise.
    """
    try:
        config.validate()
    except ValueError as e:
        st.error(f"Configuration Error: {e}")
        return False
    else:
        return True


def initialize_system() -> bool:
    """Create the ingestion pipeline, retrieval engine and chat manager.

    Returns:
        bool: True if initialization succeeds, False otherwise.
    """
    try:
        with st.spinner("Initializing system..."):
            st.session_state.pipeline = IngestionPipeline()
            st.session_state.retrieval_engine = RetrievalEngine()
            st.session_state.conversation_manager = ConversationManager(
                retrieval_engine=st.session_state.retrieval_engine
            )
            st.session_state.system_ready = True

        logger.info("TutorRAG initialized successfully")
        st.success("System initialized successfully!")

    except (ValueError, OSError) as e:
        logger.exception("Failed to initialize system")
        st.error(f"Failed to initialize system: {e}")
        return False
    else:
        return True


def read_uploaded_transcript(uploaded_file) -> str:  # noqa: ANN001
    """Extract transcript text from an uploaded TXT or PDF file.

    Returns:
        str: The transcript text.
    """
    suffix = Path(uploaded_file.name).suffix
    with tempfile.NamedTemporaryFile(delete=False, suffix=suffix) as tmp_file:
        tmp_file.write(uploaded_file.getbuffer())
        tmp_file_path = Path(tmp_file.name)
    try:
        return load_transcript(tmp_file_path)
    finally:
        tmp_file_path.unlink()


def render_sidebar() -> str:
    """Render the sidebar with configuration, status and the student selector.

    Returns:
        str: The student id entered by the user (may be empty).
    """
    with st.sidebar:
        st.header("System Configuration")

        if (
            st.button("Initialize System", use_container_width=True)
            and validate_configuration()
            and initialize_system()
        ):
            st.rerun()

        st.divider()
        st.subheader("System Status")
        config_status = "Valid" if validate_configuration() else "Invalid"
        st.write(f"**Configuration:** {config_status}")
        st.write(
            "**System:** Ready"
            if SessionState.is_system_ready()
            else "**System:** Not Initialized"
        )

        st.divider()
        student_id = st.text_input("Student ID", placeholder="student id").strip()

        if student_id and SessionState.is_system_ready():
            session_store = st.session_state.pipeline.session_store
            st.write(
                f"**Sessions ingested:** {session_store.get_session_count(student_id)}"
            )
            pending = session_store.sessions_without_chunks(student_id)
            if pending:
                st.warning(f"{len(pending)} session(s) have no searchable chunks.")
                if st.button("Re-index sessions", use_container_width=True):
                    reindex_sessions(pending)
            render_recent_sessions(session_store, student_id)

    return student_id


def render_recent_sessions(session_store, student_id: str) -> None:  # noqa: ANN001
    """List the student's latest sessions in the sidebar."""
    sessions = session_store.list_sessions(student_id)
    if not sessions:
        return
    with st.expander("Recent sessions"):
        for session in sessions:
            duration = (
                f" ({session.duration_minutes} min)"
                if session.duration_minutes is not None
                else ""
            )
            st.write(f"{format_session_date(session.session_date)}{duration}")


def reindex_sessions(session_ids: list[str]) -> None:
    """Retry chunking and embedding for sessions left without chunks."""
    for session_id in session_ids:
        try:
            result = st.session_state.pipeline.reindex_session(session_id)
        except (TutorRAGError, ValueError) as e:
            logger.exception("Re-indexing failed for session %s", session_id)
            st.error(f"Failed to re-index session {session_id}: {e}")
            return
        st.info(f"Session {session_id}: {result.chunks_created} chunks")


def render_ingest(student_id: str) -> None:
    """Render the transcript ingestion form."""
    st.header("Ingest Tutoring Transcript")

    uploaded_file = st.file_uploader(
        "Upload a transcript (PDF or TXT)",
        type=["pdf", "txt"],
        help="Or paste the transcript text below",
    )
    pasted = st.text_area("Transcript", height=240, placeholder="Paste transcript...")

    col1, col2, col3 = st.columns(3)
    with col1:
        session_date = st.date_input("Session date", value=datetime.date.today())
    with col2:
        duration = st.number_input("Duration (minutes)", min_value=0, value=60)
    with col3:
        tutor_id = st.text_input("Tutor ID (optional)").strip() or None

    if not st.button("Ingest Transcript", use_container_width=True):
        return
    if not student_id:
        st.error("Enter a student ID in the sidebar first.")
        return

    try:
        transcript = (
            read_uploaded_transcript(uploaded_file)
            if uploaded_file
            else normalize_transcript(pasted)
        )
        if not transcript:
            st.error("Upload or paste a transcript first.")
            return
        with st.spinner("Chunking and embedding transcript..."):
            result = st.session_state.pipeline.ingest(
                student_id=student_id,
                transcript=transcript,
                session_date=session_date.isoformat(),
                duration_minutes=int(duration) or None,
                tutor_id=tutor_id,
            )
    except (TutorRAGError, ValueError, OSError) as e:
        logger.exception("Transcript ingestion failed")
        st.error(f"Failed to ingest transcript: {e}")
        return

    st.success(
        f"Session {result.session_id} stored: {result.chunks_created} chunks, "
        f"{result.embeddings_generated} embeddings."
    )


def render_chat(student_id: str) -> None:
    """Render the chat interface with streamed replies."""
    st.header("Study Companion Chat")
    if not student_id:
        st.info("Enter a student ID in the sidebar to start chatting.")
        return

    manager: ConversationManager = st.session_state.conversation_manager
    for message in manager.get_history(student_id):
        with st.chat_message(message.role):
            st.write(message.content)

    prompt = st.chat_input("Ask about your tutoring sessions...")
    if not prompt:
        return

    with st.chat_message("user"):
        st.write(prompt)

    try:
        reply = manager.stream_reply(student_id, prompt)
        with st.chat_message("assistant"):
            st.write_stream(reply)
    except (TutorRAGError, ValueError) as e:
        logger.exception("Chat turn failed")
        st.error(f"Failed to answer: {e}")
        return

    st.session_state.last_context = reply.context


def render_last_context() -> None:
    """Show the transcript excerpts used for the last reply."""
    context = st.session_state.last_context
    if context is None or not config.is_development():
        return
    if not st.checkbox("Show Retrieved Session Context (Debug)"):
        return

    if not context.retrieved_chunks:
        st.write("No session excerpts were used.")
    for i, chunk in enumerate(context.retrieved_chunks):
        with st.expander(f"Excerpt {i + 1} - Session on {chunk.session_date}"):
            st.code(chunk.chunk_text)


def render_search(student_id: str) -> None:
    """Render a direct transcript search for inspecting retrieval."""
    st.header("Search Session Transcripts")
    query = st.text_input("Query", placeholder="What did we cover about fractions?")
    top_k = st.slider(
        "Results", min_value=1, max_value=10, value=config.RETRIEVAL_TOP_K
    )

    if not (st.button("Search", use_container_width=True) and query.strip()):
        return
    if not student_id:
        st.error("Enter a student ID in the sidebar first.")
        return

    try:
        results = st.session_state.retrieval_engine.search(
            student_id, query, top_k=top_k
        )
    except (TutorRAGError, ValueError) as e:
        logger.exception("Transcript search failed")
        st.error(f"Search failed: {e}")
        return

    if not results:
        st.info("No transcript chunks found for this student.")
    for i, chunk in enumerate(results):
        preview = (
            chunk.chunk_text[:MAX_CONTEXT_PREVIEW_LENGTH] + "..."
            if len(chunk.chunk_text) > MAX_CONTEXT_PREVIEW_LENGTH
            else chunk.chunk_text
        )
        with st.expander(
            (
                f"Result {i + 1} - Similarity: {chunk.similarity_score:.4f} - "
                f"Session on {format_session_date(chunk.session_date)}"
            ),
            expanded=False,
        ):
            st.code(preview)


def main() -> None:
    """Main entry point for the Streamlit web application."""
    st.set_page_config(page_title="TutorRAG - Study Companion", layout="wide")

    SessionState.initialize()

    st.title("TutorRAG - Study Companion")
    st.markdown("---")

    student_id = render_sidebar()

    if not SessionState.is_system_ready():
        st.info("Please initialize the system using the sidebar to get started.")
        return

    chat_tab, ingest_tab, search_tab = st.tabs(["Chat", "Ingest", "Search"])
    with chat_tab:
        render_chat(student_id)
        render_last_context()
    with ingest_tab:
        render_ingest(student_id)
    with search_tab:
        render_search(student_id)


if __name__ == "__main__":
    main()
