"""Chat turns: context building, streamed replies and persisted history."""

import queue
import threading
from collections.abc import Callable, Iterator
from dataclasses import dataclass
from pathlib import Path

from .config import config
from .context import ContextAssembler, build_system_prompt
from .exceptions import GenerationError
from .generation import ChatGenerator
from .models import ChatContext, ChatMessage
from .retrieval import RetrievalEngine
from .stores import SQLiteHistoryStore

logger = config.get_logger(__name__)

QUEUE_POLL_SECONDS = 0.1
PRODUCER_JOIN_SECONDS = 2.0

_DONE = object()


@dataclass
class _StreamFailure:
    error: Exception


class ReplyStream:
    """One assistant reply, streamed through a bounded queue.

    A producer thread pulls fragments from the generator and the consumer
    forwards them as they arrive. When the stream ends the forwarded text is
    persisted through ``on_finish``; that also happens, best effort, when the
    consumer stops early (``close()`` on the iterator, e.g. a client
    disconnect) or the generator fails part way.
    """

    def __init__(
        self,
        fragments: Iterator[str],
        on_finish: Callable[[str], str],
        *,
        context: ChatContext | None = None,
        queue_size: int | None = None,
    ) -> None:
        self.context = context
        self.message_id: str | None = None
        self.completed = False
        self._fragments = fragments
        self._on_finish = on_finish
        self._queue: queue.Queue = queue.Queue(
            maxsize=queue_size or config.STREAM_QUEUE_SIZE
        )
        self._stop = threading.Event()
        self._parts: list[str] = []
        self._started = False

    @property
    def text(self) -> str:
        """Reply text forwarded to the consumer so far."""
        return "".join(self._parts)

    def __iter__(self) -> Iterator[str]:
        """Forward fragments as they arrive, then persist the reply.

        Yields:
            Reply fragments in generation order.

        Raises:
            RuntimeError: If the stream is iterated a second time.
            GenerationError: If the generator failed before finishing.
        """
        if self._started:
            msg = "A reply stream can only be consumed once"
            raise RuntimeError(msg)
        self._started = True

        producer = threading.Thread(
            target=self._produce, name="reply-producer", daemon=True
        )
        producer.start()

        finished = False
        failure: Exception | None = None
        try:
            while True:
                item = self._queue.get()
                if item is _DONE:
                    finished = True
                    break
                if isinstance(item, _StreamFailure):
                    failure = item.error
                    break
                self._parts.append(item)
                yield item
        finally:
            self._stop.set()
            producer.join(timeout=PRODUCER_JOIN_SECONDS)
            if not finished:
                self._persist_partial()

        if failure is not None:
            msg = f"Reply generation failed: {failure}"
            raise GenerationError(msg) from failure

        self.message_id = self._persist(self.text)
        self.completed = True

    def _produce(self) -> None:
        try:
            for fragment in self._fragments:
                if not self._offer(fragment):
                    break
        except Exception as exc:  # noqa: BLE001
            logger.warning("Reply stream failed after %d fragments", len(self._parts))
            self._offer(_StreamFailure(exc))
        else:
            self._offer(_DONE)
        finally:
            close = getattr(self._fragments, "close", None)
            if close is not None:
                close()

    def _offer(self, item: object) -> bool:
        """Put an item on the queue unless the consumer has gone away.

        Returns:
            True if the item was queued.
        """
        while not self._stop.is_set():
            try:
                self._queue.put(item, timeout=QUEUE_POLL_SECONDS)
            except queue.Full:
                continue
            return True
        return False

    def _persist(self, text: str) -> str | None:
        if not text:
            logger.warning("Assistant reply was empty; nothing to save")
            return None
        return self._on_finish(text)

    def _persist_partial(self) -> None:
        try:
            self.message_id = self._persist(self.text)
        except Exception:
            logger.exception("Failed to save partial assistant reply")


class ConversationManager:
    """Runs chat turns grounded in a student's tutoring transcripts."""

    def __init__(  # noqa: PLR0913
        self,
        *,
        history_store: SQLiteHistoryStore | None = None,
        retrieval_engine: RetrievalEngine | None = None,
        generator: ChatGenerator | None = None,
        assembler: ContextAssembler | None = None,
        openai_api_key: str | None = None,
        db_path: Path | None = None,
        degrade_on_search_error: bool | None = None,
    ) -> None:
        """Initialize ConversationManager.

        Args:
            history_store: Chat log store. If None, a SQLite store at
                ``db_path`` (or config.DATABASE_PATH) is used.
            retrieval_engine: Transcript search used by the default assembler.
            generator: Streaming chat model adapter.
            assembler: Context assembler; built from the retrieval engine and
                history store when None.
            openai_api_key: OpenAI API key for default collaborators.
            db_path: SQLite database path for default stores.
            degrade_on_search_error: Whether a failed transcript search lets the
                turn continue without session context. If None, uses
                config.DEGRADE_ON_SEARCH_ERROR.
        """
        if db_path is None:
            db_path = config.DATABASE_PATH
        if degrade_on_search_error is None:
            degrade_on_search_error = config.DEGRADE_ON_SEARCH_ERROR

        self.history_store = history_store or SQLiteHistoryStore(db_path)
        self.generator = generator or ChatGenerator(openai_api_key=openai_api_key)
        if assembler is None:
            assembler = ContextAssembler(
                retrieval_engine
                or RetrievalEngine(openai_api_key=openai_api_key, db_path=db_path),
                self.history_store,
                degrade_on_search_error=degrade_on_search_error,
            )
        self.assembler = assembler

    def stream_reply(self, student_id: str, message: str) -> ReplyStream:
        """Start a chat turn.

        The context is built before the user message is saved, so the history
        sent to the model does not repeat the current message.

        Returns:
            A stream to iterate for the reply fragments.

        Raises:
            ValueError: If ``student_id`` or ``message`` is empty.
        """
        if not student_id or not message.strip():
            msg = "student_id and message are required"
            raise ValueError(msg)

        logger.info("Processing chat message for student %s", student_id)

        context = self.assembler.build_context(student_id, message)
        self.history_store.append_message(student_id, "user", message)

        system_prompt = build_system_prompt(context.retrieved_chunks)
        fragments = self.generator.stream_completion(
            system_prompt, context.conversation_history, message
        )

        def save_reply(text: str) -> str:
            return self.history_store.append_message(student_id, "assistant", text)

        return ReplyStream(fragments, save_reply, context=context)

    def get_history(
        self, student_id: str, limit: int | None = None
    ) -> list[ChatMessage]:
        """Chat history of a student for display.

        Returns:
            Up to ``limit`` most recent messages, oldest first.
        """
        messages = self.history_store.get_recent(
            student_id, config.HISTORY_DISPLAY_LIMIT if limit is None else limit
        )
        messages.reverse()
        return messages
