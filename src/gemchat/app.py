"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

from typing import Callable

from gemchat.ai.client import GeminiClient, GenerationClient
from gemchat.config import AppConfig
from gemchat.controller import AppState, ChatController
from gemchat.core.conversation import ConversationStore
from gemchat.core.models import GUEST_USER, User
from gemchat.core.quota import QuotaLedger
from gemchat.core.session import SessionManager
from gemchat.core.tasks import BackgroundTasks
from gemchat.log import get_logger
from gemchat.storage.base import PersistenceService
from gemchat.storage.database import Database
from gemchat.storage.repository import SqlitePersistence

logger = get_logger(__name__)


class ChatApp:
    """Top-level application orchestrator.

    ``generation`` and ``persistence`` default to the Gemini client and the
    SQLite store built from ``config``; pass others to swap backends.
    """

    def __init__(
        self,
        config: AppConfig,
        generation: GenerationClient | None = None,
        persistence: PersistenceService | None = None,
        on_change: Callable[[], None] | None = None,
        on_upgrade_prompt: Callable[[str], None] | None = None,
    ):
        self.config = config
        self.db: Database | None = None
        if persistence is None:
            self.db = Database(config.storage.db_path)
            persistence = SqlitePersistence(self.db)
        self.persistence = persistence
        self.generation = generation
        self.tasks = BackgroundTasks()
        self.store = ConversationStore()
        self.ledger = QuotaLedger(config.quota)
        self.session_manager = SessionManager(self.store, self.persistence, self.tasks)
        self.controller = ChatController(
            state=AppState(settings=self.ledger.default_settings()),
            store=self.store,
            sessions=self.session_manager,
            ledger=self.ledger,
            generation=generation,
            persistence=self.persistence,
            tasks=self.tasks,
            image_config=config.images,
            default_system_instruction=config.system_instruction,
            on_change=on_change,
            on_upgrade_prompt=on_upgrade_prompt,
        )

    async def start(self) -> None:
        """Open storage and create the generation client."""
        if self.db is not None:
            await self.db.initialize()

        if self.generation is None:
            self.generation = self._create_generation_client()
            self.controller.generation = self.generation

        logger.info(
            "gemchat_started",
            model=self.config.gemini.default_model,
            generation=self.generation is not None,
        )

    async def stop(self) -> None:
        """Flush pending writes and close storage."""
        await self.tasks.drain()
        if self.db is not None:
            await self.db.close()
        logger.info("gemchat_stopped")

    async def sign_in(self, user: User) -> None:
        await self.controller.sign_in(user)

    async def sign_in_as_guest(self) -> None:
        await self.controller.sign_in(GUEST_USER)

    def sign_out(self) -> None:
        self.controller.sign_out()

    def _create_generation_client(self) -> GenerationClient | None:
        if not self.config.gemini.api_key:
            logger.warning("gemini_api_key_missing", hint="Set GEMINI_API_KEY or gemini.api_key")
            return None
        return GeminiClient(self.config.gemini)
