"""Chat controller: quota check -> optimistic insert -> generation -> debit -> sync."""

from __future__ import annotations

import asyncio
import dataclasses
import random
from dataclasses import dataclass, field
from typing import Callable, Optional

from gemchat.ai.client import GenerationClient
from gemchat.ai.errors import GenerationError, to_generation_error
from gemchat.ai.images import build_image_url, extract_prompt, image_markdown, is_image_request, random_seed
from gemchat.config import ImageConfig
from gemchat.core.conversation import ConversationStore
from gemchat.core.models import Message, User, UserSettings, get_model
from gemchat.core.quota import QuotaLedger
from gemchat.core.session import SessionManager
from gemchat.core.tasks import BackgroundTasks
from gemchat.core.types import Feedback, GenerationErrorKind, ModelId, Role, Tier, UsageKind
from gemchat.log import get_logger
from gemchat.storage.base import PersistenceError, PersistenceService

logger = get_logger(__name__)

TOKEN_LIMIT_WARNING = (
    "You've reached the Free plan's daily token limit. Upgrade your plan to keep chatting."
)
IMAGE_LIMIT_WARNING = (
    "You've used all of today's free image generations. Upgrade your plan to create more."
)
GENERATION_ERROR_TEXT = "Connection error. Please try again."

# None means unlimited
STARTER_LIMITS: dict[Tier, Optional[int]] = {Tier.FREE: 0, Tier.PRO: 2, Tier.ULTRA: None}


@dataclass
class AppState:
    """Mutable state owned by the controller."""

    settings: UserSettings
    user: Optional[User] = None
    is_generating: bool = False
    upgrade_reasons: list[str] = field(default_factory=list)


class ChatController:
    """Handles the full flow of a chat turn and the settings that shape it."""

    def __init__(
        self,
        state: AppState,
        store: ConversationStore,
        sessions: SessionManager,
        ledger: QuotaLedger,
        generation: GenerationClient | None,
        persistence: PersistenceService | None,
        tasks: BackgroundTasks,
        image_config: ImageConfig,
        default_system_instruction: str = "",
        rng: random.Random | None = None,
        on_change: Callable[[], None] | None = None,
        on_upgrade_prompt: Callable[[str], None] | None = None,
    ):
        self.state = state
        self._store = store
        self._sessions = sessions
        self._ledger = ledger
        self._generation = generation
        self._persistence = persistence
        self._tasks = tasks
        self._images = image_config
        self._default_system_instruction = default_system_instruction
        self._rng = rng
        self._on_change = on_change
        self._on_upgrade_prompt = on_upgrade_prompt

    @property
    def messages(self) -> list[Message]:
        return self._store.messages

    @property
    def settings(self) -> UserSettings:
        return self.state.settings

    @property
    def sessions(self) -> SessionManager:
        return self._sessions

    @property
    def generation(self) -> GenerationClient | None:
        return self._generation

    @generation.setter
    def generation(self, client: GenerationClient | None) -> None:
        self._generation = client

    @property
    def is_generating(self) -> bool:
        return self.state.is_generating

    @property
    def system_instruction(self) -> str:
        """The user's own instruction on paid tiers, otherwise the default persona."""
        custom = self.state.settings.system_instruction
        if custom and self.state.settings.tier != Tier.FREE:
            return custom
        return self._default_system_instruction

    # --- Sign-in ---

    async def sign_in(self, user: User) -> None:
        """Make ``user`` current, loading their settings and sessions unless they are a guest."""
        settings = None
        if not user.is_guest and self._persistence is not None:
            try:
                settings = await self._persistence.load_settings(user.id)
            except PersistenceError as e:
                logger.error("settings_load_failed", user_id=user.id, error=str(e))
        if settings is None:
            settings = self._ledger.default_settings()
        else:
            self._ledger.apply_limits(settings)
        self.state.user = user
        self.state.settings = settings
        self.state.is_generating = False
        await self._sessions.load(user)
        logger.info("signed_in", user_id=user.id, guest=user.is_guest, tier=settings.tier.value)
        self._changed()

    def sign_out(self) -> None:
        user_id = self.state.user.id if self.state.user else None
        self.state.user = None
        self.state.settings = self._ledger.default_settings()
        self.state.is_generating = False
        self._sessions.reset()
        logger.info("signed_out", user_id=user_id)
        self._changed()

    # --- Sessions ---

    def new_chat(self) -> str:
        session = self._sessions.create_session()
        self._changed()
        return session.id

    def select_session(self, session_id: str) -> bool:
        selected = self._sessions.select_session(session_id)
        if selected:
            self._changed()
        return selected

    def rename_session(self, session_id: str, title: str) -> bool:
        renamed = self._sessions.rename_session(session_id, title)
        if renamed:
            self._changed()
        return renamed

    def delete_session(self, session_id: str) -> bool:
        deleted = self._sessions.delete_session(session_id)
        if deleted:
            self._changed()
        return deleted

    # --- Sending ---

    async def send(self, text: str) -> None:
        """Run one chat turn for ``text``.

        Returns once the reply is complete, the image is posted, or the
        attempt was rejected for quota.
        """
        if not text.strip():
            return
        if self._sessions.current is None:
            self._sessions.create_session()

        settings = self.state.settings
        image = is_image_request(text)
        kind = UsageKind.IMAGE if image else UsageKind.TOKEN

        if not self._ledger.check(kind, settings):
            warning = IMAGE_LIMIT_WARNING if image else TOKEN_LIMIT_WARNING
            self._store.append(Message(role=Role.MODEL, text=warning))
            self._prompt_upgrade(f"{kind.value}_limit")
            self._changed()
            return

        self._store.append(Message(role=Role.USER, text=text))
        self.state.is_generating = True

        if image:
            await self._send_image(text)
        else:
            await self._send_text(text)

    async def _send_image(self, text: str) -> None:
        settings = self.state.settings
        self._changed()
        await asyncio.sleep(self._images.delay_seconds)

        prompt = extract_prompt(text)
        seed = random_seed(self._rng)
        url = build_image_url(
            prompt,
            self._images.width,
            self._images.height,
            seed,
            base_url=self._images.base_url,
        )
        self._store.append(Message(role=Role.MODEL, text=image_markdown(url)))
        self.state.is_generating = False
        self._ledger.debit_image(settings)
        self._save_settings()
        logger.info("image_generated", seed=seed, images=settings.daily_image_count)
        self._changed()

    async def _send_text(self, text: str) -> None:
        settings = self.state.settings
        cost = self._ledger.debit_prompt(settings, text)
        self._save_settings()

        history = self._store.messages
        placeholder = Message(role=Role.MODEL, text="", is_thinking=True)
        self._store.append(placeholder)
        self._changed()

        def on_partial(partial: str) -> None:
            self._store.replace_message(placeholder.id, lambda m: m.with_text(partial))
            self._changed()

        try:
            if self._generation is None:
                raise GenerationError(GenerationErrorKind.AUTH, "API_KEY is not configured")
            final = await self._generation.generate(
                history,
                settings.current_model.value,
                on_partial,
                system_instruction=self.system_instruction,
            )
        except Exception as e:
            error = to_generation_error(e)
            logger.warning("generation_failed", kind=error.kind.value, error=error.message)
            self._store.replace_message(placeholder.id, lambda m: m.with_text(GENERATION_ERROR_TEXT))
        else:
            current = self._store.find(placeholder.id)
            if current is not None and (current.is_thinking or current.text != final):
                self._store.replace_message(placeholder.id, lambda m: m.with_text(final))
            reply_cost = self._ledger.debit_reply(settings)
            self._save_settings()
            logger.info(
                "reply_completed",
                model=settings.current_model.value,
                tokens=cost + reply_cost,
                daily_tokens=settings.daily_token_usage,
            )
        finally:
            self.state.is_generating = False
            self._changed()

    def stop(self) -> None:
        """Clear the busy flag.

        The in-flight generation is not cancelled; its partial updates keep
        arriving and it still finishes the turn.
        """
        self.state.is_generating = False
        self._changed()

    async def regenerate(self) -> bool:
        """Send the most recent user message again."""
        for message in reversed(self._store.messages):
            if message.role == Role.USER:
                await self.send(message.text)
                return True
        return False

    def set_feedback(self, message_id: str, feedback: Feedback | None) -> bool:
        if self._store.find(message_id) is None:
            return False
        self._store.replace_message(message_id, lambda m: m.with_feedback(feedback))
        self._changed()
        return True

    # --- Settings ---

    def select_model(self, model_id: ModelId | str) -> bool:
        model = get_model(model_id)
        if model is None:
            logger.warning("unknown_model", model=str(model_id))
            return False
        if self.state.settings.tier not in model.tiers:
            self._prompt_upgrade("model_locked")
            return False
        self.state.settings.current_model = model.id
        self._save_settings()
        self._changed()
        return True

    def update_settings(
        self,
        *,
        accent_color: str | None = None,
        theme: str | None = None,
        response_style: str | None = None,
        system_instruction: str | None = None,
        custom_starters: list[str] | None = None,
    ) -> bool:
        """Apply the given fields, or none of them if any is locked for the tier."""
        settings = self.state.settings
        if system_instruction is not None and settings.tier == Tier.FREE:
            self._prompt_upgrade("system_instruction_locked")
            return False
        if custom_starters is not None:
            limit = STARTER_LIMITS[settings.tier]
            if limit is not None and len(custom_starters) > limit:
                self._prompt_upgrade("starter_limit")
                return False

        if accent_color is not None:
            settings.accent_color = accent_color
        if theme is not None:
            settings.theme = theme
        if response_style is not None:
            settings.response_style = response_style
        if system_instruction is not None:
            settings.system_instruction = system_instruction or None
        if custom_starters is not None:
            settings.custom_starters = list(custom_starters)
        self._save_settings()
        self._changed()
        return True

    def set_tier(self, tier: Tier) -> None:
        settings = self.state.settings
        settings.tier = tier
        model = get_model(settings.current_model)
        if model is None or tier not in model.tiers:
            settings.current_model = ModelId.FLASH
        logger.info("tier_changed", tier=tier.value, model=settings.current_model.value)
        self._save_settings()
        self._changed()

    # --- Internals ---

    def _save_settings(self) -> None:
        user = self.state.user
        if user is None or user.is_guest or self._persistence is None:
            return
        snapshot = dataclasses.replace(
            self.state.settings, custom_starters=list(self.state.settings.custom_starters)
        )
        self._tasks.spawn(
            self._persistence.upsert_settings(user.id, snapshot),
            "upsert_settings",
            user_id=user.id,
        )

    def _prompt_upgrade(self, reason: str) -> None:
        self.state.upgrade_reasons.append(reason)
        logger.info("upgrade_prompt", reason=reason, tier=self.state.settings.tier.value)
        if self._on_upgrade_prompt is not None:
            self._on_upgrade_prompt(reason)

    def _changed(self) -> None:
        if self._on_change is not None:
            self._on_change()
