"""Interactive terminal front end over the chat controller."""

from __future__ import annotations

import asyncio
import sys
from typing import TextIO

from gemchat.app import ChatApp
from gemchat.config import AppConfig
from gemchat.core.models import MODELS, User
from gemchat.core.types import Role

HELP_TEXT = """Commands:
  /imagine PROMPT   generate an image
  /stop             stop waiting for the current reply
  /new              start a new chat
  /sessions         list chats
  /switch N         switch to chat N from /sessions
  /rename TITLE     rename the current chat
  /delete           delete the current chat
  /model ID         switch model
  /usage            show today's usage
  /quit             exit"""


class Console:
    """Line-oriented chat loop that prints replies as they stream in."""

    def __init__(self, config: AppConfig, out: TextIO = sys.stdout):
        self._out = out
        self._printed_id: str | None = None
        self._printed_text = ""
        self._closed_id: str | None = None
        self._pending: set[asyncio.Task] = set()
        self.app = ChatApp(config, on_change=self.render, on_upgrade_prompt=self.show_upgrade)

    def render(self) -> None:
        """Print whatever part of the newest model message is not on screen yet."""
        messages = self.app.controller.messages
        if not messages:
            return
        last = messages[-1]
        if last.role != Role.MODEL or last.is_thinking:
            return
        if last.id != self._printed_id:
            self._printed_id = last.id
            self._printed_text = ""
            self._write("\nassistant: ")
        text = last.text
        if text != self._printed_text:
            if text.startswith(self._printed_text):
                self._write(text[len(self._printed_text):])
            else:
                # replaced rather than extended; show the new text on its own line
                self._write("\nassistant: " + text)
            self._printed_text = text
        if not self.app.controller.is_generating and self._closed_id != last.id:
            self._closed_id = last.id
            self._write("\n")

    def show_upgrade(self, reason: str) -> None:
        self._write(f"\n[upgrade] {reason.replace('_', ' ')}. Upgrade your plan to unlock more.\n")

    async def run(self, user: User | None = None) -> None:
        await self.app.start()
        try:
            if user is None:
                await self.app.sign_in_as_guest()
            else:
                await self.app.sign_in(user)
            self._write("Type a message, or /help for commands.\n")
            while True:
                line = await asyncio.to_thread(input, "> ")
                if not await self._handle(line.strip()):
                    break
        except (EOFError, KeyboardInterrupt):
            pass
        finally:
            for task in list(self._pending):
                task.cancel()
            await self.app.stop()

    async def _handle(self, line: str) -> bool:
        controller = self.app.controller
        if not line:
            return True
        command, _, arg = line.partition(" ")
        arg = arg.strip()

        if command == "/quit":
            return False
        if command == "/help":
            self._write(HELP_TEXT + "\n")
        elif command == "/stop":
            controller.stop()
        elif command == "/new":
            controller.new_chat()
            self._write("Started a new chat.\n")
        elif command == "/sessions":
            sessions = controller.sessions.sessions
            for i, session in enumerate(sessions, start=1):
                marker = "*" if session.id == controller.sessions.current_id else " "
                self._write(f"{marker}{i:>3}  {session.title}\n")
        elif command == "/switch":
            sessions = controller.sessions.sessions
            if arg.isdigit() and 1 <= int(arg) <= len(sessions):
                controller.select_session(sessions[int(arg) - 1].id)
                for message in controller.messages:
                    self._write(f"{message.role.value}: {message.text}\n")
            else:
                self._write("No such chat.\n")
        elif command == "/rename":
            current = controller.sessions.current_id
            if current and arg:
                controller.rename_session(current, arg)
        elif command == "/delete":
            current = controller.sessions.current_id
            if current:
                controller.delete_session(current)
        elif command == "/model":
            if not controller.select_model(arg):
                available = ", ".join(m.id.value for m in MODELS)
                self._write(f"Model not available. Known models: {available}\n")
        elif command == "/usage":
            s = controller.settings
            self._write(
                f"Plan: {s.tier.value}  Model: {s.current_model.value}\n"
                f"Tokens: {s.daily_token_usage}/{s.daily_token_limit}  "
                f"Images: {s.daily_image_count}/{s.daily_image_limit}\n"
            )
        else:
            task = asyncio.create_task(controller.send(line))
            self._pending.add(task)
            task.add_done_callback(self._pending.discard)
        return True

    def _write(self, text: str) -> None:
        self._out.write(text)
        self._out.flush()
