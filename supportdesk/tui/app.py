"""
Support chat console.
Textual-based TUI over ChatShell: message log, typing indicator, error
banner and an input line. Sending runs in a worker thread so the UI keeps
drawing while the server waits on the completion service.
Entry point: supportdesk chat (alias: tui)
"""
from __future__ import annotations

from datetime import datetime
from typing import ClassVar

from textual import work
from textual.app import App, ComposeResult
from textual.binding import Binding
from textual.containers import VerticalScroll
from textual.widgets import Footer, Header, Input, Static

from supportdesk.client import ChatMessage, ChatShell


def format_time(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%I:%M %p").lstrip("0")


class MessageBubble(Static):
    """One message. Markup is off: customer text is shown verbatim."""

    DEFAULT_CSS = """
    MessageBubble {
        width: auto;
        max-width: 80%;
        padding: 0 1;
        margin: 0 0 1 0;
    }
    MessageBubble.user {
        background: $primary;
        color: $text;
    }
    MessageBubble.ai {
        background: $panel;
    }
    """

    def __init__(self, message: ChatMessage):
        who = "You" if message.sender == "user" else "Support"
        super().__init__(
            f"{who} · {format_time(message.timestamp)}\n{message.text}",
            markup=False,
            classes=message.sender,
        )


class SupportChatApp(App):
    """TechStyle Store support chat."""

    TITLE = "TechStyle Support"
    SUB_TITLE = "we typically reply instantly"
    CSS = """
    #error-banner {
        display: none;
        background: $error;
        color: $text;
        padding: 0 1;
    }
    #error-banner.visible {
        display: block;
    }
    #messages {
        height: 1fr;
        padding: 1 2;
    }
    #typing {
        height: 1;
        color: $text-muted;
        padding: 0 2;
    }
    .empty {
        color: $text-muted;
    }
    """
    BINDINGS: ClassVar[list[Binding]] = [
        Binding("ctrl+n", "new_chat", "New chat", show=True, priority=True),
        Binding("ctrl+q", "quit", "Quit", priority=True),
    ]

    def __init__(self, shell: ChatShell):
        super().__init__()
        self.shell = shell

    def compose(self) -> ComposeResult:
        yield Header(show_clock=True)
        yield Static("", id="error-banner", markup=False)
        yield VerticalScroll(id="messages")
        yield Static("", id="typing")
        yield Input(placeholder="Ask about shipping, returns, payments…", id="input")
        yield Footer()

    async def on_mount(self) -> None:
        self.shell.load()
        await self.refresh_view()
        self.query_one(Input).focus()

    async def refresh_view(self) -> None:
        log = self.query_one("#messages", VerticalScroll)
        await log.remove_children()
        if self.shell.messages:
            await log.mount(*[MessageBubble(m) for m in self.shell.messages])
        else:
            await log.mount(Static("Hi! How can we help you today?", classes="empty"))
        log.scroll_end(animate=False)

        banner = self.query_one("#error-banner", Static)
        banner.update(self.shell.error or "")
        banner.set_class(bool(self.shell.error), "visible")

        self.query_one("#typing", Static).update("Support is typing…" if self.shell.typing else "")
        self.query_one(Input).disabled = self.shell.loading

    def on_input_changed(self, event: Input.Changed) -> None:
        self.shell.input_buffer = event.value

    async def on_input_submitted(self, event: Input.Submitted) -> None:
        if self.shell.loading:
            return
        self.shell.input_buffer = event.value
        started = self.shell.begin_submit(self.shell.input_buffer)
        if started is not None:
            event.input.value = ""
        await self.refresh_view()
        if started is not None:
            self._send(*started)

    @work(thread=True, exclusive=True)
    def _send(self, pending: ChatMessage, text: str) -> None:
        self.shell.finish_submit(pending, text)
        self.call_from_thread(self._after_send)

    async def _after_send(self) -> None:
        await self.refresh_view()
        self.query_one(Input).focus()

    async def action_new_chat(self) -> None:
        self.shell.new_chat()
        self.query_one(Input).value = self.shell.input_buffer
        await self.refresh_view()
        self.query_one(Input).focus()
