#!/usr/bin/env python3
"""
supportdesk CLI.

    COMMAND         ALIASES         WHAT IT DOES
    -------         -------         ----------------------------------
    serve           start, up       Start the support chat server
    chat            tui             Open the terminal chat client
    history         log             Print one conversation
    health          ping, status    Ping a running server
    stats           info            Show config and storage counts
"""

import argparse
import asyncio
import json
import sys

from supportdesk import __version__


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_serve(args):
    """Start the support chat server."""
    import uvicorn
    from supportdesk.config import get_config

    cfg = get_config()
    host = args.host or cfg["server"]["host"]
    port = args.port or cfg["server"]["port"]

    print(f"  supportdesk {__version__} on {host}:{port}")
    print(f"  Accepting requests from: {cfg['cors']['origin']}")
    print(f"  Chat endpoint:    POST http://localhost:{port}/chat/message")
    print(f"  History endpoint: GET  http://localhost:{port}/chat/history/:sessionId")
    print()

    uvicorn.run(
        "supportdesk.main:app",
        host=host,
        port=port,
        reload=args.reload,
        log_level="info",
    )


def cmd_chat(args):
    """Open the terminal chat client."""
    from supportdesk.client import ChatClient, ChatShell, SessionFile
    from supportdesk.tui.app import SupportChatApp

    with ChatClient(args.url) as client:
        shell = ChatShell(client, SessionFile(args.session_file))
        SupportChatApp(shell).run()


def cmd_history(args):
    """Print one conversation from a running server."""
    from supportdesk.client import ApiError, ChatClient
    from supportdesk.tui.app import format_time

    with ChatClient(args.url) as client:
        try:
            messages = client.get_history(args.session_id)
        except ApiError as e:
            print(f"  ✗  {e}")
            sys.exit(1)

    if args.json:
        print(json.dumps([m.__dict__ for m in messages], indent=2, ensure_ascii=False))
        return
    if not messages:
        print("  No messages for that session.")
        return
    for m in messages:
        who = "Customer" if m.sender == "user" else "Agent"
        print(f"  [{format_time(m.timestamp)}] {who}: {m.text}")


def cmd_health(args):
    """Ping a running server."""
    from supportdesk.client import ApiError, ChatClient

    with ChatClient(args.url) as client:
        try:
            data = client.health_check()
        except ApiError as e:
            print(f"  ✗  Dead line: {e} at {client.base_url}")
            sys.exit(1)

    status = data.get("status", "?")
    mark = "✓" if status == "ok" else "✗"
    print(f"  {mark}  {client.base_url} status={status}")
    print(f"     LLM: {'enabled' if data.get('llmEnabled') else 'disabled'}")
    if data.get("message"):
        print(f"     {data['message']}")
    if status != "ok":
        sys.exit(1)


def cmd_stats(args):
    """Show config and storage counts at a glance."""
    from supportdesk.config import get_config
    from supportdesk.reply_generator import ReplyGenerator
    from supportdesk.storage.sqlite_store import SQLiteStore

    cfg = get_config()
    llm = cfg["llm"]

    generator = ReplyGenerator.from_config(cfg)
    if generator is None:
        reach = "disabled"
    elif args.offline:
        reach = "not checked"
    else:
        reach = "reachable" if asyncio.run(generator.backend.health_check()) else "unreachable"

    print("  Configuration")
    print(f"  ├─ Port:      {cfg['server']['port']}")
    print(f"  ├─ Origin:    {cfg['cors']['origin']}")
    print(f"  ├─ Provider:  {llm['provider']} ({llm['model']})")
    print(f"  ├─ API key:   {'set' if llm.get('api_key') else 'missing'}")
    print(f"  ├─ LLM:       {reach}")
    print(f"  └─ SQLite:    {cfg['storage']['sqlite_path']}")

    stats = SQLiteStore(cfg["storage"]["sqlite_path"]).get_stats()
    print()
    print("  Storage")
    print(f"  ├─ Conversations: {stats['conversations']}")
    print(f"  ├─ Messages:      {stats['messages']}")
    print(f"  ├─ Customer msgs: {stats['user_messages']}")
    print(f"  └─ Agent msgs:    {stats['ai_messages']}")


# ---------------------------------------------------------------------------
# Parser with aliases
# ---------------------------------------------------------------------------

def _add_command(subparsers, names, help_text, func, setup_fn=None):
    """Register a command under its name plus aliases."""
    p = subparsers.add_parser(names[0], help=help_text, aliases=names[1:])
    p.set_defaults(func=func)
    if setup_fn:
        setup_fn(p)
    return p


def _url_arg(p):
    p.add_argument("--url", "-u", default=None,
                   help="Server URL (default: $SUPPORTDESK_API_URL or http://localhost:3000)")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="supportdesk",
        description="supportdesk: TechStyle Store customer support chat.",
        epilog="Run 'supportdesk <command> --help' for command-specific options.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--version", "-V", action="version",
        version=f"supportdesk {__version__}",
    )

    sub = parser.add_subparsers(dest="command", metavar="<command>")

    def setup_serve(p):
        p.add_argument("--host", default=None, help="Override listen host")
        p.add_argument("--port", "-p", type=int, default=None, help="Override listen port")
        p.add_argument("--reload", action="store_true", help="Auto-reload on code changes (dev)")

    _add_command(sub, ["serve", "start", "up"],
                 "Start the support chat server", cmd_serve, setup_serve)

    def setup_chat(p):
        _url_arg(p)
        p.add_argument("--session-file", default=None,
                       help="Where to remember the session id (default: ~/.supportdesk/session_id)")

    _add_command(sub, ["chat", "tui"], "Open the terminal chat client", cmd_chat, setup_chat)

    def setup_history(p):
        p.add_argument("session_id", help="Session (conversation) id")
        p.add_argument("--json", action="store_true", help="Raw JSON output")
        _url_arg(p)

    _add_command(sub, ["history", "log"], "Print one conversation", cmd_history, setup_history)

    _add_command(sub, ["health", "ping", "status"], "Ping a running server", cmd_health, _url_arg)

    def setup_stats(p):
        p.add_argument("--offline", action="store_true", help="Skip the completion service check")

    _add_command(sub, ["stats", "info"], "Show config and storage counts", cmd_stats, setup_stats)

    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(0)

    args.func(args)


if __name__ == "__main__":
    main()
