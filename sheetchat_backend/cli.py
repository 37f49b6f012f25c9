from __future__ import annotations

import argparse
import shlex
from typing import Callable, Optional

from .conversation import ConversationState
from .errors import ActionInProgress
from .models import ActionStatus, Sender
from .service import SheetChatService

HELP_TEXT = (
  "Commands:\n"
  "  /load <sheet url> [sheet name or A1 range]  load a Google Sheet\n"
  "  /status                                    show the loaded sheet\n"
  "  /clear                                     forget the loaded sheet\n"
  "  /help                                      show this help\n"
  "  /quit                                      exit\n"
  "Anything else is sent as a question about the loaded sheet."
)


def build_arg_parser() -> argparse.ArgumentParser:
  parser = argparse.ArgumentParser(
    description="Ask questions about a Google Sheet from the terminal"
  )
  parser.add_argument(
    "--url",
    help="Google Sheet URL to load before the first question",
  )
  parser.add_argument(
    "--range",
    dest="range_spec",
    help="Optional sheet name or A1 range (default: first sheet)",
  )
  return parser


def describe_load(state: ConversationState) -> str:
  load = state.load_state
  if load.status == ActionStatus.failed:
    return f"[error] {load.error}"
  info = state.sheet_info
  if info is None:
    return "No sheet loaded."
  return (
    f'Successfully loaded data from sheet: "{info.name}" '
    f"({info.rows} rows, {info.cols} columns). You can now ask questions about this data."
  )


def handle_line(state: ConversationState, line: str, out: Callable[[str], None] = print) -> bool:
  """
  Run one REPL line against the session. Returns False when the user asked
  to quit.
  """
  stripped = line.strip()
  if not stripped:
    return True

  if stripped.startswith("/"):
    try:
      parts = shlex.split(stripped)
    except ValueError as exc:
      out(f"[error] {exc}")
      return True
    command, args = parts[0].lower(), parts[1:]

    if command in ("/quit", "/exit"):
      return False
    if command == "/help":
      out(HELP_TEXT)
    elif command == "/status":
      out(describe_load(state))
    elif command == "/clear":
      state.clear_sheet()
      out("Sheet data cleared.")
    elif command == "/load":
      if not args:
        out("Usage: /load <sheet url> [sheet name or A1 range]")
      else:
        range_spec = " ".join(args[1:]) or None
        state.load_sheet(args[0], range_spec)
        out(describe_load(state))
    else:
      out(f"Unknown command {command}. Type /help for the list of commands.")
    return True

  try:
    new_messages = state.ask(stripped)
  except ActionInProgress as exc:
    out(f"[busy] {exc.user_message}")
    return True

  for msg in new_messages:
    if msg.sender == Sender.ai:
      out(f"Assistant: {msg.text}")
  return True


def main(argv: Optional[list[str]] = None) -> int:
  parser = build_arg_parser()
  args = parser.parse_args(argv)

  service = SheetChatService()
  state = service.create_session()

  for banner in service.config.banners():
    print(f"[warning] {banner}")

  print(f"Session ID: {state.session_id}")
  if args.url:
    state.load_sheet(args.url, args.range_spec)
    print(describe_load(state))
  print("Type /help for commands. Ctrl+C or EOF to exit.\n")

  try:
    while True:
      try:
        user_input = input("You: ")
      except EOFError:
        print()
        break

      if not handle_line(state, user_input):
        break

  except KeyboardInterrupt:
    print("\nExiting...")

  return 0


if __name__ == "__main__":  # pragma: no cover
  raise SystemExit(main())
