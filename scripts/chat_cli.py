"""
Interactive Dialogue CLI

Talk to the DialogueEngine from a terminal. Each line you type is sent as one
message; the reply, its type and confidence, and any suggested actions are
printed back.

Usage:
    python scripts/chat_cli.py
    python scripts/chat_cli.py --session-id demo --provider deepseek --verbose

Commands:
    /state   show the stored session
    /new     start a new session
    /quit    exit
"""

import asyncio
import json
import logging
import sys
import uuid
from pathlib import Path
from typing import Optional

project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root / "codenavigator_dialogue" / "src"))

from codenavigator_dialogue.config import DialogueSettings
from codenavigator_dialogue.dialogue_engine import get_engine
from codenavigator_dialogue.logger import setup_logging


def print_response(response):
    print(f"\n🤖 [{response.type.value} | {response.confidence:.2f}] {response.message}")
    if response.data and "summary" in response.data:
        summary = response.data["summary"]
        print(f"   📋 {summary['module_count']} modules, ~{summary['estimated_duration_days']} days")
        for module in response.data["learning_path"]["modules"]:
            print(f"      {module['order_index']}. {module['title']} ({module['difficulty']}, {module['estimated_hours']}h)")
    for action in response.suggested_actions or []:
        print(f"   👉 {action.label} [{action.action}]")


async def main(session_id: Optional[str], user_id: str, provider: Optional[str], env_file: Optional[str], verbose: bool = False):
    settings = DialogueSettings.from_env(env_file)
    setup_logging(logging.DEBUG if verbose else getattr(logging, settings.log_level, logging.INFO))
    engine = get_engine(settings)
    session_id = session_id or str(uuid.uuid4())

    print(f"💬 CodeNavigator dialogue (session {session_id}). Type /quit to exit.")

    while True:
        try:
            message = input("\n🧑 > ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if message == "/quit":
            break
        if message == "/new":
            session_id = str(uuid.uuid4())
            print(f"✨ New session {session_id}")
            continue
        if message == "/state":
            session = await engine.store.get_state(session_id)
            print(json.dumps(session.to_dict(), ensure_ascii=False, indent=2) if session else "No stored session")
            continue

        response = await engine.process_message({
            "sessionId": session_id,
            "userId": user_id,
            "message": message,
            "preferredProvider": provider,
        })
        print_response(response)


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Interactive terminal client for the dialogue engine")
    parser.add_argument("--session-id", help="Resume or create this session id")
    parser.add_argument("--user-id", default="cli-user", help="User id sent with every message")
    parser.add_argument("--provider", help="Preferred chat provider (openai, deepseek, claude, gemini)")
    parser.add_argument("--env-file", help="Path to a .env file")
    parser.add_argument("--verbose", action="store_true", help="Show debug logging")

    args = parser.parse_args()
    asyncio.run(main(args.session_id, args.user_id, args.provider, args.env_file, verbose=args.verbose))
