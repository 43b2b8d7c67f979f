#!/usr/bin/env python3

from __future__ import annotations

import argparse
import sys
import uuid

import httpx


def _print_directive(data: dict) -> None:
    speak = data.get("speak") or {}
    text = (speak.get("text") or "").strip()
    print(f"agent> {text}" if text else "agent> (empty response)")
    if speak.get("audio_url"):
        print(f"(audio: {speak['audio_url']})")
    print(f"(action: {data.get('action')} turn={data.get('turn')})")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Interactive text-only chat with the reminder agent via /agent/turn")
    parser.add_argument("--base-url", default="http://localhost:8000", help="API base URL (default: http://localhost:8000)")
    parser.add_argument("--call-sid", default=None, help="Conversation key (default: a fresh text-chat-<uuid>)")
    parser.add_argument("--timeout", type=float, default=45.0, help="HTTP timeout seconds (default: 45)")
    args = parser.parse_args(argv)

    base_url = args.base_url.rstrip("/")
    call_sid = args.call_sid or f"text-chat-{uuid.uuid4()}"
    retry_count = 0

    print(f"Text chat started as {call_sid}. Type /exit to quit; an empty line counts as silence.")

    with httpx.Client(timeout=args.timeout) as client:
        while True:
            try:
                user_text = input("you> ").strip()
            except (EOFError, KeyboardInterrupt):
                print()
                break

            if user_text.lower() in {"/exit", "/quit", "exit", "quit"}:
                break

            req = {"call_sid": call_sid, "speech_text": user_text, "retry_count": retry_count}

            try:
                resp = client.post(f"{base_url}/agent/turn", json=req)
                resp.raise_for_status()
                data = resp.json()
            except httpx.HTTPStatusError as e:
                print(f"error> HTTP {e.response.status_code}: {e.response.text}")
                continue
            except httpx.HTTPError as e:
                print(f"error> {e}")
                continue

            _print_directive(data)

            if data.get("action") == "terminate":
                break
            retry_count = data.get("next_retry_count") or 0

    return 0


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
