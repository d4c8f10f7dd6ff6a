"""Intervox - investigate a public figure and talk to their persona.

Simple CLI for running a quick investigation.
"""

import argparse
import asyncio

from intervox.agents.coordinator import InvestigationCoordinator
from intervox.models.events import LogEvent
from intervox.models.schemas import InvestigationStatus, ScrapingProgress
from intervox.services.event_log import events


def print_event(event: LogEvent) -> None:
    print(f"  [{event.level.value}] {event.category.value}: {event.message}")


def print_progress(progress: ScrapingProgress) -> None:
    source = progress.current_source.value if progress.current_source else "-"
    print(
        f"  [~] {progress.status}: {progress.scraped_pages}/{progress.total_pages} pages"
        f" (source: {source}, credits: {progress.credits_used:g})"
    )


async def chat_loop(coordinator: InvestigationCoordinator, session_id: str, name: str) -> None:
    conversations = coordinator.conversations
    print(f"\n[*] Chatting with {name}. Empty line to quit.")
    while True:
        text = (await asyncio.to_thread(input, "you> ")).strip()
        if not text:
            break
        print(f"{name}> ", end="", flush=True)
        async for fragment in conversations.stream(session_id, text):
            print(fragment, end="", flush=True)
        print()
    conversations.end(session_id)


async def run_investigation(name: str, context: str | None, depth: str, chat: bool, verbose: bool = False) -> int:
    """Run a quick investigation and print the resulting persona prompt."""
    print(f"Investigating: {name}" + (f" ({context})" if context else ""))
    print("-" * 50)

    coordinator = InvestigationCoordinator()
    unsubscribe = events.subscribe_all(print_event) if verbose else None
    record = await coordinator.quick_start(name, context, depth)
    coordinator.on_progress(record.target_id, print_progress)
    try:
        record = await coordinator.join(record.target_id)
    finally:
        await coordinator.shutdown()
        if unsubscribe is not None:
            unsubscribe()

    if record.status is not InvestigationStatus.READY or record.persona is None:
        print(f"\n[!] Error ({record.error_kind}): {record.error}")
        return 1

    print(f"\n[*] Persona ready!")
    print(f"   Sources: {record.sources_scraped}")
    print(f"   Data points: {record.data_points}")
    print(f"\n{'='*50}")
    print("SYSTEM PROMPT:")
    print(f"{'='*50}")
    print(record.persona.system_prompt)

    if chat and record.conversation_id:
        await chat_loop(coordinator, record.conversation_id, record.persona.identity.full_name)
    return 0


def main():
    parser = argparse.ArgumentParser(description="Intervox persona builder")
    parser.add_argument("--name", "-n", required=True, help="Name of the person to investigate")
    parser.add_argument("--context", "-c", help="Disambiguating context (role, company, ...)")
    parser.add_argument(
        "--depth",
        "-d",
        choices=["quick", "standard", "deep"],
        default="quick",
        help="Scrape depth (default: quick)",
    )
    parser.add_argument("--chat", action="store_true", help="Chat with the persona afterwards")
    parser.add_argument("--verbose", "-v", action="store_true", help="Print every pipeline event")

    args = parser.parse_args()

    raise SystemExit(asyncio.run(run_investigation(args.name, args.context, args.depth, args.chat, args.verbose)))


if __name__ == "__main__":
    main()
