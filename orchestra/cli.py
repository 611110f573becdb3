from __future__ import annotations

import asyncio
from contextlib import suppress

from orchestra.capabilities import PrintSpeechSynthesizer, QueuedSpeechRecognizer
from orchestra.config import Settings
from orchestra.exceptions import InputBusy, OrchestraError
from orchestra.runtime import OrchestrationCore, build_default_core

HELP = (
    "Commands: /listen, /stop, /mode, /state, /trigger <id> [sub], /health, /cancel, /quit. "
    "While listening, typed lines are treated as speech."
)


async def _print_events(core: OrchestrationCore) -> None:
    queue = core.bus.subscribe()
    try:
        while True:
            event = await queue.get()
            if event.get("type") == "notification":
                print(f"[{event['level']}] {event['title']} - {event['description']}")
            elif event.get("type") == "activity.updated":
                activity = event["activity"]
                print(f"[activity] {activity['title']}: {activity['status']}")
    finally:
        core.bus.unsubscribe(queue)


def _print_state(core: OrchestrationCore) -> None:
    snapshot = core.snapshot()
    print(
        f"mode={snapshot.mode.value} listening={snapshot.listening} "
        f"speaking={snapshot.speaking} last_command={snapshot.last_command!r}"
    )
    for trigger_id in sorted(snapshot.running_trigger_ids):
        print(f"  running {trigger_id}: {core.progress_for(trigger_id):.0f}%")
    for record in snapshot.activity_log:
        print(f"  {record.status.value:<9} {record.title} - {record.description}")
    for message in snapshot.conversation_history:
        print(f"  {message.role.value}: {message.text}")


async def _handle_line(core: OrchestrationCore, recognizer: QueuedSpeechRecognizer, line: str) -> bool:
    parts = line.split()
    command = parts[0].lower()
    if command in {"/quit", "quit", "exit"}:
        return False
    if command == "/help":
        print(HELP)
    elif command == "/listen":
        await core.start_listening()
    elif command == "/stop":
        await core.stop_listening()
    elif command == "/mode":
        print(f"mode: {core.toggle_mode().value}")
    elif command == "/state":
        _print_state(core)
    elif command == "/cancel":
        core.cancel_speech()
    elif command == "/health":
        health = await core.check_backend()
        if health is not None:
            print(f"backend {health.status} {health.version}")
    elif command == "/trigger" and len(parts) >= 2:
        sub_trigger_id = parts[2] if len(parts) > 2 else None
        try:
            outcome = await core.trigger(parts[1], sub_trigger_id)
        except OrchestraError as exc:
            print(f"error: {exc}")
        else:
            print(f"{outcome.trigger_id}: {outcome.status.value} - {outcome.message}")
    elif core.listening:
        recognizer.feed_final(line)
    else:
        try:
            await core.submit_text(line)
        except InputBusy as exc:
            print(f"busy: {exc}")
    return True


async def run_interactive(print_events: bool = True) -> None:
    settings = Settings.from_env()
    recognizer = QueuedSpeechRecognizer()
    core = build_default_core(
        settings,
        recognizer=recognizer,
        synthesizer=PrintSpeechSynthesizer(),
    )
    await core.start()
    printer_task = asyncio.create_task(_print_events(core)) if print_events else None
    print(f"{settings.app_name} ready. {HELP}")
    try:
        while True:
            line = await asyncio.to_thread(input, "orchestra> ")
            if not line.strip():
                continue
            if not await _handle_line(core, recognizer, line.strip()):
                break
    finally:
        await core.shutdown()
        if printer_task is not None:
            printer_task.cancel()
            with suppress(asyncio.CancelledError):
                await printer_task


def main() -> None:
    asyncio.run(run_interactive(print_events=Settings.from_env().print_events))


if __name__ == "__main__":
    main()
