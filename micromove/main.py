import argparse
import asyncio
from typing import Any, Dict, Optional

from micromove.client import HttpBackend, LocalBackend
from micromove.config import AVAILABLE_MODELS, TIMER_OPTIONS
from micromove.infrastructure.database import get_db
from micromove.infrastructure.event_bus import EventBus, EventType
from micromove.infrastructure.logging import setup_logging
from micromove.infrastructure.machines import SessionMachine
from micromove.infrastructure.persistence import SessionStore
from micromove.models.schemas import SessionState
from micromove.state import UserSettings
from micromove.tools.messages import (
    COMPLETION_MESSAGES, ENCOURAGEMENTS, STUCK_MESSAGES, format_time, pick
)

HELP = """Commands:
  [enter] / done  - Finished this step
  skip            - Skip this step
  stuck / s       - Make this step smaller
  p               - Pause / resume the timer
  steps           - Show all steps
  status          - Where am I?
  settings        - Change model, timer, sound, API key
  reset           - Start over with a new task
  quit            - Exit (your session is saved)"""

def _print_step(machine: SessionMachine):
    s = machine.snapshot
    step = s.current_step
    if step is None:
        return
    timer = "▶" if s.is_timer_running else "⏸"
    print(f"\n  Step {s.current_step_index + 1}/{len(s.steps)}  {timer} {format_time(s.time_left)}")
    print(f"  👉 {step.text}")
    print(f"  {pick(ENCOURAGEMENTS)}")

def _print_steps(machine: SessionMachine):
    s = machine.snapshot
    for i, step in enumerate(s.steps):
        mark = "✓" if step.completed else "↷" if step.skipped else "→" if i == s.current_step_index else " "
        print(f"  {mark} {i + 1}. {step.text}")

def _print_summary(summary: dict):
    print(f"\n{pick(COMPLETION_MESSAGES)}")
    print(f"  Task: {summary['task']}")
    print(f"  Completed: {summary['completed_steps']}  Skipped: {summary['skipped_steps']}")
    print(f"  Time focused: {format_time(summary['total_time_spent'])}")

async def _ask(prompt: str) -> str:
    return (await asyncio.to_thread(input, prompt)).strip()

# Typed input -> command name
COMMANDS = {
    "": "done", "done": "done", "d": "done",
    "skip": "skip",
    "stuck": "stuck", "s": "stuck",
    "p": "toggle", "pause": "toggle", "resume": "toggle",
    "steps": "steps",
    "status": "status",
    "settings": "settings",
    "reset": "reset",
    "quit": "quit",
}

def parse_command(text: str) -> str:
    """Unknown input maps to 'help'."""
    return COMMANDS.get(text.strip().lower(), "help")

def parse_timer_minutes(text: str) -> Optional[int]:
    text = text.strip()
    if text.isdigit() and int(text) > 0:
        return int(text)
    return None

def parse_toggle(text: str) -> Optional[bool]:
    """y/yes -> True, anything else typed -> False, blank -> None (keep)."""
    text = text.strip().lower()
    if not text:
        return None
    return text.startswith("y")

def parse_api_key(text: str) -> Optional[str]:
    """Blank keeps the current key (None); '-' clears it."""
    text = text.strip()
    if text == "-":
        return ""
    return text or None

def settings_changes(model: str, minutes: str, sound: str, vibration: str, api_key: str) -> Dict[str, Any]:
    """Turns the answers of the settings prompt into UserSettings.update() arguments."""
    changes: Dict[str, Any] = {}
    if model.strip():
        changes["model"] = model.strip()
    parsed = {
        "default_timer_minutes": parse_timer_minutes(minutes),
        "sound_enabled": parse_toggle(sound),
        "vibration_enabled": parse_toggle(vibration),
        "api_key": parse_api_key(api_key),
    }
    changes.update({attr: value for attr, value in parsed.items() if value is not None})
    return changes

async def _edit_settings(settings: UserSettings, machine: SessionMachine):
    print("\nModels: " + ", ".join(m["id"] for m in AVAILABLE_MODELS))
    model = await _ask(f"Model [{settings.model}]: ")
    options = "/".join(str(t) for t in TIMER_OPTIONS)
    minutes = await _ask(f"Timer minutes ({options}) [{settings.default_timer_minutes}]: ")
    sound = await _ask(f"Sound on? (y/n) [{'y' if settings.sound_enabled else 'n'}]: ")
    vibration = await _ask(f"Vibration on? (y/n) [{'y' if settings.vibration_enabled else 'n'}]: ")
    api_key = await _ask("API key (blank keeps current, '-' clears): ")

    changes = settings_changes(model, minutes, sound, vibration, api_key)
    settings.update(**changes)
    if "default_timer_minutes" in changes:
        machine.set_timer_duration(settings.timer_duration_seconds)
    settings.save_to_db()
    print("💾 Settings saved.")

async def handle_command(machine: SessionMachine, settings: UserSettings, command: str) -> bool:
    """Runs one in-session command. Returns False when the user quits."""
    if command == "done":
        result = await machine.done()
        if result["status"] == "completed":
            _print_step(machine)
    elif command == "skip":
        result = await machine.skip()
        if result["status"] == "skipped":
            _print_step(machine)
    elif command == "stuck":
        print(f"🤔 {pick(STUCK_MESSAGES)}")
        result = await machine.stuck()
        if result["status"] == "reframed":
            _print_step(machine)
    elif command == "toggle":
        result = machine.toggle_timer()
        print("▶ Running" if result["status"] == "running" else "⏸ Paused")
    elif command == "steps":
        _print_steps(machine)
    elif command == "status":
        for key, value in machine.get_status().items():
            print(f"  {key}: {value}")
    elif command == "settings":
        await _edit_settings(settings, machine)
    elif command == "reset":
        await machine.reset()
        print("🔄 Starting fresh.")
    elif command == "quit":
        print("\n👋 Session saved. Come back any time.")
        return False
    else:
        print(HELP)
    return True

async def run_micromove(server_url: Optional[str] = None):
    """Interactive session loop."""
    logger = setup_logging()

    settings = UserSettings()
    settings.load_from_db()

    backend = HttpBackend(server_url, settings) if server_url else LocalBackend(settings)
    event_bus = EventBus()
    machine = SessionMachine(
        event_bus,
        SessionStore(get_db()),
        backend,
        timer_duration=settings.timer_duration_seconds,
    )

    def on_timer_expired(data):
        if settings.sound_enabled:
            print("\a", end="", flush=True)
        if settings.vibration_enabled:
            print("📳", end=" ")
        print("\n⏰ Time's up for this step. Done, skip, or stuck?")

    event_bus.subscribe(EventType.TIMER_EXPIRED, on_timer_expired)
    event_bus.subscribe(EventType.SESSION_COMPLETED, _print_summary)

    print("=" * 60)
    print("  MicroMove - Big tasks → tiny wins. 5 minutes at a time.")
    print("=" * 60)

    if await machine.restore():
        print(f"\n↩️  Welcome back! Resuming '{machine.snapshot.task}' (timer paused, 'p' to resume).")
        _print_step(machine)

    machine.start_timer_loop()
    try:
        while True:
            state = machine.state

            if state == SessionState.START:
                task = await _ask("\nWhat are you avoiding? ")
                if task.lower() == "quit":
                    break
                if task.lower() == "settings":
                    await _edit_settings(settings, machine)
                    continue
                if not task:
                    continue
                print("⏳ Breaking it down...")
                result = await machine.submit(task)
                if result["status"] == "error":
                    print(f"⚠️ {result['message']}")
                    continue
                print(HELP)
                _print_step(machine)
                continue

            if state == SessionState.COMPLETE:
                again = await _ask("\nStart another task? (y/n) ")
                if parse_toggle(again):
                    await machine.reset()
                    continue
                break

            command = parse_command(await _ask("\n> "))
            if not await handle_command(machine, settings, command):
                break
    except (KeyboardInterrupt, EOFError):
        print("\n\n⚡ Interrupted. Your session is saved.")
    finally:
        machine.stop_timer_loop()
        logger.info("MicroMove session loop ended", extra={"props": {"state": machine.state.value}})

def main(argv=None):
    parser = argparse.ArgumentParser(prog="micromove", description="Break overwhelming tasks into tiny timed steps.")
    sub = parser.add_subparsers(dest="command")

    session = sub.add_parser("session", help="Run an interactive session (default)")
    session.add_argument("--server", help="Use a running MicroMove API instead of in-process handlers")

    serve = sub.add_parser("serve", help="Run the breakdown/reframe API")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)
    if args.command == "serve":
        from micromove.api.server import run
        run(host=args.host, port=args.port)
    else:
        asyncio.run(run_micromove(getattr(args, "server", None)))

if __name__ == "__main__":
    main()
