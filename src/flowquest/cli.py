"""Command-line front end for FlowQuest.

Subcommands:
  play      Play an activity interactively
  report    Show the progress report of a session
  sessions  List stored sessions
"""

import argparse
import asyncio
import logging
import os
from dataclasses import dataclass

from groq import AsyncGroq

from .catalog import ContentRepository, load_content_dir, resolve_activity
from .config import EngineConfig, config_from_env
from .errors import (
    FlowQuestError,
    GenerationFailure,
    NotFoundError,
    PersistenceConflict,
    ValidationError,
)
from .interaction import DEFAULT_USER_ID, ChatResult, DialogueOrchestrator
from .llm import GroqTextGenerator, TextGenerator
from .logging import configure_logger
from .memory import MemoryConsolidator, MemoryManager, MemoryStore, RelevancePromoter
from .session import Session, SessionKey, SessionStore, build_report
from .storage import Database

logger = logging.getLogger(__name__)

TRY_AGAIN = "Something went wrong on our side. Please try again."

BANNER = """
FlowQuest: roleplay training

Commands:
  /report       - Show your progress
  /exit, /quit  - Leave the session
  /help         - Show this help

Type your message and press Enter.
"""


@dataclass
class Engine:
    """Wired engine components sharing one database."""

    config: EngineConfig
    db: Database
    content: ContentRepository
    sessions: SessionStore
    orchestrator: DialogueOrchestrator

    def close(self) -> None:
        self.db.close()


def build_engine(
    config: EngineConfig,
    generator: TextGenerator | None = None,
    content: ContentRepository | None = None,
) -> Engine:
    """Wire the storage, memory, session and interaction layers.

    Args:
        config: Engine configuration.
        generator: Text generator; a Groq one is created if None.
        content: Content repository; loaded from ``config.content_dir`` if None.

    Returns:
        The wired engine. Call ``close()`` when done.
    """
    if config.db_path is None or config.content_dir is None:
        raise ValueError("config needs db_path and content_dir")
    db = Database(config.db_path)
    db.init_db()

    if generator is None:
        generator = GroqTextGenerator(
            AsyncGroq(api_key=os.getenv("GROQ_API_KEY")),
            reply_model=config.reply_model,
            judge_model=config.judge_model,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            judge_max_tokens=config.judge_max_tokens,
            timeout=config.llm_timeout,
        )

    if content is None:
        content = load_content_dir(config.content_dir)

    memory = MemoryManager(
        MemoryStore(db),
        promoter=RelevancePromoter(generator),
        consolidator=MemoryConsolidator(generator, min_target=config.min_hot_target),
    )
    sessions = SessionStore(
        db, max_attempts=config.persist_attempts, backoff=config.persist_backoff
    )
    orchestrator = DialogueOrchestrator(content, memory, sessions, generator, config)
    return Engine(config, db, content, sessions, orchestrator)


def _format_report(engine: Engine, session: Session) -> str:
    units = resolve_activity(engine.content, session.activity_id).units
    return build_report(session, units, engine.config.default_max_turns).format()


class PlayCLI:
    """Interactive loop for one learner session."""

    def __init__(
        self,
        engine: Engine,
        activity_id: str,
        session_id: str,
        user_id: str = DEFAULT_USER_ID,
        user_name: str = "",
    ) -> None:
        self.engine = engine
        self.activity_id = activity_id
        self.session_id = session_id
        self.user_id = user_id
        self.user_name = user_name
        self.finished = False

    @property
    def key(self) -> SessionKey:
        return SessionKey(self.activity_id, self.user_id, self.session_id)

    def _format_result(self, result: ChatResult) -> str:
        """Format a turn's outcome for display."""
        output = ["\n" + "─" * 40, result.assistant_reply, "─" * 40]

        if result.course_completed:
            output.append("Course completed!")
        elif result.transitioned and result.session is not None:
            # The next unit's intro, if any, was seeded during the transition.
            last = _latest_intro(result.session)
            output.append("Moving on to the next unit.")
            if last:
                output.append(last)

        return "\n".join(output)

    async def start(self) -> Session:
        """Initialize the session and print the current unit's opening."""
        session = await self.engine.orchestrator.initialize(
            self.activity_id, self.session_id, self.user_id, self.user_name
        )
        intro = _latest_intro(session)
        if intro:
            print(f"\n{intro}")
        return session

    async def process_message(self, message: str) -> ChatResult | None:
        """Send a message; returns None if the turn failed."""
        try:
            result = await self.engine.orchestrator.chat(
                self.activity_id,
                self.session_id,
                self.user_id,
                message,
                user_name=self.user_name,
            )
        except (GenerationFailure, PersistenceConflict) as e:
            logger.warning("Turn failed for %s: %s", self.key, e)
            print(f"\n{TRY_AGAIN}")
            return None

        print(self._format_result(result))
        if result.course_completed:
            self.finished = True
        return result

    def show_report(self) -> None:
        session = self.engine.sessions.find_one(self.key)
        if session is None:
            print("No progress recorded yet.")
            return
        print(_format_report(self.engine, session))

    def handle_command(self, command: str) -> bool:
        """Handle a slash command. Returns True to continue, False to exit."""
        cmd = command.lower().strip()

        if cmd in ("/exit", "/quit"):
            print("\nGoodbye!")
            return False

        if cmd == "/report":
            self.show_report()
            return True

        if cmd == "/help":
            print(BANNER)
            return True

        print(f"Unknown command: {command}")
        return True

    async def run(self) -> None:
        """Run the interactive loop until exit or course completion."""
        print(BANNER)
        await self.start()

        while not self.finished:
            try:
                user_input = input("you> ").strip()
            except (EOFError, KeyboardInterrupt):
                print("\nGoodbye!")
                break

            if not user_input:
                continue

            if user_input.startswith("/"):
                if not self.handle_command(user_input):
                    break
                continue

            await self.process_message(user_input)


def _latest_intro(session: Session) -> str | None:
    """Content of the newest unit's opening message, if it only has that."""
    for result in reversed(session.unit_results):
        logs = result.conversation_logs
        if logs:
            if len(logs) == 1 and logs[0].role == "assistant":
                return logs[0].content
            return None
    return None


def cmd_play(args: argparse.Namespace, engine: Engine) -> int:
    """Play an activity interactively."""
    cli = PlayCLI(engine, args.activity, args.session, args.user, args.name)
    asyncio.run(cli.run())
    return 0


def cmd_report(args: argparse.Namespace, engine: Engine) -> int:
    """Print a session's progress report.

    Without --activity the most recently updated session with the given
    code is shown.
    """
    if args.activity:
        session = engine.sessions.find_one(SessionKey(args.activity, args.user, args.session))
    else:
        session = engine.sessions.find_latest(args.session)
    if session is None:
        print(f"Error: session '{args.session}' not found")
        return 1
    print(_format_report(engine, session))
    return 0


def cmd_sessions(args: argparse.Namespace, engine: Engine) -> int:
    """List stored sessions, most recent first."""
    sessions = engine.sessions.list(activity_id=args.activity)
    if not sessions:
        print("No sessions found.")
        return 0

    print(f"\n{'Session':<16} {'Activity':<20} {'User':<16} {'Units':>5}  Updated")
    print("-" * 80)
    for session in sessions:
        status = " (completed)" if session.completed else ""
        print(
            f"{session.session_id:<16} {session.activity_id:<20} {session.user_id:<16} "
            f"{len(session.unit_results):>5}  {session.generated_at}{status}"
        )

    print(f"\nTotal: {len(sessions)} session(s)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="flowquest",
        description="Roleplay training sessions with an AI persona",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    play_parser = subparsers.add_parser("play", help="Play an activity")
    play_parser.add_argument("--activity", required=True, help="Activity id")
    play_parser.add_argument("--session", required=True, help="Session code")
    play_parser.add_argument("--user", default=DEFAULT_USER_ID, help="Learner id")
    play_parser.add_argument("--name", default="", help="Learner display name")

    report_parser = subparsers.add_parser("report", help="Show a session report")
    report_parser.add_argument(
        "--activity", default=None, help="Activity id (default: latest session with this code)"
    )
    report_parser.add_argument("--session", required=True, help="Session code")
    report_parser.add_argument("--user", default=DEFAULT_USER_ID, help="Learner id")

    sessions_parser = subparsers.add_parser("sessions", help="List sessions")
    sessions_parser.add_argument("--activity", default=None, help="Filter by activity id")

    return parser


COMMANDS = {
    "play": cmd_play,
    "report": cmd_report,
    "sessions": cmd_sessions,
}


def run_cli(argv: list[str] | None = None, engine: Engine | None = None) -> int:
    """Run the CLI.

    Args:
        argv: Command line arguments (without the program name).
        engine: Pre-built engine; built from the environment if None.

    Returns:
        Exit code.
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 0

    owns_engine = engine is None
    if engine is None:
        config = config_from_env()
        configure_logger(config.log_dir)
        if args.command == "play" and not os.getenv("GROQ_API_KEY"):
            print("Error: GROQ_API_KEY environment variable not set")
            return 1
        engine = build_engine(config)

    try:
        return COMMANDS[args.command](args, engine)
    except (NotFoundError, ValidationError) as e:
        print(f"Error: {e}")
        return 1
    except FlowQuestError as e:
        logger.warning("Command %s failed: %s", args.command, e)
        print(TRY_AGAIN)
        return 1
    finally:
        if owns_engine:
            engine.close()
