"""Interactive flow that resolves and persists a working connection string."""

from __future__ import annotations

import getpass
import logging
from enum import Enum
from typing import Callable, Iterable, Protocol, runtime_checkable

from pydantic import ValidationError

from .bootstrap import DatabaseBootstrapper
from .config import AppConfig, ensure_database_segment, save_database_url
from .models import (
    ConnectionConfig,
    PgBootstrapError,
    SetupOutcome,
    SetupSource,
    redact_connection_string,
)
from .probe import ConnectionProber

LOG = logging.getLogger(__name__)

# (field, message, default, secret) in the order they are asked.
CONNECTION_PROMPTS: tuple[tuple[str, str, str | None, bool], ...] = (
    ("host", "Enter your PostgreSQL host:", "localhost", False),
    ("port", "Enter your PostgreSQL port:", "5432", False),
    ("database", "Enter your PostgreSQL database name:", "postgres", False),
    ("user", "Enter your PostgreSQL username:", "postgres", False),
    ("password", "Enter your PostgreSQL password:", None, True),
)

KEEP_EXISTING_PROMPT = "Would you like to keep the existing PostgreSQL URL?"


class SetupAborted(PgBootstrapError):
    """Raised when the operator aborts or every attempt has failed."""


class WizardState(str, Enum):
    CHECK_EXISTING = "check_existing"
    CONFIRM_EXISTING = "confirm_existing"
    PROMPT = "prompt"
    PERSIST = "persist"
    DONE = "done"
    ABORTED = "aborted"


@runtime_checkable
class Prompter(Protocol):
    """Operator I/O used by the wizard."""

    def say(self, message: str) -> None:
        """Show an informational line to the operator."""

    def ask(self, message: str, *, default: str | None = None, secret: bool = False) -> str:
        """Ask for a value; an empty answer yields ``default``."""

    def confirm(self, message: str, *, default: bool = True) -> bool:
        """Ask a yes/no question."""


class ConsolePrompter:
    """Prompter reading from stdin, with hidden input for secrets."""

    def say(self, message: str) -> None:
        print(message)

    def ask(self, message: str, *, default: str | None = None, secret: bool = False) -> str:
        suffix = f" ({default})" if default else ""
        reader = getpass.getpass if secret else input
        answer = reader(f"{message}{suffix} ").strip()
        return answer or (default or "")

    def confirm(self, message: str, *, default: bool = True) -> bool:
        hint = "Y/n" if default else "y/N"
        while True:
            answer = input(f"{message} ({hint}) ").strip().lower()
            if not answer:
                return default
            if answer in {"y", "yes"}:
                return True
            if answer in {"n", "no"}:
                return False
            self.say("Please answer yes or no.")


class ScriptedPrompter:
    """Replays canned answers; useful for tests and unattended runs.

    Answers are consumed in order. ``None`` or ``""`` selects the prompt's
    default. Running out of answers aborts the wizard.
    """

    def __init__(self, answers: Iterable[str | bool | None] = ()) -> None:
        self._answers = list(answers)
        self.asked: list[str] = []
        self.messages: list[str] = []

    def say(self, message: str) -> None:
        self.messages.append(message)

    def ask(self, message: str, *, default: str | None = None, secret: bool = False) -> str:
        answer = self._next(message)
        if answer is None or answer == "":
            return default or ""
        return str(answer)

    def confirm(self, message: str, *, default: bool = True) -> bool:
        answer = self._next(message)
        if answer is None or answer == "":
            return default
        if isinstance(answer, str):
            return answer.strip().lower() in {"y", "yes", "true"}
        return bool(answer)

    def _next(self, message: str) -> str | bool | None:
        self.asked.append(message)
        if not self._answers:
            raise SetupAborted(f"No scripted answer for prompt: {message}")
        return self._answers.pop(0)


class SetupWizard:
    """Bounded state machine that ends with a probed, persisted connection string."""

    def __init__(
        self,
        config: AppConfig,
        prompter: Prompter | None = None,
        *,
        prober: ConnectionProber | None = None,
        bootstrapper: DatabaseBootstrapper | None = None,
        max_attempts: int | None = None,
        create_missing: bool = True,
        save: Callable[[AppConfig, str], AppConfig] = save_database_url,
    ) -> None:
        self._config = config
        self._prompter = prompter or ConsolePrompter()
        self._prober = prober or ConnectionProber(timeout=config.probe_timeout)
        self._bootstrapper = bootstrapper or DatabaseBootstrapper(
            admin_database=config.admin_database,
            prober=self._prober,
        )
        self._max_attempts = config.max_attempts if max_attempts is None else max_attempts
        if self._max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self._max_attempts}")
        self._create_missing = create_missing
        self._save = save
        self._state = WizardState.CHECK_EXISTING
        self._attempts = 0

    @property
    def state(self) -> WizardState:
        return self._state

    @property
    def attempts(self) -> int:
        """Number of prompt-and-probe cycles run so far."""

        return self._attempts

    @property
    def config(self) -> AppConfig:
        return self._config

    async def resolve_connection_string(self) -> SetupOutcome:
        """Run the wizard to completion.

        Raises :class:`SetupAborted` when the operator aborts or when
        ``max_attempts`` prompt cycles fail to produce a working connection.
        """

        self._state = WizardState.CHECK_EXISTING
        self._attempts = 0
        candidate: str | None = None
        resolved: str | None = None
        source = SetupSource.NEWLY_CONFIGURED
        try:
            while True:
                if self._state is WizardState.CHECK_EXISTING:
                    candidate = await self._check_existing()
                    self._state = WizardState.CONFIRM_EXISTING if candidate else WizardState.PROMPT
                elif self._state is WizardState.CONFIRM_EXISTING:
                    assert candidate is not None
                    self._prompter.say(f"PostgreSQL URL detected: {redact_connection_string(candidate)}")
                    if self._prompter.confirm(KEEP_EXISTING_PROMPT, default=True):
                        resolved, source = candidate, SetupSource.REUSED_EXISTING
                        self._state = WizardState.PERSIST
                    else:
                        self._state = WizardState.PROMPT
                elif self._state is WizardState.PROMPT:
                    if self._attempts >= self._max_attempts:
                        raise SetupAborted(
                            f"Could not connect to PostgreSQL after {self._attempts} attempt(s)."
                        )
                    self._attempts += 1
                    resolved = await self._configure_new()
                    if resolved:
                        source = SetupSource.NEWLY_CONFIGURED
                        self._state = WizardState.PERSIST
                elif self._state is WizardState.PERSIST:
                    assert resolved is not None
                    self._config = self._save(self._config, resolved)
                    self._state = WizardState.DONE
                    persisted = self._config.database_url or resolved
                    LOG.info("Setup resolved connection string", extra={"source": source.value})
                    return SetupOutcome(connection_string=persisted, source=source)
                else:  # pragma: no cover - DONE/ABORTED never loop
                    raise SetupAborted(f"Wizard cannot continue from state {self._state.value}")
        except (EOFError, KeyboardInterrupt) as exc:
            self._state = WizardState.ABORTED
            raise SetupAborted("Setup aborted by operator.") from exc
        except SetupAborted:
            self._state = WizardState.ABORTED
            raise

    async def _check_existing(self) -> str | None:
        existing = self._config.database_url
        if not existing:
            LOG.debug("No existing connection string", extra={"key": self._config.env_key})
            return None
        # The string that is probed is the string that gets persisted.
        candidate = ensure_database_segment(existing, self._config.default_database)
        self._prompter.say("Checking PostgreSQL connection...")
        result = await self._prober.probe(candidate)
        if not result:
            self._prompter.say(f"Connection to the existing PostgreSQL URL failed: {result.message}")
            return None
        return candidate

    async def _configure_new(self) -> str | None:
        answers = {
            name: self._prompter.ask(message, default=default, secret=secret)
            for name, message, default, secret in CONNECTION_PROMPTS
        }
        try:
            params = ConnectionConfig(**answers)
        except ValidationError as exc:
            problems = "; ".join(
                f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}" for error in exc.errors()
            )
            self._prompter.say(f"Invalid connection settings: {problems}")
            return None

        if self._create_missing:
            result = await self._bootstrapper.ensure_database(
                params.host,
                params.port,
                params.user,
                params.password,
                params.database,
            )
            url = result.connection_string if result else None
            message = result.message
        else:
            url = params.connection_string()
            probe = await self._prober.probe(url)
            message = probe.message
            if not probe:
                url = None

        if url is None:
            self._prompter.say(f"Connection to PostgreSQL failed with error: {message}. Please try again.")
            return None
        self._prompter.say("Connection to PostgreSQL successful!")
        return url


__all__ = [
    "CONNECTION_PROMPTS",
    "ConsolePrompter",
    "KEEP_EXISTING_PROMPT",
    "Prompter",
    "ScriptedPrompter",
    "SetupAborted",
    "SetupWizard",
    "WizardState",
]
