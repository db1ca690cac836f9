"""PostgreSQL connection lifecycle: probing, bootstrapping, pooling and setup."""

from __future__ import annotations

from .bootstrap import DatabaseBootstrapper
from .config import AppConfig, load_config, save_database_url
from .manager import ConnectionManager, ConnectionManagerError
from .models import (
    BootstrapResult,
    ConnectionConfig,
    ErrorKind,
    InvalidDatabaseName,
    PgBootstrapError,
    ProbeResult,
    SetupOutcome,
    SetupSource,
    TopologyCheck,
    TopologyResult,
)
from .probe import ConnectionProber, probe
from .topology import TopologyChecker
from .wizard import ConsolePrompter, Prompter, ScriptedPrompter, SetupAborted, SetupWizard

__all__ = [
    "AppConfig",
    "BootstrapResult",
    "ConnectionConfig",
    "ConnectionManager",
    "ConnectionManagerError",
    "ConnectionProber",
    "ConsolePrompter",
    "DatabaseBootstrapper",
    "ErrorKind",
    "InvalidDatabaseName",
    "PgBootstrapError",
    "ProbeResult",
    "Prompter",
    "ScriptedPrompter",
    "SetupAborted",
    "SetupOutcome",
    "SetupSource",
    "SetupWizard",
    "TopologyCheck",
    "TopologyChecker",
    "TopologyResult",
    "load_config",
    "probe",
    "save_database_url",
]
