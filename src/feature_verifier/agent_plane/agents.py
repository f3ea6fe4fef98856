"""
feature-verifier agent registry.

File: src/feature_verifier/agent_plane/agents.py

Purpose
- Describe the external AI agent CLIs the verifier can drive, probe whether their
  executables resolve on this machine, and load extra descriptors from YAML.

Functional requirements
- Availability is re-probed on every call; nothing is cached across selections.
- YAML descriptor files hold either a top-level list or a mapping with an ``agents``
  list of ``{name, command, prompt_via_stdin}`` entries. Entries override built-ins
  with the same name.
"""

from __future__ import annotations

import shutil
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import Final, cast

import yaml

from feature_verifier.constants import DEFAULT_AGENT_PRIORITY


@dataclass(frozen=True, slots=True)
class AgentDescriptor:
    """Static agent configuration: argv template and prompt delivery mode."""

    name: str
    command: tuple[str, ...]
    prompt_via_stdin: bool = True

    def __post_init__(self) -> None:
        name = self.name.strip().lower() if isinstance(self.name, str) else ""
        if not name:
            raise ValueError("AgentDescriptor.name: must not be empty")
        command = tuple(self.command)
        if not command or any(not isinstance(part, str) or not part for part in command):
            raise ValueError(f"AgentDescriptor.command: {name} needs a non-empty argv")
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "command", command)

    @property
    def executable(self) -> str:
        return self.command[0]

    def build_argv(self, prompt: str) -> tuple[str, ...]:
        if self.prompt_via_stdin:
            return self.command
        return (*self.command, prompt)


DEFAULT_AGENTS: Final[tuple[AgentDescriptor, ...]] = (
    AgentDescriptor(
        name="claude",
        command=(
            "claude",
            "--print",
            "--output-format",
            "text",
            "--permission-mode",
            "bypassPermissions",
            "-",
        ),
    ),
    AgentDescriptor(
        name="codex",
        command=("codex", "exec", "--skip-git-repo-check", "--full-auto", "-"),
    ),
    AgentDescriptor(
        name="gemini",
        command=("gemini", "--output-format", "text", "--yolo"),
    ),
)


@dataclass(frozen=True, slots=True)
class AgentStatus:
    name: str
    available: bool


def command_exists(command: str) -> bool:
    """Lightweight PATH lookup honouring ``PATHEXT`` on Windows."""

    return shutil.which(command) is not None


class AgentRegistry:
    """Name-indexed agent descriptors with a preference order."""

    def __init__(
        self,
        agents: Iterable[AgentDescriptor] = DEFAULT_AGENTS,
        *,
        priority: Sequence[str] = DEFAULT_AGENT_PRIORITY,
    ) -> None:
        self._agents: dict[str, AgentDescriptor] = {}
        for agent in agents:
            self._agents[agent.name] = agent
        self._priority = tuple(name.strip().lower() for name in priority if name.strip())

    @classmethod
    def from_settings(
        cls,
        *,
        priority: Sequence[str] = DEFAULT_AGENT_PRIORITY,
        descriptors_file: str | Path | None = None,
    ) -> AgentRegistry:
        agents: dict[str, AgentDescriptor] = {agent.name: agent for agent in DEFAULT_AGENTS}
        if descriptors_file is not None:
            for agent in load_agent_descriptors(descriptors_file):
                agents[agent.name] = agent
        return cls(agents.values(), priority=priority)

    @property
    def priority(self) -> tuple[str, ...]:
        return self._priority

    def get(self, name: str) -> AgentDescriptor | None:
        return self._agents.get(name.strip().lower())

    def names(self) -> tuple[str, ...]:
        return tuple(self._agents)

    def is_available(self, name: str) -> bool:
        agent = self.get(name)
        return agent is not None and command_exists(agent.executable)

    def first_available(self, preferred_order: Sequence[str] | None = None) -> AgentDescriptor | None:
        for name in preferred_order or self._priority:
            agent = self.get(name)
            if agent is not None and command_exists(agent.executable):
                return agent
        return None

    def check_available_agents(self) -> list[AgentStatus]:
        return [
            AgentStatus(name=agent.name, available=command_exists(agent.executable))
            for agent in self._agents.values()
        ]

    def priority_string(self) -> str:
        return agent_priority_string(self._priority)


def agent_priority_string(priority: Sequence[str] = DEFAULT_AGENT_PRIORITY) -> str:
    """``("claude", "codex")`` -> ``"Claude > Codex"``."""

    return " > ".join(name[:1].upper() + name[1:] for name in priority if name)


def load_agent_descriptors(path: str | Path) -> list[AgentDescriptor]:
    """Load agent descriptors from a YAML file; raises ``ValueError`` on malformed input."""

    file_path = Path(path)
    try:
        with file_path.open("r", encoding="utf-8") as handle:
            loaded = cast("object", yaml.safe_load(handle))
    except OSError as exc:
        raise ValueError(f"{file_path}: unable to read agent descriptors ({exc})") from exc
    except yaml.YAMLError as exc:
        raise ValueError(f"{file_path}: invalid YAML ({exc})") from exc

    records: object = loaded
    if isinstance(loaded, Mapping):
        records = loaded.get("agents")
    if not isinstance(records, list):
        raise ValueError(f"{file_path}: expected a list or a mapping with an 'agents' list")

    descriptors: list[AgentDescriptor] = []
    for index, item in enumerate(records):
        location = f"{file_path.name}[{index}]"
        if not isinstance(item, Mapping):
            raise ValueError(f"{location}: expected mapping, got {type(item).__name__}")
        command = item.get("command")
        if isinstance(command, str):
            command = command.split()
        if not isinstance(command, list):
            raise ValueError(f"{location}.command: expected list of strings")
        prompt_via_stdin = item.get("prompt_via_stdin", True)
        if not isinstance(prompt_via_stdin, bool):
            raise ValueError(f"{location}.prompt_via_stdin: expected boolean")
        name = item.get("name")
        if not isinstance(name, str):
            raise ValueError(f"{location}.name: expected string")
        try:
            descriptors.append(
                AgentDescriptor(
                    name=name,
                    command=tuple(str(part) for part in command),
                    prompt_via_stdin=prompt_via_stdin,
                )
            )
        except ValueError as exc:
            raise ValueError(f"{location}: {exc}") from exc
    return descriptors


__all__ = [
    "AgentDescriptor",
    "AgentRegistry",
    "AgentStatus",
    "DEFAULT_AGENTS",
    "agent_priority_string",
    "command_exists",
    "load_agent_descriptors",
]
