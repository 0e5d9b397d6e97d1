# params.py
# Build parameters and the read-only context handed to every action and
# precondition. Resolution happens once at startup (CLI), never inside the
# executor.
from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from types import MappingProxyType
from typing import Dict, Iterable, Mapping, Optional

from .errors import ParameterError

REDACTED = "***"


@dataclass(frozen=True)
class Parameter:
    """A named configuration value, optionally secret."""
    name: str
    default: str | None = None
    secret: bool = False
    env: str | None = None
    help: str | None = None

    @property
    def env_var(self) -> str:
        return self.env or self.name.upper()


class Context:
    """
    Immutable view of resolved parameter values.

    Secret values are tracked so that every message leaving the orchestrator
    can be passed through redact().
    """

    def __init__(
        self,
        values: Mapping[str, str | None] | None = None,
        *,
        secrets: Iterable[str] = (),
        env_names: Mapping[str, str] | None = None,
        root: str | Path = ".",
    ):
        self._values = MappingProxyType(dict(values or {}))
        self._secrets = frozenset(secrets)
        self._env_names = MappingProxyType(dict(env_names or {}))
        self.root = Path(root).resolve()

    @property
    def values(self) -> Mapping[str, str | None]:
        return self._values

    def get(self, name: str, default: str | None = None) -> str | None:
        value = self._values.get(name)
        return default if value is None else value

    def __getitem__(self, name: str) -> str | None:
        if name not in self._values:
            raise KeyError(name)
        return self._values[name]

    def __contains__(self, name: object) -> bool:
        return name in self._values

    def is_secret(self, name: str) -> bool:
        return name in self._secrets

    def display(self, name: str) -> str:
        """Value safe to show to a user."""
        value = self._values.get(name)
        if value is None:
            return "<unset>"
        return REDACTED if self.is_secret(name) else value

    def redact(self, text: str) -> str:
        # longest first so a secret containing another secret is fully masked
        secret_values = sorted(
            (v for k, v in self._values.items() if k in self._secrets and v),
            key=len,
            reverse=True,
        )
        for value in secret_values:
            text = text.replace(value, REDACTED)
        return text

    def environment(self) -> Dict[str, str]:
        """Parameter values exported to shell steps, keyed by env var name."""
        env: Dict[str, str] = {}
        for name, value in self._values.items():
            if value is None:
                continue
            env[self._env_names.get(name, name.upper())] = value
        return env


def parse_assignments(pairs: Iterable[str]) -> Dict[str, str]:
    """Parse ["name=value", ...] from the command line."""
    out: Dict[str, str] = {}
    for pair in pairs:
        name, sep, value = pair.partition("=")
        name = name.strip()
        if not sep or not name:
            raise ParameterError(f"Invalid parameter assignment (expected name=value): {name or pair!r}")
        out[name] = value
    return out


def resolve_parameters(
    parameters: Iterable[Parameter],
    overrides: Mapping[str, str] | None = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
    root: str | Path = ".",
) -> Context:
    """
    Resolve declared parameters into a Context.

    Precedence: command-line override > environment variable > default.
    """
    if environ is None:
        environ = os.environ
    overrides = dict(overrides or {})

    declared: Dict[str, Parameter] = {}
    for p in parameters:
        if p.name in declared:
            raise ParameterError(f"Duplicate parameter name: {p.name!r}")
        declared[p.name] = p

    unknown = sorted(set(overrides) - set(declared))
    if unknown:
        raise ParameterError(
            f"Unknown parameter(s): {', '.join(unknown)}. "
            f"Declared parameters: {', '.join(sorted(declared)) or '<none>'}"
        )

    values: Dict[str, str | None] = {}
    for name, p in declared.items():
        if name in overrides:
            values[name] = overrides[name]
        elif p.env_var in environ:
            values[name] = environ[p.env_var]
        else:
            values[name] = p.default

    return Context(
        values,
        secrets=[p.name for p in declared.values() if p.secret],
        env_names={p.name: p.env_var for p in declared.values()},
        root=root,
    )
