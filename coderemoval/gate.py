"""Decide whether code removal runs for an invocation."""

import os
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Callable, Optional

MODE_ENV_VAR = "NODE_ENV"
TEST_MODE_ENV_VAR = "VITEST"


@dataclass(frozen=True)
class EnvironmentContext:
    """Active environments plus the ambient mode signals, passed explicitly."""

    active_environments: frozenset[str] = frozenset({"production"})
    custom_predicate: Optional[Callable[[], bool]] = None
    mode: Optional[str] = None
    test_mode: bool = False

    @classmethod
    def from_environ(
        cls,
        environments: Iterable[str] = ("production",),
        custom_predicate: Optional[Callable[[], bool]] = None,
        environ: Optional[Mapping[str, str]] = None,
        mode_var: str = MODE_ENV_VAR,
        test_var: str = TEST_MODE_ENV_VAR,
    ) -> "EnvironmentContext":
        """Read the ambient mode signals from an environment mapping.

        Args:
            environments: Environments in which removal is active
            custom_predicate: Authoritative override, if any
            environ: Mapping to read; ``os.environ`` when omitted
            mode_var: Variable holding the current mode name
            test_var: Variable whose presence signals a test run
        """
        if environ is None:
            environ = os.environ
        return cls(
            active_environments=frozenset(environments),
            custom_predicate=custom_predicate,
            mode=environ.get(mode_var) or None,
            test_mode=bool(environ.get(test_var)),
        )


def should_strip(context: EnvironmentContext, environments: Optional[Iterable[str]] = None) -> bool:
    """Whether removal is active.

    Resolution order: a custom predicate is authoritative; otherwise a test
    run is active iff "test" is listed; otherwise the current mode must be
    listed. ``environments`` overrides the context's list, which is how a
    marker family is gated on its own environments.
    """
    if context.custom_predicate is not None:
        return bool(context.custom_predicate())

    active = context.active_environments if environments is None else frozenset(environments)
    if context.test_mode:
        return "test" in active
    return context.mode is not None and context.mode in active
