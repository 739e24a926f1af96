# /*
# Copyright 2026 The llm-d-setup Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""Step and installer result types."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from enum import Enum


class StepStatus(str, Enum):
    """Outcome category of a single orchestration step."""

    SUCCESS = "success"
    SKIPPED = "skipped"
    NON_FATAL_ERROR = "non-fatal error"
    FATAL_ERROR = "fatal error"


@dataclass(frozen=True)
class StepResult:
    """Result of one step.

    Attributes:
        name: Human-readable step name.
        status: Outcome category.
        detail: Short description of what happened.
    """

    name: str
    status: StepStatus
    detail: str = ""

    @classmethod
    def ok(cls, name: str, detail: str = "") -> StepResult:
        return cls(name, StepStatus.SUCCESS, detail)

    @classmethod
    def skipped(cls, name: str, detail: str = "") -> StepResult:
        return cls(name, StepStatus.SKIPPED, detail)

    @classmethod
    def warning(cls, name: str, detail: str) -> StepResult:
        return cls(name, StepStatus.NON_FATAL_ERROR, detail)

    @classmethod
    def fatal(cls, name: str, detail: str) -> StepResult:
        return cls(name, StepStatus.FATAL_ERROR, detail)

    @property
    def is_fatal(self) -> bool:
        return self.status is StepStatus.FATAL_ERROR


def has_fatal(results: Iterable[StepResult]) -> bool:
    """Return True if any result is a fatal error."""
    return any(result.is_fatal for result in results)


class InstallerOutcome(str, Enum):
    """Terminal state of the long-running installer."""

    COMPLETED = "completed"
    TIMED_OUT = "timed out"
    FAILED = "failed"


@dataclass(frozen=True)
class InstallerRun:
    """Captured installer run.

    Attributes:
        outcome: Terminal state.
        returncode: Process exit code, or None if it never exited on its own.
        stdout_lines: Captured standard output lines.
        stderr_lines: Captured standard error lines.
        elapsed: Wall-clock seconds spent waiting.
    """

    outcome: InstallerOutcome
    returncode: int | None = None
    stdout_lines: list[str] = field(default_factory=list)
    stderr_lines: list[str] = field(default_factory=list)
    elapsed: float = 0.0
