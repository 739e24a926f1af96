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

"""Shared helpers for CLI commands."""

from __future__ import annotations

import typer

from llmd_setup.results import StepResult, has_fatal
from llmd_setup.status import print_step_summary


def finish(results: list[StepResult]) -> None:
    """Print the step summary and exit non-zero on any fatal result."""
    print_step_summary(results)
    if has_fatal(results):
        raise typer.Exit(code=1)
