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

"""``status`` command: report pods and services of an existing deployment."""

from __future__ import annotations

from enum import Enum
from pathlib import Path

import typer

from llmd_setup.commands.common import finish
from llmd_setup.config import resolve_config
from llmd_setup.orchestrator import run_status


class OutputFormat(str, Enum):
    table = "table"
    yaml = "yaml"


def status(
    namespace: str | None = typer.Option(
        None, "--namespace", "-n", help="Namespace to inspect (default: llm-d)"),
    kubeconfig: Path | None = typer.Option(
        None, "--kubeconfig", help="Cluster admin kubeconfig"),
    wait: bool = typer.Option(
        False, "--wait/--no-wait", help="Wait for pod readiness first"),
    pod_wait_timeout: int | None = typer.Option(
        None, "--pod-wait-timeout", help="Pod readiness ceiling in seconds"),
    output: OutputFormat = typer.Option(
        OutputFormat.table, "--output", "-o", help="Service summary format"),
) -> None:
    """Show running pods and the service summary."""
    cfg = resolve_config(namespace=namespace, kubeconfig=kubeconfig, pod_wait_timeout=pod_wait_timeout)
    finish(run_status(cfg, wait=wait, output=output.value))
