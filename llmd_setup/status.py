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

"""Service summaries, pod listings, and step result reporting."""

from __future__ import annotations

import json
from collections.abc import Iterable
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import yaml
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from llmd_setup import console
from llmd_setup.results import StepResult, StepStatus
from llmd_setup.utils import first_line, run_kubectl

STATUS_STYLES = {
    StepStatus.SUCCESS: "green",
    StepStatus.SKIPPED: "dim",
    StepStatus.NON_FATAL_ERROR: "yellow",
    StepStatus.FATAL_ERROR: "red",
}


@dataclass(frozen=True)
class ServiceSummary:
    """Reduced view of a Service as reported after deployment.

    Attributes:
        name: ``metadata.name``.
        type: ``spec.type``, e.g. ``NodePort``.
        nodePort: ``nodePort`` of the first port, if any.
        loadBalancerIP: IP of the first load balancer ingress, if any.
    """

    name: str | None
    type: str | None
    nodePort: int | None
    loadBalancerIP: str | None


def _first(items: Any) -> dict:
    """Return the first element of a list as a dict, or an empty dict."""
    if isinstance(items, list) and items and isinstance(items[0], dict):
        return items[0]
    return {}


def summarize_services(doc: dict) -> list[ServiceSummary]:
    """Project a ``kubectl get services -o json`` document to summaries.

    Missing fields become None.
    """
    summaries = []
    for item in doc.get("items") or []:
        metadata = item.get("metadata") or {}
        spec = item.get("spec") or {}
        status = item.get("status") or {}
        summaries.append(ServiceSummary(
            name=metadata.get("name"),
            type=spec.get("type"),
            nodePort=_first(spec.get("ports")).get("nodePort"),
            loadBalancerIP=_first((status.get("loadBalancer") or {}).get("ingress")).get("ip"),
        ))
    return summaries


def get_services(namespace: str, kubeconfig: Path) -> list[ServiceSummary]:
    """Fetch and summarize the services in *namespace*.

    Raises:
        RuntimeError: If kubectl fails or returns invalid JSON.
    """
    ok, stdout, stderr = run_kubectl(["get", "services", "-n", namespace, "-o", "json"], kubeconfig)
    if not ok:
        raise RuntimeError(f"Failed to list services in {namespace}: {first_line(stderr)}")
    try:
        return summarize_services(json.loads(stdout))
    except json.JSONDecodeError as err:
        raise RuntimeError(f"kubectl returned invalid JSON for services: {err}") from err


def services_yaml(summaries: Iterable[ServiceSummary]) -> str:
    """Render summaries as indented YAML."""
    return yaml.safe_dump([asdict(s) for s in summaries], sort_keys=False, indent=4)


def services_table(namespace: str, summaries: list[ServiceSummary]) -> Table:
    table = Table(title=f"Available services in {namespace} namespace", title_style="bold blue")
    table.add_column("Name", style="cyan")
    table.add_column("Type")
    table.add_column("NodePort", justify="right")
    table.add_column("LoadBalancer IP")
    for s in summaries:
        table.add_row(
            s.name or "-",
            s.type or "-",
            str(s.nodePort) if s.nodePort is not None else "-",
            s.loadBalancerIP or "-",
        )
    return table


def report_services(namespace: str, kubeconfig: Path, output: str = "table") -> StepResult:
    """Print the service summary as a table or YAML; failures are non-fatal."""
    name = "report services"
    try:
        summaries = get_services(namespace, kubeconfig)
    except RuntimeError as err:
        console.print(f"[yellow]\u26a0\ufe0f  {escape(str(err))}[/yellow]")
        return StepResult.warning(name, str(err))
    if output == "yaml":
        console.print(f"Available services in {namespace} namespace:")
        console.print(services_yaml(summaries), markup=False, highlight=False)
    else:
        console.print(services_table(namespace, summaries))
    return StepResult.ok(name, f"{len(summaries)} services")


def print_pods(namespace: str, pods: str) -> None:
    console.print(Panel.fit(f"Running pods in {namespace}", style="bold blue"))
    console.print(pods.rstrip() or "No running pods", markup=False, highlight=False)


def print_step_summary(results: list[StepResult]) -> None:
    """Print every step result as a table."""
    table = Table(title="Summary", title_style="bold blue")
    table.add_column("Step", style="cyan")
    table.add_column("Status")
    table.add_column("Detail", overflow="fold")
    for result in results:
        style = STATUS_STYLES[result.status]
        table.add_row(result.name, f"[{style}]{result.status.value}[/{style}]", Text(result.detail))
    console.print(table)
