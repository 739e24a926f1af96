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

"""Orchestration functions that compose domain modules into workflows."""

from __future__ import annotations

import sh
from rich.markup import escape
from rich.panel import Panel

from llmd_setup import console
from llmd_setup.config import DeploymentParams, SetupConfig
from llmd_setup.constants import DOWNLOADED_TOOLS, SYMLINKED_TOOLS, dep_value
from llmd_setup.deployer import (
    TokenError,
    apply_model_pvc,
    display_installer_output,
    load_hf_token,
    materialize_values_file,
    namespace_exists,
    run_installer,
    running_pods,
    sync_deployer_repo,
    wait_for_pods,
)
from llmd_setup.results import InstallerOutcome, StepResult, has_fatal
from llmd_setup.status import print_pods, report_services
from llmd_setup.tools import (
    check_bin_dir,
    create_symlinks,
    detect_arch,
    ensure_tool,
    install_os_packages,
    verify_tools,
)


# ============================================================================
# Phase 1: dependencies
# ============================================================================

def run_install_dependencies(cfg: SetupConfig) -> list[StepResult]:
    """Install OS packages and CLI tools, verify them, and create symlinks.

    Stops at the first fatal result.

    Args:
        cfg: Run configuration.

    Returns:
        Results of every step that ran.
    """
    results: list[StepResult] = []
    arch = detect_arch()
    console.print(f"[yellow]\u2139\ufe0f  Target architecture: {arch}[/yellow]")

    results.append(check_bin_dir(DOWNLOADED_TOOLS, cfg.bin_dir))
    if has_fatal(results):
        return results

    results.append(install_os_packages(dep_value("packages", "apt", default=[])))
    if has_fatal(results):
        return results

    console.print(Panel.fit("Installing CLI tools", style="bold blue"))
    for tool in DOWNLOADED_TOOLS:
        results.append(ensure_tool(tool, arch, cfg.bin_dir))
        if has_fatal(results):
            return results

    results.extend(verify_tools(cfg.kubernetes_version, cfg.bin_dir))
    if has_fatal(results):
        return results

    results.extend(create_symlinks(SYMLINKED_TOOLS, cfg.bin_dir, cfg.link_dir))
    return results


# ============================================================================
# Phase 2: deployment
# ============================================================================

def _prepare_workdir(cfg: SetupConfig) -> StepResult:
    """Force-sync the deployer checkout and copy the values file."""
    name = "prepare llm-d-deployer"
    console.print(Panel.fit("Preparing llm-d-deployer", style="bold blue"))
    try:
        sync_deployer_repo(cfg.deployer_repo, cfg.deployer_branch, cfg.work_dir)
        values_file = materialize_values_file(cfg.work_dir)
    except (RuntimeError, OSError, sh.ErrorReturnCode) as err:
        console.print(f"[red]\u274c {escape(str(err))}[/red]")
        return StepResult.fatal(name, str(err).strip()[:200])
    console.print(f"[green]\u2705 Values file ready at {values_file}[/green]")
    return StepResult.ok(name, str(values_file))


def _check_namespace(namespace: str, cfg: SetupConfig) -> tuple[StepResult, bool]:
    name = "check namespace"
    exists = namespace_exists(namespace, cfg.kubeconfig)
    if exists is None:
        console.print(f"[yellow]\u26a0\ufe0f  Could not determine whether namespace {namespace} exists[/yellow]")
        return StepResult.warning(name, "namespace check failed"), False
    state = "exists" if exists else "does not exist"
    console.print(f"[yellow]\u2139\ufe0f  Namespace {namespace} {state}[/yellow]")
    return StepResult.ok(name, state), exists


def _install(params: DeploymentParams, cfg: SetupConfig) -> StepResult:
    name = "run llm-d installer"
    console.print(Panel.fit(
        f"Deploying llm-d ({params.model}) into {params.namespace}", style="bold blue"))
    console.print(f"[yellow]\u2139\ufe0f  Timeout {cfg.install_timeout}s, polling every {cfg.install_poll_interval}s[/yellow]")
    run = run_installer(
        params,
        cfg.work_dir,
        cfg.kubeconfig,
        timeout=cfg.install_timeout,
        poll_interval=cfg.install_poll_interval,
    )
    display_installer_output(run)

    if run.outcome is InstallerOutcome.COMPLETED:
        console.print(f"[green]\u2705 Installer completed in {run.elapsed:.0f}s[/green]")
        return StepResult.ok(name, f"completed in {run.elapsed:.0f}s")
    if run.outcome is InstallerOutcome.TIMED_OUT:
        console.print(f"[yellow]\u26a0\ufe0f  Installer abandoned after {cfg.install_timeout}s[/yellow]")
        return StepResult.warning(name, f"timed out after {cfg.install_timeout}s")
    detail = f"exit code {run.returncode}" if run.returncode is not None else "failed to start"
    if run.stderr_lines:
        detail += f": {run.stderr_lines[-1][:200]}"
    console.print(f"[red]\u274c Installer failed ({escape(detail)})[/red]")
    return StepResult.fatal(name, detail)


def run_deploy(cfg: SetupConfig, *, skip_if_exists: bool = False) -> list[StepResult]:
    """Deploy llm-d with the external installer and report the result.

    The token is loaded first so a missing credential fails the phase before
    any cluster or filesystem change.

    Args:
        cfg: Run configuration.
        skip_if_exists: Skip the installer and PVC when the namespace exists.

    Returns:
        Results of every step that ran.
    """
    results: list[StepResult] = []

    try:
        params = DeploymentParams.from_config(cfg, load_hf_token(cfg.token_path))
    except TokenError as err:
        console.print(f"[red]\u274c {escape(str(err))}[/red]")
        return [StepResult.fatal("load HF token", str(err))]
    results.append(StepResult.ok("load HF token", str(cfg.token_path)))

    results.append(_prepare_workdir(cfg))
    if has_fatal(results):
        return results

    ns_result, exists = _check_namespace(params.namespace, cfg)
    results.append(ns_result)

    if skip_if_exists and exists:
        console.print(f"[yellow]\u2139\ufe0f  Namespace {params.namespace} exists, skipping installation[/yellow]")
        results.append(StepResult.skipped("run llm-d installer", "namespace exists"))
        results.append(StepResult.skipped("apply model PVC", "namespace exists"))
    else:
        results.append(_install(params, cfg))
        if has_fatal(results):
            return results
        results.append(apply_model_pvc(params.namespace, params.storage_class, cfg.kubeconfig))

    results.extend(run_status(cfg))
    return results


# ============================================================================
# Status and composite workflows
# ============================================================================

def run_status(cfg: SetupConfig, *, wait: bool = True, output: str = "table") -> list[StepResult]:
    """Optionally wait for pod readiness, then list running pods and services."""
    results: list[StepResult] = []
    if wait:
        results.append(wait_for_pods(cfg.namespace, cfg.pod_wait_timeout, cfg.kubeconfig))
    print_pods(cfg.namespace, running_pods(cfg.namespace, cfg.kubeconfig))
    results.append(report_services(cfg.namespace, cfg.kubeconfig, output))
    return results


def run_setup(cfg: SetupConfig, *, skip_if_exists: bool = False) -> list[StepResult]:
    """Run the dependency phase and, if it had no fatal result, the deploy phase."""
    results = run_install_dependencies(cfg)
    if has_fatal(results):
        return results
    return results + run_deploy(cfg, skip_if_exists=skip_if_exists)
