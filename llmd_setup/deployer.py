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

"""llm-d-deployer checkout, installer invocation, model PVC, and pod readiness."""

from __future__ import annotations

import os
import shlex
import shutil
import signal
import subprocess
import tempfile
import time
from collections.abc import Mapping
from pathlib import Path

import sh
import yaml
from rich.markup import escape
from rich.panel import Panel
from tenacity import RetryError, Retrying, retry_if_result, stop_before_delay, wait_fixed

from llmd_setup import console, logger
from llmd_setup.config import DeploymentParams
from llmd_setup.constants import (
    CUSTOM_VALUES_FILE,
    INSTALLER_SCRIPT,
    INSTALLER_TERMINATE_GRACE_SECONDS,
    MODEL_PVC_ACCESS_MODE,
    MODEL_PVC_NAME,
    MODEL_PVC_SIZE,
    POD_WAIT_GRACE_SECONDS,
    REL_BASE_VALUES,
    REL_QUICKSTART_DIR,
    TOOL_MODE,
)
from llmd_setup.results import InstallerOutcome, InstallerRun, StepResult
from llmd_setup.utils import first_line, kube_env, require_command, run_kubectl


class TokenError(RuntimeError):
    """Raised when the Hugging Face token cannot be loaded."""


# ============================================================================
# Credential
# ============================================================================

def load_hf_token(path: Path) -> str:
    """Read the Hugging Face token from *path*, stripping surrounding whitespace.

    The token format is not validated.

    Args:
        path: Token file (``~`` is expanded).

    Returns:
        The token.

    Raises:
        TokenError: If the file is missing, unreadable, or blank.
    """
    path = path.expanduser()
    try:
        token = path.read_bytes().decode("utf-8").strip()
    except (OSError, UnicodeDecodeError) as err:
        raise TokenError(f"Cannot read Hugging Face token from {path}: {err}") from err
    if not token:
        raise TokenError(f"Hugging Face token file {path} is empty")
    return token


# ============================================================================
# Working tree
# ============================================================================

def sync_deployer_repo(repo_url: str, branch: str, dest: Path) -> None:
    """Clone *repo_url* into *dest* or force it back to ``origin/<branch>``.

    Local modifications to tracked files are discarded.

    Raises:
        RuntimeError: If git is missing.
        sh.ErrorReturnCode: If a git command fails.
    """
    require_command("git")
    if not (dest / ".git").is_dir():
        console.print(f"[yellow]\u2139\ufe0f  Cloning {repo_url} ({branch}) into {dest}...[/yellow]")
        if dest.exists():
            shutil.rmtree(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)
        sh.git("clone", "--branch", branch, repo_url, str(dest))
        return

    console.print(f"[yellow]\u2139\ufe0f  Resetting {dest} to origin/{branch}...[/yellow]")
    sh.git("remote", "set-url", "origin", repo_url, _cwd=str(dest))
    sh.git("fetch", "origin", branch, _cwd=str(dest))
    sh.git("checkout", "--force", "-B", branch, f"origin/{branch}", _cwd=str(dest))
    sh.git("reset", "--hard", f"origin/{branch}", _cwd=str(dest))


def materialize_values_file(workdir: Path) -> Path:
    """Copy the slim base example values into the quickstart directory.

    Returns:
        Path of the copied values file.
    """
    dest = workdir / REL_QUICKSTART_DIR / CUSTOM_VALUES_FILE
    shutil.copyfile(workdir / REL_BASE_VALUES, dest)
    return dest


# ============================================================================
# Namespace
# ============================================================================

def namespace_exists(namespace: str, kubeconfig: Path) -> bool | None:
    """Check whether *namespace* exists.

    Returns:
        True or False, or None when kubectl failed for another reason.
    """
    ok, _, stderr = run_kubectl(["get", "namespace", namespace], kubeconfig)
    if ok:
        return True
    if "NotFound" in stderr or "not found" in stderr:
        return False
    logger.debug("Namespace check failed: %s", stderr.strip())
    return None


# ============================================================================
# Installer
# ============================================================================

def build_installer_command(params: DeploymentParams, script: str = f"./{INSTALLER_SCRIPT}") -> list[str]:
    """Build the installer argv for *params*. The token is never part of it."""
    return [
        script,
        "--values-file", CUSTOM_VALUES_FILE,
        "--namespace", params.namespace,
        "--storage-class", params.storage_class,
        "--storage-size", params.storage_size,
        "--download-model", params.model,
    ]


def build_installer_env(
    params: DeploymentParams,
    kubeconfig: Path,
    base_env: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Return the installer environment with HF_TOKEN and KUBECONFIG set."""
    env = kube_env(kubeconfig, base_env)
    env["HF_TOKEN"] = params.hf_token
    return env


def wait_for_exit(proc: subprocess.Popen, timeout: float, poll_interval: float) -> int | None:
    """Poll *proc* every *poll_interval* seconds for at most *timeout* seconds.

    Returns:
        The exit code, or None if the process is still running at the deadline.
    """
    retryer = Retrying(
        stop=stop_before_delay(timeout),
        wait=wait_fixed(poll_interval),
        retry=retry_if_result(lambda returncode: returncode is None),
    )
    try:
        return retryer(proc.poll)
    except RetryError:
        return proc.poll()


def _terminate(proc: subprocess.Popen) -> None:
    """Terminate the installer's process group, killing it if it lingers."""
    try:
        os.killpg(proc.pid, signal.SIGTERM)
        proc.wait(timeout=INSTALLER_TERMINATE_GRACE_SECONDS)
    except subprocess.TimeoutExpired:
        os.killpg(proc.pid, signal.SIGKILL)
        proc.wait()
    except ProcessLookupError:
        proc.wait()


def run_installer(
    params: DeploymentParams,
    workdir: Path,
    kubeconfig: Path,
    *,
    timeout: float,
    poll_interval: float,
) -> InstallerRun:
    """Launch llmd-installer.sh and poll it until it exits or the deadline passes.

    Output goes to temporary files so a chatty installer can never block on a
    full pipe while it is being polled.

    Args:
        params: Deployment parameters.
        workdir: llm-d-deployer checkout.
        kubeconfig: Kubeconfig forwarded as KUBECONFIG.
        timeout: Ceiling in seconds.
        poll_interval: Seconds between polls.

    Returns:
        The installer run with its tri-state outcome.
    """
    quickstart = workdir / REL_QUICKSTART_DIR
    script = quickstart / INSTALLER_SCRIPT
    argv = build_installer_command(params, str(script))
    env = build_installer_env(params, kubeconfig)
    logger.debug("Running: %s (cwd=%s)", shlex.join(argv), quickstart)

    start = time.monotonic()
    with tempfile.TemporaryFile("w+") as out, tempfile.TemporaryFile("w+") as err:
        try:
            script.chmod(TOOL_MODE)
            proc = subprocess.Popen(
                argv, cwd=quickstart, env=env, stdout=out, stderr=err, text=True, start_new_session=True,
            )
        except OSError as exc:
            return InstallerRun(InstallerOutcome.FAILED, stderr_lines=[str(exc)])

        returncode = wait_for_exit(proc, timeout, poll_interval)
        if returncode is None:
            _terminate(proc)
            outcome = InstallerOutcome.TIMED_OUT
        elif returncode == 0:
            outcome = InstallerOutcome.COMPLETED
        else:
            outcome = InstallerOutcome.FAILED

        out.seek(0)
        err.seek(0)
        return InstallerRun(
            outcome=outcome,
            returncode=returncode,
            stdout_lines=out.read().splitlines(),
            stderr_lines=err.read().splitlines(),
            elapsed=time.monotonic() - start,
        )


def display_installer_output(run: InstallerRun) -> None:
    """Print captured installer output; stderr only when non-empty."""
    if run.stdout_lines:
        console.print(Panel.fit("Installer output", style="bold blue"))
        for line in run.stdout_lines:
            console.print(line, markup=False, highlight=False)
    if run.stderr_lines:
        console.print(Panel.fit("Installer errors", style="bold yellow"))
        for line in run.stderr_lines:
            console.print(line, markup=False, highlight=False, style="yellow")


# ============================================================================
# Model storage
# ============================================================================

def model_pvc_manifest(namespace: str, storage_class: str) -> dict:
    """Build the model storage PersistentVolumeClaim manifest."""
    return {
        "apiVersion": "v1",
        "kind": "PersistentVolumeClaim",
        "metadata": {"name": MODEL_PVC_NAME, "namespace": namespace},
        "spec": {
            "accessModes": [MODEL_PVC_ACCESS_MODE],
            "storageClassName": storage_class,
            "resources": {"requests": {"storage": MODEL_PVC_SIZE}},
        },
    }


def apply_model_pvc(namespace: str, storage_class: str, kubeconfig: Path) -> StepResult:
    """Apply the model PVC; an existing claim is fine and errors are non-fatal."""
    name = "apply model PVC"
    manifest = yaml.safe_dump(model_pvc_manifest(namespace, storage_class), sort_keys=False)
    ok, stdout, stderr = run_kubectl(["apply", "-f", "-"], kubeconfig, input=manifest)
    if not ok:
        console.print(f"[yellow]\u26a0\ufe0f  Could not apply {MODEL_PVC_NAME}: {escape(first_line(stderr))}[/yellow]")
        return StepResult.warning(name, first_line(stderr) or "kubectl apply failed")
    console.print(f"[green]\u2705 {escape(first_line(stdout)) or MODEL_PVC_NAME + ' applied'}[/green]")
    return StepResult.ok(name, first_line(stdout))


# ============================================================================
# Pod readiness
# ============================================================================

def wait_for_pods(namespace: str, timeout: int, kubeconfig: Path) -> StepResult:
    """Wait for pods in *namespace* to become ready; a timeout is non-fatal.

    The subprocess ceiling is slightly above kubectl's own timeout so control
    always returns, even if no pod ever becomes ready.
    """
    name = "wait for pods"
    console.print(f"[yellow]\u2139\ufe0f  Waiting up to {timeout}s for pods in {namespace} to be ready...[/yellow]")
    ok, _, stderr = run_kubectl(
        ["wait", "--for=condition=ready", "pod", "--all", "-n", namespace, f"--timeout={timeout}s"],
        kubeconfig,
        timeout=timeout + POD_WAIT_GRACE_SECONDS,
    )
    if ok:
        console.print("[green]\u2705 All pods are ready[/green]")
        return StepResult.ok(name, "all pods ready")
    console.print(f"[yellow]\u26a0\ufe0f  Pods not ready: {escape(first_line(stderr))}[/yellow]")
    return StepResult.warning(name, first_line(stderr) or "pods not ready")


def running_pods(namespace: str, kubeconfig: Path) -> str:
    """Return the kubectl listing of running pods in *namespace*, or an empty string."""
    _, pods, _ = run_kubectl(
        ["get", "pods", "-n", namespace, "--field-selector=status.phase=Running"], kubeconfig,
    )
    return pods
