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

"""Utility functions for kubectl, command checks, and process environments."""

from __future__ import annotations

import os
import shlex
import subprocess
from collections.abc import Mapping
from pathlib import Path

import sh

from llmd_setup import logger
from llmd_setup.constants import KUBECTL_TIMEOUT_SECONDS


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    try:
        sh.which(cmd)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Required command '{cmd}' not found. Please install it first.") from err


def kube_env(kubeconfig: Path, base_env: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return a process environment with KUBECONFIG pointing at *kubeconfig*.

    Args:
        kubeconfig: Path to the cluster kubeconfig file.
        base_env: Environment to extend, defaults to ``os.environ``.

    Returns:
        New environment mapping.
    """
    env = dict(os.environ if base_env is None else base_env)
    env["KUBECONFIG"] = str(kubeconfig)
    return env


def run_kubectl(
    args: list[str],
    kubeconfig: Path | None = None,
    timeout: float = KUBECTL_TIMEOUT_SECONDS,
    input: str | None = None,
) -> tuple[bool, str, str]:
    """Run a kubectl command via subprocess and return (success, stdout, stderr).

    Uses subprocess instead of sh because callers inspect stdout and stderr
    separately (e.g. telling NotFound apart from connection errors).

    Args:
        args: kubectl arguments (e.g. ``["get", "pods", "-n", "llm-d"]``).
        kubeconfig: Kubeconfig forwarded as KUBECONFIG, or None to inherit.
        timeout: Maximum seconds to wait for the command to complete.
        input: Text written to kubectl's stdin (e.g. a manifest for ``apply -f -``).

    Returns:
        Tuple of (success, stdout, stderr).
    """
    cmd = ["kubectl", *args]
    env = kube_env(kubeconfig) if kubeconfig is not None else None
    logger.debug("Running: %s", shlex.join(cmd))
    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout,
            input=input,
            env=env,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except subprocess.TimeoutExpired:
        return False, "", f"kubectl {' '.join(args)} timed out after {timeout}s"
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)


def privileged(argv: list[str]) -> list[str]:
    """Prefix *argv* with sudo when not running as root."""
    if os.geteuid() == 0:
        return argv
    return ["sudo", *argv]


def first_line(text: str, limit: int = 200) -> str:
    """Return the first non-empty line of *text*, truncated to *limit* chars."""
    for line in text.splitlines():
        if line.strip():
            return line.strip()[:limit]
    return ""
