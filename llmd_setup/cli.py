#!/usr/bin/env python3
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

"""
cli.py - Install tooling for and deploy llm-d onto a Kubernetes cluster.

Subcommands:
    deps     Install OS packages, yq and kustomize; verify kubectl, helm, yq, kustomize
    deploy   Clone llm-d-deployer, run llmd-installer.sh, apply the model PVC, report status
    setup    deps followed by deploy
    status   Show running pods and services

Environment Variables:
    Every option can also be set via LLMD_* environment variables, e.g.
    LLMD_NAMESPACE, LLMD_MODEL, LLMD_HF_TOKEN_FILE, LLMD_KUBECONFIG,
    LLMD_INSTALL_TIMEOUT, LLMD_POD_WAIT_TIMEOUT.

Examples:
    # Full setup with defaults (needs root for package and tool installs)
    sudo llm-d-setup setup

    # Deploy a different model into a custom namespace
    llm-d-setup deploy --namespace llm-d-test --model Qwen/Qwen3-8B

    # Leave an existing deployment alone
    llm-d-setup deploy --skip-if-exists

    # Service summary as YAML
    llm-d-setup status -o yaml
"""

from __future__ import annotations

import logging
import sys

import typer
from rich.markup import escape

from llmd_setup import console
from llmd_setup.commands import deploy_cmd, deps_cmd, setup_cmd, status_cmd

app = typer.Typer(
    help="Install tooling for and deploy llm-d onto a Kubernetes cluster.",
    no_args_is_help=True,
)


@app.callback()
def _main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
) -> None:
    """Initialize logging for all subcommands."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )


app.command("deps")(deps_cmd.deps)
app.command("deploy")(deploy_cmd.deploy)
app.command("setup")(setup_cmd.setup)
app.command("status")(status_cmd.status)


def main() -> None:
    try:
        app()
    except Exception as e:
        console.print(f"[red]\u274c {escape(str(e))}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
