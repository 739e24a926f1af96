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

"""``setup`` command: dependency phase followed by the deploy phase."""

from __future__ import annotations

from pathlib import Path

import typer

from llmd_setup.commands.common import finish
from llmd_setup.config import display_config, resolve_config
from llmd_setup.orchestrator import run_setup


def setup(
    namespace: str | None = typer.Option(
        None, "--namespace", "-n", help="Target namespace (default: llm-d)"),
    model: str | None = typer.Option(
        None, "--model", help="Model to download (default: Qwen/Qwen3-0.6B)"),
    storage_class: str | None = typer.Option(
        None, "--storage-class", help="Storage class for model storage"),
    storage_size: str | None = typer.Option(
        None, "--storage-size", help="Storage size for model storage"),
    hf_token_file: Path | None = typer.Option(
        None, "--hf-token-file", help="File holding the Hugging Face token"),
    kubeconfig: Path | None = typer.Option(
        None, "--kubeconfig", help="Cluster admin kubeconfig"),
    kubernetes_version: str | None = typer.Option(
        None, "--kubernetes-version", help="Expected kubectl client major.minor"),
    work_dir: Path | None = typer.Option(
        None, "--work-dir", help="llm-d-deployer checkout directory"),
    bin_dir: Path | None = typer.Option(
        None, "--bin-dir", help="Install directory for yq and kustomize"),
    link_dir: Path | None = typer.Option(
        None, "--link-dir", help="Directory for convenience symlinks"),
    install_timeout: int | None = typer.Option(
        None, "--install-timeout", help="Installer ceiling in seconds"),
    pod_wait_timeout: int | None = typer.Option(
        None, "--pod-wait-timeout", help="Pod readiness ceiling in seconds"),
    skip_if_exists: bool = typer.Option(
        False, "--skip-if-exists", help="Skip installation when the namespace already exists"),
) -> None:
    """Install dependencies, then deploy llm-d.

    The deploy phase only starts when every dependency step succeeded.
    """
    cfg = resolve_config(
        namespace=namespace,
        model=model,
        storage_class=storage_class,
        storage_size=storage_size,
        hf_token_file=hf_token_file,
        kubeconfig=kubeconfig,
        kubernetes_version=kubernetes_version,
        work_dir=work_dir,
        bin_dir=bin_dir,
        link_dir=link_dir,
        install_timeout=install_timeout,
        pod_wait_timeout=pod_wait_timeout,
    )
    display_config(cfg)
    finish(run_setup(cfg, skip_if_exists=skip_if_exists))
