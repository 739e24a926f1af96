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

"""``deps`` command: install and verify the CLI tooling."""

from __future__ import annotations

from pathlib import Path

import typer

from llmd_setup.commands.common import finish
from llmd_setup.config import display_config, resolve_config
from llmd_setup.orchestrator import run_install_dependencies


def deps(
    kubernetes_version: str | None = typer.Option(
        None, "--kubernetes-version", help="Expected kubectl client major.minor"),
    bin_dir: Path | None = typer.Option(
        None, "--bin-dir", help="Install directory for yq and kustomize"),
    link_dir: Path | None = typer.Option(
        None, "--link-dir", help="Directory for convenience symlinks"),
) -> None:
    """Install OS packages, yq and kustomize, then verify all tools."""
    cfg = resolve_config(kubernetes_version=kubernetes_version, bin_dir=bin_dir, link_dir=link_dir)
    display_config(cfg)
    finish(run_install_dependencies(cfg))
