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

"""Configuration classes, deployment parameters, and config display."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.table import Table

from llmd_setup import console
from llmd_setup.constants import (
    DEFAULT_BIN_DIR,
    DEFAULT_HF_TOKEN_FILE,
    DEFAULT_INSTALL_POLL_INTERVAL,
    DEFAULT_INSTALL_TIMEOUT,
    DEFAULT_KUBECONFIG,
    DEFAULT_KUBERNETES_VERSION,
    DEFAULT_LINK_DIR,
    DEFAULT_MODEL,
    DEFAULT_NAMESPACE,
    DEFAULT_POD_WAIT_TIMEOUT,
    DEFAULT_STORAGE_CLASS,
    DEFAULT_STORAGE_SIZE,
    DEFAULT_WORK_DIR,
    dep_value,
)

QUANTITY_PATTERN = r"^\d+(Ki|Mi|Gi|Ti|Pi)?$"


# ============================================================================
# Configuration classes
# ============================================================================

class SetupConfig(BaseSettings):
    """Run configuration, auto-loaded from LLMD_* env vars.

    Attributes:
        kubernetes_version: Expected kubectl client ``major.minor`` version.
        namespace: Namespace llm-d is deployed into.
        storage_class: Storage class passed to the installer and model PVC.
        storage_size: Storage size passed to the installer.
        hf_token_file: File holding the Hugging Face token.
        model: Model identifier the installer downloads.
        kubeconfig: Cluster admin kubeconfig forwarded as KUBECONFIG.
        work_dir: Checkout directory for the llm-d-deployer repository.
        deployer_repo: Git URL of the llm-d-deployer repository.
        deployer_branch: Branch the checkout is force-synced to.
        bin_dir: Directory downloaded tools are installed into.
        link_dir: Directory receiving convenience symlinks.
        install_timeout: Ceiling in seconds for the installer run.
        install_poll_interval: Seconds between installer completion polls.
        pod_wait_timeout: Ceiling in seconds for pod readiness.
    """

    model_config = SettingsConfigDict(env_prefix="LLMD_", extra="ignore")

    kubernetes_version: str = Field(default=DEFAULT_KUBERNETES_VERSION, pattern=r"^\d+\.\d+$")
    namespace: str = Field(default=DEFAULT_NAMESPACE, pattern=r"^[a-z0-9]([-a-z0-9]*[a-z0-9])?$")
    storage_class: str = DEFAULT_STORAGE_CLASS
    storage_size: str = Field(default=DEFAULT_STORAGE_SIZE, pattern=QUANTITY_PATTERN)
    hf_token_file: Path = Path(DEFAULT_HF_TOKEN_FILE)
    model: str = DEFAULT_MODEL
    kubeconfig: Path = Path(DEFAULT_KUBECONFIG)
    work_dir: Path = Path(DEFAULT_WORK_DIR)
    deployer_repo: str = dep_value("llm_d_deployer", "repo")
    deployer_branch: str = dep_value("llm_d_deployer", "branch", default="main")
    bin_dir: Path = Path(DEFAULT_BIN_DIR)
    link_dir: Path = Path(DEFAULT_LINK_DIR)
    install_timeout: int = Field(default=DEFAULT_INSTALL_TIMEOUT, ge=1)
    install_poll_interval: float = Field(default=DEFAULT_INSTALL_POLL_INTERVAL, gt=0)
    pod_wait_timeout: int = Field(default=DEFAULT_POD_WAIT_TIMEOUT, ge=1)

    @property
    def token_path(self) -> Path:
        """Token file path with ``~`` expanded."""
        return self.hf_token_file.expanduser()


def resolve_config(**overrides: object) -> SetupConfig:
    """Build a SetupConfig from the environment and apply CLI overrides.

    Args:
        **overrides: Field values; ``None`` entries are ignored.

    Returns:
        Validated configuration.
    """
    # init kwargs take precedence over LLMD_* env vars and are validated
    return SetupConfig(**{key: value for key, value in overrides.items() if value is not None})


# ============================================================================
# Deployment parameters
# ============================================================================

@dataclass(frozen=True)
class DeploymentParams:
    """Immutable per-run parameters handed to the llm-d installer.

    Attributes:
        namespace: Target namespace.
        storage_class: Storage class for model storage.
        storage_size: Storage size for model storage.
        model: Model identifier to download.
        hf_token: Hugging Face token; excluded from repr.
    """

    namespace: str
    storage_class: str
    storage_size: str
    model: str
    hf_token: str = field(repr=False)

    @classmethod
    def from_config(cls, cfg: SetupConfig, hf_token: str) -> DeploymentParams:
        return cls(
            namespace=cfg.namespace,
            storage_class=cfg.storage_class,
            storage_size=cfg.storage_size,
            model=cfg.model,
            hf_token=hf_token,
        )


def display_config(cfg: SetupConfig) -> None:
    """Print the resolved configuration as a table."""
    table = Table(title="Configuration", show_header=False, title_style="bold blue")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("Kubernetes version", cfg.kubernetes_version)
    table.add_row("Namespace", cfg.namespace)
    table.add_row("Storage", f"{cfg.storage_size} ({cfg.storage_class})")
    table.add_row("Model", cfg.model)
    table.add_row("HF token file", str(cfg.hf_token_file))
    table.add_row("Kubeconfig", str(cfg.kubeconfig))
    table.add_row("Deployer", f"{cfg.deployer_repo}@{cfg.deployer_branch} -> {cfg.work_dir}")
    table.add_row("Installer timeout", f"{cfg.install_timeout}s (poll every {cfg.install_poll_interval}s)")
    table.add_row("Pod wait timeout", f"{cfg.pod_wait_timeout}s")
    console.print(table)
