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

"""Constants, dependency loading, and dep_value helper."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml


def load_dependencies() -> dict:
    """Load tool sources and package lists from dependencies.yaml.

    Returns:
        Parsed YAML content as a nested dictionary.
    """
    deps_file = Path(__file__).resolve().parent / "dependencies.yaml"
    with open(deps_file) as f:
        return yaml.safe_load(f)


DEPENDENCIES = load_dependencies()


def dep_value(*keys: str, default: Any = None) -> Any:
    """Safely traverse the DEPENDENCIES dict by key path.

    Args:
        *keys: Sequence of dictionary keys to traverse.
        default: Value to return if any key is missing.

    Returns:
        The value at the nested key path, or *default* if not found.
    """
    node = DEPENDENCIES
    for key in keys:
        if not isinstance(node, dict):
            return default
        node = node.get(key)
        if node is None:
            return default
    return node


# -- Architecture names used in release asset URLs --
ARCH_ALIASES = {
    "aarch64": "arm64",
    "x86_64": "amd64",
}

# -- Tools --
DOWNLOADED_TOOLS = ("yq", "kustomize")
SYMLINKED_TOOLS = ("yq", "kustomize")
VERIFY_COMMANDS: dict[str, tuple[str, ...]] = {
    "kubectl": ("version", "--client"),
    "helm": ("version", "--short"),
    "yq": ("--version",),
    "kustomize": ("version",),
}
TOOL_MODE = 0o755
DOWNLOAD_TIMEOUT_SECONDS = 120
DOWNLOAD_CHUNK_SIZE = 1 << 16

# -- llm-d-deployer checkout layout --
REL_QUICKSTART_DIR = "quickstart"
REL_BASE_VALUES = "quickstart/examples/base/slim/base-slim.yaml"
CUSTOM_VALUES_FILE = "custom-base.yaml"
INSTALLER_SCRIPT = "llmd-installer.sh"

# -- Model storage claim --
MODEL_PVC_NAME = "model-pvc"
MODEL_PVC_SIZE = "100Gi"
MODEL_PVC_ACCESS_MODE = "ReadWriteOnce"

# -- Timeouts --
KUBECTL_TIMEOUT_SECONDS = 30
POD_WAIT_GRACE_SECONDS = 15
INSTALLER_TERMINATE_GRACE_SECONDS = 10

# -- Defaults --
DEFAULT_KUBERNETES_VERSION = "1.33"
DEFAULT_NAMESPACE = "llm-d"
DEFAULT_STORAGE_CLASS = "local-path"
DEFAULT_STORAGE_SIZE = "50Gi"
DEFAULT_HF_TOKEN_FILE = "~/.cache/huggingface/token"
DEFAULT_MODEL = "Qwen/Qwen3-0.6B"
DEFAULT_KUBECONFIG = "/etc/kubernetes/admin.conf"
DEFAULT_WORK_DIR = "/tmp/llm-d-deployer"
DEFAULT_BIN_DIR = "/usr/local/bin"
DEFAULT_LINK_DIR = "/usr/bin"
DEFAULT_INSTALL_TIMEOUT = 1800
DEFAULT_INSTALL_POLL_INTERVAL = 30
DEFAULT_POD_WAIT_TIMEOUT = 1800
