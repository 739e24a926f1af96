"""
Shared pytest fixtures for llm-d-setup tests.

This module provides:
- KubectlMocker: mock kubectl subprocess calls with canned responses
- A SetupConfig rooted in a temporary directory
- A fake llm-d-deployer checkout with a scriptable installer
"""

from __future__ import annotations

import json
import os
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from llmd_setup.config import SetupConfig


# =============================================================================
# Kubectl Mocking Infrastructure
# =============================================================================

@dataclass
class KubectlResponse:
    """Represents a mocked kubectl command response."""
    stdout: str = ""
    stderr: str = ""
    returncode: int = 0
    raises: Exception | None = None

    def to_completed_process(self) -> MagicMock:
        result = MagicMock()
        result.stdout = self.stdout
        result.stderr = self.stderr
        result.returncode = self.returncode
        return result


@dataclass
class KubectlCall:
    """Record of a kubectl call made during testing."""
    command: list[str]
    input: str | None = None
    env: dict | None = None
    timeout: float | None = None

    @property
    def args_str(self) -> str:
        return " ".join(self.command[1:])


class KubectlMocker:
    """
    Mock kubectl subprocess calls with pattern-matched responses.

    Patterns are matched against the argument string (without the leading
    ``kubectl``); the first registered match wins.

    Usage:
        def test_namespace(kubectl_mocker):
            kubectl_mocker.register("get namespace", KubectlResponse(stdout="llm-d Active"))
            assert namespace_exists("llm-d", kubeconfig)
            assert kubectl_mocker.was_called_with("get namespace llm-d")
    """

    def __init__(self):
        self._responses: list[tuple[str | re.Pattern, KubectlResponse]] = []
        self.calls: list[KubectlCall] = []
        self._default_response = KubectlResponse(
            stderr="Error: mock not configured for this command",
            returncode=1,
        )

    def register(self, pattern: str | re.Pattern, response: KubectlResponse, first: bool = False) -> None:
        """Register a response; *first* makes it take precedence over earlier ones."""
        if first:
            self._responses.insert(0, (pattern, response))
        else:
            self._responses.append((pattern, response))

    def register_json(self, pattern: str, payload: dict) -> None:
        self.register(pattern, KubectlResponse(stdout=json.dumps(payload)))

    def _match(self, args_str: str) -> KubectlResponse:
        for pattern, response in self._responses:
            if isinstance(pattern, re.Pattern):
                if pattern.search(args_str):
                    return response
            elif pattern in args_str:
                return response
        return self._default_response

    def __call__(self, cmd, *args, **kwargs):
        if not cmd or cmd[0] != "kubectl":
            raise AssertionError(f"Unexpected subprocess.run call: {cmd}")
        call = KubectlCall(
            command=list(cmd),
            input=kwargs.get("input"),
            env=kwargs.get("env"),
            timeout=kwargs.get("timeout"),
        )
        self.calls.append(call)
        response = self._match(call.args_str)
        if response.raises is not None:
            raise response.raises
        return response.to_completed_process()

    def was_called_with(self, fragment: str) -> bool:
        return any(fragment in call.args_str for call in self.calls)

    def calls_matching(self, fragment: str) -> list[KubectlCall]:
        return [call for call in self.calls if fragment in call.args_str]


@pytest.fixture
def kubectl_mocker(monkeypatch) -> KubectlMocker:
    """Intercept subprocess.run for kubectl calls."""
    mocker = KubectlMocker()
    monkeypatch.setattr(subprocess, "run", mocker)
    return mocker


# =============================================================================
# Configuration and filesystem fixtures
# =============================================================================

@pytest.fixture(autouse=True)
def _clean_llmd_env(monkeypatch):
    """Keep LLMD_* variables from the developer's shell out of the tests."""
    for key in list(os.environ):
        if key.startswith("LLMD_"):
            monkeypatch.delenv(key)


@pytest.fixture
def token_file(tmp_path: Path) -> Path:
    path = tmp_path / "hf" / "token"
    path.parent.mkdir()
    path.write_text("abc123\n")
    return path


def write_stub(directory: Path, tool: str, output: str) -> Path:
    """Write an executable shell stub for *tool* that prints *output*."""
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / tool
    path.write_text(f"#!/bin/sh\necho '{output}'\n")
    path.chmod(0o755)
    return path


INSTALLER_RECORDING_SCRIPT = """#!/bin/sh
printf '%s' "$HF_TOKEN" > "$(dirname "$0")/seen_token"
printf '%s' "$KUBECONFIG" > "$(dirname "$0")/seen_kubeconfig"
echo "$@" > "$(dirname "$0")/seen_args"
echo "installing llm-d"
exit 0
"""


@dataclass
class DeployerCheckout:
    """Fake llm-d-deployer checkout."""
    root: Path
    quickstart: Path = field(init=False)

    def __post_init__(self):
        self.quickstart = self.root / "quickstart"

    @property
    def installer(self) -> Path:
        return self.quickstart / "llmd-installer.sh"

    def write_installer(self, body: str) -> None:
        self.installer.write_text(body)
        self.installer.chmod(0o644)

    def seen(self, name: str) -> str:
        return (self.quickstart / f"seen_{name}").read_text()


@pytest.fixture
def checkout(tmp_path: Path) -> DeployerCheckout:
    root = tmp_path / "llm-d-deployer"
    base = root / "quickstart" / "examples" / "base" / "slim"
    base.mkdir(parents=True)
    (base / "base-slim.yaml").write_text("sampleApplication:\n  enabled: true\n")
    (root / ".git").mkdir()
    co = DeployerCheckout(root)
    co.write_installer(INSTALLER_RECORDING_SCRIPT)
    return co


@pytest.fixture
def cfg(tmp_path: Path, token_file: Path, checkout: DeployerCheckout) -> SetupConfig:
    bin_dir = tmp_path / "bin"
    link_dir = tmp_path / "links"
    bin_dir.mkdir()
    link_dir.mkdir()
    return SetupConfig(
        hf_token_file=token_file,
        kubeconfig=tmp_path / "admin.conf",
        work_dir=checkout.root,
        bin_dir=bin_dir,
        link_dir=link_dir,
        install_timeout=10,
        install_poll_interval=0.05,
        pod_wait_timeout=5,
    )
