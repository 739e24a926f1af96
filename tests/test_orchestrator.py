"""Tests for the phase workflows."""

from __future__ import annotations

import pytest

from llmd_setup import orchestrator
from llmd_setup.results import StepResult, StepStatus, has_fatal

from conftest import KubectlResponse, write_stub

SERVICES = {
    "items": [{
        "metadata": {"name": "llm-d-inference-gateway"},
        "spec": {"type": "NodePort", "ports": [{"nodePort": 30080}]},
        "status": {},
    }]
}


@pytest.fixture
def no_git(monkeypatch):
    """Replace the git sync with a recorder."""
    synced = []
    monkeypatch.setattr(orchestrator, "sync_deployer_repo", lambda *args: synced.append(args))
    return synced


@pytest.fixture
def cluster(kubectl_mocker):
    kubectl_mocker.register("get namespace", KubectlResponse(
        stderr='Error from server (NotFound): namespaces "llm-d" not found', returncode=1))
    kubectl_mocker.register("apply -f -", KubectlResponse(stdout="persistentvolumeclaim/model-pvc created"))
    kubectl_mocker.register("wait", KubectlResponse(stdout="pod/llm-d-decode condition met"))
    kubectl_mocker.register("get pods", KubectlResponse(stdout="NAME READY STATUS\nllm-d-decode 1/1 Running\n"))
    kubectl_mocker.register_json("get services", SERVICES)
    return kubectl_mocker


def _statuses(results):
    return {r.name: r.status for r in results}


# =============================================================================
# Deploy phase
# =============================================================================

def test_run_deploy_happy_path(cfg, cluster, checkout, no_git):
    results = orchestrator.run_deploy(cfg)

    assert not has_fatal(results)
    assert [r.name for r in results] == [
        "load HF token",
        "prepare llm-d-deployer",
        "check namespace",
        "run llm-d installer",
        "apply model PVC",
        "wait for pods",
        "report services",
    ]
    assert no_git == [(cfg.deployer_repo, "main", checkout.root)]
    assert (checkout.quickstart / "custom-base.yaml").exists()
    assert checkout.seen("token") == "abc123"
    assert "--namespace llm-d" in checkout.seen("args")


def test_run_deploy_missing_token_touches_nothing(cfg, kubectl_mocker, checkout, no_git, tmp_path):
    cfg = cfg.model_copy(update={"hf_token_file": tmp_path / "missing-token"})

    results = orchestrator.run_deploy(cfg)

    assert len(results) == 1
    assert results[0].status is StepStatus.FATAL_ERROR
    assert kubectl_mocker.calls == []
    assert no_git == []
    assert not (checkout.quickstart / "custom-base.yaml").exists()


def test_run_deploy_existing_namespace_still_installs(cfg, cluster, checkout, no_git):
    cluster.register("get namespace", KubectlResponse(stdout="llm-d Active"), first=True)

    results = orchestrator.run_deploy(cfg)

    statuses = _statuses(results)
    assert statuses["run llm-d installer"] is StepStatus.SUCCESS
    assert [r.detail for r in results if r.name == "check namespace"] == ["exists"]


def test_run_deploy_skip_if_exists(cfg, cluster, checkout, no_git):
    cluster.register("get namespace", KubectlResponse(stdout="llm-d Active"), first=True)

    results = orchestrator.run_deploy(cfg, skip_if_exists=True)

    statuses = _statuses(results)
    assert statuses["run llm-d installer"] is StepStatus.SKIPPED
    assert statuses["apply model PVC"] is StepStatus.SKIPPED
    assert not (checkout.quickstart / "seen_token").exists()
    assert not cluster.was_called_with("apply")


def test_run_deploy_installer_failure_stops(cfg, cluster, checkout, no_git):
    checkout.write_installer("#!/bin/sh\necho boom >&2\nexit 1\n")

    results = orchestrator.run_deploy(cfg)

    assert results[-1].name == "run llm-d installer"
    assert results[-1].status is StepStatus.FATAL_ERROR
    assert "boom" in results[-1].detail
    assert not cluster.was_called_with("apply")


def test_run_deploy_installer_timeout_still_reports(cfg, cluster, checkout, no_git):
    checkout.write_installer("#!/bin/sh\nsleep 30\n")
    cfg = cfg.model_copy(update={"install_timeout": 1, "install_poll_interval": 0.05})

    results = orchestrator.run_deploy(cfg)

    statuses = _statuses(results)
    assert statuses["run llm-d installer"] is StepStatus.NON_FATAL_ERROR
    assert statuses["apply model PVC"] is StepStatus.SUCCESS
    assert statuses["report services"] is StepStatus.SUCCESS
    assert not has_fatal(results)


def test_run_deploy_best_effort_steps(cfg, kubectl_mocker, checkout, no_git):
    kubectl_mocker.register("get namespace", KubectlResponse(stderr="connection refused", returncode=1))
    kubectl_mocker.register("wait", KubectlResponse(stderr="error: timed out waiting", returncode=1))

    results = orchestrator.run_deploy(cfg)

    statuses = _statuses(results)
    assert statuses["check namespace"] is StepStatus.NON_FATAL_ERROR
    assert statuses["apply model PVC"] is StepStatus.NON_FATAL_ERROR
    assert statuses["wait for pods"] is StepStatus.NON_FATAL_ERROR
    assert statuses["report services"] is StepStatus.NON_FATAL_ERROR
    assert not has_fatal(results)


def test_run_deploy_git_failure_is_fatal(cfg, kubectl_mocker, checkout, monkeypatch):
    def fail(*args):
        raise RuntimeError("Required command 'git' not found. Please install it first.")

    monkeypatch.setattr(orchestrator, "sync_deployer_repo", fail)

    results = orchestrator.run_deploy(cfg)

    assert results[-1].status is StepStatus.FATAL_ERROR
    assert kubectl_mocker.calls == []


# =============================================================================
# Dependency phase and composites
# =============================================================================

def test_run_install_dependencies_stops_on_fatal(cfg, monkeypatch):
    monkeypatch.setattr(orchestrator, "install_os_packages",
                        lambda pkgs: StepResult.fatal("install OS packages", "apt-get failed"))
    monkeypatch.setattr(orchestrator, "ensure_tool", lambda *a: pytest.fail("should not install tools"))

    results = orchestrator.run_install_dependencies(cfg)

    assert [r.name for r in results] == ["check install directory", "install OS packages"]
    assert results[-1].status is StepStatus.FATAL_ERROR


def test_run_install_dependencies_unwritable_bin_dir_stops_first(cfg, monkeypatch):
    monkeypatch.setattr(orchestrator, "check_bin_dir",
                        lambda tools, bin_dir: StepResult.fatal("check install directory", "not writable"))
    monkeypatch.setattr(orchestrator, "install_os_packages", lambda pkgs: pytest.fail("apt should not run"))

    results = orchestrator.run_install_dependencies(cfg)

    assert [r.status for r in results] == [StepStatus.FATAL_ERROR]


def test_run_install_dependencies_full(cfg, monkeypatch):
    installed = []
    monkeypatch.setattr(orchestrator, "install_os_packages",
                        lambda pkgs: StepResult.skipped("install OS packages"))
    monkeypatch.setattr(orchestrator, "ensure_tool",
                        lambda tool, arch, bin_dir: installed.append(tool) or StepResult.skipped(f"install {tool}"))
    monkeypatch.setattr(orchestrator, "verify_tools", lambda version, bin_dir: [StepResult.ok("verify kubectl")])
    monkeypatch.setattr(orchestrator, "create_symlinks",
                        lambda tools, bin_dir, link_dir: [StepResult.warning("symlink yq", "denied")])

    results = orchestrator.run_install_dependencies(cfg)

    assert installed == ["yq", "kustomize"]
    assert not has_fatal(results)
    assert results[-1].status is StepStatus.NON_FATAL_ERROR


def test_run_install_dependencies_with_bin_dir_outside_path(cfg, monkeypatch, tmp_path):
    path_dir = tmp_path / "path"
    write_stub(path_dir, "kubectl", "Client Version: v1.33.2")
    write_stub(path_dir, "helm", "v3.17.1")
    monkeypatch.setenv("PATH", str(path_dir))
    write_stub(cfg.bin_dir, "yq", "yq version v4.45.1")
    write_stub(cfg.bin_dir, "kustomize", "v5.4.3")
    monkeypatch.setattr(orchestrator, "install_os_packages",
                        lambda pkgs: StepResult.skipped("install OS packages"))

    results = {r.name: r for r in orchestrator.run_install_dependencies(cfg)}

    assert results["install kustomize"].status is StepStatus.SKIPPED
    assert results["verify kustomize"].status is StepStatus.SUCCESS
    assert results["verify yq"].status is StepStatus.SUCCESS
    assert not has_fatal(results.values())


def test_run_setup_skips_deploy_after_fatal_deps(cfg, monkeypatch):
    monkeypatch.setattr(orchestrator, "run_install_dependencies",
                        lambda cfg: [StepResult.fatal("verify helm", "not found on PATH")])
    monkeypatch.setattr(orchestrator, "run_deploy", lambda *a, **kw: pytest.fail("deploy should not run"))

    results = orchestrator.run_setup(cfg)

    assert has_fatal(results)


def test_run_status_without_wait(cfg, cluster):
    results = orchestrator.run_status(cfg, wait=False)

    assert [r.name for r in results] == ["report services"]
    assert not cluster.was_called_with("wait")
