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

"""OS packages, CLI tool downloads, verification, and symlinks."""

from __future__ import annotations

import os
import platform
import re
import shutil
import tarfile
import tempfile
from collections.abc import Callable, Iterable
from pathlib import Path

import requests
import sh
from rich.markup import escape
from rich.panel import Panel

from llmd_setup import console, logger
from llmd_setup.constants import (
    ARCH_ALIASES,
    DOWNLOAD_CHUNK_SIZE,
    DOWNLOAD_TIMEOUT_SECONDS,
    TOOL_MODE,
    VERIFY_COMMANDS,
    dep_value,
)
from llmd_setup.results import StepResult
from llmd_setup.utils import first_line, privileged, require_command


class ToolInstallError(RuntimeError):
    """Raised when a tool cannot be downloaded or installed."""


# ============================================================================
# Architecture
# ============================================================================

def resolve_arch(machine: str) -> str:
    """Map a raw CPU identifier to the name used in release asset URLs.

    ``aarch64`` and ``x86_64`` are translated; any other value is returned
    unchanged.

    Args:
        machine: Value as reported by ``uname -m``.

    Returns:
        Architecture suffix for download URLs.
    """
    return ARCH_ALIASES.get(machine, machine)


def detect_arch() -> str:
    """Return the download architecture of the local host."""
    return resolve_arch(platform.machine())


# ============================================================================
# OS packages
# ============================================================================

def missing_packages(packages: Iterable[str]) -> list[str]:
    """Return the packages dpkg does not report as installed."""
    missing = []
    for pkg in packages:
        try:
            sh.dpkg("-s", pkg)
        except sh.ErrorReturnCode:
            missing.append(pkg)
    return missing


def install_os_packages(packages: list[str]) -> StepResult:
    """Install OS packages with apt-get, skipping ones already present.

    Args:
        packages: Debian package names.

    Returns:
        Step result; fatal if apt-get fails.
    """
    name = "install OS packages"
    console.print(Panel.fit("Installing base packages", style="bold blue"))
    try:
        require_command("apt-get")
        missing = missing_packages(packages)
        if not missing:
            console.print(f"[green]\u2705 Already installed: {', '.join(packages)}[/green]")
            return StepResult.skipped(name, "all packages present")

        console.print(f"[yellow]\u2139\ufe0f  Installing {', '.join(missing)}...[/yellow]")
        apt = privileged(["env", "DEBIAN_FRONTEND=noninteractive", "apt-get"])
        apt_get = sh.Command(apt[0])
        apt_get(*apt[1:], "update")
        apt_get(*apt[1:], "install", "-y", *missing)
    except (RuntimeError, sh.ErrorReturnCode) as err:
        console.print(f"[red]\u274c Package installation failed: {escape(str(err))}[/red]")
        return StepResult.fatal(name, str(err).strip()[:200])
    console.print(f"[green]\u2705 Installed {', '.join(missing)}[/green]")
    return StepResult.ok(name, ", ".join(missing))


# ============================================================================
# Downloads
# ============================================================================

def download_file(url: str, dest: Path) -> None:
    """Stream *url* to *dest*, replacing it atomically.

    Args:
        url: HTTP(S) URL to fetch; redirects are followed.
        dest: Destination file path.

    Raises:
        requests.RequestException: On network or HTTP errors.
    """
    logger.debug("Downloading %s -> %s", url, dest)
    partial = dest.with_name(dest.name + ".part")
    try:
        with requests.get(url, stream=True, timeout=DOWNLOAD_TIMEOUT_SECONDS) as resp:
            resp.raise_for_status()
            with open(partial, "wb") as f:
                for chunk in resp.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    f.write(chunk)
        partial.replace(dest)
    finally:
        partial.unlink(missing_ok=True)


def yq_url(arch: str) -> str:
    """Build the yq release asset URL for *arch*."""
    return dep_value("yq", "url").format(arch=arch)


def install_yq(arch: str, bin_dir: Path) -> Path:
    """Download the yq binary into *bin_dir*.

    Args:
        arch: Download architecture (``amd64``, ``arm64``, ...).
        bin_dir: Installation directory.

    Returns:
        Path of the installed binary.
    """
    dest = bin_dir / "yq"
    download_file(yq_url(arch), dest)
    dest.chmod(TOOL_MODE)
    return dest


def latest_kustomize_tag() -> str:
    """Resolve the latest kustomize release tag (e.g. ``kustomize/v5.4.3``).

    Raises:
        ToolInstallError: If the releases API returns no tag.
    """
    resp = requests.get(
        dep_value("kustomize", "release_api"),
        headers={"Accept": "application/vnd.github+json"},
        timeout=DOWNLOAD_TIMEOUT_SECONDS,
    )
    resp.raise_for_status()
    tag = resp.json().get("tag_name")
    if not tag:
        raise ToolInstallError("kustomize release API returned no tag_name")
    return tag


def kustomize_url(tag: str, arch: str) -> str:
    """Build the kustomize archive URL for a release *tag*."""
    version = tag.removeprefix(dep_value("kustomize", "tag_prefix", default=""))
    return dep_value("kustomize", "url").format(tag=tag, version=version, arch=arch)


def extract_member(archive: Path, member_name: str, dest: Path) -> None:
    """Extract a single file from a gzipped tarball to *dest*.

    Raises:
        ToolInstallError: If the archive has no regular file named *member_name*.
    """
    with tarfile.open(archive, "r:gz") as tar:
        for member in tar.getmembers():
            if member.isfile() and Path(member.name).name == member_name:
                src = tar.extractfile(member)
                with src, open(dest, "wb") as out:
                    shutil.copyfileobj(src, out)
                return
    raise ToolInstallError(f"{member_name} not found in {archive.name}")


def install_kustomize(arch: str, bin_dir: Path) -> Path:
    """Download the latest kustomize release archive and install the binary.

    Args:
        arch: Download architecture (``amd64``, ``arm64``, ...).
        bin_dir: Installation directory.

    Returns:
        Path of the installed binary.
    """
    url = kustomize_url(latest_kustomize_tag(), arch)
    dest = bin_dir / "kustomize"
    with tempfile.TemporaryDirectory() as tmp:
        archive = Path(tmp) / "kustomize.tar.gz"
        download_file(url, archive)
        extract_member(archive, "kustomize", dest)
    dest.chmod(TOOL_MODE)
    return dest


TOOL_INSTALLERS: dict[str, Callable[[str, Path], Path]] = {
    "yq": install_yq,
    "kustomize": install_kustomize,
}


def is_installed(tool: str) -> bool:
    """Return True if *tool* is found on PATH."""
    return shutil.which(tool) is not None


def ensure_tool(tool: str, arch: str, bin_dir: Path) -> StepResult:
    """Install *tool* into *bin_dir* unless it is already available.

    A tool on PATH or already present in *bin_dir* is left untouched.

    Returns:
        Skipped if present, success after install, fatal on download errors.
    """
    name = f"install {tool}"
    if is_installed(tool) or (bin_dir / tool).exists():
        console.print(f"[green]\u2705 {tool} already installed[/green]")
        return StepResult.skipped(name, "already installed")

    console.print(f"[yellow]\u2139\ufe0f  Installing {tool} ({arch})...[/yellow]")
    try:
        path = TOOL_INSTALLERS[tool](arch, bin_dir)
    except (requests.RequestException, OSError, tarfile.TarError, ToolInstallError) as err:
        console.print(f"[red]\u274c Failed to install {tool}: {escape(str(err))}[/red]")
        return StepResult.fatal(name, str(err))
    console.print(f"[green]\u2705 {tool} installed at {path}[/green]")
    return StepResult.ok(name, str(path))


def check_bin_dir(tools: Iterable[str], bin_dir: Path) -> StepResult:
    """Fail early when a tool needs installing and *bin_dir* is not writable.

    Returns:
        Skipped when every tool is already available, fatal when *bin_dir*
        is missing or not writable by the current user.
    """
    name = "check install directory"
    pending = [tool for tool in tools if not is_installed(tool) and not (bin_dir / tool).exists()]
    if not pending:
        return StepResult.skipped(name, "nothing to install")
    if not bin_dir.is_dir() or not os.access(bin_dir, os.W_OK):
        detail = f"{bin_dir} is not a writable directory; run as root or pass --bin-dir"
        console.print(f"[red]\u274c Cannot install {', '.join(pending)}: {escape(detail)}[/red]")
        return StepResult.fatal(name, detail)
    return StepResult.ok(name, str(bin_dir))


# ============================================================================
# Verification
# ============================================================================

def tool_version(tool: str, bin_dir: Path | None = None) -> str:
    """Run *tool* with its version flags and return the output.

    The copy in *bin_dir* is preferred when present, so tools installed
    outside PATH are still found.

    Raises:
        sh.CommandNotFound: If the tool is neither in *bin_dir* nor on PATH.
        sh.ErrorReturnCode: If the tool exits non-zero.
    """
    local = bin_dir / tool if bin_dir is not None else None
    command = sh.Command(str(local)) if local is not None and local.exists() else sh.Command(tool)
    return str(command(*VERIFY_COMMANDS[tool])).strip()


def kubectl_minor_mismatch(version_output: str, expected: str) -> str | None:
    """Compare the kubectl client ``major.minor`` against *expected*.

    Returns:
        The detected version when it differs, otherwise None. Unparseable
        output is not treated as a mismatch.
    """
    m = re.search(r"Client Version:\s*v?(\d+)\.(\d+)", version_output)
    if not m:
        return None
    found = f"{m.group(1)}.{m.group(2)}"
    return found if found != expected else None


def verify_tools(kubernetes_version: str, bin_dir: Path | None = None) -> list[StepResult]:
    """Run every required tool and display its version.

    Args:
        kubernetes_version: Expected kubectl client ``major.minor``.
        bin_dir: Tool install directory checked before PATH.

    Returns:
        One result per tool; fatal for missing or failing tools.
    """
    console.print(Panel.fit("Verifying tools", style="bold blue"))
    results = []
    for tool in VERIFY_COMMANDS:
        name = f"verify {tool}"
        try:
            output = tool_version(tool, bin_dir)
        except sh.CommandNotFound:
            console.print(f"[red]\u2717 {tool} not found[/red]")
            results.append(StepResult.fatal(name, "not found in bin dir or on PATH"))
            continue
        except sh.ErrorReturnCode as err:
            stderr = err.stderr.decode(errors="replace") if err.stderr else ""
            console.print(f"[red]\u2717 {tool} failed: {escape(first_line(stderr))}[/red]")
            results.append(StepResult.fatal(name, first_line(stderr) or f"exit code {err.exit_code}"))
            continue

        console.print(f"[green]\u2713 {tool} version:[/green] {escape(output)}")
        mismatch = kubectl_minor_mismatch(output, kubernetes_version) if tool == "kubectl" else None
        if mismatch:
            console.print(
                f"[yellow]\u26a0\ufe0f  kubectl client {mismatch} differs from expected {kubernetes_version}[/yellow]")
            results.append(StepResult.warning(name, f"client {mismatch}, expected {kubernetes_version}"))
        else:
            results.append(StepResult.ok(name, first_line(output)))
    return results


# ============================================================================
# Symlinks
# ============================================================================

def create_symlinks(tools: Iterable[str], bin_dir: Path, link_dir: Path) -> list[StepResult]:
    """Link ``link_dir/<tool>`` to ``bin_dir/<tool>``, replacing stale links.

    Failures are reported as non-fatal.
    """
    results = []
    for tool in tools:
        name = f"symlink {tool}"
        src = bin_dir / tool
        dest = link_dir / tool
        if not src.exists():
            results.append(StepResult.warning(name, f"{src} does not exist"))
            continue
        try:
            if dest.is_symlink() and os.readlink(dest) == str(src):
                results.append(StepResult.skipped(name, "link already present"))
                continue
            if dest.is_symlink() or dest.exists():
                dest.unlink()
            dest.symlink_to(src)
        except OSError as err:
            console.print(f"[yellow]\u26a0\ufe0f  Could not link {dest}: {escape(str(err))}[/yellow]")
            results.append(StepResult.warning(name, str(err)))
            continue
        results.append(StepResult.ok(name, f"{dest} -> {src}"))
    return results
