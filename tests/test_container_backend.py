import json
import subprocess
from pathlib import Path
from typing import Any

import pytest

from solforge.backends import DockerSolcBackend, MountSpec, get_backend
from solforge.config import resolve_config
from solforge.errors import BackendInvocationError, BackendTimeout, ConfigResolutionError
from solforge.models import CompileRequest, SourceSet


def test_container_mount_plan_puts_root_first(tmp_path: Path) -> None:
    inside = tmp_path / "node_modules"
    outside = tmp_path.parent / "shared-libs"
    request = _request(tmp_path, allowed=(inside, outside))

    mounts = DockerSolcBackend().mount_plan(request)

    assert mounts == (
        MountSpec(source=tmp_path, target="/sources"),
        MountSpec(source=outside, target=outside.as_posix()),
    )
    assert all(mount.read_only for mount in mounts)


def test_container_keeps_host_paths_for_outside_imports(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr("solforge.backends.container.shutil.which", lambda name: f"/usr/bin/{name}")
    shared = tmp_path.parent / "shared-libs"
    calls: list[dict[str, Any]] = []

    def fake_run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        calls.append({"cmd": cmd, **kwargs})
        return subprocess.CompletedProcess(cmd, 0, stdout="{}", stderr="")

    monkeypatch.setattr("solforge.backends.base.subprocess.run", fake_run)
    remapping = f"@shared/={shared}/"
    request = _request(tmp_path, allowed=(shared,), remappings=[remapping])

    DockerSolcBackend().compile(request)

    run_cmd = calls[0]["cmd"]
    assert f"{shared}:{shared}:ro" in run_cmd
    assert run_cmd[-1] == f"/sources,{shared}"
    sent = json.loads(calls[0]["input"])
    assert sent["settings"]["remappings"] == [remapping]


def test_container_image_follows_pinned_version(tmp_path: Path) -> None:
    backend = DockerSolcBackend(image="ethereum/solc")

    assert backend.image_for(_request(tmp_path, version="v0.8.24")) == "ethereum/solc:0.8.24"
    with pytest.raises(ConfigResolutionError):
        backend.image_for(_request(tmp_path, version=None))


def test_container_backend_requires_docker(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr("solforge.backends.container.shutil.which", lambda _: None)

    with pytest.raises(BackendInvocationError) as excinfo:
        DockerSolcBackend().prepare(_request(tmp_path))

    assert "docker" in str(excinfo.value)


def test_container_prepare_pulls_missing_image(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr("solforge.backends.container.shutil.which", lambda name: f"/usr/bin/{name}")
    commands: list[list[str]] = []

    def fake_run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        commands.append(cmd)
        returncode = 1 if cmd[1:3] == ["image", "inspect"] else 0
        return subprocess.CompletedProcess(cmd, returncode, stdout="", stderr="")

    monkeypatch.setattr("solforge.backends.base.subprocess.run", fake_run)

    DockerSolcBackend().prepare(_request(tmp_path))

    assert commands == [
        ["docker", "image", "inspect", "ethereum/solc:0.8.24"],
        ["docker", "pull", "ethereum/solc:0.8.24"],
    ]


def test_container_prepare_reports_pull_failure(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr("solforge.backends.container.shutil.which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(
        "solforge.backends.base.subprocess.run",
        lambda cmd, **kwargs: subprocess.CompletedProcess(cmd, 1, stdout="", stderr="not found"),
    )

    with pytest.raises(BackendInvocationError) as excinfo:
        DockerSolcBackend().prepare(_request(tmp_path))

    assert excinfo.value.context["image"] == "ethereum/solc:0.8.24"
    assert excinfo.value.context["stderr"] == "not found"


def test_container_pull_timeout_is_backend_timeout(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr("solforge.backends.container.shutil.which", lambda name: f"/usr/bin/{name}")
    timeouts: list[float | None] = []

    def fake_run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        timeouts.append(kwargs.get("timeout"))
        if cmd[1] == "pull":
            raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])
        return subprocess.CompletedProcess(cmd, 1, stdout="", stderr="")

    monkeypatch.setattr("solforge.backends.base.subprocess.run", fake_run)

    with pytest.raises(BackendTimeout) as excinfo:
        DockerSolcBackend().prepare(_request(tmp_path))

    assert not isinstance(excinfo.value, BackendInvocationError)
    assert timeouts == [30.0, 30.0]
    assert excinfo.value.context["operation"] == "prepare"
    assert excinfo.value.context["timeout"] == "30.0"
    assert excinfo.value.context["command"] == "docker pull ethereum/solc:0.8.24"


def test_container_image_inspect_honors_timeout(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr("solforge.backends.container.shutil.which", lambda name: f"/usr/bin/{name}")

    def hung_run(cmd: list[str], **kwargs: Any) -> None:
        raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])

    monkeypatch.setattr("solforge.backends.base.subprocess.run", hung_run)

    with pytest.raises(BackendTimeout) as excinfo:
        DockerSolcBackend().prepare(_request(tmp_path))

    assert excinfo.value.context["command"].startswith("docker image inspect")


def test_container_removal_is_bounded(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setattr("solforge.backends.container.shutil.which", lambda name: f"/usr/bin/{name}")
    calls: list[dict[str, Any]] = []

    def fake_run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        calls.append({"cmd": cmd, **kwargs})
        if cmd[1] == "rm":
            raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])
        return subprocess.CompletedProcess(cmd, 0, stdout="{}", stderr="")

    monkeypatch.setattr("solforge.backends.base.subprocess.run", fake_run)

    with pytest.raises(BackendTimeout) as excinfo:
        DockerSolcBackend().compile(_request(tmp_path))

    assert [call["timeout"] for call in calls] == [30.0, 30.0]
    assert excinfo.value.context["operation"] == "cleanup"


def test_container_removal_failure_keeps_compile_error(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr("solforge.backends.container.shutil.which", lambda name: f"/usr/bin/{name}")

    def fake_run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        if cmd[1] == "rm":
            raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])
        return subprocess.CompletedProcess(cmd, 125, stdout="", stderr="daemon error")

    monkeypatch.setattr("solforge.backends.base.subprocess.run", fake_run)

    with pytest.raises(BackendInvocationError) as excinfo:
        DockerSolcBackend().compile(_request(tmp_path))

    assert excinfo.value.context["stderr"] == "daemon error"
    assert any("cleanup" in note for note in excinfo.value.__notes__)


def test_container_compile_streams_request_and_removes_container(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr("solforge.backends.container.shutil.which", lambda name: f"/usr/bin/{name}")
    calls: list[dict[str, Any]] = []
    output = {"contracts": {}, "sources": {}}

    def fake_run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        calls.append({"cmd": cmd, **kwargs})
        stdout = json.dumps(output) if cmd[1] == "run" else ""
        return subprocess.CompletedProcess(cmd, 0, stdout=stdout, stderr="")

    monkeypatch.setattr("solforge.backends.base.subprocess.run", fake_run)
    request = _request(tmp_path)

    assert DockerSolcBackend().compile(request) == output

    run_cmd = calls[0]["cmd"]
    name = run_cmd[run_cmd.index("--name") + 1]
    assert run_cmd[:4] == ["docker", "run", "-i", "--rm"]
    assert name.startswith("solforge-")
    assert f"{tmp_path}:/sources:ro" in run_cmd
    assert run_cmd[run_cmd.index("-w") + 1] == "/sources"
    assert run_cmd[-4:] == [
        "ethereum/solc:0.8.24",
        "--standard-json",
        "--allow-paths",
        "/sources",
    ]
    assert json.loads(calls[0]["input"]) == request.standard_input
    assert calls[-1]["cmd"] == ["docker", "rm", "-f", name]


def test_container_timeout_still_removes_container(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setattr("solforge.backends.container.shutil.which", lambda name: f"/usr/bin/{name}")
    removed: list[list[str]] = []

    def fake_run(cmd: list[str], **kwargs: Any) -> subprocess.CompletedProcess[str]:
        if cmd[1] == "run":
            raise subprocess.TimeoutExpired(cmd, kwargs["timeout"])
        removed.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    monkeypatch.setattr("solforge.backends.base.subprocess.run", fake_run)

    with pytest.raises(BackendTimeout):
        DockerSolcBackend().compile(_request(tmp_path))

    assert len(removed) == 1
    assert removed[0][:3] == ["docker", "rm", "-f"]
    assert removed[0][3].startswith("solforge-")


def test_container_names_are_unique_per_run(tmp_path: Path) -> None:
    backend = DockerSolcBackend()
    request = _request(tmp_path)

    assert backend._container_name(request) != backend._container_name(request)


def test_get_backend_uses_configured_image(tmp_path: Path) -> None:
    config = resolve_config(
        {"backendKind": "docker", "compilerVersion": "0.8.24", "dockerImage": "mirror/solc"},
        base_dir=tmp_path,
    )

    backend = get_backend(config)

    assert isinstance(backend, DockerSolcBackend)
    assert backend.image == "mirror/solc"


def _request(
    tmp_path: Path,
    *,
    version: str | None = "0.8.24",
    allowed: tuple[Path, ...] = (),
    remappings: list[str] | None = None,
) -> CompileRequest:
    settings: dict[str, Any] = {"remappings": remappings} if remappings else {}
    return CompileRequest(
        standard_input={"language": "Solidity", "sources": {}, "settings": settings},
        sources=SourceSet(root_dir=tmp_path),
        root_dir=tmp_path,
        compiler_version=version,
        allowed_paths=allowed,
        timeout=30.0,
    )
