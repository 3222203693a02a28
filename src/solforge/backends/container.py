"""Docker-backed compilation with the ``ethereum/solc`` images.

The project root is mounted read-only at ``/sources`` and the request is
streamed over the container's stdin. Allowed paths outside the root keep their
host path inside the container, so absolute remappings still resolve. Every
docker call is bounded by ``request.timeout``, and every run gets a unique
container name so it can be force-removed on every exit path.
"""

from __future__ import annotations

import hashlib
import shutil
import uuid
from dataclasses import dataclass
from typing import Any

from solforge.backends.base import MountSpec, allow_paths_args, run_compiler, run_tool
from solforge.errors import BackendInvocationError, ConfigResolutionError, SolforgeError
from solforge.models import DEFAULT_DOCKER_IMAGE, CompileRequest

CONTAINER_ROOT = "/sources"


@dataclass(slots=True)
class DockerSolcBackend:
    name: str = "container"
    image: str = DEFAULT_DOCKER_IMAGE
    docker: str = "docker"

    def image_for(self, request: CompileRequest) -> str:
        if not request.compiler_version:
            raise ConfigResolutionError(
                "The container backend requires a pinned compiler version.",
                hint="Set `compilerVersion` in the config.",
                context={"backend": self.name},
            )
        return f"{self.image}:{request.compiler_version.lstrip('v')}"

    def mount_plan(self, request: CompileRequest) -> tuple[MountSpec, ...]:
        """Root first, then extra import paths in a stable order.

        Paths outside the root are mounted at their host location.
        """
        mounts = [MountSpec(source=request.root_dir, target=CONTAINER_ROOT)]
        for path in request.allowed_paths:
            if path.is_relative_to(request.root_dir):
                continue
            mounts.append(MountSpec(source=path, target=path.as_posix()))
        return tuple(mounts)

    def prepare(self, request: CompileRequest) -> None:
        self._ensure_docker_available()
        image = self.image_for(request)
        if self._image_present(image, request):
            return
        result = run_tool(
            [self.docker, "pull", image], request=request, backend=self.name, operation="prepare"
        )
        if result.returncode != 0:
            raise BackendInvocationError(
                "Failed to pull compiler image.",
                hint="Check the compiler version exists as a Docker tag.",
                context={
                    "backend": self.name,
                    "operation": "prepare",
                    "image": image,
                    "stderr": result.stderr[:2000] if result.stderr else "",
                },
            )

    def compile(self, request: CompileRequest) -> dict[str, Any]:
        self._ensure_docker_available()
        container_name = self._container_name(request)
        cmd = self._build_run_command(request, container_name)
        try:
            output = run_compiler(cmd, request=request, backend=self.name)
        except BaseException as exc:
            try:
                self._remove_container(container_name, request)
            except SolforgeError as cleanup_exc:
                exc.add_note(f"container cleanup also failed: {cleanup_exc}")
            raise
        self._remove_container(container_name, request)
        return output

    def cleanup(self, request: CompileRequest) -> None:
        pass

    def _build_run_command(self, request: CompileRequest, container_name: str) -> list[str]:
        cmd = [self.docker, "run", "-i", "--rm", "--name", container_name]
        for mount in self.mount_plan(request):
            suffix = ":ro" if mount.read_only else ""
            cmd.extend(["-v", f"{mount.source}:{mount.target}{suffix}"])
        cmd.extend(["-w", CONTAINER_ROOT, self.image_for(request), "--standard-json"])
        cmd.extend(allow_paths_args([mount.target for mount in self.mount_plan(request)]))
        return cmd

    def _container_name(self, request: CompileRequest) -> str:
        digest = hashlib.sha256(str(request.root_dir).encode()).hexdigest()
        return f"solforge-{digest[:8]}-{uuid.uuid4().hex[:8]}"

    def _image_present(self, image: str, request: CompileRequest) -> bool:
        result = run_tool(
            [self.docker, "image", "inspect", image],
            request=request,
            backend=self.name,
            operation="prepare",
        )
        return result.returncode == 0

    def _remove_container(self, name: str, request: CompileRequest) -> None:
        # Already gone after a normal ``--rm`` exit; the exit status is ignored.
        run_tool(
            [self.docker, "rm", "-f", name], request=request, backend=self.name, operation="cleanup"
        )

    def _ensure_docker_available(self) -> None:
        if shutil.which(self.docker) is None:
            raise BackendInvocationError(
                "Container backend requires `docker` in PATH.",
                hint="Install Docker or switch `backendKind` to \"native\" or \"module\".",
                context={"backend": self.name, "operation": "prepare"},
            )
