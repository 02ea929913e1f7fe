"""
Docker Manager: wraps the docker CLI for the ``opskit docker`` commands.
"""

import logging
import sys
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from opskit.core.exceptions import PreconditionError, ToolError
from opskit.core.runner import ToolResult, require_tool, run_tool

logger = logging.getLogger(__name__)

CONTAINER_FORMAT = "table {{.Names}}\t{{.Image}}\t{{.Status}}\t{{.Ports}}"
ALL_CONTAINERS_FORMAT = "table {{.Names}}\t{{.Image}}\t{{.Status}}\t{{.CreatedAt}}"
IMAGE_FORMAT = "table {{.Repository}}\t{{.Tag}}\t{{.Size}}\t{{.CreatedAt}}"
STATS_FORMAT = "table {{.Name}}\t{{.CPUPerc}}\t{{.MemUsage}}\t{{.NetIO}}\t{{.BlockIO}}"

# Options added to ``docker run`` when the image name contains the key
IMAGE_DEFAULTS: List[Tuple[str, List[str]]] = [
    ("nginx", ["-p", "80:80"]),
    ("apache", ["-p", "80:80"]),
    ("mysql", ["-e", "MYSQL_ROOT_PASSWORD=rootpass"]),
    ("postgres", ["-e", "POSTGRES_PASSWORD=postgres"]),
]

PRUNE_TARGETS = [
    ("stopped containers", ["container", "prune", "-f"]),
    ("unused images", ["image", "prune", "-f"]),
    ("unused networks", ["network", "prune", "-f"]),
    ("unused volumes", ["volume", "prune", "-f"]),
]

SAMPLE_DOCKERFILE = """\
# Sample Dockerfile for a simple web application
FROM nginx:alpine

# Copy custom configuration
COPY index.html /usr/share/nginx/html/

# Expose port 80
EXPOSE 80

# Start nginx
CMD ["nginx", "-g", "daemon off;"]
"""

SAMPLE_INDEX = """\
<!DOCTYPE html>
<html>
<head>
    <title>Sample Docker App</title>
</head>
<body>
    <h1>Hello from Docker!</h1>
    <p>This is a sample application running in a Docker container.</p>
    <p>Built with opskit automation!</p>
</body>
</html>
"""


def run_arguments(image: str, name: Optional[str] = None) -> List[str]:
    """Argument vector for ``docker run`` with the image-based defaults."""
    args = ["docker", "run", "-d"]
    if name:
        args += ["--name", name]
    for key, options in IMAGE_DEFAULTS:
        if key in image:
            args += options
            break
    args.append(image)
    return args


class DockerManager:

    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout

    def ensure_available(self) -> None:
        require_tool("docker", "Please install Docker first: https://docs.docker.com/get-docker/")
        if not run_tool(["docker", "info"], timeout=self.timeout).ok:
            raise PreconditionError("Docker daemon is not running. Please start Docker service")

    def _docker(self, *args: str, check: bool = True) -> ToolResult:
        return run_tool(["docker", *args], timeout=self.timeout, check=check)

    def list_containers(self) -> Tuple[ToolResult, ToolResult]:
        running = self._docker("ps", "--format", CONTAINER_FORMAT)
        every = self._docker("ps", "-a", "--format", ALL_CONTAINERS_FORMAT)
        return running, every

    def list_images(self) -> ToolResult:
        return self._docker("images", "--format", IMAGE_FORMAT)

    def run_container(self, image: str, name: Optional[str] = None) -> str:
        """Start a detached container and return its ID."""
        args = run_arguments(image, name)
        result = run_tool(args, timeout=self.timeout)
        if not result.ok:
            raise ToolError(
                "Failed to start container",
                returncode=result.returncode,
                output=result.output,
                args=args,
            )
        return result.stdout.strip()[:12]

    def stop_container(self, container: str) -> ToolResult:
        return self._docker("stop", container)

    def start_container(self, container: str) -> ToolResult:
        return self._docker("start", container)

    def remove_container(self, container: str) -> ToolResult:
        stopped = self._docker("stop", container, check=False)
        if not stopped.ok:
            logger.debug("docker stop %s: %s", container, stopped.output)
        return self._docker("rm", container)

    def show_logs(self, container: str, tail: int = 50, follow: bool = False) -> int:
        """Stream logs to the terminal; returns docker's exit code."""
        args = ["docker", "logs", "--tail", str(tail)]
        if follow:
            args.append("-f")
        args.append(container)
        result = run_tool(args, capture=False)
        if not result.ok:
            raise ToolError(f"docker logs failed for {container}", returncode=result.returncode, args=args)
        return result.returncode

    def exec_command(self, container: str, command: Sequence[str]) -> int:
        args = ["docker", "exec"]
        if sys.stdin.isatty():
            args.append("-it")
        args.append(container)
        args += list(command) or ["/bin/bash"]
        result = run_tool(args, capture=False)
        if not result.ok:
            raise ToolError(f"Command failed in container {container}", returncode=result.returncode, args=args)
        return result.returncode

    def stats(self) -> ToolResult:
        return self._docker("stats", "--no-stream", "--format", STATS_FORMAT)

    def cleanup(self) -> List[Tuple[str, ToolResult]]:
        """Prune containers, images, networks and volumes, then ``system df``."""
        results = [(label, self._docker(*args)) for label, args in PRUNE_TARGETS]
        results.append(("disk usage", self._docker("system", "df")))
        return results

    def build_image(self, dockerfile_dir: Path) -> str:
        dockerfile_dir = Path(dockerfile_dir)
        if not (dockerfile_dir / "Dockerfile").is_file():
            raise PreconditionError(f"Dockerfile not found in {dockerfile_dir}")
        image_name = dockerfile_dir.resolve().name.lower()
        result = run_tool(["docker", "build", "-t", image_name, str(dockerfile_dir)], capture=False)
        if not result.ok:
            raise ToolError("Failed to build image", returncode=result.returncode)
        return image_name

    @staticmethod
    def write_sample(directory: Path) -> Path:
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        (directory / "Dockerfile").write_text(SAMPLE_DOCKERFILE, encoding="utf-8")
        (directory / "index.html").write_text(SAMPLE_INDEX, encoding="utf-8")
        return directory
