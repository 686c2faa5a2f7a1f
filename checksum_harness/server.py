"""Server fixture: lifecycle of one ephemeral storage-server container.

Talks to the docker daemon through the docker SDK to:
- Start the server image with fixed credentials on a well-known internal port
- Discover the dynamically assigned host port
- Wait for the readiness probe (HTTP 403 on GET /)
- Stop the container exactly once, whatever happened in between
"""

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator, Optional

import docker
from docker.errors import DockerException

from checksum_harness.config import HarnessSettings
from checksum_harness.models import ReadinessState, ServerInstance
from checksum_harness.readiness import ReadinessTimeout, wait_until_forbidden

logger = logging.getLogger(__name__)

# Timeout for docker API calls (seconds); the first run may pull the image
DOCKER_API_TIMEOUT = 300
# Grace period before the daemon kills the container on stop (seconds)
STOP_TIMEOUT = 10

# Lines of container output attached to a start failure
LOG_TAIL_LINES = 50


class SetupError(Exception):
    """Fatal error preparing the environment; aborts the whole session."""

    pass


class ServerStartError(SetupError):
    """Raised when the server cannot be started or never becomes ready."""

    pass


def default_docker_client(settings: HarnessSettings) -> docker.DockerClient:
    """Docker client for the configured endpoint."""
    if not settings.docker_endpoint:
        # DOCKER_HOST, or the local unix socket
        return docker.from_env(timeout=DOCKER_API_TIMEOUT)
    return docker.DockerClient(base_url=settings.docker_endpoint, timeout=DOCKER_API_TIMEOUT)


def parse_port_mapping(ports: dict[str, Any], internal_port: int) -> int:
    """Extract the host port bound to ``internal_port``.

    Args:
        ports: ``container.ports``, e.g.
            {"9000/tcp": [{"HostIp": "0.0.0.0", "HostPort": "49153"}]}
        internal_port: The container-side port.

    Returns:
        The host port of the first binding.

    Raises:
        ServerStartError: If the port is not published.
    """
    for binding in ports.get(f"{internal_port}/tcp") or []:
        host_port = str(binding.get("HostPort", ""))
        if host_port.isdigit():
            return int(host_port)
    raise ServerStartError(f"Port {internal_port}/tcp is not published: {ports!r}")


class ServerFixture:
    """Manages one storage-server container for a test session.

    Use ``running_server()`` (or acquire/release in try/finally) so the
    container is released on every exit path.
    """

    def __init__(
        self,
        settings: HarnessSettings,
        client_factory: Callable[[HarnessSettings], docker.DockerClient] = default_docker_client,
        probe: Callable[..., int] = wait_until_forbidden,
    ):
        """Initialize the fixture.

        Args:
            settings: Harness settings (image, credentials, ports, timeouts)
            client_factory: Builds the docker client from the settings
            probe: Readiness probe callable
        """
        self.settings = settings
        self._client_factory = client_factory
        self._probe = probe
        self._client: Optional[docker.DockerClient] = None
        self._container = None
        self.instance: Optional[ServerInstance] = None

    def _environment(self) -> dict[str, str]:
        prefix = self.settings.env_prefix
        return {
            f"{prefix}ADDRESS": f"0.0.0.0:{self.settings.internal_port}",
            f"{prefix}ACCESS_KEY": self.settings.access_key,
            f"{prefix}SECRET_KEY": self.settings.secret_key,
        }

    def _start_container(self):
        try:
            self._client = self._client_factory(self.settings)
            return self._client.containers.run(
                self.settings.image,
                detach=True,
                remove=True,
                ports={f"{self.settings.internal_port}/tcp": None},
                environment=self._environment(),
            )
        except DockerException as e:
            raise ServerStartError(f"Could not start {self.settings.image}: {e}") from e

    def _host_port(self) -> int:
        # Port bindings are only filled in once the container has started
        try:
            self._container.reload()
        except DockerException as e:
            raise ServerStartError(f"Could not inspect container {self._container.id}: {e}") from e
        return parse_port_mapping(self._container.ports, self.settings.internal_port)

    def acquire(self) -> ServerInstance:
        """Start the server and block until it is ready.

        Returns:
            A ServerInstance in the READY state.

        Raises:
            ServerStartError: If the container cannot be started, its port
                cannot be discovered, or the readiness probe times out.
            RuntimeError: If this fixture already holds an instance.
        """
        if self.instance is not None and self.instance.state != ReadinessState.STOPPED:
            raise RuntimeError("Server already acquired")

        logger.info("Starting %s", self.settings.image)
        self._container = self._start_container()

        self.instance = ServerInstance(
            host=self.settings.host,
            port=0,
            access_key=self.settings.access_key,
            secret_key=self.settings.secret_key,
            state=ReadinessState.STARTING,
            container_id=self._container.id,
            image=self.settings.image,
        )

        try:
            self.instance.port = self._host_port()
            logger.info(
                "Container %s mapped %d -> %s",
                self._container.id[:12], self.settings.internal_port, self.instance.endpoint_url,
            )

            self._probe(
                f"{self.instance.endpoint_url}/",
                timeout=self.settings.readiness_timeout,
                interval=self.settings.readiness_interval,
            )
        except ReadinessTimeout as e:
            logs = self._container_logs()
            self.release()
            raise ServerStartError(f"{e}\n--- container logs ---\n{logs}") from e
        except BaseException:
            self.release()
            raise

        self.instance.state = ReadinessState.READY
        return self.instance

    def release(self) -> None:
        """Stop the container.

        Safe to call more than once; only the first call stops anything.
        Stop failures are logged, not raised.
        """
        instance = self.instance
        if instance is None or instance.state == ReadinessState.STOPPED:
            return

        instance.state = ReadinessState.STOPPED
        try:
            self._container.stop(timeout=STOP_TIMEOUT)
            logger.info("Stopped container %s", instance.container_id[:12])
        except DockerException as e:
            logger.warning("Failed to stop container %s: %s", instance.container_id, e)
        finally:
            self._client.close()

    def _container_logs(self) -> str:
        if self._container is None:
            return ""
        try:
            return self._container.logs(tail=LOG_TAIL_LINES).decode("utf-8", errors="replace")
        except DockerException as e:
            return f"<unavailable: {e}>"


@contextmanager
def running_server(
    settings: HarnessSettings,
    fixture_factory: Callable[[HarnessSettings], ServerFixture] = ServerFixture,
) -> Iterator[ServerInstance]:
    """Context manager yielding a ready server, released on every exit path.

    Example:
        >>> with running_server(settings) as instance:
        ...     client = build_s3_client(instance, settings=settings)
    """
    fixture = fixture_factory(settings)
    instance = fixture.acquire()
    try:
        yield instance
    finally:
        fixture.release()
