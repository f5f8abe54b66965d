"""
Container runtime collectors: Docker, Podman and Ollama models.
"""

import logging
import os
import re
from typing import Iterator, List, Tuple

import orjson
import requests

from inventory_py import platform
from inventory_py.collectors import BaseCollector, CollectorError, format_size, run
from inventory_py.config import CollectorOptions
from inventory_py.record import UNKNOWN, RawEntry

logger = logging.getLogger("inventory.collectors.containers")

IMAGE_TYPE = "Container Image"
CONTAINER_TYPE = "Container"
OLLAMA_TYPE = "Ollama Model"
DEFAULT_OLLAMA_HOST = "http://127.0.0.1:11434"

_IMAGE_FORMAT = "{{.Repository}}\t{{.Tag}}\t{{.ID}}\t{{.Size}}"
_CONTAINER_FORMAT = "{{.Names}}\t{{.Image}}\t{{.Status}}\t{{.Size}}"


def _split_tabs(line: str, width: int) -> List[str]:
    fields = line.split("\t")
    return fields + [""] * (width - len(fields))


class ContainerRuntimeCollector(BaseCollector):
    """Images and containers from a Docker-compatible CLI."""

    runtime = ""
    record_types = (IMAGE_TYPE, CONTAINER_TYPE)

    def collect(self, options: CollectorOptions) -> Iterator[RawEntry]:
        images = run([self.runtime, "images", "--format", _IMAGE_FORMAT], options)
        containers = run(
            [self.runtime, "ps", "-a", "--size", "--format", _CONTAINER_FORMAT], options
        )

        for line in images.splitlines():
            repo, tag, image_id, size = _split_tabs(line, 4)[:4]
            if not repo:
                continue
            name = repo
            if tag and tag != "<none>":
                name += f":{tag}"
            yield RawEntry(
                name=name,
                type=IMAGE_TYPE,
                source=f"{self.runtime}/image",
                details=f"Image ID: {image_id}",
                version=tag or UNKNOWN,
                size=size or UNKNOWN,
            )

        for line in containers.splitlines():
            cname, image, status, size = _split_tabs(line, 4)[:4]
            if not cname:
                continue
            yield RawEntry(
                name=cname,
                type=CONTAINER_TYPE,
                source=f"{self.runtime}/container",
                details=f"Image: {image}, Status: {status}",
                size=size or UNKNOWN,
            )


class DockerCollector(ContainerRuntimeCollector):
    source_id = "docker"
    label = "Docker"
    runtime = "docker"
    commands = ("docker",)


class PodmanCollector(ContainerRuntimeCollector):
    source_id = "podman"
    label = "Podman"
    runtime = "podman"
    commands = ("podman",)


def parse_ollama_list(output: str) -> List[Tuple[str, str, str]]:
    """Parse ``ollama list`` into (name, size, digest) tuples."""
    models = []
    for line in output.splitlines()[1:]:
        # NAME  ID  SIZE  MODIFIED, separated by runs of spaces
        columns = re.split(r"\s{2,}|\t", line.strip())
        if not columns or not columns[0]:
            continue
        name = columns[0]
        digest = columns[1] if len(columns) > 1 else ""
        size = columns[2] if len(columns) > 2 else UNKNOWN
        models.append((name, size, digest))
    return models


def parse_ollama_tags(payload: bytes) -> List[Tuple[str, str, str]]:
    """Parse an ``/api/tags`` response into (name, size, digest) tuples."""
    try:
        data = orjson.loads(payload)
    except orjson.JSONDecodeError as e:
        raise CollectorError(f"Malformed Ollama API response: {e}") from e

    if isinstance(data, dict):
        items = data.get("models") or []
    elif isinstance(data, list):
        items = data
    else:
        items = []

    models = []
    for item in items:
        if not isinstance(item, dict) or not item.get("name"):
            continue
        size = item.get("size") or item.get("bytes")
        models.append(
            (
                item["name"],
                format_size(size) if isinstance(size, int) else str(size or UNKNOWN),
                item.get("digest") or item.get("id") or "",
            )
        )
    return models


def ollama_host() -> str:
    host = os.environ.get("OLLAMA_HOST", "").strip() or DEFAULT_OLLAMA_HOST
    if "://" not in host:
        host = f"http://{host}"
    return host.rstrip("/")


class OllamaCollector(BaseCollector):
    """Local LLM models served by Ollama, natively or inside Docker."""

    source_id = "ollama"
    label = "LLMs"
    aliases = ("llms",)
    commands = ("ollama", "docker")
    record_types = (OLLAMA_TYPE,)

    def _from_cli(self, options: CollectorOptions) -> List[Tuple[str, str, str]]:
        return parse_ollama_list(run(["ollama", "list"], options))

    def _from_api(self, options: CollectorOptions) -> List[Tuple[str, str, str]]:
        url = f"{ollama_host()}/api/tags"
        timeout = options.time_left()
        if timeout <= 0:
            raise CollectorError("Ollama API not queried: source deadline passed")
        logger.debug(f"Querying Ollama API at {url}")
        try:
            response = requests.get(url, timeout=timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise CollectorError(f"Ollama API unreachable at {url}: {e}") from e
        return parse_ollama_tags(response.content)

    def _docker_containers(self, options: CollectorOptions) -> List[Tuple[str, str]]:
        output = run(
            ["docker", "ps", "--format", "{{.ID}}\t{{.Image}}\t{{.Names}}"], options
        )
        found = []
        for line in output.splitlines():
            cid, image, name = _split_tabs(line, 3)[:3]
            if cid and ("ollama" in image.lower() or "ollama" in name.lower()):
                found.append((cid, name or cid))
        return found

    def collect(self, options: CollectorOptions) -> Iterator[RawEntry]:
        batches: List[Tuple[str, List[Tuple[str, str, str]]]] = []
        errors: List[str] = []

        if platform.command_exists("ollama"):
            cli_error = None
            try:
                models = self._from_cli(options)
            except CollectorError as e:
                # Usually "could not connect to ollama app"; the API may still answer.
                logger.debug(f"ollama list failed, trying the API: {e}")
                cli_error = e
                models = []
            if models:
                batches.append(("ollama", models))
            else:
                try:
                    batches.append(("ollama", self._from_api(options)))
                except CollectorError as e:
                    errors.extend(str(err) for err in (cli_error, e) if err)

        if "docker" in options.enabled_sources and platform.command_exists("docker"):
            try:
                containers = self._docker_containers(options)
            except CollectorError as e:
                errors.append(str(e))
                containers = []
            for cid, cname in containers:
                try:
                    output = run(["docker", "exec", cid, "ollama", "list"], options)
                except CollectorError as e:
                    errors.append(f"{cname}: {e}")
                    continue
                batches.append((f"docker/{cname}", parse_ollama_list(output)))

        if errors and not batches:
            raise CollectorError("; ".join(errors))
        for message in errors:
            logger.warning(f"Ollama: {message}")

        for source, models in batches:
            for name, size, digest in models:
                yield RawEntry(
                    name=name,
                    type=OLLAMA_TYPE,
                    source=source,
                    details=f"Digest: {digest or 'unknown'}",
                    size=size,
                )
