"""Keyring generation via ceph-authtool.

The tool produces the secret bytes; this module decides where the keyring
lands and pulls the key back out of it.
"""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import Protocol

from shared.observability import get_logger

from ..errors import KeyGenerationError

logger = get_logger(__name__)

KEYGEN_TIMEOUT_SECONDS = 30

# Capabilities granted to each generated entity
MON_CAPS: list[tuple[str, str]] = [("mon", "allow *")]
ADMIN_CAPS: list[tuple[str, str]] = [
    ("mon", "allow *"),
    ("osd", "allow *"),
    ("mgr", "allow *"),
    ("mds", "allow"),
]


class KeyGenerator(Protocol):
    """Produces a secret key for a named entity with the given caps."""

    async def generate(self, directory: str, name: str, caps: list[tuple[str, str]]) -> str:
        ...


def extract_key(contents: str) -> str:
    """Return the key from keyring text.

    The key is the third whitespace-separated field across all lines that
    mention ``key``.

    Raises:
        KeyGenerationError: no key could be found
    """
    matching = [line for line in contents.splitlines() if "key" in line]
    fields = " ".join(matching).split()
    if len(fields) >= 3 and fields[2]:
        return fields[2]
    raise KeyGenerationError("failed to parse secret")


def keyring_path(directory: str, name: str) -> str:
    """Keyring file for an entity; ``mon.`` maps to ``mon.keyring``."""
    return os.path.join(directory, f"{name}.keyring".replace("..", "."))


class CephAuthtoolKeyGenerator:
    """Runs ``ceph-authtool --create-keyring`` and reads the key back."""

    def __init__(self, tool: str = "ceph-authtool", timeout: float = KEYGEN_TIMEOUT_SECONDS):
        self.tool = tool
        self.timeout = timeout

    def _build_args(self, path: str, name: str, caps: list[tuple[str, str]]) -> list[str]:
        args = ["--create-keyring", path, "--gen-key", "-n", name]
        for daemon, cap in caps:
            args.extend(["--cap", daemon, cap])
        return args

    async def generate(self, directory: str, name: str, caps: list[tuple[str, str]]) -> str:
        Path(directory).mkdir(mode=0o700, parents=True, exist_ok=True)
        path = keyring_path(directory, name)
        args = self._build_args(path, name, caps)

        logger.debug("Generating keyring", entity=name, path=path)
        try:
            proc = await asyncio.create_subprocess_exec(
                self.tool,
                *args,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            _, stderr = await asyncio.wait_for(proc.communicate(), timeout=self.timeout)
        except (OSError, asyncio.TimeoutError) as e:
            raise KeyGenerationError(f"failed to gen secret for {name}: {e!s}") from e

        if proc.returncode != 0:
            raise KeyGenerationError(
                f"failed to gen secret for {name}: {stderr.decode().strip()}"
            )

        try:
            contents = Path(path).read_text()
        except OSError as e:
            raise KeyGenerationError(f"failed to read secret file {path}") from e
        return extract_key(contents)
