"""Ceph config synthesis.

Builds the default ``global`` section from the identity and members, merges
the operator-supplied override document on top, and renders the result.
The admin secret is written to a separate keyring file; the config file
only names that file.
"""

from __future__ import annotations

import configparser
import contextlib
import io
import logging
import os
import tempfile
from pathlib import Path

from shared.config import LogLevel
from shared.models import ClusterIdentity, ConfigDocument, NetworkInfo
from shared.observability import get_logger

from ..errors import ConfigParseError, NotFoundError, RenderError
from .identity_store import ADMIN_USERNAME
from .kube_store import KubeStore
from .membership import MembershipRegistry

logger = get_logger(__name__)

CONFIG_OVERRIDE_NAME = "rook-config-override"
CONFIG_OVERRIDE_KEY = "config"

GLOBAL_SECTION = "global"
ADMIN_KEYRING_FILE = "client.admin.keyring"

DEBUG_LOG_KEYS = (
    "debug default",
    "debug rados",
    "debug mon",
    "debug osd",
    "debug bluestore",
    "debug filestore",
    "debug journal",
    "debug leveldb",
)

# Keys that carry key material and may only appear in keyrings
SECRET_KEYS = frozenset({"key", "secret"})

ADMIN_KEYRING_TEMPLATE = """\
[client.admin]
\tkey = {secret}
\tcaps mds = "allow *"
\tcaps mon = "allow *"
\tcaps osd = "allow *"
\tcaps mgr = "allow *"
"""

MON_KEYRING_TEMPLATE = """\
[mon.]
\tkey = {secret}
\tcaps mon = "allow *"

{admin}"""

# Verbosity at the two fixed points of the mapping
_INFO_VERBOSITY = 0
_DEBUG_VERBOSITY = 10


def log_level_to_verbosity(level: LogLevel | str | int) -> int:
    """Map an operator log level onto Ceph debug verbosity.

    INFO maps to 0 and DEBUG to 10; numeric levels in between are
    interpolated linearly and anything outside is clamped.
    """
    if isinstance(level, int):
        numeric = level
    else:
        name = level.value if hasattr(level, "value") else str(level).upper()
        numeric = logging.getLevelName(name)
        if not isinstance(numeric, int):
            raise ValueError(f"unknown log level {level!r}")

    span = logging.INFO - logging.DEBUG
    fraction = (logging.INFO - numeric) / span
    verbosity = _INFO_VERBOSITY + fraction * (_DEBUG_VERBOSITY - _INFO_VERBOSITY)
    return int(round(min(max(verbosity, _INFO_VERBOSITY), _DEBUG_VERBOSITY)))


# Never matches a real header, so [DEFAULT] is an ordinary section
_NO_DEFAULT_SECTION = "\x00"


def _new_parser() -> configparser.ConfigParser:
    parser = configparser.ConfigParser(
        interpolation=None,
        strict=False,
        default_section=_NO_DEFAULT_SECTION,
    )
    parser.optionxform = str  # keep key case
    return parser


def parse_config_text(text: str, cluster_name: str = "") -> ConfigDocument:
    """Parse INI text into a ConfigDocument.

    Leading indentation is ignored, so multi-line values are not supported.

    Raises:
        ConfigParseError: the text is not valid INI
    """
    normalized = "\n".join(line.strip() for line in text.splitlines())
    parser = _new_parser()
    try:
        parser.read_string(normalized)
    except configparser.Error as e:
        raise ConfigParseError(f"invalid config document: {e}") from e

    document = ConfigDocument(cluster_name=cluster_name)
    for section in parser.sections():
        document.sections[section] = {k: v or "" for k, v in parser.items(section)}
    return document


def render_config_text(document: ConfigDocument) -> str:
    """Serialize a document to INI text, preserving section and key order."""
    parser = _new_parser()
    parser.read_dict(document.sections)
    buf = io.StringIO()
    parser.write(buf)
    return buf.getvalue()


def merge_documents(base: ConfigDocument, override: ConfigDocument | None) -> ConfigDocument:
    """Merge ``override`` onto ``base`` per (section, key).

    Override values win, base-only keys survive and override-only sections
    are appended. Neither input is modified.
    """
    merged = ConfigDocument(
        cluster_name=base.cluster_name,
        sections={name: dict(values) for name, values in base.sections.items()},
    )
    if override is None:
        return merged
    for name, values in override.sections.items():
        merged.section(name).update(values)
    return merged


def admin_keyring(identity: ClusterIdentity) -> str:
    return ADMIN_KEYRING_TEMPLATE.format(secret=identity.admin_secret)


def mon_shared_keyring(identity: ClusterIdentity) -> str:
    """Keyring shared by all mons: the mon. key followed by the admin key."""
    return MON_KEYRING_TEMPLATE.format(secret=identity.mon_secret, admin=admin_keyring(identity))


def _assert_no_secrets(document: ConfigDocument, identity: ClusterIdentity | None = None) -> None:
    secrets = {s for s in (identity.mon_secret, identity.admin_secret) if s} if identity else set()
    for section, values in document.sections.items():
        for key, value in values.items():
            if key.strip().lower() in SECRET_KEYS or value in secrets:
                raise RenderError(
                    f"refusing to write secret material to config ([{section}] {key})"
                )


def _write_file(path: Path, content: str, mode: int) -> None:
    """Write via a temp file in the same directory and rename into place."""
    fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.")
    try:
        with os.fdopen(fd, "w") as fh:
            fh.write(content)
        os.chmod(tmp, mode)
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp)
        raise


class ConfigSynthesizer:
    """Builds, merges and renders the Ceph config for a cluster."""

    def __init__(self, store: KubeStore | None = None, config_dir: str = "/var/lib/rook"):
        self.store = store
        self.config_dir = config_dir

    def build_default(
        self,
        identity: ClusterIdentity,
        network: NetworkInfo | None = None,
        log_level: LogLevel | str | int = LogLevel.INFO,
    ) -> ConfigDocument:
        """Default config for the identity and its attached monitors."""
        registry = MembershipRegistry(dict(identity.monitors))
        network = network or NetworkInfo()
        verbosity = str(log_level_to_verbosity(log_level))

        section: dict[str, str] = {
            "fsid": identity.fsid,
            "run dir": os.path.join(self.config_dir, identity.name),
            "mon initial members": registry.quorum_member_list(),
            "mon host": registry.quorum_address_directory(),
            "log file": "/dev/stderr",
            "mon cluster log file": "/dev/stderr",
        }
        for key, value in (
            ("public addr", network.public_addr),
            ("public network", network.public_network),
            ("cluster addr", network.cluster_addr),
            ("cluster network", network.cluster_network),
        ):
            if value:
                section[key] = value
        section.update(
            {
                "mon keyvaluedb": "rocksdb",
                "mon_allow_pool_delete": "true",
                "mon_max_pg_per_osd": "1000",
            }
        )
        section.update({key: verbosity for key in DEBUG_LOG_KEYS})
        section.update(
            {
                "osd pg bits": "11",
                "osd pgp bits": "11",
                "osd pool default size": "1",
                "osd pool default min size": "1",
                "osd pool default pg num": "100",
                "osd pool default pgp num": "100",
                "rbd_default_features": "3",
                "fatal signal handlers": "false",
            }
        )
        return ConfigDocument(cluster_name=identity.name, sections={GLOBAL_SECTION: section})

    def render(
        self,
        document: ConfigDocument,
        override: ConfigDocument | None = None,
        destination_dir: str = ".",
    ) -> str:
        """Merge the override and write ``<destination_dir>/<cluster>.config``.

        The directory is created owner-only if missing.

        Returns:
            Path of the written config file

        Raises:
            RenderError: the merged document holds key material, or the
                file could not be written
        """
        if not document.cluster_name:
            raise RenderError("config document has no cluster name")

        merged = merge_documents(document, override)
        _assert_no_secrets(merged)

        directory = Path(destination_dir)
        path = directory / f"{document.cluster_name}.config"
        try:
            directory.mkdir(mode=0o700, parents=True, exist_ok=True)
            _write_file(path, render_config_text(merged), 0o644)
        except OSError as e:
            raise RenderError(f"failed to write config file {path}: {e}") from e

        logger.info("Wrote config file", path=str(path), sections=list(merged.sections))
        return str(path)

    def write_admin_keyring(self, identity: ClusterIdentity, destination_dir: str) -> str:
        """Write the admin keyring next to, but separate from, the config."""
        directory = Path(destination_dir)
        path = directory / ADMIN_KEYRING_FILE
        try:
            directory.mkdir(mode=0o700, parents=True, exist_ok=True)
            _write_file(path, admin_keyring(identity), 0o600)
        except OSError as e:
            raise RenderError(f"failed to write keyring {path}: {e}") from e
        return str(path)

    async def load_override(self, namespace: str) -> ConfigDocument | None:
        """Fetch the operator override document, if one exists.

        Raises:
            ConfigParseError: the override is not valid INI
        """
        if self.store is None:
            return None
        try:
            data = await self.store.get_config_map(namespace, CONFIG_OVERRIDE_NAME)
        except NotFoundError:
            return None
        text = data.get(CONFIG_OVERRIDE_KEY, "")
        if not text.strip():
            return None
        return parse_config_text(text)

    async def generate_config_file(
        self,
        identity: ClusterIdentity,
        namespace: str,
        destination_dir: str,
        network: NetworkInfo | None = None,
        log_level: LogLevel | str | int = LogLevel.INFO,
        user: str = ADMIN_USERNAME,
    ) -> str:
        """Write the admin keyring and the merged config for ``user``.

        Nothing is written unless the override parses and the merged
        document is free of key material.
        """
        override = await self.load_override(namespace)

        document = self.build_default(identity, network, log_level)
        document.section(user)["keyring"] = str(Path(destination_dir) / ADMIN_KEYRING_FILE)
        _assert_no_secrets(merge_documents(document, override), identity)

        self.write_admin_keyring(identity, destination_dir)
        return self.render(document, override, destination_dir)
