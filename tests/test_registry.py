"""
Tests for the environment registry — identity keys, registration, merge.
"""

import random
from pathlib import Path

from sbenv.core.models.environment import BinaryInfo, LocalConfig, Registry
from sbenv.core.services.registry import (
    canonical_path,
    find_record,
    identity_key,
    merge_binary,
    port_for_path,
    register,
    unregister,
)


class TestIdentity:
    def test_key_format(self, tmp_path: Path):
        key = identity_key(tmp_path, "alice@example.com")
        assert key == f"alice@example.com@{tmp_path.resolve()}"

    def test_relative_segments_and_symlinks(self, tmp_path: Path):
        real = tmp_path / "real"
        real.mkdir()
        link = tmp_path / "link"
        link.symlink_to(real)

        direct = identity_key(real, "a@x.org")
        assert identity_key(link, "a@x.org") == direct
        assert identity_key(tmp_path / "real" / ".." / "real", "a@x.org") == direct

    def test_missing_path_falls_back_to_literal(self, tmp_path: Path):
        missing = tmp_path / "nope" / ".." / "nope"
        assert canonical_path(missing) == str(missing)
        assert identity_key(missing, "a@x.org") == identity_key(missing, "a@x.org")

    def test_email_distinguishes(self, tmp_path: Path):
        assert identity_key(tmp_path, "a@x.org") != identity_key(tmp_path, "b@x.org")


class TestMergeBinary:
    def test_no_incoming_keeps_existing(self):
        existing = BinaryInfo(path="/opt/syftbox", version="0.5.0")
        assert merge_binary(existing, None) is existing
        assert merge_binary(existing, BinaryInfo()) is existing

    def test_incoming_path_replaces(self):
        merged = merge_binary(
            BinaryInfo(path="/old", version="0.5.0"),
            BinaryInfo(path="/new", version="0.6.0"),
        )
        assert merged.path == "/new"

    def test_version_only_never_replaces_path(self):
        existing = BinaryInfo(path="/opt/syftbox", version="0.5.0")
        merged = merge_binary(existing, BinaryInfo(version="0.9.0"))
        assert merged.path == "/opt/syftbox"

    def test_version_only_onto_version_only(self):
        merged = merge_binary(BinaryInfo(version="0.5.0"), BinaryInfo(version="0.6.0"))
        assert merged.version == "0.6.0"


class TestRegister:
    def _config(self, **kw) -> LocalConfig:
        return LocalConfig(email=kw.pop("email", "alice@example.com"), **kw)

    def test_new_record_gets_port(self, tmp_path: Path):
        registry = Registry()
        key, record = register(registry, tmp_path, self._config(), rng=random.Random(1))
        assert key in registry.environments
        assert 7938 <= record.port <= 7999
        assert record.path == str(tmp_path.resolve())

    def test_explicit_port(self, tmp_path: Path):
        _, record = register(Registry(), tmp_path, self._config(), port=7950)
        assert record.port == 7950

    def test_reregister_keeps_port_and_binary(self, tmp_path: Path):
        registry = Registry()
        _, first = register(
            registry, tmp_path, self._config(),
            binary=BinaryInfo(path="/opt/sb/syftbox", version="0.5.0"),
        )
        port = first.port

        key, second = register(
            registry, tmp_path, self._config(server_url="https://dev.syftbox.net", dev_mode=True),
            name="dev",
        )
        assert len(registry) == 1
        assert second.port == port
        assert second.binary.path == "/opt/sb/syftbox"
        assert second.server_url == "https://dev.syftbox.net"
        assert second.dev_mode is True
        assert second.name == "dev"

    def test_version_only_update_keeps_path(self, tmp_path: Path):
        registry = Registry()
        register(registry, tmp_path, self._config(), binary=BinaryInfo(path="/opt/syftbox"))
        _, record = register(registry, tmp_path, self._config(), binary=BinaryInfo(version="0.9.0"))
        assert record.binary.path == "/opt/syftbox"

    def test_distinct_paths_get_distinct_ports(self, tmp_path: Path):
        registry = Registry()
        ports = set()
        for i in range(10):
            root = tmp_path / f"env{i}"
            root.mkdir()
            _, record = register(registry, root, self._config(), rng=random.Random(i))
            ports.add(record.port)
        assert len(ports) == 10


class TestLookup:
    def test_find_and_port_for_path(self, tmp_path: Path):
        registry = Registry()
        key, record = register(registry, tmp_path, LocalConfig(email="a@x.org"), port=7960)
        assert find_record(registry, tmp_path) == (key, record)
        assert port_for_path(registry, tmp_path) == 7960
        assert port_for_path(registry, tmp_path / "other") == 0

    def test_unregister_removes_all_emails(self, tmp_path: Path):
        registry = Registry()
        register(registry, tmp_path, LocalConfig(email="a@x.org"))
        register(registry, tmp_path, LocalConfig(email="b@x.org"))
        other = tmp_path / "other"
        other.mkdir()
        register(registry, other, LocalConfig(email="a@x.org"))

        removed = unregister(registry, tmp_path)
        assert len(removed) == 2
        assert len(registry) == 1
        assert unregister(registry, tmp_path) == []
