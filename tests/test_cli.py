"""
Tests for the CLI — sync, check and stores.

Uses Click's CliRunner with the cluster API replaced by the in-memory fake.
"""

from __future__ import annotations

import json
import os
from unittest import mock

import pytest
from click.testing import CliRunner

from certsync.main import cli

OP = "cert-manager-sync.lestak.sh"


# -- Fixtures -----------------------------------------------------------------


@pytest.fixture
def cluster(core_api, tls_data):
    """Fake cluster with a cloudflare-annotated certificate secret."""
    core_api.add_secret("default", "cf-creds", {"api_key": b"key123", "email": b"ops@example.com"})
    core_api.add_secret(
        "default",
        "example-tls",
        tls_data,
        annotations={
            f"{OP}/sync-enabled": "true",
            f"{OP}/cloudflare-secret-name": "cf-creds",
            f"{OP}/cloudflare-zone-id": "zone123",
        },
    )
    return core_api


@pytest.fixture
def run(cluster):
    """Invoke the CLI against the fake cluster with a clean environment."""
    runner = CliRunner()

    def _run(*args):
        with mock.patch.dict(os.environ, {}, clear=True), \
                mock.patch("certsync.main.create_core_api", return_value=cluster):
            return runner.invoke(cli, ["--log-level", "CRITICAL", *args], obj={})

    return _run


# -- sync ---------------------------------------------------------------------


class TestSyncCommand:
    """Tests for `certsync sync`."""

    def test_mock_sync_json(self, run, cluster):
        """Test mock sync reports receipts and writes nothing back."""
        result = run("sync", "default/example-tls", "--mock", "--json")

        assert result.exit_code == 0, result.output
        receipts = json.loads(result.stdout)
        assert len(receipts) == 1
        assert receipts[0]["store"] == "cloudflare"
        assert receipts[0]["status"] == "ok"
        assert receipts[0]["store_id"]
        assert cluster.patches == []

    def test_mock_sync_text(self, run):
        """Test human output marks mock mode."""
        result = run("sync", "default/example-tls", "--mock")

        assert result.exit_code == 0, result.output
        assert "cloudflare" in result.output
        assert "Mock mode" in result.output

    def test_explicit_store_failure_exits_nonzero(self, run):
        """Test a failing store sets a non-zero exit code."""
        result = run("sync", "default/example-tls", "--mock", "--store", "digitalocean")

        assert result.exit_code == 1
        assert "resolve_credentials" in result.output

    def test_missing_secret(self, run):
        """Test a missing secret fails at load_secret."""
        result = run("sync", "default/nope", "--mock", "--json")

        assert result.exit_code == 1
        receipts = json.loads(result.stdout)
        assert receipts[0]["step"] == "load_secret"

    def test_bad_reference(self, run):
        """Test an empty name is a usage error."""
        result = run("sync", "default/", "--mock")

        assert result.exit_code == 2


# -- check / stores -----------------------------------------------------------


class TestCheckCommand:
    """Tests for `certsync check`."""

    def test_configured(self, run):
        """Test a configured store is shown with its scope."""
        result = run("check", "default/example-tls")

        assert result.exit_code == 0, result.output
        assert "sync-enabled: yes" in result.output
        assert "zone123" in result.output
        assert "(first sync)" in result.output

    def test_missing_annotation(self, run, cluster, tls_data):
        """Test missing annotations are listed."""
        cluster.add_secret(
            "web", "site-tls", tls_data,
            annotations={f"{OP}/cloudflare-secret-name": "cf-creds"},
        )

        result = run("check", "web/site-tls")

        assert "missing" in result.output
        assert f"{OP}/cloudflare-zone-id" in result.output

    def test_missing_secret(self, run):
        """Test a missing secret exits non-zero."""
        result = run("check", "default/nope")

        assert result.exit_code == 1


class TestStoresCommand:
    """Tests for `certsync stores`."""

    def test_lists_stores(self, run):
        """Test every store and its requirements are listed."""
        result = run("stores")

        assert result.exit_code == 0
        assert "cloudflare" in result.output
        assert "digitalocean" in result.output
        assert "cloudflare-zone-id" in result.output
