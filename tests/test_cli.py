"""Tests for the lgpm command line interface."""

from __future__ import annotations

import json

import pytest
from click.testing import CliRunner

from conftest import BASE_URL, HOST_VARIANT
from lgpm.__main__ import cli


@pytest.fixture
def run(tmp_path, fetcher, modules_dir):
    """Invoke the CLI against the fake fetcher and temp directories."""
    runner = CliRunner()
    env = {
        "LGPM_BASE_URL": BASE_URL,
        "LGPM_PLATFORM_VARIANT": HOST_VARIANT,
        "LGPM_TEMP_DIR": str(tmp_path / "tmp"),
        "LGPM_UI_PLUGINS_DIR": None,
        "LGPM_RELEASE": None,
        "FORCE_COLOR": None,
    }

    def invoke(*args: str):
        return runner.invoke(
            cli,
            [
                "--config",
                str(tmp_path / "no-config.yaml"),
                "--modules-dir",
                str(modules_dir),
                *args,
            ],
            obj={"fetcher": fetcher},
            env=env,
        )

    return invoke


class TestBrowse:
    """Tests for list, search, info and categories."""

    def test_list_json(self, run, fetcher, publish):
        fetcher.serve_catalog([publish("alpha"), publish("beta", category="storage")])

        result = run("list", "--json")

        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert [p["name"] for p in data] == ["alpha", "beta"]
        assert data[0]["installed"] is False

    def test_list_table(self, run, fetcher, publish):
        fetcher.serve_catalog([publish("alpha")])

        result = run("list")

        assert result.exit_code == 0
        assert "alpha" in result.output

    def test_list_installed_only(self, run, fetcher, publish):
        fetcher.serve_catalog([publish("alpha"), publish("beta")])
        assert run("install", "beta").exit_code == 0

        result = run("list", "--installed", "--json")

        assert [p["name"] for p in json.loads(result.output)] == ["beta"]

    def test_list_category(self, run, fetcher, publish):
        fetcher.serve_catalog([publish("alpha"), publish("beta", category="storage")])

        result = run("list", "--category", "storage", "--json")

        assert [p["name"] for p in json.loads(result.output)] == ["beta"]

    def test_list_empty_catalog(self, run):
        result = run("list")

        assert result.exit_code == 0
        assert "No packages found" in result.output

    def test_search(self, run, fetcher, publish):
        fetcher.serve_catalog([publish("alpha"), publish("beta")])

        result = run("search", "alp", "--json")

        assert [p["name"] for p in json.loads(result.output)] == ["alpha"]

    def test_search_no_match(self, run, fetcher, publish):
        fetcher.serve_catalog([publish("alpha")])

        result = run("search", "zzz")

        assert "No packages found matching 'zzz'" in result.output

    def test_info(self, run, fetcher, publish):
        fetcher.serve_catalog([publish("app", dependencies=("lib",)), publish("lib")])

        result = run("info", "app")

        assert result.exit_code == 0
        assert "Dependencies: lib" in result.output
        assert "Installed: no" in result.output

    def test_info_json(self, run, fetcher, publish):
        fetcher.serve_catalog([publish("app")])

        data = json.loads(run("info", "app", "--json").output)

        assert data["moduleName"] == "app"
        assert data["package"] == "app.lgx"

    def test_info_unknown(self, run, fetcher, publish):
        fetcher.serve_catalog([publish("app")])

        result = run("info", "ghost")

        assert result.exit_code == 1
        assert "not found" in result.output

    def test_categories(self, run, fetcher, publish):
        fetcher.serve_catalog(
            [publish("a", category="network"), publish("b", category="chat")]
        )

        assert json.loads(run("categories", "--json").output) == ["chat", "network"]
        assert "network" in run("categories").output


class TestInstall:
    """Tests for the install command."""

    def test_install_with_dependencies(self, run, fetcher, publish, modules_dir):
        fetcher.serve_catalog([publish("app", dependencies=("lib",)), publish("lib")])

        result = run("install", "app")

        assert result.exit_code == 0, result.output
        assert "Will install 2 package(s): lib, app" in result.output
        assert "2 package(s) installed successfully" in result.output
        assert (modules_dir / "lib" / "lib.so").is_file()
        assert (modules_dir / "app" / "app.so").is_file()

    def test_install_partial_failure(self, run, fetcher, publish, modules_dir):
        fetcher.serve_catalog([publish("alpha"), publish("beta")])
        fetcher.remove("beta.lgx")

        result = run("install", "alpha", "beta")

        assert result.exit_code == 1
        assert "1 installed, 1 failed" in result.output
        assert (modules_dir / "alpha").is_dir()

    def test_install_catalog_unavailable(self, run):
        result = run("install", "alpha")

        assert result.exit_code == 1
        assert "package list" in result.output

    def test_install_requires_names(self, run):
        result = run("install")

        assert result.exit_code != 0
        assert "at least one package name" in result.output

    def test_install_file(self, run, build_lgx, modules_dir):
        path = build_lgx("local_module")

        result = run("install", "--file", str(path))

        assert result.exit_code == 0, result.output
        assert "Installed local_module" in result.output
        assert (modules_dir / "local_module" / "manifest.json").is_file()

    def test_install_file_skip(self, run, build_lgx):
        path = build_lgx("local_module")
        run("install", "--file", str(path))

        result = run("install", "--file", str(path), "--skip-if-not-newer")

        assert result.exit_code == 0
        assert "Skipped local_module" in result.output

    def test_install_file_missing(self, run, tmp_path):
        result = run("install", "--file", str(tmp_path / "nope.lgx"))

        assert result.exit_code == 1
        assert "file not found" in result.output

    def test_install_file_unsupported_platform(self, run, build_lgx):
        path = build_lgx("mac_only", variants=("darwin-arm64",))

        result = run("install", "--file", str(path))

        assert result.exit_code == 1
        assert "variant" in result.output


class TestGlobalOptions:
    """Tests for top-level options."""

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_bad_config_file(self, tmp_path):
        config = tmp_path / "config.yaml"
        config.write_text("- not\n- a mapping\n")

        result = CliRunner().invoke(cli, ["--config", str(config), "categories"])

        assert result.exit_code == 1
        assert "mapping" in result.output
