# tests/test_cli.py

import logging

import pytest
from click.testing import CliRunner

from fallout import __version__
from fallout.cli import cli
from fallout.cache import DirectoryCache


@pytest.fixture(autouse=True)
def isolated(tmp_path, monkeypatch):
    """No user settings, and no root handlers left pointing at closed runner streams."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg-config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "xdg-cache"))
    monkeypatch.delenv("FALLOUT_CONFIG", raising=False)
    monkeypatch.delenv("FALLOUT_COLORS", raising=False)
    monkeypatch.delenv("FALLOUT_LOG_LEVELS", raising=False)
    root = logging.getLogger()
    handlers = list(root.handlers)
    yield
    for h in root.handlers[:]:
        if h not in handlers:
            root.removeHandler(h)


@pytest.fixture
def cache_dir(tmp_path, fixture_logs):
    root = tmp_path / "cache"
    cache = DirectoryCache(root)
    for builder, origin, ts, content in fixture_logs:
        cache.entry(builder, origin, ts).write(content)
    return root


@pytest.fixture
def run(cache_dir):
    runner = CliRunner()

    def _run(*args, input=None):
        return runner.invoke(cli, ["--cache-dir", str(cache_dir), *args], input=input)
    return _run


def log_path(cache_dir, builder, origin, stamp):
    return str(cache_dir / builder / origin / f"{stamp}.log")


class TestGrepCommand:

    def test_without_queries_lists_logs_in_order(self, run, cache_dir, fixture_logs):
        result = run("grep")
        assert result.exit_code == 0, result.output
        lines = result.stdout.splitlines()
        assert len(lines) == len(fixture_logs)
        assert lines == sorted(lines)
        assert lines[0] == log_path(cache_dir, "130amd64", "devel/go", "2024-01-01T10:00:00")

    def test_filters(self, run, cache_dir):
        result = run("grep", "-b", "140", "-c", "lang,devel", "-n", "go")
        assert result.exit_code == 0, result.output
        assert result.stdout.splitlines() == [
            log_path(cache_dir, "140amd64", "devel/go", "2024-02-01T10:00:00"),
            log_path(cache_dir, "140amd64", "devel/go", "2024-02-05T10:00:00"),
            log_path(cache_dir, "140i386", "devel/rust-cargo", "2024-03-02T10:00:00"),
            log_path(cache_dir, "140i386", "lang/go", "2024-03-01T10:00:00"),
        ]

    def test_time_range(self, run):
        result = run("grep", "-s", "2024-02-01", "-e", "2024-03-01")
        assert result.exit_code == 0, result.output
        assert len(result.stdout.splitlines()) == 3

    def test_origins_from_stdin(self, run, cache_dir):
        result = run("grep", input="www/node\nlang/rust\n")
        assert result.exit_code == 0, result.output
        assert result.stdout.splitlines() == [
            log_path(cache_dir, "130amd64", "lang/rust", "2024-01-03T10:00:00"),
            log_path(cache_dir, "140amd64", "www/node", "2024-02-03T10:00:00"),
        ]

    def test_search_with_context(self, run, cache_dir):
        result = run("grep", "-j1", "-F", "-B1", "-o", "devel/go", "-b", "130", "linker")
        assert result.exit_code == 0, result.output
        path = log_path(cache_dir, "130amd64", "devel/go", "2024-01-01T10:00:00")
        assert result.stdout == f"{path}:\n===> Building go\nerror: linker failed\n"

    def test_several_queries_are_separated(self, run, cache_dir):
        result = run("grep", "-o", "devel/go", "-b", "130", "Building", "Error code")
        assert result.exit_code == 0, result.output
        assert "===> Building go\n--------\n*** Error code 1\n" in result.stdout

    def test_or_mode_and_filenames_only(self, run, cache_dir):
        result = run("grep", "-j1", "-l", "-O", "segfault", "gyp ERR")
        assert result.exit_code == 0, result.output
        assert result.stdout.splitlines() == [
            log_path(cache_dir, "140amd64", "devel/go", "2024-02-01T10:00:00"),
            log_path(cache_dir, "140amd64", "www/node", "2024-02-03T10:00:00"),
        ]

    def test_and_mode_by_default(self, run):
        result = run("grep", "-l", "segfault", "gyp ERR")
        assert result.exit_code == 0, result.output
        assert result.stdout == ""

    def test_always_color(self, run):
        result = run("-M", "always", "grep", "-o", "www/node", "node-gyp")
        assert result.exit_code == 0, result.output
        assert "\x1b[" in result.stdout

    def test_bad_query_aborts(self, run):
        result = run("grep", "(unclosed")
        assert result.exit_code == 1
        assert result.stdout == ""

    def test_inverted_time_range_aborts(self, run):
        result = run("grep", "-s", "2024-03-01", "-e", "2024-01-01")
        assert result.exit_code == 1

    def test_bad_date_is_a_usage_error(self, run):
        result = run("grep", "-s", "last tuesday")
        assert result.exit_code == 2


class TestCleanCommand:

    def test_removes_logs_older_than_date(self, run, cache_dir):
        result = run("clean", "-A", "2024-02-01")
        assert result.exit_code == 0, result.output
        removed = [l for l in result.stdout.splitlines() if l.startswith("Removing ")]
        assert len(removed) == 3
        assert len(run("grep").stdout.splitlines()) == 5

    def test_days_limit(self, run):
        result = run("clean", "-D", "0")
        assert result.exit_code == 0, result.output
        assert run("grep").stdout == ""

    def test_default_limit_removes_old_logs(self, run):
        assert run("clean").exit_code == 0
        assert run("grep").stdout == ""

    def test_remove_all(self, run, cache_dir):
        result = run("clean", "-x")
        assert result.exit_code == 0, result.output
        assert result.stdout == f"Removing {cache_dir}\n"
        assert not cache_dir.exists()


class TestStatsCommand:

    def test_stats(self, run):
        result = run("stats")
        assert result.exit_code == 0, result.output
        assert "Logs:               8" in result.stdout
        assert "Most failures:      130amd64 (3 ports)" in result.stdout

    def test_empty(self, tmp_path):
        result = CliRunner().invoke(cli, ["--cache-dir", str(tmp_path / "empty"), "stats"])
        assert result.exit_code == 0, result.output
        assert result.stdout == "No logs in cache.\n"


class TestGlobalOptions:

    def test_version(self):
        result = CliRunner().invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.stdout

    def test_missing_config_file_aborts(self, run, tmp_path):
        result = run("--config", str(tmp_path / "nope.yml"), "stats")
        assert result.exit_code == 1

    def test_settings_file_supplies_cache_dir(self, cache_dir, tmp_path):
        cfg = tmp_path / "settings.yml"
        cfg.write_text(f"cache_dir: {cache_dir}\n")
        result = CliRunner().invoke(cli, ["--config", str(cfg), "stats"])
        assert result.exit_code == 0, result.output
        assert "Logs:               8" in result.stdout

    def test_invalid_palette_is_a_usage_error(self, run):
        assert run("-G", "xyz", "stats").exit_code == 2
