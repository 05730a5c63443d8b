"""Tests for the branchlore command-line interface"""
import io
import json

import pytest

from branchlore.cli.args import parse_args, parse_connection_string
from branchlore.cli.main import main
from branchlore.config import ENV_FIELDS, ENV_PREFIX


def flat(text):
    """Collapse rich line wrapping so phrases can be matched."""
    return " ".join(text.split())


@pytest.fixture
def cli(temp_dir, monkeypatch):
    """Run the CLI against a repository in the temporary directory."""
    for suffix in ENV_FIELDS:
        monkeypatch.delenv(ENV_PREFIX + suffix, raising=False)
    repo = temp_dir / "cli-repo"
    config_file = temp_dir / "no-config.json"

    def run(*argv):
        return main(["--config", str(config_file), "--repo", str(repo), *argv])

    run.repo = repo
    return run


class TestArgs:
    """Test argument parsing."""

    def test_query_defaults(self):
        args = parse_args(["query", "main", "SELECT 1"])
        assert args.command == "query"
        assert args.output == "table"

    def test_global_flags(self):
        args = parse_args(["--backend", "subprocess", "-v", "status"])
        assert args.backend == "subprocess"
        assert args.verbose is True

    def test_command_required(self):
        with pytest.raises(SystemExit):
            parse_args([])

    def test_invalid_output_format(self):
        with pytest.raises(SystemExit):
            parse_args(["query", "main", "SELECT 1", "-o", "xml"])

    @pytest.mark.parametrize(
        "value,expected",
        [("mydb", ("mydb", None)), ("mydb@feature", ("mydb", "feature")), ("mydb@team/x", ("mydb", "team/x"))],
    )
    def test_parse_connection_string(self, value, expected):
        assert parse_connection_string(value) == expected

    @pytest.mark.parametrize("value", ["", "@feature", "mydb@"])
    def test_invalid_connection_string(self, value):
        with pytest.raises(ValueError):
            parse_connection_string(value)


class TestCommands:
    """Test commands end to end against a temporary repository."""

    def test_init(self, cli, capsys):
        assert cli("init") == 0
        assert (cli.repo / ".git").is_dir()
        assert "Repository ready" in flat(capsys.readouterr().out)

    def test_init_with_path(self, cli, temp_dir):
        target = temp_dir / "explicit"
        assert cli("init", str(target)) == 0
        assert (target / ".git").is_dir()

    def test_commands_need_a_repository(self, cli, capsys):
        assert cli("branch", "list") == 1
        assert "branchlore init" in flat(capsys.readouterr().out)
        assert not cli.repo.exists()

    def test_branch_lifecycle(self, cli, capsys):
        cli("init")
        assert cli("branch", "create", "feature") == 0
        assert cli("branch", "list") == 0
        out = flat(capsys.readouterr().out)
        assert "Created branch feature" in out
        assert "feature" in out

        assert cli("branch", "show", "feature") == 0
        assert "not materialized" in flat(capsys.readouterr().out)

        assert cli("branch", "delete", "feature") == 0
        assert cli("branch", "show", "feature") == 1
        assert "not found" in flat(capsys.readouterr().out)

    def test_delete_main_fails(self, cli, capsys):
        cli("init")
        assert cli("branch", "delete", "main") == 1
        assert "protected" in flat(capsys.readouterr().out)

    def test_query_json(self, cli, capsys):
        cli("init")
        assert cli("query", "main", "CREATE TABLE t (v TEXT)") == 0
        assert cli("query", "main", "INSERT INTO t VALUES ('x')") == 0
        capsys.readouterr()

        assert cli("query", "main", "SELECT v FROM t", "-o", "json") == 0

        data = json.loads(capsys.readouterr().out)
        assert data == {"columns": ["v"], "rows": [["x"]], "count": 1}

    def test_bad_query(self, cli, capsys):
        cli("init")
        assert cli("query", "main", "SELEC nonsense") == 1
        assert "Error" in flat(capsys.readouterr().out)

    def test_commit_and_merge(self, cli, capsys):
        cli("init")
        cli("query", "main", "CREATE TABLE t (v TEXT)")
        assert cli("commit", "main", "-m", "Schema") == 0
        cli("branch", "create", "feature")
        cli("query", "feature", "INSERT INTO t VALUES ('from feature')")
        assert cli("commit", "feature") == 0
        capsys.readouterr()

        assert cli("merge", "feature", "main") == 0
        assert "Merged feature into main" in flat(capsys.readouterr().out)

        cli("query", "main", "SELECT v FROM t", "-o", "json")
        assert json.loads(capsys.readouterr().out)["rows"] == [["from feature"]]

    def test_commit_without_changes(self, cli, capsys):
        cli("init")
        assert cli("commit", "main") == 0
        assert "Nothing to commit" in flat(capsys.readouterr().out)

    def test_conflicting_merge_exits_nonzero(self, cli, capsys):
        cli("init")
        cli("query", "main", "CREATE TABLE t (v TEXT)")
        cli("commit", "main")
        cli("branch", "create", "feature")
        cli("query", "feature", "INSERT INTO t VALUES ('f')")
        cli("commit", "feature")
        cli("query", "main", "INSERT INTO t VALUES ('m')")
        cli("commit", "main")
        capsys.readouterr()

        assert cli("merge", "feature", "main") == 1
        assert "conflicts" in flat(capsys.readouterr().out)

    def test_status(self, cli, capsys):
        cli("init")
        cli("query", "main", "SELECT 1")
        capsys.readouterr()

        assert cli("status") == 0

        out = flat(capsys.readouterr().out)
        assert "Branches: 1" in out
        assert "Databases: 1" in out

    def test_schema(self, cli, capsys):
        cli("init")
        cli("query", "main", "CREATE TABLE things (id INTEGER)")
        capsys.readouterr()

        assert cli("schema", "main") == 0
        assert "things" in flat(capsys.readouterr().out)


class TestConnect:
    """Test the interactive SQL session."""

    def test_session(self, cli, capsys, monkeypatch):
        cli("init")
        capsys.readouterr()
        monkeypatch.setattr(
            "sys.stdin",
            io.StringIO("CREATE TABLE t (v TEXT)\nINSERT INTO t VALUES ('hi')\n\nSELECT v FROM t\nbad sql\nquit\n"),
        )

        assert cli("connect", "cli-repo") == 0

        out = flat(capsys.readouterr().out)
        assert "Connected to cli-repo@main" in out
        assert "hi" in out
        assert "Error" in out

    def test_session_ends_on_eof(self, cli, monkeypatch):
        cli("init")
        monkeypatch.setattr("sys.stdin", io.StringIO(""))
        assert cli("connect", "cli-repo@main") == 0

    def test_unknown_database(self, cli, capsys):
        cli("init")
        assert cli("connect", "other@main") == 1
        assert "unknown database" in flat(capsys.readouterr().out)

    def test_unknown_branch(self, cli, capsys, monkeypatch):
        cli("init")
        monkeypatch.setattr("sys.stdin", io.StringIO(""))
        assert cli("connect", "cli-repo@nope") == 1
