import io

import pytest

from handle_index import Mapping
from handle_index.cli import main
from handle_index.config import PATH_ENV


@pytest.fixture
def cli_db(tmp_path, monkeypatch):
    monkeypatch.delenv(PATH_ENV, raising=False)
    path = tmp_path / "cli-db"
    with Mapping(path, expected_keys=100) as db:
        db.insert_pair(123, "foo")
        db.insert_pair(123, "bar")
        db.insert_pair(456, "Foo")
    return str(path)


def test_query_user_id(cli_db, capsys):
    assert main(["-p", cli_db, "query-user-id", "123"]) == 0
    assert capsys.readouterr().out == "foo\nbar\n"


def test_query_screen_name(cli_db, capsys):
    assert main(["--path", cli_db, "query-screen-name", "FOO"]) == 0
    assert capsys.readouterr().out == "123\n456\n"


def test_stats(cli_db, capsys):
    assert main(["-p", cli_db, "stats"]) == 0
    out = capsys.readouterr().out.splitlines()
    assert out[0].startswith("Estimated total key count: ")
    assert out[1:] == ["User ID keys: 2", "Screen name keys: 2"]


def test_import_from_stdin(cli_db, capsys, monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO("789,baz\n123,Baz\n"))
    assert main(["-v", "-p", cli_db, "import"]) == 0
    assert main(["-p", cli_db, "query-screen-name", "baz"]) == 0
    assert capsys.readouterr().out == "789\n123\n"


def test_import_error_exit_code(cli_db, capsys, monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO("not a line\n"))
    assert main(["-p", cli_db, "import"]) == 1
    assert "line 1" in capsys.readouterr().err


def test_compact(cli_db, capsys):
    assert main(["-p", cli_db, "compact"]) == 0
    assert main(["-p", cli_db, "query-user-id", "123"]) == 0
    assert capsys.readouterr().out == "foo\nbar\n"


def test_path_from_env(cli_db, capsys, monkeypatch):
    monkeypatch.setenv(PATH_ENV, cli_db)
    assert main(["query-user-id", "456"]) == 0
    assert capsys.readouterr().out == "Foo\n"


def test_config_file(cli_db, tmp_path, capsys):
    config_file = tmp_path / "ts-db.yaml"
    config_file.write_text(f"path: {cli_db}\n", encoding="utf-8")
    assert main(["-c", str(config_file), "query-user-id", "456"]) == 0
    assert capsys.readouterr().out == "Foo\n"


def test_out_of_range_id_exit_code(cli_db, capsys):
    assert main(["-p", cli_db, "query-user-id", str(2**64)]) == 1
    assert "out of u64 range" in capsys.readouterr().err
