"""
Test the command-line interface end to end against a temporary data directory.
"""

# Path setup handled by conftest.py
import json

from typer.testing import CliRunner

from weekplan.cli.main import app
import pytest


runner = CliRunner()


@pytest.fixture(autouse=True)
def weekplan_home(monkeypatch, tmp_path):
    """Point every command at a temporary data directory."""
    monkeypatch.setenv("WEEKPLAN_HOME", str(tmp_path))
    yield tmp_path


def _invoke(*args, **kwargs):
    return runner.invoke(app, list(args), **kwargs)


def _ls_json(*args):
    result = _invoke("ls", *args, "--json")
    assert result.exit_code == 0, result.output
    return json.loads(result.output)


def test_add_and_list():
    result = _invoke("add", "Buy milk", "--day", "mon", "--raw")
    assert result.exit_code == 0, result.output
    assert result.output.strip().endswith(": Buy milk")

    _invoke("add", "Call dentist", "-d", "Mon", "-c", "work")

    tasks = _ls_json("mon")
    assert [(t["title"], t["order"]) for t in tasks] == [("Buy milk", 0), ("Call dentist", 1)]
    assert tasks[1]["category_id"] == "2"


def test_add_rejects_bad_day():
    result = _invoke("add", "Someday task", "--day", "someday")
    assert result.exit_code == 1
    assert "Invalid day" in result.output


def test_mv_reorders_within_day():
    _invoke("add", "Buy milk", "--day", "mon")
    _invoke("add", "Call dentist", "--day", "mon")
    milk, dentist = _ls_json("mon")

    result = _invoke("mv", dentist["id"][:8], milk["id"][:8], "--raw")
    assert result.exit_code == 0, result.output

    assert [t["title"] for t in _ls_json("mon")] == ["Call dentist", "Buy milk"]


def test_status_commands():
    _invoke("add", "Run", "--day", "sun")
    [task] = _ls_json()
    prefix = task["id"][:6]

    assert _invoke("done", prefix).exit_code == 0
    assert _ls_json()[0]["completed_at"]

    result = _invoke("status", prefix, "pending", "--raw")
    assert result.exit_code == 0
    assert result.output.strip() == f"{task['id']}: pending"
    assert _ls_json()[0]["completed_at"] is None

    _invoke("cycle", prefix)
    assert _ls_json()[0]["status"] == "in-progress"

    result = _invoke("status", prefix, "finished")
    assert result.exit_code == 1


def test_edit_and_rm():
    _invoke("add", "A", "--day", "mon")
    _invoke("add", "B", "--day", "mon")
    a, b = _ls_json("mon")

    result = _invoke("edit", a["id"], "--day", "tue", "--title", "A later")
    assert result.exit_code == 0, result.output
    assert [(t["title"], t["order"]) for t in _ls_json("mon")] == [("B", 0)]
    assert [t["title"] for t in _ls_json("tue")] == ["A later"]

    assert _invoke("rm", b["id"], "-y").exit_code == 0
    assert _ls_json("mon") == []

    result = _invoke("rm", "ffffffff", "-y")
    assert result.exit_code == 1
    assert "not found" in result.output


def test_category_commands():
    result = _invoke("cat", "add", "Garden", "--color", "#22c55e")
    assert result.exit_code == 0, result.output

    _invoke("add", "Plant tulips", "-c", "garden")
    result = _invoke("cat", "ls", "--json")
    names = [c["name"] for c in json.loads(result.output)]
    assert names == ["Personal", "Work", "Study", "Exercise", "Hobby", "Garden"]

    assert _invoke("cat", "rm", "Garden", "-y").exit_code == 0
    assert _ls_json()[0]["category_id"] == "1"

    result = _invoke("cat", "add", "Extraordinary")
    assert result.exit_code == 1


def test_signup_migrates_and_logout():
    _invoke("add", "Guest task", "--day", "fri")

    result = _invoke("signup", "ana@example.com", "Ana", "--password", "1234")
    assert result.exit_code == 0, result.output
    assert "Brought over 1 task(s)" in result.output

    result = _invoke("whoami")
    assert result.output.strip() == "Ana <ana@example.com>"
    assert [t["title"] for t in _ls_json()] == ["Guest task"]

    assert _invoke("logout").exit_code == 0
    assert _invoke("whoami").output.strip() == "guest"
    assert _ls_json() == []

    result = _invoke("login", "ana@example.com", "--password", "0000")
    assert result.exit_code == 1
    assert "incorrect" in result.output

    result = _invoke("login", "ana@example.com", "--password", "1234")
    assert result.exit_code == 0
    assert [t["title"] for t in _ls_json()] == ["Guest task"]


def test_summary_json():
    _invoke("add", "A", "--day", "mon")
    _invoke("add", "B", "--day", "mon")
    [a, _] = _ls_json()
    _invoke("done", a["id"])

    result = _invoke("summary", "--json")
    assert result.exit_code == 0, result.output
    data = json.loads(result.output)
    assert data["total"] == 2
    assert data["completion_rate"] == 50
    assert data["most_productive_day"] == "Mon"


def test_version():
    result = _invoke("version")
    assert result.exit_code == 0
    assert "weekplan v" in result.output
