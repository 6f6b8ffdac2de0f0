"""User journey: the command line manages a library stored next to its config."""

import json
import re

import pytest

from main import main


@pytest.fixture
def config_for(tmp_path):
    def make(name, **overrides):
        path = tmp_path / f"{name}.config.json"
        cfg = {"data_file": str(tmp_path / f"{name}.data.json"), "username": name, **overrides}
        path.write_text(json.dumps(cfg), encoding="utf-8")
        return str(path)

    return make


def run_cli(capsys, *argv):
    code = main(list(argv))
    return code, capsys.readouterr().out


def test_user_manages_stations_from_the_command_line(config_for, capsys, tmp_path):
    cfg = config_for("sam")

    code, out = run_cli(capsys, "--config", cfg, "add", "--url", "http://jazz.example/live", "--name", "Jazz FM")
    assert code == 0
    assert out.startswith("Added Jazz FM (station_")
    run_cli(capsys, "--config", cfg, "add", "--url", "https://rock.example/live", "--name", "Rock", "--country", "se")

    assert run_cli(capsys, "--config", cfg, "preset", "Jazz FM")[1] == "Jazz FM is now preset 1.\n"
    run_cli(capsys, "--config", cfg, "note", "Rock", "loud guitars")
    run_cli(capsys, "--config", cfg, "rename", "1", "Smooth")

    code, out = run_cli(capsys, "--config", cfg, "list", "--sort", "a-to-z")
    lines = out.splitlines()
    assert re.match(r"\s+station_\w+  Rock  \(SE\)", lines[0])
    assert lines[1] == "      note: loud guitars"
    assert re.match(r"\[1\] station_\w+  Smooth", lines[2])
    assert lines[-1] == "2 stations, sorted by a to z."

    code, out = run_cli(capsys, "--config", cfg, "stats")
    assert "Stations:        2" in out
    assert "Countries:       1" in out

    backup = str(tmp_path / "backup.json")
    run_cli(capsys, "--config", cfg, "export", backup)
    run_cli(capsys, "--config", cfg, "remove", "Rock")
    code, out = run_cli(capsys, "--config", cfg, "import", backup)
    assert out == "Imported 1 stations.\nSkipped 1 duplicates.\n"


def test_shared_link_moves_stations_between_users(config_for, capsys):
    sender = config_for("sam")
    receiver = config_for("alex")
    run_cli(capsys, "--config", sender, "add", "--url", "http://jazz.example/live", "--name", "Jazz FM")

    code, link = run_cli(capsys, "--config", sender, "share", "--list-name", "Evening")
    link = link.strip()
    assert link.startswith("https://")
    assert "share=" in link

    code, out = run_cli(capsys, "--config", receiver, "open-share", link)
    assert out.splitlines()[0] == "Evening: 1 stations from sam."
    assert "  + Jazz FM" in out

    code, out = run_cli(capsys, "--config", receiver, "open-share", link, "--apply")
    assert out == "Imported 1 stations.\n"
    code, out = run_cli(capsys, "--config", receiver, "list")
    assert "Jazz FM" in out


def test_errors_are_reported_without_traceback(config_for, capsys):
    cfg = config_for("sam")

    code, out = run_cli(capsys, "--config", cfg, "remove", "nothing-here")

    assert code == 1
    assert out.startswith("Error: No station with id 'nothing-here'")


def test_missing_backup_is_reported_without_traceback(config_for, capsys, tmp_path):
    cfg = config_for("sam")

    code, out = run_cli(capsys, "--config", cfg, "import", str(tmp_path / "missing.json"))

    assert code == 1
    assert out.startswith("Error: Cannot read backup file")
