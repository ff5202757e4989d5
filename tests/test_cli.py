from pathlib import Path

from metabot_fleet import cli


def test_show_config_prints_sections(tmp_path: Path, capsys) -> None:
    config_path = tmp_path / "metabot-fleet.cfg"
    config_path.write_text("[robot r1]\nname = Tove\n", encoding="utf-8")

    assert cli.main(["-c", str(config_path), "show-config"]) == 0

    output = capsys.readouterr().out
    assert "[robot r1]" in output
    assert "name = Tove" in output


def test_invalid_config_exits_with_error(tmp_path: Path) -> None:
    config_path = tmp_path / "metabot-fleet.cfg"
    config_path.write_text("[supervisor s]\nrobots = ghost\n", encoding="utf-8")

    assert cli.main(["-c", str(config_path), "show-config"]) == 2


def test_malformed_value_exits_with_error(tmp_path: Path) -> None:
    config_path = tmp_path / "metabot-fleet.cfg"
    config_path.write_text("[robot r1]\nosc_port = abc\n", encoding="utf-8")

    assert cli.main(["-c", str(config_path), "show-config"]) == 2
