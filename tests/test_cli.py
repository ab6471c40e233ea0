from pathlib import Path

import pytest
from PIL import Image

from conftest import make_sprite
from oled_relay.cli import build_parser, main
from oled_relay.constants import PORT_ENV_VAR


@pytest.fixture
def config_path(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.delenv(PORT_ENV_VAR, raising=False)
    path = tmp_path / "oled-relay.cfg"
    path.write_text("[server]\nport = 8123\n", encoding="utf-8")
    return path


def test_parser_requires_command():
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_show_config(config_path: Path, capsys):
    assert main(["-c", str(config_path), "show-config"]) == 0

    out = capsys.readouterr().out
    assert f"Configuration loaded from {config_path}" in out
    assert "[server]" in out
    assert "port = 8123" in out
    assert "[display]" in out
    assert "max_width = 128" in out


def test_bitmap_previews_local_file(config_path: Path, tmp_path: Path, capsys):
    image_path = tmp_path / "sprite.png"
    make_sprite((96, 96)).save(image_path)

    assert main(["-c", str(config_path), "bitmap", str(image_path)]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "64x64, 512 bytes"
    preview = lines[1:65]
    assert len(preview) == 64
    assert all(len(row) == 64 for row in preview)
    assert "#" in "".join(preview)


def test_bitmap_small_dark_image_keeps_size(config_path: Path, tmp_path: Path, capsys):
    image_path = tmp_path / "dark.png"
    Image.new("RGB", (16, 8), (0, 0, 0)).save(image_path)

    assert main(["-c", str(config_path), "bitmap", str(image_path)]) == 0

    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "16x8, 16 bytes"
    assert set("".join(lines[1:])) == {"#"}


def test_bitmap_missing_file(config_path: Path, tmp_path: Path):
    assert main(["-c", str(config_path), "bitmap", str(tmp_path / "nope.png")]) == 1


def test_bitmap_rejects_non_image(config_path: Path, tmp_path: Path):
    path = tmp_path / "notes.txt"
    path.write_text("not an image", encoding="utf-8")

    assert main(["-c", str(config_path), "bitmap", str(path)]) == 1
