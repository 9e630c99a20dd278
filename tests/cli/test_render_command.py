"""Tests for the kroki-embed CLI."""

import subprocess
import sys
from pathlib import Path

import pytest

from kroki_embed.cli import build_parser, main
from kroki_embed.config import EnvVar
from kroki_embed.encode import make_url

REPO_ROOT = Path(__file__).resolve().parents[2]
SOURCE = "@startuml\nAlice -> Bob\n@enduml"


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep KROKI_* variables from the caller out of the tests."""
    for var in EnvVar:
        monkeypatch.delenv(var.value.name, raising=False)
    monkeypatch.setattr("kroki_embed.cli.load_dotenv", lambda: False)


@pytest.fixture
def diagram_file(tmp_path) -> Path:
    path = tmp_path / "sequence.puml"
    path.write_text(SOURCE, encoding="utf-8")
    return path


@pytest.mark.unit
def test_url_command(diagram_file, capsys):
    """url prints the Kroki URL for the file."""
    assert main(["url", "plantuml", str(diagram_file), "--server", "http://k"]) == 0
    assert capsys.readouterr().out.strip() == make_url(
        "http://k", "plantuml", SOURCE, "svg"
    )


@pytest.mark.unit
def test_url_command_applies_insert(diagram_file, capsys):
    """Insert options change the encoded source."""
    main(
        [
            "url",
            "plantuml",
            str(diagram_file),
            "--insert",
            "!theme plain",
            "--insert-after",
            "1",
        ]
    )
    expected_source = "@startuml\n!theme plain\nAlice -> Bob\n@enduml\n"
    assert capsys.readouterr().out.strip() == make_url(
        "https://kroki.io", "plantuml", expected_source, "svg"
    )


@pytest.mark.unit
def test_render_external_link(diagram_file, capsys):
    """render with externalLink needs no network."""
    code = main(
        ["render", "plantuml", str(diagram_file), "--link", "externalLink", "-f", "png"]
    )
    url = make_url("https://kroki.io", "plantuml", SOURCE, "png")
    assert code == 0
    assert capsys.readouterr().out.strip() == f'<img class="kroki" src="{url}" />'


@pytest.mark.unit
def test_render_to_file(diagram_file, tmp_path):
    """--output writes the markup to a file."""
    out = tmp_path / "out.html"
    main(
        [
            "render",
            "plantuml",
            str(diagram_file),
            "--link",
            "externalLink",
            "--class-name",
            "uml",
            "-o",
            str(out),
        ]
    )
    assert out.read_text(encoding="utf-8").startswith('<img class="uml" src=')


@pytest.mark.unit
def test_render_bad_insert_line(diagram_file):
    """Library errors become exit code 1."""
    code = main(
        [
            "render",
            "plantuml",
            str(diagram_file),
            "--link",
            "externalLink",
            "--insert",
            "x",
            "--insert-after",
            "9",
        ]
    )
    assert code == 1


@pytest.mark.unit
def test_decode_accepts_full_url(capsys):
    """decode takes a payload or a whole Kroki URL."""
    url = make_url("https://kroki.io", "plantuml", SOURCE, "svg")
    assert main(["decode", url]) == 0
    assert capsys.readouterr().out == SOURCE


@pytest.mark.unit
def test_decode_rejects_garbage():
    """Malformed payloads exit with 1."""
    assert main(["decode", "bm90LXpsaWI"]) == 1


@pytest.mark.unit
def test_invalid_link_choice():
    """argparse rejects unknown link modes."""
    with pytest.raises(SystemExit):
        build_parser().parse_args(["render", "plantuml", "--link", "inlineHex"])


@pytest.mark.unit
def test_config_command_lists_variables(capsys):
    """config shows resolved values and variables."""
    assert main(["config", "--category", "cache"]) == 0
    out = capsys.readouterr().out
    assert "link: 'inlineBase64'" in out
    assert "KROKI_PUBLIC_DIR" in out
    assert "KROKI_URL =" not in out


@pytest.mark.unit
def test_module_entry_point():
    """``python .`` runs the CLI from the repository root."""
    result = subprocess.run(
        [sys.executable, ".", "decode", make_url("http://k", "dot", "a->b", "svg")],
        capture_output=True,
        text=True,
        cwd=REPO_ROOT,
        timeout=30,
    )
    assert result.returncode == 0
    assert result.stdout == "a->b"
