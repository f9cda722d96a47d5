"""
Pytest fixtures for the office PDF service tests.

The strategies are exercised against a fake ``soffice`` executable: a small
Python script that understands ``--convert-to`` / ``--outdir`` and writes a
PDF-looking file, so the suite runs without LibreOffice installed.
"""

import os
import stat
import sys
import tempfile
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

FAKE_SOFFICE = """\
import json
import os
import pathlib
import sys
import time

args = sys.argv[1:]
log = os.environ.get("FAKE_SOFFICE_LOG")
if log:
    with open(log, "a", encoding="utf-8") as f:
        f.write(json.dumps({"args": args, "cwd": os.getcwd()}) + "\\n")

mode = os.environ.get("FAKE_SOFFICE_MODE", "ok")
if mode == "fail":
    sys.stdout.write("loading source\\n")
    sys.stderr.write("Error: source file could not be loaded\\n")
    sys.exit(81)
if mode == "sleep":
    time.sleep(30)

fmt = args[args.index("--convert-to") + 1]
outdir = pathlib.Path(args[args.index("--outdir") + 1])
src = pathlib.Path(args[-1])
print(f"convert {src} -> {outdir}")
if mode == "noop":
    sys.exit(0)
name = "renamed" if mode == "rename" else src.stem
(outdir / f"{name}.{fmt}").write_bytes(b"%PDF-1.4\\n% fake\\n" + src.read_bytes())
"""


class FakeConverter:
    """In-memory ConverterStrategy used to drive the HTTP layer."""

    name = "fake"

    def __init__(self, result: bytes = b"%PDF-1.7\n% fake output\n", error: Exception | None = None) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[bytes, str, str]] = []

    async def convert(self, document: bytes, fmt: str, filename: str) -> bytes:
        self.calls.append((document, fmt, filename))
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def fake_soffice(tmp_path, monkeypatch):
    """Path to an executable fake soffice; its calls are logged as JSON lines."""
    bin_dir = tmp_path / "bin"
    bin_dir.mkdir()
    script = bin_dir / "soffice"
    script.write_text(f"#!{sys.executable}\n{FAKE_SOFFICE}", encoding="utf-8")
    script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    monkeypatch.setenv("FAKE_SOFFICE_LOG", str(tmp_path / "soffice.log"))
    monkeypatch.delenv("FAKE_SOFFICE_MODE", raising=False)
    return script


@pytest.fixture
def soffice_calls(tmp_path):
    import json

    def _read() -> list[dict]:
        log = tmp_path / "soffice.log"
        if not log.exists():
            return []
        return [json.loads(line) for line in log.read_text(encoding="utf-8").splitlines()]

    return _read


@pytest.fixture
def scratch_tmp(tmp_path, monkeypatch):
    """Redirect tempfile's default directory so leftovers can be inspected."""
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    monkeypatch.setattr(tempfile, "tempdir", str(scratch))
    return scratch


@pytest.fixture
def upload_dir(tmp_path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def fake_converter() -> FakeConverter:
    return FakeConverter()


@pytest.fixture
def install_service(monkeypatch, upload_dir):
    """Install a ConversionService wrapping the given strategy into the app."""
    from office_pdf import webapi
    from office_pdf.conversion import ConversionService

    def _install(converter) -> None:
        monkeypatch.setattr(webapi, "SERVICE", ConversionService(converter, upload_dir=str(upload_dir)))

    return _install


@pytest.fixture
def client(install_service, fake_converter):
    """FastAPI test client backed by the fake converter."""
    from office_pdf.webapi import app

    install_service(fake_converter)
    return TestClient(app)


def listing(path: Path) -> list[str]:
    return sorted(os.listdir(path)) if path.exists() else []
