import asyncio
import logging
import os
import shutil
import subprocess
import sys
import tempfile
from pathlib import Path

from .interfaces import ConversionError, ConverterConfig, ConverterStrategy

logger = logging.getLogger(__name__)


def _input_name(filename: str, default: str = "source") -> str:
    # Keep only the basename so a client-supplied path cannot leave the work dir
    name = Path((filename or "").replace("\\", "/")).name
    return name or default


def _decode(stream: bytes | None) -> str:
    return (stream or b"").decode("utf-8", errors="replace").strip()


def _failure_message(exe: str, returncode: int, stdout: bytes | None, stderr: bytes | None) -> str:
    return f"{exe} exited with status {returncode}\n{_decode(stderr)}\n{_decode(stdout)}".rstrip()


def _listing(directory: Path) -> list[str]:
    try:
        return sorted(os.listdir(directory))
    except OSError:
        return []


def _remove_tree(directory: Path) -> None:
    try:
        shutil.rmtree(directory)
    except OSError as e:
        logger.warning("Could not remove temp dir %s: %s", directory, e)


class DirectProcessConverter(ConverterStrategy):
    """Calls ``soffice --headless --convert-to`` directly with an explicit outdir.

    Selected on Windows, where the bridge's temp install directories break.
    """

    name = "direct"

    def __init__(self, config: ConverterConfig) -> None:
        self._config = config

    async def convert(self, document: bytes, fmt: str, filename: str) -> bytes:
        return await asyncio.to_thread(self._convert_blocking, document, fmt, filename)

    def _convert_blocking(self, document: bytes, fmt: str, filename: str) -> bytes:
        exe = self._config.executable
        original = _input_name(filename)
        out_dir = Path(tempfile.mkdtemp(prefix="lo-out-"))
        try:
            in_path = out_dir / original
            in_path.write_bytes(document)
            cmd = [exe, "--headless", "--convert-to", fmt, "--outdir", str(out_dir), str(in_path)]
            logger.debug("Running %s (cwd=%s)", cmd, self._config.cwd)
            try:
                proc = subprocess.run(
                    cmd,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                    cwd=self._config.cwd,
                    timeout=self._config.timeout_sec,
                    check=False,
                )
            except subprocess.TimeoutExpired as e:
                raise ConversionError(f"LibreOffice conversion timed out after {e.timeout:g} seconds") from e
            except OSError as e:
                raise ConversionError(f"Could not run LibreOffice executable {exe!r}: {e}") from e

            if proc.returncode != 0:
                raise ConversionError(_failure_message(exe, proc.returncode, proc.stdout, proc.stderr))
            if proc.stdout:
                logger.debug("soffice stdout: %s", _decode(proc.stdout))
            if proc.stderr:
                logger.debug("soffice stderr: %s", _decode(proc.stderr))

            files = _listing(out_dir)
            logger.debug("Outdir files: %s", files)
            out_path = out_dir / f"{Path(original).stem}.{fmt}"
            if not out_path.exists():
                raise ConversionError(f"Converted file not found; outdir files: {', '.join(files)}")
            data = out_path.read_bytes()
            try:
                out_path.unlink()
            except OSError as e:
                logger.warning("Could not remove %s: %s", out_path, e)
            return data
        finally:
            _remove_tree(out_dir)


class LibraryBridgeConverter(ConverterStrategy):
    """In-process bridge: bytes in, bytes out through one awaited conversion.

    Each call gets a private work directory holding the source file, the
    output directory and a throwaway LibreOffice user profile, so concurrent
    calls never share the default profile lock.
    """

    name = "bridge"

    def __init__(self, config: ConverterConfig) -> None:
        self._config = config

    async def convert(self, document: bytes, fmt: str, filename: str) -> bytes:
        hint = _input_name(filename)
        workdir = Path(tempfile.mkdtemp(prefix="lo-bridge-"))
        try:
            in_path = await asyncio.to_thread(self._prepare, workdir, hint, document)
            out_dir = workdir / "out"
            await self._run(in_path, out_dir, fmt, workdir / "profile")
            out_path = out_dir / f"{Path(hint).stem}.{fmt}"
            if not out_path.exists():
                raise ConversionError(f"Converted file not found; outdir files: {', '.join(_listing(out_dir))}")
            return await asyncio.to_thread(out_path.read_bytes)
        finally:
            await asyncio.to_thread(_remove_tree, workdir)

    @staticmethod
    def _prepare(workdir: Path, hint: str, document: bytes) -> Path:
        for sub in ("source", "out", "profile"):
            (workdir / sub).mkdir()
        in_path = workdir / "source" / hint
        in_path.write_bytes(document)
        return in_path

    async def _run(self, in_path: Path, out_dir: Path, fmt: str, profile: Path) -> None:
        exe = self._config.executable
        cmd = [
            exe,
            f"-env:UserInstallation={profile.as_uri()}",
            "--headless",
            "--nologo",
            "--norestore",
            "--convert-to",
            fmt,
            "--outdir",
            str(out_dir),
            str(in_path),
        ]
        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._config.cwd,
            )
        except OSError as e:
            raise ConversionError(f"Could not run LibreOffice executable {exe!r}: {e}") from e

        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._config.timeout_sec)
        except asyncio.TimeoutError:
            proc.kill()
            await proc.wait()
            raise ConversionError(
                f"LibreOffice conversion timed out after {self._config.timeout_sec:g} seconds"
            ) from None

        if proc.returncode != 0:
            raise ConversionError(_failure_message(exe, proc.returncode, stdout, stderr))
        if stderr:
            logger.debug("soffice stderr: %s", _decode(stderr))


def select_strategy(config: ConverterConfig, platform: str | None = None) -> ConverterStrategy:
    """Pick the converter once at startup: direct on Windows, bridge elsewhere."""
    if config.strategy == "direct":
        return DirectProcessConverter(config)
    if config.strategy == "bridge":
        return LibraryBridgeConverter(config)
    if (platform or sys.platform) == "win32":
        return DirectProcessConverter(config)
    return LibraryBridgeConverter(config)
