import os
from dataclasses import dataclass
from typing import Protocol


class ConversionError(RuntimeError):
    """Raised when the headless converter fails or its output cannot be found."""


class ConverterStrategy(Protocol):
    name: str

    async def convert(self, document: bytes, fmt: str, filename: str) -> bytes:
        """Convert ``document`` into ``fmt`` and return the converted bytes.

        ``filename`` is only a hint; LibreOffice picks the import filter from
        its extension. Raises ConversionError on any failure.
        """


@dataclass(frozen=True)
class ConverterConfig:
    soffice_path: str | None = None
    strategy: str = "auto"
    timeout_sec: float | None = 120.0

    @property
    def executable(self) -> str:
        if not self.soffice_path:
            return "soffice"
        # A path with a directory part must survive the cwd change below
        if os.path.dirname(self.soffice_path):
            return os.path.abspath(self.soffice_path)
        return self.soffice_path

    @property
    def cwd(self) -> str | None:
        # soffice needs its own program dir as cwd on Windows to find its libraries
        if not self.soffice_path or not os.path.dirname(self.soffice_path):
            return None
        return os.path.dirname(os.path.abspath(self.soffice_path))

    @classmethod
    def from_env(cls) -> "ConverterConfig":
        timeout = float(os.getenv("CONVERSION_TIMEOUT_SEC", "120"))
        strategy = os.getenv("CONVERTER_STRATEGY", "auto").strip().lower() or "auto"
        if strategy not in {"auto", "direct", "bridge"}:
            raise ValueError(f"CONVERTER_STRATEGY must be auto, direct or bridge, got {strategy!r}")
        return cls(
            soffice_path=os.getenv("LIBRE_OFFICE_EXE") or None,
            strategy=strategy,
            timeout_sec=timeout if timeout > 0 else None,
        )
