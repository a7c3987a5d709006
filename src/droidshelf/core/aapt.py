"""aapt2 wrapper: badging/resource dumps and compiled XML conversion."""

from pathlib import Path

from droidshelf.exceptions import ProcessError
from droidshelf.utils.process import run_tool


class Aapt2:
    """Thin async wrapper around an aapt2 binary."""

    def __init__(self, executable: str = "aapt2", timeout: float | None = 60.0):
        self.executable = executable
        self.timeout = timeout

    async def dump_badging(self, apk_path: Path) -> str:
        """Return ``aapt2 dump badging`` output for an APK."""
        result = await run_tool(
            [self.executable, "dump", "badging", str(apk_path)],
            timeout=self.timeout,
        )
        return result.stdout

    async def dump_resources(self, apk_path: Path) -> str:
        """Return ``aapt2 dump resources`` output for an APK."""
        result = await run_tool(
            [self.executable, "dump", "resources", str(apk_path)],
            timeout=self.timeout,
        )
        return result.stdout

    async def convert_to_xml(self, source: Path, destination: Path) -> str:
        """Convert a compiled (binary) XML file to text XML.

        Args:
            source: Compiled XML extracted from an APK.
            destination: Where the text XML is written.

        Returns:
            The converted XML text.

        Raises:
            ProcessError: If conversion fails or produces no file.
        """
        destination.parent.mkdir(parents=True, exist_ok=True)
        cmd = [
            self.executable,
            "convert",
            "--output-format",
            "xml",
            "--output",
            str(destination),
            str(source),
        ]
        await run_tool(cmd, timeout=self.timeout)

        if not destination.is_file():
            raise ProcessError(cmd, 0, f"aapt2 produced no output at {destination}")

        return destination.read_text(encoding="utf-8", errors="replace")
