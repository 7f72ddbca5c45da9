import logging
import os
import shlex
import subprocess
import tempfile
from contextlib import nullcontext
from pathlib import Path
from typing import Callable, ContextManager, Optional, Sequence, Type

from outline_errors import DocumentLoadFailed, DocumentSaveFailed, EditorAbandoned


logger = logging.getLogger(__name__)

DEFAULT_DJVUSED = "djvused"
# djvused prints nothing at all for a document without an outline.
EMPTY_OUTLINE = "(bookmarks)"
_TEMP_PREFIX = "djvu-nav-edit-"


def _remove_temp_file(path: str) -> None:
    try:
        os.unlink(path)
    except FileNotFoundError:
        pass
    except OSError as exc:
        logger.warning("Could not remove temporary file %s: %s", path, exc)


class DjvusedTool:
    """Reads and replaces a document outline through the ``djvused`` command."""

    def __init__(self, executable: str = DEFAULT_DJVUSED, *, timeout: Optional[float] = None) -> None:
        self.executable = executable
        self.timeout = timeout

    def _run(
        self, args: Sequence[str], failure: Type[Exception]
    ) -> subprocess.CompletedProcess:
        command = [self.executable, *args]
        logger.debug("Running %s", shlex.join(command))
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                timeout=self.timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.error("Could not run %s: %s", self.executable, exc)
            raise failure(f"Could not run {self.executable}: {exc}") from exc
        logger.info("%s exited with status %s", self.executable, result.returncode)
        return result

    def read_outline(self, document: Path) -> str:
        result = self._run([str(document), "-u", "-e", "print-outline"], DocumentLoadFailed)
        stderr = (result.stderr or b"").decode("utf-8", errors="replace")
        if result.returncode != 0:
            raise DocumentLoadFailed(
                f"{self.executable} could not read the outline of {document}",
                returncode=result.returncode,
                stderr=stderr,
            )
        try:
            text = (result.stdout or b"").decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DocumentLoadFailed(f"Outline of {document} is not valid UTF-8: {exc}") from exc
        if not text.strip():
            return EMPTY_OUTLINE
        return text

    def write_outline(self, document: Path, text: str) -> None:
        fd, temp_name = tempfile.mkstemp(prefix=_TEMP_PREFIX, suffix=".outline")
        try:
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as handle:
                    handle.write(text)
            except OSError as exc:
                raise DocumentSaveFailed(f"Could not stage the outline for {document}: {exc}") from exc
            result = self._run(
                [str(document), "-e", f"set-outline {temp_name}", "-s"],
                DocumentSaveFailed,
            )
        finally:
            _remove_temp_file(temp_name)
        if result.returncode != 0:
            raise DocumentSaveFailed(
                f"{self.executable} could not write the outline of {document}",
                returncode=result.returncode,
                stderr=(result.stderr or b"").decode("utf-8", errors="replace"),
            )


def strip_trailing_newline(text: str) -> str:
    if text.endswith("\r\n"):
        return text[:-2]
    if text.endswith("\n"):
        return text[:-1]
    return text


class ExternalEditor:
    """Round-trips a piece of text through the user's editor.

    ``suspend`` returns a context manager held while the editor owns the
    terminal; the Textual app passes ``App.suspend`` here.
    """

    def __init__(
        self,
        command: str,
        *,
        suspend: Optional[Callable[[], ContextManager]] = None,
    ) -> None:
        self.command = command
        self._suspend = suspend or nullcontext

    def edit(self, text: str) -> str:
        fd, temp_name = tempfile.mkstemp(prefix=_TEMP_PREFIX, suffix=".txt")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(text)
            argv = [*shlex.split(self.command), temp_name]
            logger.debug("Starting editor %s", shlex.join(argv))
            with self._suspend():
                try:
                    result = subprocess.run(argv, check=False)
                except OSError as exc:
                    raise EditorAbandoned(f"Could not start editor {self.command!r}: {exc}") from exc
            if result.returncode != 0:
                logger.info("Editor exited with status %s; edit abandoned", result.returncode)
                raise EditorAbandoned(
                    f"Editor exited with status {result.returncode}",
                    returncode=result.returncode,
                )
            try:
                edited = Path(temp_name).read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError) as exc:
                logger.info("Could not read back the edited text: %s", exc)
                raise EditorAbandoned(f"Could not read the edited text: {exc}") from exc
        finally:
            _remove_temp_file(temp_name)
        return strip_trailing_newline(edited)
