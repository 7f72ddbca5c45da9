from typing import Optional


class OutlineError(Exception):
    """Base class for every error raised while editing an outline."""


class MalformedOutline(OutlineError):
    """The outline text does not follow the bookmark grammar.

    ``offset`` is a byte offset into the UTF-8 encoded text once the error has
    been located with :meth:`at`; ``line`` and ``column`` count characters.
    """

    def __init__(self, message: str, offset: int, line: int = 1, column: int = 1) -> None:
        super().__init__(f"{message} (line {line}, column {column}, byte {offset})")
        self.reason = message
        self.offset = offset
        self.line = line
        self.column = column

    @classmethod
    def at(cls, text: str, index: int, message: str) -> "MalformedOutline":
        """Build the error for character ``index`` of ``text``."""
        line = text.count("\n", 0, index) + 1
        column = index - (text.rfind("\n", 0, index) + 1) + 1
        return cls(message, len(text[:index].encode("utf-8")), line, column)


class TreeOperationError(OutlineError):
    pass


class PathNotFound(TreeOperationError):
    def __init__(self, path) -> None:
        super().__init__(f"No bookmark at {list(path)}")
        self.path = tuple(path)


class InvalidOperation(TreeOperationError):
    pass


class CycleRejected(TreeOperationError):
    def __init__(self, path, destination) -> None:
        super().__init__(
            f"Cannot move {list(path)} under {list(destination)}: destination is inside the moved entry"
        )
        self.path = tuple(path)
        self.destination = tuple(destination)


class _ProcessFailure(OutlineError):
    def __init__(
        self,
        message: str,
        *,
        returncode: Optional[int] = None,
        stderr: str = "",
    ) -> None:
        detail = stderr.strip()
        super().__init__(f"{message}: {detail}" if detail else message)
        self.returncode = returncode
        self.stderr = stderr


class DocumentLoadFailed(_ProcessFailure):
    pass


class DocumentSaveFailed(_ProcessFailure):
    pass


class EditorAbandoned(_ProcessFailure):
    pass
