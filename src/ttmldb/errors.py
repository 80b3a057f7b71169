"""
Exceptions raised by the lyric pipeline.
"""


class TTMLError(Exception):
    """Base class for fatal lyric processing errors."""


class XmlSyntaxError(TTMLError):
    """The submitted text is not a well-formed TTML document."""

    def __init__(self, message: str, position: tuple[int, int] | None = None):
        super().__init__(message)
        self.position = position

    def __str__(self) -> str:
        base = super().__str__()
        if self.position is None:
            return base
        line, column = self.position
        return f"{base} (行 {line}, 列 {column})"


class MalformedTimestamp(TTMLError, ValueError):
    """A timestamp string matches none of the accepted grammars."""

    def __init__(self, text: str, reason: str = ""):
        self.text = text
        self.reason = reason
        msg = f"时间戳字符串解析失败: {text!r}"
        if reason:
            msg = f"{msg} ({reason})"
        super().__init__(msg)
