"""
Validation errors.

These are the only failures whose message may be shown to the user as-is.
Everything else is reported with a generic message.
"""

from bill_assistant.models.bill import ValidationResult


class ValidationError(Exception):
    """Input was rejected before anything was stored."""

    def __init__(self, message: str, user_message: str = ""):
        super().__init__(message)
        self.user_message = user_message or message


class UnsupportedFileTypeError(ValidationError):
    """File extension is not on the allow-list."""

    def __init__(self, filename: str, extension: str, allowed: list[str]):
        super().__init__(
            f"Unsupported file type '{extension}' for {filename}",
            user_message=f"不支持的文件类型：{filename}（支持 {', '.join(allowed)}）",
        )
        self.filename = filename
        self.extension = extension


class FileTooLargeError(ValidationError):
    """File exceeds the upload size limit."""

    def __init__(self, filename: str, size: int, limit: int):
        super().__init__(
            f"{filename} is {size} bytes, limit is {limit}",
            user_message=f"文件太大啦：{filename}（上限 {limit // (1024 * 1024)}MB）",
        )
        self.filename = filename
        self.size = size
        self.limit = limit


class BillValidationError(ValidationError):
    """A bill draft has blocking issues and was not filed."""

    def __init__(self, result: ValidationResult):
        messages = [i.message for i in result.issues if i.severity == "error"]
        super().__init__("Bill failed validation: " + "; ".join(messages))
        self.result = result
