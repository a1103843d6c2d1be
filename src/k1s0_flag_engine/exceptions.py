"""flag_engine ライブラリの例外型定義"""

from __future__ import annotations


class FlagEngineError(Exception):
    """flag_engine ライブラリのエラー基底クラス。"""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class FlagEngineErrorCodes:
    """FlagEngineError のエラーコード定数。"""

    UNDEFINED_VARIATION: str = "UNDEFINED_VARIATION"
    CYCLIC_PREREQUISITE: str = "CYCLIC_PREREQUISITE"
    FLAG_NOT_FOUND: str = "FLAG_NOT_FOUND"
    INVALID_DATA: str = "INVALID_DATA"
    READ_FILE: str = "READ_FILE_ERROR"
    PARSE_FILE: str = "PARSE_FILE_ERROR"
    VALIDATION: str = "VALIDATION_ERROR"
