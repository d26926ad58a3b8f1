"""Exceptions raised by the menu analysis pipeline.

Every error that can reach a user carries a ``user_message`` (Korean) that the
orchestrator stores in the session and the HTTP layer returns as ``detail``.
"""

from typing import Optional

CONFIGURATION_MESSAGE = "API 키가 설정되지 않았습니다. .env 파일을 확인해 주세요."
NETWORK_MESSAGE = "메뉴판 분석에 실패했습니다. 다시 시도해 주세요."
FORMAT_MESSAGE = "AI 응답 형식이 올바르지 않습니다."
UNEXPECTED_MESSAGE = "오류가 발생했습니다. 다시 시도해 주세요."


class MenuLensError(Exception):
    user_message = UNEXPECTED_MESSAGE
    retryable = True

    def __init__(self, message: str, user_message: Optional[str] = None):
        super().__init__(message)
        if user_message is not None:
            self.user_message = user_message


class ConfigurationError(MenuLensError):
    """Vision service credential is missing or still a placeholder."""

    user_message = CONFIGURATION_MESSAGE
    retryable = False


class AnalysisError(MenuLensError):
    """Base class for failures of the menu extraction call."""


class AnalysisNetworkError(AnalysisError):
    user_message = NETWORK_MESSAGE


class AnalysisFormatError(AnalysisError):
    """The model answered, but not with a JSON array of menu items."""

    user_message = FORMAT_MESSAGE


class RateLookupFailure(MenuLensError):
    # Only raised inside ExchangeRateResolver; callers see None instead.
    pass
