"""
Custom exceptions for survey aggregation and analysis chat
"""

class SurveyAnalysisError(Exception):
    """Base error for survey analysis operations"""
    def __init__(self, message: str, error_type: str = None, details: dict = None):
        self.message = message
        self.error_type = error_type or "SurveyAnalysisError"
        self.details = details or {}
        super().__init__(self.message)

class ConfigurationError(SurveyAnalysisError):
    """Raised when a required credential or setting is missing"""
    def __init__(self, message: str, setting: str = None, details: dict = None):
        self.setting = setting
        super().__init__(message, "ConfigurationError", details)

class EmptyInputError(SurveyAnalysisError):
    """Raised when there is nothing to analyze (no messages, no matching responses)"""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, "EmptyInputError", details)

class StoreQueryError(SurveyAnalysisError):
    """Raised when a response store query fails"""
    def __init__(self, message: str, query_name: str = None, details: dict = None):
        self.query_name = query_name
        super().__init__(message, "StoreQueryError", details)

class CompletionServiceError(SurveyAnalysisError):
    """Raised when the completion service rejects or fails a request"""
    def __init__(self, message: str, status_code: int = None, details: dict = None):
        self.status_code = status_code
        super().__init__(message, "CompletionServiceError", details)
