#!/usr/bin/env python3
"""
Error types for Chat Migrator
"""

from datetime import datetime
from typing import List, Optional

class ChatMigratorError(Exception):
    """Base exception for all Chat Migrator errors"""

    error_type = "general"

    def __init__(self, message: str, error_type: Optional[str] = None):
        super().__init__(message)
        if error_type:
            self.error_type = error_type
        self.timestamp = datetime.now()

class ExportFormatError(ChatMigratorError):
    """The export document is not parseable or has no conversations array"""
    error_type = "input_malformed"

class ExportLoadError(ChatMigratorError):
    """The export document could not be read from its source"""
    error_type = "input_unavailable"

class SelectorNotFoundError(ChatMigratorError):
    """None of the candidate selectors for a role matched the live document"""
    error_type = "selector_not_found"

    def __init__(self, role: str, candidates: List[str]):
        super().__init__(f"Could not find {role} with any known selector ({len(candidates)} tried)")
        self.role = role
        self.candidates = list(candidates)

class LoginTimeoutError(ChatMigratorError):
    """The logged-in marker never appeared within the login wait"""
    error_type = "login_timeout"

class ExtractionError(ChatMigratorError):
    """A single conversation could not be extracted from the page"""
    error_type = "extraction"

class RetryExhaustedError(ChatMigratorError):
    """An operation kept failing until its attempt ceiling was reached"""
    error_type = "retry_exhausted"

    def __init__(self, operation_name: str, attempts: int, last_error: BaseException):
        super().__init__(f"{operation_name} failed after {attempts} attempts: {last_error}")
        self.operation_name = operation_name
        self.attempts = attempts
        self.last_error = last_error

class InvalidTransitionError(ChatMigratorError):
    """The scrape state machine was asked to make an illegal transition"""
    error_type = "invalid_transition"
