"""promptlab exception hierarchy.

Store operations raise these so callers (the orchestrator) can tell a missing
record from a lifecycle violation or a rejected configuration. Insufficient
data during evaluation is not an exception: it is reported as an outcome.
"""


class PromptLabError(Exception):
    """Base exception for all promptlab errors.

    All promptlab-specific exceptions should inherit from this class.
    """
    pass


class NotFoundError(PromptLabError):
    """Raised when a prompt, prompt version or A/B test does not exist.

    Attributes:
        kind: Kind of record ("prompt", "prompt_version", "ab_test")
        key: Identifier that was looked up
    """
    def __init__(self, kind: str, key: str, message: str | None = None):
        self.kind = kind
        self.key = key
        super().__init__(message or f"{kind} '{key}' not found")


class ConflictError(PromptLabError):
    """Raised when a write collides with existing state.

    Example: starting a test while another test for the same prompt is running.
    Benign duplicates (same content hash, same job result) are resolved by the
    stores and never surface as this error.
    """
    pass


class InvalidStateError(PromptLabError):
    """Raised when an A/B test transition is not allowed from its current status.

    Attributes:
        test_id: A/B test id
        status: Current status of the test
        action: Attempted action (start, pause, cancel, complete, record_result, ...)
    """
    def __init__(self, test_id: str, status: str, action: str, message: str | None = None):
        self.test_id = test_id
        self.status = status
        self.action = action
        super().__init__(message or f"Cannot {action} A/B test '{test_id}' in status '{status}'")


class ValidationError(PromptLabError):
    """Raised for malformed input: bad test config, identical variants, foreign versions.

    Attributes:
        field: Name of the offending field
    """
    def __init__(self, field: str, message: str):
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")


class ConfigurationError(PromptLabError):
    """Raised when configuration is invalid or missing required settings.

    Attributes:
        setting: Name of the setting that is invalid/missing
        message: Detailed error message
    """
    def __init__(self, setting: str, message: str | None = None):
        self.setting = setting
        self.message = message or f"Invalid or missing configuration for '{setting}'"
        super().__init__(self.message)
