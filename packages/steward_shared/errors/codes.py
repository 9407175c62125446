"""Machine-readable error codes shared by Steward services.

Only domain-agnostic codes live here. A service that needs a narrower code
declares it next to its own error types.
"""

VALIDATION_ERROR = "VALIDATION_ERROR"
INVALID_ARGUMENT = "INVALID_ARGUMENT"

NOT_FOUND = "NOT_FOUND"
RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"

CONFLICT = "CONFLICT"
ALREADY_EXISTS = "ALREADY_EXISTS"

POLICY_VIOLATION = "POLICY_VIOLATION"
PERMISSION_DENIED = "PERMISSION_DENIED"

DEPENDENCY_FAILURE = "DEPENDENCY_FAILURE"
DEPENDENCY_UNAVAILABLE = "DEPENDENCY_UNAVAILABLE"

INTERNAL_ERROR = "INTERNAL_ERROR"
UNEXPECTED_EXCEPTION = "UNEXPECTED_EXCEPTION"
