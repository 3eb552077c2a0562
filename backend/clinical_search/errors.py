"""Service error taxonomy.

Every error carries a stable ``code`` so the HTTP layer and the diagnostic
CLI can report it without parsing messages.
"""

from __future__ import annotations

from collections.abc import Iterable


class ClinicalSearchError(Exception):
    """Base class for all clinical search service errors."""

    code = "CLINICAL_SEARCH_ERROR"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        if code is not None:
            self.code = code
        self.message = message
        super().__init__(message)


class ConfigurationError(ClinicalSearchError):
    """Required configuration is missing or malformed. Never retried."""

    code = "CONFIGURATION_ERROR"

    def __init__(self, missing: Iterable[str], message: str | None = None) -> None:
        self.missing = list(missing)
        super().__init__(
            message or f"Missing required configuration: {', '.join(self.missing)}"
        )


class SchemaMismatchError(ClinicalSearchError):
    """An existing index mapping disagrees with the registry."""

    code = "SCHEMA_MISMATCH"

    def __init__(self, index: str, problems: list[str]) -> None:
        self.index = index
        self.problems = problems
        super().__init__(f"Index '{index}' mapping mismatch: {'; '.join(problems)}")


class ValidationError(ClinicalSearchError):
    """A document or query failed local validation and was not sent."""

    code = "VALIDATION_ERROR"


class InvalidEnumValueError(ValidationError):
    code = "INVALID_ENUM_VALUE"

    def __init__(self, field: str, value: object, allowed: Iterable[str]) -> None:
        self.field = field
        self.value = value
        self.allowed = sorted(allowed)
        super().__init__(
            f"Invalid value {value!r} for '{field}'; "
            f"expected one of: {', '.join(self.allowed)}"
        )


class UnknownIndexError(ClinicalSearchError):
    code = "UNKNOWN_INDEX"

    def __init__(self, index: str) -> None:
        self.index = index
        super().__init__(f"Unknown index '{index}'")


class UnsupportedIndexError(ClinicalSearchError):
    """Similarity search was requested on an index without a vector field."""

    code = "UNSUPPORTED_INDEX"

    def __init__(self, index: str) -> None:
        self.index = index
        super().__init__(f"Index '{index}' has no vector field")


class DocumentNotFoundError(ClinicalSearchError):
    code = "DOCUMENT_NOT_FOUND"

    def __init__(self, index: str, doc_id: str) -> None:
        self.index = index
        self.doc_id = doc_id
        super().__init__(f"Document '{doc_id}' not found in '{index}'")


class ClusterUnhealthyError(ClinicalSearchError):
    code = "CLUSTER_UNHEALTHY"

    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(f"Cluster health is {status}")


class IndexNotReadyError(ClinicalSearchError):
    code = "INDEX_NOT_READY"

    def __init__(self, index: str, reason: str) -> None:
        self.index = index
        self.reason = reason
        super().__init__(f"Index '{index}' not ready: {reason}")


class ClusterUnavailableError(ClinicalSearchError):
    """Transient cluster failures persisted past the retry budget."""

    code = "CLUSTER_UNAVAILABLE"

    def __init__(self, operation: str, cause: BaseException) -> None:
        self.operation = operation
        super().__init__(f"{operation} failed: {cause}")


class RequestTimeoutError(ClinicalSearchError, TimeoutError):
    code = "TIMEOUT"

    def __init__(self, operation: str, timeout: float) -> None:
        self.operation = operation
        self.timeout = timeout
        super().__init__(f"{operation} timed out after {timeout:g}s")


class EmbeddingError(ClinicalSearchError):
    """The embedding service answered with something that is not a vector."""

    code = "EMBEDDING_ERROR"
