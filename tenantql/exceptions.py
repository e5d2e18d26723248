"""Custom exceptions for TenantQL with enhanced error messages."""

from typing import Optional, Dict, Any, List
import uuid


class TenantQLError(Exception):
    """Base exception for all TenantQL errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
        suggestions: Optional[List[str]] = None,
        correlation_id: Optional[str] = None
    ):
        """
        Initialize TenantQL error with rich context.

        Args:
            message: The error message
            error_code: Optional error code for categorization
            context: Additional context about the error
            suggestions: List of suggestions to fix the error
            correlation_id: ID to track this error across logs
        """
        super().__init__(message)
        self.message = message
        self.error_code = error_code or "TENANTQL_ERROR"
        self.context = context or {}
        self.suggestions = suggestions or []
        self.correlation_id = correlation_id or str(uuid.uuid4())

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for JSON serialization."""
        return {
            "error": self.error_code,
            "message": self.message,
            "context": self.context,
            "suggestions": self.suggestions,
            "correlation_id": self.correlation_id
        }

    def __str__(self) -> str:
        """Return formatted error message."""
        parts = [f"[{self.error_code}] {self.message}"]

        if self.context:
            parts.append(f"Context: {self.context}")

        if self.suggestions:
            parts.append("Suggestions:")
            for i, suggestion in enumerate(self.suggestions, 1):
                parts.append(f"  {i}. {suggestion}")

        parts.append(f"Correlation ID: {self.correlation_id}")

        return "\n".join(parts)


class TenantNotFoundError(TenantQLError):
    """No tenant could be resolved, or the registry does not know it."""

    def __init__(
        self,
        message: str = "Tenant not found",
        tenant_id: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if tenant_id is not None:
            context["tenant"] = tenant_id

        suggestions = kwargs.pop("suggestions", [])
        if not suggestions:
            suggestions = [
                "Check the tenant id sent with the request",
                "Use 'tenantql tenants' to list the registered tenants"
            ]

        super().__init__(
            message=message,
            error_code="TENANT_NOT_FOUND",
            context=context,
            suggestions=suggestions,
            **kwargs
        )
        self.tenant_id = tenant_id


class SchemaBuildError(TenantQLError):
    """Error while synthesizing a GraphQL schema from table metadata."""

    def __init__(
        self,
        message: str,
        tenant_id: Optional[str] = None,
        table_name: Optional[str] = None,
        column_name: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if tenant_id is not None:
            context["tenant"] = tenant_id
        if table_name:
            context["table"] = table_name
        if column_name:
            context["column"] = column_name

        super().__init__(
            message=message,
            error_code="SCHEMA_BUILD_ERROR",
            context=context,
            **kwargs
        )


class QueryError(TenantQLError):
    """Error raised by the query executor behind a resolver."""

    def __init__(
        self,
        message: str,
        tenant_id: Optional[str] = None,
        table_name: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs
    ):
        context = kwargs.pop("context", {})
        if tenant_id is not None:
            context["tenant"] = tenant_id
        if table_name:
            context["table"] = table_name
        if operation:
            context["operation"] = operation

        super().__init__(
            message=message,
            error_code="QUERY_ERROR",
            context=context,
            **kwargs
        )
