from fastapi import HTTPException


class DocuChatError(Exception):
    """Base class for errors raised by the ingestion and query pipelines."""
    status_code = 500


class NotFoundError(DocuChatError):
    """Document, conversation, agent or context does not exist."""
    status_code = 404


class StorageError(DocuChatError):
    """The stored file could not be downloaded."""
    status_code = 502


class ExtractionError(DocuChatError):
    """No text could be recovered from the file."""
    status_code = 422


class EmbeddingError(DocuChatError):
    """The embedding service failed for a single input."""
    status_code = 502


class UpstreamModelError(DocuChatError):
    """The generative or embedding service answered with a non-2xx status."""
    status_code = 502


class ConfigurationError(DocuChatError):
    """Missing credentials or a deployment mismatch (e.g. embedding dimension)."""
    status_code = 502


def http_error(exc: DocuChatError) -> HTTPException:
    """Translate a pipeline error into the HTTPException routers raise."""
    if isinstance(exc, ConfigurationError):
        # Configuration problems are not the caller's business.
        return HTTPException(
            status_code=exc.status_code,
            detail="Service is temporarily unavailable due to a server configuration problem.",
        )
    return HTTPException(status_code=exc.status_code, detail=str(exc) or exc.__class__.__name__)
