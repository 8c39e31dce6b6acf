from .documents import DocumentStore, EMPTY_DOCUMENT, parse_document, validate_document_name

__all__ = ["DocumentStore", "EMPTY_DOCUMENT", "parse_document", "validate_document_name"]
