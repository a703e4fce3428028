"""
Text normalization for PDF, Word, plain text, HTML, MIME email and call transcripts.
"""

from .document_parser import (
    DocumentSource,
    EmailSource,
    MimeEmailSource,
    NormalizedText,
    PdfSource,
    TranscriptSource,
    decode_base64,
    normalize,
    parse_document_bytes,
    parse_email_bytes,
    parse_pdf_bytes,
    strip_html_tags,
)

__all__ = [
    'DocumentSource',
    'EmailSource',
    'MimeEmailSource',
    'NormalizedText',
    'PdfSource',
    'TranscriptSource',
    'decode_base64',
    'normalize',
    'parse_document_bytes',
    'parse_email_bytes',
    'parse_pdf_bytes',
    'strip_html_tags',
]
