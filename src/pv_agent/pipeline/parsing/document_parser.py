"""
Text normalization for incoming adverse event reports.

Turns PDF bytes, generic office/text documents, MIME email and call transcripts
into a NormalizedText the extraction step can embed in its prompt. All functions
here are pure transforms over their inputs; undecodable input raises ParseError.
"""

import base64
import binascii
import email
import email.policy
import io
import logging
import re
import zipfile
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Dict, Optional, Union

from docx import Document
from pypdf import PdfReader

from pv_agent.core.exceptions import ParseError

logger = logging.getLogger(__name__)

SOURCE_CLINICAL_DOCUMENT = "clinical_document"
SOURCE_EMAIL = "email"
SOURCE_TELEPHONY_TRANSCRIPT = "telephony_transcript"

DEFAULT_EMAIL_SENDER = "Unknown"
DEFAULT_CALLER_INFO = "Unknown caller"

_PDF_MAGIC = b"%PDF"
_ZIP_MAGIC = b"PK\x03\x04"
_OLE_MAGIC = bytes.fromhex("D0CF11E0A1B11AE1")
_HTML_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")
_RFC822_HEADER = re.compile(r"^(From|Subject|Date|To|Received|Return-Path|Message-ID|MIME-Version):", re.I | re.M)


@dataclass(frozen=True)
class NormalizedText:
    text: str
    source_type: str    # clinical_document | email | telephony_transcript


# ---- Raw sources ----

@dataclass
class PdfSource:
    data: bytes


@dataclass
class DocumentSource:
    data: bytes
    file_name: Optional[str] = None


@dataclass
class EmailSource:
    """Subject/body pair that is already plain text; no MIME parsing needed."""

    subject: str
    body: str
    sender: Optional[str] = None


@dataclass
class MimeEmailSource:
    data: bytes


@dataclass
class TranscriptSource:
    transcript: str
    caller_info: Optional[str] = None


RawSource = Union[PdfSource, DocumentSource, EmailSource, MimeEmailSource, TranscriptSource]


def decode_base64(content: str) -> bytes:
    """Decode standard Base64, ignoring embedded whitespace and line breaks."""
    compact = "".join((content or "").split())
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        logger.error(f"Invalid Base64 content: {e}")
        raise ParseError(f"Invalid Base64 content: {e}") from e


def strip_html_tags(html: Optional[str]) -> str:
    """Replace every <...> tag with a space and collapse whitespace runs."""
    if html is None:
        return ""
    return _WHITESPACE.sub(" ", _HTML_TAG.sub(" ", html)).strip()


def parse_pdf_bytes(data: bytes) -> str:
    """Extract the text of all pages, in order, as one string."""
    logger.info(f"Parsing PDF file, size: {len(data)} bytes")
    try:
        reader = PdfReader(io.BytesIO(data))
        text = "\n".join(page.extract_text() or "" for page in reader.pages)
    except Exception as e:
        logger.error(f"Error parsing PDF file: {e}")
        raise ParseError(f"Failed to parse PDF: {e}") from e

    logger.info(f"Successfully extracted {len(text)} characters from PDF")
    return text


def _parse_docx_bytes(data: bytes) -> str:
    document = Document(io.BytesIO(data))
    lines = [p.text for p in document.paragraphs if p.text.strip()]
    for table in document.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                lines.append(" | ".join(cells))
    return "\n".join(lines)


def _is_docx(data: bytes) -> bool:
    try:
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            return "word/document.xml" in archive.namelist()
    except zipfile.BadZipFile:
        return False


def parse_document_bytes(data: bytes, file_name: Optional[str] = None) -> str:
    """
    Extract text from a document of unknown type by sniffing its content.

    Recognized: PDF, Word (.docx), RFC 822 email, HTML and plain UTF-8 text.
    The file name is only used for logging; the bytes decide the format.
    """
    logger.info(f"Parsing document {file_name or '<unnamed>'}, size: {len(data)} bytes")

    if data.startswith(_PDF_MAGIC):
        return parse_pdf_bytes(data)

    if data.startswith(_ZIP_MAGIC):
        if not _is_docx(data):
            raise ParseError("Failed to parse document: unsupported archive format")
        try:
            text = _parse_docx_bytes(data)
        except Exception as e:
            logger.error(f"Error parsing Word document: {e}")
            raise ParseError(f"Failed to parse document: {e}") from e
        logger.info(f"Successfully extracted {len(text)} characters from Word document")
        return text

    if data.startswith(_OLE_MAGIC):
        raise ParseError("Failed to parse document: legacy binary Office formats are not supported")

    if b"\x00" in data:
        raise ParseError("Failed to parse document: unrecognized binary content")

    try:
        decoded = data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ParseError(f"Failed to parse document: {e}") from e

    head = decoded.lstrip()[:2048]
    if _RFC822_HEADER.match(head):
        parsed = parse_email_bytes(data)
        return format_email_text(parsed["from"], parsed["subject"], parsed["body"])
    if head[:1] == "<" and re.search(r"<(html|body|p|div|!doctype)\b", head, re.I):
        return strip_html_tags(decoded)
    return decoded


# ---- Email ----

def _part_text(part: EmailMessage) -> str:
    try:
        return part.get_content()
    except (LookupError, ValueError):
        payload = part.get_payload(decode=True) or b""
        return payload.decode(part.get_content_charset() or "utf-8", errors="replace")


def _multipart_text(message: EmailMessage) -> str:
    chunks = []
    for part in message.iter_parts():
        content_type = part.get_content_type()
        if content_type == "text/plain":
            chunks.append(_part_text(part))
        elif content_type == "text/html":
            chunks.append(strip_html_tags(_part_text(part)))
        elif part.is_multipart():
            chunks.append(_multipart_text(part))
    return "\n".join(chunk for chunk in chunks if chunk)


def _email_body(message: EmailMessage) -> str:
    if message.is_multipart():
        return _multipart_text(message)
    if message.get_content_type() == "text/html":
        return strip_html_tags(_part_text(message))
    return _part_text(message)


def parse_email_bytes(data: bytes) -> Dict[str, Optional[str]]:
    """
    Parse a raw RFC 822 message.

    Returns a dict with subject, from, sentDate and body. The body concatenates
    text/plain parts verbatim and text/html parts with tags stripped, walking
    nested multiparts; attachments are ignored.
    """
    logger.info(f"Parsing email, size: {len(data)} bytes")
    try:
        message = email.message_from_bytes(data, policy=email.policy.default)
        sender = message.get("From")
        if not sender:
            raise ParseError("Failed to parse email: missing From header")
        subject = message.get("Subject")
        sent_date = message.get("Date")
        body = _email_body(message).strip()
    except ParseError:
        raise
    except Exception as e:
        logger.error(f"Error parsing email: {e}")
        raise ParseError(f"Failed to parse email: {e}") from e

    email_data = {
        "subject": str(subject) if subject is not None else None,
        "from": str(sender),
        "sentDate": str(sent_date) if sent_date is not None else None,
        "body": body,
    }
    logger.info(f"Successfully parsed email with subject: {email_data['subject']}")
    return email_data


def format_email_text(sender: Optional[str], subject: Optional[str], body: Optional[str]) -> str:
    return f"Email From: {sender or DEFAULT_EMAIL_SENDER}\nSubject: {subject or ''}\n\nBody:\n{body or ''}"


def format_transcript_text(transcript: str, caller_info: Optional[str]) -> str:
    return f"Call From: {caller_info or DEFAULT_CALLER_INFO}\n\nTranscript:\n{transcript}"


def normalize(source: RawSource) -> NormalizedText:
    """Convert any supported raw source into prompt-ready plain text."""
    if isinstance(source, PdfSource):
        return NormalizedText(parse_pdf_bytes(source.data), SOURCE_CLINICAL_DOCUMENT)
    if isinstance(source, DocumentSource):
        return NormalizedText(parse_document_bytes(source.data, source.file_name), SOURCE_CLINICAL_DOCUMENT)
    if isinstance(source, EmailSource):
        return NormalizedText(format_email_text(source.sender, source.subject, source.body), SOURCE_EMAIL)
    if isinstance(source, MimeEmailSource):
        parsed = parse_email_bytes(source.data)
        return NormalizedText(format_email_text(parsed["from"], parsed["subject"], parsed["body"]), SOURCE_EMAIL)
    if isinstance(source, TranscriptSource):
        return NormalizedText(format_transcript_text(source.transcript, source.caller_info), SOURCE_TELEPHONY_TRANSCRIPT)
    raise TypeError(f"Unsupported source type: {type(source).__name__}")
