"""Tests for text normalization: Base64, PDF, documents, email and transcripts."""

import base64
import io

import pytest
from docx import Document
from pypdf import PdfWriter

from pv_agent.core.exceptions import ParseError
from pv_agent.pipeline.parsing.document_parser import (
    DocumentSource,
    EmailSource,
    MimeEmailSource,
    PdfSource,
    TranscriptSource,
    decode_base64,
    normalize,
    parse_document_bytes,
    parse_email_bytes,
    parse_pdf_bytes,
    strip_html_tags,
)

PLAIN_EMAIL = (
    b"From: Alice Moreau <alice@clinic.example>\r\n"
    b"To: safety@pharma.example\r\n"
    b"Subject: Suspected reaction\r\n"
    b"Date: Mon, 01 Jan 2024 10:00:00 +0000\r\n"
    b"Content-Type: text/plain; charset=utf-8\r\n"
    b"\r\n"
    b"  Patient developed a rash after Amoxicillin.  \r\n"
)

MULTIPART_EMAIL = (
    b"From: nurse@hospital.example\n"
    b"Subject: AE report\n"
    b"MIME-Version: 1.0\n"
    b'Content-Type: multipart/mixed; boundary="outer"\n'
    b"\n"
    b"--outer\n"
    b'Content-Type: multipart/alternative; boundary="inner"\n'
    b"\n"
    b"--inner\n"
    b"Content-Type: text/plain\n"
    b"\n"
    b"Plain part\n"
    b"--inner\n"
    b"Content-Type: text/html\n"
    b"\n"
    b"<html><body><p>Severe   <b>dizziness</b></p></body></html>\n"
    b"--inner--\n"
    b"--outer\n"
    b"Content-Type: application/octet-stream\n"
    b"Content-Transfer-Encoding: base64\n"
    b"\n"
    b"AAEC\n"
    b"--outer--\n"
)


def _blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def _docx(*paragraphs) -> bytes:
    document = Document()
    for text in paragraphs:
        document.add_paragraph(text)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


class TestBase64:
    """Base64 decoding."""

    def test_decodes_with_line_breaks(self):
        encoded = base64.b64encode(b"hello world").decode()
        wrapped = encoded[:4] + "\n" + encoded[4:]

        assert decode_base64(wrapped) == b"hello world"

    @pytest.mark.parametrize("bad", ["not base64!!", "abc", "@@@@"])
    def test_malformed_raises_parse_error(self, bad):
        with pytest.raises(ParseError, match="Invalid Base64 content"):
            decode_base64(bad)


class TestHtmlStripping:
    """Tag removal and whitespace collapsing."""

    def test_removes_tags_and_collapses_whitespace(self):
        html = "<div>\n  <p>Severe\t rash</p>\n<br/>on <b>arms</b></div>"

        assert strip_html_tags(html) == "Severe rash on arms"

    def test_no_tags_left(self):
        result = strip_html_tags("<html><head><title>T</title></head><body>x</body></html>")

        assert "<" not in result and ">" not in result
        assert "  " not in result

    def test_none_is_empty(self):
        assert strip_html_tags(None) == ""


class TestPdf:
    """PDF text extraction."""

    def test_blank_pdf_parses(self):
        assert parse_pdf_bytes(_blank_pdf()).strip() == ""

    def test_garbage_raises_parse_error(self):
        with pytest.raises(ParseError, match="Failed to parse PDF"):
            parse_pdf_bytes(b"this is not a pdf")

    def test_normalize_tags_clinical_document(self):
        normalized = normalize(PdfSource(_blank_pdf()))

        assert normalized.source_type == "clinical_document"


class TestDocumentSniffing:
    """Generic document parsing by content."""

    def test_plain_text(self):
        assert parse_document_bytes("Patient reported hives.".encode()) == "Patient reported hives."

    def test_html(self):
        data = b"<!DOCTYPE html><html><body><p>Hives after <i>ibuprofen</i></p></body></html>"

        assert parse_document_bytes(data) == "Hives after ibuprofen"

    def test_word_document(self):
        text = parse_document_bytes(_docx("Drug: Ibuprofen", "Event: hives"), "report.docx")

        assert "Drug: Ibuprofen" in text
        assert "Event: hives" in text

    def test_email_file(self):
        text = parse_document_bytes(PLAIN_EMAIL)

        assert text.startswith("Email From: Alice Moreau <alice@clinic.example>")
        assert "rash after Amoxicillin" in text

    def test_pdf_delegates_to_pdf_parser(self):
        assert parse_document_bytes(_blank_pdf()).strip() == ""

    def test_legacy_word_rejected(self):
        with pytest.raises(ParseError):
            parse_document_bytes(bytes.fromhex("D0CF11E0A1B11AE1") + b"\x00" * 64)

    def test_binary_rejected(self):
        with pytest.raises(ParseError):
            parse_document_bytes(b"\x89PNG\r\n\x1a\n\x00\x00\x00")

    def test_non_word_zip_rejected(self):
        import zipfile

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            archive.writestr("data.csv", "a,b")
        with pytest.raises(ParseError):
            parse_document_bytes(buffer.getvalue())


class TestEmail:
    """MIME parsing."""

    def test_plain_text_body_is_returned_trimmed(self):
        parsed = parse_email_bytes(PLAIN_EMAIL)

        assert parsed["body"] == "Patient developed a rash after Amoxicillin."
        assert parsed["subject"] == "Suspected reaction"
        assert parsed["from"] == "Alice Moreau <alice@clinic.example>"
        assert parsed["sentDate"] is not None

    def test_multipart_walks_nested_parts(self):
        parsed = parse_email_bytes(MULTIPART_EMAIL)

        assert "Plain part" in parsed["body"]
        assert "Severe dizziness" in parsed["body"]
        assert "<" not in parsed["body"]

    def test_single_part_html(self):
        raw = b"From: a@b.example\nSubject: s\nContent-Type: text/html\n\n<p>Rash  on <b>face</b></p>\n"

        assert parse_email_bytes(raw)["body"] == "Rash on face"

    def test_missing_sender_raises(self):
        with pytest.raises(ParseError):
            parse_email_bytes(b"Subject: no sender\n\nbody\n")

    def test_subject_body_pair_skips_mime(self):
        normalized = normalize(EmailSource(subject="AE", body="Hives", sender="doc@x.example"))

        assert normalized.source_type == "email"
        assert normalized.text == "Email From: doc@x.example\nSubject: AE\n\nBody:\nHives"

    def test_default_sender(self):
        normalized = normalize(EmailSource(subject="AE", body="Hives"))

        assert normalized.text.startswith("Email From: Unknown\n")

    def test_mime_source(self):
        normalized = normalize(MimeEmailSource(PLAIN_EMAIL))

        assert "Subject: Suspected reaction" in normalized.text


class TestTranscript:
    """Call transcripts."""

    def test_format(self):
        normalized = normalize(TranscriptSource("I felt dizzy.", "Jane, patient"))

        assert normalized.source_type == "telephony_transcript"
        assert normalized.text == "Call From: Jane, patient\n\nTranscript:\nI felt dizzy."

    def test_default_caller(self):
        normalized = normalize(TranscriptSource("I felt dizzy."))

        assert normalized.text.startswith("Call From: Unknown caller")

    def test_unsupported_source(self):
        with pytest.raises(TypeError):
            normalize("raw text")

    def test_document_source(self):
        normalized = normalize(DocumentSource(b"Plain report", "r.txt"))

        assert normalized.text == "Plain report"
