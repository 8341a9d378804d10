"""Fixtures for core tests: small documents built in memory."""

import io

import docx
import fitz
import pytest


@pytest.fixture
def pdf_bytes() -> bytes:
    """Two-page PDF with selectable text."""
    doc = fitz.open()
    for content in (
        "Worksheet page one. What is one half plus one quarter?",
        "Worksheet page two. Convert three quarters to a decimal number.",
    ):
        page = doc.new_page()
        page.insert_text((72, 72), content)
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def blank_pdf_bytes() -> bytes:
    """PDF whose pages carry no text, as a scan would."""
    doc = fitz.open()
    for _ in range(3):
        doc.new_page()
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def docx_bytes() -> bytes:
    """DOCX with paragraphs and a table."""
    document = docx.Document()
    document.add_paragraph("Fractions worksheet")
    document.add_paragraph("1. What is 1/2 + 1/4?")
    table = document.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Question"
    table.cell(0, 1).text = "Answer"
    table.cell(1, 0).text = "1"
    table.cell(1, 1).text = "3/4"
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()
