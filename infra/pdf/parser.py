import os
import pdfplumber


def parse_pdf_text(path: str, max_pages: int | None = None) -> str:
    if not os.path.isfile(path):
        raise FileNotFoundError(f"File not found: {path}")
    text_parts = []
    with pdfplumber.open(path) as pdf:
        pages = pdf.pages if max_pages is None else pdf.pages[:max_pages]
        for page in pages:
            t = page.extract_text() or ""
            text_parts.append(t)
    return "\n".join(text_parts)


class PdfTextExtractor:
    def extract(self, storage_ref: str) -> str:
        return parse_pdf_text(storage_ref)
