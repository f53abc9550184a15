"""Turn uploaded documents and web pages into plain text for profile analysis."""

from __future__ import annotations

import io
import ipaddress
import logging
import socket
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urljoin, urlparse

import httpx
import pdfplumber
from bs4 import BeautifulSoup
from docx import Document

from mailcraft.config import settings

logger = logging.getLogger(__name__)

SUPPORTED_EXTENSIONS = ("txt", "md", "csv", "pdf", "docx")
SOURCE_SEPARATOR = "\n\n---\n\n"

_TEXT_EXTENSIONS = {"txt", "md", "csv"}
_STRIP_TAGS = ["script", "style", "nav", "footer", "header", "aside", "form", "noscript", "iframe"]
_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


class ExtractionError(Exception):
    def __init__(self, message: str, *, status_code: int = 422) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


@dataclass
class ExtractedSource:
    name: str
    text: str
    url: Optional[str] = None

    @property
    def characters(self) -> int:
        return len(self.text)


def _truncate(text: str) -> str:
    limit = settings.EXTRACTION_MAX_CHARS
    if limit and len(text) > limit:
        return text[:limit]
    return text


def _file_extension(filename: str) -> str:
    if "." not in filename:
        return ""
    return filename.rsplit(".", 1)[-1].lower()


def _extract_pdf(content: bytes) -> str:
    parts: list[str] = []
    with pdfplumber.open(io.BytesIO(content)) as pdf:
        for page in pdf.pages:
            page_text = page.extract_text()
            if page_text:
                parts.append(page_text)
    return "\n\n".join(parts)


def _extract_docx(content: bytes) -> str:
    doc = Document(io.BytesIO(content))
    lines = [paragraph.text for paragraph in doc.paragraphs if paragraph.text.strip()]
    for table in doc.tables:
        for row in table.rows:
            cells = [cell.text.strip() for cell in row.cells if cell.text.strip()]
            if cells:
                lines.append(" ".join(cells))
    return "\n".join(lines)


def extract_text_from_file(filename: str, content: bytes) -> ExtractedSource:
    extension = _file_extension(filename)
    if extension not in SUPPORTED_EXTENSIONS:
        raise ExtractionError(
            f"Unsupported file type '.{extension}'. Upload one of: {', '.join(SUPPORTED_EXTENSIONS)}.",
            status_code=415,
        )
    if len(content) > settings.EXTRACTION_MAX_UPLOAD_BYTES:
        raise ExtractionError("File is too large.", status_code=413)

    try:
        if extension in _TEXT_EXTENSIONS:
            text = content.decode("utf-8", errors="replace")
        elif extension == "pdf":
            text = _extract_pdf(content)
        else:
            text = _extract_docx(content)
    except Exception as exc:
        logger.exception("File extraction failed", extra={"filename": filename, "extension": extension})
        raise ExtractionError(f"Could not read {filename}.") from exc

    text = text.strip()
    if not text:
        raise ExtractionError(f"No readable text found in {filename}.")
    return ExtractedSource(name=filename, text=_truncate(text))


def normalize_url(url: str) -> str:
    url = (url or "").strip()
    if not url:
        raise ExtractionError("URL is required.", status_code=400)
    if "://" not in url:
        url = f"https://{url}"
    parsed = urlparse(url)
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        raise ExtractionError("Only http(s) URLs can be fetched.")
    return url


def _page_text(html: str) -> tuple[str, str]:
    soup = BeautifulSoup(html, "html.parser")
    title = soup.title.get_text(strip=True) if soup.title else ""
    for element in soup(_STRIP_TAGS):
        element.decompose()
    root = soup.body or soup
    lines = [line.strip() for line in root.get_text(separator="\n").splitlines()]
    return title, "\n".join(line for line in lines if line)


def _assert_public_hostname(hostname: str) -> None:
    try:
        infos = socket.getaddrinfo(hostname, None)
    except socket.gaierror as exc:
        raise ExtractionError(f"Could not resolve {hostname}.") from exc
    for _, _, _, _, sockaddr in infos:
        ip = ipaddress.ip_address(sockaddr[0])
        if ip.is_private or ip.is_loopback or ip.is_reserved or ip.is_link_local or ip.is_multicast:
            logger.warning("Blocked URL fetch to private network", extra={"hostname": hostname, "ip": str(ip)})
            raise ExtractionError(f"{hostname} is not a public address.")


def _fetch_html(url: str) -> str:
    """GET a public page, checking every redirect hop and capping the body size."""
    timeout = httpx.Timeout(settings.URL_FETCH_TIMEOUT_SECONDS, read=settings.URL_FETCH_TIMEOUT_SECONDS)
    headers = {"User-Agent": _USER_AGENT, "Accept": "text/html,*/*;q=0.8"}
    max_bytes = settings.URL_FETCH_MAX_BYTES

    for _ in range(settings.URL_FETCH_MAX_REDIRECTS + 1):
        parsed = urlparse(url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            raise ExtractionError("Only http(s) URLs can be fetched.")
        _assert_public_hostname(parsed.hostname)

        with httpx.stream("GET", url, headers=headers, follow_redirects=False, timeout=timeout) as resp:
            if resp.is_redirect:
                location = resp.headers.get("location")
                if not location:
                    raise ExtractionError(f"Could not fetch {url}.", status_code=502)
                url = urljoin(url, location)
                continue
            resp.raise_for_status()
            data = bytearray()
            for chunk in resp.iter_bytes():
                data.extend(chunk)
                if len(data) > max_bytes:
                    raise ExtractionError(f"Page at {url} is too large.", status_code=413)
            return bytes(data).decode(resp.encoding or "utf-8", errors="replace")

    raise ExtractionError(f"Too many redirects fetching {url}.", status_code=502)


def extract_text_from_url(url: str) -> ExtractedSource:
    url = normalize_url(url)
    try:
        html = _fetch_html(url)
    except httpx.HTTPError as exc:
        logger.warning("URL fetch failed", extra={"url": url, "error": str(exc)})
        raise ExtractionError(f"Could not fetch {url}.", status_code=502) from exc

    title, text = _page_text(html)
    if not text:
        raise ExtractionError(f"No readable text found at {url}.")
    name = title or urlparse(url).hostname or url
    return ExtractedSource(name=name, text=_truncate(text), url=url)


def combine_sources(texts: Iterable[str]) -> str:
    """Join ready sources into one analysis input, skipping empty ones."""
    return SOURCE_SEPARATOR.join(text.strip() for text in texts if text and text.strip())
