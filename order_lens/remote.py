"""Download an order sheet from a public share link."""

from __future__ import annotations

import io
import re
import zipfile
from pathlib import Path
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import requests

from order_lens.loader import ALL_FORMATS, load_sheet_bytes

DEFAULT_MAX_FILE_MB = 100
XLS_MAGIC = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1"

CONTENT_TYPE_EXTENSIONS = {
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ".xlsx",
    "application/vnd.ms-excel.sheet.macroenabled.12": ".xlsm",
    "application/vnd.ms-excel": ".xls",
    "text/csv": ".csv",
    "text/tab-separated-values": ".tsv",
}


def normalize_public_url(raw_url: str) -> str:
    """Rewrite share links (Google Sheets/Drive, Dropbox, OneDrive, GitHub) to direct downloads."""
    parsed = urlparse(raw_url.strip())
    if not parsed.scheme:
        raise ValueError("URL must start with http:// or https://")

    host = parsed.netloc.lower()
    path = parsed.path
    query = parse_qs(parsed.query, keep_blank_values=True)

    if host == "github.com" and "/blob/" in path:
        owner_repo, blob_path = path.lstrip("/").split("/blob/", 1)
        owner, repo = owner_repo.split("/", 1)
        branch, file_path = blob_path.split("/", 1)
        return f"https://raw.githubusercontent.com/{owner}/{repo}/{branch}/{file_path}"

    if "dropbox.com" in host:
        query["dl"] = ["1"]
        return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))

    if host in {"drive.google.com", "docs.google.com"}:
        sheet_match = re.search(r"/spreadsheets/d/([^/]+)", path)
        if sheet_match:
            gid = query.get("gid", ["0"])[0]
            return (
                f"https://docs.google.com/spreadsheets/d/{sheet_match.group(1)}/export"
                f"?format=xlsx&gid={gid}"
            )
        match = re.search(r"/file/d/([^/]+)", path)
        if match:
            return f"https://drive.google.com/uc?export=download&id={match.group(1)}"
        if "id" in query:
            return f"https://drive.google.com/uc?export=download&id={query['id'][0]}"

    if host.endswith("1drv.ms") or "onedrive.live.com" in host:
        query["download"] = ["1"]
        return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))

    return raw_url.strip()


def remote_filename(raw_url: str, response: requests.Response) -> str:
    content_disposition = response.headers.get("content-disposition", "")
    match = re.search(r'filename="([^"]+)"|filename=([^;]+)', content_disposition, re.I)
    if match:
        for group in match.groups():
            if group:
                return Path(group.strip().strip('"')).name
    redirected = response.url or raw_url
    return Path(urlparse(redirected).path).name or "downloaded_orders"


def infer_extension(raw_url: str, response: requests.Response, filename: str, content: bytes) -> str:
    ext = Path(filename).suffix.lower()
    if ext in ALL_FORMATS:
        return ext

    content_type = response.headers.get("content-type", "").split(";")[0].strip().lower()
    if content_type in CONTENT_TYPE_EXTENSIONS:
        return CONTENT_TYPE_EXTENSIONS[content_type]

    parsed = urlparse(raw_url)
    if "docs.google.com" in parsed.netloc.lower() and "/spreadsheets/" in parsed.path:
        return ".xlsx"

    if content.startswith(b"PK"):
        try:
            with zipfile.ZipFile(io.BytesIO(content)) as zf:
                names = set(zf.namelist())
                if "xl/vbaProject.bin" in names:
                    return ".xlsm"
                if "xl/workbook.xml" in names:
                    return ".xlsx"
        except zipfile.BadZipFile:
            pass

    if content[:8] == XLS_MAGIC:
        return ".xls"

    sample = content[:8192].decode("utf-8", errors="replace")
    lines = [line for line in sample.splitlines() if line.strip()][:5]
    if any("\t" in line for line in lines):
        return ".tsv"
    if any(delim in line for line in lines for delim in (",", ";", "|")):
        return ".csv"
    return ext


def download(url: str, max_file_mb: int = DEFAULT_MAX_FILE_MB) -> tuple[requests.Response, bytes]:
    """Stream a URL into memory, refusing anything over max_file_mb."""
    limit = max_file_mb * 1024 * 1024
    response = requests.get(url, timeout=60, allow_redirects=True, stream=True)
    try:
        response.raise_for_status()
        content_length = response.headers.get("Content-Length")
        if content_length and content_length.isdigit() and int(content_length) > limit:
            raise ValueError(f"Remote file is larger than {max_file_mb} MB.")

        chunks: list[bytes] = []
        downloaded = 0
        for chunk in response.iter_content(chunk_size=1024 * 1024):
            if not chunk:
                continue
            downloaded += len(chunk)
            if downloaded > limit:
                raise ValueError(f"Remote file is larger than {max_file_mb} MB.")
            chunks.append(chunk)
    finally:
        response.close()
    return response, b"".join(chunks)


def fetch_remote_sheet(raw_url: str, max_file_mb: int = DEFAULT_MAX_FILE_MB) -> dict:
    """
    Download a public sheet and load it like a local file.

    The returned dict is load_sheet_bytes' result plus "name" and "source_url".
    """
    url = normalize_public_url(raw_url)
    response, content = download(url, max_file_mb=max_file_mb)

    filename = remote_filename(raw_url, response)
    ext = infer_extension(raw_url, response, filename, content)
    if ext not in ALL_FORMATS:
        raise ValueError(f"Unsupported remote file type: {ext or '[missing extension]'}")
    if not Path(filename).suffix:
        filename = f"{filename}{ext}"

    loaded = load_sheet_bytes(content, ext)
    loaded["name"] = filename
    loaded["source_url"] = url
    return loaded
