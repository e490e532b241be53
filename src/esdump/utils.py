import urllib.parse
from dataclasses import dataclass, replace
from typing import Optional

STREAM_MARKER = '$'

ELASTIC = 'elasticsearch'
FILE = 'file'
STREAM = 'stream'


@dataclass(frozen=True)
class Endpoint:
    kind: str
    # Base URL for the store (credentials stripped), a filesystem path, or "$"
    location: str
    index: Optional[str] = None
    doc_type: Optional[str] = None
    username: Optional[str] = None
    password: Optional[str] = None

    def with_index(self, index: str, doc_type: Optional[str] = None) -> "Endpoint":
        return replace(self, index=index, doc_type=doc_type)

    def __str__(self):
        if self.kind != ELASTIC:
            return self.location
        return "/".join(p for p in (self.location, self.index, self.doc_type) if p)


def split_container_path(path: str):
    """Split "/index/type" (either part optional) into (index, doc_type)"""
    parts = [urllib.parse.unquote(p) for p in path.split('/') if p]
    index = parts[0] if parts else None
    doc_type = parts[1] if len(parts) > 1 else None
    return index, doc_type


def parse_endpoint(value: str, container_path: Optional[str] = None) -> Endpoint:
    """
    Turn a command-line style address into an Endpoint.
      $                                 -> stdin/stdout
      http(s)://[user:pass@]host[:port][/index[/type]] -> store
      anything else                     -> file path
    ``container_path`` ("/index/type") is appended to a store URL's own path.
    """
    if value == STREAM_MARKER:
        return Endpoint(kind=STREAM, location=STREAM_MARKER)
    if not (value.startswith("http://") or value.startswith("https://")):
        return Endpoint(kind=FILE, location=value)

    url = urllib.parse.urlsplit(value)
    netloc = url.hostname or ""
    if url.port:
        netloc = f"{netloc}:{url.port}"
    path = url.path
    if container_path:
        path = f"{path.rstrip('/')}/{container_path.lstrip('/')}"
    index, doc_type = split_container_path(path)
    return Endpoint(
        kind=ELASTIC,
        location=f"{url.scheme}://{netloc}",
        index=index,
        doc_type=doc_type,
        username=urllib.parse.unquote(url.username) if url.username else None,
        password=urllib.parse.unquote(url.password) if url.password else None)
