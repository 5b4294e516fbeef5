import base64
import hashlib
import json
import logging
import re
from typing import Optional
from urllib.parse import urlencode

import requests

from uploadkit.core.config import REMOTE_TIMEOUT
from uploadkit.domain.errors import (
    ConfigError, DestinationExistsError, InvalidUrlError, RemoteFileError, SizeExceededError,
)
from uploadkit.infrastructure.local_storage import LocalStorage
from uploadkit.infrastructure.mime import get_extension_by_type

logger = logging.getLogger(__name__)

READ_CHUNK = 8192

DEFAULT_HEADERS = {
    "accept": "*/*",
    "accept-encoding": "gzip",
    "user-agent": "uploadkit RemoteFile",
}

_URL_PATTERN = re.compile(r"^\w+://.+")
_MIME_PATTERN = re.compile(r"([^/\s;]+/[^;\s]+)")


class RemoteFile:
    """
    Lector de archivos remotos por HTTP.

    El stream se abre una vez (open()) y se lee de forma secuencial;
    read_all() vuelve a pedir el recurso si ya se consumió parte del stream.
    """

    def __init__(self, url: str, method: str = "GET", headers: Optional[dict] = None,
                 body=None, timeout: float = REMOTE_TIMEOUT, gzip: bool = True,
                 storage: Optional[LocalStorage] = None):
        if not _URL_PATTERN.match(url or ""):
            raise InvalidUrlError(f"URL inválida: '{url}'")

        self.url = url
        self.method = method.upper()
        self.headers = dict(DEFAULT_HEADERS)
        self.headers.update({k.lower(): v for k, v in (headers or {}).items()})
        if not gzip:
            self.headers["accept-encoding"] = "identity"
        self.body = body
        self.timeout = timeout
        self.gzip = gzip
        self.storage = storage or LocalStorage()

        self.response: Optional[requests.Response] = None
        self.status: Optional[int] = None
        self.response_headers: dict = {}
        self.content_type: Optional[str] = None
        self.content_length: Optional[int] = None
        self.mime: Optional[str] = None
        self.extension: Optional[str] = None

        self._buffer = b""
        self._consumed = False
        self._content: Optional[bytes] = None

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _prepare_body(self):
        if self.body is None:
            return None

        content_type = self.headers.setdefault("content-type", "application/x-www-form-urlencoded")

        # Un cuerpo convierte un GET en POST
        if self.method == "GET":
            self.method = "POST"

        if re.search(r"[/+]json", content_type):
            return json.dumps(self.body)
        if isinstance(self.body, (dict, list)):
            return urlencode(self.body, doseq=True)
        return self.body

    def open(self) -> "RemoteFile":
        data = self._prepare_body()
        try:
            response = requests.request(
                self.method,
                self.url,
                headers=self.headers,
                data=data,
                timeout=self.timeout,
                stream=True,
            )
        except requests.exceptions.RequestException as e:
            logger.error(f"Error de conexión con {self.url}: {str(e)}")
            raise RemoteFileError(f"Error de conexión con {self.url}: {str(e)}")

        self.response = response
        self.status = response.status_code
        self.response_headers = {k.lower(): v for k, v in sorted(response.headers.items())}

        if self.status >= 400:
            logger.error(f"Error HTTP en {self.url}: {self.status} {response.reason}")
            response.close()
            raise RemoteFileError(f"HTTP {self.status} {response.reason}: {self.url}", status=self.status)

        content_type = self.response_headers.get("content-type")
        if content_type:
            match = _MIME_PATTERN.search(content_type)
            if match:
                self.content_type = self.mime = match.group(1).lower()
                self.extension = get_extension_by_type(self.mime)

        content_length = self.response_headers.get("content-length")
        if content_length is not None and content_length.isdigit():
            self.content_length = int(content_length)

        return self

    def _raw(self):
        if self.response is None:
            raise RemoteFileError("Stream no abierto, llame a open() primero")
        return self.response.raw

    def _fill(self, size: int) -> bool:
        chunk = self._raw().read(size, decode_content=self.gzip)
        if not chunk:
            return False
        self._buffer += chunk
        return True

    def read(self, length: int) -> Optional[bytes]:
        """Lee hasta `length` bytes; None al final del stream."""
        self._consumed = True
        while len(self._buffer) < length and self._fill(length - len(self._buffer)):
            pass
        data, self._buffer = self._buffer[:length], self._buffer[length:]
        return data or None

    def read_line(self) -> Optional[str]:
        self._consumed = True
        while b"\n" not in self._buffer and self._fill(READ_CHUNK):
            pass
        if not self._buffer:
            return None
        line, _, self._buffer = self._buffer.partition(b"\n")
        return line.rstrip(b"\r").decode("utf-8", errors="replace")

    def check_size(self, max_size: Optional[int]) -> None:
        """Rechaza por Content-Length antes de leer el cuerpo."""
        if max_size and self.content_length is not None and self.content_length > max_size:
            raise SizeExceededError(
                f"Tamaño remoto excedido: {self.content_length} bytes, máximo {max_size} bytes ({self.url})"
            )

    def read_all(self, max_size: Optional[int] = None) -> bytes:
        """
        Lee el cuerpo completo.

        Con max_size la lectura se corta en cuanto se supera el límite,
        aunque Content-Length falte o mienta.
        """
        if self._content is not None:
            if max_size and len(self._content) > max_size:
                raise SizeExceededError(f"Tamaño remoto excedido: más de {max_size} bytes ({self.url})")
            return self._content

        if self._consumed:
            # El stream no se puede rebobinar
            with RemoteFile(self.url, self.method, self.headers, self.body,
                            self.timeout, self.gzip, self.storage) as again:
                self._content = again.open().read_all(max_size)
            return self._content

        self.check_size(max_size)
        chunks = [self._buffer]
        total = len(self._buffer)
        self._buffer = b""
        self._consumed = True
        while True:
            chunk = self._raw().read(READ_CHUNK, decode_content=self.gzip)
            if not chunk:
                break
            total += len(chunk)
            if max_size and total > max_size:
                logger.error(f"Descarga cortada en {total} bytes, máximo {max_size}: {self.url}")
                raise SizeExceededError(f"Tamaño remoto excedido: más de {max_size} bytes ({self.url})")
            chunks.append(chunk)

        self._content = b"".join(chunks)
        return self._content

    def save(self, to: str, force: bool = False, max_size: Optional[int] = None) -> str:
        if not force and self.storage.exists(to):
            raise DestinationExistsError(f"No se puede sobrescribir el archivo: {to}")
        return self.storage.write_bytes(self.read_all(max_size), to)

    def to_base64(self) -> str:
        return base64.b64encode(self.read_all()).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime or 'application/octet-stream'};base64,{self.to_base64()}"

    def to_hash(self, algo: str = "md5") -> str:
        try:
            digest = hashlib.new(algo)
        except ValueError:
            raise ConfigError(f"Algoritmo de hash no soportado: '{algo}'")
        digest.update(self.read_all())
        return digest.hexdigest()

    def close(self) -> None:
        if self.response is not None:
            self.response.close()
