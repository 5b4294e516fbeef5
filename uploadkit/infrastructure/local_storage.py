import os
import shutil
import tempfile
import logging

from uploadkit.domain.errors import BackendIOError, DirectoryCreateError, SourceNotFoundError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class LocalStorage:
    """Backend de sistema de archivos local. Todo fallo de E/S sale como BackendIOError."""

    def __init__(self, directory_mode: int = 0o755, file_mode: int = 0o644):
        self.directory_mode = directory_mode
        self.file_mode = file_mode

    def exists(self, path: str) -> bool:
        return os.path.exists(path)

    def size(self, path: str) -> int:
        try:
            return os.stat(path).st_size
        except FileNotFoundError:
            raise SourceNotFoundError(f"No existe el archivo fuente: {path}")
        except OSError as e:
            logger.error(f"Error al leer metadatos de {path}: {e.strerror}")
            raise BackendIOError(str(e))

    def ensure_directory(self, directory: str) -> str:
        """Crea el directorio (y sus padres) si no existe."""
        if os.path.isdir(directory):
            return directory
        try:
            os.makedirs(directory, mode=self.directory_mode, exist_ok=True)
        except OSError as e:
            logger.error(f"No se pudo crear el directorio {directory}: {e.strerror}")
            raise DirectoryCreateError(f"No se pudo crear el directorio '{directory}' [error: {e.strerror}]")
        return directory

    def iter_chunks(self, path: str, chunk_size: int = CHUNK_SIZE):
        """Lee el archivo por bloques (para hashes de archivos grandes)."""
        try:
            with open(path, "rb") as f:
                while True:
                    chunk = f.read(chunk_size)
                    if not chunk:
                        break
                    yield chunk
        except FileNotFoundError:
            raise SourceNotFoundError(f"No existe el archivo fuente: {path}")
        except OSError as e:
            logger.error(f"Error al leer {path}: {e.strerror}")
            raise BackendIOError(str(e))

    def write_bytes(self, data: bytes, destination: str) -> str:
        """Escritura atómica: archivo temporal en el mismo directorio + os.replace."""
        target_dir = os.path.dirname(destination) or "."
        tmp_path = None
        try:
            with tempfile.NamedTemporaryFile("wb", delete=False, dir=target_dir) as tmp:
                tmp_path = tmp.name
                tmp.write(data)
                tmp.flush()
                os.fsync(tmp.fileno())
            os.chmod(tmp_path, self.file_mode)
            os.replace(tmp_path, destination)
        except OSError as e:
            logger.error(f"Error al escribir {destination}: {e}")
            if tmp_path is not None:
                self.delete_file(tmp_path)
            raise BackendIOError(str(e))
        return destination

    def copy_file(self, source: str, destination: str) -> str:
        """Copia byte a byte; el origen queda intacto."""
        if not os.path.isfile(source):
            raise SourceNotFoundError(f"No existe el archivo fuente: {source}")

        target_dir = os.path.dirname(destination) or "."
        tmp_path = None
        try:
            with open(source, "rb") as src, \
                    tempfile.NamedTemporaryFile("wb", delete=False, dir=target_dir) as tmp:
                tmp_path = tmp.name
                shutil.copyfileobj(src, tmp, CHUNK_SIZE)
            os.chmod(tmp_path, self.file_mode)
            os.replace(tmp_path, destination)
        except OSError as e:
            logger.error(f"Error al copiar {source} a {destination}: {e}")
            if tmp_path is not None:
                self.delete_file(tmp_path)
            raise BackendIOError(str(e))
        return destination

    def delete_file(self, path: str) -> bool:
        """Borrado best-effort: devuelve False en vez de fallar."""
        try:
            os.unlink(path)
            return True
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.warning(f"No se pudo eliminar {path}: {e.strerror}")
            return False
