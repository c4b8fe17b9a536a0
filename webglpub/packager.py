import os
import zipfile

from .utils import get_logger

ZIP_NAME = "connectwebgl.zip"
ZIP_FILE_LIMIT_BYTES = 500 * 1024 * 1024


class Packager:
    def __init__(self, project_dir: str) -> None:
        self.project_dir = project_dir
        self.logger = get_logger("webglpub")

    @property
    def destination(self) -> str:
        return os.path.join(self.project_dir, ZIP_NAME)

    def archive(self, source_dir: str) -> str:
        if not os.path.isdir(source_dir):
            raise FileNotFoundError(f"Build folder not found: {source_dir}")
        dest_path = self.destination
        self.discard(dest_path)
        with zipfile.ZipFile(dest_path, "w", compression=zipfile.ZIP_DEFLATED) as archive:
            for root, _dirs, files in os.walk(source_dir):
                for name in sorted(files):
                    full_path = os.path.join(root, name)
                    archive.write(full_path, arcname=os.path.relpath(full_path, source_dir))
        self.logger.debug("Archived %s -> %s", source_dir, dest_path)
        return dest_path

    def archive_size(self, path: str) -> int:
        return os.path.getsize(path)

    def discard(self, path: str) -> None:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
