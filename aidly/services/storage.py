from pathlib import Path
from typing import Union

class LocalStorage:
    """Export files on local disk, addressed by path relative to `root`."""

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).resolve()

    def full_path(self, path: str) -> Path:
        p = (self.root / path).resolve()
        if p != self.root and self.root not in p.parents:
            raise ValueError(f"Path escapes storage root: {path}")
        return p

    def put(self, path: str, content: Union[str, bytes]) -> str:
        p = self.full_path(path)
        p.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, str):
            p.write_text(content, encoding="utf-8")
        else:
            p.write_bytes(content)
        return path

    def exists(self, path: str) -> bool:
        return self.full_path(path).is_file()

    def delete(self, path: str) -> None:
        self.full_path(path).unlink()

    def size(self, path: str) -> int:
        return self.full_path(path).stat().st_size
