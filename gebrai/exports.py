import secrets
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from pydantic import BaseModel

from gebrai.data_classes import MIME_TYPES, ExportArtifact
from gebrai.errors import ToolValidationError

EXPORT_EXTENSIONS = tuple(MIME_TYPES.keys())


class ExportedFile(BaseModel):
    name: str
    size: int
    created: datetime
    modified: datetime
    download_url: str


def generate_filename(prefix: str, extension: str) -> str:
    """`<prefix>_<unix millis>_<random>.<ext>`"""
    return f"{prefix}_{int(time.time() * 1000)}_{secrets.token_hex(4)}.{extension}"


def safe_export_path(export_dir: Path, filename: str) -> Path:
    """Resolves `filename` inside `export_dir`, rejecting anything that would escape it."""
    if not filename or Path(filename).name != filename or filename.startswith("."):
        raise ToolValidationError(f"Invalid file name: {filename!r}")
    return export_dir / filename


def export_path(export_dir: Path, extension: str, filename: Optional[str] = None, prefix: str = "geogebra") -> Path:
    """Target path for a new export, creating the directory. A caller supplied name gets the extension appended if missing."""
    export_dir.mkdir(parents=True, exist_ok=True)
    if filename:
        if not filename.lower().endswith(f".{extension}"):
            filename = f"{filename}.{extension}"
    else:
        filename = generate_filename(prefix, extension)
    return safe_export_path(export_dir, filename)


def save_artifact(export_dir: Path, artifact: ExportArtifact, filename: Optional[str] = None, prefix: str = "geogebra") -> ExportArtifact:
    path = export_path(export_dir, artifact.format, filename, prefix)
    path.write_bytes(artifact.data)
    return artifact.model_copy(update={"path": path})


def list_exports(export_dir: Path) -> List[ExportedFile]:
    """Exported files, newest first."""
    if not export_dir.exists():
        return []
    files: List[ExportedFile] = []
    for path in export_dir.iterdir():
        if not path.is_file() or path.suffix.lstrip(".").lower() not in EXPORT_EXTENSIONS:
            continue
        stat = path.stat()
        files.append(ExportedFile(
            name=path.name,
            size=stat.st_size,
            created=datetime.fromtimestamp(stat.st_ctime, tz=timezone.utc),
            modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
            download_url=f"/download/{path.name}",
        ))
    return sorted(files, key=lambda f: f.modified, reverse=True)


def media_type_for(path: Path) -> str:
    return MIME_TYPES.get(path.suffix.lstrip(".").lower(), "application/octet-stream")


def describe_artifact(artifact: ExportArtifact) -> Dict[str, object]:
    info: Dict[str, object] = {"format": artifact.format, "size": artifact.size, "mime_type": artifact.mime_type}
    if artifact.width is not None:
        info["width"] = artifact.width
    if artifact.height is not None:
        info["height"] = artifact.height
    if artifact.frame_count is not None:
        info["frame_count"] = artifact.frame_count
    if artifact.path is not None:
        info["filename"] = artifact.path.name
        info["download_url"] = f"/download/{artifact.path.name}"
    return info
