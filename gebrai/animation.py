import asyncio
import shutil
import tempfile
from pathlib import Path
from typing import List, Optional, Sequence

from loguru import logger

from gebrai.data_classes import AnimationOptions
from gebrai.errors import ExportError


class AnimationConverter:
    """
    Encodes PNG frames into GIF or MP4 files with the ffmpeg executable.
    """

    def __init__(self, ffmpeg_path: str = "ffmpeg", tmp_dir: Optional[Path] = None):
        self.ffmpeg_path = ffmpeg_path
        self.tmp_dir = tmp_dir

    def is_available(self) -> bool:
        return shutil.which(self.ffmpeg_path) is not None

    async def _run(self, args: Sequence[str]) -> None:
        logger.debug("Running ffmpeg", args=list(args))
        try:
            process = await asyncio.create_subprocess_exec(
                self.ffmpeg_path, *args,
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise ExportError("animation", f"ffmpeg executable not found: {self.ffmpeg_path}") from e
        _, stderr = await process.communicate()
        if process.returncode != 0:
            tail = stderr.decode("utf-8", errors="replace").strip().splitlines()[-5:]
            raise ExportError("animation", f"ffmpeg exited with code {process.returncode}: {' '.join(tail)}")

    @staticmethod
    def write_frames(frames: Sequence[bytes], frame_dir: Path) -> List[Path]:
        paths = []
        for index, frame in enumerate(frames):
            path = frame_dir / f"frame_{index:04d}.png"
            path.write_bytes(frame)
            paths.append(path)
        return paths

    def gif_args(self, frame_dir: Path, output: Path, options: AnimationOptions) -> List[List[str]]:
        pattern = str(frame_dir / "frame_%04d.png")
        palette = str(frame_dir / "palette.png")
        return [
            ["-y", "-i", pattern, "-vf", "palettegen", palette],
            ["-y", "-framerate", str(options.effective_frame_rate), "-i", pattern, "-i", palette,
             "-lavfi", "paletteuse", "-loop", "0", str(output)],
        ]

    def mp4_args(self, frame_dir: Path, output: Path, options: AnimationOptions) -> List[List[str]]:
        pattern = str(frame_dir / "frame_%04d.png")
        if options.width and options.height:
            # libx264 with yuv420p needs even dimensions
            scale = f"scale={options.width // 2 * 2}:{options.height // 2 * 2}"
        else:
            scale = "scale=trunc(iw/2)*2:trunc(ih/2)*2"
        return [
            ["-y", "-framerate", str(options.effective_frame_rate), "-i", pattern, "-vf", scale,
             "-c:v", "libx264", "-pix_fmt", "yuv420p", "-crf", str(options.effective_quality),
             "-movflags", "+faststart", str(output)],
        ]

    async def convert(self, frames: Sequence[bytes], output: Path, options: AnimationOptions) -> Path:
        """Writes `frames` to a temporary directory and encodes them into `output`."""
        if not frames:
            raise ExportError(options.format, "No frames to encode")
        output.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.TemporaryDirectory(prefix="gebrai_frames_", dir=self.tmp_dir) as tmp:
            frame_dir = Path(tmp)
            self.write_frames(frames, frame_dir)
            commands = self.gif_args(frame_dir, output, options) if options.format == "gif" \
                else self.mp4_args(frame_dir, output, options)
            for args in commands:
                await self._run(args)
        logger.info("Encoded {count} frames into {path}", count=len(frames), path=str(output))
        return output
