from pathlib import Path
from typing import Annotated, Any, Dict, Literal, Optional

from pydantic import Field

from gebrai.animation import AnimationConverter
from gebrai.config import SessionTimeouts
from gebrai.data_classes import AnimationOptions, ExportArtifact
from gebrai.errors import ExportError, ToolValidationError
from gebrai.exports import describe_artifact, export_path
from gebrai.pool import InstancePool
from gebrai.tools.base import PoolBackedTools
from gebrai.tools.validation import validate_coordinate, validate_object_name, validate_range


class AnimationTools(PoolBackedTools):
    """Sliders, animation control, tracing and animated GIF/MP4 export."""

    def __init__(
            self,
            pool: InstancePool,
            export_dir: Path,
            converter: Optional[AnimationConverter] = None,
            timeouts: Optional[SessionTimeouts] = None,
    ):
        super().__init__(pool, timeouts)
        self.export_dir = export_dir
        self.converter = converter or AnimationConverter()

    def handlers(self):
        return [
            self.geogebra_create_slider,
            self.geogebra_animate_parameter,
            self.geogebra_trace_object,
            self.geogebra_start_animation,
            self.geogebra_stop_animation,
            self.geogebra_export_animation,
        ]

    async def geogebra_create_slider(
            self,
            name: str,
            min: float,
            max: float,
            increment: Annotated[float, Field(gt=0)] = 0.1,
            default_value: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Create a number slider that can drive animations.

        Args:
            name: slider name
            min: smallest value
            max: largest value
            increment: step between values
            default_value: initial value, defaults to min
        """
        validate_object_name(name, "Slider name")
        validate_range(min, max, "slider range")
        if default_value is not None:
            validate_coordinate(default_value, "default_value")
            if not min <= default_value <= max:
                raise ToolValidationError("default_value must lie within the slider range")
        session = await self.session()
        command = f"{name} = Slider({min}, {max}, {increment})"
        await self.run_command(session, command)
        if default_value is not None:
            await session.set_value(name, default_value)
        return {"command": command, "slider": await self.object_info(session, name)}

    async def geogebra_animate_parameter(
            self,
            name: str,
            animate: bool = True,
            speed: Annotated[float, Field(gt=0, le=10)] = 1.0,
            start: bool = True,
    ) -> Dict[str, Any]:
        """
        Turn animation of a slider or point on or off.

        Args:
            name: object to animate
            animate: whether the object takes part in the animation
            speed: animation speed from 0 to 10
            start: start the animation right away
        """
        validate_object_name(name)
        session = await self.session()
        if not await self.remote(session, "exists", name):
            raise ToolValidationError(f"Object {name!r} does not exist")
        await session.set_animating(name, animate)
        await session.set_animation_speed(name, speed)
        if animate and start:
            await session.start_animation()
        return {
            "name": name,
            "animating": animate,
            "speed": speed,
            "running": await self.remote(session, "is_animation_running"),
        }

    async def geogebra_trace_object(self, name: str, enabled: bool = True) -> Dict[str, Any]:
        """
        Leave a trace of an object while it moves.

        Args:
            name: object to trace
            enabled: turn tracing on or off
        """
        validate_object_name(name)
        session = await self.session()
        await session.set_trace(name, enabled)
        return {"name": name, "trace": enabled}

    async def geogebra_start_animation(self) -> Dict[str, Any]:
        """Start every animation of the construction."""
        session = await self.session()
        await session.start_animation()
        return {"running": await self.remote(session, "is_animation_running")}

    async def geogebra_stop_animation(self) -> Dict[str, Any]:
        """Stop every animation of the construction."""
        session = await self.session()
        await session.stop_animation()
        return {"running": await self.remote(session, "is_animation_running")}

    async def export_animation(self, options: AnimationOptions, filename: Optional[str] = None) -> ExportArtifact:
        if not self.converter.is_available():
            raise ExportError(options.format, f"Animated export needs ffmpeg, {self.converter.ffmpeg_path!r} was not found")
        session = await self.session()
        output = export_path(self.export_dir, options.format, filename, prefix="animation")
        frames = await session.capture_animation_frames(options)
        await self.converter.convert(frames, output, options)
        return ExportArtifact(
            format=options.format,
            data=output.read_bytes(),
            width=options.width,
            height=options.height,
            frame_count=len(frames),
            path=output,
        )

    async def geogebra_export_animation(
            self,
            format: Literal["gif", "mp4"] = "gif",
            duration: Annotated[int, Field(ge=1000, le=60000)] = 5000,
            frame_rate: Optional[Annotated[int, Field(ge=1, le=60)]] = None,
            quality: Optional[Annotated[int, Field(ge=0, le=100)]] = None,
            width: Optional[Annotated[int, Field(ge=100, le=5000)]] = None,
            height: Optional[Annotated[int, Field(ge=100, le=5000)]] = None,
            filename: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Record the running animation and save it as GIF or MP4 in the export directory.

        Args:
            format: output format
            duration: recording length in milliseconds
            frame_rate: frames per second, 10 for gif and 30 for mp4 by default
            quality: MP4 CRF value, gif output does not use it
            width: frame width in pixels
            height: frame height in pixels
            filename: output file name, generated when omitted
        """
        options = AnimationOptions(
            format=format, duration=duration, frame_rate=frame_rate, quality=quality, width=width, height=height
        )
        artifact = await self.export_animation(options, filename)
        payload: Dict[str, Any] = {"duration": duration, "frameRate": options.effective_frame_rate}
        if format == "mp4":
            payload["quality"] = options.effective_quality
        return {**payload, **describe_artifact(artifact)}
