from abc import ABC, abstractmethod
from typing import FrozenSet, List, Optional

from gebrai.data_classes import CommandResult, GeoGebraConfig, ObjectInfo, SessionState, AnimationOptions

# Operations that only read the construction or render it and may be repeated safely.
IDEMPOTENT_OPERATIONS: FrozenSet[str] = frozenset({
    "get_all_object_names",
    "get_object_info",
    "exists",
    "is_defined",
    "get_value",
    "get_value_string",
    "get_x_coord",
    "get_y_coord",
    "get_z_coord",
    "is_animation_running",
    "export_png",
    "export_svg",
    "export_pdf",
})


class IGeoGebraSession(ABC):
    """
    Capability set of one remote GeoGebra applet.

    The applet itself is an opaque dependency: everything the server needs from it goes through this interface.
    """
    id: str
    config: GeoGebraConfig

    @abstractmethod
    async def initialize(self, headless: bool = True) -> None:
        raise NotImplementedError("You need to implement initialize() first!")

    @abstractmethod
    async def is_ready(self) -> bool:
        raise NotImplementedError("You need to implement is_ready() first!")

    @abstractmethod
    def get_state(self) -> SessionState:
        raise NotImplementedError("You need to implement get_state() first!")

    @property
    @abstractmethod
    def last_activity(self) -> float:
        raise NotImplementedError("You need to implement last_activity first!")

    # commands

    @abstractmethod
    async def eval_command(self, command: str) -> CommandResult:
        raise NotImplementedError("You need to implement eval_command() first!")

    @abstractmethod
    async def eval_command_get_labels(self, command: str) -> List[str]:
        raise NotImplementedError("You need to implement eval_command_get_labels() first!")

    @abstractmethod
    async def delete_object(self, name: str) -> None:
        raise NotImplementedError("You need to implement delete_object() first!")

    @abstractmethod
    async def new_construction(self) -> None:
        """Removes every object, keeping the applet alive."""
        raise NotImplementedError("You need to implement new_construction() first!")

    @abstractmethod
    async def reset(self) -> None:
        raise NotImplementedError("You need to implement reset() first!")

    @abstractmethod
    async def refresh_views(self) -> None:
        raise NotImplementedError("You need to implement refresh_views() first!")

    @abstractmethod
    async def set_coord_system(self, xmin: float, xmax: float, ymin: float, ymax: float) -> None:
        raise NotImplementedError("You need to implement set_coord_system() first!")

    @abstractmethod
    async def set_axes_visible(self, x_axis: bool, y_axis: bool) -> None:
        raise NotImplementedError("You need to implement set_axes_visible() first!")

    @abstractmethod
    async def set_grid_visible(self, visible: bool) -> None:
        raise NotImplementedError("You need to implement set_grid_visible() first!")

    @abstractmethod
    async def set_value(self, name: str, value: float) -> None:
        raise NotImplementedError("You need to implement set_value() first!")

    # queries

    @abstractmethod
    async def get_all_object_names(self, object_type: Optional[str] = None) -> List[str]:
        raise NotImplementedError("You need to implement get_all_object_names() first!")

    @abstractmethod
    async def get_object_info(self, name: str) -> Optional[ObjectInfo]:
        raise NotImplementedError("You need to implement get_object_info() first!")

    @abstractmethod
    async def exists(self, name: str) -> bool:
        raise NotImplementedError("You need to implement exists() first!")

    @abstractmethod
    async def is_defined(self, name: str) -> bool:
        raise NotImplementedError("You need to implement is_defined() first!")

    @abstractmethod
    async def get_value(self, name: str) -> float:
        raise NotImplementedError("You need to implement get_value() first!")

    @abstractmethod
    async def get_value_string(self, name: str) -> str:
        raise NotImplementedError("You need to implement get_value_string() first!")

    @abstractmethod
    async def get_x_coord(self, name: str) -> float:
        raise NotImplementedError("You need to implement get_x_coord() first!")

    @abstractmethod
    async def get_y_coord(self, name: str) -> float:
        raise NotImplementedError("You need to implement get_y_coord() first!")

    @abstractmethod
    async def get_z_coord(self, name: str) -> float:
        raise NotImplementedError("You need to implement get_z_coord() first!")

    # exports

    @abstractmethod
    async def export_png(
            self,
            scale: float = 1.0,
            transparent: bool = False,
            dpi: int = 72,
            width: Optional[int] = None,
            height: Optional[int] = None,
    ) -> bytes:
        raise NotImplementedError("You need to implement export_png() first!")

    @abstractmethod
    async def export_svg(self) -> str:
        raise NotImplementedError("You need to implement export_svg() first!")

    @abstractmethod
    async def export_pdf(self) -> bytes:
        raise NotImplementedError("You need to implement export_pdf() first!")

    # animation

    @abstractmethod
    async def set_animating(self, name: str, animate: bool) -> None:
        raise NotImplementedError("You need to implement set_animating() first!")

    @abstractmethod
    async def set_animation_speed(self, name: str, speed: float) -> None:
        raise NotImplementedError("You need to implement set_animation_speed() first!")

    @abstractmethod
    async def start_animation(self) -> None:
        raise NotImplementedError("You need to implement start_animation() first!")

    @abstractmethod
    async def stop_animation(self) -> None:
        raise NotImplementedError("You need to implement stop_animation() first!")

    @abstractmethod
    async def is_animation_running(self) -> bool:
        raise NotImplementedError("You need to implement is_animation_running() first!")

    @abstractmethod
    async def set_trace(self, name: str, enabled: bool) -> None:
        raise NotImplementedError("You need to implement set_trace() first!")

    @abstractmethod
    async def capture_animation_frames(self, options: AnimationOptions) -> List[bytes]:
        """PNG frames sampled evenly while the construction animates."""
        raise NotImplementedError("You need to implement capture_animation_frames() first!")

    @abstractmethod
    async def cleanup(self) -> None:
        """Releases the page and browser. Safe to call more than once."""
        raise NotImplementedError("You need to implement cleanup() first!")
