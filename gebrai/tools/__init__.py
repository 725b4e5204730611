from gebrai.tools.animation_tools import AnimationTools
from gebrai.tools.cas_tools import CasTools
from gebrai.tools.geogebra_tools import GeoGebraTools
from gebrai.tools.performance_tools import PerformanceTools
from gebrai.tools.registry import Tool, ToolRegistry
from gebrai.tools.utility_tools import UtilityTools

__all__ = [
    "AnimationTools",
    "CasTools",
    "GeoGebraTools",
    "PerformanceTools",
    "Tool",
    "ToolRegistry",
    "UtilityTools",
]
