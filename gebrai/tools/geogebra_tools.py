from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import Field

from gebrai.data_classes import ExportArtifact
from gebrai.errors import ToolValidationError
from gebrai.interfaces.session import IGeoGebraSession
from gebrai.tools.base import PoolBackedTools
from gebrai.tools.validation import (
    validate_coordinate,
    validate_function_expression,
    validate_implicit_expression,
    validate_linear_equation,
    validate_object_name,
    validate_parameter_name,
    validate_parametric_expression,
    validate_polygon_vertices,
    validate_radius,
    validate_range,
)

Scale = Annotated[float, Field(ge=0.1, le=10)]
Dimension = Optional[Annotated[int, Field(ge=100, le=5000)]]
Dpi = Annotated[int, Field(ge=72, le=300)]
Thickness = Optional[Annotated[int, Field(ge=1, le=10)]]
LineStyle = Optional[Literal["solid", "dashed", "dotted"]]


class GeoGebraTools(PoolBackedTools):
    """Construction, query, plotting and export tools backed by the default session."""

    def handlers(self):
        return [
            self.geogebra_eval_command,
            self.geogebra_create_point,
            self.geogebra_create_line,
            self.geogebra_create_circle,
            self.geogebra_create_polygon,
            self.geogebra_get_objects,
            self.geogebra_clear_construction,
            self.geogebra_instance_status,
            self.geogebra_export_png,
            self.geogebra_export_svg,
            self.geogebra_export_pdf,
            self.geogebra_plot_function,
            self.geogebra_plot_parametric,
            self.geogebra_plot_implicit,
        ]

    async def geogebra_eval_command(self, command: str) -> Dict[str, Any]:
        """
        Execute a GeoGebra command string such as "A = (1, 2)" or "f(x) = x^2".

        Args:
            command: command in GeoGebra's input language
        """
        if not command.strip():
            raise ToolValidationError("Command must be a non-empty string")
        session = await self.session()
        result = await self.run_command(session, command)
        return {"command": command, "result": result.result}

    async def geogebra_create_point(self, name: str, x: float, y: float) -> Dict[str, Any]:
        """
        Create a point with the given coordinates.

        Args:
            name: point name, e.g. "A"
            x: x coordinate
            y: y coordinate
        """
        validate_object_name(name, "Point name")
        validate_coordinate(x, "x")
        validate_coordinate(y, "y")
        session = await self.session()
        command = f"{name} = ({x}, {y})"
        await self.run_command(session, command)
        return {"command": command, "point": await self.object_info(session, name)}

    async def geogebra_create_line(
            self,
            name: str,
            point1: Optional[str] = None,
            point2: Optional[str] = None,
            equation: Optional[str] = None,
            color: Optional[str] = None,
            thickness: Thickness = None,
            style: LineStyle = None,
    ) -> Dict[str, Any]:
        """
        Create a line through two existing points or from a linear equation.

        Args:
            name: line name
            point1: first point of a two-point line
            point2: second point of a two-point line
            equation: linear equation such as "y = 2x + 3" or "2x + 3y = 6"
            color: hex, rgb(r,g,b) or a color name
            thickness: line thickness from 1 to 10
            style: line style
        """
        validate_object_name(name, "Line name")
        if point1 and point2:
            validate_object_name(point1, "Point 1")
            validate_object_name(point2, "Point 2")
            if point1 == point2:
                raise ToolValidationError("A line needs two different points")
            command, method = f"{name} = Line({point1}, {point2})", "two-point"
        elif equation:
            command, method = f"{name}: {validate_linear_equation(equation)}", "equation"
        else:
            raise ToolValidationError("Provide either point1 and point2 or an equation")
        session = await self.session()
        await self.run_command(session, command)
        styling = await self.apply_styling(session, name, color, thickness, style)
        return {"command": command, "method": method, "styling": styling, "line": await self.object_info(session, name)}

    async def geogebra_create_circle(
            self,
            name: str,
            center: Optional[str] = None,
            radius: Optional[float] = None,
            point1: Optional[str] = None,
            point2: Optional[str] = None,
            point3: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Create a circle from a center point and radius, or through three points.

        Args:
            name: circle name
            center: existing center point
            radius: radius used with center
            point1: first point on the circle
            point2: second point on the circle
            point3: third point on the circle
        """
        validate_object_name(name, "Circle name")
        if center and radius is not None:
            validate_object_name(center, "Center")
            validate_radius(radius)
            command, method = f"{name} = Circle({center}, {radius})", "center-radius"
        elif point1 and point2 and point3:
            validate_polygon_vertices([point1, point2, point3])
            command, method = f"{name} = Circle({point1}, {point2}, {point3})", "three-points"
        else:
            raise ToolValidationError("Provide either center and radius or three points")
        session = await self.session()
        await self.run_command(session, command)
        return {"command": command, "method": method, "circle": await self.object_info(session, name)}

    async def geogebra_create_polygon(self, name: str, vertices: List[str]) -> Dict[str, Any]:
        """
        Create a polygon from existing points.

        Args:
            name: polygon name
            vertices: names of 3 to 100 distinct existing points, in order
        """
        validate_object_name(name, "Polygon name")
        validate_polygon_vertices(vertices)
        session = await self.session()
        command = f"{name} = Polygon({', '.join(vertices)})"
        await self.run_command(session, command)
        return {"command": command, "vertexCount": len(vertices), "polygon": await self.object_info(session, name)}

    async def geogebra_get_objects(self, type: Optional[str] = None) -> Dict[str, Any]:
        """
        List the objects of the current construction.

        Args:
            type: optional GeoGebra object type filter, e.g. "point" or "line"
        """
        session = await self.session()
        names = await self.remote(session, "get_all_object_names", type)
        objects = [info for info in [await self.object_info(session, name) for name in names] if info]
        return {"objectCount": len(objects), "objects": objects}

    async def geogebra_clear_construction(self) -> Dict[str, Any]:
        """Remove every object from the construction."""
        session = await self.session()
        await session.new_construction()
        return {"message": "Construction cleared"}

    async def geogebra_instance_status(self) -> Dict[str, Any]:
        """Report the state of the GeoGebra instance and of the pool."""
        session = await self.session()
        return {
            "isReady": await session.is_ready(),
            "instance": session.get_state().model_dump(),
            "pool": self.pool.stats().model_dump(),
        }

    async def apply_view(
            self,
            session: IGeoGebraSession,
            xmin: Optional[float] = None,
            xmax: Optional[float] = None,
            ymin: Optional[float] = None,
            ymax: Optional[float] = None,
            show_axes: Optional[bool] = None,
            show_grid: Optional[bool] = None,
    ) -> Dict[str, Any]:
        window = [xmin, xmax, ymin, ymax]
        settings: Dict[str, Any] = {}
        if any(v is not None for v in window):
            if any(v is None for v in window):
                raise ToolValidationError("xmin, xmax, ymin and ymax must be given together")
            validate_range(xmin, xmax, "x range")
            validate_range(ymin, ymax, "y range")
            await session.set_coord_system(xmin, xmax, ymin, ymax)
            settings["coordSystem"] = {"xmin": xmin, "xmax": xmax, "ymin": ymin, "ymax": ymax}
        if show_axes is not None:
            await session.set_axes_visible(show_axes, show_axes)
            settings["showAxes"] = show_axes
        if show_grid is not None:
            await session.set_grid_visible(show_grid)
            settings["showGrid"] = show_grid
        return settings

    async def export_artifact(
            self,
            format: Literal["png", "svg", "pdf"],
            scale: float = 1.0,
            transparent: bool = False,
            dpi: int = 72,
            width: Optional[int] = None,
            height: Optional[int] = None,
    ) -> ExportArtifact:
        """Renders the current construction; read-only, so it is retried on failure."""
        session = await self.session()
        if format == "png":
            data = await self.remote(session, "export_png", scale, transparent, dpi, width, height)
            return ExportArtifact(format="png", data=data, width=width, height=height)
        if format == "svg":
            svg = await self.remote(session, "export_svg")
            return ExportArtifact(format="svg", data=svg.encode("utf-8"))
        data = await self.remote(session, "export_pdf")
        return ExportArtifact(format="pdf", data=data)

    async def geogebra_export_png(
            self,
            scale: Scale = 1.0,
            width: Dimension = None,
            height: Dimension = None,
            transparent: bool = False,
            dpi: Dpi = 72,
            xmin: Optional[float] = None,
            xmax: Optional[float] = None,
            ymin: Optional[float] = None,
            ymax: Optional[float] = None,
            show_axes: Optional[bool] = None,
            show_grid: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Export the construction as a base64 encoded PNG image.

        Args:
            scale: scale factor from 0.1 to 10, ignored when width and height are both given
            width: target width in pixels
            height: target height in pixels
            transparent: transparent background
            dpi: resolution from 72 to 300
            xmin: left edge of the view window
            xmax: right edge of the view window
            ymin: bottom edge of the view window
            ymax: top edge of the view window
            show_axes: show or hide the axes
            show_grid: show or hide the grid
        """
        session = await self.session()
        view = await self.apply_view(session, xmin, xmax, ymin, ymax, show_axes, show_grid)
        artifact = await self.export_artifact("png", scale, transparent, dpi, width, height)
        return {
            "format": "png",
            "scale": scale,
            "width": width,
            "height": height,
            "transparent": transparent,
            "dpi": dpi,
            "viewSettings": view,
            "data": artifact.to_base64(),
            "encoding": "base64",
        }

    async def geogebra_export_svg(
            self,
            xmin: Optional[float] = None,
            xmax: Optional[float] = None,
            ymin: Optional[float] = None,
            ymax: Optional[float] = None,
            show_axes: Optional[bool] = None,
            show_grid: Optional[bool] = None,
    ) -> Dict[str, Any]:
        """
        Export the construction as SVG markup.

        Args:
            xmin: left edge of the view window
            xmax: right edge of the view window
            ymin: bottom edge of the view window
            ymax: top edge of the view window
            show_axes: show or hide the axes
            show_grid: show or hide the grid
        """
        session = await self.session()
        view = await self.apply_view(session, xmin, xmax, ymin, ymax, show_axes, show_grid)
        artifact = await self.export_artifact("svg")
        return {"format": "svg", "viewSettings": view, "data": artifact.to_text(), "encoding": "utf8"}

    async def geogebra_export_pdf(self) -> Dict[str, Any]:
        """Export the page hosting the construction as a base64 encoded PDF document."""
        artifact = await self.export_artifact("pdf")
        return {"format": "pdf", "data": artifact.to_base64(), "encoding": "base64"}

    async def geogebra_plot_function(
            self,
            name: str,
            expression: str,
            x_min: Optional[float] = None,
            x_max: Optional[float] = None,
            color: Optional[str] = None,
            thickness: Thickness = None,
            style: LineStyle = None,
    ) -> Dict[str, Any]:
        """
        Plot a function of x, optionally restricted to a domain.

        Args:
            name: function name, e.g. "f"
            expression: expression in x, e.g. "x^2 - 2*x + 1"
            x_min: start of the domain
            x_max: end of the domain
            color: hex, rgb(r,g,b) or a color name
            thickness: line thickness from 1 to 10
            style: line style
        """
        validate_object_name(name, "Function name")
        expression = validate_function_expression(expression)
        if (x_min is None) != (x_max is None):
            raise ToolValidationError("x_min and x_max must be given together")
        if x_min is not None:
            validate_range(x_min, x_max, "domain")
            command = f"{name}(x) = If({x_min} <= x <= {x_max}, {expression}, ?)"
        else:
            command = f"{name}(x) = {expression}"
        session = await self.session()
        await self.run_command(session, command)
        styling = await self.apply_styling(session, name, color, thickness, style)
        return {"command": command, "styling": styling, "function": await self.object_info(session, name)}

    async def geogebra_plot_parametric(
            self,
            name: str,
            x_expression: str,
            y_expression: str,
            t_min: float,
            t_max: float,
            parameter: str = "t",
            color: Optional[str] = None,
            thickness: Thickness = None,
            style: LineStyle = None,
    ) -> Dict[str, Any]:
        """
        Plot a parametric curve (x(t), y(t)).

        Args:
            name: curve name
            x_expression: x coordinate as a function of the parameter
            y_expression: y coordinate as a function of the parameter
            t_min: parameter start
            t_max: parameter end
            parameter: parameter name
            color: hex, rgb(r,g,b) or a color name
            thickness: line thickness from 1 to 10
            style: line style
        """
        validate_object_name(name, "Curve name")
        validate_parameter_name(parameter)
        x_expression = validate_parametric_expression(x_expression, parameter)
        y_expression = validate_parametric_expression(y_expression, parameter)
        validate_range(t_min, t_max, "parameter range")
        command = f"{name} = Curve({x_expression}, {y_expression}, {parameter}, {t_min}, {t_max})"
        session = await self.session()
        await self.run_command(session, command)
        styling = await self.apply_styling(session, name, color, thickness, style)
        return {"command": command, "styling": styling, "curve": await self.object_info(session, name)}

    async def geogebra_plot_implicit(
            self,
            name: str,
            expression: str,
            color: Optional[str] = None,
            thickness: Thickness = None,
            style: LineStyle = None,
    ) -> Dict[str, Any]:
        """
        Plot an implicit curve such as "x^2 + y^2 - 4".

        Args:
            name: curve name
            expression: expression in x and y
            color: hex, rgb(r,g,b) or a color name
            thickness: line thickness from 1 to 10
            style: line style
        """
        validate_object_name(name, "Curve name")
        expression = validate_implicit_expression(expression)
        command = f"{name} = ImplicitCurve({expression})"
        session = await self.session()
        await self.run_command(session, command)
        styling = await self.apply_styling(session, name, color, thickness, style)
        return {"command": command, "styling": styling, "curve": await self.object_info(session, name)}
