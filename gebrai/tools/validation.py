import math
import re
from typing import Optional, Sequence

from gebrai.errors import ToolValidationError

MAX_COORDINATE = 1_000_000
MIN_RANGE_WIDTH = 0.001
LINE_STYLES = {"solid": 0, "dashed": 10, "dotted": 20}

OBJECT_NAME = re.compile(r"^[a-zA-Z][a-zA-Z0-9_]*$")
PARAMETER_NAME = re.compile(r"^[a-zA-Z][a-zA-Z0-9]*$")
COLOR = re.compile(r"^(#[0-9A-Fa-f]{6}|#[0-9A-Fa-f]{3}|rgb\(\s*\d+\s*,\s*\d+\s*,\s*\d+\s*\)|[a-zA-Z]+)$")
FUNCTION_CHARS = re.compile(r"^[x\d+\-*/^().\s,sincotaglnbsqrtepie]*$", re.IGNORECASE)
IMPLICIT_CHARS = re.compile(r"^[xy\d+\-*/^().\s,sincotaglnbsqrtepie=]*$", re.IGNORECASE)
LINEAR_EQUATIONS = [
    re.compile(r"^y\s*=\s*[+-]?\s*\d*\.?\d*\s*\*?\s*x\s*[+-]\s*\d+\.?\d*$"),
    re.compile(r"^y\s*=\s*[+-]?\s*\d+\.?\d*\s*\*?\s*x$"),
    re.compile(r"^y\s*=\s*[+-]?\s*\d+\.?\d*$"),
    re.compile(r"^x\s*=\s*[+-]?\s*\d+\.?\d*$"),
    re.compile(r"^[+-]?\s*\d*\.?\d*\s*\*?\s*x\s*[+-]\s*\d*\.?\d*\s*\*?\s*y\s*=\s*[+-]?\s*\d+\.?\d*$"),
]


def validate_object_name(name: str, what: str = "Object name") -> str:
    if not name:
        raise ToolValidationError(f"{what} must be a non-empty string")
    if not OBJECT_NAME.match(name):
        raise ToolValidationError(
            f"{what} {name!r} must start with a letter and contain only letters, numbers and underscores"
        )
    return name


def validate_coordinate(value: float, axis: str = "coordinate") -> float:
    if not math.isfinite(value):
        raise ToolValidationError(f"{axis} must be a finite number")
    if abs(value) > MAX_COORDINATE:
        raise ToolValidationError(f"{axis} must be within ±{MAX_COORDINATE:g}")
    return value


def validate_radius(radius: float) -> float:
    if not math.isfinite(radius):
        raise ToolValidationError("Radius must be a finite number")
    if radius < 0:
        raise ToolValidationError("Radius must be non-negative")
    if radius > MAX_COORDINATE:
        raise ToolValidationError(f"Radius must not exceed {MAX_COORDINATE:g}")
    return radius


def validate_polygon_vertices(vertices: Sequence[str]) -> Sequence[str]:
    if len(vertices) < 3:
        raise ToolValidationError("Polygon must have at least 3 vertices")
    if len(vertices) > 100:
        raise ToolValidationError("Polygon cannot have more than 100 vertices")
    if len(set(vertices)) != len(vertices):
        raise ToolValidationError("Polygon vertices must be unique")
    for index, vertex in enumerate(vertices, start=1):
        validate_object_name(vertex, f"Vertex {index}")
    return vertices


def validate_linear_equation(equation: str) -> str:
    if not equation or "=" not in equation:
        raise ToolValidationError("Equation must contain an equals sign (=)")
    normalized = re.sub(r"\s+", " ", equation).strip()
    if not any(pattern.match(normalized) for pattern in LINEAR_EQUATIONS):
        raise ToolValidationError(
            'Equation format not recognized. Use formats like "y = 2x + 3", "x = 5", or "2x + 3y = 6"'
        )
    return normalized


def _check_parentheses(expression: str) -> None:
    depth = 0
    for char in expression:
        if char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
            if depth < 0:
                raise ToolValidationError("Unbalanced parentheses in expression")
    if depth != 0:
        raise ToolValidationError("Unbalanced parentheses in expression")


def validate_function_expression(expression: str) -> str:
    expression = expression.strip()
    if not expression:
        raise ToolValidationError("Function expression must be a non-empty string")
    if not FUNCTION_CHARS.match(expression):
        raise ToolValidationError("Function expression contains invalid characters")
    _check_parentheses(expression)
    return expression


def validate_parameter_name(parameter: str) -> str:
    if not PARAMETER_NAME.match(parameter or ""):
        raise ToolValidationError("Parameter must start with a letter and contain only letters and numbers")
    return parameter


def validate_parametric_expression(expression: str, parameter: str) -> str:
    expression = expression.strip()
    if not expression:
        raise ToolValidationError("Parametric expression must be a non-empty string")
    allowed = re.compile(rf"^[{re.escape(parameter)}\d+\-*/^().\s,sincotaglnbsqrtepie]*$", re.IGNORECASE)
    if not allowed.match(expression):
        raise ToolValidationError(f"Parametric expression contains invalid characters for parameter {parameter!r}")
    _check_parentheses(expression)
    return expression


def validate_implicit_expression(expression: str) -> str:
    expression = expression.strip()
    if not expression:
        raise ToolValidationError("Implicit expression must be a non-empty string")
    if "x" not in expression or "y" not in expression:
        raise ToolValidationError("Implicit expression must contain both x and y")
    if not IMPLICIT_CHARS.match(expression):
        raise ToolValidationError("Implicit expression contains invalid characters")
    _check_parentheses(expression)
    return expression


def validate_range(minimum: float, maximum: float, what: str = "range") -> None:
    validate_coordinate(minimum, f"{what} minimum")
    validate_coordinate(maximum, f"{what} maximum")
    if minimum >= maximum:
        raise ToolValidationError(f"{what} minimum must be less than maximum")
    if maximum - minimum < MIN_RANGE_WIDTH:
        raise ToolValidationError(f"{what} must be at least {MIN_RANGE_WIDTH} wide")


def validate_styling(color: Optional[str] = None, thickness: Optional[int] = None, style: Optional[str] = None) -> None:
    if color is not None and not COLOR.match(color.strip()):
        raise ToolValidationError("Color must be a hex code (#RRGGBB or #RGB), rgb(r,g,b) or a color name")
    if thickness is not None and not 1 <= thickness <= 10:
        raise ToolValidationError("Line thickness must be between 1 and 10")
    if style is not None and style.lower() not in LINE_STYLES:
        raise ToolValidationError(f"Line style must be one of: {', '.join(LINE_STYLES)}")
