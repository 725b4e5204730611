import secrets
from typing import Any, Dict, Optional

from loguru import logger

from gebrai.errors import ToolValidationError
from gebrai.interfaces.session import IGeoGebraSession
from gebrai.tools.base import PoolBackedTools
from gebrai.tools.validation import validate_parameter_name


class CasTools(PoolBackedTools):
    """
    Symbolic tools. Each result is computed into a temporary object whose value string is read back and
    which is deleted afterwards, so the user's construction is left untouched.
    """

    def handlers(self):
        return [
            self.geogebra_solve_equation,
            self.geogebra_differentiate,
            self.geogebra_integrate,
            self.geogebra_simplify,
        ]

    async def _evaluate(self, session: IGeoGebraSession, expression: str) -> str:
        label = f"casResult_{secrets.token_hex(3)}"
        await self.run_command(session, f"{label} = {expression}")
        try:
            return await self.remote(session, "get_value_string", label)
        finally:
            try:
                await session.delete_object(label)
            except Exception as e:
                logger.warning("Could not delete temporary object {label}: {error}", label=label, error=str(e))

    @staticmethod
    def _check_expression(expression: str, what: str = "Expression") -> str:
        expression = expression.strip()
        if not expression:
            raise ToolValidationError(f"{what} must be a non-empty string")
        if expression.count("(") != expression.count(")"):
            raise ToolValidationError(f"Unbalanced parentheses in {what.lower()}")
        return expression

    async def geogebra_solve_equation(self, equation: str, variable: str = "x") -> Dict[str, Any]:
        """
        Solve an equation for a variable, e.g. "x^2 - 4 = 0".

        Args:
            equation: equation or expression equal to zero
            variable: variable to solve for
        """
        equation = self._check_expression(equation, "Equation")
        validate_parameter_name(variable)
        session = await self.session()
        command = f"Solve({equation}, {variable})"
        return {"command": command, "equation": equation, "variable": variable,
                "solution": await self._evaluate(session, command)}

    async def geogebra_differentiate(self, expression: str, variable: str = "x", order: int = 1) -> Dict[str, Any]:
        """
        Differentiate an expression.

        Args:
            expression: expression to differentiate
            variable: differentiation variable
            order: derivative order
        """
        expression = self._check_expression(expression)
        validate_parameter_name(variable)
        if not 1 <= order <= 10:
            raise ToolValidationError("Derivative order must be between 1 and 10")
        session = await self.session()
        command = f"Derivative({expression}, {variable})" if order == 1 else f"Derivative({expression}, {variable}, {order})"
        return {"command": command, "expression": expression, "derivative": await self._evaluate(session, command)}

    async def geogebra_integrate(
            self,
            expression: str,
            variable: str = "x",
            lower_bound: Optional[float] = None,
            upper_bound: Optional[float] = None,
    ) -> Dict[str, Any]:
        """
        Integrate an expression, definitely when both bounds are given.

        Args:
            expression: expression to integrate
            variable: integration variable
            lower_bound: lower limit of a definite integral
            upper_bound: upper limit of a definite integral
        """
        expression = self._check_expression(expression)
        validate_parameter_name(variable)
        if (lower_bound is None) != (upper_bound is None):
            raise ToolValidationError("lower_bound and upper_bound must be given together")
        if lower_bound is None:
            command = f"Integral({expression}, {variable})"
        else:
            command = f"Integral({expression}, {variable}, {lower_bound}, {upper_bound})"
        session = await self.session()
        return {"command": command, "expression": expression, "integral": await self._evaluate(session, command)}

    async def geogebra_simplify(self, expression: str) -> Dict[str, Any]:
        """
        Simplify an algebraic expression.

        Args:
            expression: expression to simplify
        """
        expression = self._check_expression(expression)
        session = await self.session()
        command = f"Simplify({expression})"
        return {"command": command, "expression": expression, "simplified": await self._evaluate(session, command)}
