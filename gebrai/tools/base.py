from typing import Any, Awaitable, Callable, List, Optional

from gebrai.config import SessionTimeouts
from gebrai.data_classes import CommandResult, ObjectInfo
from gebrai.interfaces.session import IDEMPOTENT_OPERATIONS, IGeoGebraSession
from gebrai.pool import InstancePool
from gebrai.retry import retry
from gebrai.tools.validation import LINE_STYLES, validate_styling


class PoolBackedTools:
    """
    Shared plumbing for tool groups that talk to the pool's default GeoGebra session.

    Remote calls go through `remote`, which retries operations listed in IDEMPOTENT_OPERATIONS
    and runs everything else exactly once.
    """

    def __init__(self, pool: InstancePool, timeouts: Optional[SessionTimeouts] = None):
        self.pool = pool
        self.timeouts = timeouts or pool.timeouts

    def handlers(self) -> List[Callable[..., Awaitable[Any]]]:
        """Bound tool handlers of this group, in registration order."""
        raise NotImplementedError

    async def session(self) -> IGeoGebraSession:
        return await self.pool.get_default_instance()

    async def remote(self, session: IGeoGebraSession, operation: str, *args: Any, **kwargs: Any) -> Any:
        method = getattr(session, operation)
        if operation not in IDEMPOTENT_OPERATIONS:
            return await method(*args, **kwargs)
        return await retry(
            lambda: method(*args, **kwargs),
            max_attempts=self.timeouts.retry_attempts,
            delay_ms=self.timeouts.retry_delay * 1000,
            label=operation,
        )

    async def run_command(self, session: IGeoGebraSession, command: str) -> CommandResult:
        result = await session.eval_command(command)
        return result.raise_for_status()

    async def object_info(self, session: IGeoGebraSession, name: str) -> Optional[dict]:
        info: Optional[ObjectInfo] = await self.remote(session, "get_object_info", name)
        return info.model_dump() if info else None

    async def apply_styling(
            self,
            session: IGeoGebraSession,
            name: str,
            color: Optional[str] = None,
            thickness: Optional[int] = None,
            style: Optional[str] = None,
    ) -> List[str]:
        """Runs SetColor / SetLineThickness / SetLineStyle for whatever was supplied and returns the commands."""
        validate_styling(color, thickness, style)
        commands = []
        if color:
            commands.append(f'SetColor({name}, "{color.strip()}")')
        if thickness is not None:
            commands.append(f"SetLineThickness({name}, {thickness})")
        if style and style.lower() != "solid":
            commands.append(f"SetLineStyle({name}, {LINE_STYLES[style.lower()]})")
        for command in commands:
            await self.run_command(session, command)
        return commands
