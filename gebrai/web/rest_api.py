import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Union

from dotenv import load_dotenv
from fastapi import Body, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from loguru import logger

from gebrai import __version__
from gebrai.app import GeoGebraApp
from gebrai.config import GeoGebraServerConfig
from gebrai.data_classes import AnimationOptions, ToolResult
from gebrai.errors import GeoGebraError, McpErrorCode, ToolValidationError
from gebrai.exports import describe_artifact, list_exports, media_type_for, safe_export_path, save_artifact
from gebrai.web.models import CommandRequest, ErrorResponse, ExportRequest, ToolListResponse, WarmupRequest

INLINE_EXPORT_TOOLS = {"png": "geogebra_export_png", "svg": "geogebra_export_svg", "pdf": "geogebra_export_pdf"}
FILE_EXPORT_FORMATS = ("png", "svg", "pdf", "gif", "mp4")


def _status_for(result: ToolResult) -> int:
    if not result.is_error:
        return 200
    code = result.payload().get("code")
    if code == int(McpErrorCode.TOOL_NOT_FOUND):
        return 404
    if code == int(McpErrorCode.INVALID_PARAMS):
        return 400
    return 500


def _error(status_code: int, message: str, code: Optional[int] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=ErrorResponse(error=message, code=code).model_dump())


class GeoGebraRestAPI(FastAPI):
    """
    REST front end over the same tool registry and instance pool the MCP server uses.
    Every JSON body carries a `success` flag.
    """

    def __init__(
        self,
        *,
        geogebra: Optional[GeoGebraApp] = None,
        config: Optional[GeoGebraServerConfig] = None,
        debug: bool = False,
        title: str = "GeoGebra MCP HTTP endpoint",
        description: str = "REST access to GeoGebra constructions and exports",
        version: str = __version__,
        docs_url: str = "/docs",
        redoc_url: str = "/redoc",
    ) -> None:
        super().__init__(
            debug=debug,
            title=title,
            description=description,
            version=version,
            docs_url=docs_url,
            redoc_url=redoc_url,
            lifespan=self._lifespan,
        )
        load_dotenv(override=True)
        if geogebra is None:
            geogebra = GeoGebraApp(config or GeoGebraServerConfig())
        self.geogebra = geogebra
        self.config = geogebra.config
        self.started_at = time.monotonic()
        self._routes_config()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI) -> AsyncIterator[None]:
        await self.geogebra.start()
        try:
            yield
        finally:
            await self.geogebra.shutdown()

    def _routes_config(self):
        self.add_middleware(
            CORSMiddleware,
            allow_origins=[origin.strip() for origin in self.config.cors_origin.split(",")],
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )
        self.get("/health", description="Liveness check")(self.health)
        self.get("/status", description="Server, pool and tool overview")(self.status)
        self.get("/tools", description="List registered tools")(self.list_tools)
        self.post("/tools/{tool_name}", description="Execute a tool by name")(self.execute_tool)
        self.post("/geogebra/command", description="Execute a GeoGebra command")(self.command)
        self.post("/geogebra/export/{export_format}", description="Export inline as base64 or SVG text")(self.inline_export)
        self.post("/export/{export_format}", description="Export to a file in the export directory", response_model=None)(self.file_export)
        self.get("/download/{filename}", description="Download an exported file", response_model=None)(self.download)
        self.get("/files", description="List exported files")(self.files)
        self.post("/warmup", description="Pre-create GeoGebra instances")(self.warmup)
        self.get("/performance", description="Operation timings and pool statistics")(self.performance)
        self.get("/instances", description="Pooled instances")(self.instances)
        self.post("/instances/cleanup", description="Evict idle instances, or all of them with force=true")(self.cleanup_instances)

    async def _tool_response(self, name: str, arguments: Dict[str, Any]) -> JSONResponse:
        result = await self.geogebra.registry.execute_tool(name, arguments)
        return JSONResponse(status_code=_status_for(result), content=result.payload())

    def health(self) -> Dict[str, Any]:
        return {
            "success": True,
            "status": "healthy",
            "version": __version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    def status(self) -> Dict[str, Any]:
        return {
            "success": True,
            "uptime": round(time.monotonic() - self.started_at, 3),
            "toolCount": self.geogebra.registry.tool_count,
            "pool": self.geogebra.pool.stats().model_dump(),
            "ffmpegAvailable": self.geogebra.converter.is_available(),
            "exportDir": str(self.config.export_dir),
        }

    def list_tools(self) -> ToolListResponse:
        tools = [d.model_dump() for d in self.geogebra.registry.list_tools()]
        return ToolListResponse(count=len(tools), tools=tools)

    async def execute_tool(self, tool_name: str, arguments: Dict[str, Any] = Body(default={})) -> JSONResponse:
        return await self._tool_response(tool_name, arguments)

    async def command(self, request: CommandRequest) -> JSONResponse:
        return await self._tool_response("geogebra_eval_command", {"command": request.command})

    async def inline_export(self, export_format: str, arguments: Dict[str, Any] = Body(default={})) -> JSONResponse:
        tool_name = INLINE_EXPORT_TOOLS.get(export_format.lower())
        if tool_name is None:
            return _error(400, f"Unsupported inline export format: {export_format}", int(McpErrorCode.INVALID_PARAMS))
        return await self._tool_response(tool_name, arguments)

    async def file_export(self, export_format: str, request: ExportRequest = Body(default=ExportRequest())) -> Union[Dict[str, Any], JSONResponse]:
        export_format = export_format.lower()
        if export_format not in FILE_EXPORT_FORMATS:
            return _error(400, f"Unsupported export format: {export_format}", int(McpErrorCode.INVALID_PARAMS))
        try:
            if export_format in ("gif", "mp4"):
                options = AnimationOptions(
                    format=export_format,
                    duration=request.duration,
                    frame_rate=request.frame_rate,
                    quality=request.quality,
                    width=request.width,
                    height=request.height,
                )
                artifact = await self.geogebra.animation.export_animation(options, request.filename)
            else:
                artifact = await self.geogebra.geogebra.export_artifact(
                    export_format, request.scale, request.transparent, request.dpi, request.width, request.height
                )
                artifact = save_artifact(self.config.export_dir, artifact, request.filename)
        except ToolValidationError as e:
            return _error(400, e.message, int(e.code))
        except GeoGebraError as e:
            logger.error("Export to {format} failed: {error}", format=export_format, error=e.message)
            return _error(500, e.message, int(e.code))
        except OSError as e:
            logger.error("Could not write {format} export: {error}", format=export_format, error=str(e))
            return _error(500, f"Could not write export file: {e}", int(McpErrorCode.INTERNAL_ERROR))
        logger.info("Exported {format} to {path}", format=export_format, path=str(artifact.path))
        return {"success": True, **describe_artifact(artifact)}

    def download(self, filename: str) -> Union[FileResponse, JSONResponse]:
        try:
            path = safe_export_path(self.config.export_dir, filename)
        except ToolValidationError as e:
            return _error(400, e.message, int(e.code))
        if not path.is_file():
            return _error(404, f"File not found: {filename}")
        return FileResponse(path, media_type=media_type_for(path), filename=filename)

    def files(self) -> Dict[str, Any]:
        exported = list_exports(self.config.export_dir)
        return {
            "success": True,
            "count": len(exported),
            "files": [f.model_dump(mode="json") for f in exported],
        }

    async def warmup(self, request: WarmupRequest = Body(default=WarmupRequest())) -> JSONResponse:
        return await self._tool_response("performance_warm_up_pool", {"count": request.count})

    def performance(self) -> Dict[str, Any]:
        monitor = self.geogebra.monitor
        return {
            "success": True,
            "overall": monitor.stats().model_dump(),
            "operations": {name: monitor.stats(name).model_dump() for name in monitor.operation_names()},
            "pool": self.geogebra.pool.stats().model_dump(),
        }

    def instances(self) -> Dict[str, Any]:
        pool = self.geogebra.pool
        return {"success": True, "stats": pool.stats().model_dump(), "instances": pool.describe()}

    async def cleanup_instances(self, force: bool = False) -> Dict[str, Any]:
        pool = self.geogebra.pool
        if force:
            closed: List[str] = await pool.clear()
        else:
            closed = await pool.sweep()
        return {"success": True, "closed": closed, "stats": pool.stats().model_dump()}
