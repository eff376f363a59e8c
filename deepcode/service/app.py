"""FastAPI application consumed by the DeepCode desktop shell."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any, AsyncIterator, Callable, Dict, List, Literal, Optional, TypeVar

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from ..assistant import Assistant
from ..config import ConfigurationError, DeepCodeConfig, load_config, resolve_api_keys
from ..dependencies import analyze_dependencies
from ..file_tree import FileTreeScanner, read_code_file
from ..learning.orchestrator import LearningInProgressError, LearningOrchestrator
from ..llm.gateway import ModelError, ModelGateway
from ..logging import get_logger
from ..models import ApiKeys, ChatMessage
from ..stores.project_store import PersistenceError, ProjectStore

T = TypeVar("T")

# Route slug -> assistant action name.
CODE_ACTION_ROUTES: Dict[str, str] = {
    "comment-code": "comment",
    "detect-bugs": "detect_bugs",
    "optimize-code": "optimize",
    "generate-tests": "generate_tests",
    "explain-code": "explain",
}

logger = get_logger("service")


class KeysRequest(BaseModel):
    openai: Optional[str] = None
    gemini: Optional[str] = None


class FolderRequest(BaseModel):
    path: str


class ChatTurn(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str
    timestamp: str = ""


class ChatRequest(BaseModel):
    message: str
    conversation: List[ChatTurn] = Field(default_factory=list)


class CodeActionRequest(BaseModel):
    filePath: str = ""
    content: str = ""
    language: Optional[str] = None


class SuccessResponse(BaseModel):
    success: bool = True


class HealthResponse(BaseModel):
    status: str


@dataclass
class ServiceContext:
    """Long-lived collaborators shared by every request."""

    config: DeepCodeConfig
    store: ProjectStore
    orchestrator: LearningOrchestrator
    assistant: Assistant
    scanner: FileTreeScanner

    @classmethod
    def from_config(cls, config: DeepCodeConfig) -> "ServiceContext":
        store = ProjectStore(config.state_path)
        gateway = ModelGateway(config.llm)
        return cls(
            config=config,
            store=store,
            orchestrator=LearningOrchestrator(store, gateway=gateway, config=config.learning),
            assistant=Assistant(gateway),
            scanner=FileTreeScanner(config.learning.ignore_names),
        )


async def _in_thread(func: Callable[[], T]) -> T:
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, func)


def create_app(context: ServiceContext | None = None) -> FastAPI:
    """Create the FastAPI application exposing deepcode operations."""

    service = context or ServiceContext.from_config(load_config())

    @asynccontextmanager
    async def lifespan(_: FastAPI) -> AsyncIterator[None]:
        yield
        service.orchestrator.shutdown(wait=False)

    app = FastAPI(title="DeepCode Service", version="0.1.0", lifespan=lifespan)
    app.state.service = service

    def get_service(request: Request) -> ServiceContext:
        return request.app.state.service

    def _require_project_path(ctx: ServiceContext) -> str:
        state = ctx.store.load_state()
        if state is None or not state.project_path:
            raise HTTPException(status_code=400, detail="No project folder selected")
        return state.project_path

    @app.get("/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        return HealthResponse(status="ok")

    @app.get("/api/project")
    async def get_project(ctx: ServiceContext = Depends(get_service)) -> Dict[str, Any]:
        return ctx.store.load_or_default().to_payload()

    @app.post("/api/keys", response_model=SuccessResponse)
    async def save_keys(
        payload: KeysRequest, ctx: ServiceContext = Depends(get_service)
    ) -> SuccessResponse:
        state = ctx.store.load_or_default()
        provided = ApiKeys(openai=payload.openai or None, gemini=payload.gemini or None)
        ctx.store.save_state(state.model_copy(update={"api_keys": provided.merged(state.api_keys)}))
        return SuccessResponse()

    @app.post("/api/folder")
    async def open_folder(
        payload: FolderRequest, ctx: ServiceContext = Depends(get_service)
    ) -> Dict[str, Any]:
        folder = Path(payload.path).expanduser().resolve()
        if not folder.is_dir():
            raise FileNotFoundError(f"Project path not found: {payload.path}")
        tree = await _in_thread(lambda: ctx.scanner.scan(folder))
        state = ctx.store.load_or_default()
        ctx.store.save_state(state.model_copy(update={"project_path": str(folder)}))
        return {"path": str(folder), "fileTree": tree.to_dict()}

    @app.get("/api/folder/tree")
    async def folder_tree(ctx: ServiceContext = Depends(get_service)) -> Dict[str, Any]:
        project_path = _require_project_path(ctx)
        tree = await _in_thread(lambda: ctx.scanner.scan(project_path))
        return tree.to_dict()

    @app.get("/api/file")
    async def read_file(path: str = "", ctx: ServiceContext = Depends(get_service)) -> Dict[str, Any]:
        if not path:
            raise HTTPException(status_code=400, detail="No file path provided")
        return asdict(read_code_file(path))

    @app.post("/api/codebase/learn", response_model=SuccessResponse)
    async def learn_codebase(ctx: ServiceContext = Depends(get_service)) -> SuccessResponse:
        state = ctx.store.load_state()
        if state is None or not state.project_path:
            raise HTTPException(status_code=400, detail="No project folder selected")
        ctx.orchestrator.trigger(state.project_path, resolve_api_keys(state.api_keys))
        return SuccessResponse()

    @app.get("/api/codebase/status")
    async def codebase_status(ctx: ServiceContext = Depends(get_service)) -> Dict[str, Any]:
        return ctx.orchestrator.status().to_dict()

    @app.get("/api/codebase/dependencies")
    async def codebase_dependencies(ctx: ServiceContext = Depends(get_service)) -> Dict[str, Any]:
        state = ctx.store.load_state()
        if state is None or state.dependency_analytics is None:
            return {"dependencies": None}
        return {"dependencies": state.dependency_analytics.to_payload()}

    @app.get("/api/codebase/explanations")
    async def codebase_explanations(ctx: ServiceContext = Depends(get_service)) -> Dict[str, Any]:
        state = ctx.store.load_state()
        index = state.codebase_index if state else None
        if index is None or not index.code_explanations:
            return {"explanations": []}
        return {"explanations": [item.to_payload() for item in index.code_explanations]}

    @app.post("/api/chat")
    async def chat(payload: ChatRequest, ctx: ServiceContext = Depends(get_service)) -> Dict[str, Any]:
        state = ctx.store.load_or_default()
        conversation = [
            ChatMessage(role=turn.role, content=turn.content, timestamp=turn.timestamp)
            for turn in payload.conversation
        ]
        reply = await _in_thread(lambda: ctx.assistant.chat(payload.message, conversation, state))
        return asdict(reply)

    @app.post("/api/ai/analyze-dependencies")
    async def dependencies(ctx: ServiceContext = Depends(get_service)) -> Dict[str, Any]:
        project_path = _require_project_path(ctx)
        analysis = await _in_thread(lambda: analyze_dependencies(project_path))
        ctx.store.update_dependencies(analysis)
        return analysis.to_payload()

    @app.post("/api/ai/{action}")
    async def code_action(
        action: str,
        payload: CodeActionRequest,
        ctx: ServiceContext = Depends(get_service),
    ) -> Dict[str, Any]:
        action_name = CODE_ACTION_ROUTES.get(action)
        if action_name is None:
            raise HTTPException(status_code=404, detail=f"Unknown AI action: {action}")
        api_keys = resolve_api_keys(ctx.store.load_or_default().api_keys)
        result = await _in_thread(
            lambda: ctx.assistant.run_code_action(
                action_name, payload.filePath, payload.content, payload.language, api_keys
            )
        )
        return {
            "action": action,
            "filePath": result.file_path,
            "result": result.result,
            "metadata": result.metadata,
        }

    def _error(status_code: int) -> Callable[[Any, Exception], Any]:
        async def handler(_: Any, exc: Exception) -> JSONResponse:
            if status_code >= 500:
                logger.error("Request failed: %s", exc)
            return JSONResponse(status_code=status_code, content={"detail": str(exc)})

        return handler

    app.add_exception_handler(ConfigurationError, _error(400))
    app.add_exception_handler(ValueError, _error(400))
    app.add_exception_handler(FileNotFoundError, _error(404))
    app.add_exception_handler(LearningInProgressError, _error(409))
    app.add_exception_handler(PersistenceError, _error(500))
    app.add_exception_handler(ModelError, _error(502))

    return app


def run_service(
    host: str = "127.0.0.1", port: int = 8000, config: DeepCodeConfig | None = None
) -> None:  # pragma: no cover - integration path
    import uvicorn

    context = ServiceContext.from_config(config or load_config())
    uvicorn.run(create_app(context), host=host, port=port)


__all__ = ["CODE_ACTION_ROUTES", "ServiceContext", "create_app", "run_service"]
