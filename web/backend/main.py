"""FastAPI backend: agent-service proxies and the conversation API"""
import logging
from typing import Dict, Any

from fastapi import FastAPI, HTTPException, UploadFile, File, Request
from fastapi.responses import JSONResponse, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.datastructures import UploadFile as FormFile
from dotenv import load_dotenv

from analysis.csv_codec import parse_bytes
from analysis.errors import FormatError, ValidationError
from orchestrator.controller import ConversationLoop
from orchestrator.policies import PolicyManager
from orchestrator.remote import ProxyResponse, ServiceProxy, ServiceTargets
from web.backend.models import (
    AnalyzeRequest,
    ChatRequest,
    ConversationView,
    CreateConversationRequest,
    DatasetTextRequest,
    GoalRequest,
    QuestionAsk,
    QuestionRequest,
)
from web.backend.services import ConversationService

# Load environment variables
load_dotenv()

# Setup logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(title="Dataset Validation Orchestrator", version="1.0.0")

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Configuration
policy = PolicyManager.from_env()
targets = ServiceTargets.from_env()

# Initialize services
proxy = ServiceProxy(targets=targets, policy=policy)
conversation_service = ConversationService(proxy, policy)


def _to_response(result: ProxyResponse) -> Response:
    return Response(content=result.content, status_code=result.status_code, media_type=result.media_type)


async def _read_multipart(request: Request, require_goal: bool = False) -> bytes:
    """Raw body for passthrough, after checking the form carries a file (and a goal)"""
    body = await request.body()
    form = await request.form()
    if not isinstance(form.get("file"), FormFile):
        raise HTTPException(status_code=400, detail="No file provided")
    goal = form.get("goal")
    if require_goal and (not isinstance(goal, str) or not goal.strip()):
        raise HTTPException(status_code=400, detail="No ML goal provided")
    return body


def _get_conversation(conversation_id: str) -> ConversationLoop:
    loop = conversation_service.get(conversation_id)
    if loop is None:
        raise HTTPException(status_code=404, detail="Conversation not found")
    return loop


@app.get("/")
async def root():
    return {
        "message": "Dataset Validation Orchestrator API",
        "version": "1.0.0",
        "docs_url": "/docs"
    }


# --- Agent service proxies -------------------------------------------------

@app.post("/api/ml-validation/validate")
async def proxy_file_validation(request: Request):
    """Forward a multipart upload (file + goal) to the validation service unchanged"""
    body = await _read_multipart(request, require_goal=True)
    result = await proxy.forward_multipart(targets.ml_validation, body, request.headers.get("content-type"))
    return _to_response(result)


@app.post("/api/ml-validation/analyze")
async def proxy_csv_validation(payload: AnalyzeRequest):
    result = await proxy.forward_json(targets.analyze, payload.model_dump())
    return _to_response(result)


@app.post("/api/agents/eda")
async def proxy_eda(request: Request):
    body = await _read_multipart(request)
    result = await proxy.forward_multipart(targets.eda_agent_url, body, request.headers.get("content-type"))
    return _to_response(result)


@app.post("/api/validation/question")
async def proxy_question(payload: QuestionRequest):
    """Always answers 200 so the chat never shows a raw upstream error"""
    result = await proxy.ask_question(payload.model_dump())
    return _to_response(result)


@app.post("/api/ml/assistant")
async def proxy_assistant(payload: ChatRequest):
    if not payload.message:
        raise HTTPException(status_code=400, detail="Message is required")
    result = await proxy.chat(payload.message, payload.context, payload.conversation_id)
    return _to_response(result)


@app.get("/api/ml/assistant")
async def assistant_health():
    return _to_response(await proxy.health())


# --- Conversation API ------------------------------------------------------

@app.post("/conversations")
async def create_conversation(request: CreateConversationRequest) -> ConversationView:
    loop = conversation_service.create(request.session if request.restore_session else None)
    return conversation_service.view(loop)


@app.get("/conversations/{conversation_id}")
async def get_conversation(conversation_id: str) -> ConversationView:
    return conversation_service.view(_get_conversation(conversation_id))


@app.post("/conversations/{conversation_id}/dataset")
async def upload_dataset(conversation_id: str, file: UploadFile = File(...)) -> ConversationView:
    loop = _get_conversation(conversation_id)
    safe_filename = conversation_service.sanitize_filename(file.filename)
    if not safe_filename.endswith('.csv'):
        raise HTTPException(status_code=400, detail="Please upload a CSV file")
    try:
        content = await conversation_service.read_upload(file)
        loop.ingest(parse_bytes(content), source_name=safe_filename)
    # FormatError, ValidationError and the size cap are all ValueErrors
    except ValueError as e:
        logger.error(f"Upload failed: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    logger.info(f"Dataset uploaded to conversation {conversation_id}: {safe_filename}")
    return conversation_service.view(loop)


@app.post("/conversations/{conversation_id}/dataset/text")
async def upload_dataset_text(conversation_id: str, request: DatasetTextRequest) -> ConversationView:
    loop = _get_conversation(conversation_id)
    try:
        loop.ingest_text(request.csv_text, source_name=request.filename)
    except (FormatError, ValidationError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    return conversation_service.view(loop)


@app.post("/conversations/{conversation_id}/goal")
async def submit_goal(conversation_id: str, request: GoalRequest) -> Dict[str, Any]:
    loop = _get_conversation(conversation_id)
    try:
        result = await loop.submit_goal(request.text)
    except ValidationError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return {
        "conversation_id": loop.id,
        "state": loop.state.value,
        "goal": loop.goal.model_dump() if loop.goal else None,
        "result": result.to_wire(),
    }


@app.post("/conversations/{conversation_id}/questions")
async def ask_question(conversation_id: str, request: QuestionAsk) -> Dict[str, Any]:
    loop = _get_conversation(conversation_id)
    try:
        message = await loop.ask(request.question)
    except ValidationError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return message.model_dump()


@app.exception_handler(FormatError)
async def format_error_handler(request: Request, exc: FormatError):
    return JSONResponse(status_code=400, content={"error": "Format error", "message": str(exc)})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")
