from fastapi import BackgroundTasks, Depends, FastAPI, File, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ValidationError
from typing import Any, Dict, List, Optional

from src.csv_agent.config import settings
from src.csv_agent.core.session import SessionController
from src.csv_agent.core.sorting import use_system_collation
from src.csv_agent.core.translator import build_translator
from src.csv_agent.models import parse_step
from src.csv_agent.utils.exceptions import AppException, InvalidStepError
from src.csv_agent.utils.logger import get_logger

logger = get_logger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    docs_url="/docs"
)

use_system_collation()

# --- In-Memory Session Store ---
# Handlers are all `async def` so requests touching the session run one at a
# time on the event loop.
ACTIVE_SESSION: Optional[SessionController] = None


async def get_session() -> SessionController:
    """Single shared session, created on first use with a translator built from settings."""
    global ACTIVE_SESSION
    if ACTIVE_SESSION is None:
        translator = build_translator(
            settings.GROQ_API_KEY,
            model=settings.DEFAULT_MODEL,
            temperature=settings.TEMPERATURE,
            max_tokens=settings.MAX_TOKENS,
            max_retries=settings.TRANSLATOR_MAX_RETRIES,
        )
        ACTIVE_SESSION = SessionController(translator)
    return ACTIVE_SESSION


class CommandPayload(BaseModel):
    command: str


class SortPayload(BaseModel):
    key: str


@app.exception_handler(AppException)
async def app_exception_handler(request: Request, exc: AppException):
    logger.warning(f"{request.method} {request.url.path} -> {exc.status_code}: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def _state(session: SessionController) -> Dict[str, Any]:
    return {
        "status": session.status.value,
        "filename": session.filename,
        "can_undo": session.can_undo,
        "steps": len(session.steps),
        "pending": session.pending.model_dump(mode="json") if session.pending else None,
        "last_message": session.messages[-1].model_dump() if session.messages else None,
    }


async def _describe_columns(
    session: SessionController, load_id: str, headers: List[str], rows: List[dict]
) -> None:
    """
    Background enrichment; runs after the upload response has been sent.
    The LLM call runs in the threadpool, the schema update back on the event loop.
    """
    descriptions = await run_in_threadpool(session.translator.describe_columns, headers, rows)
    if descriptions:
        session.apply_descriptions(descriptions, load_id=load_id)


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "online", "message": f"{settings.APP_NAME} API is running"}


@app.post("/upload")
async def upload_csv(
    background_tasks: BackgroundTasks,
    file: UploadFile = File(...),
    session: SessionController = Depends(get_session),
):
    """
    Uploads a CSV file, infers column types and starts a fresh editing session.
    """
    logger.info(f"Received file upload: {file.filename}")
    content = await file.read()
    context = session.load(content, file.filename or "data.csv")

    background_tasks.add_task(
        _describe_columns, session, session.load_id, list(context.dataset.headers), context.dataset.rows
    )

    return {
        "message": session.messages[-1].content,
        "filename": context.filename,
        "rows": len(context.dataset.rows),
        "columns": [{"name": name, "type": info.type.value} for name, info in context.columns.items()],
    }


@app.post("/command")
async def run_command(payload: CommandPayload, session: SessionController = Depends(get_session)):
    """
    Translates a natural language command into a step and previews it.
    Expected Payload: {"command": "remove rows where age is below 18"}
    """
    if not payload.command.strip():
        raise InvalidStepError("Command field is required.")
    session.submit_command(payload.command)
    return _state(session)


@app.post("/steps")
async def propose_step(payload: Dict[str, Any], session: SessionController = Depends(get_session)):
    """Previews a step supplied directly as JSON, bypassing the translator."""
    try:
        step = parse_step(payload)
    except ValidationError as e:
        raise InvalidStepError(f"Invalid step: {e.error_count()} validation error(s).")
    session.propose_step(step)
    return _state(session)


@app.post("/confirm")
async def confirm(session: SessionController = Depends(get_session)):
    session.confirm()
    return _state(session)


@app.post("/cancel")
async def cancel(session: SessionController = Depends(get_session)):
    session.cancel()
    return _state(session)


@app.post("/undo")
async def undo(session: SessionController = Depends(get_session)):
    session.undo()
    return _state(session)


@app.post("/sort")
async def toggle_sort(payload: SortPayload, session: SessionController = Depends(get_session)):
    config = session.toggle_sort(payload.key)
    return {"sort": config.model_dump(mode="json") if config else None}


@app.get("/data")
async def get_data(limit: int = 100, offset: int = 0, session: SessionController = Depends(get_session)):
    """
    Returns the committed dataset in display order, a page at a time, with the
    highlight color of every formatted cell.
    """
    rows = session.display_rows()[offset:offset + limit]
    colors = []
    for row in rows:
        row_colors = {}
        for header in session.dataset.headers:
            color = session.cell_color(row.get(header), header)
            if color is not None:
                row_colors[header] = color.value
        colors.append(row_colors)

    return {
        "headers": session.dataset.headers,
        "schema": {name: info.model_dump(mode="json") for name, info in session.schema.items()},
        "total_rows": len(session.dataset.rows),
        "rows": rows,
        "colors": colors,
        "sort": session.sort_config.model_dump(mode="json") if session.sort_config else None,
        "formats": [rule.model_dump(mode="json") for rule in session.rules],
        "messages": [message.model_dump() for message in session.messages],
        **_state(session),
    }


@app.delete("/formats/{rule_id}")
async def delete_format(rule_id: str, session: SessionController = Depends(get_session)):
    if not session.remove_format(rule_id):
        raise InvalidStepError(f"No formatting rule with id '{rule_id}'.")
    return {"formats": [rule.model_dump(mode="json") for rule in session.rules]}


@app.get("/export/csv")
async def export_csv(session: SessionController = Depends(get_session)):
    name = f"edited_{session.filename or 'data.csv'}"
    return PlainTextResponse(
        session.export_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{name}"'},
    )


@app.get("/export/steps")
async def export_steps(session: SessionController = Depends(get_session)):
    stem = (session.filename or "data").rsplit(".", 1)[0]
    return PlainTextResponse(
        session.export_steps(),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="steps_{stem}.json"'},
    )
