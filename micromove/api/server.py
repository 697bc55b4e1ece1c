import json

from fastapi import APIRouter, Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from micromove.config import AVAILABLE_MODELS, DEFAULT_MODEL, DEFAULT_TIMER_MINUTES, TIMER_OPTIONS
from micromove.errors import ValidationError
from micromove.infrastructure.llm import ChatCompletionClient, get_chat_client
from micromove.infrastructure.logging import get_logger, setup_logging
from micromove.models.schemas import BreakdownResponse, ErrorResponse, ReframeResponse
from micromove.tools.breakdown import breakdown_placeholder, handle_breakdown
from micromove.tools.reframe import handle_reframe, reframe_placeholder

logger = get_logger(__name__)

app = FastAPI(title="MicroMove API")

# Enable CORS for the browser client
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

router = APIRouter()

@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content=ErrorResponse(error=exc.message).model_dump())

async def _read_body(request: Request):
    """Reads the JSON body once. Returns None when it cannot be decoded."""
    try:
        return json.loads(await request.body())
    except (ValueError, UnicodeDecodeError) as e:
        logger.warning("Unreadable request body", extra={"props": {
            "event": "unreadable_body",
            "path": request.url.path,
            "cause": str(e),
        }})
        return None

@router.post("/breakdown", response_model=BreakdownResponse, responses={400: {"model": ErrorResponse}})
async def breakdown(request: Request, client: ChatCompletionClient = Depends(get_chat_client)):
    body = await _read_body(request)
    if body is None:
        return breakdown_placeholder()
    return await handle_breakdown(body, client=client)

@router.post("/reframe", response_model=ReframeResponse, responses={400: {"model": ErrorResponse}})
async def reframe(request: Request, client: ChatCompletionClient = Depends(get_chat_client)):
    body = await _read_body(request)
    if body is None:
        return reframe_placeholder()
    return await handle_reframe(body, client=client)

@app.get("/api/options")
async def get_options():
    """Choices offered by the settings panel."""
    return {
        "models": AVAILABLE_MODELS,
        "default_model": DEFAULT_MODEL,
        "timer_options": TIMER_OPTIONS,
        "default_timer_minutes": DEFAULT_TIMER_MINUTES,
    }

app.include_router(router)
app.include_router(router, prefix="/api")

def run(host: str = "0.0.0.0", port: int = 8000):
    import uvicorn
    setup_logging()
    uvicorn.run(app, host=host, port=port)

if __name__ == "__main__":
    run()
