import logging
from fastapi import Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import load_settings
from .dispatcher import Dispatcher
from .llm import GeminiGateway, list_generation_models
from .models import ProxyRequest, SafetyRequest
from .safety import evaluate

settings = load_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, GET, OPTIONS",
    "Access-Control-Allow-Headers": "authorization, x-client-info, apikey, content-type",
}

app = FastAPI(title="MediProxy")
app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])


@app.on_event("startup")
async def _start():
    app.state.dispatcher = Dispatcher(GeminiGateway(settings))
    if not settings.gemini_api_key:
        logger.error("GEMINI_API_KEY is not set; every model action will fail")
    elif settings.list_models_on_startup:
        try:
            for name in list_generation_models(settings):
                logger.info("generateContent model available: %s", name)
        except Exception as e:
            logger.warning("Model listing failed: %s", e)


def get_dispatcher(request: Request) -> Dispatcher:
    dispatcher = getattr(request.app.state, "dispatcher", None)
    if dispatcher is None:
        dispatcher = request.app.state.dispatcher = Dispatcher(GeminiGateway(settings))
    return dispatcher


@app.exception_handler(RequestValidationError)
async def _bad_request(request: Request, exc: RequestValidationError):
    fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
    return JSONResponse(
        status_code=400,
        content={"error": f"Solicitud inválida: {fields}", "kind": "InvalidRequest"},
        headers=CORS_HEADERS,
    )


@app.options("/{path:path}")
async def preflight(path: str):
    return Response(status_code=200, headers=CORS_HEADERS)


@app.post("/")
@app.post("/proxy")
async def proxy(req: ProxyRequest, dispatcher: Dispatcher = Depends(get_dispatcher)):
    result = await dispatcher.handle(req.action, req.payload)
    return JSONResponse(status_code=result.status_code, content=result.body, headers=CORS_HEADERS)


@app.post("/safety")
async def safety(req: SafetyRequest):
    return evaluate(req.objective, req.note).model_dump()


@app.get("/health")
async def health():
    return {
        "provider": "gemini" if settings.gemini_api_key else "unconfigured",
        "model": settings.model_name,
    }
