from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ValidationError
from typing import List, Optional
import logging
import os

from veo_replicator import __version__
from veo_replicator.config import DEFAULT_MODEL
from veo_replicator.gateway import generate_with_genai

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("api")

app = FastAPI(
    title="Veo3 Replicator Gateway",
    description="Thin proxy that forwards prompts and frames to Gemini",
    version=__version__,
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["*"],
)

# --- Models ---

class GeminiRequest(BaseModel):
    apiKey: Optional[str] = None
    prompt: Optional[str] = None
    images: Optional[List[str]] = None
    systemInstruction: Optional[str] = None
    model: Optional[str] = None


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})

# --- Endpoints ---

@app.get("/api/status")
async def get_status():
    """Health check"""
    return {"status": "online", "version": __version__, "default_model": DEFAULT_MODEL}


@app.api_route(
    "/api/gemini",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
)
async def gemini(request: Request):
    """Forward one generate request to Gemini and return {"text": ...}"""
    if request.method == "OPTIONS":
        return Response(status_code=200)
    if request.method != "POST":
        return _error(405, "Method not allowed")

    try:
        payload = await request.json()
        body = GeminiRequest(**(payload or {}))
    except (ValueError, TypeError, ValidationError) as e:
        return _error(400, f"Invalid request body: {e}")

    if not body.apiKey:
        return _error(400, "API key is required")
    if not body.prompt:
        return _error(400, "Prompt is required")

    try:
        text = generate_with_genai(
            body.apiKey,
            body.model or DEFAULT_MODEL,
            body.prompt,
            images=body.images,
            system_instruction=body.systemInstruction,
        )
    except Exception as e:
        logger.error(f"Gemini request failed: {e}")
        return _error(500, str(e) or "Failed to generate content")

    return {"text": text}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8000")))
