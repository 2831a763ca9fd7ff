import logging
import os
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from routers.do_sync import router as do_sync_router
import jwt

# Configure root logging (stdout handler) with level from env
log_level = os.getenv("LOG_LEVEL", "INFO").upper()
level = getattr(logging, log_level, logging.INFO)
logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logging.getLogger("do_sync").setLevel(level)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(do_sync_router)

# --- Global auth middleware: resolves the calling user for API routes ---
JWT_SECRET = os.getenv("JWT_SECRET", "insecure-placeholder-change-in-env")
JWT_ALGORITHM = "HS256"

PUBLIC_PATH_PREFIXES = [
    "/api/health",
]

def _is_public_path(path: str) -> bool:
    for p in PUBLIC_PATH_PREFIXES:
        if path.startswith(p):
            return True
    return False

@app.middleware("http")
async def auth_middleware(request: Request, call_next):
    path = request.url.path
    if path.startswith("/api/") and not _is_public_path(path):
        auth_header = request.headers.get("Authorization", "")
        if not auth_header.lower().startswith("bearer "):
            return JSONResponse(status_code=401, content={"detail": "Not authenticated"})
        token = auth_header.split(" ", 1)[1].strip()
        try:
            payload = jwt.decode(token, JWT_SECRET, algorithms=[JWT_ALGORITHM])
        except jwt.PyJWTError:
            return JSONResponse(status_code=401, content={"detail": "Invalid or expired token"})
        request.state.auth = {
            "sub": payload.get("sub"),
            "username": payload.get("username"),
        }
    response = await call_next(request)
    return response

@app.get("/api/health")
def health():
    return {"status": "ok"}
