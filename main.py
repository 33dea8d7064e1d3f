import datetime
from pathlib import Path
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Depends
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, FileResponse
from fastapi.staticfiles import StaticFiles
from pymongo.errors import DuplicateKeyError, PyMongoError

from db_mongo import get_col, get_db, ensure_indexes
from settings import settings

from server.src.modules.access_gate import SessionGateMiddleware
from server.src.modules.animas_api import router as animas_router
from server.src.modules.authentification_helpers import SESSIONS, IdentityLookup, User, find_user, get_auth_token, normalize_email, require_auth, verify_password, _sha256
from server.src.modules.logging_helpers import logger

# ---------- Lifespan (startup/shutdown) ----------
@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_indexes()
    yield

app = FastAPI(lifespan=lifespan)

identity = (
    IdentityLookup(SESSIONS, settings.session_ttl_seconds, settings.session_cookie_name)
    if settings.auth_enabled
    else None
)
app.state.identity = identity

app.add_middleware(SessionGateMiddleware, identity=identity)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.cors_origins.split(",") if o.strip()],
    allow_methods=["*"],
    allow_headers=["*"],
)

BASE_DIR = Path(__file__).resolve().parent
CLIENT_DIR = BASE_DIR / "client"

# ---------- Pages ----------
app.mount("/static", StaticFiles(directory=str(CLIENT_DIR)), name="static")

PAGES = {
    "/": "index.html",
    "/login": "login.html",
    "/dashboard": "dashboard.html",
    "/dashboard/settings": "settings.html",
}

@app.get("/", include_in_schema=False)
def landing():
    return FileResponse(CLIENT_DIR / PAGES["/"])

@app.get("/login", include_in_schema=False)
def login_page():
    return FileResponse(CLIENT_DIR / PAGES["/login"])

@app.get("/dashboard", include_in_schema=False)
def dashboard_page():
    return FileResponse(CLIENT_DIR / PAGES["/dashboard"])

@app.get("/dashboard/settings", include_in_schema=False)
def settings_page():
    return FileResponse(CLIENT_DIR / PAGES["/dashboard/settings"])

# ---------- Auth ----------
@app.post("/auth/login")
async def auth_login(request: Request):
    if identity is None:
        return JSONResponse({"status": "error", "message": "Authentication is disabled"}, status_code=400)
    try:
        body = await request.json()
    except Exception:
        return JSONResponse({"status": "error", "message": "Invalid JSON body"}, status_code=400)
    email = normalize_email(body.get("email"))
    password = body.get("password") or ""
    if not email or not password:
        return JSONResponse({"status": "error", "message": "Missing email or password"}, status_code=400)

    user = find_user(email)
    if not user or not verify_password(password, user):
        logger.info("Login failed for email=%s", email)
        return JSONResponse({"status": "error", "message": "Invalid login credentials"}, status_code=401)

    role = user.get("role", "user")
    token = identity.open_session(email, role)
    logger.info("Login ok: %s (%s)", email, role)
    response = JSONResponse({"status": "success", "token": token, "email": email, "role": role})
    identity.set_cookie(response, token)
    return response

@app.post("/auth/signup")
async def auth_signup(request: Request):
    try:
        body = await request.json()
    except Exception:
        return JSONResponse({"status": "error", "message": "Invalid JSON body"}, status_code=400)
    email    = normalize_email(body.get("email"))
    password = body.get("password") or ""
    confirm  = body.get("confirm_password") or ""

    if not email or not password or not confirm:
        return {"status": "error", "message": "All fields are required."}
    if "@" not in email or "." not in email.split("@")[-1]:
        return {"status": "error", "message": "Invalid email address."}
    if password != confirm:
        return {"status": "error", "message": "Passwords do not match."}
    if len(password) < 6:
        return {"status": "error", "message": "Password must be at least 6 characters."}

    users = get_col("users")
    if users.find_one({"email": email}, {"_id": 1}):
        return {"status": "error", "message": "Email already registered."}

    doc = {
        "email": email,
        "password_hash": _sha256(password),
        "role": "user",
        "created_at": datetime.datetime.utcnow().isoformat() + "Z",
    }
    try:
        users.insert_one(dict(doc))
    except DuplicateKeyError:
        return {"status": "error", "message": "Email already registered."}
    except PyMongoError as e:
        logger.exception("Signup failed")
        return JSONResponse({"status": "error", "message": f"{type(e).__name__}: {e}"}, status_code=502)

    logger.info("Signup ok: %s", email)
    return {"status": "success", "email": email}

@app.get("/auth/me")
def auth_me(user: User = Depends(require_auth)):
    return {"status": "success", "email": user.email, "role": user.role}

@app.post("/auth/logout")
def auth_logout(request: Request):
    response = JSONResponse({"status": "success"})
    if identity is not None:
        token = get_auth_token(request) or request.cookies.get(identity.cookie_name)
        identity.close_session(token)
        response.delete_cookie(identity.cookie_name)
    return response

# ---------- Animas ----------
app.include_router(animas_router)

# ---------- Ops ----------
@app.get("/health")
def health():
    try:
        get_db().list_collection_names()
        return {"status": "ok", "mongo": "connected"}
    except PyMongoError as e:
        return {"status": "degraded", "error": str(e)}

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=False)
