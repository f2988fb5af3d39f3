from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from slidecast.core.config import settings
from slidecast.core.http_hardening import install_http_hardening
from slidecast.api.router import router as api_router

app = FastAPI(title=settings.APP_NAME, version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
install_http_hardening(app)

app.include_router(api_router, prefix=settings.API_PREFIX.rstrip("/"))


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": [str(part) for part in err.get("loc", ())], "msg": str(err.get("msg", ""))}
        for err in exc.errors()
    ]


@app.exception_handler(StarletteHTTPException)
async def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def _validation_error(request: Request, exc: RequestValidationError):
    return JSONResponse({"error": "Invalid request", "details": jsonable_errors(exc)}, status_code=400)


@app.get("/", include_in_schema=False)
def landing():
    base = f"{settings.API_PREFIX.rstrip('/')}/topics"
    return JSONResponse(
        {
            "service": settings.APP_NAME,
            "status": "ok",
            "endpoints": {
                "createTopic": f"POST {base}",
                "getTopic": f"GET {base}/:topicId",
                "updateTopic": f"POST {base}/:topicId?secret=<secret>",
                "websocket": f"WS {base}/:topicId[?secret=<secret>]",
            },
        }
    )

@app.get("/health")
def health():
    return {"status": "ok"}
