from fastapi import Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from jeopardy_trainer import __version__
from jeopardy_trainer.api.dependencies import get_db
from jeopardy_trainer.core.services.question_service import get_question_service

app = FastAPI(title="Jeopardy Trainer API", version=__version__)

from jeopardy_trainer.api.routes import (  # noqa: E402
    admin,
    auth,
    coryat,
    mastery,
    preferences,
    questions,
    quiz,
    stats,
    study,
)

app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(quiz.router)
app.include_router(questions.router)
app.include_router(mastery.router)
app.include_router(preferences.router)
app.include_router(stats.router)
app.include_router(coryat.router)
app.include_router(study.router)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies and parameters are client errors (400)."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Invalid request", "errors": jsonable_errors(exc)},
    )


def jsonable_errors(exc: RequestValidationError):
    return [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


@app.get("/api/status")
async def get_status(db: Session = Depends(get_db)):
    db.execute(text("SELECT 1"))
    return {
        "status": "online",
        "version": __version__,
        "count_cache": get_question_service().count_cache.get_stats(),
    }
