import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse, RedirectResponse
from pydantic import BaseModel, field_validator

import controllers
from catalog import Catalog
from config import settings
from controllers import Failed, NotFound, Outcome, Redirect, Render
from database import AUTHORS, DocumentStore, StoreFailure

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


@asynccontextmanager
async def lifespan(app: FastAPI):
    # One shared store per process; every call opens its own connection
    if getattr(app.state, "catalog", None) is None:
        app.state.catalog = Catalog(DocumentStore(settings.database_file))
    yield


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)
router = APIRouter(prefix=settings.catalog_prefix)


def get_catalog(request: Request) -> Catalog:
    """Dependency returning the process-wide catalog."""
    catalog = getattr(request.app.state, "catalog", None)
    if catalog is None:
        catalog = request.app.state.catalog = Catalog(DocumentStore(settings.database_file))
    return catalog


# --- Models ---
class SubmittedForm(BaseModel):
    """Raw form fields; anything besides null is passed on as text for the validators."""

    @field_validator("*", mode="before")
    @classmethod
    def as_submitted_text(cls, value: Any) -> Optional[str]:
        if value is None or isinstance(value, str):
            return value
        return str(value)


class AuthorFormModel(SubmittedForm):
    first_name: Optional[str] = None
    family_name: Optional[str] = None
    date_of_birth: Optional[str] = None
    date_of_death: Optional[str] = None


class BookFormModel(SubmittedForm):
    title: Optional[str] = None
    author: Optional[str] = None
    summary: Optional[str] = None
    isbn: Optional[str] = None


async def read_submission(request: Request) -> Dict[str, Any]:
    """Submitted fields from an HTML form post or a JSON object body."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(FORM_CONTENT_TYPES):
        form = await request.form()
        return dict(form)
    body = await request.body()
    if not body:
        return {}
    try:
        data = json.loads(body)
    except ValueError:
        logger.warning("Unparsable JSON submission treated as an empty form")
        return {}
    return data if isinstance(data, dict) else {}


async def author_form(submission: Dict[str, Any] = Depends(read_submission)) -> AuthorFormModel:
    return AuthorFormModel.model_validate(submission)


async def book_form(submission: Dict[str, Any] = Depends(read_submission)) -> BookFormModel:
    return BookFormModel.model_validate(submission)


# --- Helpers ---
def _to_view_data(value: Any) -> Any:
    """Convert entities and errors in a data bag to plain JSON-ready values."""
    if hasattr(value, "to_dict"):
        return _to_view_data(value.to_dict())
    if isinstance(value, dict):
        return {k: _to_view_data(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_view_data(v) for v in value]
    return value


def respond(outcome: Outcome):
    """Map a controller outcome onto an HTTP response."""
    if isinstance(outcome, Render):
        payload = {"view": outcome.view, **_to_view_data(outcome.data)}
        return JSONResponse(jsonable_encoder(payload), status_code=outcome.status_code)
    if isinstance(outcome, Redirect):
        return RedirectResponse(outcome.location, status_code=outcome.status_code)
    if isinstance(outcome, NotFound):
        raise HTTPException(status_code=outcome.status_code, detail=outcome.message)
    if isinstance(outcome, Failed):
        raise HTTPException(status_code=outcome.status_code, detail="Internal catalog error")
    raise TypeError(f"Unknown outcome: {outcome!r}")


# --- Health ---
@app.get("/health")
def health(catalog: Catalog = Depends(get_catalog)):
    """Lightweight health endpoint with a quick database probe."""
    db_ok = True
    try:
        catalog.store.count(AUTHORS)
    except StoreFailure:
        logger.exception("Health check could not reach the database")
        db_ok = False
    return {
        "status": "healthy" if db_ok else "degraded",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "db": db_ok,
    }


@app.get("/")
def read_root():
    return RedirectResponse(settings.catalog_prefix, status_code=302)


# --- Catalog home ---
@router.get("")
async def catalog_index(catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.index(catalog))


# --- Authors ---
@router.get("/authors")
async def author_list(catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.author_list(catalog))


@router.get("/author/create")
async def author_create_get(catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.author_create_get(catalog))


@router.post("/author/create")
async def author_create_post(form: AuthorFormModel = Depends(author_form), catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.author_create_post(catalog, form.model_dump()))


@router.get("/author/{author_id}/delete")
async def author_delete_get(author_id: str, catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.author_delete_get(catalog, author_id))


@router.post("/author/{author_id}/delete")
async def author_delete_post(author_id: str, catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.author_delete_post(catalog, author_id))


@router.get("/author/{author_id}/update")
async def author_update_get(author_id: str, catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.author_update_get(catalog, author_id))


@router.post("/author/{author_id}/update")
async def author_update_post(author_id: str, form: AuthorFormModel = Depends(author_form), catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.author_update_post(catalog, author_id, form.model_dump()))


@router.get("/author/{author_id}")
async def author_detail(author_id: str, catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.author_detail(catalog, author_id))


# --- Books ---
@router.get("/books")
async def book_list(catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.book_list(catalog))


@router.get("/book/create")
async def book_create_get(catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.book_create_get(catalog))


@router.post("/book/create")
async def book_create_post(form: BookFormModel = Depends(book_form), catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.book_create_post(catalog, form.model_dump()))


@router.get("/book/{book_id}/delete")
async def book_delete_get(book_id: str, catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.book_delete_get(catalog, book_id))


@router.post("/book/{book_id}/delete")
async def book_delete_post(book_id: str, catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.book_delete_post(catalog, book_id))


@router.get("/book/{book_id}/update")
async def book_update_get(book_id: str, catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.book_update_get(catalog, book_id))


@router.post("/book/{book_id}/update")
async def book_update_post(book_id: str, form: BookFormModel = Depends(book_form), catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.book_update_post(catalog, book_id, form.model_dump()))


@router.get("/book/{book_id}")
async def book_detail(book_id: str, catalog: Catalog = Depends(get_catalog)):
    return respond(await controllers.book_detail(catalog, book_id))


app.include_router(router)
