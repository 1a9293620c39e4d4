# -*- coding: utf-8 -*-
"""DriftWatch monitor edit API.

Form-encoded create/update/delete endpoints for monitors. Success redirects
(303) to the model's monitor list; a rejected submission answers 400 with the
error message and the submitted fields so the form can be shown again.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, FastAPI, Form, HTTPException, Request
from fastapi.responses import JSONResponse, RedirectResponse

from driftwatch.api import actions, schemas
from driftwatch.config import DEFAULT_CONFIG, DriftWatchConfig
from driftwatch.connectors.base import ModelMetadata, ModelMetadataProvider, ModelNotFound
from driftwatch.connectors.registry import JsonModelRegistry
from driftwatch.errors import STORE_FAILURE_MESSAGE, StoreError
from driftwatch.store.repository import MonitorStore

logger = logging.getLogger("driftwatch.api")

router = APIRouter()


def get_store(request: Request) -> MonitorStore:
    return request.app.state.store


def get_registry(request: Request) -> ModelMetadataProvider:
    return request.app.state.registry


def load_model(model_id: str, registry: ModelMetadataProvider) -> ModelMetadata:
    try:
        return registry.get_model_metadata(model_id)
    except ModelNotFound:
        raise HTTPException(status_code=404, detail="Model not found")


def monitor_list_url(repo_id: str, model_id: str) -> str:
    return f"/repos/{repo_id}/models/{model_id}/monitors/"


def form_error(
    message: str,
    form: schemas.MonitorForm,
    meta: ModelMetadata,
    monitor_id: Optional[str] = None,
) -> JSONResponse:
    body = schemas.FormErrorResponse(
        error=message,
        monitor_id=monitor_id,
        model_type=meta.task_type.value,
        form=form.model_dump(),
    )
    return JSONResponse(status_code=400, content=body.model_dump())


def monitor_form(
    cadence: str = Form(""),
    metric: str = Form(""),
    mode: str = Form(""),
    threshold_lower: str = Form(""),
    threshold_upper: str = Form(""),
    title: str = Form(""),
    email: str = Form(""),
    webhook: str = Form(""),
) -> schemas.MonitorForm:
    return schemas.MonitorForm(
        cadence=cadence,
        metric=metric,
        mode=mode,
        threshold_lower=threshold_lower,
        threshold_upper=threshold_upper,
        title=title,
        email=email,
        webhook=webhook,
    )


# ──────────────────────────────────────────────
# Endpoints
# ──────────────────────────────────────────────

@router.get("/health")
def health_check():
    return {"status": "ok"}


@router.get("/repos/{repo_id}/models/{model_id}/monitors/", response_model=List[schemas.MonitorOut])
def list_monitors(
    repo_id: str,
    model_id: str,
    store: MonitorStore = Depends(get_store),
    registry: ModelMetadataProvider = Depends(get_registry),
):
    load_model(model_id, registry)
    return [actions.monitor_to_schema(m) for m in store.list_active(model_id)]


@router.post("/repos/{repo_id}/models/{model_id}/monitors/new")
def create_monitor(
    repo_id: str,
    model_id: str,
    form: schemas.MonitorForm = Depends(monitor_form),
    store: MonitorStore = Depends(get_store),
    registry: ModelMetadataProvider = Depends(get_registry),
):
    meta = load_model(model_id, registry)
    result = actions.create_monitor(store, meta, form)
    if not result.ok:
        return form_error(result.error, form, meta)
    return RedirectResponse(monitor_list_url(repo_id, model_id), status_code=303)


@router.post("/repos/{repo_id}/models/{model_id}/monitors/{monitor_id}/edit")
def edit_monitor(
    repo_id: str,
    model_id: str,
    monitor_id: str,
    action: str = Form(""),
    form: schemas.MonitorForm = Depends(monitor_form),
    store: MonitorStore = Depends(get_store),
    registry: ModelMetadataProvider = Depends(get_registry),
):
    meta = load_model(model_id, registry)
    try:
        existing = store.get(monitor_id)
    except StoreError as e:
        logger.error("lookup of monitor %s failed: %s", monitor_id, e)
        return form_error(STORE_FAILURE_MESSAGE, form, meta, monitor_id=monitor_id)
    if existing is None or existing.model_id != model_id:
        raise HTTPException(status_code=404, detail="Monitor not found")

    if action == "delete":
        result = actions.delete_monitor(store, monitor_id)
    elif action == "update_alert":
        result = actions.update_monitor(store, meta, monitor_id, form)
    else:
        raise HTTPException(status_code=400, detail=f"Unknown action: {action}")

    if not result.ok:
        return form_error(result.error, form, meta, monitor_id=monitor_id)
    return RedirectResponse(monitor_list_url(repo_id, model_id), status_code=303)


@router.get(
    "/repos/{repo_id}/models/{model_id}/monitors/{monitor_id}/evaluations",
    response_model=List[schemas.EvaluationOut],
)
def list_evaluations(
    repo_id: str,
    model_id: str,
    monitor_id: str,
    store: MonitorStore = Depends(get_store),
):
    monitor = store.get(monitor_id)
    if monitor is None or monitor.model_id != model_id:
        raise HTTPException(status_code=404, detail="Monitor not found")
    return store.list_evaluations(monitor_id)


def create_app(
    store: Optional[MonitorStore] = None,
    registry: Optional[ModelMetadataProvider] = None,
    config: DriftWatchConfig = DEFAULT_CONFIG,
) -> FastAPI:
    """Builds the API app. Missing collaborators are built from `config`."""
    if store is None:
        store = MonitorStore.from_config(config.database)
        store.init_db()
    if registry is None:
        registry = JsonModelRegistry(config.registry.model_dir)

    app = FastAPI(title="DriftWatch API", version="1.0.0")
    app.state.store = store
    app.state.registry = registry
    app.include_router(router)
    return app
