"""
guarduim.api.routers.identities

Operator endpoints for MonitoredIdentity records and enforced locks.

Responsibilities:
- Create, read, edit (spec only) and delete identity records.
- List the bindings currently enforcing a lock.
- Trigger an immediate reconcile for one record.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, ConfigDict, Field
from starlette.status import (
    HTTP_201_CREATED,
    HTTP_202_ACCEPTED,
    HTTP_204_NO_CONTENT,
    HTTP_404_NOT_FOUND,
    HTTP_409_CONFLICT,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_503_SERVICE_UNAVAILABLE,
)

from guarduim.api.deps import controller_dep, store_dep
from guarduim.auth.deps import require_role
from guarduim.auth.models import OPERATOR_ROLE, VIEWER_ROLE, Principal
from guarduim.controller.manager import Controller
from guarduim.domain.models import IdentitySpec, MonitoredIdentity, ObjectKey
from guarduim.errors import (
    AlreadyExistsError,
    ConflictError,
    MalformedRecordError,
    NotFoundError,
)
from guarduim.observability.logging import get_logger
from guarduim.store.sql import SqlStore

log = get_logger(__name__)

router = APIRouter(prefix="/v1", tags=["identities"])


class IdentityCreateRequest(BaseModel):
    namespace: str
    name: str
    spec: IdentitySpec


class SpecUpdateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    spec: IdentitySpec
    resource_version: int = Field(alias="resourceVersion", ge=0)


class BindingResponse(BaseModel):
    name: str
    username: str
    role_name: str


@router.post("/identities", status_code=HTTP_201_CREATED, response_model=MonitoredIdentity)
async def create_identity(
    body: IdentityCreateRequest,
    principal: Principal = Depends(require_role(OPERATOR_ROLE)),
    store: SqlStore = Depends(store_dep),
) -> MonitoredIdentity:
    try:
        identity = MonitoredIdentity.decode(
            {"namespace": body.namespace, "name": body.name, "spec": body.spec.model_dump()},
            name=f"{body.namespace}/{body.name}",
        )
    except MalformedRecordError as e:
        raise HTTPException(status_code=HTTP_422_UNPROCESSABLE_ENTITY, detail=str(e)) from e
    try:
        created = await store.create(identity)
    except AlreadyExistsError as e:
        raise HTTPException(status_code=HTTP_409_CONFLICT, detail=str(e)) from e
    log.info("identity_created", identity=str(created.key), actor=principal.subject)
    return created


@router.get("/identities", response_model=list[MonitoredIdentity])
async def list_identities(
    namespace: str | None = None,
    _: Principal = Depends(require_role(VIEWER_ROLE)),
    store: SqlStore = Depends(store_dep),
) -> list[MonitoredIdentity]:
    return await store.list_identities(namespace)


@router.get("/identities/{namespace}/{name}", response_model=MonitoredIdentity)
async def get_identity(
    namespace: str,
    name: str,
    _: Principal = Depends(require_role(VIEWER_ROLE)),
    store: SqlStore = Depends(store_dep),
) -> MonitoredIdentity:
    try:
        return await store.get(ObjectKey(namespace, name))
    except NotFoundError as e:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail=str(e)) from e


@router.put("/identities/{namespace}/{name}/spec", response_model=MonitoredIdentity)
async def update_identity_spec(
    namespace: str,
    name: str,
    body: SpecUpdateRequest,
    principal: Principal = Depends(require_role(OPERATOR_ROLE)),
    store: SqlStore = Depends(store_dep),
) -> MonitoredIdentity:
    key = ObjectKey(namespace, name)
    try:
        updated = await store.update_spec(key, body.spec, expected_version=body.resource_version)
    except NotFoundError as e:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail=str(e)) from e
    except ConflictError as e:
        raise HTTPException(status_code=HTTP_409_CONFLICT, detail=str(e)) from e
    log.info("identity_spec_updated", identity=str(key), actor=principal.subject)
    return updated


@router.delete("/identities/{namespace}/{name}", status_code=HTTP_204_NO_CONTENT)
async def delete_identity(
    namespace: str,
    name: str,
    principal: Principal = Depends(require_role(OPERATOR_ROLE)),
    store: SqlStore = Depends(store_dep),
) -> Response:
    key = ObjectKey(namespace, name)
    try:
        await store.delete(key)
    except NotFoundError as e:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail=str(e)) from e
    log.info("identity_deleted", identity=str(key), actor=principal.subject)
    return Response(status_code=HTTP_204_NO_CONTENT)


@router.post("/identities/{namespace}/{name}/reconcile", status_code=HTTP_202_ACCEPTED)
async def trigger_reconcile(
    namespace: str,
    name: str,
    _: Principal = Depends(require_role(OPERATOR_ROLE)),
    store: SqlStore = Depends(store_dep),
    controller: Controller | None = Depends(controller_dep),
) -> dict[str, str]:
    if controller is None or not controller.running:
        raise HTTPException(
            status_code=HTTP_503_SERVICE_UNAVAILABLE, detail="Controller not running"
        )
    key = ObjectKey(namespace, name)
    try:
        await store.get(key)
    except NotFoundError as e:
        raise HTTPException(status_code=HTTP_404_NOT_FOUND, detail=str(e)) from e
    controller.enqueue(key)
    return {"status": "queued", "identity": str(key)}


@router.get("/bindings", response_model=list[BindingResponse])
async def list_bindings(
    _: Principal = Depends(require_role(VIEWER_ROLE)),
    store: SqlStore = Depends(store_dep),
) -> list[BindingResponse]:
    return [
        BindingResponse(name=b.name, username=b.username, role_name=b.role_name)
        for b in await store.list_bindings()
    ]
