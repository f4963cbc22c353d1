import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Response, UploadFile, status

from uniportal.access import CallerContext
from uniportal.api.deps import get_caller, get_file_store, get_gateway, get_idempotency_key
from uniportal.errors import GatewayError
from uniportal.gateway import Gateway
from uniportal.storage import LocalFileStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["documents"])


@router.get("/applications/{application_id}/documents")
def list_documents(
    application_id: str,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
):
    return gateway.documents.list_by_application(caller, application_id)


@router.post("/applications/{application_id}/documents", status_code=status.HTTP_201_CREATED)
def upload_document(
    application_id: str,
    file: UploadFile = File(...),  # noqa: B008  (FastAPI pattern)
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
    store: LocalFileStore = Depends(get_file_store),
    idempotency_key: Optional[str] = Depends(get_idempotency_key),
):
    # ownership / existence check before any bytes hit the file store
    gateway.applications.get(caller, application_id)

    stored = store.save(application_id, file.filename, file.file)
    try:
        document = gateway.documents.create(
            caller,
            {"application_id": application_id, "file_name": stored.name, "file_url": stored.url},
            idempotency_key=idempotency_key,
        )
    except GatewayError:
        logger.warning("document row failed for %s, removing stored file", stored.url)
        store.delete(stored.url)
        raise
    if document["file_url"] != stored.url:
        # replayed upload: the original row keeps its own file
        store.delete(stored.url)
    return document


@router.delete("/documents/{document_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_document(
    document_id: str,
    caller: CallerContext = Depends(get_caller),
    gateway: Gateway = Depends(get_gateway),
    store: LocalFileStore = Depends(get_file_store),
):
    document = gateway.documents.get(caller, document_id)
    gateway.documents.delete(caller, document_id)
    store.delete(document["file_url"])
    return Response(status_code=status.HTTP_204_NO_CONTENT)
