import asyncio
import json
from collections.abc import AsyncGenerator
from typing import Annotated, Any

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from finance_insights.api.dependencies import get_import_service
from finance_insights.api.schemas import (
    CommitRequest,
    ImportPreviewResponse,
    ImportRequest,
    RecategorizeResponse,
)
from finance_insights.core import settings
from finance_insights.logger import get_logger
from finance_insights.models import AICategorizationLog
from finance_insights.services.importer import ImportPreview, ImportService

logger = get_logger(__name__)

router = APIRouter()


def _preview_payload(preview: ImportPreview) -> dict[str, Any]:
    return ImportPreviewResponse(
        transactions=preview.transactions,
        parsed_count=preview.parsed_count,
        duplicate_count=preview.duplicate_count,
    ).model_dump(by_alias=True, mode="json")


@router.post("/api/import/preview")
async def preview_import(
    req: ImportRequest,
    service: Annotated[ImportService, Depends(get_import_service)],
) -> dict[str, Any]:
    preview = await service.preview_import(
        req.content,
        file_type=req.file_type,
        filename=req.filename,
        date_format=req.date_format,
    )
    return _preview_payload(preview)


@router.post("/api/import/commit")
async def commit_import(
    req: CommitRequest,
    service: Annotated[ImportService, Depends(get_import_service)],
) -> dict[str, Any]:
    result = await service.commit(req.transactions)
    return {
        "added": result.added,
        "skipped": result.skipped,
        "transactions": [tx.model_dump(by_alias=True, mode="json") for tx in result.transactions],
    }


@router.post("/api/import")
async def import_statement(
    req: ImportRequest,
    service: Annotated[ImportService, Depends(get_import_service)],
) -> dict[str, Any]:
    preview = await service.import_statement(
        req.content,
        file_type=req.file_type,
        filename=req.filename,
        date_format=req.date_format,
    )
    return _preview_payload(preview)


@router.post("/api/recategorize")
async def recategorize(
    service: Annotated[ImportService, Depends(get_import_service)],
) -> dict[str, Any]:
    result = await service.recategorize_uncategorized()
    return RecategorizeResponse(updated=result.updated, total=result.total).model_dump(by_alias=True)


@router.get("/api/recategorize-stream")
async def recategorize_stream(
    service: Annotated[ImportService, Depends(get_import_service)],
) -> StreamingResponse:
    async def generate() -> AsyncGenerator[str, None]:
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue()

        def on_progress(processed: int, total: int) -> None:
            queue.put_nowait({"stage": "progress", "processed": processed, "total": total})

        def on_log(event: AICategorizationLog) -> None:
            queue.put_nowait({"stage": "log", **event.model_dump(mode="json")})

        task = asyncio.create_task(
            service.recategorize_uncategorized(on_progress=on_progress, on_log=on_log)
        )
        yield "data: {\"stage\": \"start\"}\n\n"

        try:
            while not task.done() or not queue.empty():
                try:
                    payload = await asyncio.wait_for(queue.get(), timeout=0.5)
                except asyncio.TimeoutError:
                    continue
                yield f"data: {json.dumps(payload)}\n\n"

            result = task.result()
        except Exception as exc:
            logger.error("[RECAT] Stream failed: %s", exc)
            yield f"data: {json.dumps({'stage': 'error', 'message': str(exc)})}\n\n"
            return
        finally:
            if not task.done():
                task.cancel()

        complete_payload = {"stage": "complete", "updated": result.updated, "total": result.total}
        yield f"data: {json.dumps(complete_payload)}\n\n"
        yield "event: done\ndata: {}\n\n"

    return StreamingResponse(generate(), media_type="text/event-stream", headers=settings.SSE_HEADERS)
