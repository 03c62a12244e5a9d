from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Callable, Optional, TypeVar

from fastapi import APIRouter, File, HTTPException, UploadFile
from fastapi.responses import PlainTextResponse, Response

from ..core.config import get_settings
from ..models.samples import AggregationResult, RenderState, SelectionRequest
from ..models.tree import TreePayload
from ..services.exports import samples_csv, samples_geojson, subtree_newick, subtree_phyloxml
from ..services.newick import TreeParseError
from ..services.sample_store import SampleTableError
from ..services.tree_service import PhyloMapService, get_phylomap_service

logger = logging.getLogger(__name__)

router = APIRouter()

T = TypeVar("T")


def _get_service() -> PhyloMapService:
    return get_phylomap_service()


def _guarded(action: Callable[[], T]) -> T:
    try:
        return action()
    except FileNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except TreeParseError as exc:
        raise HTTPException(status_code=422, detail=str(exc)) from exc
    except SampleTableError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except KeyError as exc:
        raise HTTPException(status_code=404, detail=str(exc.args[0]) if exc.args else "Not found") from exc


async def _store_upload(file: UploadFile) -> dict[str, str]:
    settings = get_settings()
    if not file.filename:
        raise HTTPException(status_code=400, detail="Uploaded file has no name.")
    target_path = settings.data_dir / Path(file.filename).name

    contents = await file.read()
    target_path.write_bytes(contents)
    _get_service().forget(target_path)
    logger.info("Stored upload", extra={"stored_path": str(target_path), "size": len(contents)})

    return {"filename": target_path.name, "stored_path": str(target_path)}


@router.get("/tree", response_model=TreePayload)
def get_tree(filename: Optional[str] = None, samples: Optional[str] = None) -> TreePayload:
    service = _get_service()
    logger.info("GET /tree invoked", extra={"tree_filename": filename, "samples_filename": samples})

    def load() -> TreePayload:
        service.load_tree(filename)
        service.load_samples(samples)
        return service.build_payload()

    payload = _guarded(load)
    logger.info(
        "Tree loaded",
        extra={
            "tree_filename": filename,
            "nodes": len(payload.nodes),
            "edges": len(payload.edges),
        },
    )
    return payload


@router.post("/tree/upload")
async def upload_tree(file: UploadFile = File(...)) -> dict[str, str]:
    return await _store_upload(file)


@router.post("/samples/upload")
async def upload_samples(file: UploadFile = File(...)) -> dict[str, str]:
    return await _store_upload(file)


@router.get("/nodes/{node_id}/aggregate", response_model=AggregationResult)
def get_node_aggregate(node_id: str) -> AggregationResult:
    service = _get_service()
    return _guarded(lambda: service.aggregate(node_id))


@router.get("/nodes/{node_id}/newick", response_class=PlainTextResponse)
def get_node_newick(node_id: str) -> str:
    service = _get_service()
    return _guarded(lambda: subtree_newick(service.tree.get(node_id)))


@router.get("/nodes/{node_id}/phyloxml")
def get_node_phyloxml(node_id: str) -> Response:
    service = _get_service()
    content = _guarded(lambda: subtree_phyloxml(service.tree.get(node_id)))
    return Response(content=content, media_type="application/xml")


@router.get("/nodes/{node_id}/samples.geojson")
def get_node_geojson(node_id: str) -> dict[str, Any]:
    service = _get_service()
    result = _guarded(lambda: service.aggregate(node_id))
    return samples_geojson(result)


@router.get("/nodes/{node_id}/samples.csv")
def get_node_csv(node_id: str) -> Response:
    service = _get_service()
    result = _guarded(lambda: service.aggregate(node_id))
    return Response(
        content=samples_csv(result),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{node_id}_samples.csv"'},
    )


@router.post("/selection", response_model=AggregationResult)
def select_node(request: SelectionRequest) -> AggregationResult:
    service = _get_service()
    return _guarded(lambda: service.select(request.node_id))


@router.get("/selection", response_model=RenderState)
def get_selection() -> RenderState:
    return _get_service().snapshot()


@router.post("/selection/rerender", response_model=RenderState)
def rerender_selection() -> RenderState:
    service = _get_service()
    _guarded(service.rerender)
    return service.snapshot()
