"""FastAPI entrypoint for the Inkwell backend."""

from __future__ import annotations

import asyncio
import logging

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from app_state import AppConfig, AppState
from chunker import extract_document_structure
from context_models import (
    AddMemoryRequest,
    AnalyzeRequest,
    AnalyzeResponsePayload,
    ContextRequest,
    ContextResponsePayload,
    MemoryExportPayload,
    MemoryIdRequest,
    MemoryItemPayload,
    MemorySearchRequest,
    MemorySearchResponsePayload,
    MemorySimilarRequest,
    MemoryStatsPayload,
    RelatedSectionPayload,
    ScoredResultPayload,
    SemanticContextRequest,
    SemanticContextResponsePayload,
)
from context_service import assemble_context, format_context_for_prompt
from document_analysis import analyze_cursor_context, build_context_instructions, detect_document_type
from errors import DimensionMismatchError, MemoryNotFoundError
from models import MemoryItem
from services import assemble_semantic_context, format_semantic_context_for_prompt

config = AppConfig.from_env()
logging.basicConfig(
    level=config.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Inkwell Backend", description="Local context assembly and semantic memory API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

state = AppState(config)


async def _with_memory(fn, *args):
    """Run a memory-service call off the event loop, one at a time."""

    def call():
        with state.lock:
            return fn(state.memory, *args)

    try:
        return await asyncio.to_thread(call)
    except MemoryNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc))
    except DimensionMismatchError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except HTTPException:
        raise
    except Exception as exc:
        logger.exception("Memory operation failed")
        raise HTTPException(status_code=500, detail=str(exc))


def _stats_payload(memory) -> MemoryStatsPayload:
    stats = memory.stats()
    return MemoryStatsPayload(total_memories=stats.total_memories, vocabulary_size=stats.vocabulary_size)


def _results_payload(results) -> MemorySearchResponsePayload:
    return MemorySearchResponsePayload(
        results=[
            ScoredResultPayload(id=r.id, text=r.text, score=r.score, metadata=r.metadata)
            for r in results
        ]
    )


@app.get("/", tags=["health"])
async def root():
    return {"status": "ok", "message": "Inkwell backend is running"}


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok", "message": "Inkwell backend is running"}


@app.post("/context", response_model=ContextResponsePayload, tags=["context"])
async def context(request: ContextRequest):
    try:
        bundle = await asyncio.to_thread(
            assemble_context,
            request.text,
            request.cursor_offset,
            request.options,
            selection_end=request.selection_end,
        )
    except Exception as exc:
        logger.exception("Context assembly failed")
        raise HTTPException(status_code=500, detail=str(exc))

    return ContextResponsePayload(
        local_before=bundle.local_before,
        local_after=bundle.local_after,
        related_sections=[
            RelatedSectionPayload(
                text=s.text,
                score=s.score,
                start_offset=s.start_offset,
                end_offset=s.end_offset,
                heading=s.heading,
            )
            for s in bundle.related_sections
        ],
        nearest_heading=bundle.nearest_heading,
        section_count=bundle.section_count,
        total_chars=bundle.total_chars,
        prompt=format_context_for_prompt(bundle, include_related=request.include_related),
    )


@app.post("/context/semantic", response_model=SemanticContextResponsePayload, tags=["context"])
async def semantic_context(request: SemanticContextRequest):
    try:
        result = await asyncio.to_thread(
            assemble_semantic_context,
            request.text,
            request.cursor_offset,
            request.query,
            request.pinned_notes,
            request.options,
        )
    except Exception as exc:
        logger.exception("Semantic context assembly failed")
        raise HTTPException(status_code=500, detail=str(exc))

    return SemanticContextResponsePayload(
        local_context=result.local_context,
        relevant_notes=list(result.relevant_notes),
        total_chars=result.total_chars,
        prompt=format_semantic_context_for_prompt(result),
    )


@app.post("/analyze", response_model=AnalyzeResponsePayload, tags=["context"])
async def analyze(request: AnalyzeRequest):
    doc_type = detect_document_type(request.text)
    cursor = analyze_cursor_context(request.text, request.cursor_offset)
    return AnalyzeResponsePayload(
        document_type=doc_type.type,
        confidence=doc_type.confidence,
        indicators=doc_type.indicators,
        cursor=cursor.to_dict(),
        instructions=build_context_instructions(doc_type, cursor),
        structure=extract_document_structure(request.text),
    )


@app.post("/memory/add", tags=["memory"])
async def add_memory(request: AddMemoryRequest):
    item = await _with_memory(lambda memory: memory.add(request.text, request.metadata, request.id))
    return {"success": True, "id": item.id}


@app.post("/memory/remove", tags=["memory"])
async def remove_memory(request: MemoryIdRequest):
    removed = await _with_memory(lambda memory: memory.remove(request.id))
    return {"success": True, "removed": removed}


@app.post("/memory/train", response_model=MemoryStatsPayload, tags=["memory"])
async def train_memory():
    def train(memory):
        memory.train()
        return _stats_payload(memory)

    return await _with_memory(train)


@app.post("/memory/search", response_model=MemorySearchResponsePayload, tags=["memory"])
async def search_memory(request: MemorySearchRequest):
    results = await _with_memory(lambda memory: memory.search(request.query, request.options))
    return _results_payload(results)


@app.post("/memory/similar", response_model=MemorySearchResponsePayload, tags=["memory"])
async def similar_memory(request: MemorySimilarRequest):
    results = await _with_memory(lambda memory: memory.find_similar(request.id, request.options))
    return _results_payload(results)


@app.get("/memory/stats", response_model=MemoryStatsPayload, tags=["memory"])
async def memory_stats():
    return await _with_memory(_stats_payload)


@app.get("/memory/export", response_model=MemoryExportPayload, tags=["memory"])
async def export_memory():
    items = await _with_memory(lambda memory: memory.export())
    return MemoryExportPayload(memories=[MemoryItemPayload(**item.to_dict()) for item in items])


@app.post("/memory/import", response_model=MemoryStatsPayload, tags=["memory"])
async def import_memory(request: MemoryExportPayload):
    items = [MemoryItem.from_dict(entry.model_dump()) for entry in request.memories]

    def do_import(memory):
        memory.import_(items)
        return _stats_payload(memory)

    return await _with_memory(do_import)


@app.post("/memory/clear", tags=["memory"])
async def clear_memory():
    await _with_memory(lambda memory: memory.clear())
    return {"success": True}


if __name__ == "__main__":
    uvicorn.run(app, host=config.host, port=config.port)
