"""
Search Routes - JSON API over one search session

Every route reads the controller and session from ``app.state``; the app
factory wires them once per process. Responses carry the full snapshot so
a client can redraw from any call.
"""

from __future__ import annotations

from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException, Query, Request
from pydantic import BaseModel, Field

from core import (
    FeatureFilterThresholds,
    FetchError,
    FilterState,
    QUICK_PRESETS,
    SearchController,
    SearchSession,
    SimilarityFeature,
    SimilarityWeights,
)
from utils.formatting import format_percent, format_price, format_response_time


# =============================================================================
# Router Setup
# =============================================================================

router = APIRouter(prefix="/api", tags=["search"])


def _controller(request: Request) -> SearchController:
    return request.app.state.controller


def _session(request: Request) -> SearchSession:
    return request.app.state.session


def _present(controller: SearchController, **extra) -> dict:
    """Controller snapshot plus display strings."""
    snapshot = controller.snapshot()
    for item in snapshot["results"]:
        item["price_display"] = format_price(item.get("price"))
        similarity = item.get("similarity")
        if similarity:
            similarity["percentages_display"] = {
                name: None if value is None else format_percent(value)
                for name, value in similarity["percentages"].items()
            }
    snapshot["response_time_display"] = format_response_time(snapshot["response_time_ms"])
    snapshot.update(extra)
    return snapshot


# =============================================================================
# Request Models
# =============================================================================


class FilterRequest(BaseModel):
    """Filter state as submitted by the search form."""
    search_text: Optional[str] = None
    property_type: Optional[str] = None
    listing_type: Optional[str] = None
    min_price: Optional[float] = None
    max_price: Optional[float] = None
    min_area: Optional[float] = None
    max_area: Optional[float] = None
    min_bedrooms: Optional[int] = None
    min_bathrooms: Optional[int] = None
    amenities: List[str] = []
    sort_by: Optional[str] = None
    page: int = 1

    def to_filters(self) -> FilterState:
        return FilterState.from_dict(self.model_dump(exclude_none=True))


class PageRequest(BaseModel):
    page: int


class TranscriptRequest(BaseModel):
    """A final recognition result from the speech engine."""
    transcript: str
    confidence: float = Field(ge=0.0, le=1.0)


class LanguageRequest(BaseModel):
    language: str


class ImageSearchRequest(BaseModel):
    image_url: str
    weights: Optional[Dict[str, int]] = None


class WeightsRequest(BaseModel):
    weights: Dict[str, int]


class ThresholdsRequest(BaseModel):
    thresholds: Dict[str, int]


class SortFeatureRequest(BaseModel):
    feature: Optional[str] = None


class WeightPresetRequest(BaseModel):
    name: str
    weights: Dict[str, int]


class SavedSearchRequest(BaseModel):
    name: str
    filters: Optional[FilterRequest] = None


# =============================================================================
# Search and Pagination
# =============================================================================


@router.get("/search")
async def current_search(request: Request):
    """Current results without triggering a fetch."""
    return _present(_controller(request))


@router.post("/search")
async def search(request: Request, body: FilterRequest):
    """Run a search; served from cache when a fresh entry exists."""
    controller = _controller(request)
    outcome = await controller.search(body.to_filters())
    return _present(controller, outcome=outcome.to_dict())


@router.post("/search/refresh")
async def refresh(request: Request):
    controller = _controller(request)
    outcome = await controller.refresh()
    return _present(controller, outcome=outcome.to_dict())


@router.post("/search/page")
async def go_to_page(request: Request, body: PageRequest):
    """Jump to a page; out-of-range pages are clamped."""
    controller = _controller(request)
    outcome = await controller.go_to_page(body.page)
    return _present(controller, outcome=outcome.to_dict())


@router.post("/search/next")
async def next_page(request: Request):
    controller = _controller(request)
    outcome = await controller.next_page()
    return _present(controller, outcome=outcome.to_dict() if outcome else None)


@router.post("/search/prev")
async def prev_page(request: Request):
    controller = _controller(request)
    outcome = await controller.prev_page()
    return _present(controller, outcome=outcome.to_dict() if outcome else None)


@router.get("/cache/stats")
async def cache_stats(request: Request):
    return _session(request).cache.stats().to_dict()


@router.delete("/cache")
async def clear_cache(request: Request):
    _controller(request).clear_cache()
    return {"cleared": True}


@router.post("/session/reset")
async def reset_session(request: Request):
    """Drop cache, voice state and weights; persisted preferences are kept."""
    _session(request).reset()
    return {"reset": True}


# =============================================================================
# Suggestions and Recent Searches
# =============================================================================


@router.get("/suggestions")
async def suggestions(request: Request, q: str = Query("")):
    """
    Suggestions for partial input.

    ``superseded`` is true when a newer request replaced this one; the
    client should ignore the (empty) list.
    """
    try:
        results = await request.app.state.suggestions.fetch(q)
    except FetchError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return {
        "query": q,
        "suggestions": results or [],
        "superseded": results is None,
    }


@router.get("/recent-searches")
async def recent_searches(request: Request):
    return {"recent_searches": _session(request).recent_searches.list()}


@router.delete("/recent-searches")
async def clear_recent_searches(request: Request):
    _session(request).recent_searches.clear()
    return {"recent_searches": []}


# =============================================================================
# Voice
# =============================================================================


def _voice_state(session: SearchSession) -> dict:
    voice = session.voice
    pending = voice.pending
    return {
        "state": voice.state.value,
        "pending": None if pending is None else {
            "transcript": pending.transcript,
            "confidence": pending.confidence,
        },
        "confidence_threshold": voice.confidence_threshold,
        "language": voice.language,
    }


async def _apply_voice(request: Request, outcome) -> dict:
    controller = _controller(request)
    search_outcome = await controller.apply_voice(outcome)
    result = {
        "voice": _voice_state(_session(request)),
        "outcome": outcome.to_dict(),
    }
    if search_outcome is not None:
        result["search"] = _present(controller, outcome=search_outcome.to_dict())
    return result


@router.get("/voice")
async def voice_status(request: Request):
    return _voice_state(_session(request))


@router.post("/voice/listen")
async def voice_listen(request: Request):
    _session(request).voice.start_listening()
    return _voice_state(_session(request))


@router.post("/voice/stop")
async def voice_stop(request: Request):
    _session(request).voice.stop_listening()
    return _voice_state(_session(request))


@router.post("/voice/transcript")
async def voice_transcript(request: Request, body: TranscriptRequest):
    """Submit a final transcript; low confidence leaves it pending."""
    outcome = _session(request).voice.submit(body.transcript, body.confidence)
    return await _apply_voice(request, outcome)


@router.post("/voice/retry")
async def voice_retry(request: Request):
    _session(request).voice.retry()
    return _voice_state(_session(request))


@router.post("/voice/accept")
async def voice_accept(request: Request):
    """Apply the pending low-confidence command as-is."""
    outcome = _session(request).voice.accept_anyway()
    return await _apply_voice(request, outcome)


@router.post("/voice/dismiss")
async def voice_dismiss(request: Request):
    outcome = _session(request).voice.dismiss()
    return {"voice": _voice_state(_session(request)), "outcome": outcome.to_dict()}


@router.get("/voice/history")
async def voice_history(request: Request):
    return {"history": [e.to_dict() for e in _session(request).voice.history]}


@router.delete("/voice/history")
async def clear_voice_history(request: Request):
    _session(request).voice.clear_history()
    return {"history": []}


@router.put("/voice/language")
async def set_voice_language(request: Request, body: LanguageRequest):
    _session(request).voice.set_language(body.language)
    return _voice_state(_session(request))


# =============================================================================
# Image Similarity
# =============================================================================


@router.post("/image-search")
async def image_search(request: Request, body: ImageSearchRequest):
    """Score the loaded page against an uploaded image."""
    controller = _controller(request)
    weights = SimilarityWeights.from_dict(body.weights) if body.weights else None
    outcome = await controller.image_search(body.image_url, weights)
    return _present(controller, image_outcome=outcome.to_dict())


@router.delete("/image-search")
async def clear_image_search(request: Request):
    controller = _controller(request)
    controller.clear_image_search()
    return _present(controller)


@router.get("/similarity/weights")
async def get_weights(request: Request):
    controller = _controller(request)
    return {
        "weights": _session(request).weights.to_dict(),
        "total": _session(request).weights.total,
        "weights_pending": controller.weights_pending,
    }


@router.put("/similarity/weights")
async def set_weights(request: Request, body: WeightsRequest):
    """Takes effect on the next image search; displayed scores are kept."""
    controller = _controller(request)
    controller.set_weights(SimilarityWeights.from_dict(body.weights))
    return await get_weights(request)


@router.get("/similarity/quick-presets")
async def quick_presets():
    return {name: weights.to_dict() for name, weights in QUICK_PRESETS.items()}


@router.post("/similarity/quick-presets/{name}")
async def apply_quick_preset(request: Request, name: str):
    try:
        _controller(request).apply_quick_preset(name)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Unknown quick preset: {name}")
    return await get_weights(request)


@router.put("/similarity/thresholds")
async def set_thresholds(request: Request, body: ThresholdsRequest):
    controller = _controller(request)
    controller.set_thresholds(FeatureFilterThresholds.from_dict(body.thresholds))
    return _present(controller)


@router.put("/similarity/sort")
async def set_sort_feature(request: Request, body: SortFeatureRequest):
    """Rank by one feature's points, or by total score when ``feature`` is null."""
    controller = _controller(request)
    feature = None
    if body.feature:
        feature = SimilarityFeature.from_string(body.feature)
        if feature is None:
            raise HTTPException(status_code=400, detail=f"Unknown feature: {body.feature}")
    controller.set_sort_feature(feature)
    return _present(controller)


# =============================================================================
# Weight Presets
# =============================================================================


@router.get("/users/{user_id}/weight-presets")
async def list_weight_presets(request: Request, user_id: str):
    presets = _session(request).weight_presets.list(user_id)
    return {"presets": [p.to_dict() for p in presets]}


@router.post("/users/{user_id}/weight-presets", status_code=201)
async def save_weight_preset(request: Request, user_id: str, body: WeightPresetRequest):
    """Weights must sum to 100 and the name must be unused."""
    weights = SimilarityWeights.from_dict(body.weights)
    preset = _session(request).weight_presets.save(user_id, body.name, weights)
    return preset.to_dict()


@router.post("/users/{user_id}/weight-presets/{name}/apply")
async def apply_weight_preset(request: Request, user_id: str, name: str):
    preset = _session(request).weight_presets.get(user_id, name)
    if preset is None:
        raise HTTPException(status_code=404, detail=f"No preset named '{name}'")
    _controller(request).set_weights(preset.weights)
    return await get_weights(request)


@router.delete("/users/{user_id}/weight-presets/{name}")
async def delete_weight_preset(request: Request, user_id: str, name: str):
    if not _session(request).weight_presets.delete(user_id, name):
        raise HTTPException(status_code=404, detail=f"No preset named '{name}'")
    return {"deleted": name}


# =============================================================================
# Saved Searches
# =============================================================================


@router.get("/users/{user_id}/saved-searches")
async def list_saved_searches(request: Request, user_id: str):
    saved = _session(request).saved_searches.list(user_id)
    return {"saved_searches": [s.to_dict() for s in saved]}


@router.post("/users/{user_id}/saved-searches", status_code=201)
async def save_search(request: Request, user_id: str, body: SavedSearchRequest):
    """Save the given filters, or the current ones when omitted."""
    filters = body.filters.to_filters() if body.filters else _controller(request).filters
    saved = _session(request).saved_searches.save(user_id, body.name, filters)
    return saved.to_dict()


@router.post("/users/{user_id}/saved-searches/{name}/apply")
async def apply_saved_search(request: Request, user_id: str, name: str):
    saved = _session(request).saved_searches.get(user_id, name)
    if saved is None:
        raise HTTPException(status_code=404, detail=f"No saved search named '{name}'")
    controller = _controller(request)
    outcome = await controller.search(saved.filters)
    return _present(controller, outcome=outcome.to_dict())


@router.delete("/users/{user_id}/saved-searches/{name}")
async def delete_saved_search(request: Request, user_id: str, name: str):
    if not _session(request).saved_searches.delete(user_id, name):
        raise HTTPException(status_code=404, detail=f"No saved search named '{name}'")
    return {"deleted": name}
