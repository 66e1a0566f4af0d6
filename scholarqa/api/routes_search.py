"""Routes de recherche sur les corpus conférences et journaux.

Ce module expose la recherche par corpus (`/search/conferences`, `/search/journals`) et la
recherche combinée (`/search/all`, GET ou POST).
"""

from __future__ import annotations

from fastapi import APIRouter, Body, Depends, Query, Response

from scholarqa.api.errors import bad_request
from scholarqa.api.schemas import SearchAllRequest, SearchAllResponse
from scholarqa.core.container import Container, get_container
from scholarqa.domain.records import EntityType
from scholarqa.domain.retriever import clamp_top_k

TIER_HEADER = "X-Retrieval-Tier"

router = APIRouter(prefix="/search", tags=["search"])
_container_dep = Depends(get_container)


def _search(
    container: Container, entity_type: EntityType, q: str, limit: int | None, response: Response
):
    if limit is None:
        limit = container.settings.RETRIEVAL_DEFAULT_TOP_K
    results, tier = container.engine.search(entity_type, q, limit)
    response.headers[TIER_HEADER] = tier
    return [r.to_public() for r in results]


@router.get("/conferences")
def search_conferences(
    response: Response,
    q: str = Query(default=""),
    limit: int | None = Query(default=None),
    container: Container = _container_dep,
):
    """Recherche de conférences; sans `q`, retourne les plus récentes."""
    return _search(container, EntityType.CONFERENCE, q, limit, response)


@router.get("/journals")
def search_journals(
    response: Response,
    q: str = Query(default=""),
    limit: int | None = Query(default=None),
    container: Container = _container_dep,
):
    """Recherche de journaux; sans `q`, retourne les plus récents."""
    return _search(container, EntityType.JOURNAL, q, limit, response)


@router.api_route("/all", methods=["GET", "POST"], response_model=SearchAllResponse)
def search_all(
    q: str | None = Query(default=None),
    limit: int | None = Query(default=None),
    body: SearchAllRequest | None = Body(default=None),
    container: Container = _container_dep,
):
    """Recherche combinée; les paramètres de requête priment sur le corps JSON."""
    query = q if q is not None else (body.q if body else None)
    raw_limit = limit if limit is not None else (body.limit if body else None)
    if not (query or "").strip():
        raise bad_request("Missing query param q")
    k = clamp_top_k(
        raw_limit if raw_limit is not None else container.settings.RETRIEVAL_DEFAULT_TOP_K,
        container.settings.RETRIEVAL_MAX_TOP_K,
    )
    res = container.engine.retrieve_all(query, k)
    journals = [r.to_public() for r in res.journal]
    conferences = [r.to_public() for r in res.conference]
    return SearchAllResponse(
        query=query,
        limit=k,
        journals=journals,
        conferences=conferences,
        total=len(journals) + len(conferences),
        diagnostics={name: d.model_dump() for name, d in res.diagnostics.items()},
    )
