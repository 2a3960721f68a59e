"""FastAPI application re-exposing the archive as a read-only level catalog.

WHY: Converted charts are only useful once a game client can browse and
download them. The catalog serves level listings, search, and details
straight from the archive database, pointing each level's chart data at
its converted NewLevelData record.

HOW: create_app() builds a FastAPI app bound to an ArchiveStore (opened
from ARCHIVE_DB_PATH at startup unless one is injected). An engine item
is fetched once at startup from ENGINE_LIST_URL when configured, and the
background data asset (BG_DATA_PATH) is read and hashed once when the app
is created. Every response carries the Sonolus-Version header.

RULES:
- Read-only: no endpoint writes to the store
- Public names use PUBLIC_NAME_PREFIX; archive names use SOURCE_NAME_PREFIX
- Levels missing any required file are left out of lists (404 on details)
- Pages hold CATALOG_PAGE_SIZE levels, ordered by index_ descending
- Level backgrounds take thumbnail/configuration from the engine background
- / and /levels/{name} redirect (302) to the app opener at SONOLUS_OPEN_URL
- Python 3.9+ compatible (no match/case, no PEP 604 unions)
"""

from __future__ import annotations

import hashlib
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import httpx
from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import RedirectResponse, Response

from chart_converter import __version__
from chart_converter.config import (
    ARCHIVE_DB_PATH,
    BG_DATA_PATH,
    CATALOG_PAGE_SIZE,
    CATALOG_SOURCE_URL,
    CATALOG_TITLE,
    ENGINE_LIST_URL,
    PUBLIC_NAME_PREFIX,
    SONOLUS_OPEN_URL,
    SONOLUS_VERSION,
    SOURCE_NAME_PREFIX,
    to_archive_name,
    to_public_name,
)
from chart_converter.server.models import (
    BackgroundItem,
    ErrorResponse,
    HealthResponse,
    ItemDetailsResponse,
    ItemInfoResponse,
    ItemListResponse,
    ItemSection,
    LevelItem,
    LevelResultInfo,
    ResourceRef,
    ServerButton,
    ServerInfo,
    UseBackground,
)
from chart_converter.store import (
    BACKGROUND_TYPE,
    BGM_TYPE,
    CONVERTED_CHART_TYPE,
    COVER_TYPE,
    ArchiveStore,
    FileRecord,
    LevelRecord,
)

logger = logging.getLogger(__name__)

RANDOM_SECTION_SIZE = 5
BG_DATA_ROUTE = "/assets/bgData.json.gz"


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _absolutize(value: Any, origin: str) -> Any:
    """Prefix every root-relative URL string in a JSON value with origin."""
    if isinstance(value, str) and value.startswith("/"):
        return origin + value
    if isinstance(value, dict):
        return {k: _absolutize(v, origin) for k, v in value.items()}
    if isinstance(value, list):
        return [_absolutize(v, origin) for v in value]
    return value


async def load_engine(url: str, transport: Optional[httpx.AsyncBaseTransport] = None) -> Dict[str, Any]:
    """Fetch the first engine item from an engine list endpoint."""
    async with httpx.AsyncClient(timeout=30.0, transport=transport) as client:
        resp = await client.get(url)
        resp.raise_for_status()
        engine = resp.json()["items"][0]
    origin = "{0.scheme}://{0.netloc}".format(httpx.URL(url))
    return _absolutize(engine, origin)


@dataclass(frozen=True)
class BackgroundData:
    """The shared background data asset, hashed once."""

    content: bytes
    hash: str


def load_background_data(path: Union[str, Path]) -> Optional[BackgroundData]:
    """Read and hash the background data asset, or None if it is missing."""
    asset = Path(path)
    if not asset.is_file():
        logger.warning("Background data %s not found, backgrounds will carry no data", asset)
        return None
    content = asset.read_bytes()
    return BackgroundData(content=content, hash=hashlib.sha1(content).hexdigest())


def _ref(record: FileRecord) -> ResourceRef:
    return ResourceRef(hash=record.hash, url=record.url)


def to_level_item(
    level: LevelRecord,
    files: List[FileRecord],
    engine: Optional[Dict[str, Any]] = None,
    bg_data: Optional[BackgroundData] = None,
) -> Optional[LevelItem]:
    """Build a catalog item, or None if a required file is missing.

    The level background reuses the engine background's thumbnail and
    configuration; its data is the shared background data asset.
    """
    by_type = {f.type: f for f in files}
    cover = by_type.get(COVER_TYPE)
    bgm = by_type.get(BGM_TYPE)
    data = by_type.get(CONVERTED_CHART_TYPE)
    background = by_type.get(BACKGROUND_TYPE)
    if cover is None or bgm is None or data is None or background is None:
        return None

    engine_background = (engine or {}).get("background") or {}
    public_name = to_public_name(level.name)
    return LevelItem(
        name=public_name,
        rating=level.rating,
        title=level.title,
        artists=level.artists,
        author=level.author,
        source=CATALOG_SOURCE_URL,
        engine=engine,
        useBackground=UseBackground(
            useDefault=False,
            item=BackgroundItem(
                name=level.name.replace(SOURCE_NAME_PREFIX, PUBLIC_NAME_PREFIX + "bg-", 1),
                title=level.title,
                subtitle=level.artists,
                author=level.author,
                thumbnail=engine_background.get("thumbnail"),
                data=ResourceRef(hash=bg_data.hash, url=BG_DATA_ROUTE) if bg_data else None,
                image=_ref(background),
                configuration=engine_background.get("configuration"),
            ),
        ),
        cover=_ref(cover),
        bgm=_ref(bgm),
        data=_ref(data),
    )


def _items(store: ArchiveStore, levels: List[LevelRecord], state) -> List[LevelItem]:  # noqa: ANN001
    files = store.files_for(level.name for level in levels)
    items = []
    for level in levels:
        item = to_level_item(level, files[level.name], state.engine, state.bg_data)
        if item is None:
            logger.debug("Level %s has missing files, hiding", level.name)
            continue
        items.append(item)
    return items


# ---------------------------------------------------------------------------
# App factory
# ---------------------------------------------------------------------------


def create_app(
    store: Optional[ArchiveStore] = None,
    engine: Optional[Dict[str, Any]] = None,
    bg_data_path: Optional[Union[str, Path]] = None,
) -> FastAPI:
    """Create the catalog app.

    Args:
        store: Archive store to serve. If None, ARCHIVE_DB_PATH is opened
            at startup and closed at shutdown.
        engine: Engine item to embed in level items. If None and
            ENGINE_LIST_URL is set, it is fetched at startup.
        bg_data_path: Background data asset. Defaults to BG_DATA_PATH.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned = None
        if app.state.store is None:
            owned = ArchiveStore(ARCHIVE_DB_PATH)
            app.state.store = owned
        if app.state.engine is None and ENGINE_LIST_URL:
            try:
                app.state.engine = await load_engine(ENGINE_LIST_URL)
            except (httpx.HTTPError, KeyError, IndexError, ValueError):
                logger.exception("Could not load engine from %s", ENGINE_LIST_URL)
        levels = app.state.store.count_levels()
        logger.info("%s: serving %d levels", CATALOG_TITLE, levels)
        yield
        if owned is not None:
            owned.close()
            app.state.store = None

    app = FastAPI(
        lifespan=lifespan,
        title="{} Catalog API".format(CATALOG_TITLE),
        description=(
            "Read-only level catalog over the chart archive. Lists, searches "
            "and describes levels whose charts have been converted."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
    )
    app.state.store = store
    app.state.engine = engine
    app.state.bg_data = load_background_data(bg_data_path or BG_DATA_PATH)

    @app.middleware("http")
    async def sonolus_headers(request: Request, call_next):
        logger.info("%s %s", request.method, request.url.path)
        response = await call_next(request)
        response.headers["Sonolus-Version"] = SONOLUS_VERSION
        return response

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["health"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    @app.get("/", include_in_schema=False)
    async def open_server(request: Request) -> RedirectResponse:
        return RedirectResponse(
            "{}/{}".format(SONOLUS_OPEN_URL, request.url.hostname), status_code=302
        )

    @app.get("/levels/{name}", include_in_schema=False)
    async def open_level(name: str, request: Request) -> RedirectResponse:
        return RedirectResponse(
            "{}/{}/levels/{}".format(SONOLUS_OPEN_URL, request.url.hostname, name),
            status_code=302,
        )

    @app.get(
        BG_DATA_ROUTE,
        tags=["assets"],
        summary="Background data shared by every level background",
        responses={404: {"model": ErrorResponse, "description": "Asset not configured"}},
    )
    async def background_data(request: Request) -> Response:
        asset = request.app.state.bg_data
        if asset is None:
            raise HTTPException(status_code=404, detail="Background data not found")
        return Response(content=asset.content, media_type="application/gzip")

    @app.get(
        "/sonolus/info",
        response_model=ServerInfo,
        tags=["catalog"],
        summary="Server info",
    )
    async def server_info() -> ServerInfo:
        return ServerInfo(title=CATALOG_TITLE, buttons=[ServerButton(type="level")])

    @app.get(
        "/sonolus/levels/info",
        response_model=ItemInfoResponse,
        tags=["catalog"],
        summary="Featured levels",
        description="A single #RANDOM section with a few random complete levels.",
    )
    async def level_info(request: Request) -> ItemInfoResponse:
        store_ = request.app.state.store
        levels = store_.random_levels(RANDOM_SECTION_SIZE)
        items = _items(store_, levels, request.app.state)
        return ItemInfoResponse(sections=[ItemSection(title="#RANDOM", items=items)])

    @app.get(
        "/sonolus/levels/list",
        response_model=ItemListResponse,
        tags=["catalog"],
        summary="List and search levels",
        description=(
            "Page through levels, newest first. keywords is a space-separated "
            "list; every keyword must match the name, title, artists or author."
        ),
        responses={400: {"model": ErrorResponse, "description": "Missing or invalid page"}},
    )
    async def level_list(
        request: Request,
        page: Optional[str] = None,
        keywords: Optional[str] = None,
    ) -> ItemListResponse:
        if page is None:
            raise HTTPException(status_code=400, detail="Missing page")
        try:
            page_number = int(page)
        except ValueError:
            raise HTTPException(status_code=400, detail="Invalid request")
        if page_number < 0:
            raise HTTPException(status_code=400, detail="Invalid request")

        words = [w for w in (keywords or "").split(" ") if w]
        store_ = request.app.state.store
        total = store_.count_levels(words)
        levels = store_.search_levels(words, page_number, CATALOG_PAGE_SIZE)
        return ItemListResponse(
            pageCount=-(-total // CATALOG_PAGE_SIZE),
            items=_items(store_, levels, request.app.state),
        )

    @app.get(
        "/sonolus/levels/result/info",
        response_model=LevelResultInfo,
        tags=["catalog"],
        summary="Result submission info (none accepted)",
    )
    async def level_result_info() -> LevelResultInfo:
        return LevelResultInfo()

    @app.get(
        "/sonolus/levels/{name}",
        response_model=ItemDetailsResponse,
        tags=["catalog"],
        summary="Level details",
        responses={404: {"model": ErrorResponse, "description": "Level not found"}},
    )
    async def level_details(name: str, request: Request) -> ItemDetailsResponse:
        store_ = request.app.state.store
        level = store_.get_level(to_archive_name(name))
        if level is None:
            raise HTTPException(status_code=404, detail="Level not found")
        files = store_.files_for([level.name])[level.name]
        state = request.app.state
        item = to_level_item(level, files, state.engine, state.bg_data)
        if item is None:
            raise HTTPException(status_code=404, detail="Level files missing")
        return ItemDetailsResponse(item=item, description=level.description or "")

    return app


def run_api(host: str = "0.0.0.0", port: int = 3000) -> None:
    """Serve the catalog with uvicorn."""
    import uvicorn
    uvicorn.run(create_app(), host=host, port=port)
