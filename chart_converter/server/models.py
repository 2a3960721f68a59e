"""Pydantic response models for the read-only catalog API.

WHY: The catalog serves the archive to game clients, which expect a fixed
JSON shape (server info, item lists, item details). Pydantic models
enforce that shape at runtime and generate the OpenAPI docs.

HOW: One model per response object. Field names are camelCase because the
client protocol is; Python code builds them by keyword.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- ResourceRef always carries both hash and url
- engine is passed through untouched as a dict (owned by the engine server)
- Python 3.9+ compatible (no PEP 604 unions, use Optional from typing)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class ResourceRef(BaseModel):
    """A published file."""

    hash: str = Field(description="SHA-1 of the file content.")
    url: str = Field(description="Public URL of the file.")


class BackgroundItem(BaseModel):
    name: str = Field(description="Background item name.")
    version: int = Field(default=2, description="Background item format version.")
    title: str = Field(description="Level title.")
    subtitle: str = Field(description="Level artists.")
    author: str = Field(description="Level author.")
    tags: List[str] = Field(default_factory=list, description="Item tags.")
    thumbnail: Optional[Dict[str, Any]] = Field(
        default=None, description="Thumbnail of the engine's background."
    )
    data: Optional[ResourceRef] = Field(
        default=None, description="Background data served from /assets/bgData.json.gz."
    )
    image: ResourceRef = Field(description="Background image.")
    configuration: Optional[Dict[str, Any]] = Field(
        default=None, description="Configuration of the engine's background."
    )


class UseItem(BaseModel):
    useDefault: bool = Field(default=True, description="Use the engine default.")


class UseBackground(BaseModel):
    useDefault: bool = Field(default=False, description="Use the engine default background.")
    item: Optional[BackgroundItem] = Field(default=None, description="Level-specific background.")


class LevelItem(BaseModel):
    """One level as listed by the catalog.

    RULES:
    - name is the public name (archive prefix swapped for the public one)
    - data points at the converted chart (NewLevelData record)
    """

    name: str = Field(description="Public level name.")
    version: int = Field(default=1, description="Level item format version.")
    rating: int = Field(description="Difficulty rating.")
    title: str = Field(description="Song title.")
    artists: str = Field(description="Song artists.")
    author: str = Field(description="Chart author.")
    source: str = Field(description="Catalog origin URL.")
    tags: List[str] = Field(default_factory=list, description="Item tags.")
    engine: Optional[Dict[str, Any]] = Field(default=None, description="Engine item.")
    useSkin: UseItem = Field(default_factory=UseItem)
    useBackground: UseBackground = Field(default_factory=UseBackground)
    useEffect: UseItem = Field(default_factory=UseItem)
    useParticle: UseItem = Field(default_factory=UseItem)
    cover: ResourceRef = Field(description="Cover image.")
    bgm: ResourceRef = Field(description="Music file.")
    data: ResourceRef = Field(description="Converted chart data.")


class ServerButton(BaseModel):
    type: str = Field(description="Item type the button opens.")


class ServerInfo(BaseModel):
    title: str = Field(description="Catalog title.")
    buttons: List[ServerButton] = Field(description="Navigation buttons.")
    configuration: Dict[str, Any] = Field(
        default_factory=lambda: {"options": []},
        description="Server configuration options.",
    )


class ItemSection(BaseModel):
    itemType: str = Field(default="level", description="Type of the items in the section.")
    title: str = Field(description="Section title.")
    items: List[LevelItem] = Field(description="Items in the section.")


class ItemInfoResponse(BaseModel):
    searches: List[Dict[str, Any]] = Field(default_factory=list)
    sections: List[ItemSection] = Field(description="Featured sections.")


class ItemListResponse(BaseModel):
    pageCount: int = Field(description="Total number of pages for this query.")
    searches: List[Dict[str, Any]] = Field(default_factory=list)
    items: List[LevelItem] = Field(description="Levels on this page.")


class ItemDetailsResponse(BaseModel):
    item: LevelItem = Field(description="The level.")
    description: str = Field(default="", description="Level description.")
    sections: List[ItemSection] = Field(default_factory=list)
    actions: List[Dict[str, Any]] = Field(default_factory=list)
    hasCommunity: bool = Field(default=False)
    leaderboards: List[Dict[str, Any]] = Field(default_factory=list)


class LevelResultInfo(BaseModel):
    submits: List[Dict[str, Any]] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
