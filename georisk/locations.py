from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from pathlib import Path

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from georisk.models import Location

logger = logging.getLogger(__name__)

_DEFAULT_IMAGE_REF = "https://img.freepik.com/vetores-gratis/localizacao_53876-25530.jpg?semt=ais_hybrid&w=740"

DEFAULT_LOCATIONS: tuple[Location, ...] = (
    Location(id="1", name="Zona Sul", region="São Paulo", image_ref=_DEFAULT_IMAGE_REF),
    Location(id="2", name="Zona Norte", region="São Paulo", image_ref=_DEFAULT_IMAGE_REF),
    Location(id="3", name="Zona Oeste", region="São Paulo", image_ref=_DEFAULT_IMAGE_REF),
    Location(id="4", name="Zona Leste", region="São Paulo", image_ref=_DEFAULT_IMAGE_REF),
    Location(id="5", name="Centro", region="São Paulo", image_ref=_DEFAULT_IMAGE_REF),
)

_LOCATIONS_ADAPTER = TypeAdapter(list[Location])


class LocationCatalog:
    """Read-only, ordered catalog of report target locations."""

    def __init__(self, locations: Iterable[Location]) -> None:
        self._locations = tuple(locations)
        self._by_id: dict[str, Location] = {}
        for location in self._locations:
            if location.id in self._by_id:
                raise ValueError(f"duplicate location id: {location.id}")
            self._by_id[location.id] = location

    def list(self) -> list[Location]:
        return list(self._locations)

    def get(self, location_id: str) -> Location | None:
        return self._by_id.get(location_id)

    def __len__(self) -> int:
        return len(self._locations)

    @classmethod
    def from_json_file(cls, path: str | Path) -> "LocationCatalog":
        raw = Path(path).expanduser().read_bytes()
        try:
            locations = _LOCATIONS_ADAPTER.validate_json(raw)
        except PydanticValidationError as exc:
            raise ValueError(f"invalid location catalog {path}: {exc.error_count()} error(s)") from exc
        return cls(locations)


def load_catalog_from_env(environ: Mapping[str, str]) -> LocationCatalog:
    path = environ.get("GEORISK_LOCATIONS_PATH", "").strip()
    if not path:
        return LocationCatalog(DEFAULT_LOCATIONS)
    catalog = LocationCatalog.from_json_file(path)
    logger.info("location catalog loaded path=%s count=%d", path, len(catalog))
    return catalog

