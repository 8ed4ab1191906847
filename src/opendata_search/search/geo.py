"""Geospatial clauses referencing region shapes stored in the regions index."""

from dataclasses import dataclass
from typing import Any

from opendata_search.domain.model import QueryRegion, Region


@dataclass(frozen=True)
class RegionShapes:
    """Builds ``geo_shape`` clauses against pre-indexed region geometries.

    The geometry is never fetched; the engine resolves it from
    ``regions_index`` by id at query time.
    """

    regions_index: str
    spatial_field: str = "spatial.geoJson"
    geometry_path: str = "geometry"
    mapping_type: str | None = None

    def for_id(self, region_search_id: str) -> dict[str, Any]:
        indexed_shape: dict[str, Any] = {
            "index": self.regions_index,
            "id": region_search_id,
            "path": self.geometry_path,
        }
        if self.mapping_type:
            indexed_shape["type"] = self.mapping_type
        return {"geo_shape": {self.spatial_field: {"indexed_shape": indexed_shape}}}

    def for_region(self, region: Region) -> dict[str, Any]:
        return self.for_id(region.region_search_id)

    def for_query_region(self, query_region: QueryRegion) -> dict[str, Any]:
        return self.for_id(query_region.search_id)
