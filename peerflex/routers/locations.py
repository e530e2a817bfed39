from fastapi import APIRouter, Depends, Query

from peerflex.schemas.location import Location
from peerflex.services.location_service import LocationService


router = APIRouter(prefix="/locations", tags=["locations"])


def get_location_service() -> LocationService:
    return LocationService()


@router.get("/search")
async def search(q: str = "", limit: int = Query(8, ge=1, le=50), service: LocationService = Depends(get_location_service)):
    return {"items": await service.search_locations(q, limit=limit)}


@router.get("/reverse")
async def reverse(
    lat: float = Query(..., ge=-90, le=90),
    lng: float = Query(..., ge=-180, le=180),
    service: LocationService = Depends(get_location_service),
):
    return {"address": await service.get_address_from_coords(Location(latitude=lat, longitude=lng))}


@router.get("/geocode")
async def geocode(address: str, service: LocationService = Depends(get_location_service)):
    return await service.get_coords_from_address(address)


@router.get("/approximate")
async def approximate(service: LocationService = Depends(get_location_service)):
    return await service.get_approximate_location()


@router.get("/distance")
async def distance(
    lat1: float = Query(..., ge=-90, le=90),
    lng1: float = Query(..., ge=-180, le=180),
    lat2: float = Query(..., ge=-90, le=90),
    lng2: float = Query(..., ge=-180, le=180),
):
    km = LocationService.calculate_distance(Location(latitude=lat1, longitude=lng1), Location(latitude=lat2, longitude=lng2))
    return {"km": km, "formatted": LocationService.format_distance(km)}
