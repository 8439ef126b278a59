from __future__ import annotations
from typing import Literal
from pydantic import BaseModel


# ---------------------------------------------------------------------------
# GET /departures
# ---------------------------------------------------------------------------

class DepartureOut(BaseModel):
    startTime: str      # HH:MM
    vehicleLabel: str
    timestamp: str      # last seen, HH:MM:SS


class DirectionOut(BaseModel):
    directionName: str
    departures: list[DepartureOut]


class RouteOut(BaseModel):
    routeName: str
    directions: list[DirectionOut]


class DeparturesResponse(BaseModel):
    success: bool
    routes: list[RouteOut]
    totalRoutes: int
    sheetName: str


# ---------------------------------------------------------------------------
# POST /departures/*
# ---------------------------------------------------------------------------

class ReconcileResponse(BaseModel):
    success: bool
    newDepartures: int
    updatedDepartures: int
    totalRows: int
    timestamp: str
    sheetUsed: str
    message: str | None = None


class RolloverResponse(BaseModel):
    success: bool
    time: str
    action: Literal["reset", "check"]


# ---------------------------------------------------------------------------
# GET /vehicles
# ---------------------------------------------------------------------------

class VehicleOut(BaseModel):
    id: str
    label: str
    routeId: str
    startTime: str
    lat: float
    lon: float


class TripUpdateOut(BaseModel):
    vehicleId: str
    destination: str    # stop_id of the trip's last stop


class VehiclesResponse(BaseModel):
    vehicles: list[VehicleOut]
    tripUpdates: list[TripUpdateOut]
    timestamp: int      # epoch ms


# ---------------------------------------------------------------------------
# Sightings
# ---------------------------------------------------------------------------

class SightingOut(BaseModel):
    vehicleLabel: str
    routeId: str
    departureTime: str
    direction: str
    observedAt: str
    date: str


class SightingsResponse(BaseModel):
    success: bool
    vehicles: list[SightingOut]
    count: int
    lastUpdate: str | None
    sheetName: str


class IngestResponse(BaseModel):
    success: bool
    appended: int
    timestamp: str


# ---------------------------------------------------------------------------
# GET /health
# ---------------------------------------------------------------------------

class HealthResponse(BaseModel):
    status: Literal["ok"]
    timestamp: str
    store: str
    scheduler_running: bool
    jobs: dict[str, str | None]


# ---------------------------------------------------------------------------
# /auth/*
# ---------------------------------------------------------------------------

class RegisterRequest(BaseModel):
    username: str = ""
    password: str = ""
    captcha: str | None = None
    userAgent: str | None = None


class LoginRequest(BaseModel):
    username: str = ""
    password: str = ""
    userAgent: str | None = None


class TokenRequest(BaseModel):
    token: str | None = None


class StatusUpdateRequest(TokenRequest):
    rowNumber: int | None = None
    status: str | None = None


class FavoritesRequest(TokenRequest):
    favorites: str | None = None


class ChangePasswordRequest(TokenRequest):
    currentPassword: str | None = None
    newPassword: str | None = None


class MessageResponse(BaseModel):
    success: bool
    message: str


class LoginResponse(MessageResponse):
    token: str
    username: str
    isAdmin: bool


class VerifyResponse(BaseModel):
    success: bool
    username: str
    isAdmin: bool


class UserOut(BaseModel):
    rowNumber: int
    username: str
    status: str
    registeredAt: str
    lastIP: str
    ipHistory: str
    isAdmin: bool
    lastAccess: str
    deviceHistory: str


class UsersResponse(BaseModel):
    success: bool
    users: list[UserOut]


class UserDataResponse(BaseModel):
    success: bool
    username: str
    favorites: str
