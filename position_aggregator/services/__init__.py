"""Service modules"""
from .orchestrator import FetchOrchestrator
from .position_service import PositionService
from .monitor import Monitor
from .registry import build_adapters, build_orchestrator, build_position_service

__all__ = [
    "FetchOrchestrator",
    "PositionService",
    "Monitor",
    "build_adapters",
    "build_orchestrator",
    "build_position_service",
]
