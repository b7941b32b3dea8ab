"""
Slideshot Package

Converts HTML/CSS markup into an editable PowerPoint slide made of native
shapes, text boxes, lines and tables.
"""

from .config import ConversionOptions, Thresholds
from .errors import ConversionError, EmitterError, EmptyInputError, GeometrySourceUnavailable
from .generator import ConversionPipeline, ConversionResult, save
from .layout_engine import FallbackLayoutEngine
from .layout_parser import BrowserLayoutCollector
from .pptx_renderer import PPTXRenderer

__all__ = [
    'ConversionPipeline', 'ConversionResult', 'ConversionOptions', 'Thresholds', 'save',
    'FallbackLayoutEngine', 'BrowserLayoutCollector', 'PPTXRenderer',
    'ConversionError', 'EmitterError', 'EmptyInputError', 'GeometrySourceUnavailable',
]
