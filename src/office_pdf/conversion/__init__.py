"""
Domain layer for office-to-PDF conversion.
Provides the converter strategy interface, its two LibreOffice-backed
implementations and a service that owns the per-request upload lifecycle,
so front-ends (HTTP or others) share the same core logic.
"""

from .interfaces import ConversionError, ConverterConfig, ConverterStrategy
from .adapters import DirectProcessConverter, LibraryBridgeConverter, select_strategy
from .service import ConversionService, UploadTooLargeError
