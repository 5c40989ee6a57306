"""
Processor registry: document kind → processor.

The registry is a plain object built once at start-up and handed to whoever
needs it. It only does lookup; driving the four stages is the caller's job
(see pipeline.DocumentPipeline).

Versions are recorded next to each processor. Re-registering the same
version is a no-op; a different version replaces the entry (last one wins)
and is logged so an accidental downgrade is visible.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional, Union

from .exceptions import RegistryLookupError
from .models import DocumentKind
from .processors.base import DocumentProcessor
from .processors.drivers_license import DriversLicenseProcessor
from .processors.insurance import InsuranceProcessor
from .processors.license_plate import LicensePlateProcessor
from .processors.odometer import OdometerProcessor
from .processors.vin import VinProcessor
from .vin_decoder import VinDecoder

logger = logging.getLogger(__name__)

DEFAULT_VERSION = "1.0.0"

KindLike = Union[DocumentKind, str]


@dataclass(frozen=True)
class RegisteredProcessor:
    processor: DocumentProcessor[Any, Any]
    version: str


class ProcessorRegistry:
    """Maps each DocumentKind to exactly one processor.

    Usage:
        registry = build_default_registry(vin_decoder=NhtsaVinDecoder())
        processor = registry.resolve("vin")
        draft = processor.extract(raw_text)
    """

    def __init__(self) -> None:
        self._entries: dict[DocumentKind, RegisteredProcessor] = {}

    def register(self, processor: DocumentProcessor[Any, Any], version: str = DEFAULT_VERSION) -> None:
        """Add or replace the processor for ``processor.kind``."""
        kind = processor.kind
        existing = self._entries.get(kind)

        if existing is not None:
            if existing.version == version:
                logger.debug("Re-registering %s v%s", kind.value, version)
            else:
                logger.info(
                    "Replacing %s processor v%s with v%s", kind.value, existing.version, version
                )

        self._entries[kind] = RegisteredProcessor(processor=processor, version=version)

    def unregister(self, kind: KindLike) -> None:
        resolved = _coerce_kind(kind)
        if self._entries.pop(resolved, None) is None:
            raise RegistryLookupError(
                f"No processor registered for '{resolved.value}'",
                details={"kind": resolved.value},
            )

    def resolve(self, kind: KindLike) -> DocumentProcessor[Any, Any]:
        """Return the processor for ``kind``.

        Raises:
            RegistryLookupError: unknown kind string, or nothing registered for it.
        """
        return self._entry(kind).processor

    def version_of(self, kind: KindLike) -> str:
        return self._entry(kind).version

    def is_registered(self, kind: KindLike) -> bool:
        try:
            return _coerce_kind(kind) in self._entries
        except RegistryLookupError:
            return False

    def get_types(self) -> list[DocumentKind]:
        """Registered kinds, in registration order."""
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, kind: object) -> bool:
        return isinstance(kind, (DocumentKind, str)) and self.is_registered(kind)

    def _entry(self, kind: KindLike) -> RegisteredProcessor:
        resolved = _coerce_kind(kind)
        entry = self._entries.get(resolved)
        if entry is None:
            raise RegistryLookupError(
                f"No processor registered for '{resolved.value}'",
                details={"kind": resolved.value, "registered": [k.value for k in self._entries]},
            )
        return entry


def register_defaults(
    registry: ProcessorRegistry,
    vin_decoder: Optional[VinDecoder] = None,
    version: str = DEFAULT_VERSION,
) -> ProcessorRegistry:
    """Register the five built-in processors. Safe to call more than once."""
    for processor in (
        VinProcessor(vin_decoder),
        LicensePlateProcessor(),
        DriversLicenseProcessor(),
        InsuranceProcessor(vin_decoder),
        OdometerProcessor(),
    ):
        registry.register(processor, version)
    return registry


def build_default_registry(vin_decoder: Optional[VinDecoder] = None) -> ProcessorRegistry:
    return register_defaults(ProcessorRegistry(), vin_decoder)


def _coerce_kind(kind: KindLike) -> DocumentKind:
    if isinstance(kind, DocumentKind):
        return kind
    try:
        return DocumentKind(str(kind).strip().lower())
    except ValueError:
        raise RegistryLookupError(
            f"Unknown document kind '{kind}'", details={"kind": str(kind)}
        ) from None
