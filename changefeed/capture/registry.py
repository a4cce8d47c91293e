"""Tracked-field registrations: entity name -> ordered tracked field names."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from changefeed.config.manager import ConfigManager
from changefeed.config.models import ChangefeedConfig, TrackingConfig
from changefeed.exceptions import UntrackedEntityError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class TrackingRegistration:
    """Normalized registration for one entity."""

    entity_name: str
    fields: tuple[str, ...]


def _normalize_name(value: str, what: str) -> str:
    if not isinstance(value, str):
        raise ValueError(f"{what} must be a non-empty string")
    normalized = value.strip()
    if not normalized:
        raise ValueError(f"{what} must be a non-empty string")
    return normalized


def track(entity_name: str, *fields: str) -> TrackingRegistration:
    """Create a tracking registration; duplicate field names keep their first position."""
    entity = _normalize_name(entity_name, "entity_name")
    names = tuple(dict.fromkeys(_normalize_name(field, "field name") for field in fields))
    if not names:
        raise ValueError(f"entity {entity!r} must track at least one field")
    return TrackingRegistration(entity_name=entity, fields=names)


class TrackingRegistry:
    """Lookup of tracked fields per entity.

    Entities come from explicit registrations, from ``tracking.entities`` in
    the configuration, or both. Applying a new tracking section replaces only
    the configured entities; explicit registrations are left alone.
    """

    def __init__(self, registrations: Iterable[TrackingRegistration] = ()) -> None:
        self._entities: dict[str, tuple[str, ...]] = {}
        self._configured: frozenset[str] = frozenset()
        for registration in registrations:
            self.add(registration)

    @classmethod
    def from_config(cls, config: TrackingConfig) -> TrackingRegistry:
        registry = cls()
        registry.apply_config(config)
        return registry

    @classmethod
    def follow(cls, manager: ConfigManager) -> TrackingRegistry:
        """Registry built from the manager's tracking section that picks up later reloads."""
        registry = cls.from_config(manager.get().tracking)

        def _on_change(old: ChangefeedConfig, new: ChangefeedConfig) -> None:
            if old.tracking != new.tracking:
                registry.apply_config(new.tracking)

        manager.on_change(_on_change)
        return registry

    def apply_config(self, config: TrackingConfig) -> None:
        configured = {
            registration.entity_name: registration.fields
            for registration in (track(entity, *fields) for entity, fields in config.entities.items())
        }
        entities = {name: fields for name, fields in self._entities.items() if name not in self._configured}
        entities.update(configured)
        # Swap in one assignment so concurrent lookups see the old or the new map.
        self._entities = entities
        self._configured = frozenset(configured)
        logger.info("tracking %d entities", len(entities))

    def add(self, registration: TrackingRegistration) -> None:
        self._entities[registration.entity_name] = registration.fields
        self._configured = self._configured - {registration.entity_name}

    def register(self, entity_name: str, fields: Iterable[str]) -> TrackingRegistration:
        registration = track(entity_name, *fields)
        self.add(registration)
        return registration

    def fields_for(self, entity_name: str) -> tuple[str, ...]:
        try:
            return self._entities[entity_name]
        except KeyError:
            raise UntrackedEntityError(entity_name) from None

    def is_tracked(self, entity_name: str) -> bool:
        return entity_name in self._entities

    def entities(self) -> list[str]:
        return list(self._entities)

    def __len__(self) -> int:
        return len(self._entities)
