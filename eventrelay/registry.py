"""Named targets and the event names they subscribe to."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Union

from pydantic import ValidationError

from .errors import RegistrationError
from .types import Target, TargetUpdate

logger = logging.getLogger(__name__)

TargetLike = Union[Target, Mapping[str, Any]]


def _as_list(value: Any) -> List[Any]:
    if isinstance(value, (str, bytes, Mapping, Target)):
        return [value]
    return list(value)


class TargetRegistry:
    """Best-effort in-memory store of targets keyed by name.

    Mutations report failures by returning ``False`` and logging a
    diagnostic; they never raise.
    """

    def __init__(self) -> None:
        self._targets: Dict[str, Target] = {}

    def __len__(self) -> int:
        return len(self._targets)

    def __contains__(self, name: object) -> bool:
        return name in self._targets

    def __iter__(self) -> Iterator[Target]:
        return iter(list(self._targets.values()))

    def get(self, name: str) -> Optional[Target]:
        return self._targets.get(name)

    def all(self) -> List[Target]:
        return list(self._targets.values())

    def add(self, target: Union[TargetLike, Iterable[TargetLike]]) -> bool:
        """Register one or more targets; True only if all of them were added.

        A batch is not atomic: entries added before a failing one stay.
        """
        results = [self._add_one(item) for item in _as_list(target)]
        return all(results)

    def _add_one(self, item: TargetLike) -> bool:
        try:
            target = item if isinstance(item, Target) else Target.model_validate(item)
        except ValidationError as exc:
            logger.error("Invalid target definition %r: %s", item, exc)
            return False

        if target.name in self._targets:
            self._report(RegistrationError(target.name, "already exists"))
            return False

        self._targets[target.name] = Target(
            name=target.name,
            url=target.url,
            headers=dict(target.headers),
            events=list(target.events),
        )
        logger.debug("Added target '%s'", target.name)
        return True

    def update(self, name: str, update: Union[TargetUpdate, Mapping[str, Any]]) -> bool:
        target = self._targets.get(name)
        if target is None:
            self._report(RegistrationError(name, "does not exist"))
            return False

        if not isinstance(update, TargetUpdate):
            try:
                update = TargetUpdate.model_validate(update)
            except ValidationError as exc:
                logger.error("Invalid update for target '%s': %s", name, exc)
                return False

        supplied = update.model_fields_set
        if "url" in supplied:
            target.url = update.url
        if update.headers is not None:
            target.headers = {**target.headers, **update.headers}
        if update.events is not None:
            target.events = list(update.events)
        return True

    def remove(self, name: str) -> bool:
        if name not in self._targets:
            self._report(RegistrationError(name, "does not exist"))
            return False
        del self._targets[name]
        return True

    def add_events(self, name: str, events: Union[str, Iterable[str]]) -> bool:
        target = self._targets.get(name)
        if target is None:
            self._report(RegistrationError(name, "does not exist"))
            return False

        for event in _as_list(events):
            if event not in target.events:
                target.events.append(event)
        return True

    def resolve(self, event_name: str) -> List[Target]:
        """Targets subscribed to ``event_name`` or the wildcard."""
        return [target for target in self._targets.values() if target.matches(event_name)]

    @staticmethod
    def _report(error: RegistrationError) -> None:
        logger.error("%s", error)
