"""Entities owning an ordered list of requests, for branch-and-bound search."""

from typing import Iterable, List, Optional

from .model import Model, Value, Variable


class Request(Variable):
    """A variable belonging to an entity.

    Alternative requests are only worth assigning when an earlier primary
    request of the same entity stays unassigned; a waitlisted request does
    not unlock an alternative.
    """

    def __init__(
        self,
        name: Optional[str] = None,
        values: Optional[Iterable[Value]] = None,
        priority: int = 0,
        alternative: bool = False,
        waitlist: bool = False,
        initial_value: Optional[Value] = None,
    ):
        super().__init__(name, values, initial_value)
        self.priority = priority
        self.alternative = alternative
        self.waitlist = waitlist
        self.entity: Optional["Entity"] = None

    def bound(self) -> float:
        """Lowest contribution this request can make to the value; never above 0."""
        return min([0.0] + [value.to_double() for value in self.values()])

    def min_penalty(self) -> float:
        return min((value.penalty() for value in self.values()), default=0.0)

    def __repr__(self) -> str:
        flags = []
        if self.alternative:
            flags.append("alternative")
        if self.waitlist:
            flags.append("waitlist")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        return f"Request({self.name}, priority={self.priority}, current={self.assignment}){suffix}"


class Entity:
    """Owner of requests; primary requests first, then alternatives, each by priority."""

    def __init__(self, name: str, requests: Iterable[Request] = ()):
        self.name = name
        self._requests: List[Request] = []
        for request in requests:
            self.add_request(request)

    def add_request(self, request: Request) -> None:
        request.entity = self
        self._requests.append(request)
        self._requests.sort(key=lambda r: (r.alternative, r.priority))

    def requests(self) -> List[Request]:
        return self._requests

    def nr_assigned(self) -> int:
        return sum(1 for request in self._requests if request.assignment is not None)

    def __repr__(self) -> str:
        return f"Entity({self.name}, requests={len(self._requests)})"


class EntityModel(Model):
    """Model whose variables are grouped into entities."""

    def __init__(self) -> None:
        super().__init__()
        self._entities: List[Entity] = []

    def add_entity(self, entity: Entity) -> None:
        self._entities.append(entity)
        for request in entity.requests():
            if request.model is None:
                self.add_variable(request)

    def entities(self) -> List[Entity]:
        return self._entities
