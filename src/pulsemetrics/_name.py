# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Hierarchical metric names."""

from __future__ import annotations

from dataclasses import dataclass, field

from .errors import MetricConfigurationError


@dataclass(frozen=True, slots=True, order=False)
class MetricName:
    """Identity of a metric: ``group``, optional ``type``, ``name`` and ``scope``.

    Reports only read :attr:`simple_name` (``group.type.name``) and, for gauge
    group members, the bare :attr:`name`. Equality, hashing and ordering use
    :attr:`key`, which also includes the scope.

    Attributes:
        group: Top level grouping, typically a module or subsystem.
        type: Optional type within the group, typically a class name.
        name: Optional leaf name.
        scope: Optional scope distinguishing otherwise identical names.
    """

    group: str
    type: str | None = None
    name: str | None = None
    scope: str | None = None
    simple_name: str = field(init=False, compare=False)
    key: str = field(init=False)

    def __post_init__(self) -> None:
        if not self.group:
            msg = "MetricName requires a group"
            raise MetricConfigurationError(msg)
        object.__setattr__(self, "simple_name", self._build_simple_name())
        object.__setattr__(self, "key", self._build_key())

    @classmethod
    def parse(cls, dotted: str) -> MetricName:
        """Build a name from ``group``, ``group.name`` or ``group.type.name``.

        Any parts after the third are folded back into the name.
        """
        parts = dotted.split(".")
        if len(parts) == 1:
            return cls(parts[0])
        if len(parts) == 2:
            return cls(parts[0], name=parts[1])
        return cls(parts[0], parts[1], ".".join(parts[2:]))

    @classmethod
    def for_class(cls, klass: type, name: str, scope: str | None = None) -> MetricName:
        """Name a metric after the module and class that owns it."""
        return cls(klass.__module__, klass.__qualname__, name, scope)

    def derive_with_name(self, new_name: str) -> MetricName:
        """Return a name in the same group, type and scope with ``new_name``."""
        return MetricName(self.group, self.type, new_name, self.scope)

    def derive_with_name_suffix(self, suffix: str) -> MetricName:
        """Return a name with ``suffix`` appended to the leaf name."""
        new_name = f"{self.name or ''}{suffix}"
        return MetricName(self.group, self.type, new_name, self.scope)

    def __lt__(self, other: MetricName) -> bool:
        return self.key < other.key

    def __str__(self) -> str:
        return self.simple_name

    def _build_simple_name(self) -> str:
        parts = [self.group]
        if self.type is not None:
            parts.append(self.type)
        if self.name:
            parts.append(self.name)
        return ".".join(parts).replace(" ", "-")

    def _build_key(self) -> str:
        key = self.group
        if self.type is not None:
            key += f":type={self.type}"
        if self.scope is not None:
            key += f",scope={self.scope}"
        if self.name:
            key += f",name={self.name}"
        return key


def as_metric_name(name: MetricName | str) -> MetricName:
    """Coerce a dotted string to a :class:`MetricName`."""
    if isinstance(name, MetricName):
        return name
    return MetricName.parse(name)


__all__ = ["MetricName", "as_metric_name"]
