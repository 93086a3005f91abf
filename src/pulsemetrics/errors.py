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

"""Base exception hierarchy for :mod:`pulsemetrics`."""

from __future__ import annotations


class MetricsError(Exception):
    """Base class for all pulsemetrics exceptions.

    Catching this class handles every library-specific failure while letting
    standard Python exceptions (including ``OSError`` raised by report sinks
    and output streams) propagate normally.

    Example:
        Guarding metric set-up::

            try:
                metric = registry.bucket_timed("web.request", [50, 10])
            except MetricsError as e:
                logger.error("Metric set-up failed: %s", e)
    """


class MetricConfigurationError(MetricsError, ValueError):
    """Raised when a metric cannot be constructed from the supplied settings.

    Configuration errors are fatal to the metric being set up and are never
    silently corrected. Common causes:

    - A :class:`~pulsemetrics.MetricName` without a group
    - Bucket ranges that are empty or not monotonic non-decreasing
    - A non-positive tick interval
    - A name already registered under a different metric kind

    Note:
        This exception also inherits from ``ValueError``.
    """


class ConfigError(MetricsError, ValueError):
    """Raised when reporter configuration is invalid.

    Covers unsupported file formats, configuration files without a mapping at
    the root, and values that cannot be coerced to the expected type.
    """


__all__ = [
    "ConfigError",
    "MetricConfigurationError",
    "MetricsError",
]
