# Copyright 2026 Firefly Software Solutions Inc.
#
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
"""Event mask grammar: ``*`` | ``<type>.*`` | ``<type>.<action>``.

An empty mask accepts everything.  No other wildcard forms exist: a
pattern such as ``*.created`` or ``repo*`` is compared literally and so
never matches a real event.
"""

from __future__ import annotations

from collections.abc import Sequence


def matches_pattern(pattern: str, event_type: str, action: str) -> bool:
    qualified = f"{event_type}.{action}"
    if pattern == "*":
        return True
    if pattern.endswith(".*"):
        return qualified.startswith(pattern[:-1])
    return pattern == qualified


def matches_mask(mask: Sequence[str] | None, event_type: str, action: str) -> bool:
    if not mask:
        return True
    return any(matches_pattern(p, event_type, action) for p in mask)
