# Copyright Amazon.com, Inc. or its affiliates. All Rights Reserved.
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

"""Approximate grouping of statements into templates by edit distance.

There is no SQL parser here. Two statements are taken to be the same when the
Levenshtein distance between their masked texts, relative to their mean length, is
below a threshold. Templates are tried most frequent first and the first one under the
threshold wins, even if a later one would be closer.
"""

import logging
import math
from typing import Callable, Dict, List, Optional, Tuple

from rapidfuzz.distance import Levenshtein

from .config import DEFAULT_DISTANCE_THRESHOLD
from .mangling_rules import Mangler


logger = logging.getLogger(__name__)

# distance(a, b, score_cutoff=None) -> int
DistanceFunction = Callable[..., int]


def sort_templates(templates: Dict[str, int]) -> List[str]:
    """Template texts by descending occurrence count, first seen first among equals"""
    return sorted(templates, key=lambda template: templates[template], reverse=True)


def normalized_distance(distance: int, len_a: int, len_b: int) -> float:
    return distance / ((len_a + len_b) / 2)


class ClusteringEngine:
    def __init__(
        self,
        distance: Optional[DistanceFunction] = None,
        threshold: float = DEFAULT_DISTANCE_THRESHOLD,
        mangler: Optional[Mangler] = None,
    ):
        self.distance = distance or Levenshtein.distance
        self.threshold = threshold
        self.mangler = mangler or Mangler()
        self.comparisons = 0

    def find_match(self, mangled: str, templates: Dict[str, int]) -> Optional[str]:
        """First template, most frequent first, within the distance threshold"""
        len_m = len(mangled)
        for template in sort_templates(templates):
            len_t = len(template)
            mean_length = (len_m + len_t) / 2
            # Any distance passing the strict comparison is at most this
            cutoff = int(math.floor(self.threshold * mean_length))
            self.comparisons += 1
            distance = self.distance(mangled, template, score_cutoff=cutoff)
            if normalized_distance(distance, len_m, len_t) < self.threshold:
                return template
        return None

    def assign(
        self, normalized: str, templates: Dict[str, int], user: str = ''
    ) -> Tuple[str, bool]:
        """File a normalized statement under a template of the user.

        Returns the template and whether it was created for this statement.
        """
        mangled = self.mangler.mangle(normalized)
        template = self.find_match(mangled, templates)
        if template is not None:
            templates[template] += 1
            logger.debug(f'User {user}: {templates[template]} instances of {template}')
            return template, False

        templates[mangled] = 1
        logger.debug(f'User {user}: Fresh {mangled}')
        return mangled, True
