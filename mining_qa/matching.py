"""URL matchers shared by network rules and response waits."""

from __future__ import annotations

import re
from dataclasses import dataclass
from fnmatch import fnmatchcase
from typing import Callable, Pattern, Union

UrlPattern = Union[str, Pattern[str], Callable[[str], bool], "UrlMatcher"]


@dataclass(frozen=True)
class UrlMatcher:
    """Match a request URL by regex, glob, substring or predicate.

    * compiled regex: ``re.search`` against the full URL
    * string containing ``*``: shell-style glob over the full URL
    * any other string: substring match, so ``/user/who`` tolerates path prefixes
    * callable: arbitrary predicate over the URL
    """

    pattern: str | Pattern[str] | Callable[[str], bool]

    @classmethod
    def of(cls, pattern: UrlPattern) -> "UrlMatcher":
        if isinstance(pattern, UrlMatcher):
            return pattern
        return cls(pattern)

    def matches(self, url: str) -> bool:
        pattern = self.pattern
        if isinstance(pattern, re.Pattern):
            return pattern.search(url) is not None
        if isinstance(pattern, str):
            if "*" in pattern:
                return fnmatchcase(url, pattern)
            return pattern in url
        return bool(pattern(url))

    def describe(self) -> str:
        pattern = self.pattern
        if isinstance(pattern, re.Pattern):
            return f"/{pattern.pattern}/"
        if isinstance(pattern, str):
            return pattern
        return getattr(pattern, "__name__", "predicate")

    def __str__(self) -> str:
        return self.describe()
