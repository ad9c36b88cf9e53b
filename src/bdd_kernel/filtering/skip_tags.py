from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass

from bdd_kernel.compiler.model import Pickle

DEFAULT_SKIP_TAGS = ("@skip", "@ignore")

# @skip("not_ready"), @skip('not_ready') and @skip(not_ready) all carry a reason.
# Gherkin rejects whitespace inside a tag.
_TAG_WITH_REASON = re.compile(r"^(?P<tag>@[^(\s]+)\((?P<body>.*)\)$")


def normalize_tag(tag: str) -> str:
    tag = tag.strip()
    return tag if tag.startswith("@") else f"@{tag}"


@dataclass(frozen=True, slots=True)
class SkipTags:
    # Configured skip tags in priority order; read-only and shared by every scenario.
    tags: tuple[str, ...] = DEFAULT_SKIP_TAGS

    @classmethod
    def of(cls, tags: Iterable[str]) -> SkipTags:
        return cls(tags=tuple(normalize_tag(tag) for tag in tags))

    def reason_for(self, pickle: Pickle) -> str | None:
        # First configured tag that matches wins; a bare tag uses itself as the reason.
        for configured in self.tags:
            for name in pickle.tag_names:
                if name == configured:
                    return name
                match = _TAG_WITH_REASON.match(name)
                if match is not None and match.group("tag") == configured:
                    return _unquote(match.group("body"))
        return None


def _unquote(body: str) -> str:
    body = body.strip()
    if len(body) >= 2 and body[0] == body[-1] and body[0] in {'"', "'"}:
        return body[1:-1]
    return body
