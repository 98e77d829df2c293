"""Fragment extraction and marker classification for fetched pages."""

from __future__ import annotations

import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Pattern

from bs4 import BeautifulSoup

from ..core.keys import K_NOT_FOUND
from .check_config import DEFAULT_FRAGMENT_RULE, FragmentRule


@dataclass(frozen=True)
class ExtractionResult:
    fragment_text: str
    matched: bool

    @property
    def found(self) -> bool:
        return self.fragment_text != K_NOT_FOUND


@lru_cache(maxsize=32)
def compile_fragment_pattern(rule: FragmentRule) -> Pattern[str]:
    """Regex for ``<tag ... attr="value" ...>inner</tag>``.

    The attribute may appear anywhere inside the opening tag, quoted with
    either quote style. The inner group stops at the first closing tag of the
    same name, so nested tags of the same kind are not balanced.
    """

    tag = re.escape(rule.tag)
    attr = re.escape(rule.attribute)
    value = re.escape(rule.value)
    return re.compile(
        rf"<{tag}\b(?=[^>]*\s{attr}\s*=\s*(?P<q>[\"']){value}(?P=q))[^>]*>(?P<inner>.*?)</{tag}\s*>",
        re.IGNORECASE | re.DOTALL,
    )


def _inner_text(markup: str) -> str:
    if "<" not in markup and "&" not in markup:
        return markup.strip()
    soup = BeautifulSoup(markup, "html.parser")
    return soup.get_text().strip()


def extract_fragment(
    body: str,
    expected_marker: str,
    rule: FragmentRule = DEFAULT_FRAGMENT_RULE,
) -> ExtractionResult:
    """Locate the designated fragment in ``body`` and test it for ``expected_marker``.

    Matching is an exact, case-sensitive substring test on the trimmed inner
    text. When the fragment is absent the text is ``NOT_FOUND`` and the result
    never matches.
    """

    match = compile_fragment_pattern(rule).search(body or "")
    if match is None:
        return ExtractionResult(K_NOT_FOUND, False)
    text = _inner_text(match.group("inner"))
    return ExtractionResult(text, bool(expected_marker) and expected_marker in text)
