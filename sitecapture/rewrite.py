from __future__ import annotations

import dataclasses
import logging
import re
from pathlib import Path
from typing import Iterable, Sequence, Union


logger = logging.getLogger("sitecapture.rewrite")

FRAGMENT_RE = re.compile(r"#.*$", re.S)


@dataclasses.dataclass(frozen=True)
class RewriteRule:
    pattern: re.Pattern
    replacement: str

    def apply(self, url: str) -> str:
        return self.pattern.sub(self.replacement, url, count=1)


RuleEntry = Union[str, Sequence[str]]


def parse_rewrite_rules(entries: Iterable[RuleEntry]) -> list[RewriteRule]:
    """
    Build rules from `"<pattern> <replacement>"` strings or two-item sequences.

    Entries that do not split into exactly two fields, or whose pattern does
    not compile, are skipped.
    """
    rules: list[RewriteRule] = []
    for entry in entries:
        if isinstance(entry, RewriteRule):
            rules.append(entry)
            continue
        if isinstance(entry, str):
            fields = entry.split()
        elif isinstance(entry, (list, tuple)):
            fields = list(entry)
        else:
            fields = []
        if len(fields) != 2 or not all(isinstance(f, str) for f in fields):
            logger.warning(f"Ignoring malformed rewrite rule: {entry!r}")
            continue
        try:
            pattern = re.compile(fields[0])
        except re.error as e:
            logger.warning(f"Ignoring rewrite rule with invalid pattern {fields[0]!r}: {e}")
            continue
        rules.append(RewriteRule(pattern=pattern, replacement=fields[1]))
    return rules


def load_rewrite_rules(path: Path) -> list[RewriteRule]:
    lines = path.read_text(encoding="utf-8").splitlines()
    return parse_rewrite_rules(ln for ln in lines if ln.strip() and not ln.lstrip().startswith("#"))


def rewrite_url(url: str, rules: Iterable[RewriteRule] = (), remove_fragment: bool = False) -> str:
    url = url.strip()
    if remove_fragment:
        url = FRAGMENT_RE.sub("", url, count=1)
    for rule in rules:
        try:
            url = rule.apply(url).strip()
        except (re.error, IndexError) as e:
            # bad group reference in the replacement
            logger.debug(f"Skipping rewrite rule {rule.pattern.pattern!r}: {e}")
    return url

