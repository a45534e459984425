"""Filename title discernment.

A naming rule is a regular expression with the named groups ``title``,
``year``, ``subtitle`` and ``nonengtitle``. :func:`match_rule` evaluates one
rule against one file and :func:`discern` evaluates a whole rule list,
returning every candidate ordered best-first:

1. candidates with both a title and a year, by rule order;
2. candidates with only a title, by rule order;
3. everything else, by rule order.

When no rule matches, a single fallback candidate built from the bare
filename is returned so callers always receive at least one entry.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Sequence
from functools import lru_cache

from .config import NamingRule
from .logging_utils import render_fields_block
from .models import CandidateKind, CaptureRecord, FileDescriptor, MediaType, ParsedIdentity
from .utils import strip_extension

LOGGER = logging.getLogger(__name__)

# ``(?<name>`` is accepted as a spelling of ``(?P<name>``; lookbehinds are left alone
_NAMED_GROUP_ALIAS = re.compile(r"\(\?<(?![=!])")

WORD_SEPARATOR = "."

_CAPTURE_GROUPS = ("title", "year", "subtitle", "nonengtitle")


@lru_cache(maxsize=512)
def compile_rule_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a rule pattern, raising ``re.error`` when it is malformed.

    ``\\w``, ``\\d`` and ``\\b`` are ASCII-only; non-Latin scripts must be
    matched with explicit ranges such as ``[一-龥]``.
    """
    return re.compile(_NAMED_GROUP_ALIAS.sub("(?P<", pattern), re.ASCII)


def usable_rules(rules: Sequence[NamingRule], *, task: str) -> list[NamingRule]:
    """Return the rules whose patterns compile, warning once for each one that does not."""
    usable: list[NamingRule] = []
    for rule in rules:
        try:
            compile_rule_pattern(rule.regex)
        except re.error as exc:
            LOGGER.warning(
                render_fields_block(
                    "Invalid Naming Rule Pattern",
                    {"Task": task, "Rule": rule.name, "Pattern": rule.regex, "Error": exc},
                )
            )
            continue
        usable.append(rule)
    return usable


def _normalize_words(value: str | None) -> str | None:
    if not value:
        return None
    return value.replace(WORD_SEPARATOR, " ")


def parse_with_rule(stem: str, rule: NamingRule) -> CaptureRecord | None:
    """Run ``rule`` against ``stem`` and return its captures, or None when it does not match.

    Raises ``re.error`` when the rule's pattern is malformed.
    """
    match = compile_rule_pattern(rule.regex).search(stem)
    if match is None:
        return None

    groups = {name: value for name, value in match.groupdict().items() if name in _CAPTURE_GROUPS}
    return CaptureRecord(
        title=_normalize_words(groups.get("title")),
        year=groups.get("year") or None,
        subtitle=groups.get("subtitle") or None,
        nonengtitle=_normalize_words(groups.get("nonengtitle")),
    )


def match_rule(
    file: FileDescriptor,
    rule: NamingRule,
    media_type: MediaType,
    *,
    order: int = 0,
) -> ParsedIdentity | None:
    """Evaluate a single naming rule against ``file``.

    Returns None when the rule cannot be applied: it does not support
    ``media_type`` or its pattern is malformed. A rule that runs without
    matching produces an ``UNMATCHED`` candidate.
    """
    if not rule.supports(media_type):
        LOGGER.debug(
            render_fields_block(
                "Rule Skipped For Media Type",
                {"Rule": rule.name, "Media Type": media_type.value},
                pad_top=False,
            )
        )
        return None

    stem = strip_extension(file.filename)
    try:
        captures = parse_with_rule(stem, rule)
    except re.error as exc:
        LOGGER.warning(
            render_fields_block(
                "Invalid Naming Rule Pattern",
                {"Rule": rule.name, "Pattern": rule.regex, "Error": exc},
            )
        )
        return None

    if captures is None:
        return ParsedIdentity(
            kind=CandidateKind.UNMATCHED,
            media_type=media_type,
            file=file,
            rule=rule,
            order=order,
        )

    return ParsedIdentity(
        kind=CandidateKind.MATCHED,
        media_type=media_type,
        file=file,
        rule=rule,
        order=order,
        title=captures.title,
        nonengtitle=captures.nonengtitle,
        subtitle=captures.subtitle,
        year=captures.year,
    )


def fallback_candidate(file: FileDescriptor, media_type: MediaType) -> ParsedIdentity:
    return ParsedIdentity(
        kind=CandidateKind.FALLBACK,
        media_type=media_type,
        file=file,
        title=strip_extension(file.filename),
    )


def rank_key(candidate: ParsedIdentity) -> tuple[int, int]:
    if candidate.title and candidate.year:
        tier = 0
    elif candidate.title:
        tier = 1
    else:
        tier = 2
    return tier, candidate.order


def discern(
    file: FileDescriptor,
    rules: Sequence[NamingRule],
    media_type: MediaType,
) -> list[ParsedIdentity]:
    """Evaluate every rule against ``file`` and return the candidates best-first."""
    candidates: list[ParsedIdentity] = []
    for index, rule in enumerate(rules):
        candidate = match_rule(file, rule, media_type, order=index)
        if candidate is not None:
            candidates.append(candidate)

    if not any(candidate.match for candidate in candidates):
        candidates.append(fallback_candidate(file, media_type))

    ranked = sorted(candidates, key=rank_key)
    if LOGGER.isEnabledFor(logging.DEBUG):
        LOGGER.debug(
            render_fields_block(
                "Discerned Candidates",
                [("File", file.filename)]
                + [
                    (
                        f"#{position} {candidate.rule_name or candidate.kind.value}",
                        f"title={candidate.title!r} year={candidate.year!r} match={candidate.match}",
                    )
                    for position, candidate in enumerate(ranked, start=1)
                ],
            )
        )
    return ranked
