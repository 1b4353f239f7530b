"""
Completion triggering and caching.

On every edit the :class:`CompletionTriggerEngine` decides between three
outcomes:

``CONTINUE``
    A cached completion set exists, it is anchored at the start of the
    current match (or, for trigger requests, right after the trigger), and
    the character just typed is a word character.  No request is sent; the
    cached items are filtered locally by the word typed so far.

``FRESH``
    Anything else that has a completion context: a ``.``, ``(`` or ``( ``
    trigger, an explicit invocation, or any dot/paren/word match ending at
    the caret.  The cache is dropped and one ``textDocument/completion``
    request is issued.

``NONE``
    A fresh edit without completion context (a space in prose, an operator,
    ...).  The cache is dropped and nothing is shown.

Matches ending at the caret, most specific first::

    dot     Patient.na|      '.' + word characters
    paren   where( us|       '(' + optional space + word characters
    word    Patient|         word characters

The replacement range runs from the start of the most specific match to the
caret.  Right after a trigger (``.``, ``(`` or ``( ``) the range starts at the
caret instead, so accepting an item inserts without eating the trigger.

A response is only accepted if the anchor computed for the most recent edit
is still the anchor the request was made for; anything else is a stale
response to an edit the user has already typed past.
"""
from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Sequence

from lsprotocol import types as lsp
from lsprotocol.converters import get_converter

from fplsp.client.messages import Response
from fplsp.positions import offset_to_position

if TYPE_CHECKING:
    from fplsp.client.session import RpcSession
    from fplsp.client.sync import DocumentSynchronizer

logger = logging.getLogger(__name__)

_converter = get_converter()

# Cached items stay valid while the text typed since the anchor matches this.
VALID_FOR = re.compile(r'^[A-Za-z0-9_]*$')

TRIGGER_CHARACTERS = ('.', '(')


def is_word_char(ch: str | None) -> bool:
    return ch is not None and (ch == '_' or (ch.isascii() and ch.isalnum()))


def detect_trigger(text: str, caret: int) -> str | None:
    """Return ``'.'``, ``'('`` or ``'( '`` if that is what ends at *caret*."""
    if caret >= 1 and text[caret - 1] in TRIGGER_CHARACTERS:
        return text[caret - 1]
    if caret >= 2 and text[caret - 2:caret] == '( ':
        return '( '
    return None


# ---------------------------------------------------------------------------
# Anchor matching
# ---------------------------------------------------------------------------

class MatchKind(enum.Enum):
    DOT = 'dot'
    PAREN = 'paren'
    WORD = 'word'


@dataclass(frozen=True)
class AnchorMatch:
    kind: MatchKind
    start: int
    text: str


@dataclass(frozen=True)
class AnchorMatches:
    dot: AnchorMatch | None = None
    paren: AnchorMatch | None = None
    word: AnchorMatch | None = None

    def any(self) -> bool:
        return any((self.dot, self.paren, self.word))

    def most_specific(self) -> AnchorMatch | None:
        return self.dot or self.paren or self.word


def match_anchors(text: str, caret: int) -> AnchorMatches:
    """Compute the dot, paren and word matches that end at *caret*."""
    word_start = caret
    while word_start > 0 and is_word_char(text[word_start - 1]):
        word_start -= 1

    word = None
    if word_start < caret:
        word = AnchorMatch(MatchKind.WORD, word_start, text[word_start:caret])

    dot = None
    if word_start > 0 and text[word_start - 1] == '.':
        dot = AnchorMatch(MatchKind.DOT, word_start - 1, text[word_start - 1:caret])

    paren = None
    if word_start > 0 and text[word_start - 1] == '(':
        paren = AnchorMatch(MatchKind.PAREN, word_start - 1, text[word_start - 1:caret])
    elif word_start > 1 and text[word_start - 2:word_start] == '( ':
        paren = AnchorMatch(MatchKind.PAREN, word_start - 2, text[word_start - 2:caret])

    return AnchorMatches(dot=dot, paren=paren, word=word)


# ---------------------------------------------------------------------------
# Engine state
# ---------------------------------------------------------------------------

class EditAction(enum.Enum):
    NONE = 'none'
    CONTINUE = 'continue'
    FRESH = 'fresh'


@dataclass(frozen=True)
class TriggerContext:
    caller_position: lsp.Position
    trigger_kind: lsp.CompletionTriggerKind
    trigger_character: str | None = None

    def to_lsp(self) -> lsp.CompletionContext:
        return lsp.CompletionContext(
            trigger_kind=self.trigger_kind,
            trigger_character=self.trigger_character,
        )


@dataclass(frozen=True)
class CachedCompletionSet:
    anchor_offset: int
    valid_for: re.Pattern
    items: tuple[lsp.CompletionItem, ...]
    fetched_at: int


@dataclass(frozen=True)
class CompletionDecision:
    action: EditAction
    caret: int
    anchor: int | None = None
    context: TriggerContext | None = None


def filter_items(items: Sequence[lsp.CompletionItem], prefix: str) -> list[lsp.CompletionItem]:
    """Case-insensitive prefix filter on ``filter_text`` (or ``label``)."""
    if not prefix:
        return list(items)
    needle = prefix.lower()
    return [i for i in items if (i.filter_text or i.label).lower().startswith(needle)]


class CompletionTriggerEngine:
    """Classifies edits and owns the cached completion set."""

    def __init__(self, valid_for: re.Pattern = VALID_FOR) -> None:
        self.valid_for = valid_for
        self._cache: CachedCompletionSet | None = None
        # Anchor of the most recent edit; None when it had no completion context.
        self._anchor: int | None = None

    @property
    def cache(self) -> CachedCompletionSet | None:
        return self._cache

    @property
    def anchor(self) -> int | None:
        return self._anchor

    def invalidate(self) -> None:
        self._cache = None

    def _is_continuation(self, text: str, caret: int, matches: AnchorMatches) -> bool:
        cache = self._cache
        if cache is None or caret == 0 or not is_word_char(text[caret - 1]):
            return False
        word = matches.word
        if word is None:
            return False
        # Trigger requests anchor after the trigger, invoked ones at the match start.
        if cache.anchor_offset not in (matches.most_specific().start, word.start):
            return False
        return cache.valid_for.match(word.text) is not None

    def classify(self, text: str, caret: int, *, explicit: bool = False) -> CompletionDecision:
        caret = max(0, min(caret, len(text)))
        matches = match_anchors(text, caret)

        if not explicit and self._is_continuation(text, caret, matches):
            self._anchor = self._cache.anchor_offset
            return CompletionDecision(EditAction.CONTINUE, caret, anchor=self._anchor)

        self._cache = None
        trigger = detect_trigger(text, caret)
        if trigger is None and not explicit and not matches.any():
            self._anchor = None
            return CompletionDecision(EditAction.NONE, caret)

        if trigger is not None:
            anchor = caret
            context = TriggerContext(
                caller_position=offset_to_position(text, caret),
                trigger_kind=lsp.CompletionTriggerKind.TriggerCharacter,
                trigger_character=trigger[0],
            )
        else:
            best = matches.most_specific()
            anchor = best.start if best is not None else caret
            context = TriggerContext(
                caller_position=offset_to_position(text, caret),
                trigger_kind=lsp.CompletionTriggerKind.Invoked,
            )
        self._anchor = anchor
        return CompletionDecision(EditAction.FRESH, caret, anchor=anchor, context=context)

    def accept(self, decision: CompletionDecision, items: Sequence[lsp.CompletionItem]) -> bool:
        """Cache *items* fetched for *decision* unless the anchor has moved since."""
        if decision.action is not EditAction.FRESH:
            raise ValueError(f'only fresh decisions carry results, got {decision.action.value}')
        if decision.anchor != self._anchor:
            logger.debug('discarding stale completions for anchor %s (now %s)', decision.anchor, self._anchor)
            return False
        self._cache = CachedCompletionSet(
            anchor_offset=decision.anchor,
            valid_for=self.valid_for,
            items=tuple(items),
            fetched_at=decision.caret,
        )
        return True

    def cached_items(self, text: str, caret: int) -> list[lsp.CompletionItem]:
        """Cached items narrowed by the word typed so far."""
        if self._cache is None:
            return []
        word = match_anchors(text, caret).word
        return filter_items(self._cache.items, word.text if word is not None else '')


# ---------------------------------------------------------------------------
# Controller: engine + session + document sync
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class CompletionResult:
    start: int
    end: int
    items: list[lsp.CompletionItem]
    cached: bool = False


def items_from_response(response: Response) -> list[lsp.CompletionItem]:
    """Structure a completion result (item list or ``CompletionList``)."""
    if not response.ok:
        return []
    raw: Any = response.result
    if raw is None:
        return []
    if isinstance(raw, dict):
        raw = raw.get('items', [])
    try:
        return _converter.structure(raw, list[lsp.CompletionItem])
    except Exception as e:
        logger.warning('discarding malformed completion result: %s', e)
        return []


class CompletionController:

    def __init__(
        self,
        session: RpcSession,
        sync: DocumentSynchronizer,
        engine: CompletionTriggerEngine | None = None,
    ) -> None:
        self.session = session
        self.sync = sync
        self.engine = engine or CompletionTriggerEngine()

    async def complete(self, text: str, caret: int, *, explicit: bool = False) -> CompletionResult | None:
        decision = self.engine.classify(text, caret, explicit=explicit)
        if decision.action is EditAction.NONE:
            return None
        if decision.action is EditAction.CONTINUE:
            items = self.engine.cached_items(text, decision.caret)
            return CompletionResult(decision.anchor, decision.caret, items, cached=True)

        # The service must see the text the request refers to.
        self.sync.flush()
        params = lsp.CompletionParams(
            text_document=lsp.TextDocumentIdentifier(uri=self.sync.uri),
            position=decision.context.caller_position,
            context=decision.context.to_lsp(),
        )
        logger.debug(
            'completion request at %d:%d (%s)',
            params.position.line, params.position.character, decision.context.trigger_kind.name,
        )
        response = await self.session.send_request(
            lsp.TEXT_DOCUMENT_COMPLETION, _converter.unstructure(params),
        )
        if not response.ok:
            logger.info('no completions: %s', response.error.message)
            return None
        items = items_from_response(response)
        if not self.engine.accept(decision, items):
            return None
        return CompletionResult(decision.anchor, decision.caret, items)
