# Copyright 2018-present Network Optix, Inc. Licensed under MPL 2.0: www.mozilla.org/MPL/2.0/
import logging
import os
import re
import shlex
import shutil
from abc import ABCMeta
from abc import abstractmethod
from pathlib import Path
from typing import Callable
from typing import List
from typing import NamedTuple
from typing import Sequence
from typing import Tuple


class _Text:
    """File contents with spans that came from substitutions.

    A span once substituted is never matched again:
    a value that contains another pattern stays as is.

    >>> text = _Text('host=HOST port=PORT')
    >>> text.rewrite(text.find('HOST'), 'PORT.example.com')
    >>> text.rewrite(text.find('PORT'), '22')
    >>> str(text)
    'host=PORT.example.com port=22'
    """

    def __init__(self, text: str):
        self._text = text
        self._frozen: List[Tuple[int, int]] = []

    def __str__(self):
        return self._text

    def find(self, token: str) -> Sequence[Tuple[int, int]]:
        spans = []
        start = self._text.find(token)
        while start != -1:
            end = start + len(token)
            if self._is_free(start, end):
                spans.append((start, end))
                start = self._text.find(token, end)
            else:
                start = self._text.find(token, start + 1)
        return spans

    def find_lines(self, prefix: str) -> Sequence[Tuple[int, int]]:
        line_re = re.compile('^' + re.escape(prefix) + '[^\r\n]*', re.MULTILINE)
        spans = []
        for match in line_re.finditer(self._text):
            [start, end] = match.span()
            if not self._is_free(start, start + len(prefix)):
                continue
            if self._crosses_frozen(start, end):
                continue
            spans.append((start, end))
        return spans

    def rewrite(self, spans: Sequence[Tuple[int, int]], replacement: str):
        pieces = []
        cursor = 0
        for start, end in spans:
            pieces.append(self._text[cursor:start])
            pieces.append(replacement)
            cursor = end
        pieces.append(self._text[cursor:])
        frozen = []
        for start, end in self._frozen:
            if any(a <= start and end <= b for a, b in spans):
                continue
            shift = sum(len(replacement) - (b - a) for a, b in spans if b <= start)
            frozen.append((start + shift, end + shift))
        shift = 0
        for start, end in spans:
            frozen.append((start + shift, start + shift + len(replacement)))
            shift += len(replacement) - (end - start)
        self._text = ''.join(pieces)
        self._frozen = sorted(frozen)

    def _is_free(self, start, end):
        return all(end <= s or start >= e for s, e in self._frozen)

    def _crosses_frozen(self, start, end):
        for s, e in self._frozen:
            if s < end and e > start and not (start <= s and e <= end):
                return True
        return False


class Substitution(metaclass=ABCMeta):

    def __init__(self, pattern: str, value: Callable[[], str]):
        if not pattern:
            raise ValueError("Pattern must not be empty")
        self.pattern = pattern
        self._value = value

    def __repr__(self):
        return f'{self.__class__.__name__}({self.pattern!r})'

    def apply(self, text: _Text) -> int:
        try:
            value = self._value()
        except LookupError as e:
            raise SubstitutionError(f"Cannot resolve {self!r}: {e}") from e
        return self._apply(text, value)

    @abstractmethod
    def _apply(self, text: _Text, value: str) -> int:
        pass


class Literal(Substitution):

    def _apply(self, text, value):
        spans = text.find(self.pattern)
        text.rewrite(spans, value)
        return len(spans)


class Placeholder(Literal):
    """Replace ${name} tokens as they appear in YAML manifests."""

    def __init__(self, name: str, value: Callable[[], str]):
        super().__init__('${' + name + '}', value)


class Assignment(Substitution):
    """Replace a whole "name=..." line of a shell script.

    The value is quoted for the shell if needed.
    Commented lines are left intact.
    """

    def __init__(self, name: str, value: Callable[[], str]):
        super().__init__(name + '=', value)

    def _apply(self, text, value):
        spans = text.find_lines(self.pattern)
        text.rewrite(spans, self.pattern + shlex.quote(value))
        return len(spans)


class TemplateSpec(NamedTuple):
    source: Path
    destination: Path
    substitutions: Sequence[Substitution]


def materialize(spec: TemplateSpec) -> Path:
    """Copy template to destination and apply substitutions one by one.

    After a failure, the destination may be partially substituted.
    It must not be delivered anywhere then.
    """
    destination = Path(spec.destination)
    _logger.info("Materialize %s from %s", destination, spec.source)
    destination.parent.mkdir(parents=True, exist_ok=True)
    shutil.copyfile(spec.source, destination)
    with destination.open(encoding='utf-8', newline='') as f:
        text = _Text(f.read())
    for substitution in spec.substitutions:
        count = substitution.apply(text)
        if count == 0:
            _logger.warning("%s: %r: Pattern not found", destination.name, substitution)
        else:
            _logger.debug("%s: %r: Replaced %d times", destination.name, substitution, count)
        _write_atomically(destination, str(text))
    return destination


def _write_atomically(path: Path, data: str):
    temporary = path.with_name(path.name + '.tmp')
    try:
        with temporary.open('w', encoding='utf-8', newline='') as f:
            f.write(data)
        os.replace(temporary, path)
    except BaseException:
        temporary.unlink(missing_ok=True)
        raise


class SubstitutionError(Exception):
    pass


_logger = logging.getLogger(__name__)
