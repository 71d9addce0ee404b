"""
Streaming tokenizer for SQL dump files.

The scanner reads the dump in fixed-size chunks and keeps only the unconsumed
tail of the current chunk plus the token being decoded, so memory use does not
depend on the size of the dump. Quoted literals are decoded as a whole, which
means statement terminators inside them never end a statement.
"""

import re
from enum import Enum
from typing import Any, NamedTuple, Optional, TextIO

from .exceptions import MalformedStatement, TruncatedInput


class TokenKind(Enum):
    """Lexical categories produced by the scanner."""
    WORD = "word"
    IDENTIFIER = "identifier"
    QUOTED = "quoted"
    STRING = "string"
    NUMBER = "number"
    BLOB = "blob"
    PUNCT = "punct"
    TERMINATOR = "terminator"
    EOF = "eof"


class Token(NamedTuple):
    kind: TokenKind
    value: Any
    line: int

    def is_word(self, *words: str) -> bool:
        """Case-insensitive keyword check."""
        return self.kind is TokenKind.WORD and self.value.upper() in words

    def is_punct(self, char: str) -> bool:
        return self.kind is TokenKind.PUNCT and self.value == char


class DumpScanner:
    """Pull-based tokenizer over a text stream."""

    DEFAULT_CHUNK_SIZE = 65536
    DEFAULT_DELIMITER = ';'
    DIGITS = '0123456789'

    WHITESPACE_RE = re.compile(r'\s+')
    WORD_RE = re.compile(r'(?:[^\W\d]|\$)[\w$]*')
    NUMBER_RE = re.compile(r'[-+]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][-+]?\d+)?')
    HEX_RE = re.compile(r'0[xX]([0-9a-fA-F]*)')
    BIT_RE = re.compile(r'0[bB]([01]*)')
    INTEGER_RE = re.compile(r'[-+]?\d+')

    # Characters that end a run of ordinary characters inside a quoted token
    STOP_RE = {
        "'": re.compile(r"['\\]"),
        '"': re.compile(r'["\\]'),
        '`': re.compile(r'`'),
    }

    ESCAPES = {
        '0': '\0',
        'b': '\b',
        'n': '\n',
        'r': '\r',
        't': '\t',
        'Z': '\x1a',
        '%': '\\%',
        '_': '\\_',
    }

    def __init__(self, stream: TextIO, chunk_size: int = DEFAULT_CHUNK_SIZE):
        self.stream = stream
        self.chunk_size = chunk_size
        self.delimiter = self.DEFAULT_DELIMITER
        self.line = 1
        self._buffer = ''
        self._pos = 0
        self._eof = False
        self._peeked: Optional[Token] = None

    # -- buffer management -------------------------------------------------

    def _fill(self) -> bool:
        """Append the next chunk, dropping consumed input. False at end of stream."""
        if self._eof:
            return False
        chunk = self.stream.read(self.chunk_size)
        if not chunk:
            self._eof = True
            return False
        self._buffer = self._buffer[self._pos:] + chunk
        self._pos = 0
        return True

    def _ensure(self, count: int) -> bool:
        """Make at least ``count`` unread characters available."""
        while len(self._buffer) - self._pos < count:
            if not self._fill():
                return False
        return True

    def _advance(self, count: int) -> None:
        self.line += self._buffer.count('\n', self._pos, self._pos + count)
        self._pos += count

    def _match(self, pattern: re.Pattern, lookahead: int = 0) -> Optional[re.Match]:
        """Match at the current position.

        More input is read while fewer than ``lookahead + 1`` characters follow
        the match, since the match could still grow.
        """
        while True:
            match = pattern.match(self._buffer, self._pos)
            if match is None or len(self._buffer) - match.end() > lookahead or not self._fill():
                return match

    # -- public API ---------------------------------------------------------

    def next_token(self) -> Token:
        """Consume and return the next token."""
        if self._peeked is not None:
            token, self._peeked = self._peeked, None
            return token
        return self._scan()

    def peek_token(self) -> Token:
        """Return the next token without consuming it."""
        if self._peeked is None:
            self._peeked = self._scan()
        return self._peeked

    def skip_statement(self, line: Optional[int] = None) -> None:
        """Discard tokens up to and including the next statement terminator."""
        while True:
            token = self.next_token()
            if token.kind is TokenKind.TERMINATOR:
                return
            if token.kind is TokenKind.EOF:
                raise TruncatedInput("Statement not terminated before end of input", line or token.line)

    def read_line(self) -> str:
        """Return the raw remainder of the current line, consuming its newline."""
        if self._peeked is not None:
            raise RuntimeError("read_line() called with a peeked token pending")
        parts = []
        while True:
            end = self._buffer.find('\n', self._pos)
            if end >= 0:
                parts.append(self._buffer[self._pos:end])
                self._advance(end + 1 - self._pos)
                break
            parts.append(self._buffer[self._pos:])
            self._pos = len(self._buffer)
            if not self._fill():
                break
        return ''.join(parts).strip()

    # -- tokenizer ----------------------------------------------------------

    def _scan(self) -> Token:
        while True:
            if not self._ensure(1):
                return Token(TokenKind.EOF, None, self.line)
            char = self._buffer[self._pos]
            if char.isspace():
                self._advance(self._match(self.WHITESPACE_RE).end() - self._pos)
            elif not self._skip_comment(char):
                break

        line = self.line
        if self._ensure(len(self.delimiter)) and self._buffer.startswith(self.delimiter, self._pos):
            self._advance(len(self.delimiter))
            return Token(TokenKind.TERMINATOR, self.delimiter, line)

        if char == "'":
            return Token(TokenKind.STRING, self._read_quoted("'"), line)
        if char == '"':
            return Token(TokenKind.QUOTED, self._read_quoted('"'), line)
        if char == '`':
            return Token(TokenKind.IDENTIFIER, self._read_quoted('`'), line)

        if char in 'xXbBnN' and self._ensure(2) and self._buffer[self._pos + 1] == "'":
            self._advance(1)
            text = self._read_quoted("'")
            if char in 'nN':
                return Token(TokenKind.STRING, text, line)
            if char in 'xX':
                return Token(TokenKind.BLOB, self._decode_hex(text, line), line)
            return Token(TokenKind.BLOB, self._decode_bits(text, line), line)

        if char == '0' and self._ensure(2):
            for pattern, decode in ((self.HEX_RE, self._decode_hex), (self.BIT_RE, self._decode_bits)):
                match = self._match(pattern)
                if match and match.group(1):
                    self._advance(match.end() - self._pos)
                    return Token(TokenKind.BLOB, decode(match.group(1), line), line)

        if char in self.DIGITS or (char in '-+.' and self._starts_number()):
            match = self._match(self.NUMBER_RE, lookahead=2)
            text = match.group(0)
            self._advance(match.end() - self._pos)
            value = int(text) if self.INTEGER_RE.fullmatch(text) else float(text)
            return Token(TokenKind.NUMBER, value, line)

        match = self._match(self.WORD_RE)
        if match:
            self._advance(match.end() - self._pos)
            return Token(TokenKind.WORD, match.group(0), line)

        self._advance(1)
        return Token(TokenKind.PUNCT, char, line)

    def _starts_number(self) -> bool:
        self._ensure(3)
        rest = self._buffer[self._pos:self._pos + 3]
        if rest[0] in '-+':
            rest = rest[1:]
        if rest[:1] == '.':
            rest = rest[1:]
        return rest != '' and rest[0] in self.DIGITS

    def _skip_comment(self, char: str) -> bool:
        """Skip a comment starting at the current position, if there is one."""
        if char == '#':
            self._skip_to_newline()
            return True
        if char == '-':
            self._ensure(3)
            if self._buffer.startswith('--', self._pos):
                after = self._buffer[self._pos + 2:self._pos + 3]
                if not after or after.isspace():
                    self._skip_to_newline()
                    return True
            return False
        if char == '/':
            self._ensure(2)
            if self._buffer.startswith('/*', self._pos):
                self._skip_block_comment()
                return True
        return False

    def _skip_to_newline(self) -> None:
        while True:
            end = self._buffer.find('\n', self._pos)
            if end >= 0:
                self._advance(end + 1 - self._pos)
                return
            self._pos = len(self._buffer)
            if not self._fill():
                return

    def _skip_block_comment(self) -> None:
        line = self.line
        while True:
            end = self._buffer.find('*/', self._pos + 2)
            if end >= 0:
                self._advance(end + 2 - self._pos)
                return
            if not self._fill():
                raise TruncatedInput("Unterminated comment", line)

    def _read_quoted(self, quote: str) -> str:
        """Decode a quoted token starting at the current position."""
        line = self.line
        stop = self.STOP_RE[quote]
        parts = []
        self._advance(1)
        while True:
            match = stop.search(self._buffer, self._pos)
            if match is None:
                parts.append(self._buffer[self._pos:])
                self._advance(len(self._buffer) - self._pos)
                if not self._fill():
                    raise TruncatedInput(f"Unterminated {quote} literal", line)
                continue

            parts.append(self._buffer[self._pos:match.start()])
            self._advance(match.start() - self._pos)
            if match.group(0) == '\\':
                if not self._ensure(2):
                    raise TruncatedInput(f"Unterminated {quote} literal", line)
                escaped = self._buffer[self._pos + 1]
                parts.append(self.ESCAPES.get(escaped, escaped))
                self._advance(2)
            elif self._ensure(2) and self._buffer[self._pos + 1] == quote:
                parts.append(quote)
                self._advance(2)
            else:
                self._advance(1)
                return ''.join(parts)

    @staticmethod
    def _decode_hex(digits: str, line: int) -> bytes:
        if len(digits) % 2:
            digits = '0' + digits
        try:
            return bytes.fromhex(digits)
        except ValueError:
            raise MalformedStatement(f"Invalid hexadecimal literal '{digits[:20]}'", line)

    @staticmethod
    def _decode_bits(digits: str, line: int) -> bytes:
        if digits.strip('01'):
            raise MalformedStatement(f"Invalid bit literal '{digits[:20]}'", line)
        if not digits:
            return b''
        return int(digits, 2).to_bytes((len(digits) + 7) // 8, 'big')
