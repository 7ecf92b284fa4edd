"""Lexer and parser for object templates.

The syntax follows Go's text/template closely enough for existing
transformation files: ``{{ }}`` actions with optional ``-`` trim markers,
``if``/``else if``/``else``, ``range``, ``with``, ``end``, comments, field
chains, ``$``, literals, parenthesised pipelines, and ``|``.
"""

from __future__ import annotations

import dataclasses
import enum
import re
import typing as typ

import msgspec

from .errors import TemplateSyntaxError
from .nodes import (
    ActionNode,
    Command,
    FieldNode,
    FunctionNode,
    IfBranch,
    IfNode,
    LiteralNode,
    Node,
    Operand,
    Pipeline,
    RangeNode,
    SubPipelineNode,
    TextNode,
    VariableNode,
    WithNode,
)

ACTION_OPEN = "{{"
ACTION_CLOSE = "}}"
_TRIM_OPEN = "{{- "
_COMMENT_OPEN = "/*"
_COMMENT_CLOSE = "*/"

_IDENTIFIER = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_FIELD_NAME = re.compile(r"[A-Za-z0-9_]+")
_NUMBER = re.compile(r"[+-]?\d+(?:\.\d+)?(?:[eE][+-]?\d+)?")

_CONSTANTS: typ.Final[dict[str, object]] = {"true": True, "false": False, "nil": None}
_KEYWORDS: typ.Final = frozenset({"if", "else", "end", "range", "with"})


class TokenKind(enum.Enum):
    """Token kinds inside an action."""

    FIELD = "field"
    VARIABLE = "variable"
    IDENTIFIER = "identifier"
    STRING = "string"
    NUMBER = "number"
    PIPE = "pipe"
    LPAREN = "lparen"
    RPAREN = "rparen"


@dataclasses.dataclass(frozen=True, slots=True)
class Token:
    kind: TokenKind
    value: typ.Any
    position: int
    attached: bool = False


@dataclasses.dataclass(frozen=True, slots=True)
class _Text:
    value: str
    position: int


@dataclasses.dataclass(frozen=True, slots=True)
class _Action:
    tokens: tuple[Token, ...]
    position: int


@dataclasses.dataclass(frozen=True, slots=True)
class _Terminator:
    keyword: str
    tokens: tuple[Token, ...]
    position: int


class _Lexer:
    """Split a template source into text runs and tokenised actions."""

    def __init__(self, source: str) -> None:
        self._source = source
        self._items: list[_Text | _Action] = []

    def run(self) -> list[_Text | _Action]:
        source = self._source
        pos = 0
        while True:
            start = source.find(ACTION_OPEN, pos)
            if start == -1:
                self._text(source[pos:], pos)
                return self._items
            text = source[pos:start]
            trim_left = source.startswith(_TRIM_OPEN, start)
            self._text(text.rstrip() if trim_left else text, pos)

            inner = start + (len(_TRIM_OPEN) if trim_left else len(ACTION_OPEN))
            if source.startswith(_COMMENT_OPEN, inner):
                pos, trim_right = self._skip_comment(inner)
            else:
                pos, trim_right = self._action(inner, start)
            if trim_right:
                while pos < len(source) and source[pos].isspace():
                    pos += 1

    def _text(self, value: str, position: int) -> None:
        if value:
            self._items.append(_Text(value, position))

    def _close_at(self, pos: int) -> tuple[int, bool] | None:
        source = self._source
        if source.startswith(ACTION_CLOSE, pos):
            return pos + len(ACTION_CLOSE), False
        if (
            pos < len(source)
            and source[pos].isspace()
            and source.startswith("-" + ACTION_CLOSE, pos + 1)
        ):
            return pos + 1 + len("-" + ACTION_CLOSE), True
        return None

    def _skip_comment(self, inner: int) -> tuple[int, bool]:
        end = self._source.find(_COMMENT_CLOSE, inner + len(_COMMENT_OPEN))
        if end == -1:
            msg = "unclosed comment"
            raise TemplateSyntaxError(msg, position=inner)
        closed = self._close_at(end + len(_COMMENT_CLOSE))
        if closed is None:
            msg = "comment ends before closing delimiter"
            raise TemplateSyntaxError(msg, position=end)
        return closed

    def _action(self, pos: int, start: int) -> tuple[int, bool]:  # noqa: C901, PLR0912
        source = self._source
        tokens: list[Token] = []
        attached = False
        while True:
            if pos >= len(source):
                msg = "unclosed action"
                raise TemplateSyntaxError(msg, position=start)
            closed = self._close_at(pos)
            if closed is not None:
                self._items.append(_Action(tuple(tokens), start))
                return closed
            char = source[pos]
            if char.isspace():
                pos += 1
                attached = False
                continue
            if char == "|":
                tokens.append(Token(TokenKind.PIPE, "|", pos))
                pos += 1
            elif char == "(":
                tokens.append(Token(TokenKind.LPAREN, "(", pos))
                pos += 1
            elif char == ")":
                tokens.append(Token(TokenKind.RPAREN, ")", pos))
                pos += 1
            elif char == ".":
                chain, end = self._field_chain(pos)
                tokens.append(Token(TokenKind.FIELD, chain, pos, attached=attached))
                pos = end
            elif char == "$":
                if _IDENTIFIER.match(source, pos + 1):
                    msg = "template variables other than $ are not supported"
                    raise TemplateSyntaxError(msg, position=pos)
                chain, end = (
                    self._field_chain(pos + 1)
                    if source.startswith(".", pos + 1)
                    else ((), pos + 1)
                )
                tokens.append(Token(TokenKind.VARIABLE, chain, pos))
                pos = end
            elif char == '"':
                value, end = self._quoted(pos)
                tokens.append(Token(TokenKind.STRING, value, pos))
                pos = end
            elif char == "`":
                end = source.find("`", pos + 1)
                if end == -1:
                    msg = "unterminated raw string"
                    raise TemplateSyntaxError(msg, position=pos)
                tokens.append(Token(TokenKind.STRING, source[pos + 1 : end], pos))
                pos = end + 1
            elif number := _NUMBER.match(source, pos):
                tokens.append(Token(TokenKind.NUMBER, _number(number.group()), pos))
                pos = number.end()
            elif identifier := _IDENTIFIER.match(source, pos):
                tokens.append(Token(TokenKind.IDENTIFIER, identifier.group(), pos))
                pos = identifier.end()
            else:
                msg = f"unexpected character {char!r} in action"
                raise TemplateSyntaxError(msg, position=pos)
            attached = True

    def _field_chain(self, pos: int) -> tuple[tuple[str, ...], int]:
        chain: list[str] = []
        source = self._source
        while source.startswith(".", pos):
            name = _FIELD_NAME.match(source, pos + 1)
            if name is None:
                if chain:
                    msg = "empty field name"
                    raise TemplateSyntaxError(msg, position=pos)
                return (), pos + 1
            chain.append(name.group())
            pos = name.end()
        return tuple(chain), pos

    def _quoted(self, pos: int) -> tuple[str, int]:
        source = self._source
        index = pos + 1
        while index < len(source):
            char = source[index]
            if char == "\\":
                index += 2
                continue
            if char == '"':
                literal = source[pos : index + 1]
                try:
                    value = msgspec.json.decode(literal, type=str)
                except msgspec.DecodeError as exc:
                    msg = f"invalid string literal {literal}"
                    raise TemplateSyntaxError(msg, position=pos) from exc
                return value, index + 1
            index += 1
        msg = "unterminated quoted string"
        raise TemplateSyntaxError(msg, position=pos)


def _number(text: str) -> int | float:
    try:
        return int(text)
    except ValueError:
        return float(text)


class _TokenStream:
    def __init__(self, tokens: tuple[Token, ...], position: int) -> None:
        self._tokens = tokens
        self._index = 0
        self.position = position

    def peek(self) -> Token | None:
        if self._index < len(self._tokens):
            return self._tokens[self._index]
        return None

    def next(self) -> Token:
        token = self.peek()
        if token is None:
            msg = "unexpected end of action"
            raise TemplateSyntaxError(msg, position=self.position)
        self._index += 1
        return token

    @property
    def exhausted(self) -> bool:
        return self._index >= len(self._tokens)


def _parse_pipeline(stream: _TokenStream) -> Pipeline:
    commands = [_parse_command(stream)]
    while (token := stream.peek()) is not None and token.kind is TokenKind.PIPE:
        stream.next()
        commands.append(_parse_command(stream))
    return Pipeline(tuple(commands))


def _parse_command(stream: _TokenStream) -> Command:
    operands: list[Operand] = []
    while (token := stream.peek()) is not None and token.kind not in {
        TokenKind.PIPE,
        TokenKind.RPAREN,
    }:
        operands.append(_parse_operand(stream))
    if not operands:
        msg = "missing value for command"
        raise TemplateSyntaxError(msg, position=stream.position)
    return Command(tuple(operands))


def _parse_operand(stream: _TokenStream) -> Operand:
    token = stream.next()
    match token.kind:
        case TokenKind.FIELD:
            return FieldNode(token.value)
        case TokenKind.VARIABLE:
            return VariableNode(token.value)
        case TokenKind.STRING | TokenKind.NUMBER:
            return LiteralNode(token.value)
        case TokenKind.IDENTIFIER if token.value in _CONSTANTS:
            return LiteralNode(_CONSTANTS[token.value])
        case TokenKind.IDENTIFIER if token.value in _KEYWORDS:
            msg = f"unexpected keyword {token.value!r}"
            raise TemplateSyntaxError(msg, position=token.position)
        case TokenKind.IDENTIFIER:
            return FunctionNode(token.value)
        case TokenKind.LPAREN:
            pipeline = _parse_pipeline(stream)
            closing = stream.next()
            if closing.kind is not TokenKind.RPAREN:
                msg = "unclosed left paren"
                raise TemplateSyntaxError(msg, position=token.position)
            chain: tuple[str, ...] = ()
            follower = stream.peek()
            if (
                follower is not None
                and follower.kind is TokenKind.FIELD
                and follower.attached
            ):
                chain = stream.next().value
            return SubPipelineNode(pipeline, chain)
        case _:
            msg = f"unexpected {token.value!r}"
            raise TemplateSyntaxError(msg, position=token.position)


def _pipeline_of(tokens: tuple[Token, ...], position: int) -> Pipeline:
    stream = _TokenStream(tokens, position)
    pipeline = _parse_pipeline(stream)
    if not stream.exhausted:
        extra = stream.next()
        msg = f"unexpected {extra.value!r} in action"
        raise TemplateSyntaxError(msg, position=extra.position)
    return pipeline


class _Parser:
    """Build the node tree from lexed items."""

    def __init__(self, items: list[_Text | _Action]) -> None:
        self._items = items
        self._index = 0

    def parse(self) -> tuple[Node, ...]:
        nodes, terminator = self._parse_list()
        if terminator is not None:
            msg = f"unexpected {{{{ {terminator.keyword} }}}}"
            raise TemplateSyntaxError(msg, position=terminator.position)
        return nodes

    def _parse_list(self) -> tuple[tuple[Node, ...], _Terminator | None]:
        nodes: list[Node] = []
        while self._index < len(self._items):
            item = self._items[self._index]
            self._index += 1
            if isinstance(item, _Text):
                # Whitespace between actions is layout, not a value.
                if item.value.strip():
                    nodes.append(TextNode(item.value))
                continue
            if not item.tokens:
                msg = "missing value for command"
                raise TemplateSyntaxError(msg, position=item.position)
            head, rest = item.tokens[0], item.tokens[1:]
            keyword = head.value if head.kind is TokenKind.IDENTIFIER else None
            match keyword:
                case "end" | "else":
                    return tuple(nodes), _Terminator(keyword, rest, item.position)
                case "if":
                    nodes.append(self._parse_if(rest, item.position))
                case "range":
                    pipeline, body, else_body = self._parse_block(
                        "range", rest, item.position
                    )
                    nodes.append(RangeNode(pipeline, body, else_body))
                case "with":
                    pipeline, body, else_body = self._parse_block(
                        "with", rest, item.position
                    )
                    nodes.append(WithNode(pipeline, body, else_body))
                case _:
                    nodes.append(ActionNode(_pipeline_of(item.tokens, item.position)))
        return tuple(nodes), None

    def _parse_if(self, tokens: tuple[Token, ...], position: int) -> IfNode:
        branches: list[IfBranch] = []
        condition = _pipeline_of(tokens, position)
        while True:
            body, terminator = self._parse_list()
            branches.append(IfBranch(condition, body))
            terminator = _require_terminator("if", terminator, position)
            if terminator.keyword == "end":
                _require_bare(terminator)
                return IfNode(tuple(branches))
            tokens = terminator.tokens
            if (
                tokens
                and tokens[0].kind is TokenKind.IDENTIFIER
                and tokens[0].value == "if"
            ):
                condition = _pipeline_of(tokens[1:], terminator.position)
                continue
            _require_bare(terminator)
            else_body = self._parse_else("if", position)
            return IfNode(tuple(branches), else_body)

    def _parse_block(
        self, kind: str, tokens: tuple[Token, ...], position: int
    ) -> tuple[Pipeline, tuple[Node, ...], tuple[Node, ...]]:
        pipeline = _pipeline_of(tokens, position)
        body, terminator = self._parse_list()
        terminator = _require_terminator(kind, terminator, position)
        _require_bare(terminator)
        if terminator.keyword == "end":
            return pipeline, body, ()
        return pipeline, body, self._parse_else(kind, position)

    def _parse_else(self, kind: str, position: int) -> tuple[Node, ...]:
        else_body, terminator = self._parse_list()
        terminator = _require_terminator(kind, terminator, position)
        if terminator.keyword != "end":
            msg = f"expected {{{{ end }}}} after {{{{ else }}}} in {kind}"
            raise TemplateSyntaxError(msg, position=terminator.position)
        _require_bare(terminator)
        return else_body


def _require_terminator(
    kind: str, terminator: _Terminator | None, position: int
) -> _Terminator:
    if terminator is None:
        msg = f"unclosed {kind}: missing {{{{ end }}}}"
        raise TemplateSyntaxError(msg, position=position)
    return terminator


def _require_bare(terminator: _Terminator) -> None:
    if terminator.tokens:
        msg = f"unexpected arguments after {terminator.keyword}"
        raise TemplateSyntaxError(msg, position=terminator.position)


@dataclasses.dataclass(frozen=True, slots=True)
class Template:
    """A parsed object template."""

    source: str
    nodes: tuple[Node, ...]


def parse_template(source: str) -> Template:
    """Parse ``source`` into a :class:`Template`.

    Raises
    ------
    TemplateSyntaxError
        If the source is not a well-formed template.

    """
    items = _Lexer(source).run()
    return Template(source=source, nodes=_Parser(items).parse())
