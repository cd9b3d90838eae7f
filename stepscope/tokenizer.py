# stepscope/tokenizer.py
# Tokenizes script source into flat tokens carrying their source position.
# Tokens:
#   {"type": "number"|"string"|"template"|"ident"|"keyword"|"punct"|"eof",
#    "value": ..., "line": int (1-based), "column": int (0-based)}
# Template tokens carry {"quasis": [str, ...], "exprs": [(src, line, column), ...]}.

from __future__ import annotations
import re
from typing import Any, Dict, List, Tuple

from .errors import JSSyntaxError
from .values import normalize_number

KEYWORDS = {
    "let", "const", "var", "function", "return", "if", "else", "while", "do", "for",
    "break", "continue", "true", "false", "null", "typeof", "void", "new", "throw",
    "try", "catch", "finally", "switch", "case", "default", "in", "instanceof",
}

# Longest first so that ">>>=" wins over ">>" and ">".
PUNCTUATORS = sorted([
    ">>>=", "...", "===", "!==", "**=", "<<=", ">>=", ">>>",
    "=>", "==", "!=", "<=", ">=", "&&", "||", "??", "++", "--",
    "+=", "-=", "*=", "/=", "%=", "&=", "|=", "^=", "**", "<<", ">>",
    "{", "}", "(", ")", "[", "]", ";", ",", ".", "<", ">", "+", "-", "*", "/", "%",
    "&", "|", "^", "!", "~", "?", ":", "=",
], key=len, reverse=True)

NUMBER_RE = re.compile(
    r"""(?:
        0[xX][0-9a-fA-F]+ |
        0[bB][01]+ |
        0[oO][0-7]+ |
        (?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?
    )""", re.VERBOSE)
IDENT_RE = re.compile(r"[A-Za-z_$][A-Za-z0-9_$]*")

_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "b": "\b", "f": "\f", "v": "\v", "0": "\0"}


def _emit(tokens: List[Dict[str, Any]], t: str, v: Any, line: int, col: int) -> None:
    tokens.append({"type": t, "value": v, "line": line, "column": col})


def _number_value(text: str) -> Any:
    low = text.lower()
    if low.startswith(("0x", "0b", "0o")):
        return normalize_number(int(text, 0))
    if re.fullmatch(r"\d+", text):
        return normalize_number(int(text))
    return normalize_number(float(text))


class _Scanner:
    def __init__(self, src: str, line: int = 1, column: int = 0):
        self.src = src
        self.pos = 0
        self.line = line
        self.col = column

    def error(self, message: str) -> JSSyntaxError:
        return JSSyntaxError(message, self.line, self.col)

    def advance(self, n: int = 1) -> str:
        chunk = self.src[self.pos:self.pos + n]
        for ch in chunk:
            if ch == "\n":
                self.line += 1
                self.col = 0
            else:
                self.col += 1
        self.pos += n
        return chunk

    def peek(self, offset: int = 0) -> str:
        i = self.pos + offset
        return self.src[i] if i < len(self.src) else ""

    def read_escape(self) -> str:
        self.advance()  # backslash
        ch = self.peek()
        if ch == "":
            raise self.error("Unterminated string literal")
        if ch in _ESCAPES:
            self.advance()
            return _ESCAPES[ch]
        if ch == "u":
            self.advance()
            if self.peek() == "{":
                end = self.src.find("}", self.pos)
                if end < 0:
                    raise self.error("Invalid Unicode escape sequence")
                code = self.advance(end - self.pos + 1)[1:-1]
            else:
                code = self.advance(4)
            try:
                return chr(int(code, 16))
            except ValueError:
                raise self.error("Invalid Unicode escape sequence")
        if ch == "x":
            self.advance()
            code = self.advance(2)
            try:
                return chr(int(code, 16))
            except ValueError:
                raise self.error("Invalid hexadecimal escape sequence")
        if ch == "\n":
            self.advance()
            return ""
        return self.advance()

    def read_string(self, quote: str) -> str:
        self.advance()
        out: List[str] = []
        while True:
            ch = self.peek()
            if ch == "" or ch == "\n":
                raise self.error("Unterminated string literal")
            if ch == quote:
                self.advance()
                return "".join(out)
            if ch == "\\":
                out.append(self.read_escape())
                continue
            out.append(self.advance())

    def read_template(self) -> Dict[str, Any]:
        self.advance()  # opening backtick
        quasis: List[str] = []
        exprs: List[Tuple[str, int, int]] = []
        buf: List[str] = []
        while True:
            ch = self.peek()
            if ch == "":
                raise self.error("Unterminated template literal")
            if ch == "`":
                self.advance()
                quasis.append("".join(buf))
                return {"quasis": quasis, "exprs": exprs}
            if ch == "\\":
                buf.append(self.read_escape())
                continue
            if ch == "$" and self.peek(1) == "{":
                quasis.append("".join(buf))
                buf = []
                self.advance(2)
                exprs.append(self._read_template_expr())
                continue
            buf.append(self.advance())

    def _read_template_expr(self) -> Tuple[str, int, int]:
        line, col, start = self.line, self.col, self.pos
        depth = 0
        while True:
            ch = self.peek()
            if ch == "":
                raise self.error("Unterminated template expression")
            if ch in ("'", '"'):
                self.read_string(ch)
                continue
            if ch == "`":
                self.read_template()
                continue
            if ch == "{":
                depth += 1
            elif ch == "}":
                if depth == 0:
                    text = self.src[start:self.pos]
                    self.advance()
                    return text, line, col
                depth -= 1
            self.advance()

    def skip_trivia(self) -> None:
        while self.pos < len(self.src):
            ch = self.peek()
            if ch in " \t\r\n\f\v\ufeff\u00a0":
                self.advance()
            elif ch == "/" and self.peek(1) == "/":
                while self.pos < len(self.src) and self.peek() != "\n":
                    self.advance()
            elif ch == "/" and self.peek(1) == "*":
                end = self.src.find("*/", self.pos + 2)
                if end < 0:
                    raise self.error("Unterminated comment")
                self.advance(end + 2 - self.pos)
            else:
                break


def tokenize(text: str, *, line: int = 1, column: int = 0) -> List[Dict[str, Any]]:
    sc = _Scanner(text or "", line, column)
    tokens: List[Dict[str, Any]] = []
    prev_end = None  # line on which the previous token ended

    while True:
        sc.skip_trivia()
        if sc.pos >= len(sc.src):
            break
        ln, col = sc.line, sc.col
        ch = sc.peek()
        count = len(tokens)
        _read_token(sc, tokens, ch, ln, col)
        # "nl" marks a line break before the token (automatic semicolon insertion)
        tokens[count]["nl"] = prev_end is not None and ln > prev_end
        prev_end = sc.line

    _emit(tokens, "eof", None, sc.line, sc.col)
    tokens[-1]["nl"] = True
    return tokens


def _read_token(sc: _Scanner, tokens: List[Dict[str, Any]], ch: str, ln: int, col: int) -> None:
    if ch.isdigit() or (ch == "." and sc.peek(1).isdigit()):
        m = NUMBER_RE.match(sc.src, sc.pos)
        raw = m.group(0)
        if IDENT_RE.match(sc.src, m.end()):
            raise JSSyntaxError("Invalid or unexpected token", ln, col)
        sc.advance(len(raw))
        _emit(tokens, "number", _number_value(raw), ln, col)
        return

    m = IDENT_RE.match(sc.src, sc.pos)
    if m:
        word = sc.advance(len(m.group(0)))
        _emit(tokens, "keyword" if word in KEYWORDS else "ident", word, ln, col)
        return

    if ch in ("'", '"'):
        _emit(tokens, "string", sc.read_string(ch), ln, col)
        return

    if ch == "`":
        _emit(tokens, "template", sc.read_template(), ln, col)
        return

    for p in PUNCTUATORS:
        if sc.src.startswith(p, sc.pos):
            sc.advance(len(p))
            _emit(tokens, "punct", p, ln, col)
            return
    raise JSSyntaxError(f"Unexpected character {ch!r}", ln, col)
