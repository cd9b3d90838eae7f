# stepscope/parser.py
# Parses tokenizer tokens into an ESTree-shaped syntax tree of plain dicts:
#   {"type": "BinaryExpression", "operator": "+", "left": {...}, "right": {...},
#    "loc": {"line": 1, "column": 8}}
# Statements are parsed by recursive descent; expressions with a Pratt parser.
# Binary precedence (highest -> lowest):
#   **            (right-assoc)
#   * / %
#   + -
#   << >> >>>
#   < <= > >= instanceof in
#   == != === !==
#   &   ^   |
#   &&
#   || ??

from __future__ import annotations
from typing import Any, Dict, List, Optional

from .errors import JSSyntaxError
from .tokenizer import tokenize

Node = Dict[str, Any]

BP = {
    "??": 10, "||": 10,
    "&&": 20,
    "|": 30,
    "^": 40,
    "&": 50,
    "==": 60, "!=": 60, "===": 60, "!==": 60,
    "<": 70, "<=": 70, ">": 70, ">=": 70, "instanceof": 70, "in": 70,
    "<<": 80, ">>": 80, ">>>": 80,
    "+": 90, "-": 90,
    "*": 100, "/": 100, "%": 100,
    "**": 110,
}
LOGICAL_OPS = {"&&", "||", "??"}
RIGHT_ASSOC = {"**"}
ASSIGN_OPS = {"=", "+=", "-=", "*=", "/=", "%=", "**=", "<<=", ">>=", ">>>=", "&=", "|=", "^="}
PREFIX_OPS = {"!", "~", "+", "-", "typeof", "void"}


def _loc(tok: Dict[str, Any]) -> Dict[str, int]:
    return {"line": tok["line"], "column": tok["column"]}


class Parser:
    def __init__(self, tokens: List[Dict[str, Any]]):
        self.tokens = tokens
        self.i = 0
        # Where break, continue and return are legal.
        self.in_function = False
        self.loop_depth = 0
        self.switch_depth = 0

    # ---------- token helpers
    def peek(self, offset: int = 0) -> Dict[str, Any]:
        j = min(self.i + offset, len(self.tokens) - 1)
        return self.tokens[j]

    def at(self, typ: str, val: Any = None, offset: int = 0) -> bool:
        tok = self.peek(offset)
        if tok["type"] != typ:
            return False
        return val is None or tok["value"] == val

    def at_punct(self, *vals: str) -> bool:
        tok = self.peek()
        return tok["type"] == "punct" and tok["value"] in vals

    def at_keyword(self, *vals: str) -> bool:
        tok = self.peek()
        return tok["type"] == "keyword" and tok["value"] in vals

    def pop(self) -> Dict[str, Any]:
        tok = self.peek()
        if tok["type"] != "eof":
            self.i += 1
        return tok

    def expect(self, typ: str, val: Any = None) -> Dict[str, Any]:
        tok = self.peek()
        if tok["type"] != typ or (val is not None and tok["value"] != val):
            raise self.unexpected(tok, expected=val or typ)
        return self.pop()

    def unexpected(self, tok: Dict[str, Any], expected: Optional[str] = None) -> JSSyntaxError:
        if tok["type"] == "eof":
            msg = "Unexpected end of input"
        else:
            shown = tok["value"] if tok["type"] != "template" else "template"
            msg = f"Unexpected token {shown!r}"
        if expected:
            msg += f" (expected {expected!r})"
        return JSSyntaxError(msg, tok["line"], tok["column"])

    def consume_semicolon(self) -> None:
        if self.at_punct(";"):
            self.pop()
            return
        tok = self.peek()
        if tok["type"] == "eof" or tok.get("nl") or self.at_punct("}"):
            return
        raise self.unexpected(tok)

    def ident_name(self) -> str:
        tok = self.peek()
        if tok["type"] != "ident":
            raise self.unexpected(tok, expected="identifier")
        return self.pop()["value"]

    # ---------- program & statements
    def parse_program(self) -> Node:
        first = self.peek()
        body = []
        while not self.at("eof"):
            body.append(self.parse_statement())
        return {"type": "Program", "body": body, "loc": {"line": 1, "column": 0} if body else _loc(first)}

    def parse_statement(self) -> Node:
        tok = self.peek()
        if tok["type"] == "punct":
            if tok["value"] == "{":
                return self.parse_block()
            if tok["value"] == ";":
                self.pop()
                return {"type": "EmptyStatement", "loc": _loc(tok)}
        if tok["type"] == "keyword":
            kw = tok["value"]
            if kw in ("let", "const", "var"):
                decl = self.parse_var_decl()
                self.consume_semicolon()
                return decl
            if kw == "function":
                return self.parse_function(declaration=True)
            if kw == "if":
                return self.parse_if()
            if kw == "while":
                return self.parse_while()
            if kw == "do":
                return self.parse_do_while()
            if kw == "for":
                return self.parse_for()
            if kw == "return":
                return self.parse_return()
            if kw in ("break", "continue"):
                if kw == "continue" and not self.loop_depth:
                    raise JSSyntaxError("Illegal continue statement: no surrounding iteration statement",
                                        tok["line"], tok["column"])
                if kw == "break" and not (self.loop_depth or self.switch_depth):
                    raise JSSyntaxError("Illegal break statement", tok["line"], tok["column"])
                self.pop()
                self.consume_semicolon()
                typ = "BreakStatement" if kw == "break" else "ContinueStatement"
                return {"type": typ, "label": None, "loc": _loc(tok)}
            if kw == "throw":
                return self.parse_throw()
            if kw == "try":
                return self.parse_try()
            if kw == "switch":
                return self.parse_switch()
        expr = self.parse_expression()
        self.consume_semicolon()
        return {"type": "ExpressionStatement", "expression": expr, "loc": _loc(tok)}

    def parse_block(self) -> Node:
        tok = self.expect("punct", "{")
        body = []
        while not self.at_punct("}"):
            if self.at("eof"):
                raise self.unexpected(self.peek(), expected="}")
            body.append(self.parse_statement())
        self.pop()
        return {"type": "BlockStatement", "body": body, "loc": _loc(tok)}

    def parse_function_body(self) -> Node:
        saved = (self.in_function, self.loop_depth, self.switch_depth)
        self.in_function, self.loop_depth, self.switch_depth = True, 0, 0
        try:
            return self.parse_block()
        finally:
            self.in_function, self.loop_depth, self.switch_depth = saved

    def parse_loop_body(self) -> Node:
        self.loop_depth += 1
        try:
            return self.parse_statement()
        finally:
            self.loop_depth -= 1

    def parse_var_decl(self) -> Node:
        tok = self.pop()
        kind = tok["value"]
        declarations = []
        while True:
            id_tok = self.peek()
            name = self.ident_name()
            init = None
            if self.at_punct("="):
                self.pop()
                init = self.parse_assignment()
            elif kind == "const" and not self.at_keyword("in"):
                raise JSSyntaxError("Missing initializer in const declaration", id_tok["line"], id_tok["column"])
            declarations.append({
                "type": "VariableDeclarator",
                "id": {"type": "Identifier", "name": name, "loc": _loc(id_tok)},
                "init": init,
                "loc": _loc(id_tok),
            })
            if not self.at_punct(","):
                break
            self.pop()
        return {"type": "VariableDeclaration", "kind": kind, "declarations": declarations, "loc": _loc(tok)}

    def parse_params(self) -> List[Node]:
        self.expect("punct", "(")
        params: List[Node] = []
        while not self.at_punct(")"):
            p_tok = self.peek()
            if self.at_punct("..."):
                raise JSSyntaxError("Rest parameters are not supported", p_tok["line"], p_tok["column"])
            ident = {"type": "Identifier", "name": self.ident_name(), "loc": _loc(p_tok)}
            if self.at_punct("="):
                self.pop()
                ident = {"type": "AssignmentPattern", "left": ident, "right": self.parse_assignment(),
                         "loc": _loc(p_tok)}
            params.append(ident)
            if not self.at_punct(")"):
                self.expect("punct", ",")
        self.pop()
        return params

    def parse_function(self, declaration: bool) -> Node:
        tok = self.expect("keyword", "function")
        fid = None
        if self.at("ident"):
            id_tok = self.peek()
            fid = {"type": "Identifier", "name": self.ident_name(), "loc": _loc(id_tok)}
        elif declaration:
            raise self.unexpected(self.peek(), expected="function name")
        params = self.parse_params()
        body = self.parse_function_body()
        typ = "FunctionDeclaration" if declaration else "FunctionExpression"
        return {"type": typ, "id": fid, "params": params, "body": body, "loc": _loc(tok)}

    def parse_paren_expr(self) -> Node:
        self.expect("punct", "(")
        expr = self.parse_expression()
        self.expect("punct", ")")
        return expr

    def parse_if(self) -> Node:
        tok = self.pop()
        test = self.parse_paren_expr()
        consequent = self.parse_statement()
        alternate = None
        if self.at_keyword("else"):
            self.pop()
            alternate = self.parse_statement()
        return {"type": "IfStatement", "test": test, "consequent": consequent, "alternate": alternate,
                "loc": _loc(tok)}

    def parse_while(self) -> Node:
        tok = self.pop()
        test = self.parse_paren_expr()
        body = self.parse_loop_body()
        return {"type": "WhileStatement", "test": test, "body": body, "loc": _loc(tok)}

    def parse_do_while(self) -> Node:
        tok = self.pop()
        body = self.parse_loop_body()
        self.expect("keyword", "while")
        test = self.parse_paren_expr()
        if self.at_punct(";"):
            self.pop()
        return {"type": "DoWhileStatement", "body": body, "test": test, "loc": _loc(tok)}

    def parse_for(self) -> Node:
        tok = self.pop()
        self.expect("punct", "(")
        init = None
        if self.at_keyword("let", "const", "var"):
            init = self.parse_var_decl()
        elif not self.at_punct(";"):
            init = self.parse_expression()
        if self.at_keyword("in") or self.at("ident", "of"):
            bad = self.peek()
            raise JSSyntaxError("for-in/for-of loops are not supported", bad["line"], bad["column"])
        self.expect("punct", ";")
        test = None if self.at_punct(";") else self.parse_expression()
        self.expect("punct", ";")
        update = None if self.at_punct(")") else self.parse_expression()
        self.expect("punct", ")")
        body = self.parse_loop_body()
        return {"type": "ForStatement", "init": init, "test": test, "update": update, "body": body,
                "loc": _loc(tok)}

    def parse_return(self) -> Node:
        tok = self.pop()
        if not self.in_function:
            raise JSSyntaxError("Illegal return statement", tok["line"], tok["column"])
        argument = None
        nxt = self.peek()
        if not (self.at_punct(";", "}") or nxt["type"] == "eof" or nxt.get("nl")):
            argument = self.parse_expression()
        self.consume_semicolon()
        return {"type": "ReturnStatement", "argument": argument, "loc": _loc(tok)}

    def parse_throw(self) -> Node:
        tok = self.pop()
        if self.peek().get("nl"):
            raise JSSyntaxError("Illegal newline after throw", tok["line"], tok["column"])
        argument = self.parse_expression()
        self.consume_semicolon()
        return {"type": "ThrowStatement", "argument": argument, "loc": _loc(tok)}

    def parse_try(self) -> Node:
        tok = self.pop()
        block = self.parse_block()
        handler = None
        finalizer = None
        if self.at_keyword("catch"):
            c_tok = self.pop()
            param = None
            if self.at_punct("("):
                self.pop()
                p_tok = self.peek()
                param = {"type": "Identifier", "name": self.ident_name(), "loc": _loc(p_tok)}
                self.expect("punct", ")")
            handler = {"type": "CatchClause", "param": param, "body": self.parse_block(), "loc": _loc(c_tok)}
        if self.at_keyword("finally"):
            self.pop()
            finalizer = self.parse_block()
        if handler is None and finalizer is None:
            raise JSSyntaxError("Missing catch or finally after try", tok["line"], tok["column"])
        return {"type": "TryStatement", "block": block, "handler": handler, "finalizer": finalizer,
                "loc": _loc(tok)}

    def parse_switch(self) -> Node:
        tok = self.pop()
        discriminant = self.parse_paren_expr()
        self.expect("punct", "{")
        cases = []
        seen_default = False
        while not self.at_punct("}"):
            c_tok = self.peek()
            if self.at_keyword("case"):
                self.pop()
                test = self.parse_expression()
            elif self.at_keyword("default"):
                if seen_default:
                    raise JSSyntaxError("More than one default clause in switch statement",
                                        c_tok["line"], c_tok["column"])
                seen_default = True
                self.pop()
                test = None
            else:
                raise self.unexpected(c_tok, expected="case")
            self.expect("punct", ":")
            consequent = []
            while not (self.at_keyword("case", "default") or self.at_punct("}")):
                if self.at("eof"):
                    raise self.unexpected(self.peek(), expected="}")
                consequent.append(self.parse_case_statement())
            cases.append({"type": "SwitchCase", "test": test, "consequent": consequent, "loc": _loc(c_tok)})
        self.pop()
        return {"type": "SwitchStatement", "discriminant": discriminant, "cases": cases, "loc": _loc(tok)}

    def parse_case_statement(self) -> Node:
        self.switch_depth += 1
        try:
            return self.parse_statement()
        finally:
            self.switch_depth -= 1

    # ---------- expressions
    def parse_expression(self) -> Node:
        tok = self.peek()
        expr = self.parse_assignment()
        if not self.at_punct(","):
            return expr
        expressions = [expr]
        while self.at_punct(","):
            self.pop()
            expressions.append(self.parse_assignment())
        return {"type": "SequenceExpression", "expressions": expressions, "loc": _loc(tok)}

    def _is_arrow_ahead(self) -> bool:
        if self.at("ident") and self.at("punct", "=>", offset=1):
            return True
        if not self.at_punct("("):
            return False
        depth = 0
        j = self.i
        while j < len(self.tokens):
            tok = self.tokens[j]
            if tok["type"] == "eof":
                return False
            if tok["type"] == "punct" and tok["value"] in ("(", "[", "{"):
                depth += 1
            elif tok["type"] == "punct" and tok["value"] in (")", "]", "}"):
                depth -= 1
                if depth == 0:
                    nxt = self.tokens[j + 1] if j + 1 < len(self.tokens) else None
                    return bool(nxt and nxt["type"] == "punct" and nxt["value"] == "=>")
            j += 1
        return False

    def parse_arrow(self) -> Node:
        tok = self.peek()
        if self.at("ident"):
            params = [{"type": "Identifier", "name": self.pop()["value"], "loc": _loc(tok)}]
        else:
            params = self.parse_params()
        self.expect("punct", "=>")
        if self.at_punct("{"):
            body = self.parse_function_body()
        else:
            body = self.parse_assignment()
        return {"type": "ArrowFunctionExpression", "id": None, "params": params, "body": body,
                "expression": body["type"] != "BlockStatement", "loc": _loc(tok)}

    def parse_assignment(self) -> Node:
        if self._is_arrow_ahead():
            return self.parse_arrow()
        tok = self.peek()
        left = self.parse_conditional()
        if self.at("punct") and self.peek()["value"] in ASSIGN_OPS:
            if left["type"] not in ("Identifier", "MemberExpression"):
                bad = self.peek()
                raise JSSyntaxError("Invalid left-hand side in assignment", bad["line"], bad["column"])
            op = self.pop()["value"]
            right = self.parse_assignment()
            return {"type": "AssignmentExpression", "operator": op, "left": left, "right": right,
                    "loc": _loc(tok)}
        return left

    def parse_conditional(self) -> Node:
        tok = self.peek()
        test = self.parse_bp(0)
        if not self.at_punct("?"):
            return test
        self.pop()
        consequent = self.parse_assignment()
        self.expect("punct", ":")
        alternate = self.parse_assignment()
        return {"type": "ConditionalExpression", "test": test, "consequent": consequent,
                "alternate": alternate, "loc": _loc(tok)}

    def _binary_op(self) -> Optional[str]:
        tok = self.peek()
        if tok["type"] == "punct" and tok["value"] in BP:
            return tok["value"]
        if tok["type"] == "keyword" and tok["value"] in ("instanceof", "in"):
            return tok["value"]
        return None

    def parse_bp(self, min_bp: int) -> Node:
        tok = self.peek()
        left = self.parse_unary()
        while True:
            op = self._binary_op()
            if op is None:
                break
            lbp = BP[op]
            if lbp <= min_bp and not (op in RIGHT_ASSOC and lbp == min_bp):
                break
            self.pop()
            right = self.parse_bp(lbp - 1 if op in RIGHT_ASSOC else lbp)
            typ = "LogicalExpression" if op in LOGICAL_OPS else "BinaryExpression"
            left = {"type": typ, "operator": op, "left": left, "right": right, "loc": _loc(tok)}
        return left

    def parse_unary(self) -> Node:
        tok = self.peek()
        if (tok["type"] == "punct" and tok["value"] in PREFIX_OPS) or \
                (tok["type"] == "keyword" and tok["value"] in PREFIX_OPS):
            self.pop()
            argument = self.parse_unary()
            return {"type": "UnaryExpression", "operator": tok["value"], "prefix": True, "argument": argument,
                    "loc": _loc(tok)}
        if self.at_punct("++", "--"):
            self.pop()
            argument = self.parse_unary()
            self._check_update_target(argument, tok)
            return {"type": "UpdateExpression", "operator": tok["value"], "prefix": True, "argument": argument,
                    "loc": _loc(tok)}
        expr = self.parse_postfix()
        return expr

    def _check_update_target(self, node: Node, tok: Dict[str, Any]) -> None:
        if node["type"] not in ("Identifier", "MemberExpression"):
            raise JSSyntaxError("Invalid left-hand side expression in update operation", tok["line"], tok["column"])

    def parse_postfix(self) -> Node:
        tok = self.peek()
        expr = self.parse_call_member()
        nxt = self.peek()
        if nxt["type"] == "punct" and nxt["value"] in ("++", "--") and not nxt.get("nl"):
            self._check_update_target(expr, nxt)
            self.pop()
            return {"type": "UpdateExpression", "operator": nxt["value"], "prefix": False, "argument": expr,
                    "loc": _loc(tok)}
        return expr

    def parse_arguments(self) -> List[Node]:
        self.expect("punct", "(")
        args: List[Node] = []
        while not self.at_punct(")"):
            args.append(self.parse_spread_or_assignment())
            if not self.at_punct(")"):
                self.expect("punct", ",")
        self.pop()
        return args

    def parse_spread_or_assignment(self) -> Node:
        tok = self.peek()
        if self.at_punct("..."):
            self.pop()
            return {"type": "SpreadElement", "argument": self.parse_assignment(), "loc": _loc(tok)}
        return self.parse_assignment()

    def _member_tail(self, obj: Node, start: Dict[str, Any], allow_call: bool) -> Node:
        while True:
            if self.at_punct("."):
                self.pop()
                p_tok = self.peek()
                if p_tok["type"] not in ("ident", "keyword"):
                    raise self.unexpected(p_tok, expected="property name")
                self.pop()
                prop = {"type": "Identifier", "name": p_tok["value"], "loc": _loc(p_tok)}
                obj = {"type": "MemberExpression", "object": obj, "property": prop, "computed": False,
                       "loc": _loc(start)}
            elif self.at_punct("["):
                self.pop()
                prop = self.parse_expression()
                self.expect("punct", "]")
                obj = {"type": "MemberExpression", "object": obj, "property": prop, "computed": True,
                       "loc": _loc(start)}
            elif allow_call and self.at_punct("("):
                args = self.parse_arguments()
                obj = {"type": "CallExpression", "callee": obj, "arguments": args, "loc": _loc(start)}
            elif self.at("template") and allow_call:
                raise self.unexpected(self.peek())
            else:
                return obj

    def parse_call_member(self) -> Node:
        tok = self.peek()
        if self.at_keyword("new"):
            self.pop()
            callee = self._member_tail(self.parse_primary(), self.peek(), allow_call=False)
            args = self.parse_arguments() if self.at_punct("(") else []
            expr = {"type": "NewExpression", "callee": callee, "arguments": args, "loc": _loc(tok)}
        else:
            expr = self.parse_primary()
        return self._member_tail(expr, tok, allow_call=True)

    def parse_primary(self) -> Node:
        tok = self.peek()
        t, v = tok["type"], tok["value"]
        if t == "number" or t == "string":
            self.pop()
            return {"type": "Literal", "value": v, "raw": repr(v) if t == "string" else str(v), "loc": _loc(tok)}
        if t == "template":
            self.pop()
            return self.parse_template(tok)
        if t == "ident":
            self.pop()
            return {"type": "Identifier", "name": v, "loc": _loc(tok)}
        if t == "keyword":
            if v in ("true", "false"):
                self.pop()
                return {"type": "Literal", "value": v == "true", "raw": v, "loc": _loc(tok)}
            if v == "null":
                self.pop()
                return {"type": "Literal", "value": None, "raw": "null", "loc": _loc(tok)}
            if v == "function":
                return self.parse_function(declaration=False)
        if t == "punct":
            if v == "(":
                return self.parse_paren_expr()
            if v == "[":
                return self.parse_array()
            if v == "{":
                return self.parse_object()
        raise self.unexpected(tok)

    def parse_template(self, tok: Dict[str, Any]) -> Node:
        payload = tok["value"]
        quasis = [{"type": "TemplateElement", "value": {"cooked": q}, "loc": _loc(tok)}
                  for q in payload["quasis"]]
        expressions = []
        for src, line, column in payload["exprs"]:
            sub = Parser(tokenize(src, line=line, column=column))
            expr = sub.parse_expression()
            if not sub.at("eof"):
                raise sub.unexpected(sub.peek())
            expressions.append(expr)
        return {"type": "TemplateLiteral", "quasis": quasis, "expressions": expressions, "loc": _loc(tok)}

    def parse_array(self) -> Node:
        tok = self.pop()
        elements: List[Optional[Node]] = []
        while not self.at_punct("]"):
            if self.at_punct(","):
                self.pop()
                elements.append(None)
                continue
            elements.append(self.parse_spread_or_assignment())
            if not self.at_punct("]"):
                self.expect("punct", ",")
        self.pop()
        return {"type": "ArrayExpression", "elements": elements, "loc": _loc(tok)}

    def parse_object(self) -> Node:
        tok = self.pop()
        properties: List[Node] = []
        while not self.at_punct("}"):
            p_tok = self.peek()
            if self.at_punct("..."):
                self.pop()
                properties.append({"type": "SpreadElement", "argument": self.parse_assignment(), "loc": _loc(p_tok)})
            else:
                properties.append(self.parse_property())
            if not self.at_punct("}"):
                self.expect("punct", ",")
        self.pop()
        return {"type": "ObjectExpression", "properties": properties, "loc": _loc(tok)}

    def parse_property(self) -> Node:
        tok = self.peek()
        computed = False
        if self.at_punct("["):
            self.pop()
            key = self.parse_assignment()
            self.expect("punct", "]")
            computed = True
        elif tok["type"] in ("ident", "keyword"):
            self.pop()
            key = {"type": "Identifier", "name": tok["value"], "loc": _loc(tok)}
        elif tok["type"] in ("string", "number"):
            self.pop()
            key = {"type": "Literal", "value": tok["value"], "raw": str(tok["value"]), "loc": _loc(tok)}
        else:
            raise self.unexpected(tok, expected="property name")

        if self.at_punct(":"):
            self.pop()
            value = self.parse_assignment()
            return {"type": "Property", "key": key, "value": value, "computed": computed, "shorthand": False,
                    "loc": _loc(tok)}
        if self.at_punct("("):
            params = self.parse_params()
            body = self.parse_function_body()
            name = key.get("name") if key["type"] == "Identifier" else None
            value = {"type": "FunctionExpression",
                     "id": {"type": "Identifier", "name": name, "loc": _loc(tok)} if name else None,
                     "params": params, "body": body, "loc": _loc(tok)}
            return {"type": "Property", "key": key, "value": value, "computed": computed, "shorthand": False,
                    "method": True, "loc": _loc(tok)}
        if key["type"] == "Identifier" and not computed and tok["type"] == "ident":
            return {"type": "Property", "key": key, "value": dict(key), "computed": False, "shorthand": True,
                    "loc": _loc(tok)}
        raise self.unexpected(self.peek(), expected=":")


def parse(text: str) -> Node:
    """Parse source text into a Program node. Raises JSSyntaxError on malformed input."""
    return Parser(tokenize(text)).parse_program()
