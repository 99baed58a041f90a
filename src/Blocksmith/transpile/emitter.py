"""Translate Blocksmith block trees into PHP source code."""

from __future__ import annotations

import dataclasses
import math
import re
from typing import Dict, List, Optional, Tuple, Union

from .ast import (
    Arithmetic,
    Atan2,
    Block,
    BooleanLiteral,
    ColourBlend,
    ColourPicker,
    ColourRandom,
    ColourRgb,
    Compare,
    ConditionalBranch,
    Constrain,
    FlowStatement,
    ForEach,
    ForRange,
    IfBlock,
    ListCreateEmpty,
    ListCreateWith,
    ListGetIndex,
    ListGetSublist,
    ListIndexOf,
    ListIsEmpty,
    ListLength,
    ListRemoveIndex,
    ListRepeat,
    ListReverse,
    ListSetIndex,
    ListSort,
    ListSplit,
    LogicOperation,
    MathChange,
    MathConstant,
    MathOnList,
    MathSingle,
    Modulo,
    MultilineText,
    Negate,
    NullLiteral,
    NumberLiteral,
    NumberProperty,
    ProcedureCall,
    ProcedureCallStatement,
    ProcedureDef,
    ProcedureIfReturn,
    Program,
    RandomFloat,
    RandomInt,
    Repeat,
    Ternary,
    TextAppend,
    TextChangeCase,
    TextCharAt,
    TextCount,
    TextGetSubstring,
    TextIndexOf,
    TextIsEmpty,
    TextJoin,
    TextLength,
    TextLiteral,
    TextPrint,
    TextPrompt,
    TextReplace,
    TextReverse,
    TextTrim,
    VariableGet,
    VariableSet,
    WhileUntil,
    used_variables,
)
from .errors import UnsupportedConstructError
from .generator import Generator, GeneratorOptions, Rendered
from .names import PHP_RESERVED_WORDS, PROCEDURE, VARIABLE
from .precedence import Order, Rank, RenderedExpr, format_number, is_number
from .session import FUNCTION_NAME_PLACEHOLDER

_WORD_RE = re.compile(r"^\w+$")
_SIMPLE_VAR_RE = re.compile(r"^\$\w+$")
_GROUPED_RE = re.compile(r"^\(.+\)$")


def quote(text: str) -> str:
    """Encode ``text`` as a single-quoted PHP string literal."""

    text = text.replace("\\", "\\\\").replace("\n", "\\\n").replace("'", "\\'")
    return f"'{text}'"


def multiline_quote(text: str) -> str:
    """Encode ``text`` as a PHP heredoc."""

    return "<<<EOT\n" + text + "\nEOT"


def _fn(signature: str) -> str:
    return "function " + FUNCTION_NAME_PLACEHOLDER + signature + " {"


# Helper bodies shared through the session; two-space indents are rewritten
# to the configured indent when they are registered.

LENGTH_HELPER = [
    _fn("($value)"),
    "  if (is_string($value)) {",
    "    return strlen($value);",
    "  } else {",
    "    return count($value);",
    "  }",
    "}",
]

COLOUR_RANDOM_HELPER = [
    _fn("()"),
    "  return '#' . str_pad(dechex(mt_rand(0, 0xFFFFFF)), 6, '0', STR_PAD_LEFT);",
    "}",
]

COLOUR_RGB_HELPER = [
    _fn("($r, $g, $b)"),
    "  $r = round(max(min($r, 100), 0) * 2.55);",
    "  $g = round(max(min($g, 100), 0) * 2.55);",
    "  $b = round(max(min($b, 100), 0) * 2.55);",
    "  $hex = '#';",
    "  $hex .= str_pad(dechex($r), 2, '0', STR_PAD_LEFT);",
    "  $hex .= str_pad(dechex($g), 2, '0', STR_PAD_LEFT);",
    "  $hex .= str_pad(dechex($b), 2, '0', STR_PAD_LEFT);",
    "  return $hex;",
    "}",
]

COLOUR_BLEND_HELPER = [
    _fn("($c1, $c2, $ratio)"),
    "  $ratio = max(min($ratio, 1), 0);",
    "  $r1 = hexdec(substr($c1, 1, 2));",
    "  $g1 = hexdec(substr($c1, 3, 2));",
    "  $b1 = hexdec(substr($c1, 5, 2));",
    "  $r2 = hexdec(substr($c2, 1, 2));",
    "  $g2 = hexdec(substr($c2, 3, 2));",
    "  $b2 = hexdec(substr($c2, 5, 2));",
    "  $r = round($r1 * (1 - $ratio) + $r2 * $ratio);",
    "  $g = round($g1 * (1 - $ratio) + $g2 * $ratio);",
    "  $b = round($b1 * (1 - $ratio) + $b2 * $ratio);",
    "  $hex = '#';",
    "  $hex .= str_pad(dechex($r), 2, '0', STR_PAD_LEFT);",
    "  $hex .= str_pad(dechex($g), 2, '0', STR_PAD_LEFT);",
    "  $hex .= str_pad(dechex($b), 2, '0', STR_PAD_LEFT);",
    "  return $hex;",
    "}",
]

LISTS_REPEAT_HELPER = [
    _fn("($value, $count)"),
    "  $array = array();",
    "  for ($index = 0; $index < $count; $index++) {",
    "    $array[] = $value;",
    "  }",
    "  return $array;",
    "}",
]

LISTS_GET_RANDOM_ITEM_HELPER = [
    _fn("($list)"),
    "  return $list[rand(0,count($list)-1)];",
    "}",
]

LISTS_GET_REMOVE_RANDOM_ITEM_HELPER = [
    _fn("(&$list)"),
    "  $x = rand(0,count($list)-1);",
    "  unset($list[$x]);",
    "  return array_values($list);",
    "}",
]

LISTS_REMOVE_RANDOM_ITEM_HELPER = [
    _fn("(&$list)"),
    "  unset($list[rand(0,count($list)-1)]);",
    "}",
]

LISTS_SET_LAST_ITEM_HELPER = [
    _fn("(&$list, $value)"),
    "  $list[count($list) - 1] = $value;",
    "}",
]

LISTS_SET_FROM_END_HELPER = [
    _fn("(&$list, $at, $value)"),
    "  $list[count($list) - $at] = $value;",
    "}",
]

LISTS_INSERT_FROM_END_HELPER = [
    _fn("(&$list, $at, $value)"),
    "  return array_splice($list, count($list) - $at, 0, $value);",
    "}",
]

LISTS_GET_SUBLIST_HELPER = [
    _fn("($list, $where1, $at1, $where2, $at2)"),
    "  if ($where1 == 'FROM_END') {",
    "    $at1 = count($list) - 1 - $at1;",
    "  } else if ($where1 == 'FIRST') {",
    "    $at1 = 0;",
    "  } else if ($where1 != 'FROM_START') {",
    "    throw new Exception('Unhandled option (lists_get_sublist).');",
    "  }",
    "  $length = 0;",
    "  if ($where2 == 'FROM_START') {",
    "    $length = $at2 - $at1 + 1;",
    "  } else if ($where2 == 'FROM_END') {",
    "    $length = count($list) - $at1 - $at2;",
    "  } else if ($where2 == 'LAST') {",
    "    $length = count($list) - $at1;",
    "  } else {",
    "    throw new Exception('Unhandled option (lists_get_sublist).');",
    "  }",
    "  return array_slice($list, $at1, $length);",
    "}",
]

LISTS_SORT_HELPER = [
    _fn("($list, $type, $direction)"),
    "  $sortCmpFuncs = array(",
    '    "NUMERIC" => "strnatcasecmp",',
    '    "TEXT" => "strcmp",',
    '    "IGNORE_CASE" => "strcasecmp"',
    "  );",
    "  $sortCmp = $sortCmpFuncs[$type];",
    "  $list2 = $list;",
    "  usort($list2, $sortCmp);",
    "  if ($direction == -1) {",
    "    $list2 = array_reverse($list2);",
    "  }",
    "  return $list2;",
    "}",
]

MATH_IS_PRIME_HELPER = [
    _fn("($n)"),
    "  // https://en.wikipedia.org/wiki/Primality_test#Naive_methods",
    "  if ($n == 2 || $n == 3) {",
    "    return true;",
    "  }",
    "  // False if n is NaN, negative, is 1, or not whole.",
    "  // And false if n is divisible by 2 or 3.",
    "  if (!is_numeric($n) || $n <= 1 || $n % 1 != 0 || $n % 2 == 0 || $n % 3 == 0) {",
    "    return false;",
    "  }",
    "  // Check all the numbers of form 6k +/- 1, up to sqrt(n).",
    "  for ($x = 6; $x <= sqrt($n) + 1; $x += 6) {",
    "    if ($n % ($x - 1) == 0 || $n % ($x + 1) == 0) {",
    "      return false;",
    "    }",
    "  }",
    "  return true;",
    "}",
]

MATH_MEAN_HELPER = [
    _fn("($myList)"),
    "  return array_sum($myList) / count($myList);",
    "}",
]

MATH_MEDIAN_HELPER = [
    _fn("($arr)"),
    "  sort($arr,SORT_NUMERIC);",
    "  return (count($arr) % 2) ? $arr[floor(count($arr)/2)] : ",
    "      ($arr[floor(count($arr)/2)] + $arr[floor(count($arr)/2) - 1]) / 2;",
    "}",
]

MATH_MODES_HELPER = [
    _fn("($values)"),
    "  if (empty($values)) return array();",
    "  $counts = array_count_values($values);",
    "  arsort($counts); // Sort counts in descending order",
    "  $modes = array_keys($counts, current($counts), true);",
    "  return $modes;",
    "}",
]

MATH_STANDARD_DEVIATION_HELPER = [
    _fn("($numbers)"),
    "  $n = count($numbers);",
    "  if (!$n) return null;",
    "  $mean = array_sum($numbers) / count($numbers);",
    "  foreach($numbers as $key => $num) $devs[$key] = pow($num - $mean, 2);",
    "  return sqrt(array_sum($devs) / (count($devs) - 1));",
    "}",
]

MATH_RANDOM_LIST_HELPER = [
    _fn("($list)"),
    "  $x = rand(0, count($list)-1);",
    "  return $list[$x];",
    "}",
]

MATH_RANDOM_INT_HELPER = [
    _fn("($a, $b)"),
    "  if ($a > $b) {",
    "    return rand($b, $a);",
    "  }",
    "  return rand($a, $b);",
    "}",
]

TEXT_RANDOM_LETTER_HELPER = [
    _fn("($text)"),
    "  return $text[rand(0, strlen($text) - 1)];",
    "}",
]

TEXT_GET_SUBSTRING_HELPER = [
    _fn("($text, $where1, $at1, $where2, $at2)"),
    "  if ($where1 == 'FROM_END') {",
    "    $at1 = strlen($text) - 1 - $at1;",
    "  } else if ($where1 == 'FIRST') {",
    "    $at1 = 0;",
    "  } else if ($where1 != 'FROM_START') {",
    "    throw new Exception('Unhandled option (text_get_substring).');",
    "  }",
    "  $length = 0;",
    "  if ($where2 == 'FROM_START') {",
    "    $length = $at2 - $at1 + 1;",
    "  } else if ($where2 == 'FROM_END') {",
    "    $length = strlen($text) - $at1 - $at2;",
    "  } else if ($where2 == 'LAST') {",
    "    $length = strlen($text) - $at1;",
    "  } else {",
    "    throw new Exception('Unhandled option (text_get_substring).');",
    "  }",
    "  return substr($text, $at1, $length);",
    "}",
]

COMPARE_OPERATORS: Dict[str, str] = {
    "EQ": "==",
    "NEQ": "!=",
    "LT": "<",
    "LTE": "<=",
    "GT": ">",
    "GTE": ">=",
}

ARITHMETIC_OPERATORS: Dict[str, Tuple[str, Rank]] = {
    "ADD": (" + ", Order.ADDITION),
    "MINUS": (" - ", Order.SUBTRACTION),
    "MULTIPLY": (" * ", Order.MULTIPLICATION),
    "DIVIDE": (" / ", Order.DIVISION),
    "POWER": (" ** ", Order.POWER),
}

MATH_CONSTANTS: Dict[str, Tuple[str, Rank]] = {
    "PI": ("M_PI", Order.ATOMIC),
    "E": ("M_E", Order.ATOMIC),
    "GOLDEN_RATIO": ("(1 + sqrt(5)) / 2", Order.DIVISION),
    "SQRT2": ("M_SQRT2", Order.ATOMIC),
    "SQRT1_2": ("M_SQRT1_2", Order.ATOMIC),
    "INFINITY": ("INF", Order.ATOMIC),
}

# Single operand maths that renders as one function call.
MATH_FUNCTIONS: Dict[str, str] = {
    "ABS": "abs({})",
    "ROOT": "sqrt({})",
    "LN": "log({})",
    "EXP": "exp({})",
    "POW10": "pow(10,{})",
    "ROUND": "round({})",
    "ROUNDUP": "ceil({})",
    "ROUNDDOWN": "floor({})",
    "SIN": "sin({} / 180 * pi())",
    "COS": "cos({} / 180 * pi())",
    "TAN": "tan({} / 180 * pi())",
}

# Single operand maths whose result is a division.
MATH_QUOTIENTS: Dict[str, str] = {
    "LOG10": "log({}) / log(10)",
    "ASIN": "asin({}) / pi() * 180",
    "ACOS": "acos({}) / pi() * 180",
    "ATAN": "atan({}) / pi() * 180",
}

TEXT_TRIM_FUNCTIONS = {"LEFT": "ltrim", "RIGHT": "rtrim", "BOTH": "trim"}

_SUBLIST_STARTS = ("FROM_START", "FROM_END", "FIRST")
_SUBLIST_ENDS = ("FROM_START", "FROM_END", "LAST")


def _unsupported(node: Block, detail: str = "") -> UnsupportedConstructError:
    return UnsupportedConstructError(type(node).__name__, detail)


class PhpEmitter(Generator):
    """Generator for PHP."""

    line_comment = "// "
    statement_terminator = ";"
    variable_prefix = "$"
    reserved_words = PHP_RESERVED_WORDS
    manual_prefix_suffix = (IfBlock, FlowStatement, ProcedureDef, ProcedureIfReturn)

    def __init__(self, options: Optional[GeneratorOptions] = None) -> None:
        super().__init__(options)
        self._used_variables: List[str] = []
        self._loops: List[Block] = []

    def xfix(self, template: Optional[str], node: Block) -> str:
        """Statement prefix or suffix for ``node``, or ``""`` when not configured."""

        return self.inject_id(template, node) if template else ""

    def init(self, program: Program) -> None:
        super().init(program)
        self._loops = []
        self._used_variables = used_variables(program)
        declarations = [
            self.name_db.get_name(var_id, VARIABLE) + ";" for var_id in self._used_variables
        ]
        if declarations:
            self.session.add_definition("variables", "\n".join(declarations))

    def variable(self, var_id: str) -> str:
        return self.name_db.get_name(var_id, VARIABLE)

    def render(self, node: Block) -> Rendered:
        # logic
        if isinstance(node, IfBlock):
            return self._render_if(node)
        if isinstance(node, Compare):
            return self._render_compare(node)
        if isinstance(node, LogicOperation):
            return self._render_logic_operation(node)
        if isinstance(node, Negate):
            code = self.value_to_code(node.value, Order.LOGICAL_NOT) or "true"
            return RenderedExpr("!" + code, Order.LOGICAL_NOT)
        if isinstance(node, BooleanLiteral):
            return RenderedExpr("true" if node.value else "false", Order.ATOMIC)
        if isinstance(node, NullLiteral):
            return RenderedExpr("null", Order.ATOMIC)
        if isinstance(node, Ternary):
            return self._render_ternary(node)

        # loops
        if isinstance(node, Repeat):
            return self._render_repeat(node)
        if isinstance(node, WhileUntil):
            return self._render_while_until(node)
        if isinstance(node, ForRange):
            return self._render_for_range(node)
        if isinstance(node, ForEach):
            return self._render_for_each(node)
        if isinstance(node, FlowStatement):
            return self._render_flow_statement(node)

        # math
        if isinstance(node, NumberLiteral):
            return self._render_number(node)
        if isinstance(node, Arithmetic):
            return self._render_arithmetic(node)
        if isinstance(node, MathSingle):
            return self._render_math_single(node)
        if isinstance(node, MathConstant):
            if node.constant not in MATH_CONSTANTS:
                raise _unsupported(node, f"unknown constant {node.constant!r}")
            return RenderedExpr(*MATH_CONSTANTS[node.constant])
        if isinstance(node, NumberProperty):
            return self._render_number_property(node)
        if isinstance(node, MathChange):
            delta = self.value_to_code(node.delta, Order.ADDITION) or "0"
            return f"{self.variable(node.var)} += {delta};\n"
        if isinstance(node, MathOnList):
            return self._render_math_on_list(node)
        if isinstance(node, Modulo):
            dividend = self.value_to_code(node.dividend, Order.MODULUS) or "0"
            divisor = self.value_to_code(node.divisor, Order.MODULUS) or "0"
            return RenderedExpr(f"{dividend} % {divisor}", Order.MODULUS)
        if isinstance(node, Constrain):
            value = self.value_to_code(node.value, Order.COMMA) or "0"
            low = self.value_to_code(node.low, Order.COMMA) or "0"
            high = self.value_to_code(node.high, Order.COMMA) or "INF"
            return RenderedExpr(f"min(max({value}, {low}), {high})", Order.FUNCTION_CALL)
        if isinstance(node, RandomInt):
            low = self.value_to_code(node.low, Order.COMMA) or "0"
            high = self.value_to_code(node.high, Order.COMMA) or "0"
            fn = self.provide_function("math_random_int", MATH_RANDOM_INT_HELPER)
            return RenderedExpr(f"{fn}({low}, {high})", Order.FUNCTION_CALL)
        if isinstance(node, RandomFloat):
            return RenderedExpr("(float)rand()/(float)getrandmax()", Order.FUNCTION_CALL)
        if isinstance(node, Atan2):
            x = self.value_to_code(node.x, Order.COMMA) or "0"
            y = self.value_to_code(node.y, Order.COMMA) or "0"
            return RenderedExpr(f"atan2({y}, {x}) / pi() * 180", Order.DIVISION)

        # text
        if isinstance(node, TextLiteral):
            return RenderedExpr(quote(node.text), Order.ATOMIC)
        if isinstance(node, MultilineText):
            return RenderedExpr(multiline_quote(node.text), Order.ATOMIC)
        if isinstance(node, TextJoin):
            return self._render_text_join(node)
        if isinstance(node, TextAppend):
            value = self.value_to_code(node.text, Order.ASSIGNMENT) or "''"
            return f"{self.variable(node.var)} .= {value};\n"
        if isinstance(node, (TextLength, ListLength)):
            fn = self.provide_function("length", LENGTH_HELPER)
            value = self.value_to_code(node.value, Order.NONE) or "''"
            return RenderedExpr(f"{fn}({value})", Order.FUNCTION_CALL)
        if isinstance(node, TextIsEmpty):
            value = self.value_to_code(node.value, Order.NONE) or "''"
            return RenderedExpr(f"empty({value})", Order.FUNCTION_CALL)
        if isinstance(node, TextIndexOf):
            return self._render_text_index_of(node)
        if isinstance(node, TextCharAt):
            return self._render_text_char_at(node)
        if isinstance(node, TextGetSubstring):
            return self._render_text_get_substring(node)
        if isinstance(node, TextChangeCase):
            return self._render_text_change_case(node)
        if isinstance(node, TextTrim):
            if node.mode not in TEXT_TRIM_FUNCTIONS:
                raise _unsupported(node, f"unknown trim mode {node.mode!r}")
            text = self.value_to_code(node.text, Order.NONE) or "''"
            return RenderedExpr(f"{TEXT_TRIM_FUNCTIONS[node.mode]}({text})", Order.FUNCTION_CALL)
        if isinstance(node, TextPrint):
            text = self.value_to_code(node.text, Order.NONE) or "''"
            return f"print({text});\n"
        if isinstance(node, TextPrompt):
            return self._render_text_prompt(node)
        if isinstance(node, TextCount):
            text = self.value_to_code(node.text, Order.MEMBER) or "''"
            sub = self.value_to_code(node.sub, Order.NONE) or "''"
            code = (
                f"strlen({sub}) === 0"
                f" ? strlen({text}) + 1"
                f" : substr_count({text}, {sub})"
            )
            return RenderedExpr(code, Order.CONDITIONAL)
        if isinstance(node, TextReplace):
            text = self.value_to_code(node.text, Order.MEMBER) or "''"
            old = self.value_to_code(node.old, Order.NONE) or "''"
            new = self.value_to_code(node.new, Order.NONE) or "''"
            return RenderedExpr(f"str_replace({old}, {new}, {text})", Order.FUNCTION_CALL)
        if isinstance(node, TextReverse):
            text = self.value_to_code(node.text, Order.MEMBER) or "''"
            return RenderedExpr(f"strrev({text})", Order.FUNCTION_CALL)

        # lists
        if isinstance(node, ListCreateEmpty):
            return RenderedExpr("array()", Order.FUNCTION_CALL)
        if isinstance(node, ListCreateWith):
            items = [self.value_to_code(item, Order.COMMA) or "null" for item in node.items]
            return RenderedExpr(f"array({', '.join(items)})", Order.FUNCTION_CALL)
        if isinstance(node, ListRepeat):
            fn = self.provide_function("lists_repeat", LISTS_REPEAT_HELPER)
            item = self.value_to_code(node.item, Order.COMMA) or "null"
            count = self.value_to_code(node.count, Order.COMMA) or "0"
            return RenderedExpr(f"{fn}({item}, {count})", Order.FUNCTION_CALL)
        if isinstance(node, ListIsEmpty):
            value = self.value_to_code(node.value, Order.FUNCTION_CALL) or "array()"
            return RenderedExpr(f"empty({value})", Order.FUNCTION_CALL)
        if isinstance(node, ListIndexOf):
            return self._render_list_index_of(node)
        if isinstance(node, ListGetIndex):
            if node.mode not in ("GET", "GET_REMOVE"):
                raise _unsupported(node, f"unknown mode {node.mode!r}")
            return self._render_list_access(node, node.mode)
        if isinstance(node, ListRemoveIndex):
            return self._render_list_access(node, "REMOVE")
        if isinstance(node, ListSetIndex):
            return self._render_list_set_index(node)
        if isinstance(node, ListGetSublist):
            return self._render_list_get_sublist(node)
        if isinstance(node, ListSort):
            source = self.value_to_code(node.source, Order.COMMA) or "array()"
            direction = 1 if node.direction == 1 else -1
            fn = self.provide_function("lists_sort", LISTS_SORT_HELPER)
            return RenderedExpr(f'{fn}({source}, "{node.kind}", {direction})', Order.FUNCTION_CALL)
        if isinstance(node, ListSplit):
            return self._render_list_split(node)
        if isinstance(node, ListReverse):
            source = self.value_to_code(node.source, Order.COMMA) or "[]"
            return RenderedExpr(f"array_reverse({source})", Order.FUNCTION_CALL)

        # colour
        if isinstance(node, ColourPicker):
            return RenderedExpr(quote(node.colour), Order.ATOMIC)
        if isinstance(node, ColourRandom):
            fn = self.provide_function("colour_random", COLOUR_RANDOM_HELPER)
            return RenderedExpr(f"{fn}()", Order.FUNCTION_CALL)
        if isinstance(node, ColourRgb):
            red = self.value_to_code(node.red, Order.COMMA) or "0"
            green = self.value_to_code(node.green, Order.COMMA) or "0"
            blue = self.value_to_code(node.blue, Order.COMMA) or "0"
            fn = self.provide_function("colour_rgb", COLOUR_RGB_HELPER)
            return RenderedExpr(f"{fn}({red}, {green}, {blue})", Order.FUNCTION_CALL)
        if isinstance(node, ColourBlend):
            c1 = self.value_to_code(node.colour1, Order.COMMA) or "'#000000'"
            c2 = self.value_to_code(node.colour2, Order.COMMA) or "'#000000'"
            ratio = self.value_to_code(node.ratio, Order.COMMA) or "0.5"
            fn = self.provide_function("colour_blend", COLOUR_BLEND_HELPER)
            return RenderedExpr(f"{fn}({c1}, {c2}, {ratio})", Order.FUNCTION_CALL)

        # variables
        if isinstance(node, VariableGet):
            return RenderedExpr(self.variable(node.var), Order.ATOMIC)
        if isinstance(node, VariableSet):
            value = self.value_to_code(node.value, Order.ASSIGNMENT) or "0"
            return f"{self.variable(node.var)} = {value};\n"

        # procedures
        if isinstance(node, ProcedureDef):
            return self._render_procedure_def(node)
        if isinstance(node, ProcedureCall):
            return RenderedExpr(self._procedure_call(node.name, node.args), Order.FUNCTION_CALL)
        if isinstance(node, ProcedureCallStatement):
            return self._procedure_call(node.name, node.args) + ";\n"
        if isinstance(node, ProcedureIfReturn):
            return self._render_procedure_if_return(node)

        raise _unsupported(node, "no PHP renderer for this construct")

    # ------------------------------------------------------------------
    # logic
    # ------------------------------------------------------------------

    def _render_if(self, node: IfBlock) -> str:
        branches = node.branches or [ConditionalBranch()]
        suffix = self.xfix(self.options.statement_suffix, node)
        if suffix:
            suffix = self.prefix_lines(suffix, self.options.indent)
        code = self.xfix(self.options.statement_prefix, node)
        for n, branch in enumerate(branches):
            condition = self.value_to_code(branch.condition, Order.NONE) or "false"
            body = suffix + self.statement_to_code(branch.body)
            if n:
                code += " else "
            code += f"if ({condition}) {{\n{body}}}"
        if node.has_else or node.else_body is not None or suffix:
            body = suffix + self.statement_to_code(node.else_body)
            code += f" else {{\n{body}}}"
        return code + "\n"

    def _render_compare(self, node: Compare) -> RenderedExpr:
        operator = COMPARE_OPERATORS.get(node.op)
        if operator is None:
            raise _unsupported(node, f"unknown operator {node.op!r}")
        order = Order.EQUALITY if operator in ("==", "!=") else Order.RELATIONAL
        a = self.value_to_code(node.a, order) or "0"
        b = self.value_to_code(node.b, order) or "0"
        return RenderedExpr(f"{a} {operator} {b}", order)

    def _render_logic_operation(self, node: LogicOperation) -> RenderedExpr:
        if node.op == "AND":
            operator, order, default = "&&", Order.LOGICAL_AND, "true"
        elif node.op == "OR":
            operator, order, default = "||", Order.LOGICAL_OR, "false"
        else:
            raise _unsupported(node, f"unknown operator {node.op!r}")
        a = self.value_to_code(node.a, order)
        b = self.value_to_code(node.b, order)
        if not a and not b:
            # Nothing connected at all evaluates to false.
            a = b = "false"
        else:
            a = a or default
            b = b or default
        return RenderedExpr(f"{a} {operator} {b}", order)

    def _render_ternary(self, node: Ternary) -> RenderedExpr:
        condition = self.value_to_code(node.condition, Order.CONDITIONAL) or "false"
        then_value = self.value_to_code(node.then_value, Order.CONDITIONAL) or "null"
        else_value = self.value_to_code(node.else_value, Order.CONDITIONAL) or "null"
        return RenderedExpr(f"{condition} ? {then_value} : {else_value}", Order.CONDITIONAL)

    # ------------------------------------------------------------------
    # loops
    # ------------------------------------------------------------------

    def _loop_body(self, node: Union[Repeat, WhileUntil, ForRange, ForEach]) -> str:
        self._loops.append(node)
        try:
            branch = self.statement_to_code(node.body)
        finally:
            self._loops.pop()
        return self.add_loop_trap(branch, node)

    def _render_flow_statement(self, node: FlowStatement) -> str:
        if node.flow not in ("BREAK", "CONTINUE"):
            raise _unsupported(node, f"unknown flow statement {node.flow!r}")
        # The statements after the jump never run, so their tracing is emitted here.
        xfix = self.xfix(self.options.statement_prefix, node)
        xfix += self.xfix(self.options.statement_suffix, node)
        if self._loops:
            xfix += self.xfix(self.options.statement_prefix, self._loops[-1])
        return xfix + ("break;\n" if node.flow == "BREAK" else "continue;\n")

    def _render_repeat(self, node: Repeat) -> str:
        repeats = self.value_to_code(node.times, Order.ASSIGNMENT) or "0"
        branch = self._loop_body(node)
        code = ""
        loop_var = self.name_db.get_distinct_name("count", VARIABLE)
        end_var = repeats
        if not _WORD_RE.match(repeats) and not is_number(repeats):
            end_var = self.name_db.get_distinct_name("repeat_end", VARIABLE)
            code += f"{end_var} = {repeats};\n"
        code += (
            f"for ({loop_var} = 0; {loop_var} < {end_var}; {loop_var}++) {{\n"
            f"{branch}}}\n"
        )
        return code

    def _render_while_until(self, node: WhileUntil) -> str:
        if node.mode not in ("WHILE", "UNTIL"):
            raise _unsupported(node, f"unknown mode {node.mode!r}")
        until = node.mode == "UNTIL"
        condition = self.value_to_code(
            node.condition, Order.LOGICAL_NOT if until else Order.NONE
        ) or "false"
        branch = self._loop_body(node)
        if until:
            condition = "!" + condition
        return f"while ({condition}) {{\n{branch}}}\n"

    def _render_for_range(self, node: ForRange) -> str:
        variable = self.variable(node.var)
        start = self.value_to_code(node.start, Order.ASSIGNMENT) or "0"
        end = self.value_to_code(node.end, Order.ASSIGNMENT) or "0"
        increment = self.value_to_code(node.step, Order.ASSIGNMENT) or "1"
        branch = self._loop_body(node)

        if is_number(start) and is_number(end) and is_number(increment):
            up = float(start) <= float(end)
            code = (
                f"for ({variable} = {start}; "
                f"{variable}{' <= ' if up else ' >= '}{end}; {variable}"
            )
            step = abs(float(increment))
            if step == 1:
                code += "++" if up else "--"
            else:
                code += (" += " if up else " -= ") + format_number(step)
            return code + f") {{\n{branch}}}\n"

        code = ""
        # Cache non-trivial bounds so they are evaluated once.
        start_var = start
        if not _WORD_RE.match(start) and not is_number(start):
            start_var = self.name_db.get_distinct_name(variable + "_start", VARIABLE)
            code += f"{start_var} = {start};\n"
        end_var = end
        if not _WORD_RE.match(end) and not is_number(end):
            end_var = self.name_db.get_distinct_name(variable + "_end", VARIABLE)
            code += f"{end_var} = {end};\n"
        inc_var = self.name_db.get_distinct_name(variable + "_inc", VARIABLE)
        if is_number(increment):
            code += f"{inc_var} = {format_number(abs(float(increment)))};\n"
        else:
            code += f"{inc_var} = abs({increment});\n"
        code += f"if ({start_var} > {end_var}) {{\n"
        code += f"{self.options.indent}{inc_var} = -{inc_var};\n"
        code += "}\n"
        code += (
            f"for ({variable} = {start_var}; "
            f"{inc_var} >= 0 ? {variable} <= {end_var} : {variable} >= {end_var}; "
            f"{variable} += {inc_var}) {{\n{branch}}}\n"
        )
        return code

    def _render_for_each(self, node: ForEach) -> str:
        variable = self.variable(node.var)
        source = self.value_to_code(node.source, Order.ASSIGNMENT) or "[]"
        branch = self._loop_body(node)
        return f"foreach ({source} as {variable}) {{\n{branch}}}\n"

    # ------------------------------------------------------------------
    # math
    # ------------------------------------------------------------------

    def _render_number(self, node: NumberLiteral) -> RenderedExpr:
        value = float(node.value)
        if math.isinf(value):
            code = "INF" if value > 0 else "-INF"
        elif math.isnan(value):
            return RenderedExpr("NAN", Order.ATOMIC)
        else:
            code = format_number(value)
        order = Order.UNARY_NEGATION if value < 0 else Order.ATOMIC
        return RenderedExpr(code, order)

    def _render_arithmetic(self, node: Arithmetic) -> RenderedExpr:
        if node.op not in ARITHMETIC_OPERATORS:
            raise _unsupported(node, f"unknown operator {node.op!r}")
        operator, order = ARITHMETIC_OPERATORS[node.op]
        a = self.value_to_code(node.a, order) or "0"
        b = self.value_to_code(node.b, order) or "0"
        return RenderedExpr(a + operator + b, order)

    def _render_math_single(self, node: MathSingle) -> RenderedExpr:
        op = node.op
        if op == "NEG":
            arg = self.value_to_code(node.num, Order.UNARY_NEGATION) or "0"
            if arg.startswith("-"):
                # "--3" would be a decrement.
                arg = " " + arg
            return RenderedExpr("-" + arg, Order.UNARY_NEGATION)
        if op in ("SIN", "COS", "TAN"):
            arg = self.value_to_code(node.num, Order.DIVISION) or "0"
        else:
            arg = self.value_to_code(node.num, Order.NONE) or "0"
        if op in MATH_FUNCTIONS:
            return RenderedExpr(MATH_FUNCTIONS[op].format(arg), Order.FUNCTION_CALL)
        if op in MATH_QUOTIENTS:
            return RenderedExpr(MATH_QUOTIENTS[op].format(arg), Order.DIVISION)
        raise _unsupported(node, f"unknown math operator {op!r}")

    def _render_number_property(self, node: NumberProperty) -> RenderedExpr:
        number = self.value_to_code(node.number, Order.MODULUS) or "0"
        prop = node.prop
        if prop == "PRIME":
            fn = self.provide_function("math_isPrime", MATH_IS_PRIME_HELPER)
            return RenderedExpr(f"{fn}({number})", Order.FUNCTION_CALL)
        if prop == "EVEN":
            code = f"{number} % 2 == 0"
        elif prop == "ODD":
            code = f"{number} % 2 == 1"
        elif prop == "WHOLE":
            code = f"is_int({number})"
        elif prop == "POSITIVE":
            code = f"{number} > 0"
        elif prop == "NEGATIVE":
            code = f"{number} < 0"
        elif prop == "DIVISIBLE_BY":
            divisor = self.value_to_code(node.divisor, Order.MODULUS) or "0"
            code = f"{number} % {divisor} == 0"
        else:
            raise _unsupported(node, f"unknown property {prop!r}")
        return RenderedExpr(code, Order.EQUALITY)

    def _render_math_on_list(self, node: MathOnList) -> RenderedExpr:
        op = node.op
        if op in ("SUM", "MIN", "MAX"):
            source = self.value_to_code(node.source, Order.FUNCTION_CALL) or "array()"
            function = {"SUM": "array_sum", "MIN": "min", "MAX": "max"}[op]
            return RenderedExpr(f"{function}({source})", Order.FUNCTION_CALL)
        helpers = {
            "AVERAGE": ("math_mean", MATH_MEAN_HELPER, "array()"),
            "MEDIAN": ("math_median", MATH_MEDIAN_HELPER, "[]"),
            "MODE": ("math_modes", MATH_MODES_HELPER, "[]"),
            "STD_DEV": ("math_standard_deviation", MATH_STANDARD_DEVIATION_HELPER, "[]"),
            "RANDOM": ("math_random_list", MATH_RANDOM_LIST_HELPER, "[]"),
        }
        if op not in helpers:
            raise _unsupported(node, f"unknown operator {op!r}")
        name, lines, default = helpers[op]
        fn = self.provide_function(name, lines)
        source = self.value_to_code(node.source, Order.NONE) or default
        return RenderedExpr(f"{fn}({source})", Order.FUNCTION_CALL)

    # ------------------------------------------------------------------
    # text
    # ------------------------------------------------------------------

    def _render_text_join(self, node: TextJoin) -> RenderedExpr:
        items = node.items
        if not items:
            return RenderedExpr("''", Order.ATOMIC)
        if len(items) == 1:
            return self.render_value(items[0]) or RenderedExpr("''", Order.ATOMIC)
        if len(items) == 2:
            first = self.value_to_code(items[0], Order.ATOMIC) or "''"
            second = self.value_to_code(items[1], Order.ATOMIC) or "''"
            return RenderedExpr(f"{first} . {second}", Order.STRING_CONCAT)
        elements = [self.value_to_code(item, Order.COMMA) or "''" for item in items]
        return RenderedExpr(f"implode('', array({','.join(elements)}))", Order.FUNCTION_CALL)

    def _index_bounds(self) -> Tuple[str, str]:
        """Value returned for "not found" and the shift applied to found positions."""

        if self.options.one_based_index:
            return "0", " + 1"
        return "-1", ""

    def _render_text_index_of(self, node: TextIndexOf) -> RenderedExpr:
        if node.end not in ("FIRST", "LAST"):
            raise _unsupported(node, f"unknown end {node.end!r}")
        operator = "strpos" if node.end == "FIRST" else "strrpos"
        find = self.value_to_code(node.find, Order.NONE) or "''"
        text = self.value_to_code(node.value, Order.NONE) or "''"
        error_index, adjustment = self._index_bounds()
        fn = self.provide_function(
            "text_indexOf" if node.end == "FIRST" else "text_lastIndexOf",
            [
                _fn("($text, $search)"),
                f"  $pos = {operator}($text, $search);",
                f"  return $pos === false ? {error_index} : $pos{adjustment};",
                "}",
            ],
        )
        return RenderedExpr(f"{fn}({text}, {find})", Order.FUNCTION_CALL)

    def _render_text_char_at(self, node: TextCharAt) -> RenderedExpr:
        where = node.where
        text_order = Order.NONE if where == "RANDOM" else Order.COMMA
        text = self.value_to_code(node.value, text_order) or "''"
        if where == "FIRST":
            code = f"substr({text}, 0, 1)"
        elif where == "LAST":
            code = f"substr({text}, -1)"
        elif where == "FROM_START":
            at = self.get_adjusted(node.at)
            code = f"substr({text}, {at}, 1)"
        elif where == "FROM_END":
            at = self.get_adjusted(node.at, 1, True)
            code = f"substr({text}, {at}, 1)"
        elif where == "RANDOM":
            fn = self.provide_function("text_random_letter", TEXT_RANDOM_LETTER_HELPER)
            code = f"{fn}({text})"
        else:
            raise _unsupported(node, f"unknown position {where!r}")
        return RenderedExpr(code, Order.FUNCTION_CALL)

    def _render_text_get_substring(self, node: TextGetSubstring) -> RenderedExpr:
        if node.where1 not in _SUBLIST_STARTS or node.where2 not in _SUBLIST_ENDS:
            raise _unsupported(node, f"positions {node.where1!r}/{node.where2!r}")
        text = self.value_to_code(node.value, Order.FUNCTION_CALL) or "''"
        if node.where1 == "FIRST" and node.where2 == "LAST":
            return RenderedExpr(text, Order.FUNCTION_CALL)
        at1 = self.get_adjusted(node.at1)
        at2 = self.get_adjusted(node.at2)
        fn = self.provide_function("text_get_substring", TEXT_GET_SUBSTRING_HELPER)
        code = f"{fn}({text}, '{node.where1}', {at1}, '{node.where2}', {at2})"
        return RenderedExpr(code, Order.FUNCTION_CALL)

    def _render_text_change_case(self, node: TextChangeCase) -> RenderedExpr:
        text = self.value_to_code(node.text, Order.NONE) or "''"
        if node.case == "UPPERCASE":
            code = f"strtoupper({text})"
        elif node.case == "LOWERCASE":
            code = f"strtolower({text})"
        elif node.case == "TITLECASE":
            code = f"ucwords(strtolower({text}))"
        else:
            raise _unsupported(node, f"unknown case {node.case!r}")
        return RenderedExpr(code, Order.FUNCTION_CALL)

    def _render_text_prompt(self, node: TextPrompt) -> RenderedExpr:
        if node.message_text is not None:
            message = quote(node.message_text)
        else:
            message = self.value_to_code(node.message, Order.NONE) or "''"
        code = f"readline({message})"
        if node.kind == "NUMBER":
            code = f"floatval({code})"
        return RenderedExpr(code, Order.FUNCTION_CALL)

    # ------------------------------------------------------------------
    # lists
    # ------------------------------------------------------------------

    def _render_list_index_of(self, node: ListIndexOf) -> RenderedExpr:
        if node.end not in ("FIRST", "LAST"):
            raise _unsupported(node, f"unknown end {node.end!r}")
        find = self.value_to_code(node.find, Order.NONE) or "''"
        source = self.value_to_code(node.source, Order.MEMBER) or "[]"
        error_index, adjustment = self._index_bounds()
        if node.end == "FIRST":
            fn = self.provide_function(
                "indexOf",
                [
                    _fn("($haystack, $needle)"),
                    "  for ($index = 0; $index < count($haystack); $index++) {",
                    f"    if ($haystack[$index] == $needle) return $index{adjustment};",
                    "  }",
                    f"  return {error_index};",
                    "}",
                ],
            )
        else:
            fn = self.provide_function(
                "lastIndexOf",
                [
                    _fn("($haystack, $needle)"),
                    f"  $last = {error_index};",
                    "  for ($index = 0; $index < count($haystack); $index++) {",
                    f"    if ($haystack[$index] == $needle) $last = $index{adjustment};",
                    "  }",
                    "  return $last;",
                    "}",
                ],
            )
        return RenderedExpr(f"{fn}({source}, {find})", Order.FUNCTION_CALL)

    def _render_list_access(
        self, node: Union[ListGetIndex, ListRemoveIndex], mode: str
    ) -> Rendered:
        """Read, read-and-remove or remove one element of a list."""

        where = node.where
        if where == "FIRST":
            if mode == "GET":
                source = self.value_to_code(node.source, Order.MEMBER) or "array()"
                return RenderedExpr(f"{source}[0]", Order.MEMBER)
            source = self.value_to_code(node.source, Order.NONE) or "array()"
            code = f"array_shift({source})"
        elif where == "LAST":
            source = self.value_to_code(node.source, Order.NONE) or "array()"
            if mode == "GET":
                return RenderedExpr(f"end({source})", Order.FUNCTION_CALL)
            code = f"array_pop({source})"
        elif where == "FROM_START":
            at = self.get_adjusted(node.at)
            if mode == "GET":
                source = self.value_to_code(node.source, Order.MEMBER) or "array()"
                return RenderedExpr(f"{source}[{at}]", Order.MEMBER)
            source = self.value_to_code(node.source, Order.COMMA) or "array()"
            code = f"array_splice({source}, {at}, 1)"
            if mode == "GET_REMOVE":
                code += "[0]"
        elif where == "FROM_END":
            if mode == "GET":
                source = self.value_to_code(node.source, Order.COMMA) or "array()"
                at = self.get_adjusted(node.at, 1, True)
                return RenderedExpr(f"array_slice({source}, {at}, 1)[0]", Order.FUNCTION_CALL)
            source = self.value_to_code(node.source, Order.NONE) or "array()"
            at = self.get_adjusted(node.at, 1, False, Order.SUBTRACTION)
            code = f"array_splice({source}, count({source}) - {at}, 1)[0]"
        elif where == "RANDOM":
            source = self.value_to_code(node.source, Order.NONE) or "array()"
            if mode == "GET":
                fn = self.provide_function("lists_get_random_item", LISTS_GET_RANDOM_ITEM_HELPER)
            elif mode == "GET_REMOVE":
                fn = self.provide_function(
                    "lists_get_remove_random_item", LISTS_GET_REMOVE_RANDOM_ITEM_HELPER
                )
            else:
                fn = self.provide_function(
                    "lists_remove_random_item", LISTS_REMOVE_RANDOM_ITEM_HELPER
                )
            code = f"{fn}({source})"
            if mode == "GET":
                return RenderedExpr(code, Order.FUNCTION_CALL)
        else:
            raise _unsupported(node, f"unknown position {where!r}")

        if mode == "REMOVE":
            return code + ";\n"
        return RenderedExpr(code, Order.FUNCTION_CALL)

    def _render_list_set_index(self, node: ListSetIndex) -> str:
        mode, where = node.mode, node.where
        if mode not in ("SET", "INSERT"):
            raise _unsupported(node, f"unknown mode {mode!r}")
        value = self.value_to_code(node.to, Order.ASSIGNMENT) or "null"

        if where == "FIRST":
            if mode == "SET":
                source = self.value_to_code(node.source, Order.MEMBER) or "array()"
                return f"{source}[0] = {value};\n"
            source = self.value_to_code(node.source, Order.COMMA) or "array()"
            return f"array_unshift({source}, {value});\n"
        if where == "LAST":
            source = self.value_to_code(node.source, Order.COMMA) or "array()"
            if mode == "SET":
                fn = self.provide_function("lists_set_last_item", LISTS_SET_LAST_ITEM_HELPER)
                return f"{fn}({source}, {value});\n"
            return f"array_push({source}, {value});\n"
        if where == "FROM_START":
            at = self.get_adjusted(node.at)
            if mode == "SET":
                source = self.value_to_code(node.source, Order.MEMBER) or "array()"
                return f"{source}[{at}] = {value};\n"
            source = self.value_to_code(node.source, Order.COMMA) or "array()"
            return f"array_splice({source}, {at}, 0, {value});\n"
        if where == "FROM_END":
            source = self.value_to_code(node.source, Order.COMMA) or "array()"
            at = self.get_adjusted(node.at, 1)
            if mode == "SET":
                fn = self.provide_function("lists_set_from_end", LISTS_SET_FROM_END_HELPER)
            else:
                fn = self.provide_function("lists_insert_from_end", LISTS_INSERT_FROM_END_HELPER)
            return f"{fn}({source}, {at}, {value});\n"
        if where == "RANDOM":
            source = self.value_to_code(node.source, Order.REFERENCE) or "array()"
            code = ""
            # Look the list up once when it is anything but a plain variable.
            if not _SIMPLE_VAR_RE.match(source):
                list_var = self.name_db.get_distinct_name("tmp_list", VARIABLE)
                code += f"{list_var} = &{source};\n"
                source = list_var
            x_var = self.name_db.get_distinct_name("tmp_x", VARIABLE)
            code += f"{x_var} = rand(0, count({source})-1);\n"
            if mode == "SET":
                return code + f"{source}[{x_var}] = {value};\n"
            return code + f"array_splice({source}, {x_var}, 0, {value});\n"
        raise _unsupported(node, f"unknown position {where!r}")

    def _render_list_get_sublist(self, node: ListGetSublist) -> RenderedExpr:
        where1, where2 = node.where1, node.where2
        if where1 not in _SUBLIST_STARTS or where2 not in _SUBLIST_ENDS:
            raise _unsupported(node, f"positions {where1!r}/{where2!r}")
        if where1 == "FIRST" and where2 == "LAST":
            source = self.value_to_code(node.source, Order.FUNCTION_CALL) or "array()"
            return RenderedExpr(source, Order.FUNCTION_CALL)
        source = self.value_to_code(node.source, Order.COMMA) or "array()"

        if _SIMPLE_VAR_RE.match(source) or (where1 != "FROM_END" and where2 == "FROM_START"):
            # The length can be computed inline, no helper needed.
            if where1 == "FROM_START":
                at1 = self.get_adjusted(node.at1)
            elif where1 == "FROM_END":
                at1 = self.get_adjusted(node.at1, 1, False, Order.SUBTRACTION)
                at1 = f"count({source}) - {at1}"
            else:
                at1 = "0"
            start = at1 if is_number(at1) or _GROUPED_RE.match(at1) else f"({at1})"
            if where2 == "FROM_START":
                at2 = self.get_adjusted(node.at2, 0, False, Order.SUBTRACTION)
                length = f"{at2} - {start} + 1"
            elif where2 == "FROM_END":
                at2 = self.get_adjusted(node.at2, 0, False, Order.SUBTRACTION)
                length = f"count({source}) - {at2} - {start}"
            else:
                length = f"count({source}) - {start}"
            return RenderedExpr(f"array_slice({source}, {at1}, {length})", Order.FUNCTION_CALL)

        at1 = self.get_adjusted(node.at1)
        at2 = self.get_adjusted(node.at2)
        fn = self.provide_function("lists_get_sublist", LISTS_GET_SUBLIST_HELPER)
        code = f"{fn}({source}, '{where1}', {at1}, '{where2}', {at2})"
        return RenderedExpr(code, Order.FUNCTION_CALL)

    def _render_list_split(self, node: ListSplit) -> RenderedExpr:
        value = self.value_to_code(node.input, Order.COMMA)
        delimiter = self.value_to_code(node.delimiter, Order.COMMA) or "''"
        if node.mode == "SPLIT":
            function, value = "explode", value or "''"
        elif node.mode == "JOIN":
            function, value = "implode", value or "array()"
        else:
            raise _unsupported(node, f"unknown mode {node.mode!r}")
        return RenderedExpr(f"{function}({delimiter}, {value})", Order.FUNCTION_CALL)

    # ------------------------------------------------------------------
    # procedures
    # ------------------------------------------------------------------

    def _render_procedure_def(self, node: ProcedureDef) -> None:
        indent = self.options.indent
        globals_ = [
            self.variable(var_id) for var_id in self._used_variables if var_id not in node.params
        ]
        global_code = f"{indent}global {', '.join(globals_)};\n" if globals_ else ""

        func_name = self.name_db.get_name(node.name, PROCEDURE)
        xfix1 = self.xfix(self.options.statement_prefix, node)
        xfix1 += self.xfix(self.options.statement_suffix, node)
        if xfix1:
            xfix1 = self.prefix_lines(xfix1, indent)
        loop_trap = ""
        if self.options.infinite_loop_trap:
            loop_trap = self.prefix_lines(
                self.inject_id(self.options.infinite_loop_trap, node), indent
            )
        branch = self.statement_to_code(node.body)
        return_value = ""
        if node.has_return:
            return_value = self.value_to_code(node.return_value, Order.NONE)
        # Revisit the definition before handing back the result.
        xfix2 = xfix1 if branch and return_value else ""
        if return_value:
            return_value = f"{indent}return {return_value};\n"
        args = ", ".join(self.variable(param) for param in node.params)
        code = (
            f"function {func_name}({args}) {{\n"
            f"{global_code}{xfix1}{loop_trap}{branch}{xfix2}{return_value}}}"
        )
        code = self.scrub(node, code)
        # "%" keeps user functions apart from helper keys in the definitions.
        self.session.add_definition("%" + func_name, code)
        return None

    def _procedure_call(self, name: str, args: List[Optional[Block]]) -> str:
        func_name = self.name_db.get_name(name, PROCEDURE)
        values = [self.value_to_code(arg, Order.COMMA) or "null" for arg in args]
        return f"{func_name}({', '.join(values)})"

    def _render_procedure_if_return(self, node: ProcedureIfReturn) -> str:
        indent = self.options.indent
        condition = self.value_to_code(node.condition, Order.NONE) or "false"
        code = f"if ({condition}) {{\n"
        suffix = self.xfix(self.options.statement_suffix, node)
        if suffix:
            code += self.prefix_lines(suffix, indent)
        if node.has_return_value:
            value = self.value_to_code(node.value, Order.NONE) or "null"
            code += f"{indent}return {value};\n"
        else:
            code += f"{indent}return;\n"
        return code + "}\n"


def emit(program: Program, options: Optional[GeneratorOptions] = None, **overrides: object) -> str:
    """Serialize a :class:`~Blocksmith.transpile.ast.Program` into PHP.

    Keyword arguments override single fields of ``options``.
    """

    if options is None:
        options = GeneratorOptions(**overrides)  # type: ignore[arg-type]
    elif overrides:
        options = dataclasses.replace(options, **overrides)
    return PhpEmitter(options).workspace_to_code(program)
