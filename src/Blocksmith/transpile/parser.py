"""Load Blockly workspace JSON into Blocksmith block trees."""

from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Callable, Dict, List, Optional, Union

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
    Expr,
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
    Statement,
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
    Variable,
    VariableGet,
    VariableSet,
    WhileUntil,
)
from .errors import WorkspaceParseError

logger = logging.getLogger(__name__)

JsonDict = Dict[str, Any]

_INDEXED_INPUT_RE = re.compile(r"^(IF|DO|ADD|ARG)(\d+)$")


def _field(data: JsonDict, name: str, default: Any = None) -> Any:
    return (data.get("fields") or {}).get(name, default)


def _indexed_inputs(data: JsonDict, prefix: str) -> int:
    """Number of ``PREFIX<n>`` slots implied by the inputs that are present."""

    count = 0
    for key in data.get("inputs") or {}:
        match = _INDEXED_INPUT_RE.match(key)
        if match and match.group(1) == prefix:
            count = max(count, int(match.group(2)) + 1)
    return count


def _extra_state(data: JsonDict) -> JsonDict:
    state = data.get("extraState")
    return state if isinstance(state, dict) else {}


class _WorkspaceLoader:
    """Turn one workspace document into a :class:`Program`."""

    def __init__(self, variables: List[Variable]) -> None:
        self.variables = variables
        self._by_id = {var.id: var for var in variables}
        self._by_name = {var.name: var for var in variables}
        self.handlers: Dict[str, Callable[[JsonDict], Block]] = {
            "controls_if": self._if,
            "controls_ifelse": self._if,
            "logic_compare": lambda d: Compare(
                op=_field(d, "OP", "EQ"), a=self.value(d, "A"), b=self.value(d, "B")
            ),
            "logic_operation": lambda d: LogicOperation(
                op=_field(d, "OP", "AND"), a=self.value(d, "A"), b=self.value(d, "B")
            ),
            "logic_negate": lambda d: Negate(value=self.value(d, "BOOL")),
            "logic_boolean": lambda d: BooleanLiteral(value=_field(d, "BOOL", "TRUE") == "TRUE"),
            "logic_null": lambda d: NullLiteral(),
            "logic_ternary": lambda d: Ternary(
                condition=self.value(d, "IF"),
                then_value=self.value(d, "THEN"),
                else_value=self.value(d, "ELSE"),
            ),
            "controls_repeat_ext": self._repeat,
            "controls_repeat": self._repeat,
            "controls_whileUntil": lambda d: WhileUntil(
                mode=_field(d, "MODE", "WHILE"),
                condition=self.value(d, "BOOL"),
                body=self.statement(d, "DO"),
            ),
            "controls_for": lambda d: ForRange(
                var=self.variable(d),
                start=self.value(d, "FROM"),
                end=self.value(d, "TO"),
                step=self.value(d, "BY"),
                body=self.statement(d, "DO"),
            ),
            "controls_forEach": lambda d: ForEach(
                var=self.variable(d), source=self.value(d, "LIST"), body=self.statement(d, "DO")
            ),
            "controls_flow_statements": lambda d: FlowStatement(flow=_field(d, "FLOW", "BREAK")),
            "math_number": lambda d: NumberLiteral(value=self.number(d, "NUM")),
            "math_arithmetic": lambda d: Arithmetic(
                op=_field(d, "OP", "ADD"), a=self.value(d, "A"), b=self.value(d, "B")
            ),
            "math_single": self._math_single,
            "math_round": self._math_single,
            "math_trig": self._math_single,
            "math_constant": lambda d: MathConstant(constant=_field(d, "CONSTANT", "PI")),
            "math_number_property": lambda d: NumberProperty(
                prop=_field(d, "PROPERTY", "EVEN"),
                number=self.value(d, "NUMBER_TO_CHECK"),
                divisor=self.value(d, "DIVISOR"),
            ),
            "math_change": lambda d: MathChange(var=self.variable(d), delta=self.value(d, "DELTA")),
            "math_on_list": lambda d: MathOnList(
                op=_field(d, "OP", "SUM"), source=self.value(d, "LIST")
            ),
            "math_modulo": lambda d: Modulo(
                dividend=self.value(d, "DIVIDEND"), divisor=self.value(d, "DIVISOR")
            ),
            "math_constrain": lambda d: Constrain(
                value=self.value(d, "VALUE"), low=self.value(d, "LOW"), high=self.value(d, "HIGH")
            ),
            "math_random_int": lambda d: RandomInt(low=self.value(d, "FROM"), high=self.value(d, "TO")),
            "math_random_float": lambda d: RandomFloat(),
            "math_atan2": lambda d: Atan2(x=self.value(d, "X"), y=self.value(d, "Y")),
            "text": lambda d: TextLiteral(text=str(_field(d, "TEXT", ""))),
            "text_multiline": lambda d: MultilineText(text=str(_field(d, "TEXT", ""))),
            "text_join": lambda d: TextJoin(items=self.items(d)),
            "text_append": lambda d: TextAppend(var=self.variable(d), text=self.value(d, "TEXT")),
            "text_length": lambda d: TextLength(value=self.value(d, "VALUE")),
            "text_isEmpty": lambda d: TextIsEmpty(value=self.value(d, "VALUE")),
            "text_indexOf": lambda d: TextIndexOf(
                end=_field(d, "END", "FIRST"), value=self.value(d, "VALUE"), find=self.value(d, "FIND")
            ),
            "text_charAt": lambda d: TextCharAt(
                where=_field(d, "WHERE", "FROM_START"), value=self.value(d, "VALUE"), at=self.value(d, "AT")
            ),
            "text_getSubstring": lambda d: TextGetSubstring(
                value=self.value(d, "STRING"),
                where1=_field(d, "WHERE1", "FROM_START"),
                at1=self.value(d, "AT1"),
                where2=_field(d, "WHERE2", "FROM_START"),
                at2=self.value(d, "AT2"),
            ),
            "text_changeCase": lambda d: TextChangeCase(
                case=_field(d, "CASE", "UPPERCASE"), text=self.value(d, "TEXT")
            ),
            "text_trim": lambda d: TextTrim(mode=_field(d, "MODE", "BOTH"), text=self.value(d, "TEXT")),
            "text_print": lambda d: TextPrint(text=self.value(d, "TEXT")),
            "text_prompt_ext": self._prompt,
            "text_prompt": self._prompt,
            "text_count": lambda d: TextCount(text=self.value(d, "TEXT"), sub=self.value(d, "SUB")),
            "text_replace": lambda d: TextReplace(
                text=self.value(d, "TEXT"), old=self.value(d, "FROM"), new=self.value(d, "TO")
            ),
            "text_reverse": lambda d: TextReverse(text=self.value(d, "TEXT")),
            "lists_create_empty": lambda d: ListCreateEmpty(),
            "lists_create_with": lambda d: ListCreateWith(items=self.items(d)),
            "lists_repeat": lambda d: ListRepeat(item=self.value(d, "ITEM"), count=self.value(d, "NUM")),
            "lists_length": lambda d: ListLength(value=self.value(d, "VALUE")),
            "lists_isEmpty": lambda d: ListIsEmpty(value=self.value(d, "VALUE")),
            "lists_indexOf": lambda d: ListIndexOf(
                end=_field(d, "END", "FIRST"), source=self.value(d, "VALUE"), find=self.value(d, "FIND")
            ),
            "lists_getIndex": self._list_get_index,
            "lists_setIndex": lambda d: ListSetIndex(
                mode=_field(d, "MODE", "SET"),
                where=_field(d, "WHERE", "FROM_START"),
                source=self.value(d, "LIST"),
                at=self.value(d, "AT"),
                to=self.value(d, "TO"),
            ),
            "lists_getSublist": lambda d: ListGetSublist(
                source=self.value(d, "LIST"),
                where1=_field(d, "WHERE1", "FROM_START"),
                at1=self.value(d, "AT1"),
                where2=_field(d, "WHERE2", "FROM_START"),
                at2=self.value(d, "AT2"),
            ),
            "lists_sort": lambda d: ListSort(
                source=self.value(d, "LIST"),
                kind=_field(d, "TYPE", "NUMERIC"),
                direction=1 if str(_field(d, "DIRECTION", "1")) == "1" else -1,
            ),
            "lists_split": lambda d: ListSplit(
                mode=_field(d, "MODE", "SPLIT"), input=self.value(d, "INPUT"), delimiter=self.value(d, "DELIM")
            ),
            "lists_reverse": lambda d: ListReverse(source=self.value(d, "LIST")),
            "colour_picker": lambda d: ColourPicker(colour=str(_field(d, "COLOUR", "#ff0000"))),
            "colour_random": lambda d: ColourRandom(),
            "colour_rgb": lambda d: ColourRgb(
                red=self.value(d, "RED"), green=self.value(d, "GREEN"), blue=self.value(d, "BLUE")
            ),
            "colour_blend": lambda d: ColourBlend(
                colour1=self.value(d, "COLOUR1"), colour2=self.value(d, "COLOUR2"), ratio=self.value(d, "RATIO")
            ),
            "variables_get": lambda d: VariableGet(var=self.variable(d)),
            "variables_get_dynamic": lambda d: VariableGet(var=self.variable(d)),
            "variables_set": lambda d: VariableSet(var=self.variable(d), value=self.value(d, "VALUE")),
            "variables_set_dynamic": lambda d: VariableSet(var=self.variable(d), value=self.value(d, "VALUE")),
            "procedures_defreturn": self._procedure_def,
            "procedures_defnoreturn": self._procedure_def,
            "procedures_callreturn": lambda d: ProcedureCall(name=self.procedure_name(d), args=self.args(d)),
            "procedures_callnoreturn": lambda d: ProcedureCallStatement(
                name=self.procedure_name(d), args=self.args(d)
            ),
            "procedures_ifreturn": self._if_return,
        }

    # ------------------------------------------------------------------
    # generic structure
    # ------------------------------------------------------------------

    def block(self, data: Any) -> Block:
        if not isinstance(data, dict) or "type" not in data:
            raise WorkspaceParseError(f"Expected a block object, got {data!r}")
        block_type = data["type"]
        handler = self.handlers.get(block_type)
        if handler is None:
            raise WorkspaceParseError(f"Unknown block type '{block_type}'")
        node = handler(data)
        node.id = data.get("id")
        node.comment = self.comment(data)
        node.disabled = data.get("enabled") is False or bool(data.get("disabled", False))
        nxt = (data.get("next") or {}).get("block")
        if nxt is not None:
            if not isinstance(node, Statement):
                raise WorkspaceParseError(f"Block type '{block_type}' cannot be followed by another block")
            follower = self.block(nxt)
            if not isinstance(follower, Statement):
                raise WorkspaceParseError(f"Block type '{nxt.get('type')}' cannot follow a statement")
            node.next = follower
        return node

    @staticmethod
    def comment(data: JsonDict) -> Optional[str]:
        icon = (data.get("icons") or {}).get("comment")
        if isinstance(icon, dict) and icon.get("text"):
            return str(icon["text"])
        legacy = data.get("comment")
        if isinstance(legacy, dict):
            legacy = legacy.get("text")
        return str(legacy) if legacy else None

    def _input_block(self, data: JsonDict, name: str) -> Optional[Block]:
        slot = (data.get("inputs") or {}).get(name)
        if not slot:
            return None
        # A real block hides the shadow underneath it.
        target = slot.get("block") or slot.get("shadow")
        if target is None:
            return None
        return self.block(target)

    def value(self, data: JsonDict, name: str) -> Optional[Expr]:
        node = self._input_block(data, name)
        if node is not None and not isinstance(node, Expr):
            raise WorkspaceParseError(
                f"Input '{name}' of '{data['type']}' expects a value block, got {type(node).__name__}"
            )
        return node

    def statement(self, data: JsonDict, name: str) -> Optional[Statement]:
        node = self._input_block(data, name)
        if node is not None and not isinstance(node, Statement):
            raise WorkspaceParseError(
                f"Input '{name}' of '{data['type']}' expects a statement block, got {type(node).__name__}"
            )
        return node

    def items(self, data: JsonDict) -> List[Optional[Expr]]:
        count = _extra_state(data).get("itemCount")
        if count is None:
            count = _indexed_inputs(data, "ADD")
        return [self.value(data, f"ADD{i}") for i in range(int(count))]

    def args(self, data: JsonDict) -> List[Optional[Expr]]:
        params = _extra_state(data).get("params") or []
        count = max(len(params), _indexed_inputs(data, "ARG"))
        return [self.value(data, f"ARG{i}") for i in range(count)]

    def number(self, data: JsonDict, name: str) -> float:
        raw = _field(data, name, 0)
        try:
            value = float(raw)
        except (TypeError, ValueError) as e:
            raise WorkspaceParseError(f"Field '{name}' of '{data['type']}' is not a number: {raw!r}") from e
        if value.is_integer() and not math.isinf(value) and abs(value) < 1e21:
            return int(value)
        return value

    def variable(self, data: JsonDict, name: str = "VAR") -> str:
        """Resolve a variable field to a variable id, registering unknown names."""

        ref = _field(data, name)
        if isinstance(ref, dict):
            var_id = ref.get("id")
            if var_id in self._by_id:
                return var_id
            ref = ref.get("name") or var_id
        if not ref:
            raise WorkspaceParseError(f"Block '{data['type']}' has no variable in field '{name}'")
        return self._resolve_name(str(ref))

    def _resolve_name(self, ref: str) -> str:
        if ref in self._by_id:
            return ref
        if ref in self._by_name:
            return self._by_name[ref].id
        logger.debug("Registering undeclared variable %s", ref)
        var = Variable(id=ref, name=ref)
        self.variables.append(var)
        self._by_id[var.id] = var
        self._by_name[var.name] = var
        return var.id

    def procedure_name(self, data: JsonDict) -> str:
        name = _extra_state(data).get("name") or _field(data, "NAME")
        if not name:
            raise WorkspaceParseError(f"Block '{data['type']}' does not name a procedure")
        return str(name)

    # ------------------------------------------------------------------
    # blocks that need more than a field copy
    # ------------------------------------------------------------------

    def _if(self, data: JsonDict) -> IfBlock:
        state = _extra_state(data)
        count = max(int(state.get("elseIfCount", 0)) + 1, _indexed_inputs(data, "IF"), _indexed_inputs(data, "DO"))
        branches = [
            ConditionalBranch(condition=self.value(data, f"IF{i}"), body=self.statement(data, f"DO{i}"))
            for i in range(count)
        ]
        has_else = (
            data["type"] == "controls_ifelse"
            or bool(state.get("hasElse"))
            or "ELSE" in (data.get("inputs") or {})
        )
        return IfBlock(branches=branches, else_body=self.statement(data, "ELSE"), has_else=has_else)

    def _repeat(self, data: JsonDict) -> Repeat:
        if _field(data, "TIMES") is not None:
            times: Optional[Expr] = NumberLiteral(value=self.number(data, "TIMES"))
        else:
            times = self.value(data, "TIMES")
        return Repeat(times=times, body=self.statement(data, "DO"))

    def _math_single(self, data: JsonDict) -> MathSingle:
        return MathSingle(op=_field(data, "OP", "ROOT"), num=self.value(data, "NUM"))

    def _prompt(self, data: JsonDict) -> TextPrompt:
        message_text = _field(data, "TEXT")
        return TextPrompt(
            kind=_field(data, "TYPE", "TEXT"),
            message=None if message_text is not None else self.value(data, "TEXT"),
            message_text=None if message_text is None else str(message_text),
        )

    def _list_get_index(self, data: JsonDict) -> Union[ListGetIndex, ListRemoveIndex]:
        mode = _field(data, "MODE", "GET")
        where = _field(data, "WHERE", "FROM_START")
        if mode == "REMOVE":
            return ListRemoveIndex(where=where, source=self.value(data, "VALUE"), at=self.value(data, "AT"))
        return ListGetIndex(mode=mode, where=where, source=self.value(data, "VALUE"), at=self.value(data, "AT"))

    def _procedure_def(self, data: JsonDict) -> ProcedureDef:
        name = _field(data, "NAME")
        if not name:
            raise WorkspaceParseError(f"Block '{data['type']}' does not name a procedure")
        params: List[str] = []
        for param in _extra_state(data).get("params") or []:
            if isinstance(param, dict):
                var_id = param.get("id")
                params.append(var_id if var_id in self._by_id else self._resolve_name(str(param.get("name"))))
            else:
                params.append(self._resolve_name(str(param)))
        has_return = data["type"] == "procedures_defreturn"
        return ProcedureDef(
            name=str(name),
            params=params,
            body=self.statement(data, "STACK"),
            return_value=self.value(data, "RETURN") if has_return else None,
            has_return=has_return,
        )

    def _if_return(self, data: JsonDict) -> ProcedureIfReturn:
        state = data.get("extraState")
        if isinstance(state, dict):
            has_value = bool(state.get("hasReturnValue", True))
        elif isinstance(state, str):
            has_value = 'value="0"' not in state
        else:
            has_value = True
        return ProcedureIfReturn(
            condition=self.value(data, "CONDITION"),
            value=self.value(data, "VALUE") if has_value else None,
            has_return_value=has_value,
        )


def _position(data: JsonDict) -> tuple:
    return (data.get("y") or 0, data.get("x") or 0)


def parse_workspace(data: JsonDict) -> Program:
    """Build a :class:`Program` from a decoded Blockly workspace document."""

    if not isinstance(data, dict):
        raise WorkspaceParseError("Workspace document must be a JSON object")

    variables: List[Variable] = []
    for entry in data.get("variables") or []:
        try:
            variables.append(Variable(id=str(entry["id"]), name=str(entry["name"])))
        except (KeyError, TypeError) as e:
            raise WorkspaceParseError(f"Malformed variable entry: {entry!r}") from e

    section = data.get("blocks") or {}
    top = section.get("blocks", []) if isinstance(section, dict) else section
    if not isinstance(top, list):
        raise WorkspaceParseError("'blocks' must hold a list of top-level blocks")
    if all(isinstance(b, dict) for b in top) and any("x" in b or "y" in b for b in top):
        try:
            top = sorted(top, key=_position)
        except TypeError as e:
            raise WorkspaceParseError("Block positions must be numbers") from e

    loader = _WorkspaceLoader(variables)
    blocks = [loader.block(entry) for entry in top]
    logger.debug("Loaded %d top-level blocks and %d variables", len(blocks), len(loader.variables))
    return Program(blocks=blocks, variables=loader.variables)


def parse(text: str) -> Program:
    """Parse workspace JSON ``text`` into a :class:`Program`."""

    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise WorkspaceParseError(f"Invalid workspace JSON: {e}") from e
    return parse_workspace(data)
