"""Collision-free, reserved-word-safe identifiers for generated PHP."""

from __future__ import annotations

import re
from typing import Dict, Iterable, Mapping, Optional, Set
from urllib.parse import quote

from .errors import NameExhaustedError

VARIABLE = "VARIABLE"
PROCEDURE = "PROCEDURE"
DEVELOPER_VARIABLE = "DEVELOPER_VARIABLE"

CATEGORIES = frozenset({VARIABLE, PROCEDURE, DEVELOPER_VARIABLE})

# http://php.net/manual/en/reserved.keywords.php
# http://php.net/manual/en/reserved.constants.php
PHP_RESERVED_WORDS = frozenset(
    (
        "__halt_compiler,abstract,and,array,as,break,callable,case,catch,class,"
        "clone,const,continue,declare,default,die,do,echo,else,elseif,empty,"
        "enddeclare,endfor,endforeach,endif,endswitch,endwhile,eval,exit,extends,"
        "final,for,foreach,function,global,goto,if,implements,include,"
        "include_once,instanceof,insteadof,interface,isset,list,namespace,new,or,"
        "print,private,protected,public,require,require_once,return,static,"
        "switch,throw,trait,try,unset,use,var,while,xor,"
        "PHP_VERSION,PHP_MAJOR_VERSION,PHP_MINOR_VERSION,PHP_RELEASE_VERSION,"
        "PHP_VERSION_ID,PHP_EXTRA_VERSION,PHP_ZTS,PHP_DEBUG,PHP_MAXPATHLEN,"
        "PHP_OS,PHP_SAPI,PHP_EOL,PHP_INT_MAX,PHP_INT_SIZE,DEFAULT_INCLUDE_PATH,"
        "PEAR_INSTALL_DIR,PEAR_EXTENSION_DIR,PHP_EXTENSION_DIR,PHP_PREFIX,"
        "PHP_BINDIR,PHP_BINARY,PHP_MANDIR,PHP_LIBDIR,PHP_DATADIR,PHP_SYSCONFDIR,"
        "PHP_LOCALSTATEDIR,PHP_CONFIG_FILE_PATH,PHP_CONFIG_FILE_SCAN_DIR,"
        "PHP_SHLIB_SUFFIX,E_ERROR,E_WARNING,E_PARSE,E_NOTICE,E_CORE_ERROR,"
        "E_CORE_WARNING,E_COMPILE_ERROR,E_COMPILE_WARNING,E_USER_ERROR,"
        "E_USER_WARNING,E_USER_NOTICE,E_DEPRECATED,E_USER_DEPRECATED,E_ALL,"
        "E_STRICT,__COMPILER_HALT_OFFSET__,TRUE,FALSE,NULL,__CLASS__,__DIR__,"
        "__FILE__,__FUNCTION__,__LINE__,__METHOD__,__NAMESPACE__,__TRAIT__"
    ).split(",")
)

_NON_WORD_RE = re.compile(r"[^\w]", re.ASCII)
# Characters a URI may carry unescaped; everything else is percent-encoded
# first so that distinct non-ASCII names stay distinct.
_URI_SAFE = ";,/?:@&=+$!*'()#"


def safe_name(name: str) -> str:
    """Turn arbitrary user text into a legal identifier body."""

    if not name:
        return "unnamed"
    name = quote(name.replace(" ", "_"), safe=_URI_SAFE)
    name = _NON_WORD_RE.sub("_", name)
    if name[0].isdigit():
        name = "my_" + name
    return name


class NameDB:
    """Hand out unique names per generation pass.

    Variables are returned with ``variable_prefix`` (``$`` for PHP), other
    categories without it.  ``reset`` must be called between passes.
    """

    def __init__(
        self,
        reserved_words: Iterable[str] = PHP_RESERVED_WORDS,
        variable_prefix: str = "$",
        *,
        max_suffix: int = 10_000,
    ) -> None:
        self.reserved_words: Set[str] = set(reserved_words)
        self.variable_prefix = variable_prefix
        self.max_suffix = max_suffix
        self._db: Dict[str, str] = {}
        self._taken: Set[str] = set()
        self._variable_map: Dict[str, str] = {}

    def reset(self) -> None:
        """Forget every name handed out so far."""

        self._db.clear()
        self._taken.clear()
        self._variable_map = {}

    def set_variable_map(self, variable_map: Mapping[str, str]) -> None:
        """Bind variable ids to their display names."""

        self._variable_map = dict(variable_map)

    def _prefix(self, category: str) -> str:
        if category in (VARIABLE, DEVELOPER_VARIABLE):
            return self.variable_prefix
        return ""

    def _check_category(self, category: str) -> None:
        if category not in CATEGORIES:
            raise NameExhaustedError(f"Unknown name category '{category}'.")

    def get_name(self, name_or_id: str, category: str) -> str:
        """Return the stable name for ``name_or_id`` within ``category``."""

        self._check_category(category)
        name = name_or_id
        if category == VARIABLE:
            name = self._variable_map.get(name_or_id, name_or_id)
        normalized = f"{name.lower()}_{category}"
        prefix = self._prefix(category)
        if normalized in self._db:
            return prefix + self._db[normalized]
        distinct = self.get_distinct_name(name, category)
        self._db[normalized] = distinct[len(prefix):]
        return distinct

    def get_distinct_name(self, name: str, category: str) -> str:
        """Return a name derived from ``name`` that nothing else uses yet."""

        self._check_category(category)
        base = safe_name(name)
        candidate = base
        suffix: Optional[int] = None
        while candidate in self._taken or candidate in self.reserved_words:
            suffix = 2 if suffix is None else suffix + 1
            if suffix > self.max_suffix:
                raise NameExhaustedError(
                    f"No free name left for '{name}' after {self.max_suffix} attempts."
                )
            candidate = f"{base}{suffix}"
        self._taken.add(candidate)
        return self._prefix(category) + candidate
