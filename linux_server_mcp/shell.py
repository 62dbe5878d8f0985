"""远程Shell命令构造

所有拼接进远程命令行的参数都必须经过 quote_arg，参数值只能作为单个字面量
出现，不能被解释为额外的Shell语法（引号、$()、反引号、换行、通配符等）。
"""
from __future__ import annotations

import shlex


def quote_arg(value: str) -> str:
    """把任意字符串转为单个Shell字面量参数。

    Raises:
        ValueError: 值中包含NUL字符（无法出现在命令行中）
    """
    if "\x00" in value:
        raise ValueError("参数中不能包含NUL字符")
    return shlex.quote(value)


def build_write_command(path: str, content: str) -> str:
    """构造把 content 原样写入 path 的命令。

    使用 printf '%s' 而不是 echo：不追加换行，也不解释反斜杠转义。
    """
    return f"printf '%s' {quote_arg(content)} > {quote_arg(path)}"


def build_list_command(path: str, *, detailed: bool = False) -> str:
    flags = "-la " if detailed else ""
    return f"ls {flags}-- {quote_arg(path)}"
