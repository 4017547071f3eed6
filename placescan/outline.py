from __future__ import annotations

import re
from typing import List, Optional

from .models import ScriptOutline

MAX_STRING_CONSTANTS = 50
MAX_TOP_LEVEL_VARS = 20
MAX_REMOTE_LINE_CHARS = 120

RE_FUNCTION_DEF = re.compile(
    r"\bfunction\s+([A-Za-z_]\w*(?:[.:][A-Za-z_]\w*)*)\s*\(([^)]*)\)"
)
RE_REQUIRE = re.compile(r"\brequire\s*\(\s*([^\)]+?)\s*\)", re.IGNORECASE)
RE_SERVICE = re.compile(r"GetService\s*\(\s*['\"]([^'\"]+)['\"]\s*\)")
RE_REMOTE = re.compile(
    r"[:.](FireServer|InvokeServer|FireClient|FireAllClients|InvokeClient"
    r"|OnClientEvent|OnServerEvent|OnClientInvoke|OnServerInvoke)\b"
)
RE_INSTANCE_REF = re.compile(
    r"\b(?:FindFirstChildOfClass|FindFirstChildWhichIsA|FindFirstChild|WaitForChild|FindFirstAncestor)"
    r"\s*\(\s*['\"]([^'\"]+)['\"]"
)
RE_STRING = re.compile(r"['\"]([^'\"]{2,60})['\"]")
RE_TOP_LEVEL_VAR = re.compile(r"^local\s+(\w+)\s*=", re.MULTILINE)

STRING_NOISE = {
    "Frame",
    "TextLabel",
    "TextButton",
    "ImageLabel",
    "ImageButton",
    "ScreenGui",
    "ScrollingFrame",
    "UIListLayout",
    "UICorner",
    "UIPadding",
    "UIStroke",
    "UIGridLayout",
    "UIAspectRatioConstraint",
    "Color3",
    "Vector3",
    "CFrame",
    "UDim2",
    "UDim",
    "rbxassetid://",
    "Content-Type",
    "application/json",
}

VAR_STOPLIST = {"v", "i", "k"}


def count_lines(source: Optional[str]) -> int:
    if not source:
        return 0
    # Only "\n" ends a line; a trailing newline does not start a new one.
    lines = source.split("\n")
    if lines[-1] == "":
        lines.pop()
    return len(lines)


def _append_unique(found: List[str], value: str) -> None:
    if value not in found:
        found.append(value)


def _line_at(source: str, offset: int) -> str:
    start = source.rfind("\n", 0, offset) + 1
    end = source.find("\n", offset)
    if end < 0:
        end = len(source)
    return source[start:end]


def extract_functions(source: str) -> List[str]:
    # Duplicates are kept; overloads and re-definitions are worth seeing in order.
    return [
        f"{match.group(1)}({match.group(2).strip()})"
        for match in RE_FUNCTION_DEF.finditer(source)
    ]


def extract_requires(source: str) -> List[str]:
    found: List[str] = []
    for match in RE_REQUIRE.finditer(source):
        arg = match.group(1).strip()
        if arg:
            _append_unique(found, arg)
    return found


def extract_services(source: str) -> List[str]:
    found: List[str] = []
    for match in RE_SERVICE.finditer(source):
        _append_unique(found, match.group(1))
    return found


def extract_remote_accesses(source: str) -> List[str]:
    found: List[str] = []
    for match in RE_REMOTE.finditer(source):
        line = _line_at(source, match.start()).strip()
        if len(line) <= MAX_REMOTE_LINE_CHARS:
            _append_unique(found, line)
        else:
            _append_unique(found, match.group(1))
    return found


def extract_instance_refs(source: str) -> List[str]:
    found: List[str] = []
    for match in RE_INSTANCE_REF.finditer(source):
        _append_unique(found, match.group(1))
    return found


def extract_string_constants(source: str, services: List[str]) -> List[str]:
    found: List[str] = []
    skip = set(services)
    for match in RE_STRING.finditer(source):
        value = match.group(1)
        if value in STRING_NOISE or value in skip:
            continue
        _append_unique(found, value)
        if len(found) >= MAX_STRING_CONSTANTS:
            break
    return found


def extract_top_level_vars(source: str) -> List[str]:
    found: List[str] = []
    for match in RE_TOP_LEVEL_VAR.finditer(source):
        name = match.group(1)
        if len(name) <= 1 or name in VAR_STOPLIST:
            continue
        _append_unique(found, name)
        if len(found) >= MAX_TOP_LEVEL_VARS:
            break
    return found


def generate_outline(source: Optional[str]) -> ScriptOutline:
    """Heuristic outline of a Luau script.

    Each category is a single regex pass over the text. Partial or broken
    syntax just yields fewer matches.
    """
    text = source or ""
    services = extract_services(text)
    return ScriptOutline(
        functions=extract_functions(text),
        requires=extract_requires(text),
        services=services,
        remote_accesses=extract_remote_accesses(text),
        instance_refs=extract_instance_refs(text),
        string_constants=extract_string_constants(text, services),
        top_level_vars=extract_top_level_vars(text),
        line_count=count_lines(text),
    )
