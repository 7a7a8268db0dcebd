"""Property-based tests for ToolsetRegistry using Hypothesis.

These tests verify the core invariants of the registry:
- Toolset names are listed sorted and unique regardless of registration order
- "all" is equivalent to the explicit sorted list of toolsets
- Read-only queries only return read-only tools
- Required scopes are the sorted, de-duplicated union of tool scopes
- Search results respect the limit and are sorted by tool name
- Match classification follows where the query was found
- With a limit above the match count, every matching tool is returned
- Unknown toolset names contribute nothing
"""
from __future__ import annotations

from hypothesis import given, settings
from hypothesis import strategies as st

from buildkite_mcp.toolsets.registry import (
    ALL_TOOLSETS,
    ToolDescriptor,
    Toolset,
    ToolsetRegistry,
)


async def _handler() -> str:
    return "{}"


# === Strategies ===

name_strategy = st.text(alphabet="abcdefghijklmnopqrstuvwxyz_", min_size=1, max_size=12)
scope_strategy = st.sampled_from(
    ["read_builds", "write_builds", "read_artifacts", "read_build_logs", "read_user"]
)
query_strategy = st.text(alphabet="abcdeBUILD_ ", max_size=4)


@st.composite
def registries(draw: st.DrawFn) -> tuple[ToolsetRegistry, dict[str, Toolset]]:
    toolset_names = draw(
        st.lists(name_strategy.filter(lambda n: n != ALL_TOOLSETS), unique=True, max_size=5)
    )
    tool_names = iter(
        draw(
            st.lists(
                name_strategy,
                unique=True,
                min_size=len(toolset_names) * 4,
                max_size=len(toolset_names) * 4,
            )
        )
    )

    toolsets: dict[str, Toolset] = {}
    for toolset_name in toolset_names:
        count = draw(st.integers(min_value=0, max_value=4))
        tools = tuple(
            ToolDescriptor(
                name=next(tool_names),
                description=draw(st.text(alphabet="abcde build_LOG", max_size=20)),
                handler=_handler,
                read_only=draw(st.sampled_from([True, False, None])),
                required_scopes=tuple(draw(st.lists(scope_strategy, max_size=3))),
            )
            for _ in range(count)
        )
        toolsets[toolset_name] = Toolset(name=toolset_name, description="", tools=tools)

    registry = ToolsetRegistry()
    for key in draw(st.permutations(list(toolsets))):
        registry.register(key, toolsets[key])
    return registry, toolsets


# === Property Tests ===


@given(data=registries())
@settings(max_examples=100)
def test_list_sorted_and_unique(data: tuple[ToolsetRegistry, dict[str, Toolset]]) -> None:
    registry, toolsets = data
    names = registry.list()

    assert names == sorted(names)
    assert len(names) == len(set(names))
    assert set(names) == set(toolsets)


@given(data=registries(), read_only=st.booleans())
@settings(max_examples=100)
def test_all_equals_explicit_sorted_list(
    data: tuple[ToolsetRegistry, dict[str, Toolset]], read_only: bool
) -> None:
    registry, _ = data
    explicit = registry.list()

    assert registry.get_enabled_tools([ALL_TOOLSETS], read_only) == registry.get_enabled_tools(
        explicit, read_only
    )
    assert registry.get_required_scopes(
        [ALL_TOOLSETS], read_only
    ) == registry.get_required_scopes(explicit, read_only)


@given(data=registries())
@settings(max_examples=100)
def test_read_only_returns_only_read_only_tools(
    data: tuple[ToolsetRegistry, dict[str, Toolset]],
) -> None:
    registry, _ = data

    assert all(tool.read_only is True for tool in registry.get_enabled_tools([ALL_TOOLSETS], True))


@given(data=registries(), read_only=st.booleans())
@settings(max_examples=100)
def test_scopes_sorted_union(
    data: tuple[ToolsetRegistry, dict[str, Toolset]], read_only: bool
) -> None:
    registry, _ = data
    scopes = registry.get_required_scopes([ALL_TOOLSETS], read_only)
    tools = registry.get_enabled_tools([ALL_TOOLSETS], read_only)

    assert all(a < b for a, b in zip(scopes, scopes[1:]))
    assert set(scopes) == {scope for tool in tools for scope in tool.required_scopes}


@given(data=registries(), query=query_strategy, limit=st.integers(min_value=1, max_value=12))
@settings(max_examples=200)
def test_search_bounded_and_sorted(
    data: tuple[ToolsetRegistry, dict[str, Toolset]], query: str, limit: int
) -> None:
    registry, _ = data
    results = registry.search_tools_with_metadata(query, limit)
    names = [result.tool.name for result in results]

    assert len(results) <= limit
    assert names == sorted(names)


@given(data=registries(), query=query_strategy)
@settings(max_examples=200)
def test_match_classification(
    data: tuple[ToolsetRegistry, dict[str, Toolset]], query: str
) -> None:
    registry, _ = data
    needle = query.lower()

    for result in registry.search_tools_with_metadata(query, 1000):
        in_name = needle in result.tool.name.lower()
        in_desc = needle in result.tool.description.lower()
        expected = "both" if in_name and in_desc else "name" if in_name else "description"
        assert in_name or in_desc
        assert result.matched_in == expected
        assert result.read_only == result.tool.is_read_only
        assert result.required_scopes == result.tool.required_scopes


@given(data=registries(), unknown=name_strategy, read_only=st.booleans())
@settings(max_examples=100)
def test_unknown_names_contribute_nothing(
    data: tuple[ToolsetRegistry, dict[str, Toolset]], unknown: str, read_only: bool
) -> None:
    registry, _ = data
    missing = f"missing-{unknown}"
    known = registry.list()

    assert registry.get_enabled_tools([missing], read_only) == []
    assert registry.get_required_scopes([missing], read_only) == []
    assert registry.get_enabled_tools([*known, missing], read_only) == registry.get_enabled_tools(
        known, read_only
    )


@given(data=registries(), query=query_strategy)
@settings(max_examples=200)
def test_search_complete_with_large_limit(
    data: tuple[ToolsetRegistry, dict[str, Toolset]], query: str
) -> None:
    registry, toolsets = data
    needle = query.lower()
    expected = sorted(
        tool.name
        for toolset in toolsets.values()
        for tool in toolset.tools
        if needle in tool.name.lower() or needle in tool.description.lower()
    )

    results = registry.search_tools_with_metadata(query, len(expected) + 1)

    assert [result.tool.name for result in results] == expected
    assert all(result.toolset_name in toolsets for result in results)
