from __future__ import annotations

from pathlib import Path

import pytest

from blockcord.core.exceptions import DefinitionFetchError
from blockcord.store.yaml_source import YamlDefinitionSource


@pytest.mark.anyio
async def test_reads_records_keyed_by_scope(tmp_path: Path) -> None:
    path = tmp_path / "definitions.yml"
    path.write_text(
        """
"guild-1":
  - name: ping
    blocks:
      - type: message
        config: {content: pong}
"guild-2":
  - name: other
    blocks: []
""",
        encoding="utf-8",
    )

    records = await YamlDefinitionSource(path).fetch_definitions("guild-1")

    assert [record["name"] for record in records] == ["ping"]
    assert records[0]["serverId"] == "guild-1"


@pytest.mark.anyio
async def test_unquoted_snowflake_keys_match(tmp_path: Path) -> None:
    path = tmp_path / "definitions.yml"
    path.write_text("123456:\n  - name: ping\n    blocks: []\n", encoding="utf-8")

    records = await YamlDefinitionSource(path).fetch_definitions("123456")

    assert [record["name"] for record in records] == ["ping"]


@pytest.mark.anyio
async def test_flat_list_is_filtered_by_server_id(tmp_path: Path) -> None:
    path = tmp_path / "definitions.yml"
    path.write_text(
        "- {name: a, serverId: '1', blocks: []}\n"
        "- {name: b, serverId: '2', blocks: []}\n",
        encoding="utf-8",
    )

    records = await YamlDefinitionSource(path).fetch_definitions("1")

    assert [record["name"] for record in records] == ["a"]


@pytest.mark.anyio
async def test_missing_file_raises_fetch_error(tmp_path: Path) -> None:
    with pytest.raises(DefinitionFetchError, match="not found"):
        await YamlDefinitionSource(tmp_path / "missing.yml").fetch_definitions("1")


@pytest.mark.anyio
async def test_invalid_yaml_raises_fetch_error(tmp_path: Path) -> None:
    path = tmp_path / "definitions.yml"
    path.write_text("a: [unclosed\n", encoding="utf-8")
    with pytest.raises(DefinitionFetchError, match="Invalid YAML"):
        await YamlDefinitionSource(path).fetch_definitions("1")
